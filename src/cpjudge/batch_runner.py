"""
Test batch runner: judges every fixture of the selected problem concurrently.
"""
import asyncio
import logging
from typing import List, Tuple

import tqdm

from .errors import InternalError, SelectionError
from .fixtures import Fixture, enumerate_fixtures
from .judge import JudgeResult, judge_fixture
from .result_type import Verdict
from .session import Session

LOGGER = logging.getLogger(__name__)


async def _judge_one(fixture: Fixture, session: Session) -> Tuple[int, JudgeResult]:
    """Judge a fixture, turning an internal error into an IE result."""
    config = session.config
    try:
        result = await judge_fixture(
            fixture, config.run_command, config.main_file, timeout_ms=config.timeout_ms
        )
    except InternalError as exc:
        LOGGER.error("Internal error on testcase %d: %s", fixture.number, exc)
        result = JudgeResult(fixture.index, Verdict.IE, "", "", message=str(exc))
    except Exception as exc:
        LOGGER.exception("Unexpected error on testcase %d", fixture.number)
        result = JudgeResult(
            fixture.index, Verdict.IE, "", "", message=f"{type(exc).__name__}: {exc}"
        )
    return fixture.index, result


async def run_batch(session: Session, verbose: bool = False) -> List[JudgeResult]:
    """
    Judge all fixtures of the selected problem.

    Every fixture is launched without waiting for the previous ones; results
    are collected as they complete and returned in fixture index order.

    Args:
        session: Session holding the configuration and selection
        verbose: Show a progress bar while fixtures complete

    Returns:
        One JudgeResult per complete fixture pair, sorted by index

    Raises:
        SelectionError: when no problem is selected or its directory is missing
    """
    lookup = session.lookup_problem()
    if not lookup.found:
        raise SelectionError(lookup.reason)

    fixtures = enumerate_fixtures(lookup.directory)
    LOGGER.info("Judging %d testcases in %s", len(fixtures), lookup.directory)

    tasks = [asyncio.create_task(_judge_one(fixture, session)) for fixture in fixtures]

    results: List[JudgeResult] = []
    pbar = tqdm.tqdm(total=len(tasks), disable=not verbose)
    try:
        for done in asyncio.as_completed(tasks):
            _, result = await done
            results.append(result)
            pbar.update(1)
    finally:
        pbar.close()
        for task in tasks:
            task.cancel()

    results.sort(key=lambda r: r.fixture_index)
    return results

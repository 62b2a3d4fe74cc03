"""
Judge a solution against one fixture, or against ad-hoc input.
"""
import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Optional, Union

from .command_runner import CommandOutcome, run_command
from .config import JUDGE_TIMEOUT_MS, RunConfiguration, substitute
from .errors import InternalError
from .fixtures import Fixture
from .normalizer import outputs_match
from .result_type import Verdict

LOGGER = logging.getLogger(__name__)

SINGLE_RUN_OK = "ok"


@dataclass(frozen=True)
class JudgeResult:
    """Verdict for exactly one fixture."""
    fixture_index: int
    verdict: Verdict
    actual_output: str
    stderr_text: str
    expected_output: Optional[str] = None
    message: Optional[str] = None

    @property
    def number(self) -> int:
        return self.fixture_index + 1


@dataclass(frozen=True)
class SingleRunResult:
    """Result of an ad-hoc run; verdict is "ok", RE or TLE."""
    stdout: str
    stderr: str
    verdict: Union[str, Verdict]
    message: Optional[str] = None


def _read_expected(fixture: Fixture) -> str:
    try:
        with open(fixture.expected_output_path, "r", encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise InternalError(
            f"Cannot read expected output for testcase {fixture.number}: {exc}"
        ) from exc


def classify(fixture: Fixture, outcome: CommandOutcome) -> JudgeResult:
    """
    Turn a command outcome into a verdict for ``fixture``.

    Raises:
        InternalError: when the expected output cannot be read
    """
    if outcome.timed_out:
        return JudgeResult(fixture.index, Verdict.TLE, "", "", message=outcome.message)

    if not outcome.ok:
        return JudgeResult(
            fixture.index,
            Verdict.RE,
            outcome.stdout,
            outcome.stderr or outcome.message or "",
            message=outcome.message,
        )

    # stderr from a clean exit is only a warning
    if outcome.stderr:
        LOGGER.debug("Testcase %d wrote to stderr", fixture.number)

    expected = _read_expected(fixture)
    if outputs_match(expected, outcome.stdout):
        return JudgeResult(fixture.index, Verdict.AC, outcome.stdout, outcome.stderr)
    return JudgeResult(
        fixture.index,
        Verdict.WA,
        outcome.stdout,
        outcome.stderr,
        expected_output=expected,
    )


async def judge_fixture(
    fixture: Fixture,
    run_template: str,
    main_file: str,
    timeout_ms: int = JUDGE_TIMEOUT_MS,
) -> JudgeResult:
    """
    Run the solution on one fixture and classify the outcome.

    Args:
        fixture: Fixture to judge
        run_template: Run command with {MAIN_FILE} and {INPUT_FILE} placeholders
        main_file: Path substituted for {MAIN_FILE}
        timeout_ms: Wall-clock limit for the run

    Returns:
        JudgeResult with verdict AC, WA, RE or TLE

    Raises:
        InternalError: when the expected output cannot be read
    """
    command = substitute(run_template, main_file=main_file, input_file=fixture.input_path)
    outcome = await run_command(command, timeout_ms=timeout_ms)
    return classify(fixture, outcome)


async def run_single(input_text: str, config: RunConfiguration) -> SingleRunResult:
    """
    Run the solution once on ``input_text`` without an expected output.

    The input is written to a temporary file owned by this call and removed
    before returning, whatever the outcome.
    """
    fd, temp_path = tempfile.mkstemp(prefix="cpjudge_input_", suffix=".txt")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(input_text)
        outcome = await run_command(config.command_for(temp_path), timeout_ms=config.timeout_ms)
    finally:
        if os.path.exists(temp_path):
            os.unlink(temp_path)

    if outcome.timed_out:
        return SingleRunResult("", "", Verdict.TLE, message=outcome.message)
    if not outcome.ok:
        return SingleRunResult(outcome.stdout, outcome.stderr or outcome.message or "", Verdict.RE, message=outcome.message)
    return SingleRunResult(outcome.stdout, outcome.stderr, SINGLE_RUN_OK)

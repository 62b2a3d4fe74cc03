from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Callable

import pytest

from cpjudge.config import RunConfiguration
from cpjudge.session import SelectionState, Session


def write_problem(root: Path, contest: str, problem: str, files: dict[str, str | bytes]) -> Path:
    problem_dir = root / contest / problem
    problem_dir.mkdir(parents=True, exist_ok=True)
    for name, content in files.items():
        path = problem_dir / name
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return problem_dir


def make_session(root: Path, run_command: str = "cat {INPUT_FILE}", main_file: str = "main.cpp", **kwargs) -> Session:
    config = RunConfiguration(
        main_file=main_file,
        build_command=kwargs.pop("build_command", "true"),
        run_command=run_command,
        watch_interval_ms=kwargs.pop("watch_interval_ms", 10),
    )
    selection = SelectionState(contest_id=kwargs.pop("contest", "abc100"), problem_id=kwargs.pop("problem", "A"))
    return Session(config=config, selection=selection, fixture_root=root)


async def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def fixture_root(tmp_path: Path) -> Path:
    root = tmp_path / "contests"
    root.mkdir()
    return root

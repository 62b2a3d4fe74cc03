from __future__ import annotations

import asyncio
import time

import pytest

from cpjudge.command_runner import run_command
from cpjudge.errors import InternalError


def test_success_captures_stdout_and_stderr():
    outcome = asyncio.run(run_command("echo out; echo err 1>&2"))
    assert outcome.ok
    assert outcome.stdout == "out\n"
    assert outcome.stderr == "err\n"
    assert outcome.message is None


def test_nonzero_exit_is_an_outcome_not_an_exception():
    outcome = asyncio.run(run_command("echo partial; echo boom 1>&2; exit 3"))
    assert not outcome.ok
    assert not outcome.timed_out
    assert outcome.returncode == 3
    assert outcome.stdout == "partial\n"
    assert outcome.stderr == "boom\n"
    assert "exit status 3" in outcome.message


def test_timeout_kills_the_whole_process_tree():
    start = time.monotonic()
    outcome = asyncio.run(run_command("sleep 10 & sleep 10; wait", timeout_ms=200))
    elapsed = time.monotonic() - start
    assert outcome.timed_out
    assert not outcome.ok
    assert outcome.stdout == ""
    assert "200 ms" in outcome.message
    assert elapsed < 5


def test_no_timeout_waits_for_completion():
    outcome = asyncio.run(run_command("sleep 0.2; echo done"))
    assert outcome.ok
    assert outcome.stdout == "done\n"


def test_spawn_failure_is_an_internal_error(monkeypatch):
    async def refuse(*args, **kwargs):
        raise OSError(24, "Too many open files")

    monkeypatch.setattr(asyncio, "create_subprocess_shell", refuse)
    with pytest.raises(InternalError, match="Too many open files"):
        asyncio.run(run_command("echo hi"))

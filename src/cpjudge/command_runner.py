"""
Run one shell command with an optional wall-clock timeout.
"""
import asyncio
import logging
import signal
from dataclasses import dataclass
from typing import Optional

import psutil

from .errors import InternalError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandOutcome:
    """Captured result of a single command invocation."""
    command: str
    stdout: str
    stderr: str
    returncode: Optional[int]
    timed_out: bool = False
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return not self.timed_out and self.returncode == 0


def kill_process_tree(pid: int) -> None:
    """Kill a process and every descendant it spawned."""
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        return
    procs = parent.children(recursive=True)
    procs.append(parent)
    for proc in procs:
        try:
            proc.kill()
        except psutil.NoSuchProcess:
            continue


def _exit_message(command: str, returncode: int) -> str:
    if returncode < 0:
        try:
            name = signal.Signals(-returncode).name
        except ValueError:
            name = f"signal {-returncode}"
        return f"Command failed: {command} (terminated by {name})"
    return f"Command failed: {command} (exit status {returncode})"


async def run_command(command: str, timeout_ms: Optional[int] = None) -> CommandOutcome:
    """
    Execute ``command`` through the shell and capture its output.

    A nonzero exit status is a normal outcome and is never raised. When
    ``timeout_ms`` elapses first, the whole process tree is killed and the
    outcome is marked ``timed_out`` with no output.

    Args:
        command: Shell command line, may contain redirections and pipes
        timeout_ms: Wall-clock limit in milliseconds, None for no limit

    Returns:
        CommandOutcome describing how the process ended

    Raises:
        InternalError: when the process cannot be spawned at all
    """
    LOGGER.debug("Running command: %s", command)
    try:
        process = await asyncio.create_subprocess_shell(
            command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise InternalError(f"Cannot start command: {command}: {exc}") from exc

    timeout = timeout_ms / 1000 if timeout_ms is not None else None
    try:
        stdout_data, stderr_data = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        LOGGER.debug("Timeout reached. Killing process tree of pid %d", process.pid)
        kill_process_tree(process.pid)
        await process.wait()
        return CommandOutcome(
            command=command,
            stdout="",
            stderr="",
            returncode=process.returncode,
            timed_out=True,
            message=f"Command timed out after {timeout_ms} ms: {command}",
        )

    stdout = stdout_data.decode("utf-8", errors="replace") if stdout_data else ""
    stderr = stderr_data.decode("utf-8", errors="replace") if stderr_data else ""

    message = None
    if process.returncode != 0:
        message = _exit_message(command, process.returncode)

    return CommandOutcome(
        command=command,
        stdout=stdout,
        stderr=stderr,
        returncode=process.returncode,
        message=message,
    )

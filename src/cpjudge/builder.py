"""
Build coordinator: runs the configured build command once.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from .command_runner import run_command
from .errors import BuildFailure

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class BuildResult:
    success: bool
    stdout: str
    stderr: str
    error_message: Optional[str] = None

    @property
    def has_warnings(self) -> bool:
        return self.success and bool(self.stderr)

    def raise_for_failure(self) -> "BuildResult":
        if not self.success:
            raise BuildFailure(self)
        return self


async def build(build_command: str) -> BuildResult:
    """
    Run the build command without a timeout.

    Output on stderr alone is treated as compiler warnings, not as failure;
    only a nonzero exit fails the build.

    Args:
        build_command: Shell command with {MAIN_FILE} already substituted

    Returns:
        BuildResult with the captured output
    """
    LOGGER.info("Building with command: %s", build_command)
    outcome = await run_command(build_command)
    if outcome.ok:
        return BuildResult(True, outcome.stdout, outcome.stderr)
    LOGGER.info("Build failed: %s", outcome.message)
    return BuildResult(False, outcome.stdout, outcome.stderr, error_message=outcome.message)

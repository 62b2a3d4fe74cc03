"""
Judging engine for a local competitive-programming harness.

This package builds a solution, runs it against input/expected-output
fixture pairs and classifies every run:
- build: run the configured build command once
- run_batch: judge every fixture of the selected problem concurrently
- run_single: run the solution on ad-hoc input
- start_watch: rebuild and retest on file change or single-key commands
"""

from .batch_runner import run_batch
from .builder import BuildResult, build
from .config import RunConfiguration, load_config
from .errors import BuildFailure, ConfigError, HarnessError, InternalError, SelectionError
from .fixtures import Fixture, ProblemLookup, enumerate_fixtures, resolve_problem
from .judge import JudgeResult, SingleRunResult, judge_fixture, run_single
from .normalizer import normalize
from .result_type import Verdict
from .session import SelectionState, Session
from .watch import WatchController, WatchState, start_watch

__all__ = [
    'build',
    'BuildResult',
    'run_batch',
    'run_single',
    'judge_fixture',
    'start_watch',
    'normalize',
    'enumerate_fixtures',
    'resolve_problem',
    'load_config',
    'RunConfiguration',
    'Fixture',
    'ProblemLookup',
    'JudgeResult',
    'SingleRunResult',
    'Verdict',
    'SelectionState',
    'Session',
    'WatchController',
    'WatchState',
    'HarnessError',
    'ConfigError',
    'SelectionError',
    'BuildFailure',
    'InternalError',
]

"""Explicit session context passed to every harness operation."""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from .config import RunConfiguration
from .fixtures import ProblemLookup, resolve_problem


@dataclass
class SelectionState:
    """Contest and problem picked in the menu; mutated only between operations."""
    contest_id: Optional[str] = None
    problem_id: Optional[str] = None


@dataclass
class Session:
    config: RunConfiguration
    selection: SelectionState = field(default_factory=SelectionState)
    fixture_root: Path = Path(".")

    def lookup_problem(self) -> ProblemLookup:
        return resolve_problem(self.fixture_root, self.selection.contest_id, self.selection.problem_id)

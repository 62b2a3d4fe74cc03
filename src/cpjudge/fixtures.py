# fixtures.py
"""
Read-only view of the fixture store.

Layout: ``{root}/{contest}/{problem}/input{i}.txt`` paired with
``output{i}.txt``, plus ``label`` and ``name`` files describing the problem.
"""
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

LOGGER = logging.getLogger(__name__)

# canonical indices only, so input01.txt never shadows input1.txt
INPUT_PATTERN = re.compile(r"^input(0|[1-9]\d*)\.txt$")
OUTPUT_PATTERN = re.compile(r"^output(0|[1-9]\d*)\.txt$")


@dataclass(frozen=True, order=True)
class Fixture:
    index: int
    input_path: Path
    expected_output_path: Path

    @property
    def number(self) -> int:
        """One-based number shown to the user."""
        return self.index + 1


@dataclass(frozen=True)
class ProblemLookup:
    """Outcome of resolving a selection to a problem directory."""
    found: bool
    directory: Optional[Path] = None
    reason: str = ""


@dataclass(frozen=True)
class ProblemInfo:
    label: str
    name: str
    directory: Path


def input_path(directory: Path, index: int) -> Path:
    return Path(directory) / f"input{index}.txt"


def output_path(directory: Path, index: int) -> Path:
    return Path(directory) / f"output{index}.txt"


def resolve_problem(root, contest_id: Optional[str], problem_id: Optional[str]) -> ProblemLookup:
    """
    Resolve a contest/problem pair to its fixture directory.

    Args:
        root: Fixture store root
        contest_id: Selected contest, may be None
        problem_id: Selected problem directory name, may be None

    Returns:
        ProblemLookup with found=False and a reason when anything is missing
    """
    if not contest_id:
        return ProblemLookup(False, reason="Contest is not set")
    if not problem_id:
        return ProblemLookup(False, reason="Problem is not selected")
    directory = Path(root) / contest_id / problem_id
    if not directory.is_dir():
        return ProblemLookup(False, directory=directory, reason=f"{contest_id}: {problem_id} not found")
    return ProblemLookup(True, directory=directory)


def enumerate_fixtures(directory) -> List[Fixture]:
    """
    List every complete input/output pair in ``directory``.

    An input without its output (or the reverse) is skipped. The result is
    sorted by index; no upper bound is assumed on the number of fixtures.
    """
    inputs: Dict[int, Path] = {}
    outputs: Dict[int, Path] = {}
    for name in os.listdir(directory):
        match = INPUT_PATTERN.match(name)
        if match:
            inputs[int(match.group(1))] = Path(directory) / name
            continue
        match = OUTPUT_PATTERN.match(name)
        if match:
            outputs[int(match.group(1))] = Path(directory) / name

    for index in sorted(set(inputs) ^ set(outputs)):
        LOGGER.debug("Skipping incomplete fixture %d in %s", index, directory)

    return [
        Fixture(index, inputs[index], outputs[index])
        for index in sorted(set(inputs) & set(outputs))
    ]


def _read_meta(path: Path, default: str) -> str:
    if not path.exists():
        return default
    return path.read_text(encoding="utf-8").strip()


def list_problems(root, contest_id: str) -> List[ProblemInfo]:
    """Problems stored for a contest, sorted by directory name."""
    contest_dir = Path(root) / contest_id
    if not contest_dir.is_dir():
        return []
    problems = []
    for entry in sorted(contest_dir.iterdir()):
        if not entry.is_dir():
            continue
        label = _read_meta(entry / "label", entry.name)
        name = _read_meta(entry / "name", "")
        problems.append(ProblemInfo(label=label, name=name, directory=entry))
    return problems

"""Canonical form of program output used for every comparison."""


def normalize(text: str) -> str:
    """Strip trailing whitespace from each line and trailing blank lines."""
    lines = [line.rstrip() for line in text.split("\n")]
    return "\n".join(lines).rstrip()


def outputs_match(expected: str, actual: str) -> bool:
    return normalize(expected) == normalize(actual)

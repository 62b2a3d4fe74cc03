# this gets its own file to prevent circular imports
from enum import Enum


class Verdict(str, Enum):
    ACCEPTED            = "AC"
    WRONG_ANSWER        = "WA"
    RUNTIME_ERROR       = "RE"
    TIME_LIMIT_EXCEEDED = "TLE"
    INTERNAL_ERROR      = "IE"

    AC  = ACCEPTED
    WA  = WRONG_ANSWER
    RE  = RUNTIME_ERROR
    TLE = TIME_LIMIT_EXCEEDED
    IE  = INTERNAL_ERROR

    def __str__(self) -> str:
        return self.value

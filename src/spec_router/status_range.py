"""
Status-code range expressions.

A token is either ``"*"``, a single code such as ``"200"`` or an inclusive
range such as ``"200-299"``. Every code must be a 3-digit 1xx-5xx value.
"""

import math
import re
from dataclasses import dataclass
from typing import Union

from .errors import InvalidRangeError

_CODE_PATTERN = re.compile(r"[1-5][0-9]{2}")

Bound = Union[int, float]


@dataclass(frozen=True)
class StatusRange:
    """Inclusive interval of HTTP status codes."""

    lower: Bound
    upper: Bound

    def overlaps(self, other: "StatusRange") -> bool:
        return self.lower <= other.upper and self.upper >= other.lower

    def contains(self, status: int) -> bool:
        return self.lower <= status <= self.upper

    @property
    def is_wildcard(self) -> bool:
        return self.upper == math.inf

    def __str__(self) -> str:
        if self.is_wildcard:
            return "*"
        if self.lower == self.upper:
            return str(self.lower)
        return f"{self.lower}-{self.upper}"


WILDCARD = StatusRange(0, math.inf)


def validate_code(code: str) -> int:
    """Check a single status code token and return it as an int."""
    if not _CODE_PATTERN.fullmatch(code):
        raise InvalidRangeError(
            code, f"invalid status code: {code} must be between 100-599"
        )
    return int(code)


def parse_range(token: str) -> StatusRange:
    """
    Parse a range token into a StatusRange.

    Args:
        token: ``"*"``, ``"<code>"`` or ``"<code>-<code>"``

    Returns:
        The parsed range. Reversed bounds are swapped.

    Raises:
        InvalidRangeError: if the token is malformed
    """
    if token == "*":
        return WILDCARD

    parts = token.split("-")
    if not parts or len(parts) > 2:
        raise InvalidRangeError(token)

    lower = validate_code(parts[0])
    upper = validate_code(parts[1]) if len(parts) == 2 else lower

    if lower > upper:
        lower, upper = upper, lower

    return StatusRange(lower, upper)

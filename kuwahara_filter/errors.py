"""Exception types raised by the Kuwahara filtering engine.

User-facing failures (bad parameters, empty images) derive from ``ValueError``
as well as :class:`FilterError` so callers can catch either. Internal
consistency failures derive from ``AssertionError`` instead: they signal a bug,
not something the caller can fix by changing its input.
"""

from typing import Optional, Tuple


class FilterError(Exception):
    """Base class for every error raised by the filtering engine."""


class InvalidParameters(FilterError, ValueError):
    """A filter parameter or engine option is outside its allowed range.

    Attributes:
        field (str): Name of the offending parameter.
        value: The rejected value.
    """

    def __init__(self, field: str, value, reason: str) -> None:
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field}={value!r}: {reason}")


class EmptyInput(FilterError, ValueError):
    """The input image has zero width or zero height."""

    def __init__(self, shape: Tuple[int, ...], message: Optional[str] = None) -> None:
        self.shape = tuple(shape)
        super().__init__(message or f"Raster must be at least 1x1, got shape {self.shape}")


class InvariantViolation(FilterError, AssertionError):
    """An internal consistency check failed."""


class FilterCancelled(FilterError):
    """The caller cancelled a filter pass before it completed."""

    def __init__(self, completed: int, total: int) -> None:
        self.completed = completed
        self.total = total
        super().__init__(f"Filter cancelled after {completed}/{total} partitions")

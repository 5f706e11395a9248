"""
Error taxonomy.

Fatal kinds are raised immediately with the offending names, counts and
positions embedded in the message. ``ValueWarning`` is the only non-fatal
kind and is emitted through ``warnings.warn``.
"""

from collections.abc import Sequence
from typing import Any, Optional


class HydroCoreError(Exception):
    """Base class for all hydrocore errors."""

    pass


class ShapeMismatch(HydroCoreError, ValueError):
    """Array rank, variable count or time length disagrees with a component contract."""

    def __init__(
        self,
        message: str,
        expected: Any = None,
        actual: Any = None,
        hint: Optional[str] = None,
    ) -> None:
        self.expected = expected
        self.actual = actual
        self.hint = hint
        if hint:
            message = f"{message}\n  Hint: {hint}"
        super().__init__(message)


class MissingKey(HydroCoreError, KeyError):
    """A declared parameter, state or network name is absent from a runtime bag."""

    def __init__(
        self,
        kind: str,
        component: str,
        missing: Sequence[str],
        available: Sequence[str],
    ) -> None:
        self.kind = kind
        self.component = component
        self.missing = tuple(missing)
        self.available = tuple(available)
        self.message = (
            f"Missing {kind} in component '{component}':\n"
            f"  Required but missing: {list(self.missing)}\n"
            f"  Available {kind}: {list(self.available)}\n"
            f"  Hint: Initialize missing {kind} before running the component"
        )
        super().__init__(self.message)

    def __str__(self) -> str:
        # KeyError would repr() the message and escape the newlines
        return self.message


class ChainValidationError(HydroCoreError):
    """A component in a chain consumes inputs no earlier component produces."""

    def __init__(
        self,
        position: int,
        component: str,
        missing: Sequence[str],
        available: Sequence[str],
    ) -> None:
        self.position = position
        self.component = component
        self.missing = tuple(missing)
        self.available = tuple(available)
        super().__init__(
            f"Component chain validation failed at component #{position} ('{component}'):\n"
            f"  Missing inputs: {list(self.missing)}\n"
            f"  Available variables: {list(self.available)}\n"
            f"  Hint: Reorder components or add missing input sources"
        )


class StructuralBuildError(HydroCoreError, ValueError):
    """A kernel description is malformed (raised at build time, never at call time)."""

    pass


class ValueWarning(UserWarning):
    """Non-fatal diagnostic: NaN, Inf, negative values or unexpected state shapes."""

    pass

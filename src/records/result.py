"""Result: explicit success/failure for form-action style callers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar

__all__ = ["Result"]

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    """Outcome of an application action that reports rather than raises.

    Example::

        result = create_user(engine, ctx, username="carol", org="acme", role="member")
        if not result.success:
            flash(result.error)
    """

    success: bool
    value: T | None = None
    error: str | None = None

    @classmethod
    def ok(cls, value: T) -> Result[T]:
        return cls(success=True, value=value)

    @classmethod
    def fail(cls, error: str) -> Result[T]:
        return cls(success=False, error=error)

"""Tagged results for backend response envelopes.

The backend wraps most payloads as::

    {"success": true, "data": ..., "successMessage": "..."}
    {"success": false, "errorMessage": "...", "errorDetails": [...]}

:func:`parse_envelope` turns that shape into either :class:`Success` or
:class:`Failure`, so a success without data or a failure without a message
cannot be observed.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from fetchlayer.errors import ErrorKind, FetchError, error_for_kind

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Success(Generic[T]):
    """A successful call carrying its data."""

    data: T
    message: str | None = None

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.data


@dataclass(frozen=True, slots=True)
class Failure:
    """A failed call classified by kind."""

    kind: ErrorKind
    message: str
    details: list[str] = field(default_factory=list)
    status_code: int | None = None

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        """Raise the exception matching this failure."""
        raise self.to_error()

    def to_error(self) -> FetchError:
        return error_for_kind(
            self.kind,
            self.message,
            status_code=self.status_code,
            details=list(self.details),
        )

    @classmethod
    def from_error(cls, error: FetchError) -> Failure:
        return cls(
            kind=error.kind,
            message=error.message,
            details=list(error.details),
            status_code=error.status_code,
        )


Result = Success[T] | Failure


def is_envelope(payload: Any) -> bool:
    """True when payload looks like a backend envelope."""
    return isinstance(payload, Mapping) and isinstance(payload.get("success"), bool)


def parse_envelope(payload: Any) -> Result[Any]:
    """Convert a decoded response body into a tagged result.

    Payloads that are not envelopes are treated as bare data.
    """
    if not is_envelope(payload):
        return Success(payload)

    if payload["success"]:
        return Success(payload.get("data"), payload.get("successMessage"))

    details = payload.get("errorDetails") or []
    if not isinstance(details, list):
        details = [str(details)]
    return Failure(
        kind=ErrorKind.REJECTED,
        message=payload.get("errorMessage") or "Request was not successful",
        details=[str(d) for d in details],
    )

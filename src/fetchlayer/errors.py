"""Error taxonomy for the request layer.

Every failure surfaced by :class:`~fetchlayer.client.AsyncFetcher` is a
:class:`FetchError` subclass, so callers can branch on ``error.kind`` or on
the class itself. Retryable kinds are retried inside the transport and only
escape once the retry budget is spent.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Classification of a failed request."""

    TRANSPORT = "transport"
    SERVER = "server"
    AUTH_EXPIRED = "auth_expired"
    CLIENT = "client"
    PARSE = "parse"
    REJECTED = "rejected"  # 2xx envelope with success = false
    STORAGE = "storage"


class FetchError(Exception):
    """Base class for classified request failures."""

    kind: ErrorKind = ErrorKind.CLIENT
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        details: list[str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or []

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, "
            f"status_code={self.status_code!r})"
        )


class TransportError(FetchError):
    """Connection, DNS or timeout failure before a response arrived."""

    kind = ErrorKind.TRANSPORT
    retryable = True


class ServerError(FetchError):
    """The server answered with a 5xx status."""

    kind = ErrorKind.SERVER
    retryable = True


class AuthExpiredError(FetchError):
    """The server rejected our credentials (401)."""

    kind = ErrorKind.AUTH_EXPIRED

    def __init__(self, message: str = "Authentication expired. Please log in again.") -> None:
        super().__init__(message, status_code=401)


class ClientError(FetchError):
    """Any other non-success response (4xx)."""

    kind = ErrorKind.CLIENT


class ParseError(FetchError):
    """The response body was not valid JSON."""

    kind = ErrorKind.PARSE


class RejectedError(FetchError):
    """The backend envelope reported ``success: false``."""

    kind = ErrorKind.REJECTED


class StorageUnavailableError(FetchError):
    """A key-value backing store could not be reached."""

    kind = ErrorKind.STORAGE


_ERRORS_BY_KIND: dict[ErrorKind, type[FetchError]] = {
    ErrorKind.TRANSPORT: TransportError,
    ErrorKind.SERVER: ServerError,
    ErrorKind.CLIENT: ClientError,
    ErrorKind.PARSE: ParseError,
    ErrorKind.REJECTED: RejectedError,
    ErrorKind.STORAGE: StorageUnavailableError,
}


def error_for_kind(
    kind: ErrorKind,
    message: str,
    *,
    status_code: int | None = None,
    details: list[str] | None = None,
) -> FetchError:
    """Build the exception that corresponds to an error kind."""
    if kind is ErrorKind.AUTH_EXPIRED:
        return AuthExpiredError(message)
    return _ERRORS_BY_KIND[kind](message, status_code=status_code, details=details)

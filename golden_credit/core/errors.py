"""Ledger error kinds.

Every failure the credit ledger reports belongs to exactly one
:class:`ErrorKind`. Validation kinds (duplicate client, invalid amount,
unknown client) are raised before any remote call is attempted.
"""

from enum import Enum


class ErrorKind(str, Enum):
    DUPLICATE_CLIENT = "duplicate_client"
    INVALID_AMOUNT = "invalid_amount"
    NOT_FOUND = "not_found"
    REMOTE_FAILURE = "remote_failure"
    PARSE_ERROR = "parse_error"


class LedgerError(Exception):
    """Base class for ledger failures."""

    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DuplicateClient(LedgerError):
    """Formatted client name or allocated id already in use."""
    kind = ErrorKind.DUPLICATE_CLIENT


class InvalidAmount(LedgerError):
    """Amount is non-finite, out of range, or exceeds the current debt."""
    kind = ErrorKind.INVALID_AMOUNT


class NotFound(LedgerError):
    kind = ErrorKind.NOT_FOUND


class RemoteFailure(LedgerError):
    """The persistence store failed or did not answer in time."""
    kind = ErrorKind.REMOTE_FAILURE


class ParseError(LedgerError):
    """A stored payload could not be decoded."""
    kind = ErrorKind.PARSE_ERROR


class ClientIdSpaceExhausted(Exception):
    """Raised when every id at the configured width is already taken."""

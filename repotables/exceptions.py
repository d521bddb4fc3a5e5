"""Exception types raised by repotables.

Convention:
- ``NotConnectedError`` and ``ClosedError`` are programming/lifecycle errors
  raised synchronously by table operations.
- ``RemoteError`` and its subclasses wrap failures reported by a remote store
  adapter. They carry the HTTP status code when one is available.
- ``InvalidConfigurationError`` is also a ``ValueError`` so callers validating
  user input can catch either.
"""

from __future__ import annotations


class RepoTablesError(Exception):
    """Base class for every error raised by repotables."""


class NotConnectedError(RepoTablesError):
    """Raised when a table is read or written before a successful connect."""


class ClosedError(RepoTablesError):
    """Raised when a mutation is attempted while the manager is closed."""


class InvalidConfigurationError(RepoTablesError, ValueError):
    """Raised for a malformed repository reference or table path."""


class InvalidContentError(RepoTablesError):
    """Raised when a table file does not hold a JSON object."""


class RemoteError(RepoTablesError):
    """Raised when the remote store rejects an operation."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RemoteNotFoundError(RemoteError):
    """The file or repository does not exist."""


class RemoteConflictError(RemoteError):
    """The revision sent with a write is stale."""


class RemoteUnauthorizedError(RemoteError):
    """The credentials were rejected."""


class RemoteServerError(RemoteError):
    """The host failed or could not be reached."""


class RemoteAlreadyExistsError(RemoteError):
    """A file being created already exists."""

"""Key-value tables stored as JSON files in a GitHub or GitLab repository."""

from repotables.config import Settings
from repotables.exceptions import (
    ClosedError,
    InvalidConfigurationError,
    InvalidContentError,
    NotConnectedError,
    RemoteAlreadyExistsError,
    RemoteConflictError,
    RemoteError,
    RemoteNotFoundError,
    RemoteServerError,
    RemoteUnauthorizedError,
    RepoTablesError,
)
from repotables.hooks import TableHooks
from repotables.location import HostKind, RepositoryRef, TableLocation, parse_repository_url
from repotables.manager import TableManager
from repotables.table import Table, Work

__all__ = [
    "ClosedError",
    "HostKind",
    "InvalidConfigurationError",
    "InvalidContentError",
    "NotConnectedError",
    "RemoteAlreadyExistsError",
    "RemoteConflictError",
    "RemoteError",
    "RemoteNotFoundError",
    "RemoteServerError",
    "RemoteUnauthorizedError",
    "RepoTablesError",
    "RepositoryRef",
    "Settings",
    "Table",
    "TableHooks",
    "TableLocation",
    "TableManager",
    "Work",
    "parse_repository_url",
]

"""Host registry for remote table storage."""

from __future__ import annotations

from typing import TYPE_CHECKING

from repotables.exceptions import InvalidConfigurationError
from repotables.location import HostKind
from repotables.remote.github import GitHubStore
from repotables.remote.gitlab import GitLabStore

if TYPE_CHECKING:
    from repotables.config import Settings
    from repotables.location import RepositoryRef
    from repotables.remote.base import RemoteStore

STORES: dict[HostKind, type[GitHubStore] | type[GitLabStore]] = {
    HostKind.GITHUB: GitHubStore,
    HostKind.GITLAB: GitLabStore,
}


def create_store(settings: Settings, repository: RepositoryRef) -> RemoteStore:
    """Create the remote store adapter for the repository's host.

    Raises InvalidConfigurationError if the host is unknown.
    """
    store_cls = STORES.get(repository.host)
    if store_cls is None:
        msg = f"Unknown host: {repository.host!r}. Available: {list_hosts()}"
        raise InvalidConfigurationError(msg)

    return store_cls(
        settings.token,
        settings.username,
        commit_message=settings.commit_message,
        author_name=settings.author_name,
        author_email=settings.author_email,
        timeout=settings.request_timeout,
    )


def list_hosts() -> list[str]:
    """Return the list of supported host names."""
    return [str(host) for host in STORES]

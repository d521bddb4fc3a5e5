"""Remote storage adapters for table files."""

from repotables.remote.base import FetchResult, RemoteStore
from repotables.remote.github import GitHubStore
from repotables.remote.gitlab import GitLabStore
from repotables.remote.memory import MemoryStore
from repotables.remote.registry import create_store, list_hosts

__all__ = [
    "FetchResult",
    "GitHubStore",
    "GitLabStore",
    "MemoryStore",
    "RemoteStore",
    "create_store",
    "list_hosts",
]

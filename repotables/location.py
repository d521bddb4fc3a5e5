"""Repository references and table locations."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from urllib.parse import urlparse

from repotables.exceptions import InvalidConfigurationError

DEFAULT_BRANCH = "main"

_HOSTNAMES = {
    "github.com": "github",
    "www.github.com": "github",
    "gitlab.com": "gitlab",
    "www.gitlab.com": "gitlab",
}
_FILE_VIEWS = frozenset({"blob", "tree"})


class HostKind(StrEnum):
    """Supported repository hosts."""

    GITHUB = "github"
    GITLAB = "gitlab"


@dataclass(frozen=True)
class RepositoryRef:
    """One branch of one repository, optionally narrowed to a directory."""

    owner: str
    name: str
    branch: str = DEFAULT_BRANCH
    host: HostKind = HostKind.GITHUB
    root: str = ""

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"

    def locate(self, path: str) -> TableLocation:
        """Return the location of the table file at ``path`` under ``root``."""
        return TableLocation(repository=self, path=normalize_table_path(path))

    def __str__(self) -> str:
        root = f"/{self.root}" if self.root else ""
        return f"{self.host}:{self.slug}@{self.branch}{root}"


@dataclass(frozen=True)
class TableLocation:
    """A table file inside a repository."""

    repository: RepositoryRef
    path: str

    @property
    def full_path(self) -> str:
        """Path of the file relative to the repository root."""
        if self.repository.root:
            return f"{self.repository.root}/{self.path}"
        return self.path

    def __str__(self) -> str:
        return f"{self.repository.host}:{self.repository.slug}@{self.repository.branch}/{self.full_path}"


def normalize_table_path(path: str) -> str:
    """Validate a table path relative to the repository root.

    A leading ``./`` is dropped. Absolute paths and ``.``/``..`` segments are
    rejected.
    """
    candidate = path.strip()
    while candidate.startswith("./"):
        candidate = candidate[2:]
    if not candidate:
        msg = "Table path must not be empty"
        raise InvalidConfigurationError(msg)
    if candidate.startswith("/"):
        msg = f"Table path must be relative: {path!r}"
        raise InvalidConfigurationError(msg)
    segments = candidate.split("/")
    if any(segment in ("", ".", "..") for segment in segments):
        msg = f"Invalid table path: {path!r}"
        raise InvalidConfigurationError(msg)
    return candidate


def parse_repository_url(url: str) -> RepositoryRef:
    """Parse a repository web URL into a ``RepositoryRef``.

    Accepted forms::

        https://github.com/<owner>/<repo>[/blob/<branch>[/<dir>...]]
        https://gitlab.com/<group>[/<subgroup>...]/<repo>[/-/blob/<branch>[/<dir>...]]

    ``tree`` is accepted in place of ``blob`` and a ``.git`` suffix on the
    repository name is dropped. The branch defaults to ``main``.
    """
    parsed = urlparse(url.strip())
    if parsed.scheme.lower() not in ("http", "https"):
        msg = f"Repository URL must use http(s): {url!r}"
        raise InvalidConfigurationError(msg)
    host = _HOSTNAMES.get((parsed.hostname or "").lower())
    if host is None:
        msg = f"Unsupported repository host in {url!r}. Available: github.com, gitlab.com"
        raise InvalidConfigurationError(msg)

    parts = [part for part in parsed.path.split("/") if part]
    if host == HostKind.GITHUB:
        return _parse_github(url, parts)
    return _parse_gitlab(url, parts)


def _parse_github(url: str, parts: list[str]) -> RepositoryRef:
    if len(parts) < 2:
        msg = f"Repository URL is missing owner or name: {url!r}"
        raise InvalidConfigurationError(msg)
    owner, name, rest = parts[0], _strip_git_suffix(parts[1]), parts[2:]
    branch, root = _parse_file_view(url, rest)
    return RepositoryRef(owner=owner, name=name, branch=branch, host=HostKind.GITHUB, root=root)


def _parse_gitlab(url: str, parts: list[str]) -> RepositoryRef:
    if "-" in parts:
        marker = parts.index("-")
        project, rest = parts[:marker], parts[marker + 1 :]
    else:
        project, rest = parts, []
    if len(project) < 2:
        msg = f"Repository URL is missing group or name: {url!r}"
        raise InvalidConfigurationError(msg)
    owner = "/".join(project[:-1])
    name = _strip_git_suffix(project[-1])
    branch, root = _parse_file_view(url, rest)
    return RepositoryRef(owner=owner, name=name, branch=branch, host=HostKind.GITLAB, root=root)


def _parse_file_view(url: str, rest: list[str]) -> tuple[str, str]:
    """Split ``blob/<branch>/<dir>...`` into branch and root directory."""
    if not rest:
        return DEFAULT_BRANCH, ""
    if rest[0] not in _FILE_VIEWS or len(rest) < 2:
        msg = f"Unrecognized repository URL path: {url!r}"
        raise InvalidConfigurationError(msg)
    return rest[1], "/".join(rest[2:])


def _strip_git_suffix(name: str) -> str:
    return name[: -len(".git")] if name.endswith(".git") else name

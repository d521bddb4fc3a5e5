"""Configuration for a table manager, loadable from environment variables."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from repotables.location import parse_repository_url

if TYPE_CHECKING:
    from repotables.location import RepositoryRef


class Settings(BaseSettings):
    """repotables settings.

    Values may be passed directly or read from ``REPOTABLES_*`` environment
    variables (and an optional ``.env`` file).
    """

    model_config = SettingsConfigDict(
        env_prefix="REPOTABLES_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Repository
    repository_url: str = ""
    token: str = ""
    username: str | None = None

    # Tables
    db_filename: str | None = "db.json"

    # Commit policy
    min_queue_size: int = Field(default=1, ge=1)
    flush_interval_ms: int = Field(default=30_000, ge=0)
    # Delay before a failed scheduled flush is tried again.
    retry_interval_ms: int = Field(default=60_000, gt=0)

    # Remote
    request_timeout: float = Field(default=15.0, gt=0)
    commit_message: str = "repotables: update table"
    author_name: str = "repotables"
    author_email: str = "repotables@localhost"

    @property
    def flush_interval(self) -> float:
        """Flush interval in seconds."""
        return self.flush_interval_ms / 1000

    @property
    def retry_interval(self) -> float:
        """Retry delay after a failed scheduled flush, in seconds."""
        return self.retry_interval_ms / 1000

    def repository(self) -> RepositoryRef:
        """Parse ``repository_url``.

        Raises:
            InvalidConfigurationError: If the URL is empty or malformed.
        """
        return parse_repository_url(self.repository_url)

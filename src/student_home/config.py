"""Application configuration using pydantic-settings."""

from pathlib import Path
from typing import Literal, NamedTuple

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from student_home.errors import ConfigurationError

SQLITE_URL_PREFIX = "sqlite:///"


class StoreCredentials(NamedTuple):
    """Connection details for the property store."""

    url: str
    key: str


class Settings(BaseSettings):
    """Settings for the batch jobs, built once at process start.

    Components never read the environment themselves; ``main`` constructs this
    object and passes the relevant values into each constructor.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="STUDENT_HOME_",
        extra="ignore",
    )

    # Store connection (no defaults shipped)
    database_url: str = Field(
        default="",
        description="Supabase project URL, or sqlite:///path for a local store",
    )
    service_key: SecretStr = Field(
        default=SecretStr(""),
        description="Elevated credential for administrative batch jobs",
    )
    anon_key: SecretStr = Field(
        default=SecretStr(""),
        description="Anonymous credential for read-mostly diagnostic queries",
    )

    # Crawl pacing
    fetcher: Literal["http", "browser"] = Field(
        default="http",
        description="Page fetcher: plain HTTP with browser impersonation, or headless browser",
    )
    request_delay_seconds: float = Field(default=2.0, ge=0)
    page_timeout_seconds: float = Field(default=30.0, gt=0)
    max_pages: int | None = Field(default=None, ge=1)

    # Image liveness probing
    liveness_timeout_seconds: float = Field(default=5.0, ge=2.0, le=5.0)
    liveness_batch_size: int = Field(default=10, ge=1, le=50)
    liveness_batch_delay_seconds: float = Field(default=0.5, ge=0)
    image_probe_limit: int = Field(
        default=3,
        ge=1,
        description="Leading images per listing that must be probed during import",
    )

    # Store batching
    delete_batch_size: int = Field(default=50, ge=1, le=500)

    # Discovery
    seed_file: str = Field(default="lines.json")
    seed_base_url: str = Field(default="https://www.student-accommodation.com")
    discovery_index_url: str = Field(
        default="https://www.rightmove.co.uk/student-accommodation/list-of-uk-universities.html",
    )
    provider: str = Field(default="rightmove")

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured store is a local SQLite file."""
        return self.database_url.startswith(SQLITE_URL_PREFIX)

    @property
    def sqlite_path(self) -> str:
        """Filesystem path (or ``:memory:``) of the SQLite store."""
        if not self.is_sqlite:
            raise ConfigurationError("database_url is not a sqlite:/// URL")
        return self.database_url[len(SQLITE_URL_PREFIX) :]

    @property
    def seed_path(self) -> Path:
        return Path(self.seed_file)

    def store_credentials(self, *, elevated: bool) -> StoreCredentials:
        """Return the store URL and the key a job needs.

        Args:
            elevated: True for administrative jobs (import, cleanup) that need
                the service credential. Read-only jobs accept the anonymous key
                and fall back to the service key.

        Raises:
            ConfigurationError: If the URL or a usable key is missing.
        """
        if not self.database_url:
            raise ConfigurationError("STUDENT_HOME_DATABASE_URL is not set")
        if self.is_sqlite:
            if not self.sqlite_path:
                raise ConfigurationError("sqlite database_url has no path")
            return StoreCredentials(self.database_url, "")
        if not self.database_url.startswith("https://"):
            raise ConfigurationError(
                f"database_url must be https:// or {SQLITE_URL_PREFIX}, got {self.database_url!r}"
            )

        service = self.service_key.get_secret_value()
        if elevated:
            if not service:
                raise ConfigurationError("STUDENT_HOME_SERVICE_KEY is required for this job")
            return StoreCredentials(self.database_url, service)

        key = self.anon_key.get_secret_value() or service
        if not key:
            raise ConfigurationError(
                "Either STUDENT_HOME_ANON_KEY or STUDENT_HOME_SERVICE_KEY must be set"
            )
        return StoreCredentials(self.database_url, key)

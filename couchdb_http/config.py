"""Client configuration loaded from environment variables.

``Settings`` is the typed, environment-backed source used by scripts and the
MCP server; ``ClientConfig`` is the immutable value a constructed client keeps.
"""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

AUTH_BASIC = "basic"
AUTH_COOKIE = "cookie"

AuthMode = Literal["basic", "cookie"]


class Settings(BaseSettings):
    """Typed environment-backed CouchDB connection settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    couchdb_host: str = Field(default="localhost", alias="COUCHDB_HOST")
    couchdb_port: int = Field(default=5984, alias="COUCHDB_PORT")
    couchdb_user: str = Field(default="admin", alias="COUCHDB_USER")
    couchdb_password: str = Field(default="password", alias="COUCHDB_PASSWORD")
    couchdb_auth: AuthMode = Field(default=AUTH_BASIC, alias="COUCHDB_AUTH")
    couchdb_timeout_seconds: float = Field(default=30.0, alias="COUCHDB_TIMEOUT_SECONDS")


class ClientConfig(BaseModel):
    """Transport configuration fixed for the lifetime of a client."""

    model_config = ConfigDict(frozen=True)

    base_url: str
    headers: tuple[tuple[str, str], ...] = ()

    def header_map(self) -> dict[str, str]:
        return dict(self.headers)


def merge_headers(defaults: dict[str, str], overrides: dict[str, str] | None) -> dict[str, str]:
    """Merge header maps; an override replaces a default with the same name.

    Header names compare case-insensitively, the override's spelling wins.
    """

    merged = dict(defaults)
    for name, value in (overrides or {}).items():
        for existing in [key for key in merged if key.lower() == name.lower()]:
            del merged[existing]
        merged[name] = str(value)
    return merged


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance for the current process."""

    return Settings()

"""Deploy configuration from command-line flags and NETLIFY_* environment variables."""

from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from netlifydeploy.errors import ConfigError

DEFAULT_DEPLOY_DIR = "./public"
DEFAULT_QUEUE_SIZE = 5


class Settings(BaseSettings):
    """
    Deploy settings. Each field reads NETLIFY_<FIELD> from the environment;
    values passed to the constructor (command-line flags) take precedence.
    """

    model_config = SettingsConfigDict(env_prefix="NETLIFY_", extra="ignore")

    # NETLIFY_DIRECTORY
    directory: str = DEFAULT_DEPLOY_DIR
    # NETLIFY_AUTH_TOKEN
    auth_token: str = ""
    # NETLIFY_SITE
    site: str = ""
    # NETLIFY_ALIAS: branch/alias label on the deploy
    alias: str = ""
    # NETLIFY_TITLE
    title: str = ""
    # NETLIFY_QUEUE_SIZE: parallel upload workers
    queue_size: int = DEFAULT_QUEUE_SIZE
    # NETLIFY_DRAFT
    draft: bool = True
    # NETLIFY_API_URL (empty = public API, see network.get_base_url)
    api_url: str = ""

    @field_validator("queue_size")
    @classmethod
    def _queue_size_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    @field_validator("directory")
    @classmethod
    def _directory_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @property
    def directory_path(self) -> Path:
        return Path(self.directory).expanduser()


def load_settings(**overrides: Any) -> Settings:
    """
    Build Settings from the environment, with non-None overrides (CLI flags) on top.
    Raises ConfigError on invalid values.
    """
    given = {k: v for k, v in overrides.items() if v is not None}
    try:
        return Settings(**given)
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(p) for p in first.get("loc", ())) or "settings"
        raise ConfigError(field, first.get("msg", str(e))) from e


def validate_settings(settings: Settings, token: Optional[str] = None) -> None:
    """
    Check what must hold before any network call: a token, a site name, and an
    existing directory (an empty directory is fine and deploys no files).
    """
    if not (token if token is not None else settings.auth_token):
        raise ConfigError("auth_token", "an API token is required (--token or NETLIFY_AUTH_TOKEN)")
    if not settings.site.strip():
        raise ConfigError("site", "a site name is required (--siteName or NETLIFY_SITE)")
    path = settings.directory_path
    if not path.exists():
        raise ConfigError("directory", f"{path} does not exist")
    if not path.is_dir():
        raise ConfigError("directory", f"{path} is not a directory")

"""Runtime configuration.

Settings are resolved once from the environment (and an optional ``.env``
file) by the CLI, then passed down explicitly to the history store, the
catalog client and the language model provider.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from dsg.errors import ConfigError

DEFAULT_DATAHUB_URL = "https://api.datahub.io"
DEFAULT_API_BASE = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o"
DEFAULT_AZURE_API_VERSION = "2023-05-15"
DEFAULT_TIMEOUT = 30.0

_TRUTHY = {"1", "true", "yes", "on"}


def default_data_dir(env: Optional[Mapping[str, str]] = None) -> Path:
    """Per-user data directory: $XDG_DATA_HOME/dsg or ~/.local/share/dsg."""
    env = os.environ if env is None else env
    xdg = env.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / "dsg"
    return Path.home() / ".local" / "share" / "dsg"


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUTHY


def _timeout(value: Optional[str]) -> float:
    if not value:
        return DEFAULT_TIMEOUT
    try:
        timeout = float(value)
    except ValueError as e:
        raise ConfigError(f"invalid DATAHUB_TIMEOUT {value!r}: expected seconds") from e
    if timeout <= 0:
        raise ConfigError(f"invalid DATAHUB_TIMEOUT {value!r}: must be positive")
    return timeout


class Settings(BaseModel):
    """Configuration for a single CLI invocation."""

    datahub_url: str = DEFAULT_DATAHUB_URL
    datahub_token: Optional[str] = None
    datahub_timeout: float = DEFAULT_TIMEOUT

    llm_provider: str = "openai"
    api_key: Optional[str] = None
    api_base: str = DEFAULT_API_BASE
    model: str = DEFAULT_MODEL
    use_azure: bool = False
    azure_deployment: Optional[str] = None
    azure_api_version: str = DEFAULT_AZURE_API_VERSION

    data_dir: Path = Field(default_factory=default_data_dir)
    debug: bool = False

    @classmethod
    def from_env(
        cls, env: Optional[Mapping[str, str]] = None, dotenv: bool = True
    ) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            env: Mapping to read from. Defaults to os.environ.
            dotenv: Load a .env file into os.environ first (ignored when env is given).
        """
        if env is None:
            if dotenv:
                load_dotenv()
            env = os.environ

        values = {
            "datahub_url": env.get("DATAHUB_GMS_URL") or DEFAULT_DATAHUB_URL,
            "datahub_token": env.get("DATAHUB_GMS_TOKEN") or None,
            "datahub_timeout": _timeout(env.get("DATAHUB_TIMEOUT")),
            "llm_provider": (env.get("DSG_LLM_PROVIDER") or "openai").lower(),
            "api_key": env.get("OPENAI_API_KEY") or None,
            "api_base": env.get("OPENAI_API_BASE") or DEFAULT_API_BASE,
            "model": env.get("OPENAI_MODEL") or DEFAULT_MODEL,
            "use_azure": _flag(env.get("OPENAI_USE_AZURE")),
            "azure_deployment": env.get("AZURE_OPENAI_DEPLOYMENT") or None,
            "azure_api_version": env.get("AZURE_OPENAI_API_VERSION")
            or DEFAULT_AZURE_API_VERSION,
            "data_dir": Path(env["DSG_DATA_DIR"]).expanduser()
            if env.get("DSG_DATA_DIR")
            else default_data_dir(env),
            "debug": _flag(env.get("DSG_DEBUG")),
        }
        return cls(**values)

    def override(self, **changes) -> "Settings":
        """Return a copy with every non-None keyword applied."""
        update = {k: v for k, v in changes.items() if v is not None}
        return self.model_copy(update=update)

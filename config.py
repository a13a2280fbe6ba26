# config.py
import logging
import os
from typing import Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

from errors import ConfigError

DEFAULT_TIMEOUT = 10.0
DEFAULT_VIEW_URL = "https://v.flomoapp.com"
USER_AGENT = "mcp-server-flomo/1.0"

_log = logging.getLogger("flomo.config")


class FlomoConfig(BaseModel):
    api_url: str
    timeout: float = DEFAULT_TIMEOUT
    view_url: str = DEFAULT_VIEW_URL
    user_agent: str = USER_AGENT

    @field_validator("api_url")
    @classmethod
    def _require_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("FLOMO_API_URL must not be empty")
        return v

    @field_validator("timeout")
    @classmethod
    def _positive_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v

    @field_validator("view_url")
    @classmethod
    def _strip_slash(cls, v: str) -> str:
        return v.rstrip("/")


def load_config(env_file: Optional[str] = None) -> FlomoConfig:
    """
    Build the configuration from the process environment.

    An optional .env file is loaded first; variables already set in the
    environment win over the file.
    """
    path = env_file or find_dotenv(usecwd=True)
    if path and load_dotenv(path):
        _log.info("Loaded .env file")
    else:
        _log.warning("No .env file loaded, using environment variables directly")

    api_url = os.getenv("FLOMO_API_URL", "")
    if not api_url.strip():
        raise ConfigError("FLOMO_API_URL environment variable is not set")

    try:
        return FlomoConfig(
            api_url=api_url,
            timeout=os.getenv("FLOMO_TIMEOUT", DEFAULT_TIMEOUT),
            view_url=os.getenv("FLOMO_VIEW_URL", DEFAULT_VIEW_URL),
        )
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e


def setup_logging(level: Optional[str] = None) -> None:
    # stderr only: stdout belongs to the CLI output and the MCP stdio stream
    level = level or os.getenv("LOG_LEVEL", "INFO")
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

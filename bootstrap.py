# bootstrap.py
import logging
from typing import Optional

from config import load_config, setup_logging
from flomo_client import FlomoClient


def init_client(component: str, env_file: Optional[str] = None) -> FlomoClient:
    """
    Shared start-up for every front-end: logging, configuration, client.

    Raises ConfigError when FLOMO_API_URL is missing; callers treat that as
    fatal.
    """
    setup_logging()
    log = logging.getLogger(f"flomo.{component}")
    config = load_config(env_file)
    log.info("Using Flomo API URL: %s", config.api_url)
    return FlomoClient(config, logger=logging.getLogger("flomo.client"))

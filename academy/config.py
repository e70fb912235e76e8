"""Client configuration management."""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from .schemas import AcademyConfig
from .utils import load_json

logger = logging.getLogger('academy.config')

CONFIG_ENV_VAR = 'ACADEMY_CONFIG'
API_URL_ENV_VAR = 'ACADEMY_API_URL'
DEFAULT_CONFIG_PATH = Path('data') / 'academy_config.json'


@lru_cache(maxsize=1)
def get_config() -> AcademyConfig:
    """
    Load client configuration.

    The file named by $ACADEMY_CONFIG (default data/academy_config.json) is
    validated against AcademyConfig. A missing file means all defaults.
    $ACADEMY_API_URL, when set, overrides api_base_url.

    Configuration is cached after first load.

    Returns:
        AcademyConfig object with validated settings

    Raises:
        ValueError: If the config file has invalid structure

    Example:
        from academy.config import get_config
        config = get_config()
        print(f"Backend: {config.api_base_url}")
    """
    config_path = Path(os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH))
    try:
        config = load_json(config_path, schema=AcademyConfig)
    except FileNotFoundError:
        logger.debug(f'No config file at {config_path}, using defaults')
        config = AcademyConfig()

    api_url = os.environ.get(API_URL_ENV_VAR)
    if api_url:
        config = config.model_copy(update={'api_base_url': api_url.rstrip('/')})

    return config


def get_api_base_url() -> str:
    """Get the backend base URL from config."""
    return get_config().api_base_url


def get_request_timeout() -> Optional[float]:
    """Get the remote request timeout in seconds (None means no timeout)."""
    return get_config().request_timeout


def get_store_path() -> Path:
    """Get the local fallback store file path from config."""
    return Path(get_config().store_path)


def get_coach_id() -> str:
    """Get the coach id stamped on locally created sessions."""
    return get_config().coach_id


def clear_config_cache() -> None:
    """
    Clear the configuration cache.

    Use this if the config file or environment changes during runtime
    and you need to reload it.
    """
    get_config.cache_clear()

"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, and a dedicated
configuration file (~/.motionkit/config.yaml). Keys are dotted
(``retry.max_retries``); the matching environment variable is the upper-cased
key with dots replaced by underscores (``RETRY_MAX_RETRIES``).
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from motionkit.domain.models.common import OversizedPagePolicy
from motionkit.infrastructure.pagination.paginator import PaginationLimits
from motionkit.infrastructure.resilience.api_retry import RetryPolicy

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".motionkit"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"

# --- Global Configuration Store ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}
_loaded = False


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Turns nested YAML mappings into dotted keys ({'retry': {'max_retries': 5}} -> 'retry.max_retries')."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}{key}"
        if isinstance(value, dict):
            flat.update(_flatten(value, f"{dotted}."))
        else:
            flat[dotted] = value
    return flat


def load_configuration(config_file: Path = DEFAULT_CONFIG_FILE, env_file: Optional[Path] = None, force: bool = False) -> None:
    """Loads configuration from environment, .env file, and YAML file.

    Priority order (highest to lowest):
    1. Test overrides (set_config_for_testing)
    2. Environment Variables
    3. .env file
    4. YAML configuration file
    5. Default values passed to get_config

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
        force: Reload even if configuration was already loaded.
    """
    global _config, _loaded
    if _loaded and not force:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. Load from YAML file (Lowest priority)
    if config_file.exists():
        try:
            with open(config_file, "r") as f:
                yaml_config = yaml.safe_load(f)
            if isinstance(yaml_config, dict):
                _config.update(_flatten(yaml_config))
                logger.info(f"Loaded configuration from YAML: {config_file}")
            elif yaml_config is not None:
                logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load or parse YAML config {config_file}: {e}")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 2. Load from .env file (Medium priority)
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        # override=False: real environment variables take precedence
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
        else:
            logger.debug(f"No variables loaded from {dotenv_path}")
    else:
        logger.debug(".env file not found at or above current directory.")

    # 3. Environment Variables (Highest priority) are handled in get_config

    _loaded = True
    logger.debug("Configuration loading process completed.")


def _coerce_env_value(value: str) -> Any:
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        if "." in value:
            return float(value)
        return int(value)
    except (ValueError, TypeError):
        return value


def env_var_name(key: str) -> str:
    return key.upper().replace(".", "_")


def get_config(key: str, default: Any = None) -> Any:
    """Get a configuration value by key.

    Args:
        key: The configuration key (e.g. 'retry.max_retries').
        default: Default value if the key is not found.

    Returns:
        The configuration value.
    """
    if key in _test_config:
        return _test_config[key]

    env_key = env_var_name(key)
    if env_key in os.environ:
        return _coerce_env_value(os.environ[env_key])

    if key in _config:
        return _config[key]

    logger.debug(f"Config key '{key}' not found in environment or loaded config. Returning default: {default}")
    return default


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


# --- Convenience Functions ---

def get_motion_api_key() -> Optional[str]:
    """Gets the Motion API key (ENV MOTION_API_KEY first, then yaml motion.api_key)."""
    key = get_config("MOTION_API_KEY") or get_config("motion.api_key")
    return str(key) if key is not None else None


def get_motion_base_url() -> Optional[str]:
    url = get_config("motion.base_url")
    return str(url) if url else None


@dataclass(frozen=True)
class ResilienceSettings:
    """Tunables for the retry, cache and pagination layers."""
    retry: RetryPolicy
    pagination: PaginationLimits
    cache_max_size: int
    workspaces_ttl_seconds: float
    users_ttl_seconds: float
    projects_ttl_seconds: float


def load_resilience_settings() -> ResilienceSettings:
    """Builds ResilienceSettings from configuration.

    Raises:
        ValueError: If a configured value is out of range or not a number.
    """
    max_page_size = int(get_config("pagination.max_page_size", 200))
    policy_name = str(get_config("pagination.oversized_page_policy", OversizedPagePolicy.TRUNCATE.value)).lower()

    settings = ResilienceSettings(
        retry=RetryPolicy(
            max_retries=int(get_config("retry.max_retries", 3)),
            initial_backoff_ms=float(get_config("retry.initial_backoff_ms", 1000)),
            backoff_multiplier=float(get_config("retry.backoff_multiplier", 2.0)),
            max_backoff_ms=float(get_config("retry.max_backoff_ms", 10000)),
            jitter_fraction=float(get_config("retry.jitter_fraction", 0.1)),
            max_retry_after_ms=float(get_config("retry.max_retry_after_ms", 60000)),
        ),
        pagination=PaginationLimits(
            max_page_size=max_page_size,
            absolute_max_pages=int(get_config("pagination.absolute_max_pages", 100)),
            default_max_pages=int(get_config("pagination.max_pages", 50)),
            default_max_items=int(get_config("pagination.max_items", max_page_size * 10)),
            oversized_page_policy=OversizedPagePolicy(policy_name),
        ),
        cache_max_size=int(get_config("cache.max_size", 1000)),
        workspaces_ttl_seconds=float(get_config("cache.ttl.workspaces", 600)),
        users_ttl_seconds=float(get_config("cache.ttl.users", 600)),
        projects_ttl_seconds=float(get_config("cache.ttl.projects", 300)),
    )
    logger.debug(f"Resilience settings loaded: {settings}")
    return settings


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """Set configuration values for testing purposes.

    These values override any other source until clear_test_config() is called.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration: {config_dict}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")

"""
Configuration management and loading.

Handles application settings from a YAML file or Function App settings.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml


DEFAULT_DEPLOYMENT = "gpt-4o-mini"
DEFAULT_API_VERSION = "2024-06-01"
DEFAULT_TIMEOUT_SECONDS = 20.0

CONFIG_PATH_ENV = "DAD_JOKE_CONFIG"


@dataclass(frozen=True)
class AppConfig:
    """Explicit configuration passed to the service at construction.

    Every connection setting is optional: a missing completion endpoint
    means fallback jokes only, a missing store connection means no usage
    tracking.
    """
    completion_endpoint: Optional[str] = None
    completion_api_key: Optional[str] = None
    store_connection: Optional[str] = None
    completion_deployment: str = DEFAULT_DEPLOYMENT
    completion_api_version: str = DEFAULT_API_VERSION
    completion_timeout: float = DEFAULT_TIMEOUT_SECONDS

    def __post_init__(self):
        """Validate deployment and timeout values."""
        if not self.completion_deployment or not self.completion_deployment.strip():
            raise ValueError("completion_deployment cannot be empty")
        if not self.completion_api_version or not self.completion_api_version.strip():
            raise ValueError("completion_api_version cannot be empty")
        if self.completion_timeout <= 0:
            raise ValueError("completion_timeout must be > 0")

    @property
    def completion_configured(self) -> bool:
        return bool(self.completion_endpoint and self.completion_endpoint.strip())

    @property
    def store_configured(self) -> bool:
        return bool(self.store_connection and self.store_connection.strip())


def load_app_config(path: str) -> AppConfig:
    """Load and validate application configuration from YAML file.

    Unknown keys are rejected so a typo never silently disables the
    completion endpoint or the usage store.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a dictionary")

    allowed_top_keys = {'completion', 'storage'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    completion = _section(raw_config, 'completion',
                          {'endpoint', 'api_key', 'deployment', 'api_version', 'timeout_seconds'})
    storage = _section(raw_config, 'storage', {'connection'})

    timeout = completion.get('timeout_seconds', DEFAULT_TIMEOUT_SECONDS)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
        raise ValueError("'timeout_seconds' in completion must be a number")

    return AppConfig(
        completion_endpoint=_optional_str(completion, 'endpoint', 'completion'),
        completion_api_key=_optional_str(completion, 'api_key', 'completion'),
        store_connection=_optional_str(storage, 'connection', 'storage'),
        completion_deployment=_optional_str(completion, 'deployment', 'completion') or DEFAULT_DEPLOYMENT,
        completion_api_version=_optional_str(completion, 'api_version', 'completion') or DEFAULT_API_VERSION,
        completion_timeout=float(timeout),
    )


def config_from_env(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Build configuration from Function App settings.

    The joke store falls back to the Functions host storage account
    (``AzureWebJobsStorage``) when no dedicated connection is set.
    """
    env = os.environ if environ is None else environ

    timeout_raw = env.get("AZURE_OPENAI_TIMEOUT")
    try:
        timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT_SECONDS
    except ValueError:
        raise ValueError(f"AZURE_OPENAI_TIMEOUT must be a number, got {timeout_raw!r}")

    return AppConfig(
        completion_endpoint=env.get("AZURE_OPENAI_ENDPOINT") or None,
        completion_api_key=env.get("AZURE_OPENAI_API_KEY") or env.get("AZURE_OPENAI_KEY") or None,
        store_connection=env.get("JOKE_STORAGE_CONNECTION") or env.get("AzureWebJobsStorage") or None,
        completion_deployment=env.get("AZURE_OPENAI_DEPLOYMENT") or DEFAULT_DEPLOYMENT,
        completion_api_version=env.get("AZURE_OPENAI_API_VERSION") or DEFAULT_API_VERSION,
        completion_timeout=timeout,
    )


def load_config(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Load from the YAML file named by DAD_JOKE_CONFIG, else from settings."""
    env = os.environ if environ is None else environ
    path = env.get(CONFIG_PATH_ENV)
    if path:
        return load_app_config(path)
    return config_from_env(env)


def _section(raw_config: Dict, name: str, allowed_keys: set) -> Dict:
    """Return a validated sub-section, empty when absent."""
    data = raw_config.get(name) or {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {name}: {unknown_keys}")
    return data


def _optional_str(data: Dict, key: str, path: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' in {path} must be a string")
    return value.strip() or None

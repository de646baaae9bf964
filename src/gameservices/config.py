"""Client configuration from YAML and environment variables.

Loads an optional YAML file (top-level ``gameservices:`` section) and fills
anything missing from the environment:

    GAMESERVICES_ENDPOINT, GAMESERVICES_SUBSCRIPTION_ID,
    GAMESERVICES_CERTIFICATE_PATH, GAMESERVICES_ACCESS_TOKEN,
    GAMESERVICES_MAX_TRIES, GAMESERVICES_RETRY_DELAY_MS,
    GAMESERVICES_REQUEST_TIMEOUT_SECONDS,
    AZURE_TENANT_ID, AZURE_CLIENT_ID, AZURE_CLIENT_SECRET

Environment variables ARE supported using ${VAR_NAME} syntax in YAML files.
"""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from core.resilience import RetryConfig

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://management.core.windows.net/"


def load_yaml(path: Path) -> Dict[str, Any]:
    """Load YAML file and return dict."""
    if not path.exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def _expand_env_vars(data: Any) -> Any:
    """Recursively expand ${VAR_NAME} and ${VAR_NAME:-default} environment variables in config data."""
    if isinstance(data, dict):
        return {key: _expand_env_vars(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        # Support both ${VAR} and ${VAR:-default} syntax
        pattern = r"\$\{([^}:]+)(?::-(([^}]*))?)?\}"

        def replacer(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else match.group(0)
            return os.getenv(var_name, default_value)

        return re.sub(pattern, replacer, data)
    else:
        return data


def _as_bool(value: Any) -> bool:
    # bool('false') would be True
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class GameServicesConfig:
    """Settings for one client instance."""

    subscription_id: str = ""
    endpoint: str = DEFAULT_ENDPOINT

    # Credentials (first one configured wins)
    certificate_path: Optional[str] = None
    certificate_key_path: Optional[str] = None
    certificate_password: Optional[str] = None
    access_token: Optional[str] = None
    tenant_id: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    use_azure_identity: bool = False

    # Transport
    max_tries: int = 3
    retry_delay_ms: int = 600
    request_timeout_seconds: float = 100.0
    max_connections: int = 20

    # Long-running operations
    poll_interval_seconds: float = 5.0
    poll_timeout_seconds: float = 300.0
    request_id_header: str = "x-ms-request-id"

    # Whole-operation deadline applied by the facade; None disables it
    operation_timeout_seconds: Optional[float] = None

    def __post_init__(self):
        """Ensure proper types from YAML/env vars."""
        self.max_tries = int(self.max_tries)
        self.retry_delay_ms = int(self.retry_delay_ms)
        self.request_timeout_seconds = float(self.request_timeout_seconds)
        self.max_connections = int(self.max_connections)
        self.poll_interval_seconds = float(self.poll_interval_seconds)
        self.poll_timeout_seconds = float(self.poll_timeout_seconds)
        if self.operation_timeout_seconds is not None:
            self.operation_timeout_seconds = float(self.operation_timeout_seconds)
        self.use_azure_identity = _as_bool(self.use_azure_identity)

    @property
    def retry(self) -> RetryConfig:
        return RetryConfig(max_tries=self.max_tries, delay_ms=self.retry_delay_ms)

    @property
    def base_url(self) -> str:
        """Endpoint joined with the subscription id, without a trailing slash."""
        return f"{self.endpoint.rstrip('/')}/{self.subscription_id}"

    @property
    def client_timeout_seconds(self) -> float:
        """Whole-request budget covering every retry attempt and pause."""
        return (self.request_timeout_seconds + self.retry_delay_ms / 1000.0) * self.max_tries

    def validate(self) -> None:
        """Validate configuration for correctness and constraints."""
        if not self.subscription_id:
            raise ValueError("subscription_id is required")
        if not self.endpoint:
            raise ValueError("endpoint is required")
        if not self.endpoint.startswith(("https://", "http://")):
            raise ValueError(f"endpoint must be an http(s) URL, got {self.endpoint!r}")
        if self.max_tries < 1:
            raise ValueError(f"max_tries must be at least 1, got {self.max_tries}")
        if self.retry_delay_ms < 0:
            raise ValueError(f"retry_delay_ms must not be negative, got {self.retry_delay_ms}")
        if self.poll_interval_seconds < 0 or self.poll_timeout_seconds < 0:
            raise ValueError("poll interval and timeout must not be negative")
        if not self.request_id_header:
            raise ValueError("request_id_header is required")


_ENV_FIELDS = {
    "subscription_id": "GAMESERVICES_SUBSCRIPTION_ID",
    "endpoint": "GAMESERVICES_ENDPOINT",
    "certificate_path": "GAMESERVICES_CERTIFICATE_PATH",
    "certificate_key_path": "GAMESERVICES_CERTIFICATE_KEY_PATH",
    "certificate_password": "GAMESERVICES_CERTIFICATE_PASSWORD",
    "access_token": "GAMESERVICES_ACCESS_TOKEN",
    "use_azure_identity": "GAMESERVICES_USE_AZURE_IDENTITY",
    "max_tries": "GAMESERVICES_MAX_TRIES",
    "retry_delay_ms": "GAMESERVICES_RETRY_DELAY_MS",
    "request_timeout_seconds": "GAMESERVICES_REQUEST_TIMEOUT_SECONDS",
    "poll_interval_seconds": "GAMESERVICES_POLL_INTERVAL_SECONDS",
    "poll_timeout_seconds": "GAMESERVICES_POLL_TIMEOUT_SECONDS",
    "tenant_id": "AZURE_TENANT_ID",
    "client_id": "AZURE_CLIENT_ID",
    "client_secret": "AZURE_CLIENT_SECRET",
}


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> GameServicesConfig:
    """Load client configuration.

    Precedence: overrides, then the YAML file, then environment variables,
    then dataclass defaults.
    """
    section: Dict[str, Any] = {}
    if config_path is not None:
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        logger.info("Loading configuration from file: %s", config_path)
        yaml_data = _expand_env_vars(load_yaml(config_path))
        section = yaml_data.get("gameservices", yaml_data)

    values: Dict[str, Any] = {}
    for field_name, env_var in _ENV_FIELDS.items():
        env_value = os.getenv(env_var)
        if env_value:
            values[field_name] = env_value

    known = GameServicesConfig.__dataclass_fields__
    for key, value in section.items():
        if key not in known:
            logger.warning("Ignoring unknown configuration key: %s", key)
            continue
        if value is not None and value != "":
            values[key] = value

    if overrides:
        logger.debug("Applying overrides: %s", list(overrides.keys()))
        values.update({k: v for k, v in overrides.items() if k in known})

    config = GameServicesConfig(**values)
    config.validate()
    return config

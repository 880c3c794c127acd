"""Configuration management for the Hypixel API client."""

import os
from typing import Any

import yaml
from dotenv import load_dotenv

from .api.rate_limiting.models import ThrottleConfig

API_KEY_ENV = "HYPIXEL_API_KEY"

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.yaml")


class Configuration:
    """Manages configuration and environment variables for the Hypixel client."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables.

        Args:
            config_path: YAML file to load instead of the packaged defaults.
        """
        self.load_env()  # Load .env for the API key
        self._config_path = config_path or DEFAULT_CONFIG_PATH
        self._config = self._load_yaml_config(self._config_path)

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    @staticmethod
    def _load_yaml_config(config_path: str) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    @property
    def api_key(self) -> str:
        """Get the Hypixel API key.

        Returns:
            The API key as a string.

        Raises:
            ValueError: If the API key is not found in environment variables.
        """
        api_key = os.getenv(API_KEY_ENV)
        if not api_key:
            raise ValueError(
                f"API key '{API_KEY_ENV}' not found in environment variables"
            )
        return api_key

    def get_config_dict(self) -> dict[str, Any]:
        """Get the full configuration dictionary.

        Returns:
            The complete configuration dictionary.
        """
        return self._config

    def get_api_config(self) -> dict[str, Any]:
        """Get API endpoint configuration.

        Raises:
            ValueError: If base_url is missing or not an http(s) URL.
        """
        api_config = self._config.get("api", {})
        if "base_url" not in api_config:
            raise ValueError(
                "api.base_url must be explicitly configured in config.yaml"
            )

        base_url = api_config["base_url"]
        if not isinstance(base_url, str) or not base_url.startswith(("http://", "https://")):
            raise ValueError("api.base_url must be an http(s) URL")

        return api_config

    def get_throttle_config(self) -> ThrottleConfig:
        """Get admission control configuration.

        Returns:
            Validated ThrottleConfig.

        Raises:
            ValueError: If required throttle parameters are missing or invalid.
        """
        throttle_config = self._config.get("throttle", {})

        required_keys = [
            "requests_per_window", "window_seconds", "reset_margin",
            "max_queue_size", "queue_timeout", "poll_interval",
            "max_rate_limit_retries", "max_transport_retries",
            "retry_backoff", "max_retry_backoff",
        ]
        for key in required_keys:
            if key not in throttle_config:
                raise ValueError(
                    f"throttle.{key} must be explicitly configured in config.yaml"
                )

        requests_per_window = throttle_config["requests_per_window"]
        if not isinstance(requests_per_window, int) or isinstance(requests_per_window, bool):
            raise ValueError("throttle.requests_per_window must be an integer")
        if throttle_config["max_retry_backoff"] < throttle_config["retry_backoff"]:
            raise ValueError("throttle.max_retry_backoff must be >= retry_backoff")

        # ThrottleConfig validates ranges itself
        return ThrottleConfig(**{key: throttle_config[key] for key in required_keys})

    def get_http_client_config(self) -> dict[str, Any]:
        """Get HTTP client configuration.

        Returns:
            HTTP client configuration dictionary with validated values.

        Raises:
            ValueError: If required HTTP client parameters are missing or invalid.
        """
        http_config = self._config.get("http_client", {})

        for key in ("timeout", "connect_timeout"):
            if key not in http_config:
                raise ValueError(
                    f"http_client.{key} must be explicitly configured in config.yaml"
                )
            if http_config[key] <= 0:
                raise ValueError(f"http_client.{key} must be positive")

        if http_config["connect_timeout"] > http_config["timeout"]:
            raise ValueError("http_client.connect_timeout must be <= timeout")

        return http_config

    def get_rate_limit_headers(self) -> dict[str, str]:
        """Get the names of the rate-limit response headers.

        Raises:
            ValueError: If a header name is missing or empty.
        """
        headers_config = self._config.get("rate_limit_headers", {})

        names = {}
        for key in ("remaining", "reset", "limit", "retry_after"):
            name = headers_config.get(key)
            if not isinstance(name, str) or not name.strip():
                raise ValueError(
                    f"rate_limit_headers.{key} must be explicitly configured "
                    "in config.yaml"
                )
            names[key] = name.strip().lower()

        return names

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML.

        Returns:
            Logging configuration dictionary.
        """
        return self._config.get("logging", {})

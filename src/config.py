"""Configuration management for the AI chat client."""

import os
from typing import Any
from urllib.parse import urljoin

import yaml
from dotenv import load_dotenv

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.yaml")


class Configuration:
    """Manages configuration and environment variables for the chat client."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for endpoint URL and API key
        self._config_path = config_path or DEFAULT_CONFIG_PATH
        self._config = self._load_yaml_config()

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    def _load_yaml_config(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(self._config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    def get_ai_config(self) -> dict[str, Any]:
        """Get AI endpoint configuration from YAML.

        Returns:
            AI endpoint configuration dictionary.

        Raises:
            ValueError: If required endpoint parameters are missing.
        """
        ai_config = self._config.get("ai", {})

        required_keys = ["base_url", "endpoint_path"]
        for key in required_keys:
            if key not in ai_config:
                raise ValueError(
                    f"ai.{key} must be explicitly configured in config.yaml"
                )

        return ai_config

    @property
    def ai_proxy_url(self) -> str:
        """Get the chat endpoint URL.

        An explicit ``AI_PROXY_URL`` environment variable wins; otherwise the
        endpoint path is resolved against the configured base URL.

        Returns:
            The endpoint URL as a string.
        """
        ai_config = self.get_ai_config()
        return resolve_endpoint(
            os.getenv("AI_PROXY_URL"),
            ai_config["base_url"],
            ai_config["endpoint_path"],
        )

    @property
    def ai_api_key(self) -> str | None:
        """Get the optional API key sent as ``X-API-Key``.

        Returns:
            The API key, or None when it is not set.
        """
        api_key = (os.getenv("AI_API_KEY") or "").strip()
        return api_key or None

    def get_http_client_config(self) -> dict[str, Any]:
        """Get HTTP client configuration for the chat endpoint.

        Returns:
            HTTP client configuration dictionary with validated values.

        Raises:
            ValueError: If required HTTP client parameters are missing or invalid.
        """
        http_config = self._config.get("http_client", {})

        required_keys = ["request_timeout", "connect_timeout", "read_chunk_size"]
        for key in required_keys:
            if key not in http_config:
                raise ValueError(
                    f"http_client.{key} must be explicitly configured "
                    "in config.yaml"
                )

        request_timeout = http_config["request_timeout"]
        connect_timeout = http_config["connect_timeout"]
        chunk_size = http_config["read_chunk_size"]

        if request_timeout <= 0:
            raise ValueError("http_client.request_timeout must be positive")
        if connect_timeout <= 0:
            raise ValueError("http_client.connect_timeout must be positive")
        if connect_timeout > request_timeout:
            raise ValueError(
                "http_client.connect_timeout must be <= request_timeout"
            )
        if not isinstance(chunk_size, int) or chunk_size < 1:
            raise ValueError("http_client.read_chunk_size must be a positive integer")

        return http_config

    def get_chat_service_config(self) -> dict[str, Any]:
        """Get chat service configuration from YAML.

        Returns:
            Chat service configuration dictionary.
        """
        return self._config.get("chat", {}).get("service", {})

    def get_fallback_error_message(self) -> str:
        """Get the message shown when a request fails outright.

        Raises:
            ValueError: If fallback_error_message is not configured or blank.
        """
        service_config = self.get_chat_service_config()

        if "fallback_error_message" not in service_config:
            raise ValueError(
                "fallback_error_message must be explicitly configured in "
                "config.yaml under chat.service"
            )

        message = service_config["fallback_error_message"]
        if not isinstance(message, str) or not message.strip():
            raise ValueError("fallback_error_message must be a non-empty string")

        return message

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML.

        Returns:
            Logging configuration dictionary.
        """
        logging_config = self._config.get("logging", {})
        return {
            "level": logging_config.get("level", "INFO"),
            "renderer": logging_config.get("renderer", "console"),
        }


def resolve_endpoint(
    explicit_url: str | None,
    base_url: str,
    endpoint_path: str = "/api/ai",
) -> str:
    """Pick the chat endpoint URL.

    Args:
        explicit_url: Full URL override; used when non-blank.
        base_url: Base the endpoint path is resolved against.
        endpoint_path: Path of the chat endpoint on the base URL.

    Returns:
        The endpoint URL.
    """
    explicit = (explicit_url or "").strip()
    if explicit:
        return explicit
    return urljoin(base_url, endpoint_path)

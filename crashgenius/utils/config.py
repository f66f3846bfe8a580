"""Configuration management for the crash analysis core."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigurationError
from .logging import DEFAULT_FORMAT

load_dotenv()

logger = logging.getLogger(__name__)


DEFAULTS: Dict[str, Any] = {
    "default_provider": "google",
    "google": {
        "base_url": "https://generativelanguage.googleapis.com/v1beta",
        "model_id": "gemini-3-pro-preview",
        "api_key_env": "API_KEY",
    },
    "mistral": {
        "base_url": "https://api.mistral.ai/v1",
        "model_id": "pixtral-large-latest",
    },
    "http": {
        "timeout": 120,
        "max_retries": 0,
    },
    "logging": {
        "level": "INFO",
        "format": DEFAULT_FORMAT,
        "file": "",
    },
}


@dataclass
class GoogleConfig:
    """Google (Gemini) backend configuration."""
    base_url: str
    model_id: str
    api_key_env: str = "API_KEY"

    def resolve_api_key(self) -> Optional[str]:
        """
        Read the process-wide Google credential.

        Order of precedence:
        1. The variable named by api_key_env (API_KEY by default).
        2. GEMINI_API_KEY.
        """
        key = os.getenv(self.api_key_env) or os.getenv("GEMINI_API_KEY")
        if key and key.strip():
            return key.strip()
        return None


@dataclass
class MistralConfig:
    """Mistral backend configuration. The key is supplied per request."""
    base_url: str
    model_id: str


@dataclass
class HttpConfig:
    """Shared HTTP transport configuration."""
    timeout: float
    max_retries: int


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str
    format: str
    file: str


@dataclass
class Config:
    """Main configuration class."""
    default_provider: str
    google: GoogleConfig
    mistral: MistralConfig
    http: HttpConfig
    logging: LoggingConfig = field(
        default_factory=lambda: LoggingConfig(**DEFAULTS["logging"])
    )

    @classmethod
    def defaults(cls) -> "Config":
        """Build a configuration from built-in defaults and the environment."""
        return cls._from_data({})

    @classmethod
    def load(cls, config_path: str = "config.yaml") -> "Config":
        """
        Load configuration from file and environment variables.

        Environment variables override config file values:
        - CRASHGENIUS_DEFAULT_PROVIDER
        - GOOGLE_MODEL_ID
        - MISTRAL_MODEL_ID
        - HTTP_TIMEOUT
        - HTTP_MAX_RETRIES
        - LOG_LEVEL

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Config instance with loaded settings
        """
        path = Path(config_path)
        if not path.exists():
            logger.info(f"Config file {config_path} not found, using defaults")
            return cls._from_data({})

        try:
            with open(path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError.invalid(config_path, path.name, f"not valid YAML: {e}")

        if not isinstance(config_data, dict):
            raise ConfigurationError.invalid(config_path, type(config_data).__name__, "expected a mapping")

        return cls._from_data(config_data)

    @classmethod
    def _from_data(cls, config_data: Dict[str, Any]) -> "Config":
        google_data = {**DEFAULTS["google"], **(config_data.get("google") or {})}
        mistral_data = {**DEFAULTS["mistral"], **(config_data.get("mistral") or {})}
        http_data = {**DEFAULTS["http"], **(config_data.get("http") or {})}
        logging_data = {**DEFAULTS["logging"], **(config_data.get("logging") or {})}

        default_provider = os.getenv(
            "CRASHGENIUS_DEFAULT_PROVIDER",
            config_data.get("default_provider", DEFAULTS["default_provider"])
        )
        if default_provider not in ("google", "mistral"):
            raise ConfigurationError.invalid("default_provider", default_provider, "expected google or mistral")

        google_config = GoogleConfig(
            base_url=str(google_data["base_url"]).rstrip("/"),
            model_id=os.getenv("GOOGLE_MODEL_ID", google_data["model_id"]),
            api_key_env=google_data["api_key_env"]
        )

        mistral_config = MistralConfig(
            base_url=str(mistral_data["base_url"]).rstrip("/"),
            model_id=os.getenv("MISTRAL_MODEL_ID", mistral_data["model_id"])
        )

        http_config = HttpConfig(
            timeout=_as_number("http.timeout", os.getenv("HTTP_TIMEOUT", http_data["timeout"]), float),
            max_retries=_as_number("http.max_retries", os.getenv("HTTP_MAX_RETRIES", http_data["max_retries"]), int)
        )
        if http_config.timeout <= 0:
            raise ConfigurationError.invalid("http.timeout", http_config.timeout, "must be positive")
        if http_config.max_retries < 0:
            raise ConfigurationError.invalid("http.max_retries", http_config.max_retries, "must not be negative")

        logging_config = LoggingConfig(
            level=os.getenv("LOG_LEVEL", logging_data["level"]),
            format=logging_data["format"],
            file=logging_data["file"] or ""
        )

        return cls(
            default_provider=default_provider,
            google=google_config,
            mistral=mistral_config,
            http=http_config,
            logging=logging_config,
        )


def _as_number(key: str, value: Any, kind):
    try:
        return kind(value)
    except (TypeError, ValueError):
        raise ConfigurationError.invalid(key, value, f"expected {kind.__name__}")

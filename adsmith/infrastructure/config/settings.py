"""Persona pipeline settings and configuration"""

import os
import logging
from typing import Dict, Any, Mapping, Optional

from dotenv import load_dotenv

from adsmith.infrastructure.constants.generation_constants import (
    DEFAULT_MIRROR_DATABASE_URL,
    DEFAULT_MIRROR_NAMESPACE,
    DEFAULT_PERSONA_COUNT,
    DEFAULT_PORTRAIT_RESOLUTION,
    MAX_PERSONA_COUNT,
    MIN_PERSONA_COUNT,
    OPENAI_PERSONA_MODEL,
    PORTRAIT_MAX_CONCURRENCY,
    PORTRAIT_MAX_CONCURRENCY_LIMIT,
    PORTRAIT_MAX_RETRIES,
    PORTRAIT_RETRY_DELAY_SECONDS,
    PORTRAIT_TIMEOUT_SECONDS,
    ENV_OPENAI_API_KEY,
    ENV_OPENAI_PERSONA_MODEL,
    ENV_PORTRAIT_ENDPOINT_URL,
    ENV_PORTRAIT_API_KEY,
    ENV_STYLES_ENDPOINT_URL,
    ENV_STYLES_API_KEY,
    ENV_MIRROR_DATABASE_URL,
    ENV_MIRROR_NAMESPACE,
    ENV_PORTRAIT_MAX_RETRIES,
    ENV_PORTRAIT_RETRY_DELAY,
    ENV_PORTRAIT_TIMEOUT,
    ENV_PORTRAIT_MAX_CONCURRENCY,
    ENV_PORTRAIT_RESOLUTION,
    ENV_DEFAULT_PERSONA_COUNT,
    ENV_LOG_LEVEL,
)
from adsmith.services.portraits.retry import RetryConfig


class Settings:
    """Manages persona pipeline settings.

    Values come from the process environment. Pass ``env`` to read from an
    explicit mapping instead (tests do this), in which case no ``.env`` file
    is loaded.
    """

    def __init__(self, env: Optional[Mapping[str, str]] = None):
        self.logger = logging.getLogger(__name__)
        if env is None:
            load_dotenv()
            env = os.environ
        self._env_vars: Dict[str, str] = dict(env)

        # Collaborators
        self.openai_api_key = self._get_str(ENV_OPENAI_API_KEY)
        self.openai_model = self._get_str(ENV_OPENAI_PERSONA_MODEL, OPENAI_PERSONA_MODEL)
        self.portrait_endpoint_url = self._get_str(ENV_PORTRAIT_ENDPOINT_URL)
        self.portrait_api_key = self._get_str(ENV_PORTRAIT_API_KEY)
        self.styles_endpoint_url = self._get_str(ENV_STYLES_ENDPOINT_URL)
        self.styles_api_key = self._get_str(ENV_STYLES_API_KEY)

        # Persistent mirror
        self.mirror_database_url = self._get_str(
            ENV_MIRROR_DATABASE_URL, DEFAULT_MIRROR_DATABASE_URL
        )
        self.mirror_namespace = self._get_str(ENV_MIRROR_NAMESPACE, DEFAULT_MIRROR_NAMESPACE)

        # Portrait generation
        self.portrait_max_retries = max(
            0, self._get_int(ENV_PORTRAIT_MAX_RETRIES, PORTRAIT_MAX_RETRIES)
        )
        self.portrait_retry_delay = max(
            0.0, self._get_float(ENV_PORTRAIT_RETRY_DELAY, PORTRAIT_RETRY_DELAY_SECONDS)
        )
        self.portrait_timeout = self._get_float(ENV_PORTRAIT_TIMEOUT, PORTRAIT_TIMEOUT_SECONDS)
        if self.portrait_timeout <= 0:
            self.logger.warning(
                f"{ENV_PORTRAIT_TIMEOUT} must be positive, using {PORTRAIT_TIMEOUT_SECONDS}"
            )
            self.portrait_timeout = PORTRAIT_TIMEOUT_SECONDS
        self.portrait_max_concurrency = min(
            PORTRAIT_MAX_CONCURRENCY_LIMIT,
            max(1, self._get_int(ENV_PORTRAIT_MAX_CONCURRENCY, PORTRAIT_MAX_CONCURRENCY)),
        )
        self.portrait_resolution = self._get_str(
            ENV_PORTRAIT_RESOLUTION, DEFAULT_PORTRAIT_RESOLUTION
        )

        # Persona window
        self.default_persona_count = min(
            MAX_PERSONA_COUNT,
            max(MIN_PERSONA_COUNT, self._get_int(ENV_DEFAULT_PERSONA_COUNT, DEFAULT_PERSONA_COUNT)),
        )

        self.log_level = (self._get_str(ENV_LOG_LEVEL, "INFO") or "INFO").upper()

    def configure_logging(self) -> None:
        """Apply LOG_LEVEL and quiet chatty client libraries."""
        logging.basicConfig(
            level=getattr(logging, self.log_level, logging.INFO),
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

        # Set default log level for httpx, httpcore and openai to reduce debug noise
        logging.getLogger("httpx").setLevel(logging.INFO)
        logging.getLogger("httpcore").setLevel(logging.INFO)
        logging.getLogger("openai").setLevel(logging.INFO)

    def retry_config(self) -> RetryConfig:
        """Retry policy for a single portrait slot."""
        return RetryConfig(
            max_retries=self.portrait_max_retries,
            base_delay=self.portrait_retry_delay,
            attempt_timeout=self.portrait_timeout,
        )

    def _get_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get string value from environment"""
        value = self._env_vars.get(key)
        if value is None or value.strip() == "":
            return default
        return value.strip()

    def _get_int(self, key: str, default: int) -> int:
        """Get integer value from environment"""
        value = self._get_str(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            self.logger.warning(f"Invalid integer for {key}: {value!r}, using {default}")
            return default

    def _get_float(self, key: str, default: float) -> float:
        """Get float value from environment"""
        value = self._get_str(key)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            self.logger.warning(f"Invalid number for {key}: {value!r}, using {default}")
            return default

    def get_settings_summary(self) -> Dict[str, Any]:
        """Get summary of current settings with secrets masked"""
        return {
            "openai_api_key": "***" if self.openai_api_key else None,
            "openai_model": self.openai_model,
            "portrait_endpoint_url": self.portrait_endpoint_url,
            "portrait_api_key": "***" if self.portrait_api_key else None,
            "styles_endpoint_url": self.styles_endpoint_url,
            "styles_api_key": "***" if self.styles_api_key else None,
            "mirror_database_url": self.mirror_database_url,
            "mirror_namespace": self.mirror_namespace,
            "portrait_max_retries": self.portrait_max_retries,
            "portrait_retry_delay": self.portrait_retry_delay,
            "portrait_timeout": self.portrait_timeout,
            "portrait_max_concurrency": self.portrait_max_concurrency,
            "portrait_resolution": self.portrait_resolution,
            "default_persona_count": self.default_persona_count,
            "log_level": self.log_level,
        }

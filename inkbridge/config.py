"""
Configuration management for Inkbridge.

This module handles loading and accessing configuration values from config.yaml.
It provides a centralized way to manage service endpoints, credentials and
logging settings without changing code.
"""

import copy
import yaml
import os
from pathlib import Path
from typing import Any, Dict, Optional
import logging


DEFAULT_CONFIG: Dict[str, Any] = {
    "logseq": {
        "host": "http://127.0.0.1:12315",
        "token": "",
        "timeout": 30.0
    },
    "myscript": {
        "api_url": "https://cloud.myscript.com/api/v4.0/iink/batch",
        "app_key": "",
        "hmac_key": "",
        "lang": "en_US",
        "timeout": 30.0
    },
    "ledger": {
        "filename": "inkbridge.db"
    },
    "paths": {
        "log_file": "inkbridge.log"
    },
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    }
}

# Environment variables that take precedence over the file for credentials
ENV_OVERRIDES = {
    "LOGSEQ_TOKEN": "logseq.token",
    "MYSCRIPT_APP_KEY": "myscript.app_key",
    "MYSCRIPT_HMAC_KEY": "myscript.hmac_key",
}


class ConfigManager:
    """
    Manages configuration loading and access for Inkbridge.
    """

    def __init__(self, config_path: str = "config.yaml"):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from YAML file."""
        try:
            if not self.config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

            with open(self.config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f) or {}

            self._config = self._merge(self._get_default_config(), loaded)
            logging.info(f"Configuration loaded from {self.config_path}")

        except (OSError, yaml.YAMLError) as e:
            logging.warning(f"Failed to load configuration: {e}")
            # Fall back to default configuration
            self._config = self._get_default_config()

    def _get_default_config(self) -> Dict[str, Any]:
        """Get default configuration values as fallback."""
        return copy.deepcopy(DEFAULT_CONFIG)

    @classmethod
    def _merge(cls, base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively overlay file values on top of the defaults."""
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(base.get(key), dict):
                base[key] = cls._merge(base[key], value)
            else:
                base[key] = value
        return base

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key_path: Dot-separated path to the configuration value (e.g., "logseq.host")
            default: Default value if key is not found

        Returns:
            The configuration value

        Examples:
            config.get("logseq.host")  # Returns "http://127.0.0.1:12315"
            config.get("myscript.lang")  # Returns "en_US"
        """
        for env_name, env_path in ENV_OVERRIDES.items():
            if env_path == key_path and os.environ.get(env_name):
                return os.environ[env_name]

        keys = key_path.split('.')
        value = self._config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Get an entire configuration section.

        Args:
            section: Name of the configuration section

        Returns:
            Dictionary containing the section configuration
        """
        return self._config.get(section, {})

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    # Convenience properties for commonly used values

    @property
    def logseq_host(self) -> str:
        """Get Logseq HTTP API host URL."""
        return self.get("logseq.host", "http://127.0.0.1:12315")

    @property
    def logseq_token(self) -> str:
        """Get Logseq HTTP API authorization token."""
        return self.get("logseq.token", "") or ""

    @property
    def logseq_timeout(self) -> float:
        """Get timeout for a single Logseq request."""
        return float(self.get("logseq.timeout", 30.0))

    @property
    def myscript_api_url(self) -> str:
        """Get MyScript batch recognition endpoint."""
        return self.get("myscript.api_url", DEFAULT_CONFIG["myscript"]["api_url"])

    @property
    def myscript_app_key(self) -> str:
        return self.get("myscript.app_key", "") or ""

    @property
    def myscript_hmac_key(self) -> str:
        return self.get("myscript.hmac_key", "") or ""

    @property
    def myscript_lang(self) -> str:
        return self.get("myscript.lang", "en_US")

    @property
    def myscript_timeout(self) -> float:
        """Get timeout for a single recognition request."""
        return float(self.get("myscript.timeout", 30.0))

    @property
    def ledger_filename(self) -> str:
        """Get stroke ledger database filename."""
        return self.get("ledger.filename", "inkbridge.db")

    @property
    def log_filename(self) -> str:
        """Get log file name."""
        return self.get("paths.log_file", "inkbridge.log")


# Global configuration instance
config = ConfigManager()

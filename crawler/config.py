"""
load the config from config.yaml and .env
"""

import os
import yaml
from dotenv import load_dotenv
from pathlib import Path
from typing import Dict, Any


class Config:
    """Configuration loader that reads from config.yaml and environment variables."""

    # environment variable -> nested config key
    env_mappings = {
        'CRAWLER_USER_AGENT': ('fetcher', 'user_agent'),
        'CRAWLER_TIMEOUT': ('fetcher', 'timeout'),
        'CRAWLER_CONNECT_TIMEOUT': ('fetcher', 'connect_timeout'),
        'CRAWLER_VERIFY_SSL': ('fetcher', 'verify_ssl'),
        'CRAWLER_REDIRECTS_ALLOWED': ('redirects', 'allowed'),
        'CRAWLER_REDIRECTS_LIMIT': ('redirects', 'limit'),
        'CRAWLER_ENCODE_URLS': ('urls', 'encode'),
        'CRAWLER_STRICT_PATHS': ('urls', 'strict_paths'),
        'CRAWLER_SECURED': ('urls', 'secured'),
        'CRAWLER_COOKIE_FILE': ('cookies', 'file'),
        'CRAWLER_LOG_LEVEL': ('logging', 'level'),
        'CRAWLER_LOG_JSON': ('logging', 'json'),
    }

    def __init__(self, config_path: str = None, env_file: str = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to config.yaml file. If None, looks for config.yaml
                        in the same directory as this module.
            env_file: Optional .env file loaded before the overrides are applied.
        """
        if config_path is None:
            config_path = Path(__file__).parent / "config.yaml"

        self.config_path = Path(config_path)
        load_dotenv(env_file)
        self._config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file and override with environment variables."""
        try:
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f) or {}
        except FileNotFoundError:
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        return self._apply_env_overrides(config)

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration."""
        for env_var, config_path in self.env_mappings.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                current = config
                for key in config_path[:-1]:
                    if not isinstance(current.get(key), dict):
                        current[key] = {}
                    current = current[key]

                current[config_path[-1]] = self._convert_env_value(env_value)

        return config

    def _convert_env_value(self, value: str):
        """Convert environment variable string to appropriate Python type."""
        if value.lower() in ('true', 'false'):
            return value.lower() == 'true'

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value

    def get(self, *keys, default=None):
        """Get configuration value by nested keys.

        Args:
            *keys: Configuration keys (e.g., 'redirects', 'limit')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        current = self._config
        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default
        return current

    @property
    def fetcher(self) -> Dict[str, Any]:
        """Get HTTP fetcher configuration."""
        return self.get('fetcher', default={})

    @property
    def redirects(self) -> Dict[str, Any]:
        """Get redirect policy configuration."""
        return self.get('redirects', default={})

    @property
    def urls(self) -> Dict[str, Any]:
        """Get URL handling configuration."""
        return self.get('urls', default={})

    @property
    def cookies(self) -> Dict[str, Any]:
        return self.get('cookies', default={})

    @property
    def logging(self) -> Dict[str, Any]:
        """Get logging configuration."""
        return self.get('logging', default={})

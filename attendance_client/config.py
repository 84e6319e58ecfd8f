"""
Configuration Management for the Attendance Client.

This module handles client configuration including the API base URL, request
timeout, session storage and logging, with support for a configuration file
and environment variables.
"""

import os
import json
import logging
from pathlib import Path
from typing import Optional, Dict, Any
from configparser import ConfigParser, Error as ConfigParserError

from attendance_client.exceptions import ConfigurationError, ErrorCode
from attendance_client.http.transport import DEFAULT_BASE_URL, DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

TOKEN_STORES = ('keyring', 'file', 'memory')

DEFAULT_CONFIG = """# Attendance Client Configuration
# Configuration file: {config_path}

[api]
# Base URL of the attendance backend API
url = {default_url}

# Request timeout in seconds
timeout = {default_timeout}

[session]
# Where the session is persisted: keyring, file or memory
token_store = keyring

[logging]
# Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL
level = INFO
"""


class ClientConfiguration:
    """
    Configuration manager for the Attendance Client.

    Supports configuration from:
    1. Overrides, e.g. command line arguments (highest priority)
    2. Environment variables
    3. Configuration file
    4. Default values (lowest priority)
    """

    def __init__(self, config_file: Optional[str] = None):
        self._config_file = config_file or self._get_default_config_path()
        self._config_data: Dict[str, Any] = {}
        self._overrides: Dict[str, Any] = {}

        self._load_configuration()

    def _get_default_config_path(self) -> str:
        """Get default configuration file path, creating it on first use."""
        config_dir = Path.home() / '.attendance-client'
        user_config_path = config_dir / 'client.conf'

        if not user_config_path.exists():
            try:
                config_dir.mkdir(parents=True, exist_ok=True)
                self._create_default_config(str(user_config_path))
            except OSError as e:
                logger.warning(f"Failed to create default configuration: {e}")

        return str(user_config_path)

    def _create_default_config(self, config_path: str) -> None:
        """Create a minimal default configuration file."""
        with open(config_path, 'w') as f:
            f.write(DEFAULT_CONFIG.format(
                config_path=config_path,
                default_url=DEFAULT_BASE_URL,
                default_timeout=int(DEFAULT_TIMEOUT)
            ))

        logger.info(f"Created default configuration file: {config_path}")

    def _load_configuration(self) -> None:
        """Load configuration from file and environment variables."""
        if os.path.exists(self._config_file):
            self._load_from_file()
            logger.debug(f"Configuration loaded from: {self._config_file}")
        else:
            logger.debug(f"Configuration file not found: {self._config_file}")

        self._load_from_environment()
        self._set_defaults()

    def _load_from_file(self) -> None:
        """Load configuration from INI file."""
        config = ConfigParser()
        try:
            config.read(self._config_file)
        except ConfigParserError as e:
            raise ConfigurationError(
                f"Invalid configuration file {self._config_file}: {e}",
                error_code=ErrorCode.CONFIG_INVALID_FORMAT,
                cause=e
            )

        for section_name in config.sections():
            section_data = {}
            for key, value in config[section_name].items():
                try:
                    section_data[key] = json.loads(value)
                except (json.JSONDecodeError, ValueError):
                    section_data[key] = value

            self._config_data[section_name] = section_data

    def _load_from_environment(self) -> None:
        """Load configuration from environment variables."""
        env_mappings = {
            'ATTENDANCE_API_URL': ('api', 'url'),
            'ATTENDANCE_API_TIMEOUT': ('api', 'timeout'),
            'ATTENDANCE_TOKEN_STORE': ('session', 'token_store'),
            'ATTENDANCE_LOG_LEVEL': ('logging', 'level'),
            'ATTENDANCE_LOG_FILE': ('logging', 'file'),
        }

        for env_var, (section, key) in env_mappings.items():
            value = os.environ.get(env_var)
            if value is not None:
                self._config_data.setdefault(section, {})[key] = value

    def _set_defaults(self) -> None:
        """Set default configuration values."""
        defaults = {
            'api': {
                'url': DEFAULT_BASE_URL,
                'timeout': DEFAULT_TIMEOUT,
            },
            'session': {
                'token_store': 'keyring',
                'service_name': 'attendance-client',
            },
            'logging': {
                'level': 'INFO',
                'file': None,
                'format': 'standard',
            },
        }

        for section, section_defaults in defaults.items():
            section_data = self._config_data.setdefault(section, {})
            for key, default_value in section_defaults.items():
                section_data.setdefault(key, default_value)

    def get_api_url(self) -> str:
        """Get the API base URL."""
        return str(self._overrides.get('api_url') or self._config_data['api']['url']).rstrip('/')

    def get_timeout(self) -> float:
        """Get the request timeout in seconds."""
        value = self._overrides.get('timeout', self._config_data['api']['timeout'])
        try:
            timeout = float(value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Invalid timeout: {value!r}", config_key='api.timeout')
        if timeout <= 0:
            raise ConfigurationError(f"Timeout must be positive: {value!r}", config_key='api.timeout')
        return timeout

    def get_token_store(self) -> str:
        """Get the session store kind."""
        value = str(self._overrides.get('token_store') or self._config_data['session']['token_store']).lower()
        if value not in TOKEN_STORES:
            raise ConfigurationError(f"Unknown token store: {value!r}", config_key='session.token_store')
        return value

    def get_log_level(self) -> str:
        return str(self._overrides.get('log_level') or self._config_data['logging']['level']).upper()

    def get_log_file(self) -> Optional[str]:
        return self._overrides.get('log_file') or self._config_data['logging'].get('file')

    def get_config(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Configuration key in format 'section.key'
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        if '.' not in key:
            return self._config_data.get(key, default)

        section, config_key = key.split('.', 1)
        return self._config_data.get(section, {}).get(config_key, default)

    def set_override(self, key: str, value: Any) -> None:
        """Set a runtime override, e.g. from command line arguments."""
        self._overrides[key] = value

    def get_config_file_path(self) -> str:
        return self._config_file

"""
Configuration loading and management for HR Group Sync.

This module handles loading configuration from a YAML file, a local .env file
and environment variables, with validation and defaults.
"""

import os
import yaml
import logging
from typing import Dict, Any, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_GROUP_DESCRIPTION = (
    'Contains all company email addresses and those of employees '
    'without a company email address'
)


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing required fields."""
    pass


class ConfigLoader:
    """Handles loading and validation of application configuration."""

    # Environment variable mappings, applied on top of the YAML file
    ENV_OVERRIDES = {
        'onepoint.username': 'ONEPOINT_USERNAME',
        'onepoint.password': 'ONEPOINT_PASSWORD',
        'onepoint.company_short_name': 'ONEPOINT_COMPANY_SHORT_NAME',
        'onepoint.api_key': 'ONEPOINT_API_KEY',
        'onepoint.base_url': 'ONEPOINT_BASE_URL',
        'google.credentials_file': 'GOOGLE_CREDENTIALS_FILE',
        'google.token_file': 'GOOGLE_TOKEN_FILE',
        'group.email': 'GROUP_EMAIL',
        'logging.level': 'LOG_LEVEL',
        'notifications.smtp_password': 'SMTP_PASSWORD',
    }

    REQUIRED_FIELDS = [
        'onepoint.username',
        'onepoint.password',
        'onepoint.company_short_name',
        'onepoint.api_key',
        'group.email',
    ]

    DEFAULTS = {
        'onepoint': {
            'base_url': 'https://secure.onehcm.com',
            'report_name': 'Employee Emails',
            'email_field': 'Email',
            'timeout': 30,
            'verify_ssl': True,
        },
        'google': {
            'credentials_file': 'credentials.json',
            'token_file': 'token.json',
            'auth_flow': 'console',
        },
        'group': {
            'name': 'Everyone',
            'description': DEFAULT_GROUP_DESCRIPTION,
            'member_role': 'MEMBER',
        },
        'sync': {
            'pace_seconds': 0.25,
            'min_employees': 1,
            'strict_member_listing': False,
            'dry_run': False,
        },
        'logging': {
            'level': 'INFO',
            'log_dir': 'logs',
            'rotation': 'daily',
            'retention_days': 7,
            'console_output': True,
            'console_level': 'INFO',
        },
        'notifications': {
            'enable_email': False,
            'email_on_failure': True,
            'email_on_success': False,
            'smtp_port': 587,
            'smtp_tls': True,
        },
    }

    AUTH_FLOWS = ('console', 'local_server')

    def __init__(self, config_path: Optional[str] = None, env_file: Optional[str] = None):
        """
        Initialize config loader.

        Args:
            config_path: Path to config file. If None, uses CONFIG_PATH env var or 'config.yaml'
            env_file: Optional .env file to load before reading the environment
        """
        self.env_file = env_file
        load_dotenv(dotenv_path=env_file)
        self.config_path = config_path or os.getenv('CONFIG_PATH', 'config.yaml')
        self.config = {}

    def load(self) -> Dict[str, Any]:
        """
        Load configuration from file and apply environment overrides.

        A missing config file is tolerated so that a deployment can be driven
        entirely by environment variables; validation still applies.

        Returns:
            Parsed and validated configuration dictionary

        Raises:
            ConfigurationError: If the file is unreadable or validation fails
        """
        try:
            with open(self.config_path, 'r') as f:
                self.config = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.debug(f"Configuration file not found: {self.config_path}, using environment only")
            self.config = {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")

        if not isinstance(self.config, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {self.config_path}")

        self._apply_env_overrides()
        self._apply_defaults()
        self._validate()

        logger.info(f"Configuration loaded successfully from {self.config_path}")
        return self.config

    def _apply_env_overrides(self):
        """Apply environment variable overrides."""
        for config_key, env_var in self.ENV_OVERRIDES.items():
            env_value = os.getenv(env_var)
            if env_value:
                self._set_nested_value(self.config, config_key, env_value)
                logger.debug(f"Applied environment override for {config_key}")

    def _set_nested_value(self, config: Dict, key_path: str, value: Any):
        """Set a nested configuration value using dot notation."""
        keys = key_path.split('.')
        current = config
        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]
        current[keys[-1]] = value

    def _get_nested_value(self, key_path: str) -> Any:
        current = self.config
        for key in key_path.split('.'):
            if not isinstance(current, dict):
                return None
            current = current.get(key)
        return current

    def _apply_defaults(self):
        """Apply default values for optional configuration fields."""
        for section, defaults in self.DEFAULTS.items():
            section_config = self.config.get(section)
            if not isinstance(section_config, dict):
                section_config = {}
                self.config[section] = section_config
            for key, value in defaults.items():
                section_config.setdefault(key, value)

    def _validate(self):
        """Validate required configuration fields."""
        errors = []

        for field in self.REQUIRED_FIELDS:
            if not self._get_nested_value(field):
                errors.append(f"Missing required field: {field}")

        auth_flow = str(self.config['google']['auth_flow']).lower()
        if auth_flow not in self.AUTH_FLOWS:
            errors.append(f"google.auth_flow must be one of {', '.join(self.AUTH_FLOWS)}, got '{auth_flow}'")
        self.config['google']['auth_flow'] = auth_flow

        sync_config = self.config['sync']
        try:
            sync_config['pace_seconds'] = float(sync_config['pace_seconds'])
            if sync_config['pace_seconds'] < 0:
                errors.append("sync.pace_seconds must not be negative")
        except (TypeError, ValueError):
            errors.append(f"sync.pace_seconds must be a number, got '{sync_config['pace_seconds']}'")

        try:
            sync_config['min_employees'] = int(sync_config['min_employees'])
            if sync_config['min_employees'] < 0:
                errors.append("sync.min_employees must not be negative")
        except (TypeError, ValueError):
            errors.append(f"sync.min_employees must be an integer, got '{sync_config['min_employees']}'")

        try:
            self.config['onepoint']['timeout'] = float(self.config['onepoint']['timeout'])
        except (TypeError, ValueError):
            errors.append(f"onepoint.timeout must be a number, got '{self.config['onepoint']['timeout']}'")

        if not str(self.config['onepoint']['base_url']).startswith(('http://', 'https://')):
            errors.append("onepoint.base_url must be an http(s) URL")

        notifications = self.config['notifications']
        if notifications.get('enable_email'):
            for field in ('smtp_server', 'email_to'):
                if not notifications.get(field):
                    errors.append(f"Missing notifications.{field} while email notifications are enabled")

        if errors:
            raise ConfigurationError("Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in errors))


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Convenience function to load configuration.

    Args:
        config_path: Path to config file

    Returns:
        Loaded configuration dictionary
    """
    loader = ConfigLoader(config_path)
    return loader.load()

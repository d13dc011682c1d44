#!/usr/bin/env python3
"""
Unit tests for configuration module.

Covers YAML loading, environment variable overrides, defaults and validation.
"""

import os
import sys
import tempfile
import yaml
import unittest
from unittest.mock import patch
from typing import Any

# Add the project directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hr_group_sync.config import ConfigLoader, ConfigurationError, load_config


class TestConfigLoader(unittest.TestCase):
    """Test cases for ConfigLoader class."""

    def setUp(self):
        """Set up test fixtures."""
        self.valid_config = {
            'onepoint': {
                'username': 'sync-service',
                'password': 'hr-secret',
                'company_short_name': 'ACME',
                'api_key': 'key-123',
                'report_name': 'Employee Emails',
                'email_field': '"Email"',
            },
            'google': {
                'credentials_file': 'credentials.json',
                'token_file': 'token.json',
            },
            'group': {
                'email': 'everyone@example.com',
                'name': 'Everyone',
            },
            'sync': {
                'pace_seconds': 0.5,
            },
        }

        self.temp_files = []
        # Keep the developer's environment and any .env file out of the tests
        self.env_patcher = patch.dict(os.environ, {}, clear=True)
        self.env_patcher.start()
        self.dotenv_patcher = patch('hr_group_sync.config.load_dotenv')
        self.dotenv_patcher.start()

    def tearDown(self):
        self.dotenv_patcher.stop()
        self.env_patcher.stop()
        for path in self.temp_files:
            if os.path.exists(path):
                os.unlink(path)

    def create_test_config(self, config_data: Any) -> str:
        """Create a temporary config file with the given data."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            yaml.safe_dump(config_data, f)
            self.temp_files.append(f.name)
            return f.name

    def test_valid_config(self):
        """Test loading a valid configuration."""
        config = ConfigLoader(self.create_test_config(self.valid_config)).load()

        self.assertEqual(config['onepoint']['company_short_name'], 'ACME')
        self.assertEqual(config['onepoint']['email_field'], '"Email"')
        self.assertEqual(config['group']['email'], 'everyone@example.com')
        self.assertEqual(config['sync']['pace_seconds'], 0.5)

    def test_defaults_applied(self):
        """Test default values for optional fields."""
        config = ConfigLoader(self.create_test_config(self.valid_config)).load()

        self.assertEqual(config['onepoint']['base_url'], 'https://secure.onehcm.com')
        self.assertEqual(config['google']['auth_flow'], 'console')
        self.assertEqual(config['group']['member_role'], 'MEMBER')
        self.assertEqual(config['sync']['min_employees'], 1)
        self.assertFalse(config['sync']['strict_member_listing'])
        self.assertFalse(config['sync']['dry_run'])
        self.assertEqual(config['logging']['level'], 'INFO')
        self.assertEqual(config['logging']['retention_days'], 7)
        self.assertFalse(config['notifications']['enable_email'])

    def test_environment_overrides(self):
        """Environment variables win over the YAML file."""
        env = {
            'ONEPOINT_PASSWORD': 'from-env',
            'ONEPOINT_API_KEY': 'env-key',
            'GROUP_EMAIL': 'all@example.com',
            'LOG_LEVEL': 'DEBUG',
        }
        with patch.dict(os.environ, env):
            config = ConfigLoader(self.create_test_config(self.valid_config)).load()

        self.assertEqual(config['onepoint']['password'], 'from-env')
        self.assertEqual(config['onepoint']['api_key'], 'env-key')
        self.assertEqual(config['group']['email'], 'all@example.com')
        self.assertEqual(config['logging']['level'], 'DEBUG')

    def test_environment_only_configuration(self):
        """A missing config file is fine when the environment has everything."""
        env = {
            'ONEPOINT_USERNAME': 'u',
            'ONEPOINT_PASSWORD': 'p',
            'ONEPOINT_COMPANY_SHORT_NAME': 'ACME',
            'ONEPOINT_API_KEY': 'k',
            'GROUP_EMAIL': 'everyone@example.com',
        }
        with patch.dict(os.environ, env):
            config = ConfigLoader('/nonexistent/config.yaml').load()

        self.assertEqual(config['onepoint']['username'], 'u')
        self.assertEqual(config['onepoint']['report_name'], 'Employee Emails')

    def test_config_path_from_environment(self):
        path = self.create_test_config(self.valid_config)
        with patch.dict(os.environ, {'CONFIG_PATH': path}):
            loader = ConfigLoader()

        self.assertEqual(loader.config_path, path)

    def test_missing_required_fields(self):
        """All missing fields are reported together."""
        with self.assertRaises(ConfigurationError) as context:
            ConfigLoader('/nonexistent/config.yaml').load()

        message = str(context.exception)
        self.assertIn('onepoint.username', message)
        self.assertIn('onepoint.api_key', message)
        self.assertIn('group.email', message)

    def test_invalid_yaml(self):
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write('onepoint: [unclosed\n')
            self.temp_files.append(f.name)

        with self.assertRaises(ConfigurationError) as context:
            ConfigLoader(f.name).load()

        self.assertIn('Invalid YAML', str(context.exception))

    def test_non_mapping_root(self):
        with self.assertRaises(ConfigurationError):
            ConfigLoader(self.create_test_config(['not', 'a', 'mapping'])).load()

    def test_invalid_auth_flow(self):
        self.valid_config['google']['auth_flow'] = 'device'

        with self.assertRaises(ConfigurationError) as context:
            ConfigLoader(self.create_test_config(self.valid_config)).load()

        self.assertIn('google.auth_flow', str(context.exception))

    def test_invalid_sync_values(self):
        self.valid_config['sync'] = {'pace_seconds': 'fast', 'min_employees': -1}

        with self.assertRaises(ConfigurationError) as context:
            ConfigLoader(self.create_test_config(self.valid_config)).load()

        message = str(context.exception)
        self.assertIn('sync.pace_seconds', message)
        self.assertIn('sync.min_employees', message)

    def test_email_notifications_require_smtp_settings(self):
        self.valid_config['notifications'] = {'enable_email': True}

        with self.assertRaises(ConfigurationError) as context:
            ConfigLoader(self.create_test_config(self.valid_config)).load()

        self.assertIn('notifications.smtp_server', str(context.exception))
        self.assertIn('notifications.email_to', str(context.exception))

    def test_load_config_function(self):
        config = load_config(self.create_test_config(self.valid_config))

        self.assertIn('onepoint', config)
        self.assertIn('notifications', config)


class TestDotenvLoading(unittest.TestCase):
    """The .env file feeds the same environment overrides."""

    def test_env_file_values_are_used(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            env_path = os.path.join(temp_dir, '.env')
            with open(env_path, 'w') as f:
                f.write('ONEPOINT_USERNAME=dotenv-user\n')
                f.write('ONEPOINT_PASSWORD=dotenv-pass\n')
                f.write('ONEPOINT_COMPANY_SHORT_NAME=ACME\n')
                f.write('ONEPOINT_API_KEY=dotenv-key\n')
                f.write('GROUP_EMAIL=everyone@example.com\n')

            with patch.dict(os.environ, {}, clear=True):
                loader = ConfigLoader(os.path.join(temp_dir, 'missing.yaml'), env_file=env_path)
                config = loader.load()

        self.assertEqual(config['onepoint']['username'], 'dotenv-user')
        self.assertEqual(config['onepoint']['api_key'], 'dotenv-key')


if __name__ == '__main__':
    unittest.main()

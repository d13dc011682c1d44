"""
Logging setup and configuration for HR Group Sync.

Provides a rotating file log plus line-oriented console output, with a filter
that masks credentials before they reach either handler.
"""

import os
import re
import logging
import logging.handlers
from typing import Dict, Any, List


class SensitiveDataFilter(logging.Filter):
    """Filter to scrub sensitive data from log messages."""

    SENSITIVE_KEYWORDS = [
        'password', 'api_key', 'api-key', 'apikey', 'client_secret', 'secret',
        'access_token', 'refresh_token', 'token', 'code',
    ]

    def __init__(self, name: str = ''):
        super().__init__(name)
        self._patterns = []
        for keyword in self.SENSITIVE_KEYWORDS:
            escaped = re.escape(keyword)
            # key=value
            self._patterns.append((re.compile(rf'\b({escaped}\s*=\s*)[^\s,}}\]&]+', re.IGNORECASE), r'\1****'))
            # "key": "value"
            self._patterns.append((re.compile(rf'("{escaped}"\s*:\s*")[^"]*(")', re.IGNORECASE), r'\1****\2'))
            # 'key': 'value' (repr of a dict)
            self._patterns.append((re.compile(rf"('{escaped}'\s*:\s*')[^']*(')", re.IGNORECASE), r'\1****\2'))
        # Authorization: Bearer xyz / Authentication: Bearer xyz / Api-Key: xyz
        self._patterns.append((re.compile(r'((?:Authorization|Authentication):\s*(?:Bearer|Basic)\s+)[^\s,}\]\'"]+', re.IGNORECASE), r'\1****'))
        self._patterns.append((re.compile(r'(Api-Key:\s*)[^\s,}\]\'"]+', re.IGNORECASE), r'\1****'))

    def scrub(self, message: str) -> str:
        """Return message with every sensitive value replaced by ****."""
        for pattern, replacement in self._patterns:
            message = pattern.sub(replacement, message)
        return message

    def filter(self, record):
        """Filter out sensitive data from log records."""
        if record.args:
            record.msg = record.getMessage()
            record.args = None
        record.msg = self.scrub(str(record.msg))
        return True


class LoggingManager:
    """
    Manages logging configuration for the HR Group Sync application.

    Provides file-based logging with rotation and a console handler that
    carries the per-member progress lines.
    """

    LOG_FILE_NAME = 'app.log'

    def __init__(self):
        self.configured = False
        self.log_dir = None
        self.retention_days = 7
        self.handlers: List[logging.Handler] = []

    def setup_logging(self, config: Dict[str, Any]) -> None:
        """
        Set up logging based on configuration.

        Args:
            config: Logging configuration dictionary
        """
        if self.configured:
            return

        logging_config = config if config else {}

        log_level = str(logging_config.get('level', 'INFO')).upper()
        self.log_dir = logging_config.get('log_dir', 'logs')
        rotation = logging_config.get('rotation', 'daily')
        self.retention_days = int(logging_config.get('retention_days', 7))
        console_enabled = logging_config.get('console_output', True)
        console_level = str(logging_config.get('console_level', 'INFO')).upper()

        self._ensure_log_directory()

        root_logger = logging.getLogger()
        root_logger.setLevel(getattr(logging, log_level, logging.INFO))

        detailed_formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        console_formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(message)s',
            datefmt='%H:%M:%S'
        )

        sensitive_filter = SensitiveDataFilter()

        if self.log_dir:
            file_handler = self._create_file_handler(rotation)
            file_handler.setLevel(getattr(logging, log_level, logging.INFO))
            file_handler.setFormatter(detailed_formatter)
            file_handler.addFilter(sensitive_filter)
            self._add_handler(root_logger, file_handler)

        if console_enabled:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(getattr(logging, console_level, logging.INFO))
            console_handler.setFormatter(console_formatter)
            console_handler.addFilter(sensitive_filter)
            self._add_handler(root_logger, console_handler)

        # googleapiclient logs every discovery fetch at INFO
        logging.getLogger('googleapiclient.discovery_cache').setLevel(logging.ERROR)

        self.configured = True

        logger = logging.getLogger(__name__)
        logger.debug(f"Logging configured: level={log_level}, dir={self.log_dir}, "
                     f"retention={self.retention_days} days, console={console_enabled}")

    def _add_handler(self, root_logger: logging.Logger, handler: logging.Handler) -> None:
        root_logger.addHandler(handler)
        self.handlers.append(handler)

    def _ensure_log_directory(self) -> None:
        """Ensure the log directory exists."""
        if self.log_dir and not os.path.exists(self.log_dir):
            try:
                os.makedirs(self.log_dir, exist_ok=True)
            except OSError as e:
                print(f"Warning: Could not create log directory {self.log_dir}: {e}")
                print("Falling back to current directory for logs")
                self.log_dir = '.'

    def _create_file_handler(self, rotation: str) -> logging.Handler:
        """
        Create appropriate file handler based on rotation setting.

        Args:
            rotation: Rotation setting ('daily', 'midnight', or 'none')

        Returns:
            Configured logging handler
        """
        log_file = os.path.join(self.log_dir, self.LOG_FILE_NAME)

        if str(rotation).lower() in ['daily', 'midnight']:
            handler = logging.handlers.TimedRotatingFileHandler(
                filename=log_file,
                when='midnight',
                interval=1,
                backupCount=self.retention_days,
                encoding='utf-8'
            )
            handler.suffix = '%Y-%m-%d'
        else:
            handler = logging.FileHandler(log_file, encoding='utf-8')

        return handler

    def reset(self) -> None:
        """Detach and close the handlers installed by setup_logging."""
        root_logger = logging.getLogger()
        for handler in self.handlers:
            root_logger.removeHandler(handler)
            handler.close()
        self.handlers = []
        self.configured = False


# Global logging manager instance
_logging_manager = LoggingManager()


def setup_logging(config: Dict[str, Any]) -> None:
    """
    Convenience function to set up logging.

    Args:
        config: Logging configuration dictionary
    """
    _logging_manager.setup_logging(config)


def reset_logging() -> None:
    _logging_manager.reset()

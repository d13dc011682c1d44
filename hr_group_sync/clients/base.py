"""
Base REST client and the remote error taxonomy.

This module defines the exceptions raised by every remote adapter, along with
a small HTTP client with SSL and header-based authentication handling that
the HR report client is built on.
"""

import json
import ssl
import logging
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, Union
from urllib.parse import urlparse, urlencode
from http.client import HTTPSConnection, HTTPConnection

logger = logging.getLogger(__name__)


class RemoteError(Exception):
    """Base exception for failures of the HR or directory APIs."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteAuthenticationError(RemoteError):
    """Raised when a remote API rejects our credentials."""
    pass


class RestClientBase(ABC):
    """
    Abstract base class for REST API clients.

    Provides connection management, SSL setup and JSON/text request handling.
    Subclasses implement connect() to establish their authentication headers.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize REST client.

        Args:
            config: Client configuration dictionary (base_url, timeout, verify_ssl, ca_bundle)
        """
        self.config = config
        self.name = config.get('name', self.__class__.__name__)
        self.base_url = config['base_url']
        self.timeout = float(config.get('timeout', 30))
        self.verify_ssl = config.get('verify_ssl', True)

        self.parsed_url = urlparse(self.base_url)
        self.host = self.parsed_url.netloc
        self.base_path = self.parsed_url.path.rstrip('/')

        self.connection = None
        self.ssl_context = None

        self.auth_headers: Dict[str, str] = {}
        self.authenticated = False

        self._setup_ssl_context()

    def _setup_ssl_context(self):
        """Set up SSL context based on configuration."""
        if self.parsed_url.scheme != 'https':
            return

        if not self.verify_ssl:
            self.ssl_context = ssl._create_unverified_context()
            logger.warning(f"SSL verification disabled for {self.name}")
            return

        self.ssl_context = ssl.create_default_context()

        ca_bundle = self.config.get('ca_bundle')
        if ca_bundle:
            try:
                self.ssl_context.load_verify_locations(cafile=ca_bundle)
                logger.info(f"Loaded CA bundle for {self.name}: {ca_bundle}")
            except (OSError, ssl.SSLError) as e:
                raise RemoteError(f"Failed to load CA bundle {ca_bundle}: {e}")

    def _get_connection(self) -> Union[HTTPSConnection, HTTPConnection]:
        """Get or create HTTP connection."""
        if self.connection:
            return self.connection

        if self.parsed_url.scheme == 'https':
            self.connection = HTTPSConnection(self.host, context=self.ssl_context, timeout=self.timeout)
        else:
            self.connection = HTTPConnection(self.host, timeout=self.timeout)

        return self.connection

    def _build_path(self, path: str, params: Optional[Dict[str, Any]] = None) -> str:
        full_path = f"{self.base_path}/{path.lstrip('/')}"
        if params:
            full_path = f"{full_path}?{urlencode(params)}"
        return full_path

    def request(self, method: str, path: str, body: Optional[Dict] = None,
                headers: Optional[Dict] = None, params: Optional[Dict[str, Any]] = None,
                accept: str = 'application/json') -> Union[Dict[str, Any], str]:
        """
        Make HTTP request to the API.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            path: API endpoint path (relative to base_url)
            body: Request body, sent as JSON
            headers: Additional headers
            params: Query string parameters
            accept: Expected response media type; anything other than JSON
                is returned as text

        Returns:
            Parsed JSON response, or the raw response text

        Raises:
            RemoteAuthenticationError: On 401/403
            RemoteError: If the request fails for any other reason
        """
        full_path = self._build_path(path, params)

        request_headers = {'Accept': accept}
        request_headers.update(self.auth_headers)
        if headers:
            request_headers.update(headers)

        request_body = None
        if body is not None:
            request_body = json.dumps(body)
            request_headers['Content-Type'] = 'application/json'

        try:
            conn = self._get_connection()

            logger.debug(f"Making {method} request to {self.host}{self._build_path(path)}")
            conn.request(method, full_path, request_body, request_headers)

            response = conn.getresponse()
            response_data = response.read().decode('utf-8-sig')

            logger.debug(f"Response status: {response.status} {response.reason}")
        except (ConnectionError, OSError) as e:
            self.close_connection()
            raise RemoteError(f"Connection error to {self.name}: {e}")
        except UnicodeDecodeError as e:
            raise RemoteError(f"Response from {self.name} is not valid UTF-8: {e}",
                              status_code=response.status)

        if response.status in (401, 403):
            raise RemoteAuthenticationError(
                f"Authentication failed for {self.name}: HTTP {response.status} {response.reason}",
                status_code=response.status
            )
        if response.status >= 400:
            raise RemoteError(
                f"{method} {path} failed for {self.name}: HTTP {response.status} {response.reason}",
                status_code=response.status
            )

        if accept != 'application/json':
            return response_data

        try:
            return json.loads(response_data) if response_data else {}
        except json.JSONDecodeError as e:
            raise RemoteError(f"Invalid JSON response from {self.name}: {e}")

    def close_connection(self):
        """Close HTTP connection."""
        if self.connection:
            try:
                self.connection.close()
            except Exception as e:
                logger.warning(f"Error closing connection for {self.name}: {e}")
            finally:
                self.connection = None

    @abstractmethod
    def connect(self) -> None:
        """
        Authenticate against the API and populate auth_headers.

        Raises:
            RemoteAuthenticationError: If the credentials are rejected
        """
        pass

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close_connection()

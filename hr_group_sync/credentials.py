"""
Google OAuth credential store and authorization flow.

The token obtained from an operator is stored as authorized-user JSON and
reused on later runs. When it is missing or unusable, an installed-app flow
is run: either the console flow (print a URL, read back a one-time code) or
a local redirect server.
"""

import os
import logging
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlparse, parse_qs

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

logger = logging.getLogger(__name__)

# If modifying these scopes, delete the token file.
SCOPES = [
    'https://www.googleapis.com/auth/admin.directory.user',
    'https://www.googleapis.com/auth/admin.directory.group',
]

DEFAULT_REDIRECT_URI = 'http://localhost'


class AuthError(Exception):
    """Raised when no usable Google authorization can be obtained."""
    pass


class TokenStore:
    """Reads and writes the serialized OAuth token."""

    def __init__(self, path: str, scopes=None):
        self.path = path
        self.scopes = scopes or SCOPES

    def load(self) -> Optional[Credentials]:
        """
        Load stored credentials.

        Returns:
            Credentials, or None when the file is missing or not a valid token
        """
        if not os.path.exists(self.path):
            logger.debug(f"No stored token at {self.path}")
            return None

        try:
            return Credentials.from_authorized_user_file(self.path, self.scopes)
        except (ValueError, OSError) as e:
            logger.warning(f"Ignoring unusable token file {self.path}: {e}")
            return None

    def save(self, credentials: Credentials) -> bool:
        """
        Persist credentials for future runs.

        Returns:
            True if the token was written
        """
        try:
            directory = os.path.dirname(self.path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, 'w') as f:
                f.write(credentials.to_json())
        except OSError as e:
            logger.warning(f"Token not stored to {self.path}: {e}")
            return False

        logger.info(f"Token stored to {self.path}")
        return True


def _extract_code(answer: str) -> str:
    """Accept either the bare code or the full redirect URL pasted back."""
    answer = answer.strip()
    if answer.startswith(('http://', 'https://')):
        codes = parse_qs(urlparse(answer).query).get('code')
        if codes:
            return codes[0]
    return answer


def run_console_flow(
    flow: InstalledAppFlow,
    prompt: Callable[[str], str] = input,
    output: Callable[[str], None] = print
) -> Credentials:
    """
    Out-of-band authorization: show the consent URL and exchange the code
    the operator pastes back.
    """
    redirect_uris = flow.client_config.get('redirect_uris') or []
    flow.redirect_uri = redirect_uris[0] if redirect_uris else DEFAULT_REDIRECT_URI

    auth_url, _ = flow.authorization_url(access_type='offline', prompt='consent')
    output(f"Authorize this app by visiting this url: {auth_url}")

    try:
        code = _extract_code(prompt('Enter the code from that page here: '))
    except EOFError:
        raise AuthError("Authorization required but no operator input is available")

    if not code:
        raise AuthError("No authorization code entered")

    flow.fetch_token(code=code)
    return flow.credentials


def obtain_authorized_session(
    config: Dict[str, Any],
    prompt: Callable[[str], str] = input,
    output: Callable[[str], None] = print
) -> Credentials:
    """
    Produce valid Google credentials for the Directory API.

    Args:
        config: The google configuration section (credentials_file,
            token_file, auth_flow)
        prompt: Reads the operator's answer in the console flow
        output: Shows the consent URL in the console flow

    Returns:
        Valid credentials

    Raises:
        AuthError: If the client secrets cannot be loaded or the
            authorization exchange fails
    """
    store = TokenStore(config.get('token_file', 'token.json'))
    credentials = store.load()

    if credentials and credentials.valid:
        logger.debug("Using stored Google token")
        return credentials

    if credentials and credentials.refresh_token:
        try:
            credentials.refresh(Request())
            logger.info("Refreshed stored Google token")
            store.save(credentials)
            return credentials
        except RefreshError as e:
            logger.warning(f"Stored Google token could not be refreshed, re-authorizing: {e}")

    credentials_file = config.get('credentials_file', 'credentials.json')
    try:
        flow = InstalledAppFlow.from_client_secrets_file(credentials_file, scopes=SCOPES)
    except (OSError, ValueError) as e:
        raise AuthError(f"Error loading client secret file {credentials_file}: {e}")

    try:
        if config.get('auth_flow', 'console') == 'local_server':
            credentials = flow.run_local_server(port=0)
        else:
            credentials = run_console_flow(flow, prompt=prompt, output=output)
    except AuthError:
        raise
    except Exception as e:
        # fetch_token raises oauthlib's OAuth2Error hierarchy as well as GoogleAuthError
        raise AuthError(f"Error retrieving access token: {e}")

    store.save(credentials)
    return credentials

"""
Google Workspace group membership client.

Thin wrapper around the Admin SDK Directory API (directory_v1) exposing the
four operations the sync needs: ensure the group exists, list its members,
add a member and remove a member.

Ref: https://developers.google.com/admin-sdk/directory/reference/rest/v1/members
"""

import logging
from typing import Any, Dict, Iterator, Optional

import httplib2
from google.auth.exceptions import TransportError
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from hr_group_sync.models import GroupMember, ROLE_MEMBER
from .base import RemoteError

logger = logging.getLogger(__name__)

PAGE_SIZE = 200

# Failures of a single page request, as opposed to programming errors
PAGE_FETCH_ERRORS = (HttpError, TransportError, httplib2.HttpLib2Error, OSError)


def _http_status(error: Exception) -> Optional[int]:
    status = getattr(error, 'status_code', None)
    if status is None and getattr(error, 'resp', None) is not None:
        status = getattr(error.resp, 'status', None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def build_directory_service(credentials):
    """Build an authenticated Directory API service resource."""
    return build('admin', 'directory_v1', credentials=credentials, cache_discovery=False)


class GroupDirectoryClient:
    """
    Directory API client for a single Google group.

    Args:
        service: Directory API resource, as returned by build_directory_service
        strict_listing: Raise on a failed member page instead of ending the listing
        page_size: Members requested per page
    """

    def __init__(self, service, strict_listing: bool = False, page_size: int = PAGE_SIZE):
        self.service = service
        self.strict_listing = strict_listing
        self.page_size = page_size

    @classmethod
    def from_credentials(cls, credentials, **kwargs) -> 'GroupDirectoryClient':
        return cls(build_directory_service(credentials), **kwargs)

    def ensure_group_exists(self, group_email: str, name: str, description: str) -> bool:
        """
        Create the group unless it already exists.

        Returns:
            True if the group was created, False if it already existed

        Raises:
            RemoteError: On any failure other than "already exists"
        """
        body = {
            'email': group_email,
            'name': name,
            'description': description,
        }

        try:
            self.service.groups().insert(body=body).execute()
        except HttpError as e:
            if _http_status(e) == 409:
                logger.debug(f"Group {group_email} already exists")
                return False
            raise RemoteError(f"Failed to create group {group_email}: {e}", status_code=_http_status(e))

        logger.info(f"Created group {group_email} ({name})")
        return True

    def list_members(self, group_key: str) -> Iterator[GroupMember]:
        """
        Iterate over every member of the group, one page at a time.

        Pages are requested lazily and the listing ends when no next-page
        token is returned. When a page request fails, the listing ends with a
        warning unless the client is strict.

        Args:
            group_key: Group email address or unique id

        Yields:
            GroupMember for each entry, across all pages

        Raises:
            RemoteError: If a page fails and strict_listing is set
        """
        page_token = None
        page_number = 0

        while True:
            page_number += 1
            try:
                response = self.service.members().list(
                    groupKey=group_key,
                    maxResults=self.page_size,
                    pageToken=page_token,
                ).execute()
            except PAGE_FETCH_ERRORS as e:
                if self.strict_listing:
                    raise RemoteError(
                        f"Failed to list members of {group_key} (page {page_number}): {e}",
                        status_code=_http_status(e)
                    )
                logger.warning(f"Member listing for {group_key} stopped at page {page_number}: {e}. "
                               "Treating remaining members as absent")
                return

            for data in response.get('members', []):
                yield GroupMember.from_api(data)

            page_token = response.get('nextPageToken')
            if not page_token:
                logger.debug(f"Listed {page_number} member pages for {group_key}")
                return

    def add_member(self, group_key: str, email: str, role: str = ROLE_MEMBER) -> bool:
        """
        Add an email address to the group.

        Returns:
            True if added, False if the address was already a member

        Raises:
            RemoteError: On any other failure
        """
        body: Dict[str, Any] = {'email': email, 'role': role}

        try:
            self.service.members().insert(groupKey=group_key, body=body).execute()
        except HttpError as e:
            if _http_status(e) == 409:
                logger.warning(f"{email} is already a member of {group_key}, ignoring")
                return False
            raise RemoteError(f"Failed to add {email} to {group_key}: {e}", status_code=_http_status(e))

        return True

    def remove_member(self, group_key: str, email: str) -> bool:
        """
        Remove an email address from the group.

        Returns:
            True if removed, False if the address was no longer a member

        Raises:
            RemoteError: On any other failure
        """
        try:
            self.service.members().delete(groupKey=group_key, memberKey=email).execute()
        except HttpError as e:
            if _http_status(e) == 404:
                logger.warning(f"{email} is no longer a member of {group_key}, ignoring")
                return False
            raise RemoteError(f"Failed to remove {email} from {group_key}: {e}", status_code=_http_status(e))

        return True

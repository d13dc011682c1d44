"""
Value types shared by the HR client, the directory client and the reconciler.

All of them are immutable snapshots that live for a single sync run.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

STATUS_ACTIVE = 'ACTIVE'
TYPE_USER = 'USER'
ROLE_MEMBER = 'MEMBER'


def normalize_email(value: Optional[str]) -> str:
    """Canonical form used for every email identity comparison."""
    return (value or '').strip().lower()


@dataclass(frozen=True)
class EmployeeRecord:
    """One row of the HR employee report."""

    email: str
    fields: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def normalized_email(self) -> str:
        return normalize_email(self.email)

    @classmethod
    def from_row(cls, row: Dict[str, Any], email_field: str) -> Optional['EmployeeRecord']:
        """
        Build a record from a report row.

        Args:
            row: Report row keyed by column header
            email_field: Column header holding the email address

        Returns:
            EmployeeRecord, or None when the row has no usable email
        """
        value = row.get(email_field)
        if value is None or not str(value).strip():
            return None
        return cls(email=str(value).strip(), fields=MappingProxyType(dict(row)))


@dataclass(frozen=True)
class GroupMember:
    """One entry from a group member listing."""

    email: str
    status: Optional[str] = None
    member_type: Optional[str] = None
    role: Optional[str] = None
    member_id: Optional[str] = None

    @property
    def normalized_email(self) -> str:
        return normalize_email(self.email)

    @property
    def is_active_user(self) -> bool:
        return self.status == STATUS_ACTIVE and self.member_type == TYPE_USER

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'GroupMember':
        """Build a member from a Directory API members resource."""
        return cls(
            email=data.get('email', ''),
            status=data.get('status'),
            member_type=data.get('type'),
            role=data.get('role'),
            member_id=data.get('id'),
        )


@dataclass(frozen=True)
class ReconciliationPlan:
    """Membership changes that make the group match the employee report."""

    to_remove: Tuple[str, ...] = ()
    to_add: Tuple[EmployeeRecord, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.to_remove and not self.to_add

    def summary(self) -> str:
        return f"{len(self.to_remove)} to remove, {len(self.to_add)} to add"

"""
Membership reconciliation between the employee report and a group.

Everything in this module is pure: it takes snapshots in and returns a
ReconciliationPlan out. Executing the plan is the orchestrator's job.
"""

import logging
from typing import Any, Dict, Iterable, List

from hr_group_sync.models import (
    EmployeeRecord,
    GroupMember,
    ReconciliationPlan,
    normalize_email,
)

__all__ = ['employees_from_rows', 'normalize_email', 'reconcile']

logger = logging.getLogger(__name__)


def employees_from_rows(rows: Iterable[Dict[str, Any]], email_field: str) -> List[EmployeeRecord]:
    """
    Convert report rows into employee records.

    Args:
        rows: Report rows keyed by column header
        email_field: Column header holding the email address; treated as an
            opaque key, never assumed to be "email"

    Returns:
        List of EmployeeRecord in report order. Rows without an email are skipped.
    """
    employees = []
    skipped = 0

    for index, row in enumerate(rows):
        record = EmployeeRecord.from_row(row, email_field)
        if record is None:
            skipped += 1
            logger.warning(f"Report row {index + 1} has no value for column '{email_field}', skipping")
            continue
        employees.append(record)

    if skipped:
        logger.warning(f"Skipped {skipped} report rows without an email address")

    return employees


def reconcile(employees: Iterable[EmployeeRecord], members: Iterable[GroupMember]) -> ReconciliationPlan:
    """
    Compute the membership changes needed to make the group match the report.

    Only ACTIVE members of type USER take part. Nested groups, suspended or
    pending members are neither removed nor treated as present. Emails are
    compared in normalized form and duplicates on either side collapse to the
    first occurrence.

    Args:
        employees: Active employees from the HR report
        members: Current group members, from any number of listing pages

    Returns:
        ReconciliationPlan with emails to remove and employees to add
    """
    employee_by_email: Dict[str, EmployeeRecord] = {}
    for employee in employees:
        key = employee.normalized_email
        if key and key not in employee_by_email:
            employee_by_email[key] = employee

    member_by_email: Dict[str, GroupMember] = {}
    for member in members:
        if not member.is_active_user:
            continue
        key = member.normalized_email
        if key and key not in member_by_email:
            member_by_email[key] = member

    to_remove = tuple(
        member.email for key, member in member_by_email.items()
        if key not in employee_by_email
    )
    to_add = tuple(
        employee for key, employee in employee_by_email.items()
        if key not in member_by_email
    )

    plan = ReconciliationPlan(to_remove=to_remove, to_add=to_add)
    logger.debug(f"Reconciled {len(employee_by_email)} employees against "
                 f"{len(member_by_email)} active members: {plan.summary()}")
    return plan

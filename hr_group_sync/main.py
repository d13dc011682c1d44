"""
Main orchestrator for HR Group Sync.

Runs one full synchronization: authorize against Google, fetch the employee
report from OnePoint, make sure the target group exists, list its members,
reconcile, then apply removals and additions at a paced rate. Any fatal
error aborts the run with exit code 1; changes already applied are kept.
"""

import sys
import logging
from datetime import datetime
from typing import Dict, Any, List, Optional, Sequence

from hr_group_sync.config import load_config, ConfigurationError
from hr_group_sync.credentials import obtain_authorized_session, AuthError
from hr_group_sync.clients.base import RemoteError
from hr_group_sync.clients.onepoint import OnePointClient
from hr_group_sync.clients.google_directory import GroupDirectoryClient
from hr_group_sync.logging_setup import setup_logging
from hr_group_sync.models import EmployeeRecord, GroupMember
from hr_group_sync.notifications import send_failure_notification, send_success_summary
from hr_group_sync.pacing import Pacer, pacer_from_config
from hr_group_sync.reconciler import employees_from_rows, reconcile

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1


class SyncError(Exception):
    """Raised when a sync run is refused before any change is applied."""
    pass


class SyncOrchestrator:
    """
    Main orchestrator for the employee report to group synchronization.

    Each stage takes the outputs of the previous stages as arguments and
    returns its own outputs; sync_stats only records counters for the summary.
    """

    def __init__(self, config_path: Optional[str] = None, dry_run: bool = False,
                 prompt=input):
        """
        Initialize sync orchestrator.

        Args:
            config_path: Path to configuration file
            dry_run: Compute and log the plan without changing the group
            prompt: Reads the authorization code during an interactive login
        """
        self.config_path = config_path
        self.dry_run = dry_run
        self.prompt = prompt
        self.config: Optional[Dict[str, Any]] = None

        self.sync_stats = {
            'group': None,
            'dry_run': dry_run,
            'employees': 0,
            'active_members': 0,
            'members_removed': 0,
            'members_added': 0,
            'start_time': None,
            'end_time': None,
            'runtime_seconds': 0,
        }

    def run(self) -> int:
        """
        Run the complete synchronization process.

        Returns:
            Exit code (0 for success, 1 for any failure)
        """
        stage = 'configuration'
        self.sync_stats['start_time'] = datetime.now()

        try:
            self.config = self._load_configuration()
            self.dry_run = self.dry_run or bool(self.config['sync'].get('dry_run'))
            self.sync_stats['dry_run'] = self.dry_run
            setup_logging(self.config['logging'])

            group_config = self.config['group']
            group_email = group_config['email']
            self.sync_stats['group'] = group_email

            logger.info(f"Starting HR Group Sync for {group_email}"
                        f"{' (dry run)' if self.dry_run else ''}")

            stage = 'authorization'
            credentials = obtain_authorized_session(self.config['google'], prompt=self.prompt)

            stage = 'employee report'
            employees = self._fetch_employees(self.config['onepoint'])
            self.sync_stats['employees'] = len(employees)
            self._check_report_size(employees)

            stage = 'group setup'
            directory = GroupDirectoryClient.from_credentials(
                credentials,
                strict_listing=bool(self.config['sync']['strict_member_listing'])
            )
            self._ensure_group(directory, group_config)

            stage = 'member listing'
            members = self._list_members(directory, group_email)
            self.sync_stats['active_members'] = len(
                {member.normalized_email for member in members if member.is_active_user}
            )

            stage = 'reconciliation'
            plan = reconcile(employees, members)
            logger.info(f"Reconciliation plan for {group_email}: {plan.summary()}")

            pacer = pacer_from_config(self.config['sync'])

            stage = 'removals'
            self._execute_removals(directory, group_email, plan.to_remove, pacer)

            stage = 'additions'
            self._execute_additions(
                directory, group_email, plan.to_add, pacer, group_config['member_role']
            )

            self._finish_timing()
            self._log_sync_summary()
            self._send_success_notification()

            logger.info("Sync completed successfully")
            return EXIT_SUCCESS

        except ConfigurationError as e:
            logger.error(f"Configuration error: {e}")
            return EXIT_FAILURE
        except (AuthError, RemoteError, SyncError) as e:
            self._finish_timing()
            logger.error(f"Sync failed during {stage}: {e}")
            self._send_failure_notification(stage, str(e))
            return EXIT_FAILURE
        except Exception as e:
            self._finish_timing()
            logger.error(f"Unexpected error during {stage}: {e}", exc_info=True)
            self._send_failure_notification(stage, f"Unexpected error: {e}")
            return EXIT_FAILURE

    def _load_configuration(self) -> Dict[str, Any]:
        """Load and validate configuration."""
        try:
            return load_config(self.config_path)
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {e}")

    def _fetch_employees(self, onepoint_config: Dict[str, Any]) -> List[EmployeeRecord]:
        """Run the saved employee report and convert it to records."""
        report_name = onepoint_config['report_name']

        with OnePointClient(onepoint_config) as client:
            client.connect()
            rows = client.run_report(report_name)

        employees = employees_from_rows(rows, onepoint_config['email_field'])
        logger.info(f"Report '{report_name}' lists {len(employees)} active employees")
        return employees

    def _ensure_group(self, directory: GroupDirectoryClient, group_config: Dict[str, Any]) -> None:
        if self.dry_run:
            logger.info(f"Dry run: not creating group {group_config['email']}")
            return

        directory.ensure_group_exists(
            group_config['email'],
            group_config['name'],
            group_config['description']
        )

    def _list_members(self, directory: GroupDirectoryClient, group_email: str) -> List[GroupMember]:
        members = list(directory.list_members(group_email))
        logger.info(f"Group {group_email} has {len(members)} members")
        return members

    def _check_report_size(self, employees: Sequence[EmployeeRecord]) -> None:
        """
        Refuse to sync against a suspiciously small report.

        Runs before the group is created or touched.

        Raises:
            SyncError: If the report has fewer employees than sync.min_employees
        """
        min_employees = self.config['sync']['min_employees']
        if len(employees) < min_employees:
            raise SyncError(
                f"Employee report returned {len(employees)} employees, fewer than the "
                f"configured minimum of {min_employees}; refusing to change the group"
            )

    def _execute_removals(self, directory: GroupDirectoryClient, group_email: str,
                          emails: Sequence[str], pacer: Pacer) -> None:
        """Remove members that are no longer active employees."""
        for email in emails:
            logger.info(f"Removing terminated employee: {email}")
            if self.dry_run:
                continue
            if pacer.call(directory.remove_member, group_email, email):
                self.sync_stats['members_removed'] += 1

    def _execute_additions(self, directory: GroupDirectoryClient, group_email: str,
                           employees: Sequence[EmployeeRecord], pacer: Pacer,
                           role: str) -> None:
        """Add active employees that are not yet members, in report order."""
        for employee in employees:
            logger.info(f"Adding active employee: {employee.email}")
            if self.dry_run:
                continue
            if pacer.call(directory.add_member, group_email, employee.email, role):
                self.sync_stats['members_added'] += 1

    def _finish_timing(self):
        self.sync_stats['end_time'] = datetime.now()
        self.sync_stats['runtime_seconds'] = (
            self.sync_stats['end_time'] - self.sync_stats['start_time']
        ).total_seconds()

    def _send_failure_notification(self, stage: str, error_message: str):
        """Send email notification for failures."""
        if not self.config:
            return
        try:
            send_failure_notification(stage, error_message, self.config['notifications'], self.sync_stats)
        except Exception as e:
            logger.error(f"Failed to send failure notification: {e}")

    def _send_success_notification(self):
        """Send email notification for successful sync."""
        try:
            send_success_summary(self.sync_stats, self.config['notifications'])
        except Exception as e:
            logger.error(f"Failed to send success notification: {e}")

    def _log_sync_summary(self):
        """Log final synchronization statistics."""
        stats = self.sync_stats

        logger.info("=== Sync Summary ===")
        logger.info(f"Group: {stats['group']}{' (dry run)' if stats['dry_run'] else ''}")
        logger.info(f"Total runtime: {stats['runtime_seconds']:.2f} seconds")
        logger.info(f"Employees in report: {stats['employees']}")
        logger.info(f"Active members before sync: {stats['active_members']}")
        logger.info(f"Members removed: {stats['members_removed']}")
        logger.info(f"Members added: {stats['members_added']}")


def main(argv: Optional[Sequence[str]] = None):
    """Main entry point for the application."""
    import argparse

    parser = argparse.ArgumentParser(
        description='Sync a Google group with the active employees of a OnePoint HCM report'
    )
    parser.add_argument('--config', '-c', help='Path to configuration file')
    parser.add_argument('--dry-run', action='store_true',
                        help='Log the membership changes without applying them')

    args = parser.parse_args(argv)

    orchestrator = SyncOrchestrator(config_path=args.config, dry_run=args.dry_run)
    sys.exit(orchestrator.run())


if __name__ == "__main__":
    main()

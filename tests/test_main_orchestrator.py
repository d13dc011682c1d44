#!/usr/bin/env python3
"""
Unit tests for the sync orchestrator.

All remote systems are mocked; these tests check stage ordering, the
dispatch of membership changes and exit codes.
"""

import copy
import unittest
from unittest.mock import Mock, MagicMock, patch, call
import sys
import os

# Add parent directory to path to import hr_group_sync modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from hr_group_sync.clients.base import RemoteError, RemoteAuthenticationError
from hr_group_sync.config import ConfigurationError
from hr_group_sync.credentials import AuthError
from hr_group_sync.main import SyncOrchestrator, EXIT_SUCCESS, EXIT_FAILURE, main
from hr_group_sync.models import GroupMember


BASE_CONFIG = {
    'onepoint': {
        'base_url': 'https://secure.onehcm.com',
        'username': 'sync-service',
        'password': 'hr-secret',
        'company_short_name': 'ACME',
        'api_key': 'key-123',
        'report_name': 'Employee Emails',
        'email_field': 'Email',
        'timeout': 30.0,
        'verify_ssl': True,
    },
    'google': {
        'credentials_file': 'credentials.json',
        'token_file': 'token.json',
        'auth_flow': 'console',
    },
    'group': {
        'email': 'everyone@x.com',
        'name': 'Everyone',
        'description': 'All staff',
        'member_role': 'MEMBER',
    },
    'sync': {
        'pace_seconds': 0.0,
        'min_employees': 1,
        'strict_member_listing': False,
        'dry_run': False,
    },
    'logging': {'level': 'INFO', 'console_output': False},
    'notifications': {'enable_email': False},
}


def member(email, status='ACTIVE', member_type='USER'):
    return GroupMember(email=email, status=status, member_type=member_type, role='MEMBER')


class TestSyncOrchestrator(unittest.TestCase):
    """Test cases for SyncOrchestrator."""

    def setUp(self):
        self.config = copy.deepcopy(BASE_CONFIG)

        patchers = {
            'load_config': patch('hr_group_sync.main.load_config', return_value=self.config),
            'setup_logging': patch('hr_group_sync.main.setup_logging'),
            'authorize': patch('hr_group_sync.main.obtain_authorized_session'),
            'onepoint': patch('hr_group_sync.main.OnePointClient'),
            'directory': patch('hr_group_sync.main.GroupDirectoryClient'),
            'notify_failure': patch('hr_group_sync.main.send_failure_notification'),
            'notify_success': patch('hr_group_sync.main.send_success_summary'),
        }
        self.mocks = {}
        for name, patcher in patchers.items():
            self.mocks[name] = patcher.start()
            self.addCleanup(patcher.stop)

        self.hr_client = MagicMock()
        self.mocks['onepoint'].return_value.__enter__.return_value = self.hr_client
        self.hr_client.run_report.return_value = [{'Email': 'a@x.com'}, {'Email': 'b@x.com'}]

        self.directory = Mock()
        self.mocks['directory'].from_credentials.return_value = self.directory
        self.directory.list_members.return_value = iter([member('a@x.com'), member('c@x.com')])
        self.directory.add_member.return_value = True
        self.directory.remove_member.return_value = True

    def test_successful_sync(self):
        """One stale member removed, one new employee added."""
        orchestrator = SyncOrchestrator()

        self.assertEqual(orchestrator.run(), EXIT_SUCCESS)

        self.directory.ensure_group_exists.assert_called_once_with('everyone@x.com', 'Everyone', 'All staff')
        self.directory.remove_member.assert_called_once_with('everyone@x.com', 'c@x.com')
        self.directory.add_member.assert_called_once_with('everyone@x.com', 'b@x.com', 'MEMBER')
        self.hr_client.connect.assert_called_once()
        self.hr_client.run_report.assert_called_once_with('Employee Emails')

        stats = orchestrator.sync_stats
        self.assertEqual(stats['employees'], 2)
        self.assertEqual(stats['active_members'], 2)
        self.assertEqual(stats['members_removed'], 1)
        self.assertEqual(stats['members_added'], 1)
        self.mocks['notify_success'].assert_called_once()
        self.mocks['notify_failure'].assert_not_called()

    def test_removals_happen_before_additions(self):
        calls = Mock()
        calls.remove.return_value = True
        calls.add.return_value = True
        self.directory.remove_member = calls.remove
        self.directory.add_member = calls.add
        self.hr_client.run_report.return_value = [{'Email': 'b@x.com'}, {'Email': 'd@x.com'}]
        self.directory.list_members.return_value = iter([member('a@x.com'), member('c@x.com')])

        SyncOrchestrator().run()

        self.assertEqual(calls.mock_calls, [
            call.remove('everyone@x.com', 'a@x.com'),
            call.remove('everyone@x.com', 'c@x.com'),
            call.add('everyone@x.com', 'b@x.com', 'MEMBER'),
            call.add('everyone@x.com', 'd@x.com', 'MEMBER'),
        ])

    def test_nested_groups_and_suspended_members_untouched(self):
        self.hr_client.run_report.return_value = [{'Email': 'a@x.com'}]
        self.directory.list_members.return_value = iter([
            member('a@x.com'),
            member('team@x.com', member_type='GROUP'),
            member('old@x.com', status='SUSPENDED'),
        ])

        self.assertEqual(SyncOrchestrator().run(), EXIT_SUCCESS)

        self.directory.remove_member.assert_not_called()
        self.directory.add_member.assert_not_called()

    def test_member_listing_uses_strict_flag(self):
        self.config['sync']['strict_member_listing'] = True

        SyncOrchestrator().run()

        self.mocks['directory'].from_credentials.assert_called_once_with(
            self.mocks['authorize'].return_value, strict_listing=True
        )

    def test_empty_report_is_refused(self):
        """An empty report must not purge the group by default."""
        self.hr_client.run_report.return_value = []

        self.assertEqual(SyncOrchestrator().run(), EXIT_FAILURE)

        self.mocks['directory'].from_credentials.assert_not_called()
        self.directory.ensure_group_exists.assert_not_called()
        self.directory.list_members.assert_not_called()
        self.directory.remove_member.assert_not_called()
        self.directory.add_member.assert_not_called()
        self.mocks['notify_failure'].assert_called_once()
        self.assertEqual(self.mocks['notify_failure'].call_args[0][0], 'employee report')

    def test_report_below_minimum_is_refused(self):
        self.config['sync']['min_employees'] = 3

        self.assertEqual(SyncOrchestrator().run(), EXIT_FAILURE)

        self.directory.ensure_group_exists.assert_not_called()

    def test_empty_report_purges_when_allowed(self):
        self.config['sync']['min_employees'] = 0
        self.hr_client.run_report.return_value = []

        self.assertEqual(SyncOrchestrator().run(), EXIT_SUCCESS)

        self.assertEqual(self.directory.remove_member.call_count, 2)

    def test_dry_run_makes_no_changes(self):
        orchestrator = SyncOrchestrator(dry_run=True)

        with self.assertLogs('hr_group_sync.main', level='INFO') as logs:
            self.assertEqual(orchestrator.run(), EXIT_SUCCESS)

        self.directory.ensure_group_exists.assert_not_called()
        self.directory.remove_member.assert_not_called()
        self.directory.add_member.assert_not_called()
        output = '\n'.join(logs.output)
        self.assertIn('Removing terminated employee: c@x.com', output)
        self.assertIn('Adding active employee: b@x.com', output)

    def test_dry_run_from_config(self):
        self.config['sync']['dry_run'] = True

        orchestrator = SyncOrchestrator()
        orchestrator.run()

        self.assertTrue(orchestrator.sync_stats['dry_run'])
        self.directory.remove_member.assert_not_called()

    def test_tolerated_conflicts_are_not_counted(self):
        self.directory.add_member.return_value = False
        self.directory.remove_member.return_value = False

        orchestrator = SyncOrchestrator()

        self.assertEqual(orchestrator.run(), EXIT_SUCCESS)
        self.assertEqual(orchestrator.sync_stats['members_added'], 0)
        self.assertEqual(orchestrator.sync_stats['members_removed'], 0)

    def test_configuration_error(self):
        self.mocks['load_config'].side_effect = ConfigurationError('Missing required field: group.email')

        self.assertEqual(SyncOrchestrator().run(), EXIT_FAILURE)

        self.mocks['authorize'].assert_not_called()
        self.mocks['notify_failure'].assert_not_called()

    def test_authorization_failure(self):
        self.mocks['authorize'].side_effect = AuthError('Error loading client secret file')

        self.assertEqual(SyncOrchestrator().run(), EXIT_FAILURE)

        self.mocks['onepoint'].assert_not_called()
        self.assertEqual(self.mocks['notify_failure'].call_args[0][0], 'authorization')

    def test_report_failure_leaves_group_untouched(self):
        self.hr_client.run_report.side_effect = RemoteError("Saved report 'Employee Emails' not found")

        self.assertEqual(SyncOrchestrator().run(), EXIT_FAILURE)

        self.mocks['directory'].from_credentials.assert_not_called()

    def test_hr_login_failure(self):
        self.hr_client.connect.side_effect = RemoteAuthenticationError('HTTP 401')

        self.assertEqual(SyncOrchestrator().run(), EXIT_FAILURE)

        self.hr_client.run_report.assert_not_called()

    def test_group_creation_failure(self):
        self.directory.ensure_group_exists.side_effect = RemoteError('HTTP 403', status_code=403)

        self.assertEqual(SyncOrchestrator().run(), EXIT_FAILURE)

        self.directory.list_members.assert_not_called()

    def test_removal_failure_reports_completed_removals(self):
        self.hr_client.run_report.return_value = [{'Email': 'a@x.com'}]
        self.directory.list_members.return_value = iter([
            member('a@x.com'), member('c@x.com'), member('d@x.com'), member('e@x.com'),
        ])
        self.directory.remove_member.side_effect = [True, True, RemoteError('HTTP 503', status_code=503)]

        orchestrator = SyncOrchestrator()

        self.assertEqual(orchestrator.run(), EXIT_FAILURE)
        self.assertEqual(self.directory.remove_member.call_count, 3)
        self.assertEqual(orchestrator.sync_stats['members_removed'], 2)
        stage, _, _, stats = self.mocks['notify_failure'].call_args[0]
        self.assertEqual(stage, 'removals')
        self.assertEqual(stats['members_removed'], 2)
        self.assertEqual(stats['members_added'], 0)

    def test_active_member_count_ignores_duplicates(self):
        self.directory.list_members.return_value = iter([
            member('a@x.com'), member('A@x.com '), member('c@x.com'),
            member('team@x.com', member_type='GROUP'),
        ])

        orchestrator = SyncOrchestrator()
        orchestrator.run()

        self.assertEqual(orchestrator.sync_stats['active_members'], 2)

    def test_add_failure_keeps_earlier_removals(self):
        self.directory.add_member.side_effect = RemoteError('HTTP 400', status_code=400)

        orchestrator = SyncOrchestrator()

        self.assertEqual(orchestrator.run(), EXIT_FAILURE)
        self.directory.remove_member.assert_called_once_with('everyone@x.com', 'c@x.com')
        self.assertEqual(orchestrator.sync_stats['members_removed'], 1)
        self.assertEqual(self.mocks['notify_failure'].call_args[0][0], 'additions')

    def test_unexpected_error(self):
        self.directory.list_members.side_effect = KeyError('members')

        self.assertEqual(SyncOrchestrator().run(), EXIT_FAILURE)

        self.directory.add_member.assert_not_called()

    def test_pacing_between_dispatches(self):
        self.config['sync']['pace_seconds'] = 0.25
        self.hr_client.run_report.return_value = [{'Email': 'a@x.com'}, {'Email': 'b@x.com'}, {'Email': 'd@x.com'}]

        with patch('hr_group_sync.main.pacer_from_config') as mock_pacer_factory:
            pacer = mock_pacer_factory.return_value
            pacer.call.side_effect = lambda func, *args, **kwargs: func(*args, **kwargs)
            SyncOrchestrator().run()

        mock_pacer_factory.assert_called_once_with(self.config['sync'])
        self.assertEqual(pacer.call.call_count, 3)


class TestMain(unittest.TestCase):
    """Test cases for the command line entry point."""

    @patch('hr_group_sync.main.SyncOrchestrator')
    def test_exit_code_is_propagated(self, mock_orchestrator_class):
        mock_orchestrator_class.return_value.run.return_value = EXIT_FAILURE

        with self.assertRaises(SystemExit) as context:
            main([])

        self.assertEqual(context.exception.code, EXIT_FAILURE)
        mock_orchestrator_class.assert_called_once_with(config_path=None, dry_run=False)

    @patch('hr_group_sync.main.SyncOrchestrator')
    def test_arguments(self, mock_orchestrator_class):
        mock_orchestrator_class.return_value.run.return_value = EXIT_SUCCESS

        with self.assertRaises(SystemExit) as context:
            main(['--config', 'sync.yaml', '--dry-run'])

        self.assertEqual(context.exception.code, EXIT_SUCCESS)
        mock_orchestrator_class.assert_called_once_with(config_path='sync.yaml', dry_run=True)


if __name__ == '__main__':
    unittest.main()

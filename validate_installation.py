#!/usr/bin/env python3
"""
Validation script for HR Group Sync.

Checks that the Google and OnePoint client dependencies import, that every
application module loads, and that the offline parts of a sync (report
parsing and reconciliation) behave as expected. No remote service is contacted.
"""

import sys
import importlib


def check_dependency(package_name, import_name=None):
    """Check if a package/module can be imported."""
    if import_name is None:
        import_name = package_name

    try:
        importlib.import_module(import_name)
        return True, f"✓ {package_name} available"
    except ImportError as e:
        return False, f"✗ {package_name} missing: {e}"


def validate_dependencies():
    """Validate all required dependencies."""
    print("=== Dependency Validation ===")

    dependencies = [
        ("PyYAML", "yaml"),
        ("python-dotenv", "dotenv"),
        ("google-api-python-client", "googleapiclient.discovery"),
        ("google-auth", "google.oauth2.credentials"),
        ("google-auth-oauthlib", "google_auth_oauthlib.flow"),
        ("requests", "requests"),
    ]

    all_ok = True
    for pkg_name, import_name in dependencies:
        ok, message = check_dependency(pkg_name, import_name)
        print(f"  {message}")
        if not ok:
            all_ok = False

    print("\n  Test dependencies:")
    ok, message = check_dependency("pytest")
    print(f"  {message}")

    return all_ok


def validate_core_modules():
    """Validate core application modules."""
    print("\n=== Core Module Validation ===")

    modules = [
        "hr_group_sync.config",
        "hr_group_sync.credentials",
        "hr_group_sync.logging_setup",
        "hr_group_sync.main",
        "hr_group_sync.models",
        "hr_group_sync.notifications",
        "hr_group_sync.pacing",
        "hr_group_sync.reconciler",
        "hr_group_sync.clients.base",
        "hr_group_sync.clients.onepoint",
        "hr_group_sync.clients.google_directory",
    ]

    all_ok = True
    for module in modules:
        ok, message = check_dependency(module, module)
        print(f"  {message}")
        if not ok:
            all_ok = False

    return all_ok


def validate_functionality():
    """Run the offline half of a sync against sample data."""
    print("\n=== Functionality Validation ===")

    try:
        from hr_group_sync.clients.onepoint import parse_csv_report
        rows = parse_csv_report('Email,Name\nA@example.com,Alice\nb@example.com,Bob\n')
        print("  ✓ Report parsing")

        from hr_group_sync.models import GroupMember
        from hr_group_sync.reconciler import employees_from_rows, reconcile
        members = [
            GroupMember(email='a@example.com', status='ACTIVE', member_type='USER'),
            GroupMember(email='c@example.com', status='ACTIVE', member_type='USER'),
        ]
        plan = reconcile(employees_from_rows(rows, 'Email'), members)
        if plan.to_remove != ('c@example.com',) or [e.email for e in plan.to_add] != ['b@example.com']:
            print(f"  ✗ Reconciliation returned an unexpected plan: {plan.summary()}")
            return False
        print("  ✓ Reconciliation")

        from hr_group_sync.pacing import Pacer
        Pacer(0).call(lambda: None)
        print("  ✓ Pacing")

        return True

    except Exception as e:
        print(f"  ✗ Functionality test failed: {e}")
        return False


def validate_cli():
    """Validate command-line interface."""
    print("\n=== CLI Validation ===")

    try:
        import subprocess

        result = subprocess.run([sys.executable, "-m", "hr_group_sync", "--help"],
                                capture_output=True, text=True)
        if result.returncode == 0 and '--dry-run' in result.stdout:
            print("  ✓ Help command working")
            return True

        print("  ✗ Help command failed")
        return False

    except Exception as e:
        print(f"  ✗ CLI validation failed: {e}")
        return False


def main():
    """Run all validations."""
    print("HR Group Sync - Installation Validation")
    print("=" * 50)

    all_validations = [
        validate_dependencies(),
        validate_core_modules(),
        validate_functionality(),
        validate_cli(),
    ]

    print("\n=== Summary ===")
    if all(all_validations):
        print("✓ All validations passed!")
        print("✓ HR Group Sync is ready for use")
        print("\nNext steps:")
        print("  1. Copy config.example.yaml to config.yaml and fill in the OnePoint settings")
        print("  2. Download the OAuth client secrets to credentials.json")
        print("  3. Preview the changes with: python -m hr_group_sync --dry-run")
        print("  4. Run sync: python -m hr_group_sync")
        return 0
    else:
        print("✗ Some validations failed!")
        print("Please resolve the issues above before using the application.")
        return 1


if __name__ == "__main__":
    sys.exit(main())

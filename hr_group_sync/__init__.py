"""
HR Group Sync - Keep a Google group in step with the active employees of an HR report.

This package fetches a saved employee report from OnePoint HCM, compares it
with the members of a Google Workspace group and adds or removes members so
that the group's active users match the report.
"""

__version__ = "1.0.0"

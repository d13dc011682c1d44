"""
Email notification utilities for HR Group Sync.

Sends plain-text reports over SMTP when a sync run fails or, optionally,
when it succeeds.
"""

import smtplib
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Dict, Any, Optional
from datetime import datetime

logger = logging.getLogger(__name__)

SUBJECT_PREFIX = 'HR Group Sync'


def send_email(subject: str, body: str, config: Dict[str, Any]) -> bool:
    """
    Send email notification using SMTP.

    Args:
        subject: Email subject line
        body: Email body content
        config: Notification configuration dictionary

    Returns:
        True if email sent successfully, False otherwise
    """
    if not config.get('enable_email', False):
        logger.debug("Email notifications disabled")
        return False

    smtp_server = config.get('smtp_server')
    smtp_port = int(config.get('smtp_port', 587))
    smtp_username = config.get('smtp_username')
    smtp_password = config.get('smtp_password')
    smtp_tls = config.get('smtp_tls', True)

    email_from = config.get('email_from', smtp_username)
    email_to = config.get('email_to', [])

    if not smtp_server:
        logger.error("SMTP server not configured")
        return False

    if isinstance(email_to, str):
        email_to = [address.strip() for address in email_to.split(',') if address.strip()]

    if not email_to:
        logger.error("No email recipients configured")
        return False

    msg = MIMEMultipart()
    msg['From'] = email_from or ''
    msg['To'] = ', '.join(email_to)
    msg['Subject'] = subject
    msg.attach(MIMEText(body, 'plain'))

    try:
        logger.debug(f"Sending email to {len(email_to)} recipients via {smtp_server}:{smtp_port}")

        if smtp_port == 465:
            server = smtplib.SMTP_SSL(smtp_server, smtp_port, timeout=30)
        else:
            server = smtplib.SMTP(smtp_server, smtp_port, timeout=30)
            if smtp_tls:
                server.starttls()

        try:
            if smtp_username and smtp_password:
                server.login(smtp_username, smtp_password)
            server.sendmail(email_from, email_to, msg.as_string())
        finally:
            server.quit()

        logger.info(f"Email notification sent: {subject}")
        return True

    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email notification: {e}")
        return False


def _format_runtime(runtime_seconds: float) -> str:
    if runtime_seconds > 60:
        minutes = int(runtime_seconds // 60)
        seconds = runtime_seconds % 60
        return f"{minutes}m {seconds:.1f}s"
    return f"{runtime_seconds:.2f} seconds"


def send_failure_notification(
    stage: str,
    error_message: str,
    config: Dict[str, Any],
    sync_stats: Optional[Dict[str, Any]] = None
) -> bool:
    """
    Send notification for a failed sync run.

    Args:
        stage: Pipeline stage that failed
        error_message: Error description
        config: Notification configuration
        sync_stats: Counters collected before the failure, if any

    Returns:
        True if notification sent successfully
    """
    if not config.get('email_on_failure', True):
        logger.debug("Failure email notifications disabled")
        return False

    timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
    subject = f"{SUBJECT_PREFIX} Alert: {stage} failed"

    body_lines = [
        f"{SUBJECT_PREFIX} Failure Report",
        f"Timestamp: {timestamp}",
        "",
        f"Failed stage: {stage}",
        f"Error: {error_message}",
        "",
    ]

    if sync_stats:
        body_lines.extend([
            "Changes applied before the failure (not rolled back):",
            f"  Members removed: {sync_stats.get('members_removed', 0)}",
            f"  Members added: {sync_stats.get('members_added', 0)}",
            "",
        ])

    body_lines.extend([
        "Please check the application logs for more detailed information.",
        "",
        f"This is an automated message from {SUBJECT_PREFIX}.",
    ])

    return send_email(subject, '\n'.join(body_lines), config)


def send_success_summary(sync_stats: Dict[str, Any], config: Dict[str, Any]) -> bool:
    """
    Send summary notification for a successful sync.

    Args:
        sync_stats: Dictionary containing sync statistics
        config: Notification configuration

    Returns:
        True if notification sent successfully
    """
    if not config.get('email_on_success', False):
        logger.debug("Success email notifications disabled")
        return False

    timestamp = datetime.now().strftime('%Y-%m-%d %H:%M:%S')
    subject = f"{SUBJECT_PREFIX}: {sync_stats.get('group', 'group')} synchronized"

    body_lines = [
        f"{SUBJECT_PREFIX} Summary Report",
        f"Timestamp: {timestamp}",
        "",
        f"Group: {sync_stats.get('group', 'unknown')}",
        f"Dry run: {'yes' if sync_stats.get('dry_run') else 'no'}",
        f"Total runtime: {_format_runtime(sync_stats.get('runtime_seconds', 0))}",
        f"Employees in report: {sync_stats.get('employees', 0)}",
        f"Active members before sync: {sync_stats.get('active_members', 0)}",
        f"Members removed: {sync_stats.get('members_removed', 0)}",
        f"Members added: {sync_stats.get('members_added', 0)}",
        "",
        f"This is an automated message from {SUBJECT_PREFIX}.",
    ]

    return send_email(subject, '\n'.join(body_lines), config)

"""
OnePoint HCM report client.

OnePoint HCM exposes the UKG Ready REST API. This client logs in with the
company credentials and API key, then runs a saved report and returns its
rows keyed by column header.
"""

import csv
import io
import logging
from typing import Dict, List, Any, Optional

from .base import RestClientBase, RemoteError, RemoteAuthenticationError

logger = logging.getLogger(__name__)

API_PREFIX = '/ta/rest/v1'


class OnePointClient(RestClientBase):
    """
    OnePoint HCM API client.

    Only the capabilities the sync needs are implemented: login and running a
    saved report by name.
    """

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize OnePoint client.

        Args:
            config: The onepoint configuration section
        """
        config = dict(config)
        config.setdefault('name', 'OnePoint')
        super().__init__(config)

        self.username = config['username']
        self.password = config['password']
        self.company_short_name = config['company_short_name']
        self.api_key = config['api_key']

    def _company_params(self, **extra) -> Dict[str, Any]:
        params = {'company:shortname': self.company_short_name}
        params.update(extra)
        return params

    def connect(self) -> None:
        """
        Log in and store the session token.

        Raises:
            RemoteAuthenticationError: If login is rejected or returns no token
            RemoteError: On any other failure
        """
        payload = {
            'credentials': {
                'username': self.username,
                'password': self.password,
                'company': self.company_short_name,
            }
        }

        logger.debug(f"Logging in to {self.name} as {self.username}")
        response = self.request(
            'POST',
            f'{API_PREFIX}/login',
            body=payload,
            headers={'Api-Key': self.api_key}
        )

        token = response.get('token') if isinstance(response, dict) else None
        if not token:
            raise RemoteAuthenticationError(f"Login to {self.name} returned no token")

        self.auth_headers = {
            'Api-Key': self.api_key,
            'Authentication': f'Bearer {token}',
        }
        self.authenticated = True
        logger.info(f"Connected to {self.name} for company {self.company_short_name}")

    def find_saved_report(self, report_name: str) -> Dict[str, Any]:
        """
        Look up a saved report by name.

        Args:
            report_name: Saved report name as shown in OnePoint

        Returns:
            Report descriptor dictionary (contains at least 'id')

        Raises:
            RemoteError: If no saved report has that name
        """
        response = self.request(
            'GET',
            f'{API_PREFIX}/reports',
            params=self._company_params(type='Saved')
        )

        reports = response.get('reports', []) if isinstance(response, dict) else []
        for report in reports:
            if report_name in (report.get('saved_name'), report.get('name')):
                return report

        raise RemoteError(f"Saved report '{report_name}' not found in {self.name}")

    def run_report(self, report_name: str) -> List[Dict[str, str]]:
        """
        Run a saved report and return its rows.

        Args:
            report_name: Saved report name

        Returns:
            List of row dictionaries keyed by column header, in report order

        Raises:
            RemoteError: If the report cannot be found or fetched
        """
        if not self.authenticated:
            self.connect()

        report = self.find_saved_report(report_name)
        report_id = report.get('id')
        if report_id is None:
            raise RemoteError(f"Saved report '{report_name}' has no id")

        logger.debug(f"Running saved report '{report_name}' (id {report_id})")
        content = self.request(
            'GET',
            f'{API_PREFIX}/report/saved/{report_id}',
            params=self._company_params(),
            accept='text/csv'
        )

        rows = parse_csv_report(content)
        logger.info(f"Report '{report_name}' returned {len(rows)} rows")
        return rows


def parse_csv_report(content: Optional[str]) -> List[Dict[str, str]]:
    """
    Parse a CSV report body into row dictionaries.

    Blank lines are ignored. Header cells are used verbatim as keys.

    Raises:
        RemoteError: If the body is not valid CSV
    """
    if not content or not content.strip():
        return []

    try:
        reader = csv.DictReader(io.StringIO(content))
        return [
            dict(row) for row in reader
            if any((value or '').strip() for value in row.values() if isinstance(value, str))
        ]
    except csv.Error as e:
        raise RemoteError(f"Invalid CSV report: {e}")

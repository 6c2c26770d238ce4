"""Centralized regex patterns for worklog sync."""

import re


class Patterns:
    """Regex patterns used throughout the sync process."""

    # Date format: YYYY-MM-DD
    DATE_FORMAT = re.compile(r"^\d{4}-\d{2}-\d{2}$")

    # Rapports access token is a JWT: header segment starts with "ey"
    BEARER_TOKEN = re.compile(r"^ey[\w-]*\.[\w-]*\.[\w-]*$")

    # Jira worklog "started": 2025-03-04T09:15:00.000+0100
    JIRA_TIMESTAMP = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(\.\d+)?([+-]\d{4}|Z)$")

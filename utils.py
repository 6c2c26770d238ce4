"""Utility functions for Jira to Rapports sync."""

import json
import os
from datetime import date, datetime, tzinfo

from patterns import Patterns

# File paths
SESSION_FILE = "session.json"
CONFIG_FILE = "config.json"


def load_config() -> dict:
    """Load config.json with Jira and Rapports settings."""
    with open(CONFIG_FILE) as f:
        return json.load(f)


def validate_config(config: dict) -> list[str]:
    """Validate config structure and return list of error messages.

    Returns:
        Empty list if valid, otherwise list of error messages.
    """
    errors = []

    # Check required sections
    for section in ["jira", "rapports"]:
        if section not in config:
            errors.append(f"Missing section '{section}' in config.json")

    # Check Jira credentials
    if "jira" in config:
        for key in ["base_url", "user_email", "api_token"]:
            if not config["jira"].get(key):
                errors.append(f"Missing jira.{key}")

    # Rapports needs either a token or a page to read it from
    if "rapports" in config:
        rapports = config["rapports"]
        if not rapports.get("token") and not rapports.get("intranet_url"):
            errors.append("Missing rapports.intranet_url (or rapports.token)")

    rules = config.get("mapping_rules")
    if rules is not None:
        if not isinstance(rules, list):
            errors.append("mapping_rules must be a list")
        else:
            for i, rule in enumerate(rules):
                if not isinstance(rule, dict) or not rule.get("prefix") or "result" not in rule:
                    errors.append(f"mapping_rules[{i}] needs 'prefix' and 'result'")

    return errors


def load_config_safe() -> dict | None:
    """Load config with user-friendly error messages.

    Returns:
        Config dict if valid, None if errors occurred.
    """
    if not os.path.exists(CONFIG_FILE):
        print("[!] ERROR: config.json not found!")
        print()
        print("    Create config.json based on config.example.json:")
        print("    $ cp config.example.json config.json")
        print("    $ nano config.json  # Fill in your credentials")
        print()
        return None

    try:
        config = load_config()
    except json.JSONDecodeError as e:
        print("[!] ERROR: config.json is not valid JSON!")
        print(f"    Line {e.lineno}, column {e.colno}: {e.msg}")
        print()
        print("    Check for missing commas, quotes, or brackets.")
        return None

    errors = validate_config(config)
    if errors:
        print("[!] ERROR: config.json is incomplete:")
        for err in errors:
            print(f"    - {err}")
        print()
        print("    See config.example.json for the required structure.")
        return None

    return config


def parse_date(value: str) -> date:
    """Parse a YYYY-MM-DD string."""
    if not Patterns.DATE_FORMAT.match(value):
        raise ValueError(f"Invalid date '{value}'. Expected YYYY-MM-DD")
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_jira_timestamp(value: str, tz: tzinfo | None = None) -> datetime:
    """Parse a Jira 'started' timestamp and convert it to the display timezone.

    With tz=None the local timezone of the machine is used.
    """
    match = Patterns.JIRA_TIMESTAMP.match(value)
    if not match:
        raise ValueError(f"Unexpected Jira timestamp '{value}'")
    fmt = "%Y-%m-%dT%H:%M:%S.%f%z" if match.group(1) else "%Y-%m-%dT%H:%M:%S%z"
    return datetime.strptime(value, fmt).astimezone(tz)


def format_date(d: date) -> str:
    """Format a date the way Rapports expects it (DD/MM/YYYY)."""
    return d.strftime("%d/%m/%Y")


def format_hours(seconds: int) -> str:
    """Format a duration as HH:MM, dropping leftover seconds."""
    total_minutes = seconds // 60
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours:02d}:{minutes:02d}"


def is_past_period(start: date, today: date | None = None) -> bool:
    """True if start falls in a month before the current one."""
    today = today or date.today()
    return (start.year, start.month) < (today.year, today.month)

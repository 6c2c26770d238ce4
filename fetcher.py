"""Fetch the current user's Jira worklogs for a date range."""

import asyncio
from datetime import date, tzinfo
from typing import Callable

from clients import JiraClient
from errors import UpstreamError
from models import NO_COMMENT, JiraWorklog
from utils import parse_jira_timestamp


def extract_comment(comment) -> str:
    """Get the first text run of the first paragraph of an ADF comment."""
    if isinstance(comment, str):
        return comment or NO_COMMENT
    try:
        text = comment["content"][0]["content"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return NO_COMMENT
    return text or NO_COMMENT


def pep_value(field) -> str:
    """Normalize the PEP custom field (select option, string or null)."""
    if isinstance(field, dict):
        return str(field.get("value") or field.get("name") or "")
    if field is None:
        return ""
    return str(field)


def _warn(message: str) -> None:
    print(f"    [!] {message}")


def build_jql(start_date: date, end_date: date) -> str:
    return (
        f'worklogDate >= "{start_date.isoformat()}" AND worklogDate <= "{end_date.isoformat()}" '
        "AND worklogAuthor = currentUser()"
    )


def filter_worklogs(
    issue: dict,
    raw_worklogs: list[dict],
    pep_field: str,
    account_id: str,
    start_date: date,
    end_date: date,
    tz: tzinfo | None = None,
) -> list[JiraWorklog]:
    """Keep the worklogs of one issue authored by account_id within the range.

    The range check compares calendar dates in the display timezone, not
    timestamps.
    """
    pep = pep_value(issue.get("fields", {}).get(pep_field))
    result = []

    for wl in raw_worklogs:
        author_id = wl.get("author", {}).get("accountId", "")
        if author_id != account_id:
            continue
        started = parse_jira_timestamp(wl["started"], tz)
        if not start_date <= started.date() <= end_date:
            continue
        result.append(
            JiraWorklog(
                worklog_id=str(wl.get("id", "")),
                issue_id=str(issue["id"]),
                issue_key=issue["key"],
                pep_field=pep,
                comment=extract_comment(wl.get("comment")),
                started=started,
                time_spent_seconds=int(wl.get("timeSpentSeconds", 0)),
                author_id=author_id,
            )
        )

    return result


async def fetch_worklogs(
    jira: JiraClient,
    start_date: date,
    end_date: date,
    tz: tzinfo | None = None,
    status: Callable[[str], None] = _warn,
) -> list[JiraWorklog]:
    """Fetch the current user's worklogs between start_date and end_date.

    Raises UpstreamError if the identity lookup or the issue search fails.
    A failing worklog request for a single issue only drops that issue and
    is reported through status.
    """
    loop = asyncio.get_running_loop()

    account_id = await loop.run_in_executor(None, jira.get_my_account_id)
    issues = await loop.run_in_executor(None, jira.search_issues, build_jql(start_date, end_date))
    if not issues:
        return []

    async def for_issue(issue: dict) -> list[JiraWorklog]:
        try:
            raw = await loop.run_in_executor(None, jira.get_issue_worklogs, issue["id"])
        except UpstreamError as e:
            status(f"Skipping worklogs of {issue.get('key', issue['id'])}: {e}")
            return []
        return filter_worklogs(issue, raw, jira.pep_field, account_id, start_date, end_date, tz)

    nested = await asyncio.gather(*(for_issue(issue) for issue in issues))
    return [wl for worklogs in nested for wl in worklogs]

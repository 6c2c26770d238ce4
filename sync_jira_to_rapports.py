"""
Sync Jira worklogs to Rapports imputations.

Usage:
    # Dry-run (default) - shows the mapped worklogs of today
    python sync_jira_to_rapports.py

    # Dry-run for a date range
    python sync_jira_to_rapports.py 2026-10-01 2026-10-16

    # Execute - actually creates imputations
    python sync_jira_to_rapports.py 2026-10-01 2026-10-16 --execute
"""

import argparse
import asyncio
import json
from datetime import date, tzinfo
from typing import Callable

from clients import JiraClient, RapportsClient
from disambiguation import DisambiguationGate, auto_confirm_responder, console_responder
from errors import (
    PastPeriodNotAllowed,
    SelectionCancelled,
    SyncError,
    UpstreamError,
)
from fetcher import fetch_worklogs
from intranet_browser import TokenProvider, make_token_provider
from mapping import MappingEngine
from models import (
    FailedWorklog,
    Imputation,
    JiraWorklog,
    Outcome,
    ResolvedWorklog,
    SyncReport,
    SyncSettings,
    SyncState,
    TargetReference,
)
from patterns import Patterns
from resolver import resolve_target
from utils import format_date, format_hours, is_past_period, load_config_safe, parse_date

# ============================================================================
# Orchestrator
# ============================================================================


class SyncOrchestrator:
    """Drives one sync run: prerequisites, then each worklog in order.

    A worklog that cannot be mapped, resolved or imputed ends up in the
    report and the run continues with the next one. Errors while fetching
    prerequisites abort the run before anything is imputed.
    """

    def __init__(
        self,
        jira: JiraClient,
        rapports: RapportsClient,
        token_provider: TokenProvider,
        gate: DisambiguationGate | None = None,
        settings: SyncSettings | None = None,
        status: Callable[[str], None] = print,
        today: Callable[[], date] = date.today,
        tz: tzinfo | None = None,
    ):
        self.jira = jira
        self.rapports = rapports
        self.token_provider = token_provider
        self.gate = gate or DisambiguationGate()
        self.settings = settings or SyncSettings()
        self.engine = MappingEngine(self.settings.rules)
        self.status = status
        self.today = today
        self.tz = tz
        self.state = SyncState.IDLE
        self.current_index: int | None = None

    async def run(self, start_date: date, end_date: date) -> SyncReport:
        """Impute all worklogs between start_date and end_date.

        Raises:
            PastPeriodNotAllowed: start_date lies in a previous month.
            CredentialUnavailable: no Rapports token.
            UpstreamError: a prerequisite could not be fetched.
        """
        if is_past_period(start_date, self.today()):
            raise PastPeriodNotAllowed(start_date.isoformat())

        report = SyncReport()
        loop = asyncio.get_running_loop()

        self.state = SyncState.FETCHING_PREREQS
        self.status("Starting sync...")
        try:
            token = await self.token_provider()

            self.status("Fetching all required data...")
            user, projects, worklogs = await asyncio.gather(
                loop.run_in_executor(None, self.rapports.get_user_profile, token),
                loop.run_in_executor(None, self.rapports.get_projects, token),
                fetch_worklogs(self.jira, start_date, end_date, self.tz, self.status),
            )
        except Exception:
            self.state = SyncState.IDLE
            raise

        if not worklogs:
            self.status("No worklogs found in Jira for the selected period.")
            self.state = SyncState.DONE
            return report

        project_map = {p["label"]: str(p["value"]) for p in projects}
        user_id = str(user["id"])

        self.state = SyncState.PROCESSING
        self.status(f"Data fetched. Starting imputation for {len(worklogs)} logs...")

        for index, worklog in enumerate(worklogs):
            self.current_index = index
            await self._process(index, len(worklogs), worklog, user_id, project_map, token, report)

        self.current_index = None
        self.state = SyncState.DONE
        return report

    async def _process(
        self,
        index: int,
        total: int,
        worklog: JiraWorklog,
        user_id: str,
        project_map: dict[str, str],
        token: str,
        report: SyncReport,
    ) -> None:
        loop = asyncio.get_running_loop()
        mapped = self.engine.apply(worklog)

        def fail(reason: str, outcome: Outcome = Outcome.FAILED) -> None:
            report.failures.append(
                FailedWorklog(
                    date=worklog.date.isoformat(),
                    pep=mapped.pep or "N/A",
                    reason=reason,
                    outcome=outcome,
                )
            )

        def fetch_sub_projects(project_id: str):
            return loop.run_in_executor(None, self.rapports.get_sub_projects, project_id, token)

        try:
            target = await resolve_target(
                mapped.pep, project_map, fetch_sub_projects, self.gate, self.status
            )
        except SelectionCancelled as e:
            fail(str(e), Outcome.SKIPPED)
            return
        except UpstreamError:
            fail("API error fetching sub-projects")
            return
        except SyncError as e:
            fail(str(e))
            return

        imputation = self.build_imputation(mapped, target, user_id)
        self.status(f"Syncing {index + 1}/{total}... (PEP: {mapped.pep})")
        try:
            await loop.run_in_executor(
                None, self.rapports.post_imputation, imputation.to_payload(), token
            )
        except UpstreamError as e:
            fail(f"Imputation API call failed: {e}")
            return

        report.success_count += 1

    def build_imputation(
        self, mapped: ResolvedWorklog, target: TargetReference, user_id: str
    ) -> Imputation:
        return Imputation(
            date=format_date(mapped.worklog.date),
            user_id=user_id,
            project_id=target.project_id,
            sub_project_id=target.sub_project_id or self.settings.default_task_id,
            description=mapped.comment,
            hours=format_hours(mapped.worklog.time_spent_seconds),
            category=self.settings.category,
            situation_id=self.settings.situation_id,
            task_id=self.settings.default_task_id,
            internal_ref=self.settings.internal_ref,
        )


# ============================================================================
# Output
# ============================================================================


def print_summary(report: SyncReport) -> None:
    """Print the tally and one line per worklog that was not imputed."""
    print()
    print(
        f"Sync complete. Success: {report.success_count}, Failed: {len(report.failures)}."
    )
    if not report.failures:
        print("[+] All worklogs synced.")
        return

    if report.skipped_count:
        print(f"    ({report.skipped_count} skipped by you)")
    print()
    print("[!] Failed syncs:")
    for failure in report.failures:
        print(f"    {failure.date} ({failure.pep}): {failure.reason}")


async def preview_worklogs(
    jira: JiraClient,
    engine: MappingEngine,
    start_date: date,
    end_date: date,
    tz: tzinfo | None = None,
) -> list[ResolvedWorklog]:
    """Fetch and map worklogs without touching Rapports."""
    worklogs = await fetch_worklogs(jira, start_date, end_date, tz)
    mapped = [engine.apply(wl) for wl in worklogs]

    total_seconds = 0
    for m in sorted(mapped, key=lambda x: (x.worklog.started, x.worklog.issue_key)):
        wl = m.worklog
        text = m.comment.split("\n")[-1]
        print(
            f"    {wl.date.isoformat()} | {format_hours(wl.time_spent_seconds)} "
            f"| {wl.issue_key:<12} | {m.pep or 'N/A':<28} | {text[:40]}"
        )
        total_seconds += wl.time_spent_seconds
    print(f"    {'─' * 60}")
    print(f"    Total: {format_hours(total_seconds)} across {len(mapped)} worklogs")
    return mapped


async def show_rapports_data(
    rapports: RapportsClient, token_provider: TokenProvider, what: str
) -> None:
    """Dev action: dump the user profile or the project list."""
    token = await token_provider()
    loop = asyncio.get_running_loop()
    if what == "profile":
        data = await loop.run_in_executor(None, rapports.get_user_profile, token)
    else:
        data = await loop.run_in_executor(None, rapports.get_projects, token)
    print(json.dumps(data, indent=2, ensure_ascii=False))


# ============================================================================
# Main
# ============================================================================


async def sync(
    config: dict,
    settings: SyncSettings,
    start_date: date,
    end_date: date,
    execute: bool,
    auto_confirm: bool = False,
    headless: bool = False,
) -> SyncReport | None:
    """Main sync function."""
    mode = "EXECUTE" if execute else "DRY-RUN"

    print()
    print("=" * 70)
    print(f"SYNC JIRA -> RAPPORTS | {start_date} to {end_date} | Mode: {mode}")
    print("=" * 70)
    print()

    jira = JiraClient(config)

    if not execute:
        print("[1] Fetching and mapping Jira worklogs...")
        await preview_worklogs(jira, MappingEngine(settings.rules), start_date, end_date)
        print()
        print("Run with --execute to create the imputations.")
        return None

    responder = auto_confirm_responder if auto_confirm else console_responder
    orchestrator = SyncOrchestrator(
        jira=jira,
        rapports=RapportsClient(config),
        token_provider=make_token_provider(config, headless=headless),
        gate=DisambiguationGate(responder),
        settings=settings,
        status=lambda message: print(f"[*] {message}"),
    )
    report = await orchestrator.run(start_date, end_date)
    print_summary(report)
    return report


# ============================================================================
# CLI
# ============================================================================


def main():
    parser = argparse.ArgumentParser(
        description="Sync Jira worklogs to Rapports",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Dry-run (default) - shows what would be imputed
    python sync_jira_to_rapports.py 2026-10-01 2026-10-16

    # Execute - actually creates imputations
    python sync_jira_to_rapports.py 2026-10-01 2026-10-16 --execute

    # Take the first sub-project whenever a keyword is ambiguous
    python sync_jira_to_rapports.py 2026-10-14 --execute --auto-confirm
        """,
    )

    parser.add_argument("start", nargs="?", default=None, help="First day (YYYY-MM-DD), default: today")
    parser.add_argument("end", nargs="?", default=None, help="Last day (YYYY-MM-DD), default: start")
    parser.add_argument(
        "--execute", action="store_true", help="Actually create imputations (default: dry-run)"
    )
    parser.add_argument(
        "--auto-confirm", action="store_true", help="Pick the first match for ambiguous sub-projects"
    )
    parser.add_argument("--headless", action="store_true", help="Read the token without showing the browser")
    parser.add_argument("--profile", action="store_true", help="Print the Rapports user profile and exit")
    parser.add_argument("--projects", action="store_true", help="Print the Rapports projects and exit")

    args = parser.parse_args()

    start = args.start or date.today().isoformat()
    end = args.end or start

    # Validate date format
    for value in (start, end):
        if not Patterns.DATE_FORMAT.match(value):
            print(f"Error: Invalid date '{value}'. Expected YYYY-MM-DD")
            return 1
    try:
        start_date, end_date = parse_date(start), parse_date(end)
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    if end_date < start_date:
        print(f"Error: End date {end} is before start date {start}")
        return 1

    config = load_config_safe()
    if config is None:
        return 1

    try:
        settings = SyncSettings.from_config(config)
    except ValueError as e:
        print(f"[!] ERROR: Invalid mapping_rules in config.json: {e}")
        return 1

    try:
        if args.profile or args.projects:
            asyncio.run(
                show_rapports_data(
                    RapportsClient(config),
                    make_token_provider(config, headless=args.headless),
                    "profile" if args.profile else "projects",
                )
            )
            return 0

        report = asyncio.run(
            sync(config, settings, start_date, end_date, args.execute, args.auto_confirm, args.headless)
        )
    except PastPeriodNotAllowed as e:
        print(f"[!] {e}")
        return 1
    except SyncError as e:
        print(f"[!] ERROR: {e}")
        return 1

    if report and report.failures:
        return 2
    return 0


if __name__ == "__main__":
    exit(main())

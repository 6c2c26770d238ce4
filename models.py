"""Data models for Jira to Rapports sync."""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

NO_COMMENT = "No comment"


@dataclass(frozen=True)
class JiraWorklog:
    """A worklog entry from Jira, already filtered to the current user."""

    worklog_id: str
    issue_id: str
    issue_key: str
    pep_field: str  # Raw PEP custom field value, "" when unset
    comment: str
    started: datetime  # Converted to the display timezone
    time_spent_seconds: int
    author_id: str

    @property
    def date(self) -> date:
        return self.started.date()


@dataclass(frozen=True)
class ResolvedWorklog:
    """A worklog after the mapping rules were applied."""

    worklog: JiraWorklog
    pep: str
    comment: str


@dataclass(frozen=True)
class TargetReference:
    """Rapports project and sub-project ids for one worklog."""

    project_id: str
    sub_project_id: str = ""  # "" means no sub-project required


@dataclass(frozen=True)
class SubProjectChoice:
    """A Rapports sub-project offered during disambiguation."""

    label: str
    value: str


# ---------------------------------------------------------------------------
# Mapping rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RuleCondition:
    """Predicate over the original PEP field or comment of a worklog.

    Matches when any needle is contained in the value (case-insensitive),
    or when ``when_empty`` is set and the value is empty.
    """

    source: str  # "pep" or "comment"
    contains: tuple[str, ...] = ()
    when_empty: bool = False

    def matches(self, pep_field: str, comment: str) -> bool:
        value = pep_field if self.source == "pep" else comment
        if self.when_empty and not value:
            return True
        folded = value.casefold()
        return any(needle.casefold() in folded for needle in self.contains)

    @classmethod
    def from_dict(cls, data: dict) -> "RuleCondition":
        if not isinstance(data, dict):
            raise ValueError(f"Condition must be an object, got {data!r}")
        source = data.get("source")
        if source not in ("pep", "comment"):
            raise ValueError(f"Invalid condition source '{source}', expected 'pep' or 'comment'")
        contains = data.get("contains", [])
        if isinstance(contains, str):
            contains = [contains]
        if not isinstance(contains, list) or not all(isinstance(c, str) for c in contains):
            raise ValueError(f"Condition 'contains' must be a string or a list of strings, got {contains!r}")
        return cls(
            source=source,
            contains=tuple(contains),
            when_empty=bool(data.get("when_empty", False)),
        )


@dataclass(frozen=True)
class RuleResult:
    """PEP override plus an optional default for empty comments."""

    pep: str | None = None
    comment: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "RuleResult":
        if not isinstance(data, dict):
            raise ValueError(f"Result must be an object, got {data!r}")
        for key in ("pep", "comment"):
            if not isinstance(data.get(key), (str, type(None))):
                raise ValueError(f"Result '{key}' must be a string, got {data[key]!r}")
        return cls(pep=data.get("pep"), comment=data.get("comment"))


@dataclass(frozen=True)
class MappingRule:
    """One row of the mapping table, keyed by issue key prefix."""

    prefix: str
    result: RuleResult
    condition: RuleCondition | None = None
    fallback: RuleResult | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "MappingRule":
        if not isinstance(data, dict):
            raise ValueError(f"Mapping rule must be an object, got {data!r}")
        if not data.get("prefix") or not isinstance(data["prefix"], str):
            raise ValueError("Mapping rule without 'prefix'")
        if "result" not in data:
            raise ValueError(f"Mapping rule '{data['prefix']}' without 'result'")
        condition = data.get("condition")
        fallback = data.get("fallback")
        return cls(
            prefix=data["prefix"],
            result=RuleResult.from_dict(data["result"]),
            condition=RuleCondition.from_dict(condition) if condition else None,
            fallback=RuleResult.from_dict(fallback) if fallback else None,
        )


DEFAULT_RULES: tuple[MappingRule, ...] = (
    MappingRule(
        prefix="LEC-",
        condition=RuleCondition(source="pep", contains=("14-SEIDOR-AM",), when_empty=True),
        result=RuleResult(pep="14-SEIDOR-AM&LEC"),
    ),
    MappingRule(
        prefix="SA-17",
        result=RuleResult(pep="14-ZPR-VAC25"),
    ),
    MappingRule(
        prefix="SA-18",
        result=RuleResult(pep="14-SEIDOR-AM&GENERAL", comment="Daily Standup"),
    ),
    MappingRule(
        prefix="SA-19",
        condition=RuleCondition(source="comment", contains=("team building", "teambuilding")),
        result=RuleResult(pep="14-ZPR-TA&TEAMBUILDING"),
        fallback=RuleResult(pep="14-ZPR-TA&OTHERS"),
    ),
)


@dataclass(frozen=True)
class SyncSettings:
    """Configuration for mapping and imputation payloads."""

    rules: tuple[MappingRule, ...] = DEFAULT_RULES
    category: str = "PR"
    situation_id: str = "6"  # Situation: office
    default_task_id: str = ""
    internal_ref: str = ""

    @classmethod
    def from_config(cls, config: dict) -> "SyncSettings":
        rapports = config.get("rapports", {})
        rules = DEFAULT_RULES
        if "mapping_rules" in config:
            if not isinstance(config["mapping_rules"], list):
                raise ValueError("'mapping_rules' must be a list")
            rules = tuple(MappingRule.from_dict(r) for r in config["mapping_rules"])
        return cls(
            rules=rules,
            category=str(rapports.get("category", "PR")),
            situation_id=str(rapports.get("situation_id", "6")),
        )


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Imputation:
    """A booking request for Rapports."""

    date: str  # DD/MM/YYYY
    user_id: str
    project_id: str
    sub_project_id: str
    description: str
    hours: str  # HH:MM
    category: str
    situation_id: str
    task_id: str = ""
    internal_ref: str = ""

    def to_payload(self) -> dict:
        return {
            "id": "",
            "fromDate": self.date,
            "toDate": self.date,
            "userId": self.user_id,
            "projectId": self.project_id,
            "subProjectId": self.sub_project_id,
            "description": self.description,
            "hours": self.hours,
            "category": self.category,
            "situationId": self.situation_id,
            "taskId": self.task_id,
            "internalRef": self.internal_ref,
        }


class Outcome(Enum):
    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


class SyncState(Enum):
    IDLE = "idle"
    FETCHING_PREREQS = "fetching_prereqs"
    PROCESSING = "processing"
    DONE = "done"


@dataclass(frozen=True)
class FailedWorklog:
    """A worklog that was not imputed, with the reason shown to the user."""

    date: str  # YYYY-MM-DD
    pep: str
    reason: str
    outcome: Outcome = Outcome.FAILED


@dataclass
class SyncReport:
    """Result of a sync run."""

    success_count: int = 0
    failures: list[FailedWorklog] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return self.success_count + len(self.failures)

    @property
    def skipped_count(self) -> int:
        return sum(1 for f in self.failures if f.outcome is Outcome.SKIPPED)

    @property
    def failed_count(self) -> int:
        return sum(1 for f in self.failures if f.outcome is Outcome.FAILED)

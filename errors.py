"""Exceptions raised while syncing Jira worklogs to Rapports."""


class SyncError(Exception):
    """Base class for all sync errors."""


class CredentialUnavailable(SyncError):
    """No usable Rapports bearer token could be obtained."""


class PastPeriodNotAllowed(SyncError):
    """The requested period starts in a month that is already closed."""

    def __init__(self, start_date: str):
        super().__init__(
            f"Cannot sync {start_date}: imputations for previous months are not allowed."
        )
        self.start_date = start_date


class UpstreamError(SyncError):
    """A REST backend refused or failed a request."""

    def __init__(
        self,
        message: str,
        source: str = "",
        status: int | None = None,
        body: str = "",
    ):
        super().__init__(message)
        self.source = source
        self.status = status
        self.body = body


class MissingClassification(SyncError):
    """The worklog has no PEP value after mapping."""

    def __init__(self):
        super().__init__("Missing PEP value in Jira")


class UnmappedProject(SyncError):
    """The PEP's project label has no Rapports project."""

    def __init__(self, label: str):
        super().__init__(f'Project "{label}" not found in Rapports')
        self.label = label


class UnmappedSubProject(SyncError):
    """No Rapports sub-project label contains the PEP's keyword."""

    def __init__(self, keyword: str):
        super().__init__(f'Sub-project with keyword "{keyword}" not found')
        self.keyword = keyword


class SelectionCancelled(SyncError):
    """The operator cancelled a sub-project selection."""

    def __init__(self):
        super().__init__("Sub-project selection cancelled")

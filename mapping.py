"""PEP mapping rules: derive the Rapports PEP and comment from a Jira issue."""

from models import DEFAULT_RULES, NO_COMMENT, JiraWorklog, MappingRule, ResolvedWorklog


class MappingEngine:
    """Applies an ordered rule table; the first rule whose prefix matches wins.

    Conditions are evaluated against the PEP field and comment as fetched
    from Jira. The engine holds no state besides the rule table, so
    resolving the same input twice always gives the same output.
    """

    def __init__(self, rules: tuple[MappingRule, ...] = DEFAULT_RULES):
        self.rules = tuple(rules)

    def find_rule(self, issue_key: str) -> MappingRule | None:
        for rule in self.rules:
            if issue_key.startswith(rule.prefix):
                return rule
        return None

    def resolve(self, issue_key: str, pep_field: str, comment: str) -> tuple[str, str]:
        """Return (pep, comment) for a worklog of the given issue."""
        rule = self.find_rule(issue_key)
        if rule is None:
            return pep_field, comment

        pep = pep_field
        final_comment = comment

        if rule.condition is None or rule.condition.matches(pep_field, comment):
            if rule.result.pep:
                pep = rule.result.pep
            if rule.result.comment and comment == NO_COMMENT:
                final_comment = rule.result.comment
        elif rule.fallback and rule.fallback.pep:
            pep = rule.fallback.pep

        # e.g. "[SA-18] \nDaily Standup"
        return pep, f"[{issue_key}] \n{final_comment}"

    def apply(self, worklog: JiraWorklog) -> ResolvedWorklog:
        pep, comment = self.resolve(worklog.issue_key, worklog.pep_field, worklog.comment)
        return ResolvedWorklog(worklog=worklog, pep=pep, comment=comment)

"""Resolve a PEP value to Rapports project and sub-project ids."""

from typing import Awaitable, Callable

from disambiguation import DisambiguationGate
from errors import MissingClassification, UnmappedProject, UnmappedSubProject
from models import SubProjectChoice, TargetReference

SubProjectFetcher = Callable[[str], Awaitable[list[dict]]]


def split_pep(pep: str) -> tuple[str, str]:
    """Split "PROJECT&KEYWORD" into its parts; keyword is "" when absent.

    Anything after a second "&" is ignored.
    """
    label, _, rest = pep.partition("&")
    return label, rest.split("&")[0]


def match_sub_projects(sub_projects: list[dict], keyword: str) -> list[SubProjectChoice]:
    """Sub-projects whose label contains keyword, ignoring case."""
    needle = keyword.casefold()
    return [
        SubProjectChoice(label=sp["label"], value=str(sp["value"]))
        for sp in sub_projects
        if needle in sp["label"].casefold()
    ]


async def resolve_target(
    pep: str,
    project_map: dict[str, str],
    fetch_sub_projects: SubProjectFetcher,
    gate: DisambiguationGate,
    status: Callable[[str], None] | None = None,
) -> TargetReference:
    """Find the Rapports ids for a PEP.

    The project label must match a key of project_map exactly. The keyword,
    if any, is looked up in the project's sub-projects; several matches are
    handed to the gate for the operator to pick one.

    Raises:
        MissingClassification: pep is empty.
        UnmappedProject: no project with that label.
        UnmappedSubProject: no sub-project label contains the keyword.
        SelectionCancelled: the operator cancelled the selection.
        UpstreamError: the sub-project list could not be fetched.
    """
    if not pep:
        raise MissingClassification()

    label, keyword = split_pep(pep)
    project_id = project_map.get(label)
    if not project_id:
        raise UnmappedProject(label)

    if not keyword:
        return TargetReference(project_id=project_id)

    matches = match_sub_projects(await fetch_sub_projects(project_id), keyword)

    if not matches:
        raise UnmappedSubProject(keyword)
    if len(matches) == 1:
        return TargetReference(project_id=project_id, sub_project_id=matches[0].value)

    if status:
        status(f"Waiting for sub-project selection for PEP: {pep}")
    sub_project_id = await gate.disambiguate(matches, keyword)
    return TargetReference(project_id=project_id, sub_project_id=sub_project_id)

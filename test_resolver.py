"""Tests for PEP -> Rapports project/sub-project resolution."""

import asyncio

import pytest

from disambiguation import DisambiguationGate, ScriptedResponder
from errors import (
    MissingClassification,
    SelectionCancelled,
    UnmappedProject,
    UnmappedSubProject,
)
from models import SubProjectChoice, TargetReference
from resolver import match_sub_projects, resolve_target, split_pep

PROJECTS = {"14-ZPR-TA": "P1", "14-SEIDOR-AM": "P2", "14-ZPR-VAC25": "P3"}

SUB_PROJECTS = {
    "P1": [
        {"label": "TA - Teambuilding", "value": 11},
        {"label": "TA - Others", "value": 12},
    ],
    "P2": [
        {"label": "LEC Support", "value": 21},
        {"label": "LEC Development", "value": 22},
        {"label": "General", "value": 23},
    ],
}


class SubProjectSource:
    def __init__(self, data=SUB_PROJECTS):
        self.data = data
        self.calls = []

    async def __call__(self, project_id):
        self.calls.append(project_id)
        return self.data.get(project_id, [])


def run(pep, fetcher, gate=None):
    gate = gate or DisambiguationGate(ScriptedResponder())
    return asyncio.run(resolve_target(pep, PROJECTS, fetcher, gate))


class TestSplitPep:

    @pytest.mark.parametrize(
        "pep, expected",
        [
            ("14-ZPR-VAC25", ("14-ZPR-VAC25", "")),
            ("14-ZPR-TA&OTHERS", ("14-ZPR-TA", "OTHERS")),
            ("A&B&C", ("A", "B")),
            ("A&", ("A", "")),
        ],
    )
    def test_split(self, pep, expected):
        assert split_pep(pep) == expected


class TestMatchSubProjects:

    def test_case_insensitive_substring(self):
        matches = match_sub_projects(SUB_PROJECTS["P1"], "teamBUILDING")
        assert matches == [SubProjectChoice(label="TA - Teambuilding", value="11")]

    def test_no_match(self):
        assert match_sub_projects(SUB_PROJECTS["P1"], "vacation") == []


class TestResolveTarget:

    def test_project_only_never_fetches_sub_projects(self):
        fetcher = SubProjectSource()
        assert run("14-ZPR-VAC25", fetcher) == TargetReference(project_id="P3", sub_project_id="")
        assert fetcher.calls == []

    def test_single_match(self):
        fetcher = SubProjectSource()
        assert run("14-ZPR-TA&OTHERS", fetcher) == TargetReference("P1", "12")
        assert fetcher.calls == ["P1"]

    def test_text_after_second_ampersand_is_ignored(self):
        assert run("14-ZPR-TA&OTHERS&X", SubProjectSource()) == TargetReference("P1", "12")

    def test_project_label_is_case_sensitive(self):
        with pytest.raises(UnmappedProject) as exc:
            run("14-zpr-ta&OTHERS", SubProjectSource())
        assert str(exc.value) == 'Project "14-zpr-ta" not found in Rapports'

    def test_unknown_keyword(self):
        with pytest.raises(UnmappedSubProject) as exc:
            run("14-ZPR-TA&VACATION", SubProjectSource())
        assert str(exc.value) == 'Sub-project with keyword "VACATION" not found'

    def test_empty_pep(self):
        fetcher = SubProjectSource()
        with pytest.raises(MissingClassification):
            run("", fetcher)
        assert fetcher.calls == []

    def test_ambiguous_asks_gate_with_matching_candidates(self):
        responder = ScriptedResponder(["22"])
        gate = DisambiguationGate(responder)
        assert run("14-SEIDOR-AM&LEC", SubProjectSource(), gate) == TargetReference("P2", "22")

        [request] = responder.requests
        assert request.keyword == "LEC"
        assert [c.label for c in request.candidates] == ["LEC Support", "LEC Development"]

    def test_ambiguous_default_is_first_candidate(self):
        gate = DisambiguationGate(ScriptedResponder())
        assert run("14-SEIDOR-AM&LEC", SubProjectSource(), gate).sub_project_id == "21"

    def test_ambiguous_cancelled(self):
        gate = DisambiguationGate(ScriptedResponder([None]))
        with pytest.raises(SelectionCancelled):
            run("14-SEIDOR-AM&LEC", SubProjectSource(), gate)
        assert gate.pending is None

    def test_status_before_waiting(self):
        messages = []
        asyncio.run(
            resolve_target(
                "14-SEIDOR-AM&LEC",
                PROJECTS,
                SubProjectSource(),
                DisambiguationGate(ScriptedResponder()),
                messages.append,
            )
        )
        assert messages == ["Waiting for sub-project selection for PEP: 14-SEIDOR-AM&LEC"]

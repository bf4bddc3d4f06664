"""Tests for prp_orchestrator/engine/selector.py - next-action selection."""

from pathlib import Path

import pytest

from prp_orchestrator.engine.selector import Action, is_complete, is_precompleted, satisfied_ids, select_next
from prp_orchestrator.enums import ActionKind, Decision, Lifecycle
from prp_orchestrator.models.plan import MasterPRP
from tests.factories import make_state

ENRICHED = Path("PRPs/enriched/x.md")


def prp(prp_id: str, *deps: str) -> MasterPRP:
    return MasterPRP(id=prp_id, title=f"Title {prp_id}", scope="scope", depends_on=list(deps))


@pytest.fixture
def a() -> MasterPRP:
    return prp("A")


@pytest.fixture
def b() -> MasterPRP:
    return prp("B", "A")


# =============================================================================
# Priority order
# =============================================================================


class TestPriorities:
    """Merge, then revise, then wait, then new work."""

    def test_fresh_plan_enriches_first_prp(self, a, b):
        action = select_next([make_state(a), make_state(b)])

        assert action == Action(ActionKind.ENRICH, make_state(a))

    def test_enriched_prp_is_executed(self, a, b):
        action = select_next([make_state(a, enriched=ENRICHED), make_state(b)])

        assert action.kind is ActionKind.EXECUTE
        assert action.prp_id == "A"

    def test_open_pending_pr_waits(self, a, b):
        states = [
            make_state(a, enriched=ENRICHED, lifecycle=Lifecycle.OPEN, decision=Decision.PENDING),
            make_state(b),
        ]

        action = select_next(states)

        assert action.kind is ActionKind.WAIT
        assert action.prp_id == "A"

    def test_merge_beats_revise(self, a):
        other = prp("C")
        states = [
            make_state(other, lifecycle=Lifecycle.OPEN, decision=Decision.CHANGES_REQUESTED),
            make_state(a, lifecycle=Lifecycle.OPEN, decision=Decision.APPROVED),
        ]

        action = select_next(states)

        assert action.kind is ActionKind.MERGE
        assert action.prp_id == "A"

    def test_revise_beats_wait(self, a):
        other = prp("C")
        states = [
            make_state(a, lifecycle=Lifecycle.OPEN, decision=Decision.PENDING),
            make_state(other, lifecycle=Lifecycle.OPEN, decision=Decision.CHANGES_REQUESTED),
        ]

        assert select_next(states).kind is ActionKind.REVISE

    def test_open_pr_blocks_unrelated_new_work(self, a):
        independent = prp("C")
        states = [
            make_state(a, lifecycle=Lifecycle.OPEN, decision=Decision.NONE),
            make_state(independent),
        ]

        assert select_next(states).kind is ActionKind.WAIT

    def test_plan_order_breaks_ties(self):
        first, second = prp("X"), prp("Y")
        states = [
            make_state(first, lifecycle=Lifecycle.OPEN, decision=Decision.APPROVED),
            make_state(second, lifecycle=Lifecycle.OPEN, decision=Decision.APPROVED),
        ]

        assert select_next(states).prp_id == "X"

    def test_selection_is_deterministic(self, a, b):
        states = [make_state(a, enriched=ENRICHED), make_state(b)]

        assert select_next(states) == select_next(list(states))


# =============================================================================
# Dependencies and lifecycle
# =============================================================================


class TestDependencies:
    """New work only starts once every dependency is satisfied."""

    def test_merged_dependency_unblocks_dependent(self, a, b):
        states = [
            make_state(a, enriched=ENRICHED, lifecycle=Lifecycle.MERGED),
            make_state(b),
        ]

        action = select_next(states)

        assert action.kind is ActionKind.ENRICH
        assert action.prp_id == "B"

    def test_closed_dependency_is_retried_before_dependent(self, a, b):
        states = [make_state(a, lifecycle=Lifecycle.CLOSED), make_state(b)]

        action = select_next(states)

        assert action.kind is ActionKind.ENRICH
        assert action.prp_id == "A"

    def test_nothing_selectable_returns_none(self, b):
        assert select_next([make_state(b)]) is None

    def test_precompleted_dependency_satisfies(self):
        dependent = prp("B", "PRP-000")

        action = select_next([make_state(dependent)], completed=["PRP-000"])

        assert action.kind is ActionKind.ENRICH

    def test_precompleted_prp_is_skipped(self, a, b):
        action = select_next([make_state(a), make_state(b)], completed=["A"])

        assert action.prp_id == "B"

    def test_precompleted_prp_with_closed_pr_is_selectable(self, a, b):
        state = make_state(a, lifecycle=Lifecycle.CLOSED)

        action = select_next([state, make_state(b)], completed=["A"])

        assert action.kind is ActionKind.ENRICH
        assert action.prp_id == "A"
        assert "A" in satisfied_ids([state], completed=["A"])

    def test_closed_pr_with_enrichment_is_executed_again(self, a):
        state = make_state(a, enriched=ENRICHED, lifecycle=Lifecycle.CLOSED)

        assert select_next([state]).kind is ActionKind.EXECUTE

    def test_decision_ignored_when_not_open(self, a):
        state = make_state(a, lifecycle=Lifecycle.MERGED, decision=Decision.APPROVED)

        assert select_next([state]) is None


# =============================================================================
# Scenario walkthrough
# =============================================================================


class TestScenarios:
    """Successive derivations of a two-PRP plan."""

    def test_full_lifecycle(self, a, b):
        steps = [
            ([make_state(a), make_state(b)], (ActionKind.ENRICH, "A")),
            ([make_state(a, enriched=ENRICHED), make_state(b)], (ActionKind.EXECUTE, "A")),
            (
                [make_state(a, enriched=ENRICHED, lifecycle=Lifecycle.OPEN, decision=Decision.PENDING), make_state(b)],
                (ActionKind.WAIT, "A"),
            ),
            (
                [make_state(a, enriched=ENRICHED, lifecycle=Lifecycle.OPEN, decision=Decision.APPROVED), make_state(b)],
                (ActionKind.MERGE, "A"),
            ),
            ([make_state(a, enriched=ENRICHED, lifecycle=Lifecycle.MERGED), make_state(b)], (ActionKind.ENRICH, "B")),
        ]

        for states, (kind, prp_id) in steps:
            action = select_next(states)
            assert (action.kind, action.prp_id) == (kind, prp_id)


# =============================================================================
# Helpers
# =============================================================================


class TestCompletion:
    """Plan completion and dependency satisfaction."""

    def test_all_merged_is_complete(self, a, b):
        states = [make_state(a, lifecycle=Lifecycle.MERGED), make_state(b, lifecycle=Lifecycle.MERGED)]

        assert is_complete(states)

    def test_precompleted_counts_as_complete(self, a, b):
        states = [make_state(a), make_state(b, lifecycle=Lifecycle.MERGED)]

        assert is_complete(states, completed=["A"])
        assert not is_complete(states)

    def test_precompleted_with_review_is_not_precompleted(self, a):
        state = make_state(a, lifecycle=Lifecycle.OPEN)

        assert not is_precompleted(state, ["A"])

    def test_empty_plan_is_complete(self):
        assert is_complete([])

    def test_satisfied_ids_union(self, a, b):
        states = [make_state(a, lifecycle=Lifecycle.MERGED), make_state(b)]

        assert satisfied_ids(states, ["Z"]) == {"A", "Z"}

    def test_action_str(self, a):
        assert str(Action(ActionKind.MERGE, make_state(a))) == "merge(A)"

"""
Selection of the single next action.

``select_next`` is a pure function of the derived states and the plan's
pre-completed ids. Priorities, first match wins, ties broken by plan order:

1. Merge an open pull request that was approved
2. Revise an open pull request with requested changes
3. Wait while any other pull request is open
4. Enrich or execute the first PRP whose dependencies are all satisfied

Waiting is never skipped in favour of new work, so at most one pull request
is awaiting a human at a time.

A pre-completed id always satisfies dependencies. It is skipped as work only
while no pull request exists for it; once a closed one does, the PRP is
retried like any other unmerged PRP.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from prp_orchestrator.enums import ActionKind, Decision
from prp_orchestrator.models.domain import PRPState


@dataclass(frozen=True)
class Action:
    """The chosen next step and the PRP it applies to."""

    kind: ActionKind
    state: PRPState

    @property
    def prp_id(self) -> str:
        return self.state.id

    def __str__(self) -> str:
        return f"{self.kind}({self.prp_id})"


def is_precompleted(state: PRPState, completed: Iterable[str]) -> bool:
    """Declared complete in the plan and never reviewed by the orchestrator."""
    return state.id in completed and state.review is None


def merged_ids(states: Iterable[PRPState]) -> set[str]:
    return {state.id for state in states if state.is_merged}


def satisfied_ids(states: Sequence[PRPState], completed: Iterable[str] = ()) -> set[str]:
    """Ids that satisfy a dependency: pre-completed or merged."""
    return set(completed) | merged_ids(states)


def is_complete(states: Sequence[PRPState], completed: Iterable[str] = ()) -> bool:
    completed = frozenset(completed)
    return all(state.is_merged or is_precompleted(state, completed) for state in states)


def select_next(states: Sequence[PRPState], completed: Iterable[str] = ()) -> Action | None:
    """Pick the one action to perform now.

    Returns:
        The action, an ``ActionKind.WAIT`` action when a human must decide,
        or None when nothing can run until dependencies are merged.
    """
    completed = frozenset(completed)

    for state in states:
        if state.decision is Decision.APPROVED:
            return Action(ActionKind.MERGE, state)

    for state in states:
        if state.decision is Decision.CHANGES_REQUESTED:
            return Action(ActionKind.REVISE, state)

    for state in states:
        if state.is_open:
            return Action(ActionKind.WAIT, state)

    satisfied = satisfied_ids(states, completed)
    for state in states:
        if state.is_merged or state.is_open or is_precompleted(state, completed):
            continue
        if all(dep in satisfied for dep in state.depends_on):
            kind = ActionKind.EXECUTE if state.is_enriched else ActionKind.ENRICH
            return Action(kind, state)

    return None

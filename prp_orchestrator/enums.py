"""Enumerations for derived PRP state, actions and run outcomes."""

from enum import Enum


class Lifecycle(str, Enum):
    """Review request lifecycle as reported by the hosting platform."""

    OPEN = "open"
    MERGED = "merged"
    CLOSED = "closed"

    def __str__(self) -> str:
        return self.value


class Decision(str, Enum):
    """Review outcome classification for an open review request."""

    APPROVED = "approved"
    CHANGES_REQUESTED = "changes_requested"
    PENDING = "pending"
    NONE = "none"

    def __str__(self) -> str:
        return self.value


class ActionKind(str, Enum):
    """The single next step chosen by the action selector.

    WAIT is not an action: it tells the run loop that a human must act
    before anything else can happen.
    """

    MERGE = "merge"
    REVISE = "revise"
    WAIT = "wait"
    ENRICH = "enrich"
    EXECUTE = "execute"

    def __str__(self) -> str:
        return self.value

    @property
    def continues_run(self) -> bool:
        """Whether the run loop keeps going after this action succeeds.

        Merging and enriching leave nothing for a human to look at, so the
        loop re-derives state and picks again. Revising and executing end in
        a review request that needs a human decision.
        """
        return self in (ActionKind.MERGE, ActionKind.ENRICH)


class ActionOutcome(str, Enum):
    """What a workflow achieved when it returned without error.

    NO_OP means nothing changed in the external systems: no pull request was
    opened or updated, so there is nothing new for a human to review.
    """

    DONE = "done"
    NO_OP = "no_op"

    def __str__(self) -> str:
        return self.value


class RunStatus(str, Enum):
    """Outcome of a single project run."""

    COMPLETE = "complete"
    WAITING_FOR_REVIEW = "waiting_for_review"
    BLOCKED = "blocked"
    NO_PLAN = "no_plan"
    LOCKED = "locked"
    PREREQUISITE_FAILED = "prerequisite_failed"
    FAILED = "failed"
    ACTION_LIMIT = "action_limit"
    NO_OP = "no_op"

    def __str__(self) -> str:
        return self.value


class CheckStatus(str, Enum):
    """Result of a single validation check (build, test, format)."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"

    def __str__(self) -> str:
        return self.value

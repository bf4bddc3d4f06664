"""
Reconstruction of PRP state from external systems.

The orchestrator keeps no workflow manifest. Every derivation pass asks
three sources what is true right now:

1. The filesystem: does the enriched artifact exist at its canonical path?
2. Git: is there a remote branch named after the PRP?
3. The review host: is there a pull request for that branch, and what did
   the reviewers decide?

Any of these queries may fail (network trouble, a missing remote, platform
errors). A failed query degrades its part of the state to "absent"; the
deriver itself never raises.
"""

from pathlib import Path

import structlog

from prp_orchestrator.enums import Decision, Lifecycle
from prp_orchestrator.exceptions import PRPOrchestratorError
from prp_orchestrator.models.domain import PRPState, ProjectContext, ReviewRequest
from prp_orchestrator.models.plan import MasterPlan, MasterPRP
from prp_orchestrator.providers.base import PullRequestSummary, ReviewHost, VersionControl

log = structlog.get_logger(__name__)

APPROVED_LABELS = frozenset({"approved", "lgtm"})
CHANGES_LABELS = frozenset({"changes-requested", "needs-changes"})

_PLATFORM_DECISIONS = {
    "APPROVED": Decision.APPROVED,
    "CHANGES_REQUESTED": Decision.CHANGES_REQUESTED,
    "REVIEW_REQUIRED": Decision.PENDING,
}

# Failures a single query is allowed to degrade on
QUERY_ERRORS = (PRPOrchestratorError, OSError, TimeoutError)


def map_lifecycle(state: str) -> Lifecycle:
    normalized = state.upper()
    if normalized == "OPEN":
        return Lifecycle.OPEN
    if normalized == "MERGED":
        return Lifecycle.MERGED
    return Lifecycle.CLOSED


def map_decision(summary: PullRequestSummary) -> Decision:
    """Interpret a pull request's review decision.

    Labels win over the platform's computed decision so that a repository
    owner can approve or reject their own bot's pull requests. Approval
    labels win over change-request labels when both are present.
    """
    labels = {label.lower() for label in summary.labels}
    if labels & APPROVED_LABELS:
        return Decision.APPROVED
    if labels & CHANGES_LABELS:
        return Decision.CHANGES_REQUESTED
    return _PLATFORM_DECISIONS.get((summary.review_decision or "").upper(), Decision.NONE)


def to_review_request(summary: PullRequestSummary) -> ReviewRequest:
    return ReviewRequest(
        number=summary.number,
        lifecycle=map_lifecycle(summary.state),
        decision=map_decision(summary),
        url=summary.url,
    )


class StateDeriver:
    """Derive PRP states for one project."""

    def __init__(self, vcs: VersionControl, host: ReviewHost, ctx: ProjectContext) -> None:
        self.vcs = vcs
        self.host = host
        self.ctx = ctx

    async def derive_all(self, plan: MasterPlan, refresh: bool = True) -> list[PRPState]:
        """Derive every PRP, in plan declaration order.

        Args:
            plan: The project's master plan
            refresh: Fetch remote refs (with pruning) before querying branches
        """
        if refresh:
            try:
                await self.vcs.fetch(prune=True)
            except QUERY_ERRORS as e:
                log.warning("fetch_failed", error=str(e))

        states = []
        for prp in plan.prps:
            state = await self.derive(prp)
            log.info("prp_state", prp_id=state.id, status=state.describe())
            states.append(state)
        return states

    async def derive(self, prp: MasterPRP) -> PRPState:
        enriched_file = self._find_enrichment(prp)
        branch = await self._find_branch(prp)

        review: ReviewRequest | None = None
        if branch is not None:
            summary = await self._query("find_by_branch", prp, self.host.find_by_branch(branch))
            if summary is not None:
                review = to_review_request(summary)

        if review is None:
            # Recover merged PRPs whose branch was deleted after merge
            summary = await self._query(
                "find_merged_by_prefix", prp, self.host.find_merged_by_prefix(prp.branch_prefix)
            )
            if summary is not None:
                branch = summary.head or branch or prp.branch_prefix.rstrip("-")
                review = to_review_request(summary)

        return PRPState(prp=prp, enriched_file=enriched_file, branch=branch, review=review)

    def _find_enrichment(self, prp: MasterPRP) -> Path | None:
        path = self.ctx.enriched_path(prp.id)
        return path if path.is_file() else None

    async def _find_branch(self, prp: MasterPRP) -> str | None:
        branches = await self._query("list_remote_branches", prp, self.vcs.list_remote_branches(prp.branch_prefix))
        if not branches:
            return None
        if len(branches) > 1:
            log.warning("multiple_branches_for_prp", prp_id=prp.id, branches=branches, chosen=branches[0])
        return branches[0]

    @staticmethod
    async def _query(name, prp: MasterPRP, awaitable):
        try:
            return await awaitable
        except QUERY_ERRORS as e:
            log.debug("state_query_failed", query=name, prp_id=prp.id, error=str(e))
            return None

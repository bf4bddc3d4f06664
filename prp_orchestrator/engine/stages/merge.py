"""Merge stage - squash-merge an approved pull request."""

import structlog

from prp_orchestrator.engine.stages.base import WorkflowStage
from prp_orchestrator.enums import ActionOutcome
from prp_orchestrator.exceptions import MergeError
from prp_orchestrator.models.domain import PRPState
from prp_orchestrator.models.plan import MasterPlan

log = structlog.get_logger(__name__)


class MergeStage(WorkflowStage):
    """Merge an approved pull request and delete its branch.

    Hosting errors propagate unchanged; a failed merge ends the run.
    """

    async def execute(self, state: PRPState, plan: MasterPlan) -> ActionOutcome:
        if state.pr_number is None:
            raise MergeError(f"{state.id} has no pull request to merge", prp_id=state.id)

        log.info("merging_pr", prp_id=state.id, pr=state.pr_number)
        await self.configure_bot()
        await self.host.merge(state.pr_number)
        log.info("pr_merged", prp_id=state.id, pr=state.pr_number)
        return ActionOutcome.DONE

"""Revision stage - address review feedback on an open pull request."""

import structlog

from prp_orchestrator.engine.stages.base import FEEDBACK_FILE, WorkflowStage
from prp_orchestrator.engine.state_deriver import CHANGES_LABELS
from prp_orchestrator.enums import ActionOutcome
from prp_orchestrator.exceptions import ExternalServiceError, GitOperationError, RevisionError
from prp_orchestrator.models.domain import PRPState
from prp_orchestrator.models.plan import MasterPlan

log = structlog.get_logger(__name__)

REVISION_COMMIT_MESSAGE = "fix: Address review feedback"
REVISION_COMMENT = "🤖 Revision pushed addressing the feedback. Please review again."


class RevisionStage(WorkflowStage):
    """Run the coding agent against reviewer feedback on the PRP's branch.

    Workflow:
    1. Collect change-request reviews, inline comments and discussion
    2. Stop as a no-op when there is no feedback text at all
    3. Check out the PR branch and write the feedback document
    4. Run the agent with the revision timeout
    5. Commit and push only the files the agent changed
    6. Acknowledge on the PR and remove the change-request labels so it
       returns to pending review
    7. Return to the default branch in every case

    Steps 2 and 5 report a no-op when there is nothing to send back.
    """

    async def execute(self, state: PRPState, plan: MasterPlan) -> ActionOutcome:
        number, branch = state.pr_number, state.branch
        if number is None or branch is None:
            raise RevisionError(f"{state.id} has no pull request to revise", prp_id=state.id)

        log.info("revision_start", prp_id=state.id, pr=number, branch=branch)
        await self.configure_bot()

        try:
            feedback = await self.host.get_feedback(number)
        except ExternalServiceError as e:
            raise RevisionError(f"Could not read feedback for PR #{number}: {e}", prp_id=state.id) from e

        if feedback.is_empty:
            log.warning("no_feedback_found", prp_id=state.id, pr=number)
            return ActionOutcome.NO_OP

        try:
            await self.vcs.fetch()
            await self.vcs.checkout(branch)
            before = await self.snapshot()
        except GitOperationError as e:
            await self.rollback()
            raise RevisionError(f"Could not check out {branch}: {e}", prp_id=state.id) from e

        try:
            await self.vcs.pull(branch)
        except GitOperationError as e:
            log.debug("branch_pull_failed", branch=branch, error=str(e))

        feedback_file = self.ctx.path / FEEDBACK_FILE
        feedback_file.write_text(
            self.renderer.revision_feedback(state.id, feedback, state.enriched_file), encoding="utf-8"
        )

        prompt = (
            f'Read the revision feedback at "{feedback_file}" and address all the requested changes. '
            f'The original PRP is at "{state.enriched_file}". '
            "Focus ONLY on addressing the feedback - do not make unrelated changes."
        )
        try:
            result = await self.run_agent(prompt, "revision")
        finally:
            feedback_file.unlink(missing_ok=True)

        if not result.success:
            await self.rollback(before)
            reason = "timed out" if result.timed_out else "failed"
            raise RevisionError(f"Revision agent {reason} for PR #{number}", prp_id=state.id)

        try:
            changed = await self.agent_changes(before)
            if changed:
                await self.vcs.add(*changed)
                await self.vcs.commit(REVISION_COMMIT_MESSAGE)
                await self.vcs.push(branch)
        except GitOperationError as e:
            await self.rollback(before)
            raise RevisionError(f"Could not push revision for PR #{number}: {e}", prp_id=state.id) from e

        await self.return_to_default()
        if not changed:
            log.warning("revision_produced_no_changes", prp_id=state.id, pr=number)
            return ActionOutcome.NO_OP

        log.info("revision_pushed", prp_id=state.id, pr=number)
        await self._acknowledge(state, number)
        return ActionOutcome.DONE

    async def _acknowledge(self, state: PRPState, number: int) -> None:
        try:
            await self.host.comment(number, REVISION_COMMENT)
            await self.host.remove_labels(number, sorted(CHANGES_LABELS))
        except ExternalServiceError as e:
            log.warning("revision_acknowledge_failed", prp_id=state.id, pr=number, error=str(e))

"""Execution stage - implement an enriched PRP and open a pull request."""

import re

import structlog

from prp_orchestrator.engine.stages.base import WorkflowStage
from prp_orchestrator.engine.validation import run_validation
from prp_orchestrator.enums import ActionOutcome
from prp_orchestrator.exceptions import ExecutionError, ExternalServiceError, GitOperationError
from prp_orchestrator.models.domain import PRPState
from prp_orchestrator.models.plan import MasterPlan, MasterPRP

log = structlog.get_logger(__name__)

SLUG_MAX_LENGTH = 30


def slugify(title: str, max_length: int = SLUG_MAX_LENGTH) -> str:
    """Lowercase alphanumerics joined by single hyphens, at most max_length chars."""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    return slug[:max_length].strip("-")


def branch_name(prp: MasterPRP) -> str:
    """Deterministic branch name for a PRP, e.g. ``auto/prp-001-invoice-model``."""
    slug = slugify(prp.title)
    return f"{prp.branch_prefix}{slug}" if slug else prp.branch_prefix.rstrip("-")


class ExecutionStage(WorkflowStage):
    """Implement an enriched PRP on its own branch.

    Workflow:
    1. Update the default branch
    2. Reuse the PRP's remote branch if one exists, otherwise create it
    3. Run the agent with ``/execute-prp`` and the execution timeout
    4. On agent failure discard what the agent changed and raise
    5. When the agent changed nothing, return to the default branch (no-op)
    6. Run build, test and format validation (best-effort)
    7. Commit only the agent's changes, push and open a pull request
    8. Return to the default branch

    Files that were untracked or modified before the run are never
    committed or discarded.
    """

    async def execute(self, state: PRPState, plan: MasterPlan) -> ActionOutcome:
        if state.enriched_file is None:
            raise ExecutionError(f"{state.id} has not been enriched", prp_id=state.id)

        log.info("execution_start", prp_id=state.id, title=state.title)
        await self.configure_bot()

        try:
            default = await self.return_to_default()
            await self.vcs.pull()
            before = await self.snapshot()
        except GitOperationError as e:
            raise ExecutionError(f"Could not update the default branch: {e}", prp_id=state.id) from e

        branch = state.branch or branch_name(state.prp)
        created = await self._enter_branch(state, branch)
        new_branch = branch if created else None

        result = await self.run_agent(f'/execute-prp "{state.enriched_file}"', "execution")
        if not result.success:
            await self.rollback(before, delete_branch=new_branch)
            reason = "timed out" if result.timed_out else "failed"
            raise ExecutionError(f"Execution agent {reason}", prp_id=state.id)

        try:
            changed = await self.agent_changes(before)
        except GitOperationError as e:
            await self.rollback(delete_branch=new_branch)
            raise ExecutionError(f"Could not read the working tree: {e}", prp_id=state.id) from e

        if not changed:
            log.warning("no_changes_produced", prp_id=state.id, hint="PRP may already be implemented")
            await self.rollback(delete_branch=new_branch)
            return ActionOutcome.NO_OP

        validation = await run_validation(self.ctx)
        log.info(
            "validation_complete",
            prp_id=state.id,
            **{check.name: str(check.status) for check in validation.checks},
        )

        try:
            await self.vcs.add(*changed)

            await self.vcs.commit(f"feat({state.id}): {state.title}\n\nAutomated implementation by PRP Orchestrator.")
            await self.vcs.push(branch, set_upstream=True)
        except GitOperationError as e:
            await self.rollback(before, delete_branch=new_branch)
            raise ExecutionError(f"Could not push {branch}: {e}", prp_id=state.id) from e

        body = self.renderer.pull_request_body(state.prp, validation, state.enriched_file)
        try:
            url = await self.host.create_pull_request(
                title=f"{state.id}: {state.title}", body=body, base=default, head=branch
            )
        except ExternalServiceError as e:
            await self.rollback()
            raise ExecutionError(f"Could not open pull request for {branch}: {e}", prp_id=state.id) from e

        log.info("pull_request_opened", prp_id=state.id, branch=branch, url=url)
        await self.return_to_default()
        return ActionOutcome.DONE

    async def _enter_branch(self, state: PRPState, branch: str) -> bool:
        """Check out the PRP branch, creating it when it does not exist remotely.

        Returns:
            True when the branch was created by this call.
        """
        try:
            if await self.vcs.remote_branch_exists(branch):
                log.warning("branch_exists_reusing", prp_id=state.id, branch=branch)
                await self.vcs.checkout(branch)
                try:
                    await self.vcs.pull(branch)
                except GitOperationError as e:
                    log.debug("branch_pull_failed", branch=branch, error=str(e))
                return False

            await self.vcs.create_branch(branch)
            log.info("branch_created", prp_id=state.id, branch=branch)
            return True
        except GitOperationError as e:
            await self.rollback()
            raise ExecutionError(f"Could not check out {branch}: {e}", prp_id=state.id) from e

"""
Run loop for one project at a time.

Each project run is:

1. Pre-flight: the master plan exists and parses, the agent skills are
   installed, the hosting CLI is authenticated, and the project is a git
   repository
2. Lock: the per-project lock is taken; a live lock held by another run
   ends this run immediately
3. Loop: derive every PRP's state from the external systems, select the
   single next action, perform it, and start over with a fresh derivation

The loop stops when the plan is complete, when a human must review
(Wait, or after a Revise or Execute opened work for review), when an
Execute or Revise produced no changes, when no PRP can proceed until
dependencies merge, when an action fails, or after
``max_actions_per_run`` actions. Re-running the orchestrator is always
safe: nothing is remembered between runs.

Example:
    >>> orchestrator = Orchestrator(config)
    >>> results = await orchestrator.run_all(config.enabled_contexts())
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import structlog

from prp_orchestrator.config.settings import GlobalConfig
from prp_orchestrator.engine.lock import LockManager
from prp_orchestrator.engine.selector import Action, is_complete, select_next
from prp_orchestrator.engine.stages import (
    EnrichmentStage,
    ExecutionStage,
    MergeStage,
    RevisionStage,
    WorkflowStage,
)
from prp_orchestrator.engine.state_deriver import StateDeriver
from prp_orchestrator.enums import ActionKind, ActionOutcome, RunStatus
from prp_orchestrator.exceptions import (
    ConfigurationError,
    GitOperationError,
    LockHeldError,
    PrerequisiteError,
    PRPOrchestratorError,
)
from prp_orchestrator.models.domain import PRPState, ProjectContext
from prp_orchestrator.models.plan import MasterPlan
from prp_orchestrator.providers import ClaudeCodeAgent, GitCLI, GitHubCLI
from prp_orchestrator.providers.base import CodingAgent, ReviewHost, VersionControl
from prp_orchestrator.rendering import PRPRenderer
from prp_orchestrator.skills import ensure_skills

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ProviderSet:
    """Capabilities used for one project."""

    vcs: VersionControl
    host: ReviewHost
    agent: CodingAgent


ProviderFactory = Callable[[ProjectContext, GlobalConfig], ProviderSet]


def default_providers(ctx: ProjectContext, config: GlobalConfig) -> ProviderSet:
    """git, gh and Claude Code working in the project's directory."""
    return ProviderSet(
        vcs=GitCLI(ctx.path),
        host=GitHubCLI(ctx.path, bot=config.bot),
        agent=ClaudeCodeAgent(ctx.path, command=config.defaults.agent_command),
    )


@dataclass(frozen=True)
class RunResult:
    """Outcome of one project run."""

    project: str
    status: RunStatus
    actions: tuple[str, ...] = ()
    message: str = ""


@dataclass(frozen=True)
class ProjectStatus:
    """Read-only snapshot for ``prp status``."""

    project: str
    plan: MasterPlan
    states: list[PRPState] = field(default_factory=list)
    next_action: Action | None = None

    @property
    def complete(self) -> bool:
        return is_complete(self.states, self.plan.completed_ids)


class Orchestrator:
    """Drive derive, select and act for each project.

    Attributes:
        config: Global configuration (defaults and bot credentials).
        provider_factory: Builds the capabilities for a project.
        locks: Per-project lock manager.
        renderer: Document renderer shared by all stages.
    """

    def __init__(
        self,
        config: GlobalConfig,
        provider_factory: ProviderFactory = default_providers,
        locks: LockManager | None = None,
        renderer: PRPRenderer | None = None,
    ) -> None:
        self.config = config
        self.provider_factory = provider_factory
        self.locks = locks or LockManager(max_age_seconds=config.defaults.lock_max_age_minutes * 60)
        self.renderer = renderer or PRPRenderer()

    def build_stages(self, ctx: ProjectContext, providers: ProviderSet) -> dict[ActionKind, WorkflowStage]:
        args = (
            providers.vcs,
            providers.host,
            providers.agent,
            ctx,
            self.config.defaults,
            self.renderer,
            self.config.bot,
        )
        return {
            ActionKind.MERGE: MergeStage(*args),
            ActionKind.REVISE: RevisionStage(*args),
            ActionKind.ENRICH: EnrichmentStage(*args),
            ActionKind.EXECUTE: ExecutionStage(*args),
        }

    async def run_all(self, contexts: Sequence[ProjectContext]) -> list[RunResult]:
        """Run every project in turn. A failing project does not stop the rest."""
        log.info("run_all_start", projects=len(contexts))
        results = []
        for ctx in contexts:
            try:
                results.append(await self.run_once(ctx))
            except Exception as e:
                log.error("project_run_crashed", project=ctx.name, error=str(e), exc_info=True)
                results.append(RunResult(ctx.name, RunStatus.FAILED, message=str(e)))
        return results

    async def run_once(self, ctx: ProjectContext) -> RunResult:
        """Run one project until no unattended action is possible."""
        structlog.contextvars.bind_contextvars(project=ctx.name)
        try:
            result = await self._run_once(ctx)
            log.info("project_run_finished", status=str(result.status), actions=list(result.actions))
            return result
        finally:
            structlog.contextvars.unbind_contextvars("project")

    async def _run_once(self, ctx: ProjectContext) -> RunResult:
        if not ctx.master_file.is_file():
            log.warning("no_master_plan", path=str(ctx.master_file))
            return RunResult(ctx.name, RunStatus.NO_PLAN, message=f"No master plan at {ctx.master_file}")

        try:
            plan = MasterPlan.from_yaml(ctx.master_file)
        except ConfigurationError as e:
            log.error("master_plan_invalid", error=e.message)
            return RunResult(ctx.name, RunStatus.FAILED, message=e.message)

        providers = self.provider_factory(ctx, self.config)
        try:
            await self.preflight(ctx, providers)
        except PrerequisiteError as e:
            log.error("prerequisite_failed", error=e.message)
            return RunResult(ctx.name, RunStatus.PREREQUISITE_FAILED, message=e.message)

        try:
            with self.locks.hold(ctx.lock_file):
                return await self._loop(ctx, plan, providers)
        except LockHeldError as e:
            message = f"Locked by PID {e.holder_pid}" if e.holder_pid else e.message
            return RunResult(ctx.name, RunStatus.LOCKED, message=message)

    async def preflight(self, ctx: ProjectContext, providers: ProviderSet) -> None:
        """Check everything a run needs before taking the lock.

        Raises:
            PrerequisiteError: If the project cannot be automated right now.
        """
        if not ctx.path.is_dir():
            raise PrerequisiteError(f"Project path does not exist: {ctx.path}")

        try:
            ensure_skills(ctx.path)
        except ConfigurationError as e:
            raise PrerequisiteError(e.message) from e

        if not await providers.host.auth_status():
            raise PrerequisiteError("GitHub CLI is not authenticated. Run: gh auth login")

        if not await providers.vcs.is_repository():
            raise PrerequisiteError(f"Not a git repository: {ctx.path}")

    async def _loop(self, ctx: ProjectContext, plan: MasterPlan, providers: ProviderSet) -> RunResult:
        await self._sync_default_branch(providers.vcs)

        deriver = StateDeriver(providers.vcs, providers.host, ctx)
        stages = self.build_stages(ctx, providers)
        actions: list[str] = []

        def result(status: RunStatus, message: str = "") -> RunResult:
            return RunResult(ctx.name, status, tuple(actions), message)

        while len(actions) < self.config.defaults.max_actions_per_run:
            states = await deriver.derive_all(plan)

            if is_complete(states, plan.completed_ids):
                log.info("plan_complete", prps=len(states))
                return result(RunStatus.COMPLETE, "All PRPs merged")

            action = select_next(states, plan.completed_ids)
            if action is None:
                log.info("blocked_on_dependencies")
                return result(RunStatus.BLOCKED, "No PRP can proceed until its dependencies are merged")

            if action.kind is ActionKind.WAIT:
                log.info("waiting_for_review", prp_id=action.prp_id, pr=action.state.pr_number)
                url = action.state.review.url if action.state.review else ""
                return result(RunStatus.WAITING_FOR_REVIEW, f"{action.prp_id} awaiting review {url}".strip())

            log.info("action_selected", action=str(action.kind), prp_id=action.prp_id)
            try:
                outcome = await stages[action.kind].execute(action.state, plan)
            except (PRPOrchestratorError, OSError) as e:
                log.error("action_failed", action=str(action.kind), prp_id=action.prp_id, error=str(e), exc_info=True)
                return result(RunStatus.FAILED, f"{action} failed: {e}")

            actions.append(str(action))
            if outcome is ActionOutcome.NO_OP:
                log.warning("action_was_noop", action=str(action.kind), prp_id=action.prp_id)
                return result(RunStatus.NO_OP, f"{action} produced no changes, nothing new to review")
            if not action.kind.continues_run:
                return result(RunStatus.WAITING_FOR_REVIEW, f"{action} done, a human review is needed")

        log.warning("action_limit_reached", limit=self.config.defaults.max_actions_per_run)
        return result(RunStatus.ACTION_LIMIT, f"Stopped after {len(actions)} actions")

    async def describe(self, ctx: ProjectContext) -> ProjectStatus:
        """Derive state and the next action without acting on it.

        Raises:
            ConfigurationError: If the master plan is missing or invalid.
        """
        if not ctx.master_file.is_file():
            raise ConfigurationError(f"No master plan at {ctx.master_file}")
        plan = MasterPlan.from_yaml(ctx.master_file)

        providers = self.provider_factory(ctx, self.config)
        states = await StateDeriver(providers.vcs, providers.host, ctx).derive_all(plan)
        return ProjectStatus(
            project=ctx.name,
            plan=plan,
            states=states,
            next_action=select_next(states, plan.completed_ids),
        )

    @staticmethod
    async def _sync_default_branch(vcs: VersionControl) -> None:
        try:
            default = await vcs.default_branch()
            await vcs.checkout(default)
            await vcs.pull()
        except GitOperationError as e:
            log.warning("default_branch_sync_failed", error=str(e))

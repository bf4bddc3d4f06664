"""Enrichment stage - turn a plan entry into a detailed PRP document."""

import shutil
import time
from pathlib import Path

import structlog

from prp_orchestrator.engine.stages.base import INITIAL_PRP_PREFIX, WorkflowStage
from prp_orchestrator.enums import ActionOutcome
from prp_orchestrator.exceptions import EnrichmentError, GitOperationError
from prp_orchestrator.models.domain import PRPState
from prp_orchestrator.models.plan import MasterPlan

log = structlog.get_logger(__name__)

SEARCH_DIRS = ("PRPs/enriched", "PRPs", "PRPs/generated", ".")
NAME_PATTERNS = ("{id}.md", "{id}-ENRICHED.md", "{id}-enriched.md")
RECENT_WINDOW_SECONDS = 30 * 60


def find_generated_prp(prp_id: str, project_path: Path, now: float | None = None) -> Path | None:
    """Locate the artifact the enrichment agent wrote.

    Exact names in the candidate directories are authoritative. Failing
    that, the newest ``.md`` file mentioning the id and modified within the
    last 30 minutes is accepted.
    """
    for directory in SEARCH_DIRS:
        base = project_path / directory
        for pattern in NAME_PATTERNS:
            candidate = base / pattern.format(id=prp_id)
            if candidate.is_file():
                return candidate

    now = time.time() if now is None else now
    for directory in SEARCH_DIRS:
        base = project_path / directory
        if not base.is_dir():
            continue
        try:
            recent = [
                (path.stat().st_mtime, path)
                for path in base.iterdir()
                if path.is_file()
                and path.suffix == ".md"
                and prp_id in path.name
                and not path.name.startswith(INITIAL_PRP_PREFIX)
            ]
        except OSError as e:
            log.debug("search_dir_unreadable", directory=str(base), error=str(e))
            continue

        recent = [(mtime, path) for mtime, path in recent if now - mtime < RECENT_WINDOW_SECONDS]
        if recent:
            _, newest = max(recent)
            log.warning("enriched_prp_found_by_mtime", prp_id=prp_id, path=str(newest))
            return newest

    return None


class EnrichmentStage(WorkflowStage):
    """Have the coding agent research the codebase and write the enriched PRP.

    The seed document is written to the project root, the agent runs the
    ``/generate-prp`` command on it, and the artifact it produces is moved
    to the canonical enrichment location and pushed to the default branch.
    """

    async def execute(self, state: PRPState, plan: MasterPlan) -> ActionOutcome:
        log.info("enrichment_start", prp_id=state.id, title=state.title)
        await self.configure_bot()

        try:
            default = await self.return_to_default()
            await self.vcs.pull()
            before = await self.snapshot()
        except GitOperationError as e:
            raise EnrichmentError(f"Could not update the default branch: {e}", prp_id=state.id) from e

        self.ctx.enriched_dir.mkdir(parents=True, exist_ok=True)
        initial_file = self.ctx.path / f"{INITIAL_PRP_PREFIX}{state.id}.md"
        initial_file.write_text(self.renderer.initial_prp(state.prp, plan), encoding="utf-8")

        try:
            result = await self.run_agent(f'/generate-prp "{initial_file}"', "enrichment")
        finally:
            initial_file.unlink(missing_ok=True)

        if not result.success:
            await self.rollback(before)
            reason = "timed out" if result.timed_out else "failed"
            raise EnrichmentError(f"Enrichment agent {reason}", prp_id=state.id)

        generated = find_generated_prp(state.id, self.ctx.path)
        if generated is None:
            await self.rollback(before)
            raise EnrichmentError("Generated PRP file not found", prp_id=state.id)

        enriched_file = self.ctx.enriched_path(state.id)
        if generated.resolve() != enriched_file.resolve():
            shutil.move(generated, enriched_file)
        log.info("enriched_prp_saved", prp_id=state.id, path=str(enriched_file))

        try:
            await self.vcs.add(enriched_file)
            await self.vcs.commit(f"chore(prp): Enrich {state.id}")
            await self.vcs.push()
        except GitOperationError as e:
            raise EnrichmentError(f"Could not publish enriched PRP: {e}", prp_id=state.id) from e

        log.info("enriched_prp_committed", prp_id=state.id, branch=default)
        return ActionOutcome.DONE

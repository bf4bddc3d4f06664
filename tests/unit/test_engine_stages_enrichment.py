"""Tests for prp_orchestrator/engine/stages/enrichment.py."""

import os
import time

import pytest

from prp_orchestrator.engine.stages.enrichment import EnrichmentStage, find_generated_prp
from prp_orchestrator.enums import ActionOutcome
from prp_orchestrator.exceptions import EnrichmentError, GitOperationError
from prp_orchestrator.models.domain import AgentResult
from tests.factories import agent_dirties, make_state, working_tree


@pytest.fixture
def stage(mock_vcs, mock_host, mock_agent, project_ctx, defaults, renderer):
    return EnrichmentStage(mock_vcs, mock_host, mock_agent, project_ctx, defaults, renderer)


@pytest.fixture
def state(sample_plan):
    return make_state(sample_plan.prps[0])


def agent_writes(path, content="# PRP-001 enriched\n"):
    """Agent side effect that writes an artifact and reports success."""

    async def _run(prompt, timeout=None):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return AgentResult(success=True)

    return _run


# =============================================================================
# Artifact discovery
# =============================================================================


class TestFindGeneratedPRP:
    """Locating whatever file the agent wrote."""

    def test_nothing_found(self, project_dir):
        assert find_generated_prp("PRP-001", project_dir) is None

    def test_canonical_location(self, project_dir):
        target = project_dir / "PRPs" / "enriched" / "PRP-001.md"
        target.parent.mkdir(parents=True)
        target.write_text("x")

        assert find_generated_prp("PRP-001", project_dir) == target

    def test_alternate_name_in_prps_dir(self, project_dir):
        target = project_dir / "PRPs" / "PRP-001-ENRICHED.md"
        target.parent.mkdir(parents=True)
        target.write_text("x")

        assert find_generated_prp("PRP-001", project_dir) == target

    def test_recent_file_mentioning_id(self, project_dir):
        target = project_dir / "PRPs" / "generated" / "feature-PRP-001-plan.md"
        target.parent.mkdir(parents=True)
        target.write_text("x")

        assert find_generated_prp("PRP-001", project_dir) == target

    def test_old_file_is_ignored(self, project_dir):
        target = project_dir / "feature-PRP-001-plan.md"
        target.write_text("x")
        old = time.time() - 3600
        os.utime(target, (old, old))

        assert find_generated_prp("PRP-001", project_dir) is None

    def test_seed_document_is_ignored(self, project_dir):
        (project_dir / ".prp-initial-PRP-001.md").write_text("seed")

        assert find_generated_prp("PRP-001", project_dir) is None


# =============================================================================
# Stage
# =============================================================================


class TestEnrichmentStage:
    """Seed, agent, relocate and publish."""

    @pytest.mark.asyncio
    async def test_happy_path(self, stage, state, sample_plan, mock_vcs, mock_agent, project_ctx):
        seen = {}
        artifact = project_ctx.path / "PRPs" / "PRP-001-enriched.md"
        write_artifact = agent_writes(artifact)

        async def run(prompt, timeout=None):
            seed = project_ctx.path / ".prp-initial-PRP-001.md"
            seen["seed"] = seed.read_text()
            seen["prompt"] = prompt
            seen["timeout"] = timeout
            return await write_artifact(prompt, timeout)

        mock_agent.run.side_effect = run

        assert await stage.execute(state, sample_plan) is ActionOutcome.DONE

        enriched = project_ctx.enriched_path("PRP-001")
        assert enriched.read_text() == "# PRP-001 enriched\n"
        assert not artifact.exists()
        assert not (project_ctx.path / ".prp-initial-PRP-001.md").exists()
        assert seen["prompt"].startswith("/generate-prp ")
        assert "# PRP-001 - Invoice model" in seen["seed"]
        assert seen["timeout"] == 25 * 60.0
        mock_vcs.pull.assert_awaited_once_with()
        mock_vcs.add.assert_awaited_once_with(enriched)
        mock_vcs.commit.assert_awaited_once_with("chore(prp): Enrich PRP-001")
        mock_vcs.push.assert_awaited_once_with()

    @pytest.mark.asyncio
    async def test_agent_failure(self, stage, state, sample_plan, mock_vcs, mock_agent, project_ctx):
        tree = working_tree(mock_vcs, "?? PRPs/master-plan.yaml")
        mock_agent.run.side_effect = agent_dirties(tree, "?? notes.md", result=AgentResult(success=False))

        with pytest.raises(EnrichmentError, match="failed"):
            await stage.execute(state, sample_plan)

        mock_vcs.discard_paths.assert_awaited_once_with(["notes.md"])
        mock_vcs.commit.assert_not_awaited()
        assert not (project_ctx.path / ".prp-initial-PRP-001.md").exists()

    @pytest.mark.asyncio
    async def test_missing_artifact(self, stage, state, sample_plan, mock_vcs):
        with pytest.raises(EnrichmentError, match="not found"):
            await stage.execute(state, sample_plan)

        mock_vcs.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_default_branch_update_failure(self, stage, state, sample_plan, mock_vcs, mock_agent):
        mock_vcs.pull.side_effect = GitOperationError("diverged")

        with pytest.raises(EnrichmentError):
            await stage.execute(state, sample_plan)

        mock_agent.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_push_failure(self, stage, state, sample_plan, mock_vcs, mock_agent, project_ctx):
        mock_agent.run.side_effect = agent_writes(project_ctx.enriched_path("PRP-001"))
        mock_vcs.push.side_effect = GitOperationError("rejected")

        with pytest.raises(EnrichmentError, match="publish"):
            await stage.execute(state, sample_plan)

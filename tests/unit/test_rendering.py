"""Tests for prp_orchestrator/rendering - sandboxed document templates."""

import pytest
import yaml
from jinja2 import TemplateNotFound, UndefinedError
from jinja2.exceptions import SecurityError

from prp_orchestrator.enums import CheckStatus
from prp_orchestrator.models.domain import ValidationCheck, ValidationResult
from prp_orchestrator.models.plan import FileToCreate, MasterPlan
from prp_orchestrator.providers.base import ReviewFeedback
from prp_orchestrator.rendering import TemplateEngine
from prp_orchestrator.rendering.engine import bullet_list


class TestTemplateEngine:
    """Low-level engine behaviour."""

    def test_path_traversal_rejected(self):
        with pytest.raises(ValueError, match="escapes"):
            TemplateEngine().render("../engine/lock.py", {})

    def test_missing_template(self):
        with pytest.raises(TemplateNotFound):
            TemplateEngine().render("nope.md.j2", {})

    def test_strict_undefined(self, tmp_path):
        (tmp_path / "t.j2").write_text("{{ missing }}")

        with pytest.raises(UndefinedError):
            TemplateEngine(tmp_path).render("t.j2", {})

    def test_sandbox_blocks_attribute_escape(self, tmp_path):
        (tmp_path / "t.j2").write_text("{{ value.__class__.__mro__ }}")

        with pytest.raises(SecurityError):
            TemplateEngine(tmp_path).render("t.j2", {"value": "x"})

    def test_invalid_template_dir(self, tmp_path):
        with pytest.raises(ValueError, match="does not exist"):
            TemplateEngine(tmp_path / "missing")

    def test_bullet_list(self):
        assert bullet_list(["a", "b"]) == "- a\n- b"
        assert bullet_list(["a"], checkbox=True) == "- [ ] a"

    def test_list_templates(self):
        templates = TemplateEngine().list_templates()

        assert "initial_prp.md.j2" in templates
        assert "pull_request.md.j2" in templates


class TestPRPRenderer:
    """Documents written for the agent and for reviewers."""

    def test_initial_prp(self, renderer, sample_plan):
        prp = sample_plan.prps[0].model_copy(
            update={"files_to_create": [FileToCreate(path="app/invoice.py", purpose="Invoice model")]}
        )

        text = renderer.initial_prp(prp, sample_plan)

        assert text.startswith("# PRP-001 - Invoice model")
        assert "### Goal\nAdd an Invoice table and repository." in text
        assert "FastAPI service with SQLAlchemy models." in text
        assert "- `app/invoice.py`: Invoice model" in text
        assert "- [ ] Invoices can be stored and loaded" in text
        assert "## CONSTRAINTS:\n- Keep the public API stable" in text
        assert "### Dependencies" not in text

    def test_initial_prp_dependencies(self, renderer, sample_plan):
        text = renderer.initial_prp(sample_plan.prps[1], sample_plan)

        assert "- PRP-001 must be completed first" in text

    def test_pull_request_body(self, renderer, sample_plan):
        validation = ValidationResult(
            checks=(
                ValidationCheck("build", CheckStatus.PASSED),
                ValidationCheck("test", CheckStatus.FAILED),
                ValidationCheck("format", CheckStatus.SKIPPED),
            )
        )

        body = renderer.pull_request_body(sample_plan.prps[0], validation, "PRPs/enriched/PRP-001.md")

        assert "| Build | ✅ Pass |" in body
        assert "| Test | ❌ Fail |" in body
        assert "| Format | ⏭️ Skipped |" in body
        assert "`approved`" in body and "`changes-requested`" in body
        assert "PRPs/enriched/PRP-001.md" in body

    def test_revision_feedback(self, renderer):
        feedback = ReviewFeedback(
            reviews=["First review", "Second review"],
            inline=["**a.py:3**: rename"],
            discussion=[],
        )

        text = renderer.revision_feedback("PRP-001", feedback, None)

        assert text.startswith("# Revision Required for PRP-001")
        assert "First review\n\nSecond review" in text
        assert "- **a.py:3**: rename" in text
        assert "## Discussion" not in text
        assert "(not available)" in text

    def test_master_plan_template_is_valid(self, renderer):
        data = yaml.safe_load(renderer.master_plan('My "quoted" project'))

        plan = MasterPlan.model_validate(data)
        assert plan.name == 'My "quoted" project'
        assert plan.prps

    def test_skills_bundled(self, renderer):
        assert {"execute-prp.md", "generate-prp.md"} <= set(renderer.skill_files())
        assert "$ARGUMENTS" in renderer.skill("generate-prp.md")

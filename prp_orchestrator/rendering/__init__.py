"""Document rendering for the coding agent and for reviewers.

Key Exports:
    TemplateEngine: Low-level sandboxed Jinja2 engine.
    PRPRenderer: Renders the specific documents the workflows need.

Example:
    >>> from prp_orchestrator.rendering import PRPRenderer
    >>> renderer = PRPRenderer()
    >>> seed = renderer.initial_prp(prp, plan)
"""

from pathlib import Path

from prp_orchestrator.models.domain import ValidationResult
from prp_orchestrator.models.plan import MasterPlan, MasterPRP
from prp_orchestrator.providers.base import ReviewFeedback

from .engine import TemplateEngine

__all__ = ["PRPRenderer", "TemplateEngine"]


class PRPRenderer:
    """High-level API over the package templates."""

    def __init__(self, template_dir: Path | None = None) -> None:
        self.engine = TemplateEngine(template_dir=template_dir)

    def initial_prp(self, prp: MasterPRP, plan: MasterPlan) -> str:
        """Seed document handed to the enrichment agent."""
        return self.engine.render("initial_prp.md.j2", {"prp": prp, "plan": plan})

    def pull_request_body(self, prp: MasterPRP, validation: ValidationResult, enriched_file: Path | str) -> str:
        """Pull request body with the validation table and review instructions."""
        return self.engine.render(
            "pull_request.md.j2",
            {"prp": prp, "validation": validation, "enriched_file": str(enriched_file)},
        )

    def revision_feedback(self, prp_id: str, feedback: ReviewFeedback, enriched_file: Path | str | None) -> str:
        """Feedback document handed to the revision agent."""
        return self.engine.render(
            "revision_feedback.md.j2",
            {"prp_id": prp_id, "feedback": feedback, "enriched_file": str(enriched_file or "(not available)")},
        )

    def master_plan(self, name: str) -> str:
        """Starter master-plan.yaml for ``prp init``."""
        return self.engine.render("master_plan.yaml.j2", {"name": name})

    def skill(self, filename: str) -> str:
        """Raw content of a bundled agent command file."""
        return self.engine.read_raw(f"skills/{filename}")

    def skill_files(self) -> list[str]:
        return [Path(path).name for path in self.engine.list_templates("skills/*.md")]

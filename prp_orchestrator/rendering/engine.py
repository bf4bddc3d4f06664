"""Sandboxed Jinja2 template rendering engine.

All documents the orchestrator writes for the coding agent or for human
reviewers (initial PRP documents, revision feedback, pull request bodies,
the starter master plan) are rendered from package templates through this
engine.

Features:
    - Sandboxed environment: plan text is user-supplied and ends up in
      template context
    - StrictUndefined catches missing variables early
    - Template path validation keeps lookups inside the template directory

Example:
    >>> from prp_orchestrator.rendering.engine import TemplateEngine
    >>> engine = TemplateEngine()
    >>> body = engine.render("pull_request.md.j2", {"prp": prp, "checks": checks})
"""

from pathlib import Path
from typing import Any, cast

from jinja2 import FileSystemLoader, StrictUndefined, TemplateNotFound
from jinja2.sandbox import SandboxedEnvironment

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"


def bullet_list(items: list[Any], checkbox: bool = False) -> str:
    """Render a list as markdown bullets, one per line."""
    marker = "- [ ] " if checkbox else "- "
    return "\n".join(f"{marker}{item}" for item in items)


class TemplateEngine:
    """Jinja2 engine over the package's markdown and YAML templates.

    Configuration:
        - Autoescape disabled (markdown and YAML, not HTML)
        - trim_blocks/lstrip_blocks enabled so block tags leave no blank lines
        - keep_trailing_newline preserves file format

    Attributes:
        template_dir: Resolved path to the template directory.
        env: The SandboxedEnvironment instance.
    """

    def __init__(self, template_dir: Path | None = None) -> None:
        """Initialize the engine.

        Args:
            template_dir: Root directory for templates. Defaults to the
                package's built-in templates directory.

        Raises:
            ValueError: If template_dir doesn't exist or isn't a directory.
        """
        self.template_dir = (template_dir or TEMPLATE_DIR).resolve()

        if not self.template_dir.exists():
            raise ValueError(f"Template directory does not exist: {self.template_dir}")
        if not self.template_dir.is_dir():
            raise ValueError(f"Template path is not a directory: {self.template_dir}")

        self.env = SandboxedEnvironment(
            loader=FileSystemLoader(str(self.template_dir)),
            undefined=StrictUndefined,
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )
        self.env.filters["bullet_list"] = bullet_list
        self.env.globals["none"] = None

    def validate_template_path(self, template_path: str) -> Path:
        """Resolve a template path, refusing paths outside template_dir.

        Raises:
            ValueError: If the path escapes the template directory.
            TemplateNotFound: If the template file doesn't exist.
        """
        requested_path = (self.template_dir / template_path).resolve()

        try:
            requested_path.relative_to(self.template_dir)
        except ValueError as e:
            raise ValueError(f"Template path escapes template directory: {template_path}") from e

        if not requested_path.exists():
            raise TemplateNotFound(template_path)

        return requested_path

    def render(self, template_path: str, context: dict[str, Any]) -> str:
        """Render a template with the given context.

        Raises:
            TemplateNotFound: If template doesn't exist.
            jinja2.UndefinedError: If the template uses an undefined variable.
        """
        self.validate_template_path(template_path)
        template = self.env.get_template(template_path)
        return cast(str, template.render(**context))

    def read_raw(self, template_path: str) -> str:
        """Return a template file's content without rendering it."""
        return self.validate_template_path(template_path).read_text(encoding="utf-8")

    def list_templates(self, pattern: str = "**/*.j2") -> list[str]:
        """List template paths relative to template_dir matching a glob."""
        return sorted(
            str(path.relative_to(self.template_dir))
            for path in self.template_dir.glob(pattern)
            if path.is_file()
        )

"""Installation of the agent command files ("skills") into projects.

The enrichment and execution workflows invoke the coding agent with
``/generate-prp`` and ``/execute-prp``. Claude Code resolves those slash
commands from ``<project>/.claude/commands/``, so the bundled command files
are copied there before a project run.
"""

from pathlib import Path

import structlog

from prp_orchestrator.exceptions import ConfigurationError
from prp_orchestrator.rendering import PRPRenderer

log = structlog.get_logger(__name__)

REQUIRED_SKILLS = ("execute-prp.md", "generate-prp.md")


def skills_dir(project_path: str | Path) -> Path:
    return Path(project_path) / ".claude" / "commands"


def install_skills(project_path: str | Path, force: bool = False) -> list[str]:
    """Copy every bundled skill into the project.

    Existing files are left alone unless ``force`` is set.

    Returns:
        Filenames that were written.

    Raises:
        ConfigurationError: If the commands directory cannot be written.
    """
    renderer = PRPRenderer()
    target_dir = skills_dir(project_path)
    written = []

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        for filename in renderer.skill_files():
            target = target_dir / filename
            if target.exists() and not force:
                continue
            target.write_text(renderer.skill(filename), encoding="utf-8")
            written.append(filename)
            log.info("skill_installed", skill=filename, path=str(target))
    except OSError as e:
        raise ConfigurationError(f"Cannot install skills into {target_dir}: {e}") from e

    return written


def check_skills(project_path: str | Path) -> tuple[bool, list[str]]:
    """Report whether the skills the workflows rely on are installed.

    Returns:
        ``(installed, missing)`` where ``missing`` lists absent filenames.
    """
    directory = skills_dir(project_path)
    missing = [name for name in REQUIRED_SKILLS if not (directory / name).exists()]
    return not missing, missing


def ensure_skills(project_path: str | Path) -> None:
    """Install missing skills without overwriting customised ones."""
    installed, missing = check_skills(project_path)
    if not installed:
        log.info("installing_missing_skills", missing=missing)
        install_skills(project_path, force=False)


def list_skills(project_path: str | Path) -> list[str]:
    """Names (without ``.md``) of the command files present in a project."""
    directory = skills_dir(project_path)
    if not directory.is_dir():
        return []
    return sorted(path.stem for path in directory.glob("*.md"))


def skill_content(name: str) -> str | None:
    """Bundled content of a skill, by name with or without ``.md``."""
    filename = name if name.endswith(".md") else f"{name}.md"
    renderer = PRPRenderer()
    if filename not in renderer.skill_files():
        return None
    return renderer.skill(filename)

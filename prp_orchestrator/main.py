"""CLI entry point for the PRP orchestrator."""

import asyncio
import shutil
import sys
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import NoReturn

import click
import structlog

from prp_orchestrator.config import ConfigStore, GlobalConfig, config_home, project_context_for
from prp_orchestrator.config.settings import DEFAULT_ENRICHED_DIR, DEFAULT_MASTER_FILE, LOCK_FILE_NAME
from prp_orchestrator.engine.lock import cleanup_all_locks, install_cleanup_handlers
from prp_orchestrator.engine.orchestrator import Orchestrator, ProjectStatus, RunResult
from prp_orchestrator.enums import Decision, Lifecycle, RunStatus
from prp_orchestrator.exceptions import ConfigurationError, PRPOrchestratorError
from prp_orchestrator.models.domain import PRPState, ProjectContext
from prp_orchestrator.rendering import PRPRenderer
from prp_orchestrator.skills import check_skills, install_skills, list_skills, skill_content, skills_dir
from prp_orchestrator.utils.logging_config import configure_logging

log = structlog.get_logger(__name__)

FAILED_STATUSES = {RunStatus.FAILED, RunStatus.PREREQUISITE_FAILED}

STATE_ICONS = {
    "merged": "✅",
    Decision.APPROVED: "👍",
    Decision.CHANGES_REQUESTED: "🔄",
    Decision.PENDING: "👀",
    Decision.NONE: "👀",
    "closed": "❌",
    "enriched": "📝",
    "not_enriched": "⏳",
}


def _fail(message: str, code: int = 1) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(code)


def _store(ctx: click.Context) -> ConfigStore:
    return ctx.obj["store"]


def _load_config(ctx: click.Context) -> GlobalConfig:
    try:
        return _store(ctx).load()
    except ConfigurationError as e:
        log.debug("config_error", exc_info=True)
        _fail(e.message)


def _state_icon(state: PRPState) -> str:
    if state.is_merged:
        return STATE_ICONS["merged"]
    if state.decision is not None:
        return STATE_ICONS[state.decision]
    if state.lifecycle is Lifecycle.CLOSED:
        return STATE_ICONS["closed"]
    return STATE_ICONS["enriched"] if state.is_enriched else STATE_ICONS["not_enriched"]


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to configuration file (default: ~/.prp-orchestrator/config.yaml)",
)
@click.option("--log-level", default="INFO", help="Logging level")
@click.option("--json-logs", is_flag=True, help="Emit logs as JSON lines")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, log_level: str, json_logs: bool) -> None:
    """PRP Orchestrator: automated, review-gated delivery with a coding agent."""
    configure_logging(log_level, json_logs=json_logs)
    ctx.obj = {"store": ConfigStore(config_path)}


# =============================================================================
# Run
# =============================================================================


@cli.command()
@click.option(
    "-p",
    "--project",
    "project_path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Run for a specific project path",
)
@click.option("-a", "--all", "run_all", is_flag=True, help="Run for all enabled registered projects")
@click.option("-w", "--watch", is_flag=True, help="Keep running, checking on an interval")
@click.option("-i", "--interval", type=click.IntRange(min=1), default=None, help="Check interval in minutes")
@click.pass_context
def run(ctx: click.Context, project_path: Path | None, run_all: bool, watch: bool, interval: int | None) -> None:
    """Run orchestration cycles until a human is needed."""
    config = _load_config(ctx)
    if project_path and run_all:
        _fail("--project and --all are mutually exclusive")

    install_cleanup_handlers()
    orchestrator = Orchestrator(config)

    def contexts() -> list[ProjectContext]:
        if run_all:
            return _store(ctx).enabled_contexts()
        return [_context_for(config, project_path or Path.cwd())]

    try:
        if not watch:
            results = asyncio.run(_run_cycle(orchestrator, contexts()))
            if any(result.status in FAILED_STATUSES for result in results):
                sys.exit(1)
            return

        minutes = interval or config.defaults.check_interval_minutes
        click.echo(f"Watch mode: checking every {minutes} minutes. Press Ctrl+C to stop.")
        while True:
            asyncio.run(_run_cycle(orchestrator, contexts()))
            click.echo(f"\nWaiting {minutes} minutes before next check...\n")
            time.sleep(minutes * 60)
    except PRPOrchestratorError as e:
        log.debug("run_error", exc_info=True)
        _fail(e.message)
    except KeyboardInterrupt:
        cleanup_all_locks()
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)


def _context_for(config: GlobalConfig, path: Path) -> ProjectContext:
    entry = config.find_project(str(path))
    return entry.to_context() if entry else project_context_for(path)


async def _run_cycle(orchestrator: Orchestrator, contexts: list[ProjectContext]) -> list[RunResult]:
    click.echo("=" * 60)
    click.echo(f"  PRP Orchestrator  {datetime.now(UTC).isoformat(timespec='seconds')}")
    click.echo("=" * 60)

    if not contexts:
        click.echo("No projects registered. Add one with: prp add <name> <path>")
        return []

    results = await orchestrator.run_all(contexts)
    for result in results:
        line = f"{result.project}: {result.status}"
        if result.actions:
            line += f" [{', '.join(result.actions)}]"
        if result.message:
            line += f" - {result.message}"
        click.echo(line, err=result.status in FAILED_STATUSES)
    return results


# =============================================================================
# Status
# =============================================================================


@cli.command()
@click.argument("path", required=False, type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.pass_context
def status(ctx: click.Context, path: Path | None) -> None:
    """Show derived PRP state and the next action, without acting."""
    config = _load_config(ctx)
    project = _context_for(config, path or Path.cwd())

    try:
        snapshot = asyncio.run(Orchestrator(config).describe(project))
    except PRPOrchestratorError as e:
        log.debug("status_error", exc_info=True)
        _fail(e.message)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        sys.exit(130)

    _print_status(snapshot)


def _print_status(snapshot: ProjectStatus) -> None:
    click.echo(f"\nProject: {snapshot.project}")
    click.echo(f"Feature: {snapshot.plan.name}\n")

    for state in snapshot.states:
        click.echo(f"  {_state_icon(state)} {state.id}: {state.title} ({state.describe()})")

    click.echo("")
    if snapshot.complete:
        click.echo("All PRPs merged. Feature complete.")
    elif snapshot.next_action is None:
        click.echo("Next: nothing (waiting for dependencies to be merged)")
    else:
        click.echo(f"Next: {snapshot.next_action}")


# =============================================================================
# Project management
# =============================================================================


@cli.command()
@click.argument("name")
@click.argument("path", type=click.Path(path_type=Path))
@click.pass_context
def add(ctx: click.Context, name: str, path: Path) -> None:
    """Register a project."""
    try:
        entry = _store(ctx).add_project(name, path)
    except ConfigurationError as e:
        _fail(e.message)
    click.echo(f"Added project: {entry.name}")
    click.echo(f"Path: {entry.path}")


@cli.command()
@click.argument("name_or_path")
@click.pass_context
def remove(ctx: click.Context, name_or_path: str) -> None:
    """Remove a registered project."""
    try:
        entry = _store(ctx).remove_project(name_or_path)
    except ConfigurationError as e:
        _fail(e.message)
    click.echo(f"Removed project: {entry.name}")


@cli.command("list")
@click.pass_context
def list_projects(ctx: click.Context) -> None:
    """List registered projects."""
    projects = _load_config(ctx).projects
    if not projects:
        click.echo("No projects registered.")
        click.echo("Add one with: prp add <name> <path>")
        return

    click.echo("Registered Projects:\n")
    for project in projects:
        marker = "✅" if project.enabled else "⏸️ "
        click.echo(f"  {marker} {project.name}")
        click.echo(f"     {project.path}")


@cli.command()
@click.argument("name")
@click.pass_context
def enable(ctx: click.Context, name: str) -> None:
    """Enable a project."""
    try:
        _store(ctx).set_enabled(name, True)
    except ConfigurationError as e:
        _fail(e.message)
    click.echo(f"Enabled: {name}")


@cli.command()
@click.argument("name")
@click.pass_context
def disable(ctx: click.Context, name: str) -> None:
    """Disable a project (skipped by run --all)."""
    try:
        _store(ctx).set_enabled(name, False)
    except ConfigurationError as e:
        _fail(e.message)
    click.echo(f"Disabled: {name}")


# =============================================================================
# Project setup
# =============================================================================


@cli.command()
@click.argument("path", required=False, default=".", type=click.Path(file_okay=False, path_type=Path))
def init(path: Path) -> None:
    """Create PRPs/master-plan.yaml from a template."""
    root = path.resolve()
    master_file = root / DEFAULT_MASTER_FILE

    try:
        (root / DEFAULT_ENRICHED_DIR).mkdir(parents=True, exist_ok=True)
        if master_file.exists():
            click.echo(f"{master_file} already exists")
        else:
            master_file.write_text(PRPRenderer().master_plan(root.name), encoding="utf-8")
            click.echo(f"Created: {master_file}")
        _ignore_lock_file(root)
    except OSError as e:
        _fail(f"Cannot initialise {root}: {e}")

    click.echo("\nNext steps:")
    click.echo(f"  1. Edit {DEFAULT_MASTER_FILE} with your requirements")
    click.echo("  2. Run: prp run")


def _ignore_lock_file(root: Path) -> None:
    gitignore = root / ".gitignore"
    lines = gitignore.read_text(encoding="utf-8").splitlines() if gitignore.exists() else []
    if LOCK_FILE_NAME in lines:
        return
    with gitignore.open("a", encoding="utf-8") as handle:
        if lines and lines[-1].strip():
            handle.write("\n")
        handle.write(f"{LOCK_FILE_NAME}\n")


@cli.command("install-skills")
@click.argument("path", required=False, default=".", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("-f", "--force", is_flag=True, help="Overwrite existing skills")
def install_skills_command(path: Path, force: bool) -> None:
    """Install the agent command files into <project>/.claude/commands/."""
    root = path.resolve()
    try:
        written = install_skills(root, force=force)
    except ConfigurationError as e:
        _fail(e.message)

    for name in written:
        click.echo(f"Installed skill: {name}")
    if not written:
        click.echo("Skills already installed (use --force to overwrite)")
    click.echo(f"Skills directory: {skills_dir(root)}")


@cli.command("check-skills")
@click.argument("path", required=False, default=".", type=click.Path(exists=True, file_okay=False, path_type=Path))
def check_skills_command(path: Path) -> None:
    """Check that the required agent command files are installed."""
    root = path.resolve()
    installed, missing = check_skills(root)

    click.echo(f"Project: {root}")
    if installed:
        click.echo("All required skills are installed")
    else:
        click.echo(f"Missing skills: {', '.join(missing)}")
        click.echo("Run: prp install-skills")

    click.echo("\nInstalled skills:")
    for name in list_skills(root):
        click.echo(f"  - {name}")

    if not installed:
        sys.exit(1)


@cli.command("show-skill")
@click.argument("name")
def show_skill(name: str) -> None:
    """Print a bundled agent command file (e.g. execute-prp)."""
    content = skill_content(name)
    if content is None:
        _fail(f"Unknown skill: {name}")
    click.echo(content, nl=False)


# =============================================================================
# Configuration
# =============================================================================


@cli.command()
@click.option(
    "--set",
    "assignments",
    multiple=True,
    metavar="KEY=VALUE",
    help="Change a default (e.g. execution_timeout_minutes=30); repeatable",
)
@click.pass_context
def config(ctx: click.Context, assignments: tuple[str, ...]) -> None:
    """Show configuration, or change defaults with --set."""
    if assignments:
        changes = {}
        for assignment in assignments:
            key, sep, value = assignment.partition("=")
            if not sep or not key.strip():
                _fail(f"Expected KEY=VALUE, got: {assignment}")
            changes[key.strip()] = value.strip()
        try:
            _store(ctx).update_defaults(**changes)
        except ConfigurationError as e:
            _fail(e.message)
        for key, value in changes.items():
            click.echo(f"Set {key} = {value}")
        return

    settings = _load_config(ctx)
    defaults = settings.defaults

    click.echo("PRP Orchestrator Configuration")
    click.echo("-" * 40)
    click.echo(f"Config file: {_store(ctx).path}")
    click.echo("Skills directory: <project>/.claude/commands/ (per project)")
    click.echo("\nTimeouts:")
    click.echo(f"  Enrichment: {defaults.enrichment_timeout_minutes} minutes")
    click.echo(f"  Execution:  {defaults.execution_timeout_minutes} minutes")
    click.echo(f"  Revision:   {defaults.revision_timeout_minutes} minutes")
    click.echo(f"\nLock max age: {defaults.lock_max_age_minutes} minutes")
    click.echo(f"Check interval: {defaults.check_interval_minutes} minutes")
    click.echo(f"Agent command: {defaults.agent_command}")
    click.echo(f"Bot account: {settings.bot.username if settings.bot else '(none)'}")
    click.echo(f"\nRegistered projects: {len(settings.projects)}")


@cli.command("set-bot")
@click.argument("username")
@click.argument("token")
@click.pass_context
def set_bot(ctx: click.Context, username: str, token: str) -> None:
    """Store bot credentials used for commits and pull requests."""
    try:
        _store(ctx).set_bot(username, token)
    except ConfigurationError as e:
        _fail(e.message)
    click.echo(f"Bot account set: {username}")


@cli.command()
@click.pass_context
def cron(ctx: click.Context) -> None:
    """Show cron setup instructions."""
    command = shutil.which("prp") or "prp"
    log_file = config_home() / "prp.log"
    config_arg = f" --config {ctx.obj['store'].path}" if ctx.parent and ctx.parent.params.get("config_path") else ""

    click.echo("Run the orchestrator every few minutes from cron. Each run derives")
    click.echo("state, performs the next actions and exits when a human is needed.\n")
    click.echo("Edit your crontab with `crontab -e` and add:\n")
    click.echo(f"  */3 * * * * {command}{config_arg} run --all >> {log_file} 2>&1\n")
    click.echo("Or for a single project:\n")
    click.echo(f"  */3 * * * * {command}{config_arg} run -p /path/to/project >> {log_file} 2>&1\n")
    click.echo("For a foreground loop instead of cron:\n")
    click.echo(f"  {command} run --all --watch")


if __name__ == "__main__":
    cli()

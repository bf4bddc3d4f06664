"""Best-effort project validation after the execution agent finishes.

Build, test and format checks run independently. A failing check is
recorded in the pull request body; it never stops the workflow.

Commands come from the project's configured validation commands; checks
without one fall back to ``package.json`` scripts, and are skipped when
neither source provides a command.
"""

import json
import shlex

import structlog

from prp_orchestrator.enums import CheckStatus
from prp_orchestrator.models.domain import ProjectContext, ValidationCheck, ValidationResult
from prp_orchestrator.utils.async_subprocess import run_command

log = structlog.get_logger(__name__)

CHECKS = ("build", "test", "format")

CHECK_TIMEOUTS = {
    "build": 5 * 60.0,
    "test": 10 * 60.0,
    "format": 5 * 60.0,
}


def detect_commands(ctx: ProjectContext) -> dict[str, str]:
    """Resolve the command for each check, configured commands first."""
    commands: dict[str, str] = {}

    package_json = ctx.path / "package.json"
    if package_json.is_file():
        try:
            scripts = json.loads(package_json.read_text(encoding="utf-8")).get("scripts") or {}
        except (OSError, ValueError, AttributeError) as e:
            log.warning("package_json_unreadable", path=str(package_json), error=str(e))
            scripts = {}

        if "build" in scripts:
            commands["build"] = "npm run build"
        if "test" in scripts:
            commands["test"] = "npm test"
        if "format:check" in scripts:
            commands["format"] = "npm run format:check"
        elif "lint" in scripts:
            commands["format"] = "npm run lint"

    commands.update({name: command for name, command in ctx.validation.items() if name in CHECKS and command})
    return commands


async def run_check(ctx: ProjectContext, name: str, command: str) -> ValidationCheck:
    log.info("validation_check_started", check=name, command=command)
    try:
        result = await run_command(
            *shlex.split(command), cwd=ctx.path, check=False, timeout=CHECK_TIMEOUTS.get(name)
        )
    except TimeoutError:
        log.warning("validation_check_timed_out", check=name, command=command)
        return ValidationCheck(name, CheckStatus.FAILED, command)
    except (OSError, ValueError) as e:
        log.warning("validation_check_not_runnable", check=name, command=command, error=str(e))
        return ValidationCheck(name, CheckStatus.FAILED, command)

    status = CheckStatus.PASSED if result.ok else CheckStatus.FAILED
    log.info("validation_check_finished", check=name, status=str(status))
    return ValidationCheck(name, status, command)


async def run_validation(ctx: ProjectContext) -> ValidationResult:
    """Run every check and collect the results. Never raises."""
    commands = detect_commands(ctx)
    checks = []
    for name in CHECKS:
        command = commands.get(name)
        if not command:
            checks.append(ValidationCheck(name, CheckStatus.SKIPPED))
            continue
        checks.append(await run_check(ctx, name, command))
    return ValidationResult(checks=tuple(checks))

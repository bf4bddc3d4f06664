"""Custom exception hierarchy for the PRP orchestrator.

This module defines a structured exception hierarchy that separates fatal
configuration problems, external capability failures and action workflow
failures, so the run loop can decide what to absorb and what to report.

Exception Hierarchy:
    PRPOrchestratorError (base)
    ├── ConfigurationError
    ├── PrerequisiteError
    ├── LockHeldError
    ├── CommandError
    ├── GitOperationError
    ├── ExternalServiceError
    └── WorkflowError
        ├── EnrichmentError
        ├── ExecutionError
        ├── RevisionError
        └── MergeError

Example Usage:
    >>> from prp_orchestrator.exceptions import ConfigurationError
    >>> try:
    ...     plan = MasterPlan.from_yaml(path)
    ... except FileNotFoundError as e:
    ...     raise ConfigurationError(f"Plan not found: {path}") from e
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prp_orchestrator.utils.async_subprocess import CommandResult


class PRPOrchestratorError(Exception):
    """Base exception for all orchestrator errors.

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigurationError(PRPOrchestratorError):
    """Configuration-related errors.

    Raised when the global configuration or a project's master plan is
    missing, unreadable or fails validation.

    Examples:
        - Invalid YAML syntax in config.yaml
        - Duplicate PRP ids in master-plan.yaml
        - depends_on referencing an unknown PRP
        - Registering a project path that does not exist
    """

    pass


class PrerequisiteError(PRPOrchestratorError):
    """Fatal environment problem detected before a project run.

    Examples:
        - Project directory is not a git repository
        - The review-hosting CLI is not authenticated
    """

    pass


class LockHeldError(PRPOrchestratorError):
    """Another run holds a live lock on the project.

    Attributes:
        holder_pid: Process id recorded in the lock, if readable
        age_seconds: Age of the lock marker in seconds
    """

    def __init__(
        self,
        message: str,
        holder_pid: int | None = None,
        age_seconds: float | None = None,
    ) -> None:
        self.holder_pid = holder_pid
        self.age_seconds = age_seconds
        super().__init__(message)


class CommandError(PRPOrchestratorError):
    """An external command exited with a non-zero status.

    Attributes:
        result: The CommandResult of the failed invocation
    """

    def __init__(self, message: str, result: CommandResult) -> None:
        self.result = result
        detail = result.stderr.strip() or result.stdout.strip()
        full_message = f"{message} (exit {result.returncode})"
        if detail:
            full_message = f"{full_message}: {detail}"
        super().__init__(full_message)
        self.message = message


class GitOperationError(PRPOrchestratorError):
    """Version-control operation failed (checkout, commit, push, ...)."""

    pass


class ExternalServiceError(PRPOrchestratorError):
    """Review-hosting operation failed.

    Raised when the code-hosting CLI reports an error or returns output
    that cannot be interpreted.

    Attributes:
        message: Error message
        response_text: Raw output of the failed call (if applicable)
    """

    def __init__(self, message: str, response_text: str | None = None) -> None:
        self.response_text = response_text
        super().__init__(message)


# =============================================================================
# Workflow Errors
# =============================================================================


class WorkflowError(PRPOrchestratorError):
    """Action workflow failed.

    Workflow errors end the current project run. Version-control state has
    already been rolled back to the default branch when one is raised, so
    re-running the orchestrator is the recovery path.

    Attributes:
        prp_id: PRP the workflow was acting on
    """

    def __init__(self, message: str, prp_id: str | None = None) -> None:
        self.prp_id = prp_id
        super().__init__(message)


class EnrichmentError(WorkflowError):
    """Enrichment agent failed or produced no locatable artifact."""

    pass


class ExecutionError(WorkflowError):
    """Execution agent failed; the working branch was rolled back."""

    pass


class RevisionError(WorkflowError):
    """Revision agent failed while addressing review feedback."""

    pass


class MergeError(WorkflowError):
    """Approved review request could not be merged."""

    pass

"""Data models for the orchestrator.

Key Models:
    - MasterPlan / MasterPRP: The human-authored plan document (pydantic)
    - PRPState: Derived, never-persisted state of one PRP
    - ReviewRequest: Pull request lifecycle and review decision
    - ProjectContext: Filesystem locations for a project run
    - ValidationResult: Build/test/format results for a pull request body

Example:
    >>> from prp_orchestrator.models import MasterPlan
    >>> plan = MasterPlan.from_yaml("PRPs/master-plan.yaml")
    >>> [prp.id for prp in plan.prps]
    ['PRP-001', 'PRP-002']
"""

from prp_orchestrator.models.domain import (
    AgentResult,
    PRPState,
    ProjectContext,
    ReviewRequest,
    ValidationCheck,
    ValidationResult,
)
from prp_orchestrator.models.plan import FileToCreate, FileToModify, MasterPlan, MasterPRP

__all__ = [
    "AgentResult",
    "FileToCreate",
    "FileToModify",
    "MasterPRP",
    "MasterPlan",
    "PRPState",
    "ProjectContext",
    "ReviewRequest",
    "ValidationCheck",
    "ValidationResult",
]

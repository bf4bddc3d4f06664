"""
Master plan document models.

The master plan is the only input a human edits: an ordered list of PRPs
(work items) with dependencies, plus project-wide context and constraints.
It is loaded fresh on every run and never written by the orchestrator.

Example master-plan.yaml::

    name: Billing
    context: |
      FastAPI service, SQLAlchemy models under app/models.
    constraints:
      - Keep public API backwards compatible
    completed: [PRP-000]
    prps:
      - id: PRP-001
        title: Invoice model
        scope: Add an Invoice table and repository.
      - id: PRP-002
        title: Invoice API
        depends_on: [PRP-001]
        scope: Expose invoices over REST.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from prp_orchestrator.exceptions import ConfigurationError


class FileToCreate(BaseModel):
    """A file the PRP is expected to add."""

    path: str
    purpose: str = ""


class FileToModify(BaseModel):
    """An existing file the PRP is expected to change."""

    path: str
    changes: str = ""


class MasterPRP(BaseModel):
    """Declaration of a single PRP (work item) in the master plan."""

    id: str = Field(..., min_length=1, description="Unique, stable identifier, e.g. PRP-001")
    title: str = Field(..., description="Short title, also used for the branch slug")
    scope: str = Field(..., description="Free text description of the goal")
    depends_on: list[str] = Field(default_factory=list, description="PRP ids that must be merged first")
    acceptance_criteria: list[str] = Field(default_factory=list)
    files_to_create: list[FileToCreate] = Field(default_factory=list)
    files_to_modify: list[FileToModify] = Field(default_factory=list)
    tests_required: list[str] = Field(default_factory=list)
    notes: str | None = None

    @property
    def branch_prefix(self) -> str:
        """Prefix shared by every branch the orchestrator creates for this PRP."""
        return f"auto/{self.id.lower()}-"


class MasterPlan(BaseModel):
    """A project's master plan."""

    name: str
    context: str | None = None
    constraints: list[str] = Field(default_factory=list)
    completed: list[str] = Field(default_factory=list, description="PRP ids already done outside automation")
    prps: list[MasterPRP] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_dependencies(self) -> MasterPlan:
        """Reject duplicate ids and dependencies that resolve nowhere."""
        seen: set[str] = set()
        for prp in self.prps:
            if prp.id in seen:
                raise ValueError(f"Duplicate PRP id: {prp.id}")
            seen.add(prp.id)

        known = seen | set(self.completed)
        for prp in self.prps:
            unknown = [dep for dep in prp.depends_on if dep not in known]
            if unknown:
                raise ValueError(f"{prp.id} depends on unknown PRP(s): {', '.join(unknown)}")
        return self

    @property
    def completed_ids(self) -> frozenset[str]:
        return frozenset(self.completed)

    def get(self, prp_id: str) -> MasterPRP | None:
        """Look up a PRP by id."""
        return next((prp for prp in self.prps if prp.id == prp_id), None)

    @classmethod
    def from_yaml(cls, path: str | Path) -> MasterPlan:
        """Load and validate a master plan.

        Args:
            path: Path to master-plan.yaml

        Returns:
            Validated MasterPlan

        Raises:
            ConfigurationError: If the file cannot be read, is not valid
                YAML, or fails validation
        """
        plan_file = Path(path)
        try:
            content = plan_file.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Cannot read master plan: {plan_file}") from e

        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {plan_file}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Master plan must be a YAML mapping: {plan_file}")

        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid master plan {plan_file}: {e}") from e

"""
Domain models for derived workflow state.

Nothing in this module is ever persisted. A PRPState is a point-in-time
snapshot reconstructed from the filesystem, git and the review-hosting
platform at the start of every derivation pass, and it is discarded as soon
as an action workflow runs, because every workflow changes the systems the
snapshot was read from.

Example:
    Inspecting a derived state::

        state = await deriver.derive(prp)
        if state.lifecycle is Lifecycle.OPEN and state.decision is Decision.APPROVED:
            ...
"""

from dataclasses import dataclass, field
from pathlib import Path

from prp_orchestrator.enums import CheckStatus, Decision, Lifecycle
from prp_orchestrator.models.plan import MasterPRP


@dataclass(frozen=True)
class ReviewRequest:
    """A pull request associated with a PRP's branch."""

    number: int
    """Repository-scoped pull request number."""

    lifecycle: Lifecycle
    """Platform lifecycle: open, merged or closed."""

    decision: Decision = Decision.NONE
    """Review decision. Only meaningful while the request is open."""

    url: str = ""
    """Web URL of the request, used when asking a human to review."""


@dataclass(frozen=True)
class PRPState:
    """Derived state of one PRP.

    Invariant: ``review`` is only set when ``branch`` is set. For a request
    recovered after its branch was deleted post-merge, ``branch`` holds the
    request's original head ref name.
    """

    prp: MasterPRP
    enriched_file: Path | None = None
    branch: str | None = None
    review: ReviewRequest | None = None

    def __post_init__(self) -> None:
        if self.review is not None and self.branch is None:
            raise ValueError(f"{self.prp.id}: review request without a branch")

    @property
    def id(self) -> str:
        return self.prp.id

    @property
    def title(self) -> str:
        return self.prp.title

    @property
    def depends_on(self) -> list[str]:
        return self.prp.depends_on

    @property
    def is_enriched(self) -> bool:
        return self.enriched_file is not None

    @property
    def lifecycle(self) -> Lifecycle | None:
        return self.review.lifecycle if self.review else None

    @property
    def decision(self) -> Decision | None:
        """Review decision, or None unless the request is open."""
        if self.review is None or self.review.lifecycle is not Lifecycle.OPEN:
            return None
        return self.review.decision

    @property
    def pr_number(self) -> int | None:
        return self.review.number if self.review else None

    @property
    def is_open(self) -> bool:
        return self.lifecycle is Lifecycle.OPEN

    @property
    def is_merged(self) -> bool:
        return self.lifecycle is Lifecycle.MERGED

    def describe(self) -> str:
        """One-line status used in operator output."""
        if self.is_merged:
            return "merged"
        if self.is_open and self.review is not None:
            return f"PR #{self.review.number} {self.review.decision}"
        if self.lifecycle is Lifecycle.CLOSED and self.review is not None:
            return f"PR #{self.review.number} closed"
        if self.is_enriched:
            return "ready to execute"
        return "pending enrichment"


@dataclass(frozen=True)
class ProjectContext:
    """Filesystem locations for one project run.

    Attributes:
        name: Display name of the project
        path: Root of the project's git working tree
        master_file: Path of the master plan document
        enriched_dir: Directory holding one enriched PRP artifact per id
        lock_file: Per-project lock marker
        validation: Explicit validation commands (build/test/format), if any
    """

    name: str
    path: Path
    master_file: Path
    enriched_dir: Path
    lock_file: Path
    validation: dict[str, str] = field(default_factory=dict)

    def enriched_path(self, prp_id: str) -> Path:
        """Canonical location of the enriched artifact for a PRP."""
        return self.enriched_dir / f"{prp_id}.md"


@dataclass(frozen=True)
class ValidationCheck:
    """One validation step run after the execution agent finishes."""

    name: str
    status: CheckStatus
    command: str | None = None

    @property
    def label(self) -> str:
        return {
            CheckStatus.PASSED: "✅ Pass",
            CheckStatus.FAILED: "❌ Fail",
            CheckStatus.SKIPPED: "⏭️ Skipped",
        }[self.status]


@dataclass(frozen=True)
class ValidationResult:
    """Build, test and format results for a pull request body."""

    checks: tuple[ValidationCheck, ...] = ()

    @property
    def passed(self) -> bool:
        return all(check.status is not CheckStatus.FAILED for check in self.checks)

    def get(self, name: str) -> ValidationCheck | None:
        return next((check for check in self.checks if check.name == name), None)


@dataclass(frozen=True)
class AgentResult:
    """Outcome of one coding-agent invocation.

    There is no structured contract beyond the exit status; ``output`` is the
    raw transcript.
    """

    success: bool
    output: str = ""
    timed_out: bool = False

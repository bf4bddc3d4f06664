"""
Abstract base classes for external capabilities.

The engine never shells out directly. It talks to three capabilities:

- VersionControl: the project's local git working tree and its remote
- ReviewHost: the code-review platform holding pull requests
- CodingAgent: the external AI coding agent process

Concrete implementations (git CLI, GitHub CLI, Claude Code) live next to
this module; tests substitute AsyncMock instances built on these specs.
Credentials are given to implementations at construction time and passed
into each external call, never via the process-wide environment.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from prp_orchestrator.models.domain import AgentResult


@dataclass(frozen=True)
class PullRequestSummary:
    """Raw pull request fields as reported by the hosting platform.

    Interpretation (label precedence, decision mapping) is the state
    deriver's job; this type only normalizes field names.
    """

    number: int
    state: str
    """Platform state, e.g. OPEN, MERGED, CLOSED."""

    review_decision: str | None = None
    """Platform computed decision, e.g. APPROVED, CHANGES_REQUESTED, REVIEW_REQUIRED."""

    labels: tuple[str, ...] = ()
    head: str | None = None
    url: str = ""


@dataclass(frozen=True)
class ReviewFeedback:
    """Human feedback on a pull request, grouped by source."""

    reviews: list[str] = field(default_factory=list)
    """Bodies of reviews submitted with "request changes"."""

    inline: list[str] = field(default_factory=list)
    """Inline code comments, formatted as ``**path:line**: body``."""

    discussion: list[str] = field(default_factory=list)
    """General conversation comments."""

    @property
    def is_empty(self) -> bool:
        return not (self.reviews or self.inline or self.discussion)


def porcelain_paths(entry: str) -> list[str]:
    """Paths named by one ``git status --porcelain`` entry.

    A rename (``R  old -> new``) names both sides.
    """
    return [path.strip().strip('"') for path in entry[3:].split(" -> ")]


class VersionControl(ABC):
    """Operations on a project's git working tree.

    All methods raise GitOperationError on failure unless documented
    otherwise.
    """

    repo_path: Path

    @abstractmethod
    async def is_repository(self) -> bool:
        """Whether repo_path is inside a git working tree. Never raises."""

    @abstractmethod
    async def default_branch(self) -> str:
        """Name of the main integration branch. Never raises."""

    @abstractmethod
    async def fetch(self, prune: bool = False) -> None:
        """Update remote-tracking refs from origin."""

    @abstractmethod
    async def checkout(self, branch: str) -> None:
        """Check out an existing local or remote-tracking branch."""

    @abstractmethod
    async def create_branch(self, branch: str) -> None:
        """Create a branch at HEAD and check it out."""

    @abstractmethod
    async def delete_branch(self, branch: str) -> None:
        """Force-delete a local branch."""

    @abstractmethod
    async def pull(self, branch: str | None = None) -> None:
        """Pull the current branch, or ``branch`` from origin."""

    @abstractmethod
    async def push(self, branch: str | None = None, set_upstream: bool = False) -> None:
        """Push the current branch, or ``branch`` to origin."""

    @abstractmethod
    async def add(self, *paths: str | Path) -> None:
        """Stage paths, including deletions of tracked files."""

    @abstractmethod
    async def commit(self, message: str) -> None:
        """Commit staged changes."""

    @abstractmethod
    async def status_porcelain(self) -> list[str]:
        """Changed files in porcelain format, one entry per line.

        Untracked directories are expanded so every new file has its own entry.
        """

    @abstractmethod
    async def discard_paths(self, paths: Sequence[str]) -> None:
        """Restore the given paths to HEAD, deleting them if HEAD does not track them.

        Paths are relative to the repository root, as ``status_porcelain``
        reports them. Nothing outside ``paths`` is touched.
        """

    @abstractmethod
    async def list_remote_branches(self, prefix: str) -> list[str]:
        """Remote branch names (without ``origin/``) starting with prefix.

        Ordered by most recent commit first.
        """

    async def remote_branch_exists(self, branch: str) -> bool:
        return branch in await self.list_remote_branches(branch)

    @abstractmethod
    async def configure_identity(self, name: str, email: str) -> None:
        """Set the repository-local commit author."""

    @abstractmethod
    async def remote_url(self) -> str:
        """URL of the origin remote."""

    @abstractmethod
    async def set_remote_url(self, url: str) -> None:
        """Replace the URL of the origin remote."""


class ReviewHost(ABC):
    """Operations on the review-hosting platform.

    All methods raise ExternalServiceError on failure unless documented
    otherwise.
    """

    @abstractmethod
    async def auth_status(self) -> bool:
        """Whether the hosting CLI is authenticated. Never raises."""

    @abstractmethod
    async def find_by_branch(self, branch: str) -> PullRequestSummary | None:
        """Most recent pull request (any state) whose head is ``branch``."""

    @abstractmethod
    async def find_merged_by_prefix(self, prefix: str) -> PullRequestSummary | None:
        """Most recent merged pull request whose head starts with ``prefix``."""

    @abstractmethod
    async def get_feedback(self, number: int) -> ReviewFeedback:
        """Collect change-request reviews, inline and discussion comments."""

    @abstractmethod
    async def create_pull_request(self, title: str, body: str, base: str, head: str) -> str:
        """Open a pull request and return its URL."""

    @abstractmethod
    async def comment(self, number: int, body: str) -> None:
        """Post a discussion comment."""

    @abstractmethod
    async def merge(self, number: int) -> None:
        """Squash-merge a pull request and delete its source branch."""

    @abstractmethod
    async def remove_labels(self, number: int, labels: list[str]) -> None:
        """Remove labels from a pull request."""


class CodingAgent(ABC):
    """External AI coding agent."""

    @abstractmethod
    async def run(self, prompt: str, timeout: float | None = None) -> AgentResult:
        """Run the agent to completion or timeout.

        Never raises for agent failures: a non-zero exit, a missing
        executable and a timeout all produce ``success=False``.
        """

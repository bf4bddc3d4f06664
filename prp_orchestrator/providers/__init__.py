"""External capability providers.

Interfaces:
    - VersionControl: git working tree and remote
    - ReviewHost: pull requests on the hosting platform
    - CodingAgent: the external AI coding agent

Implementations:
    - GitCLI: git command line
    - GitHubCLI: GitHub CLI (``gh``)
    - ClaudeCodeAgent: Claude Code CLI
"""

from prp_orchestrator.providers.base import (
    CodingAgent,
    PullRequestSummary,
    ReviewFeedback,
    ReviewHost,
    VersionControl,
)
from prp_orchestrator.providers.claude_code import ClaudeCodeAgent
from prp_orchestrator.providers.git_cli import GitCLI
from prp_orchestrator.providers.github_cli import GitHubCLI

__all__ = [
    "ClaudeCodeAgent",
    "CodingAgent",
    "GitCLI",
    "GitHubCLI",
    "PullRequestSummary",
    "ReviewFeedback",
    "ReviewHost",
    "VersionControl",
]

"""Review-hosting capability backed by the GitHub CLI (``gh``).

Bot credentials, when configured, are passed to each ``gh`` invocation as
``GH_TOKEN`` in that call's environment.
"""

import json
from pathlib import Path
from typing import Any

import structlog

from prp_orchestrator.config.settings import BotCredentials
from prp_orchestrator.exceptions import CommandError, ExternalServiceError
from prp_orchestrator.providers.base import PullRequestSummary, ReviewFeedback, ReviewHost
from prp_orchestrator.utils.async_subprocess import CommandResult, run_command

log = structlog.get_logger(__name__)

PR_FIELDS = "number,state,reviewDecision,labels,url,headRefName"


class GitHubCLI(ReviewHost):
    """Pull request operations through ``gh`` in the project's directory."""

    def __init__(self, repo_path: str | Path, bot: BotCredentials | None = None) -> None:
        self.repo_path = Path(repo_path)
        self.bot = bot

    @property
    def _env(self) -> dict[str, str] | None:
        if self.bot is None:
            return None
        return {"GH_TOKEN": self.bot.token.get_secret_value()}

    async def _gh(self, *args: str, check: bool = True) -> CommandResult:
        try:
            return await run_command("gh", *args, cwd=self.repo_path, env=self._env, check=check)
        except CommandError as e:
            raise ExternalServiceError(f"gh {' '.join(args[:2])} failed: {e}", response_text=e.result.stderr) from e
        except FileNotFoundError as e:
            raise ExternalServiceError("gh executable not found in PATH") from e

    async def _gh_json(self, *args: str) -> Any:
        result = await self._gh(*args)
        if not result.output:
            return None
        try:
            return json.loads(result.output)
        except json.JSONDecodeError as e:
            raise ExternalServiceError(f"Unexpected output from gh {args[0]}", response_text=result.stdout) from e

    async def auth_status(self) -> bool:
        try:
            result = await self._gh("auth", "status", check=False)
        except ExternalServiceError:
            return False
        return result.ok

    async def find_by_branch(self, branch: str) -> PullRequestSummary | None:
        data = await self._gh_json(
            "pr", "list", "--head", branch, "--state", "all", "--json", PR_FIELDS, "--limit", "1"
        )
        if not data:
            return None
        return self._parse_summary(data[0])

    async def find_merged_by_prefix(self, prefix: str) -> PullRequestSummary | None:
        data = await self._gh_json(
            "pr",
            "list",
            "--search",
            f"head:{prefix}",
            "--state",
            "merged",
            "--json",
            PR_FIELDS,
            "--limit",
            "1",
        )
        if not data:
            return None
        summary = self._parse_summary(data[0])
        if summary.head and not summary.head.startswith(prefix):
            log.debug("merged_search_mismatch", prefix=prefix, head=summary.head)
            return None
        return summary

    async def get_feedback(self, number: int) -> ReviewFeedback:
        data = await self._gh_json("pr", "view", str(number), "--json", "reviews,comments") or {}

        reviews = [
            review.get("body", "").strip()
            for review in data.get("reviews") or []
            if review.get("state") == "CHANGES_REQUESTED" and review.get("body", "").strip()
        ]
        discussion = [
            comment.get("body", "").strip()
            for comment in data.get("comments") or []
            if comment.get("body", "").strip()
        ]

        inline: list[str] = []
        try:
            inline_data = await self._gh_json("api", f"repos/{{owner}}/{{repo}}/pulls/{number}/comments")
        except ExternalServiceError as e:
            log.warning("inline_comments_unavailable", pr=number, error=str(e))
            inline_data = None
        for comment in inline_data or []:
            body = (comment.get("body") or "").strip()
            if not body:
                continue
            line = comment.get("line") or comment.get("original_line")
            inline.append(f"**{comment.get('path', '?')}:{line}**: {body}")

        return ReviewFeedback(reviews=reviews, inline=inline, discussion=discussion)

    async def create_pull_request(self, title: str, body: str, base: str, head: str) -> str:
        result = await self._gh("pr", "create", "--title", title, "--body", body, "--base", base, "--head", head)
        url = result.output.splitlines()[-1] if result.output else ""
        log.info("pull_request_created", head=head, url=url)
        return url

    async def comment(self, number: int, body: str) -> None:
        await self._gh("pr", "comment", str(number), "--body", body)

    async def merge(self, number: int) -> None:
        await self._gh("pr", "merge", str(number), "--squash", "--delete-branch")

    async def remove_labels(self, number: int, labels: list[str]) -> None:
        """Remove labels one at a time; labels absent from the request are ignored."""
        for label in labels:
            result = await self._gh("pr", "edit", str(number), "--remove-label", label, check=False)
            if not result.ok:
                log.debug("label_not_removed", pr=number, label=label, stderr=result.stderr.strip())

    @staticmethod
    def _parse_summary(data: dict[str, Any]) -> PullRequestSummary:
        """Parse one entry of ``gh pr list --json`` output."""
        return PullRequestSummary(
            number=int(data["number"]),
            state=str(data.get("state", "")),
            review_decision=data.get("reviewDecision") or None,
            labels=tuple(
                label["name"] if isinstance(label, dict) else str(label) for label in data.get("labels") or []
            ),
            head=data.get("headRefName"),
            url=data.get("url", ""),
        )

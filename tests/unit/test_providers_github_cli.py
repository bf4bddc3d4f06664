"""Tests for prp_orchestrator/providers/github_cli.py."""

import json
from unittest.mock import AsyncMock, patch

import pytest

from prp_orchestrator.exceptions import CommandError, ExternalServiceError
from prp_orchestrator.providers.github_cli import GitHubCLI
from prp_orchestrator.utils.async_subprocess import CommandResult


def ok(payload=None, stdout: str | None = None) -> CommandResult:
    text = stdout if stdout is not None else json.dumps(payload) if payload is not None else ""
    return CommandResult(args=("gh",), returncode=0, stdout=text, stderr="")


def failed(stderr: str = "HTTP 404") -> CommandResult:
    return CommandResult(args=("gh",), returncode=1, stdout="", stderr=stderr)


PR_JSON = {
    "number": 17,
    "state": "OPEN",
    "reviewDecision": "REVIEW_REQUIRED",
    "labels": [{"name": "approved"}, {"name": "enhancement"}],
    "url": "https://github.com/owner/repo/pull/17",
    "headRefName": "auto/prp-001-invoice-model",
}


@pytest.fixture
def mock_run():
    with patch("prp_orchestrator.providers.github_cli.run_command", new_callable=AsyncMock) as mock:
        mock.return_value = ok()
        yield mock


@pytest.fixture
def gh(tmp_path):
    return GitHubCLI(tmp_path)


class TestQueries:
    """Pull request lookups."""

    @pytest.mark.asyncio
    async def test_find_by_branch(self, gh, mock_run):
        mock_run.return_value = ok([PR_JSON])

        summary = await gh.find_by_branch("auto/prp-001-invoice-model")

        assert summary.number == 17
        assert summary.state == "OPEN"
        assert summary.review_decision == "REVIEW_REQUIRED"
        assert summary.labels == ("approved", "enhancement")
        assert summary.head == "auto/prp-001-invoice-model"
        args = mock_run.await_args.args
        assert args[:3] == ("gh", "pr", "list")
        assert "--head" in args and "--state" in args and "all" in args

    @pytest.mark.asyncio
    async def test_find_by_branch_none(self, gh, mock_run):
        mock_run.return_value = ok([])

        assert await gh.find_by_branch("auto/prp-001-x") is None

    @pytest.mark.asyncio
    async def test_find_merged_by_prefix(self, gh, mock_run):
        mock_run.return_value = ok([{**PR_JSON, "state": "MERGED"}])

        summary = await gh.find_merged_by_prefix("auto/prp-001-")

        assert summary.state == "MERGED"
        assert "head:auto/prp-001-" in mock_run.await_args.args

    @pytest.mark.asyncio
    async def test_merged_search_rejects_fuzzy_match(self, gh, mock_run):
        mock_run.return_value = ok([{**PR_JSON, "headRefName": "feature/prp-001-other"}])

        assert await gh.find_merged_by_prefix("auto/prp-001-") is None

    @pytest.mark.asyncio
    async def test_unparseable_output(self, gh, mock_run):
        mock_run.return_value = ok(stdout="<html>")

        with pytest.raises(ExternalServiceError):
            await gh.find_by_branch("x")

    @pytest.mark.asyncio
    async def test_command_failure(self, gh, mock_run):
        mock_run.side_effect = CommandError("Command failed", failed("rate limit"))

        with pytest.raises(ExternalServiceError) as exc_info:
            await gh.find_by_branch("x")

        assert exc_info.value.response_text == "rate limit"


class TestFeedback:
    """Review feedback collection."""

    @pytest.mark.asyncio
    async def test_groups_feedback(self, gh, mock_run):
        mock_run.side_effect = [
            ok(
                {
                    "reviews": [
                        {"state": "CHANGES_REQUESTED", "body": "Handle negatives"},
                        {"state": "APPROVED", "body": "nice"},
                        {"state": "CHANGES_REQUESTED", "body": "  "},
                    ],
                    "comments": [{"body": "Also update docs"}, {"body": ""}],
                }
            ),
            ok([{"path": "app/models.py", "line": 12, "body": "Use Decimal"}, {"path": "x.py", "body": ""}]),
        ]

        feedback = await gh.get_feedback(17)

        assert feedback.reviews == ["Handle negatives"]
        assert feedback.discussion == ["Also update docs"]
        assert feedback.inline == ["**app/models.py:12**: Use Decimal"]
        assert mock_run.await_args_list[1].args[:3] == ("gh", "api", "repos/{owner}/{repo}/pulls/17/comments")

    @pytest.mark.asyncio
    async def test_inline_failure_is_tolerated(self, gh, mock_run):
        mock_run.side_effect = [
            ok({"reviews": [], "comments": [{"body": "Please rename"}]}),
            CommandError("Command failed", failed()),
        ]

        feedback = await gh.get_feedback(17)

        assert feedback.discussion == ["Please rename"]
        assert feedback.inline == []
        assert not feedback.is_empty


class TestMutations:
    """Create, comment, merge and relabel."""

    @pytest.mark.asyncio
    async def test_create_pull_request_returns_url(self, gh, mock_run):
        mock_run.return_value = ok(stdout="Creating pull request...\nhttps://github.com/owner/repo/pull/18\n")

        url = await gh.create_pull_request(title="PRP-001: X", body="body", base="main", head="auto/prp-001-x")

        assert url == "https://github.com/owner/repo/pull/18"
        args = mock_run.await_args.args
        assert args[:3] == ("gh", "pr", "create")
        assert args[args.index("--base") + 1] == "main"
        assert args[args.index("--head") + 1] == "auto/prp-001-x"

    @pytest.mark.asyncio
    async def test_merge_squashes_and_deletes_branch(self, gh, mock_run):
        await gh.merge(17)

        assert mock_run.await_args.args == ("gh", "pr", "merge", "17", "--squash", "--delete-branch")

    @pytest.mark.asyncio
    async def test_remove_labels_ignores_absent(self, gh, mock_run):
        mock_run.side_effect = [failed("label not found"), ok()]

        await gh.remove_labels(17, ["changes-requested", "needs-changes"])

        assert mock_run.await_count == 2
        assert mock_run.await_args_list[0].kwargs["check"] is False


class TestCredentials:
    """Per-call bot token."""

    @pytest.mark.asyncio
    async def test_bot_token_passed_per_call(self, tmp_path, bot, mock_run):
        await GitHubCLI(tmp_path, bot=bot).comment(17, "hi")

        assert mock_run.await_args.kwargs["env"] == {"GH_TOKEN": "ghp_secret"}

    @pytest.mark.asyncio
    async def test_no_bot_uses_ambient_auth(self, gh, mock_run):
        await gh.comment(17, "hi")

        assert mock_run.await_args.kwargs["env"] is None

    @pytest.mark.asyncio
    async def test_auth_status(self, gh, mock_run):
        mock_run.return_value = failed("not logged in")
        assert await gh.auth_status() is False

        mock_run.return_value = ok()
        assert await gh.auth_status() is True

        mock_run.side_effect = FileNotFoundError("gh")
        assert await gh.auth_status() is False

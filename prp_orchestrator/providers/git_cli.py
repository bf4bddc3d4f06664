"""Version control capability backed by the git command line."""

from collections.abc import Sequence
from pathlib import Path

import structlog

from prp_orchestrator.exceptions import CommandError, GitOperationError
from prp_orchestrator.providers.base import VersionControl
from prp_orchestrator.utils.async_subprocess import CommandResult, run_command

log = structlog.get_logger(__name__)

REMOTE = "origin"


class GitCLI(VersionControl):
    """Run git commands inside a project's working tree."""

    def __init__(self, repo_path: str | Path) -> None:
        self.repo_path = Path(repo_path)

    async def _git(self, *args: str, check: bool = True) -> CommandResult:
        try:
            return await run_command("git", *args, cwd=self.repo_path, check=check)
        except CommandError as e:
            raise GitOperationError(f"git {args[0]} failed: {e}") from e
        except FileNotFoundError as e:
            raise GitOperationError("git executable not found in PATH") from e

    async def is_repository(self) -> bool:
        try:
            result = await self._git("rev-parse", "--is-inside-work-tree", check=False)
        except GitOperationError:
            return False
        return result.ok and result.output == "true"

    async def default_branch(self) -> str:
        """Resolve origin's HEAD, then a local main or master, then "main"."""
        try:
            result = await self._git("symbolic-ref", "--short", f"refs/remotes/{REMOTE}/HEAD", check=False)
            if result.ok and result.output.startswith(f"{REMOTE}/"):
                return result.output[len(REMOTE) + 1 :]

            for candidate in ("main", "master"):
                result = await self._git("show-ref", "--verify", "--quiet", f"refs/heads/{candidate}", check=False)
                if result.ok:
                    return candidate
        except GitOperationError as e:
            log.debug("default_branch_lookup_failed", error=str(e))

        return "main"

    async def fetch(self, prune: bool = False) -> None:
        args = ["fetch", REMOTE]
        if prune:
            args.append("--prune")
        await self._git(*args)

    async def checkout(self, branch: str) -> None:
        await self._git("checkout", branch)

    async def create_branch(self, branch: str) -> None:
        await self._git("checkout", "-b", branch)

    async def delete_branch(self, branch: str) -> None:
        await self._git("branch", "-D", branch)

    async def pull(self, branch: str | None = None) -> None:
        if branch:
            await self._git("pull", REMOTE, branch)
        else:
            await self._git("pull")

    async def push(self, branch: str | None = None, set_upstream: bool = False) -> None:
        args = ["push"]
        if set_upstream:
            args.append("-u")
        if branch:
            args.extend([REMOTE, branch])
        await self._git(*args)

    async def add(self, *paths: str | Path) -> None:
        if paths:
            await self._git("add", "-A", "--", *(str(p) for p in paths))

    async def commit(self, message: str) -> None:
        await self._git("commit", "-m", message)

    async def status_porcelain(self) -> list[str]:
        result = await self._git("status", "--porcelain", "--untracked-files=all")
        return [line for line in result.stdout.splitlines() if line.strip()]

    async def discard_paths(self, paths: Sequence[str]) -> None:
        if not paths:
            return
        specs = {path: f":(top){path}" for path in paths}

        # Unstage first so files staged as new become untracked again.
        result = await self._git("reset", "-q", "HEAD", "--", *specs.values(), check=False)
        if not result.ok:
            log.debug("unstage_failed", error=result.stderr.strip())

        listed = await self._git("ls-files", "--full-name", "--", *specs.values())
        tracked = {line.strip() for line in listed.stdout.splitlines() if line.strip()}
        if tracked:
            await self._git("checkout", "--", *(f":(top){path}" for path in sorted(tracked)))

        untracked = [spec for path, spec in specs.items() if path not in tracked]
        if untracked:
            await self._git("clean", "-fdq", "--", *untracked)

    async def list_remote_branches(self, prefix: str) -> list[str]:
        result = await self._git(
            "for-each-ref",
            "--sort=-committerdate",
            "--format=%(refname:short)",
            f"refs/remotes/{REMOTE}/{prefix}*",
        )
        branches = []
        for line in result.stdout.splitlines():
            name = line.strip()
            if name.startswith(f"{REMOTE}/"):
                name = name[len(REMOTE) + 1 :]
            if name and name.startswith(prefix):
                branches.append(name)
        return branches

    async def configure_identity(self, name: str, email: str) -> None:
        await self._git("config", "user.name", name)
        await self._git("config", "user.email", email)

    async def remote_url(self) -> str:
        result = await self._git("remote", "get-url", REMOTE)
        return result.output

    async def set_remote_url(self, url: str) -> None:
        await self._git("remote", "set-url", REMOTE, url)

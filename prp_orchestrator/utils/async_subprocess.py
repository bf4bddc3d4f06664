"""Async subprocess utilities.

Provides non-blocking subprocess execution returning a typed result, used by
every external capability (git, the hosting CLI, validation commands).

Key Features:
    - Arguments are passed as a list, never through a shell
    - Per-call environment overrides merged over the parent environment,
      so credentials are threaded into a call instead of mutating os.environ
    - Configurable timeout with automatic process cleanup, also applied
      when the awaiting task is cancelled
    - Optional check mode that raises CommandError on non-zero exit codes

Example:
    >>> from prp_orchestrator.utils.async_subprocess import run_command
    >>> result = await run_command("git", "status", "--porcelain", cwd="/repo")
    >>> if result.ok:
    ...     print(result.output)
"""

import asyncio
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from prp_orchestrator.exceptions import CommandError


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a finished external command.

    Attributes:
        args: The command and its arguments
        returncode: Process exit status
        stdout: Decoded standard output
        stderr: Decoded standard error
    """

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        """True when the command exited with status 0."""
        return self.returncode == 0

    @property
    def output(self) -> str:
        """Standard output with surrounding whitespace removed."""
        return self.stdout.strip()


async def run_command(
    *args: str,
    cwd: Path | str | None = None,
    env: Mapping[str, str] | None = None,
    check: bool = True,
    timeout: float | None = None,
    input_text: str | None = None,
) -> CommandResult:
    """Run a command asynchronously without shell interpolation.

    Args:
        *args: Command and arguments as separate strings.
            Example: "git", "commit", "-m", "message"
        cwd: Working directory for command execution. If None, uses the
            current working directory of the parent process.
        env: Extra environment variables for this call only. Merged over
            the parent environment.
        check: If True (default), raise CommandError when the command
            returns a non-zero exit code.
        timeout: Maximum seconds to wait for completion. If exceeded, the
            process is killed and TimeoutError is raised.
        input_text: Text written to the process's stdin. When None, stdin
            is connected to /dev/null.

    Returns:
        CommandResult with decoded stdout/stderr (invalid bytes replaced)
        and the exit status.

    Raises:
        CommandError: If check=True and the command returns non-zero.
        TimeoutError: If timeout is exceeded. The process is killed
            before this exception is raised.
        FileNotFoundError: If the command executable is not found.
    """
    process_env = None
    if env:
        process_env = {**os.environ, **env}

    process = await asyncio.create_subprocess_exec(
        *args,
        cwd=cwd,
        env=process_env,
        stdin=asyncio.subprocess.PIPE if input_text is not None else asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )

    try:
        stdout_bytes, stderr_bytes = await asyncio.wait_for(
            process.communicate(input_text.encode("utf-8") if input_text is not None else None),
            timeout=timeout,
        )
    except (TimeoutError, asyncio.CancelledError):
        if process.returncode is None:
            process.kill()
            await process.wait()
        raise

    result = CommandResult(
        args=tuple(args),
        returncode=process.returncode or 0,
        stdout=(stdout_bytes or b"").decode("utf-8", errors="replace"),
        stderr=(stderr_bytes or b"").decode("utf-8", errors="replace"),
    )

    if check and not result.ok:
        raise CommandError(f"Command failed: {' '.join(args[:3])}", result)

    return result

"""Coding-agent capability that runs Claude Code as a CLI tool.

Claude Code runs in the project directory and modifies files directly. It
is started in non-interactive mode with ``stream-json`` output so progress
can be narrated to the operator log while the agent works.
"""

import asyncio
import json
from pathlib import Path
from typing import Any

import structlog

from prp_orchestrator.models.domain import AgentResult
from prp_orchestrator.providers.base import CodingAgent

log = structlog.get_logger(__name__)

# stream-json lines carry whole tool results and can be large
STREAM_LIMIT = 16 * 1024 * 1024


class ClaudeCodeAgent(CodingAgent):
    """Run the ``claude`` CLI with a prompt and wait for it to exit."""

    def __init__(self, working_dir: str | Path, command: str = "claude") -> None:
        self.working_dir = Path(working_dir)
        self.command = command

    def build_args(self, prompt: str) -> list[str]:
        return [
            self.command,
            "--print",
            "--dangerously-skip-permissions",
            "--output-format",
            "stream-json",
            "--verbose",
            prompt,
        ]

    async def run(self, prompt: str, timeout: float | None = None) -> AgentResult:
        log.info("agent_started", agent=self.command, cwd=str(self.working_dir), timeout=timeout)

        try:
            process = await asyncio.create_subprocess_exec(
                *self.build_args(prompt),
                cwd=self.working_dir,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=STREAM_LIMIT,
            )
        except OSError as e:
            log.error("agent_start_failed", agent=self.command, error=str(e))
            return AgentResult(success=False, output=f"Failed to start {self.command}: {e}")

        chunks: list[str] = []

        async def pump_stdout() -> None:
            assert process.stdout is not None
            async for raw in process.stdout:
                line = raw.decode("utf-8", errors="replace")
                chunks.append(line)
                self._display_line(line)

        async def pump_stderr() -> None:
            assert process.stderr is not None
            async for raw in process.stderr:
                line = raw.decode("utf-8", errors="replace")
                chunks.append(line)
                if line.strip():
                    log.debug("agent_stderr", line=line.rstrip())

        try:
            await asyncio.wait_for(
                asyncio.gather(pump_stdout(), pump_stderr(), process.wait()),
                timeout=timeout,
            )
        except TimeoutError:
            log.error("agent_timed_out", agent=self.command, timeout=timeout)
            if process.returncode is None:
                process.kill()
            await process.wait()
            return AgentResult(success=False, output="".join(chunks), timed_out=True)
        except asyncio.CancelledError:
            log.warning("agent_cancelled", agent=self.command)
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        success = process.returncode == 0
        log.info("agent_finished", agent=self.command, success=success, returncode=process.returncode)
        return AgentResult(success=success, output="".join(chunks))

    def _display_line(self, line: str) -> None:
        text = line.strip()
        if not text:
            return
        try:
            event = json.loads(text)
        except json.JSONDecodeError:
            log.info("agent_output", line=text[:200])
            return
        if isinstance(event, dict):
            self._display_event(event)

    @staticmethod
    def _display_event(event: dict[str, Any]) -> None:
        """Narrate one stream-json event in human-readable form."""
        event_type = event.get("type")

        if event_type == "system" and event.get("subtype") == "init":
            log.info("agent_session_started")

        elif event_type == "assistant":
            for content in (event.get("message") or {}).get("content") or []:
                if content.get("type") == "text" and content.get("text"):
                    text = content["text"]
                    log.info("agent_message", text=text[:200] + ("..." if len(text) > 200 else ""))
                elif content.get("type") == "tool_use":
                    tool_input = content.get("input")
                    rendered = json.dumps(tool_input) if isinstance(tool_input, dict) else str(tool_input)
                    log.info("agent_tool_use", tool=content.get("name"), input=rendered[:100])

        elif event_type == "result":
            if event.get("subtype") == "success":
                log.info(
                    "agent_completed",
                    turns=event.get("num_turns"),
                    duration_ms=event.get("duration_ms"),
                )
            elif event.get("is_error"):
                log.error("agent_reported_failure", result=event.get("result") or "Unknown error")

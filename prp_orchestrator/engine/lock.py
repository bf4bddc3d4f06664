"""Per-project mutual exclusion with a filesystem marker.

A lock is a small JSON file in the project root holding the owning process
id and the acquisition time. Its age is read from the file's modification
time; a lock older than ``max_age_seconds`` is considered abandoned and is
removed before a new one is written. This is a single-host lock, not a
distributed one.

Locks held by this process are tracked in a module registry so they can be
removed when the process exits or is terminated.
"""

import atexit
import json
import os
import signal
import socket
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from types import FrameType

import structlog

from prp_orchestrator.exceptions import LockHeldError

log = structlog.get_logger(__name__)

DEFAULT_MAX_AGE_SECONDS = 45 * 60

_active_locks: set[Path] = set()
_handlers_installed = False


@dataclass(frozen=True)
class LockInfo:
    """Diagnostic view of an existing lock marker."""

    path: Path
    pid: int | None
    age_seconds: float

    @property
    def age_minutes(self) -> int:
        return round(self.age_seconds / 60)


class LockManager:
    """Acquire and release per-project lock markers."""

    def __init__(self, max_age_seconds: float = DEFAULT_MAX_AGE_SECONDS) -> None:
        self.max_age_seconds = max_age_seconds

    def inspect(self, lock_file: str | Path) -> LockInfo | None:
        """Read an existing lock without touching it."""
        path = Path(lock_file)
        try:
            age = time.time() - path.stat().st_mtime
        except FileNotFoundError:
            return None

        pid: int | None = None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            pid = int(payload["pid"])
        except (OSError, ValueError, KeyError, TypeError):
            log.debug("lock_payload_unreadable", lock_file=str(path))

        return LockInfo(path=path, pid=pid, age_seconds=max(age, 0.0))

    def is_stale(self, info: LockInfo) -> bool:
        return info.age_seconds >= self.max_age_seconds

    def acquire(self, lock_file: str | Path) -> bool:
        """Try to take the lock.

        Returns:
            False if a live lock exists, True once this process holds it.
        """
        path = Path(lock_file)

        existing = self.inspect(path)
        if existing is not None:
            if not self.is_stale(existing):
                log.warning(
                    "lock_held",
                    lock_file=str(path),
                    holder_pid=existing.pid,
                    age_minutes=existing.age_minutes,
                )
                return False
            log.warning("removing_stale_lock", lock_file=str(path), age_minutes=existing.age_minutes)
            path.unlink(missing_ok=True)

        payload = json.dumps(
            {
                "pid": os.getpid(),
                "host": socket.gethostname(),
                "acquired_at": datetime.now(UTC).isoformat(),
            }
        )
        try:
            fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            # Another process won the race between the staleness check and creation
            log.warning("lock_race_lost", lock_file=str(path))
            return False

        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)

        _active_locks.add(path)
        log.debug("lock_acquired", lock_file=str(path))
        return True

    def release(self, lock_file: str | Path) -> None:
        """Remove the lock. Safe to call when it is already gone."""
        path = Path(lock_file)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            log.warning("lock_release_failed", lock_file=str(path), error=str(e))
        _active_locks.discard(path)
        log.debug("lock_released", lock_file=str(path))

    @contextmanager
    def hold(self, lock_file: str | Path) -> Iterator[None]:
        """Hold the lock for the duration of a block.

        Raises:
            LockHeldError: If another run holds a live lock.
        """
        if not self.acquire(lock_file):
            info = self.inspect(lock_file)
            raise LockHeldError(
                f"Project is locked by another run: {lock_file}",
                holder_pid=info.pid if info else None,
                age_seconds=info.age_seconds if info else None,
            )
        try:
            yield
        finally:
            self.release(lock_file)


def active_locks() -> list[Path]:
    """Lock files currently held by this process."""
    return sorted(_active_locks)


def cleanup_all_locks() -> None:
    """Remove every lock held by this process."""
    for path in list(_active_locks):
        try:
            path.unlink(missing_ok=True)
            log.info("lock_cleaned_up", lock_file=str(path))
        except OSError as e:
            log.warning("lock_cleanup_failed", lock_file=str(path), error=str(e))
    _active_locks.clear()


def _handle_signal(signum: int, frame: FrameType | None) -> None:
    log.warning("shutdown_signal_received", signal=signal.Signals(signum).name)
    cleanup_all_locks()
    sys.exit(128 + signum)


def install_cleanup_handlers() -> None:
    """Remove held locks on interpreter exit and SIGTERM.

    SIGINT keeps its default handler so ``KeyboardInterrupt`` reaches the
    caller, which cleans up itself.
    """
    global _handlers_installed
    if _handlers_installed:
        return
    atexit.register(cleanup_all_locks)
    signal.signal(signal.SIGTERM, _handle_signal)
    _handlers_installed = True

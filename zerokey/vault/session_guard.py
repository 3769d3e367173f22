"""
SessionGuard — Automatic locking on inactivity or loss of focus.

Bounds how long the vault key stays resident:
- ``touch()`` on any user activity pushes the idle deadline forward
- idle deadline reached → lock
- ``focus_lost()`` → lock immediately, regardless of the idle deadline
- ``lock_now()`` → manual lock, always honored

The idle watcher is one asyncio task that sleeps until a monotonic
deadline, so resetting the timer is a single assignment.
"""
import asyncio
import logging

from .config import DEFAULT_IDLE_TIMEOUT
from .key_manager import VaultKeyManager

logger = logging.getLogger("zerokey.vault")

LOCK_IDLE = "idle"
LOCK_FOCUS = "focus"
LOCK_MANUAL = "manual"


class SessionGuard:
    """Idle-timeout and focus-loss lock policy for a VaultKeyManager."""

    def __init__(
        self,
        manager: VaultKeyManager,
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
    ):
        if idle_timeout <= 0:
            raise ValueError(f"idle_timeout must be positive, got {idle_timeout}")
        self._manager = manager
        self._timeout = idle_timeout
        self._deadline: float | None = None
        self._task: asyncio.Task | None = None
        self.last_lock_reason: str | None = None
        # a lock from any other path (failed unlock, direct manager.lock) disarms us
        manager.add_lock_listener(self._disarm)

    @property
    def idle_timeout(self) -> float:
        return self._timeout

    @property
    def armed(self) -> bool:
        return self._task is not None and not self._task.done()

    async def __aenter__(self) -> "SessionGuard":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Arm the idle watcher with a full timeout window.

        Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()
        self._deadline = loop.time() + self._timeout
        if not self.armed:
            self._task = loop.create_task(self._watch())

    def touch(self) -> None:
        """Record user activity: reset the idle window to its full length."""
        if self.armed:
            self._deadline = asyncio.get_running_loop().time() + self._timeout

    def stop(self) -> None:
        """Cancel the idle watcher without locking."""
        self._disarm()

    def _disarm(self) -> None:
        task, self._task = self._task, None
        self._deadline = None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _watch(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            if self._deadline is None:
                return
            remaining = self._deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(remaining)
        logger.debug("Idle timeout of %.1fs reached", self._timeout)
        await self._lock(LOCK_IDLE)

    # ------------------------------------------------------------------
    # Lock triggers
    # ------------------------------------------------------------------

    async def _lock(self, reason: str) -> None:
        self._disarm()
        was_unlocked = self._manager.is_unlocked
        await self._manager.lock()
        if was_unlocked:
            self.last_lock_reason = reason
            logger.info("Session locked: reason=%s", reason)

    async def focus_lost(self) -> None:
        """Application lost focus: lock immediately."""
        await self._lock(LOCK_FOCUS)

    async def lock_now(self) -> None:
        """Manual lock request."""
        await self._lock(LOCK_MANUAL)

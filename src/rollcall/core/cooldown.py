"""Per-user, per-event cooldown for signup buttons.

One entry per ``user_id:event_id`` holding the epoch-millisecond time of the
last accepted click. Entries live in process memory only and are purged
lazily: at most one sweep per cleanup interval, piggybacked on an accepted
call, so the map cannot grow without bound.
"""

from __future__ import annotations

import logging
import time

logger = logging.getLogger(__name__)

COOLDOWN_MS = 3_000
CLEANUP_INTERVAL_MS = 60_000

# Sentinel for "cleanup has never run".
_NEVER = 0


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def cooldown_key(user_id: str, event_id: int) -> str:
    return f"{user_id}:{event_id}"


class CooldownTracker:
    """Rate limiter for signup interactions.

    ``should_accept`` is a combined check-and-set: a True result records the
    action, so call it exactly once per interaction. It contains no await, so
    the read-modify-write cannot interleave with another task.
    """

    def __init__(
        self,
        cooldown_ms: int = COOLDOWN_MS,
        cleanup_interval_ms: int = CLEANUP_INTERVAL_MS,
    ) -> None:
        if cleanup_interval_ms < cooldown_ms:
            msg = "cleanup interval must be at least the cooldown window"
            raise ValueError(msg)
        self.cooldown_ms = cooldown_ms
        self.cleanup_interval_ms = cleanup_interval_ms
        self._entries: dict[str, int] = {}
        self._last_cleanup: int = _NEVER

    @classmethod
    def from_seconds(cls, cooldown: float, cleanup_interval: float) -> CooldownTracker:
        return cls(
            cooldown_ms=int(cooldown * 1000),
            cleanup_interval_ms=int(cleanup_interval * 1000),
        )

    def should_accept(self, user_id: str, event_id: int, now: int | None = None) -> bool:
        """Return True and record ``now`` if the user is outside the window.

        A rejected call leaves the recorded timestamp untouched.
        """
        if now is None:
            now = now_ms()
        key = cooldown_key(user_id, event_id)
        last = self._entries.get(key)
        if last is not None and now - last < self.cooldown_ms:
            return False

        self._entries[key] = now
        self._maybe_cleanup(now)
        return True

    def _maybe_cleanup(self, now: int) -> None:
        if now - self._last_cleanup < self.cleanup_interval_ms:
            return
        # Strictly older than the window; an entry exactly at the boundary is
        # already expired for should_accept, so dropping it changes nothing.
        expired = [
            key for key, stamp in self._entries.items() if now - stamp > self.cooldown_ms
        ]
        for key in expired:
            del self._entries[key]
        self._last_cleanup = now
        if expired:
            logger.debug(
                "cooldown_cleanup removed=%d remaining=%d", len(expired), len(self._entries)
            )

    def last_action(self, user_id: str, event_id: int) -> int | None:
        """Recorded timestamp for a user/event pair, or None."""
        return self._entries.get(cooldown_key(user_id, event_id))

    @property
    def last_cleanup(self) -> int:
        return self._last_cleanup

    def has_entry(self, user_id: str, event_id: int) -> bool:
        return cooldown_key(user_id, event_id) in self._entries

    def entry_count(self) -> int:
        """Number of tracked user/event pairs, expired but unswept ones included."""
        return len(self._entries)

"""Commit watcher state machine.

The watcher never polls by itself: an external driver (a poll loop or a
filesystem event handler) reports the current HEAD hash through
:meth:`CommitWatcher.tick`, and the watcher answers with the transition to
analyze, if any.
"""

from dataclasses import dataclass
from enum import Enum

from testimpact.lib.logging import get_logger

logger = get_logger(__name__)


class WatcherState(str, Enum):
    """Lifecycle states of a commit watcher."""

    IDLE = "idle"
    WATCHING = "watching"


@dataclass(frozen=True)
class CommitTransition:
    """HEAD moved from ``previous_hash`` to ``current_hash``."""

    previous_hash: str
    current_hash: str


class CommitWatcher:
    """Tracks the last seen commit and reports HEAD changes."""

    def __init__(self) -> None:
        self._state = WatcherState.IDLE
        self._last_hash: str | None = None

    @property
    def state(self) -> WatcherState:
        return self._state

    @property
    def last_hash(self) -> str | None:
        return self._last_hash

    @property
    def is_watching(self) -> bool:
        return self._state == WatcherState.WATCHING

    def start(self, initial_hash: str | None) -> bool:
        """
        Move from idle to watching.

        Args:
            initial_hash: HEAD at start time (None when it could not be read)

        Returns:
            False if the watcher was already watching
        """
        if self.is_watching:
            logger.warning("watcher_already_started", last_hash=self._last_hash)
            return False

        self._state = WatcherState.WATCHING
        self._last_hash = initial_hash or None
        logger.info("watcher_started", initial_hash=self._last_hash)
        return True

    def stop(self) -> None:
        """Move back to idle and forget the last seen commit."""
        if self.is_watching:
            logger.info("watcher_stopped", last_hash=self._last_hash)
        self._state = WatcherState.IDLE
        self._last_hash = None

    def tick(self, current_hash: str | None, has_changes: bool = True) -> CommitTransition | None:
        """
        Report the current HEAD hash.

        A transition is returned when HEAD differs from the last seen commit
        and ``has_changes`` is true. When no commit was known yet the hash is
        recorded without a transition. When HEAD moved but nothing relevant
        changed, the last seen commit is kept so the next tick compares
        against it again.

        Args:
            current_hash: HEAD hash (None when it could not be read)
            has_changes: Whether the commits differ in relevant files

        Returns:
            The transition to analyze, or None
        """
        if not self.is_watching or not current_hash:
            return None

        if self._last_hash is None:
            self._last_hash = current_hash
            return None

        if current_hash == self._last_hash or not has_changes:
            return None

        transition = CommitTransition(previous_hash=self._last_hash, current_hash=current_hash)
        self._last_hash = current_hash
        logger.info(
            "commit_detected",
            previous_hash=transition.previous_hash,
            current_hash=transition.current_hash,
        )
        return transition


__all__ = ["WatcherState", "CommitTransition", "CommitWatcher"]

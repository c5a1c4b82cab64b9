"""Per-message failure tracking. Sync, unit-testable."""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class MessageFailureTracker:
    """
    Counts how many failed processing steps each pending message sat through.

    Used by ExecutionContext to drop poison messages that keep failing.
    Entries are cleared on success or once the limit is reached, so the
    tracker only holds ids that are still pending.
    """

    def __init__(self, max_failures: int = 3, agent_id: str = ""):
        self._max_failures = max_failures
        self._agent_id = agent_id
        self._failures: dict[str, int] = {}

    @property
    def max_failures(self) -> int:
        return self._max_failures

    def record_failure(self, msg_id: str, max_failures: int | None = None) -> tuple[int, bool]:
        """
        Record one failed step for a message.

        Args:
            msg_id: The pending message
            max_failures: Limit for this call; defaults to the tracker's own

        Returns:
            Tuple of (failure_count, reached_max_failures)
        """
        limit = self._max_failures if max_failures is None else max_failures
        failures = self._failures.get(msg_id, 0) + 1

        exceeded = failures >= limit
        if exceeded:
            self._failures.pop(msg_id, None)
            logger.error(
                f"Agent {self._agent_id}: message {msg_id} failed {failures} steps, "
                "dropping it"
            )
        else:
            self._failures[msg_id] = failures

        return failures, exceeded

    def mark_success(self, msg_id: str) -> None:
        """Clear tracking for a successfully processed message."""
        self._failures.pop(msg_id, None)

    def failures(self, msg_id: str) -> int:
        return self._failures.get(msg_id, 0)

    def __len__(self) -> int:
        return len(self._failures)

"""Per-requester concurrency gate.

A requester is busy while it owns an active job or a pending wait-for-image
entry. Admission is a check-and-set on one event loop, so no lock is needed:
nothing awaits between the membership test and the insert.

Every acquisition gets a fresh token. Work that outlives an await (a remote
submission, a poll chain) carries the token it started under and may only
touch the gate while that token is still current, so a reset followed by a
new command is never mistaken for the acquisition it replaced.
"""

import itertools
import logging


logger = logging.getLogger(__name__)


class ConcurrencyGate:
    """Busy/free membership used to serialize per-requester activity."""

    def __init__(self):
        self._holders: dict[str, int] = {}
        self._tokens = itertools.count(1)

    def try_acquire(self, requester_id: str) -> bool:
        """Mark `requester_id` busy; return `False` if it already was."""
        if requester_id in self._holders:
            return False
        self._holders[requester_id] = next(self._tokens)
        return True

    def token(self, requester_id: str) -> int | None:
        """Token of the current acquisition, or `None` when free."""
        return self._holders.get(requester_id)

    def holds(self, requester_id: str, token: int | None) -> bool:
        return token is not None and self._holders.get(requester_id) == token

    def release(self, requester_id: str, token: int | None = None) -> bool:
        """Mark `requester_id` free. Idempotent.

        Args:
            requester_id: Requester to free.
            token: When given, release only if it is still the current
                acquisition's token.

        Returns:
            Whether the requester had been busy and was freed.
        """
        current = self._holders.get(requester_id)
        if current is None:
            return False
        if token is not None and token != current:
            logger.debug("Stale release for %s ignored", requester_id)
            return False
        del self._holders[requester_id]
        logger.debug("Gate released for %s", requester_id)
        return True

    def is_busy(self, requester_id: str) -> bool:
        return requester_id in self._holders

    def clear(self) -> None:
        self._holders.clear()

    def __len__(self) -> int:
        return len(self._holders)

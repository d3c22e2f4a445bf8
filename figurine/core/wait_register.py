"""Wait-for-image register.

Tracks requesters who issued a figurine command without an image. Each entry
owns a one-shot expiry timer; the timer and `consume` race on the same event
loop and whichever runs first removes the entry, so exactly one of them wins.

Gate ownership:
    - Expiry releases the requester's gate and sends a timeout notice.
    - `consume` does not release the gate; ownership moves to the job that the
      caller is about to submit.
"""

import logging

from figurine.core.errors import WaitExpired
from figurine.core.gate import ConcurrencyGate
from figurine.core.models import Destination, WaitEntry
from figurine.core.scheduler import Scheduler
from figurine.logging_utils import log_event
from figurine.messaging.messenger import Messenger


logger = logging.getLogger(__name__)


class WaitRegister:
    def __init__(self, gate: ConcurrencyGate, scheduler: Scheduler, messenger: Messenger):
        self._gate = gate
        self._scheduler = scheduler
        self._messenger = messenger
        self._entries: dict[str, WaitEntry] = {}

    def register(
        self,
        destination: Destination,
        style: int,
        timeout_seconds: float,
        image_count: int = 1,
    ) -> str:
        """Start waiting for an image from `destination.requester_id`.

        A previous entry for the same requester is cancelled and replaced.

        Returns:
            Prompt text asking the requester for an image.
        """
        requester_id = destination.requester_id
        previous = self._entries.pop(requester_id, None)
        if previous is not None and previous.expiry_handle is not None:
            previous.expiry_handle.cancel()

        entry = WaitEntry(destination=destination, style=style, image_count=image_count)

        async def expire():
            await self._expire(entry)

        entry.expiry_handle = self._scheduler.call_later(timeout_seconds, expire)
        self._entries[requester_id] = entry

        log_event(logger, "wait.register", requester=requester_id, style=style,
                  timeout=timeout_seconds, replaced=previous is not None)
        return (
            f"Please send an image, I will turn it into a figurine using style {style} "
            f"(valid for {int(timeout_seconds)} seconds)"
        )

    def consume(self, requester_id: str) -> WaitEntry | None:
        """Claim the pending entry for `requester_id` once an image has arrived.

        Cancels the expiry timer and removes the entry. The gate stays held.
        """
        entry = self._entries.pop(requester_id, None)
        if entry is None:
            return None
        if entry.expiry_handle is not None:
            entry.expiry_handle.cancel()
        log_event(logger, "wait.consume", requester=requester_id, style=entry.style)
        return entry

    def cancel(self, requester_id: str) -> bool:
        """Drop the entry without releasing the gate; return whether one existed."""
        return self.consume(requester_id) is not None

    def get(self, requester_id: str) -> WaitEntry | None:
        return self._entries.get(requester_id)

    def has(self, requester_id: str) -> bool:
        return requester_id in self._entries

    def clear(self) -> int:
        count = len(self._entries)
        for entry in self._entries.values():
            if entry.expiry_handle is not None:
                entry.expiry_handle.cancel()
        self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)

    async def _expire(self, entry: WaitEntry) -> None:
        requester_id = entry.requester_id
        # Consumed, replaced or reset before the timer fired.
        if self._entries.get(requester_id) is not entry:
            return

        del self._entries[requester_id]
        self._gate.release(requester_id)
        log_event(logger, "wait.expired", requester=requester_id, style=entry.style)

        try:
            await self._messenger.send(entry.destination, WaitExpired().user_message)
        except Exception:
            logger.exception("Failed to deliver wait-expiry notice to %s", requester_id)

"""Outbound delivery contract.

The engine only ever calls `send(destination, content)`, where `content` is
either plain text or an `ImageContent`. Delivery is fire-and-forget: the engine
waits for the call to return but never for a delivery receipt.
"""

from typing import Protocol, Union

from figurine.core.models import Destination, ImageContent


Content = Union[str, ImageContent]


class Messenger(Protocol):
    async def send(self, destination: Destination, content: Content) -> None:
        """Deliver one text or image message to `destination`."""
        ...

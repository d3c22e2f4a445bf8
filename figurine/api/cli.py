"""
Interactive console front-end for the figurine engine.

Architectural role:
- Exposes terminal interaction for a single requester.
- Implements the messenger contract by printing to stdout.
- Delegates all orchestration to `figurine.core.engine.FigurineEngine`.

Request lifecycle (per input line):
1. Read stdin without blocking the event loop (polls keep running).
2. Handle local control commands (`exit`/`quit`, `help`).
3. Treat a bare image URL as an attached image.
4. Route everything else through `figurine.api.commands.dispatch`.

Error handling strategy:
- Configuration errors abort startup with a message.
- EOF and keyboard interrupts shut the engine down without traceback output.

Side effects:
- Reads `.env` and key files through `GenerationConfig.from_env`.
- Writes replies, notices and result image URLs to stdout.
"""

import asyncio
import logging
import os
import sys

from figurine.api.commands import USAGE, dispatch
from figurine.core.engine import FigurineEngine
from figurine.core.errors import ConfigError
from figurine.core.models import Destination, ImageAttachment, ImageContent, InboundMessage
from figurine.image.provider_config import GenerationConfig
from figurine.image.service import create_backend
from figurine.logging_utils import configure_logging
from figurine.messaging.extraction import is_http_url


logger = logging.getLogger(__name__)


class ConsoleMessenger:
    """Prints outbound messages; image results are shown as their URLs."""

    def __init__(self, stream=None):
        self.stream = stream or sys.stdout

    async def send(self, destination, content) -> None:
        if isinstance(content, ImageContent):
            text = f"[image] {content.url}"
        else:
            text = str(content)
        print(f"\n{text}", file=self.stream, flush=True)


def build_message(requester_id: str, line: str) -> InboundMessage:
    """Wrap one console line; a bare HTTP(S) URL counts as an image attachment."""
    destination = Destination(requester_id=requester_id, channel_id="console")
    if is_http_url(line) and " " not in line:
        return InboundMessage(destination=destination, text="", images=(ImageAttachment(url=line),))
    return InboundMessage(destination=destination, text=line)


async def run_console(engine: FigurineEngine, requester_id: str) -> None:
    """Run the input loop until exit, EOF or interrupt."""
    while True:
        try:
            line = (await asyncio.to_thread(input, "> ")).strip()
        except EOFError:
            print("\nSession ended (EOF received).")
            break

        if not line:
            continue

        if line.lower() in ("exit", "quit"):
            print("Shutting down.")
            break

        if line.lower() in ("help", "/help"):
            print(USAGE)
            continue

        reply = await dispatch(engine, build_message(requester_id, line))
        if reply:
            print(reply)


def main():
    """
    Start the console session.

    Error handling strategy:
    - Missing/invalid configuration prints the error and exits.
    - Interrupts cancel the loop; engine state is always cleared on exit.
    """
    try:
        config = GenerationConfig.from_env()
    except ConfigError as e:
        configure_logging(True)
        logger.error("Configuration error: %s", e)
        print(f"Configuration error: {e}")
        return

    configure_logging(config.enable_log)
    requester_id = os.getenv("FIGURINE_USER", "console")

    print("Figurine bot started. (Type 'help' for commands, 'exit' to quit)")
    print(f"Requester: {requester_id}")
    print("-" * 60)

    async def session():
        engine = FigurineEngine(config, create_backend(config), ConsoleMessenger())
        try:
            await run_console(engine, requester_id)
        finally:
            engine.shutdown()

    try:
        asyncio.run(session())
    except KeyboardInterrupt:
        print("\nOperation cancelled by user.")


if __name__ == "__main__":
    main()

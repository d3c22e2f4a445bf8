"""Chat command parsing and dispatch.

Recognised commands:
    /figurine [--style N] [image-url]
    /txt2img [--count N] <description>
    /figurine-status
    /figurine-reset

Any other text is a plain message and goes to the engine's resumption path,
which is how an awaited image reaches a pending figurine command.
"""

import logging
from dataclasses import dataclass

from figurine.core.engine import FigurineEngine
from figurine.core.errors import FigurineError
from figurine.core.models import ImageAttachment, InboundMessage
from figurine.messaging.extraction import strip_markup


logger = logging.getLogger(__name__)

FIGURINE = "/figurine"
TEXT_TO_IMAGE = "/txt2img"
STATUS = "/figurine-status"
RESET = "/figurine-reset"

USAGE = (
    "Usage:\n"
    " /figurine [--style N] [image-url]\n"
    " /txt2img [--count N] <description>\n"
    " /figurine-status\n"
    " /figurine-reset"
)


class CommandSyntaxError(FigurineError):
    user_message = USAGE


@dataclass(frozen=True)
class ParsedCommand:
    name: str
    style: int | None = None
    count: int | None = None
    argument: str = ""


def _int_option(name: str, value: str | None) -> int:
    if value is None:
        raise CommandSyntaxError(f"Option {name} needs a number\n{USAGE}")
    try:
        return int(value)
    except ValueError:
        raise CommandSyntaxError(f"Option {name} needs a number, got {value!r}\n{USAGE}") from None


def parse_command(text: str) -> ParsedCommand | None:
    """Parse one command line; return `None` for plain messages.

    Raises:
        CommandSyntaxError: Malformed option values or unknown options.
    """
    tokens = strip_markup(text).split()
    if not tokens:
        return None

    name = tokens[0].lower()
    if name in (STATUS, RESET):
        return ParsedCommand(name=name)
    if name not in (FIGURINE, TEXT_TO_IMAGE):
        return None

    options = {"--style": None, "--count": None}
    allowed = "--style" if name == FIGURINE else "--count"
    rest: list[str] = []
    args = iter(tokens[1:])
    for token in args:
        if token.startswith("--"):
            if token != allowed:
                raise CommandSyntaxError(f"Unknown option {token}\n{USAGE}")
            options[token] = _int_option(token, next(args, None))
        else:
            rest.append(token)

    return ParsedCommand(
        name=name,
        style=options["--style"],
        count=options["--count"],
        argument=" ".join(rest),
    )


async def dispatch(engine: FigurineEngine, message: InboundMessage) -> str | None:
    """Route one inbound message; return the synchronous reply text, if any."""
    try:
        command = parse_command(message.text)
    except CommandSyntaxError as e:
        return e.user_message

    destination = message.destination

    if command is None:
        await engine.handle_message(message)
        return None

    if command.name == STATUS:
        return engine.status(destination)

    if command.name == RESET:
        return engine.reset(destination)

    if command.name == TEXT_TO_IMAGE:
        reply = await engine.text_to_image(destination, command.argument, command.count)
        return reply.text

    image = ImageAttachment(url=command.argument) if command.argument else None
    reply = await engine.handle_command(destination, command.style, message=message, image=image)
    return reply.text

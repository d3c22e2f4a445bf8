"""Image-reference extraction for inbound messages.

Processing flow:
    1. Collect attachments the front-end already parsed from the payload.
    2. Fall back to `<img src="...">` elements embedded in the message text.
    3. Prefer the message's own images, then images of the quoted message.

Validation:
    The remote service dereferences image URLs itself, so inline `data:` URIs
    and non-HTTP(S) references are rejected. A size reported by the front-end
    is checked against the configured limit; no download is performed to
    discover an unknown size.
"""

import html
import re
from urllib.parse import urlparse

from figurine.core.errors import ImageTooLarge, NoImageFound, UnsupportedImageFormat
from figurine.core.models import ImageAttachment, InboundMessage


_IMG_TAG = re.compile(r"<img\b[^>]*?\bsrc\s*=\s*(['\"])(.*?)\1[^>]*>", re.IGNORECASE | re.DOTALL)


def images_from_markup(text: str) -> tuple[ImageAttachment, ...]:
    """Return attachments for every `<img src=...>` element in `text`."""
    if not text:
        return ()
    return tuple(
        ImageAttachment(url=html.unescape(match.group(2)).strip())
        for match in _IMG_TAG.finditer(text)
        if match.group(2).strip()
    )


def strip_markup(text: str) -> str:
    """Remove `<img>` elements and collapse surrounding whitespace."""
    if not text:
        return ""
    return " ".join(_IMG_TAG.sub(" ", text).split())


def extract_images(message: InboundMessage) -> list[ImageAttachment]:
    """All image references in `message`, own images first, then quoted ones."""
    own = list(message.images) or list(images_from_markup(message.text))
    return own + list(message.quoted_images)


def extract_image_reference(message: InboundMessage) -> ImageAttachment | None:
    """First usable image reference in `message`, or `None`."""
    images = extract_images(message)
    return images[0] if images else None


def is_http_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
        return parsed.scheme in {"http", "https"} and bool(parsed.netloc)
    except ValueError:
        return False


def validate_image_reference(attachment: ImageAttachment | None, max_bytes: int | None = None) -> str:
    """Return the attachment URL if the remote service can consume it.

    Raises:
        NoImageFound: `attachment` is `None` or has an empty URL.
        UnsupportedImageFormat: Inline-encoded or non-HTTP(S) reference.
        ImageTooLarge: Reported size exceeds `max_bytes`.
    """
    if attachment is None or not attachment.url:
        raise NoImageFound()

    url = attachment.url.strip()
    if url.lower().startswith("data:") or not is_http_url(url):
        raise UnsupportedImageFormat()

    if max_bytes is not None and attachment.size_bytes is not None and attachment.size_bytes > max_bytes:
        raise ImageTooLarge(max_bytes // (1024 * 1024))

    return url

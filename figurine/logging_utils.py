"""Process-wide logging setup.

Every module logs through `logging.getLogger(__name__)`; this module only owns
root configuration and the structured `key=value` helper used for job events.
"""

import json
import logging
import os


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PACKAGE_LOGGER = "figurine"

_configured = False


def configure_logging(enabled: bool = True, level: str | None = None) -> None:
    """Configure root logging once and apply the package log switch.

    Args:
        enabled: When `False`, the `figurine` logger hierarchy is silenced.
        level: Optional level name overriding `LOG_LEVEL`.
    """
    global _configured

    if not _configured:
        name = (level or LOG_LEVEL).upper()
        logging.basicConfig(
            level=getattr(logging, name, logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        _configured = True

    # Child module loggers inherit this effective level.
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.NOTSET if enabled else logging.CRITICAL + 1)


def log_event(logger: logging.Logger, msg: str, level: int = logging.INFO, **fields) -> None:
    """Log a message with JSON-rendered context; values should be JSON-serializable."""
    if not logger.isEnabledFor(level):
        return
    try:
        if fields:
            ctx = " ".join(
                f"{k}={json.dumps(v, ensure_ascii=False, default=str)}" for k, v in fields.items()
            )
            logger.log(level, "%s | %s", msg, ctx)
        else:
            logger.log(level, "%s", msg)
    except (TypeError, ValueError) as e:
        logger.log(level, "%s | logging_error=%s", msg, e)

"""
Structured logging for the sniper.

JSON lines by default, colored console output at DEBUG. Wallet key material is
stripped from every event, whether it comes from structlog or stdlib logging.
"""

import logging
import sys
from typing import Any, Optional

import structlog

# Substrings of event keys that may carry signing material
SECRET_KEY_MARKERS = ("secret", "private_key", "keypair", "seed")


def drop_secrets(
    logger: Any,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Remove wallet key material from every log event. Only public keys are logged."""
    for key in [k for k in event_dict if any(marker in k.lower() for marker in SECRET_KEY_MARKERS)]:
        del event_dict[key]
    return event_dict


def setup_logging(log_level: Optional[str] = None) -> None:
    """Route structlog and stdlib logging through one redacting formatter.

    Args:
        log_level: Level name such as ``INFO`` (default: ``INFO``)
    """
    level = getattr(logging, (log_level or "INFO").upper(), logging.INFO)
    is_dev = level == logging.DEBUG

    # Shared processors for both structlog and stdlib
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        drop_secrets,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if is_dev:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Route stdlib logging through structlog's formatter
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    # Quiet noisy third-party loggers
    for name in ("httpcore", "httpx", "websockets"):
        logging.getLogger(name).setLevel(logging.WARNING)

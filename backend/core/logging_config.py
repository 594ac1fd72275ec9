"""Structured logging for the preview service, built on structlog.

Every entry carries the service name and version so preview logs can be
picked out of a shared aggregator. Console output is used in development
or when LOG_FORMAT=text; everything else gets one JSON object per line.
"""

import logging
import sys
from typing import Any, Optional

import structlog
from app.config import Settings, get_settings

# Third-party loggers that are chatty at INFO/DEBUG.
# PIL logs every image plugin it imports while encoding previews.
_QUIET_LOGGERS = (
    "uvicorn.access",
    "botocore",
    "boto3",
    "s3transfer",
    "urllib3",
    "httpx",
    "httpcore",
    "PIL",
)


def _service_info(settings: Settings):
    """Processor that stamps entries with the service identity."""
    def add_service_info(logger: Any, method_name: str, event_dict: dict) -> dict:
        event_dict.setdefault("service", settings.APP_NAME)
        event_dict.setdefault("version", settings.APP_VERSION)
        return event_dict
    return add_service_info


def select_renderer(settings: Settings):
    """Console renderer for development or LOG_FORMAT=text, JSON otherwise."""
    if settings.is_development or settings.LOG_FORMAT.lower() == "text":
        # Colors only on a terminal
        return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    return structlog.processors.JSONRenderer()


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure structlog and route stdlib loggers through the same renderer."""
    settings = settings or get_settings()

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        _service_info(settings),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            select_renderer(settings),
        ],
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

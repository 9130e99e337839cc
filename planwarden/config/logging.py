"""structlog setup shared by the API, the scheduler and the seed command."""

import logging
import sys

import structlog

_NOISY_LOGGERS = ("sqlalchemy.engine", "aiosqlite", "httpx", "resend")


def setup_logging(
    log_level: str = "INFO", json_output: bool = False, component: str = "api"
) -> None:
    """Configure structlog and tag every event with the running component.

    ``component`` is bound into the context (``api``, ``scheduler`` or
    ``seed``) so events from the API and the background jobs can be told
    apart once they land in the same log stream.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_output or not sys.stderr.isatty():
        processors += [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service="planwarden", component=component)

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

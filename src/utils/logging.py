"""structlog setup for the render API.

Render jobs run as background tasks, so every log line emitted while a job is
running carries that job's id (and any other fields bound with
``set_job_context``) through structlog's context variables.
"""

import logging
import sys

import structlog

from utils.config import NOISY_LOGGERS

SERVICE_NAME = "shotreel-api"


def add_service_name(_logger, _method_name, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """Route structlog and stdlib logging through one renderer on stderr.

    Args:
        log_level: Root level name (DEBUG, INFO, WARNING, ERROR)
        json_output: One JSON object per line instead of the colored console format
    """
    shared = _shared_processors()
    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[*shared, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Module loggers (logging.getLogger(__name__)) are not structlog loggers
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper()))

    for logger_name in NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def set_job_context(job_id: str, **fields) -> None:
    """Bind ``job_id`` (plus extra fields) to every log event in this task."""
    structlog.contextvars.bind_contextvars(job_id=job_id, **fields)


def clear_job_context() -> None:
    structlog.contextvars.clear_contextvars()


def current_job_id() -> str | None:
    return structlog.contextvars.get_contextvars().get("job_id")

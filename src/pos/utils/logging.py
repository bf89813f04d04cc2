"""Structured logging for the POS service.

Every event carries `service`, `environment` and `gateway`, so log lines from
the API and the orchestrator can be told apart per deployment and per payment
processor. Request-scoped fields (`transaction_id`, `order_reference`) are
bound with `structlog.contextvars.bound_contextvars` at the call site.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path

import structlog

SERVICE_NAME = "qris-pos"

_LEVELS = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

_service_fields: dict[str, str] = {"service": SERVICE_NAME}


def _environment() -> str:
    return (os.getenv("PROTEAN_ENV") or os.getenv("ENVIRONMENT") or "development").lower()


def _add_service_fields(logger, method_name, event_dict):
    for key, value in _service_fields.items():
        event_dict.setdefault(key, value)
    return event_dict


def _handlers(level: str, log_dir: str | None) -> list[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    if not log_dir:
        return [console]

    directory = Path(log_dir)
    directory.mkdir(parents=True, exist_ok=True)
    log_file = logging.handlers.RotatingFileHandler(
        filename=directory / f"{SERVICE_NAME}.log",
        maxBytes=20 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    log_file.setLevel(level)
    return [console, log_file]


def configure_logging(
    environment: str | None = None,
    gateway: str | None = None,
    log_dir: str | None = None,
) -> None:
    """Route stdlib and structlog output through one pipeline.

    `LOG_LEVEL` overrides the per-environment level. `LOG_DIR` (or `log_dir`)
    adds a rotating file next to stdout.
    """
    environment = (environment or _environment()).lower()
    level = os.getenv("LOG_LEVEL", _LEVELS.get(environment, "INFO")).upper()

    _service_fields["environment"] = environment
    if gateway:
        _service_fields["gateway"] = gateway

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = _handlers(level, log_dir or os.getenv("LOG_DIR"))

    # Processor HTTP traffic is logged by the adapters themselves
    for noisy in ("urllib3", "requests", "protean"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        _add_service_fields,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if environment in ("production", "staging"):
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False, max_frames=3),
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_gateway(gateway: str) -> None:
    """Record which processor adapter this process talks to."""
    _service_fields["gateway"] = gateway

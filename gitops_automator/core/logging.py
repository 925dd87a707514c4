"""structlog setup for the automator CLI.

Events go to stderr so stdout carries only command results. The renderer and
level come from ``GITOPS_AUTOMATOR_LOG_FORMAT`` (console | json) and
``GITOPS_AUTOMATOR_LOG_LEVEL``; ``--verbose`` forces DEBUG and also lets the
HTTP client libraries through.
"""

from __future__ import annotations

import logging
import logging.config
import os

import structlog

LOG_FORMATS = ("console", "json")

# Third-party loggers that only matter when debugging platform traffic.
_HTTP_LOGGERS = ("httpx", "httpcore")


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    # colors only when a human is watching
    return structlog.dev.ConsoleRenderer(colors=os.isatty(2))


def setup_logging(*, verbose: bool = False, log_format: str | None = None) -> None:
    """Route structlog and stdlib records through one stderr handler."""
    level = "DEBUG" if verbose else os.environ.get("GITOPS_AUTOMATOR_LOG_LEVEL", "INFO").upper()
    log_format = (log_format or os.environ.get("GITOPS_AUTOMATOR_LOG_FORMAT", "console")).lower()
    if log_format not in LOG_FORMATS:
        raise ValueError(f"unknown log format {log_format!r}, expected one of {', '.join(LOG_FORMATS)}")

    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    http_level = "DEBUG" if verbose else "WARNING"
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "automator": {
                    "()": structlog.stdlib.ProcessorFormatter,
                    "foreign_pre_chain": pre_chain,
                    "processors": [
                        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                        _renderer(log_format),
                    ],
                },
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stderr",
                    "formatter": "automator",
                },
            },
            "root": {"handlers": ["stderr"], "level": level},
            "loggers": {
                "gitops_automator": {"level": level},
                **{name: {"level": http_level} for name in _HTTP_LOGGERS},
            },
        }
    )

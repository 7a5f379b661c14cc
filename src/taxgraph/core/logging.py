"""Structured logging for taxgraph.

The engine and the catalog log through structlog. configure_logging()
takes the LoggingSettings section of EngineSettings and installs one
stdout handler on the root logger whose ProcessorFormatter renders both
structlog events and plain stdlib records (from collaborators such as a
slot generator) with the same chain.

Event names used by the package:
    nodes_registered, nodes_unregistered          (info)
    graph_registration_failed,
    graph_unregistration_failed                   (error)
    session_initialized, event_processed          (debug)
    event_rejected                                (info)
    node_compute_failed                           (warning)
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import ProcessorFormatter

from taxgraph.core.config import LoggingSettings

# Libraries that chatter at DEBUG while loading settings
_NOISY_LOGGERS: tuple[str, ...] = (
    "dynaconf",
    "asyncio",
)


def _drop_formatter_fields(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    # Always present once ProcessorFormatter.format() has run
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def _shared_processors() -> list[Any]:
    """Processors applied to structlog events and stdlib records alike."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]


def _render_processors(json_output: bool) -> list[Any]:
    if json_output:
        return [
            _drop_formatter_fields,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [
        _drop_formatter_fields,
        structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
    ]


def configure_logging(settings: LoggingSettings | None = None) -> None:
    """Route structlog and stdlib logging through one stdout handler.

    Args:
        settings: Level and output format; LoggingSettings() when omitted.
            Usually the logging section of a loaded EngineSettings.
    """
    settings = settings if settings is not None else LoggingSettings()
    log_level = logging.getLevelNamesMapping()[settings.level]
    shared = _shared_processors()

    structlog.configure(
        processors=[*shared, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Tests reconfigure logging; cached loggers would keep the old chain
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ProcessorFormatter(processors=_render_processors(settings.json_output), foreign_pre_chain=shared))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    # Never more permissive than the root level
    noisy_level = max(log_level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(noisy_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Bound structlog logger for a module (pass __name__)."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger

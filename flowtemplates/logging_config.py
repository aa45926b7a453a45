"""
structlog setup for the process template service.

Template operations bind their project and template ids into the structlog
context, so events from nested engine code (graph validation, sub-process
materialization) carry them without passing them around.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional

import structlog
from structlog.types import EventDict, Processor

SERVICE_NAME = "flowtemplates"


def _tag_service(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def _processor_chain(log_format: str) -> List[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        _tag_service,
        _renderer(log_format),
    ]


def setup_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """
    Route structlog through the stdlib root logger on stdout.

    Args:
        log_level: Name of a stdlib level, e.g. "INFO" or "debug"
        log_format: "json" for machine-readable lines, anything else for the
            console renderer
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.getLevelName(log_level.upper()),
    )

    structlog.configure(
        processors=_processor_chain(log_format),
        context_class=dict,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@contextmanager
def template_log_context(
    operation: str,
    project_id: Optional[int] = None,
    template_id: Optional[int] = None,
    **extra: Any,
) -> Iterator[None]:
    """
    Bind template identifiers to every log event emitted inside the block.

    Usage:
        with template_log_context("import", project_id=3):
            ...
    """
    values = {"operation": operation, **extra}
    if project_id is not None:
        values["project_id"] = project_id
    if template_id is not None:
        values["template_id"] = template_id
    with structlog.contextvars.bound_contextvars(**values):
        yield


def get_logger(name: Optional[str] = None) -> Any:
    return structlog.get_logger(name)

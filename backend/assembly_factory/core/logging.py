"""
Structured logging for the Assembly Factory
Flow: create_app() → setup_logging() → stdlib root handler + structlog processors → JSON / console

Every event carries the service name and environment; lifecycle and part
enums (AssemblyStatus, PartType, DeleteOutcome, ...) are logged by value.
"""

import logging
import sys
from enum import Enum
from typing import Any, List, Optional

import structlog
from structlog.processors import CallsiteParameter
from structlog.typing import EventDict, Processor, WrappedLogger

from assembly_factory.config.settings import get_settings

_configured = False


def add_app_context(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Stamp service and environment unless the caller already bound them."""
    settings = get_settings()
    event_dict.setdefault("service", settings.APP_NAME)
    event_dict.setdefault("environment", settings.ENVIRONMENT)
    return event_dict


def enum_values(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Render enum members (and lists of them) as their plain values."""
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, (list, tuple)) and any(isinstance(item, Enum) for item in value):
            event_dict[key] = [item.value if isinstance(item, Enum) else item for item in value]
    return event_dict


def build_processors(log_format: str) -> List[Processor]:
    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_app_context,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        enum_values,
        structlog.processors.CallsiteParameterAdder(
            parameters=[CallsiteParameter.FILENAME, CallsiteParameter.LINENO, CallsiteParameter.FUNC_NAME]
        ),
        structlog.processors.format_exc_info,
    ]
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def setup_logging(log_level: Optional[str] = None, log_format: Optional[str] = None, force: bool = False) -> None:
    """Configure structlog once per process; settings supply the defaults."""
    global _configured
    if _configured and not force:
        return

    settings = get_settings()
    level_name = (log_level or settings.LOG_LEVEL).upper()
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level_name, logging.INFO),
        force=force,
    )

    structlog.configure(
        processors=build_processors(log_format or settings.LOG_FORMAT),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: Optional[str] = None, **context: Any) -> structlog.stdlib.BoundLogger:
    """Logger for a factory module, pre-bound with e.g. component= or service=."""
    logger = structlog.get_logger(name)
    if context:
        logger = logger.bind(**context)
    return logger

"""
Structured logging configuration.

Every module logs through the shared ``logger`` with key/value context:

    logger.info("Tool dispatched", tool="create_work_order", tenant_id="tenant-001")

``configure_logging`` is called once from the application lifespan; until
then structlog's defaults render to the console.
"""
import logging
import sys
from typing import Any, Dict

import structlog
from structlog.types import Processor

SERVICE_NAME = "homedesk_maintenance_api"


def add_service_name(
    logger: Any,
    method_name: str,
    event_dict: Dict[str, Any],
) -> Dict[str, Any]:
    """Stamp the service identifier on every entry."""
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """
    Configure structlog on top of the standard library logging module.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: JSON lines when True, coloured console output otherwise
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


def get_logger(name: str | None = None) -> Any:
    """Return a structlog logger, optionally named after the calling module."""
    return structlog.get_logger(name)


logger = get_logger("homedesk")

"""Structured outcome logging for BOM engine operations.

Every add, update, delete, copy and compare outcome goes through
log_operation so records share the same ``operation`` / ``outcome``
attributes and can be filtered uniformly.

Usage:
    from bom_engine.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(logger, operation="add_bom_item", outcome="success", bom_id="BOM-1")

    log_operation(
        logger,
        operation="add_bom_item",
        outcome="CircularReferenceError",
        level=logging.WARNING,
        bom_id="BOM-1",
        component_id="PRD-9",
    )
"""

import logging
from typing import Any

LOGGER_PREFIX = "bom_engine.services"


def get_service_logger(name: str) -> logging.Logger:
    """
    Logger for a service module, always under the ``bom_engine.services`` prefix.

    Example:
        >>> get_service_logger("bom_engine.services.bom_item_service").name
        'bom_engine.services.bom_item_service'
    """
    return logging.getLogger(f"{LOGGER_PREFIX}.{name.rsplit('.', 1)[-1]}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Emit one record describing an operation's outcome.

    Args:
        logger: Service logger
        operation: e.g. "add_bom_item", "copy_bom"
        outcome: "success", a rule or exception name, or a warning tag
            such as "forced_in_use"
        level: INFO for success, WARNING for rejections and overrides,
            ERROR for store failures
        **context: Ids and details attached to the record (bom_id, item_id,
            component_id, error, warnings, ...)
    """
    logger.log(
        level,
        f"{operation}: {outcome}",
        extra={"operation": operation, "outcome": outcome, **context},
    )

"""Audit logging for authorization decisions and guarded writes."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqla_rebac._types import Resource, Subject

if TYPE_CHECKING:
    from sqla_rebac.evaluator._fragment import PredicateFragment

__all__ = [
    "log_batch_outcome",
    "log_check_decision",
    "log_data_access_failure",
    "log_list_compilation",
]

logger = logging.getLogger("sqla_rebac")


def log_check_decision(
    *,
    subject: Subject,
    action: str,
    resource: Resource,
    allowed: bool,
) -> None:
    """Log a point-check decision.

    Logging levels:
    - INFO: Allowed decisions
    - WARNING: Denied decisions

    Example::

        log_check_decision(subject=alice, action="delete", resource=doc, allowed=False)
    """
    if allowed:
        logger.info("Check allowed: %s may %s %s", subject, action, resource)
    else:
        logger.warning("Check denied: %s may not %s %s", subject, action, resource)


def log_list_compilation(*, subject: Subject, fragment: PredicateFragment) -> None:
    """Log a list-condition compilation.

    INFO carries the summary; the fragment SQL is only emitted at DEBUG.
    """
    logger.info(
        "List condition compiled: %s.%s for %s on %s",
        fragment.resource_type,
        fragment.action,
        subject,
        fragment.column_ref,
    )
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Condition for %s.%s: %s", fragment.resource_type, fragment.action, fragment.sql
        )


def log_batch_outcome(
    *,
    subject: Subject,
    action: str,
    resource_type: str,
    requested: int,
    applied: int,
) -> None:
    """Log the result of a batch guarded mutation.

    A count mismatch is always logged at WARNING, since it means the
    transaction was rolled back.
    """
    if requested == applied:
        logger.info(
            "Batch %s on %s by %s committed: %d row(s)",
            action,
            resource_type,
            subject,
            applied,
        )
    else:
        logger.warning(
            "Batch %s on %s by %s rolled back: %d of %d row(s) authorized",
            action,
            resource_type,
            subject,
            applied,
            requested,
        )


def log_data_access_failure(operation: str, exc: BaseException) -> None:
    """Log a failed SQL operation with its driver error.

    The error raised to the caller carries a generic message; this is
    where the detail goes.
    """
    data_logger = logging.getLogger("sqla_rebac.data")
    data_logger.error("Data access failed during %s: %s", operation, exc, exc_info=exc)

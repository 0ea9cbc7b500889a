"""RetryingEvaluator: bounded retries around an evaluator's transport failures."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy import Connection

from sqla_rebac._types import Resource, Subject
from sqla_rebac.config._config import AuthzConfig, get_global_config
from sqla_rebac.evaluator._fragment import PredicateFragment
from sqla_rebac.evaluator._protocol import PolicyEvaluator
from sqla_rebac.exceptions import EvaluatorUnavailable

__all__ = ["RetryingEvaluator"]

logger = logging.getLogger("sqla_rebac")

T = TypeVar("T")


class RetryingEvaluator:
    """Wrap a ``PolicyEvaluator`` and retry calls that raise ``EvaluatorUnavailable``.

    Only transport failures are retried.  Denials and compilation errors
    pass through on the first attempt.  The delay starts at
    ``evaluator_retry_backoff`` and doubles after every failed attempt;
    after ``evaluator_retry_attempts`` attempts the last error is raised.

    Example::

        evaluator = RetryingEvaluator(remote_client, config=AuthzConfig(evaluator_retry_attempts=5))
    """

    def __init__(
        self,
        inner: PolicyEvaluator,
        *,
        config: AuthzConfig | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._inner = inner
        self._config = config
        self._sleep = sleep

    @property
    def inner(self) -> PolicyEvaluator:
        return self._inner

    def check(
        self,
        subject: Subject,
        action: str,
        resource: Resource,
        *,
        connection: Connection | None = None,
    ) -> bool:
        return self._call(
            "check", lambda: self._inner.check(subject, action, resource, connection=connection)
        )

    def compile_list_condition(
        self,
        subject: Subject,
        action: str,
        resource_type: str,
        column_ref: str,
    ) -> PredicateFragment:
        return self._call(
            "compile_list_condition",
            lambda: self._inner.compile_list_condition(subject, action, resource_type, column_ref),
        )

    def _call(self, name: str, fn: Callable[[], T]) -> T:
        config = self._config if self._config is not None else get_global_config()
        delay = config.evaluator_retry_backoff
        for attempt in range(1, config.evaluator_retry_attempts + 1):
            try:
                return fn()
            except EvaluatorUnavailable:
                if attempt == config.evaluator_retry_attempts:
                    raise
                logger.warning(
                    "Evaluator unavailable during %s (attempt %d of %d), retrying in %.2fs",
                    name,
                    attempt,
                    config.evaluator_retry_attempts,
                    delay,
                )
                self._sleep(delay)
                delay *= 2
        raise AssertionError("unreachable")  # pragma: no cover

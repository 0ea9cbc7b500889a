"""PolicyEvaluator: the two capabilities the data-access layer consumes."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from sqlalchemy import Connection

from sqla_rebac._types import Resource, Subject
from sqla_rebac.evaluator._fragment import PredicateFragment

__all__ = ["PolicyEvaluator"]


@runtime_checkable
class PolicyEvaluator(Protocol):
    """Structural type for policy evaluators.

    Any object with these two methods satisfies the protocol: the local
    evaluator shipped here, a client for a remote policy service, or a
    test double.

    ``check`` receives the connection of the guarded operation so that an
    evaluator answering from the application database reads the same
    transaction the mutation will write to.  Remote evaluators ignore it.

    Errors:
        ``check`` raises ``EvaluatorUnavailable`` on transport failure.
        ``compile_list_condition`` raises ``PolicyCompilationError`` when the
        action is not declared for the resource type.
    """

    def check(
        self,
        subject: Subject,
        action: str,
        resource: Resource,
        *,
        connection: Connection | None = None,
    ) -> bool: ...

    def compile_list_condition(
        self,
        subject: Subject,
        action: str,
        resource_type: str,
        column_ref: str,
    ) -> PredicateFragment: ...

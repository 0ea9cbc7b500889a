"""LocalPolicyEvaluator: answers checks and list conditions from the application database."""

from __future__ import annotations

from typing import Any

from sqlalchemy import Connection, ColumnElement, Engine, false, literal, literal_column, select
from sqlalchemy.engine import Dialect

from sqla_rebac._types import Resource, Subject
from sqla_rebac.compiler._expression import build_condition, render_condition
from sqla_rebac.config._config import AuthzConfig, get_global_config
from sqla_rebac.evaluator._fragment import PredicateFragment
from sqla_rebac.exceptions import PolicyCompilationError
from sqla_rebac.policy._document import PolicyDocument
from sqla_rebac.policy._facts import FactConfig

__all__ = ["LocalPolicyEvaluator"]


class LocalPolicyEvaluator:
    """Policy evaluator compiling a policy document against fact queries.

    Facts live in the same database as the guarded data, so ``check`` runs
    on the connection it is handed and sees uncommitted writes of the
    surrounding transaction.  Without a connection it checks one out of
    *engine*.

    List conditions are rendered for *dialect* (default: the engine's)
    with every value inlined through the dialect's literal processors.

    Args:
        policy: The policy document.
        facts: Fact queries answering the policy's facts.
        engine: Engine used by ``check`` when no connection is passed.
        dialect: Dialect list conditions are rendered for.
        config: Per-evaluator configuration; the global config otherwise.
        validate: Validate *policy* against *facts* on construction.

    Example::

        evaluator = LocalPolicyEvaluator(policy, facts, engine=engine)
        evaluator.check(Subject("User", "bob"), "read", Resource("Organization", "acme"))
        fragment = evaluator.compile_list_condition(
            Subject("User", "bob"), "read", "User", "users.username"
        )
    """

    def __init__(
        self,
        policy: PolicyDocument,
        facts: FactConfig,
        *,
        engine: Engine | None = None,
        dialect: Dialect | None = None,
        config: AuthzConfig | None = None,
        validate: bool = True,
    ) -> None:
        if dialect is None:
            if engine is None:
                raise TypeError("LocalPolicyEvaluator requires an engine or a dialect")
            dialect = engine.dialect
        if validate:
            policy.validate(facts)
        self._policy = policy
        self._facts = facts
        self._engine = engine
        self._dialect = dialect
        self._config = config

    @property
    def policy(self) -> PolicyDocument:
        return self._policy

    @property
    def facts(self) -> FactConfig:
        return self._facts

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    @property
    def config(self) -> AuthzConfig:
        return self._config if self._config is not None else get_global_config()

    def condition(
        self,
        subject: Subject,
        action: str,
        resource_type: str,
        target: ColumnElement[Any],
    ) -> ColumnElement[bool]:
        """Build the SQLAlchemy condition for *action* on rows identified by *target*.

        Raises:
            PolicyCompilationError: If *action* is not declared for
                *resource_type* and ``on_undeclared_action`` is ``"raise"``.
        """
        if not self._policy.declares(resource_type, action):
            if self.config.on_undeclared_action == "deny":
                return false()
            raise PolicyCompilationError(
                f"Action {action!r} is not declared for resource type {resource_type!r}"
            )
        return build_condition(self._policy, self._facts, subject, resource_type, [action], target)

    def check(
        self,
        subject: Subject,
        action: str,
        resource: Resource,
        *,
        connection: Connection | None = None,
    ) -> bool:
        target = literal(resource.id, self._facts.id_type(resource.type))
        stmt = select(literal_column("1")).where(
            self.condition(subject, action, resource.type, target)
        )
        if connection is not None:
            allowed = connection.execute(stmt).first() is not None
        elif self._engine is not None:
            from sqla_rebac.session._scope import ConnectionScope

            with ConnectionScope(self._engine, operation="policy check") as scope:
                allowed = scope.execute(stmt).first() is not None
        else:
            raise TypeError("check() needs a connection when the evaluator has no engine")

        if self.config.log_policy_decisions:
            from sqla_rebac._audit import log_check_decision

            log_check_decision(subject=subject, action=action, resource=resource, allowed=allowed)
        return allowed

    def compile_list_condition(
        self,
        subject: Subject,
        action: str,
        resource_type: str,
        column_ref: str,
    ) -> PredicateFragment:
        expr = self.condition(subject, action, resource_type, literal_column(column_ref))
        fragment = PredicateFragment(
            column_ref=column_ref,
            sql=render_condition(expr, self._dialect),
            action=action,
            resource_type=resource_type,
        )
        if self.config.log_policy_decisions:
            from sqla_rebac._audit import log_list_compilation

            log_list_compilation(subject=subject, fragment=fragment)
        return fragment

    def __repr__(self) -> str:
        return (
            f"LocalPolicyEvaluator(actor={self._policy.actor_type!r}, "
            f"resources={sorted(self._policy.blocks)!r}, dialect={self._dialect.name!r})"
        )

"""AuthorizationContext: carries subject, evaluator and config through a request."""

from __future__ import annotations

from dataclasses import dataclass, field

from sqla_rebac._types import Subject
from sqla_rebac.config._config import AuthzConfig, get_global_config
from sqla_rebac.evaluator._protocol import PolicyEvaluator
from sqla_rebac.policy._registry import ResourceRegistry, get_default_registry

__all__ = ["AuthorizationContext"]


@dataclass(frozen=True, slots=True)
class AuthorizationContext:
    """Carries the requesting subject and its collaborators through one request.

    The subject is fixed for the lifetime of the context; nothing in a
    request may change who is asking.

    Attributes:
        subject: The authenticated requester.
        evaluator: The policy evaluator consulted by guarded operations.
        resources: Resource registry mapping types onto tables.
        config: The resolved configuration for this request.

    Example::

        ctx = AuthorizationContext(
            subject=Subject("User", "bob"),
            evaluator=evaluator,
        )
        users = get_readable_users_with_permissions(engine, ctx)
    """

    subject: Subject
    evaluator: PolicyEvaluator
    resources: ResourceRegistry = field(default_factory=get_default_registry)
    config: AuthzConfig = field(default_factory=get_global_config)

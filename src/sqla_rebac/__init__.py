"""sqla-rebac: Relationship-based authorization for SQLAlchemy 2.0 Core.

Compiles permission checks into SQL predicates and wraps reads and writes
so that every row touched is one the requesting subject is allowed to
touch, decided in the same statement or transaction as the data access.

Example::

    from sqla_rebac import LocalPolicyEvaluator, Subject, Target, load_facts, load_policy
    from sqla_rebac import guarded_batch_update, list_with_permissions

    evaluator = LocalPolicyEvaluator(load_policy("policy.yaml"), load_facts("facts.yaml"),
                                     engine=engine)
    bob = Subject("User", "bob")

    listing = list_with_permissions(engine, bob, "User", ["edit_role"],
                                    evaluator=evaluator, extract_self=True)
    guarded_batch_update(engine, bob, "edit_role", "User",
                         [Target("alice", {"role": "admin"})],
                         evaluator=evaluator, exclude_self=True)
"""

from importlib.metadata import PackageNotFoundError, version

from sqla_rebac._checks import authorize, can
from sqla_rebac._types import Resource, Subject, Target
from sqla_rebac.config._config import AuthzConfig, configure
from sqla_rebac.evaluator import (
    LocalPolicyEvaluator,
    PolicyEvaluator,
    PredicateFragment,
    RetryingEvaluator,
)
from sqla_rebac.exceptions import (
    AuthorizationError,
    AuthzError,
    DataAccessError,
    EvaluatorUnavailable,
    FragmentReuseError,
    IntegrityError,
    InvalidBatchError,
    PolicyCompilationError,
)
from sqla_rebac.guarded import (
    AuthorizedListing,
    PermissionVector,
    guarded_batch_delete,
    guarded_batch_delete_async,
    guarded_batch_update,
    guarded_batch_update_async,
    guarded_mutate,
    guarded_mutate_async,
    list_with_permissions,
    list_with_permissions_async,
)
from sqla_rebac.policy import (
    FactConfig,
    FactQuery,
    PolicyDocument,
    ResourceBlock,
    ResourceRegistry,
    Rule,
    load_facts,
    load_policy,
)
from sqla_rebac.session import (
    AsyncConnectionScope,
    AuthorizationContext,
    ConnectionScope,
    transaction_scope,
)

try:
    __version__ = version("sqla-rebac")
except PackageNotFoundError:
    __version__ = "dev"

__all__ = [
    "__version__",
    "AsyncConnectionScope",
    "AuthorizationContext",
    "AuthorizationError",
    "AuthorizedListing",
    "AuthzConfig",
    "AuthzError",
    "ConnectionScope",
    "DataAccessError",
    "EvaluatorUnavailable",
    "FactConfig",
    "FactQuery",
    "FragmentReuseError",
    "IntegrityError",
    "InvalidBatchError",
    "LocalPolicyEvaluator",
    "PermissionVector",
    "PolicyCompilationError",
    "PolicyDocument",
    "PolicyEvaluator",
    "PredicateFragment",
    "Resource",
    "ResourceBlock",
    "ResourceRegistry",
    "RetryingEvaluator",
    "Rule",
    "Subject",
    "Target",
    "authorize",
    "can",
    "configure",
    "guarded_batch_delete",
    "guarded_batch_delete_async",
    "guarded_batch_update",
    "guarded_batch_update_async",
    "guarded_mutate",
    "guarded_mutate_async",
    "list_with_permissions",
    "list_with_permissions_async",
    "load_facts",
    "load_policy",
    "transaction_scope",
]

"""Exception hierarchy for sqla-rebac.

Callers must be able to tell "you may not do this" apart from "the system
is broken", so authorization failures and data-access failures never share
a branch of this tree.
"""

from __future__ import annotations

__all__ = [
    "AuthorizationError",
    "AuthzError",
    "DataAccessError",
    "EvaluatorUnavailable",
    "FragmentReuseError",
    "IntegrityError",
    "InvalidBatchError",
    "PolicyCompilationError",
]


class AuthzError(Exception):
    """Base exception for all sqla-rebac errors."""


class AuthorizationError(AuthzError):
    """Subject is not permitted to perform the requested action.

    Raised when a point check denies a single-entity mutation, and when a
    batch mutation affects fewer rows than were requested.  The message
    names the action and resource type only; it never includes predicate
    SQL.

    Attributes:
        subject: The subject that was denied.
        action: The action that was attempted.
        resource_type: The type of resource involved.
        resource_id: The resource identity for single-entity checks,
            ``None`` for batch operations.

    Example::

        try:
            guarded_mutate(engine, alice, "create_user", acme, insert_fn,
                           evaluator=evaluator)
        except AuthorizationError as exc:
            print(exc.action, exc.resource_type)
    """

    def __init__(
        self,
        *,
        subject: object,
        action: str,
        resource_type: str,
        resource_id: object = None,
        message: str | None = None,
    ) -> None:
        self.subject = subject
        self.action = action
        self.resource_type = resource_type
        self.resource_id = resource_id
        if message is None:
            if resource_id is None:
                message = f"{subject} is not permitted to {action} {resource_type}"
            else:
                message = f"{subject} is not permitted to {action} {resource_type} {resource_id!r}"
        super().__init__(message)


class PolicyCompilationError(AuthzError):
    """The policy cannot produce a condition for the request.

    Raised when an action is not declared for a resource type, or when the
    policy and the fact-correlation configuration disagree (a rule names a
    relation with no fact query, for example).  This is a configuration
    defect and is never retried.
    """


class EvaluatorUnavailable(AuthzError):  # noqa: N818
    """The policy evaluator could not be reached.

    Transport failures are the only errors worth retrying; see
    :class:`~sqla_rebac.evaluator.RetryingEvaluator`.
    """


class DataAccessError(AuthzError):
    """A SQL statement or connection operation failed.

    The transaction is always rolled back before this is raised.  The
    message is generic; the underlying driver error is available as
    ``__cause__`` and is logged.
    """


class IntegrityError(AuthzError):
    """An invariant between policy and data does not hold.

    Example: a subject that cannot read its own record.  Indicates that
    the schema and the policy have drifted apart.
    """


class InvalidBatchError(AuthzError, ValueError):
    """A batch mutation was called with unusable input.

    Empty batches, duplicate target identities and oversized batches are
    caller errors, not no-op successes.
    """


class FragmentReuseError(AuthzError):
    """A predicate fragment was embedded twice or against the wrong column.

    Fragments are compiled for one column reference in one statement.
    """

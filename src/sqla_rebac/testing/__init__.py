"""sqla-rebac testing utilities: subjects, evaluator doubles, assertions, fixtures.

Provides test helpers for code built on the guarded operations:

- **Subjects / evaluator doubles**: ``make_subject``, ``StaticEvaluator``,
  ``RecordingEvaluator``.
- **Assertion helpers**: ``assert_listed``, ``assert_not_listed``,
  ``assert_fragment_contains``.
- **Fixtures**: ``authz_config``, ``resource_registry``,
  ``isolated_authz_state``.
- **Coverage**: ``policy_matrix``.

Example::

    from sqla_rebac.testing import assert_listed, make_subject

    def test_bob_lists_acme(engine, evaluator):
        listing = list_with_permissions(engine, make_subject("bob"), "User",
                                        evaluator=evaluator)
        assert_listed(listing, ["alice", "bob"])
"""

from sqla_rebac.testing._actors import (
    RecordingEvaluator,
    StaticEvaluator,
    make_anonymous,
    make_subject,
)
from sqla_rebac.testing._assertions import (
    assert_fragment_contains,
    assert_listed,
    assert_not_listed,
)
from sqla_rebac.testing._fixtures import (
    authz_config,
    isolated_authz_state,
    resource_registry,
)
from sqla_rebac.testing._isolation import isolated_authz
from sqla_rebac.testing._matrix import PolicyCoverage, PolicyMatrix, policy_matrix

__all__ = [
    "PolicyCoverage",
    "PolicyMatrix",
    "RecordingEvaluator",
    "StaticEvaluator",
    "assert_fragment_contains",
    "assert_listed",
    "assert_not_listed",
    "authz_config",
    "isolated_authz",
    "isolated_authz_state",
    "make_anonymous",
    "make_subject",
    "policy_matrix",
    "resource_registry",
]

"""Evaluator: the policy evaluator boundary and its implementations."""

from sqla_rebac.evaluator._fragment import PredicateFragment
from sqla_rebac.evaluator._protocol import PolicyEvaluator
from sqla_rebac.evaluator._retry import RetryingEvaluator
from sqla_rebac.evaluator._local import LocalPolicyEvaluator

__all__ = [
    "LocalPolicyEvaluator",
    "PolicyEvaluator",
    "PredicateFragment",
    "RetryingEvaluator",
]

"""Layered configuration for sqla-rebac."""

from __future__ import annotations

from dataclasses import dataclass

from sqla_rebac._types import OnUndeclaredAction

__all__ = [
    "AuthzConfig",
    "configure",
    "get_global_config",
    "_reset_global_config",
    "_set_global_config",
]

_VALID_UNDECLARED: set[str] = {"raise", "deny"}


@dataclass(frozen=True, slots=True)
class AuthzConfig:
    """Layered configuration with merge semantics (global -> call).

    Attributes:
        log_policy_decisions: Log checks, fragment compilations and batch
            outcomes through the ``sqla_rebac`` logger.
        on_undeclared_action: Behavior when the policy does not declare an
            action for a resource type.
            ``"raise"`` raises ``PolicyCompilationError``.
            ``"deny"`` compiles to a constant false condition.
        max_batch_size: Upper bound on targets per batch mutation.
            ``None`` disables the bound.
        evaluator_retry_attempts: Total attempts made by
            ``RetryingEvaluator`` when the evaluator is unavailable.
        evaluator_retry_backoff: Initial delay in seconds between retries;
            doubled after every failed attempt.

    Example::

        config = AuthzConfig(on_undeclared_action="deny")
        merged = config.merge(max_batch_size=50)
    """

    log_policy_decisions: bool = False
    on_undeclared_action: OnUndeclaredAction = "raise"
    max_batch_size: int | None = 1000
    evaluator_retry_attempts: int = 3
    evaluator_retry_backoff: float = 0.1

    def __post_init__(self) -> None:
        if self.on_undeclared_action not in _VALID_UNDECLARED:
            raise ValueError(
                f"on_undeclared_action must be one of {_VALID_UNDECLARED!r}, "
                f"got {self.on_undeclared_action!r}"
            )
        if self.max_batch_size is not None and self.max_batch_size < 1:
            raise ValueError(f"max_batch_size must be positive, got {self.max_batch_size!r}")
        if self.evaluator_retry_attempts < 1:
            raise ValueError(
                f"evaluator_retry_attempts must be at least 1, "
                f"got {self.evaluator_retry_attempts!r}"
            )
        if self.evaluator_retry_backoff < 0:
            raise ValueError(
                f"evaluator_retry_backoff must not be negative, "
                f"got {self.evaluator_retry_backoff!r}"
            )

    def merge(
        self,
        *,
        log_policy_decisions: bool | None = None,
        on_undeclared_action: OnUndeclaredAction | None = None,
        max_batch_size: int | None = None,
        evaluator_retry_attempts: int | None = None,
        evaluator_retry_backoff: float | None = None,
    ) -> AuthzConfig:
        """Return a new config with non-None overrides applied.

        Example::

            base = AuthzConfig()
            strict = base.merge(on_undeclared_action="raise", max_batch_size=100)
        """
        return AuthzConfig(
            log_policy_decisions=(
                log_policy_decisions
                if log_policy_decisions is not None
                else self.log_policy_decisions
            ),
            on_undeclared_action=(
                on_undeclared_action
                if on_undeclared_action is not None
                else self.on_undeclared_action
            ),
            max_batch_size=(max_batch_size if max_batch_size is not None else self.max_batch_size),
            evaluator_retry_attempts=(
                evaluator_retry_attempts
                if evaluator_retry_attempts is not None
                else self.evaluator_retry_attempts
            ),
            evaluator_retry_backoff=(
                evaluator_retry_backoff
                if evaluator_retry_backoff is not None
                else self.evaluator_retry_backoff
            ),
        )


# ---------------------------------------------------------------------------
# Global configuration singleton
# ---------------------------------------------------------------------------

_global_config = AuthzConfig()


def get_global_config() -> AuthzConfig:
    """Return the current global configuration.

    Example::

        config = get_global_config()
        print(config.on_undeclared_action)  # "raise"
    """
    return _global_config


def configure(
    *,
    log_policy_decisions: bool | None = None,
    on_undeclared_action: OnUndeclaredAction | None = None,
    max_batch_size: int | None = None,
    evaluator_retry_attempts: int | None = None,
    evaluator_retry_backoff: float | None = None,
) -> AuthzConfig:
    """Update the global configuration by merging overrides.

    Only non-None values are applied. Returns the new global config.

    Example::

        configure(log_policy_decisions=True)
    """
    global _global_config
    _global_config = _global_config.merge(
        log_policy_decisions=log_policy_decisions,
        on_undeclared_action=on_undeclared_action,
        max_batch_size=max_batch_size,
        evaluator_retry_attempts=evaluator_retry_attempts,
        evaluator_retry_backoff=evaluator_retry_backoff,
    )
    return _global_config


def _set_global_config(cfg: AuthzConfig) -> None:
    """Replace global config with an exact snapshot. For testing only."""
    global _global_config
    _global_config = cfg


def _reset_global_config() -> None:
    """Reset global config to defaults. For testing only."""
    global _global_config
    _global_config = AuthzConfig()

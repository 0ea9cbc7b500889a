"""Configuration module for sqla-rebac."""

from __future__ import annotations

from sqla_rebac.config._config import AuthzConfig, configure, get_global_config

__all__ = ["AuthzConfig", "configure", "get_global_config"]

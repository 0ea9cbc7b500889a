"""Tests for the pytest plugin module."""

from __future__ import annotations

import sqla_rebac.testing._plugin as plugin


def test_plugin_exports_fixtures() -> None:
    assert set(plugin.__all__) == {"authz_config", "isolated_authz_state", "resource_registry"}
    for name in plugin.__all__:
        assert callable(getattr(plugin, name))

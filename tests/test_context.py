"""Unit tests for autowebkit.engine.context — ScriptContext value semantics."""

from __future__ import annotations

from autowebkit.engine.context import ScriptContext


class TestScriptContextDefaults:
    """A fresh context is empty, not loaded and not loading."""

    def test_defaults(self):
        ctx = ScriptContext()
        assert ctx.environment == {}
        assert ctx.has_loaded is False
        assert ctx.navigations == set()
        assert ctx.is_loading is False


class TestIsLoading:
    """is_loading mirrors whether any navigation is in flight."""

    def test_loading_while_navigation_present(self):
        ctx = ScriptContext(navigations={"nav-1"})
        assert ctx.is_loading is True

    def test_not_loading_once_navigation_removed(self):
        ctx = ScriptContext(navigations={"nav-1"})
        ctx.navigations.discard("nav-1")
        assert ctx.is_loading is False


class TestCopy:
    """copy() must never share mutable state with the original."""

    def test_copy_environment_is_independent(self):
        original = ScriptContext(environment={"a": "1"})
        clone = original.copy()
        clone.environment["a"] = "2"
        clone.environment["b"] = "3"
        assert original.environment == {"a": "1"}

    def test_copy_navigations_are_independent(self):
        original = ScriptContext(navigations={"nav-1"})
        clone = original.copy()
        clone.navigations.add("nav-2")
        assert original.navigations == {"nav-1"}

    def test_copy_keeps_loaded_flag(self):
        assert ScriptContext(has_loaded=True).copy().has_loaded is True

    def test_with_values_returns_new_context(self):
        original = ScriptContext(environment={"a": "1"})
        updated = original.with_values(b="2")
        assert updated.environment == {"a": "1", "b": "2"}
        assert original.environment == {"a": "1"}

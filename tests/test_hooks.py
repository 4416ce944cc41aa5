"""Tests for the hook/filter system."""

import dataclasses

import pytest

from quill.db.services.revision_snapshot import UNSET, RevisionSnapshot
from quill.lib.hooks import (
    REVISION_RESTORE_SNAPSHOT,
    HookRegistry,
    action,
    filter,
    hooks,
)


@pytest.fixture
def registry():
    """Create a fresh HookRegistry for each test."""
    return HookRegistry()


class TestHookRegistry:
    async def test_actions_run_in_priority_order(self, registry):
        call_order = []

        registry.add_action("restore", lambda **kw: call_order.append("late"), priority=20)
        registry.add_action("restore", lambda **kw: call_order.append("early"), priority=5)

        await registry.do_action("restore", post_id=1)

        assert call_order == ["early", "late"]

    async def test_filters_chain_snapshot(self, registry):
        def drop_slug(snapshot, **kwargs):
            return dataclasses.replace(snapshot, slug=UNSET)

        async def retitle(snapshot, **kwargs):
            return dataclasses.replace(snapshot, title=f"{snapshot.title} (restored)")

        registry.add_filter(REVISION_RESTORE_SNAPSHOT, retitle, priority=20)
        registry.add_filter(REVISION_RESTORE_SNAPSHOT, drop_slug, priority=10)

        snapshot = RevisionSnapshot(post_id=1, content_html="x", title="Hello", slug="hello")
        result = await registry.apply_filters(REVISION_RESTORE_SNAPSHOT, snapshot, post_id=1)

        assert result.title == "Hello (restored)"
        assert result.slug is UNSET
        assert snapshot.slug == "hello"

    async def test_filter_without_handlers_returns_value(self, registry):
        value = object()
        assert await registry.apply_filters("nothing", value) is value

    async def test_action_errors_propagate(self, registry):
        def broken(**kwargs):
            raise RuntimeError("handler failed")

        registry.add_action("restore", broken)

        with pytest.raises(RuntimeError, match="handler failed"):
            await registry.do_action("restore")

    def test_remove_action(self, registry):
        def handler():
            pass

        registry.add_action("test", handler)
        assert registry.remove_action("test", handler) is True
        assert not registry.has_action("test")
        assert registry.remove_action("test", handler) is False

    def test_remove_filter(self, registry):
        def handler(value):
            return value

        registry.add_filter("test", handler)
        assert registry.remove_filter("test", handler) is True
        assert not registry.has_filter("test")

    def test_remove_unknown_hook_returns_false(self, registry):
        assert registry.remove_filter("never_registered", lambda v: v) is False

    def test_clear_removes_all_hooks(self, registry):
        registry.add_action("action1", lambda: None)
        registry.add_filter("filter1", lambda x: x)

        registry.clear()

        assert not registry.has_action("action1")
        assert not registry.has_filter("filter1")


class TestDecoratorRegistration:
    def test_action_decorator_registers_on_global_registry(self, clean_hooks):
        @action("test_decorator_action")
        def my_handler():
            return "result"

        assert hooks.has_action("test_decorator_action")
        assert my_handler() == "result"

    def test_filter_decorator_registers_on_global_registry(self, clean_hooks):
        @filter("test_decorator_filter", priority=1)
        def my_filter(value):
            return value

        assert hooks.has_filter("test_decorator_filter")
        assert hooks._filters["test_decorator_filter"][0].priority == 1

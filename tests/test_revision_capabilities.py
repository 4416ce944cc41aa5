"""Tests for revision table capability detection."""

import asyncio
from unittest.mock import MagicMock

import pytest

from quill.db.services.revision_capabilities import (
    DEFAULT_CAPABILITIES,
    RevisionCapabilities,
    RevisionCapabilityProbe,
)


class TestRevisionCapabilities:
    def test_from_columns_detects_optional_columns(self):
        caps = RevisionCapabilities.from_columns(
            ["id", "post_id", "content_html", "revision_number", "title", "created_at"]
        )

        assert caps.has_revision_number is True
        assert caps.has_title is True
        assert caps.has_status is False
        assert caps.has_editor_id is False
        assert caps.diff_summary_column is None

    def test_from_columns_is_case_insensitive(self):
        caps = RevisionCapabilities.from_columns(["ID", "Revision_Number", "Is_Featured"])

        assert caps.has_revision_number is True
        assert caps.has_is_featured is True

    def test_diff_summary_preferred_over_legacy_name(self):
        caps = RevisionCapabilities.from_columns(["change_summary", "diff_summary"])
        assert caps.diff_summary_column == "diff_summary"

    def test_legacy_note_column_detected(self):
        caps = RevisionCapabilities.from_columns(["content_html", "change_summary"])
        assert caps.diff_summary_column == "change_summary"

    def test_supports(self):
        caps = RevisionCapabilities(has_slug=True)

        assert caps.supports("slug") is True
        assert caps.supports("status") is False
        assert caps.supports("not_a_column") is False

    def test_default_is_content_only(self):
        assert DEFAULT_CAPABILITIES == RevisionCapabilities()
        assert not any(
            getattr(DEFAULT_CAPABILITIES, name)
            for name in vars(DEFAULT_CAPABILITIES)
            if name.startswith("has_")
        )


class TestRevisionCapabilityProbe:
    async def test_full_schema_resolves_full_capabilities(self, engine):
        probe = RevisionCapabilityProbe(engine)

        caps = await probe.get_capabilities()

        assert caps == RevisionCapabilities.full()
        assert probe.resolved is True

    async def test_legacy_schema(self, legacy_engine):
        probe = RevisionCapabilityProbe(legacy_engine)

        caps = await probe.get_capabilities()

        assert caps == RevisionCapabilities(diff_summary_column="change_summary")

    async def test_result_is_cached(self, engine):
        probe = RevisionCapabilityProbe(engine)

        first = await probe.get_capabilities()
        second = await probe.get_capabilities()

        assert first is second
        assert probe.probe_count == 1

    async def test_concurrent_callers_share_one_lookup(self, engine):
        probe = RevisionCapabilityProbe(engine)

        results = await asyncio.gather(*(probe.get_capabilities() for _ in range(10)))

        assert probe.probe_count == 1
        assert all(result is results[0] for result in results)

    async def test_failure_falls_back_to_defaults(self):
        engine = MagicMock()
        engine.connect.side_effect = RuntimeError("database unavailable")
        probe = RevisionCapabilityProbe(engine)

        caps = await probe.get_capabilities()

        assert caps == DEFAULT_CAPABILITIES

    async def test_failure_is_cached(self):
        engine = MagicMock()
        engine.connect.side_effect = RuntimeError("database unavailable")
        probe = RevisionCapabilityProbe(engine)

        await probe.get_capabilities()
        await probe.get_capabilities()

        assert engine.connect.call_count == 1

    async def test_missing_table_falls_back_to_defaults(self, engine):
        probe = RevisionCapabilityProbe(engine, table_name="no_such_table")

        caps = await probe.get_capabilities()

        assert caps == DEFAULT_CAPABILITIES

    async def test_preloaded_probe_never_queries(self):
        caps = RevisionCapabilities(has_revision_number=True)
        probe = RevisionCapabilityProbe.preloaded(caps)

        assert await probe.get_capabilities() is caps
        assert probe.probe_count == 0

    async def test_no_engine_falls_back_to_defaults(self):
        probe = RevisionCapabilityProbe(None)

        assert await probe.get_capabilities() == DEFAULT_CAPABILITIES


@pytest.mark.parametrize("column", ["title", "slug", "published_at", "editor_id"])
def test_full_supports_every_optional_column(column):
    assert RevisionCapabilities.full().supports(column) is True

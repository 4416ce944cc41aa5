"""Detection of optional columns on the post_revisions table.

The revision table has grown columns over time and deployed databases may
lag behind the models. The probe reads the table's real columns once per
process and every revision statement is shaped from the result.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, fields

from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

REVISIONS_TABLE = "post_revisions"

# Legacy deployments named the note column change_summary
DIFF_SUMMARY_COLUMNS = ("diff_summary", "change_summary")


@dataclass(frozen=True)
class RevisionCapabilities:
    """Which optional revision columns exist in the connected database."""

    has_revision_number: bool = False
    has_content_md: bool = False
    has_title: bool = False
    has_summary: bool = False
    has_cover_image_url: bool = False
    has_is_featured: bool = False
    has_allow_comments: bool = False
    has_status: bool = False
    has_slug: bool = False
    has_author_id: bool = False
    has_editor_id: bool = False
    has_published_at: bool = False
    diff_summary_column: str | None = None

    @classmethod
    def from_columns(cls, column_names: Iterable[str]) -> RevisionCapabilities:
        names = {name.lower() for name in column_names if name}
        flags = {
            f.name: f.name.removeprefix("has_") in names
            for f in fields(cls)
            if f.name.startswith("has_")
        }
        diff_column = next((c for c in DIFF_SUMMARY_COLUMNS if c in names), None)
        return cls(**flags, diff_summary_column=diff_column)

    @classmethod
    def full(cls) -> RevisionCapabilities:
        """Descriptor for a database on the newest schema."""
        flags = {f.name: True for f in fields(cls) if f.name.startswith("has_")}
        return cls(**flags, diff_summary_column="diff_summary")

    def supports(self, column: str) -> bool:
        """Return True if the optional *column* exists on the revision table."""
        return bool(getattr(self, f"has_{column}", False))


# Content-only history: what every deployment is guaranteed to support
DEFAULT_CAPABILITIES = RevisionCapabilities()


class RevisionCapabilityProbe:
    """Resolves and caches the revision table's capabilities.

    The lookup is memoized while in flight, so callers racing on a cold
    probe share one schema query. Failures degrade to
    ``DEFAULT_CAPABILITIES`` and are cached like a successful result.
    """

    def __init__(self, engine: AsyncEngine | None, table_name: str = REVISIONS_TABLE) -> None:
        self._engine = engine
        self._table_name = table_name
        self._capabilities: RevisionCapabilities | None = None
        self._pending: asyncio.Future[RevisionCapabilities] | None = None
        self.probe_count = 0

    @classmethod
    def preloaded(cls, capabilities: RevisionCapabilities) -> RevisionCapabilityProbe:
        """Build a probe that never touches the database."""
        probe = cls(engine=None)
        probe._capabilities = capabilities
        return probe

    @property
    def resolved(self) -> bool:
        return self._capabilities is not None

    async def get_capabilities(self) -> RevisionCapabilities:
        if self._capabilities is not None:
            return self._capabilities

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._resolve())

        # Shielded so a cancelled caller does not cancel the shared lookup
        return await asyncio.shield(self._pending)

    async def _resolve(self) -> RevisionCapabilities:
        try:
            capabilities = await self._load()
        except Exception:
            logger.warning("Failed to load %s schema metadata", self._table_name, exc_info=True)
            capabilities = DEFAULT_CAPABILITIES

        self._capabilities = capabilities
        self._pending = None
        return capabilities

    async def _load(self) -> RevisionCapabilities:
        if self._engine is None:
            logger.warning("No database engine configured for %s probe", self._table_name)
            return DEFAULT_CAPABILITIES

        self.probe_count += 1
        table_name = self._table_name

        def _column_names(sync_conn) -> list[str]:
            return [column["name"] for column in inspect(sync_conn).get_columns(table_name)]

        async with self._engine.connect() as conn:
            column_names = await conn.run_sync(_column_names)

        if not column_names:
            logger.warning("No metadata found for %s table. Falling back to defaults.", table_name)
            return DEFAULT_CAPABILITIES

        if "content_html" not in {name.lower() for name in column_names}:
            logger.warning("%s table is missing required content_html column.", table_name)

        capabilities = RevisionCapabilities.from_columns(column_names)
        logger.info("Resolved %s capabilities: %s", table_name, capabilities)
        return capabilities

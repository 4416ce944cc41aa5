"""Sparse post snapshots and the schema-shaped statement builders.

A snapshot carries ``content_html`` plus any subset of the tracked fields.
Undeclared fields hold the ``UNSET`` sentinel, which is distinct from an
explicit ``None``: restoring writes declared fields only, so a field the
revision never captured is left alone on the live post.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Any

from sqlalchemy import BigInteger, Boolean, Column, DateTime, Integer, MetaData, String, Table, Text, column, table

from quill.db.services.revision_capabilities import REVISIONS_TABLE, RevisionCapabilities
from quill.lib.coerce import normalize_text, parse_positive, to_datetime, to_optional_bool

UNSET: Any = object()  # Sentinel for distinguishing None from "not captured"

POSTS_TABLE_NAME = "posts"
USERS_TABLE_NAME = "users"

_ID_TYPE = BigInteger().with_variant(Integer, "sqlite")


def _raw_text(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _title(value: Any) -> str:
    return value if isinstance(value, str) else ""


@dataclass(frozen=True)
class SnapshotField:
    """One optional, independently deployable snapshot column.

    ``load`` converts a value read from a revision row; ``normalize``
    prepares a value for writing. ``required_on_post`` marks fields whose
    post column is NOT NULL, so a captured ``None`` is never written back.
    """

    name: str
    type_: Any
    load: Callable[[Any], Any]
    normalize: Callable[[Any], Any]
    required_on_post: bool = False


SNAPSHOT_FIELDS: tuple[SnapshotField, ...] = (
    SnapshotField("content_md", Text(), _raw_text, _raw_text),
    SnapshotField("title", String(255), _raw_text, _title),
    SnapshotField("summary", Text(), _raw_text, normalize_text),
    SnapshotField("cover_image_url", String(512), _raw_text, normalize_text),
    SnapshotField("is_featured", Boolean(), to_optional_bool, to_optional_bool, required_on_post=True),
    SnapshotField("allow_comments", Boolean(), to_optional_bool, to_optional_bool, required_on_post=True),
    SnapshotField("status", String(20), _raw_text, normalize_text, required_on_post=True),
    SnapshotField("slug", String(191), _raw_text, normalize_text, required_on_post=True),
    SnapshotField("author_id", Integer(), parse_positive, parse_positive),
    SnapshotField("published_at", DateTime(timezone=True), to_datetime, to_datetime),
)

SNAPSHOT_FIELD_NAMES = tuple(f.name for f in SNAPSHOT_FIELDS)


@dataclass
class RevisionSnapshot:
    """Editable post fields captured at one point in time."""

    post_id: int
    content_html: str = ""
    content_md: str | None | object = UNSET
    title: str | None | object = UNSET
    summary: str | None | object = UNSET
    cover_image_url: str | None | object = UNSET
    is_featured: bool | None | object = UNSET
    allow_comments: bool | None | object = UNSET
    status: str | None | object = UNSET
    slug: str | None | object = UNSET
    author_id: int | None | object = UNSET
    published_at: datetime | str | None | object = UNSET

    # Bookkeeping, not part of the captured content
    editor_id: int | None = None
    diff_summary: str | None = None

    def declared(self) -> dict[str, Any]:
        """Return the optional fields this snapshot actually captured."""
        return {
            name: value
            for name in SNAPSHOT_FIELD_NAMES
            if (value := getattr(self, name)) is not UNSET
        }

    def content(self) -> dict[str, Any]:
        """Return the captured payload, ``content_html`` included."""
        return {"content_html": self.content_html, **self.declared()}

    @classmethod
    def from_row(cls, row: Mapping[str, Any], capabilities: RevisionCapabilities) -> RevisionSnapshot:
        """Build a snapshot from a revision row, reading supported columns only."""
        values = {
            f.name: f.load(row.get(f.name))
            for f in SNAPSHOT_FIELDS
            if capabilities.supports(f.name)
        }
        content_html = row.get("content_html")
        return cls(
            post_id=int(row["post_id"]),
            content_html=content_html if isinstance(content_html, str) else "",
            **values,
        )


@lru_cache(maxsize=32)
def revisions_table(capabilities: RevisionCapabilities, name: str = REVISIONS_TABLE) -> Table:
    """Describe the revision table as the connected database has it.

    Each call site gets a table with only the columns the capability probe
    found, on a private MetaData so it never collides with the ORM models.
    """
    columns = [
        Column("id", _ID_TYPE, primary_key=True),
        Column("post_id", _ID_TYPE, nullable=False),
        Column("content_html", Text()),
        Column("created_at", DateTime(timezone=True)),
    ]
    if capabilities.has_revision_number:
        columns.append(Column("revision_number", Integer()))
    columns.extend(Column(f.name, f.type_) for f in SNAPSHOT_FIELDS if capabilities.supports(f.name))
    if capabilities.has_editor_id:
        columns.append(Column("editor_id", _ID_TYPE))
    if capabilities.diff_summary_column:
        columns.append(Column(capabilities.diff_summary_column, Text()))

    return Table(name, MetaData(), *columns)


# The live post table is owned by the post store; only the columns a
# snapshot can write back are described here.
POSTS_TABLE = table(
    POSTS_TABLE_NAME,
    column("id", _ID_TYPE),
    column("content_html", Text()),
    *(column(f.name, f.type_) for f in SNAPSHOT_FIELDS),
    column("updated_at", DateTime(timezone=True)),
)

USERS_TABLE = table(
    USERS_TABLE_NAME,
    column("id", _ID_TYPE),
    column("username", String(191)),
    column("email", String(191)),
)


def build_revision_values(
    capabilities: RevisionCapabilities,
    snapshot: RevisionSnapshot,
    revision_number: int | None = None,
) -> list[tuple[str, Any]]:
    """Return the ordered column/value pairs for inserting *snapshot*.

    Columns missing from the schema are dropped. Columns that exist but
    that the snapshot did not capture are written with their empty value.
    """
    values: list[tuple[str, Any]] = [
        ("post_id", snapshot.post_id),
        ("content_html", snapshot.content_html or ""),
    ]

    if capabilities.has_revision_number and revision_number is not None:
        values.append(("revision_number", revision_number))

    for f in SNAPSHOT_FIELDS:
        if not capabilities.supports(f.name):
            continue
        raw = getattr(snapshot, f.name)
        values.append((f.name, f.normalize(None if raw is UNSET else raw)))

    if capabilities.has_editor_id:
        values.append(("editor_id", parse_positive(snapshot.editor_id)))

    if capabilities.diff_summary_column:
        values.append((capabilities.diff_summary_column, normalize_text(snapshot.diff_summary)))

    return values


def build_post_assignments(snapshot: RevisionSnapshot) -> list[tuple[str, Any]]:
    """Return the ordered column/value pairs for writing *snapshot* onto a post.

    Only declared fields are assigned; restore is a partial overwrite.
    """
    assignments: list[tuple[str, Any]] = [("content_html", snapshot.content_html)]

    for f in SNAPSHOT_FIELDS:
        raw = getattr(snapshot, f.name)
        if raw is UNSET:
            continue
        value = f.normalize(raw)
        if value is None and f.required_on_post:
            continue
        assignments.append((f.name, value))

    return assignments

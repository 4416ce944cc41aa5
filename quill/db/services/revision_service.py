"""Revision service for post history management.

Every statement here is shaped from a ``RevisionCapabilities`` descriptor,
so the same code serves databases on any step of the revision table's
migration history.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, UTC
from typing import Any

from sqlalchemy import Select, Table, and_, func, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from quill.db.services.revision_capabilities import DEFAULT_CAPABILITIES, RevisionCapabilities
from quill.db.services.revision_snapshot import (
    POSTS_TABLE,
    SNAPSHOT_FIELDS,
    USERS_TABLE,
    RevisionSnapshot,
    build_post_assignments,
    build_revision_values,
    revisions_table,
)
from quill.lib.coerce import normalize_text, parse_positive, to_datetime
from quill.lib.hooks import (
    AFTER_REVISION_RESTORE,
    BEFORE_REVISION_RESTORE,
    REVISION_RESTORE_SNAPSHOT,
    hooks,
)
from quill.lib.locks import RecordLocks, record_locks
from quill.lib.observability import span

logger = logging.getLogger(__name__)


@dataclass
class RevisionEditor:
    id: int | None
    name: str | None
    email: str | None


@dataclass
class RevisionSummary:
    """One row of a post's history listing."""

    id: int
    post_id: int
    revision_number: int
    created_at: datetime | None
    diff_summary: str | None
    is_latest: bool
    editor: RevisionEditor

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "post_id": self.post_id,
            "revision_number": self.revision_number,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "diff_summary": self.diff_summary,
            "is_latest": self.is_latest,
            "editor": {"id": self.editor.id, "name": self.editor.name, "email": self.editor.email},
        }


@dataclass
class RevisionDetail(RevisionSummary):
    """A single revision with its full captured content."""

    total_count: int = 0
    snapshot: RevisionSnapshot | None = field(default=None, repr=False)

    @property
    def content_html(self) -> str:
        return self.snapshot.content_html if self.snapshot else ""

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        declared = self.snapshot.declared() if self.snapshot else {}
        published_at = declared.get("published_at")
        if isinstance(published_at, datetime):
            declared["published_at"] = published_at.isoformat()
        data.update(
            content_html=self.content_html,
            content_md=declared.pop("content_md", None),
            total_count=self.total_count,
            **declared,
        )
        return data


def _revision_columns(
    revisions: Table,
    capabilities: RevisionCapabilities,
    include_content: bool,
) -> list[Any]:
    columns: list[Any] = [revisions.c.id, revisions.c.post_id, revisions.c.created_at]

    if capabilities.has_editor_id:
        columns.append(revisions.c.editor_id)

    if capabilities.has_revision_number:
        columns.append(revisions.c.revision_number)

    if include_content:
        columns.append(revisions.c.content_html)
        columns.extend(revisions.c[f.name] for f in SNAPSHOT_FIELDS if capabilities.supports(f.name))

    if capabilities.diff_summary_column:
        columns.append(revisions.c[capabilities.diff_summary_column].label("diff_summary"))

    return columns


def _select_revisions(
    revisions: Table,
    capabilities: RevisionCapabilities,
    include_content: bool = False,
    include_editor: bool = True,
) -> Select:
    query = select(*_revision_columns(revisions, capabilities, include_content))

    # Without an editor column there is nothing to join on
    if include_editor and capabilities.has_editor_id:
        query = query.add_columns(
            USERS_TABLE.c.username.label("editor_username"),
            USERS_TABLE.c.email.label("editor_email"),
        ).select_from(
            revisions.outerjoin(USERS_TABLE, USERS_TABLE.c.id == revisions.c.editor_id)
        )

    return query


def _editor_from_row(row) -> RevisionEditor:
    return RevisionEditor(
        id=parse_positive(row.get("editor_id")),
        name=row.get("editor_username"),
        email=row.get("editor_email"),
    )


async def next_revision_number(
    db_session: AsyncSession,
    revisions: Table,
    post_id: int,
) -> int:
    """Compute the next revision number for a post, locking its revisions.

    Falls back to counting rows when no numbered row exists yet, which
    covers history written before the numbering column was added.
    """
    result = await db_session.execute(
        select(revisions.c.revision_number)
        .where(revisions.c.post_id == post_id, revisions.c.revision_number.is_not(None))
        .order_by(revisions.c.revision_number.desc())
        .limit(1)
        .with_for_update()
    )
    latest = parse_positive(result.scalar_one_or_none())
    if latest:
        return latest + 1

    # Aggregates cannot take FOR UPDATE on every backend, so lock the rows
    # themselves and count them here.
    existing = await db_session.execute(
        select(revisions.c.id).where(revisions.c.post_id == post_id).with_for_update()
    )
    return len(existing.all()) + 1


async def write_revision(
    db_session: AsyncSession,
    snapshot: RevisionSnapshot,
    capabilities: RevisionCapabilities,
) -> int:
    """Append a revision row for ``snapshot.post_id`` and return its id.

    Runs inside the caller's transaction and never commits. Snapshot fields
    whose column is missing from the schema are dropped silently.

    Args:
        db_session: Session with an active transaction
        snapshot: The post state to record
        capabilities: Resolved revision table capabilities

    Returns:
        The new revision's id
    """
    revisions = revisions_table(capabilities)

    revision_number = None
    if capabilities.has_revision_number:
        revision_number = await next_revision_number(db_session, revisions, snapshot.post_id)

    values = dict(build_revision_values(capabilities, snapshot, revision_number))
    values["created_at"] = datetime.now(UTC)

    result = await db_session.execute(insert(revisions).values(values))
    revision_id = result.inserted_primary_key[0]

    logger.debug(
        "Recorded revision %s (number %s) for post %s",
        revision_id, revision_number, snapshot.post_id,
    )
    return revision_id


async def record_revision(
    session_maker: async_sessionmaker[AsyncSession],
    snapshot: RevisionSnapshot,
    capabilities: RevisionCapabilities,
    locks: RecordLocks = record_locks,
) -> int:
    """Write a revision in its own transaction, holding the post's lock."""
    async with locks.hold(snapshot.post_id):
        async with session_maker() as db_session:
            async with db_session.begin():
                return await write_revision(db_session, snapshot, capabilities)


async def get_revision_count(db_session: AsyncSession, post_id: int) -> int:
    """Get the total number of revisions for a post."""
    revisions = revisions_table(DEFAULT_CAPABILITIES)
    count = await db_session.scalar(
        select(func.count()).select_from(revisions).where(revisions.c.post_id == post_id)
    )
    return parse_positive(count) or 0


async def list_revisions(
    db_session: AsyncSession,
    post_id: int,
    capabilities: RevisionCapabilities,
) -> list[RevisionSummary]:
    """List revisions for a post, newest first.

    Without a numbering column, numbers are derived from position: the
    newest row is ``count`` and the oldest is ``1``.
    """
    revisions = revisions_table(capabilities)
    query = (
        _select_revisions(revisions, capabilities)
        .where(revisions.c.post_id == post_id)
        .order_by(revisions.c.created_at.desc(), revisions.c.id.desc())
    )

    result = await db_session.execute(query)
    rows = result.mappings().all()
    total = len(rows)

    return [
        RevisionSummary(
            id=row["id"],
            post_id=row["post_id"],
            revision_number=parse_positive(row.get("revision_number")) or total - index,
            created_at=to_datetime(row["created_at"]),
            diff_summary=normalize_text(row.get("diff_summary")),
            is_latest=index == 0,
            editor=_editor_from_row(row),
        )
        for index, row in enumerate(rows)
    ]


async def compute_revision_position(
    db_session: AsyncSession,
    revisions: Table,
    post_id: int,
    row,
) -> int:
    """Return the 1-based position of a revision row among its post's history.

    Matches the numbers ``list_revisions`` reports: a persisted number wins,
    then the count of rows created no later than this one (ties broken by
    id), then the count of rows with a lower or equal id.
    """
    persisted = parse_positive(row.get("revision_number"))
    if persisted:
        return persisted

    created_at = row.get("created_at")
    if created_at is not None:
        position = parse_positive(
            await db_session.scalar(
                select(func.count())
                .select_from(revisions)
                .where(
                    revisions.c.post_id == post_id,
                    or_(
                        revisions.c.created_at < created_at,
                        and_(revisions.c.created_at == created_at, revisions.c.id <= row["id"]),
                    ),
                )
            )
        )
        if position:
            return position

    fallback = parse_positive(
        await db_session.scalar(
            select(func.count())
            .select_from(revisions)
            .where(revisions.c.post_id == post_id, revisions.c.id <= row["id"])
        )
    )
    return fallback or 1


async def get_revision(
    db_session: AsyncSession,
    post_id: int,
    revision_id: int,
    capabilities: RevisionCapabilities,
) -> RevisionDetail | None:
    """Get one revision of a post with its content and position.

    Args:
        db_session: Database session
        post_id: The owning post's id
        revision_id: The revision id
        capabilities: Resolved revision table capabilities

    Returns:
        RevisionDetail, or None if the post has no such revision
    """
    revisions = revisions_table(capabilities)
    query = (
        _select_revisions(revisions, capabilities, include_content=True)
        .where(revisions.c.post_id == post_id, revisions.c.id == revision_id)
        .limit(1)
    )

    result = await db_session.execute(query)
    row = result.mappings().first()
    if row is None:
        return None

    # Counted separately so a wrong position can't also skew is_latest
    total_count = await get_revision_count(db_session, post_id)
    position = await compute_revision_position(db_session, revisions, post_id, row)

    return RevisionDetail(
        id=row["id"],
        post_id=row["post_id"],
        revision_number=position,
        created_at=to_datetime(row["created_at"]),
        diff_summary=normalize_text(row.get("diff_summary")),
        is_latest=position == total_count,
        editor=_editor_from_row(row),
        total_count=total_count,
        snapshot=RevisionSnapshot.from_row(row, capabilities),
    )


async def _apply_snapshot_to_post(
    db_session: AsyncSession,
    post_id: int,
    snapshot: RevisionSnapshot,
) -> None:
    assignments = dict(build_post_assignments(snapshot))
    assignments["updated_at"] = datetime.now(UTC)

    await db_session.execute(
        update(POSTS_TABLE).where(POSTS_TABLE.c.id == post_id).values(assignments)
    )


async def restore_revision(
    session_maker: async_sessionmaker[AsyncSession],
    post_id: int,
    revision_id: int,
    editor_id: int | None,
    capabilities: RevisionCapabilities,
    locks: RecordLocks = record_locks,
) -> bool:
    """Restore a post to a previous revision.

    Locks the revision row and the live post, writes the revision's
    captured fields back onto the post, and records the result as a new
    revision, all in one transaction on a session of its own. The
    restored-from revision is never modified.

    Args:
        session_maker: Factory for the session that owns the transaction
        post_id: The post to restore
        revision_id: The revision to restore from
        editor_id: ID of user performing the restore (optional)
        capabilities: Resolved revision table capabilities
        locks: Per-post lock registry

    Returns:
        True if restored, False if the post or revision does not exist

    Raises:
        Any database error, after the transaction has been rolled back.
    """
    revisions = revisions_table(capabilities)

    await hooks.do_action(
        BEFORE_REVISION_RESTORE, post_id=post_id, revision_id=revision_id, editor_id=editor_id
    )

    with span("revision.restore", post_id=post_id, revision_id=revision_id):
        async with locks.hold(post_id):
            async with session_maker() as db_session:
                transaction = await db_session.begin()
                try:
                    result = await db_session.execute(
                        _select_revisions(revisions, capabilities, include_content=True, include_editor=False)
                        .where(revisions.c.post_id == post_id, revisions.c.id == revision_id)
                        .with_for_update()
                    )
                    row = result.mappings().first()
                    if row is None:
                        await transaction.rollback()
                        return False

                    post = await db_session.execute(
                        select(POSTS_TABLE.c.id).where(POSTS_TABLE.c.id == post_id).with_for_update()
                    )
                    if post.first() is None:
                        await transaction.rollback()
                        return False

                    position = await compute_revision_position(db_session, revisions, post_id, row)

                    snapshot = RevisionSnapshot.from_row(row, capabilities)
                    snapshot = await hooks.apply_filters(
                        REVISION_RESTORE_SNAPSHOT, snapshot, post_id=post_id, revision_id=revision_id
                    )
                    snapshot = replace(
                        snapshot,
                        post_id=post_id,
                        editor_id=editor_id,
                        diff_summary=f"Restored revision #{position}",
                    )

                    await _apply_snapshot_to_post(db_session, post_id, snapshot)
                    new_revision_id = await write_revision(db_session, snapshot, capabilities)

                    await transaction.commit()
                except Exception:
                    try:
                        await transaction.rollback()
                    except Exception:
                        logger.error("Failed to roll back restore of post %s", post_id, exc_info=True)
                    logger.error(
                        "Restoring post %s to revision %s failed", post_id, revision_id, exc_info=True
                    )
                    raise

    logger.info(
        "Restored post %s to revision %s as revision %s", post_id, revision_id, new_revision_id
    )
    await hooks.do_action(
        AFTER_REVISION_RESTORE,
        post_id=post_id,
        revision_id=revision_id,
        new_revision_id=new_revision_id,
    )
    return True

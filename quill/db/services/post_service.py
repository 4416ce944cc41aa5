"""Post service: the live-record side of revision history.

Every create and every update that changes a tracked field leaves a revision
row behind in the same transaction as the post write.
"""

from datetime import datetime, UTC
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from quill.db.models import Post
from quill.db.services import revision_service
from quill.db.services.revision_capabilities import RevisionCapabilities
from quill.db.services.revision_snapshot import SNAPSHOT_FIELD_NAMES, RevisionSnapshot
from quill.lib.hooks import hooks, AFTER_POST_SAVE
from quill.lib.locks import RecordLocks, record_locks

# Fields update_post accepts; all of them are captured by revisions
EDITABLE_FIELDS = ("content_html",) + SNAPSHOT_FIELD_NAMES


def _comparable(value: Any) -> Any:
    # SQLite hands timestamps back without tzinfo; they are stored as UTC
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def snapshot_from_post(
    post: Post,
    editor_id: int | None = None,
    diff_summary: str | None = None,
) -> RevisionSnapshot:
    """Capture every tracked field of a post."""
    return RevisionSnapshot(
        post_id=post.id,
        content_html=post.content_html or "",
        **{name: getattr(post, name) for name in SNAPSHOT_FIELD_NAMES},
        editor_id=editor_id,
        diff_summary=diff_summary,
    )


async def get_post(db_session: AsyncSession, post_id: int) -> Post | None:
    """Get a single post by ID.

    Args:
        db_session: Database session
        post_id: Post ID

    Returns:
        Post object or None if not found
    """
    result = await db_session.execute(select(Post).where(Post.id == post_id))
    return result.scalar_one_or_none()


async def create_post(
    db_session: AsyncSession,
    capabilities: RevisionCapabilities,
    slug: str,
    title: str,
    content_html: str = "",
    content_md: str | None = None,
    summary: str | None = None,
    cover_image_url: str | None = None,
    status: str = "draft",
    is_featured: bool = False,
    allow_comments: bool = True,
    author_id: int | None = None,
    published_at: datetime | None = None,
    editor_id: int | None = None,
) -> Post:
    """Create a post together with its first revision.

    Args:
        db_session: Database session
        capabilities: Resolved revision table capabilities
        slug: Unique post slug
        title: Post title
        content_html: Rendered post body
        content_md: Markdown source of the body (optional)
        summary: Short summary (optional)
        cover_image_url: Cover image URL (optional)
        status: draft, published or archived
        is_featured: Whether the post is featured
        allow_comments: Whether comments are open
        author_id: Author user ID (optional)
        published_at: Publication timestamp (optional)
        editor_id: ID of user creating the post, recorded on the revision

    Returns:
        Created Post object
    """
    post = Post(
        slug=slug,
        title=title,
        content_html=content_html,
        content_md=content_md,
        summary=summary,
        cover_image_url=cover_image_url,
        status=status,
        is_featured=is_featured,
        allow_comments=allow_comments,
        author_id=author_id,
        published_at=published_at,
    )

    db_session.add(post)
    await db_session.flush()

    await revision_service.write_revision(
        db_session,
        snapshot_from_post(post, editor_id=editor_id, diff_summary="Created post"),
        capabilities,
    )

    await db_session.commit()
    await db_session.refresh(post)

    await hooks.do_action(AFTER_POST_SAVE, post, is_new=True)

    return post


async def update_post(
    db_session: AsyncSession,
    post_id: int,
    capabilities: RevisionCapabilities,
    editor_id: int | None = None,
    diff_summary: str | None = None,
    locks: RecordLocks = record_locks,
    **fields: Any,
) -> Post | None:
    """Update a post, recording a revision when a tracked field changes.

    Only the given fields are written; pass ``None`` to clear a nullable
    field. Holding the post's record lock and row lock keeps numbering
    consistent with concurrent restores.

    Args:
        db_session: Database session
        post_id: Post ID to update
        capabilities: Resolved revision table capabilities
        editor_id: ID of user making the change (for revision tracking)
        diff_summary: Short note stored on the revision (optional)
        locks: Per-post lock registry
        **fields: New values, keyed by post column name

    Returns:
        Updated Post object or None if not found

    Raises:
        ValueError: If a field is not an editable post column
    """
    unknown = set(fields) - set(EDITABLE_FIELDS)
    if unknown:
        raise ValueError(f"Unknown post fields: {', '.join(sorted(unknown))}")

    async with locks.hold(post_id):
        post = await db_session.get(Post, post_id, with_for_update=True, populate_existing=True)
        if post is None:
            return None

        changed = False
        for name, value in fields.items():
            if _comparable(getattr(post, name)) != _comparable(value):
                setattr(post, name, value)
                changed = True

        if changed:
            await db_session.flush()
            await revision_service.write_revision(
                db_session,
                snapshot_from_post(post, editor_id=editor_id, diff_summary=diff_summary),
                capabilities,
            )

        await db_session.commit()

    await db_session.refresh(post)

    await hooks.do_action(AFTER_POST_SAVE, post, is_new=False)

    return post

"""Post revision model for content versioning."""

from datetime import datetime, UTC

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from quill.db.base import HistoryBase


class PostRevision(HistoryBase):
    """Stores historical snapshots of post content.

    This mapping describes the newest schema. Deployed databases may lag
    behind it, so the revision service never selects through this class;
    it builds statements from the columns the capability probe found.
    """

    __tablename__ = "post_revisions"
    __table_args__ = (
        UniqueConstraint("post_id", "revision_number", name="uq_post_revisions_post_id_revision_number"),
        Index("ix_post_revisions_post_id_created_at", "post_id", "created_at"),
    )

    post_id: Mapped[int] = mapped_column(
        ForeignKey("posts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Who made the change (nullable for system changes)
    editor_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Rows written before numbering existed have no number
    revision_number: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Snapshot of post content at this revision
    content_html: Mapped[str] = mapped_column(Text, nullable=False, default="")
    content_md: Mapped[str | None] = mapped_column(Text, nullable=True)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    cover_image_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_featured: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    allow_comments: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    slug: Mapped[str | None] = mapped_column(String(191), nullable=True)
    author_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    diff_summary: Mapped[str | None] = mapped_column(String(255), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
    )

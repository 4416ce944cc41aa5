"""Tests for the post service and its revision bookkeeping."""

from datetime import datetime, UTC
from unittest.mock import MagicMock

import pytest
from sqlalchemy import select

from quill.db.models import User
from quill.db.services import post_service, revision_service
from quill.lib.hooks import AFTER_POST_SAVE, hooks


class TestSnapshotFromPost:
    def test_captures_every_tracked_field(self):
        post = MagicMock()
        post.id = 4
        post.content_html = None
        post.content_md = "# Title"
        post.title = "Title"
        post.summary = "Summary"
        post.cover_image_url = None
        post.is_featured = True
        post.allow_comments = False
        post.status = "published"
        post.slug = "title"
        post.author_id = 2
        post.published_at = datetime(2026, 1, 1, tzinfo=UTC)

        snapshot = post_service.snapshot_from_post(post, editor_id=3, diff_summary="Edited")

        assert snapshot.post_id == 4
        assert snapshot.content_html == ""
        assert snapshot.content() == {
            "content_html": "",
            "content_md": "# Title",
            "title": "Title",
            "summary": "Summary",
            "cover_image_url": None,
            "is_featured": True,
            "allow_comments": False,
            "status": "published",
            "slug": "title",
            "author_id": 2,
            "published_at": datetime(2026, 1, 1, tzinfo=UTC),
        }
        assert snapshot.editor_id == 3
        assert snapshot.diff_summary == "Edited"


class TestCreatePost:
    async def test_creates_initial_revision(self, db_session, full_capabilities):
        post = await post_service.create_post(
            db_session, full_capabilities, slug="hello", title="Hello", content_html="<p>hi</p>"
        )

        assert post.id is not None
        assert post.status == "draft"

        summaries = await revision_service.list_revisions(db_session, post.id, full_capabilities)
        assert len(summaries) == 1
        assert summaries[0].revision_number == 1
        assert summaries[0].diff_summary == "Created post"

    async def test_fires_after_save(self, db_session, full_capabilities, clean_hooks):
        saved = []

        async def on_save(post, is_new):
            saved.append((post.slug, is_new))

        hooks.add_action(AFTER_POST_SAVE, on_save)

        await post_service.create_post(db_session, full_capabilities, slug="hooked", title="Hooked")

        assert saved == [("hooked", True)]


class TestUpdatePost:
    async def test_change_records_revision(self, db_session, full_capabilities, locks):
        post = await post_service.create_post(db_session, full_capabilities, slug="p", title="Before")

        updated = await post_service.update_post(
            db_session, post.id, full_capabilities, editor_id=None, diff_summary="Retitled",
            locks=locks, title="After",
        )

        assert updated.title == "After"
        summaries = await revision_service.list_revisions(db_session, post.id, full_capabilities)
        assert [s.revision_number for s in summaries] == [2, 1]
        assert summaries[0].diff_summary == "Retitled"

        detail = await revision_service.get_revision(db_session, post.id, summaries[0].id, full_capabilities)
        assert detail.snapshot.title == "After"

    async def test_unchanged_fields_record_nothing(self, db_session, full_capabilities, locks):
        post = await post_service.create_post(db_session, full_capabilities, slug="p", title="Same")

        await post_service.update_post(db_session, post.id, full_capabilities, locks=locks, title="Same")

        assert await revision_service.get_revision_count(db_session, post.id) == 1

    async def test_missing_post_returns_none(self, db_session, full_capabilities, locks):
        assert await post_service.update_post(db_session, 404, full_capabilities, locks=locks, title="x") is None

    async def test_same_publish_time_records_nothing(self, db_session, full_capabilities, locks):
        published_at = datetime(2026, 1, 1, 9, tzinfo=UTC)
        post = await post_service.create_post(
            db_session, full_capabilities, slug="p", title="T", published_at=published_at
        )

        await post_service.update_post(
            db_session, post.id, full_capabilities, locks=locks, published_at=published_at
        )

        assert await revision_service.get_revision_count(db_session, post.id) == 1

    async def test_missing_post_keeps_pending_work(self, db_session, full_capabilities, locks):
        user = User(username="bob", email="bob@example.com")
        db_session.add(user)

        assert await post_service.update_post(db_session, 404, full_capabilities, locks=locks, title="x") is None
        await db_session.commit()

        result = await db_session.execute(select(User).where(User.username == "bob"))
        assert result.scalar_one_or_none() is not None

    async def test_unknown_field_rejected(self, db_session, full_capabilities, locks):
        with pytest.raises(ValueError, match="Unknown post fields: bogus"):
            await post_service.update_post(db_session, 1, full_capabilities, locks=locks, bogus=True)

    async def test_lock_released(self, db_session, full_capabilities, locks):
        post = await post_service.create_post(db_session, full_capabilities, slug="p", title="T")

        await post_service.update_post(db_session, post.id, full_capabilities, locks=locks, summary="s")

        assert len(locks) == 0
        assert not locks.is_locked(post.id)


class TestGetPost:
    async def test_get_post(self, db_session, full_capabilities):
        post = await post_service.create_post(db_session, full_capabilities, slug="p", title="T")

        assert (await post_service.get_post(db_session, post.id)).slug == "p"
        assert await post_service.get_post(db_session, 999) is None

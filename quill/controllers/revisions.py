"""Revision history API: list, inspect and restore a post's revisions."""

import logging

from litestar import Controller, Request, get, post
from litestar.exceptions import NotAuthorizedException, NotFoundException, ValidationException
from litestar.status_codes import HTTP_200_OK
from sqlalchemy.ext.asyncio import AsyncSession

from quill.db.models import User
from quill.db.services import revision_service
from quill.db.services.revision_capabilities import RevisionCapabilities
from quill.lib.coerce import parse_positive

logger = logging.getLogger(__name__)

# Session key set by the authentication layer in front of this API
SESSION_USER_ID = "user_id"


def _require_id(value: int, name: str) -> int:
    if value <= 0:
        raise ValidationException(f"Invalid {name}", extra={"code": "INVALID_IDENTIFIER"})
    return value


def get_editor_id(request: Request) -> int | None:
    """Return the signed-in user's id, or None for anonymous requests.

    Reads the ASGI scope directly so a missing session middleware reads as
    anonymous instead of failing.
    """
    session = request.scope.get("session") or {}
    return parse_positive(session.get(SESSION_USER_ID))


async def _capabilities(request: Request) -> RevisionCapabilities:
    return await request.app.state.capability_probe.get_capabilities()


def _revision_not_found() -> NotFoundException:
    return NotFoundException("Revision not found", extra={"code": "REVISION_NOT_FOUND"})


class RevisionController(Controller):
    path = "/api/posts/{post_id:int}/revisions"

    async def _require_auth(self, request: Request, db_session: AsyncSession) -> User:
        """Require a signed-in user, raise exception if not logged in."""
        user_id = get_editor_id(request)
        if user_id is None:
            raise NotAuthorizedException(
                "You must be logged in to manage revisions", extra={"code": "UNAUTHORIZED"}
            )

        user = await db_session.get(User, user_id)
        if user is None:
            raise NotAuthorizedException("Invalid user session", extra={"code": "UNAUTHORIZED"})
        return user

    @get("/")
    async def list_revisions(
        self, request: Request, db_session: AsyncSession, post_id: int
    ) -> dict:
        """List a post's revisions, newest first."""
        await self._require_auth(request, db_session)
        post_id = _require_id(post_id, "post id")
        capabilities = await _capabilities(request)

        revisions = await revision_service.list_revisions(db_session, post_id, capabilities)
        return {
            "revisions": [revision.to_dict() for revision in revisions],
            "count": len(revisions),
        }

    @get("/{revision_id:int}")
    async def get_revision(
        self, request: Request, db_session: AsyncSession, post_id: int, revision_id: int
    ) -> dict:
        """Get one revision with its full content."""
        await self._require_auth(request, db_session)
        post_id = _require_id(post_id, "post id")
        revision_id = _require_id(revision_id, "revision id")
        capabilities = await _capabilities(request)

        revision = await revision_service.get_revision(db_session, post_id, revision_id, capabilities)
        if revision is None:
            raise _revision_not_found()

        return {"revision": revision.to_dict()}

    @post("/{revision_id:int}/restore", status_code=HTTP_200_OK)
    async def restore_revision(
        self, request: Request, db_session: AsyncSession, post_id: int, revision_id: int
    ) -> dict:
        """Restore the post to a revision, recording the restore as a new revision."""
        user = await self._require_auth(request, db_session)
        post_id = _require_id(post_id, "post id")
        revision_id = _require_id(revision_id, "revision id")
        capabilities = await _capabilities(request)

        # Restore owns its transaction, so it runs on a session of its own
        # rather than the request's.
        restored = await revision_service.restore_revision(
            request.app.state.session_maker,
            post_id,
            revision_id,
            user.id,
            capabilities,
            locks=request.app.state.record_locks,
        )
        if not restored:
            raise _revision_not_found()

        logger.info("User %s restored post %s to revision %s", user.id, post_id, revision_id)
        return {"success": True}

"""Request-scoped database sessions that never leave revision locks behind.

``update_post`` takes ``FOR UPDATE`` row locks on the request's session.
When the client disconnects, ``CancelledError`` is raised inside the
handler and the stock advanced_alchemy cleanup, which runs on ASGI send
events, never fires. The open transaction would keep its row locks until the
pooled connection is recycled, stalling every later restore of the same
post. Failed handlers are rolled back here as well, so their locks drop
before the error response is rendered.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING, Callable, cast

from advanced_alchemy._listeners import set_async_context
from advanced_alchemy.extensions.litestar import SQLAlchemyAsyncConfig
from advanced_alchemy.extensions.litestar._utils import (
    delete_aa_scope_state,
    get_aa_scope_state,
    set_aa_scope_state,
)
from sqlalchemy.ext.asyncio import AsyncSession

if TYPE_CHECKING:
    from litestar.datastructures import State
    from litestar.types import Scope

logger = logging.getLogger(__name__)


class SafeSQLAlchemyAsyncConfig(SQLAlchemyAsyncConfig):
    """SQLAlchemy async config that releases row locks when a request fails.

    Successful requests are left to the plugin's before-send handler, which
    commits or closes the session as usual.
    """

    async def _release_session(self, session: AsyncSession, scope: "Scope", reason: str) -> None:
        """Roll back any open transaction and drop the session from the scope."""
        try:
            if session.in_transaction():
                logger.info("%s with an open transaction; rolling back", reason)
                await session.rollback()
        finally:
            # close() returns the connection to the pool
            await session.close()
            delete_aa_scope_state(scope, self.session_scope_key)

    async def provide_session(
        self,
        state: "State",
        scope: "Scope",
    ) -> AsyncGenerator[AsyncSession, None]:
        """Provide the request's session, releasing it if the handler fails.

        Args:
            state: The application state
            scope: The ASGI scope

        Yields:
            AsyncSession: The database session
        """
        session = cast(
            "AsyncSession | None",
            get_aa_scope_state(scope, self.session_scope_key),
        )

        if session is None:
            session_maker = cast(
                "Callable[[], AsyncSession]",
                state[self.session_maker_app_state_key],
            )
            session = session_maker()
            set_aa_scope_state(scope, self.session_scope_key, session)

        set_async_context(True)

        try:
            yield session
        except asyncio.CancelledError:
            await self._release_session(session, scope, "Request cancelled")
            raise
        except Exception:
            await self._release_session(session, scope, "Request failed")
            raise


__all__ = ["SafeSQLAlchemyAsyncConfig"]

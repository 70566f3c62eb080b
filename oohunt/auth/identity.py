"""Who is making the request.

Sessions are issued by the account system; this service only reads them.
The lookup is a pluggable callable stored on ``app.state.session_lookup`` so
deployments with a different session format can swap it out.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from litestar.connection import ASGIConnection

from oohunt.auth.roles import DEFAULT_ROLE, permissions_for_role

SESSION_USER_ID_KEY = "user_id"
SESSION_ROLE_KEY = "user_role"


@dataclass(frozen=True)
class SessionUser:
    id: str
    role: str = DEFAULT_ROLE

    @property
    def permissions(self) -> set[str]:
        return permissions_for_role(self.role)


SessionLookup = Callable[[ASGIConnection], Awaitable[SessionUser | None]]


async def session_cookie_lookup(connection: ASGIConnection) -> SessionUser | None:
    """Read the signed-in user from the encrypted session cookie."""
    session = connection.scope.get("session")
    if not session:
        return None
    user_id = session.get(SESSION_USER_ID_KEY)
    if not user_id:
        return None
    return SessionUser(id=str(user_id), role=session.get(SESSION_ROLE_KEY) or DEFAULT_ROLE)


async def get_session_user(connection: ASGIConnection) -> SessionUser | None:
    lookup: SessionLookup = getattr(connection.app.state, "session_lookup", None) or session_cookie_lookup
    return await lookup(connection)

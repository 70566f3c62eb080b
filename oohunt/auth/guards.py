"""Route guards built on the session lookup and role permissions.

    @get("/pages", guards=[auth_guard, Permission(MANAGE_CONTENT)])

``auth_guard`` requires a signed-in user and then evaluates every
``AuthRequirement`` listed beside it on the route. Requirements compose with
``|`` and ``&``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from litestar.connection import ASGIConnection
from litestar.exceptions import NotAuthorizedException, PermissionDeniedException
from litestar.handlers.base import BaseRouteHandler

from oohunt.auth.identity import SessionUser, get_session_user
from oohunt.auth.roles import ADMINISTRATOR_PERMISSION


@dataclass
class UserPermissions:
    user_id: str
    roles: set[str] = field(default_factory=set)
    permissions: set[str] = field(default_factory=set)

    @classmethod
    def for_user(cls, user: SessionUser) -> UserPermissions:
        return cls(user_id=user.id, roles={user.role}, permissions=user.permissions)

    @property
    def is_administrator(self) -> bool:
        return ADMINISTRATOR_PERMISSION in self.permissions


class AuthRequirement(ABC):
    @abstractmethod
    async def check(self, user_perms: UserPermissions) -> bool: ...

    def __or__(self, other: AuthRequirement) -> OrRequirement:
        return OrRequirement(self, other)

    def __and__(self, other: AuthRequirement) -> AndRequirement:
        return AndRequirement(self, other)

    async def __call__(self, connection: ASGIConnection, handler: BaseRouteHandler) -> None:
        # Evaluated by auth_guard, which runs first on every guarded route
        return None


class Permission(AuthRequirement):
    def __init__(self, permission: str) -> None:
        self.permission = permission

    async def check(self, user_perms: UserPermissions) -> bool:
        return user_perms.is_administrator or self.permission in user_perms.permissions


class Role(AuthRequirement):
    def __init__(self, role: str) -> None:
        self.role = role

    async def check(self, user_perms: UserPermissions) -> bool:
        return user_perms.is_administrator or self.role in user_perms.roles


class OrRequirement(AuthRequirement):
    def __init__(self, left: AuthRequirement, right: AuthRequirement) -> None:
        self.left = left
        self.right = right

    async def check(self, user_perms: UserPermissions) -> bool:
        return await self.left.check(user_perms) or await self.right.check(user_perms)


class AndRequirement(AuthRequirement):
    def __init__(self, left: AuthRequirement, right: AuthRequirement) -> None:
        self.left = left
        self.right = right

    async def check(self, user_perms: UserPermissions) -> bool:
        return await self.left.check(user_perms) and await self.right.check(user_perms)


async def auth_guard(connection: ASGIConnection, handler: BaseRouteHandler) -> None:
    """Require a signed-in user who satisfies the route's requirements."""
    user = await get_session_user(connection)
    if user is None:
        raise NotAuthorizedException("Authentication required")

    requirements = [guard for guard in handler.guards or [] if isinstance(guard, AuthRequirement)]
    if not requirements:
        return None

    user_perms = UserPermissions.for_user(user)
    for requirement in requirements:
        if not await requirement.check(user_perms):
            raise PermissionDeniedException("Insufficient permissions")
    return None

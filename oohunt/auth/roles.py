"""Role definitions for the application."""

from __future__ import annotations

from dataclasses import dataclass, field

# Grants every permission check
ADMINISTRATOR_PERMISSION = "administrator"

MANAGE_CONTENT = "manage-content"
MANAGE_PRODUCTS = "manage-products"
MANAGE_CONTACTS = "manage-contacts"
MANAGE_USERS = "manage-users"


@dataclass
class RoleDefinition:
    """Definition of a role with its permissions."""

    name: str
    permissions: set[str] = field(default_factory=set)
    display_name: str | None = None
    description: str | None = None


def create_role(
    name: str,
    *permissions: str,
    display_name: str | None = None,
    description: str | None = None,
) -> RoleDefinition:
    """Create a role definition with the given permissions.

    Args:
        name: The identifier stored on the session
        *permissions: Permission strings granted by this role
        display_name: Human-readable name for the role
        description: Description of the role's purpose

    Returns:
        A RoleDefinition instance
    """
    return RoleDefinition(
        name=name,
        permissions=set(permissions),
        display_name=display_name or name.replace("_", " ").title(),
        description=description,
    )


USER = create_role(
    "user",
    display_name="User",
    description="Signed-in shopper; keeps favorites",
)

ADMIN = create_role(
    "admin",
    MANAGE_CONTENT,
    MANAGE_PRODUCTS,
    MANAGE_CONTACTS,
    display_name="Administrator",
    description="Manages content, products and contact messages",
)

SUPER_ADMIN = create_role(
    "super_admin",
    ADMINISTRATOR_PERMISSION,
    MANAGE_CONTENT,
    MANAGE_PRODUCTS,
    MANAGE_CONTACTS,
    MANAGE_USERS,
    display_name="Super Administrator",
    description="Full access, including user management",
)

ROLE_DEFINITIONS: dict[str, RoleDefinition] = {
    role.name: role for role in [USER, ADMIN, SUPER_ADMIN]
}

DEFAULT_ROLE = USER.name


def get_role_definition(name: str) -> RoleDefinition | None:
    return ROLE_DEFINITIONS.get(name)


def permissions_for_role(name: str) -> set[str]:
    """Permissions granted by a role name; unknown roles grant nothing."""
    role = get_role_definition(name)
    return set(role.permissions) if role else set()

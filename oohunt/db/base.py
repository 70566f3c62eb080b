from advanced_alchemy.base import UUIDAuditBase


class Base(UUIDAuditBase):
    """Base for every persisted entity: UUID id plus created_at/updated_at in UTC."""

    __abstract__ = True

"""Declarative bases shared by all Quill models."""

from advanced_alchemy.base import BigIntAuditBase, BigIntBase


class Base(BigIntAuditBase):
    """Base for live records: integer id plus created_at/updated_at."""

    __abstract__ = True


class HistoryBase(BigIntBase):
    """Base for append-only tables.

    Only the integer id is inherited; history rows declare their own
    ``created_at`` and never carry an ``updated_at``.
    """

    __abstract__ = True

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from quill.db.base import Base


class User(Base):
    """Editor account, owned by the host application's auth layer."""

    __tablename__ = "users"

    username: Mapped[str] = mapped_column(String(191), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(191), nullable=False, unique=True)

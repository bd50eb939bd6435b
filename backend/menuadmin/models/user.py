"""User and profile models."""

import uuid

from sqlalchemy import Boolean, Enum, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from menuadmin.models.base import BaseModel
from menuadmin.models.enums import UserRole


class User(BaseModel):
    __tablename__ = "user"
    # Never usable in where or order_by conditions.
    __hidden_columns__ = frozenset({"password"})

    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, native_enum=False, length=20), nullable=False
    )
    active: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")

    # Relationships
    profile: Mapped["Profile | None"] = relationship(
        back_populates="user", uselist=False
    )
    stores: Mapped[list["Store"]] = relationship(back_populates="user")  # noqa: F821
    files: Mapped[list["File"]] = relationship(back_populates="owner")  # noqa: F821

    __table_args__ = (
        Index("ix_user_username", "username"),
        Index("ix_user_role", "role"),
    )


class Profile(BaseModel):
    __tablename__ = "profile"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("user.id"), unique=True, nullable=False
    )
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mobile: Mapped[str | None] = mapped_column(String(20), nullable=True)

    user: Mapped["User"] = relationship(back_populates="profile")

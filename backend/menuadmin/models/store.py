"""Store, store type, and branch models."""

import uuid

from sqlalchemy import Boolean, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from menuadmin.models.base import BaseModel


class StoreType(BaseModel):
    __tablename__ = "store_type"

    title: Mapped[str] = mapped_column(String(100), nullable=False)

    stores: Mapped[list["Store"]] = relationship(back_populates="store_type")


class Store(BaseModel):
    __tablename__ = "store"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("user.id"), nullable=False
    )
    store_type_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("store_type.id"), nullable=False
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="stores")  # noqa: F821
    store_type: Mapped["StoreType"] = relationship(back_populates="stores")
    branches: Mapped[list["StoreBranch"]] = relationship(back_populates="store")
    categories: Mapped[list["Category"]] = relationship(back_populates="store")  # noqa: F821

    __table_args__ = (
        Index("ix_store_user_id", "user_id"),
        Index("ix_store_store_type_id", "store_type_id"),
    )


class StoreBranch(BaseModel):
    __tablename__ = "store_branch"

    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("store.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True, server_default="true")

    store: Mapped["Store"] = relationship(back_populates="branches")

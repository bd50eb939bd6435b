"""Uploaded file metadata."""

import uuid

from sqlalchemy import BigInteger, Boolean, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from menuadmin.models.base import BaseModel


class File(BaseModel):
    __tablename__ = "file"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    path: Mapped[str] = mapped_column(String(1024), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)
    published: Mapped[bool] = mapped_column(Boolean, default=False, server_default="false")
    storage_type: Mapped[str] = mapped_column(String(20), default="local", server_default="local")
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("user.id"), nullable=False
    )

    owner: Mapped["User"] = relationship(back_populates="files")  # noqa: F821

from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from facility_docs.database import Base


class DocumentFolder(Base):
    __tablename__ = "document_folders"
    __table_args__ = (
        Index("ix_document_folders_scope_parent", "facility_id", "category", "parent_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    facility_id: Mapped[int] = mapped_column(
        ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    parent_id: Mapped[int | None] = mapped_column(
        ForeignKey("document_folders.id", ondelete="RESTRICT"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Slash-delimited ancestor names, e.g. "Inspections/2024"
    path: Mapped[str] = mapped_column(Text, nullable=False)
    created_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, onupdate=datetime.utcnow)

    facility = relationship("Facility", back_populates="folders")
    parent = relationship("DocumentFolder", remote_side="DocumentFolder.id", back_populates="children")
    children = relationship("DocumentFolder", back_populates="parent")
    files = relationship("DocumentFile", back_populates="folder")
    creator = relationship("User")

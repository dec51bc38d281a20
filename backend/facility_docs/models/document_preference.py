from datetime import datetime

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from facility_docs.database import Base


class DocumentPreference(Base):
    __tablename__ = "document_preferences"
    __table_args__ = (UniqueConstraint("user_id", "facility_id", name="uq_document_preference_user_facility"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    facility_id: Mapped[int] = mapped_column(ForeignKey("facilities.id", ondelete="CASCADE"), nullable=False)
    sort_by: Mapped[str | None] = mapped_column(String(16), nullable=True)
    sort_direction: Mapped[str | None] = mapped_column(String(4), nullable=True)
    view_mode: Mapped[str | None] = mapped_column(String(16), nullable=True)
    per_page: Mapped[int | None] = mapped_column(Integer, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="document_preferences")

from datetime import datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from facility_docs.database import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), default="", nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(32), default="viewer", nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=datetime.utcnow)

    facilities = relationship("Facility", secondary="user_facilities", lazy="selectin")
    document_preferences = relationship("DocumentPreference", back_populates="user")

    @property
    def facility_ids(self) -> set[int]:
        return {f.id for f in self.facilities}

"""Модель разрешения на въезд (entry permit)."""

from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from domain.entities.base import Base, utcnow


class EntryPermit(Base):
    """Разрешение на въезд, выданное по письму о найме."""

    __tablename__ = "entry_permits"

    id = Column(Integer, primary_key=True, index=True)
    permit_number = Column(String(100), unique=True, nullable=False, index=True)
    recruitment_letter_id = Column(Integer, ForeignKey("recruitment_letters.id"), nullable=True, index=True)
    issue_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    recruitment_letter = relationship("RecruitmentLetter", back_populates="entry_permits")

    def __repr__(self) -> str:
        return f"<EntryPermit(id={self.id}, permit_number='{self.permit_number}')>"

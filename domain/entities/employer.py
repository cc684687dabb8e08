"""Модель работодателя (только чтение для движка квот)."""

from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import relationship
from domain.entities.base import Base, utcnow


class Employer(Base):
    """Работодатель, владеющий письмами о найме."""

    __tablename__ = "employers"

    id = Column(Integer, primary_key=True, index=True)
    company_name = Column(String(255), nullable=False, index=True)
    tax_id = Column(String(20), unique=True, nullable=True)  # Идентификатор налогоплательщика
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Отношения
    recruitment_letters = relationship("RecruitmentLetter", back_populates="employer")

    def __repr__(self) -> str:
        return f"<Employer(id={self.id}, company_name='{self.company_name}')>"

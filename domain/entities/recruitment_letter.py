"""Модель письма о найме (recruitment letter)."""

from sqlalchemy import Column, Integer, String, Date, DateTime, Boolean, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from domain.entities.base import Base, utcnow


class RecruitmentLetter(Base):
    """
    Письмо органа по труду, разрешающее работодателю нанять до N иностранных работников.

    used_quota - денормализованный кэш. Он всегда пересчитывается из строк
    deployments/runaway_records (QuotaLedger.recalculate_usage) и никогда
    не является источником истины.
    """

    __tablename__ = "recruitment_letters"
    __table_args__ = (
        CheckConstraint("approved_quota >= 0", name="ck_recruitment_letters_approved_quota"),
        CheckConstraint("quota_male >= 0 AND quota_female >= 0", name="ck_recruitment_letters_gender_quota"),
    )

    id = Column(Integer, primary_key=True, index=True)
    letter_number = Column(String(100), unique=True, nullable=False, index=True)
    employer_id = Column(Integer, ForeignKey("employers.id"), nullable=False, index=True)
    issue_date = Column(Date, nullable=True)
    expiry_date = Column(Date, nullable=True)

    # Квоты
    approved_quota = Column(Integer, nullable=False)
    quota_male = Column(Integer, nullable=False, default=0)  # 0 = без ограничения
    quota_female = Column(Integer, nullable=False, default=0)  # 0 = без ограничения
    can_circulate = Column(Boolean, nullable=False, default=False)  # Циркулярное письмо
    used_quota = Column(Integer, nullable=False, default=0)  # Кэш, см. QuotaLedger

    # Метаданные
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Отношения
    employer = relationship("Employer", back_populates="recruitment_letters")
    entry_permits = relationship("EntryPermit", back_populates="recruitment_letter")
    deployments = relationship("Deployment", back_populates="recruitment_letter")

    @property
    def has_gender_quota(self) -> bool:
        return (self.quota_male or 0) > 0 or (self.quota_female or 0) > 0

    def __repr__(self) -> str:
        return (
            f"<RecruitmentLetter(id={self.id}, letter_number='{self.letter_number}', "
            f"used={self.used_quota}/{self.approved_quota}, can_circulate={self.can_circulate})>"
        )

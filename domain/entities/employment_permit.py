"""Модель разрешения на трудоустройство (employment permit)."""

from sqlalchemy import Column, Integer, String, Date, DateTime, Numeric, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from domain.entities.base import Base, enum_column, utcnow
import enum


class PermitType(str, enum.Enum):
    """Тип разрешения"""
    INITIAL = "INITIAL"  # Первичное
    EXTENSION = "EXTENSION"  # Продление
    REISSUE = "REISSUE"  # Переоформление


class PermitStatus(str, enum.Enum):
    """Статус разрешения"""
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"


class EmploymentPermit(Base):
    """Разрешение на трудоустройство. Не более одного ACTIVE на направление."""

    __tablename__ = "employment_permits"
    __table_args__ = (
        Index(
            "uq_employment_permits_active_per_deployment",
            "deployment_id",
            unique=True,
            postgresql_where=text("status = 'ACTIVE'"),
            sqlite_where=text("status = 'ACTIVE'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    deployment_id = Column(Integer, ForeignKey("deployments.id", ondelete="CASCADE"), nullable=False, index=True)
    permit_number = Column(String(100), nullable=False, index=True)
    type = Column(enum_column(PermitType), nullable=False)
    status = Column(enum_column(PermitStatus), nullable=False, default=PermitStatus.ACTIVE)
    issue_date = Column(Date, nullable=False)
    expiry_date = Column(Date, nullable=False)

    # Данные заявления и пошлины
    receipt_number = Column(String(100), nullable=True)
    application_date = Column(Date, nullable=True)
    fee_amount = Column(Numeric(12, 2), nullable=False, default=0)

    # Переоформление: ссылка на разрешение, заменившее это
    replaced_by_id = Column(Integer, ForeignKey("employment_permits.id"), nullable=True)

    created_by = Column(Integer, nullable=False)  # actor_id
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    deployment = relationship("Deployment", back_populates="employment_permits")

    def __repr__(self) -> str:
        return (
            f"<EmploymentPermit(id={self.id}, deployment_id={self.deployment_id}, "
            f"type='{self.type.value}', status='{self.status.value}')>"
        )

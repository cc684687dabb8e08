"""Модель направления работника к работодателю (deployment)."""

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from .base import Base, enum_column, utcnow
import enum


class DeploymentStatus(str, enum.Enum):
    """Статус направления"""
    PENDING = "pending"
    ACTIVE = "active"
    ENDED = "ended"
    TERMINATED = "terminated"


class ServiceStatus(str, enum.Enum):
    """Детальная причина текущего статуса"""
    ACTIVE_SERVICE = "active_service"
    RUNAWAY = "runaway"
    TRANSFERRED_OUT = "transferred_out"
    CONTRACT_TERMINATED = "contract_terminated"
    COMMISSION_ENDED = "commission_ended"


class SourceType(str, enum.Enum):
    """Источник найма"""
    DIRECT_HIRING = "direct_hiring"
    TRANSFER = "transfer"  # Перевод внутри страны, разрешение на въезд не требуется


class TerminationReason(str, enum.Enum):
    """Известные коды причин завершения направления"""
    RUNAWAY = "runaway"
    TRANSFERRED_OUT = "transferred_out"
    CONTRACT_TERMINATED = "contract_terminated"
    COMMISSION_ENDED = "commission_ended"


# Статусы, занимающие работника (не более одного направления на работника)
OPEN_DEPLOYMENT_STATUSES = (DeploymentStatus.PENDING, DeploymentStatus.ACTIVE)


class Deployment(Base):
    """
    Назначение работника работодателю по (возможно пустому) письму о найме.

    У работника в любой момент не более одного направления со статусом
    pending/active; это гарантирует блокировка строки работника
    в DeploymentCoordinator.
    """
    __tablename__ = "deployments"

    id = Column(Integer, primary_key=True, index=True)
    worker_id = Column(Integer, ForeignKey("workers.id"), nullable=False, index=True)
    employer_id = Column(Integer, ForeignKey("employers.id"), nullable=False, index=True)
    recruitment_letter_id = Column(Integer, ForeignKey("recruitment_letters.id"), nullable=True, index=True)
    entry_permit_id = Column(Integer, ForeignKey("entry_permits.id"), nullable=True, index=True)

    source_type = Column(enum_column(SourceType), nullable=False, default=SourceType.DIRECT_HIRING)
    status = Column(enum_column(DeploymentStatus), nullable=False, default=DeploymentStatus.ACTIVE, index=True)
    service_status = Column(enum_column(ServiceStatus), nullable=False, default=ServiceStatus.ACTIVE_SERVICE)
    job_type = Column(String(64), nullable=True)

    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    termination_reason = Column(String(64), nullable=True)
    termination_notes = Column(Text, nullable=True)

    # Метаданные
    created_by = Column(Integer, nullable=False)  # actor_id
    updated_by = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    # Отношения
    worker = relationship("Worker")
    employer = relationship("Employer")
    recruitment_letter = relationship("RecruitmentLetter", back_populates="deployments")
    entry_permit = relationship("EntryPermit")
    employment_permits = relationship("EmploymentPermit", back_populates="deployment")
    runaway_records = relationship("RunawayRecord", back_populates="deployment")

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_DEPLOYMENT_STATUSES

    def __repr__(self) -> str:
        return (
            f"<Deployment(id={self.id}, worker_id={self.worker_id}, "
            f"letter_id={self.recruitment_letter_id}, status='{self.status.value}')>"
        )

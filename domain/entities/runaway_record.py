"""Модель инцидента пропажи работника (runaway record)."""

from sqlalchemy import Column, Integer, String, Text, Date, DateTime, Boolean, ForeignKey, Index, text
from sqlalchemy.orm import relationship
from domain.entities.base import Base, enum_column, utcnow
import enum


class RunawayStatus(str, enum.Enum):
    """Этапы инцидента"""
    REPORTED_INTERNALLY = "reported_internally"  # Внутренний отчёт
    NOTIFICATION_SUBMITTED = "notification_submitted"  # Уведомление подано в органы
    CONFIRMED_RUNAWAY = "confirmed_runaway"  # Побег подтверждён, квота заморожена
    FOUND = "found"  # Работник найден (терминальный)


# Незакрытые инциденты
OPEN_RUNAWAY_STATUSES = (
    RunawayStatus.REPORTED_INTERNALLY,
    RunawayStatus.NOTIFICATION_SUBMITTED,
    RunawayStatus.CONFIRMED_RUNAWAY,
)


class RunawayRecord(Base):
    """
    Инцидент пропажи работника по одному направлению.

    is_quota_frozen истинно только в статусе confirmed_runaway: пока дело не
    закрыто, работник продолжает занимать место в циркулярной квоте.
    У направления не более одного открытого (не found) инцидента.
    """

    __tablename__ = "runaway_records"
    __table_args__ = (
        Index(
            "uq_runaway_records_open_per_deployment",
            "deployment_id",
            unique=True,
            postgresql_where=text("status <> 'found'"),
            sqlite_where=text("status <> 'found'"),
        ),
        Index("idx_runaway_records_frozen", "deployment_id", postgresql_where=text("is_quota_frozen")),
    )

    id = Column(Integer, primary_key=True, index=True)
    deployment_id = Column(Integer, ForeignKey("deployments.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(enum_column(RunawayStatus), nullable=False, default=RunawayStatus.REPORTED_INTERNALLY, index=True)

    missing_date = Column(Date, nullable=False)
    three_day_countdown_start = Column(Date, nullable=True)  # Начало 3-дневного срока уведомления
    report_date = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Шаг 2: уведомление органов
    notification_date = Column(Date, nullable=True)
    notification_number = Column(String(100), nullable=True)

    is_quota_frozen = Column(Boolean, nullable=False, default=False)
    notes = Column(Text, nullable=True)

    created_by = Column(Integer, nullable=False)  # actor_id
    updated_by = Column(Integer, nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    deployment = relationship("Deployment", back_populates="runaway_records")

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_RUNAWAY_STATUSES

    def __repr__(self) -> str:
        return (
            f"<RunawayRecord(id={self.id}, deployment_id={self.deployment_id}, "
            f"status='{self.status.value}', frozen={self.is_quota_frozen})>"
        )

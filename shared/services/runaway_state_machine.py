"""Конечный автомат инцидентов пропажи работника и заморозка квоты."""

from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional, Union

from sqlalchemy import select, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import BusinessRuleError, NotFoundError, ValidationError
from core.logging.logger import logger
from domain.entities.deployment import Deployment, DeploymentStatus, ServiceStatus
from domain.entities.employer import Employer
from domain.entities.runaway_record import RunawayRecord, RunawayStatus, OPEN_RUNAWAY_STATUSES
from domain.entities.worker import Worker
from shared.services.quota_ledger import QuotaLedger
from shared.services.row_locks import lock_for_update


class RunawayStateMachine:
    """
    Инцидент пропажи работника.

    Переходы:
    - report: -> reported_internally (направление и квота не меняются)
    - record_notification: reported_internally -> notification_submitted
    - confirm: reported_internally | notification_submitted -> confirmed_runaway,
      квота замораживается, направление -> terminated/runaway
    - mark_found: любой открытый -> found, квота размораживается;
      направление не реактивируется автоматически

    После confirm и mark_found кэш квоты письма пересчитывается.
    """

    _CONFIRMABLE = (RunawayStatus.REPORTED_INTERNALLY, RunawayStatus.NOTIFICATION_SUBMITTED)

    def __init__(self, session: AsyncSession, quota_ledger: Optional[QuotaLedger] = None):
        self.session = session
        self.quota_ledger = quota_ledger or QuotaLedger()

    async def report(
        self,
        deployment_id: int,
        missing_date: date,
        *,
        actor_id: int,
        notes: Optional[str] = None,
        three_day_countdown_start: Optional[date] = None,
    ) -> RunawayRecord:
        """Внутренний отчёт о пропаже работника."""
        deployment = await lock_for_update(self.session, Deployment, deployment_id)
        if not deployment.is_open:
            raise BusinessRuleError(
                f"Cannot report a missing worker on a {deployment.status.value} deployment",
                {"deployment_id": deployment.id, "status": deployment.status.value},
            )
        if missing_date < deployment.start_date:
            raise ValidationError(
                "Missing date cannot be before the deployment start date",
                {"missing_date": missing_date.isoformat(), "start_date": deployment.start_date.isoformat()},
            )

        open_record = await self._get_open_record(deployment.id)
        if open_record is not None:
            raise BusinessRuleError(
                "Deployment already has an open runaway record",
                {"deployment_id": deployment.id, "record_id": open_record.id, "status": open_record.status.value},
            )

        record = RunawayRecord(
            deployment_id=deployment.id,
            status=RunawayStatus.REPORTED_INTERNALLY,
            missing_date=missing_date,
            three_day_countdown_start=three_day_countdown_start or missing_date,
            is_quota_frozen=False,
            notes=notes,
            created_by=actor_id,
        )
        self.session.add(record)
        await self.session.flush()

        logger.info(
            "Runaway reported internally",
            record_id=record.id,
            deployment_id=deployment.id,
            missing_date=missing_date.isoformat(),
            actor_id=actor_id,
        )
        return record

    async def record_notification(
        self,
        record_id: int,
        notification_date: date,
        notification_number: str,
        *,
        actor_id: int,
        notes: Optional[str] = None,
    ) -> RunawayRecord:
        """Шаг 2: уведомление органов подано."""
        if not notification_number or not notification_number.strip():
            raise ValidationError("Notification number is required")

        record = await lock_for_update(self.session, RunawayRecord, record_id)
        self._ensure_transition(record, (RunawayStatus.REPORTED_INTERNALLY,), RunawayStatus.NOTIFICATION_SUBMITTED)
        if notification_date < record.missing_date:
            raise ValidationError(
                "Notification date cannot be before the missing date",
                {"notification_date": notification_date.isoformat(), "missing_date": record.missing_date.isoformat()},
            )

        record.status = RunawayStatus.NOTIFICATION_SUBMITTED
        record.notification_date = notification_date
        record.notification_number = notification_number.strip()
        if notes:
            record.notes = notes
        record.updated_by = actor_id
        await self.session.flush()

        logger.info(
            "Runaway notification recorded",
            record_id=record.id,
            notification_number=record.notification_number,
            actor_id=actor_id,
        )
        return record

    async def confirm(self, record_id: int, *, actor_id: int, notes: Optional[str] = None) -> RunawayRecord:
        """Шаг 3: побег подтверждён, квота замораживается."""
        record = await lock_for_update(self.session, RunawayRecord, record_id)
        self._ensure_transition(record, self._CONFIRMABLE, RunawayStatus.CONFIRMED_RUNAWAY)

        deployment = await lock_for_update(self.session, Deployment, record.deployment_id)
        # Место закрытого направления могло уже уйти другому работнику
        if not deployment.is_open:
            raise BusinessRuleError(
                f"Cannot confirm a runaway on a {deployment.status.value} deployment",
                {"record_id": record.id, "deployment_id": deployment.id, "status": deployment.status.value},
            )

        record.status = RunawayStatus.CONFIRMED_RUNAWAY
        record.is_quota_frozen = True
        if notes:
            record.notes = notes
        record.updated_by = actor_id

        deployment.status = DeploymentStatus.TERMINATED
        deployment.service_status = ServiceStatus.RUNAWAY
        deployment.end_date = record.missing_date
        deployment.termination_reason = ServiceStatus.RUNAWAY.value
        deployment.updated_by = actor_id
        await self.session.flush()

        if deployment.recruitment_letter_id is not None:
            await self.quota_ledger.recalculate_usage(deployment.recruitment_letter_id, self.session)

        logger.info(
            "Runaway confirmed, quota frozen",
            record_id=record.id,
            deployment_id=deployment.id,
            letter_id=deployment.recruitment_letter_id,
            actor_id=actor_id,
        )
        return record

    async def mark_found(self, record_id: int, *, actor_id: int) -> RunawayRecord:
        """Работник найден: квота размораживается, направление остаётся как есть."""
        record = await lock_for_update(self.session, RunawayRecord, record_id)
        self._ensure_transition(record, OPEN_RUNAWAY_STATUSES, RunawayStatus.FOUND)

        was_frozen = record.is_quota_frozen
        record.status = RunawayStatus.FOUND
        record.is_quota_frozen = False
        record.updated_by = actor_id
        await self.session.flush()

        deployment = await self.session.get(Deployment, record.deployment_id)
        if deployment is not None and deployment.recruitment_letter_id is not None:
            await self.quota_ledger.recalculate_usage(deployment.recruitment_letter_id, self.session)

        logger.info(
            "Runaway worker found",
            record_id=record.id,
            deployment_id=record.deployment_id,
            quota_released=was_frozen,
            actor_id=actor_id,
        )
        return record

    async def get_record(self, record_id: int) -> RunawayRecord:
        """Инцидент по ID."""
        record = await self.session.get(RunawayRecord, record_id)
        if record is None:
            raise NotFoundError("RunawayRecord", record_id)
        return record

    async def list_records(
        self,
        status: Optional[Union[RunawayStatus, str]] = None,
        employer_id: Optional[int] = None,
        search: Optional[str] = None,
        limit: int = 100,
    ) -> List[RunawayRecord]:
        """Список инцидентов с фильтрами по статусу, работодателю и имени."""
        query = select(RunawayRecord).join(Deployment, Deployment.id == RunawayRecord.deployment_id)

        if status:
            query = query.where(RunawayRecord.status == RunawayStatus(status))
        if employer_id:
            query = query.where(Deployment.employer_id == employer_id)
        if search:
            pattern = f"%{search.strip()}%"
            query = (
                query.join(Worker, Worker.id == Deployment.worker_id)
                .join(Employer, Employer.id == Deployment.employer_id)
                .where(
                    or_(
                        Worker.english_name.ilike(pattern),
                        Worker.chinese_name.ilike(pattern),
                        Employer.company_name.ilike(pattern),
                    )
                )
            )

        query = query.order_by(RunawayRecord.report_date.desc(), RunawayRecord.id.desc()).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def _get_open_record(self, deployment_id: int) -> Optional[RunawayRecord]:
        query = select(RunawayRecord).where(
            and_(
                RunawayRecord.deployment_id == deployment_id,
                RunawayRecord.status.in_(OPEN_RUNAWAY_STATUSES),
            )
        )
        result = await self.session.execute(query)
        return result.scalars().first()

    @staticmethod
    def _ensure_transition(
        record: RunawayRecord,
        allowed_from: Iterable[RunawayStatus],
        target: RunawayStatus,
    ) -> None:
        allowed_from = tuple(allowed_from)
        if record.status not in allowed_from:
            raise BusinessRuleError(
                f"Cannot move runaway record from {record.status.value} to {target.value}",
                {
                    "record_id": record.id,
                    "current_status": record.status.value,
                    "requested_status": target.value,
                    "allowed_from": [s.value for s in allowed_from],
                },
            )

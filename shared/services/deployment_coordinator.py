"""Транзакционная точка входа: размещение, завершение и реактивация направлений."""

from __future__ import annotations

from datetime import date
from typing import Optional, Tuple, Union

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import BusinessRuleError, NotFoundError, ValidationError
from core.logging.logger import logger
from domain.entities.deployment import (
    Deployment,
    DeploymentStatus,
    ServiceStatus,
    SourceType,
    TerminationReason,
    OPEN_DEPLOYMENT_STATUSES,
)
from domain.entities.employer import Employer
from domain.entities.entry_permit import EntryPermit
from domain.entities.recruitment_letter import RecruitmentLetter
from domain.entities.runaway_record import RunawayRecord, OPEN_RUNAWAY_STATUSES
from domain.entities.worker import Worker
from shared.services.quota_ledger import QuotaLedger
from shared.services.row_locks import lock_for_update


_TERMINATION_MAP = {
    TerminationReason.RUNAWAY: (DeploymentStatus.TERMINATED, ServiceStatus.RUNAWAY),
    TerminationReason.TRANSFERRED_OUT: (DeploymentStatus.TERMINATED, ServiceStatus.TRANSFERRED_OUT),
    TerminationReason.CONTRACT_TERMINATED: (DeploymentStatus.TERMINATED, ServiceStatus.CONTRACT_TERMINATED),
}


def map_termination_reason(reason: Union[TerminationReason, str]) -> Tuple[DeploymentStatus, ServiceStatus]:
    """
    Причина завершения -> (status, service_status).

    Любая неизвестная причина считается штатным окончанием (ended/commission_ended).
    """
    try:
        known = TerminationReason(reason)
    except ValueError:
        known = None
    return _TERMINATION_MAP.get(known, (DeploymentStatus.ENDED, ServiceStatus.COMMISSION_ENDED))


class DeploymentCoordinator:
    """
    Создание и завершение направлений в рамках транзакции вызывающего кода.

    Порядок блокировок: строка работника, затем строка письма о найме
    (внутри QuotaLedger.check_availability). Сервис не делает commit.
    """

    def __init__(self, session: AsyncSession, quota_ledger: Optional[QuotaLedger] = None):
        self.session = session
        self.quota_ledger = quota_ledger or QuotaLedger()

    async def create_deployment(
        self,
        worker_id: int,
        employer_id: int,
        start_date: date,
        *,
        actor_id: int,
        recruitment_letter_id: Optional[int] = None,
        entry_permit_id: Optional[int] = None,
        source_type: Union[SourceType, str] = SourceType.DIRECT_HIRING,
        status: Union[DeploymentStatus, str] = DeploymentStatus.ACTIVE,
        job_type: Optional[str] = None,
    ) -> Deployment:
        """
        Размещает работника у работодателя.

        Args:
            worker_id: ID работника
            employer_id: ID работодателя
            start_date: Дата начала работы
            actor_id: ID пользователя, выполняющего операцию
            recruitment_letter_id: ID письма о найме (если размещение по квоте)
            entry_permit_id: ID разрешения на въезд
            source_type: direct_hiring | transfer
            status: pending | active
            job_type: Вид работ

        Raises:
            NotFoundError: работник, работодатель, письмо или разрешение на въезд не найдены
            BusinessRuleError: у работника уже есть открытое направление,
                письмо принадлежит другому работодателю
            QuotaExceededError: квота письма исчерпана
        """
        source_type = self._parse_enum(SourceType, source_type, "source_type")
        status = self._parse_enum(DeploymentStatus, status, "status")
        if status not in OPEN_DEPLOYMENT_STATUSES:
            raise ValidationError(
                f"New deployment cannot start in status '{status.value}'",
                {"allowed": [s.value for s in OPEN_DEPLOYMENT_STATUSES]},
            )

        # Блокировка работника сериализует параллельные размещения одного человека
        worker = await lock_for_update(self.session, Worker, worker_id)
        await self._ensure_no_open_deployment(worker.id)

        employer = await self.session.get(Employer, employer_id)
        if employer is None:
            raise NotFoundError("Employer", employer_id)

        if entry_permit_id is not None:
            recruitment_letter_id = await self._resolve_entry_permit_letter(entry_permit_id, recruitment_letter_id)

        if recruitment_letter_id is not None:
            await self.quota_ledger.check_availability(recruitment_letter_id, worker.gender, self.session)
            letter = await self.session.get(RecruitmentLetter, recruitment_letter_id)
            if letter.employer_id != employer.id:
                raise BusinessRuleError(
                    f"Recruitment letter {letter.letter_number} belongs to another employer",
                    {
                        "letter_id": letter.id,
                        "letter_employer_id": letter.employer_id,
                        "requested_employer_id": employer.id,
                    },
                )

        deployment = Deployment(
            worker_id=worker.id,
            employer_id=employer.id,
            recruitment_letter_id=recruitment_letter_id,
            entry_permit_id=entry_permit_id,
            source_type=source_type,
            status=status,
            service_status=ServiceStatus.ACTIVE_SERVICE,
            job_type=job_type,
            start_date=start_date,
            created_by=actor_id,
        )
        self.session.add(deployment)
        await self.session.flush()

        if recruitment_letter_id is not None:
            await self.quota_ledger.recalculate_usage(recruitment_letter_id, self.session)

        logger.info(
            "Deployment created",
            deployment_id=deployment.id,
            worker_id=worker.id,
            employer_id=employer.id,
            letter_id=recruitment_letter_id,
            actor_id=actor_id,
        )
        return deployment

    async def terminate_deployment(
        self,
        deployment_id: int,
        reason: Union[TerminationReason, str],
        end_date: date,
        *,
        actor_id: int,
        notes: Optional[str] = None,
    ) -> Deployment:
        """Завершает открытое направление и пересчитывает квоту письма."""
        if not reason or not str(reason).strip():
            raise ValidationError("Termination reason is required")
        reason = reason.value if isinstance(reason, TerminationReason) else str(reason).strip()

        deployment = await lock_for_update(self.session, Deployment, deployment_id)
        if not deployment.is_open:
            raise BusinessRuleError(
                f"Cannot terminate a {deployment.status.value} deployment",
                {"deployment_id": deployment.id, "status": deployment.status.value},
            )
        if end_date < deployment.start_date:
            raise ValidationError(
                "End date cannot be before the deployment start date",
                {"end_date": end_date.isoformat(), "start_date": deployment.start_date.isoformat()},
            )

        new_status, service_status = map_termination_reason(reason)
        deployment.status = new_status
        deployment.service_status = service_status
        deployment.end_date = end_date
        deployment.termination_reason = reason
        deployment.termination_notes = notes
        deployment.updated_by = actor_id
        await self.session.flush()

        if deployment.recruitment_letter_id is not None:
            await self.quota_ledger.recalculate_usage(deployment.recruitment_letter_id, self.session)

        logger.info(
            "Deployment terminated",
            deployment_id=deployment.id,
            reason=reason,
            status=new_status.value,
            service_status=service_status.value,
            letter_id=deployment.recruitment_letter_id,
            actor_id=actor_id,
        )
        return deployment

    async def reactivate_deployment(self, deployment_id: int, *, actor_id: int) -> Deployment:
        """
        Возвращает завершённое направление в active (решение оператора после
        того, как пропавший работник найден).

        Raises:
            BusinessRuleError: направление уже открыто, у работника есть другое
                открытое направление или по направлению остался открытый инцидент
            QuotaExceededError: место по циркулярному письму уже занято
        """
        deployment = await self.session.get(Deployment, deployment_id)
        if deployment is None:
            raise NotFoundError("Deployment", deployment_id)

        # Тот же порядок блокировок, что и при создании
        worker = await lock_for_update(self.session, Worker, deployment.worker_id)
        deployment = await lock_for_update(self.session, Deployment, deployment_id)
        if deployment.is_open:
            raise BusinessRuleError(
                "Deployment is already open",
                {"deployment_id": deployment.id, "status": deployment.status.value},
            )
        await self._ensure_no_open_deployment(worker.id)

        open_record = await self.session.execute(
            select(RunawayRecord.id).where(
                and_(
                    RunawayRecord.deployment_id == deployment.id,
                    RunawayRecord.status.in_(OPEN_RUNAWAY_STATUSES),
                )
            )
        )
        open_record_id = open_record.scalars().first()
        if open_record_id is not None:
            raise BusinessRuleError(
                "Deployment has an open runaway record; mark the worker as found first",
                {"deployment_id": deployment.id, "record_id": open_record_id},
            )

        letter_id = deployment.recruitment_letter_id
        if letter_id is not None:
            letter = await self.session.get(RecruitmentLetter, letter_id)
            # Разовое письмо уже учитывает это направление навсегда
            if letter is not None and letter.can_circulate:
                await self.quota_ledger.check_availability(letter_id, worker.gender, self.session)

        previous_status = deployment.status
        deployment.status = DeploymentStatus.ACTIVE
        deployment.service_status = ServiceStatus.ACTIVE_SERVICE
        deployment.end_date = None
        deployment.termination_reason = None
        deployment.termination_notes = None
        deployment.updated_by = actor_id
        await self.session.flush()

        if letter_id is not None:
            await self.quota_ledger.recalculate_usage(letter_id, self.session)

        logger.info(
            "Deployment reactivated",
            deployment_id=deployment.id,
            previous_status=previous_status.value,
            letter_id=letter_id,
            actor_id=actor_id,
        )
        return deployment

    async def get_deployment(self, deployment_id: int) -> Deployment:
        """Направление по ID."""
        deployment = await self.session.get(Deployment, deployment_id)
        if deployment is None:
            raise NotFoundError("Deployment", deployment_id)
        return deployment

    async def _ensure_no_open_deployment(self, worker_id: int) -> None:
        result = await self.session.execute(
            select(Deployment).where(
                and_(
                    Deployment.worker_id == worker_id,
                    Deployment.status.in_(OPEN_DEPLOYMENT_STATUSES),
                )
            )
        )
        existing = result.scalars().first()
        if existing is not None:
            raise BusinessRuleError(
                "Worker already has an active or pending deployment",
                {"worker_id": worker_id, "deployment_id": existing.id, "status": existing.status.value},
            )

    async def _resolve_entry_permit_letter(
        self, entry_permit_id: int, recruitment_letter_id: Optional[int]
    ) -> Optional[int]:
        """Письмо о найме берётся из разрешения на въезд, если не указано явно."""
        entry_permit = await self.session.get(EntryPermit, entry_permit_id)
        if entry_permit is None:
            raise NotFoundError("EntryPermit", entry_permit_id)

        if recruitment_letter_id is None:
            return entry_permit.recruitment_letter_id
        if (
            entry_permit.recruitment_letter_id is not None
            and entry_permit.recruitment_letter_id != recruitment_letter_id
        ):
            raise BusinessRuleError(
                "Entry permit was issued under a different recruitment letter",
                {
                    "entry_permit_id": entry_permit.id,
                    "entry_permit_letter_id": entry_permit.recruitment_letter_id,
                    "requested_letter_id": recruitment_letter_id,
                },
            )
        return recruitment_letter_id

    @staticmethod
    def _parse_enum(enum_cls, value, field: str):
        try:
            return enum_cls(value)
        except ValueError:
            raise ValidationError(
                f"Unknown {field} '{value}'",
                {"allowed": [item.value for item in enum_cls]},
            )

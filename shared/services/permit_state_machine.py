"""Жизненный цикл разрешений на трудоустройство (первичное, продление, переоформление)."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import BusinessRuleError, ValidationError
from core.logging.logger import logger
from domain.entities.deployment import Deployment, SourceType
from domain.entities.employment_permit import EmploymentPermit, PermitStatus, PermitType
from domain.entities.entry_permit import EntryPermit
from shared.services.row_locks import lock_for_update

# Продление можно подать не ранее чем за 4 месяца до окончания
EXTENSION_WINDOW_DAYS = 120
URGENT_WINDOW_DAYS = 30

NO_PERMIT = "NO_PERMIT"


class PermitStateMachine:
    """
    Выдача разрешений на трудоустройство по направлению.

    Переходы:
    - NO_PERMIT -> ACTIVE(INITIAL)
    - ACTIVE(X) -> EXPIRED(X) + ACTIVE(EXTENSION)
    - REISSUE: без проверки предшественника; действующее разрешение, если есть,
      выводится из оборота со ссылкой replaced_by_id на переоформленное

    Инвариант: у направления не более одного разрешения в статусе ACTIVE.
    Выдача сериализуется блокировкой строки направления. Разрешения не влияют
    на использование квоты, поэтому QuotaLedger здесь не вызывается.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def issue_permit(
        self,
        deployment_id: int,
        permit_type: Union[PermitType, str],
        permit_number: str,
        issue_date: date,
        expiry_date: date,
        *,
        actor_id: int,
        fee_amount: Optional[Decimal] = None,
        receipt_number: Optional[str] = None,
        application_date: Optional[date] = None,
    ) -> EmploymentPermit:
        """
        Создаёт разрешение с проверкой правового порядка.

        Args:
            deployment_id: ID направления
            permit_type: INITIAL | EXTENSION | REISSUE
            permit_number: Номер разрешения
            issue_date: Дата выдачи
            expiry_date: Дата окончания
            actor_id: ID пользователя, выполняющего операцию
            fee_amount: Сумма пошлины
            receipt_number: Номер квитанции
            application_date: Дата подачи заявления

        Raises:
            ValidationError: некорректный тип, номер или даты
            NotFoundError: направление не найдено
            BusinessRuleError: нарушен порядок выдачи
        """
        permit_type = self._parse_type(permit_type)
        if not permit_number or not permit_number.strip():
            raise ValidationError("Permit number is required")
        if expiry_date <= issue_date:
            raise ValidationError(
                "Permit expiry date must be after issue date",
                {"issue_date": issue_date.isoformat(), "expiry_date": expiry_date.isoformat()},
            )

        deployment = await lock_for_update(self.session, Deployment, deployment_id)
        active_permit = await self.get_active_permit(deployment.id)

        if permit_type == PermitType.INITIAL:
            if deployment.source_type != SourceType.TRANSFER and not await self._has_entry_permit(deployment):
                raise BusinessRuleError(
                    "Initial permit requires an entry permit linked to a recruitment letter",
                    {"deployment_id": deployment.id, "source_type": deployment.source_type.value},
                )
            if active_permit is not None:
                raise BusinessRuleError(
                    "Deployment already has an active employment permit; use EXTENSION to renew it",
                    {"deployment_id": deployment.id, "active_permit_number": active_permit.permit_number},
                )

        elif permit_type == PermitType.EXTENSION:
            if active_permit is None:
                raise BusinessRuleError(
                    "Cannot extend without a prior active permit",
                    {"deployment_id": deployment.id},
                )
            active_permit.status = PermitStatus.EXPIRED
            # Старое разрешение должно уйти из ACTIVE до вставки нового
            await self.session.flush()

        elif active_permit is not None:
            active_permit.status = PermitStatus.EXPIRED
            await self.session.flush()

        permit = EmploymentPermit(
            deployment_id=deployment.id,
            permit_number=permit_number.strip(),
            type=permit_type,
            status=PermitStatus.ACTIVE,
            issue_date=issue_date,
            expiry_date=expiry_date,
            receipt_number=receipt_number,
            application_date=application_date,
            fee_amount=fee_amount if fee_amount is not None else Decimal("0"),
            created_by=actor_id,
        )
        self.session.add(permit)
        await self.session.flush()

        if permit_type == PermitType.REISSUE and active_permit is not None:
            active_permit.replaced_by_id = permit.id
            await self.session.flush()

        logger.info(
            "Employment permit issued",
            deployment_id=deployment.id,
            permit_id=permit.id,
            permit_type=permit_type.value,
            previous_permit_id=active_permit.id if active_permit is not None else None,
            actor_id=actor_id,
        )
        return permit

    async def check_expiry(self, deployment_id: int, today: Optional[date] = None) -> Dict[str, Any]:
        """
        Проверяет срок действия текущего разрешения (только чтение).

        Args:
            deployment_id: ID направления
            today: Дата отсчёта (по умолчанию сегодня)

        Returns:
            {"status": "NO_PERMIT"} или сведения о сроке и окне продления
        """
        if today is None:
            today = date.today()

        permit = await self.get_active_permit(deployment_id)
        if permit is None:
            return {"status": NO_PERMIT}

        days_until_expiry = (permit.expiry_date - today).days
        return {
            "status": PermitStatus.ACTIVE.value,
            "permit_number": permit.permit_number,
            "expiry_date": permit.expiry_date,
            "days_until_expiry": days_until_expiry,
            "can_extend": 0 < days_until_expiry <= EXTENSION_WINDOW_DAYS,
            "is_urgent": days_until_expiry <= URGENT_WINDOW_DAYS,
            "is_expired": days_until_expiry <= 0,
        }

    async def get_permit_history(self, deployment_id: int) -> List[EmploymentPermit]:
        """Все разрешения направления, от новых к старым."""
        query = (
            select(EmploymentPermit)
            .where(EmploymentPermit.deployment_id == deployment_id)
            .order_by(EmploymentPermit.issue_date.desc(), EmploymentPermit.id.desc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_active_permit(self, deployment_id: int) -> Optional[EmploymentPermit]:
        """Текущее ACTIVE разрешение направления."""
        query = select(EmploymentPermit).where(
            and_(
                EmploymentPermit.deployment_id == deployment_id,
                EmploymentPermit.status == PermitStatus.ACTIVE,
            )
        )
        result = await self.session.execute(query)
        return result.scalars().first()

    async def _has_entry_permit(self, deployment: Deployment) -> bool:
        """Есть ли у направления разрешение на въезд, привязанное к письму о найме."""
        if deployment.entry_permit_id is None:
            return False
        entry_permit = await self.session.get(EntryPermit, deployment.entry_permit_id)
        return entry_permit is not None and entry_permit.recruitment_letter_id is not None

    @staticmethod
    def _parse_type(permit_type: Union[PermitType, str]) -> PermitType:
        try:
            return PermitType(permit_type)
        except ValueError:
            raise ValidationError(
                f"Unknown permit type '{permit_type}'",
                {"allowed": [t.value for t in PermitType]},
            )

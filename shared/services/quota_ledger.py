"""Учёт квот писем о найме: проверка доступности и пересчёт кэша used_quota."""

from __future__ import annotations

from typing import Any, Dict, Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import NotFoundError, PreconditionError, QuotaExceededError, ValidationError
from core.logging.logger import logger
from domain.entities.recruitment_letter import RecruitmentLetter
from domain.entities.worker import Gender
from shared.services.quota_filters import build_usage_count_query
from shared.services.row_locks import lock_for_update


def normalize_gender(worker_gender: Union[Gender, str, None]) -> Optional[Gender]:
    """Приводит пол работника к Gender (None, если не указан)."""
    if worker_gender is None or isinstance(worker_gender, Gender):
        return worker_gender
    try:
        return Gender(str(worker_gender).lower())
    except ValueError:
        raise ValidationError(
            f"Unknown worker gender '{worker_gender}'",
            {"gender": worker_gender, "allowed": [g.value for g in Gender]},
        )


class QuotaLedger:
    """
    Источник истины о доступности квоты письма о найме.

    Использование никогда не инкрементируется: оно всегда пересчитывается
    из строк deployments/runaway_records. Конкурентные проверки по одному
    письму сериализуются блокировкой строки письма (SELECT ... FOR UPDATE),
    которая держится до конца транзакции вызывающего кода.
    """

    async def check_availability(
        self,
        letter_id: int,
        worker_gender: Union[Gender, str, None],
        session: Optional[AsyncSession],
    ) -> None:
        """
        Проверяет, что по письму есть свободное место для нового направления.

        Args:
            letter_id: ID письма о найме
            worker_gender: Пол работника (для подквоты по полу)
            session: Сессия с открытой транзакцией

        Raises:
            PreconditionError: вызов вне транзакции
            NotFoundError: письмо не найдено
            QuotaExceededError: общая квота или подквота по полу исчерпана
        """
        if session is None or not session.in_transaction():
            raise PreconditionError("Quota check must be called within a transaction")

        letter = await lock_for_update(session, RecruitmentLetter, letter_id)

        is_circular = bool(letter.can_circulate)
        usage = await self._count_usage(session, letter.id, is_circular)

        if usage >= letter.approved_quota:
            logger.warning(
                "Recruitment letter quota exceeded",
                letter_id=letter.id,
                letter_number=letter.letter_number,
                approved_quota=letter.approved_quota,
                usage=usage,
                is_circular=is_circular,
            )
            raise QuotaExceededError(
                letter_number=letter.letter_number,
                approved_quota=letter.approved_quota,
                usage=usage,
                is_circular=is_circular,
            )

        gender = normalize_gender(worker_gender)
        sub_quota = self._gender_sub_quota(letter, gender)
        if sub_quota:
            gender_usage = await self._count_usage(session, letter.id, is_circular, gender)
            if gender_usage >= sub_quota:
                logger.warning(
                    "Recruitment letter gender quota exceeded",
                    letter_id=letter.id,
                    letter_number=letter.letter_number,
                    gender=gender.value,
                    sub_quota=sub_quota,
                    usage=gender_usage,
                )
                raise QuotaExceededError(
                    letter_number=letter.letter_number,
                    approved_quota=sub_quota,
                    usage=gender_usage,
                    is_circular=is_circular,
                    gender=gender.value,
                )

        logger.debug(
            "Quota available",
            letter_id=letter.id,
            approved_quota=letter.approved_quota,
            usage=usage,
        )

    async def recalculate_usage(self, letter_id: int, session: Optional[AsyncSession]) -> int:
        """
        Пересчитывает used_quota письма из исходных строк и сохраняет его.

        Идемпотентно: повторный вызов даёт тот же результат, поэтому его можно
        безопасно вызывать после любой операции, меняющей набор направлений.

        Returns:
            Новое значение used_quota
        """
        if session is None:
            raise PreconditionError("Quota recalculation requires a database session")

        # Незафиксированные изменения направлений должны попасть в подсчёт
        await session.flush()

        letter = await session.get(RecruitmentLetter, letter_id)
        if letter is None:
            raise NotFoundError("RecruitmentLetter", letter_id)

        usage = await self._count_usage(session, letter.id, bool(letter.can_circulate))
        previous = letter.used_quota
        letter.used_quota = usage
        await session.flush()

        if previous != usage:
            logger.info(
                "Recruitment letter usage recalculated",
                letter_id=letter.id,
                previous_usage=previous,
                usage=usage,
            )
        return usage

    async def get_usage_summary(self, letter_id: int, session: AsyncSession) -> Dict[str, Any]:
        """Сводка по использованию квоты письма (только чтение)."""
        letter = await session.get(RecruitmentLetter, letter_id)
        if letter is None:
            raise NotFoundError("RecruitmentLetter", letter_id)

        is_circular = bool(letter.can_circulate)
        usage = await self._count_usage(session, letter.id, is_circular)
        male_usage = await self._count_usage(session, letter.id, is_circular, Gender.MALE)
        female_usage = await self._count_usage(session, letter.id, is_circular, Gender.FEMALE)

        return {
            "letter_id": letter.id,
            "letter_number": letter.letter_number,
            "employer_id": letter.employer_id,
            "is_circular": is_circular,
            "approved_quota": letter.approved_quota,
            "used_quota": usage,
            "cached_used_quota": letter.used_quota,
            "cache_in_sync": usage == letter.used_quota,
            "remaining_quota": max(letter.approved_quota - usage, 0),
            "quota_male": letter.quota_male,
            "male_usage": male_usage,
            "quota_female": letter.quota_female,
            "female_usage": female_usage,
        }

    async def _count_usage(
        self,
        session: AsyncSession,
        letter_id: int,
        is_circular: bool,
        gender: Optional[Gender] = None,
    ) -> int:
        result = await session.execute(build_usage_count_query(letter_id, is_circular, gender))
        return int(result.scalar_one())

    @staticmethod
    def _gender_sub_quota(letter: RecruitmentLetter, gender: Optional[Gender]) -> int:
        """Подквота для пола работника (0, если для этого пола ограничения нет)."""
        if not letter.has_gender_quota or gender is None:
            return 0
        if gender == Gender.MALE:
            return letter.quota_male or 0
        if gender == Gender.FEMALE:
            return letter.quota_female or 0
        return 0

"""Фильтры использования квоты письма о найме."""

from typing import Optional

from sqlalchemy import and_, or_, exists, select, func
from sqlalchemy.sql import Select

from domain.entities.deployment import Deployment, OPEN_DEPLOYMENT_STATUSES
from domain.entities.runaway_record import RunawayRecord
from domain.entities.worker import Worker, Gender


def build_frozen_runaway_filter():
    """
    Создаёт условие "у направления есть инцидент с замороженной квотой".

    Returns:
        Коррелированный EXISTS по runaway_records
    """
    return exists().where(
        and_(
            RunawayRecord.deployment_id == Deployment.id,
            RunawayRecord.is_quota_frozen.is_(True),
        )
    )


def build_quota_usage_filter(letter_id: int, can_circulate: bool):
    """
    Создаёт SQLAlchemy фильтр направлений, занимающих квоту письма.

    Направление занимает квоту, если:
    - письмо циркулярное: status in (active, pending) ИЛИ есть инцидент
      с is_quota_frozen = true (сбежавший работник держит место до решения дела)
    - письмо одноразовое: любое направление, когда-либо привязанное к письму

    Args:
        letter_id: ID письма о найме
        can_circulate: Флаг циркулярности письма

    Returns:
        SQLAlchemy условие для фильтрации Deployment
    """
    attached = Deployment.recruitment_letter_id == letter_id
    if not can_circulate:
        return attached

    return and_(
        attached,
        or_(
            Deployment.status.in_(OPEN_DEPLOYMENT_STATUSES),
            build_frozen_runaway_filter(),
        ),
    )


def build_usage_count_query(letter_id: int, can_circulate: bool, gender: Optional[Gender] = None) -> Select:
    """
    Запрос количества занятых мест по письму, опционально только по полу.

    Args:
        letter_id: ID письма о найме
        can_circulate: Флаг циркулярности письма
        gender: Пол для проверки подквоты (None = все работники)
    """
    query = (
        select(func.count(Deployment.id))
        .select_from(Deployment)
        .where(build_quota_usage_filter(letter_id, can_circulate))
    )
    if gender is not None:
        query = query.join(Worker, Worker.id == Deployment.worker_id).where(Worker.gender == gender)
    return query

"""
API роутер для инцидентов пропажи работников
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database.session import get_db_session, transaction
from apps.api.dependencies import get_actor_id
from apps.api.schemas import (
    RunawayReport, RunawayNotification, RunawayConfirm,
    RunawayResponse, ErrorResponse
)
from domain.entities.runaway_record import RunawayStatus
from shared.services.runaway_state_machine import RunawayStateMachine

router = APIRouter(
    prefix="/runaways",
    tags=["runaways"],
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)


@router.get("", response_model=List[RunawayResponse])
async def list_runaways(
    status_filter: Optional[RunawayStatus] = Query(None, alias="status", description="Фильтр по этапу"),
    employer_id: Optional[int] = Query(None, description="Фильтр по работодателю"),
    search: Optional[str] = Query(None, description="Поиск по имени работника или работодателя"),
    limit: int = Query(100, ge=1, le=500),
    session: AsyncSession = Depends(get_db_session)
):
    """Список инцидентов с фильтрами."""
    return await RunawayStateMachine(session).list_records(
        status=status_filter, employer_id=employer_id, search=search, limit=limit
    )


@router.get("/{record_id}", response_model=RunawayResponse)
async def get_runaway(
    record_id: int,
    session: AsyncSession = Depends(get_db_session)
):
    """Получение инцидента по ID."""
    return await RunawayStateMachine(session).get_record(record_id)


@router.post("", response_model=RunawayResponse, status_code=status.HTTP_201_CREATED)
async def report_runaway(
    data: RunawayReport,
    actor_id: int = Depends(get_actor_id),
    session: AsyncSession = Depends(get_db_session)
):
    """Внутренний отчёт о пропаже работника."""
    async with transaction(session):
        record = await RunawayStateMachine(session).report(
            data.deployment_id,
            data.missing_date,
            actor_id=actor_id,
            notes=data.notes,
            three_day_countdown_start=data.three_day_countdown_start,
        )
    return record


@router.patch("/{record_id}/notification", response_model=RunawayResponse)
async def record_notification(
    record_id: int,
    data: RunawayNotification,
    actor_id: int = Depends(get_actor_id),
    session: AsyncSession = Depends(get_db_session)
):
    """Фиксация поданного уведомления органам."""
    async with transaction(session):
        record = await RunawayStateMachine(session).record_notification(
            record_id,
            data.notification_date,
            data.notification_number,
            actor_id=actor_id,
            notes=data.notes,
        )
    return record


@router.post("/{record_id}/confirm", response_model=RunawayResponse)
async def confirm_runaway(
    record_id: int,
    data: Optional[RunawayConfirm] = None,
    actor_id: int = Depends(get_actor_id),
    session: AsyncSession = Depends(get_db_session)
):
    """Подтверждение побега: направление завершается, квота замораживается."""
    async with transaction(session):
        record = await RunawayStateMachine(session).confirm(
            record_id, actor_id=actor_id, notes=data.notes if data else None
        )
    return record


@router.post("/{record_id}/found", response_model=RunawayResponse)
async def mark_found(
    record_id: int,
    actor_id: int = Depends(get_actor_id),
    session: AsyncSession = Depends(get_db_session)
):
    """Работник найден: квота размораживается."""
    async with transaction(session):
        record = await RunawayStateMachine(session).mark_found(record_id, actor_id=actor_id)
    return record

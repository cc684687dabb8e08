"""
API роутер для разрешений на трудоустройство
"""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database.session import get_db_session, transaction
from apps.api.dependencies import get_actor_id
from apps.api.schemas import PermitCreate, PermitResponse, PermitExpiryResponse, ErrorResponse
from shared.services.deployment_coordinator import DeploymentCoordinator
from shared.services.permit_state_machine import PermitStateMachine

router = APIRouter(
    prefix="/deployments/{deployment_id}/permits",
    tags=["permits"],
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)


@router.post("", response_model=PermitResponse, status_code=status.HTTP_201_CREATED)
async def issue_permit(
    deployment_id: int,
    data: PermitCreate,
    actor_id: int = Depends(get_actor_id),
    session: AsyncSession = Depends(get_db_session)
):
    """Выдача разрешения (первичное, продление или переоформление)."""
    async with transaction(session):
        permit = await PermitStateMachine(session).issue_permit(
            deployment_id,
            data.type,
            data.permit_number,
            data.issue_date,
            data.expiry_date,
            actor_id=actor_id,
            fee_amount=data.fee_amount,
            receipt_number=data.receipt_number,
            application_date=data.application_date,
        )
    return permit


@router.get("", response_model=List[PermitResponse])
async def get_permit_history(
    deployment_id: int,
    session: AsyncSession = Depends(get_db_session)
):
    """История разрешений направления."""
    await DeploymentCoordinator(session).get_deployment(deployment_id)
    return await PermitStateMachine(session).get_permit_history(deployment_id)


@router.get("/check", response_model=PermitExpiryResponse, response_model_exclude_none=True)
async def check_permit_expiry(
    deployment_id: int,
    today: Optional[date] = Query(None, description="Дата отсчёта (по умолчанию сегодня)"),
    session: AsyncSession = Depends(get_db_session)
):
    """Проверка срока действия текущего разрешения."""
    await DeploymentCoordinator(session).get_deployment(deployment_id)
    return await PermitStateMachine(session).check_expiry(deployment_id, today=today)

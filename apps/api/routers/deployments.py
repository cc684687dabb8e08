"""
API роутер для размещения и завершения направлений
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database.session import get_db_session, transaction
from apps.api.dependencies import get_actor_id
from apps.api.schemas import DeploymentCreate, DeploymentTerminate, DeploymentResponse, ErrorResponse
from shared.services.deployment_coordinator import DeploymentCoordinator

router = APIRouter(
    prefix="/deployments",
    tags=["deployments"],
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)


@router.post("", response_model=DeploymentResponse, status_code=status.HTTP_201_CREATED)
async def create_deployment(
    data: DeploymentCreate,
    actor_id: int = Depends(get_actor_id),
    session: AsyncSession = Depends(get_db_session)
):
    """Размещение работника (с проверкой квоты письма о найме)."""
    async with transaction(session):
        deployment = await DeploymentCoordinator(session).create_deployment(
            data.worker_id,
            data.employer_id,
            data.start_date,
            actor_id=actor_id,
            recruitment_letter_id=data.recruitment_letter_id,
            entry_permit_id=data.entry_permit_id,
            source_type=data.source_type,
            status=data.status,
            job_type=data.job_type,
        )
    return deployment


@router.get("/{deployment_id}", response_model=DeploymentResponse)
async def get_deployment(
    deployment_id: int,
    session: AsyncSession = Depends(get_db_session)
):
    """Получение направления по ID."""
    return await DeploymentCoordinator(session).get_deployment(deployment_id)


@router.post("/{deployment_id}/terminate", response_model=DeploymentResponse)
async def terminate_deployment(
    deployment_id: int,
    data: DeploymentTerminate,
    actor_id: int = Depends(get_actor_id),
    session: AsyncSession = Depends(get_db_session)
):
    """Завершение направления с пересчётом квоты."""
    async with transaction(session):
        deployment = await DeploymentCoordinator(session).terminate_deployment(
            deployment_id,
            data.reason,
            data.end_date,
            actor_id=actor_id,
            notes=data.notes,
        )
    return deployment


@router.post("/{deployment_id}/reactivate", response_model=DeploymentResponse)
async def reactivate_deployment(
    deployment_id: int,
    actor_id: int = Depends(get_actor_id),
    session: AsyncSession = Depends(get_db_session)
):
    """Реактивация завершённого направления (после того как работник найден)."""
    async with transaction(session):
        deployment = await DeploymentCoordinator(session).reactivate_deployment(
            deployment_id, actor_id=actor_id
        )
    return deployment

"""
API роутер для квот писем о найме
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.database.session import get_db_session, transaction
from apps.api.dependencies import get_actor_id
from apps.api.schemas import QuotaSummaryResponse, QuotaRecalculateResponse, ErrorResponse
from core.logging.logger import logger
from shared.services.quota_ledger import QuotaLedger

router = APIRouter(
    prefix="/recruitment-letters",
    tags=["recruitment-letters"],
    responses={404: {"model": ErrorResponse}},
)


@router.get("/{letter_id}/quota", response_model=QuotaSummaryResponse)
async def get_quota_summary(
    letter_id: int,
    session: AsyncSession = Depends(get_db_session)
):
    """Сводка использования квоты письма."""
    return await QuotaLedger().get_usage_summary(letter_id, session)


@router.post("/{letter_id}/recalculate", response_model=QuotaRecalculateResponse)
async def recalculate_quota(
    letter_id: int,
    actor_id: int = Depends(get_actor_id),
    session: AsyncSession = Depends(get_db_session)
):
    """Принудительный пересчёт кэша used_quota."""
    async with transaction(session):
        used_quota = await QuotaLedger().recalculate_usage(letter_id, session)
    logger.info("Quota recalculation requested", letter_id=letter_id, actor_id=actor_id)
    return QuotaRecalculateResponse(letter_id=letter_id, used_quota=used_quota)

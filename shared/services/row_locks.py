"""Пессимистичные блокировки строк (SELECT ... FOR UPDATE)."""

from typing import Type, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import NotFoundError

ModelT = TypeVar("ModelT")


async def lock_for_update(session: AsyncSession, model: Type[ModelT], entity_id: int) -> ModelT:
    """
    Блокирует строку сущности до конца текущей транзакции и перечитывает её.

    Конкурирующие транзакции, запрашивающие ту же блокировку, ждут commit/rollback
    держателя. populate_existing обновляет объект в identity map, чтобы после
    ожидания блокировки видеть зафиксированные чужие изменения.

    Raises:
        NotFoundError: строки нет
    """
    query = (
        select(model)
        .where(model.id == entity_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    result = await session.execute(query)
    instance = result.scalar_one_or_none()
    if instance is None:
        raise NotFoundError(model.__name__, entity_id)
    return instance

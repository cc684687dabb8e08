"""
Зависимости FastAPI для API MigrantDesk
"""
from fastapi import Header


async def get_actor_id(
    x_actor_id: int = Header(..., alias="X-Actor-Id", gt=0, description="ID пользователя, выполняющего операцию")
) -> int:
    """ID пользователя из заголовка X-Actor-Id.

    Аутентификация выполняется внешним шлюзом; сюда приходит уже проверенный ID.
    """
    return x_actor_id

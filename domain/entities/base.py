"""
Базовый файл для всех доменных сущностей
Решает проблему циклических импортов
"""

import enum
from datetime import datetime, timezone
from typing import Type

from sqlalchemy import Enum
from sqlalchemy.orm import declarative_base

# Создаем общую Base для всех моделей
Base = declarative_base()


def utcnow() -> datetime:
    """Текущее время в UTC (значение по умолчанию для created_at/updated_at)."""
    return datetime.now(timezone.utc)


def enum_column(enum_cls: Type[enum.Enum], length: int = 32) -> Enum:
    """Тип колонки для строкового перечисления: хранит value, без native ENUM."""
    return Enum(
        enum_cls,
        native_enum=False,
        length=length,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )

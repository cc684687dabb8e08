#!/usr/bin/env python3
"""Скрипт для применения миграций MigrantDesk."""

import sys
from alembic import command
from alembic.config import Config

from core.config.settings import settings
from core.logging.logger import logger, setup_logging


def apply_migrations(database_url: str = None):
    """Применяет миграции к базе данных."""
    database_url = database_url or settings.database_url

    # Создаем конфигурацию Alembic
    alembic_cfg = Config("alembic.ini")
    alembic_cfg.set_main_option("sqlalchemy.url", database_url)

    logger.info("Applying migrations", environment=settings.environment)

    try:
        command.upgrade(alembic_cfg, "head")
        command.current(alembic_cfg)
    except Exception as e:
        logger.error("Migration failed", error=str(e))
        sys.exit(1)

    logger.info("Migrations applied")


if __name__ == "__main__":
    setup_logging(log_format="text")
    apply_migrations(sys.argv[1] if len(sys.argv) > 1 else None)

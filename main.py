#!/usr/bin/env python3
"""
Запуск API MigrantDesk
"""

import uvicorn

from core.config.settings import settings, validate_settings
from core.logging.logger import logger, setup_logging


def main():
    """Основная функция запуска API."""
    setup_logging()
    validate_settings()

    logger.info(
        "Starting API server",
        app=settings.app_name,
        environment=settings.environment,
        host=settings.api_host,
        port=settings.api_port
    )

    uvicorn.run(
        "apps.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_config=None,
    )


if __name__ == "__main__":
    main()

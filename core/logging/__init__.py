"""
Модуль логирования MigrantDesk
"""

from .logger import logger, StructuredLogger, JSONFormatter, TextFormatter, setup_logging

__all__ = ["logger", "StructuredLogger", "JSONFormatter", "TextFormatter", "setup_logging"]

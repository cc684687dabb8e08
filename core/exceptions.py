"""Типизированные ошибки движка квот и разрешений.

Ядро только выбрасывает исключения; перевод в HTTP-коды выполняется
исключительно в apps/api/app.py.
"""

from typing import Any, Dict, Optional


class AppError(Exception):
    """Базовая бизнес-ошибка с кодом и HTTP-статусом."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationError(AppError):
    """Некорректные входные данные (400)."""

    code = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(AppError):
    """Сущность не найдена (404)."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, identifier: Any = None):
        message = (
            f"{resource} with identifier '{identifier}' not found"
            if identifier is not None
            else f"{resource} not found"
        )
        super().__init__(message, {"resource": resource, "identifier": identifier})
        self.resource = resource
        self.identifier = identifier


class QuotaExceededError(AppError):
    """Квота письма о найме исчерпана, в том числе по полу (409)."""

    code = "QUOTA_EXCEEDED"
    status_code = 409

    def __init__(
        self,
        letter_number: str,
        approved_quota: int,
        usage: int,
        is_circular: bool,
        gender: Optional[str] = None,
    ):
        if gender:
            message = (
                f"{gender.capitalize()} quota exceeded for recruitment letter {letter_number}"
                f" - Approved: {approved_quota}, Used: {usage}"
            )
        else:
            message = (
                f"Quota exceeded for recruitment letter {letter_number}"
                f" - Approved: {approved_quota}, Used: {usage}"
            )
        details = {
            "letter_number": letter_number,
            "approved_quota": approved_quota,
            "usage": usage,
            "is_circular": is_circular,
        }
        if gender:
            details["gender"] = gender
        super().__init__(message, details)
        self.letter_number = letter_number
        self.approved_quota = approved_quota
        self.usage = usage
        self.is_circular = is_circular
        self.gender = gender


class BusinessRuleError(AppError):
    """Нарушено правило конечного автомата или бизнес-ограничение (422)."""

    code = "BUSINESS_RULE_VIOLATION"
    status_code = 422


class PreconditionError(RuntimeError):
    """Неверное использование API ядра (например, вызов вне транзакции).

    Это ошибка программиста, а не бизнес-исход: не наследуется от AppError
    и отдаётся клиенту как 500.
    """

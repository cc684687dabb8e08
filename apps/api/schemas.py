"""
Схемы Pydantic для API MigrantDesk
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Any, Dict, Optional
from datetime import date, datetime
from decimal import Decimal

from domain.entities.deployment import DeploymentStatus, ServiceStatus, SourceType
from domain.entities.employment_permit import PermitStatus, PermitType
from domain.entities.runaway_record import RunawayStatus


def _strip_required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Значение не может быть пустым")
    return v


# --- Направления ---

class DeploymentCreate(BaseModel):
    """Схема для размещения работника."""
    worker_id: int = Field(..., gt=0, description="ID работника")
    employer_id: int = Field(..., gt=0, description="ID работодателя")
    start_date: date = Field(..., description="Дата начала работы")
    recruitment_letter_id: Optional[int] = Field(None, gt=0, description="ID письма о найме")
    entry_permit_id: Optional[int] = Field(None, gt=0, description="ID разрешения на въезд")
    source_type: SourceType = Field(SourceType.DIRECT_HIRING, description="Источник найма")
    status: DeploymentStatus = Field(DeploymentStatus.ACTIVE, description="Начальный статус")
    job_type: Optional[str] = Field(None, max_length=64, description="Вид работ")

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        """Новое направление создаётся только в pending или active."""
        if v not in (DeploymentStatus.PENDING, DeploymentStatus.ACTIVE):
            raise ValueError("Начальный статус должен быть pending или active")
        return v


class DeploymentTerminate(BaseModel):
    """Схема для завершения направления."""
    reason: str = Field(..., min_length=1, max_length=64, description="Код причины завершения")
    end_date: date = Field(..., description="Дата окончания")
    notes: Optional[str] = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, v):
        return _strip_required(v)


class DeploymentResponse(BaseModel):
    """Схема для ответа с направлением."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    worker_id: int
    employer_id: int
    recruitment_letter_id: Optional[int] = None
    entry_permit_id: Optional[int] = None
    source_type: SourceType
    status: DeploymentStatus
    service_status: ServiceStatus
    job_type: Optional[str] = None
    start_date: date
    end_date: Optional[date] = None
    termination_reason: Optional[str] = None
    termination_notes: Optional[str] = None
    created_by: int
    updated_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime


# --- Разрешения на трудоустройство ---

class PermitCreate(BaseModel):
    """Схема для выдачи разрешения."""
    type: PermitType = Field(..., description="INITIAL | EXTENSION | REISSUE")
    permit_number: str = Field(..., min_length=1, max_length=100, description="Номер разрешения")
    issue_date: date
    expiry_date: date
    fee_amount: Optional[Decimal] = Field(None, ge=0, description="Сумма пошлины")
    receipt_number: Optional[str] = Field(None, max_length=100)
    application_date: Optional[date] = None

    @field_validator('permit_number')
    @classmethod
    def validate_permit_number(cls, v):
        return _strip_required(v)

    @model_validator(mode='after')
    def validate_dates(self):
        """Дата окончания должна быть позже даты выдачи."""
        if self.expiry_date <= self.issue_date:
            raise ValueError("Дата окончания должна быть позже даты выдачи")
        return self


class PermitResponse(BaseModel):
    """Схема для ответа с разрешением."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    deployment_id: int
    permit_number: str
    type: PermitType
    status: PermitStatus
    issue_date: date
    expiry_date: date
    receipt_number: Optional[str] = None
    application_date: Optional[date] = None
    fee_amount: Optional[Decimal] = None
    replaced_by_id: Optional[int] = None
    created_by: int
    created_at: datetime


class PermitExpiryResponse(BaseModel):
    """Срок действия текущего разрешения."""
    status: str
    permit_number: Optional[str] = None
    expiry_date: Optional[date] = None
    days_until_expiry: Optional[int] = None
    can_extend: Optional[bool] = None
    is_urgent: Optional[bool] = None
    is_expired: Optional[bool] = None


# --- Инциденты пропажи ---

class RunawayReport(BaseModel):
    """Схема для внутреннего отчёта о пропаже."""
    deployment_id: int = Field(..., gt=0)
    missing_date: date
    three_day_countdown_start: Optional[date] = None
    notes: Optional[str] = None


class RunawayNotification(BaseModel):
    """Схема для подачи уведомления органам."""
    notification_date: date
    notification_number: str = Field(..., min_length=1, max_length=100)
    notes: Optional[str] = None

    @field_validator('notification_number')
    @classmethod
    def validate_notification_number(cls, v):
        return _strip_required(v)


class RunawayConfirm(BaseModel):
    """Схема для подтверждения побега."""
    notes: Optional[str] = None


class RunawayResponse(BaseModel):
    """Схема для ответа с инцидентом."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    deployment_id: int
    status: RunawayStatus
    missing_date: date
    three_day_countdown_start: Optional[date] = None
    report_date: datetime
    notification_date: Optional[date] = None
    notification_number: Optional[str] = None
    is_quota_frozen: bool
    notes: Optional[str] = None
    created_by: int
    updated_by: Optional[int] = None


# --- Квоты ---

class QuotaSummaryResponse(BaseModel):
    """Сводка по квоте письма о найме."""
    letter_id: int
    letter_number: str
    employer_id: int
    is_circular: bool
    approved_quota: int
    used_quota: int
    cached_used_quota: int
    cache_in_sync: bool
    remaining_quota: int
    quota_male: int
    male_usage: int
    quota_female: int
    female_usage: int


class QuotaRecalculateResponse(BaseModel):
    """Результат пересчёта кэша квоты."""
    letter_id: int
    used_quota: int


class ErrorResponse(BaseModel):
    """Схема для ответа с ошибкой."""
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)

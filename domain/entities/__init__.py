"""
Модуль доменных сущностей MigrantDesk
"""

# Импортируем модели в правильном порядке
from .base import Base
from .employer import Employer
from .worker import Worker, Gender
from .recruitment_letter import RecruitmentLetter
from .entry_permit import EntryPermit
from .deployment import (
    Deployment,
    DeploymentStatus,
    ServiceStatus,
    SourceType,
    TerminationReason,
    OPEN_DEPLOYMENT_STATUSES,
)
from .employment_permit import EmploymentPermit, PermitType, PermitStatus
from .runaway_record import RunawayRecord, RunawayStatus, OPEN_RUNAWAY_STATUSES

__all__ = [
    "Base",
    "Employer",
    "Worker",
    "Gender",
    "RecruitmentLetter",
    "EntryPermit",
    "Deployment",
    "DeploymentStatus",
    "ServiceStatus",
    "SourceType",
    "TerminationReason",
    "OPEN_DEPLOYMENT_STATUSES",
    "EmploymentPermit",
    "PermitType",
    "PermitStatus",
    "RunawayRecord",
    "RunawayStatus",
    "OPEN_RUNAWAY_STATUSES",
]

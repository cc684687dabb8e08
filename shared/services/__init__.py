"""Shared services package."""

from .quota_ledger import QuotaLedger
from .permit_state_machine import PermitStateMachine
from .runaway_state_machine import RunawayStateMachine
from .deployment_coordinator import DeploymentCoordinator, map_termination_reason

__all__ = [
    'QuotaLedger',
    'PermitStateMachine',
    'RunawayStateMachine',
    'DeploymentCoordinator',
    'map_termination_reason'
]

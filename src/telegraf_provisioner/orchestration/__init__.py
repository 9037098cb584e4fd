"""Remote provisioning and backup flows."""
from .provision import (
    Diagnostic,
    ProvisionResult,
    ProvisionStage,
    ProvisioningOrchestrator,
    send_and_restart,
)
from .backup import BackupOrchestrator

__all__ = [
    "Diagnostic",
    "ProvisionResult",
    "ProvisionStage",
    "ProvisioningOrchestrator",
    "send_and_restart",
    "BackupOrchestrator",
]

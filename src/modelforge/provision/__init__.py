"""Directory provisioning and the update-from-local pipeline."""

from modelforge.provision.directory import (
    DirectoryProvisioner,
    ProvisionReport,
    StepResult,
    resolve_inside,
)
from modelforge.provision.pipeline import (
    ErrorCode,
    ProvisioningPipeline,
    ProvisionResponse,
    ResponseError,
    UpdateFromLocalRequest,
)

__all__ = [
    "DirectoryProvisioner",
    "ErrorCode",
    "ProvisionReport",
    "ProvisionResponse",
    "ProvisioningPipeline",
    "ResponseError",
    "StepResult",
    "UpdateFromLocalRequest",
    "resolve_inside",
]

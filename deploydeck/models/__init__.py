"""Import all models so SQLModel.metadata picks them up."""

from deploydeck.models.kv import KeyValue
from deploydeck.models.resources import (
    Deployment,
    DeploymentState,
    DeploymentTarget,
    DNSRecord,
    DNSRecordCreate,
    Domain,
    EnvVariable,
    EnvVariableType,
    Page,
    Pagination,
    Project,
    Team,
    User,
)

__all__ = [
    "DNSRecord",
    "DNSRecordCreate",
    "Deployment",
    "DeploymentState",
    "DeploymentTarget",
    "Domain",
    "EnvVariable",
    "EnvVariableType",
    "KeyValue",
    "Page",
    "Pagination",
    "Project",
    "Team",
    "User",
]

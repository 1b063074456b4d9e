"""
Persisted store for compiled campaigns and deployment progress.
"""
from .database import CampaignStore
from .records import (
    CampaignRecord,
    ClaimantRecord,
    CohortRecord,
    CompletionRecord,
    DeploymentStatus,
    VaultRecord,
)
from .schema import OBSERVED_MARKER

__all__ = [
    "CampaignStore",
    "CampaignRecord",
    "ClaimantRecord",
    "CohortRecord",
    "CompletionRecord",
    "DeploymentStatus",
    "OBSERVED_MARKER",
    "VaultRecord",
]

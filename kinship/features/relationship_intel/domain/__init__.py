"""
Domain subpackage for the relationship intelligence feature.
"""

from .models import (
    STATUS_COMPLETED,
    STATUS_ERROR,
    STATUS_RUNNING,
    TIER_FULL,
    TIER_METADATA,
    TIER_SUMMARY,
    CommunicationRecord,
    DormantRelationship,
    NormalizedKey,
    OutboundPage,
    OutboundRecord,
    ProcessingCheckpoint,
    Relationship,
    RelationshipScore,
    RunStatus,
    ScoreInput,
    StorageTier,
)

__all__ = [
    "STATUS_COMPLETED",
    "STATUS_ERROR",
    "STATUS_RUNNING",
    "TIER_FULL",
    "TIER_METADATA",
    "TIER_SUMMARY",
    "CommunicationRecord",
    "DormantRelationship",
    "NormalizedKey",
    "OutboundPage",
    "OutboundRecord",
    "ProcessingCheckpoint",
    "Relationship",
    "RelationshipScore",
    "RunStatus",
    "ScoreInput",
    "StorageTier",
]

"""
Scoring stage: recency, frequency and consistency points per relationship.
"""

from .service import (
    ScoringResult,
    ScoringService,
    consistency_points,
    frequency_points,
    recency_points,
    score_relationship,
    scoring_service,
    whole_days_between,
)

__all__ = [
    "ScoringResult",
    "ScoringService",
    "consistency_points",
    "frequency_points",
    "recency_points",
    "score_relationship",
    "scoring_service",
    "whole_days_between",
]

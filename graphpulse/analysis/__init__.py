"""Post-clustering analysis: anomalies and community trends."""

from .anomalies import AnomalyDetector, GraphAnomaly
from .trends import CommunityTrendSummary, TrendPredictor, linear_decay

__all__ = [
    "AnomalyDetector",
    "CommunityTrendSummary",
    "GraphAnomaly",
    "TrendPredictor",
    "linear_decay",
]

"""graphpulse: time-decayed social graph snapshots and community analytics."""

from .service import GraphClusteringOutcome, GraphClusteringService, GraphDataSource

__all__ = ["GraphClusteringOutcome", "GraphClusteringService", "GraphDataSource"]

__version__ = "0.1.0"

"""
Clawg Services
Core business logic with NO HTTP dependencies.
"""

from .snapshots import SnapshotService
from .tokens import TokenService
from .analytics import AnalyticsService
from .signal import SignalService
from .jobs import BatchJobs

__all__ = [
    'SnapshotService',
    'TokenService',
    'AnalyticsService',
    'SignalService',
    'BatchJobs',
]

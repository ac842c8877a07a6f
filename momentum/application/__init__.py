"""Application services."""

from .lifecycle import Fulfilled, Rejected, RequestLifecycleTracker, Settlement
from .service import MemberDetail, MomentumService
from .store import DomainStore

__all__ = [
    "DomainStore",
    "Fulfilled",
    "MemberDetail",
    "MomentumService",
    "Rejected",
    "RequestLifecycleTracker",
    "Settlement",
]

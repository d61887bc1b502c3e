from drc.models.cache import CacheEntry
from drc.models.disaster import (
    Base,
    Disaster,
    Report,
    Resource,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_REJECTED,
)

__all__ = [
    "Base", "CacheEntry", "Disaster", "Report", "Resource",
    "STATUS_PENDING", "STATUS_APPROVED", "STATUS_REJECTED",
]

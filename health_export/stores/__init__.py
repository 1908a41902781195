from .apple_export import AppleExportStore
from .base import AnchoredObjectQuery, HealthStore, QueryAnchor, SamplePredicate
from .memory import MemoryStore

__all__ = [
    "AnchoredObjectQuery",
    "AppleExportStore",
    "HealthStore",
    "MemoryStore",
    "QueryAnchor",
    "SamplePredicate",
]

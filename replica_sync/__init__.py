"""One-way periodic mirroring of a source folder onto a replica folder."""

from .errors import ConfigError, OverlappingRootsError, ReplicaSyncError
from .reconciler import PassResult, PassStats, TreeReconciler

__version__ = "1.0.0"

__all__ = [
    "ConfigError",
    "OverlappingRootsError",
    "PassResult",
    "PassStats",
    "ReplicaSyncError",
    "TreeReconciler",
]

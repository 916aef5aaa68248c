from .database import DatabaseFeatureBackend
from .memory import MemoryFeatureBackend

__all__ = ["DatabaseFeatureBackend", "MemoryFeatureBackend"]

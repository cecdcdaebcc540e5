from affect_engine.storage.base import BaselineStore, ModelStore
from affect_engine.storage.memory import InMemoryBaselineStore, InMemoryModelStore

__all__ = [
    "BaselineStore",
    "InMemoryBaselineStore",
    "InMemoryModelStore",
    "ModelStore",
]

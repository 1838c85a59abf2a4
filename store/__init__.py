#Marks store as a package.
#Persistence adapters for the dispatch pipeline.

from .memory import InMemoryDispatchStore, StoreStats

__all__ = ["InMemoryDispatchStore", "StoreStats"]

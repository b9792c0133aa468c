from .json_store import JsonProgressStore
from .jsonl import CONTENT_FILES, JsonlContentRepository
from .memory import InMemoryContentRepository, InMemoryProgressStore

__all__ = [
    "CONTENT_FILES",
    "InMemoryContentRepository",
    "InMemoryProgressStore",
    "JsonProgressStore",
    "JsonlContentRepository",
]

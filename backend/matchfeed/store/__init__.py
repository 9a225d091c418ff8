"""Storage backends for profiles, blocks, posts and feed items.

``get_store()`` returns the process-wide store selected by ``STORE_BACKEND``;
tests swap in a fresh ``MemoryStore`` via ``set_store``.
"""

from __future__ import annotations

from typing import Optional, Union

from matchfeed.settings import settings
from matchfeed.store.memory import MemoryStore
from matchfeed.store.postgres import PostgresStore

Store = Union[MemoryStore, PostgresStore]

_store: Optional[Store] = None


def get_store() -> Store:
	global _store
	if _store is None:
		_store = MemoryStore() if settings.uses_memory_store() else PostgresStore()
	return _store


def set_store(store: Optional[Store]) -> None:
	global _store
	_store = store


__all__ = ["MemoryStore", "PostgresStore", "Store", "get_store", "set_store"]

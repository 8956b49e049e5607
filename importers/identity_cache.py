"""
Identity cache for destination entities resolved during an import run.

Maps a natural key (account name, group name) to the entity that exists in
the destination team, so each key is looked up or created at most once.
"""

import logging
from typing import Dict, Generic, Optional, TypeVar

logger = logging.getLogger('kibela_importer.importers.identity_cache')

T = TypeVar('T')


class IdentityCache(Generic[T]):
    """Read-through mapping of natural key -> destination entity."""

    def __init__(self, kind: str, logger: Optional[logging.Logger] = None):
        """
        Initialize the cache.

        Args:
            kind: Entity kind stored here ('author', 'group'), used in logs
            logger: Optional logger instance (defaults to module logger)
        """
        self.kind = kind
        self.logger = logger or logging.getLogger('kibela_importer.importers.identity_cache')
        self._entries: Dict[str, T] = {}
        self.stats = {
            'hits': 0,
            'misses': 0,
            'stored': 0
        }

        self.logger.debug(f"Initialized {kind} cache")

    def get(self, key: str) -> Optional[T]:
        """
        Return the cached entity for ``key``.

        Args:
            key: Natural key

        Returns:
            Cached entity or None on miss
        """
        entity = self._entries.get(key)
        if entity is None:
            self.stats['misses'] += 1
        else:
            self.stats['hits'] += 1
        return entity

    def put(self, key: str, entity: T) -> T:
        """
        Store ``entity`` under ``key`` unless the key is already populated.

        Returns:
            The entity held by the cache for ``key`` afterwards
        """
        existing = self._entries.get(key)
        if existing is not None:
            self.logger.warning(f"{self.kind} '{key}' already cached, keeping the first entity")
            return existing

        self._entries[key] = entity
        self.stats['stored'] += 1
        self.logger.debug(f"{self.kind} cached: {key}")
        return entity

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get_statistics(self) -> Dict[str, int]:
        """Get cache statistics."""
        return {
            'entries': len(self._entries),
            **self.stats
        }

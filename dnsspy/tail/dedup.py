"""
Duplicate suppression across overlapping query windows
"""

import logging
from typing import Dict

logger = logging.getLogger(__name__)


class Deduplicator:
    """
    Remembers the identities of recently emitted records.

    Each identity is stored with the record timestamp so that entries can be
    evicted once the query window has moved past them. Memory is bounded by
    the number of records inside the overlap, not by session length.
    """

    def __init__(self):
        self._seen: Dict[str, int] = {}

    def should_emit(self, identity: str, timestamp: int) -> bool:
        """
        Mark ``identity`` as seen

        Returns:
            False if the identity was already seen since it was last evicted
        """
        if identity in self._seen:
            return False
        self._seen[identity] = timestamp
        return True

    def evict_before(self, instant: int) -> int:
        """
        Forget identities whose timestamp is strictly before ``instant``

        Returns:
            Number of identities evicted
        """
        stale = [identity for identity, timestamp in self._seen.items() if timestamp < instant]
        for identity in stale:
            del self._seen[identity]
        if stale:
            logger.debug(f"Evicted {len(stale)} identities older than {instant}, {len(self._seen)} remaining")
        return len(stale)

    def __contains__(self, identity: str) -> bool:
        return identity in self._seen

    def __len__(self) -> int:
        return len(self._seen)

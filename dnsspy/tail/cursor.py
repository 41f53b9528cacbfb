"""
Engine-internal polling position
"""

from dataclasses import dataclass, field
from typing import Optional

from .dedup import Deduplicator


@dataclass
class Cursor:
    """
    Where the next query starts.

    Mutated only by the tail engine's polling loop. ``next_window_start`` never
    decreases; ``advance`` enforces it.
    """
    next_window_start: int
    next_token: Optional[str] = None
    seen: Deduplicator = field(default_factory=Deduplicator)

    def advance(self, instant: int) -> int:
        """Move the lower bound forward to ``instant``; earlier instants are ignored"""
        if instant > self.next_window_start:
            self.next_window_start = instant
        self.next_token = None
        return self.next_window_start

"""
Per-compile tracking of dialog keys written by more than one source
"""

import logging
from typing import Dict, List, Optional

from .language import Conflict, Language
from .sources import BOUNDARY_KEY

logger = logging.getLogger(__name__)

UNKNOWN_SOURCE = "?!?!?!"


class ConflictTracker:
    """Counts writes per key and remembers which source wrote it last"""

    def __init__(self):
        self.read_count: Dict[str, int] = {}
        self.line_sources: Dict[str, str] = {}
        self.conflicts: List[Conflict] = []

    def set_item(self, language: Language, key: str, value: str, origin: Optional[str]) -> Optional[Conflict]:
        """
        Store a dialog value, last write wins.

        Writes with no origin (synthetic lines, insert resolution) and writes
        of the boundary key are stored without being counted. Returns the
        conflict recorded by this write, if any.
        """
        conflict = None

        if origin and key != BOUNDARY_KEY:
            if key not in self.read_count:
                # A value stored by an untracked write still counts as the first one
                self.read_count[key] = 1 if key in language.raw else 0
            self.read_count[key] += 1
            count = self.read_count[key]

            previous = self.line_sources.get(key, UNKNOWN_SOURCE)
            self.line_sources[key] = origin

            if count >= 2:
                conflict = Conflict(
                    key=key,
                    language_id=language.id,
                    previous_source=previous,
                    source=origin,
                    count=count,
                )
                self.conflicts.append(conflict)
                logger.warning(conflict.message)

        language.raw[key] = value
        return conflict

    def source_of(self, key: str) -> Optional[str]:
        return self.line_sources.get(key)

    def conflicted_keys(self) -> List[str]:
        return sorted({c.key for c in self.conflicts})

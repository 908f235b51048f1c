"""
Dialog database classes
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


def _both_nan(a: Any, b: Any) -> bool:
    return isinstance(a, float) and isinstance(b, float) and math.isnan(a) and math.isnan(b)


@dataclass
class Conflict:
    """A dialog key written more than once while merging sources"""

    key: str
    language_id: str
    previous_source: str
    source: str
    count: int = 2

    @property
    def message(self) -> str:
        return f"Conflict for dialog key {self.language_id}/{self.key} ({self.previous_source} vs {self.source})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "language": self.language_id,
            "previous_source": self.previous_source,
            "source": self.source,
            "count": self.count,
        }


@dataclass
class Language:
    """A compiled dialog file: metadata plus raw and cleaned text per key"""

    id: str = ""
    label: str = ""
    icon_path: str = ""
    icon: Any = None  # Opaque handle from the texture factory, never persisted
    order: int = 0
    font_face: str = ""
    font_face_size: float = 0.0
    split_regex: str = ""
    comma_characters: str = ""
    period_characters: str = ""
    lines: int = 0
    words: int = 0
    file_path: str = ""
    raw: Dict[str, str] = field(default_factory=dict)
    cleaned: Dict[str, str] = field(default_factory=dict)

    # Fields written to and read from the binary cache, in cache order
    PERSISTED_FIELDS = (
        "id",
        "label",
        "icon_path",
        "order",
        "font_face",
        "font_face_size",
        "split_regex",
        "comma_characters",
        "period_characters",
        "lines",
        "words",
    )

    def has(self, key: str) -> bool:
        return key in self.cleaned

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Render-ready text for a key"""
        return self.cleaned.get(key, default)

    @property
    def is_empty(self) -> bool:
        """True when no source contributed a single dialog key"""
        return not self.raw

    def same_content(self, other: "Language") -> bool:
        """
        Compare every persisted field and every (key, raw, cleaned) triple.

        Key order is ignored, as is anything the cache does not carry
        (file_path, icon handle).
        """
        for name in self.PERSISTED_FIELDS:
            mine, theirs = getattr(self, name), getattr(other, name)
            if mine != theirs and not _both_nan(mine, theirs):
                return False
        return self.raw == other.raw and self.cleaned == other.cleaned

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        data = {name: getattr(self, name) for name in self.PERSISTED_FIELDS}
        data["file_path"] = self.file_path
        data["raw"] = dict(self.raw)
        data["cleaned"] = dict(self.cleaned)
        return data

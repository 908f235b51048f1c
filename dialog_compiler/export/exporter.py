"""
Export compiled languages to various formats
"""

import csv
import json
from pathlib import Path
from typing import Iterable, Optional

from ..parser.language import Conflict, Language
from .cache import save_cache


class LanguageExporter:
    """Export a compiled language to various formats"""

    FORMATS = ("cache", "json", "csv")

    def export(self, language: Language, output_path: Path, fmt: str = "cache", conflicts: Iterable[Conflict] = ()):
        if fmt == "cache":
            return self.export_to_cache(language, output_path)
        if fmt == "json":
            return self.export_to_json(language, output_path, conflicts)
        if fmt == "csv":
            return self.export_to_csv(language, output_path)
        raise ValueError(f"Unknown export format '{fmt}', expected one of {', '.join(self.FORMATS)}")

    def export_to_cache(self, language: Language, output_path: Path) -> Path:
        """Export to the binary cache loaded by load_cache"""
        return save_cache(language, output_path)

    def export_to_json(
        self, language: Language, output_path: Path, conflicts: Optional[Iterable[Conflict]] = ()
    ) -> Path:
        """Export to JSON format"""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        data = language.to_dict()
        data["metadata"] = {
            "version": "1.0",
            "key_count": len(language.raw),
            "conflicts": [c.to_dict() for c in conflicts or ()],
        }

        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        return output_path

    def export_to_csv(self, language: Language, output_path: Path) -> Path:
        """Export key, raw and cleaned text as one row per key"""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, "w", newline="", encoding="utf-8") as csvfile:
            writer = csv.DictWriter(csvfile, fieldnames=["Key", "Raw", "Cleaned"])
            writer.writeheader()
            for key, raw in language.raw.items():
                writer.writerow({"Key": key, "Raw": raw, "Cleaned": language.cleaned.get(key, raw)})
        return output_path

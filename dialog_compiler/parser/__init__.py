"""
Dialog source compiler: line sources, parser, conflicts and markup
"""

from .conflicts import ConflictTracker
from .errors import CacheFormatError, CyclicInsertError, DialogCompileError, DialogFormatError
from .language import Conflict, Language
from .markup import MISSING_INSERT, clean_text, resolve_inserts
from .parser import CompileContext, LanguageParser, compile_language
from .sources import (
    BOUNDARY_KEY,
    PRIMARY_SOURCE_NAME,
    Asset,
    ContentRegistry,
    DirectorySource,
    Line,
    MemorySource,
    SourceBoundary,
    ZipSource,
    iter_language_lines,
    language_id_from_path,
)

__all__ = [
    "LanguageParser",
    "CompileContext",
    "compile_language",
    "Language",
    "Conflict",
    "ConflictTracker",
    # Sources
    "Asset",
    "ContentRegistry",
    "DirectorySource",
    "ZipSource",
    "MemorySource",
    "Line",
    "SourceBoundary",
    "iter_language_lines",
    "language_id_from_path",
    "BOUNDARY_KEY",
    "PRIMARY_SOURCE_NAME",
    # Markup
    "resolve_inserts",
    "clean_text",
    "MISSING_INSERT",
    # Errors
    "DialogCompileError",
    "DialogFormatError",
    "CyclicInsertError",
    "CacheFormatError",
]

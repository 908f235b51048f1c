"""
Dialog Compiler - merges dialog text files and their overlays into resolved languages
"""

__version__ = "0.1.0"

from .export import LanguageExporter
from .parser import LanguageParser, compile_language

__all__ = ["LanguageParser", "LanguageExporter", "compile_language"]

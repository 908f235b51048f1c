"""
Language export: binary cache, JSON and CSV
"""

from .cache import decode_language, encode_language, load_cache, read_language, save_cache, write_language
from .exporter import LanguageExporter

__all__ = [
    "LanguageExporter",
    "encode_language",
    "decode_language",
    "write_language",
    "read_language",
    "save_cache",
    "load_cache",
]

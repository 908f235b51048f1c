"""
Binary cache of compiled languages.

Loading a cache skips parsing, overlay merging and insert resolution. Layout,
little-endian:

    string  id
    string  label
    string  icon_path
    int32   order
    string  font_face
    float32 font_face_size
    string  split_regex
    string  comma_characters
    string  period_characters
    int32   lines
    int32   words
    int32   count
    count * (string key, string raw, string cleaned)

Strings are UTF-8 prefixed by their byte length as a 7-bit varint.
"""

import io
import struct
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Callable, Optional, Union

from ..parser.errors import CacheFormatError
from ..parser.language import Language

_INT32 = struct.Struct("<i")
_FLOAT32 = struct.Struct("<f")


def _write_varint(stream: BinaryIO, value: int):
    while value >= 0x80:
        stream.write(bytes([(value & 0x7F) | 0x80]))
        value >>= 7
    stream.write(bytes([value]))


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise CacheFormatError(f"Unexpected end of language cache (wanted {size} bytes, got {len(data)})")
    return data


def _read_varint(stream: BinaryIO) -> int:
    value = 0
    shift = 0
    while True:
        byte = _read_exact(stream, 1)[0]
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return value
        shift += 7
        if shift > 28:
            raise CacheFormatError("Malformed string length in language cache")


def write_string(stream: BinaryIO, value: str):
    data = (value or "").encode("utf-8")
    _write_varint(stream, len(data))
    stream.write(data)


def read_string(stream: BinaryIO) -> str:
    data = _read_exact(stream, _read_varint(stream))
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise CacheFormatError(f"Invalid UTF-8 string in language cache: {e}") from None


def write_int32(stream: BinaryIO, value: int):
    try:
        stream.write(_INT32.pack(value))
    except struct.error:
        raise CacheFormatError(f"Value does not fit in 32 bits: {value}") from None


def read_int32(stream: BinaryIO) -> int:
    return _INT32.unpack(_read_exact(stream, _INT32.size))[0]


def write_float32(stream: BinaryIO, value: float):
    stream.write(_FLOAT32.pack(value))


def read_float32(stream: BinaryIO) -> float:
    return _FLOAT32.unpack(_read_exact(stream, _FLOAT32.size))[0]


def write_language(language: Language, stream: BinaryIO):
    """Write a compiled language to a binary stream"""
    write_string(stream, language.id)
    write_string(stream, language.label)
    write_string(stream, language.icon_path)
    write_int32(stream, language.order)
    write_string(stream, language.font_face)
    write_float32(stream, language.font_face_size)
    write_string(stream, language.split_regex)
    write_string(stream, language.comma_characters)
    write_string(stream, language.period_characters)
    write_int32(stream, language.lines)
    write_int32(stream, language.words)

    write_int32(stream, len(language.raw))
    for key, raw in language.raw.items():
        write_string(stream, key)
        write_string(stream, raw)
        write_string(stream, language.cleaned.get(key, raw))


def read_language(
    stream: BinaryIO,
    texture_factory: Optional[Callable[[str], object]] = None,
    file_path: str = "",
) -> Language:
    """Read a compiled language written by write_language"""
    language = Language()

    language.id = read_string(stream)
    language.label = read_string(stream)

    language.icon_path = read_string(stream)
    if texture_factory is not None and language.icon_path:
        language.icon = texture_factory(PurePosixPath("Dialog", language.icon_path).as_posix())

    language.order = read_int32(stream)

    language.font_face = read_string(stream)
    language.font_face_size = read_float32(stream)

    language.split_regex = read_string(stream)
    language.comma_characters = read_string(stream)
    language.period_characters = read_string(stream)

    language.lines = read_int32(stream)
    language.words = read_int32(stream)

    count = read_int32(stream)
    if count < 0:
        raise CacheFormatError(f"Negative entry count in language cache: {count}")
    for _ in range(count):
        key = read_string(stream)
        language.raw[key] = read_string(stream)
        language.cleaned[key] = read_string(stream)

    language.file_path = file_path
    return language


def encode_language(language: Language) -> bytes:
    buffer = io.BytesIO()
    write_language(language, buffer)
    return buffer.getvalue()


def decode_language(
    data: bytes,
    texture_factory: Optional[Callable[[str], object]] = None,
    file_path: str = "",
) -> Language:
    return read_language(io.BytesIO(data), texture_factory, file_path)


def save_cache(language: Language, output_path: Union[str, Path]) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    # A language that fails to encode leaves no file behind
    data = encode_language(language)
    with open(output_path, "wb") as f:
        f.write(data)
    return output_path


def load_cache(
    cache_path: Union[str, Path],
    texture_factory: Optional[Callable[[str], object]] = None,
) -> Language:
    """Load a cache file; file_path becomes the cache file name without extension"""
    cache_path = Path(cache_path)
    with open(cache_path, "rb") as f:
        return read_language(f, texture_factory, file_path=cache_path.stem)

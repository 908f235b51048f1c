"""Tests for the binary language cache and the exporters."""

import csv
import io
import json
import struct

import pytest

from dialog_compiler.export import LanguageExporter, decode_language, encode_language, load_cache, save_cache
from dialog_compiler.export.cache import read_string, write_string
from dialog_compiler.parser import CacheFormatError, LanguageParser
from dialog_compiler.parser.language import Language


SAMPLE = """
LANGUAGE=english,English
ICON=english
ORDER=2
FONT=Renogare,64.3
SPLIT_REGEX=(\\s|\\{|\\})
COMMAS=,
PERIODS=.?!
NAME=Madeline
GREETING=
[MADELINE left happy]
Hi, I'm {+NAME}.
Nice to meet you{n}...
"""


@pytest.fixture
def language():
    return LanguageParser().parse_lines(SAMPLE.strip().split('\n'))


class TestStrings:
    """Test length-prefixed strings."""

    def test_short_string(self):
        stream = io.BytesIO()
        write_string(stream, "abc")
        assert stream.getvalue() == b'\x03abc'

    def test_long_string_uses_varint_length(self):
        """Test that lengths of 128 bytes and more take several bytes."""
        stream = io.BytesIO()
        write_string(stream, "x" * 200)
        assert stream.getvalue()[:2] == b'\xc8\x01'
        stream.seek(0)
        assert read_string(stream) == "x" * 200

    def test_length_counts_utf8_bytes(self):
        stream = io.BytesIO()
        write_string(stream, "é")
        assert stream.getvalue() == b'\x02\xc3\xa9'


class TestCache:
    """Test writing and reading whole languages."""

    def test_round_trip(self, language):
        """Test that a decoded cache matches the compiled language."""
        decoded = decode_language(encode_language(language))
        assert decoded.same_content(language)
        assert decoded.raw['GREETING'] == language.raw['GREETING']
        assert decoded.cleaned['GREETING'] == "Hi, I'm Madeline.\nNice to meet you\n..."

    def test_field_order(self):
        """Test the exact byte layout of a small language."""
        lang = Language(id="en", label="E", order=7, font_face_size=1.5, lines=3, words=4)
        lang.raw['K'] = 'v{n}'
        lang.cleaned['K'] = 'v\n'

        expected = b''.join([
            b'\x02en',
            b'\x01E',
            b'\x00',
            struct.pack('<i', 7),
            b'\x00',
            struct.pack('<f', 1.5),
            b'\x00', b'\x00', b'\x00',
            struct.pack('<i', 3),
            struct.pack('<i', 4),
            struct.pack('<i', 1),
            b'\x01K', b'\x04v{n}', b'\x02v\n',
        ])
        assert encode_language(lang) == expected

    def test_icon_handle_is_not_persisted(self, language):
        """Test that the texture is requested again on load."""
        requested = []
        decoded = decode_language(encode_language(language), texture_factory=requested.append)
        assert decoded.icon_path == 'english'
        assert requested == ['Dialog/english']

    def test_texture_factory_skipped_without_icon(self):
        requested = []
        decode_language(encode_language(Language(id="en")), texture_factory=requested.append)
        assert requested == []

    def test_truncated_cache(self, language):
        """Test that a cut-off cache is rejected."""
        data = encode_language(language)
        with pytest.raises(CacheFormatError):
            decode_language(data[:-1])

    def test_empty_cache(self):
        with pytest.raises(CacheFormatError):
            decode_language(b'')

    def test_negative_count(self):
        data = encode_language(Language(id="en"))
        with pytest.raises(CacheFormatError):
            decode_language(data[:-4] + struct.pack('<i', -1))

    def test_order_out_of_range(self):
        with pytest.raises(CacheFormatError):
            encode_language(Language(id="en", order=2 ** 31))

    def test_failed_save_leaves_no_file(self, tmp_path):
        """Test that a language that cannot be encoded is never partly written."""
        path = tmp_path / "English.export"
        with pytest.raises(CacheFormatError):
            save_cache(Language(id="en", lines=2 ** 31), path)
        assert not path.exists()

    def test_nan_font_size_round_trip(self):
        """Test that a NaN font size still compares equal after a round trip."""
        language = LanguageParser().parse_lines(["LANGUAGE=english", "FONT=Renogare,nan", "A=x"])
        decoded = decode_language(encode_language(language))
        assert decoded.same_content(language)

    def test_save_and_load(self, language, tmp_path):
        """Test that a loaded cache takes its file name from the cache file."""
        path = save_cache(language, tmp_path / "out" / "English.export")
        loaded = load_cache(path)
        assert loaded.same_content(language)
        assert loaded.file_path == 'English'


class TestExporter:
    """Test LanguageExporter."""

    def test_export_json(self, language, tmp_path):
        path = LanguageExporter().export(language, tmp_path / "english.json", "json")
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data['id'] == 'english'
        assert data['raw']['NAME'] == 'Madeline'
        assert data['metadata']['key_count'] == 2
        assert data['metadata']['conflicts'] == []

    def test_export_csv(self, language, tmp_path):
        path = LanguageExporter().export(language, tmp_path / "english.csv", "csv")
        with open(path, newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert [row['Key'] for row in rows] == ['NAME', 'GREETING']
        assert rows[1]['Cleaned'] == language.cleaned['GREETING']

    def test_export_cache(self, language, tmp_path):
        path = LanguageExporter().export(language, tmp_path / "english.export")
        assert load_cache(path).same_content(language)

    def test_unknown_format(self, language, tmp_path):
        with pytest.raises(ValueError):
            LanguageExporter().export(language, tmp_path / "x", "yaml")

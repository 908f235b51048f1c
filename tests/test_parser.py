"""Tests for the dialog language parser."""

import pytest

from dialog_compiler.parser import (
    BOUNDARY_KEY,
    DialogFormatError,
    LanguageParser,
    Line,
    SourceBoundary,
)
from dialog_compiler.parser.parser import CompileContext


def parse(content: str):
    parser = LanguageParser()
    return parser.parse_lines(content.strip().split('\n'))


class TestDirectives:
    """Test language metadata directives."""

    def test_language_with_label(self):
        """Test LANGUAGE=id,label."""
        language = parse("LANGUAGE=english,English")
        assert language.id == 'english'
        assert language.label == 'English'

    def test_language_without_label(self):
        """Test LANGUAGE=id keeps the default label."""
        language = parse("LANGUAGE=french")
        assert language.id == 'french'
        assert language.label == ''

    def test_directive_names_are_case_insensitive(self):
        """Test that directive names ignore case."""
        content = """
language=german,Deutsch
Order=3
SPLIT_REGEX=(\\s)
Commas=,
PERIODS=.!?
"""
        language = parse(content)
        assert language.id == 'german'
        assert language.order == 3
        assert language.split_regex == '(\\s)'
        assert language.comma_characters == ','
        assert language.period_characters == '.!?'
        assert language.raw == {}

    def test_font(self):
        """Test FONT=face,size."""
        language = parse("LANGUAGE=english\nFONT=Renogare,64.5")
        assert language.font_face == 'Renogare'
        assert language.font_face_size == 64.5

    def test_font_without_size_is_ignored(self):
        """Test that a FONT directive without a comma is dropped silently."""
        language = parse("LANGUAGE=english\nFONT=Renogare")
        assert language.font_face == ''
        assert language.font_face_size == 0.0

    def test_font_size_is_stored_as_single_precision(self):
        """Test that font sizes are rounded to 32-bit floats."""
        language = parse("LANGUAGE=english\nFONT=Renogare,0.1")
        assert language.font_face_size != 0.1
        assert language.font_face_size == pytest.approx(0.1)

    def test_invalid_order_is_fatal(self):
        """Test that a non-numeric ORDER fails the compile."""
        with pytest.raises(DialogFormatError) as exc_info:
            parse("LANGUAGE=english\nORDER=first")
        assert exc_info.value.directive == 'order'
        assert exc_info.value.value == 'first'
        assert exc_info.value.line_number == 2

    @pytest.mark.parametrize("value", ["2147483648", "-2147483649", "99999999999", "1_000", "0x10", "1.5"])
    def test_order_must_be_a_32_bit_integer(self, value):
        """Test that ORDER only accepts plain decimal 32-bit integers."""
        with pytest.raises(DialogFormatError):
            parse(f"LANGUAGE=english\nORDER={value}")

    @pytest.mark.parametrize("value,expected", [
        ("2147483647", 2147483647),
        ("-2147483648", -2147483648),
        ("+7", 7),
        ("007", 7),
    ])
    def test_order_limits(self, value, expected):
        language = parse(f"LANGUAGE=english\nORDER={value}")
        assert language.order == expected

    def test_invalid_font_size_is_fatal(self):
        """Test that a non-numeric font size fails the compile."""
        with pytest.raises(DialogFormatError):
            parse("LANGUAGE=english\nFONT=Renogare,big")

    def test_format_error_is_a_value_error(self):
        """Test that format errors can be caught as ValueError."""
        with pytest.raises(ValueError):
            parse("ORDER=x")

    def test_icon_uses_texture_factory(self):
        """Test that ICON resolves its texture under Dialog/."""
        requested = []

        def factory(path):
            requested.append(path)
            return f"texture:{path}"

        parser = LanguageParser(CompileContext(texture_factory=factory))
        language = parser.parse_lines(["LANGUAGE=english", "ICON=icons/english"])
        assert language.icon_path == 'icons/english'
        assert requested == ['Dialog/icons/english']
        assert language.icon == 'texture:Dialog/icons/english'

    def test_icon_without_texture_factory(self):
        """Test that ICON only records the path when no factory is set."""
        language = parse("ICON=english")
        assert language.icon_path == 'english'
        assert language.icon is None

    def test_directives_do_not_become_keys(self):
        """Test that metadata directives are not stored as dialog."""
        language = parse("LANGUAGE=english\nICON=english\nORDER=1\nGREETING=Hi")
        assert list(language.raw) == ['GREETING']


class TestEntries:
    """Test dialog key parsing."""

    def test_single_line_entry(self):
        """Test KEY=value."""
        language = parse("LANGUAGE=english\nGREETING=Hello world!")
        assert language.raw['GREETING'] == 'Hello world!'
        assert language.cleaned['GREETING'] == 'Hello world!'

    def test_keys_are_case_sensitive(self):
        """Test that dialog keys keep their case."""
        language = parse("Greeting=a\nGREETING=b")
        assert language.raw == {'Greeting': 'a', 'GREETING': 'b'}

    def test_value_keeps_extra_equals_signs(self):
        """Test that only the first '=' separates key and value."""
        language = parse("MATH=1+1=2")
        assert language.raw['MATH'] == '1+1=2'

    def test_value_is_trimmed(self):
        """Test that whitespace after '=' is trimmed."""
        language = parse("KEY=   spaced out   ")
        assert language.raw['KEY'] == 'spaced out'

    def test_whitespace_before_equals_is_a_continuation(self):
        """Test that 'KEY = value' is not a directive."""
        language = parse("KEY=a\nOTHER = b")
        assert language.raw == {'KEY': 'a{break}OTHER = b'}

    def test_continuation_inserts_break(self):
        """Test that continuation lines are joined with {break}."""
        language = parse("KEY=a\nb")
        assert language.raw['KEY'] == 'a{break}b'
        assert language.cleaned['KEY'] == 'a\nb'

    def test_no_break_after_explicit_break(self):
        """Test that {break} and {n} endings suppress the automatic break."""
        language = parse("A=one{break}\ntwo\nB=one{n}\ntwo")
        assert language.raw['A'] == 'one{break}two'
        assert language.raw['B'] == 'one{n}two'

    def test_no_break_after_command_only_line(self):
        """Test that a line made only of commands is not followed by a break."""
        content = """
KEY=
{portrait madeline}{anchor top}
Hello
there
"""
        language = parse(content)
        assert language.raw['KEY'] == '{portrait madeline}{anchor top}Hello{break}there'

    def test_no_break_for_first_line_of_empty_entry(self):
        """Test that KEY= followed by text does not start with a break."""
        language = parse("KEY=\nHello")
        assert language.raw['KEY'] == 'Hello'

    def test_last_fragment_and_previous_line_are_tracked_separately(self):
        """Test a command-only directive line still gets a break after it."""
        # The directive line starts with the key, so it never counts as all commands
        language = parse("KEY={portrait theo}\nHi")
        assert language.raw['KEY'] == '{portrait theo}{break}Hi'

    def test_continuation_while_idle_is_ignored(self):
        """Test that text before the first key is dropped."""
        language = parse("stray text\nLANGUAGE=english\nmore stray text")
        assert language.raw == {}

    def test_continuation_after_metadata_is_ignored(self):
        """Test that a metadata directive closes the open entry."""
        language = parse("KEY=a\nORDER=2\nb")
        assert language.raw == {'KEY': 'a'}

    def test_comments_and_blank_lines(self):
        """Test that comments and blank lines are skipped."""
        content = """
# header comment
KEY=a

    # indented comment
b
"""
        language = parse(content)
        assert language.raw['KEY'] == 'a{break}b'

    def test_escaped_hash(self):
        """Test that \\# becomes a literal #."""
        language = parse("KEY=a\n\\#1 fan")
        assert language.raw['KEY'] == 'a{break}#1 fan'

    def test_later_definition_wins(self):
        """Test that redefining a key keeps the last value."""
        language = parse("KEY=first\nKEY=second")
        assert language.raw['KEY'] == 'second'

    def test_lines_and_words_reset(self):
        """Test that aggregate counters start at zero."""
        language = parse("KEY=one two three")
        assert language.lines == 0
        assert language.words == 0

    def test_raw_and_cleaned_share_keys(self):
        """Test that every raw key has a cleaned value."""
        language = parse("A=plain\nB={n}x\nC={+A}")
        assert set(language.raw) == set(language.cleaned)


class TestPortraitShorthand:
    """Test the legacy [content] shorthand."""

    def test_shorthand_equals_portrait_command(self):
        """Test that [Madeline] parses like {portrait Madeline}."""
        short = parse("KEY=\n[Madeline]\nHi")
        explicit = parse("KEY=\n{portrait Madeline}\nHi")
        assert short.raw == explicit.raw
        assert short.raw['KEY'] == '{portrait Madeline}Hi'

    def test_shorthand_with_arguments(self):
        """Test shorthand with several words."""
        language = parse("KEY=\n[MADELINE left normal]")
        assert language.raw['KEY'] == '{portrait MADELINE left normal}'

    def test_shorthand_inside_text(self):
        """Test shorthand in the middle of a line."""
        language = parse("KEY=Hi [theo] there")
        assert language.raw['KEY'] == 'Hi {portrait theo} there'
        assert language.cleaned['KEY'] == 'Hi  there'


class TestSourceBoundaries:
    """Test boundary handling between sources."""

    def test_boundary_closes_open_entry(self):
        """Test that lines after a boundary do not continue the previous key."""
        parser = LanguageParser()
        language = parser.parse_events([
            Line("LANGUAGE=english"),
            Line("KEY=a", "ModA", 1),
            SourceBoundary("ModA"),
            Line("trailing garbage", "ModB", 1),
            Line("OTHER=b", "ModB", 2),
            SourceBoundary("ModB"),
        ])
        assert language.raw == {'KEY': 'a', 'OTHER': 'b'}

    def test_textual_boundary_key(self):
        """Test that the reserved key acts as a boundary and is never stored."""
        language = parse(f"KEY=a\n{BOUNDARY_KEY}= New file\nb")
        assert language.raw == {'KEY': 'a'}
        assert BOUNDARY_KEY not in language.raw

    def test_boundary_key_is_not_tracked(self):
        """Test that repeated boundaries never count as conflicts."""
        parser = LanguageParser()
        parser.parse_lines([f"{BOUNDARY_KEY}=x", f"{BOUNDARY_KEY}=y"])
        assert parser.context.conflicts == []


class TestParseFile:
    """Test parsing from disk."""

    def test_parse_file(self, tmp_path):
        """Test parsing a file with a BOM."""
        path = tmp_path / "English.txt"
        path.write_text("\ufeffLANGUAGE=english,English\nKEY=a\nb\n", encoding="utf-8")
        language = LanguageParser().parse_file(path)
        assert language.id == 'english'
        assert language.raw['KEY'] == 'a{break}b'
        assert language.file_path == 'English.txt'

    def test_parse_file_without_language_uses_file_name(self, tmp_path):
        """Test that the id falls back to the file name."""
        path = tmp_path / "Pirate.txt"
        path.write_text("KEY=arr\n", encoding="utf-8")
        language = LanguageParser().parse_file(path)
        assert language.id == 'pirate'

    def test_missing_file(self, tmp_path):
        """Test that a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            LanguageParser().parse_file(tmp_path / "missing.txt")

    def test_stats(self):
        """Test get_stats."""
        parser = LanguageParser()
        parser.parse_lines(["LANGUAGE=english,English", "A=x", "A=y", "B=z"])
        stats = parser.get_stats()
        assert stats['id'] == 'english'
        assert stats['keys'] == 2
        assert stats['conflicts'] == 1
        assert stats['sources'] == ['base']

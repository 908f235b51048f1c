"""
Core parser for dialog text files.

A dialog file is a list of `KEY=value` lines. Lines that are not directives
continue the most recently opened key:

    # comment
    LANGUAGE=english,English
    ICON=english.png
    ORDER=10
    FONT=Renogare,64
    CH0_INTRO=
        [MADELINE left normal]
        Hello there.
        \\#1 fan!
    CH0_END={+CH0_INTRO}{n}Bye.

Directive names are case-insensitive; dialog keys are case-sensitive.
"""

import logging
import re
import struct
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Callable, Dict, Iterable, List, Optional

from .conflicts import ConflictTracker
from .errors import DialogFormatError
from .language import Conflict, Language
from .markup import clean_all, resolve_all
from .sources import (
    BOUNDARY_KEY,
    PRIMARY_SOURCE_NAME,
    ContentRegistry,
    Line,
    LineEvent,
    SourceBoundary,
    iter_language_lines,
    normalize_virtual_path,
)

logger = logging.getLogger(__name__)

TextureFactory = Callable[[str], Any]

# KEY=value, the key being a plain identifier
DIRECTIVE_PATTERN = re.compile(r"^\w+=")

# Lines made of nothing but inline commands do not get an automatic line break
WHOLE_LINE_IS_COMMANDS = re.compile(r"^(?:\{.*?\})+$")

# Legacy [content] shorthand for {portrait content}
PORTRAIT_PATTERN = re.compile(r"\[(?P<content>[^\[\\]*(?:\\.[^\]\\]*)*)\]")

BREAK_COMMAND = "{break}"
NEWLINE_COMMAND = "{n}"

# Plain decimal integers only, no digit separators
INT32_PATTERN = re.compile(r"^[+-]?[0-9]+$")
INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1


def _split_pair(text: str, separator: str):
    """Split at the first separator; the right part is trimmed. Returns (left, right, found)"""
    index = text.find(separator)
    if index == -1:
        return text, "", False
    return text[:index], text[index + 1:].strip(), True


def _to_single(value: float) -> float:
    """Round to the nearest 32-bit float, the precision the cache stores"""
    return struct.unpack("<f", struct.pack("<f", value))[0]


@dataclass
class CompileContext:
    """
    Everything one compile mutates.

    Created once per compile and handed to the parser explicitly, so separate
    compiles never share state.
    """

    language: Language = field(default_factory=Language)
    tracker: ConflictTracker = field(default_factory=ConflictTracker)
    texture_factory: Optional[TextureFactory] = None
    origin: Optional[str] = None
    line_number: int = 0
    warnings: List[str] = field(default_factory=list)

    @property
    def conflicts(self) -> List[Conflict]:
        return self.tracker.conflicts


# Directive handlers: (context, value) -> None

def _set_language(ctx: CompileContext, value: str):
    language = ctx.language
    language.font_face = ""
    language_id, label, has_label = _split_pair(value, ",")
    language.id = language_id
    if has_label:
        language.label = label


def _set_icon(ctx: CompileContext, value: str):
    ctx.language.icon_path = value
    if ctx.texture_factory is not None:
        ctx.language.icon = ctx.texture_factory(PurePosixPath("Dialog", value).as_posix())


def _set_order(ctx: CompileContext, value: str):
    if not INT32_PATTERN.match(value):
        raise DialogFormatError("order", value, ctx.origin, ctx.line_number)
    order = int(value)
    if not INT32_MIN <= order <= INT32_MAX:
        raise DialogFormatError("order", value, ctx.origin, ctx.line_number)
    ctx.language.order = order


def _set_font(ctx: CompileContext, value: str):
    face, size, has_size = _split_pair(value, ",")
    if not has_size:
        return
    try:
        ctx.language.font_face_size = _to_single(float(size))
    except (ValueError, OverflowError):
        raise DialogFormatError("font", value, ctx.origin, ctx.line_number) from None
    ctx.language.font_face = face


def _set_split_regex(ctx: CompileContext, value: str):
    ctx.language.split_regex = value


def _set_commas(ctx: CompileContext, value: str):
    ctx.language.comma_characters = value


def _set_periods(ctx: CompileContext, value: str):
    ctx.language.period_characters = value


DIRECTIVES: Dict[str, Callable[[CompileContext, str], None]] = {
    "language": _set_language,
    "icon": _set_icon,
    "order": _set_order,
    "font": _set_font,
    "split_regex": _set_split_regex,
    "commas": _set_commas,
    "periods": _set_periods,
}


class LanguageParser:
    """Parser for dialog text files and their overlays"""

    def __init__(self, context: Optional[CompileContext] = None, guard_cycles: bool = True):
        self.context = context or CompileContext()
        self.guard_cycles = guard_cycles
        self._reset_entry()
        self.prev_line = ""

    @property
    def language(self) -> Language:
        return self.context.language

    def _reset_entry(self):
        self.current_key: Optional[str] = None
        self.entry_parts: List[str] = []
        self.last_added = ""

    def _flush(self):
        """Commit the open entry, if any"""
        if self.current_key is not None:
            self.context.tracker.set_item(
                self.language, self.current_key, "".join(self.entry_parts), self.context.origin
            )
        self._reset_entry()

    def _close_source(self):
        self._flush()
        self.context.origin = None
        self.prev_line = ""

    def feed(self, event: LineEvent):
        """Process one event from the line stream"""
        if isinstance(event, SourceBoundary):
            self._close_source()
            return

        if event.source != self.context.origin:
            # The previous source ended without a boundary (primary file)
            self._flush()
            self.context.origin = event.source
        self.context.line_number = event.line_number

        line = event.text.strip()
        if not line or line[0] == "#":
            return

        if "[" in line:
            line = PORTRAIT_PATTERN.sub(r"{portrait \g<content>}", line)

        line = line.replace("\\#", "#")
        if not line:
            return

        if DIRECTIVE_PATTERN.match(line):
            self._flush()
            name, value, _ = _split_pair(line, "=")

            if name == BOUNDARY_KEY:
                self._close_source()
                return

            handler = DIRECTIVES.get(name.lower())
            if handler is not None:
                handler(self.context, value)
            else:
                self.current_key = name
                self.entry_parts = [value]
                self.last_added = value
        elif self.current_key is not None:
            if any(self.entry_parts):
                if (
                    not self.last_added.endswith(BREAK_COMMAND)
                    and not self.last_added.endswith(NEWLINE_COMMAND)
                    and not WHOLE_LINE_IS_COMMANDS.match(self.prev_line)
                ):
                    self.entry_parts.append(BREAK_COMMAND)
                    self.last_added = BREAK_COMMAND
            self.entry_parts.append(line)
            self.last_added = line

        self.prev_line = line

    def parse_events(self, events: Iterable[LineEvent]) -> Language:
        """Parse a multi-source line stream into a resolved language"""
        language = self.language
        for event in events:
            self.feed(event)
        self._close_source()
        self.context.warnings.extend(c.message for c in self.context.conflicts)

        language.lines = 0
        language.words = 0

        resolve_all(language, guard_cycles=self.guard_cycles)
        clean_all(language)
        return language

    def parse_lines(self, lines: Iterable[str], source: Optional[str] = PRIMARY_SOURCE_NAME) -> Language:
        """Parse lines of dialog text from a single source"""
        return self.parse_events(Line(text, source, number) for number, text in enumerate(lines, 1))

    def parse_file(self, file_path: Path) -> Language:
        """Parse one dialog file on its own, without overlays"""
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"Dialog file not found: {file_path}")

        with open(file_path, "r", encoding="utf-8-sig") as f:
            language = self.parse_lines(f)

        if not language.id:
            language.id = file_path.stem.lower()
        language.file_path = file_path.name
        return language

    def get_stats(self) -> Dict[str, Any]:
        """Get statistics about the compiled language"""
        language = self.language
        return {
            "id": language.id,
            "label": language.label,
            "keys": len(language.raw),
            "characters": sum(len(text) for text in language.cleaned.values()),
            "conflicts": len(self.context.conflicts),
            "conflicted_keys": len(self.context.tracker.conflicted_keys()),
            "sources": sorted(set(self.context.tracker.line_sources.values())),
            "warnings": len(self.context.warnings),
        }


def compile_language(
    virtual_path: str,
    registry: ContentRegistry,
    load_primary: bool = True,
    load_overlays: bool = True,
    texture_factory: Optional[TextureFactory] = None,
    guard_cycles: bool = True,
    context: Optional[CompileContext] = None,
) -> Language:
    """
    Compile one dialog file from the primary content and every overlay.

    Raises DialogFormatError for unparsable numeric directives and
    CyclicInsertError for self-referencing inserts.
    """
    virtual_path = normalize_virtual_path(virtual_path)
    context = context or CompileContext(texture_factory=texture_factory)
    if texture_factory is not None:
        context.texture_factory = texture_factory

    parser = LanguageParser(context, guard_cycles=guard_cycles)
    events = iter_language_lines(virtual_path, registry, load_primary, load_overlays)
    language = parser.parse_events(events)
    language.file_path = PurePosixPath(virtual_path).name + ".txt"

    logger.debug(f"Compiled {virtual_path}: {len(language.raw)} keys, {len(context.conflicts)} conflicts")
    return language

"""
Inline markup handling: {+KEY} inserts and render-ready text.
"""

import re
from typing import Dict, FrozenSet, List, Tuple

from .errors import CyclicInsertError
from .language import Language

# {+OTHER_KEY}
INSERT_PATTERN = re.compile(r"\{\+\s*(.*?)\}")

# Any inline command, e.g. {portrait madeline}, {n}, {>> 0.5}
COMMAND_PATTERN = re.compile(r"\{(.*?)\}")

LINE_BREAK_COMMANDS = ("{n}", "{break}")

# COMMAND_PATTERN written backwards, for matching on reversed text
REVERSED_COMMAND_PATTERN = re.compile(r"\}(.*?)\{")

# Substituted for inserts whose key does not exist
MISSING_INSERT = "[XXX]"


def resolve_inserts(raw: Dict[str, str], text: str, guard_cycles: bool = True) -> str:
    """Replace every {+KEY} in text with the fully resolved text of KEY"""
    if guard_cycles:
        return _resolve_guarded(raw, text, ())
    return _resolve_unguarded(raw, text)


def _resolve_unguarded(raw: Dict[str, str], text: str) -> str:
    return INSERT_PATTERN.sub(
        lambda m: _resolve_unguarded(raw, raw.get(m.group(1), MISSING_INSERT)),
        text,
    )


def _resolve_guarded(raw: Dict[str, str], text: str, chain: Tuple[str, ...]) -> str:
    def replace(match):
        key = match.group(1)
        if key in chain:
            raise CyclicInsertError(list(chain) + [key])
        if key not in raw:
            return MISSING_INSERT
        return _resolve_guarded(raw, raw[key], chain + (key,))

    return INSERT_PATTERN.sub(replace, text)


def resolve_all(language: Language, guard_cycles: bool = True):
    """Expand inserts of every key in place"""
    for key in list(language.raw):
        text = language.raw[key]
        if "{" not in text:
            continue
        if guard_cycles:
            language.raw[key] = _resolve_guarded(language.raw, text, (key,))
        else:
            language.raw[key] = _resolve_unguarded(language.raw, text)


def clean_text(text: str) -> str:
    """Drop inline commands, turning {n} and {break} into newlines"""
    if "{" not in text:
        return text
    # Commands match from the right: each "}" closes at the nearest "{" before it
    reversed_text = text[::-1]
    cleaned = REVERSED_COMMAND_PATTERN.sub(
        lambda m: "\n" if m.group(0)[::-1] in LINE_BREAK_COMMANDS else "", reversed_text
    )
    return cleaned[::-1]


def clean_all(language: Language):
    """Rebuild the cleaned view so it has exactly the raw key set"""
    language.cleaned = {key: clean_text(text) for key, text in language.raw.items()}


def find_inserts(text: str) -> List[str]:
    return [m.group(1) for m in INSERT_PATTERN.finditer(text)]


def split_commands(text: str) -> List[str]:
    """Inline commands in order of appearance, without braces"""
    return [m.group(1) for m in COMMAND_PATTERN.finditer(text)]


def missing_inserts(raw: Dict[str, str]) -> List[Tuple[str, str]]:
    """(key, missing target) pairs for inserts that would become the placeholder"""
    missing = []
    for key, text in raw.items():
        for target in find_inserts(text):
            if target not in raw:
                missing.append((key, target))
    return missing


def find_insert_cycles(raw: Dict[str, str]) -> List[List[str]]:
    """Every distinct insert cycle, each reported once starting from its smallest key"""
    cycles: List[List[str]] = []
    seen: set = set()

    def visit(key: str, chain: List[str], on_chain: FrozenSet[str]):
        for target in find_inserts(raw.get(key, "")):
            if target in on_chain:
                cycle = chain[chain.index(target):]
                start = cycle.index(min(cycle))
                normalized = tuple(cycle[start:] + cycle[:start])
                if normalized not in seen:
                    seen.add(normalized)
                    cycles.append(list(normalized) + [normalized[0]])
            elif target in raw:
                visit(target, chain + [target], on_chain | {target})

    for key in sorted(raw):
        visit(key, [key], frozenset([key]))
    return cycles

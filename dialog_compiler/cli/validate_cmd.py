"""
Validation script for dialog .txt files with precise error reporting.

Uses LanguageParser for parsing, then checks what the compiler tolerates
silently: duplicate keys, inserts of missing keys, insert cycles and broken
inline commands.
"""

import re
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from dialog_compiler.parser.errors import CyclicInsertError, DialogFormatError
from dialog_compiler.parser.language import Language
from dialog_compiler.parser.markup import find_insert_cycles, missing_inserts
from dialog_compiler.parser.parser import DIRECTIVE_PATTERN, LanguageParser


# ANSI color codes for terminal output
class Colors:
    RED = "\033[91m"
    YELLOW = "\033[93m"
    GREEN = "\033[92m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    BOLD = "\033[1m"
    RESET = "\033[0m"


@dataclass
class ValidationError:
    """Represents a validation error with location info"""

    line_number: int
    severity: str  # 'error' or 'warning'
    message: str
    context: Optional[str] = None
    suggestion: Optional[str] = None


class DialogValidator:
    """Validator for dialog .txt files.

    Parses the file on its own (no overlays), then checks the merged raw text.
    """

    def __init__(self, file_path: Path):
        self.file_path = Path(file_path)
        self.lines: List[str] = []
        self.errors: List[ValidationError] = []
        self.warnings: List[ValidationError] = []
        self.language: Optional[Language] = None

        # Line where each key is last defined
        self.key_lines: Dict[str, int] = {}

    def validate(self, report: bool = True) -> bool:
        """Main validation method"""
        if not self.file_path.exists():
            print(f"❌ File not found: {self.file_path}")
            return False

        try:
            with open(self.file_path, "r", encoding="utf-8-sig") as f:
                self.lines = f.read().splitlines()
        except (OSError, UnicodeDecodeError) as e:
            print(f"❌ Error reading file: {e}")
            return False

        self._index_keys()
        self._check_braces()

        parser = LanguageParser()
        try:
            self.language = parser.parse_file(self.file_path)
        except DialogFormatError as e:
            self._add_error(e.line_number, str(e))
        except CyclicInsertError:
            # Merging finished before resolution failed, raw still holds the cycle
            self.language = parser.language

        if self.language is not None:
            for conflict in parser.context.conflicts:
                self._add_warning(
                    self.key_lines.get(conflict.key, 0),
                    f"Key '{conflict.key}' is defined {conflict.count} times; the last definition wins",
                )
            self._check_inserts()

        if report:
            self._report_results()

        return len(self.errors) == 0

    def _index_keys(self):
        for number, text in enumerate(self.lines, 1):
            stripped = text.strip()
            if DIRECTIVE_PATTERN.match(stripped):
                self.key_lines[stripped.split("=", 1)[0]] = number

    def _check_braces(self):
        """Inline commands must be closed on the line that opens them"""
        for number, text in enumerate(self.lines, 1):
            stripped = text.strip()
            if not stripped or stripped.startswith("#"):
                continue
            depth = 0
            for column, char in enumerate(stripped, 1):
                if char == "{":
                    depth += 1
                elif char == "}":
                    depth -= 1
                    if depth < 0:
                        self._add_warning(number, f"Unmatched '}}' at column {column}")
                        depth = 0
            if depth > 0:
                self._add_warning(number, "Unclosed '{' command", suggestion="Close the command with '}'")
            if re.match(r"^\w+\s+=", stripped):
                self._add_warning(
                    number,
                    "Whitespace before '=' makes this a continuation line, not a key",
                    suggestion="Remove the spaces before '='",
                )

    def _check_inserts(self):
        raw = self.language.raw
        for key, text in raw.items():
            if not text:
                self._add_warning(self.key_lines.get(key, 0), f"Key '{key}' has no text")
        for key, target in missing_inserts(raw):
            self._add_warning(
                self.key_lines.get(key, 0),
                f"Key '{key}' inserts missing key '{target}'",
                suggestion="The insert will render as [XXX]",
            )
        for cycle in find_insert_cycles(raw):
            self._add_error(self.key_lines.get(cycle[0], 0), "Insert cycle: " + " -> ".join(cycle))

    def _add_error(self, line: int, message: str, suggestion: str = None):
        """Add an error"""
        context = self.lines[line - 1].rstrip() if 0 < line <= len(self.lines) else None
        self.errors.append(ValidationError(line, "error", message, context, suggestion))

    def _add_warning(self, line: int, message: str, suggestion: str = None):
        """Add a warning"""
        context = self.lines[line - 1].rstrip() if 0 < line <= len(self.lines) else None
        self.warnings.append(ValidationError(line, "warning", message, context, suggestion))

    def _report_results(self):
        """Report validation results"""
        print(f"\n{Colors.BOLD}{'=' * 80}{Colors.RESET}")
        print(f"{Colors.BOLD}VALIDATION REPORT: {Colors.CYAN}{self.file_path.name}{Colors.RESET}")
        print(f"{Colors.BOLD}{'=' * 80}{Colors.RESET}")

        if not self.errors and not self.warnings:
            print(f"\n{Colors.GREEN}{Colors.BOLD}✅ VALIDATION PASSED - No issues found!{Colors.RESET}")
            self._print_statistics()
            return

        if self.errors:
            print(f"\n{Colors.RED}{Colors.BOLD}❌ ERRORS ({len(self.errors)}):{Colors.RESET}")
            for error in sorted(self.errors, key=lambda e: e.line_number):
                self._print_issue(error, Colors.RED)

        if self.warnings:
            print(f"\n{Colors.YELLOW}{Colors.BOLD}⚠️  WARNINGS ({len(self.warnings)}):{Colors.RESET}")
            for warning in sorted(self.warnings, key=lambda w: w.line_number):
                self._print_issue(warning, Colors.YELLOW)

        print(f"\n{Colors.BOLD}{'=' * 80}{Colors.RESET}")
        print(f"{Colors.BOLD}Summary:{Colors.RESET} {len(self.errors)} error(s), {len(self.warnings)} warning(s)")

        if self.errors:
            print(f"{Colors.RED}{Colors.BOLD}❌ VALIDATION FAILED{Colors.RESET}")
        else:
            print(f"{Colors.GREEN}{Colors.BOLD}✅ VALIDATION PASSED WITH WARNINGS{Colors.RESET}")

        self._print_statistics()

    def _print_issue(self, issue: ValidationError, color: str):
        """Print a single issue with context"""
        print(f"\n  {color}{Colors.BOLD}Line {issue.line_number}{Colors.RESET} - {Colors.BOLD}{issue.message}{Colors.RESET}")
        if issue.context:
            print(f"    {color}{issue.line_number:4d}{Colors.RESET} │ {issue.context}")
        if issue.suggestion:
            print(f"    {Colors.CYAN}💡 Suggestion:{Colors.RESET} {issue.suggestion}")

    def _print_statistics(self):
        """Print file statistics"""
        print(f"\n{Colors.BOLD}{Colors.BLUE}📊 STATISTICS:{Colors.RESET}")
        keys = len(self.language.raw) if self.language else 0
        print(f"  • Language: {Colors.CYAN}{self.language.id if self.language else '?'}{Colors.RESET}")
        print(f"  • Keys: {Colors.CYAN}{keys}{Colors.RESET}")
        print(f"  • Total lines: {Colors.CYAN}{len(self.lines)}{Colors.RESET}")


def main():
    """Main entry point"""
    if len(sys.argv) < 2:
        print("Usage: dialog-validate <dialog_file.txt>")
        print("\nExample:")
        print("  dialog-validate Content/Dialog/English.txt")
        sys.exit(1)

    validator = DialogValidator(Path(sys.argv[1]))
    success = validator.validate()

    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()

"""
Exceptions raised while compiling dialog sources
"""

from typing import List, Optional


class DialogCompileError(Exception):
    """Base class for every failure that makes a dialog file unusable"""


class DialogFormatError(DialogCompileError, ValueError):
    """A numeric directive (order, font size) could not be parsed"""

    def __init__(
        self,
        directive: str,
        value: str,
        source: Optional[str] = None,
        line_number: int = 0,
    ):
        self.directive = directive
        self.value = value
        self.source = source
        self.line_number = line_number
        where = f"{source or '<synthetic>'}:{line_number}" if line_number else (source or "<synthetic>")
        super().__init__(f"{where}: Invalid value for '{directive}' directive: '{value}'")


class CyclicInsertError(DialogCompileError):
    """A {+KEY} insert chain refers back to a key already being resolved"""

    def __init__(self, chain: List[str]):
        self.chain = list(chain)
        super().__init__("Cyclic dialog insert: " + " -> ".join(self.chain))


class CacheFormatError(DialogCompileError):
    """A binary language cache is truncated or malformed"""

"""
Content sources and the multi-source line stream fed to the language parser.

A compile reads one primary dialog file followed by every matching overlay
asset, in registration order:

    base:    Dialog/English.txt
    overlay: Mods/MyMod/Dialog/English.txt
    overlay: Mods/Other.zip!Dialog/English.txt

Each overlay asset is followed by a SourceBoundary event so that an entry left
open at the end of one file never swallows the first lines of the next one.
"""

import io
import logging
import zipfile
import zlib
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Protocol, TextIO, Union

logger = logging.getLogger(__name__)

# Reserved key used to force-close a pending entry between two files
BOUNDARY_KEY = "DIALOG_SPLIT_BETWEEN_FILES"

# Origin name reported for lines read from the primary dialog file
PRIMARY_SOURCE_NAME = "base"

# Asset type tag of dialog text files
DIALOG_TYPE = "dialog"

DIALOG_DIR = "Dialog"


@dataclass(frozen=True)
class Line:
    """A raw text line and the name of the source it came from"""

    text: str
    source: Optional[str] = None  # None for synthetic lines
    line_number: int = 0


@dataclass(frozen=True)
class SourceBoundary:
    """Marks the end of one overlay asset"""

    source: Optional[str] = None


LineEvent = Union[Line, SourceBoundary]


@dataclass
class Asset:
    """A file provided by a content source"""

    virtual_path: str  # POSIX path without extension, e.g. Dialog/English
    type_tag: str
    opener: Callable[[], TextIO] = field(repr=False)

    def open(self) -> TextIO:
        return self.opener()


class ContentSource(Protocol):
    """Anything that can hand out assets for a virtual path"""

    name: str

    def lookup(self, virtual_path: str) -> Iterable[Asset]:
        ...


def normalize_virtual_path(path: str) -> str:
    """Forward slashes, no leading slash, no .txt extension"""
    path = path.replace("\\", "/").strip("/")
    if path.lower().endswith(".txt"):
        path = path[: -len(".txt")]
    return path


def language_id_from_path(virtual_path: str) -> str:
    """Language id used when no primary file declares one: Dialog/English -> english"""
    path = normalize_virtual_path(virtual_path)
    prefix = DIALOG_DIR + "/"
    if path.lower().startswith(prefix.lower()):
        path = path[len(prefix):]
    return path.lower()


def _type_for(virtual_path: str, extension: str) -> Optional[str]:
    """Dialog text files are the .txt files under Dialog/"""
    if extension.lower() != ".txt":
        return None
    if not virtual_path.lower().startswith(DIALOG_DIR.lower() + "/"):
        return None
    return DIALOG_TYPE


class _MappedSource:
    """Shared case-insensitive virtual path -> asset lookup"""

    name: str = "???"

    def __init__(self):
        self._map: Optional[Dict[str, List[Asset]]] = None

    def _scan(self) -> Iterator[Asset]:
        raise NotImplementedError

    @property
    def assets(self) -> Dict[str, List[Asset]]:
        if self._map is None:
            self._map = {}
            for asset in self._scan():
                self._map.setdefault(asset.virtual_path.lower(), []).append(asset)
        return self._map

    def lookup(self, virtual_path: str) -> List[Asset]:
        return list(self.assets.get(normalize_virtual_path(virtual_path).lower(), []))

    def virtual_paths(self, type_tag: str = DIALOG_TYPE) -> List[str]:
        return sorted(
            asset.virtual_path for assets in self.assets.values() for asset in assets if asset.type_tag == type_tag
        )

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r})"


class DirectorySource(_MappedSource):
    """A mod folder on disk"""

    def __init__(self, root: Union[str, Path], name: Optional[str] = None):
        super().__init__()
        self.root = Path(root)
        self.name = name or self.root.name

    def _scan(self) -> Iterator[Asset]:
        if not self.root.is_dir():
            logger.warning(f"Content source {self.name}: directory not found: {self.root}")
            return
        for file_path in sorted(self.root.rglob("*")):
            if not file_path.is_file():
                continue
            rel = file_path.relative_to(self.root).with_suffix("")
            virtual_path = PurePosixPath(*rel.parts).as_posix()
            type_tag = _type_for(virtual_path, file_path.suffix)
            if type_tag is None:
                continue
            yield Asset(
                virtual_path=virtual_path,
                type_tag=type_tag,
                opener=lambda p=file_path: open(p, "r", encoding="utf-8-sig"),
            )


class ZipSource(_MappedSource):
    """A mod packed into a zip archive"""

    def __init__(self, archive: Union[str, Path], name: Optional[str] = None):
        super().__init__()
        self.archive = Path(archive)
        self.name = name or self.archive.stem

    def _open_member(self, member: str) -> TextIO:
        # Read the member fully so the archive handle is not held across lines
        with zipfile.ZipFile(self.archive) as zf:
            data = zf.read(member)
        return io.StringIO(data.decode("utf-8-sig"))

    def _scan(self) -> Iterator[Asset]:
        try:
            with zipfile.ZipFile(self.archive) as zf:
                members = [info.filename for info in zf.infolist() if not info.is_dir()]
        except (OSError, zipfile.BadZipFile) as e:
            logger.error(f"Content source {self.name}: cannot read archive {self.archive}: {e}")
            return
        for member in sorted(members):
            posix = PurePosixPath(member.replace("\\", "/"))
            virtual_path = posix.with_suffix("").as_posix()
            type_tag = _type_for(virtual_path, posix.suffix)
            if type_tag is None:
                continue
            yield Asset(
                virtual_path=virtual_path,
                type_tag=type_tag,
                opener=lambda m=member: self._open_member(m),
            )


class MemorySource(_MappedSource):
    """Dialog files held in memory, keyed by virtual path"""

    def __init__(self, name: str, files: Optional[Dict[str, str]] = None):
        super().__init__()
        self.name = name
        self.files = dict(files or {})

    def _scan(self) -> Iterator[Asset]:
        for path, content in self.files.items():
            virtual_path = normalize_virtual_path(path)
            yield Asset(
                virtual_path=virtual_path,
                type_tag=_type_for(virtual_path, ".txt") or "unknown",
                opener=lambda c=content: io.StringIO(c),
            )


class ContentRegistry:
    """The primary content directory plus the ordered overlay sources"""

    def __init__(
        self,
        primary_root: Optional[Union[str, Path]] = None,
        sources: Iterable[ContentSource] = (),
    ):
        self.primary_root = Path(primary_root) if primary_root is not None else None
        self.sources: List[ContentSource] = list(sources)

    def add(self, source: ContentSource) -> ContentSource:
        """Register an overlay; later registrations override earlier ones"""
        self.sources.append(source)
        return source

    def primary_file(self, virtual_path: str) -> Optional[Path]:
        if self.primary_root is None:
            return None
        return self.primary_root / (normalize_virtual_path(virtual_path) + ".txt")

    @classmethod
    def from_paths(
        cls, primary_root: Optional[Union[str, Path]] = None, overlays: Iterable[Union[str, Path]] = ()
    ) -> "ContentRegistry":
        """Build a registry from mod folders and zip archives"""
        registry = cls(primary_root)
        for overlay in overlays:
            overlay = Path(overlay)
            if overlay.suffix.lower() == ".zip":
                registry.add(ZipSource(overlay))
            else:
                registry.add(DirectorySource(overlay))
        return registry


def _read_overlay(source_name: str, asset: Asset) -> Iterator[Line]:
    try:
        with asset.open() as stream:
            for number, text in enumerate(stream, 1):
                yield Line(text.strip(), source_name, number)
    except (OSError, UnicodeDecodeError, zipfile.BadZipFile, zlib.error) as e:
        # Only this asset is lost; sibling sources and the primary file still load
        logger.error(f"Failed to read dialog {asset.virtual_path} from {source_name}: {e}")


def iter_language_lines(
    virtual_path: str,
    registry: ContentRegistry,
    load_primary: bool = True,
    load_overlays: bool = True,
) -> Iterator[LineEvent]:
    """
    Yield the lines of every source contributing to a dialog file.

    The iterator is lazy and single-pass; it must be consumed by exactly one
    parser.
    """
    virtual_path = normalize_virtual_path(virtual_path)
    primary = registry.primary_file(virtual_path)

    if load_primary and primary is not None and primary.is_file():
        logger.debug(f"Reading {virtual_path} from {PRIMARY_SOURCE_NAME}: {primary}")
        with open(primary, "r", encoding="utf-8-sig") as f:
            for number, text in enumerate(f, 1):
                yield Line(text.rstrip("\r\n"), PRIMARY_SOURCE_NAME, number)
    else:
        # Every compile must produce a language with an id, even with no content
        yield Line(f"LANGUAGE={language_id_from_path(virtual_path)}")

    if load_overlays:
        yield from iter_overlay_lines(virtual_path, registry)


def iter_overlay_lines(virtual_path: str, registry: ContentRegistry) -> Iterator[LineEvent]:
    """Lines of every overlay asset matching virtual_path, each followed by a boundary"""
    virtual_path = normalize_virtual_path(virtual_path)
    for source in registry.sources:
        for asset in source.lookup(virtual_path):
            if asset.type_tag != DIALOG_TYPE:
                continue
            if asset.virtual_path.lower() != virtual_path.lower():
                continue
            logger.debug(f"Reading {virtual_path} from {source.name}")
            yield from _read_overlay(source.name, asset)
            yield SourceBoundary(source.name)

"""
Decides what kind of archive a path is, or should become.
"""
import enum
import os
from dataclasses import dataclass
from typing import Optional

from .errors import UnsupportedFormatError
from .paths import ARCHIVE_SCHEMES

PACKAGE_MANIFEST = "datapackage.json"

WACZ_EXT = ".wacz"
WARC_GZ_EXT = ".warc.gz"
WARC_EXT = ".warc"
SUPPORTED_EXTENSIONS = (WACZ_EXT, WARC_EXT, WARC_GZ_EXT)


class ArchiveKind(enum.Enum):
    SINGLE_CONTAINER = "warc"
    COMPRESSED_PACKAGE = "wacz"
    FLAT_FILES = "files"


@dataclass(frozen=True)
class ArchiveTarget:
    kind: ArchiveKind
    compressed: bool = False


# Values accepted for an explicit --format
EXPLICIT_FORMATS = {
    "wacz": ArchiveTarget(ArchiveKind.COMPRESSED_PACKAGE, True),
    "warc": ArchiveTarget(ArchiveKind.SINGLE_CONTAINER, False),
    "warc.gz": ArchiveTarget(ArchiveKind.SINGLE_CONTAINER, True),
    "files": ArchiveTarget(ArchiveKind.FLAT_FILES, False),
}


def _unsupported(path: str) -> UnsupportedFormatError:
    return UnsupportedFormatError(
        f"Unknown file type for {path}. Supported formats: .wacz, .warc, .warc.gz"
    )


def format_for_file(path: str) -> ArchiveTarget:
    """The file extension is authoritative for archive files."""
    lower = path.lower()
    if lower.endswith(WACZ_EXT):
        return EXPLICIT_FORMATS["wacz"]
    if lower.endswith(WARC_GZ_EXT):
        return EXPLICIT_FORMATS["warc.gz"]
    if lower.endswith(WARC_EXT):
        return EXPLICIT_FORMATS["warc"]
    raise _unsupported(path)


def format_for_directory(path: str) -> ArchiveTarget:
    """
    Guesses what an unpacked directory represents:
    a datapackage.json means an unpacked WACZ, no scheme folders means plain files,
    anything else is an unpacked WARC.
    """
    if os.path.isfile(os.path.join(path, PACKAGE_MANIFEST)):
        return EXPLICIT_FORMATS["wacz"]

    try:
        names = os.listdir(path)
    except OSError:
        names = []
    has_scheme_dir = any(
        name in ARCHIVE_SCHEMES and os.path.isdir(os.path.join(path, name))
        for name in names
    )
    if not has_scheme_dir:
        return EXPLICIT_FORMATS["files"]
    return ArchiveTarget(ArchiveKind.SINGLE_CONTAINER)


def select_format(target: str, explicit_format: Optional[str] = None) -> ArchiveTarget:
    """
    Resolves the archive kind for target.
    An explicit format wins; otherwise files are judged by extension and
    directories by their contents.
    """
    if explicit_format:
        key = explicit_format.lower().lstrip(".")
        if key not in EXPLICIT_FORMATS:
            raise UnsupportedFormatError(
                f"Unknown format '{explicit_format}'. "
                f"Choose one of: {', '.join(EXPLICIT_FORMATS)}"
            )
        return EXPLICIT_FORMATS[key]

    if os.path.isdir(target):
        return format_for_directory(target)
    return format_for_file(target)


def strip_archive_extension(path: str) -> str:
    """'crawl.warc.gz' -> 'crawl'; other names lose only their last extension."""
    lower = path.lower()
    for ext in (WARC_GZ_EXT, WACZ_EXT, WARC_EXT):
        if lower.endswith(ext):
            return path[:-len(ext)]
    return os.path.splitext(path)[0]

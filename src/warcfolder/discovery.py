"""
Directory scanning and classification for archive folders.
"""
import os
import logging
import enum
import stat
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pathspec
from pathspec.patterns import GitWildMatchPattern

from .errors import MultipleContainersError, ScanError, UnexpectedFileError
from .paths import ARCHIVE_SCHEMES

logger = logging.getLogger(__name__)

CONTAINER_EXTENSION = ".warc"
DEFAULT_SCAN_WORKERS = 8


class Classification(enum.Enum):
    CONTAINER_FILE = "container"
    SCHEME_RESOURCE = "resource"
    FOREIGN = "foreign"


@dataclass
class PathEntry:
    """One file found by the scanner."""
    relative_path: str
    size: int
    is_file: bool
    classification: Classification


@dataclass
class ScanResult:
    """Scanner output: the lone WARC (if any) and resource files sorted by path."""
    input_dir: str
    container_path: Optional[str] = None
    resources: Dict[str, PathEntry] = field(default_factory=dict)

    def sorted_paths(self) -> List[str]:
        return sorted(self.resources)


def load_ignore_spec(patterns: Optional[Iterable[str]] = None) -> pathspec.PathSpec:
    """
    Builds the ignore PathSpec from configured patterns.
    '.git/' is always ignored so a versioned folder can be packed.
    """
    lines = list(patterns or [])
    lines.append('.git/')
    return pathspec.PathSpec.from_lines(GitWildMatchPattern, lines)


def walk_files(input_dir: str, spec: pathspec.PathSpec) -> List[str]:
    """
    Walks input_dir and returns non-ignored file paths, relative and POSIX style.
    """
    root_path = Path(input_dir)
    found = []

    def on_walk_error(error: OSError):
        if os.path.normpath(error.filename or "") == os.path.normpath(input_dir):
            raise ScanError(f"Cannot read input directory {input_dir}: {error.strerror}")
        raise ScanError(f"Cannot access directory: {error.filename} - {error.strerror}")

    for current_root, dirs, files in os.walk(root_path, onerror=on_walk_error):
        rel_root = Path(current_root).relative_to(root_path)

        # Prune ignored directories in place so os.walk never enters them
        for d in list(dirs):
            if spec.match_file(f"{(rel_root / d).as_posix()}/"):
                dirs.remove(d)

        for f in files:
            rel_path = (rel_root / f).as_posix()
            if not spec.match_file(rel_path):
                found.append(rel_path)

    return found


def _stat(input_dir: str, rel_path: str) -> Tuple[str, os.stat_result]:
    return rel_path, os.stat(os.path.join(input_dir, rel_path))


def classify(rel_path: str, as_files: bool = False) -> Classification:
    """Classifies one relative path; see scan_directory for the rules."""
    if as_files:
        return Classification.SCHEME_RESOURCE
    if "/" not in rel_path and rel_path.endswith(CONTAINER_EXTENSION):
        return Classification.CONTAINER_FILE
    if rel_path.split("/", 1)[0] in ARCHIVE_SCHEMES:
        return Classification.SCHEME_RESOURCE
    return Classification.FOREIGN


def scan_directory(input_dir: str, as_files: bool = False,
                   ignore: Optional[Iterable[str]] = None,
                   max_workers: int = DEFAULT_SCAN_WORKERS) -> ScanResult:
    """
    Enumerates and classifies every file under input_dir.

    In files mode every file is a resource. Otherwise a top-level *.warc is the
    container (a second one raises MultipleContainersError), files under
    http:/, https:/ or file:/ are resources, and anything else raises
    UnexpectedFileError.
    """
    if not os.path.isdir(input_dir):
        raise ScanError(f"Input directory not found: {input_dir}")

    rel_paths = sorted(walk_files(input_dir, load_ignore_spec(ignore)))

    # stat() calls are independent; order is restored by sorting below
    try:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            stats = dict(executor.map(lambda p: _stat(input_dir, p), rel_paths))
    except OSError as e:
        raise ScanError(f"Cannot stat file in {input_dir}: {e}")

    result = ScanResult(input_dir=input_dir)
    for rel_path in rel_paths:
        st = stats[rel_path]
        kind = classify(rel_path, as_files)
        entry = PathEntry(rel_path, st.st_size, stat.S_ISREG(st.st_mode), kind)
        if not entry.is_file:
            # e.g. a FIFO left in the tree
            logger.warning(f"Skipping {rel_path}: not a regular file")
            continue

        if kind is Classification.CONTAINER_FILE:
            if result.container_path:
                raise MultipleContainersError(
                    os.path.basename(result.container_path), rel_path
                )
            result.container_path = os.path.join(input_dir, rel_path)
        elif kind is Classification.SCHEME_RESOURCE:
            result.resources[rel_path] = entry
        else:
            raise UnexpectedFileError(rel_path, input_dir)

    logger.debug(
        f"Scanned {input_dir}: {len(result.resources)} resources, "
        f"container={result.container_path}"
    )
    return result

"""
Error types raised by warcfolder.
Every error is fatal to the current extract/create call; the CLI turns them into exit code 1.
"""
from typing import Optional


class WarcFolderError(Exception):
    """Base class for all warcfolder failures."""
    pass


class ConfigError(WarcFolderError):
    """Raised when warcfolder.yaml cannot be parsed or validated."""
    pass


class InvalidURIError(WarcFolderError):
    """A record that should carry a target URL has none (or it has no scheme)."""
    pass


class ScanError(WarcFolderError):
    """The input directory does not exist or cannot be read."""
    pass


class MultipleContainersError(WarcFolderError):
    """More than one top-level .warc file was found in the input directory."""

    def __init__(self, first: str, second: str):
        self.first = first
        self.second = second
        super().__init__(
            f"Multiple WARC files found in input directory: {first}, {second}"
        )


class UnexpectedFileError(WarcFolderError):
    """
    A file matches neither the lone WARC nor a scheme directory.
    Almost always means the directory is not an unpacked archive.
    """

    def __init__(self, path: str, input_dir: Optional[str] = None):
        self.path = path
        self.input_dir = input_dir
        super().__init__(
            f"Unexpected file in input directory: {path}. "
            "If this is a folder of ordinary files, rerun with --as-files."
        )


class UnsupportedFormatError(WarcFolderError):
    """The archive path has an extension we cannot read or write."""
    pass


class EmptyArchiveError(WarcFolderError):
    """Packaging a WACZ produced zero WARC files."""
    pass

"""
Top-level extract/create orchestration.
"""
import logging
import os
import shutil
import tempfile
from typing import List, Optional

from .codec import CodecStats, extract_warc, write_warc
from .config import ToolConfig
from .discovery import scan_directory
from .errors import EmptyArchiveError, ScanError
from .formats import (
    ArchiveKind,
    ArchiveTarget,
    WARC_EXT,
    WARC_GZ_EXT,
    format_for_directory,
    format_for_file,
    select_format,
    strip_archive_extension,
)
from .package import build_wacz, unpack_wacz

logger = logging.getLogger(__name__)

PAGES_DIR = "pages"
LOGS_DIR = "logs"


class ArchiveEngine:
    """
    Converts WARC/WACZ files to folders and back.
    Not safe to run twice concurrently against the same output path.
    """

    def __init__(self, config: Optional[ToolConfig] = None):
        self.config: ToolConfig = config or ToolConfig()

    # --- Extract ---

    def extract(self, input_file: str, output_dir: str) -> ArchiveTarget:
        """Extracts a .wacz, .warc or .warc.gz file into output_dir."""
        target = format_for_file(input_file)
        if not os.path.isfile(input_file):
            raise ScanError(f"Input file not found: {input_file}")

        if target.kind is ArchiveKind.COMPRESSED_PACKAGE:
            self.extract_wacz(input_file, output_dir)
        else:
            extract_warc(input_file, output_dir)
        return target

    def extract_wacz(self, wacz_file: str, output_dir: str) -> List[str]:
        """
        Unzips a WACZ, then extracts each archive/<name>.warc[.gz] into
        archive/<name>/. Returns the extracted WARC directories.
        """
        unpack_wacz(wacz_file, output_dir)

        archive_dir = os.path.join(output_dir, self.config.archive_dir)
        extracted = []
        if not os.path.isdir(archive_dir):
            logger.warning(f"{wacz_file} has no {self.config.archive_dir}/ directory")
            return extracted

        for name in sorted(os.listdir(archive_dir)):
            warc_path = os.path.join(archive_dir, name)
            if not os.path.isfile(warc_path):
                continue
            if not name.lower().endswith((WARC_EXT, WARC_GZ_EXT)):
                continue
            target_dir = os.path.join(archive_dir, strip_archive_extension(name))
            extract_warc(warc_path, target_dir)
            extracted.append(target_dir)
        return extracted

    # --- Create ---

    def resolve_output(self, output_file: str, explicit_format: Optional[str] = None,
                       as_files: bool = False):
        """
        Returns (ArchiveTarget, as_files) for a create call.
        An explicit format overrides the output extension; 'files' only turns on files mode.
        """
        if explicit_format and explicit_format.lower() == "files":
            return format_for_file(output_file), True
        if explicit_format:
            return select_format(output_file, explicit_format), as_files
        return format_for_file(output_file), as_files

    def create(self, input_dir: str, output_file: str, as_files: bool = False,
               explicit_format: Optional[str] = None) -> ArchiveTarget:
        """Creates a WACZ or WARC from a directory."""
        target, as_files = self.resolve_output(output_file, explicit_format, as_files)
        if not os.path.isdir(input_dir):
            raise ScanError(f"Input directory not found: {input_dir}")

        if not as_files:
            shape = format_for_directory(input_dir)
            if shape.kind is ArchiveKind.FLAT_FILES and target.kind is ArchiveKind.SINGLE_CONTAINER:
                logger.info(f"{input_dir} has no http:/https:/file: folders; --as-files may be needed")
            elif shape.kind is not target.kind and shape.kind is not ArchiveKind.FLAT_FILES:
                logger.warning(
                    f"{input_dir} looks like an unpacked {shape.kind.value.upper()}, "
                    f"but a {target.kind.value.upper()} was requested"
                )

        if target.kind is ArchiveKind.COMPRESSED_PACKAGE:
            self.create_wacz(input_dir, output_file, as_files)
        else:
            self.create_warc(input_dir, output_file, as_files, compress=target.compressed)
        return target

    def create_warc(self, input_dir: str, output_file: str, as_files: bool = False,
                    compress: Optional[bool] = None) -> CodecStats:
        """Scans input_dir (failing fast on conflicts) and writes one WARC."""
        ignore = list(self.config.ignore)

        # Never pack the output into itself on a rebuild
        rel_output = os.path.relpath(os.path.abspath(output_file), os.path.abspath(input_dir))
        if not rel_output.startswith(os.pardir):
            ignore.append("/" + rel_output.replace(os.sep, "/"))

        scan = scan_directory(
            input_dir, as_files=as_files, ignore=ignore,
            max_workers=self.config.scan_workers,
        )
        return write_warc(scan, output_file, as_files=as_files, compress=compress)

    def create_wacz(self, input_dir: str, output_file: str, as_files: bool = False) -> List[str]:
        """
        Builds one .warc.gz per archive/<name>/ directory, passes through WARCs
        already in archive/, and packages them with pages/ and logs/.
        Returns the names of the packaged WARCs.
        """
        archive_dir = os.path.join(input_dir, self.config.archive_dir)
        names = sorted(os.listdir(archive_dir)) if os.path.isdir(archive_dir) else []

        with tempfile.TemporaryDirectory(prefix="wacz-") as temp_dir:
            created = []

            for name in names:
                source = os.path.join(archive_dir, name)
                if not os.path.isdir(source):
                    continue
                warc_file = os.path.join(temp_dir, f"{name}{WARC_GZ_EXT}")
                self.create_warc(source, warc_file, as_files, compress=True)
                created.append(warc_file)

            # WARCs that were packaged as-is, with no extracted folder beside them
            for name in names:
                source = os.path.join(archive_dir, name)
                if not os.path.isfile(source) or not name.lower().endswith((WARC_GZ_EXT, WARC_EXT)):
                    continue
                destination = os.path.join(temp_dir, name)
                if os.path.join(temp_dir, strip_archive_extension(name) + WARC_GZ_EXT) in created:
                    continue
                shutil.copyfile(source, destination)
                created.append(destination)

            if not created:
                raise EmptyArchiveError(f"No WARC files or directories found in {archive_dir}")

            pages_dir = os.path.join(input_dir, PAGES_DIR)
            logs_dir = os.path.join(input_dir, LOGS_DIR)
            build_wacz(
                created,
                output_file,
                pages_dir=pages_dir if os.path.isdir(pages_dir) else None,
                logs_dir=logs_dir if os.path.isdir(logs_dir) else None,
                archive_dir=self.config.archive_dir,
            )
            return [os.path.basename(p) for p in created]

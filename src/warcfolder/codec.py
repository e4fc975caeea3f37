"""
Streaming WARC <-> folder conversion.

extract_warc() writes every response payload to its canonical path and keeps an
uncompressed copy of the WARC beside the tree, with each extracted payload
replaced by the path it was written to. write_warc() reverses this: it replays
that copy, swapping the current file contents back in, and then appends a new
response record for every file the copy does not know about.
"""
import gzip
import io
import logging
import os
import shutil
import zlib
from dataclasses import dataclass
from typing import Dict, Optional

import brotli
from warcio.archiveiterator import ArchiveIterator
from warcio.statusandheaders import StatusAndHeaders
from warcio.warcwriter import WARCWriter

from .discovery import PathEntry, ScanResult
from .paths import (
    HTTP_SCHEMES,
    file_path_to_uri,
    guess_content_type,
    safe_join,
    uri_to_file_path,
)

logger = logging.getLogger(__name__)

# Headers that describe the old block and must be recomputed by warcio
_STALE_WARC_HEADERS = ("Content-Length", "WARC-Block-Digest", "WARC-Payload-Digest")


@dataclass
class CodecStats:
    records: int = 0
    files: int = 0
    injected: int = 0
    synthesized: int = 0


def full_copy_name(warc_file: str) -> str:
    """Name of the uncompressed WARC copy kept beside an extracted tree."""
    name = os.path.basename(warc_file)
    if name.lower().endswith(".gz"):
        name = name[:-3]
    return name


def is_content_record(record) -> bool:
    """Only response records with a target URL become files."""
    return (
        record.rec_type == "response"
        and bool(record.rec_headers.get_header("WARC-Target-URI"))
    )


def _copy_warc_headers(record) -> StatusAndHeaders:
    headers = [
        (name, value) for name, value in record.rec_headers.headers
        if name.lower() not in {h.lower() for h in _STALE_WARC_HEADERS}
    ]
    return StatusAndHeaders(
        record.rec_headers.statusline, headers, protocol=record.rec_headers.protocol
    )


def replace_payload(writer: WARCWriter, record, payload: bytes):
    """
    Builds a copy of record whose payload is `payload`.
    WARC headers are kept except length and digests, which warcio recomputes.
    """
    return writer.create_warc_record(
        record.rec_headers.get_header("WARC-Target-URI"),
        record.rec_type,
        payload=io.BytesIO(payload),
        length=len(payload),
        warc_content_type=record.rec_headers.get_header("Content-Type") or "",
        warc_headers=_copy_warc_headers(record),
        http_headers=record.http_headers,
    )


def encode_for_headers(http_headers: Optional[StatusAndHeaders], content: bytes) -> bytes:
    """
    Re-applies the record's Content-Encoding to freshly read file bytes and
    fixes up the length headers to match.
    """
    if http_headers is None:
        return content

    encoding = (http_headers.get_header("Content-Encoding") or "").strip().lower()
    if encoding == "gzip":
        content = gzip.compress(content, mtime=0)
    elif encoding == "deflate":
        content = zlib.compress(content)
    elif encoding == "br":
        content = brotli.compress(content)
    elif encoding and encoding != "identity":
        # warcio leaves other encodings undecoded, so the file still holds encoded bytes
        logger.warning(f"Storing '{encoding}'-encoded payload as-is")

    # The file is a plain body now, never chunked
    http_headers.remove_header("Transfer-Encoding")
    http_headers.replace_header("Content-Length", str(len(content)))
    return content


def extract_warc(warc_file: str, output_dir: str) -> CodecStats:
    """
    Extracts a WARC (.warc or .warc.gz) into output_dir.

    Each response record with a target URL is written to
    safe_join(output_dir, uri_to_file_path(record)). All records, with those
    payloads swapped for the output path, go to an uncompressed full copy named
    after the input. Read errors abort the extract and leave partial output.
    """
    os.makedirs(output_dir, exist_ok=True)
    full_path = os.path.join(output_dir, full_copy_name(warc_file))
    stats = CodecStats()
    written: Dict[str, str] = {}

    logger.info(f"Extracting {warc_file} -> {output_dir}")
    with open(warc_file, "rb") as stream, open(full_path, "wb") as full_out:
        writer = WARCWriter(full_out, gzip=False)

        for record in ArchiveIterator(stream):
            if is_content_record(record):
                rel_path = uri_to_file_path(record)
                uri = record.rec_headers.get_header("WARC-Target-URI")
                if rel_path in written:
                    logger.warning(
                        f"{uri} maps to {rel_path}, already written for "
                        f"{written[rel_path]}; keeping the later record"
                    )
                written[rel_path] = uri

                output_path = safe_join(output_dir, rel_path)
                os.makedirs(os.path.dirname(output_path), exist_ok=True)
                with open(output_path, "wb") as f:
                    shutil.copyfileobj(record.content_stream(), f)
                stats.files += 1

                record = replace_payload(writer, record, output_path.encode("utf-8"))

            writer.write_record(record)
            stats.records += 1

    logger.debug(f"Extracted {stats.files} files from {stats.records} records")
    return stats


def _inject_container(writer: WARCWriter, scan: ScanResult,
                      pending: Dict[str, PathEntry], stats: CodecStats) -> None:
    """Replays the lone WARC, swapping in current file contents where they exist."""
    claimed = set()

    with open(scan.container_path, "rb") as stream:
        for record in ArchiveIterator(stream):
            if is_content_record(record):
                rel_path = uri_to_file_path(record)
                entry = pending.pop(rel_path, None)

                if entry is not None:
                    with open(os.path.join(scan.input_dir, rel_path), "rb") as f:
                        content = f.read()
                    content = encode_for_headers(record.http_headers, content)
                    record = replace_payload(writer, record, content)
                    claimed.add(rel_path)
                    stats.injected += 1
                elif rel_path in claimed:
                    logger.warning(
                        f"{rel_path} already used for an earlier record; "
                        f"{record.rec_headers.get_header('WARC-Target-URI')} keeps its stored payload"
                    )

            writer.write_record(record)
            stats.records += 1


def write_resource(writer: WARCWriter, input_dir: str, entry: PathEntry,
                   as_files: bool = False) -> bool:
    """
    Appends a new response record for one file. Returns False when the path
    does not map to a URL.
    """
    uri = file_path_to_uri(entry.relative_path, as_files)
    if uri is None:
        return False

    file_path = os.path.join(input_dir, entry.relative_path)
    content_type = guess_content_type(os.path.basename(entry.relative_path))

    with open(file_path, "rb") as f:
        # Size at write time, not scan time
        size = os.fstat(f.fileno()).st_size
        if uri.startswith(HTTP_SCHEMES):
            http_headers = StatusAndHeaders(
                "200 OK",
                [("Content-Type", content_type), ("Content-Length", str(size))],
                protocol="HTTP/1.1",
            )
            record = writer.create_warc_record(
                uri, "response", payload=f, length=size, http_headers=http_headers
            )
        else:
            # file: resources carry no HTTP block; the type lives in the WARC header
            record = writer.create_warc_record(
                uri, "response", payload=f, length=size,
                warc_content_type=content_type,
            )
        writer.write_record(record)
    return True


def write_warc(scan: ScanResult, output_file: str, as_files: bool = False,
               compress: Optional[bool] = None) -> CodecStats:
    """
    Writes a WARC from a scanned directory.

    Records from the directory's WARC come first, in their original order and
    with file contents injected; files without a record follow in path order.
    Each record is gzip-framed when compress is set (default: output ends in .gz).
    """
    if compress is None:
        compress = output_file.lower().endswith(".gz")

    pending = dict(scan.resources)
    stats = CodecStats()

    logger.info(f"Creating {output_file} from {scan.input_dir}")
    with open(output_file, "wb") as out:
        writer = WARCWriter(out, gzip=compress)

        if scan.container_path:
            _inject_container(writer, scan, pending, stats)

        for rel_path in sorted(pending):
            if write_resource(writer, scan.input_dir, pending[rel_path], as_files):
                stats.synthesized += 1
                stats.records += 1

    logger.debug(
        f"Wrote {stats.records} records ({stats.injected} injected, "
        f"{stats.synthesized} new) to {output_file}"
    )
    return stats

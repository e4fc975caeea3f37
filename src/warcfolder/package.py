"""
WACZ packaging.

A WACZ is a zip holding WARC files under archive/, a CDXJ index under indexes/,
a page list under pages/, optional logs/, and a datapackage.json manifest with a
sha256 for every resource.
"""
import datetime
import hashlib
import json
import logging
import os
import shutil
import zipfile
from typing import Dict, Iterable, List, Optional, Tuple

import surt
from warcio.archiveiterator import ArchiveIterator

from . import __version__
from .errors import UnsupportedFormatError
from .paths import safe_join

logger = logging.getLogger(__name__)

WACZ_VERSION = "1.1.1"
INDEX_PATH = "indexes/index.cdx"
PAGES_PATH = "pages/pages.jsonl"
PAGES_HEADER = {"format": "json-pages-1.0", "id": "pages", "title": "All Pages"}
INDEXED_TYPES = ("response", "revisit", "resource")


def _sha256_file(path: str) -> str:
    h = hashlib.sha256()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(65536), b''):
            h.update(chunk)
    return f"sha256:{h.hexdigest()}"


def _sha256_bytes(data: bytes) -> str:
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


def _cdx_timestamp(warc_date: Optional[str]) -> str:
    digits = "".join(c for c in (warc_date or "") if c.isdigit())
    return digits[:14].ljust(14, "0")


def _url_key(url: str) -> str:
    try:
        return surt.surt(url)
    except Exception as e:
        logger.debug(f"Could not build SURT for {url}: {e}")
        return url


def index_warc(warc_path: str, filename: str) -> Tuple[List[str], List[Dict]]:
    """
    Builds CDXJ lines for one WARC and collects HTML responses as candidate pages.
    `filename` is the name recorded in each index line.
    """
    lines = []
    pages = []

    with open(warc_path, 'rb') as fh:
        it = ArchiveIterator(fh)
        for record in it:
            if record.rec_type not in INDEXED_TYPES:
                continue
            url = record.rec_headers.get_header('WARC-Target-URI')
            if not url:
                continue

            warc_date = record.rec_headers.get_header('WARC-Date')
            if record.http_headers is not None:
                status = record.http_headers.get_statuscode() or "200"
                mime = record.http_headers.get_header('Content-Type') or ""
            else:
                status = "200"
                mime = record.rec_headers.get_header('Content-Type') or ""
            mime = mime.split(";", 1)[0].strip()

            fields = {"url": url, "mime": mime, "status": status}
            digest = record.rec_headers.get_header('WARC-Payload-Digest')
            if digest:
                fields["digest"] = digest

            it.read_to_end(record)
            fields["offset"] = str(it.get_record_offset())
            fields["length"] = str(it.get_record_length())
            fields["filename"] = filename

            lines.append(f"{_url_key(url)} {_cdx_timestamp(warc_date)} {json.dumps(fields)}")

            if record.rec_type == "response" and mime == "text/html" and status == "200":
                pages.append({"url": url, "ts": warc_date, "title": url})

    return lines, pages


def _iter_dir_files(directory: str) -> Iterable[Tuple[str, str]]:
    """Yields (absolute path, POSIX path relative to directory), sorted."""
    found = []
    for root, _, files in os.walk(directory):
        for name in files:
            full = os.path.join(root, name)
            found.append((full, os.path.relpath(full, directory).replace(os.sep, '/')))
    return sorted(found, key=lambda item: item[1])


def build_wacz(warc_files: List[str], output_file: str,
               pages_dir: Optional[str] = None, logs_dir: Optional[str] = None,
               archive_dir: str = "archive") -> None:
    """
    Writes a WACZ containing warc_files plus index, pages, logs and manifest.
    WARCs are stored uncompressed in the zip so index offsets stay seekable.
    """
    resources = []
    index_lines = []
    detected_pages = []

    with zipfile.ZipFile(output_file, 'w', compression=zipfile.ZIP_DEFLATED) as zf:
        for warc in sorted(warc_files, key=os.path.basename):
            name = os.path.basename(warc)
            arcname = f"{archive_dir}/{name}"
            zf.write(warc, arcname, compress_type=zipfile.ZIP_STORED)
            resources.append({
                "name": name,
                "path": arcname,
                "hash": _sha256_file(warc),
                "bytes": os.path.getsize(warc),
            })
            lines, pages = index_warc(warc, name)
            index_lines.extend(lines)
            detected_pages.extend(pages)

        index_data = ("\n".join(sorted(index_lines)) + "\n").encode('utf-8')
        zf.writestr(INDEX_PATH, index_data)
        resources.append({
            "name": os.path.basename(INDEX_PATH),
            "path": INDEX_PATH,
            "hash": _sha256_bytes(index_data),
            "bytes": len(index_data),
        })

        sidecars = []
        if pages_dir and os.path.isdir(pages_dir):
            sidecars.append(("pages", _iter_dir_files(pages_dir)))
        else:
            # No page list to copy: list the HTML responses we just indexed
            page_lines = [json.dumps(PAGES_HEADER)] + [json.dumps(p) for p in detected_pages]
            page_data = ("\n".join(page_lines) + "\n").encode('utf-8')
            zf.writestr(PAGES_PATH, page_data)
            resources.append({
                "name": os.path.basename(PAGES_PATH),
                "path": PAGES_PATH,
                "hash": _sha256_bytes(page_data),
                "bytes": len(page_data),
            })

        if logs_dir and os.path.isdir(logs_dir):
            sidecars.append(("logs", _iter_dir_files(logs_dir)))

        for prefix, files in sidecars:
            for full, rel in files:
                arcname = f"{prefix}/{rel}"
                zf.write(full, arcname)
                resources.append({
                    "name": os.path.basename(rel),
                    "path": arcname,
                    "hash": _sha256_file(full),
                    "bytes": os.path.getsize(full),
                })

        datapackage = {
            "profile": "data-package",
            "resources": resources,
            "wacz_version": WACZ_VERSION,
            "software": f"warcfolder {__version__}",
            "created": datetime.datetime.now(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
        }
        datapackage_data = json.dumps(datapackage, indent=2).encode('utf-8')
        zf.writestr("datapackage.json", datapackage_data)
        zf.writestr("datapackage-digest.json", json.dumps({
            "path": "datapackage.json",
            "hash": _sha256_bytes(datapackage_data),
        }, indent=2))

    logger.info(f"Packaged {len(warc_files)} WARC file(s) into {output_file}")


def unpack_wacz(wacz_file: str, output_dir: str) -> List[str]:
    """
    Streams every zip entry of a WACZ into output_dir.
    Entry names go through safe_join, so '../' entries cannot escape.
    """
    os.makedirs(output_dir, exist_ok=True)
    written = []
    try:
        zf = zipfile.ZipFile(wacz_file)
    except zipfile.BadZipFile as e:
        raise UnsupportedFormatError(f"{wacz_file} is not a valid WACZ (zip) file: {e}")

    with zf:
        for info in zf.infolist():
            entry_path = safe_join(output_dir, info.filename)
            if info.is_dir():
                os.makedirs(entry_path, exist_ok=True)
                continue
            os.makedirs(os.path.dirname(entry_path), exist_ok=True)
            with zf.open(info) as src, open(entry_path, 'wb') as dst:
                shutil.copyfileobj(src, dst)
            written.append(entry_path)

    logger.debug(f"Unpacked {len(written)} entries from {wacz_file}")
    return written

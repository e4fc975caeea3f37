"""
URL <-> file path mapping and safe path joining.

A captured URL becomes a scheme-prefixed relative path:

    https://example.com/path/page.html  ->  https:/example.com/path/page.html
    https://example.com/path/           ->  https:/example.com/path/__index__.html
    file:///path/page.html              ->  file:/path/page.html
"""
import hashlib
import mimetypes
import posixpath
import re
from typing import Optional
from urllib.parse import urlsplit

from .errors import InvalidURIError

INDEX_NAME = "__index__"
DEFAULT_CONTENT_TYPE = "text/html"
DEFAULT_EXTENSION = "html"

# Filesystems commonly cap a single name at 255 bytes
MAX_SEGMENT_LENGTH = 255
TRUNCATED_PREFIX_LENGTH = 190

ARCHIVE_SCHEMES = ("http:", "https:", "file:")
HTTP_SCHEMES = ("http:", "https:")

_INDEX_LEAF_RE = re.compile(r"^__index__\.[^/]+$")


def extension_for(content_type: Optional[str]) -> str:
    """
    Returns the file extension (without dot) for a Content-Type value.
    Parameters such as '; charset=utf-8' are ignored; unknown types map to 'html'.
    """
    if not content_type:
        return DEFAULT_EXTENSION

    mime = content_type.split(";", 1)[0].strip().lower()
    if not mime:
        return DEFAULT_EXTENSION

    ext = mimetypes.guess_extension(mime, strict=False)
    if not ext:
        return DEFAULT_EXTENSION
    return ext.lstrip(".")


def guess_content_type(path: str) -> str:
    """Guesses a Content-Type from a file name, defaulting to text/html."""
    mime, _ = mimetypes.guess_type(path, strict=False)
    return mime or DEFAULT_CONTENT_TYPE


def _shorten_segment(segment: str) -> str:
    if len(segment) <= MAX_SEGMENT_LENGTH:
        return segment
    prefix = segment[:TRUNCATED_PREFIX_LENGTH]
    rest = segment[TRUNCATED_PREFIX_LENGTH:]
    digest = hashlib.sha256(rest.encode("utf-8")).hexdigest()
    return f"{prefix}_{digest}"


def canonicalize(url: Optional[str], content_type: Optional[str] = None) -> str:
    """
    Converts a captured URL to a relative file path.

    The scheme is always the first path segment, directory-like URLs get an
    __index__.<ext> leaf and an over-long final segment is truncated with a
    sha256 digest of the dropped tail.
    """
    if not url:
        raise InvalidURIError("URI is required")

    parts = urlsplit(url)
    scheme = parts.scheme
    if not scheme:
        raise InvalidURIError(f"URI has no scheme: {url}")
    protocol = f"{scheme.lower()}:"

    # An empty path is the root: http://host?q -> http://host/?q
    if parts.netloc and not parts.path:
        host_end = len(scheme) + len("://") + len(parts.netloc)
        url = f"{url[:host_end]}/{url[host_end:]}"

    filename = re.sub(r"/+", "/", url)

    # http(s) URLs keep their scheme after collapsing, but match it case-insensitively
    if filename[:len(protocol)].lower() == protocol:
        filename = protocol + filename[len(protocol):]
    else:
        filename = f"{protocol}/{filename}"

    if filename.endswith("/"):
        filename += f"{INDEX_NAME}.{extension_for(content_type)}"

    head, _, leaf = filename.rpartition("/")
    leaf = _shorten_segment(leaf)
    return f"{head}/{leaf}" if head else leaf


def record_content_type(record) -> Optional[str]:
    """
    Content type a record declares for its payload.
    Prefers the HTTP Content-Type; falls back to the WARC Content-Type for
    records with no HTTP block (such as file: resources).
    """
    if record.http_headers is not None:
        return record.http_headers.get_header("Content-Type")
    if record.rec_headers is not None:
        return record.rec_headers.get_header("Content-Type")
    return None


def uri_to_file_path(record) -> str:
    """Canonical path for a warcio record, using its own declared content type."""
    uri = record.rec_headers.get_header("WARC-Target-URI")
    if not uri:
        raise InvalidURIError(
            f"{record.rec_type} record has no WARC-Target-URI "
            f"(id {record.rec_headers.get_header('WARC-Record-ID')})"
        )
    return canonicalize(uri, record_content_type(record))


def file_path_to_uri(relative_path: str, as_files: bool = False) -> Optional[str]:
    """
    Rebuilds a URL from a relative path produced by canonicalize().
    Returns None for a path that is a WARC sitting beside the scheme folders.
    """
    parts = relative_path.replace("\\", "/").split("/")

    if as_files:
        parts.insert(0, "file://")
    else:
        protocol = parts[0]
        if protocol.endswith(".warc"):
            return None
        # 'http:' -> 'http:/' joins to 'http://host/...'; 'file:' -> 'file://' joins to 'file:///...'
        if protocol in HTTP_SCHEMES:
            parts[0] += "/"
        else:
            parts[0] += "//"

    if _INDEX_LEAF_RE.match(parts[-1]):
        parts[-1] = ""

    return "/".join(parts)


def safe_join(base: str, *paths: str) -> str:
    """
    Joins paths onto base without letting '..' or absolute segments escape it.

    safe_join('/safe/path', '../../../etc/passwd') == '/safe/path/etc/passwd'
    safe_join('', '/etc/passwd') == 'etc/passwd'
    """
    rooted = posixpath.join("/", *paths)
    trailing = rooted.endswith("/") and rooted != "/"
    normalized = posixpath.normpath(rooted).lstrip("/")

    joined = posixpath.normpath(posixpath.join(base or ".", normalized))
    if trailing:
        joined += "/"
    return joined

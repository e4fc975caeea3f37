import hashlib
import os
import sys
import unittest
from unittest.mock import MagicMock

# Add src to path
sys.path.append(os.path.join(os.path.dirname(__file__), '../src'))

from warcfolder.errors import InvalidURIError
from warcfolder.paths import (
    canonicalize,
    extension_for,
    file_path_to_uri,
    safe_join,
    uri_to_file_path,
)


def make_record(uri, http_content_type=None, warc_content_type=None, has_http=True):
    """A stand-in for a warcio record with just the headers the mapping reads."""
    record = MagicMock()
    record.rec_type = "response"
    rec_headers = {"WARC-Target-URI": uri, "Content-Type": warc_content_type}
    record.rec_headers.get_header.side_effect = lambda name, default=None: rec_headers.get(name, default)
    if has_http:
        http = {"Content-Type": http_content_type}
        record.http_headers.get_header.side_effect = lambda name, default=None: http.get(name, default)
    else:
        record.http_headers = None
    return record


class TestCanonicalize(unittest.TestCase):

    def test_known_urls(self):
        cases = [
            ("https://example.com/path/page.html", "https:/example.com/path/page.html"),
            ("https://example.com/path/", "https:/example.com/path/__index__.html"),
            ("file:///path/page.html", "file:/path/page.html"),
            ("http://example.com/", "http:/example.com/__index__.html"),
            ("http://example.com/favicon.ico", "http:/example.com/favicon.ico"),
        ]
        for url, expected in cases:
            with self.subTest(url=url):
                self.assertEqual(canonicalize(url), expected)

    def test_is_deterministic(self):
        url = "https://example.com/a//b///c?x=1"
        self.assertEqual(canonicalize(url), canonicalize(url))
        self.assertEqual(canonicalize(url), "https:/example.com/a/b/c?x=1")

    def test_query_string_stays_in_leaf(self):
        self.assertEqual(
            canonicalize("https://example.com/?domain=fnord.com&page=1"),
            "https:/example.com/?domain=fnord.com&page=1",
        )

    def test_bare_host_is_the_root_index(self):
        self.assertEqual(canonicalize("https://example.com"), "https:/example.com/__index__.html")
        self.assertEqual(canonicalize("HTTP://example.com"), "http:/example.com/__index__.html")
        self.assertEqual(canonicalize("http://example.com?q=1"), "http:/example.com/?q=1")
        self.assertEqual(
            canonicalize("http://example.com", "application/json"),
            "http:/example.com/__index__.json",
        )

    def test_index_extension_follows_content_type(self):
        self.assertEqual(
            canonicalize("https://example.com/api/", "application/json"),
            "https:/example.com/api/__index__.json",
        )
        self.assertEqual(
            canonicalize("https://example.com/", "text/html; charset=UTF-8"),
            "https:/example.com/__index__.html",
        )

    def test_long_final_segment_is_truncated_with_digest(self):
        leaf = "q" * 150 + "z" * 150
        path = canonicalize(f"https://example.com/dir/{leaf}")

        head, _, new_leaf = path.rpartition("/")
        self.assertEqual(head, "https:/example.com/dir")
        digest = hashlib.sha256(leaf[190:].encode("utf-8")).hexdigest()
        self.assertEqual(new_leaf, f"{leaf[:190]}_{digest}")
        self.assertEqual(len(new_leaf), 255)

    def test_short_segment_untouched(self):
        leaf = "a" * 255
        self.assertEqual(canonicalize(f"https://example.com/{leaf}"), f"https:/example.com/{leaf}")

    def test_missing_or_schemeless_url_raises(self):
        with self.assertRaises(InvalidURIError):
            canonicalize(None)
        with self.assertRaises(InvalidURIError):
            canonicalize("")
        with self.assertRaises(InvalidURIError):
            canonicalize("/just/a/path")


class TestExtensionFor(unittest.TestCase):

    def test_known_and_default_types(self):
        self.assertEqual(extension_for("text/html"), "html")
        self.assertEqual(extension_for("application/json; charset=utf-8"), "json")
        self.assertEqual(extension_for(None), "html")
        self.assertEqual(extension_for(""), "html")
        self.assertEqual(extension_for("x-unknown/never-registered"), "html")


class TestUriToFilePath(unittest.TestCase):

    def test_uses_http_content_type(self):
        record = make_record("https://example.com/data/", http_content_type="application/json")
        self.assertEqual(uri_to_file_path(record), "https:/example.com/data/__index__.json")

    def test_falls_back_to_warc_content_type_without_http_block(self):
        record = make_record("file:///shots/", warc_content_type="application/json", has_http=False)
        self.assertEqual(uri_to_file_path(record), "file:/shots/__index__.json")

    def test_missing_target_uri_raises(self):
        record = make_record(None)
        with self.assertRaises(InvalidURIError):
            uri_to_file_path(record)


class TestFilePathToUri(unittest.TestCase):

    def test_reverses_canonical_paths(self):
        cases = [
            ("http:/example.com/__index__.html", "http://example.com/"),
            ("https:/example.com/a/b.css", "https://example.com/a/b.css"),
            ("file:/screenshot.png", "file:///screenshot.png"),
            ("https:/example.com/api/__index__.json", "https://example.com/api/"),
        ]
        for path, expected in cases:
            with self.subTest(path=path):
                self.assertEqual(file_path_to_uri(path), expected)

    def test_files_mode_prepends_file_root(self):
        self.assertEqual(file_path_to_uri("main/index.js", as_files=True), "file:///main/index.js")
        self.assertEqual(file_path_to_uri("docs/__index__.html", as_files=True), "file:///docs/")

    def test_warc_copy_is_skipped(self):
        self.assertIsNone(file_path_to_uri("example.warc"))

    def test_round_trip_through_canonicalize(self):
        for url in ("http://example.com/", "https://example.com/a/b.js", "file:///x/y.png"):
            with self.subTest(url=url):
                self.assertEqual(file_path_to_uri(canonicalize(url)), url)


class TestSafeJoin(unittest.TestCase):

    def test_prevents_directory_traversal(self):
        cases = [
            ("/safe/path", "../../../etc/passwd", "/safe/path/etc/passwd"),
            ("/safe/path", "etc/../../../passwd/", "/safe/path/passwd/"),
            ("", "/etc/passwd", "etc/passwd"),
            ("out", "http:/example.com/../../../../x", "out/x"),
        ]
        for base, unsafe, expected in cases:
            with self.subTest(unsafe=unsafe):
                self.assertEqual(safe_join(base, unsafe), expected)

    def test_matches_plain_join_for_neutralized_input(self):
        base = "/tmp/extract-root"
        self.assertEqual(
            safe_join(base, "../../../etc/passwd"),
            os.path.join(base, "etc/passwd"),
        )

    def test_multiple_segments(self):
        self.assertEqual(safe_join("/base", "a", "../../b", "c.txt"), "/base/b/c.txt")


if __name__ == '__main__':
    unittest.main()

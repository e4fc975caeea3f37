import os
import sys
import tempfile
import unittest
from unittest.mock import patch

from typer.testing import CliRunner

# Add src to path
sys.path.append(os.path.join(os.path.dirname(__file__), '../src'))

from warc_fixtures import read_records, tree, write_example_warc, write_file
from warcfolder.cli import app

runner = CliRunner()


def output_text(result):
    """Console output with rich line wrapping undone."""
    return " ".join(result.output.split())


class TestCli(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = self.tmp.name
        self.warc = os.path.join(self.root, "example.warc.gz")
        write_example_warc(self.warc)

    def tearDown(self):
        self.tmp.cleanup()

    def test_extract_defaults_output_dir(self):
        result = runner.invoke(app, ["extract", self.warc])

        self.assertEqual(result.exit_code, 0, output_text(result))
        out = os.path.join(self.root, "example")
        self.assertIn("http:/example.com/__index__.html", tree(out))
        self.assertIn("Successfully extracted", output_text(result))

    def test_extract_refuses_non_empty_dir(self):
        out = os.path.join(self.root, "out")
        write_file(os.path.join(out, "keep.txt"))

        result = runner.invoke(app, ["extract", self.warc, out])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("not empty", output_text(result))
        self.assertEqual(tree(out), ["keep.txt"])

        result = runner.invoke(app, ["extract", self.warc, out, "--delete-existing"])
        self.assertEqual(result.exit_code, 0, output_text(result))
        self.assertNotIn("keep.txt", tree(out))

    def test_extract_refuses_file_target(self):
        target = write_file(os.path.join(self.root, "a-file"))
        result = runner.invoke(app, ["extract", self.warc, target])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("is a file", output_text(result))

    def test_extract_unknown_type(self):
        bogus = write_file(os.path.join(self.root, "bogus.txt"))
        result = runner.invoke(app, ["extract", bogus, os.path.join(self.root, "o")])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("Unknown file type", output_text(result))

    def test_create_round_trip(self):
        out = os.path.join(self.root, "out")
        runner.invoke(app, ["extract", self.warc, out])
        rebuilt = os.path.join(self.root, "rebuilt.warc.gz")

        result = runner.invoke(app, ["create", out, rebuilt])

        self.assertEqual(result.exit_code, 0, output_text(result))
        self.assertIn("Successfully created", output_text(result))
        urls = [r["url"] for r in read_records(rebuilt) if r["type"] == "response"]
        self.assertIn("http://example.com/favicon.ico", urls)

    def test_create_suggests_as_files(self):
        src = os.path.join(self.root, "plain")
        write_file(os.path.join(src, "index.html"), b"<p>hi</p>")
        output = os.path.join(self.root, "plain.warc")

        result = runner.invoke(app, ["create", src, output])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("--as-files", output_text(result))
        self.assertFalse(os.path.exists(output))

        result = runner.invoke(app, ["create", src, output, "--as-files"])
        self.assertEqual(result.exit_code, 0, output_text(result))
        self.assertEqual([r["url"] for r in read_records(output)], ["file:///index.html"])

    def test_create_watch_delegates(self):
        src = os.path.join(self.root, "plain")
        write_file(os.path.join(src, "index.html"))
        output = os.path.join(self.root, "plain.warc")

        with patch("warcfolder.watch.watch_and_create") as mock_watch:
            result = runner.invoke(app, ["create", src, output, "--as-files", "--watch"])

        self.assertEqual(result.exit_code, 0, output_text(result))
        args = mock_watch.call_args[0]
        self.assertEqual(args[1:], (src, output, True, None))

    def test_bad_config(self):
        config = write_file(os.path.join(self.root, "bad.yaml"), b"scan_workers: -1\n")
        result = runner.invoke(app, ["--config", config, "extract", self.warc])
        self.assertEqual(result.exit_code, 1)
        self.assertIn("scan_workers", output_text(result))


if __name__ == '__main__':
    unittest.main()

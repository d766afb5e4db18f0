"""Tests for conntest.serverconf -- cached, self-refreshing JSON files."""

import json
import os
import tempfile
import unittest

from conntest.api import Server
from conntest.constants import DEFAULT_THRESHOLD_MAP
from conntest.serverconf import CachedJSON, ServerListFile, ThresholdFile


def _write(path, data, mtime):
    with open(path, "w", encoding="utf-8") as fh:
        if isinstance(data, str):
            fh.write(data)
        else:
            json.dump(data, fh)
    os.utime(path, (mtime, mtime))


class TestCachedJSON(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        self.path = os.path.join(self.tmpdir.name, "data.json")

    def test_missing_file_returns_initial(self):
        self.assertEqual(CachedJSON(self.path, {"a": 1}).get_value(), {"a": 1})

    def test_reloads_when_modified(self):
        cached = CachedJSON(self.path, None)
        _write(self.path, [1], 1000)
        self.assertEqual(cached.get_value(), [1])

        _write(self.path, [2], 2000)
        self.assertEqual(cached.get_value(), [2])

    def test_unchanged_mtime_not_reread(self):
        cached = CachedJSON(self.path, None)
        _write(self.path, [1], 1000)
        cached.get_value()

        _write(self.path, [2], 1000)
        self.assertEqual(cached.get_value(), [1])

    def test_corrupt_file_keeps_last_good(self):
        cached = CachedJSON(self.path, None)
        _write(self.path, [1], 1000)
        cached.get_value()

        _write(self.path, "{broken", 2000)
        with self.assertLogs("conntest.serverconf", level="WARNING"):
            self.assertEqual(cached.get_value(), [1])


class TestServerListFile(unittest.TestCase):
    def test_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            _write(
                os.path.join(tmpdir, "servers.json"),
                {"A": {"url": "https://a.example/"}},
                1000,
            )
            self.assertEqual(
                ServerListFile(tmpdir).get_value(), {"A": Server("https://a.example/")}
            )

    def test_missing_is_empty(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            self.assertEqual(ServerListFile(tmpdir).get_value(), {})

    def test_not_an_object(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            _write(os.path.join(tmpdir, "servers.json"), ["https://a.example/"], 1000)
            with self.assertLogs("conntest.serverconf", level="WARNING"):
                self.assertEqual(ServerListFile(tmpdir).get_value(), {})

    def test_custom_filename(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            _write(os.path.join(tmpdir, "mine.json"), {"B": {"url": "https://b.example/"}}, 1000)
            self.assertIn("B", ServerListFile(tmpdir, "mine.json").get_value())


class TestThresholdFile(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        self.path = os.path.join(self.tmpdir.name, "thresholds.json")

    def test_default(self):
        self.assertEqual(ThresholdFile(self.tmpdir.name).get_value(), DEFAULT_THRESHOLD_MAP)

    def test_valid(self):
        custom = {"0": "green", "50": "red", "unreachable": "grey"}
        _write(self.path, custom, 1000)
        self.assertEqual(ThresholdFile(self.tmpdir.name).get_value(), custom)

    def test_invalid_keeps_previous(self):
        custom = {"0": "green", "unreachable": "grey"}
        thresholds = ThresholdFile(self.tmpdir.name)
        _write(self.path, custom, 1000)
        thresholds.get_value()

        _write(self.path, {"0": "green", "fast": "red", "unreachable": "grey"}, 2000)
        with self.assertLogs("conntest.serverconf", level="WARNING"):
            self.assertEqual(thresholds.get_value(), custom)

    def test_invalid_initially_uses_default(self):
        _write(self.path, {"0": "green"}, 1000)
        with self.assertLogs("conntest.serverconf", level="WARNING"):
            self.assertEqual(ThresholdFile(self.tmpdir.name).get_value(), DEFAULT_THRESHOLD_MAP)


if __name__ == "__main__":
    unittest.main()

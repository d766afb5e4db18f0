"""Tests for conntest.config -- configuration persistence."""

import json
import os
import tempfile
import unittest
from unittest import mock

from conntest.config import (
    DEFAULTS,
    get_config_value,
    load_config,
    save_config,
    set_config_value,
)


class TestConfigDefaults(unittest.TestCase):
    def test_defaults_have_required_keys(self):
        for key in ("base_url", "concurrency", "max_sampling_time", "sample_timeout",
                    "min_samples", "current_url", "csv_file"):
            self.assertIn(key, DEFAULTS)


class TestLoadSaveConfig(unittest.TestCase):
    def test_load_defaults_when_missing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("conntest.config._config_path", return_value=path):
                cfg = load_config()
                self.assertEqual(cfg["concurrency"], 4)
                self.assertEqual(cfg["min_samples"], 5)

    def test_save_and_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "sub", "config.json")
            with mock.patch("conntest.config._config_path", return_value=path):
                save_config({"concurrency": 8, "base_url": "https://host/api/ext/conntest"})
                cfg = load_config()
                self.assertEqual(cfg["concurrency"], 8)
                self.assertEqual(cfg["base_url"], "https://host/api/ext/conntest")
                # Defaults still present
                self.assertAlmostEqual(cfg["max_sampling_time"], 3.0)

    def test_corrupt_file_returns_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with open(path, "w") as f:
                f.write("NOT JSON")
            with mock.patch("conntest.config._config_path", return_value=path):
                with self.assertLogs("conntest.config", level="WARNING"):
                    cfg = load_config()
                self.assertEqual(cfg["concurrency"], 4)

    def test_non_object_ignored(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with open(path, "w") as f:
                json.dump([1, 2, 3], f)
            with mock.patch("conntest.config._config_path", return_value=path):
                with self.assertLogs("conntest.config", level="WARNING"):
                    cfg = load_config()
                self.assertEqual(cfg, DEFAULTS)

    def test_get_set_value(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("conntest.config._config_path", return_value=path):
                set_config_value("concurrency", 2)
                self.assertEqual(get_config_value("concurrency"), 2)

                set_config_value("current_url", "https://mine.example/")
                self.assertEqual(get_config_value("current_url"), "https://mine.example/")
                self.assertEqual(get_config_value("concurrency"), 2)


if __name__ == "__main__":
    unittest.main()

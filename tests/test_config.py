"""Tests for meter.config -- configuration persistence."""

import os
import tempfile
import unittest
from unittest import mock

from meter.config import (
    DEFAULTS,
    load_config,
    save_config,
    set_config_value,
)
from meter.constants import DEFAULT_CONNECTIONS, DEFAULT_PING_COUNT


class TestConfigDefaults(unittest.TestCase):
    def test_defaults_have_required_keys(self):
        for key in ("url", "connections", "ping_count", "download_bytes",
                    "upload_bytes", "timeout_ms", "host", "port", "log_level"):
            self.assertIn(key, DEFAULTS)

    def test_defaults_match_constants(self):
        self.assertEqual(DEFAULTS["connections"], DEFAULT_CONNECTIONS)
        self.assertEqual(DEFAULTS["ping_count"], DEFAULT_PING_COUNT)
        self.assertEqual(DEFAULTS["timeout_ms"], 60_000)


class TestLoadSaveConfig(unittest.TestCase):
    def test_load_defaults_when_missing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("meter.config._config_path", return_value=path):
                cfg = load_config()
                self.assertEqual(cfg["connections"], 4)
                self.assertEqual(cfg["ping_count"], 8)

    def test_save_and_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with mock.patch("meter.config._config_path", return_value=path):
                save_config({"url": "http://example.test:9000", "connections": 8})
                cfg = load_config()
                self.assertEqual(cfg["url"], "http://example.test:9000")
                self.assertEqual(cfg["connections"], 8)
                # Defaults still present
                self.assertEqual(cfg["ping_count"], 8)

    def test_corrupt_file_returns_defaults(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with open(path, "w") as f:
                f.write("NOT JSON")
            with mock.patch("meter.config._config_path", return_value=path):
                with self.assertLogs("meter.config", level="WARNING"):
                    cfg = load_config()
                self.assertEqual(cfg["connections"], 4)

    def test_non_object_ignored(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "config.json")
            with open(path, "w") as f:
                f.write("[1, 2, 3]")
            with mock.patch("meter.config._config_path", return_value=path):
                with self.assertLogs("meter.config", level="WARNING"):
                    cfg = load_config()
                self.assertEqual(cfg, DEFAULTS)

    def test_set_value_persists(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, "sub", "config.json")
            with mock.patch("meter.config._config_path", return_value=path):
                set_config_value("ping_count", 20)
                self.assertEqual(load_config()["ping_count"], 20)

                set_config_value("url", "http://10.0.0.2:8080")
                self.assertEqual(load_config()["url"], "http://10.0.0.2:8080")
                self.assertEqual(load_config()["ping_count"], 20)


if __name__ == "__main__":
    unittest.main()

"""
Tests for collider settings persistence and the log facade.
"""

import json
import os
import tempfile
import unittest
from pathlib import Path

from colgen import log
from colgen.settings import load_config, save_config, settings_path
from colgen.types import ColliderConfig


class SettingsTest(unittest.TestCase):
    """load_config / save_config."""

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "project_settings" / "colliders.json"

    def tearDown(self):
        self._tmp.cleanup()

    def test_settings_path(self):
        path = settings_path("/projects/game")
        self.assertEqual(path, Path("/projects/game") / "project_settings" / "colliders.json")

    def test_save_load_round_trip(self):
        config = ColliderConfig(threshold=0.25, epsilon=1.0, min_area=2.0, min_region_pixels=3)
        self.assertTrue(save_config(config, self.path))
        self.assertTrue(os.path.exists(self.path))
        self.assertEqual(load_config(self.path), config)

    def test_saved_file_is_plain_json(self):
        save_config(ColliderConfig(epsilon=0.75), self.path)
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        self.assertEqual(data["epsilon"], 0.75)
        self.assertEqual(data["threshold"], 0.5)

    def test_missing_file_gives_defaults(self):
        self.assertEqual(load_config(self.path), ColliderConfig())

    def test_invalid_file_gives_defaults(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text("{ not json", encoding="utf-8")

        messages = []
        log.set_callback(lambda level, msg: messages.append((level, msg)))
        try:
            config = load_config(self.path)
        finally:
            log.set_callback(None)

        self.assertEqual(config, ColliderConfig())
        self.assertTrue(any(level == log.Level.ERROR and "[ColliderSettings]" in msg for level, msg in messages))

    def test_invalid_values_give_defaults(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text(json.dumps({"threshold": 7.0}), encoding="utf-8")
        self.assertEqual(load_config(self.path), ColliderConfig())

    def test_non_object_gives_defaults(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text("[1, 2, 3]", encoding="utf-8")
        self.assertEqual(load_config(self.path), ColliderConfig())


class LogTest(unittest.TestCase):
    """Callback routing of the log facade."""

    def setUp(self):
        self.messages = []
        log.set_level(log.Level.DEBUG)
        log.set_callback(lambda level, msg: self.messages.append((level, msg)))

    def tearDown(self):
        log.set_callback(None)
        log.set_level(log.Level.WARN)

    def test_levels(self):
        log.debug("d")
        log.info("i")
        log.warn("w")
        log.error("e")
        self.assertEqual(
            self.messages,
            [
                (log.Level.DEBUG, "d"),
                (log.Level.INFO, "i"),
                (log.Level.WARN, "w"),
                (log.Level.ERROR, "e"),
            ],
        )

    def test_exception_with_context(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError as e:
            log.error(e, "loading sprite")

        level, msg = self.messages[0]
        self.assertEqual(level, log.Level.ERROR)
        self.assertTrue(msg.startswith("loading sprite: RuntimeError: boom"))
        self.assertIn("Traceback", msg)

    def test_callback_removed(self):
        log.set_callback(None)
        log.error("dropped")
        self.assertEqual(self.messages, [])


if __name__ == "__main__":
    unittest.main()

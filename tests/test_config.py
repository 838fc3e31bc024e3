import configparser
import tempfile
import unittest
from pathlib import Path

from pydantic import ValidationError

from abrfetch.exceptions import ConfigurationError
from abrfetch.models.config import DEFAULT_BASE_URL, FetchConfig
from abrfetch.storage.config_manager import ConfigManager


class FetchConfigTests(unittest.TestCase):
    def test_defaults(self):
        config = FetchConfig()
        self.assertEqual(config.base_url, DEFAULT_BASE_URL)
        self.assertEqual(config.window_size, 3)
        self.assertGreaterEqual(config.queue_capacity, 1)

    def test_trailing_slash_is_dropped(self):
        self.assertEqual(FetchConfig(base_url="http://media:9999/").base_url, "http://media:9999")

    def test_rejects_invalid_values(self):
        invalid = [
            {"base_url": "ftp://media"},
            {"base_url": "http://"},
            {"window_size": 0},
            {"queue_capacity": 0},
            {"max_attempts": 0},
            {"base_delay": -1},
            {"fetch_timeout": 0},
            {"min_transfer_seconds": 0},
            {"fetch_timeout": 5, "connect_timeout": 10},
        ]
        for values in invalid:
            with self.subTest(values=values), self.assertRaises(ValidationError):
                FetchConfig(**values)

    def test_assignment_is_validated(self):
        config = FetchConfig()
        with self.assertRaises(ValidationError):
            config.queue_capacity = 0


class ConfigManagerTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "abrfetch" / "config.ini"

    def tearDown(self):
        self._tmp.cleanup()

    def test_missing_file_gives_defaults(self):
        config = ConfigManager(self.path).load_config()
        self.assertEqual(config.base_url, DEFAULT_BASE_URL)
        self.assertEqual(config.config_path, str(self.path.parent))
        self.assertFalse(self.path.exists())

    def test_saved_config_round_trips(self):
        ConfigManager(self.path).save_new_config(
            {"base_url": "http://media.local:8080", "window_size": 5}
        )
        config = ConfigManager(self.path).load_config()
        self.assertEqual(config.base_url, "http://media.local:8080")
        self.assertEqual(config.window_size, 5)
        self.assertEqual(config.max_attempts, FetchConfig().max_attempts)

    def test_cli_options_override_file(self):
        ConfigManager(self.path).save_new_config({"queue_capacity": 4})
        config = ConfigManager(self.path).load_config({"queue_capacity": 16})
        self.assertEqual(config.queue_capacity, 16)

    def test_missing_keys_are_migrated(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text("[DEFAULT]\nbase_url = http://old:1\n", encoding="utf-8")

        config = ConfigManager(self.path).load_config()

        self.assertEqual(config.base_url, "http://old:1")
        parser = configparser.ConfigParser()
        parser.read(self.path, encoding="utf-8")
        self.assertEqual(parser["DEFAULT"]["window_size"], "3")
        self.assertEqual(set(parser["DEFAULT"]), FetchConfig.get_ini_keys())

    def test_invalid_values_raise_configuration_error(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text("[DEFAULT]\nwindow_size = many\n", encoding="utf-8")
        with self.assertRaises(ConfigurationError):
            ConfigManager(self.path).load_config()

        self.path.write_text("[DEFAULT]\nwindow_size = 0\n", encoding="utf-8")
        with self.assertRaises(ConfigurationError):
            ConfigManager(self.path).load_config()

    def test_save_rejects_invalid_settings(self):
        with self.assertRaises(ConfigurationError):
            ConfigManager(self.path).save_new_config({"base_url": "nope"})
        self.assertFalse(self.path.exists())


if __name__ == "__main__":
    unittest.main()

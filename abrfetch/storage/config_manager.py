"""
Manages loading, validation, and migration of the INI configuration file.
"""

import configparser
import logging
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from abrfetch.exceptions import ConfigurationError
from abrfetch.models.config import FetchConfig

log = logging.getLogger(__name__)


class ConfigManager:
    """Handles all operations related to the application's INI config file."""

    def __init__(self, config_file_path: Path):
        self.config_file_path = config_file_path
        self._parser = configparser.ConfigParser()

    def load_config(self, cli_options: dict[str, Any] | None = None) -> FetchConfig:
        """
        Loads configuration from the INI file, applies CLI overrides, and validates it.

        A missing file is not an error: the defaults are used.

        Args:
            cli_options: A dictionary of options provided via the command line.

        Returns:
            A validated FetchConfig object.

        Raises:
            ConfigurationError: If the file cannot be parsed or validation fails.
        """
        config_from_file: dict[str, Any] = {}
        if self.config_file_path.is_file():
            try:
                self._parser.read(self.config_file_path, encoding="utf-8")
            except configparser.Error as e:
                raise ConfigurationError(f"Error parsing configuration file: {e}") from e

            if self._migrate_if_needed():
                log.info(
                    "[yellow]Configuration file was updated with new default values."
                    "[/yellow]"
                )
            config_from_file = self._get_config_as_dict()
        else:
            log.debug(
                f"No configuration file at '{self.config_file_path}', using defaults."
            )

        if cli_options:
            config_from_file.update(cli_options)

        try:
            config_dir = self.config_file_path.parent
            return FetchConfig(**config_from_file, config_path=str(config_dir))
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    def save_new_config(self, settings: dict[str, Any]) -> None:
        """
        Creates and saves a new configuration file.

        Args:
            settings: A dictionary of settings to save; missing keys use defaults.
        """
        try:
            validated = FetchConfig(**settings)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

        config = configparser.ConfigParser()
        config["DEFAULT"] = {
            key: str(getattr(validated, key)) for key in sorted(FetchConfig.get_ini_keys())
        }

        try:
            self.config_file_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, "w", encoding="utf-8") as configfile:
                config.write(configfile)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration file: {e}") from e

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Reads the 'DEFAULT' section of the INI file into a dictionary."""
        section = self._parser["DEFAULT"]
        defaults = FetchConfig.model_construct()
        try:
            return {
                "base_url": section.get("base_url", defaults.base_url),
                "window_size": section.getint("window_size", defaults.window_size),
                "queue_capacity": section.getint(
                    "queue_capacity", defaults.queue_capacity
                ),
                "min_transfer_seconds": section.getfloat(
                    "min_transfer_seconds", defaults.min_transfer_seconds
                ),
                "max_attempts": section.getint("max_attempts", defaults.max_attempts),
                "base_delay": section.getfloat("base_delay", defaults.base_delay),
                "fetch_timeout": section.getfloat(
                    "fetch_timeout", defaults.fetch_timeout
                ),
                "connect_timeout": section.getfloat(
                    "connect_timeout", defaults.connect_timeout
                ),
            }
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in configuration file: {e}") from e

    def get_config_as_dict(self) -> dict[str, Any]:
        """Returns the raw values stored in the config file."""
        if not self._parser.defaults():
            self._parser.read(self.config_file_path, encoding="utf-8")
        return self._get_config_as_dict()

    def _migrate_if_needed(self) -> bool:
        """Adds missing default values to an existing config file."""
        defaults = FetchConfig.model_construct()
        needs_saving = False

        config_section = self._parser["DEFAULT"]

        for key in sorted(FetchConfig.get_ini_keys()):
            if key not in config_section:
                config_section[key] = str(getattr(defaults, key))
                needs_saving = True
                log.debug(
                    f"Migrating config: added missing key '{key}' with "
                    f"value '{config_section[key]}'."
                )

        if needs_saving:
            try:
                with open(self.config_file_path, "w", encoding="utf-8") as f:
                    self._parser.write(f)
            except OSError as e:
                log.error(f"Could not save migrated configuration file: {e}")
                return False

        return needs_saving

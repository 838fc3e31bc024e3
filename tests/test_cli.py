import tempfile
import unittest
from pathlib import Path
from unittest import mock

from typer.testing import CliRunner

from abrfetch import __version__
from abrfetch.cli import app as cli_app
from abrfetch.cli.formatters import format_error_with_suggestions
from abrfetch.exceptions import SessionStartError


class CliTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.config_file = Path(self._tmp.name) / "config.ini"
        patcher = mock.patch.object(cli_app, "CONFIG_FILE", self.config_file)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.addCleanup(self._tmp.cleanup)
        self.runner = CliRunner()

    def invoke(self, *args: str):
        return self.runner.invoke(cli_app.app, list(args))

    def test_version(self):
        result = self.invoke("--version")
        self.assertEqual(result.exit_code, 0)
        self.assertIn(__version__, result.output)

    def test_init_then_validate(self):
        result = self.invoke("init", "--base-url", "http://media.local:9000", "--window", "4")
        self.assertEqual(result.exit_code, 0, result.output)
        self.assertTrue(self.config_file.is_file())
        self.assertIn("base_url = http://media.local:9000", self.config_file.read_text())

        result = self.invoke("validate")
        self.assertEqual(result.exit_code, 0, result.output)

    def test_validate_reports_invalid_override(self):
        result = self.invoke("validate", "--base-url", "not-a-url")
        self.assertEqual(result.exit_code, 1)

    def test_show_config_without_file(self):
        result = self.invoke("--show-config")
        self.assertEqual(result.exit_code, 1)

    def test_error_panel_has_suggestions(self):
        panel = format_error_with_suggestions(SessionStartError("no manifest"))
        self.assertIn("An Error Occurred", str(panel.title))


if __name__ == "__main__":
    unittest.main()

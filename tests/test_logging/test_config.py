"""
Unit tests for config.py

Tests configuration functionality including:
- Rotation defaults, derived names and override merging
- Environment variable loading
- File configuration
- Variable substitution
- Validation
"""

import os
import shutil
import tempfile
import unittest
from pathlib import Path

from tidelog.config import LoggingConfig, RotationConfig, build_rotation_config, normalize_destination


class TestRotationConfig(unittest.TestCase):
    """Test RotationConfig defaults and derived values"""

    def test_defaults(self):
        config = RotationConfig()

        self.assertEqual(config.extname, "combined")
        self.assertEqual(config.date_pattern, "%Y%m%d")
        self.assertEqual(config.max_size, "20m")
        self.assertEqual(config.retention, "14d")
        self.assertTrue(config.zipped)
        self.assertEqual(config.level, "debug")
        self.assertTrue(config.can_change_level)

    def test_derived_names(self):
        """Test file template and sink name with and without custom segment"""
        self.assertEqual(RotationConfig().filename_template, "{date}-combined.log")
        self.assertEqual(RotationConfig().sink_name, "combined")

        custom = RotationConfig(filename="api", extname="error")
        self.assertEqual(custom.filename_template, "{date}-api-error.log")
        self.assertEqual(custom.sink_name, "api-error")
        self.assertEqual(custom.audit_file, ".api-error-audit.json")

    def test_explicit_name(self):
        self.assertEqual(RotationConfig(name="main").sink_name, "main")

    def test_max_bytes(self):
        """Test human friendly sizes are parsed as binary units"""
        self.assertEqual(RotationConfig().max_bytes, 20 * 1024 * 1024)
        self.assertEqual(RotationConfig(max_size="1k").max_bytes, 1024)
        self.assertEqual(RotationConfig(max_size=500).max_bytes, 500)


class TestBuildRotationConfig(unittest.TestCase):
    """Test merging overrides onto defaults"""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.warnings = []

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_destination_is_absolute(self):
        config = build_rotation_config(self.temp_dir + "//logs/../", warn=self.warnings.append)

        self.assertEqual(config.destination, os.path.abspath(self.temp_dir))
        self.assertEqual(self.warnings, [])

    def test_missing_destination_uses_cwd(self):
        """Test cwd fallback is announced"""
        config = build_rotation_config(warn=self.warnings.append)

        self.assertEqual(config.destination, os.getcwd())
        self.assertEqual(len(self.warnings), 1)

    def test_invalid_destination_uses_cwd(self):
        config = build_rotation_config(42, warn=self.warnings.append)

        self.assertEqual(config.destination, os.getcwd())
        self.assertEqual(len(self.warnings), 1)

    def test_destination_from_options(self):
        config = build_rotation_config(options={"destination": self.temp_dir}, warn=self.warnings.append)

        self.assertEqual(config.destination, os.path.abspath(self.temp_dir))
        self.assertEqual(self.warnings, [])

    def test_argument_destination_wins(self):
        config = build_rotation_config(self.temp_dir, options={"destination": "/elsewhere"})
        self.assertEqual(config.destination, os.path.abspath(self.temp_dir))

    def test_options_overlay(self):
        config = build_rotation_config(self.temp_dir, options={"level": "info", "zipped": False, "max_size": "1m"})

        self.assertEqual(config.level, "info")
        self.assertFalse(config.zipped)
        self.assertEqual(config.max_bytes, 1024 * 1024)

    def test_filename_overlay(self):
        """Test filename argument wins over options"""
        config = build_rotation_config(self.temp_dir, "my-file-name", {"filename": "other"})
        self.assertEqual(config.filename, "my-file-name")

    def test_empty_filename_keeps_default(self):
        config = build_rotation_config(self.temp_dir, "", warn=self.warnings.append)

        self.assertEqual(config.filename, "")
        self.assertEqual(self.warnings, [])

    def test_non_string_filename_warns(self):
        config = build_rotation_config(self.temp_dir, {"filenameobj": ""}, warn=self.warnings.append)

        self.assertEqual(config.filename, "")
        self.assertEqual(len(self.warnings), 1)

    def test_unknown_option_warns(self):
        config = build_rotation_config(self.temp_dir, options={"colour": "red"}, warn=self.warnings.append)

        self.assertEqual(config, RotationConfig(destination=os.path.abspath(self.temp_dir)))
        self.assertIn("colour", self.warnings[0])

    def test_invalid_max_size_uses_default(self):
        config = build_rotation_config(self.temp_dir, options={"max_size": "lots"}, warn=self.warnings.append)

        self.assertEqual(config.max_size, "20m")
        self.assertEqual(config.max_bytes, 20 * 1024 * 1024)
        self.assertIn("max_size", self.warnings[0])

    def test_invalid_retention_uses_default(self):
        config = build_rotation_config(self.temp_dir, options={"retention": "forever"}, warn=self.warnings.append)

        self.assertEqual(config.retention, "14d")
        self.assertIn("retention", self.warnings[0])

    def test_invalid_level_uses_default(self):
        config = build_rotation_config(self.temp_dir, options={"level": "bogus"}, warn=self.warnings.append)

        self.assertEqual(config.level, "debug")
        self.assertIn("bogus", self.warnings[0])

    def test_level_is_normalized(self):
        config = build_rotation_config(self.temp_dir, options={"level": "CRITICAL"}, warn=self.warnings.append)

        self.assertEqual(config.level, "critical")
        self.assertEqual(self.warnings, [])

    def test_normalize_destination(self):
        self.assertIsNone(normalize_destination(""))
        self.assertIsNone(normalize_destination(None))
        self.assertEqual(normalize_destination(Path(self.temp_dir)), os.path.abspath(self.temp_dir))


class TestLoggingConfig(unittest.TestCase):
    """Test LoggingConfig class"""

    def setUp(self):
        """Set up test fixtures"""
        self.original_env = os.environ.copy()
        for key in list(os.environ):
            if key.startswith("TIDELOG_"):
                del os.environ[key]
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        """Restore environment"""
        os.environ.clear()
        os.environ.update(self.original_env)
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_default_config(self):
        config = LoggingConfig.load()

        self.assertEqual(config["environment"], "development")
        self.assertEqual(config["level"], "debug")
        self.assertTrue(config["console"])
        self.assertEqual(config["console_stream"], "stderr")
        self.assertTrue(config["handle_exceptions"])

    def test_production_level(self):
        """Test production starts at notice"""
        os.environ["TIDELOG_ENV"] = "production"

        self.assertEqual(LoggingConfig.load()["level"], "notice")

    def test_env_var_overrides(self):
        os.environ["TIDELOG_LEVEL"] = "warning"
        os.environ["TIDELOG_CONSOLE"] = "no"
        os.environ["TIDELOG_CONSOLE_STREAM"] = "stdout"
        os.environ["TIDELOG_HANDLE_EXCEPTIONS"] = "0"

        config = LoggingConfig.load()

        self.assertEqual(config["level"], "warning")
        self.assertFalse(config["console"])
        self.assertEqual(config["console_stream"], "stdout")
        self.assertFalse(config["handle_exceptions"])

    def test_file_config(self):
        config_file = Path(self.temp_dir) / "tidelog.yml"
        config_file.write_text("tidelog:\n  environment: production\n  console_stream: stdout\n")

        config = LoggingConfig.load(str(config_file))

        self.assertEqual(config["environment"], "production")
        self.assertEqual(config["level"], "notice")
        self.assertEqual(config["console_stream"], "stdout")

    def test_env_overrides_file(self):
        config_file = Path(self.temp_dir) / "tidelog.yml"
        config_file.write_text("tidelog:\n  level: info\n")
        os.environ["TIDELOG_LEVEL"] = "error"

        self.assertEqual(LoggingConfig.load(str(config_file))["level"], "error")

    def test_code_overrides_env(self):
        os.environ["TIDELOG_LEVEL"] = "error"

        config = LoggingConfig.load(overrides={"level": "info", "console": None})

        self.assertEqual(config["level"], "info")
        self.assertTrue(config["console"])

    def test_env_substitution(self):
        os.environ["APP_STREAM"] = "stdout"
        config_file = Path(self.temp_dir) / "tidelog.yml"
        config_file.write_text("tidelog:\n  console_stream: ${APP_STREAM}\n")

        self.assertEqual(LoggingConfig.load(str(config_file))["console_stream"], "stdout")

    def test_missing_file_uses_defaults(self):
        config = LoggingConfig.load(str(Path(self.temp_dir) / "missing.yml"))
        self.assertEqual(config["level"], "debug")

    def test_validate(self):
        self.assertEqual(LoggingConfig.validate({"level": "notice"}), (True, ""))

        is_valid, error = LoggingConfig.validate({"level": "verbose"})
        self.assertFalse(is_valid)
        self.assertIn("verbose", error)

        is_valid, error = LoggingConfig.validate({"level": "info", "console_stream": "file"})
        self.assertFalse(is_valid)
        self.assertIn("console stream", error)


if __name__ == "__main__":
    unittest.main()

"""
Configuration System - Logger and rotating sink configuration for tidelog

Provides:
- RotationConfig, the named settings of one daily rotating file sink
- build_rotation_config, merging caller overrides onto the defaults
- LoggingConfig, loading logger settings from file, environment and code
"""

import os
import re
import sys
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

import yaml
from humanfriendly import InvalidSize, InvalidTimespan, parse_size

from tidelog.file_handler import parse_retention
from tidelog.levels import LEVEL_NAMES, default_level_name, find_level


@dataclass(frozen=True)
class RotationConfig:
    """
    Settings of one daily rotating file sink.

    Files are named "<date>-<filename>-<extname>.log" inside destination,
    empty segments are dropped.

    Attributes:
        destination: directory receiving log files (absolute once built)
        filename: optional custom name segment
        extname: trailing name segment, also used to name the sink
        date_pattern: strftime pattern for the date segment
        max_size: size before starting a new file ("20m", "1g" or bytes)
        retention: files to keep (int) or maximum age ("14d")
        zipped: gzip files once rotated out
        level: minimum level name written by the sink
        name: sink name, derived from filename and extname when None
        can_change_level: whether broadcast level changes apply to the sink
    """

    destination: str = "."
    filename: str = ""
    extname: str = "combined"
    date_pattern: str = "%Y%m%d"
    max_size: Union[str, int] = "20m"
    retention: Union[str, int, None] = "14d"
    zipped: bool = True
    level: str = "debug"
    name: Optional[str] = None
    can_change_level: bool = True

    @property
    def sink_name(self) -> str:
        if self.name:
            return self.name
        return "-".join(part for part in (self.filename, self.extname) if part)

    @property
    def filename_template(self) -> str:
        stem = "-".join(part for part in ("{date}", self.filename, self.extname) if part)
        return f"{stem}.log"

    @property
    def max_bytes(self) -> int:
        if isinstance(self.max_size, int):
            return self.max_size
        return parse_size(str(self.max_size), binary=True)

    @property
    def audit_file(self) -> str:
        return f".{self.sink_name}-audit.json"


ROTATION_FIELDS = frozenset(item.name for item in fields(RotationConfig))


def normalize_destination(destination) -> Optional[str]:
    """
    Normalize and absolutize a destination directory.

    Args:
        destination: str or PathLike

    Returns:
        Absolute normalized path, or None when destination is unusable
    """
    if isinstance(destination, os.PathLike):
        destination = os.fspath(destination)
    if not isinstance(destination, str) or not destination.strip():
        return None
    return os.path.abspath(os.path.normpath(destination))


def _checked_values(config: RotationConfig, warn: Callable[[str], Any]) -> RotationConfig:
    """Replace unusable size, retention and level values with the defaults"""
    defaults = RotationConfig()

    try:
        config.max_bytes
    except InvalidSize:
        warn(f"Invalid max_size {config.max_size!r}, using {defaults.max_size}.")
        config = replace(config, max_size=defaults.max_size)

    try:
        parse_retention(config.retention)
    except InvalidTimespan:
        warn(f"Invalid retention {config.retention!r}, using {defaults.retention}.")
        config = replace(config, retention=defaults.retention)

    level = find_level(config.level)
    if level is None:
        warn(f"Invalid level name {config.level!r}, using {defaults.level}.")
        config = replace(config, level=defaults.level)
    else:
        config = replace(config, level=level.name)

    return config


def build_rotation_config(
    destination=None,
    filename=None,
    options: Optional[Mapping[str, Any]] = None,
    warn: Optional[Callable[[str], Any]] = None,
) -> RotationConfig:
    """
    Merge caller overrides onto the default rotation settings.

    Precedence: filename argument > options > defaults. A destination given
    in options is used only when the destination argument is missing; with
    neither, the current working directory is used.

    Args:
        destination: target directory
        filename: custom file name segment, ignored unless a non-empty string
        options: mapping of RotationConfig field overrides
        warn: callable receiving warnings about ignored values

    Returns:
        Frozen RotationConfig with an absolute destination

    Example:
        config = build_rotation_config("/var/log/app", "api", {"level": "info"})
        config.filename_template  # "{date}-api-combined.log"
    """
    warn = warn or (lambda message: None)
    config = RotationConfig()

    resolved = normalize_destination(destination)

    if isinstance(options, Mapping):
        overrides = {}
        for key, value in options.items():
            if key not in ROTATION_FIELDS:
                warn(f"Unknown rotation option '{key}' ignored.")
                continue
            if key == "destination":
                resolved = resolved or normalize_destination(value)
                continue
            overrides[key] = value
        config = replace(config, **overrides)
    elif options is not None:
        warn("Rotation options must be a mapping, defaults were used.")

    config = _checked_values(config, warn)

    if filename is not None:
        if isinstance(filename, str):
            if filename:
                config = replace(config, filename=filename)
        else:
            warn(f"Invalid filename {filename!r}, default filename was kept.")

    if resolved is None:
        resolved = os.getcwd()
        warn(f"No valid destination given, using current directory {resolved}.")
    return replace(config, destination=resolved)


class LoggingConfig:
    """
    Centralized logger configuration for tidelog.

    Reads from file, environment variables or keyword overrides with
    proper precedence handling.

    Example configuration file (tidelog.yml):
        tidelog:
          environment: production
          level: notice
          console: true
          console_stream: stderr
          handle_exceptions: true
    """

    DEFAULT_CONFIG = {
        "environment": "development",
        "level": None,  # derived from environment when unset
        "console": True,
        "console_stream": "stderr",  # stderr or stdout
        "handle_exceptions": True,
    }

    @classmethod
    def load(cls, config_path: Optional[str] = None, overrides: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Load configuration from multiple sources.

        Precedence: Overrides > Environment > File > Default

        Args:
            config_path: Path to YAML configuration file
            overrides: Values set in code, None values are skipped

        Returns:
            Configuration dictionary with "level" always resolved
        """
        config = cls.DEFAULT_CONFIG.copy()

        if config_path and Path(config_path).exists():
            file_config = cls._load_from_file(config_path)
            if isinstance(file_config, dict) and isinstance(file_config.get("tidelog"), dict):
                config.update(file_config["tidelog"])

        config = cls._apply_env_overrides(config)
        config = cls._substitute_env_vars(config)

        if overrides:
            config.update({key: value for key, value in overrides.items() if value is not None})

        if not config.get("level"):
            config["level"] = default_level_name(config.get("environment"))

        return config

    @classmethod
    def _load_from_file(cls, config_path: str) -> Optional[Dict[str, Any]]:
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to configuration file

        Returns:
            Configuration dictionary or None if error
        """
        try:
            with open(config_path) as f:
                return yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            sys.stderr.write(f"Error loading config file {config_path}: {e}\n")
            return None

    @staticmethod
    def _as_bool(value: str) -> bool:
        return value.lower() in ("true", "yes", "1", "on")

    @classmethod
    def _apply_env_overrides(cls, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply environment variable overrides.

        Environment variables:
            TIDELOG_ENV: Runtime environment, "production" starts at notice
            TIDELOG_LEVEL: Starting level name (emergency ... debug)
            TIDELOG_CONSOLE: Enable/disable console sink (true, false, yes, no, 1, 0)
            TIDELOG_CONSOLE_STREAM: Console stream (stderr, stdout)
            TIDELOG_HANDLE_EXCEPTIONS: Log uncaught exceptions (true, false, ...)

        Args:
            config: Configuration dictionary

        Returns:
            Updated configuration dictionary
        """
        env_mappings = {
            "TIDELOG_ENV": "environment",
            "TIDELOG_LEVEL": "level",
            "TIDELOG_CONSOLE_STREAM": "console_stream",
        }

        for env_var, config_key in env_mappings.items():
            if env_var in os.environ:
                config[config_key] = os.environ[env_var]

        for env_var, config_key in (("TIDELOG_CONSOLE", "console"), ("TIDELOG_HANDLE_EXCEPTIONS", "handle_exceptions")):
            if env_var in os.environ:
                config[config_key] = cls._as_bool(os.environ[env_var])

        return config

    @classmethod
    def _substitute_env_vars(cls, config: Any) -> Any:
        """
        Recursively substitute environment variables in configuration.

        Supports ${VAR_NAME} syntax.

        Args:
            config: Configuration value (string, dict, list, etc.)

        Returns:
            Configuration with substituted values
        """
        if isinstance(config, str):

            def replace_env(match):
                var_name = match.group(1)
                return os.environ.get(var_name, match.group(0))

            return re.sub(r"\$\{([^}]+)\}", replace_env, config)

        elif isinstance(config, dict):
            return {k: cls._substitute_env_vars(v) for k, v in config.items()}

        elif isinstance(config, list):
            return [cls._substitute_env_vars(item) for item in config]

        else:
            return config

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> tuple:
        """
        Validate configuration.

        Args:
            config: Configuration dictionary

        Returns:
            Tuple of (is_valid, error_message)
        """
        level = config.get("level")
        if level is not None and str(level).lower() not in LEVEL_NAMES:
            return False, f"Invalid log level '{level}'. Must be one of: {', '.join(LEVEL_NAMES)}"

        valid_streams = ["stderr", "stdout"]
        stream = config.get("console_stream", "stderr")
        if stream not in valid_streams:
            return False, f"Invalid console stream '{stream}'. Must be one of: {', '.join(valid_streams)}"

        return True, ""

"""
Configuration management for inlinefn builds.

Loads and validates the optional inlinefn.yaml file. Every section has
defaults, so a build works without any configuration file at all.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from inlinefn.errors import InlineFnError


DEFAULT_CONFIG_FILE = "inlinefn.yaml"

COMPOSITION_API_VERSION = "apiextensions.crossplane.io/v1"
COMPOSITION_KIND = "Composition"

LOG_FORMATS = ("structured", "pretty")


class ConfigError(InlineFnError):
    """Configuration validation error."""
    pass


def _section(value: Any, where: str) -> Dict[str, Any]:
    """A mapping-valued setting; null means empty."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{where} must be a mapping, got {type(value).__name__}")
    return value


def _items(value: Any, where: str) -> List[Any]:
    """A list-valued setting; null means empty."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigError(f"{where} must be a list, got {type(value).__name__}")
    return list(value)


class BundlerConfig:
    """Options handed to the source bundler."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        data = _section(data, "bundler")
        self.node_bin = data.get("node_bin", "node")
        self.platform = data.get("platform", "neutral")
        self.format = data.get("format", "esm")
        self.target = data.get("target", "es6")
        self.sourcemap = data.get("sourcemap", "inline")
        self.source_root = data.get("source_root")
        self.external: List[str] = _items(data.get("external"), "bundler: external")
        self.working_dir = Path(data["working_dir"]) if data.get("working_dir") else None
        self.timeout_s = data.get("timeout_s", 120)

    def validate(self) -> None:
        if self.platform not in ("neutral", "node", "browser"):
            raise ConfigError(f"bundler: unknown platform '{self.platform}'")
        if self.format not in ("esm", "cjs", "iife"):
            raise ConfigError(f"bundler: unknown format '{self.format}'")
        if self.sourcemap not in ("inline", "both", "external", "linked", False):
            raise ConfigError(f"bundler: unknown sourcemap mode '{self.sourcemap}'")
        if not isinstance(self.timeout_s, (int, float)) or self.timeout_s <= 0:
            raise ConfigError("bundler: timeout_s must be a positive number")
        if any(not isinstance(name, str) for name in self.external):
            raise ConfigError("bundler: external must be a list of module names")

    def to_options(self) -> Dict[str, Any]:
        """Options in the shape the bundler driver expects."""
        return {
            "platform": self.platform,
            "format": self.format,
            "target": self.target,
            "sourcemap": self.sourcemap,
            "sourceRoot": self.source_root,
            "external": self.external,
        }

    def __repr__(self) -> str:
        return f"BundlerConfig(platform={self.platform}, format={self.format}, target={self.target})"


class DowngraderConfig:
    """Options handed to the syntax downgrader."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        data = _section(data, "downgrader")
        self.node_bin = data.get("node_bin", "node")
        self.target_dialect = data.get("target_dialect", "commonjs")
        self.plugins: List[Any] = _items(data.get("plugins"), "downgrader: plugins")
        self.retain_lines = data.get("retain_lines", True)
        self.compact = data.get("compact", False)
        self.working_dir = Path(data["working_dir"]) if data.get("working_dir") else None
        self.timeout_s = data.get("timeout_s", 120)

    def validate(self) -> None:
        if not isinstance(self.target_dialect, str) or not self.target_dialect:
            raise ConfigError("downgrader: target_dialect must be a non-empty string")
        if not isinstance(self.retain_lines, bool) or not isinstance(self.compact, bool):
            raise ConfigError("downgrader: retain_lines and compact must be booleans")
        if not isinstance(self.timeout_s, (int, float)) or self.timeout_s <= 0:
            raise ConfigError("downgrader: timeout_s must be a positive number")

    def __repr__(self) -> str:
        return f"DowngraderConfig(target_dialect={self.target_dialect}, plugins={len(self.plugins)})"


class ManifestConfig:
    """Defaults for the composition document the packager writes."""

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        data = _section(data, "manifest")
        self.name = data.get("name", "function-inline")
        self.api_version = data.get("api_version", COMPOSITION_API_VERSION)
        self.kind = data.get("kind", COMPOSITION_KIND)
        type_ref = _section(data.get("composite_type_ref"), "manifest: composite_type_ref")
        self.composite_api_version = type_ref.get("apiVersion", "example.crossplane.io/v1")
        self.composite_kind = type_ref.get("kind", "XR")
        self.step = data.get("step", "run-the-template")
        self.function_name = data.get("function_name", "function-inline")
        self.annotations: Dict[str, Any] = dict(_section(data.get("annotations"), "manifest: annotations"))

    def validate(self) -> None:
        for key in ("name", "api_version", "kind", "composite_api_version", "composite_kind"):
            if not getattr(self, key):
                raise ConfigError(f"manifest: '{key}' is required")
        for key, value in self.annotations.items():
            if not isinstance(value, str):
                raise ConfigError(f"manifest: annotation '{key}' must be a string")

    def __repr__(self) -> str:
        return f"ManifestConfig(name={self.name}, step={self.step}, function={self.function_name})"


class BuildConfig:
    """Complete build configuration."""

    def __init__(self, raw_config: Optional[Dict[str, Any]] = None, config_path: Optional[Path] = None):
        self.config_path = config_path
        self.raw_config = raw_config or {}

        self.bundler = BundlerConfig(self.raw_config.get("bundler"))
        self.downgrader = DowngraderConfig(self.raw_config.get("downgrader"))
        self.manifest = ManifestConfig(self.raw_config.get("manifest"))

        self.logging = _section(self.raw_config.get("logging"), "logging")

    def get_log_level(self) -> str:
        """Get logging level."""
        return self.logging.get("level", "INFO").upper()

    def get_log_format(self) -> str:
        """Get log format (structured or pretty)."""
        return self.logging.get("format", "pretty")

    def should_log_to_console(self) -> bool:
        """Check if console logging is enabled."""
        return self.logging.get("console", True)

    def get_log_file_path(self) -> Optional[Path]:
        """Get log file path with date interpolation, if file logging is on."""
        log_output = self.logging.get("output")
        if not log_output:
            return None
        log_output = log_output.replace("{date}", datetime.now().strftime("%Y-%m-%d"))
        return Path(log_output)

    def validate(self) -> None:
        """Validate entire configuration."""
        for name, section in (
            ("bundler", self.bundler),
            ("downgrader", self.downgrader),
            ("manifest", self.manifest),
        ):
            try:
                section.validate()
            except ConfigError as e:
                raise ConfigError(f"Section '{name}' validation failed: {e}")

        if self.get_log_format() not in LOG_FORMATS:
            raise ConfigError(f"logging: format must be one of {', '.join(LOG_FORMATS)}")

    def __repr__(self) -> str:
        return f"BuildConfig(path={self.config_path}, manifest={self.manifest.name})"


def _load_yaml(config_path: Path) -> Dict[str, Any]:
    """Load and parse a YAML configuration file."""
    if not config_path.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax: {e}")

    if not config:
        raise ConfigError("Configuration file is empty")
    if not isinstance(config, dict):
        raise ConfigError(f"Configuration root must be a mapping: {config_path}")
    return config


def load_config(config_path: Optional[Path] = None) -> BuildConfig:
    """
    Load build configuration from YAML file.

    Args:
        config_path: Path to config file. When omitted, ./inlinefn.yaml is used
                     if it exists, otherwise built-in defaults apply.

    Returns:
        Validated BuildConfig instance

    Raises:
        ConfigError: If config is invalid or an explicit path is missing
    """
    if config_path is None:
        default_path = Path.cwd() / DEFAULT_CONFIG_FILE
        if not default_path.exists():
            config = BuildConfig()
            config.validate()
            return config
        config_path = default_path

    config = BuildConfig(_load_yaml(Path(config_path)), config_path=Path(config_path))
    config.validate()
    return config

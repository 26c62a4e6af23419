import pytest
import yaml
from pathlib import Path

from inlinefn.config import (
    COMPOSITION_API_VERSION,
    BuildConfig,
    BundlerConfig,
    ConfigError,
    load_config,
)


def test_load_config_defaults_without_file(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    cfg = load_config()
    assert isinstance(cfg, BuildConfig)
    assert cfg.config_path is None
    assert cfg.bundler.format == "esm"
    assert cfg.bundler.sourcemap == "inline"
    assert cfg.downgrader.target_dialect == "commonjs"
    assert cfg.downgrader.retain_lines is True
    assert cfg.manifest.api_version == COMPOSITION_API_VERSION
    assert cfg.manifest.step == "run-the-template"


def test_load_config_picks_up_default_file(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "inlinefn.yaml").write_text(yaml.dump({"manifest": {"name": "buckets"}}))

    cfg = load_config()
    assert cfg.manifest.name == "buckets"
    assert cfg.config_path == tmp_path / "inlinefn.yaml"


def test_load_config_valid(tmp_path):
    config_path = tmp_path / "build.yaml"
    config_data = {
        "bundler": {"platform": "node", "external": ["base64", "yaml"], "timeout_s": 30},
        "downgrader": {"target_dialect": "es5", "compact": True},
        "manifest": {
            "name": "function-inline",
            "composite_type_ref": {"apiVersion": "storage.example.org/v1", "kind": "XBucket"},
            "annotations": {"team": "platform"},
        },
        "logging": {"level": "debug", "format": "structured"},
    }
    config_path.write_text(yaml.dump(config_data))

    cfg = load_config(config_path)
    assert cfg.bundler.platform == "node"
    assert cfg.bundler.external == ["base64", "yaml"]
    assert cfg.bundler.to_options()["external"] == ["base64", "yaml"]
    assert cfg.downgrader.target_dialect == "es5"
    assert cfg.downgrader.compact is True
    assert cfg.manifest.composite_kind == "XBucket"
    assert cfg.manifest.annotations == {"team": "platform"}
    assert cfg.get_log_level() == "DEBUG"
    assert cfg.get_log_format() == "structured"


def test_load_config_missing_explicit_file(tmp_path):
    with pytest.raises(ConfigError, match="Configuration file not found"):
        load_config(tmp_path / "nope.yaml")


def test_load_config_empty_file(tmp_path):
    config_path = tmp_path / "inlinefn.yaml"
    config_path.write_text("")
    with pytest.raises(ConfigError, match="empty"):
        load_config(config_path)


def test_load_config_invalid_yaml(tmp_path):
    config_path = tmp_path / "inlinefn.yaml"
    config_path.write_text("bundler: [unclosed")
    with pytest.raises(ConfigError, match="Invalid YAML syntax"):
        load_config(config_path)


def test_load_config_rejects_non_mapping_root(tmp_path):
    config_path = tmp_path / "inlinefn.yaml"
    config_path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError, match="must be a mapping"):
        load_config(config_path)


def test_load_config_null_settings_use_defaults(tmp_path):
    config_path = tmp_path / "inlinefn.yaml"
    config_path.write_text(
        "bundler:\n"
        "  external: null\n"
        "manifest:\n"
        "  composite_type_ref: null\n"
        "  annotations: null\n"
        "logging: null\n"
    )

    config = load_config(config_path)

    assert config.bundler.external == []
    assert config.manifest.composite_kind == "XR"
    assert config.manifest.annotations == {}
    assert config.get_log_level() == "INFO"


@pytest.mark.parametrize(
    "content, message",
    [
        ("manifest:\n  composite_type_ref: XR\n", "manifest: composite_type_ref must be a mapping, got str"),
        ("manifest:\n  annotations: [a, b]\n", "manifest: annotations must be a mapping, got list"),
        ("manifest:\n  annotations:\n    replicas: 3\n", "annotation 'replicas' must be a string"),
        ("bundler: esm\n", "bundler must be a mapping, got str"),
        ("downgrader:\n  plugins: preset-env\n", "downgrader: plugins must be a list, got str"),
    ],
)
def test_load_config_rejects_malformed_sections(tmp_path, content, message):
    config_path = tmp_path / "inlinefn.yaml"
    config_path.write_text(content)
    with pytest.raises(ConfigError, match=message):
        load_config(config_path)


class TestValidation:
    """Section validation errors name their section."""

    def test_unknown_bundler_format(self):
        cfg = BuildConfig({"bundler": {"format": "amd"}})
        with pytest.raises(ConfigError, match="Section 'bundler'.*unknown format 'amd'"):
            cfg.validate()

    def test_bad_timeout(self):
        with pytest.raises(ConfigError, match="timeout_s"):
            BundlerConfig({"timeout_s": 0}).validate()

    def test_downgrader_flags_must_be_booleans(self):
        cfg = BuildConfig({"downgrader": {"retain_lines": "yes"}})
        with pytest.raises(ConfigError, match="Section 'downgrader'"):
            cfg.validate()

    def test_manifest_name_required(self):
        cfg = BuildConfig({"manifest": {"name": ""}})
        with pytest.raises(ConfigError, match="'name' is required"):
            cfg.validate()

    def test_unknown_log_format(self):
        cfg = BuildConfig({"logging": {"format": "xml"}})
        with pytest.raises(ConfigError, match="logging: format"):
            cfg.validate()


class TestLoggingSettings:
    """Tests for the logging getters."""

    def test_defaults(self):
        cfg = BuildConfig()
        assert cfg.get_log_level() == "INFO"
        assert cfg.get_log_format() == "pretty"
        assert cfg.should_log_to_console() is True
        assert cfg.get_log_file_path() is None

    def test_log_file_date_interpolation(self):
        cfg = BuildConfig({"logging": {"output": "logs/build-{date}.log"}})
        path = cfg.get_log_file_path()
        assert isinstance(path, Path)
        assert "{date}" not in str(path)
        assert path.name.startswith("build-")

"""Tests for the inlinefn CLI."""

from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from inlinefn import __version__
from inlinefn.cli import main
from inlinefn.packager import Packager
from inlinefn.schemas import (
    CompositeTypeRef,
    FunctionArtifact,
    FunctionInput,
    PipelineManifest,
    PipelineStep,
)
from inlinefn.serialization import serialize_manifest


RENDER_SOURCE = (
    "module.exports.default = function (req, rsp) {\n"
    "  const prefix = req.observed.composite.resource.spec.bucketPrefix;\n"
    '  rsp.setDesiredComposedResource("bucket", {\n'
    '    apiVersion: "s3.aws.upbound.io/v1beta1",\n'
    '    kind: "Bucket",\n'
    '    metadata: { name: prefix + "-bucket" },\n'
    "  });\n"
    '  rsp.updateCompositeStatus({ bucket: prefix + "-bucket" });\n'
    "};\n"
)

BROKEN_SOURCE = 'module.exports.default = function () { throw new Error("nope"); };\n'


def render_bucket(req, rsp):
    prefix = req.composite.spec["bucketPrefix"]
    rsp.set_desired_composed_resource("bucket", {
        "apiVersion": "s3.aws.upbound.io/v1beta1",
        "kind": "Bucket",
        "metadata": {"name": prefix + "-bucket"},
    })
    rsp.update_composite_status({"bucket": prefix + "-bucket"})


def broken(req, rsp):
    raise RuntimeError("nope")


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def fake_engine(engine_factory):
    """Patch NodeScriptEngine so render runs the Python stand-ins."""
    engine = engine_factory({RENDER_SOURCE.strip(): render_bucket, BROKEN_SOURCE.strip(): broken})
    with patch("inlinefn.runtime.NodeScriptEngine", return_value=engine):
        yield engine


@pytest.fixture
def fake_packager(fake_bundler, fake_downgrader):
    """Patch Packager so the CLI builds with the fake tools."""
    def make(config):
        return Packager(config, bundler=fake_bundler, downgrader=fake_downgrader)

    with patch("inlinefn.packager.Packager", side_effect=make):
        yield


@pytest.fixture
def manifest_file(tmp_path):
    manifest = PipelineManifest(
        name="buckets",
        composite_type_ref=CompositeTypeRef("example.crossplane.io/v1", "XR"),
        pipeline=(
            PipelineStep(
                step="render",
                function_ref="function-inline",
                input=FunctionInput(FunctionArtifact(entry_source=RENDER_SOURCE)),
            ),
            PipelineStep(
                step="broken",
                function_ref="function-inline",
                input=FunctionInput(FunctionArtifact(entry_source=BROKEN_SOURCE)),
            ),
        ),
    )
    path = tmp_path / "composition.yaml"
    path.write_text(serialize_manifest(manifest))
    return path


@pytest.fixture
def observed_file(tmp_path, observed_composite):
    path = tmp_path / "xr.yaml"
    path.write_text(yaml.safe_dump(observed_composite))
    return path


def test_version(runner):
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


class TestBuildCommand:
    """Tests for `inlinefn build`."""

    def test_build(self, runner, fake_packager, entry_module, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        output = tmp_path / "composition.yaml"

        result = runner.invoke(main, ["build", str(entry_module), "-o", str(output), "--step", "render"])

        assert result.exit_code == 0, result.output
        assert "Wrote" in result.output
        assert "sha256:" in result.output
        assert yaml.safe_load(output.read_text())["spec"]["pipeline"][0]["step"] == "render"

    def test_build_annotations(self, runner, fake_packager, entry_module, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        output = tmp_path / "composition.yaml"

        result = runner.invoke(
            main,
            ["build", str(entry_module), "-o", str(output), "--annotation", "team=platform"],
        )

        assert result.exit_code == 0, result.output
        data = yaml.safe_load(output.read_text())
        assert data["spec"]["pipeline"][0]["input"]["metadata"]["annotations"] == {"team": "platform"}

    def test_bad_annotation(self, runner, fake_packager, entry_module, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(main, ["build", str(entry_module), "--annotation", "novalue"])
        assert result.exit_code == 2
        assert "KEY=VALUE" in result.output

    def test_build_failure(self, runner, fake_packager, entry_module, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        output = tmp_path / "composition.yaml"
        output.write_text("previous\n")
        entry_module.write_text("import missing from './missing';\n")

        result = runner.invoke(main, ["build", str(entry_module), "-o", str(output)])

        assert result.exit_code == 1
        assert "BundleError" in result.output
        assert "unchanged" in result.output
        assert output.read_text() == "previous\n"

    def test_invalid_config(self, runner, entry_module, tmp_path):
        config_path = tmp_path / "inlinefn.yaml"
        config_path.write_text(yaml.dump({"bundler": {"format": "amd"}}))

        result = runner.invoke(main, ["build", str(entry_module), "--config", str(config_path)])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_missing_entry(self, runner, tmp_path):
        result = runner.invoke(main, ["build", str(tmp_path / "nope.js")])
        assert result.exit_code == 2


class TestRenderCommand:
    """Tests for `inlinefn render`."""

    def test_render(self, runner, fake_engine, manifest_file, observed_file):
        result = runner.invoke(main, ["render", str(manifest_file), str(observed_file)])

        assert result.exit_code == 0, result.output
        response = yaml.safe_load(result.output)
        assert response["meta"]["tag"] == "buckets/render"
        bucket = response["desired"]["resources"]["bucket"]["resource"]
        assert bucket["metadata"]["name"] == "demo-bucket"
        assert response["desired"]["composite"]["resource"]["status"] == {"bucket": "demo-bucket"}
        assert fake_engine.calls == [(RENDER_SOURCE.strip(), False)]

    def test_render_state_document(self, runner, fake_engine, manifest_file, tmp_path, observed_composite):
        observed_file = tmp_path / "state.yaml"
        observed_file.write_text(yaml.safe_dump({"composite": {"resource": observed_composite}}))

        result = runner.invoke(main, ["render", str(manifest_file), str(observed_file)])

        assert result.exit_code == 0, result.output

    def test_render_failing_step(self, runner, fake_engine, manifest_file, observed_file):
        result = runner.invoke(
            main,
            ["render", str(manifest_file), str(observed_file), "--step", "broken"],
        )

        assert result.exit_code == 1
        assert "function error: nope" in result.output

    def test_unknown_step(self, runner, manifest_file, observed_file):
        result = runner.invoke(main, ["render", str(manifest_file), str(observed_file), "--step", "missing"])
        assert result.exit_code == 1
        assert "Unknown step: missing" in result.output
        assert "render, broken" in result.output

    def test_invalid_manifest(self, runner, observed_file, tmp_path):
        manifest_file = tmp_path / "bad.yaml"
        manifest_file.write_text("- not a manifest\n")
        result = runner.invoke(main, ["render", str(manifest_file), str(observed_file)])
        assert result.exit_code == 1
        assert "Cannot load input" in result.output

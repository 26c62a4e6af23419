import base64
import json
from pathlib import Path

import pytest

from inlinefn.config import BuildConfig
from inlinefn.errors import BundleError, FunctionExecutionError
from inlinefn.runtime import RunFunctionRequest, ScriptEngine, State
from inlinefn.schemas import FunctionArtifact, FunctionInput
from inlinefn.tools.base import Bundler, Downgrader


def inline_map(sources, mappings):
    """Build an inline source map comment for `sources` and `mappings`."""
    data = {"version": 3, "sources": sources, "names": [], "mappings": mappings}
    encoded = base64.b64encode(json.dumps(data).encode("utf-8")).decode("ascii")
    return f"//# sourceMappingURL=data:application/json;base64,{encoded}\n"


class FakeBundler(Bundler):
    """Reads the entry module and tags it, failing on unresolved imports."""

    def __init__(self):
        self.calls = []

    def bundle(self, entry_path: Path) -> str:
        self.calls.append(Path(entry_path))
        source = Path(entry_path).read_text()
        if "import missing" in source:
            raise BundleError("Could not resolve \"./missing\"", module_path=str(entry_path))
        return "// bundled\n" + source + inline_map(["src/index.js"], "AAAA;AACA;AAEA")


class FakeDowngrader(Downgrader):
    """Strips the ESM export keyword, the way the commonjs rewrite would."""

    def __init__(self):
        self.calls = []

    def downgrade(self, source: str, target_dialect: str) -> str:
        self.calls.append(target_dialect)
        return source.replace("export default ", "module.exports.default = ")


class FakeEngine(ScriptEngine):
    """Runs a registered Python callable in place of the source it is keyed by."""

    def __init__(self, functions):
        self.functions = functions
        self.calls = []

    def execute(self, source, request, response, transpile=False):
        self.calls.append((source, transpile))
        body = self.functions.get(source)
        if body is None:
            raise FunctionExecutionError("<inline>.js must export default function")
        body(request, response)


@pytest.fixture
def fake_bundler():
    return FakeBundler()


@pytest.fixture
def fake_downgrader():
    return FakeDowngrader()


@pytest.fixture
def build_config():
    return BuildConfig()


@pytest.fixture
def entry_module(tmp_path):
    entry = tmp_path / "src" / "index.js"
    entry.parent.mkdir()
    entry.write_text(
        "export default function (req, rsp) {\n"
        "  rsp.updateCompositeStatus({ ready: true });\n"
        "}\n"
    )
    return entry


@pytest.fixture
def observed_composite():
    return {
        "apiVersion": "example.crossplane.io/v1",
        "kind": "XR",
        "metadata": {"name": "example-xr"},
        "spec": {"bucketPrefix": "demo"},
    }


def make_request(source, observed_composite=None, desired=None, transpile=False, tag="test"):
    """Build a request whose Input embeds `source`."""
    fn_input = FunctionInput(FunctionArtifact(entry_source=source, transpile=transpile))
    observed = {}
    if observed_composite is not None:
        observed = {"composite": {"resource": observed_composite}}
    return RunFunctionRequest(
        input=fn_input.to_dict(),
        observed=State.from_dict(observed),
        desired=State.from_dict(desired or {}),
        tag=tag,
    )


@pytest.fixture
def request_factory():
    return make_request


@pytest.fixture
def source_map_comment():
    return inline_map


@pytest.fixture
def engine_factory():
    return FakeEngine

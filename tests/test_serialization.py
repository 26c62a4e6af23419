"""Tests for YAML encoding of manifests."""

import math

import pytest
import yaml

from inlinefn.errors import SerializationError
from inlinefn.schemas import (
    CompositeTypeRef,
    FunctionArtifact,
    FunctionInput,
    PipelineManifest,
    PipelineStep,
)
from inlinefn.serialization import (
    check_encodable,
    decode_document,
    deserialize_manifest,
    encode_document,
    serialize_manifest,
)


SOURCE = (
    '"use strict";\n'
    "module.exports.default = function (req, rsp) {\n"
    "  rsp.updateCompositeStatus({ ready: true });\n"
    "};\n"
)


@pytest.fixture
def manifest():
    return PipelineManifest(
        name="function-inline",
        composite_type_ref=CompositeTypeRef("example.crossplane.io/v1", "XR"),
        pipeline=(
            PipelineStep(
                step="run-the-template",
                function_ref="function-inline",
                input=FunctionInput(
                    FunctionArtifact(entry_source=SOURCE, annotations={"team": "platform"})
                ),
            ),
        ),
    )


class TestSerializeManifest:
    """Tests for serialize_manifest / deserialize_manifest."""

    def test_deterministic(self, manifest):
        assert serialize_manifest(manifest) == serialize_manifest(manifest)

    def test_roundtrip_document(self, manifest):
        text = serialize_manifest(manifest)
        assert encode_document(decode_document(text)) == text

    def test_roundtrip_manifest(self, manifest):
        assert deserialize_manifest(serialize_manifest(manifest)) == manifest

    def test_key_order_follows_document(self, manifest):
        text = serialize_manifest(manifest)
        assert text.index("apiVersion") < text.index("kind") < text.index("metadata") < text.index("spec")

    def test_source_as_literal_block(self, manifest):
        text = serialize_manifest(manifest)
        assert "inline: |" in text
        assert "  rsp.updateCompositeStatus({ ready: true });" in text

    def test_source_survives_verbatim(self, manifest):
        data = yaml.safe_load(serialize_manifest(manifest))
        assert data["spec"]["pipeline"][0]["input"]["spec"]["source"]["inline"] == SOURCE
        assert data["spec"]["pipeline"][0]["input"]["spec"]["source"]["transpile"] is False


class TestEncodeDocument:
    """Tests for encode_document."""

    def test_no_aliases_for_shared_values(self):
        shared = {"region": "us-east-1"}
        text = encode_document({"a": shared, "b": shared})
        assert "&" not in text
        assert "*" not in text

    def test_rejects_cycle(self):
        document = {"spec": {}}
        document["spec"]["self"] = document
        with pytest.raises(SerializationError, match="Cyclic structure at \\$.spec.self"):
            encode_document(document)

    def test_rejects_non_string_key(self):
        with pytest.raises(SerializationError, match="int key"):
            encode_document({"spec": {1: "one"}})

    def test_rejects_non_finite_float(self):
        with pytest.raises(SerializationError, match="non-finite"):
            encode_document({"ratio": math.nan})

    def test_rejects_unknown_type(self):
        with pytest.raises(SerializationError, match="Cannot encode object at \\$.value"):
            encode_document({"value": object()})

    def test_repeated_reference_is_not_a_cycle(self):
        item = [1, 2]
        check_encodable({"a": item, "b": [item, item]})


class TestDecodeDocument:
    """Tests for decode_document."""

    def test_invalid_yaml(self):
        with pytest.raises(SerializationError, match="Invalid YAML"):
            decode_document("spec: [unclosed")

    def test_non_mapping_root(self):
        with pytest.raises(SerializationError, match="must be a mapping"):
            decode_document("- a\n- b\n")

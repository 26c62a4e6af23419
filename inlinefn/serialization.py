"""
YAML encoding of manifests.

Encoding is pure and deterministic: key order is the order the document was
built in, no anchors or aliases are emitted, and multi-line strings (the
embedded function source) use literal block style where YAML allows it.
Decoding the output and encoding it again yields the same text.
"""

import math
from collections.abc import Mapping
from typing import Any

import yaml

from inlinefn.errors import SerializationError
from inlinefn.runtime.documents import thaw
from inlinefn.schemas import PipelineManifest


class ManifestDumper(yaml.SafeDumper):
    """SafeDumper that never emits aliases and prefers literal blocks for multi-line strings."""

    def ignore_aliases(self, data: Any) -> bool:
        return True


def _represent_str(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_str(data)


ManifestDumper.add_representer(str, _represent_str)


def check_encodable(value: Any, path: str = "$", _active: set[int] | None = None) -> None:
    """
    Verify that `value` is an acyclic JSON-shaped document.

    Raises:
        SerializationError: On a cycle, a non-string mapping key, a non-finite
                            float or any value that is not a mapping, list,
                            tuple, string, number, boolean or None
    """
    active = _active if _active is not None else set()

    if value is None or isinstance(value, (str, bool, int)):
        return
    if isinstance(value, float):
        if not math.isfinite(value):
            raise SerializationError(f"Cannot encode non-finite number at {path}")
        return

    if isinstance(value, (Mapping, list, tuple)):
        if id(value) in active:
            raise SerializationError(f"Cyclic structure at {path}")
        active.add(id(value))
        try:
            if isinstance(value, Mapping):
                for key, item in value.items():
                    if not isinstance(key, str):
                        raise SerializationError(
                            f"Cannot encode {type(key).__name__} key {key!r} at {path}"
                        )
                    check_encodable(item, f"{path}.{key}", active)
            else:
                for index, item in enumerate(value):
                    check_encodable(item, f"{path}[{index}]", active)
        finally:
            active.discard(id(value))
        return

    raise SerializationError(f"Cannot encode {type(value).__name__} at {path}")


def encode_document(document: Mapping[str, Any]) -> str:
    """
    Encode a structured document as YAML text.

    Raises:
        SerializationError: If the document is cyclic or not encodable
    """
    check_encodable(document)
    try:
        return yaml.dump(
            thaw(document),
            Dumper=ManifestDumper,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
        )
    except yaml.YAMLError as e:
        raise SerializationError(f"Cannot encode document: {e}")


def decode_document(text: str) -> dict[str, Any]:
    """
    Decode YAML text into a structured document.

    Raises:
        SerializationError: If the text is not valid YAML or not a mapping
    """
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise SerializationError(f"Invalid YAML document: {e}")

    if not isinstance(document, dict):
        raise SerializationError(
            f"Document root must be a mapping, got {type(document).__name__}"
        )
    return document


def serialize_manifest(manifest: PipelineManifest) -> str:
    """Encode a PipelineManifest as YAML text."""
    return encode_document(manifest.to_dict())


def deserialize_manifest(text: str) -> PipelineManifest:
    """Decode YAML text into a PipelineManifest."""
    return PipelineManifest.from_dict(decode_document(text))

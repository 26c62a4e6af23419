"""
FunctionArtifact and FunctionInput schemas.

A FunctionArtifact is the packaged function: the downgraded bundled source,
a flag telling the runtime whether it still has to transpile it, and opaque
string annotations. It is embedded in a pipeline step as the step's Input:

    apiVersion: javascript.fn.crossplane.io/v1beta1
    kind: Input
    metadata:
      annotations: {...}          # FunctionArtifact.annotations
    spec:
      source:
        transpile: false          # FunctionArtifact.transpile
        inline: "..."             # FunctionArtifact.entry_source
      values: {...}               # optional string variables
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from inlinefn.errors import EmbedError, InvalidInputError


INPUT_API_VERSION = "javascript.fn.crossplane.io/v1beta1"
INPUT_KIND = "Input"

SOURCE_TYPE_INLINE = "Inline"
SOURCE_TYPES = (SOURCE_TYPE_INLINE,)


def validate_string_map(value: Any, what: str) -> MappingProxyType:
    """Validate a string -> string mapping and return a read-only copy."""
    if value is None:
        return MappingProxyType({})
    if not isinstance(value, Mapping):
        raise EmbedError(f"{what} must be a mapping, got {type(value).__name__}")
    for key, item in value.items():
        if not isinstance(key, str):
            raise EmbedError(f"{what} keys must be strings, got {type(key).__name__}")
        if not isinstance(item, str):
            raise EmbedError(
                f"{what} value for '{key}' must be a string, got {type(item).__name__}"
            )
    return MappingProxyType(dict(value))


@dataclass(frozen=True)
class FunctionArtifact:
    """
    The packaged unit, immutable once created.

    Attributes:
        entry_source: The downgraded bundled source
        transpile: Whether the runtime must transpile the source before loading it
        annotations: Opaque passthrough metadata (string -> string)
    """
    entry_source: str
    transpile: bool = False
    annotations: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.entry_source, str):
            raise EmbedError(
                f"entry_source must be a string, got {type(self.entry_source).__name__}"
            )
        if not isinstance(self.transpile, bool):
            raise EmbedError(f"transpile must be a boolean, got {type(self.transpile).__name__}")
        object.__setattr__(self, "annotations", validate_string_map(self.annotations, "annotations"))


@dataclass(frozen=True)
class FunctionInput:
    """
    The Input payload of a pipeline step.

    Attributes:
        artifact: The embedded function
        values: String variables passed to the function with the request
        source_type: How the source is provided (only "Inline")
        api_version: Input API version
        kind: Input kind
    """
    artifact: FunctionArtifact
    values: Mapping[str, str] = field(default_factory=dict)
    source_type: str = SOURCE_TYPE_INLINE
    api_version: str = INPUT_API_VERSION
    kind: str = INPUT_KIND

    def __post_init__(self):
        if self.source_type not in SOURCE_TYPES:
            raise EmbedError(
                f"Unsupported source type '{self.source_type}'. Supported: {', '.join(SOURCE_TYPES)}"
            )
        object.__setattr__(self, "values", validate_string_map(self.values, "values"))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for YAML/JSON output."""
        result: dict[str, Any] = {
            "apiVersion": self.api_version,
            "kind": self.kind,
        }
        if self.artifact.annotations:
            result["metadata"] = {"annotations": dict(self.artifact.annotations)}

        spec: dict[str, Any] = {
            "source": {
                "transpile": self.artifact.transpile,
                "inline": self.artifact.entry_source,
            },
        }
        if self.source_type != SOURCE_TYPE_INLINE:
            spec["source"] = {"type": self.source_type, **spec["source"]}
        if self.values:
            spec["values"] = dict(self.values)
        result["spec"] = spec
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FunctionInput":
        """
        Deserialize from dictionary.

        Raises:
            InvalidInputError: If the payload does not describe a valid Input
        """
        if not isinstance(data, Mapping):
            raise InvalidInputError(f"Input must be an object, got {type(data).__name__}")

        spec = data.get("spec") or {}
        source = spec.get("source") if isinstance(spec, Mapping) else None
        if not isinstance(source, Mapping):
            raise InvalidInputError("Input is missing spec.source")

        inline = source.get("inline", "")
        if not isinstance(inline, str):
            raise InvalidInputError("spec.source.inline must be a string")

        metadata = data.get("metadata") or {}
        annotations = metadata.get("annotations") if isinstance(metadata, Mapping) else None

        try:
            return cls(
                artifact=FunctionArtifact(
                    entry_source=inline,
                    transpile=source.get("transpile", False),
                    annotations=annotations or {},
                ),
                values=spec.get("values") or {},
                source_type=source.get("type") or SOURCE_TYPE_INLINE,
                api_version=data.get("apiVersion", INPUT_API_VERSION),
                kind=data.get("kind", INPUT_KIND),
            )
        except EmbedError as e:
            raise InvalidInputError(f"Invalid function input: {e}")

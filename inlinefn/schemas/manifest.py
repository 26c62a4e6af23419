"""
PipelineManifest schema - the composition document the packager writes.

    apiVersion: apiextensions.crossplane.io/v1
    kind: Composition
    metadata:
      name: function-inline
    spec:
      compositeTypeRef: {apiVersion: ..., kind: ...}
      mode: Pipeline
      pipeline:
        - step: run-the-template
          functionRef: {name: function-inline}
          input: {...}            # FunctionInput

Step order is significant and preserved; step names are unique.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

from inlinefn.config import COMPOSITION_API_VERSION, COMPOSITION_KIND
from inlinefn.errors import EmbedError, InvalidInputError, SerializationError

from .artifact import FunctionInput


PIPELINE_MODE = "Pipeline"


@dataclass(frozen=True)
class PipelineStep:
    """
    One named step of the pipeline.

    Attributes:
        step: Step name, unique within the manifest
        function_ref: Name of the function that runs this step
        input: The step's Input payload holding the function artifact
    """
    step: str
    function_ref: str
    input: FunctionInput

    def __post_init__(self):
        if not isinstance(self.step, str) or not self.step.strip():
            raise EmbedError("Step name must be a non-empty string")
        if not isinstance(self.function_ref, str) or not self.function_ref.strip():
            raise EmbedError(f"Step '{self.step}': function name must be a non-empty string")

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "functionRef": {"name": self.function_ref},
            "input": self.input.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PipelineStep":
        try:
            function_ref = data["functionRef"]["name"]
            input_data = data["input"]
            step = data["step"]
        except (KeyError, TypeError) as e:
            raise SerializationError(f"Invalid pipeline step: missing {e}")

        try:
            fn_input = FunctionInput.from_dict(input_data)
        except InvalidInputError as e:
            raise SerializationError(f"Step '{step}': {e}")

        return cls(step=step, function_ref=function_ref, input=fn_input)


@dataclass(frozen=True)
class CompositeTypeRef:
    """The composite resource type a composition applies to."""
    api_version: str
    kind: str

    def to_dict(self) -> dict[str, str]:
        return {"apiVersion": self.api_version, "kind": self.kind}


@dataclass(frozen=True)
class PipelineManifest:
    """
    A composition running zero or more function steps in order.

    Attributes:
        name: metadata.name of the composition
        composite_type_ref: Composite type the composition applies to
        pipeline: Ordered steps
        api_version: Composition API version
        kind: Composition kind
    """
    name: str
    composite_type_ref: CompositeTypeRef
    pipeline: tuple[PipelineStep, ...] = field(default_factory=tuple)
    api_version: str = COMPOSITION_API_VERSION
    kind: str = COMPOSITION_KIND

    def __post_init__(self):
        object.__setattr__(self, "pipeline", tuple(self.pipeline))

        # Validate unique step names
        names = [s.step for s in self.pipeline]
        if len(names) != len(set(names)):
            duplicates = sorted({n for n in names if names.count(n) > 1})
            raise EmbedError(f"Duplicate step names: {', '.join(duplicates)}")

    def get_step(self, name: str) -> Optional[PipelineStep]:
        """Get a step by name."""
        for step in self.pipeline:
            if step.step == name:
                return step
        return None

    def with_step(self, step: PipelineStep) -> "PipelineManifest":
        """Return a copy with `step` appended to the pipeline."""
        return PipelineManifest(
            name=self.name,
            composite_type_ref=self.composite_type_ref,
            pipeline=self.pipeline + (step,),
            api_version=self.api_version,
            kind=self.kind,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for YAML output."""
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "metadata": {"name": self.name},
            "spec": {
                "compositeTypeRef": self.composite_type_ref.to_dict(),
                "mode": PIPELINE_MODE,
                "pipeline": [step.to_dict() for step in self.pipeline],
            },
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PipelineManifest":
        """
        Deserialize from dictionary.

        Raises:
            SerializationError: If the document is not a pipeline composition
            EmbedError: If step names are duplicated
        """
        try:
            spec = data["spec"]
            name = data["metadata"]["name"]
            type_ref = spec["compositeTypeRef"]
            composite_type_ref = CompositeTypeRef(
                api_version=type_ref["apiVersion"],
                kind=type_ref["kind"],
            )
        except (KeyError, TypeError) as e:
            raise SerializationError(f"Invalid composition document: missing {e}")

        mode = spec.get("mode", PIPELINE_MODE)
        if mode != PIPELINE_MODE:
            raise SerializationError(f"Unsupported composition mode '{mode}', expected '{PIPELINE_MODE}'")

        steps = spec.get("pipeline") or []
        if not isinstance(steps, list):
            raise SerializationError("spec.pipeline must be a list")

        return cls(
            name=name,
            composite_type_ref=composite_type_ref,
            pipeline=tuple(PipelineStep.from_dict(s) for s in steps),
            api_version=data.get("apiVersion", COMPOSITION_API_VERSION),
            kind=data.get("kind", COMPOSITION_KIND),
        )

"""
inlinefn.schemas - Schema definitions for packaged functions.

FunctionArtifact -> FunctionInput -> PipelineStep -> PipelineManifest

Lifecycle:
1. FunctionArtifact: created once by the packager from the downgraded source
2. FunctionInput: the step's Input payload wrapping the artifact
3. PipelineStep: a named step referencing the function that runs it
4. PipelineManifest: the composition document holding the ordered steps
"""

from .artifact import (
    FunctionArtifact,
    FunctionInput,
    INPUT_API_VERSION,
    INPUT_KIND,
    SOURCE_TYPE_INLINE,
)
from .manifest import (
    CompositeTypeRef,
    PipelineManifest,
    PipelineStep,
    PIPELINE_MODE,
)

__all__ = [
    # Artifact
    "FunctionArtifact",
    "FunctionInput",
    "INPUT_API_VERSION",
    "INPUT_KIND",
    "SOURCE_TYPE_INLINE",
    # Manifest
    "CompositeTypeRef",
    "PipelineManifest",
    "PipelineStep",
    "PIPELINE_MODE",
]

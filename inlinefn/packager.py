"""
Packager: entry module -> composition manifest.

Build pipeline (strictly sequential, each stage consumes the previous output):

    bundle     entry module + imports -> one ESM source (inline source map)
    downgrade  ESM source -> target dialect (source map carried through)
    embed      dialect source -> FunctionArtifact -> PipelineManifest
    serialize  PipelineManifest -> YAML text

The first failing stage aborts the build. Nothing is written until every
stage has succeeded, and the output file is replaced atomically, so a failed
build leaves any previous output untouched.

The same entry module and configuration always produce byte-identical
output.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from inlinefn.config import BuildConfig
from inlinefn.errors import BuildError, DowngradeError, EmbedError
from inlinefn.schemas import (
    CompositeTypeRef,
    FunctionArtifact,
    FunctionInput,
    PipelineManifest,
    PipelineStep,
)
from inlinefn.schemas.artifact import validate_string_map
from inlinefn.serialization import serialize_manifest
from inlinefn.sourcemap import SourceMap
from inlinefn.tools import BabelDowngrader, Bundler, Downgrader, EsbuildBundler
from inlinefn.utils import atomic_write_text, get_logger, text_checksum


@dataclass(frozen=True)
class BuildResult:
    """
    Outcome of a successful build.

    Attributes:
        manifest: The embedded manifest
        document: Serialized manifest text
        output_path: Where the document was written (None if not written)
        sha256: Checksum of the document
        duration_seconds: Wall time of the whole build
    """
    manifest: PipelineManifest
    document: str
    output_path: Optional[Path]
    sha256: str
    duration_seconds: float


class Packager:
    """
    Runs the build pipeline.

    Usage:
        packager = Packager(load_config())
        result = packager.build(Path("src/index.js"), Path("composition.yaml"))
    """

    def __init__(
        self,
        config: Optional[BuildConfig] = None,
        bundler: Optional[Bundler] = None,
        downgrader: Optional[Downgrader] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the packager.

        Args:
            config: Build configuration (defaults apply when omitted)
            bundler: Bundler tool (defaults to esbuild from config)
            downgrader: Downgrader tool (defaults to Babel from config)
            logger: Logger (defaults to the inlinefn.packager logger)
        """
        self.config = config or BuildConfig()
        self.bundler = bundler or EsbuildBundler.from_config(self.config.bundler)
        self.downgrader = downgrader or BabelDowngrader.from_config(self.config.downgrader)
        self.logger = logger or get_logger("packager")

    def bundle(self, entry: Path) -> str:
        """Bundle the module graph rooted at `entry` into one source."""
        self._log_stage("bundle", "stage_started", {"entry": str(entry)})
        code = self.bundler.bundle(Path(entry))
        self._log_stage("bundle", "stage_completed", {"bytes": len(code)})
        return code

    def downgrade(self, bundled: str, target_dialect: Optional[str] = None) -> str:
        """
        Rewrite bundled source into the target dialect.

        Raises:
            DowngradeError: With `location` mapped back to the original module
                            when the bundle's source map covers the position
        """
        dialect = target_dialect or self.config.downgrader.target_dialect
        self._log_stage("downgrade", "stage_started", {"target_dialect": dialect})

        try:
            code = self.downgrader.downgrade(bundled, dialect)
        except DowngradeError as e:
            raise self._map_downgrade_error(e, bundled)

        self._log_stage("downgrade", "stage_completed", {"bytes": len(code)})
        return code

    def _map_downgrade_error(self, error: DowngradeError, bundled: str) -> DowngradeError:
        generated = error.location
        if generated is None or generated.line is None:
            return error

        source_map = SourceMap.from_source(bundled)
        if source_map is None:
            return error

        original = source_map.original_location(generated.line, generated.column or 0)
        if original is None:
            return error

        return DowngradeError(error.message, location=original, generated_location=generated)

    def embed(
        self,
        portable: str,
        step_name: Optional[str] = None,
        function_name: Optional[str] = None,
        annotations: Optional[Dict[str, str]] = None,
    ) -> PipelineManifest:
        """
        Wrap portable source in a single-step pipeline manifest.

        The source is embedded verbatim with transpile=False: it has already
        been rewritten into the runtime's dialect.

        Raises:
            EmbedError: If the step name, function name or annotations are invalid
        """
        manifest_config = self.config.manifest
        step_name = manifest_config.step if step_name is None else step_name
        function_name = manifest_config.function_name if function_name is None else function_name
        merged = dict(manifest_config.annotations)
        merged.update(annotations or {})

        artifact = FunctionArtifact(entry_source=portable, transpile=False, annotations=merged)
        step = PipelineStep(
            step=step_name,
            function_ref=function_name,
            input=FunctionInput(artifact=artifact),
        )
        manifest = PipelineManifest(
            name=manifest_config.name,
            composite_type_ref=CompositeTypeRef(
                api_version=manifest_config.composite_api_version,
                kind=manifest_config.composite_kind,
            ),
            pipeline=(step,),
            api_version=manifest_config.api_version,
            kind=manifest_config.kind,
        )

        self._log_stage("embed", "stage_completed", {"step": step_name, "function": function_name})
        return manifest

    def serialize(self, manifest: PipelineManifest) -> str:
        """Encode a manifest as deterministic YAML."""
        document = serialize_manifest(manifest)
        self._log_stage("serialize", "stage_completed", {"bytes": len(document)})
        return document

    def build(
        self,
        entry: Path,
        output_path: Optional[Path] = None,
        step_name: Optional[str] = None,
        function_name: Optional[str] = None,
        annotations: Optional[Dict[str, str]] = None,
    ) -> BuildResult:
        """
        Run the whole pipeline and write the manifest.

        Args:
            entry: Entry module
            output_path: Destination file; the document is only returned when omitted
            step_name: Pipeline step name (config default when omitted)
            function_name: Function reference name (config default when omitted)
            annotations: Extra annotations merged over the configured ones

        Returns:
            BuildResult

        Raises:
            BuildError: From the first failing stage; nothing is written
        """
        started = time.time()
        entry = Path(entry)

        self.logger.info(
            f"Building {entry}",
            extra={
                "event": "build_started",
                "metadata": {
                    "entry": str(entry),
                    "output": str(output_path) if output_path else None,
                },
            },
        )

        try:
            # Embed arguments do not depend on the source; reject them before any tool runs
            self._check_embed_arguments(step_name, function_name, annotations)

            bundled = self.bundle(entry)
            portable = self.downgrade(bundled)
            manifest = self.embed(portable, step_name, function_name, annotations)
            document = self.serialize(manifest)

            if output_path is not None:
                atomic_write_text(Path(output_path), document)
        except BuildError as e:
            self.logger.error(
                f"Build failed: {e}",
                extra={
                    "event": "build_failed",
                    "metadata": {"entry": str(entry), "error_type": type(e).__name__},
                },
            )
            raise

        duration = time.time() - started
        result = BuildResult(
            manifest=manifest,
            document=document,
            output_path=Path(output_path) if output_path is not None else None,
            sha256=text_checksum(document),
            duration_seconds=duration,
        )

        self.logger.info(
            "Build completed",
            extra={
                "event": "build_completed",
                "metadata": {
                    "entry": str(entry),
                    "output": str(output_path) if output_path else None,
                    "sha256": result.sha256,
                    "duration_seconds": round(duration, 3),
                },
            },
        )
        return result

    def _check_embed_arguments(
        self,
        step_name: Optional[str],
        function_name: Optional[str],
        annotations: Optional[Dict[str, str]],
    ) -> None:
        manifest_config = self.config.manifest
        step_name = manifest_config.step if step_name is None else step_name
        function_name = manifest_config.function_name if function_name is None else function_name

        if not isinstance(step_name, str) or not step_name.strip():
            raise EmbedError("Step name must be a non-empty string")
        if not isinstance(function_name, str) or not function_name.strip():
            raise EmbedError(f"Step '{step_name}': function name must be a non-empty string")
        validate_string_map(manifest_config.annotations, "annotations")
        validate_string_map(annotations, "annotations")

    def _log_stage(self, stage: str, event: str, metadata: Dict[str, object]) -> None:
        self.logger.debug(
            f"{stage}: {event.replace('_', ' ')}",
            extra={"stage": stage, "event": event, "metadata": metadata},
        )

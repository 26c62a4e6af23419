"""
CLI interface for inlinefn.

Provides commands to package a function module into a composition manifest
and to render a manifest's function against an observed composite.
"""

import sys
from pathlib import Path

import click

from inlinefn import __version__
from inlinefn.config import ConfigError, load_config
from inlinefn.errors import BuildError, InlineFnError
from inlinefn.utils import (
    format_duration,
    print_banner,
    print_error,
    print_info,
    print_success,
    print_warning,
    setup_logging,
)


def _parse_annotations(values: tuple[str, ...]) -> dict[str, str]:
    """Parse repeated KEY=VALUE options."""
    annotations = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got '{item}'", param_hint="--annotation")
        annotations[key] = value
    return annotations


@click.group()
@click.version_option(version=__version__, prog_name="inlinefn")
def main():
    """
    inlinefn - Inline composition functions.

    Package a function module into a composition manifest, or run a packaged
    function against an observed composite.
    """
    pass


@main.command("build")
@click.argument("entry", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=Path("composition.yaml"),
    show_default=True,
    help="Manifest file to write",
)
@click.option("--config", "config_path", type=click.Path(path_type=Path), help="Path to inlinefn.yaml")
@click.option("--step", "step_name", help="Pipeline step name")
@click.option("--function", "function_name", help="Function reference name")
@click.option("--annotation", "annotations", multiple=True, help="Artifact annotation KEY=VALUE (repeatable)")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def build(entry: Path, output: Path, config_path, step_name, function_name, annotations, verbose: bool):
    """Bundle, downgrade and embed ENTRY into a composition manifest."""
    from inlinefn.packager import Packager

    try:
        config = load_config(config_path)
    except ConfigError as e:
        print_error(f"Invalid configuration: {e}")
        sys.exit(1)

    setup_logging(
        log_file=config.get_log_file_path(),
        log_level="DEBUG" if verbose else config.get_log_level(),
        log_format=config.get_log_format(),
        console_output=config.should_log_to_console(),
    )

    print_banner(f"inlinefn build: {entry.name}")

    try:
        result = Packager(config).build(
            entry,
            output_path=output,
            step_name=step_name,
            function_name=function_name,
            annotations=_parse_annotations(annotations),
        )
    except BuildError as e:
        print_error(f"{type(e).__name__}: {e}")
        if output.exists():
            print_warning(f"Left existing {output} unchanged")
        sys.exit(1)

    print_success(f"Wrote {result.output_path}")
    print_info(f"sha256: {result.sha256}")
    print_info(f"Duration: {format_duration(result.duration_seconds)}")


@main.command("render")
@click.argument("manifest_path", metavar="MANIFEST", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("observed_path", metavar="OBSERVED", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--step", "step_name", help="Step to run (defaults to the first step)")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def render(manifest_path: Path, observed_path: Path, step_name, verbose: bool):
    """
    Run a packaged function once and print its response.

    OBSERVED is either a composite resource document or a state document with
    `composite` and `resources` keys.
    """
    from inlinefn.runtime import (
        FunctionRunner,
        NodeScriptEngine,
        RunFunctionRequest,
        State,
    )
    from inlinefn.serialization import decode_document, deserialize_manifest, encode_document

    setup_logging(log_level="DEBUG" if verbose else "WARNING")

    try:
        manifest = deserialize_manifest(manifest_path.read_text())
        observed_doc = decode_document(observed_path.read_text())
    except (InlineFnError, OSError) as e:
        print_error(f"Cannot load input: {e}")
        sys.exit(1)

    if not manifest.pipeline:
        print_error(f"{manifest_path} has no pipeline steps")
        sys.exit(1)

    if step_name is None:
        step = manifest.pipeline[0]
    else:
        step = manifest.get_step(step_name)
        if step is None:
            available = ", ".join(s.step for s in manifest.pipeline)
            print_error(f"Unknown step: {step_name} (available: {available})")
            sys.exit(1)

    if "composite" not in observed_doc:
        observed_doc = {"composite": {"resource": observed_doc}}

    try:
        observed = State.from_dict(observed_doc)
    except InlineFnError as e:
        print_error(f"Invalid observed state: {e}")
        sys.exit(1)

    request = RunFunctionRequest(
        input=step.input.to_dict(),
        observed=observed,
        desired=State(),
        tag=f"{manifest.name}/{step.step}",
    )
    response = FunctionRunner(NodeScriptEngine()).run(request)

    click.echo(encode_document(response.to_dict()), nl=False)

    if response.failed:
        for result in response.results:
            print_error(result.message)
        sys.exit(1)


if __name__ == "__main__":
    main()

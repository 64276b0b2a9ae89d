"""CLI entry point for quickbase-spec."""

from pathlib import Path

import click

from quickbase_spec.common import SpecPaths, log
from quickbase_spec.convert import convert as run_convert
from quickbase_spec.fixtures.generate import generate as run_generate
from quickbase_spec.fixtures.health import health_check
from quickbase_spec.patch.engine import patch as run_patch
from quickbase_spec.split import split as run_split
from quickbase_spec.summarize import summarize as run_summarize
from quickbase_spec.validate import validate as run_validate

INPUT = click.argument("input_path", required=False, type=click.Path(exists=True, dir_okay=False, path_type=Path))


@click.group()
@click.option(
    "--spec-dir",
    envvar="QUICKBASE_SPEC_DIR",
    default=".",
    show_default=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Spec workspace holding source/, overrides/, output/ and fixtures/.",
)
@click.pass_context
def main(ctx: click.Context, spec_dir: Path):
    """QuickBase OpenAPI spec tools: convert, patch, validate and check fixtures."""
    ctx.obj = SpecPaths(spec_dir=spec_dir)


@main.command()
@INPUT
@click.pass_obj
def convert(paths: SpecPaths, input_path: Path | None):
    """Convert Swagger 2.0 to OpenAPI 3.0."""
    run_convert(input_path, paths)


@main.command()
@INPUT
@click.pass_obj
def patch(paths: SpecPaths, input_path: Path | None):
    """Apply fixes and overrides to the converted spec."""
    run_patch(input_path, paths)


@main.command()
@INPUT
@click.pass_context
def validate(ctx: click.Context, input_path: Path | None):
    """Validate spec structure and references."""
    result = run_validate(input_path, ctx.obj)
    if not result.valid:
        ctx.exit(1)


@main.command()
@INPUT
@click.pass_obj
def split(paths: SpecPaths, input_path: Path | None):
    """Split the patched spec by tag for easier editing."""
    run_split(input_path, paths)


@main.command()
@INPUT
@click.pass_obj
def generate(paths: SpecPaths, input_path: Path | None):
    """Generate fixtures from examples embedded in the spec."""
    run_generate(input_path, paths)


@main.command()
@INPUT
@click.pass_context
def health(ctx: click.Context, input_path: Path | None):
    """Validate fixtures against the spec and report coverage."""
    report = health_check(input_path, ctx.obj)
    if not report.valid:
        ctx.exit(1)


main.add_command(health, name="check")


@main.command()
@INPUT
@click.pass_obj
def summarize(paths: SpecPaths, input_path: Path | None):
    """Write operations.json and OPERATIONS.md summaries."""
    run_summarize(input_path, paths)


@main.command()
@INPUT
@click.pass_context
def build(ctx: click.Context, input_path: Path | None):
    """Full pipeline: convert -> patch -> validate."""
    paths: SpecPaths = ctx.obj
    log("info", "Running full build pipeline...")

    run_convert(input_path, paths)
    run_patch(None, paths)
    result = run_validate(None, paths)

    if not result.valid:
        log("error", "Build failed - spec validation errors")
        ctx.exit(1)
    log("success", "Build completed successfully")

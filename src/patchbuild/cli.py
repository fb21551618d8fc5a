"""CLI commands for building and maintaining game patch packages."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import typer

from .builder import BuildResult, PatchPackageBuilder, create_context
from .config import DEFAULT_CONFIG_NAME, BuildConfig, load_build_config
from .errors import PatchBuildError
from .utils.hashing import file_hash

APP_HELP = "Build, verify and restore game patch packages."
LOG_FORMAT = "%(levelname)-7s %(name)s: %(message)s"

app = typer.Typer(help=APP_HELP)

_CONFIG_OPTION = typer.Option(
    DEFAULT_CONFIG_NAME,
    "--config",
    "-c",
    help="Path to the build configuration file.",
)


@app.callback()
def main(
    log_level: str = typer.Option(
        "INFO",
        "--log-level",
        "-l",
        help="Logging level for build output (DEBUG, INFO, WARNING, ERROR).",
    ),
) -> None:
    """Configure logging for every command."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level: {log_level}", param_hint="--log-level")
    logging.basicConfig(level=level, format=LOG_FORMAT)


def _fail(error: PatchBuildError) -> typer.Exit:
    """Echo a fatal build error with its details and return the exit to raise."""
    typer.echo(f"Fatal: {error}", err=True)
    for key, value in error.details.items():
        if key in {"stdout", "stderr"} and isinstance(value, str):
            value = value.strip()
            if not value:
                continue
        typer.echo(f"  {key}: {value}", err=True)
    return typer.Exit(code=1)


def _load(config: str, *, check_dirs: bool = True) -> BuildConfig:
    try:
        return load_build_config(Path(config), check_dirs=check_dirs)
    except PatchBuildError as error:
        raise _fail(error) from error


def _render_result(result: BuildResult) -> None:
    package = result.package
    typer.echo(f"Package: {package.meta.name} {package.meta.version}")
    typer.echo(f"Operations: {len(package.operations)}")
    for report in result.binary.files:
        typer.echo(f"- {report.name}: {report.total} edit(s), {report.errors} error(s) / skipped")
    typer.echo(f"Total patches: {result.binary.total}")
    typer.echo(f"Errors / Skipped: {result.binary.errors}")
    typer.echo(f"Manifest: {result.manifest_path.as_posix()}")


@app.command()
def build(
    config: str = _CONFIG_OPTION,
    strict: bool = typer.Option(
        False,
        "--strict/--no-strict",
        help="Abort the build when any byte edit does not match its expected bytes.",
    ),
) -> None:
    """Apply every patch and write the patch package manifest."""
    build_config = _load(config)
    try:
        context = create_context(build_config, strict=strict)
        result = PatchPackageBuilder(context).build()
    except PatchBuildError as error:
        raise _fail(error) from error
    _render_result(result)


@app.command()
def verify(config: str = _CONFIG_OPTION) -> None:
    """Check every binary target against its baseline without modifying it."""
    build_config = _load(config)
    try:
        statuses = PatchPackageBuilder(create_context(build_config)).baseline_status()
    except PatchBuildError as error:
        raise _fail(error) from error

    failures = 0
    for status in statuses:
        if not status.exists:
            label = "missing"
        elif status.at_baseline:
            label = "baseline"
        else:
            label = "modified"
        if not status.at_baseline and not status.has_backup:
            failures += 1
        backup_label = "backup" if status.has_backup else "no backup"
        typer.echo(f"- {status.name}: {label} ({backup_label})")
    if failures:
        typer.echo(f"{failures} target(s) cannot be brought to baseline.")
        raise typer.Exit(code=1)


@app.command()
def restore(config: str = _CONFIG_OPTION) -> None:
    """Restore every binary target from its backup."""
    build_config = _load(config)
    try:
        restored = PatchPackageBuilder(create_context(build_config)).restore_targets()
    except PatchBuildError as error:
        raise _fail(error) from error
    for path in restored:
        typer.echo(f"Restored {path.name}")


@app.command("hash")
def hash_files(paths: List[Path] = typer.Argument(..., help="Files to hash.")) -> None:
    """Print the manifest digest of each file."""
    missing = False
    for path in paths:
        if not path.is_file():
            typer.echo(f"{path}: not found", err=True)
            missing = True
            continue
        typer.echo(f"{file_hash(path)}  {path}")
    if missing:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()

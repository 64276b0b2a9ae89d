"""Shared helpers for the spec tooling: paths, document I/O, console logging."""

import json
import re
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

import click
import yaml
from pydantic import BaseModel

HTTP_METHODS = ("get", "post", "put", "delete", "patch")

SOURCE_SPEC_NAME = "quickbase-swagger.json"
CONVERTED_SPEC_NAME = "quickbase-openapi3.json"
PATCHED_SPEC_NAME = "quickbase-patched.json"


class InputFileError(click.ClickException):
    """A required input file is missing or cannot be parsed."""


class SpecPaths(BaseModel):
    """Directory layout of a spec workspace, rooted at ``spec_dir``."""

    spec_dir: Path

    @property
    def source(self) -> Path:
        return self.spec_dir / "source"

    @property
    def overrides(self) -> Path:
        return self.spec_dir / "overrides"

    @property
    def output(self) -> Path:
        return self.spec_dir / "output"

    @property
    def fixtures(self) -> Path:
        return self.spec_dir / "fixtures"

    @property
    def converted_spec(self) -> Path:
        return self.output / CONVERTED_SPEC_NAME

    @property
    def patched_spec(self) -> Path:
        return self.output / PATCHED_SPEC_NAME


# -- document I/O -------------------------------------------------------------


def _read_text(path: Path) -> str:
    if not path.exists():
        raise InputFileError(f"Input file not found: {path}")
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        raise InputFileError(f"Cannot read {path}: {e}") from e


def read_json(path: Path) -> Any:
    """Read a JSON file. Missing or malformed files raise InputFileError."""
    text = _read_text(path)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise InputFileError(f"Invalid JSON in {path}: {e}") from e


def read_yaml(path: Path) -> Any:
    text = _read_text(path)
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise InputFileError(f"Invalid YAML in {path}: {e}") from e


def read_document(path: Path) -> Any:
    """Read a JSON or YAML document, choosing the parser by file extension."""
    if path.suffix.lower() in (".yaml", ".yml"):
        return read_yaml(path)
    return read_json(path)


def write_json(path: Path, data: Any) -> None:
    """Write ``data`` as 2-space indented JSON with a trailing newline."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def find_source_spec(paths: SpecPaths) -> Path | None:
    """Locate the vendor Swagger file under ``source/``.

    Prefers ``quickbase-swagger.json``; otherwise picks the last (by name)
    JSON file whose name contains "QuickBase".
    """
    if not paths.source.is_dir():
        return None

    preferred = paths.source / SOURCE_SPEC_NAME
    if preferred.exists():
        return preferred

    candidates = sorted(
        (p for p in paths.source.iterdir() if "QuickBase" in p.name and p.suffix == ".json"),
        key=lambda p: p.name,
        reverse=True,
    )
    return candidates[0] if candidates else None


# -- spec traversal -----------------------------------------------------------


def iter_operations(spec: dict) -> Iterator[tuple[str, str, dict]]:
    """Yield (path, method, operation) for every HTTP operation in the spec."""
    for path, path_item in (spec.get("paths") or {}).items():
        if not isinstance(path_item, dict):
            continue
        for method in HTTP_METHODS:
            operation = path_item.get(method)
            if isinstance(operation, dict):
                yield path, method, operation


def json_schema_of(container: dict | None) -> dict | None:
    """Return ``content['application/json'].schema`` of a request body or response."""
    if not isinstance(container, dict):
        return None
    media = (container.get("content") or {}).get("application/json")
    if not isinstance(media, dict):
        return None
    schema = media.get("schema")
    return schema if isinstance(schema, dict) else None


def primary_tag(operation: dict) -> str:
    tags = operation.get("tags") or []
    return tags[0] if tags else "misc"


def to_kebab_case(name: str) -> str:
    """Convert an operationId such as ``getAppTables`` to ``get-app-tables``."""
    name = re.sub(r"([a-z])([A-Z])", r"\1-\2", name)
    name = re.sub(r"([A-Z])([A-Z][a-z])", r"\1-\2", name)
    return name.lower()


# -- console output -----------------------------------------------------------

_LEVELS = {
    "info": ("INFO", "cyan"),
    "warn": ("WARN", "yellow"),
    "error": ("ERROR", "red"),
    "success": ("OK", "green"),
}


def log(level: str, message: str) -> None:
    """Print a message with a coloured ``[LEVEL]`` prefix."""
    prefix, color = _LEVELS[level]
    click.echo(f"{click.style(f'[{prefix}]', fg=color)} {message}", err=level in ("warn", "error"))


def log_capped(level: str, messages: list[str], limit: int) -> None:
    """Log at most ``limit`` messages, then a count of the suppressed rest."""
    for message in messages[:limit]:
        log(level, f"  - {message}")
    if len(messages) > limit:
        log(level, f"  ... and {len(messages) - limit} more")


@contextmanager
def run_task(name: str) -> Iterator[None]:
    """Log the start, duration and outcome of a named pipeline step."""
    start = time.monotonic()
    log("info", f"Starting: {name}")
    try:
        yield
    except Exception:
        log("error", f"Failed: {name}")
        raise
    duration = int((time.monotonic() - start) * 1000)
    log("success", f"Completed: {name} ({duration}ms)")

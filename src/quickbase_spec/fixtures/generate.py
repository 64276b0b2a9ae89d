"""Generate fixtures from examples embedded in the spec.

A fixture is written only when no file exists at its target path, so
hand-edited fixtures are never overwritten and re-running is a no-op.
"""

import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from ..common import (
    SpecPaths,
    iter_operations,
    json_schema_of,
    log,
    primary_tag,
    read_json,
    run_task,
    to_kebab_case,
    write_json,
)
from .models import Fixture, RequestFixture, RequestMeta, ResponseMeta

JSON_HEADERS = {"Content-Type": "application/json"}


class GenerateResult(BaseModel):
    generated: int = 0
    skipped: int = 0
    operations: list[str] = []


def extract_example_value(example: Any) -> Any:
    """Unwrap ``{"value": ...}`` example objects."""
    if isinstance(example, dict) and "value" in example:
        return example["value"]
    return example


def _safe_name(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")


def _named_examples(response: dict) -> dict | None:
    """Named examples of a response: ``x-amf-examples`` on the schema, else media-type ``examples``."""
    schema = json_schema_of(response) or {}
    named = schema.get("x-amf-examples")
    if isinstance(named, dict) and named:
        return named
    media = (response.get("content") or {}).get("application/json") or {}
    named = media.get("examples")
    if isinstance(named, dict) and named:
        return named
    return None


def _single_example(container: dict) -> Any:
    schema = json_schema_of(container) or {}
    if schema.get("example") is not None:
        return schema["example"]
    media = (container.get("content") or {}).get("application/json") or {}
    return media.get("example")


def fixture_dir(fixtures_root: Path, operation: dict) -> Path:
    return fixtures_root / primary_tag(operation).lower() / to_kebab_case(operation["operationId"])


def operation_fixtures(operation: dict) -> list[tuple[str, BaseModel]]:
    """Every (file name, fixture) the operation's examples describe."""
    operation_id = operation["operationId"]
    fixtures: list[tuple[str, BaseModel]] = []

    request_body = operation.get("requestBody")
    if isinstance(request_body, dict):
        example = _single_example(request_body)
        if example is not None:
            fixtures.append((
                "request.json",
                RequestFixture(meta=RequestMeta(description=f"Request body for {operation_id}"),
                               body=extract_example_value(example)),
            ))

    for code, response in (operation.get("responses") or {}).items():
        # "default" and other non-numeric keys have no fixture file name
        if not str(code).isdigit() or not isinstance(response, dict):
            continue
        status = int(code)

        named = _named_examples(response)
        if named is not None:
            single = len(named) == 1
            for name, example in named.items():
                file_name = f"response.{status}.json" if single else f"response.{status}.{_safe_name(name)}.json"
                fixtures.append((
                    file_name,
                    Fixture(meta=ResponseMeta(description=name, status=status, headers=dict(JSON_HEADERS)),
                            body=extract_example_value(example)),
                ))
            continue

        example = _single_example(response)
        if example is not None:
            description = response.get("description") or f"{status} response for {operation_id}"
            fixtures.append((
                f"response.{status}.json",
                Fixture(meta=ResponseMeta(description=description, status=status, headers=dict(JSON_HEADERS)),
                        body=extract_example_value(example)),
            ))

    return fixtures


def generate_fixtures(spec: dict, fixtures_root: Path) -> GenerateResult:
    """Write fixtures for every operation whose target files do not exist yet."""
    result = GenerateResult()

    for path, method, operation in iter_operations(spec):
        if not operation.get("operationId"):
            log("warn", f"Skipping {method.upper()} {path}: no operationId")
            continue

        target_dir = fixture_dir(fixtures_root, operation)
        written = 0
        for file_name, fixture in operation_fixtures(operation):
            target = target_dir / file_name
            if target.exists():
                result.skipped += 1
                continue
            write_json(target, fixture.model_dump(by_alias=True))
            written += 1
            log("success", f"Generated: {target.relative_to(fixtures_root)}")

        if written:
            result.generated += written
            result.operations.append(operation["operationId"])

    return result


def generate(input_path: Path | None, paths: SpecPaths) -> GenerateResult:
    with run_task("Generate fixtures from spec"):
        spec = read_json(input_path or paths.patched_spec)
        result = generate_fixtures(spec, paths.fixtures)

        log("info", f"Generated {result.generated} fixtures for {len(result.operations)} operations")
        if result.skipped:
            log("info", f"Skipped {result.skipped} existing fixtures")
    return result

"""Structural self-check of a patched OpenAPI spec.

Checks run in sequence and all findings are collected, so one run reports
every problem: required top-level fields, path and operation sanity,
duplicate operationIds and unresolved ``$ref`` pointers.
"""

from pathlib import Path

from pydantic import BaseModel, Field

from .common import SpecPaths, iter_operations, log, log_capped, read_json, run_task
from .schema.resolver import collect_refs, resolve_ref
from .schema.validator import ValidationResult

MAX_ERRORS_SHOWN = 10
MAX_WARNINGS_SHOWN = 5


class SpecStats(BaseModel):
    paths: int = 0
    operations: int = 0
    schemas: int = 0
    parameters: int = 0


class SpecValidationResult(ValidationResult):
    stats: SpecStats = Field(default_factory=SpecStats)


def validate_structure(spec: dict, result: SpecValidationResult) -> None:
    version = spec.get("openapi")
    if not version:
        result.errors.append("Missing required field: openapi")
    elif not str(version).startswith("3."):
        result.errors.append(f"Expected OpenAPI 3.x, got: {version}")

    info = spec.get("info") if isinstance(spec.get("info"), dict) else {}
    if not info.get("title"):
        result.errors.append("Missing required field: info.title")
    if not info.get("version"):
        result.errors.append("Missing required field: info.version")

    if not spec.get("paths"):
        result.errors.append("No paths defined")


def validate_paths(spec: dict, result: SpecValidationResult) -> None:
    paths = spec.get("paths") or {}
    result.stats.paths = len(paths)

    for path in paths:
        if not str(path).startswith("/"):
            result.errors.append(f"Invalid path (must start with /): {path}")

    seen: set[str] = set()
    for path, method, operation in iter_operations(spec):
        result.stats.operations += 1
        label = f"{method.upper()} {path}"

        operation_id = operation.get("operationId")
        if not operation_id:
            result.warnings.append(f"Missing operationId: {label}")
        elif operation_id in seen:
            result.errors.append(f"Duplicate operationId: {operation_id}")
        else:
            seen.add(operation_id)

        if not operation.get("responses"):
            result.warnings.append(f"No responses defined: {label}")


def validate_refs(spec: dict, result: SpecValidationResult) -> None:
    components = spec.get("components") or {}
    result.stats.schemas = len(components.get("schemas") or {})
    result.stats.parameters = len(components.get("parameters") or {})

    refs = collect_refs(spec.get("paths"))
    collect_refs(components, refs)

    for ref in sorted(refs):
        if not ref.startswith("#/"):
            result.warnings.append(f"External $ref (not validated): {ref}")
        elif resolve_ref(ref, spec) is None:
            result.errors.append(f"Unresolved $ref: {ref}")


def validate_spec(spec: dict) -> SpecValidationResult:
    """Run every structural check on an in-memory spec."""
    result = SpecValidationResult()
    validate_structure(spec, result)
    validate_paths(spec, result)
    validate_refs(spec, result)
    return result


def validate(input_path: Path | None, paths: SpecPaths) -> SpecValidationResult:
    """Validate the patched spec (or ``input_path``) and log a capped report."""
    with run_task("Validate OpenAPI spec"):
        source = input_path or paths.patched_spec
        spec = read_json(source)

        if not isinstance(spec, dict):
            result = SpecValidationResult(errors=["Spec root must be a JSON object"])
        else:
            result = validate_spec(spec)

        log("info", f"Paths: {result.stats.paths}")
        log("info", f"Operations: {result.stats.operations}")
        log("info", f"Schemas: {result.stats.schemas}")

        if result.errors:
            log("error", f"Errors: {len(result.errors)}")
            log_capped("error", result.errors, MAX_ERRORS_SHOWN)
        if result.warnings:
            log("warn", f"Warnings: {len(result.warnings)}")
            log_capped("warn", result.warnings, MAX_WARNINGS_SHOWN)

        if result.valid:
            log("success", "Spec is valid")
        else:
            log("error", "Spec validation failed")
    return result

"""Health check: validate fixtures against the spec and report coverage.

Every fixture file is matched to its operation through its directory
(tag + kebab-case operationId, falling back to the folder name alone for
``_manual`` and cross-tag fixtures). Matched 2xx response and request bodies
are validated against their schemas. Error responses are not checked;
vendor error payloads do not follow the documented schemas.
"""

from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, Field, ValidationError

from ..common import (
    InputFileError,
    SpecPaths,
    iter_operations,
    json_schema_of,
    log,
    log_capped,
    primary_tag,
    read_json,
    run_task,
    to_kebab_case,
)
from ..schema.validator import SchemaValidator, ValidationResult, kind_of
from .models import Fixture, FixtureLocation, RequestFixture, parse_fixture_path

MAX_MESSAGES_SHOWN = 20

FixtureModel = TypeVar("FixtureModel", Fixture, RequestFixture)


class OperationRef(BaseModel):
    operation_id: str
    tag: str
    operation: dict


class Coverage(BaseModel):
    total: int = 0
    covered: int = 0
    missing: list[str] = []

    @property
    def percent(self) -> int:
        return round(self.covered / self.total * 100) if self.total else 100


class HealthReport(ValidationResult):
    coverage: Coverage = Field(default_factory=Coverage)
    validated: int = 0


def build_operation_map(spec: dict) -> dict[str, OperationRef]:
    """operationId -> (primary tag, operation) for every operation with an id."""
    operations: dict[str, OperationRef] = {}
    for _, _, operation in iter_operations(spec):
        operation_id = operation.get("operationId")
        if operation_id:
            operations[operation_id] = OperationRef(
                operation_id=operation_id, tag=primary_tag(operation), operation=operation
            )
    return operations


def find_fixture_files(root: Path) -> list[Path]:
    if not root.is_dir():
        return []
    return sorted(p for p in root.rglob("*.json") if p.is_file() and p.name != "_meta.json")


def find_operation(tag: str, folder: str, operations: dict[str, OperationRef]) -> OperationRef | None:
    for ref in operations.values():
        if ref.tag.lower() == tag.lower() and to_kebab_case(ref.operation_id) == folder:
            return ref
    # _manual or cross-tag fixtures
    for ref in operations.values():
        if to_kebab_case(ref.operation_id) == folder:
            return ref
    return None


def load_fixture(
    model: type[FixtureModel], data: Any, label: str, report: HealthReport
) -> FixtureModel | None:
    """Parse a fixture file; an invalid ``_meta`` entry is a warning and the body is kept."""
    if not isinstance(data, dict):
        report.errors.append(f"{label}: fixture must be a JSON object, got {kind_of(data)}")
        return None
    try:
        return model.model_validate(data)
    except ValidationError as e:
        for problem in e.errors():
            field = ".".join(str(part) for part in problem["loc"])
            report.warnings.append(f"{label}: ignoring invalid {field} ({problem['msg']})")
        return model(body=data.get("body"))


def validate_fixture(
    fixture_path: Path,
    label: str,
    location: FixtureLocation,
    ref: OperationRef,
    validator: SchemaValidator,
    report: HealthReport,
) -> None:
    """Validate one fixture body; findings are added to ``report``."""
    data = read_json(fixture_path)
    operation = ref.operation

    if location.kind == "request":
        fixture = load_fixture(RequestFixture, data, label, report)
        if fixture is None:
            return
        schema = json_schema_of(operation.get("requestBody"))
        if schema is None:
            report.warnings.append(f"{label}: no request schema found for '{ref.operation_id}'")
            return
        report.extend(validator.validate(fixture.body, schema, label))
        return

    if location.status is not None and location.status >= 400:
        return

    fixture = load_fixture(Fixture, data, label, report)
    if fixture is None:
        return

    status = str(location.status or fixture.meta.status or 200)
    responses = operation.get("responses") or {}
    schema = json_schema_of(responses.get(status) or responses.get("200"))
    if schema is None:
        report.warnings.append(f"{label}: no response schema found for '{ref.operation_id}' status {status}")
        return
    report.extend(validator.validate(fixture.body, schema, label))


def check_coverage(operations: dict[str, OperationRef], covered: set[str]) -> Coverage:
    missing = [
        f"{op_id} (expected at {ref.tag.lower()}/{to_kebab_case(op_id)}/response.200.json)"
        for op_id, ref in operations.items()
        if op_id not in covered
    ]
    return Coverage(total=len(operations), covered=len(covered), missing=missing)


def check_fixtures(spec: dict, fixtures_root: Path) -> HealthReport:
    """Validate every fixture under ``fixtures_root`` against ``spec``."""
    report = HealthReport()
    operations = build_operation_map(spec)
    validator = SchemaValidator(spec)
    covered: set[str] = set()

    for fixture_path in find_fixture_files(fixtures_root):
        relative = fixture_path.relative_to(fixtures_root)
        location = parse_fixture_path(relative)
        if location is None:
            continue

        # generic error payloads, not tied to an operation
        if location.is_manual and location.tag == "errors":
            report.validated += 1
            continue

        label = relative.as_posix()
        ref = find_operation(location.tag, location.operation_folder, operations)
        if ref is None:
            report.warnings.append(f"{label}: no matching operation found")
            continue

        covered.add(ref.operation_id)
        validate_fixture(fixture_path, label, location, ref, validator, report)
        report.validated += 1

    report.coverage = check_coverage(operations, covered)
    return report


def _print_report(report: HealthReport) -> None:
    coverage = report.coverage
    log("info", f"Operations: {coverage.covered}/{coverage.total} covered ({coverage.percent}%)")
    log("info", f"Fixtures validated: {report.validated}")

    if report.errors:
        log("error", f"Errors ({len(report.errors)}):")
        log_capped("error", report.errors, MAX_MESSAGES_SHOWN)

    if report.warnings:
        log("warn", f"Warnings ({len(report.warnings)}):")
        log_capped("warn", report.warnings, MAX_MESSAGES_SHOWN)

    if 0 < len(coverage.missing) <= MAX_MESSAGES_SHOWN:
        log("info", f"Missing fixtures ({len(coverage.missing)}):")
        for missing in coverage.missing:
            log("info", f"  - {missing}")
    elif coverage.missing:
        log("info", f"Missing fixtures: {len(coverage.missing)} operations without fixtures")


def health_check(input_path: Path | None, paths: SpecPaths) -> HealthReport:
    """Check the fixtures directory against the patched spec."""
    with run_task("Health check fixtures against spec"):
        source = input_path or paths.patched_spec
        spec = read_json(source)
        if not isinstance(spec, dict):
            raise InputFileError(f"Spec root must be a JSON object: {source}")

        log("info", f"Found {len(build_operation_map(spec))} operations in spec")
        log("info", f"Found {len(find_fixture_files(paths.fixtures))} fixture files")

        report = check_fixtures(spec, paths.fixtures)
        _print_report(report)

        if report.valid:
            log("success", "Health check passed")
        else:
            log("error", "Health check failed")
    return report

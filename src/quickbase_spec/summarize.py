"""Operation summaries of the patched spec for people and for tooling.

Writes ``output/operations.json`` (compact, no descriptions) and
``output/OPERATIONS.md`` (tables by tag plus per-operation details).
"""

from pathlib import Path

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from .common import SpecPaths, iter_operations, json_schema_of, log, read_json, run_task, write_json, write_text

SUCCESS_CODES = ("200", "201", "204", "207")
MAX_FIELD_DEPTH = 2
MAX_OPTIONAL_FIELDS_LISTED = 10


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class FieldInfo(_CamelModel):
    name: str
    type: str
    required: bool
    description: str | None = None


class OperationSummary(_CamelModel):
    operation_id: str
    method: str
    path: str
    summary: str = ""
    description: str | None = None
    tags: list[str] = []
    path_params: list[str] = []
    query_params: list[str] = []
    has_request_body: bool = False
    request_body_required: bool = False
    request_body_fields: list[FieldInfo] = []
    response_type: str = "unknown"
    response_is_array: bool = False
    success_code: str = "200"


class CompactOperationSummary(_CamelModel):
    """What goes into operations.json: descriptions dropped, fields split by requiredness."""

    operation_id: str
    method: str
    path: str
    summary: str
    tags: list[str]
    path_params: list[str]
    query_params: list[str]
    has_request_body: bool
    request_body_required: bool
    required_fields: list[str]
    optional_fields: list[str]
    response_type: str
    response_is_array: bool

    @classmethod
    def from_summary(cls, op: OperationSummary) -> "CompactOperationSummary":
        return cls(
            operation_id=op.operation_id,
            method=op.method,
            path=op.path,
            summary=op.summary,
            tags=op.tags,
            path_params=op.path_params,
            query_params=op.query_params,
            has_request_body=op.has_request_body,
            request_body_required=op.request_body_required,
            required_fields=[f.name for f in op.request_body_fields if f.required],
            optional_fields=[f.name for f in op.request_body_fields if not f.required],
            response_type=op.response_type,
            response_is_array=op.response_is_array,
        )


def get_schema_name(schema: dict | None) -> str:
    """Short display name: the ref's last segment, ``[]Item`` for arrays, else the type."""
    if not schema:
        return "unknown"
    if "$ref" in schema:
        return schema["$ref"].rsplit("/", 1)[-1] or "unknown"
    if schema.get("type") == "array" and schema.get("items"):
        return f"[]{get_schema_name(schema['items'])}"
    return schema.get("type") or "object"


def extract_fields(schema: dict | None, spec: dict, depth: int = 0) -> list[FieldInfo]:
    """Top-level properties of a (possibly referenced) object schema."""
    if not schema or depth > MAX_FIELD_DEPTH:
        return []

    if "$ref" in schema:
        name = schema["$ref"].rsplit("/", 1)[-1]
        target = ((spec.get("components") or {}).get("schemas") or {}).get(name)
        return extract_fields(target, spec, depth + 1) if target else []

    properties = schema.get("properties")
    if not isinstance(properties, dict):
        return []

    required = set(schema.get("required") or [])
    return [
        FieldInfo(name=name, type=get_schema_name(prop), required=name in required,
                  description=prop.get("description") if isinstance(prop, dict) else None)
        for name, prop in properties.items()
    ]


def summarize_operation(path: str, method: str, operation: dict, spec: dict) -> OperationSummary:
    parameters = [p for p in operation.get("parameters") or [] if isinstance(p, dict)]
    request_body = operation.get("requestBody") or {}
    request_schema = json_schema_of(request_body)

    responses = operation.get("responses") or {}
    success_code = next((code for code in SUCCESS_CODES if code in responses), "200")
    response_schema = json_schema_of(responses.get(success_code))

    return OperationSummary(
        operation_id=operation.get("operationId", ""),
        method=method.upper(),
        path=path,
        summary=operation.get("summary") or "",
        description=operation.get("description"),
        tags=operation.get("tags") or [],
        path_params=[p["name"] for p in parameters if p.get("in") == "path"],
        query_params=[p["name"] for p in parameters if p.get("in") == "query"],
        has_request_body=request_schema is not None,
        request_body_required=bool(request_body.get("required")),
        request_body_fields=extract_fields(request_schema, spec),
        response_type=get_schema_name(response_schema),
        response_is_array=(response_schema or {}).get("type") == "array",
        success_code=success_code,
    )


def extract_operations(spec: dict) -> list[OperationSummary]:
    """Summaries of every operation, sorted by operationId."""
    operations = [summarize_operation(path, method, op, spec) for path, method, op in iter_operations(spec)]
    return sorted(operations, key=lambda op: op.operation_id)


def group_by_tag(operations: list[OperationSummary]) -> dict[str, list[OperationSummary]]:
    """Group by first tag (``Other`` when untagged); tags and their operations sorted."""
    by_tag: dict[str, list[OperationSummary]] = {}
    for op in operations:
        by_tag.setdefault(op.tags[0] if op.tags else "Other", []).append(op)
    return {tag: sorted(by_tag[tag], key=lambda op: op.operation_id) for tag in sorted(by_tag)}


def _render_fields(lines: list[str], op: OperationSummary) -> None:
    required = [f for f in op.request_body_fields if f.required]
    optional = [f for f in op.request_body_fields if not f.required]

    lines += [f"**Request Body:** {'(required)' if op.request_body_required else '(optional)'}", ""]
    if required:
        lines.append("Required fields:")
        lines += [f"- `{f.name}` ({f.type})" for f in required]
        lines.append("")
    if len(optional) > MAX_OPTIONAL_FIELDS_LISTED:
        lines += [f"Optional fields: {len(optional)} additional fields", ""]
    elif optional:
        lines.append("Optional fields:")
        lines += [f"- `{f.name}` ({f.type})" for f in optional]
        lines.append("")


def render_markdown(operations: list[OperationSummary], by_tag: dict[str, list[OperationSummary]], spec: dict) -> str:
    version = (spec.get("info") or {}).get("version", "")
    lines = [
        "# QuickBase API Operations",
        "",
        f"Auto-generated summary of {len(operations)} API operations.",
        "",
        f"**Spec Version:** {version}",
        "",
        "## Operations by Category",
        "",
    ]

    for tag, ops in by_tag.items():
        lines += [f"### {tag} ({len(ops)})", "", "| Operation | Method | Path | Summary |", "|-----------|--------|------|---------|"]
        lines += [f"| `{op.operation_id}` | {op.method} | `{op.path}` | {op.summary} |" for op in ops]
        lines.append("")

    lines += ["---", "", "## Operation Details", ""]

    for op in operations:
        lines += [f"### {op.operation_id}", "", f"**{op.method}** `{op.path}`", ""]
        if op.summary:
            lines += [op.summary, ""]
        if op.path_params:
            lines += [f"**Path Parameters:** {', '.join(f'`{p}`' for p in op.path_params)}", ""]
        if op.query_params:
            lines += [f"**Query Parameters:** {', '.join(f'`{p}`' for p in op.query_params)}", ""]
        if op.has_request_body and op.request_body_fields:
            _render_fields(lines, op)
        lines += [f"**Response:** {op.success_code} → `{op.response_type}`", "", "---", ""]

    return "\n".join(lines)


def summarize(input_path: Path | None, paths: SpecPaths) -> list[OperationSummary]:
    with run_task("Generate API summary"):
        spec = read_json(input_path or paths.patched_spec)
        operations = extract_operations(spec)
        by_tag = group_by_tag(operations)

        compact = {
            "operations": [CompactOperationSummary.from_summary(op).model_dump(by_alias=True) for op in operations],
            "byTag": {
                tag: [CompactOperationSummary.from_summary(op).model_dump(by_alias=True) for op in ops]
                for tag, ops in by_tag.items()
            },
        }
        json_path = paths.output / "operations.json"
        write_json(json_path, compact)
        log("success", f"Wrote {json_path}")

        md_path = paths.output / "OPERATIONS.md"
        write_text(md_path, render_markdown(operations, by_tag, spec))
        log("success", f"Wrote {md_path}")

        log("info", f"Summarized {len(operations)} operations in {len(by_tag)} categories")
    return operations

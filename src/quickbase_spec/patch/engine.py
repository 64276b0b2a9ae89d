"""Patch the converted OpenAPI spec into a codegen-ready document.

Corrections to the vendor spec, applied as an ordered pipeline of passes.
Each pass owns the document it is given and returns it; later passes rely
on the normalizations of earlier ones. Nodes of an unexpected shape are
left alone.
"""

import copy
import re
from pathlib import Path
from typing import Any, Callable

from ..common import SpecPaths, iter_operations, json_schema_of, log, read_json, run_task, write_json
from .endpoints import apply_endpoint_patches
from .overrides import Overrides, load_overrides, merge_overrides
from .schemas import RECORD_REF, SORT_BY_UNION_REF, record_schemas, sort_schemas

Pass = Callable[[dict], dict]

# Headers the SDK supplies itself
INTERNAL_HEADERS = ("QB-Realm-Hostname", "Authorization", "User-Agent", "Content-Type")

# Non-standard status keys -> canonical key
RESPONSE_CODE_ALIASES = {
    "401/403": "401",
    "4xx/5xx": "default",
    "4xx": "default",
    "5xx": "default",
}

# The vendor spec marks these request bodies optional, but the API rejects requests without one
REQUIRED_BODY_OPERATIONS = frozenset({
    "upsert",
    "deleteRecords",
    "runQuery",
    "runFormula",
    "createApp",
    "deleteApp",
    "copyApp",
    "createTable",
    "createField",
    "deleteFields",
    "createRelationship",
    "audit",
    "exchangeSsoToken",
    "cloneUserToken",
    "transferUserToken",
    "denyUsers",
    "denyUsersAndGroups",
    "undenyUsers",
    "addMembersToGroup",
    "removeMembersFromGroup",
    "addManagersToGroup",
    "removeManagersFromGroup",
    "addSubgroupsToGroup",
    "removeSubgroupsFromGroup",
    "createSolution",
    "changesetSolution",
})

# Operations whose `data` arrays hold records
RECORD_DATA_OPERATIONS = frozenset({"upsert", "runQuery", "runReport"})

# Property name -> items schema for arrays declared without `items`
ARRAY_ITEM_TYPES: dict[str, dict] = {
    "select": {"type": "integer"},
    "fieldsToReturn": {"type": "integer"},
    "choicesLuid": {"type": "string"},
    "compositeFields": {"oneOf": [{"type": "integer"}, {"type": "object"}]},
}

_METHOD_PREFIXES = {"get": "get", "post": "create"}


# -- per-operation passes -----------------------------------------------------


def strip_internal_headers(spec: dict) -> dict:
    for _, _, operation in iter_operations(spec):
        params = operation.get("parameters")
        if isinstance(params, list):
            operation["parameters"] = [
                p for p in params
                if not (isinstance(p, dict) and p.get("in") == "header" and p.get("name") in INTERNAL_HEADERS)
            ]
    return spec


def normalize_response_codes(spec: dict) -> dict:
    """Rename composite status keys; an existing canonical entry is never replaced."""
    for _, _, operation in iter_operations(spec):
        responses = operation.get("responses")
        if not isinstance(responses, dict):
            continue
        for code in sorted(c for c in responses if c in RESPONSE_CODE_ALIASES):
            canonical = RESPONSE_CODE_ALIASES[code]
            response = responses.pop(code)
            responses.setdefault(canonical, response)
            log("info", f'Normalized response code "{code}" -> "{canonical}" in {operation.get("operationId")}')
    return spec


def operation_id_for(path: str, method: str) -> str:
    """Derive an operationId: ``GET /apps/{appId}/tables`` -> ``getAppsTables``."""
    words = []
    for segment in path.split("/"):
        if not segment or segment.startswith("{"):
            continue
        words.extend(w for w in re.split(r"[-_]", segment) if w)
    prefix = _METHOD_PREFIXES.get(method, method)
    return prefix + "".join(w[0].upper() + w[1:] for w in words)


def backfill_operation_ids(spec: dict) -> dict:
    for path, method, operation in iter_operations(spec):
        if not operation.get("operationId"):
            operation["operationId"] = operation_id_for(path, method)
            log("info", f"Generated operationId {operation['operationId']} for {method.upper()} {path}")
    return spec


def require_request_bodies(spec: dict) -> dict:
    for _, _, operation in iter_operations(spec):
        body = operation.get("requestBody")
        if isinstance(body, dict) and operation.get("operationId") in REQUIRED_BODY_OPERATIONS:
            body["required"] = True
    return spec


# -- schema passes ------------------------------------------------------------


def inject_schemas(spec: dict) -> dict:
    components = spec.setdefault("components", {})
    schemas = components.get("schemas")
    if not isinstance(schemas, dict):
        schemas = components["schemas"] = {}
    schemas.update(record_schemas())
    schemas.update(sort_schemas())
    log("info", "Added FieldValue, QuickbaseRecord, SortField and SortByUnion schemas")
    return spec


def _walk(node: Any, path: str, visit: Callable[[dict, str], None]) -> None:
    """Depth-first walk calling ``visit(dict_node, dotted_path)`` before descending."""
    if isinstance(node, dict):
        visit(node, path)
        for key, value in list(node.items()):
            _walk(value, f"{path}.{key}" if path else key, visit)
    elif isinstance(node, list):
        for index, item in enumerate(node):
            _walk(item, f"{path}.{index}", visit)


def _walk_spec(spec: dict, visit: Callable[[dict, str], None]) -> None:
    _walk(spec.get("paths"), "paths", visit)
    _walk((spec.get("components") or {}).get("schemas"), "components.schemas", visit)


def fix_invalid_types(spec: dict) -> dict:
    """The vendor spec uses ``type: int``, which is not valid JSON Schema."""

    def visit(node: dict, path: str) -> None:
        if node.get("type") == "int":
            node["type"] = "integer"
            log("info", f'Fixed type "int" -> "integer" at {path}')

    _walk_spec(spec, visit)
    return spec


def _type_data_array(schema: dict | None) -> bool:
    data = ((schema or {}).get("properties") or {}).get("data")
    if isinstance(data, dict) and data.get("type") == "array" and not data.get("items"):
        data["items"] = {"$ref": RECORD_REF}
        return True
    return False


def type_record_data_arrays(spec: dict) -> dict:
    for _, _, operation in iter_operations(spec):
        operation_id = operation.get("operationId")
        if operation_id not in RECORD_DATA_OPERATIONS:
            continue
        if _type_data_array(json_schema_of(operation.get("requestBody"))):
            log("info", f"Patched {operation_id} request data array")
        if _type_data_array(json_schema_of((operation.get("responses") or {}).get("200"))):
            log("info", f"Patched {operation_id} response data array")
    return spec


def type_named_arrays(spec: dict) -> dict:
    """Give ``items`` to untyped arrays, inferred from the property name."""

    def visit(node: dict, path: str) -> None:
        if node.get("type") != "array" or node.get("items"):
            return
        items = ARRAY_ITEM_TYPES.get(path.rsplit(".", 1)[-1])
        if items is not None:
            node["items"] = copy.deepcopy(items)
            log("info", f"Patched {path} array items")

    _walk_spec(spec, visit)
    return spec


def rewrite_sort_by_unions(spec: dict) -> dict:
    """Replace ``sortBy`` nodes carrying the ``x-amf-union`` extension with a SortByUnion ref."""

    def visit(node: dict, path: str) -> None:
        if "x-amf-union" in node and path.endswith(".sortBy"):
            node.clear()
            node["$ref"] = SORT_BY_UNION_REF
            log("info", f"Patched {path} to use SortByUnion $ref")

    _walk_spec(spec, visit)
    return spec


def type_line_errors(spec: dict) -> dict:
    """``lineErrors`` maps a line number to its list of error messages."""

    def visit(node: dict, path: str) -> None:
        if path.endswith(".lineErrors") and node.get("type") == "object" and node.get("additionalProperties") is True:
            node["additionalProperties"] = {"type": "array", "items": {"type": "string"}}
            log("info", f"Patched {path} to map of string to string[]")

    _walk_spec(spec, visit)
    return spec


def describe_object_schemas(spec: dict) -> dict:
    schemas = (spec.get("components") or {}).get("schemas") or {}
    for name, schema in schemas.items():
        if isinstance(schema, dict) and schema.get("type") == "object" and not schema.get("description"):
            schema["description"] = f"{name} object"
    return spec


PATCH_PASSES: list[tuple[str, Pass]] = [
    ("strip internal headers", strip_internal_headers),
    ("normalize response codes", normalize_response_codes),
    ("backfill operationIds", backfill_operation_ids),
    ("require request bodies", require_request_bodies),
    ("inject schemas", inject_schemas),
    ("fix invalid types", fix_invalid_types),
    ("type record data arrays", type_record_data_arrays),
    ("type named arrays", type_named_arrays),
    ("rewrite sortBy unions", rewrite_sort_by_unions),
    ("type lineErrors maps", type_line_errors),
    ("describe object schemas", describe_object_schemas),
    ("endpoint patches", apply_endpoint_patches),
]


def apply_patches(spec: dict, overrides: Overrides | None = None) -> dict:
    """Run every pass, then merge overrides. The input document is not modified."""
    spec = copy.deepcopy(spec)
    for _, patch_pass in PATCH_PASSES:
        spec = patch_pass(spec)
    if overrides is not None and not overrides.is_empty():
        spec = merge_overrides(spec, overrides)
    return spec


def patch(input_path: Path | None, paths: SpecPaths) -> dict:
    """Patch the converted spec and write ``output/quickbase-patched.json``."""
    with run_task("Patch OpenAPI spec"):
        source = input_path or paths.converted_spec
        spec = read_json(source)
        overrides = load_overrides(paths.overrides)

        patched = apply_patches(spec, overrides)
        write_json(paths.patched_spec, patched)
        log("info", f"Wrote patched spec to: {paths.patched_spec}")
    return patched

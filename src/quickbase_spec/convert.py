"""Swagger 2.0 to OpenAPI 3.0 conversion.

The vendor publishes Swagger 2.0; OpenAPI 3.0 has better codegen support and
cleaner schema definitions. Only the constructs the vendor document uses
are converted.
"""

from pathlib import Path
from typing import Any

from .common import (
    HTTP_METHODS,
    InputFileError,
    SpecPaths,
    find_source_spec,
    log,
    read_json,
    run_task,
    write_json,
)

_REF_PREFIXES = {
    "#/definitions/": "#/components/schemas/",
    "#/parameters/": "#/components/parameters/",
}

_SCHEMA_KEYS_FROM_PARAM = ("format", "enum", "default", "items", "minimum", "maximum", "pattern")

SECURITY_SCHEMES = {
    "userToken": {
        "type": "apiKey",
        "name": "Authorization",
        "in": "header",
        "description": "User token: QB-USER-TOKEN {token}",
    },
    "tempToken": {
        "type": "apiKey",
        "name": "Authorization",
        "in": "header",
        "description": "Temporary token: QB-TEMP-TOKEN {token}",
    },
}


def rewrite_refs(node: Any) -> Any:
    """Return a copy of ``node`` with Swagger 2.0 ``$ref`` pointers rewritten."""
    if isinstance(node, list):
        return [rewrite_refs(item) for item in node]
    if not isinstance(node, dict):
        return node

    converted = {}
    for key, value in node.items():
        if key == "$ref" and isinstance(value, str):
            for old, new in _REF_PREFIXES.items():
                if value.startswith(old):
                    value = new + value[len(old):]
                    break
            converted[key] = value
        else:
            converted[key] = rewrite_refs(value)
    return converted


def convert_parameter(param: dict) -> dict:
    """Convert a non-body Swagger parameter; ``type`` and friends move into ``schema``."""
    if "$ref" in param:
        return rewrite_refs(param)

    converted: dict[str, Any] = {
        "name": param.get("name"),
        "in": param.get("in"),
        "required": param.get("required", False),
    }
    if "description" in param:
        converted["description"] = param["description"]

    if "type" in param:
        schema: dict[str, Any] = {"type": param["type"]}
        for key in _SCHEMA_KEYS_FROM_PARAM:
            if key in param:
                schema[key] = param[key]
        converted["schema"] = rewrite_refs(schema)

    if "schema" in param:
        converted["schema"] = rewrite_refs(param["schema"])

    return converted


def convert_response(response: dict) -> dict:
    converted: dict[str, Any] = {"description": response.get("description") or "Response"}

    if "schema" in response:
        media: dict[str, Any] = {"schema": rewrite_refs(response["schema"])}
        example = (response.get("examples") or {}).get("application/json")
        if example is not None:
            media["example"] = example
        converted["content"] = {"application/json": media}

    if "headers" in response:
        converted["headers"] = {
            name: {"description": header.get("description", ""), "schema": {"type": header.get("type", "string")}}
            for name, header in response["headers"].items()
        }

    return converted


def convert_operation(operation: dict) -> dict:
    converted: dict[str, Any] = {}
    for key in ("operationId", "summary", "description", "tags", "deprecated"):
        if key in operation:
            converted[key] = operation[key]

    parameters = operation.get("parameters") or []
    non_body = [p for p in parameters if p.get("in") != "body"]
    body = next((p for p in parameters if p.get("in") == "body"), None)

    if non_body:
        converted["parameters"] = [convert_parameter(p) for p in non_body]

    if body is not None:
        request_body: dict[str, Any] = {
            "required": body.get("required", False),
            "content": {"application/json": {"schema": rewrite_refs(body.get("schema") or {})}},
        }
        if "description" in body:
            request_body["description"] = body["description"]
        converted["requestBody"] = request_body

    responses = operation.get("responses")
    if responses:
        converted["responses"] = {
            str(status): convert_response(response) for status, response in responses.items()
        }

    return converted


def convert_swagger_to_openapi(swagger: dict) -> dict:
    """Convert a Swagger 2.0 document to an OpenAPI 3.0 document."""
    info = swagger.get("info") or {}
    scheme = (swagger.get("schemes") or ["https"])[0]
    server_url = f"{scheme}://{swagger.get('host', '')}{swagger.get('basePath', '')}"

    openapi: dict[str, Any] = {
        "openapi": "3.0.3",
        "info": {
            "title": info.get("title"),
            "version": info.get("version"),
            "description": info.get("description") or "QuickBase JSON RESTful API",
        },
        "servers": [{"url": server_url, "description": "QuickBase API"}],
        "paths": {},
        "components": {
            "schemas": {},
            "securitySchemes": dict(SECURITY_SCHEMES),
        },
        "security": [{"userToken": []}],
    }
    if "tags" in swagger:
        openapi["tags"] = swagger["tags"]

    for path, path_item in (swagger.get("paths") or {}).items():
        openapi["paths"][path] = {
            method: convert_operation(path_item[method])
            for method in HTTP_METHODS
            if isinstance(path_item.get(method), dict)
        }

    for name, schema in (swagger.get("definitions") or {}).items():
        openapi["components"]["schemas"][name] = rewrite_refs(schema)

    shared_params = swagger.get("parameters") or {}
    if shared_params:
        openapi["components"]["parameters"] = {
            name: convert_parameter(param) for name, param in shared_params.items()
        }

    return openapi


def convert(input_path: Path | None, paths: SpecPaths) -> dict:
    """Convert the vendor Swagger file and write ``output/quickbase-openapi3.json``."""
    with run_task("Convert Swagger 2.0 to OpenAPI 3.0"):
        source = input_path or find_source_spec(paths)
        if source is None or not source.exists():
            raise InputFileError(
                "Input file not found. Either provide a path or place the Swagger spec "
                f"in {paths.source / 'quickbase-swagger.json'}"
            )

        log("info", f"Reading spec from: {source}")
        swagger = read_json(source)

        if swagger.get("swagger") != "2.0":
            found = swagger.get("swagger") or swagger.get("openapi") or "unknown"
            log("warn", f"Expected Swagger 2.0, got: {found}")

        openapi = convert_swagger_to_openapi(swagger)
        write_json(paths.converted_spec, openapi)

        log("info", f"Wrote OpenAPI 3.0 spec to: {paths.converted_spec}")
        log("info", f"Paths: {len(openapi['paths'])}")
        log("info", f"Schemas: {len(openapi['components']['schemas'])}")
    return openapi

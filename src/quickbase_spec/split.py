"""Split the patched spec into one document per tag.

Each tag document carries only the schemas its paths reference
(transitively), which keeps it small enough for focused editing.
"""

from pathlib import Path

from .common import HTTP_METHODS, SpecPaths, log, read_json, run_task, write_json
from .schema.resolver import collect_refs

SCHEMA_PREFIX = "#/components/schemas/"
UNTAGGED = "other"


def referenced_schemas(tree: object, schemas: dict) -> dict:
    """Every named schema reachable from ``tree`` through ``$ref`` pointers."""
    found: dict = {}
    pending = collect_refs(tree)
    while pending:
        ref = pending.pop()
        if not ref.startswith(SCHEMA_PREFIX):
            continue
        name = ref[len(SCHEMA_PREFIX):]
        if name in found or name not in schemas:
            continue
        found[name] = schemas[name]
        pending |= collect_refs(schemas[name])
    return dict(sorted(found.items()))


def group_paths_by_tag(spec: dict) -> dict[str, dict]:
    """tag (lower case) -> {path: path item}; a path appears under each of its tags."""
    groups: dict[str, dict] = {}
    for path, path_item in (spec.get("paths") or {}).items():
        tags: set[str] = set()
        for method in HTTP_METHODS:
            operation = path_item.get(method) if isinstance(path_item, dict) else None
            if isinstance(operation, dict):
                tags.update(tag.lower() for tag in operation.get("tags") or [])
        for tag in sorted(tags) or [UNTAGGED]:
            groups.setdefault(tag, {})[path] = path_item
    return groups


def split_by_tag(spec: dict) -> dict[str, dict]:
    """Build one standalone document per tag; untagged paths go to ``other``."""
    info = spec.get("info") or {}
    components = spec.get("components") or {}
    all_schemas = components.get("schemas") or {}

    documents: dict[str, dict] = {}
    for tag, paths in group_paths_by_tag(spec).items():
        tag_components: dict = {"schemas": referenced_schemas(paths, all_schemas)}
        if "securitySchemes" in components:
            tag_components["securitySchemes"] = components["securitySchemes"]

        documents[tag] = {
            "openapi": spec.get("openapi"),
            "info": {**info, "title": f"{info.get('title', '')} - {tag if tag != UNTAGGED else 'Other'}"},
            "servers": spec.get("servers", []),
            "paths": paths,
            "components": tag_components,
        }
    return documents


def split(input_path: Path | None, paths: SpecPaths) -> dict[str, dict]:
    """Write ``output/split/<tag>.json`` for every tag."""
    with run_task("Split OpenAPI spec by tag"):
        spec = read_json(input_path or paths.patched_spec)
        documents = split_by_tag(spec)

        split_dir = paths.output / "split"
        for tag, document in documents.items():
            write_json(split_dir / f"{tag}.json", document)
            log("info", f"{tag}: {len(document['paths'])} paths, {len(document['components']['schemas'])} schemas")

        log("success", f"Split into {len(documents)} files")
    return documents

"""Local ``$ref`` pointer resolution against an in-memory document."""

from typing import Any


def _unescape(segment: str) -> str:
    return segment.replace("~1", "/").replace("~0", "~")


def resolve_ref(ref: str, document: dict) -> Any | None:
    """Walk ``document`` along a ``#/a/b/c`` pointer.

    Returns the referenced node, or None if any segment is missing.
    Only document-local pointers are supported; anything else returns None.
    """
    if not ref.startswith("#/"):
        return None

    current: Any = document
    for part in ref[2:].split("/"):
        key = _unescape(part)
        if isinstance(current, dict) and key in current:
            current = current[key]
        elif isinstance(current, list) and key.isdigit() and int(key) < len(current):
            current = current[int(key)]
        else:
            return None
    return current


def collect_refs(tree: Any, refs: set[str] | None = None) -> set[str]:
    """Recursively collect every ``$ref`` string found in ``tree``."""
    if refs is None:
        refs = set()
    if isinstance(tree, dict):
        ref = tree.get("$ref")
        if isinstance(ref, str):
            refs.add(ref)
        for value in tree.values():
            collect_refs(value, refs)
    elif isinstance(tree, list):
        for item in tree:
            collect_refs(item, refs)
    return refs

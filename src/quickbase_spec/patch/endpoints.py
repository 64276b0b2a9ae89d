"""Corrections too specific to generalize, registered per operationId."""

from typing import Callable

from ..common import iter_operations, json_schema_of, log

EndpointPatch = Callable[[dict], None]

_REGISTRY: dict[str, EndpointPatch] = {}


def endpoint_patch(operation_id: str) -> Callable[[EndpointPatch], EndpointPatch]:
    """Register ``func`` as the correction for ``operation_id``."""

    def decorator(func: EndpointPatch) -> EndpointPatch:
        if operation_id in _REGISTRY:
            raise ValueError(f"Endpoint patch already registered for {operation_id}")
        _REGISTRY[operation_id] = func
        return func

    return decorator


def registered_operation_ids() -> list[str]:
    return sorted(_REGISTRY)


def get_endpoint_patch(operation_id: str) -> EndpointPatch | None:
    return _REGISTRY.get(operation_id)


def apply_endpoint_patches(spec: dict) -> dict:
    """Run each registered correction on its operation.

    Registered ids that the document does not contain are reported, so a
    renamed upstream operation does not silently drop its fix.
    """
    seen: set[str] = set()
    for _, _, operation in iter_operations(spec):
        operation_id = operation.get("operationId")
        func = get_endpoint_patch(operation_id) if operation_id else None
        if func is not None:
            func(operation)
            seen.add(operation_id)

    for operation_id in registered_operation_ids():
        if operation_id not in seen:
            log("warn", f"Endpoint patch registered for unknown operation: {operation_id}")
    return spec


# -- registered corrections ---------------------------------------------------


@endpoint_patch("platformAnalyticEventSummaries")
def drop_required_totals(operation: dict) -> None:
    """``totals`` sits at the response root, not inside each ``results`` item."""
    schema = json_schema_of((operation.get("responses") or {}).get("200"))
    if schema is None:
        return
    items = ((schema.get("properties") or {}).get("results") or {}).get("items")
    if not isinstance(items, dict):
        return
    required = items.get("required")
    if isinstance(required, list) and "totals" in required:
        required.remove("totals")
        log("info", "Removed totals from platformAnalyticEventSummaries results[].required")

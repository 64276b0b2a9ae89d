"""Structural validation of live JSON values against OpenAPI schemas.

The validator is lenient where vendor specs are known to be
imprecise: ``null`` always passes a type check, undeclared object keys and
unmatched ``oneOf``/``anyOf`` branches are warnings, not errors. It never
raises; callers inspect the returned ValidationResult.
"""

from typing import Any, Optional

from pydantic import BaseModel

from .nodes import (
    AllOfSchema,
    AnyOfSchema,
    ArraySchema,
    ObjectSchema,
    OneOfSchema,
    RefSchema,
    SchemaNode,
    compile_schema,
)
from .resolver import resolve_ref

# Consecutive $ref hops allowed without descending into the value.
MAX_REF_HOPS = 32


class ValidationResult(BaseModel):
    """Errors fail validation; warnings are informational only."""

    errors: list[str] = []
    warnings: list[str] = []

    @property
    def valid(self) -> bool:
        return not self.errors

    def extend(self, other: "ValidationResult") -> None:
        self.errors.extend(other.errors)
        self.warnings.extend(other.warnings)


def kind_of(value: Any) -> str:
    """Runtime JSON kind of a decoded value."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def _normalize_type(declared: str) -> str:
    return "number" if declared in ("integer", "int") else declared


class SchemaValidator:
    """Validates values against schemas of one document.

    Referenced schemas are compiled on first use and reused afterwards.
    """

    def __init__(self, document: dict):
        self.document = document
        self._compiled: dict[str, Optional[SchemaNode]] = {}

    def validate(self, value: Any, schema: dict | BaseModel, path: str = "") -> ValidationResult:
        node = schema if isinstance(schema, BaseModel) else compile_schema(schema)
        result = ValidationResult()
        self._check(value, node, path, result, 0)
        return result

    def _resolve(self, ref: str) -> Optional[SchemaNode]:
        if ref not in self._compiled:
            target = resolve_ref(ref, self.document)
            self._compiled[ref] = compile_schema(target) if isinstance(target, dict) else None
        return self._compiled[ref]

    def _check(self, value: Any, node: SchemaNode, path: str, result: ValidationResult, hops: int) -> None:
        if isinstance(node, RefSchema):
            if hops >= MAX_REF_HOPS:
                result.errors.append(f"{path}: $ref cycle through {node.ref}")
                return
            target = self._resolve(node.ref)
            if target is None:
                result.warnings.append(f"{path}: unresolved $ref {node.ref}")
                return
            self._check(value, target, path, result, hops + 1)
            return

        if isinstance(node, (OneOfSchema, AnyOfSchema)):
            for option in node.options:
                trial = ValidationResult()
                self._check(value, option, path, trial, hops)
                if trial.valid:
                    return
            if node.options:
                result.warnings.append(f"{path}: value doesn't match any of the expected schemas")
            return

        if isinstance(node, AllOfSchema):
            for part in node.parts:
                self._check(value, part, path, result, hops)
            return

        if not self._check_type(value, node.types, path, result):
            return

        if isinstance(node, ArraySchema) and node.items is not None and isinstance(value, list):
            for index, item in enumerate(value):
                self._check(item, node.items, f"{path}[{index}]", result, 0)

        elif isinstance(node, ObjectSchema) and node.properties is not None and isinstance(value, dict):
            self._check_object(value, node, path, result)

    def _check_type(self, value: Any, declared: list[str], path: str, result: ValidationResult) -> bool:
        """Return True when structural checks should continue on this node."""
        if not declared:
            return True
        actual = kind_of(value)
        if actual in {_normalize_type(t) for t in declared}:
            return True
        # null is accepted wherever a type is declared
        if actual != "null":
            result.errors.append(f"{path}: expected {'|'.join(declared)}, got {actual}")
        return False

    def _check_object(self, value: dict, node: ObjectSchema, path: str, result: ValidationResult) -> None:
        properties = node.properties or {}

        for name in node.required:
            if name not in value:
                result.errors.append(f"{path}: missing required field '{name}'")

        for name, prop in properties.items():
            if name in value:
                self._check(value[name], prop, f"{path}.{name}", result, 0)

        if not node.additional_properties:
            for key in value:
                if key not in properties:
                    result.warnings.append(f"{path}.{key}: field not defined in schema (may be undocumented)")


def validate_value(value: Any, schema: dict, document: dict, path: str = "") -> ValidationResult:
    """Validate one value against a raw schema dict of ``document``."""
    return SchemaValidator(document).validate(value, schema, path)

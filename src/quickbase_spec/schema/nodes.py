"""Compiled schema nodes.

Raw OpenAPI schema dicts are classified once into a closed set of node
kinds, so the validator dispatches on ``kind`` instead of probing for
``$ref`` / ``oneOf`` / ``type`` keys at every step.

Classification precedence: ``$ref``, ``oneOf``, ``anyOf``, ``allOf``,
``type: array``, ``type: object``, then everything else as a scalar.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class _Node(BaseModel):
    model_config = ConfigDict(frozen=True)


class RefSchema(_Node):
    """Defers entirely to the referenced schema; sibling keys are ignored."""

    kind: Literal["ref"] = "ref"
    ref: str


class OneOfSchema(_Node):
    kind: Literal["oneOf"] = "oneOf"
    options: list["SchemaNode"] = []


class AnyOfSchema(_Node):
    kind: Literal["anyOf"] = "anyOf"
    options: list["SchemaNode"] = []


class AllOfSchema(_Node):
    kind: Literal["allOf"] = "allOf"
    parts: list["SchemaNode"] = []


class ScalarSchema(_Node):
    """Any schema without structure. An empty ``types`` list accepts everything."""

    kind: Literal["scalar"] = "scalar"
    types: list[str] = []


class ArraySchema(_Node):
    kind: Literal["array"] = "array"
    items: Optional["SchemaNode"] = None

    @property
    def types(self) -> list[str]:
        return ["array"]


class ObjectSchema(_Node):
    kind: Literal["object"] = "object"
    properties: Optional[dict[str, "SchemaNode"]] = None
    required: list[str] = []
    additional_properties: bool = False

    @property
    def types(self) -> list[str]:
        return ["object"]


SchemaNode = Annotated[
    Union[RefSchema, OneOfSchema, AnyOfSchema, AllOfSchema, ScalarSchema, ArraySchema, ObjectSchema],
    Field(discriminator="kind"),
]

for _model in (OneOfSchema, AnyOfSchema, AllOfSchema, ArraySchema, ObjectSchema):
    _model.model_rebuild()


def _compile_list(raw: Any) -> list:
    if not isinstance(raw, list):
        return []
    return [compile_schema(item) for item in raw]


def compile_schema(raw: Any) -> SchemaNode:
    """Classify a raw schema dict (and its subtree) into schema nodes.

    ``$ref`` targets are not followed here; the validator resolves them lazily.
    """
    if not isinstance(raw, dict):
        return ScalarSchema()

    ref = raw.get("$ref")
    if isinstance(ref, str):
        return RefSchema(ref=ref)

    if "oneOf" in raw:
        return OneOfSchema(options=_compile_list(raw["oneOf"]))
    if "anyOf" in raw:
        return AnyOfSchema(options=_compile_list(raw["anyOf"]))
    if "allOf" in raw:
        return AllOfSchema(parts=_compile_list(raw["allOf"]))

    declared = raw.get("type")
    if declared == "array":
        items = raw.get("items")
        return ArraySchema(items=compile_schema(items) if isinstance(items, dict) else None)

    if declared == "object":
        properties = raw.get("properties")
        required = raw.get("required")
        additional = raw.get("additionalProperties")
        return ObjectSchema(
            properties=(
                {name: compile_schema(prop) for name, prop in properties.items()}
                if isinstance(properties, dict)
                else None
            ),
            required=[r for r in required if isinstance(r, str)] if isinstance(required, list) else [],
            additional_properties=additional is True or isinstance(additional, dict),
        )

    if isinstance(declared, str):
        return ScalarSchema(types=[declared])
    if isinstance(declared, list):
        return ScalarSchema(types=[t for t in declared if isinstance(t, str)])
    return ScalarSchema()

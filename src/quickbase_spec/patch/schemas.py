"""Hand-written component schemas injected into every patched spec."""

RECORD_REF = "#/components/schemas/QuickbaseRecord"
SORT_BY_UNION_REF = "#/components/schemas/SortByUnion"


def record_schemas() -> dict[str, dict]:
    """FieldValue wrapper and the keyed QuickbaseRecord built on it."""
    return {
        "FieldValue": {
            "type": "object",
            "description": "A field value in a QuickBase record. The value type depends on the field type.",
            "properties": {
                "value": {
                    "description": (
                        "The field value. Type depends on field type: string (text, email, URL, date), "
                        "number (numeric fields), boolean (checkbox), string[] (multi-select), "
                        "or object[] (file attachments)."
                    ),
                    "oneOf": [
                        {"type": "string"},
                        {"type": "number"},
                        {"type": "boolean"},
                        {"type": "array", "items": {"type": "string"}},
                        {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": {
                                    "id": {"type": "string", "description": "File attachment ID"},
                                },
                            },
                        },
                    ],
                },
            },
            "required": ["value"],
        },
        "QuickbaseRecord": {
            "type": "object",
            "description": "A QuickBase record where keys are field IDs (as strings) and values are FieldValue objects.",
            "additionalProperties": {"$ref": "#/components/schemas/FieldValue"},
        },
    }


def sort_schemas() -> dict[str, dict]:
    """SortField and the SortByUnion (array of SortField, or ``false``)."""
    return {
        "SortField": {
            "type": "object",
            "description": "A field to sort by in a query.",
            "properties": {
                "fieldId": {
                    "type": "integer",
                    "description": "The unique identifier of a field in a table.",
                },
                "order": {
                    "type": "string",
                    "enum": ["ASC", "DESC", "equal-values"],
                    "description": (
                        "Sort based on ascending order (ASC), descending order (DESC) "
                        "or equal values (equal-values)."
                    ),
                },
            },
            "required": ["fieldId", "order"],
        },
        "SortByUnion": {
            "description": (
                "An array of field IDs and sort directions. "
                "Set to false to disable sorting for better performance."
            ),
            "oneOf": [
                {"type": "array", "items": {"$ref": "#/components/schemas/SortField"}},
                {"type": "boolean", "enum": [False]},
            ],
        },
    }

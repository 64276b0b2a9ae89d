import copy
import json
from pathlib import Path
from unittest.mock import MagicMock, patch as mock_patch

import pytest

from quickbase_spec.common import InputFileError, SpecPaths
from quickbase_spec.convert import convert_swagger_to_openapi
from quickbase_spec.patch import endpoints
from quickbase_spec.patch.endpoints import (
    apply_endpoint_patches,
    endpoint_patch,
    get_endpoint_patch,
    registered_operation_ids,
)
from quickbase_spec.patch.engine import (
    PATCH_PASSES,
    apply_patches,
    backfill_operation_ids,
    describe_object_schemas,
    fix_invalid_types,
    normalize_response_codes,
    operation_id_for,
    patch,
    require_request_bodies,
    rewrite_sort_by_unions,
    strip_internal_headers,
    type_line_errors,
    type_named_arrays,
    type_record_data_arrays,
)
from quickbase_spec.patch.overrides import Overrides, deep_merge, load_overrides, merge_overrides
from quickbase_spec.schema.resolver import collect_refs, resolve_ref

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def converted() -> dict:
    swagger = json.loads((FIXTURES / "swagger.json").read_text(encoding="utf-8"))
    return convert_swagger_to_openapi(swagger)


def _operation(responses: dict, operation_id: str = "op") -> dict:
    return {"paths": {"/x": {"get": {"operationId": operation_id, "responses": responses}}}}


class TestStripInternalHeaders:
    def test_removes_sdk_headers(self, converted):
        spec = strip_internal_headers(converted)
        params = spec["paths"]["/apps/{appId}"]["get"]["parameters"]
        assert [p["name"] for p in params] == ["appId"]

    def test_keeps_other_headers(self):
        spec = {"paths": {"/x": {"get": {"parameters": [{"name": "X-Custom", "in": "header"}]}}}}
        assert strip_internal_headers(spec)["paths"]["/x"]["get"]["parameters"] == [{"name": "X-Custom", "in": "header"}]


class TestNormalizeResponseCodes:
    def test_renames_composite_keys(self):
        spec = normalize_response_codes(_operation({"200": {}, "401/403": {"description": "auth"}, "4xx/5xx": {}}))
        responses = spec["paths"]["/x"]["get"]["responses"]
        assert set(responses) == {"200", "401", "default"}
        assert responses["401"] == {"description": "auth"}

    def test_existing_canonical_key_wins(self):
        spec = normalize_response_codes(_operation({
            "401": {"description": "original"},
            "401/403": {"description": "composite"},
        }))
        assert spec["paths"]["/x"]["get"]["responses"] == {"401": {"description": "original"}}

    def test_first_composite_in_sorted_order_wins(self):
        spec = normalize_response_codes(_operation({
            "5xx": {"description": "server"},
            "4xx": {"description": "client"},
        }))
        assert spec["paths"]["/x"]["get"]["responses"] == {"default": {"description": "client"}}

    def test_idempotent(self):
        spec = normalize_response_codes(_operation({"200": {}, "401/403": {}, "4xx": {}}))
        once = copy.deepcopy(spec)
        assert normalize_response_codes(spec) == once


class TestBackfillOperationIds:
    @pytest.mark.parametrize("path, method, expected", [
        ("/apps/{appId}/tables", "get", "getAppsTables"),
        ("/fields/usage", "get", "getFieldsUsage"),
        ("/user-token/clone", "post", "createUserTokenClone"),
        ("/apps/{appId}", "delete", "deleteApps"),
        ("/audit_logs", "put", "putAuditLogs"),
    ])
    def test_operation_id_for(self, path, method, expected):
        assert operation_id_for(path, method) == expected

    def test_only_missing_ids(self, converted):
        spec = backfill_operation_ids(converted)
        assert spec["paths"]["/fields/usage"]["get"]["operationId"] == "getFieldsUsage"
        assert spec["paths"]["/apps/{appId}"]["get"]["operationId"] == "getApp"


class TestRequireRequestBodies:
    def test_allow_listed_operation(self, converted):
        spec = require_request_bodies(converted)
        assert spec["paths"]["/records"]["post"]["requestBody"]["required"] is True

    def test_other_operation_unchanged(self):
        spec = {"paths": {"/x": {"post": {"operationId": "other", "requestBody": {"required": False}}}}}
        assert require_request_bodies(spec)["paths"]["/x"]["post"]["requestBody"]["required"] is False


class TestSchemaPasses:
    def test_fix_invalid_types(self, converted):
        spec = fix_invalid_types(converted)
        metadata = spec["components"]["schemas"]["RecordsMetadata"]
        assert metadata["properties"]["totalNumberOfRecordsProcessed"]["type"] == "integer"
        body = spec["paths"]["/records/query"]["post"]["requestBody"]["content"]["application/json"]["schema"]
        assert body["properties"]["options"]["properties"]["top"]["type"] == "integer"

    def test_type_record_data_arrays(self, converted):
        spec = type_record_data_arrays(converted)
        upsert = spec["paths"]["/records"]["post"]
        request = upsert["requestBody"]["content"]["application/json"]["schema"]
        response = upsert["responses"]["200"]["content"]["application/json"]["schema"]
        assert request["properties"]["data"]["items"] == {"$ref": "#/components/schemas/QuickbaseRecord"}
        assert response["properties"]["data"]["items"] == {"$ref": "#/components/schemas/QuickbaseRecord"}

    def test_existing_items_untouched(self):
        schema = {"type": "object", "properties": {"data": {"type": "array", "items": {"type": "string"}}}}
        spec = {"paths": {"/x": {"post": {
            "operationId": "runReport",
            "requestBody": {"content": {"application/json": {"schema": schema}}},
        }}}}
        type_record_data_arrays(spec)
        assert schema["properties"]["data"]["items"] == {"type": "string"}

    def test_type_named_arrays(self, converted):
        spec = type_named_arrays(converted)
        query = spec["paths"]["/records/query"]["post"]["requestBody"]["content"]["application/json"]["schema"]
        assert query["properties"]["select"]["items"] == {"type": "integer"}
        upsert = spec["paths"]["/records"]["post"]["requestBody"]["content"]["application/json"]["schema"]
        assert upsert["properties"]["fieldsToReturn"]["items"] == {"type": "integer"}

    def test_composite_fields_union(self):
        spec = {"components": {"schemas": {"Field": {"properties": {"compositeFields": {"type": "array"}}}}}}
        type_named_arrays(spec)
        items = spec["components"]["schemas"]["Field"]["properties"]["compositeFields"]["items"]
        assert items == {"oneOf": [{"type": "integer"}, {"type": "object"}]}

    def test_rewrite_sort_by_unions(self, converted):
        spec = rewrite_sort_by_unions(converted)
        query = spec["paths"]["/records/query"]["post"]["requestBody"]["content"]["application/json"]["schema"]
        assert query["properties"]["sortBy"] == {"$ref": "#/components/schemas/SortByUnion"}

    def test_type_line_errors(self, converted):
        spec = type_line_errors(converted)
        line_errors = spec["components"]["schemas"]["RecordsMetadata"]["properties"]["lineErrors"]
        assert line_errors["additionalProperties"] == {"type": "array", "items": {"type": "string"}}

    def test_describe_object_schemas(self, converted):
        spec = describe_object_schemas(converted)
        schemas = spec["components"]["schemas"]
        assert schemas["App"]["description"] == "App object"
        assert schemas["FieldRef"]["description"] == "A field reference."

    def test_unexpected_shapes_ignored(self):
        spec = {"paths": {"/x": "not an object"}, "components": {"schemas": []}}
        for _, patch_pass in PATCH_PASSES:
            spec = patch_pass(spec)
        assert spec["paths"] == {"/x": "not an object"}


class TestEndpointPatches:
    def test_registry(self):
        assert "platformAnalyticEventSummaries" in registered_operation_ids()
        assert get_endpoint_patch("platformAnalyticEventSummaries") is endpoints.drop_required_totals
        assert get_endpoint_patch("unknown") is None

    def test_duplicate_registration_rejected(self):
        with pytest.raises(ValueError):
            endpoint_patch("platformAnalyticEventSummaries")(lambda operation: None)

    def test_drops_required_totals(self):
        items = {"type": "object", "required": ["totals", "type"]}
        schema = {"type": "object", "properties": {"results": {"type": "array", "items": items}}}
        spec = {"paths": {"/analytics/events/summaries": {"post": {
            "operationId": "platformAnalyticEventSummaries",
            "responses": {"200": {"content": {"application/json": {"schema": schema}}}},
        }}}}
        apply_endpoint_patches(spec)
        assert items["required"] == ["type"]

    def test_unknown_registered_id_warns(self, capsys):
        apply_endpoint_patches({"paths": {}})
        assert "platformAnalyticEventSummaries" in capsys.readouterr().err

    def test_apply_looks_up_each_operation(self):
        correction = MagicMock()
        spec = {"paths": {"/x": {"get": {"operationId": "getX"}, "post": {}}}}
        with mock_patch.object(endpoints, "get_endpoint_patch", return_value=correction) as lookup:
            apply_endpoint_patches(spec)

        lookup.assert_called_once_with("getX")
        correction.assert_called_once_with(spec["paths"]["/x"]["get"])


class TestOverrides:
    def test_load_in_file_name_order(self, tmp_path, capsys):
        (tmp_path / "schemas.json").write_text(json.dumps({"App": {"type": "string"}}), encoding="utf-8")
        (tmp_path / "schemas.yaml").write_text("App:\n  type: integer\nOther:\n  type: boolean\n", encoding="utf-8")
        overrides = load_overrides(tmp_path)
        assert overrides.schemas == {"App": {"type": "integer"}, "Other": {"type": "boolean"}}
        assert "Override schemas.App from schemas.yaml" in capsys.readouterr().err

    def test_missing_directory(self, tmp_path):
        assert load_overrides(tmp_path / "absent").is_empty()

    def test_unknown_section_ignored(self, tmp_path):
        (tmp_path / "extras.json").write_text("{}", encoding="utf-8")
        assert load_overrides(tmp_path).is_empty()

    def test_invalid_file_is_fatal(self, tmp_path):
        (tmp_path / "schemas.yaml").write_text("a: [unclosed\n", encoding="utf-8")
        with pytest.raises(InputFileError):
            load_overrides(tmp_path)

    def test_non_mapping_is_fatal(self, tmp_path):
        (tmp_path / "parameters.json").write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(InputFileError):
            load_overrides(tmp_path)

    def test_deep_merge(self):
        base = {"a": {"b": 1, "c": [1]}, "d": 1}
        assert deep_merge(base, {"a": {"c": [2], "e": 3}, "d": {"x": 1}}) == {
            "a": {"b": 1, "c": [2], "e": 3},
            "d": {"x": 1},
        }

    def test_merge_overrides(self, converted, capsys):
        overrides = Overrides(
            schemas={"App": {"type": "object", "description": "replaced"}},
            parameters={"tableId": {"name": "tableId", "in": "query"}},
            patches={"getApp": {"summary": "Get one app"}, "missingOp": {"summary": "x"}},
        )
        spec = merge_overrides(converted, overrides)
        assert spec["components"]["schemas"]["App"] == {"type": "object", "description": "replaced"}
        assert "tableId" in spec["components"]["parameters"]
        assert "realmHostname" in spec["components"]["parameters"]
        assert spec["paths"]["/apps/{appId}"]["get"]["summary"] == "Get one app"
        assert "missingOp" in capsys.readouterr().err


class TestApplyPatches:
    def test_does_not_modify_input(self, converted):
        before = copy.deepcopy(converted)
        apply_patches(converted)
        assert converted == before

    def test_all_refs_resolve(self, converted):
        spec = apply_patches(converted)
        for ref in collect_refs(spec):
            assert resolve_ref(ref, spec) is not None, ref

    def test_injected_schemas(self, converted):
        schemas = apply_patches(converted)["components"]["schemas"]
        assert {"FieldValue", "QuickbaseRecord", "SortField", "SortByUnion"} <= set(schemas)

    def test_overrides_win_over_patches(self, converted):
        overrides = Overrides(schemas={"SortField": {"type": "string"}})
        spec = apply_patches(converted, overrides)
        assert spec["components"]["schemas"]["SortField"] == {"type": "string"}

    def test_second_run_is_stable(self, converted):
        once = apply_patches(converted)
        assert apply_patches(once) == once


class TestPatchCommand:
    def test_writes_patched_spec(self, tmp_path, converted):
        paths = SpecPaths(spec_dir=tmp_path)
        paths.output.mkdir()
        paths.converted_spec.write_text(json.dumps(converted), encoding="utf-8")
        paths.overrides.mkdir()
        (paths.overrides / "patches.yaml").write_text("ping:\n  tags: [Health]\n", encoding="utf-8")

        patched = patch(None, paths)

        assert json.loads(paths.patched_spec.read_text(encoding="utf-8")) == patched
        assert patched["paths"]["/health"]["get"]["tags"] == ["Health"]

    def test_missing_input(self, tmp_path):
        with pytest.raises(InputFileError):
            patch(None, SpecPaths(spec_dir=tmp_path))

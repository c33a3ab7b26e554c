import pytest

from oapi_typegen.codegen.operations import (
    default_operation_id,
    merge_parameters,
    operation_definitions,
)
from oapi_typegen.codegen.parameters import ParameterDefinition, describe_parameters, find_by_name, is_media_type_json
from oapi_typegen.codegen.payloads import body_name_tag, create_body_definition, select_content_type
from oapi_typegen.codegen.resolver import SchemaResolver
from oapi_typegen.codegen.responses import describe_responses
from oapi_typegen.codegen.schema import SpecLocation, TypeKind, TypeSchema
from oapi_typegen.codegen.type_tracker import TypeTracker
from oapi_typegen.shared.errors import SchemaResolutionError

USER = {
    "type": "object",
    "required": ["id"],
    "properties": {"id": {"type": "string"}, "name": {"type": "string"}},
}

DOCUMENT = {
    "openapi": "3.0.0",
    "paths": {
        "/users/{id}": {
            "parameters": [{"name": "id", "in": "path", "schema": {"type": "string"}}],
            "get": {
                "operationId": "getUser",
                "tags": ["users"],
                "summary": " Fetch a user ",
                "parameters": [{"name": "verbose", "in": "query", "schema": {"type": "boolean"}}],
                "responses": {
                    "200": {
                        "description": "ok",
                        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/User"}}},
                    },
                    "404": {
                        "description": "missing",
                        "content": {"application/json": {"schema": {
                            "type": "object",
                            "properties": {"message": {"type": "string"}},
                        }}},
                    },
                },
            },
        },
        "/users": {
            "post": {
                "operationId": "createUser",
                "requestBody": {
                    "required": True,
                    "content": {"application/json": {"schema": {
                        "type": "object",
                        "required": ["name"],
                        "properties": {"name": {"type": "string"}},
                    }}},
                },
                "responses": {
                    "201": {
                        "description": "created",
                        "content": {"application/json": {"schema": {"$ref": "#/components/schemas/User"}}},
                    },
                },
            },
        },
    },
    "components": {"schemas": {"User": USER}},
}


def _resolver(document):
    return SchemaResolver(document, TypeTracker())


class TestOperationDefinitions:
    def test_sorted_by_path(self):
        operations = operation_definitions(DOCUMENT, _resolver(DOCUMENT))
        assert [op.operation_id for op in operations] == ["createUser", "getUser"]

    def test_parameters_and_responses(self):
        resolver = _resolver(DOCUMENT)
        operations = operation_definitions(DOCUMENT, resolver)
        get_user = operations[1]

        assert get_user.method == "get"
        assert get_user.summary == "Fetch a user"
        assert get_user.tags == ("users",)
        assert [param.param_name for param in get_user.path_params] == ["id"]
        assert [param.param_name for param in get_user.params] == ["verbose"]
        assert [param.param_name for param in get_user.all_params] == ["id", "verbose"]
        assert get_user.params_type == "GetUserParams"
        assert get_user.response_type == "GetUserResponse"
        assert get_user.error_type == "GetUserErrorResponse"

        params = resolver.tracker.lookup_by_name("GetUserParams")
        assert params.location is SpecLocation.QUERY
        assert params.schema.fields[0].annotation == "Optional[bool]"

    def test_request_body(self):
        resolver = _resolver(DOCUMENT)
        create_user = operation_definitions(DOCUMENT, resolver)[0]

        body = create_user.body
        assert body.name == "CreateUserBody"
        assert body.default
        assert body.suffix == ""
        assert body.required
        assert body.is_json
        assert create_user.params_type is None
        assert create_user.error_type is None

        definition = resolver.tracker.lookup_by_name("CreateUserBody")
        assert definition.location is SpecLocation.BODY
        assert definition.schema.fields[0].constraints.required

    def test_custom_response_suffix(self):
        operations = operation_definitions(DOCUMENT, _resolver(DOCUMENT), response_suffix="Result")
        assert operations[0].response_type == "CreateUserResult"

    def test_default_operation_id(self):
        document = {"paths": {"/pets/{petId}": {"delete": {"responses": {}}}}}
        operations = operation_definitions(document, _resolver(document))
        assert operations[0].operation_id == "deletePetsPetId"

    def test_errors_carry_operation(self):
        document = {"paths": {"/pets": {"get": {"parameters": [{"name": "q"}]}}}}
        with pytest.raises(SchemaResolutionError) as exc_info:
            operation_definitions(document, _resolver(document))
        assert exc_info.value.schema_path == "GET /pets"


class TestDefaultOperationId:
    def test_path_parameters(self):
        assert default_operation_id("GET", "/users/{id}") == "getUsersId"

    def test_root(self):
        assert default_operation_id("post", "/") == "post"


class TestMergeParameters:
    def test_operation_overrides_path_level(self):
        path_level = [
            {"name": "limit", "in": "query", "description": "path level"},
            {"name": "id", "in": "path"},
        ]
        operation_level = [{"name": "limit", "in": "query", "description": "operation level"}]

        merged = merge_parameters(path_level, operation_level)
        assert merged == [
            {"name": "id", "in": "path"},
            {"name": "limit", "in": "query", "description": "operation level"},
        ]

    def test_references_are_kept(self):
        merged = merge_parameters([{"$ref": "#/components/parameters/A"}], [{"$ref": "#/components/parameters/A"}])
        assert len(merged) == 2


class TestParameters:
    def test_defaults_by_location(self):
        query = ParameterDefinition("q", "query", False, {"name": "q", "in": "query"}, TypeSchema(TypeKind.ANY))
        path = ParameterDefinition("id", "path", True, {"name": "id", "in": "path"}, TypeSchema(TypeKind.ANY))

        assert (query.style, query.explode) == ("form", True)
        assert (path.style, path.explode) == ("simple", False)

    def test_keyword_names(self):
        param = ParameterDefinition("class", "query", False, {"name": "class"}, TypeSchema(TypeKind.SCALAR, py_type="str"))
        assert param.py_name == "class_"
        assert param.variable_name == "p_class"
        assert param.annotation == "Optional[str]"

    def test_json_content(self):
        spec = {"name": "filter", "in": "query", "content": {"application/json": {"schema": {"type": "object"}}}}
        param = ParameterDefinition("filter", "query", False, spec, TypeSchema(TypeKind.ANY))
        assert param.is_json
        assert not param.is_passthrough
        assert not param.is_styled

    def test_component_parameter_gets_named_type(self):
        document = {
            "components": {"parameters": {"Limit": {"name": "limit", "in": "query", "schema": {"type": "integer"}}}},
        }
        resolver = _resolver(document)
        params = describe_parameters([{"$ref": "#/components/parameters/Limit"}], ["ListParams"], resolver)

        assert params[0].schema.py_type == "Limit"
        definition = resolver.tracker.lookup_by_name("Limit")
        assert definition.location is SpecLocation.QUERY
        assert definition.schema.py_type == "int"

    def test_path_parameters_are_required(self):
        resolver = _resolver({})
        params = describe_parameters([{"name": "id", "in": "path"}], ["X"], resolver)
        assert params[0].required
        assert find_by_name(params, "id") is params[0]
        assert find_by_name(params, "missing") is None

    def test_invalid_location(self):
        with pytest.raises(SchemaResolutionError, match="valid 'in'"):
            describe_parameters([{"name": "id", "in": "body"}], ["X"], _resolver({}))

    def test_media_type_json(self):
        assert is_media_type_json("application/json; charset=utf-8")
        assert is_media_type_json("application/vnd.api+json")
        assert not is_media_type_json("text/plain")


class TestRequestBodies:
    def test_select_content_type(self):
        assert select_content_type({"text/plain": {}, "application/json": {}}) == "application/json"
        assert select_content_type({"text/plain": {}, "application/xml": {}}) == "text/plain"

    def test_name_tags(self):
        assert body_name_tag("application/json") == "JSON"
        assert body_name_tag("application/merge-patch+json") == "ApplicationMergePatchJson"
        assert body_name_tag("multipart/form-data") == "Multipart"
        assert body_name_tag("application/x-www-form-urlencoded") == "Formdata"
        assert body_name_tag("text/plain") == "Text"
        assert body_name_tag("application/octet-stream") == ""

    def test_unsupported_body(self):
        body = {"content": {"application/octet-stream": {"schema": {"type": "string"}}}}
        assert create_body_definition("upload", body, _resolver({})) == (None, None)

    def test_no_body(self):
        assert create_body_definition("upload", None, _resolver({})) == (None, None)

    def test_text_body(self):
        body = {"content": {"text/plain": {"schema": {"type": "string"}}}}
        definition, registered = create_body_definition("note", body, _resolver({}))
        assert definition.suffix == "WithTextBody"
        assert not definition.default
        assert definition.is_optional
        assert registered.name == "NoteBody"
        assert definition.is_supported
        assert definition.is_fixed_content_type

    def test_name_collision_uses_tag(self):
        document = {"components": {"schemas": {"CreateUserBody": {"type": "string"}}}}
        resolver = _resolver(document)
        resolver.resolve_component_schemas()
        body = {"content": {"application/json": {"schema": {"type": "object", "properties": {"a": {"type": "string"}}}}}}

        definition, _ = create_body_definition("createUser", body, resolver)
        assert definition.name == "CreateUserBodyJSON"

    def test_referenced_schema_is_not_registered(self):
        resolver = _resolver(DOCUMENT)
        body = {"content": {"application/json": {"schema": {"$ref": "#/components/schemas/User"}}}}

        definition, registered = create_body_definition("updateUser", body, resolver)
        assert registered is None
        assert definition.schema.py_type == "User"
        assert not definition.custom_type

    def test_encoding(self):
        body = {"content": {"multipart/form-data": {
            "schema": {"type": "object", "properties": {"file": {"type": "string"}}},
            "encoding": {"file": {"contentType": "image/png"}},
        }}}
        definition, _ = create_body_definition("upload", body, _resolver({}))
        assert definition.encoding["file"].content_type == "image/png"
        assert not definition.is_supported_by_client


class TestResponses:
    def test_referenced_response(self):
        document = {
            "components": {"responses": {"Problem": {
                "description": "problem",
                "content": {"application/problem+json": {"schema": {
                    "type": "object", "properties": {"detail": {"type": "string"}},
                }}},
            }}},
        }
        resolver = _resolver(document)
        responses = describe_responses("listPets", {"default": {"$ref": "#/components/responses/Problem"}}, resolver)

        assert len(responses) == 1
        assert responses[0].is_error
        assert responses[0].type_name == "ListPetsErrorResponse"
        assert responses[0].content_type == "application/problem+json"

    def test_first_success_wins(self):
        responses = describe_responses(
            "listPets",
            {
                "201": {"content": {"application/json": {"schema": {"type": "string"}}}},
                "200": {"content": {"application/json": {"schema": {"type": "integer"}}}},
            },
            _resolver({}),
        )
        assert [(response.status, response.schema.py_type) for response in responses] == [("200", "int")]

    def test_non_json_is_skipped(self):
        responses = describe_responses(
            "download",
            {"200": {"content": {"application/octet-stream": {"schema": {"type": "string"}}}}},
            _resolver({}),
        )
        assert responses == []

import importlib.util
import logging
import sys
from datetime import datetime
from pathlib import Path
from uuid import UUID

import pytest

from oapi_typegen.codegen.configuration import Configuration
from oapi_typegen.codegen.constraints import Constraints
from oapi_typegen.codegen.generator import generate
from oapi_typegen.codegen.render import (
    HEADER,
    RenderContext,
    docstring,
    field_default,
    render_models,
    topo_sort_definitions,
)
from oapi_typegen.codegen.schema import Field, TypeDefinition, TypeKind, TypeSchema
from oapi_typegen.runtime import UnionDecodeError, ValidationError, ValidationErrors
from oapi_typegen.shared.errors import SchemaResolutionError
from oapi_typegen.shared.schema_loader import load_document

TESTDATA = Path(__file__).parent / "testdata"
USER_ID = "12345678-1234-5678-1234-567812345678"
ERROR_MAPPING = {"ServiceError": "errorData.message"}


def _generate():
    document = load_document(TESTDATA / "notifications.yaml")
    config = Configuration(package="notifications", skip_prune=True).with_defaults()
    return generate(document, config)


def _scalar(py_type):
    return TypeSchema(TypeKind.SCALAR, py_type=py_type)


@pytest.fixture(scope="module")
def source():
    return RenderContext().render_models(_generate().definitions, "notifications", ERROR_MAPPING)


@pytest.fixture(scope="module")
def models(source, tmp_path_factory):
    name = "notifications_models"
    path = tmp_path_factory.mktemp("generated") / f"{name}.py"
    path.write_text(source)
    spec = importlib.util.spec_from_file_location(name, path)
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
        yield module
    finally:
        sys.modules.pop(name, None)


class TestRenderContext:
    def test_post_init_compiles_template(self):
        ctx = RenderContext()
        assert ctx.template_env is not None
        assert ctx.models_template is ctx._models_template
        assert "docstring" in ctx.template_env.filters


class TestDocstring:
    def test_single_line(self):
        assert docstring("  A user. ") == '"""A user."""'

    def test_multi_line(self):
        assert docstring("First.\n\nMore text.") == '"""First.\n\n    More text.\n    """'

    def test_quotes_are_escaped(self):
        assert docstring('Say "hi"') == '"""Say "hi" """'
        assert '\\"\\"\\"' in docstring('a """ b')


class TestFieldDefault:
    def test_optional(self):
        assert field_default(Field("name", "name", _scalar("str"))) == "None"

    def test_required(self):
        prop = Field("name", "name", _scalar("str"), constraints=Constraints(required=True))
        assert field_default(prop) == ""

    def test_alias_and_bounds(self):
        prop = Field(
            "maxAge",
            "max_age",
            _scalar("int"),
            constraints=Constraints(validation_tags=("omitempty", "gt=0", "lte=9")),
        )
        assert field_default(prop) == "Field(None, alias='maxAge', gt=0, le=9)"

    def test_string_length_and_pattern(self):
        prop = Field(
            "code",
            "code",
            _scalar("str"),
            constraints=Constraints(required=True, pattern="^x", validation_tags=("required", "min=2")),
        )
        assert field_default(prop) == "Field(min_length=2, pattern='^x')"

    def test_array_limits_and_sensitive(self):
        prop = Field(
            "tags",
            "tags",
            TypeSchema(TypeKind.ARRAY, items=_scalar("str")),
            constraints=Constraints(required=True, min_items=1, max_items=3, validation_tags=("required",)),
            sensitive=True,
        )
        assert field_default(prop) == "Field(min_length=1, max_length=3, repr=False)"

    def test_constraints_the_type_cannot_carry(self):
        prop = Field(
            "when",
            "when",
            _scalar("datetime"),
            constraints=Constraints(pattern="^2", validation_tags=("omitempty", "max=30")),
        )
        assert field_default(prop) == "None"

    def test_named_array_skips_item_limits(self):
        prop = Field(
            "users",
            "users",
            TypeSchema(TypeKind.REFERENCE, py_type="UserList"),
            constraints=Constraints(min_items=1),
        )
        assert field_default(prop) == "None"


class TestTopoSort:
    def test_bases_and_alias_targets_first(self):
        definitions = [
            TypeDefinition("Child", schema=TypeSchema(TypeKind.OBJECT, bases=["Parent"])),
            TypeDefinition("Alias", schema=TypeSchema(TypeKind.REFERENCE, py_type="Parent")),
            TypeDefinition("Parent", schema=TypeSchema(TypeKind.OBJECT, fields=[])),
        ]
        assert [d.name for d in topo_sort_definitions(definitions)] == ["Parent", "Child", "Alias"]

    def test_cycles_are_ignored(self):
        definitions = [
            TypeDefinition("A", schema=TypeSchema(TypeKind.OBJECT, bases=["B"])),
            TypeDefinition("B", schema=TypeSchema(TypeKind.OBJECT, bases=["A"])),
        ]
        assert sorted(d.name for d in topo_sort_definitions(definitions)) == ["A", "B"]


class TestIncompleteDefinitions:
    def test_enum_without_members(self):
        definitions = [TypeDefinition("Broken", schema=TypeSchema(TypeKind.ENUM))]
        with pytest.raises(SchemaResolutionError, match="enum Broken has no members"):
            render_models(definitions, "broken")

    def test_union_without_variants(self):
        definitions = [TypeDefinition("Broken", schema=TypeSchema(TypeKind.UNION))]
        with pytest.raises(SchemaResolutionError, match="union Broken has no variants"):
            render_models(definitions, "broken")


class TestRenderedSource:
    def test_compiles(self, source):
        assert source.startswith(HEADER)
        compile(source, "notifications_models.py", "exec")

    def test_imports(self, source):
        assert "from datetime import datetime" in source
        assert "from uuid import UUID" in source
        typing_line = next(line for line in source.splitlines() if line.startswith("from typing import "))
        assert "Optional" in typing_line
        assert "from pydantic import Field\n" in source
        assert "from oapi_typegen.runtime import (" in source

    def test_enums(self, source):
        assert "class Status(str, EnumModel):\n    ACTIVE = 'active'\n    DISABLED = 'disabled'\n" in source
        assert "class Priority(int, EnumModel):\n    N1 = 1\n" in source
        assert "class SortOrder(str, EnumModel):\n    ASC = 'asc'\n    DESC = 'desc'\n" in source

    def test_object_fields(self, source):
        assert 'class User(Model):\n    """A registered user."""\n\n    id: UUID\n' in source
        assert "    email: str = Field(max_length=64, pattern='^[^@]+@[^@]+$')\n" in source
        assert "    age: Optional[int] = Field(None, ge=0, le=150)\n" in source
        assert "    status: Optional[Status] = None\n" in source
        assert (
            "    # When the user signed up.\n"
            "    created_at: Optional[datetime] = Field(None, alias='createdAt')\n"
        ) in source
        assert "    tags: Optional[list[str]] = Field(None, min_length=1)\n" in source

    def test_bases_come_first(self, source):
        assert "class Admin(User):" in source
        assert source.index("class User(Model):") < source.index("class Admin(User):")

    def test_sensitive_field_is_left_out_of_repr(self, source):
        assert "class Credentials(Model):\n    username: str\n    password: str = Field(repr=False)\n" in source

    def test_unions(self, source):
        assert "class Shape_OneOf(RawUnion):\n    discriminator = \"kind\"\n" in source
        assert "    def merge_square(self, value: Square) -> Shape_OneOf:\n" in source
        assert "class Letter_OneOf(Either):" in source
        assert "class Notification_AnyOf(RawUnion):" in source
        assert "    def as_a_value(self) -> A:\n        return self.as_variant(0)\n" in source
        assert "    shape_one_of: Optional[Shape_OneOf] = union_field()\n" in source
        assert "    additional_properties: Optional[dict[str, str]] = additional_properties_field()\n" in source

    def test_arrays(self, source):
        assert "class UserList(ArrayModel):\n    root: list[User] = Field(min_length=1, max_length=2)\n" in source

    def test_bindings(self, source):
        assert "Shape_OneOf.variants = (Circle, Square, Triangle)\n" in source
        assert "Shape_OneOf.mapping = {'Circle': Circle, 'Square': Square, 'Triangle': Triangle}\n" in source
        assert "StringOrNumber_OneOf.variants = (str, float)\n" in source
        assert "User.model_rebuild()\n" in source
        assert "UserList.model_rebuild()\n" in source

    def test_operation_types(self, source):
        assert "GetUserResponse = User\n" in source
        assert "GetUserErrorResponse = ServiceError\n" in source
        assert "class GetUserParams(Model):" in source

    def test_error_message(self, source):
        assert "    def error_message(self) -> str:\n        res0 = self.error_data\n" in source

    def test_unknown_error_mapping_is_logged(self, caplog):
        with caplog.at_level(logging.WARNING):
            render_models(_generate().definitions, "notifications", {"Missing": "message"})
        assert "error-mapping names unknown type Missing" in caplog.text

    def test_py_type_override_is_imported(self):
        definitions = [
            TypeDefinition("Money", schema=TypeSchema(TypeKind.SCALAR, py_type="decimal.Decimal")),
        ]
        source = render_models(definitions, "money")
        assert "import decimal\n" in source
        assert "Money = decimal.Decimal\n" in source
        assert "from pydantic import Field" not in source
        compile(source, "money.py", "exec")


class TestGeneratedObjects:
    def test_round_trip(self, models):
        data = {
            "id": USER_ID,
            "email": "a@b.c",
            "status": "active",
            "createdAt": "2024-01-02T03:04:05Z",
            "tags": ["x"],
        }
        user = models.User.from_json_value(data)
        assert user.id == UUID(USER_ID)
        assert user.status is models.Status.ACTIVE
        assert isinstance(user.created_at, datetime)
        assert user.created_at.year == 2024

        encoded = user.to_json_value()
        assert encoded["id"] == USER_ID
        assert encoded["status"] == "active"
        assert encoded["createdAt"].startswith("2024-01-02T03:04:05")
        assert "age" not in encoded

    def test_from_json(self, models):
        user = models.User.from_json('{"id": "%s", "email": "a@b.c"}' % USER_ID)
        assert models.User.from_json(user.to_json()) == user

    def test_missing_required(self, models):
        with pytest.raises(ValidationErrors) as exc_info:
            models.User.from_json_value({"id": USER_ID})
        assert [str(error) for error in exc_info.value] == ["User.email Field required"]

    def test_wrong_type(self, models):
        with pytest.raises(ValidationErrors) as exc_info:
            models.User.from_json_value({"id": USER_ID, "email": 5})
        assert exc_info.value[0].field == "User.email"
        assert "valid string" in exc_info.value[0].message

    def test_strict_rejects_unknown_keys(self, models):
        data = {"id": USER_ID, "email": "a@b.c", "bogus": 1}
        assert models.User.from_json_value(data).email == "a@b.c"
        with pytest.raises(ValidationErrors, match="unknown field 'bogus'"):
            models.User.from_json_value(data, strict=True)

    def test_inheritance(self, models):
        admin = models.Admin.from_json_value({"id": USER_ID, "email": "a@b.c", "level": 3})
        assert isinstance(admin, models.User)
        assert admin.level == 3
        assert admin.to_json_value() == {"id": USER_ID, "email": "a@b.c", "level": 3}

    def test_cycle(self, models):
        data = {"value": "a", "next": {"value": "b", "next": {"value": "c"}}}
        node = models.Node.from_json_value(data)
        assert node.next.next.value == "c"
        assert node.to_json_value() == data

    def test_sensitive_repr(self, models):
        credentials = models.Credentials(username="bob", password="hunter2")
        assert repr(credentials) == "Credentials(username='bob')"
        assert credentials.to_json_value() == {"username": "bob", "password": "hunter2"}

    def test_error_message(self, models):
        error = models.ServiceError.from_json_value({"errorData": {"message": "boom"}})
        assert error.error_message() == "boom"
        assert str(error) == "boom"
        assert models.ServiceError.from_json_value({}).error_message() == "unknown error"

    def test_nullable_union_member(self, models):
        assert models.Collaboration.from_json_value({"item": None}).item is None
        collaboration = models.Collaboration.from_json_value({"item": {"path": "/docs"}})
        assert isinstance(collaboration.item, models.Collaboration_Item_AllOf0)
        assert collaboration.to_json_value() == {"item": {"path": "/docs"}}
        assert not hasattr(models, "Collaboration_Item_AllOf1")


class TestGeneratedValidation:
    def test_field_constraints(self, models):
        with pytest.raises(ValidationErrors) as exc_info:
            models.User.from_json_value({"id": USER_ID, "email": "bad", "age": 200, "tags": []})
        errors = exc_info.value
        assert [error.field for error in errors] == ["User.email", "User.age", "User.tags"]
        assert "should match pattern" in errors[0].message
        assert "less than or equal to 150" in errors[1].message
        assert "at least 1 item" in errors[2].message

    def test_valid_model(self, models):
        user = models.User.from_json_value({"id": USER_ID, "email": "a@b.c", "age": 30})
        assert user.age == 30

    def test_array_limits(self, models):
        user = {"id": USER_ID, "email": "a@b.c"}
        with pytest.raises(ValidationErrors, match="at most 2 items"):
            models.UserList.from_json_value([user, user, user])
        with pytest.raises(ValidationErrors, match="at least 1 item"):
            models.UserList.from_json_value([])
        assert len(models.UserList.from_json_value([user])) == 1

    def test_array_items_are_decoded(self, models):
        users = models.UserList.from_json_value([{"id": USER_ID, "email": "a@b.c"}])
        assert isinstance(users[0], models.User)
        assert users.to_json_value() == [{"id": USER_ID, "email": "a@b.c"}]

    def test_enum_validate(self, models):
        assert models.Status.validate("active") is models.Status.ACTIVE
        with pytest.raises(ValidationError, match="is not a valid Status"):
            models.Status.validate("invalid")
        with pytest.raises(ValidationError, match="must be a str"):
            models.Status.validate(1)
        with pytest.raises(ValidationErrors) as exc_info:
            models.User.from_json_value({"id": USER_ID, "email": "a@b.c", "status": "invalid"})
        assert exc_info.value[0].field == "User.status"

    def test_enum_declared_as_integer(self, models):
        assert models.SortOrder.validate("asc") is models.SortOrder.ASC
        assert models.SortOrder("desc") is models.SortOrder.DESC
        with pytest.raises(ValidationError, match="is not a valid SortOrder"):
            models.SortOrder.validate("invalid")


class TestGeneratedUnions:
    def test_any_of_with_additional_properties(self, models):
        data = {"email": "x@y.com", "subject": "Hi", "tracking": "abc"}
        notification = models.Notification.from_json_value(data)

        union = notification.notification_any_of
        assert union.as_email_notification() == models.EmailNotification(email="x@y.com", subject="Hi")
        assert union.raw == {"email": "x@y.com", "subject": "Hi"}
        with pytest.raises(UnionDecodeError):
            union.as_sms_notification()
        assert notification.additional_properties == {"tracking": "abc"}
        assert notification.to_json_value() == data

    def test_any_of_other_variant(self, models):
        notification = models.Notification.from_json_value({"id": "n1", "token": "t-1"})
        assert notification.id == "n1"
        assert notification.notification_any_of.as_push_notification().token == "t-1"
        assert notification.additional_properties is None

    def test_either_falls_back_to_b(self, models):
        letter = models.Letter.from_json_value({"b": "b-value"})
        union = letter.letter_one_of
        assert union.is_b
        assert union.as_b_value() == models.B(b="b-value")
        with pytest.raises(UnionDecodeError):
            union.as_a_value()
        assert letter.to_json_value() == {"b": "b-value"}

    def test_either_of_optional_properties_keeps_payload(self, models):
        response = models.Response.from_json_value({"b": "b-value"})
        union = response.response_one_of
        assert union.is_b
        assert union.as_response_b().b == "b-value"
        assert response.to_json_value() == {"b": "b-value"}

    def test_either_failure(self, models):
        with pytest.raises(ValidationErrors, match="failed to unmarshal as either A or B"):
            models.Letter.from_json_value({"c": 1})

    def test_either_constructor(self, models):
        union = models.Letter_OneOf.from_a_value(models.A(a="x"))
        assert union.as_a_value().a == "x"
        assert models.Letter(letter_one_of=union).to_json_value() == {"a": "x"}

    def test_primitive_union(self, models):
        text = models.StringOrNumber.from_json_value("hello")
        assert text.string_or_number_one_of.as_string() == "hello"
        assert text.to_json_value() == "hello"

        number = models.StringOrNumber.from_json_value(2.5)
        assert number.string_or_number_one_of.as_number() == 2.5
        with pytest.raises(ValidationErrors):
            models.StringOrNumber.from_json_value([1])

    def test_raw_union_dispatch(self, models):
        shape = models.Shape.from_json_value({"kind": "Square", "side": 2})
        union = shape.shape_one_of

        assert union.discriminator_value() == "Square"
        assert union.value_by_discriminator() == models.Square(kind="Square", side=2.0)
        assert union.as_square().side == 2.0
        with pytest.raises(UnionDecodeError):
            union.as_circle()
        with pytest.raises(UnionDecodeError):
            union.as_triangle()
        assert shape.to_json_value() == {"kind": "Square", "side": 2}

    def test_raw_union_from_variant_sets_discriminator(self, models):
        union = models.Shape_OneOf.from_circle(models.Circle(kind="ignored", radius=1.0))
        assert union.to_json_value() == {"kind": "Circle", "radius": 1.0}

    def test_raw_union_merge(self, models):
        union = models.Shape_OneOf.from_json_value({"kind": "Square", "side": 2, "color": "red"})
        union.merge_square(models.Square(kind="Square", side=3.0))
        assert union.to_json_value() == {"kind": "Square", "side": 3.0, "color": "red"}

    def test_unknown_discriminator(self, models):
        union = models.Shape_OneOf.from_json_value({"kind": "Hexagon"})
        with pytest.raises(UnionDecodeError, match="unknown discriminator value: Hexagon"):
            union.value_by_discriminator()

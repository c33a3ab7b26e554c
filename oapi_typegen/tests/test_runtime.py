from datetime import date
from typing import Any, Optional

import pydantic
import pytest
from pydantic import Field

from oapi_typegen.runtime import (
    ArrayModel,
    ClientAPIError,
    DecodeError,
    Either,
    EnumModel,
    Model,
    RawUnion,
    UnionDecodeError,
    ValidationError,
    ValidationErrors,
    additional_properties_field,
    as_map,
    coalesce_or_merge,
    json_merge,
    json_path,
    marshal_with_discriminator,
    to_json_value,
    union_field,
    unmarshal_as,
    validation_errors_from,
)


class Color(str, EnumModel):
    RED = "red"
    BLUE = "blue"


class Level(int, EnumModel):
    N1 = 1
    N2 = 2


class Pet(Model):
    name: str = Field(min_length=2)
    age: Optional[int] = Field(None, ge=0)
    color: Optional[Color] = None
    born_on: Optional[date] = Field(None, alias="bornOn")


class Cat(Model):
    kind: str
    lives: Optional[int] = None


class Dog(Model):
    kind: str
    bark: Optional[str] = None


class Bird(Model):
    kind: str
    wings: int


class ResponseA(Model):
    a: Optional[str] = None


class ResponseB(Model):
    b: Optional[str] = None


class CatOrDog(Either):
    pass


class AOrB(Either):
    pass


class Animal(RawUnion):
    discriminator = "kind"


CatOrDog.variants = (Cat, Dog)
AOrB.variants = (ResponseA, ResponseB)
Animal.variants = (Cat, Dog, Bird)
Animal.mapping = {"cat": Cat, "dog": Dog, "bird": Bird}


class Owner(Model):
    name: Optional[str] = None
    cat_or_dog: Optional[CatOrDog] = union_field()
    additional_properties: Optional[dict[str, Any]] = additional_properties_field()


class Login(Model):
    user: str
    token: str = Field(repr=False)


class Pets(ArrayModel):
    root: list[Pet] = Field(min_length=1, max_length=2)


class TestJSONMerge:
    def test_merges_objects(self):
        assert json_merge({"a": 1, "b": {"c": 2}}, {"b": {"c": 3}}) == {"a": 1, "b": {"c": 3}}

    def test_new_keys_need_copy_nonexistent(self):
        assert json_merge({"a": 1}, {"b": 2}) == {"a": 1}
        assert json_merge({"a": 1}, {"b": 2}, copy_nonexistent=True) == {"a": 1, "b": 2}

    def test_array_index_patch(self):
        data = [{"a": 1}, {"a": 2}]
        assert json_merge(data, {"1": {"a": 5}, "7": {"a": 9}}) == [{"a": 1}, {"a": 5}]

    def test_scalar_replaces(self):
        assert json_merge({"a": 1}, [1, 2]) == [1, 2]

    def test_input_not_mutated(self):
        data = {"a": {"b": 1}}
        json_merge(data, {"a": {"b": 2}})
        assert data == {"a": {"b": 1}}


class TestCoalesceOrMerge:
    def test_skips_none(self):
        assert coalesce_or_merge(None, {"a": 1}, None) == {"a": 1}
        assert coalesce_or_merge(None, None) is None

    def test_single_scalar(self):
        assert coalesce_or_merge("x", None) == "x"

    def test_later_keys_win(self):
        assert coalesce_or_merge({"a": 1, "b": 1}, {"b": 2}) == {"a": 1, "b": 2}

    def test_scalar_cannot_merge(self):
        with pytest.raises(DecodeError, match="cannot merge a str"):
            coalesce_or_merge({"a": 1}, "x")


class TestHelpers:
    def test_marshal_with_discriminator(self):
        assert marshal_with_discriminator({"a": 1}, "kind", "cat") == {"a": 1, "kind": "cat"}
        with pytest.raises(DecodeError, match="requires an object"):
            marshal_with_discriminator([1], "kind", "cat")

    def test_as_map(self):
        assert as_map(Pet(name="Rex", born_on=date(2024, 2, 3))) == {"name": "Rex", "bornOn": "2024-02-03"}
        assert as_map(None) is None
        with pytest.raises(DecodeError, match="must encode to an object"):
            as_map([1])

    def test_to_json_value(self):
        assert to_json_value(Color.BLUE) == "blue"
        assert to_json_value([date(2024, 2, 3)]) == ["2024-02-03"]

    def test_unmarshal_as(self):
        assert unmarshal_as(Pet, {"name": "Rex", "age": 3}) == Pet(name="Rex", age=3)
        assert unmarshal_as(list[int], [1, 2]) == [1, 2]

    def test_unmarshal_as_strict_keys(self):
        assert unmarshal_as(Cat, {"kind": "x", "claws": 5}) == Cat(kind="x")
        with pytest.raises(pydantic.ValidationError, match="unknown field 'claws'"):
            unmarshal_as(Cat, {"kind": "x", "claws": 5}, strict=True)


class TestModel:
    def test_json_keys(self):
        assert Pet.json_keys() == frozenset({"name", "age", "color", "bornOn"})

    def test_round_trip(self):
        pet = Pet.from_json('{"name": "Rex", "color": "red", "bornOn": "2024-02-03"}')
        assert pet.color is Color.RED
        assert pet.born_on == date(2024, 2, 3)
        assert pet.to_json() == '{"name":"Rex","color":"red","bornOn":"2024-02-03"}'

    def test_attribute_names_populate(self):
        pet = Pet(name="Rex", born_on=date(2024, 2, 3))
        assert pet.to_json_value() == {"name": "Rex", "bornOn": "2024-02-03"}

    def test_scalars_are_coerced(self):
        assert Pet.from_json_value({"name": "Rex", "age": "3"}).age == 3

    def test_invalid_json(self):
        with pytest.raises(ValidationErrors, match="Invalid JSON"):
            Pet.from_json("{")

    def test_not_an_object(self):
        with pytest.raises(ValidationErrors) as exc_info:
            Pet.from_json_value([])
        assert exc_info.value[0].field == "Pet"
        assert "valid dictionary" in exc_info.value[0].message

    def test_required(self):
        with pytest.raises(ValidationErrors) as exc_info:
            Pet.from_json_value({})
        assert [error.field for error in exc_info.value] == ["Pet.name"]
        assert exc_info.value[0].message == "Field required"

    def test_instance_passes_through(self):
        pet = Pet(name="Rex")
        assert Pet.from_json_value(pet) is pet

    def test_sensitive_repr(self):
        assert repr(Login(user="u", token="secret")) == "Login(user='u')"
        assert Login(user="u", token="secret").to_json_value() == {"user": "u", "token": "secret"}

    def test_constraints(self):
        with pytest.raises(ValidationErrors) as exc_info:
            Pet.from_json_value({"name": "R", "age": -1, "color": "green"})
        errors = exc_info.value
        assert [error.field for error in errors] == ["Pet.name", "Pet.age", "Pet.color"]
        assert "at least 2 characters" in errors[0].message
        assert "greater than or equal to 0" in errors[1].message

    def test_strict_rejects_unknown_keys(self):
        assert Pet.from_json_value({"name": "Rex", "owner": "Ann"}).to_json_value() == {"name": "Rex"}
        with pytest.raises(ValidationErrors, match="unknown field 'owner'"):
            Pet.from_json_value({"name": "Rex", "owner": "Ann"}, strict=True)


class TestAdditionalProperties:
    def test_union_and_leftovers(self):
        data = {"name": "Ann", "kind": "cat", "lives": 9, "hat": True}
        owner = Owner.from_json_value(data)
        assert owner.cat_or_dog.is_a
        assert owner.cat_or_dog.a == Cat(kind="cat", lives=9)
        assert owner.additional_properties == {"hat": True}
        assert owner.to_json_value() == data

    def test_most_keys_wins(self):
        owner = Owner.from_json_value({"kind": "dog", "bark": "woof"})
        assert owner.cat_or_dog.is_b
        assert owner.additional_properties is None

    def test_no_variant_matches(self):
        with pytest.raises(ValidationErrors, match="CatOrDog matches none of its variants"):
            Owner.from_json_value({"name": "Ann", "hat": True})

    def test_keyword_construction(self):
        owner = Owner(name="Ann", cat_or_dog=CatOrDog.from_a(Cat(kind="cat")))
        assert owner.to_json_value() == {"name": "Ann", "kind": "cat"}


class TestEither:
    def test_first_branch_wins(self):
        union = CatOrDog.from_json_value({"kind": "x"})
        assert union.is_a
        assert union.as_a() == Cat(kind="x")
        assert union.b is None
        with pytest.raises(UnionDecodeError, match="does not hold a Dog"):
            union.as_b()

    def test_branch_claiming_every_key_wins(self):
        union = AOrB.from_json_value({"b": "b-value"})
        assert union.is_b
        assert union.as_b().b == "b-value"
        assert union.to_json_value() == {"b": "b-value"}
        assert AOrB.from_json_value({"a": "a-value"}).as_a().a == "a-value"

    def test_lenient_pass_keeps_first_branch(self):
        union = AOrB.from_json_value({"a": "a-value", "c": 1})
        assert union.is_a
        assert union.to_json_value() == {"a": "a-value"}

    def test_neither_branch(self):
        with pytest.raises(ValidationErrors, match="failed to unmarshal as either Cat or Dog"):
            CatOrDog.from_json_value({"wings": 2})

    def test_constructors(self):
        union = CatOrDog.from_b(Dog(kind="dog", bark="woof"))
        assert union.to_json_value() == {"kind": "dog", "bark": "woof"}
        assert CatOrDog.from_variant(Dog(kind="dog"), Dog).is_b
        assert CatOrDog.from_a(Cat(kind="cat")).is_a
        assert repr(CatOrDog.from_a(Cat(kind="cat"))) == "CatOrDog(Cat=Cat(kind='cat', lives=None))"
        with pytest.raises(UnionDecodeError, match="is not a Cat"):
            CatOrDog.from_a(Dog(kind="dog"))

    def test_unknown_variant(self):
        with pytest.raises(UnionDecodeError, match="Bird is not a variant of CatOrDog"):
            CatOrDog.from_variant(Bird(kind="b", wings=2), Bird)
        with pytest.raises(IndexError):
            CatOrDog.variant_index(2)


class TestRawUnion:
    def test_dispatch(self):
        union = Animal.from_json_value({"kind": "bird", "wings": 2})
        assert union.value_by_discriminator() == Bird(kind="bird", wings=2)
        with pytest.raises(UnionDecodeError, match="Animal is not a Cat"):
            union.as_variant(Cat)

    def test_unknown_discriminator_value(self):
        with pytest.raises(UnionDecodeError, match="unknown discriminator value: fish"):
            Animal.from_json_value({"kind": "fish"}).value_by_discriminator()

    def test_payload_is_copied(self):
        data = {"kind": "cat"}
        union = Animal.from_json_value(data)
        data["kind"] = "dog"
        assert union.discriminator_value() == "cat"

    def test_from_variant_tags_discriminator(self):
        union = Animal.from_variant(Dog(kind="?"), Dog)
        assert union.raw == {"kind": "dog"}

    def test_merge_variant(self):
        union = Animal(None).merge_variant(Cat(kind="?", lives=3), Cat)
        assert union.to_json_value() == {"kind": "cat", "lives": 3}

    def test_missing_discriminator(self):
        with pytest.raises(UnionDecodeError, match="payload has no 'kind'"):
            Animal.from_json_value({"wings": 2}).discriminator_value()

    def test_discriminator_for(self):
        assert Animal.discriminator_for(2) == "bird"


class TestArrayModel:
    def test_decode(self):
        pets = Pets.from_json_value([{"name": "Rex"}])
        assert list(pets) == [Pet(name="Rex")]
        assert len(pets) == 1
        assert pets[0].name == "Rex"
        assert pets.to_json_value() == [{"name": "Rex"}]

    def test_item_errors_are_located(self):
        with pytest.raises(ValidationErrors) as exc_info:
            Pets.from_json_value([{"name": "R"}])
        assert exc_info.value[0].field.endswith("[0].name")

    def test_item_count_limits(self):
        with pytest.raises(ValidationErrors, match="at least 1 item"):
            Pets.from_json_value([])
        with pytest.raises(ValidationErrors, match="at most 2 items"):
            Pets.from_json_value([{"name": "Rex"}] * 3)

    def test_not_an_array(self):
        with pytest.raises(ValidationErrors, match="valid list"):
            Pets.from_json_value({})


class TestEnumModel:
    def test_validate(self):
        assert Level.validate(2) is Level.N2
        assert Color.validate("blue") is Color.BLUE

    def test_wrong_kind(self):
        with pytest.raises(ValidationError, match="must be a int, got string"):
            Level.validate("1")
        with pytest.raises(ValidationError, match="'green' is not a valid Color"):
            Color.validate("green")


class TestValidationErrors:
    def test_with_prefix(self):
        assert ValidationError("", "bad").with_prefix("a") == ValidationError("a", "bad")
        assert ValidationError("b", "bad").with_prefix("a") == ValidationError("a.b", "bad")
        assert ValidationError("a.b", "bad").with_prefix("a") == ValidationError("a.b", "bad")
        assert ValidationError("b", "bad").with_prefix("") == ValidationError("b", "bad")
        assert ValidationError("[0].b", "bad").with_prefix("a") == ValidationError("a[0].b", "bad")

    def test_str(self):
        errors = ValidationErrors().add("a", "is required").add("", "too short")
        assert str(errors) == "a is required\ntoo short"
        assert len(errors) == 2
        assert errors[1].message == "too short"

    def test_append(self):
        errors = ValidationErrors()
        errors.append("x", None)
        errors.append("x", ValueError("boom"))
        errors.append("y", ValidationErrors([ValidationError("z", "bad")]))
        assert [str(error) for error in errors] == ["x boom", "y.z bad"]

    def test_validation_errors_from(self):
        errors = validation_errors_from("p", [ValidationError("p.q", "bad"), ValidationError("", "worse")])
        assert [str(error) for error in errors] == ["p.q bad", "p worse"]

    def test_from_pydantic_error(self):
        with pytest.raises(pydantic.ValidationError) as exc_info:
            unmarshal_as(list[Pet], [{"name": "Rex"}, {}])
        errors = validation_errors_from("pets", [exc_info.value])
        assert [error.field for error in errors] == ["pets[1].name"]

    def test_json_path(self):
        assert json_path(("items", 0, "name")) == "items[0].name"
        assert json_path((2,)) == "[2]"
        assert json_path(()) == ""


class TestClientAPIError:
    def test_str(self):
        assert str(ClientAPIError()) == "client api error"
        error = ClientAPIError(ValueError("not found"), 404)
        assert str(error) == "not found"
        assert error.status_code == 404

import pytest

from oapi_typegen.codegen.schema import TypeDefinition, TypeKind, TypeSchema
from oapi_typegen.codegen.type_tracker import TypeTracker
from oapi_typegen.shared.errors import NamingConflictError


def _definition(name: str) -> TypeDefinition:
    return TypeDefinition(name=name, schema=TypeSchema(TypeKind.SCALAR, py_type="str"))


class TestRegister:
    def test_lookup_by_name_and_ref(self):
        tracker = TypeTracker()
        definition = _definition("User")
        tracker.register(definition, "#/components/schemas/User")

        assert tracker.lookup_by_name("User") is definition
        assert tracker.lookup_by_ref("#/components/schemas/User") == "User"
        assert tracker.exists("User")
        assert len(tracker) == 1

    def test_conflicting_ref_raises(self):
        tracker = TypeTracker()
        tracker.register(_definition("User"), "#/components/schemas/User")
        with pytest.raises(NamingConflictError):
            tracker.register(_definition("Person"), "#/components/schemas/User")

    def test_same_ref_same_name_is_allowed(self):
        tracker = TypeTracker()
        tracker.register(_definition("User"), "#/components/schemas/User")
        tracker.register(_definition("User"), "#/components/schemas/User")
        assert tracker.size() == 1

    def test_definitions_keep_registration_order(self):
        tracker = TypeTracker()
        for name in ("B", "A", "C"):
            tracker.register(_definition(name))
        assert [definition.name for definition in tracker] == ["B", "A", "C"]


class TestReserve:
    def test_reserved_name_exists_but_pending(self):
        tracker = TypeTracker()
        tracker.reserve("User", "#/components/schemas/User")

        assert tracker.exists("User")
        assert tracker.is_pending("User")
        assert tracker.lookup_by_name("User") is None
        assert tracker.lookup_by_ref("#/components/schemas/User") == "User"

    def test_register_clears_reservation(self):
        tracker = TypeTracker()
        tracker.reserve("User", "#/components/schemas/User")
        tracker.register(_definition("User"), "#/components/schemas/User")
        assert not tracker.is_pending("User")

    def test_conflicting_reservation(self):
        tracker = TypeTracker()
        tracker.reserve("User", "#/components/schemas/User")
        with pytest.raises(NamingConflictError):
            tracker.reserve("Person", "#/components/schemas/User")


class TestGenerateUniqueName:
    def test_free_name(self):
        assert TypeTracker().generate_unique_name("User") == "User"

    def test_numeric_suffixes(self):
        tracker = TypeTracker()
        tracker.register(_definition("User"))
        assert tracker.generate_unique_name("User") == "User0"
        tracker.register(_definition("User0"))
        assert tracker.generate_unique_name("User") == "User1"

    def test_default_suffixes_first(self):
        tracker = TypeTracker(["Model"])
        tracker.register(_definition("User"))
        assert tracker.generate_unique_name("User") == "UserModel"

    def test_explicit_suffixes(self):
        tracker = TypeTracker()
        tracker.register(_definition("CreateUserBody"))
        tracker.register(_definition("CreateUserBodyJSON"))
        assert tracker.generate_unique_name_with_suffixes("CreateUserBody", ["JSON"]) == "CreateUserBody0"

    def test_reserved_names_are_taken(self):
        tracker = TypeTracker()
        tracker.reserve("User")
        assert tracker.generate_unique_name("User") == "User0"


class TestWithDefaultSuffixes:
    def test_shares_registry(self):
        tracker = TypeTracker()
        view = tracker.with_default_suffixes(["Type"])
        view.register(_definition("User"))

        assert tracker.lookup_by_name("User") is not None
        assert view.default_suffixes == ("Type",)
        assert tracker.default_suffixes == ()
        assert view.generate_unique_name("User") == "UserType"

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime

import pytest

from rowgraph.domain.errors import FieldTypeError, SchemaDefinitionError, UnknownTypeError
from rowgraph.domain.schema import FieldKind, SchemaCatalog, column
from tests.helpers.models import (
    AllTypes,
    CachedProfile,
    Color,
    CyclicType,
    Dog,
    NullTypes,
    PrimaryKeyAsNullableInt,
    Unregistered,
    catalog,
)


def test_descriptor_lists_fields_in_declaration_order() -> None:
    descriptor = catalog.descriptor_for(AllTypes)

    assert [f.name for f in descriptor.fields] == [
        "column_string",
        "column_long",
        "column_float",
        "column_boolean",
        "column_date",
        "column_day",
        "column_binary",
        "column_enum",
        "column_object",
        "column_list",
        "column_string_list",
    ]
    assert descriptor.primary_key is None


def test_field_kinds_are_classified() -> None:
    descriptor = catalog.descriptor_for(AllTypes)

    assert descriptor.field("column_long").kind is FieldKind.SCALAR
    assert descriptor.field("column_enum").python_type is Color
    assert descriptor.field("column_object").kind is FieldKind.OBJECT
    assert descriptor.field("column_object").target == "Dog"
    assert descriptor.field("column_list").kind is FieldKind.OBJECT_LIST
    assert descriptor.field("column_string_list").kind is FieldKind.SCALAR_LIST
    assert [f.name for f in descriptor.relation_fields] == [
        "column_object",
        "column_list",
        "column_string_list",
    ]


def test_forward_and_self_references_resolve_lazily() -> None:
    dog = catalog.descriptor_for(Dog).field("owner")
    cyclic = catalog.descriptor_for(CyclicType).field("object")

    assert dog.target == "Owner"
    assert dog.nullable
    assert cyclic.target == "CyclicType"


def test_optional_fields_are_nullable() -> None:
    descriptor = catalog.descriptor_for(NullTypes)

    assert not descriptor.field("field_string_not_null").nullable
    assert descriptor.field("field_string_null").nullable
    assert descriptor.field("field_list_null").nullable
    assert descriptor.field("field_sparse_list").element_nullable
    assert descriptor.field("field_optional_ints").element_nullable


def test_nullable_primary_key_is_allowed() -> None:
    descriptor = catalog.descriptor_for(PrimaryKeyAsNullableInt)

    assert descriptor.primary_key is not None
    assert descriptor.primary_key.nullable


def test_ignored_fields_are_not_persisted() -> None:
    descriptor = catalog.descriptor_for(CachedProfile)

    assert [f.name for f in descriptor.fields] == ["handle", "bio", "friend"]
    assert descriptor.ignored_fields == ("scratch", "seen")


def test_lookup_by_name_and_membership() -> None:
    assert "Dog" in catalog
    assert Dog in catalog
    assert Unregistered not in catalog
    assert catalog.descriptor_for("Dog").model is Dog


def test_unknown_types_are_rejected() -> None:
    with pytest.raises(UnknownTypeError, match="Unregistered"):
        catalog.describe(Unregistered())
    with pytest.raises(UnknownTypeError):
        catalog.descriptor_for("Missing")


def test_only_dataclasses_can_be_registered() -> None:
    local = SchemaCatalog()

    class Plain:
        pass

    with pytest.raises(SchemaDefinitionError):
        local.register(Plain)


def test_type_names_must_be_unique() -> None:
    local = SchemaCatalog()

    @dataclass
    class First:
        value: int = 0

    @dataclass
    class Second:
        value: int = 0

    local.register(First, name="Thing")
    with pytest.raises(SchemaDefinitionError, match="already registered"):
        local.register(Second, name="Thing")


def test_model_decorator_accepts_custom_name() -> None:
    local = SchemaCatalog()

    @local.model(name="renamed")
    @dataclass
    class Original:
        value: int = 0

    assert local.descriptor_for(Original).name == "renamed"
    assert len(local) == 1


def test_more_than_one_primary_key_is_rejected() -> None:
    local = SchemaCatalog()

    @local.model
    @dataclass
    class TwoKeys:
        a: int = column(primary_key=True, default=0)
        b: int = column(primary_key=True, default=0)

    with pytest.raises(SchemaDefinitionError, match="more than one primary key"):
        local.descriptor_for(TwoKeys)


def test_primary_key_must_be_int_or_str() -> None:
    local = SchemaCatalog()

    @local.model
    @dataclass
    class FloatKey:
        value: float = column(primary_key=True, default=0.0)

    with pytest.raises(SchemaDefinitionError, match="int or str"):
        local.descriptor_for(FloatKey)


def test_list_fields_cannot_carry_column_options() -> None:
    local = SchemaCatalog()

    @local.model
    @dataclass
    class Tagged:
        tags: list[str] = column(unique=True, default_factory=list)

    with pytest.raises(SchemaDefinitionError, match="column options"):
        local.descriptor_for(Tagged)


def test_unsupported_annotation_is_rejected() -> None:
    local = SchemaCatalog()

    @local.model
    @dataclass
    class Weird:
        mapping: dict[str, int] = field(default_factory=dict)

    with pytest.raises(SchemaDefinitionError, match="unsupported annotation"):
        local.descriptor_for(Weird)


def test_reference_to_unregistered_dataclass_is_rejected() -> None:
    local = SchemaCatalog()

    @local.model
    @dataclass
    class Holder:
        item: Unregistered | None = None

    with pytest.raises(SchemaDefinitionError):
        local.descriptor_for(Holder)


@pytest.mark.parametrize(
    ("field_name", "value"),
    [
        ("column_long", True),
        ("column_long", 1.0),
        ("column_float", 1),
        ("column_string", b"bytes"),
        ("column_day", datetime(2020, 1, 1, tzinfo=UTC)),
        ("column_enum", "red"),
        ("column_boolean", None),
        ("column_date", datetime(2020, 1, 1, 8, 30)),
        ("column_long", 2**63),
        ("column_long", -(2**63) - 1),
    ],
)
def test_scalar_validation_does_not_coerce(field_name: str, value: object) -> None:
    descriptor = catalog.descriptor_for(AllTypes)

    with pytest.raises(FieldTypeError, match=field_name):
        descriptor.field(field_name).validate(descriptor.name, value)


def test_scalar_validation_accepts_exact_types() -> None:
    descriptor = catalog.descriptor_for(AllTypes)

    descriptor.field("column_long").validate(descriptor.name, 3)
    descriptor.field("column_float").validate(descriptor.name, 3.5)
    descriptor.field("column_day").validate(descriptor.name, date(2020, 1, 1))
    descriptor.field("column_enum").validate(descriptor.name, Color.BLUE)
    descriptor.field("column_long").validate(descriptor.name, 2**63 - 1)
    descriptor.field("column_long").validate(descriptor.name, -(2**63))


def test_error_names_the_unstorable_value() -> None:
    descriptor = catalog.descriptor_for(AllTypes)

    with pytest.raises(FieldTypeError, match="naive datetime"):
        descriptor.field("column_date").validate(descriptor.name, datetime(2020, 1, 1))
    with pytest.raises(FieldTypeError, match="signed 64-bit"):
        descriptor.field("column_long").validate(descriptor.name, 2**64)

from apiforge.aat.equality import (
    constraints_are_equal,
    field_types_are_equal,
    literals_are_equal,
    types_are_structurally_equal,
)
from apiforge.aat.types import (
    Constraints,
    Discriminator,
    EnumType,
    EnumVariant,
    Field,
    ListType,
    LiteralType,
    ObjectType,
    OptionalType,
    PrimitiveType,
    ReferenceType,
    StringFormat,
    UnionType,
    UnionTypeVariant,
)

INT = PrimitiveType(primitive="int")
STRING = PrimitiveType(primitive="string")


def _enum(name, *values):
    return EnumType(name=name, variants=[EnumVariant(value=LiteralType(value=v)) for v in values])


def test_bool_and_int_literals_differ():
    assert not literals_are_equal(LiteralType(value=True), LiteralType(value=1))
    assert not literals_are_equal(LiteralType(value=1), LiteralType(value=1.0))
    assert literals_are_equal(LiteralType(value=None), LiteralType(value=None))


def test_nan_equals_nan():
    assert literals_are_equal(LiteralType(value=float("nan")), LiteralType(value=float("nan")))


def test_names_of_named_types_are_ignored():
    assert types_are_structurally_equal(_enum("A", "x", "y"), _enum("B", "x", "y"))


def test_enum_order_matters():
    assert not types_are_structurally_equal(_enum("A", "x", "y"), _enum("A", "y", "x"))


def test_kinds_never_match():
    obj = ObjectType(name="A", fields=[])
    union = UnionType(name="A", variants=[])
    assert not types_are_structurally_equal(obj, union)
    assert not types_are_structurally_equal(_enum("A"), obj)


def test_object_fields_compare_in_order():
    a = ObjectType(name="P", fields=[Field(name="x", type=INT), Field(name="y", type=INT)])
    b = ObjectType(name="P", fields=[Field(name="y", type=INT), Field(name="x", type=INT)])
    assert not types_are_structurally_equal(a, b)


def test_object_field_constraints_matter():
    a = ObjectType(name="P", fields=[Field(name="x", type=INT, constraints=Constraints(minimum=0))])
    b = ObjectType(name="P", fields=[Field(name="x", type=INT)])
    assert not types_are_structurally_equal(a, b)
    assert types_are_structurally_equal(a, a.model_copy(deep=True))


def test_union_discriminator_matters():
    variants = [UnionTypeVariant(name="A", mode=ObjectType(name="A"))]
    plain = UnionType(name="U", variants=variants)
    tagged = UnionType(
        name="U",
        discriminator=Discriminator(property_name="type"),
        variants=variants,
    )
    assert not types_are_structurally_equal(plain, tagged)
    assert types_are_structurally_equal(tagged, tagged.model_copy(deep=True))


def test_union_variant_modes():
    lit = UnionType(name="U", variants=[UnionTypeVariant(name="A", mode=LiteralType(value="A"))])
    obj = UnionType(name="U", variants=[UnionTypeVariant(name="A", mode=ObjectType(name="A"))])
    assert not types_are_structurally_equal(lit, obj)


def test_field_types():
    assert field_types_are_equal(ListType(inner=OptionalType(inner=INT)), ListType(inner=OptionalType(inner=INT)))
    assert not field_types_are_equal(ListType(inner=INT), OptionalType(inner=INT))
    assert not field_types_are_equal(ReferenceType(name="A"), ReferenceType(name="B"))
    assert not field_types_are_equal(
        STRING, PrimitiveType(primitive="string", format=StringFormat.EMAIL)
    )


def test_constraints():
    assert constraints_are_equal(None, None)
    assert not constraints_are_equal(Constraints(), None)
    assert constraints_are_equal(Constraints(pattern="a+"), Constraints(pattern="a+"))
    assert not constraints_are_equal(Constraints(max_items=1), Constraints(max_items=2))

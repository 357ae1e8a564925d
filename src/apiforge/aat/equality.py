from __future__ import annotations

import math
from typing import Optional

from apiforge.aat.types import (
    Constraints,
    EnumType,
    FieldType,
    IntersectionType,
    LiteralType,
    ListType,
    MapType,
    NamedType,
    ObjectType,
    OptionalType,
    PrimitiveType,
    ReferenceType,
    StreamType,
    TupleType,
    AnyType,
    UnionType,
)

_CONSTRAINT_ATTRS = (
    "minimum",
    "maximum",
    "exclusive_minimum",
    "exclusive_maximum",
    "multiple_of",
    "min_length",
    "max_length",
    "pattern",
    "min_items",
    "max_items",
    "unique_items",
)


def types_are_structurally_equal(a: NamedType, b: NamedType) -> bool:
    """
    Shape equality between two named types, ignoring their own names.

    Used by the registry to tell "same type reached twice" apart from a
    genuine name collision. Kinds never compare equal across each other.
    """
    if isinstance(a, ObjectType) and isinstance(b, ObjectType):
        return objects_are_equal(a, b)
    if isinstance(a, UnionType) and isinstance(b, UnionType):
        return unions_are_equal(a, b)
    if isinstance(a, EnumType) and isinstance(b, EnumType):
        return enums_are_equal(a, b)
    return False


def objects_are_equal(a: ObjectType, b: ObjectType) -> bool:
    if len(a.fields) != len(b.fields):
        return False
    # same order, same names, same types, same constraints
    return all(
        fa.name == fb.name
        and field_types_are_equal(fa.type, fb.type)
        and constraints_are_equal(fa.constraints, fb.constraints)
        for fa, fb in zip(a.fields, b.fields)
    )


def unions_are_equal(a: UnionType, b: UnionType) -> bool:
    if len(a.variants) != len(b.variants):
        return False

    if (a.discriminator is None) != (b.discriminator is None):
        return False
    if a.discriminator is not None and b.discriminator is not None:
        if a.discriminator.property_name != b.discriminator.property_name:
            return False
        if a.discriminator.mapping != b.discriminator.mapping:
            return False

    for va, vb in zip(a.variants, b.variants):
        if va.name != vb.name:
            return False
        if isinstance(va.mode, ObjectType) and isinstance(vb.mode, ObjectType):
            if not objects_are_equal(va.mode, vb.mode):
                return False
        elif isinstance(va.mode, LiteralType) and isinstance(vb.mode, LiteralType):
            if not literals_are_equal(va.mode, vb.mode):
                return False
        else:
            return False
    return True


def enums_are_equal(a: EnumType, b: EnumType) -> bool:
    if len(a.variants) != len(b.variants):
        return False
    return all(
        literals_are_equal(va.value, vb.value) and va.description == vb.description
        for va, vb in zip(a.variants, b.variants)
    )


def literals_are_equal(a: LiteralType, b: LiteralType) -> bool:
    x, y = a.value, b.value
    # bool is a subclass of int; 1 == True must not hold here
    if type(x) is not type(y):
        return False
    if isinstance(x, float) and math.isnan(x) and math.isnan(y):
        return True
    return x == y


def field_types_are_equal(a: FieldType, b: FieldType) -> bool:
    if type(a) is not type(b):
        return False

    if isinstance(a, PrimitiveType):
        return a.primitive == b.primitive and a.format == b.format
    if isinstance(a, LiteralType):
        return literals_are_equal(a, b)
    if isinstance(a, (OptionalType, ListType, MapType, StreamType)):
        return field_types_are_equal(a.inner, b.inner)
    if isinstance(a, ReferenceType):
        return a.name == b.name
    if isinstance(a, (IntersectionType, TupleType)):
        return len(a.members) == len(b.members) and all(
            field_types_are_equal(x, y) for x, y in zip(a.members, b.members)
        )
    if isinstance(a, AnyType):
        return True
    return False


def constraints_are_equal(a: Optional[Constraints], b: Optional[Constraints]) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return all(getattr(a, attr) == getattr(b, attr) for attr in _CONSTRAINT_ATTRS)

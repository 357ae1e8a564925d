import pytest

from apiforge.aat.tree import AAT
from apiforge.aat.types import (
    AnyType,
    Endpoint,
    EnumType,
    EnumVariant,
    Field,
    HttpMethod,
    IntersectionType,
    ListType,
    LiteralType,
    MapType,
    ObjectType,
    OptionalType,
    PathLiteral,
    PathParameter,
    PrimitiveType,
    ReferenceType,
    Service,
    StreamType,
    TupleType,
    UnionType,
    UnionTypeVariant,
)
from apiforge.aat.validation import iter_references, validate
from apiforge.errors import PathParameterError, UnresolvedReferenceError

STRING = PrimitiveType(primitive="string")


def _enum(name, *values):
    return EnumType(name=name, variants=[EnumVariant(value=LiteralType(value=v)) for v in values])


def _aat_with_endpoint(endpoint, types=()):
    return AAT(name="t", types=list(types), services=[Service(name="s", endpoints=[endpoint])])


def _with_path_param(param_type, types=()):
    endpoint = Endpoint(
        name="lookup",
        method=HttpMethod.GET,
        path=[PathLiteral(value="items"), PathParameter(name="id", type=param_type)],
    )
    return _aat_with_endpoint(endpoint, types)


def test_dangling_response_reference():
    aat = _aat_with_endpoint(
        Endpoint(name="e", method=HttpMethod.GET, response=ReferenceType(name="Ghost"))
    )
    with pytest.raises(UnresolvedReferenceError) as exc_info:
        validate(aat)

    assert exc_info.value.reference == "Ghost"
    assert "Reference to undefined type 'Ghost'" in str(exc_info.value)
    assert "response of endpoint 'e'" in str(exc_info.value)


def test_dangling_reference_inside_wrappers():
    aat = _aat_with_endpoint(
        Endpoint(
            name="e",
            method=HttpMethod.POST,
            body=ListType(inner=MapType(inner=OptionalType(inner=ReferenceType(name="Ghost")))),
        )
    )
    with pytest.raises(UnresolvedReferenceError, match="body of endpoint 'e'"):
        validate(aat)


def test_dangling_reference_in_object_field():
    holder = ObjectType(name="Holder", fields=[Field(name="ghost", type=ReferenceType(name="Ghost"))])
    aat = _aat_with_endpoint(Endpoint(name="e", method=HttpMethod.GET), types=[holder])

    with pytest.raises(UnresolvedReferenceError, match="field 'ghost' of type 'Holder'"):
        validate(aat)


def test_dangling_reference_in_union_variant():
    variant = ObjectType(name="A", fields=[Field(name="x", type=ReferenceType(name="Ghost"))])
    union = UnionType(name="U", variants=[UnionTypeVariant(name="A", mode=variant)])
    aat = _aat_with_endpoint(Endpoint(name="e", method=HttpMethod.GET), types=[union])

    with pytest.raises(UnresolvedReferenceError, match="union variant 'A' in type 'U'"):
        validate(aat)


def test_primitive_and_literal_path_params_pass():
    validate(_with_path_param(STRING))
    validate(_with_path_param(PrimitiveType(primitive="int")))
    validate(_with_path_param(LiteralType(value="fixed")))


def test_string_enum_path_param_passes():
    validate(_with_path_param(ReferenceType(name="Kind"), types=[_enum("Kind", "a", "b")]))


def test_optional_path_param_fails():
    with pytest.raises(PathParameterError) as exc_info:
        validate(_with_path_param(OptionalType(inner=STRING)))

    assert exc_info.value.endpoint == "lookup"
    assert exc_info.value.parameter == "id"


def test_object_reference_path_param_fails():
    aat = _with_path_param(ReferenceType(name="Obj"), types=[ObjectType(name="Obj")])
    with pytest.raises(PathParameterError, match="reference to object 'Obj'"):
        validate(aat)


def test_int_enum_path_param_fails():
    aat = _with_path_param(ReferenceType(name="Level"), types=[_enum("Level", 1, 2)])
    with pytest.raises(PathParameterError, match="non-string enum"):
        validate(aat)


UNION_U = UnionType(
    name="U",
    variants=[UnionTypeVariant(name="A", mode=LiteralType(value="a"))],
)


@pytest.mark.parametrize(
    "param_type, types, message",
    [
        (ListType(inner=STRING), [], r"\(list\)"),
        (MapType(inner=STRING), [], r"\(map\)"),
        (StreamType(inner=STRING), [], r"\(stream\)"),
        (TupleType(members=[STRING]), [], r"\(tuple\)"),
        (IntersectionType(members=[STRING]), [], r"\(intersection\)"),
        (AnyType(), [], r"\(any\)"),
        (ReferenceType(name="U"), [UNION_U], "reference to union 'U'"),
    ],
)
def test_non_stringifiable_path_params_fail(param_type, types, message):
    with pytest.raises(PathParameterError, match=message):
        validate(_with_path_param(param_type, types=types))


def test_references_are_checked_before_path_params():
    # both problems present: the dangling reference is reported
    aat = _with_path_param(ReferenceType(name="Ghost"))
    with pytest.raises(UnresolvedReferenceError):
        validate(aat)


def test_validate_is_read_only_and_repeatable():
    aat = _with_path_param(ReferenceType(name="Kind"), types=[_enum("Kind", "a")])
    before = aat.model_dump()

    validate(aat)
    aat.check()

    assert aat.model_dump() == before


def test_iter_references_order():
    field_type = ListType(inner=OptionalType(inner=ReferenceType(name="A")))
    assert list(iter_references(field_type)) == ["A"]
    assert list(iter_references(STRING)) == []

import pytest

from apiforge.aat.registry import TypeRegistry
from apiforge.aat.types import EnumType, ObjectType
from apiforge.errors import SchemaShapeError, TypeCollisionError


def _point(title="Point", extra=None):
    props = {"x": {"type": "integer"}, "y": {"type": "integer"}}
    if extra:
        props.update(extra)
    return {"title": title, "type": "object", "properties": props, "required": ["x", "y"]}


def test_same_shape_twice_is_registered_once():
    reg = TypeRegistry()

    assert reg.add_schema_and_get_name(_point()) == "Point"
    assert reg.add_schema_and_get_name(_point()) == "Point"

    assert len(reg) == 1
    assert "Point" in reg
    assert isinstance(reg.get("Point"), ObjectType)


def test_same_name_different_shape_collides():
    reg = TypeRegistry()
    reg.add_schema_and_get_name(_point())

    with pytest.raises(TypeCollisionError) as exc_info:
        reg.add_schema_and_get_name(_point(extra={"z": {"type": "integer"}}))

    assert exc_info.value.type_name == "Point"
    assert "Type name collision" in str(exc_info.value)
    assert len(reg) == 1


def test_anonymous_names_count_up():
    reg = TypeRegistry()
    anon = {"type": "object", "properties": {"a": {"type": "string"}}}

    assert reg.extract_schema_name(anon) == "AnonymousType1"
    # the name is only taken once something is registered under it
    assert reg.extract_schema_name(anon) == "AnonymousType1"

    assert reg.add_schema_and_get_name(anon) == "AnonymousType1"
    assert reg.add_schema_and_get_name({"enum": ["x"]}) == "AnonymousType2"


def test_name_from_own_ref():
    reg = TypeRegistry()
    assert reg.extract_schema_name({"$ref": "#/$defs/Pet"}) == "Pet"
    assert reg.extract_schema_name({"$ref": "#/definitions/Pet"}) == "Pet"
    # a reference outside $defs does not name anything
    assert reg.extract_schema_name({"$ref": "other.json#/Pet"}) == "AnonymousType1"


def test_title_wins_over_ref():
    reg = TypeRegistry()
    assert reg.extract_schema_name({"title": "Cat", "$ref": "#/$defs/Pet"}) == "Cat"


def test_boolean_schema_cannot_be_named():
    reg = TypeRegistry()
    with pytest.raises(SchemaShapeError):
        reg.extract_schema_name(True)


def test_defs_are_registered_under_their_keys():
    schema = {
        "title": "Order",
        "type": "object",
        "properties": {"status": {"$ref": "#/$defs/Status"}},
        "required": ["status"],
        "$defs": {"Status": {"enum": ["open", "closed"]}},
    }
    reg = TypeRegistry()
    reg.add_schema_and_get_name(schema)

    assert [t.name for t in reg.types] == ["Order", "Status"]
    assert isinstance(reg.get("Status"), EnumType)


def test_legacy_definitions_are_registered():
    reg = TypeRegistry()
    reg.append_definitions({"definitions": {"Flag": {"enum": [True, False]}}})
    assert "Flag" in reg


def test_non_node_defs_are_skipped():
    reg = TypeRegistry()
    reg.append_definitions({"$defs": {"Junk": 3, "Ok": {"enum": ["a"]}}})
    assert [t.name for t in reg.types] == ["Ok"]


def test_boolean_defs_fail():
    reg = TypeRegistry()
    with pytest.raises(SchemaShapeError, match="named type 'Anything'"):
        reg.append_definitions({"$defs": {"Anything": True}})


def test_shared_defs_across_roots_dedupe():
    status = {"enum": ["open", "closed"]}
    a = {"title": "A", "type": "object", "properties": {}, "$defs": {"Status": status}}
    b = {"title": "B", "type": "object", "properties": {}, "$defs": {"Status": dict(status)}}

    reg = TypeRegistry()
    reg.add_schema_and_get_name(a)
    reg.add_schema_and_get_name(b)

    assert sorted(t.name for t in reg.types) == ["A", "B", "Status"]


OBJECT_X = {"title": "X", "type": "object", "properties": {"a": {"type": "integer"}}}
ENUM_X = {"title": "X", "enum": ["a"]}


@pytest.mark.parametrize("first, second", [(OBJECT_X, ENUM_X), (ENUM_X, OBJECT_X)])
def test_object_and_enum_with_one_name_collide_in_either_order(first, second):
    reg = TypeRegistry()
    reg.add_schema_and_get_name(first)

    with pytest.raises(TypeCollisionError) as exc_info:
        reg.add_schema_and_get_name(second)

    assert exc_info.value.type_name == "X"
    assert len(reg) == 1

from __future__ import annotations

from typing import Any, Mapping, Optional

from apiforge.aat.types import (
    AnyType,
    Constraints,
    Discriminator,
    EnumType,
    EnumVariant,
    Field,
    FieldType,
    IntersectionType,
    ListType,
    LiteralType,
    MapType,
    NamedType,
    ObjectType,
    OptionalType,
    PrimitiveType,
    ReferenceType,
    StringFormat,
    UnionType,
    UnionTypeVariant,
)
from apiforge.errors import SchemaShapeError

REF_PREFIXES = ("#/$defs/", "#/definitions/")
_STRING_FORMATS = {f.value: f for f in StringFormat}


def _is_number(value: Any) -> bool:
    # JSON booleans are never numbers
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _as_node(value: Any, where: str) -> Any:
    if isinstance(value, (bool, Mapping)):
        return value
    raise SchemaShapeError(f"Invalid schema in {where}: expected an object or bool, got {type(value).__name__}")


def extract_ref_name(reference: str) -> str:
    # "#/$defs/TypeName" or "#/definitions/TypeName"
    for prefix in REF_PREFIXES:
        if reference.startswith(prefix):
            return reference[len(prefix):]
    raise SchemaShapeError(f"Unsupported reference format: {reference}")


def is_inline_schema(schema: Any) -> bool:
    """
    Primitives, arrays, maps and untyped values are inlined at the usage site.
    Objects with properties, unions and enums become named types.
    A nullable anyOf (pydantic's Optional[X]) follows its non-null member.
    """
    if not isinstance(schema, Mapping):
        return True
    if "properties" in schema:
        return False
    if "oneOf" in schema:
        return False
    any_of = schema.get("anyOf")
    if any_of is not None:
        member = _nullable_any_of_member(any_of) if isinstance(any_of, list) else None
        if member is None or "enum" in schema:
            return False
        return is_inline_schema(member)
    if "enum" in schema:
        return False
    return True


def schema_to_field_type(schema: Any) -> FieldType:
    if isinstance(schema, bool):
        if schema:
            return AnyType()
        raise SchemaShapeError("Schema bool(false) cannot be converted to a field type")

    if not isinstance(schema, Mapping):
        raise SchemaShapeError("Schema must be an object or bool")

    return _object_node_to_field_type(schema)


def _nullable_any_of_member(any_of: list) -> Optional[Any]:
    # anyOf: [X, {"type": "null"}] is how pydantic spells Optional[X]
    if len(any_of) != 2:
        return None
    non_null = [m for m in any_of if not (isinstance(m, Mapping) and m.get("type") == "null" and len(m) == 1)]
    if len(non_null) != 1:
        return None
    return non_null[0]


def _object_node_to_field_type(obj: Mapping[str, Any]) -> FieldType:
    reference = obj.get("$ref")
    if isinstance(reference, str):
        return ReferenceType(name=extract_ref_name(reference))

    all_of = obj.get("allOf")
    if isinstance(all_of, list):
        return IntersectionType(
            members=[schema_to_field_type(_as_node(m, "allOf")) for m in all_of]
        )

    any_of = obj.get("anyOf")
    if isinstance(any_of, list):
        member = _nullable_any_of_member(any_of)
        if member is not None:
            return OptionalType(inner=schema_to_field_type(_as_node(member, "anyOf")))

    # OpenAPI 3.0 style: "nullable": true; JSON Schema style: "type": [..., "null"]
    nullable_flag = obj.get("nullable") is True

    raw_type = obj.get("type")
    instance_types: Optional[list[str]]
    if isinstance(raw_type, str):
        instance_types = [raw_type]
    elif isinstance(raw_type, list):
        instance_types = [t for t in raw_type if isinstance(t, str)]
    else:
        instance_types = None

    null_in_types = instance_types is not None and "null" in instance_types

    # purely null: "null" or ["null"]
    if instance_types is not None and len(instance_types) == 1 and null_in_types:
        return LiteralType(value=None)

    type_str = None
    if instance_types is not None:
        type_str = next((t for t in instance_types if t != "null"), None)

    base = _instance_type_to_field_type(type_str, obj)

    if nullable_flag or null_in_types:
        return OptionalType(inner=base)
    return base


def _instance_type_to_field_type(type_str: Optional[str], obj: Mapping[str, Any]) -> FieldType:
    if type_str is None:
        return AnyType()

    if type_str == "boolean":
        return PrimitiveType(primitive="bool")
    if type_str == "integer":
        return PrimitiveType(primitive="int")
    if type_str == "number":
        return PrimitiveType(primitive="float")
    if type_str == "string":
        fmt = obj.get("format")
        # unrecognized formats are dropped
        return PrimitiveType(
            primitive="string",
            format=_STRING_FORMATS.get(fmt) if isinstance(fmt, str) else None,
        )

    if type_str == "array":
        if "items" in obj:
            return ListType(inner=schema_to_field_type(_as_node(obj["items"], "items")))
        return ListType(inner=AnyType())

    if type_str == "object":
        if "additionalProperties" not in obj:
            # no explicit properties and no value schema: untyped
            return AnyType()
        extra = _as_node(obj["additionalProperties"], "additionalProperties")
        if extra is True:
            return MapType(inner=AnyType())
        if extra is False:
            raise SchemaShapeError("Map with no additional properties not supported")
        return MapType(inner=schema_to_field_type(extra))

    raise SchemaShapeError(f"Unsupported type: {type_str}")


def schema_to_type(schema: Any, name: str) -> NamedType:
    """Classify a schema as Enum, Union or Object, in that precedence."""
    if isinstance(schema, bool):
        if schema:
            raise SchemaShapeError(
                f"Schema bool(true) (any type) cannot be converted to a named type '{name}'"
            )
        raise SchemaShapeError(
            f"Schema bool(false) (no type) cannot be converted to a named type '{name}'"
        )

    if not isinstance(schema, Mapping):
        raise SchemaShapeError("Schema must be an object or bool")

    enum_values = schema.get("enum")
    if isinstance(enum_values, list):
        return _schema_to_enum_type(name, enum_values)

    one_of = schema.get("oneOf")
    if isinstance(one_of, list):
        return _schema_to_union_type(name, one_of, schema)

    return schema_to_object_type(name, schema)


def json_value_to_literal(value: Any) -> LiteralType:
    if value is None or isinstance(value, (str, bool, int, float)):
        return LiteralType(value=value)
    raise SchemaShapeError(f"Unsupported JSON value type in enum: {type(value).__name__}")


def _schema_to_enum_type(name: str, enum_values: list) -> EnumType:
    return EnumType(
        name=name,
        variants=[EnumVariant(value=json_value_to_literal(v)) for v in enum_values],
    )


def _extract_discriminator(schema: Mapping[str, Any]) -> Optional[Discriminator]:
    disc = schema.get("discriminator")
    if not isinstance(disc, Mapping):
        return None
    prop_name = disc.get("propertyName")
    if not isinstance(prop_name, str):
        return None

    mapping = disc.get("mapping")
    if isinstance(mapping, Mapping):
        # non-string targets are dropped
        mapping = {k: v for k, v in mapping.items() if isinstance(v, str)}
    else:
        mapping = None
    return Discriminator(property_name=prop_name, mapping=mapping)


def _variant_name(idx: int, variant: Mapping[str, Any]) -> str:
    title = variant.get("title")
    if isinstance(title, str):
        return title

    # externally tagged: {"type": "object", "required": ["Add"], ...}
    if variant.get("type") == "object":
        required = variant.get("required")
        if isinstance(required, list) and len(required) == 1 and isinstance(required[0], str):
            return required[0]

    return f"Variant{idx}"


def _schema_to_union_type(name: str, one_of: list, schema: Mapping[str, Any]) -> UnionType:
    variants: list[UnionTypeVariant] = []

    for idx, member in enumerate(one_of):
        if isinstance(member, bool):
            raise SchemaShapeError(f"Boolean schemas not supported in unions (variant {idx} of '{name}')")
        if not isinstance(member, Mapping):
            raise SchemaShapeError(f"Invalid schema in oneOf (variant {idx} of '{name}')")

        variant_name = _variant_name(idx, member)

        enum_values = member.get("enum")
        if isinstance(enum_values, list) and len(enum_values) == 1:
            variants.append(
                UnionTypeVariant(name=variant_name, mode=json_value_to_literal(enum_values[0]))
            )
            continue

        declared = member.get("type")
        if isinstance(declared, str) and declared != "object":
            raise SchemaShapeError(
                f"Union variant {idx} of '{name}' must be an object or a single-valued enum, "
                f"got type '{declared}'"
            )

        variants.append(
            UnionTypeVariant(name=variant_name, mode=schema_to_object_type(variant_name, member))
        )

    return UnionType(name=name, discriminator=_extract_discriminator(schema), variants=variants)


def schema_to_object_type(name: str, schema: Mapping[str, Any]) -> ObjectType:
    fields: list[Field] = []

    properties = schema.get("properties")
    if isinstance(properties, Mapping):
        required = schema.get("required")
        required_set = {r for r in required if isinstance(r, str)} if isinstance(required, list) else set()

        for field_name, field_schema in properties.items():
            if not isinstance(field_schema, (bool, Mapping)):
                raise SchemaShapeError(f"Invalid field schema for '{field_name}' in '{name}'")

            field_type = schema_to_field_type(field_schema)
            if field_name not in required_set:
                field_type = OptionalType(inner=field_type)

            constraints = (
                extract_constraints(field_schema) if isinstance(field_schema, Mapping) else None
            )
            fields.append(Field(name=field_name, type=field_type, constraints=constraints))

    return ObjectType(name=name, fields=fields)


def _bound(obj: Mapping[str, Any], inclusive_key: str, exclusive_key: str) -> tuple[Optional[float], Optional[float]]:
    """
    Returns (inclusive, exclusive). Numeric exclusive bounds (draft 6+) win over
    draft 4's boolean flag that turns `minimum`/`maximum` exclusive.
    """
    exclusive = obj.get(exclusive_key)
    if _is_number(exclusive):
        return None, float(exclusive)

    inclusive = obj.get(inclusive_key)
    if _is_number(inclusive):
        if exclusive is True:
            return None, float(inclusive)
        return float(inclusive), None

    return None, None


def extract_constraints(obj: Mapping[str, Any]) -> Optional[Constraints]:
    values: dict[str, Any] = {}

    minimum, exclusive_minimum = _bound(obj, "minimum", "exclusiveMinimum")
    maximum, exclusive_maximum = _bound(obj, "maximum", "exclusiveMaximum")
    for key, val in (
        ("minimum", minimum),
        ("exclusive_minimum", exclusive_minimum),
        ("maximum", maximum),
        ("exclusive_maximum", exclusive_maximum),
    ):
        if val is not None:
            values[key] = val

    if _is_number(obj.get("multipleOf")):
        values["multiple_of"] = float(obj["multipleOf"])

    for key, attr in (
        ("minLength", "min_length"),
        ("maxLength", "max_length"),
        ("minItems", "min_items"),
        ("maxItems", "max_items"),
    ):
        if _is_count(obj.get(key)):
            values[attr] = obj[key]

    if isinstance(obj.get("pattern"), str):
        values["pattern"] = obj["pattern"]
    if isinstance(obj.get("uniqueItems"), bool):
        values["unique_items"] = obj["uniqueItems"]

    if not values:
        return None

    constraints = Constraints(**values)
    constraints.check()
    return constraints

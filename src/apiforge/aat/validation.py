from __future__ import annotations

from typing import Iterable, Mapping

from apiforge.aat.types import (
    EnumType,
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
    Service,
    StreamType,
    TupleType,
    UnionType,
    type_name,
)
from apiforge.errors import PathParameterError, UnresolvedReferenceError
from apiforge.spec.model import Type as SpecType
from apiforge.spec.model import TypeKind


def iter_references(field_type: FieldType) -> Iterable[str]:
    """Every Reference name reachable through wrappers, depth-first, in order."""
    if isinstance(field_type, ReferenceType):
        yield field_type.name
    elif isinstance(field_type, (OptionalType, ListType, MapType, StreamType)):
        yield from iter_references(field_type.inner)
    elif isinstance(field_type, (IntersectionType, TupleType)):
        for member in field_type.members:
            yield from iter_references(member)


def _check_field_type(field_type: FieldType, known: Mapping[str, NamedType], where: str) -> None:
    for ref in iter_references(field_type):
        if ref not in known:
            raise UnresolvedReferenceError(
                f"Invalid reference in {where}: Reference to undefined type '{ref}'",
                reference=ref,
            )


def validate_references(services: list[Service], types: list[NamedType]) -> None:
    known = {type_name(t): t for t in types}

    for service in services:
        for endpoint in service.endpoints:
            for param in endpoint.path_parameters():
                _check_field_type(
                    param.type,
                    known,
                    f"path parameter '{param.name}' of endpoint '{endpoint.name}'",
                )
            if endpoint.query is not None:
                _check_field_type(endpoint.query, known, f"query of endpoint '{endpoint.name}'")
            if endpoint.body is not None:
                _check_field_type(endpoint.body, known, f"body of endpoint '{endpoint.name}'")
            _check_field_type(endpoint.response, known, f"response of endpoint '{endpoint.name}'")

    for named in types:
        if isinstance(named, ObjectType):
            for f in named.fields:
                _check_field_type(f.type, known, f"field '{f.name}' of type '{named.name}'")
        elif isinstance(named, UnionType):
            for variant in named.variants:
                if not isinstance(variant.mode, ObjectType):
                    continue
                for f in variant.mode.fields:
                    _check_field_type(
                        f.type,
                        known,
                        f"field '{f.name}' of union variant '{variant.name or 'unnamed'}' "
                        f"in type '{named.name}'",
                    )
        # enums hold literals only


def _is_string_enum(named: NamedType) -> bool:
    return isinstance(named, EnumType) and all(
        isinstance(v.value.value, str) for v in named.variants
    )


def _describe(field_type: FieldType, known: Mapping[str, NamedType]) -> str:
    if isinstance(field_type, ReferenceType):
        target = known.get(field_type.name)
        if isinstance(target, EnumType):
            return f"reference to non-string enum '{field_type.name}'"
        if target is not None:
            return f"reference to {target.kind} '{field_type.name}'"
        return f"reference to '{field_type.name}'"
    return field_type.kind


def is_stringifiable(field_type: FieldType, known: Mapping[str, NamedType]) -> bool:
    if isinstance(field_type, (PrimitiveType, LiteralType)):
        return True
    if isinstance(field_type, ReferenceType):
        target = known.get(field_type.name)
        return target is not None and _is_string_enum(target)
    return False


def validate_path_parameters(services: list[Service], types: list[NamedType]) -> None:
    known = {type_name(t): t for t in types}

    for service in services:
        for endpoint in service.endpoints:
            for param in endpoint.path_parameters():
                if is_stringifiable(param.type, known):
                    continue
                raise PathParameterError(
                    f"Path parameter '{param.name}' of endpoint '{endpoint.name}' "
                    f"cannot be represented as a string ({_describe(param.type, known)}); "
                    "use a primitive, a literal or a string enum",
                    endpoint=endpoint.name,
                    parameter=param.name,
                )


_REJECTED_PATH_KINDS = {
    TypeKind.VOID: "Path parameter cannot be Void type",
    TypeKind.STREAM: "Path parameter cannot be Stream type - streams are not supported in URL paths",
    TypeKind.LIST: "Path parameter cannot be List type - use query parameters for arrays",
    TypeKind.OPTIONAL: "Path parameter cannot be Optional type - path parameters are always required",
    TypeKind.TUPLE: "Path parameter cannot be Tuple type - use a structured type instead",
    TypeKind.NAMED_TUPLE: "Path parameter cannot be NamedTuple type - use a structured type instead",
}


def validate_path_parameter_type(spec_type: SpecType) -> None:
    """Import-time gate: only schema-backed types may sit in a path segment."""
    message = _REJECTED_PATH_KINDS.get(spec_type.kind)
    if message is not None:
        raise PathParameterError(message)


def validate(aat) -> None:
    """Read-only closure check of a built AAT. Raises on the first problem."""
    validate_references(aat.services, aat.types)
    validate_path_parameters(aat.services, aat.types)

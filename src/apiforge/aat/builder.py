from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from apiforge.aat.registry import TypeRegistry
from apiforge.aat.schema import is_inline_schema, schema_to_field_type
from apiforge.aat.tree import AAT
from apiforge.aat.types import (
    AnyType,
    Endpoint,
    FieldType,
    Header,
    HeaderLiteral,
    HeaderParameter,
    HeaderPattern,
    HttpMethod,
    ListType,
    OptionalType,
    PathLiteral,
    PathParameter,
    ReferenceType,
    Service,
    StreamType,
    TupleType,
    Upgrade,
    type_name,
)
from apiforge.aat.validation import validate_path_parameter_type
from apiforge.errors import AATError, PathParameterError, UnsupportedTypeError
from apiforge.spec import model as spec_model
from apiforge.spec.model import HeaderKind, TypeKind

logger = logging.getLogger(__name__)


@contextmanager
def _located(where: str) -> Iterator[None]:
    try:
        yield
    except AATError as exc:
        exc.add_note(f"while importing {where}")
        raise


class AATBuilder:
    """
    Imports a Spec into an AAT.

    Every embedded schema goes through the normalizer; anything that needs a
    name goes through the registry. Each `build` starts from an empty registry.
    """

    def __init__(self) -> None:
        self.registry = TypeRegistry()

    def build(self, spec: spec_model.Spec) -> AAT:
        self.registry = TypeRegistry()

        headers: list[Header] = []
        for name, value in spec.headers.items():
            with _located(f"root header '{name}'"):
                headers.append(self.header_to_aat(name, value))

        services = [self.service_to_aat(s) for s in spec.services]

        # stable ordering = diff-stable generated output
        types = sorted(self.registry.types, key=type_name)
        services.sort(key=lambda s: s.name)
        for service in services:
            service.endpoints.sort(key=lambda e: e.name)

        logger.debug(
            "built AAT for %s: %d types, %d services", spec.name, len(types), len(services)
        )
        return AAT(name=spec.name, types=types, services=services, headers=headers)

    def service_to_aat(self, spec_service: spec_model.Service) -> Service:
        headers: list[Header] = []
        for name, value in spec_service.headers.items():
            with _located(f"header '{name}' of service '{spec_service.name}'"):
                headers.append(self.header_to_aat(name, value))

        endpoints = []
        for spec_endpoint in spec_service.endpoints:
            with _located(f"endpoint '{spec_endpoint.name}' of service '{spec_service.name}'"):
                endpoints.append(self.endpoint_to_aat(spec_endpoint))

        return Service(name=spec_service.name, endpoints=endpoints, headers=headers)

    def endpoint_to_aat(self, spec_endpoint: spec_model.Endpoint) -> Endpoint:
        path = []
        for segment in spec_endpoint.path:
            if segment.is_literal:
                path.append(PathLiteral(value=segment.literal))
                continue
            try:
                validate_path_parameter_type(segment.type)
            except PathParameterError as exc:
                raise PathParameterError(
                    f"{exc} (parameter '{segment.name}' of endpoint '{spec_endpoint.name}')",
                    endpoint=spec_endpoint.name,
                    parameter=segment.name,
                ) from exc
            path.append(
                PathParameter(name=segment.name, type=self.spec_type_to_field_type(segment.type))
            )

        query = None
        if spec_endpoint.query_type is not None:
            with _located("query"):
                query = self.spec_type_to_field_type(spec_endpoint.query_type)

        body = None
        if spec_endpoint.body_type is not None:
            with _located("body"):
                body = self.spec_type_to_field_type(spec_endpoint.body_type)

        with _located("response"):
            response = self.spec_type_to_field_type(spec_endpoint.response_type)

        headers = [self.header_to_aat(name, value) for name, value in spec_endpoint.headers.items()]

        upgrade = None
        if spec_endpoint.upgrade_type is not None:
            upgrade = Upgrade(spec_endpoint.upgrade_type.value)

        return Endpoint(
            name=spec_endpoint.name,
            method=HttpMethod(spec_endpoint.method.value),
            path=path,
            query=query,
            body=body,
            response=response,
            upgrade=upgrade,
            headers=headers,
        )

    def header_to_aat(self, name: str, value: spec_model.HeaderValue) -> Header:
        if value.kind == HeaderKind.LITERAL:
            return Header(name=name, value=HeaderLiteral(value=value.value))
        if value.kind == HeaderKind.TYPE:
            return Header(
                name=name,
                value=HeaderParameter(name=value.name, type=self.spec_type_to_field_type(value.type)),
            )
        return Header(
            name=name,
            value=HeaderPattern(
                pattern=value.template,
                param_name=value.name,
                type=self.spec_type_to_field_type(value.type),
            ),
        )

    def spec_type_to_field_type(self, spec_type: spec_model.Type) -> FieldType:
        kind = spec_type.kind

        if kind == TypeKind.VOID:
            return AnyType()

        if kind == TypeKind.SCHEMA:
            schema = spec_type.document
            if is_inline_schema(schema):
                # e.g. list[Model]: the item type lives in the inline schema's $defs
                self.registry.append_definitions(schema)
                return schema_to_field_type(schema)
            return ReferenceType(name=self.registry.add_schema_and_get_name(schema))

        if kind == TypeKind.LIST:
            return ListType(inner=self.spec_type_to_field_type(spec_type.inner))
        if kind == TypeKind.OPTIONAL:
            return OptionalType(inner=self.spec_type_to_field_type(spec_type.inner))
        if kind == TypeKind.STREAM:
            return StreamType(inner=self.spec_type_to_field_type(spec_type.inner))
        if kind == TypeKind.TUPLE:
            return TupleType(members=[self.spec_type_to_field_type(t) for t in spec_type.items])

        raise UnsupportedTypeError(
            "NamedTuple types are not yet fully supported in AAT conversion. "
            "Consider using a named object type instead."
        )


def build(spec: spec_model.Spec) -> AAT:
    """Build a fresh AAT from `spec`. Raises AATError on the first problem."""
    return AATBuilder().build(spec)


from __future__ import annotations

import json
import logging
import math
import re
from typing import Optional

from pydantic import BaseModel

from apiforge.aat.tree import AAT
from apiforge.aat.types import (
    AnyType,
    Endpoint,
    EnumType,
    Field,
    FieldType,
    Header,
    HeaderLiteral,
    HeaderParameter,
    HeaderPattern,
    IntersectionType,
    ListType,
    LiteralType,
    MapType,
    NamedType,
    ObjectType,
    OptionalType,
    PathLiteral,
    PrimitiveType,
    ReferenceType,
    Service,
    StreamType,
    TupleType,
    UnionType,
    Upgrade,
)
from apiforge.errors import GenerationError
from apiforge.generate.writer import CodeWriter

logger = logging.getLogger(__name__)

_TS_IDENT = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")


class GeneratorOptions(BaseModel):
    indent: str = "  "
    emit_runtime: bool = True
    header_comment: bool = True


def to_pascal_case(s: str) -> str:
    # my-service_name -> MyServiceName
    return "".join(p[:1].upper() + p[1:] for p in re.split(r"[-_]", s) if p)


def to_camel_case(s: str) -> str:
    parts = [p for p in re.split(r"[-_]", s) if p]
    if not parts:
        return ""
    head = parts[0]
    if len(parts) == 1:
        return head[:1].lower() + head[1:]
    return head.lower() + "".join(p[:1].upper() + p[1:].lower() for p in parts[1:])


def quote_if_needed(name: str) -> str:
    return name if _TS_IDENT.match(name) else json.dumps(name)


def literal_to_ts(lit: LiteralType) -> str:
    value = lit.value
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return json.dumps(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
    return str(value)


def field_type_to_ts(field_type: FieldType) -> str:
    if isinstance(field_type, PrimitiveType):
        return {"bool": "boolean", "int": "number", "float": "number", "string": "string"}[field_type.primitive]
    if isinstance(field_type, LiteralType):
        return literal_to_ts(field_type)
    if isinstance(field_type, OptionalType):
        return f"{field_type_to_ts(field_type.inner)} | undefined"
    if isinstance(field_type, ListType):
        inner = field_type_to_ts(field_type.inner)
        # "A | undefined[]" would bind the wrong way
        return f"({inner})[]" if " " in inner else f"{inner}[]"
    if isinstance(field_type, MapType):
        return f"{{ [key: string]: {field_type_to_ts(field_type.inner)} }}"
    if isinstance(field_type, StreamType):
        return f"WebSocketStream<{field_type_to_ts(field_type.inner)}>"
    if isinstance(field_type, ReferenceType):
        return field_type.name
    if isinstance(field_type, IntersectionType):
        members = [field_type_to_ts(t) for t in field_type.members]
        return " & ".join(f"({m})" if " | " in m else m for m in members) or "unknown"
    if isinstance(field_type, TupleType):
        return "[" + ", ".join(field_type_to_ts(t) for t in field_type.members) + "]"
    return "any"


def _is_optional(field_type: FieldType) -> bool:
    return isinstance(field_type, OptionalType)


def _is_reference(field_type: FieldType) -> bool:
    if isinstance(field_type, OptionalType):
        field_type = field_type.inner
    return isinstance(field_type, ReferenceType)


def _template_part(text: str) -> str:
    return text.replace("\\", "\\\\").replace("`", "\\`").replace("${", "\\${")


def _template_literal(pattern: str, param_name: str, expr: str) -> str:
    before, _, after = pattern.partition("{" + param_name + "}")
    return "`" + _template_part(before) + "${String(" + expr + ")}" + _template_part(after) + "`"


def _field_members(fields: list[Field], owner: str) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for f in fields:
        if f.name in seen:
            raise GenerationError(f"Duplicate field name '{f.name}' in type '{owner}'")
        seen.add(f.name)

        name = quote_if_needed(f.name)
        if _is_optional(f.type):
            out.append(f"{name}?: {field_type_to_ts(f.type.inner)}")
        else:
            out.append(f"{name}: {field_type_to_ts(f.type)}")
    return out


def _inline_object(members: list[str]) -> str:
    return "{ " + ", ".join(members) + " }" if members else "{}"


def generate_object_type(w: CodeWriter, obj: ObjectType) -> None:
    members = _field_members(obj.fields, obj.name)
    with w.block(f"export interface {obj.name} {{", "}", trailing_newline=True):
        for m in members:
            w.line(f"{m};")


def _union_variant_ts(union: UnionType, idx: int) -> str:
    variant = union.variants[idx]
    mode = variant.mode

    if isinstance(mode, LiteralType):
        return literal_to_ts(mode)

    members = _field_members(mode.fields, union.name)
    if variant.name is None or union.discriminator is not None:
        # internally tagged (or untagged): the fields carry the tag themselves
        return _inline_object(members)

    tag = quote_if_needed(variant.name)
    if len(mode.fields) == 1 and _is_reference(mode.fields[0].type):
        # newtype variant: { Tag: Inner }
        return f"{{ {tag}: {field_type_to_ts(mode.fields[0].type)} }}"
    if len(mode.fields) == 1 and mode.fields[0].name == variant.name:
        return _inline_object(members)
    return f"{{ {tag}: {_inline_object(members)} }}"


def _literal_alternatives(w: CodeWriter, name: str, alternatives: list[str]) -> None:
    w.line(f"export type {name} =")
    w.indent()
    if not alternatives:
        w.line("never;")
    for i, alt in enumerate(alternatives):
        w.line(alt + (";" if i == len(alternatives) - 1 else " |"))
    w.dedent()
    w.empty_line()


def generate_union_type(w: CodeWriter, union: UnionType) -> None:
    seen: set[str] = set()
    for variant in union.variants:
        if isinstance(variant.mode, LiteralType) and isinstance(variant.mode.value, str):
            if variant.mode.value in seen:
                raise GenerationError(
                    f"Duplicate literal variant '{variant.mode.value}' in union type '{union.name}'"
                )
            seen.add(variant.mode.value)

    _literal_alternatives(w, union.name, [_union_variant_ts(union, i) for i in range(len(union.variants))])


def generate_enum_type(w: CodeWriter, enum_type: EnumType) -> None:
    seen: set[str] = set()
    for variant in enum_type.variants:
        if isinstance(variant.value.value, str):
            if variant.value.value in seen:
                raise GenerationError(
                    f"Duplicate enum variant '{variant.value.value}' in enum type '{enum_type.name}'"
                )
            seen.add(variant.value.value)

    _literal_alternatives(w, enum_type.name, [literal_to_ts(v.value) for v in enum_type.variants])


def generate_type(w: CodeWriter, named: NamedType) -> None:
    if isinstance(named, ObjectType):
        generate_object_type(w, named)
    elif isinstance(named, UnionType):
        generate_union_type(w, named)
    else:
        generate_enum_type(w, named)


def _header_param(header: Header) -> Optional[tuple[str, FieldType]]:
    value = header.value
    if isinstance(value, HeaderParameter):
        return value.name, value.type
    if isinstance(value, HeaderPattern):
        return value.param_name, value.type
    return None


def _param_decl(name: str, field_type: FieldType) -> str:
    if _is_optional(field_type):
        return f"{name}?: {field_type_to_ts(field_type)}"
    return f"{name}: {field_type_to_ts(field_type)}"


def _header_assignment(target: str, header: Header, expr_for) -> str:
    value = header.value
    key = json.dumps(header.name)
    if isinstance(value, HeaderLiteral):
        return f"{target}[{key}] = {json.dumps(value.value)};"
    if isinstance(value, HeaderParameter):
        return f"{target}[{key}] = String({expr_for(value.name)});"
    return f"{target}[{key}] = {_template_literal(value.pattern, value.param_name, expr_for(value.param_name))};"


def generate_api_client(w: CodeWriter, aat: AAT) -> None:
    root_params = [p for p in (_header_param(h) for h in aat.headers) if p is not None]

    with w.block("export interface ClientConfig {", "}", trailing_newline=True):
        w.line("baseUrl: string;")
        for name, field_type in root_params:
            w.line(_param_decl(name, field_type) + ";")
        w.line("options?: RequestInit;")
        w.line("fetchImpl?: typeof fetch;")
        w.line("WebSocketImpl?: typeof WebSocket;")

    with w.block("export class Client {", "}", trailing_newline=True):
        w.line("private readonly baseUrl: string;")
        for name, _ in root_params:
            w.line(f"private readonly rootHeader_{name}: any;")
        w.line("private readonly options?: RequestInit;")
        w.line("private readonly fetchImpl: typeof fetch;")
        w.line("private readonly WebSocketImpl: typeof WebSocket;")
        w.empty_line()

        with w.block("constructor(config: ClientConfig) {", "}"):
            w.line("this.baseUrl = config.baseUrl;")
            for name, _ in root_params:
                w.line(f"this.rootHeader_{name} = config.{name};")
            w.line("this.options = config.options;")
            w.line("this.fetchImpl = config.fetchImpl || globalThis.fetch;")
            w.line("this.WebSocketImpl = config.WebSocketImpl || globalThis.WebSocket;")

        for service in aat.services:
            w.empty_line()
            _generate_service_factory(w, aat, service)


def _generate_service_factory(w: CodeWriter, aat: AAT, service: Service) -> None:
    class_name = to_pascal_case(service.name)
    params = [p for p in (_header_param(h) for h in service.headers) if p is not None]
    signature = ", ".join(_param_decl(n, t) for n, t in params)
    # no parameters: expose the service as a getter
    prefix = "" if params else "get "

    with w.block(f"{prefix}{to_camel_case(service.name)}({signature}): {class_name}Client {{", "}"):
        w.line("const rootHeaders: Record<string, string> = {};")
        for header in aat.headers:
            w.line(_header_assignment("rootHeaders", header, lambda n: f"this.rootHeader_{n}"))
        w.line("const serviceHeaders: Record<string, string> = {};")
        for header in service.headers:
            w.line(_header_assignment("serviceHeaders", header, lambda n: n))
        w.line(
            f"return new {class_name}Client(this.baseUrl, rootHeaders, serviceHeaders, "
            "this.options, this.fetchImpl, this.WebSocketImpl);"
        )


def generate_service(w: CodeWriter, service: Service) -> None:
    class_name = to_pascal_case(service.name)
    with w.block(f"export class {class_name}Client {{", "}", trailing_newline=True):
        w.line(
            "constructor(private baseUrl: string, private rootHeaders: Record<string, string>, "
            "private serviceHeaders: Record<string, string>, private options: RequestInit | undefined, "
            "private fetchImpl: typeof fetch, private WebSocketImpl: typeof WebSocket) {}"
        )
        for endpoint in service.endpoints:
            w.empty_line()
            generate_endpoint_method(w, endpoint)


def _endpoint_params(endpoint: Endpoint) -> list[str]:
    required: list[str] = []
    optional: list[str] = []
    seen: set[str] = set()

    def add(name: str, field_type: FieldType) -> None:
        if name in seen:
            raise GenerationError(f"Duplicate parameter name '{name}' in endpoint '{endpoint.name}'")
        seen.add(name)
        (optional if _is_optional(field_type) else required).append(_param_decl(name, field_type))

    for header in endpoint.headers:
        param = _header_param(header)
        if param is not None:
            add(*param)
    for param in endpoint.path_parameters():
        add(param.name, param.type)
    if endpoint.query is not None:
        add("query", endpoint.query)
    if endpoint.body is not None:
        add("body", endpoint.body)

    # TypeScript wants optional parameters last
    return required + optional


def _path_expr(endpoint: Endpoint) -> str:
    parts = []
    for segment in endpoint.path:
        if isinstance(segment, PathLiteral):
            parts.append("/" + _template_part(segment.value))
        else:
            parts.append("/${encodeURIComponent(String(" + segment.name + "))}")
    return "`" + ("".join(parts) or "/") + "`"


def generate_endpoint_method(w: CodeWriter, endpoint: Endpoint) -> None:
    method_name = to_camel_case(endpoint.name)
    is_websocket = endpoint.upgrade == Upgrade.WS
    params = ", ".join(_endpoint_params(endpoint))

    if is_websocket:
        response = endpoint.response
        inner = response.inner if isinstance(response, StreamType) else response
        signature = f"{method_name}({params}): WebSocketStream<{field_type_to_ts(inner)}>"
    elif isinstance(endpoint.response, AnyType):
        signature = f"async {method_name}({params}): Promise<void>"
    else:
        signature = f"async {method_name}({params}): Promise<{field_type_to_ts(endpoint.response)}>"

    with w.block(signature + " {", "}"):
        w.line("const endpointHeaders: Record<string, string> = {};")
        for header in endpoint.headers:
            w.line(_header_assignment("endpointHeaders", header, lambda n: n))
        w.line(
            "const mergedHeaders = { ...this.rootHeaders, ...this.serviceHeaders, "
            "...endpointHeaders, ...(this.options?.headers as Record<string, string> | undefined) };"
        )
        w.empty_line()
        w.line(f"const path = {_path_expr(endpoint)};")

        if endpoint.query is not None:
            w.line("const params = new URLSearchParams();")
            with w.block("for (const [key, value] of Object.entries(query ?? {})) {", "}"):
                with w.block("if (value !== undefined && value !== null) {", "}"):
                    w.line("params.append(key, String(value));")
            w.line("const url = `${this.baseUrl}${path}?${params.toString()}`;")
        else:
            w.line("const url = `${this.baseUrl}${path}`;")

        if is_websocket:
            w.line("return new WebSocketStream(url, mergedHeaders, this.WebSocketImpl);")
            return

        with w.block("const response = await this.fetchImpl(url, {", "});"):
            w.line("...this.options,")
            w.line(f"method: '{endpoint.method.value}',")
            if endpoint.body is not None:
                w.line("headers: { 'Content-Type': 'application/json', ...mergedHeaders },")
                w.line("body: JSON.stringify(body),")
            else:
                w.line("headers: mergedHeaders,")
        w.empty_line()
        with w.block("if (!response.ok) {", "}"):
            w.line("throw new Error(`HTTP error! status: ${response.status}`);")

        if not isinstance(endpoint.response, AnyType):
            w.empty_line()
            w.line("return response.json();")


_WEBSOCKET_RUNTIME = """\
export class WebSocketStream<T> {
  private readonly socket: WebSocket;

  // browsers cannot send custom handshake headers; they are kept for server runtimes
  constructor(url: string, readonly headers: Record<string, string>, WebSocketImpl: typeof WebSocket) {
    this.socket = new WebSocketImpl(url.replace(/^http/, 'ws'));
  }

  onMessage(handler: (value: T) => void): void {
    this.socket.addEventListener('message', (event: MessageEvent) => handler(JSON.parse(event.data) as T));
  }

  onClose(handler: () => void): void {
    this.socket.addEventListener('close', () => handler());
  }

  send(value: unknown): void {
    this.socket.send(JSON.stringify(value));
  }

  close(): void {
    this.socket.close();
  }
}
"""


def _uses_websocket(aat: AAT) -> bool:
    return any(
        e.upgrade == Upgrade.WS or isinstance(e.response, StreamType)
        for s in aat.services
        for e in s.endpoints
    )


def generate_typescript(aat: AAT, options: Optional[GeneratorOptions] = None) -> str:
    """Render a validated AAT as one TypeScript module (types + client)."""
    options = options or GeneratorOptions()
    w = CodeWriter(indent=options.indent)

    if options.header_comment:
        w.line(f"// Generated by apiforge for {aat.name or 'api'}. Do not edit.")
        w.empty_line()

    if options.emit_runtime and _uses_websocket(aat):
        # the runtime block is written with two-space indentation
        w.lines(_WEBSOCKET_RUNTIME.replace("  ", options.indent))
        w.empty_line()

    for named in aat.types:
        generate_type(w, named)

    generate_api_client(w, aat)

    for service in aat.services:
        generate_service(w, service)

    logger.debug("generated TypeScript for %d types, %d services", len(aat.types), len(aat.services))
    return w.getvalue()

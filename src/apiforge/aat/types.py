from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field as PydField, StrictBool, StrictFloat, StrictInt, StrictStr

from apiforge.errors import ConstraintError


class StringFormat(str, Enum):
    DATE_TIME = "date-time"
    DATE = "date"
    TIME = "time"
    UUID = "uuid"
    EMAIL = "email"
    URI = "uri"
    HOSTNAME = "hostname"
    IPV4 = "ipv4"
    IPV6 = "ipv6"


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


class Upgrade(str, Enum):
    WS = "ws"


PrimitiveKind = Literal["bool", "int", "float", "string"]
LiteralValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr, None]


class PrimitiveType(BaseModel):
    kind: Literal["primitive"] = "primitive"
    primitive: PrimitiveKind
    format: Optional[StringFormat] = None


class LiteralType(BaseModel):
    kind: Literal["literal"] = "literal"
    value: LiteralValue = None


class OptionalType(BaseModel):
    kind: Literal["optional"] = "optional"
    inner: "FieldType"


class ListType(BaseModel):
    kind: Literal["list"] = "list"
    inner: "FieldType"


class MapType(BaseModel):
    """String-keyed map; `inner` is the value type."""

    kind: Literal["map"] = "map"
    inner: "FieldType"


class StreamType(BaseModel):
    kind: Literal["stream"] = "stream"
    inner: "FieldType"


class ReferenceType(BaseModel):
    kind: Literal["reference"] = "reference"
    name: str


class IntersectionType(BaseModel):
    kind: Literal["intersection"] = "intersection"
    members: list["FieldType"] = PydField(default_factory=list)


class TupleType(BaseModel):
    kind: Literal["tuple"] = "tuple"
    members: list["FieldType"] = PydField(default_factory=list)


class AnyType(BaseModel):
    kind: Literal["any"] = "any"


FieldType = Annotated[
    Union[
        PrimitiveType,
        LiteralType,
        OptionalType,
        ListType,
        MapType,
        StreamType,
        ReferenceType,
        IntersectionType,
        TupleType,
        AnyType,
    ],
    PydField(discriminator="kind"),
]


class Constraints(BaseModel):
    # minimum and exclusive_minimum are mutually exclusive (same for maximum)
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    exclusive_minimum: Optional[float] = None
    exclusive_maximum: Optional[float] = None
    multiple_of: Optional[float] = None

    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None

    min_items: Optional[int] = None
    max_items: Optional[int] = None
    unique_items: Optional[bool] = None

    def check(self) -> None:
        """Raise ConstraintError if the bounds contradict each other."""
        if self.minimum is not None and self.maximum is not None and self.minimum > self.maximum:
            raise ConstraintError(
                f"Invalid constraint: minimum ({self.minimum}) must be <= maximum ({self.maximum})"
            )
        if (
            self.exclusive_minimum is not None
            and self.exclusive_maximum is not None
            and self.exclusive_minimum >= self.exclusive_maximum
        ):
            raise ConstraintError(
                f"Invalid constraint: exclusive_minimum ({self.exclusive_minimum}) "
                f"must be < exclusive_maximum ({self.exclusive_maximum})"
            )
        if (
            self.minimum is not None
            and self.exclusive_maximum is not None
            and self.minimum >= self.exclusive_maximum
        ):
            raise ConstraintError(
                f"Invalid constraint: minimum ({self.minimum}) "
                f"must be < exclusive_maximum ({self.exclusive_maximum})"
            )
        if (
            self.exclusive_minimum is not None
            and self.maximum is not None
            and self.exclusive_minimum >= self.maximum
        ):
            raise ConstraintError(
                f"Invalid constraint: exclusive_minimum ({self.exclusive_minimum}) "
                f"must be < maximum ({self.maximum})"
            )
        if self.min_length is not None and self.max_length is not None and self.min_length > self.max_length:
            raise ConstraintError(
                f"Invalid constraint: minLength ({self.min_length}) must be <= maxLength ({self.max_length})"
            )
        if self.min_items is not None and self.max_items is not None and self.min_items > self.max_items:
            raise ConstraintError(
                f"Invalid constraint: minItems ({self.min_items}) must be <= maxItems ({self.max_items})"
            )
        if self.multiple_of is not None and self.multiple_of <= 0:
            raise ConstraintError(f"Invalid constraint: multipleOf ({self.multiple_of}) must be > 0")


class Field(BaseModel):
    name: str
    type: FieldType
    constraints: Optional[Constraints] = None


class ObjectType(BaseModel):
    kind: Literal["object"] = "object"
    name: str
    fields: list[Field] = PydField(default_factory=list)


class Discriminator(BaseModel):
    property_name: str
    mapping: Optional[dict[str, str]] = None


class UnionTypeVariant(BaseModel):
    name: Optional[str] = None
    mode: Annotated[Union[ObjectType, LiteralType], PydField(discriminator="kind")]


class UnionType(BaseModel):
    kind: Literal["union"] = "union"
    name: str
    discriminator: Optional[Discriminator] = None
    variants: list[UnionTypeVariant] = PydField(default_factory=list)


class EnumVariant(BaseModel):
    value: LiteralType
    description: Optional[str] = None


class EnumType(BaseModel):
    kind: Literal["enum"] = "enum"
    name: str
    variants: list[EnumVariant] = PydField(default_factory=list)


NamedType = Annotated[Union[ObjectType, UnionType, EnumType], PydField(discriminator="kind")]


class PathLiteral(BaseModel):
    kind: Literal["literal"] = "literal"
    value: str


class PathParameter(BaseModel):
    kind: Literal["parameter"] = "parameter"
    name: str
    type: FieldType


PathSegment = Annotated[Union[PathLiteral, PathParameter], PydField(discriminator="kind")]


class HeaderLiteral(BaseModel):
    kind: Literal["literal"] = "literal"
    value: str


class HeaderParameter(BaseModel):
    kind: Literal["parameter"] = "parameter"
    name: str
    type: FieldType


class HeaderPattern(BaseModel):
    kind: Literal["pattern"] = "pattern"
    pattern: str
    param_name: str
    type: FieldType


HeaderValue = Annotated[
    Union[HeaderLiteral, HeaderParameter, HeaderPattern],
    PydField(discriminator="kind"),
]


class Header(BaseModel):
    name: str
    value: HeaderValue


class Endpoint(BaseModel):
    name: str
    method: HttpMethod
    path: list[PathSegment] = PydField(default_factory=list)
    query: Optional[FieldType] = None
    body: Optional[FieldType] = None
    response: FieldType = PydField(default_factory=AnyType)
    upgrade: Optional[Upgrade] = None
    headers: list[Header] = PydField(default_factory=list)

    def path_parameters(self) -> list[PathParameter]:
        return [s for s in self.path if isinstance(s, PathParameter)]


class Service(BaseModel):
    name: str
    endpoints: list[Endpoint] = PydField(default_factory=list)
    headers: list[Header] = PydField(default_factory=list)


def type_name(named_type: NamedType) -> str:
    return named_type.name


# FieldType is recursive; resolve the forward references now that it exists
for _model in (
    OptionalType,
    ListType,
    MapType,
    StreamType,
    IntersectionType,
    TupleType,
    Field,
    ObjectType,
    UnionTypeVariant,
    UnionType,
    PathParameter,
    HeaderParameter,
    HeaderPattern,
    Header,
    Endpoint,
    Service,
):
    _model.model_rebuild()

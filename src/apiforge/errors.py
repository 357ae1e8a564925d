from __future__ import annotations

from typing import Optional


class AATError(Exception):
    """Base class for every failure raised while building or checking an AAT."""


class SchemaShapeError(AATError):
    """A raw schema does not match the shape expected for its position."""


class ConstraintError(AATError):
    """A field's constraints contradict each other (e.g. minimum > maximum)."""


class TypeCollisionError(AATError):
    def __init__(self, type_name: str):
        super().__init__(
            f"Type name collision: a type named '{type_name}' already exists "
            "with a different structure"
        )
        self.type_name = type_name


class UnsupportedTypeError(AATError):
    """The type is not representable yet; describe it differently."""


class PathParameterError(AATError):
    def __init__(
        self,
        message: str,
        endpoint: Optional[str] = None,
        parameter: Optional[str] = None,
    ):
        super().__init__(message)
        self.endpoint = endpoint
        self.parameter = parameter


class UnresolvedReferenceError(AATError):
    def __init__(self, message: str, reference: str):
        super().__init__(message)
        self.reference = reference


class GenerationError(AATError):
    """The code generator cannot render a (validated) AAT."""


class SpecLoadError(Exception):
    """A `module:attr` target could not be turned into a Spec."""

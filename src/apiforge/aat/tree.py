from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field as PydField

from apiforge.aat.types import Header, NamedType, Service, type_name


class AAT(BaseModel):
    """Abstract API Tree: the named types, services and root headers of one API."""

    name: str = ""
    types: list[NamedType] = PydField(default_factory=list)
    services: list[Service] = PydField(default_factory=list)
    headers: list[Header] = PydField(default_factory=list)

    @classmethod
    def from_spec(cls, spec) -> "AAT":
        from apiforge.aat.builder import build

        return build(spec)

    def check(self) -> None:
        from apiforge.aat.validation import validate

        validate(self)

    def type_names(self) -> list[str]:
        return [type_name(t) for t in self.types]

    def get_type(self, name: str) -> Optional[NamedType]:
        for t in self.types:
            if type_name(t) == name:
                return t
        return None

    def get_service(self, name: str) -> Optional[Service]:
        for s in self.services:
            if s.name == name:
                return s
        return None

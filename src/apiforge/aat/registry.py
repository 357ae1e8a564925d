from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from apiforge.aat.equality import types_are_structurally_equal
from apiforge.aat.schema import REF_PREFIXES, extract_ref_name, schema_to_type
from apiforge.aat.types import NamedType, type_name
from apiforge.errors import SchemaShapeError, TypeCollisionError

logger = logging.getLogger(__name__)


class TypeRegistry:
    """Named types discovered during a single AAT build.

    - A name maps to exactly one shape; re-adding an equal shape is a no-op.
    - The name set only lives as long as the build that owns the registry.
    """

    def __init__(self) -> None:
        self.types: list[NamedType] = []
        self._by_name: dict[str, NamedType] = {}
        self._names: set[str] = set()

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __len__(self) -> int:
        return len(self.types)

    def get(self, name: str) -> Optional[NamedType]:
        return self._by_name.get(name)

    def add_type_with_dedup_check(self, new_type: NamedType) -> None:
        name = type_name(new_type)

        existing = self._by_name.get(name)
        if existing is not None:
            if not types_are_structurally_equal(existing, new_type):
                raise TypeCollisionError(name)
            logger.debug("type %s reached again with the same structure", name)
            return

        self._by_name[name] = new_type
        self._names.add(name)
        self.types.append(new_type)
        logger.debug("registered %s type %s", new_type.kind, name)

    def extract_schema_name(self, schema: Any) -> str:
        """title -> own $ref target -> first free AnonymousType{N}."""
        if not isinstance(schema, Mapping):
            raise SchemaShapeError("Schema must be an object to extract name")

        title = schema.get("title")
        if isinstance(title, str):
            return title

        reference = schema.get("$ref")
        if isinstance(reference, str) and reference.startswith(REF_PREFIXES):
            return extract_ref_name(reference)

        counter = 1
        while f"AnonymousType{counter}" in self._names:
            counter += 1
        return f"AnonymousType{counter}"

    def append_types_from_schema(self, schema: Any, root_name: str) -> None:
        """Register the schema itself under `root_name`, then each of its `$defs`."""
        self.add_type_with_dedup_check(schema_to_type(schema, root_name))
        self.append_definitions(schema)

    def append_definitions(self, schema: Any) -> None:
        """Register every entry of `$defs` (or legacy `definitions`) under its key."""
        if not isinstance(schema, Mapping):
            return

        defs = schema.get("$defs")
        if defs is None:
            defs = schema.get("definitions")
        if not isinstance(defs, Mapping):
            return

        for name, def_schema in defs.items():
            if not isinstance(def_schema, (bool, Mapping)):
                continue
            self.add_type_with_dedup_check(schema_to_type(def_schema, name))

    def add_schema_and_get_name(self, schema: Any) -> str:
        name = self.extract_schema_name(schema)
        self.append_types_from_schema(schema, name)
        return name

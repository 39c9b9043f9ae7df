"""
Association Cache - Entity Type Registry

Static table of mapped entity types, built at registration time:
type name -> class, table, mapped parent. Base-type resolution for cache
keys walks this table instead of the live class hierarchy.
"""

import logging
from typing import Any, Dict, List, Optional

from errors import ConfigurationError, UnknownEntityTypeError
from models.entity import Entity

logger = logging.getLogger(__name__)

# Single-table inheritance discriminator column
TYPE_COLUMN = "type"


class TypeRegistry:
    """Registered entity types and their ancestry."""

    def __init__(self):
        self._classes: Dict[str, type] = {}
        self._tables: Dict[str, str] = {}
        self._parents: Dict[str, Optional[str]] = {}

    def register(self, cls: type) -> type:
        """
        Register an Entity subclass (and, implicitly, its mapped ancestors).

        Raises:
            ConfigurationError: Not an Entity subclass, duplicate name, or no table
        """
        if not isinstance(cls, type) or not issubclass(cls, Entity) or cls is Entity:
            raise ConfigurationError(f"{cls!r} is not an Entity subclass")

        name = cls.__name__
        existing = self._classes.get(name)
        if existing is cls:
            return cls
        if existing is not None:
            raise ConfigurationError(f"Entity type '{name}' is already registered", config_key=name)

        parent = self._mapped_parent(cls)
        if parent is not None:
            self.register(parent)

        table = cls.__dict__.get("__tablename__")
        if not table:
            if parent is None:
                raise ConfigurationError(f"Entity type '{name}' declares no __tablename__", config_key=name)
            table = self._tables[parent.__name__]

        self._classes[name] = cls
        self._tables[name] = table
        self._parents[name] = parent.__name__ if parent is not None else None
        logger.debug("Registered entity type %s (table=%s, parent=%s)", name, table, self._parents[name])
        return cls

    def define(self, name: str, table: Optional[str] = None, parent: Optional[str] = None) -> type:
        """Create and register an Entity subclass from plain configuration."""
        if parent and not self.is_registered(parent):
            raise ConfigurationError(f"Parent type '{parent}' of '{name}' is not registered", config_key=name)
        base = self._classes[parent] if parent else Entity
        attrs = {"__tablename__": table} if table else {}
        return self.register(type(name, (base,), attrs))

    @staticmethod
    def _mapped_parent(cls: type) -> Optional[type]:
        for base in cls.__bases__:
            if issubclass(base, Entity) and base is not Entity:
                return base
        return None

    def class_for(self, type_name: str) -> type:
        try:
            return self._classes[type_name]
        except KeyError:
            raise UnknownEntityTypeError(type_name) from None

    def table_for(self, type_name: str) -> str:
        self.class_for(type_name)
        return self._tables[type_name]

    def parent_of(self, type_name: str) -> Optional[str]:
        self.class_for(type_name)
        return self._parents[type_name]

    def ancestry(self, type_name: str) -> List[str]:
        """[type_name, parent, grandparent, ...] up to the base type."""
        chain = [type_name]
        parent = self.parent_of(type_name)
        while parent is not None:
            chain.append(parent)
            parent = self._parents[parent]
        return chain

    def is_registered(self, type_name: str) -> bool:
        return type_name in self._classes

    def base_type_of(self, type_name: str) -> str:
        return self.ancestry(type_name)[-1]

    def descendants(self, type_name: str) -> List[str]:
        """type_name followed by every registered type below it."""
        self.class_for(type_name)
        return [type_name] + [
            name for name in self._classes
            if name != type_name and type_name in self.ancestry(name)
        ]

    def type_scope(self, type_name: str) -> Optional[List[str]]:
        """Values of the type column a query for type_name must match, None for base types."""
        if self.parent_of(type_name) is None:
            return None
        return self.descendants(type_name)

    def is_a(self, entity: Entity, type_name: str) -> bool:
        return isinstance(entity, self.class_for(type_name))

    def class_for_row(self, type_name: str, row: Dict[str, Any]) -> type:
        """
        Pick the class to materialize a row with.

        The type column names the row's class when it is a registered type
        of the same hierarchy; an empty or unknown value means the base type.
        """
        base_type = self.base_type_of(type_name)
        subtype = row.get(TYPE_COLUMN)
        if subtype and subtype in self._classes and self.base_type_of(subtype) == base_type:
            return self._classes[subtype]
        return self._classes[base_type]

    def materialize(self, type_name: str, row: Dict[str, Any]) -> Entity:
        return self.class_for_row(type_name, row).from_row(row)

"""
Association Cache - Entity Base

Entity is the mapping root. Each mapped type subclasses it and declares
__tablename__; a subclass without its own table shares the parent's table
(single-table inheritance, discriminated by a `type` column).
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional


@dataclass(frozen=True)
class EntityRef:
    """Identifies one persisted row. type_name is always the base type."""
    type_name: str
    identity: Any


class Entity:
    """One persisted row materialized as an object."""

    __tablename__: Optional[str] = None

    def __init__(self, **attributes: Any):
        self.__dict__.update(attributes)
        self.__dict__.setdefault("id", None)
        self._loaded_targets: Dict[str, List["Entity"]] = {}

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Entity":
        """Build an entity from a DictCursor row."""
        return cls(**row)

    @classmethod
    def root_class(cls) -> type:
        """Class directly beneath Entity in this class's ancestry."""
        for klass in reversed(cls.__mro__):
            if klass is not Entity and issubclass(klass, Entity):
                return klass
        return cls

    def to_dict(self) -> Dict[str, Any]:
        return {k: v for k, v in self.__dict__.items() if not k.startswith("_")}

    # Custom-finder collections are loaded once per owner and scanned in memory
    def loaded_target(self, name: str) -> Optional[List["Entity"]]:
        return self._loaded_targets.get(name)

    def set_loaded_target(self, name: str, records: Iterable["Entity"]) -> List["Entity"]:
        self._loaded_targets[name] = list(records)
        return self._loaded_targets[name]

    def reset_loaded_targets(self) -> None:
        self._loaded_targets.clear()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entity):
            return NotImplemented
        return (
            self.id is not None
            and self.root_class() is other.root_class()
            and self.id == other.id
        )

    def __hash__(self) -> int:
        return hash((self.root_class().__name__, self.id))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.id!r}>"

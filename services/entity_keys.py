"""
Association Cache - Entity Key Codec

Cache keys are "<BaseType>::<identity>". The base type is the mapped type
directly beneath Entity, so subclass instances and base-class instances
share one cache slot.
"""

from typing import Any, Optional, Union

from models.entity import Entity, EntityRef
from services.entity_types import TypeRegistry

KEY_SEPARATOR = "::"


class EntityKeyCodec:
    """Derives stable cache keys from entity types and identities."""

    def __init__(self, types: TypeRegistry):
        self.types = types

    @staticmethod
    def key_for(type_name: str, identity: Any) -> str:
        return f"{type_name}{KEY_SEPARATOR}{identity}"

    def base_type_of(self, subject: Union[str, Entity]) -> str:
        """Walk the registered ancestry up to the type directly under Entity."""
        type_name = subject if isinstance(subject, str) else type(subject).__name__
        return self.types.base_type_of(type_name)

    def ref(self, type_name: str, identity: Any) -> EntityRef:
        return EntityRef(self.base_type_of(type_name), identity)

    def ref_for(self, entity: Entity) -> EntityRef:
        return EntityRef(self.base_type_of(entity), entity.id)

    def key_for_ref(self, ref: EntityRef) -> str:
        return self.key_for(ref.type_name, ref.identity)

    def key_for_entity(self, entity: Entity) -> str:
        return self.key_for_ref(self.ref_for(entity))

    def narrow(self, entity: Optional[Entity], type_name: str) -> Optional[Entity]:
        """entity if it is a type_name instance, else None. A slot holds any type of its hierarchy."""
        if entity is None or not self.types.is_a(entity, type_name):
            return None
        return entity

"""
Association Cache - Association Registry

Holds the association descriptors declared per owner type. All validation
happens here, at registration time, so a malformed declaration fails
before anything is loaded.
"""

import logging
from typing import Any, Dict, List

from errors import ConfigurationError, UnknownAssociationError, UnknownEntityTypeError
from models.associations import (
    AssociationDescriptor,
    HasMany,
    build_descriptor,
)
from services.entity_types import TypeRegistry

logger = logging.getLogger(__name__)


class AssociationRegistry:
    """Descriptors keyed by (owner type, association name)."""

    def __init__(self, types: TypeRegistry):
        self.types = types
        self._by_owner: Dict[str, Dict[str, AssociationDescriptor]] = {}

    def register(self, owner_type: str, kind: str, name: str, **options: Any) -> AssociationDescriptor:
        """
        Declare an association on owner_type.

        Raises:
            ConfigurationError: Unknown owner or target type, unknown option,
                unresolvable join table or through association
        """
        if not self.types.is_registered(owner_type):
            raise ConfigurationError(f"Owner type '{owner_type}' is not registered", config_key=owner_type)

        descriptor = build_descriptor(kind, owner_type, name, options, self.types.table_for)

        if not self.types.is_registered(descriptor.target_type):
            raise ConfigurationError(
                f"{owner_type}.{name} targets unregistered type '{descriptor.target_type}'",
                config_key="class_name",
            )

        if isinstance(descriptor, HasMany) and descriptor.through:
            self._check_through(owner_type, descriptor)

        self._by_owner.setdefault(owner_type, {})[name] = descriptor
        logger.info(
            "Registered %s %s.%s -> %s (cached=%s)",
            kind, owner_type, name, descriptor.target_type, descriptor.cached,
        )
        return descriptor

    def _check_through(self, owner_type: str, descriptor: HasMany) -> None:
        try:
            through = self.get(owner_type, descriptor.through)
        except UnknownAssociationError as e:
            raise ConfigurationError(
                f"{owner_type}.{descriptor.name} goes through undeclared association '{descriptor.through}'",
                config_key="through",
            ) from e
        if not isinstance(through, HasMany) or through.through:
            raise ConfigurationError(
                f"{owner_type}.{descriptor.name} must go through a plain has_many association",
                config_key="through",
            )

    def get(self, owner_type: str, name: str) -> AssociationDescriptor:
        """Find an association declared on owner_type or one of its mapped ancestors."""
        try:
            chain = self.types.ancestry(owner_type)
        except UnknownEntityTypeError:
            raise UnknownAssociationError(owner_type, name) from None
        for type_name in chain:
            descriptor = self._by_owner.get(type_name, {}).get(name)
            if descriptor is not None:
                return descriptor
        raise UnknownAssociationError(owner_type, name)

    def for_owner(self, owner_type: str) -> List[AssociationDescriptor]:
        """Every association visible on owner_type, nearest declaration first."""
        seen: Dict[str, AssociationDescriptor] = {}
        for type_name in self.types.ancestry(owner_type):
            for name, descriptor in self._by_owner.get(type_name, {}).items():
                seen.setdefault(name, descriptor)
        return list(seen.values())

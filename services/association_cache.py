"""
Association Cache - Facade

Wires the cache store, key codec, batch loader and loaders around one
entity store. Associations are registered here as descriptors whose
kind fixes the loader; load() dispatches on it.

Invalidation is the caller's job: call invalidate() (or the
record_saved / record_destroyed hooks) after mutating the store. Stale
entries are never detected on their own.
"""

import os
import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from db.query import Conditions, SelectQuery
from db.store import EntityStore
from errors import ConfigurationError
from models.associations import (
    BELONGS_TO,
    HAS_AND_BELONGS_TO_MANY,
    HAS_MANY,
    AssociationDescriptor,
    BelongsTo,
    HasAndBelongsToMany,
    HasMany,
)
from models.entity import Entity
from services.activation import is_caching_active
from services.association_registry import AssociationRegistry
from services.batch_loader import BatchLoader
from services.cache_store import CacheStore
from services.entity_keys import EntityKeyCodec
from services.entity_types import TypeRegistry
from services.loaders import (
    ForeignKeyCollectionLoader,
    JoinTableCollectionLoader,
    Loader,
    SingleKeyLoader,
    select_identities,
)

logger = logging.getLogger(__name__)

ALL = "all"
FIRST = "first"

Selector = Union[str, int, Sequence[Any]]


class InvalidationPolicy(str, Enum):
    """When mutation hooks drop cache entries."""
    EXPLICIT = "explicit"   # only record_destroyed and invalidate()
    ON_WRITE = "on_write"   # record_saved invalidates as well

    @classmethod
    def from_env(cls) -> "InvalidationPolicy":
        value = os.getenv("ASSOCIATION_CACHE_INVALIDATION", cls.EXPLICIT.value).lower()
        try:
            return cls(value)
        except ValueError:
            raise ConfigurationError(
                f"Unknown invalidation policy '{value}'",
                config_key="ASSOCIATION_CACHE_INVALIDATION",
            ) from None


class AssociationCache:
    """Cache-aside entity and association loading over an EntityStore."""

    def __init__(
        self,
        store: EntityStore,
        types: TypeRegistry,
        cache: Optional[CacheStore] = None,
        invalidation: Optional[InvalidationPolicy] = None,
        is_active=is_caching_active,
    ):
        self.store = store
        self.types = types
        self.cache = cache if cache is not None else CacheStore()
        self.invalidation = invalidation or InvalidationPolicy.from_env()
        self._is_active = is_active

        self.codec = EntityKeyCodec(types)
        self.batch_loader = BatchLoader(self.cache, store, self.codec)
        self.associations = AssociationRegistry(types)

        loader_args = (self.cache, store, self.batch_loader, self.codec, self.associations, is_active)
        self._loaders: Dict[type, Loader] = {
            BelongsTo: SingleKeyLoader(*loader_args),
            HasMany: ForeignKeyCollectionLoader(*loader_args),
            HasAndBelongsToMany: JoinTableCollectionLoader(*loader_args),
        }

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register_type(self, cls: type) -> type:
        return self.types.register(cls)

    def register(self, owner_type: str, kind: str, name: str, **options: Any) -> AssociationDescriptor:
        return self.associations.register(owner_type, kind, name, **options)

    def belongs_to(self, owner_type: str, name: str, **options: Any) -> BelongsTo:
        return self.register(owner_type, BELONGS_TO, name, **options)

    def has_many(self, owner_type: str, name: str, **options: Any) -> HasMany:
        return self.register(owner_type, HAS_MANY, name, **options)

    def has_and_belongs_to_many(self, owner_type: str, name: str, **options: Any) -> HasAndBelongsToMany:
        return self.register(owner_type, HAS_AND_BELONGS_TO_MANY, name, **options)

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def caching_active(self) -> bool:
        return self._is_active()

    def loader_for(self, owner_type: str, name: str) -> Tuple[AssociationDescriptor, Loader]:
        descriptor = self.associations.get(owner_type, name)
        return descriptor, self._loaders[type(descriptor)]

    def load(self, owner: Entity, name: str, **options: Any) -> Any:
        """Load association `name` of owner (entity, None or list of entities)."""
        descriptor, loader = self.loader_for(type(owner).__name__, name)
        return loader.load(owner, descriptor, **options)

    def retrieve(self, ids: Sequence[Any], type_name: str) -> List[Entity]:
        return self.batch_loader.retrieve(ids, type_name)

    def find_with_cache(
        self,
        type_name: str,
        selector: Selector,
        conditions: Conditions = None,
        order: Optional[str] = None,
        joins: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> Union[Entity, List[Entity], None]:
        """
        Find entities of type_name through the cache.

        Args:
            selector: "all", "first", one identity or a list of identities
            conditions, order, joins, limit: Filters for "all" / "first"

        Returns:
            A list for "all" and identity lists, otherwise one entity or None
        """
        if selector in (ALL, FIRST):
            query = SelectQuery(table=self.types.table_for(type_name), joins=joins, order=order)
            query.add_conditions(conditions)
            query.limit = 1 if selector == FIRST else limit

            if not self.caching_active():
                records = self.store.find_all(type_name, query)
            else:
                records = self.batch_loader.retrieve(select_identities(self.store, type_name, query), type_name)

            if selector == FIRST:
                return records[0] if records else None
            return records

        if isinstance(selector, (list, tuple)):
            if not self.caching_active():
                by_id = {record.id: record for record in self.store.find_by_ids(type_name, selector)}
                return [by_id[i] for i in selector if i in by_id]
            return self.batch_loader.retrieve(selector, type_name)

        if not self.caching_active():
            return self.store.find_by_id(type_name, selector)
        key = self.codec.key_for(self.codec.base_type_of(type_name), selector)
        entity = self.cache.get(key, lambda: self.store.find_by_id(type_name, selector))
        return self.codec.narrow(entity, type_name)

    # -------------------------------------------------------------------------
    # Manual insertion and invalidation
    # -------------------------------------------------------------------------

    def cache_entity(self, entity: Entity) -> str:
        key = self.codec.key_for_entity(entity)
        self.cache.put(key, entity)
        return key

    def invalidate(self, entity: Entity) -> bool:
        return self.invalidate_ref(type(entity).__name__, entity.id)

    def invalidate_ref(self, type_name: str, identity: Any) -> bool:
        key = self.codec.key_for_ref(self.codec.ref(type_name, identity))
        removed = self.cache.delete(key)
        logger.info("Invalidated %s (%s)", key, "removed" if removed else "not cached")
        return removed

    def record_saved(self, entity: Entity) -> bool:
        """Mutation hook for updates. Only invalidates under the on_write policy."""
        if self.invalidation is InvalidationPolicy.ON_WRITE:
            return self.invalidate(entity)
        return False

    def record_destroyed(self, entity: Entity) -> bool:
        """
        Mutation hook for deletes.

        Clears the join rows of cached has_and_belongs_to_many associations
        owned by entity, then drops the entity's cache entry.
        """
        for descriptor in self.associations.for_owner(type(entity).__name__):
            if isinstance(descriptor, HasAndBelongsToMany) and descriptor.cached:
                self.store.delete_join_rows(descriptor.join_table, descriptor.foreign_key, entity.id)
        entity.reset_loaded_targets()
        return self.invalidate(entity)

    def stats(self) -> Dict[str, Any]:
        stats = self.cache.stats()
        stats["active"] = self.caching_active()
        return stats

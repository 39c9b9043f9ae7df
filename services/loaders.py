"""
Association Cache - Association Loaders

One loader per association kind, picked when the association is
registered:
- SingleKeyLoader: belongs_to, one foreign key -> one cached entity
- ForeignKeyCollectionLoader: has_many, owner key -> child identities
- JoinTableCollectionLoader: has_and_belongs_to_many, owner key -> related
  identities through the join table

Collection loaders ask the store for identities only and hand them to the
BatchLoader. With caching inactive, or on uncached associations, every
loader goes straight to the store and never touches the cache store.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Sequence, Union

from db.query import Conditions, JoinTableClause, SelectQuery
from db.store import EntityStore
from models.associations import (
    AssociationDescriptor,
    BelongsTo,
    HasAndBelongsToMany,
    HasMany,
    underscore,
)
from models.entity import Entity
from services.activation import is_caching_active
from services.association_registry import AssociationRegistry
from services.batch_loader import BatchLoader
from services.cache_store import CacheStore
from services.entity_keys import EntityKeyCodec

logger = logging.getLogger(__name__)


def select_identities(store: EntityStore, type_name: str, query: SelectQuery) -> List[Any]:
    """Identity-only query, or full rows when a join rules the projection out."""
    if query.requires_join:
        return [record.id for record in store.find_all(type_name, query)]
    return store.select_ids(type_name, query)


class Loader(ABC):
    """Loads one association for an owner entity."""

    def __init__(
        self,
        cache: CacheStore,
        store: EntityStore,
        batch_loader: BatchLoader,
        codec: EntityKeyCodec,
        associations: AssociationRegistry,
        is_active: Callable[[], bool] = is_caching_active,
    ):
        self.cache = cache
        self.store = store
        self.batch_loader = batch_loader
        self.codec = codec
        self.associations = associations
        self._is_active = is_active

    def caching(self, descriptor: AssociationDescriptor) -> bool:
        return descriptor.cached and self._is_active()

    @abstractmethod
    def load(self, owner: Entity, descriptor: AssociationDescriptor, **options: Any) -> Any:
        ...


class SingleKeyLoader(Loader):

    def load(self, owner: Entity, descriptor: BelongsTo, **options: Any) -> Optional[Entity]:
        identity = getattr(owner, descriptor.foreign_key, None)
        if identity is None:
            return None

        target = descriptor.target_type
        if not self.caching(descriptor):
            return self.store.find_by_id(target, identity)

        key = self.codec.key_for(self.codec.base_type_of(target), identity)
        entity = self.cache.get(key, lambda: self.store.find_by_id(target, identity))
        return self.codec.narrow(entity, target)


class CollectionLoader(Loader):
    """Shared flow for has_many and has_and_belongs_to_many."""

    def load(
        self,
        owner: Entity,
        descriptor: AssociationDescriptor,
        ids: Any = None,
        conditions: Conditions = None,
        order: Optional[str] = None,
        joins: Optional[str] = None,
        **options: Any,
    ) -> Union[List[Entity], Entity, None]:
        """
        Load the owner's collection, optionally narrowed to ids.

        Args:
            owner: Entity owning the association
            descriptor: Association being loaded
            ids: Only return members with these identities. A single
                identity (not a list) returns that member or None.
            conditions: Extra "sql" or ["sql", *params] filter
            order: Order applied before the association's own order
            joins: Raw join fragment; forces full-row loading of identities
        """
        if ids is not None and not isinstance(ids, (list, tuple, set)):
            records = self._load_members(owner, descriptor, [ids], conditions, order, joins)
            return records[0] if records else None
        return self._load_members(owner, descriptor, ids, conditions, order, joins)

    def _load_members(
        self,
        owner: Entity,
        descriptor: AssociationDescriptor,
        ids: Optional[Sequence[Any]],
        conditions: Conditions,
        order: Optional[str],
        joins: Optional[str],
    ) -> List[Entity]:
        if owner.id is None:
            return []

        if ids is not None:
            ids = list(dict.fromkeys(i for i in ids if i is not None))
            if not ids:
                return []

        if descriptor.finder_sql:
            return self._scan_target(owner, descriptor, ids)

        target = descriptor.target_type
        query = self.build_query(owner, descriptor)
        query.add_conditions(descriptor.conditions)
        query.add_conditions(conditions)
        query.order_by(order)
        query.order_by(descriptor.order)
        if joins:
            query.joins = f"{query.joins} {joins}" if query.joins else joins
        if ids is not None:
            query.restrict_ids(ids)

        if not self.caching(descriptor) or not self.cacheable(descriptor):
            return self.store.find_all(target, query)

        identities = select_identities(self.store, target, query)
        logger.debug("%s.%s: %d identities for owner %s", type(owner).__name__, descriptor.name, len(identities), owner.id)
        return self.batch_loader.retrieve(identities, target)

    def _scan_target(self, owner: Entity, descriptor: AssociationDescriptor, ids: Optional[List[Any]]) -> List[Entity]:
        # A custom finder cannot be reduced to an identity query: load it
        # once per owner and select members in memory.
        target = owner.loaded_target(descriptor.name)
        if target is None:
            target = owner.set_loaded_target(
                descriptor.name,
                self.store.find_by_sql(descriptor.target_type, descriptor.finder_sql, (owner.id,)),
            )
        if ids is None:
            return list(target)
        return [record for record in target if record.id in ids]

    def cacheable(self, descriptor: AssociationDescriptor) -> bool:
        return True

    def target_query(self, descriptor: AssociationDescriptor) -> SelectQuery:
        return SelectQuery(table=self.codec.types.table_for(descriptor.target_type))

    @abstractmethod
    def build_query(self, owner: Entity, descriptor: AssociationDescriptor) -> SelectQuery:
        ...


class ForeignKeyCollectionLoader(CollectionLoader):

    def cacheable(self, descriptor: HasMany) -> bool:
        return not descriptor.through

    def build_query(self, owner: Entity, descriptor: HasMany) -> SelectQuery:
        query = self.target_query(descriptor)
        if not descriptor.through:
            query.filters[descriptor.foreign_key] = owner.id
            return query

        through = self.associations.get(type(owner).__name__, descriptor.through)
        query.join_table = JoinTableClause(
            table=self.codec.types.table_for(through.target_type),
            target_column=descriptor.source_foreign_key or f"{underscore(descriptor.target_type)}_id",
            owner_column=through.foreign_key,
            owner_id=owner.id,
        )
        return query


class JoinTableCollectionLoader(CollectionLoader):

    def build_query(self, owner: Entity, descriptor: HasAndBelongsToMany) -> SelectQuery:
        query = self.target_query(descriptor)
        query.join_table = JoinTableClause(
            table=descriptor.join_table,
            target_column=descriptor.association_foreign_key,
            owner_column=descriptor.foreign_key,
            owner_id=owner.id,
        )
        return query

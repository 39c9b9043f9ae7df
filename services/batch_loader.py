"""
Association Cache - Batch Loader

Reconciles an ordered identity list against the cache store:
1. Look up every distinct key in one get_multiple call
2. Missing ids = ids whose key was not returned
3. One store query for all missing ids, written through to the cache
4. Reassemble in input order; rows that no longer exist are left out,
   as are cached entries that are not of the requested type

The store is hit at most once per retrieve() call. If that query fails
nothing is written and the error propagates.
"""

import logging
from typing import Any, Dict, List, Sequence

from db.store import EntityStore
from models.entity import Entity
from services.cache_store import CacheStore
from services.entity_keys import EntityKeyCodec

logger = logging.getLogger(__name__)


class BatchLoader:
    """Ordered, cache-first loading of entities by identity."""

    def __init__(self, cache: CacheStore, store: EntityStore, codec: EntityKeyCodec):
        self.cache = cache
        self.store = store
        self.codec = codec

    def retrieve(self, ids: Sequence[Any], type_name: str) -> List[Entity]:
        """
        Load entities for ids, in the order given.

        Args:
            ids: Identities, duplicates allowed
            type_name: Entity type the ids belong to

        Returns:
            Entities aligned with ids. Shorter than ids when some rows were
            deleted; callers that need every row compare lengths.
        """
        if not ids:
            return []

        base_type = self.codec.base_type_of(type_name)
        keys = {identity: self.codec.key_for(base_type, identity) for identity in ids}
        records: Dict[str, Entity] = self.cache.get_multiple(dict.fromkeys(keys.values()))

        missing_ids = [identity for identity, key in keys.items() if key not in records]
        if missing_ids:
            fetched = self.store.find_by_ids(type_name, missing_ids)
            for record in fetched:
                key = self.codec.key_for_entity(record)
                self.cache.put(key, record)
                records[key] = record

            if len(fetched) < len(missing_ids):
                logger.warning(
                    "%s: %d of %d requested rows no longer exist",
                    type_name, len(missing_ids) - len(fetched), len(missing_ids),
                )

        logger.debug(
            "%s retrieve: %d ids, %d cached, %d fetched",
            type_name, len(ids), len(keys) - len(missing_ids), len(missing_ids),
        )
        found = (records.get(keys[identity]) for identity in ids)
        return [record for record in found if self.codec.narrow(record, type_name) is not None]

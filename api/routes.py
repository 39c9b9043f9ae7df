"""
Association Cache - API Routes
Cache administration and cached lookup endpoints

Handlers are plain functions: the store is synchronous, so FastAPI runs
them on its threadpool and they share one thread-safe cache store.
Driver errors are translated into domain errors here, at the boundary.
"""

import logging
from contextlib import contextmanager
from typing import List, Union

from fastapi import APIRouter, Depends, Request, status
import pymysql

from errors import DatabaseConnectionError, EntityNotFoundError, QueryError
from models.entity import Entity
from models.schemas import CacheStatsResponse, EntityResponse, InvalidateResponse
from services.association_cache import AssociationCache

logger = logging.getLogger(__name__)

router = APIRouter()


def get_association_cache(request: Request) -> AssociationCache:
    return request.app.state.association_cache


@contextmanager
def store_errors(operation: str):
    """Translate pymysql failures into domain errors."""
    try:
        yield
    except pymysql.err.OperationalError as e:
        logger.error("✗ %s failed, database unreachable: %s", operation, e)
        raise DatabaseConnectionError(f"Failed to reach database: {e}")
    except pymysql.Error as e:
        logger.error("✗ %s failed: %s", operation, e)
        raise QueryError(f"{operation} failed")


def _to_response(cache: AssociationCache, entity: Entity) -> EntityResponse:
    return EntityResponse(
        type_name=type(entity).__name__,
        cache_key=cache.codec.key_for_entity(entity),
        attributes=entity.to_dict(),
    )


# =============================================================================
# Cache administration
# =============================================================================

@router.get("/cache/stats", response_model=CacheStatsResponse, tags=["Cache"])
def cache_stats(cache: AssociationCache = Depends(get_association_cache)):
    """Hit/miss counters and entry count."""
    return CacheStatsResponse(**cache.stats())


@router.post("/cache/reset-counters", response_model=CacheStatsResponse, tags=["Cache"])
def reset_counters(cache: AssociationCache = Depends(get_association_cache)):
    cache.cache.reset_counters()
    return CacheStatsResponse(**cache.stats())


@router.delete("/cache", status_code=status.HTTP_204_NO_CONTENT, tags=["Cache"])
def clear_cache(cache: AssociationCache = Depends(get_association_cache)):
    """Drop every entry and reset counters."""
    cache.cache.clear()


@router.delete("/cache/{type_name}/{identity}", response_model=InvalidateResponse, tags=["Cache"])
def invalidate(type_name: str, identity: int, cache: AssociationCache = Depends(get_association_cache)):
    """
    Invalidate one entity after it was changed outside this service.

    Subclass type names resolve to their base type's entry.
    """
    ref = cache.codec.ref(type_name, identity)
    return InvalidateResponse(
        key=cache.codec.key_for_ref(ref),
        removed=cache.invalidate_ref(type_name, identity),
    )


# =============================================================================
# Cached lookups
# =============================================================================

@router.get("/entities/{type_name}/{identity}", response_model=EntityResponse, tags=["Entities"])
def get_entity(type_name: str, identity: int, cache: AssociationCache = Depends(get_association_cache)):
    cache.types.class_for(type_name)
    with store_errors(f"{type_name} lookup"):
        entity = cache.find_with_cache(type_name, identity)
    if entity is None:
        raise EntityNotFoundError(type_name, identity)
    return _to_response(cache, entity)


@router.get(
    "/entities/{type_name}/{identity}/{association}",
    response_model=Union[List[EntityResponse], EntityResponse, None],
    tags=["Entities"],
)
def get_association(
    type_name: str,
    identity: int,
    association: str,
    cache: AssociationCache = Depends(get_association_cache),
):
    """
    Load one association of an entity.

    belongs_to associations return a single entity (or null), collections a list
    in association order.
    """
    cache.types.class_for(type_name)
    cache.associations.get(type_name, association)
    with store_errors(f"{type_name}.{association} load"):
        owner = cache.find_with_cache(type_name, identity)
        if owner is None:
            raise EntityNotFoundError(type_name, identity)
        loaded = cache.load(owner, association)

    if isinstance(loaded, list):
        logger.info("✓ %s %s.%s returned %d entities", type_name, identity, association, len(loaded))
        return [_to_response(cache, entity) for entity in loaded]
    return _to_response(cache, loaded) if loaded is not None else None

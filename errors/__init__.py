"""
Association Cache - Domain Errors

Centralized error definitions:
- Domain Truth: Canonical error codes independent of transport
- Boundary Translation: Mapped to HTTP responses at API layer
"""

from .domain import (
    AssociationCacheError,
    ConfigurationError,
    UnknownEntityTypeError,
    UnknownAssociationError,
    EntityNotFoundError,
    DatabaseError,
    DatabaseConnectionError,
    QueryError,
)

__all__ = [
    'AssociationCacheError',
    'ConfigurationError',
    'UnknownEntityTypeError',
    'UnknownAssociationError',
    'EntityNotFoundError',
    'DatabaseError',
    'DatabaseConnectionError',
    'QueryError',
]

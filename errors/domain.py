"""
Association Cache - Domain Error Types

These errors represent cache-layer failures independent of transport layer.
Each error has:
- error_code: Machine-readable identifier for programmatic handling
- http_status: Suggested HTTP status (used by error handler, not hardcoded in routes)
- message: Human-readable description

Store failures are not wrapped here: they propagate unchanged through the
cache layer and are only translated at the HTTP boundary.
"""

from typing import Optional, Dict, Any


class AssociationCacheError(Exception):
    """
    Base exception for all association cache domain errors.

    All domain errors inherit from this class, enabling:
    - Centralized exception handling
    - Consistent error response format
    - Clear separation from driver exceptions
    """
    error_code: str = "INTERNAL_ERROR"
    http_status: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON response."""
        result = {
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Configuration Errors
# =============================================================================

class ConfigurationError(AssociationCacheError):
    """Entity type or association declaration is invalid."""
    error_code = "CONFIGURATION_ERROR"
    http_status = 500

    def __init__(self, message: str, config_key: Optional[str] = None):
        details = {"config_key": config_key} if config_key else {}
        super().__init__(message, details)


# =============================================================================
# Lookup Errors
# =============================================================================

class UnknownEntityTypeError(AssociationCacheError):
    """Entity type name was never registered."""
    error_code = "UNKNOWN_ENTITY_TYPE"
    http_status = 404

    def __init__(self, type_name: str):
        super().__init__(f"Unknown entity type: {type_name}", {"type_name": type_name})


class UnknownAssociationError(AssociationCacheError):
    """Association name is not registered for the owner type."""
    error_code = "UNKNOWN_ASSOCIATION"
    http_status = 404

    def __init__(self, owner_type: str, name: str):
        super().__init__(
            f"{owner_type} has no association named '{name}'",
            {"owner_type": owner_type, "association": name},
        )


class EntityNotFoundError(AssociationCacheError):
    """No row exists for the requested identity."""
    error_code = "ENTITY_NOT_FOUND"
    http_status = 404

    def __init__(self, type_name: str, identity: Any):
        super().__init__(
            f"{type_name} {identity} not found",
            {"type_name": type_name, "identity": identity},
        )


# =============================================================================
# Database Errors
# =============================================================================

class DatabaseError(AssociationCacheError):
    """Base class for database-related errors."""
    error_code = "DATABASE_ERROR"
    http_status = 503  # Service Unavailable


class DatabaseConnectionError(DatabaseError):
    """Failed to connect to database."""
    error_code = "DATABASE_CONNECTION_FAILED"
    http_status = 503


class QueryError(DatabaseError):
    """Store query failed."""
    error_code = "QUERY_FAILED"
    http_status = 500

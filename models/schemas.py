"""
Association Cache - Pydantic Models
Data schemas for API responses
"""

from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field


class EntityResponse(BaseModel):
    """
    One entity as returned by the lookup endpoints
    """
    type_name: str = Field(..., description="Runtime entity type")
    cache_key: str = Field(..., description="Cache key shared by the type hierarchy")
    attributes: Dict[str, Any] = Field(..., description="Row attributes")

    class Config:
        json_schema_extra = {
            "example": {
                "type_name": "Admin",
                "cache_key": "User::42",
                "attributes": {"id": 42, "name": "carrot", "account_id": 7, "type": "Admin"}
            }
        }


class CacheStatsResponse(BaseModel):
    """Response for GET /cache/stats"""
    active: bool = Field(..., description="Whether association caching is enabled")
    hits: int = Field(..., description="Cache hits since last counter reset")
    misses: int = Field(..., description="Cache misses since last counter reset")
    size: int = Field(..., description="Number of cached entries")


class InvalidateResponse(BaseModel):
    """Response for DELETE /cache/{type_name}/{identity}"""
    key: str = Field(..., description="Cache key that was targeted")
    removed: bool = Field(..., description="False if the entry was not cached")


class HealthResponse(BaseModel):
    """Response for /health endpoint"""
    status: str = Field("ok", description="Health status")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="Current server time (UTC)")


class ErrorResponse(BaseModel):
    """
    Standardized error response format.

    All API errors return this structure for consistency.
    """
    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    timestamp: datetime = Field(default_factory=datetime.utcnow, description="When error occurred")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error context")

    class Config:
        json_schema_extra = {
            "example": {
                "error_code": "UNKNOWN_ENTITY_TYPE",
                "message": "Unknown entity type: Widget",
                "timestamp": "2025-12-23T15:00:00.000000Z",
                "details": {"type_name": "Widget"}
            }
        }

### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - API Key Schemas -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
API Key Schemas

Request/response models for API key administration.
"""

from datetime import datetime

from pydantic import BaseModel, Field

KNOWN_PERMISSIONS = (
    "documents:read",
    "workflows:read",
    "workflows:write",
    "admin:*",
    "*:*",
)


class APIKeyCreate(BaseModel):
    """Create a new API key"""
    name: str = Field(..., min_length=1, max_length=100, description="Key name (e.g., 'Web portal')")
    description: str | None = Field(None, max_length=500, description="Description")
    permissions: list[str] = Field(
        default=["documents:read", "workflows:read"],
        description="List of permissions (e.g., 'documents:read', 'workflows:write')"
    )
    rate_limit: int = Field(default=60, ge=1, le=1000, description="Requests per minute")
    expires_at: datetime | None = Field(None, description="Optional expiration date")


class APIKeyResponse(BaseModel):
    """API key response (without the actual key)"""
    id: int
    name: str
    description: str | None = None
    key_prefix: str  # "ptl_xxxx..." for identification
    permissions: list[str]
    rate_limit: int
    is_active: bool
    expires_at: datetime | None = None
    created_at: datetime
    last_used_at: datetime | None = None
    use_count: int

    class Config:
        from_attributes = True


class APIKeyCreatedResponse(BaseModel):
    """
    Response when creating a new API key.

    The 'key' field holds the plaintext key. It is returned only here.
    """
    id: int
    name: str
    key_prefix: str
    key: str = Field(..., description="The API key (shown only once - store securely!)")
    permissions: list[str]
    rate_limit: int
    expires_at: datetime | None = None
    created_at: datetime


class APIKeyUpdate(BaseModel):
    """Update API key fields (cannot change the key itself)"""
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    permissions: list[str] | None = None
    rate_limit: int | None = Field(None, ge=1, le=1000)
    is_active: bool | None = None
    expires_at: datetime | None = None

### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Tenant Schemas -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Tenant Schemas

Pydantic models for the tenant administration endpoints. Password fields
are write-only: responses always carry the mask from
portal.services.secrets.mask_secret.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from portal.models.enums import ConnectionStatus

# ========================================
# Tenant Schemas
# ========================================


class TenantBase(BaseModel):
    """Fields shared by create and update"""

    name: str = Field(..., min_length=1, max_length=100, description="Display name, e.g. 'Brasil'")
    is_active: bool = True
    is_default: bool = False
    table_suffix: str = Field(..., min_length=1, max_length=10, pattern=r"^[A-Z0-9]+$", description="e.g. 010")

    db_host: str = Field(..., min_length=1, max_length=255)
    db_port: int = Field(1433, ge=1, le=65535)
    db_database: str = Field(..., min_length=1, max_length=128)
    db_username: str = Field(..., min_length=1, max_length=128)
    db_options: dict[str, Any] | None = None

    api_base_url: str | None = Field(None, max_length=500)
    api_username: str | None = Field(None, max_length=128)
    api_timeout: int = Field(30000, ge=1000, le=300000, description="Per-call timeout in milliseconds")
    oauth_url: str | None = Field(None, max_length=500)


class TenantCreate(TenantBase):
    """Create a new tenant"""

    code: str = Field(..., min_length=2, max_length=5, description="Country code, e.g. BR")
    db_password: str = Field(..., min_length=1)
    api_password: str | None = None

    @field_validator("code")
    @classmethod
    def upper_code(cls, v: str) -> str:
        """Codes are stored upper-case"""
        v = v.strip().upper()
        if not v.isalnum():
            raise ValueError("code must be alphanumeric")
        return v


class TenantUpdate(BaseModel):
    """
    Update tenant fields.

    Omitted fields keep their value. An omitted or empty password keeps
    the stored one.
    """

    name: str | None = Field(None, min_length=1, max_length=100)
    is_active: bool | None = None
    is_default: bool | None = None
    table_suffix: str | None = Field(None, min_length=1, max_length=10, pattern=r"^[A-Z0-9]+$")

    db_host: str | None = Field(None, min_length=1, max_length=255)
    db_port: int | None = Field(None, ge=1, le=65535)
    db_database: str | None = Field(None, min_length=1, max_length=128)
    db_username: str | None = Field(None, min_length=1, max_length=128)
    db_password: str | None = None
    db_options: dict[str, Any] | None = None

    api_base_url: str | None = Field(None, max_length=500)
    api_username: str | None = Field(None, max_length=128)
    api_password: str | None = None
    api_timeout: int | None = Field(None, ge=1000, le=300000)
    oauth_url: str | None = Field(None, max_length=500)


class TenantResponse(BaseModel):
    """Tenant response (passwords masked)"""

    id: int
    code: str
    name: str
    is_active: bool
    is_default: bool
    table_suffix: str

    db_host: str
    db_port: int
    db_database: str
    db_username: str
    db_password: str | None = None  # masked
    db_options: dict[str, Any] | None = None

    api_base_url: str | None = None
    api_username: str | None = None
    api_password: str | None = None  # masked
    api_timeout: int
    oauth_url: str | None = None

    connection_status: ConnectionStatus
    connection_error: str | None = None
    last_connection_test: datetime | None = None

    created_at: datetime
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


# ========================================
# Connection Test Schemas
# ========================================


class ConnectionTestRequest(BaseModel):
    """Candidate credentials, tested without being stored"""

    db_host: str = Field(..., min_length=1)
    db_port: int = Field(1433, ge=1, le=65535)
    db_database: str = Field(..., min_length=1)
    db_username: str = Field(..., min_length=1)
    db_password: str = Field(..., min_length=1)
    db_options: dict[str, Any] | None = None
    table_suffix: str = Field("010", pattern=r"^[A-Z0-9]+$")


class ConnectionTestDetails(BaseModel):
    server_version: str | None = None
    database: str | None = None
    test_table_found: bool | None = None


class ConnectionTestResult(BaseModel):
    """Outcome of a connection test"""

    success: bool
    message: str
    details: ConnectionTestDetails = Field(default_factory=ConnectionTestDetails)


class PoolStatusEntry(BaseModel):
    """A cached tenant connection"""

    code: str
    connected: bool
    created_at: datetime
    last_used_at: datetime | None = None

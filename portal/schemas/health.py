### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Health Schemas -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Health Check Schemas

Field names follow the monitoring contract (camelCase), so these models are
dumped by alias.
"""

from typing import Literal

from pydantic import BaseModel, Field

CheckStatus = Literal["healthy", "degraded", "unhealthy"]


class LivenessResponse(BaseModel):
    status: Literal["alive"] = "alive"


class ReadinessChecks(BaseModel):
    database: bool


class ReadinessResponse(BaseModel):
    ready: bool
    checks: ReadinessChecks


class DatabaseCheck(BaseModel):
    status: CheckStatus
    response_time: float = Field(..., alias="responseTime", description="Milliseconds")
    message: str | None = None

    class Config:
        populate_by_name = True


class MemoryCheck(BaseModel):
    status: CheckStatus
    used_mb: float = Field(..., alias="usedMB")
    total_mb: float = Field(..., alias="totalMB")
    percent_used: float = Field(..., alias="percentUsed")

    class Config:
        populate_by_name = True


class HealthChecks(BaseModel):
    database: DatabaseCheck
    memory: MemoryCheck


class HealthResponse(BaseModel):
    """Detailed health report"""

    status: CheckStatus
    uptime: float = Field(..., description="Seconds since startup")
    version: str
    checks: HealthChecks

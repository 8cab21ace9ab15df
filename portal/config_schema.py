"""
Config Schema Validation

Pydantic models for validating config.yaml structure.
Provides clear error messages when configuration is invalid.
"""

from typing import Literal

from pydantic import BaseModel, Field, ValidationInfo, field_validator


class LoggingConfig(BaseModel):
    """Logging configuration"""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_to_file: bool = Field(default=True, description="Enable file logging")
    log_to_console: bool = Field(default=True, description="Enable console logging")


class ApplicationConfig(BaseModel):
    """Application settings"""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class DatabaseConfig(BaseModel):
    """Tenant database (ODBC) connection settings"""

    odbc_driver: str = Field(
        default="ODBC Driver 18 for SQL Server",
        min_length=1,
        description="ODBC driver name used to reach tenant SQL Server databases",
    )
    connect_timeout: int = Field(default=15, ge=1, le=120, description="Connect timeout in seconds")
    marker_table_prefix: str = Field(
        default="SX3",
        pattern=r"^[A-Z][A-Z0-9_]*$",
        description="Dictionary table looked up when testing a tenant connection",
    )


class ERPConfig(BaseModel):
    """Outbound ERP REST settings"""

    generic_query_path: str = Field(default="/api/framework/v1/genericQuery")
    decision_path: str = Field(default="/aprova_documento", description="Approval decision endpoint")
    write_back: bool = Field(default=True, description="Send approve/reject decisions to the tenant ERP")
    company_code: str = Field(default="01", min_length=1, max_length=10, description="Company in the TenantId header")
    default_document_type: str = Field(default="PC", min_length=1, max_length=10)
    retry_attempts: int = Field(default=3, ge=1, le=10, description="Total attempts per call")
    retry_backoff_seconds: float = Field(default=0.5, ge=0, le=30, description="Fixed wait between attempts")

    @field_validator("generic_query_path", "decision_path")
    @classmethod
    def must_be_absolute(cls, v: str, info: ValidationInfo) -> str:
        """Endpoint paths are joined to each tenant's api_base_url"""
        if not v.startswith("/"):
            raise ValueError(f"{info.field_name} must start with '/'")
        return v


class AggregatorConfig(BaseModel):
    """Multi-country aggregation settings"""

    document_table: str = Field(default="SCR", pattern=r"^[A-Z][A-Z0-9_]*$")
    item_table: str = Field(default="SC7", pattern=r"^[A-Z][A-Z0-9_]*$")
    default_page_size: int = Field(default=50, ge=1, le=1000)


class WorkflowConfig(BaseModel):
    """Approval workflow settings"""

    max_iterations: int = Field(default=100, ge=1, le=10000)
    bulk_max_workers: int = Field(default=4, ge=1, le=32)


class PortalConfig(BaseModel):
    """Complete config.yaml schema"""

    application: ApplicationConfig = Field(default_factory=ApplicationConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    erp: ERPConfig = Field(default_factory=ERPConfig)
    aggregator: AggregatorConfig = Field(default_factory=AggregatorConfig)
    workflow: WorkflowConfig = Field(default_factory=WorkflowConfig)


def validate_config(config: dict) -> PortalConfig:
    """
    Validate a raw config.yaml mapping.

    Raises:
        pydantic.ValidationError: If a section is malformed
    """
    return PortalConfig.model_validate(config or {})


def get_validation_errors(config: dict) -> list[str]:
    """Return human-readable validation errors (empty list if valid)"""
    from pydantic import ValidationError

    try:
        validate_config(config)
        return []
    except ValidationError as e:
        return [
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]

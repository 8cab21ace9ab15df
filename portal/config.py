### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Portal Configuration -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Portal Configuration Management

Uses Pydantic Settings for process-level settings with environment variable
support (.env file, PORTAL_ prefix) and data/config.yaml for the tunables
that operators edit: ERP retry policy, aggregation, workflow limits, logging.

Config file location (in order of precedence):
1. PORTAL_CONFIG_PATH environment variable
2. data/config.yaml (default)
"""

import os
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic_settings import BaseSettings

from portal.config_schema import PortalConfig, validate_config


def get_project_root() -> Path:
    """Get the project root directory"""
    return Path(__file__).parent.parent


def get_config_path() -> Path:
    """
    Get the path to config.yaml.

    Priority:
    1. PORTAL_CONFIG_PATH environment variable (if set)
    2. data/config.yaml
    """
    env_path = os.environ.get("PORTAL_CONFIG_PATH")
    if env_path:
        return Path(env_path)
    return get_project_root() / "data" / "config.yaml"


def get_version() -> str:
    """Read version from VERSION file"""
    version_file = get_project_root() / "VERSION"
    if version_file.exists():
        return version_file.read_text().strip()
    return "0.0.0"


class PortalSettings(BaseSettings):
    """Process settings (environment / .env)"""

    # API Configuration
    api_title: str = "Alcada Portal API"
    api_version: str = get_version()
    api_prefix: str = "/api/v1"
    debug: bool = False

    # Server Configuration
    host: str = "0.0.0.0"
    port: int = 8000

    # App database (tenants, templates, workflow instances)
    app_database_url: str = "sqlite:///./data/alcada_portal.db"

    # Security
    api_key_header: str = "X-API-Key"
    # 64 hex chars (32 bytes) for AES-256-GCM tenant secret encryption
    encryption_key: str = ""

    # Rate Limiting
    rate_limit_per_minute: int = 60

    class Config:
        env_prefix = "PORTAL_"
        env_file = ".env"
        extra = "ignore"


DEFAULT_CONFIG = """# Alcada Portal Configuration

# Application Settings
application:
  logging:
    level: "INFO"             # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_to_file: true
    log_to_console: true

# Tenant database connections (ODBC)
database:
  odbc_driver: "ODBC Driver 18 for SQL Server"
  connect_timeout: 15         # seconds, used by test-connection
  marker_table_prefix: "SX3"  # dictionary table expected in every tenant

# Outbound ERP REST calls
erp:
  generic_query_path: "/api/framework/v1/genericQuery"
  retry_attempts: 3           # total attempts on transient network failure
  retry_backoff_seconds: 0.5  # fixed wait between attempts
  decision_path: "/aprova_documento"
  write_back: true            # push approve/reject decisions to the ERP
  company_code: "01"          # company part of the TenantId header
  default_document_type: "PC" # used when a workflow has no document type

# Multi-country document aggregation
aggregator:
  document_table: "SCR"
  item_table: "SC7"
  default_page_size: 50

# Approval workflow
workflow:
  max_iterations: 100         # advancement steps before a template is declared cyclic
  bulk_max_workers: 4         # worker threads for bulk approve/reject
"""


def load_yaml_config(config_path: str | None = None) -> dict:
    """Load configuration from YAML file, creating default if missing"""
    config_file = get_config_path() if config_path is None else Path(config_path)

    if not config_file.exists():
        config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(config_file, "w", encoding="utf-8") as f:
            f.write(DEFAULT_CONFIG)

    with open(config_file, encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


@lru_cache
def get_settings() -> PortalSettings:
    """Get cached portal settings instance"""
    return PortalSettings()


@lru_cache
def get_portal_config() -> PortalConfig:
    """Get cached, validated config.yaml contents"""
    return validate_config(load_yaml_config())

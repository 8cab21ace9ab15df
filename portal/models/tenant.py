### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Tenant Model -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Tenant Model

One row per country ERP backend. Holds the SQL Server and REST connection
bundles; password columns contain AES-256-GCM ciphertext produced by
portal.services.secrets.SecretCipher and are never returned in plaintext.
"""

from datetime import datetime

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text

from portal.database import Base
from portal.models.enums import ConnectionStatus


class Tenant(Base):
    """
    Tenant model - a country-specific ERP instance.

    Examples:
        - BR "Brasil"    suffix 010
        - AR "Argentina" suffix 020
    """

    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    code = Column(String(5), nullable=False, unique=True, index=True)
    name = Column(String(100), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)

    # Protheus company tables are suffixed (SCR010, SC7010, ...)
    table_suffix = Column(String(10), nullable=False)

    # SQL Server connection bundle
    db_host = Column(String(255), nullable=False)
    db_port = Column(Integer, default=1433, nullable=False)
    db_database = Column(String(128), nullable=False)
    db_username = Column(String(128), nullable=False)
    db_password = Column(Text, nullable=False)  # encrypted
    db_options = Column(JSON, nullable=True)

    # REST API bundle
    api_base_url = Column(String(500), nullable=True)
    api_username = Column(String(128), nullable=True)
    api_password = Column(Text, nullable=True)  # encrypted
    api_timeout = Column(Integer, default=30000, nullable=False)  # milliseconds
    oauth_url = Column(String(500), nullable=True)

    # Last connection test
    connection_status = Column(String(20), default=ConnectionStatus.UNTESTED.value, nullable=False)
    connection_error = Column(Text, nullable=True)
    last_connection_test = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def timeout_seconds(self) -> float:
        """Per-call timeout in seconds"""
        return (self.api_timeout or 30000) / 1000

    def __repr__(self):
        return f"<Tenant(id={self.id}, code='{self.code}')>"

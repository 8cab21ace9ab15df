### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - API Key Model -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
API Key Model

Credentials for the applications that call the portal (the web front end,
integration jobs). Stores:
- Hashed key value (bcrypt) - the actual key is only shown once on creation
- Key prefix for identification (first 12 chars stored plaintext)
- Permissions (JSON list, e.g. ["documents:read", "workflows:write"])
- Optional expiration
"""

import secrets
import string
from datetime import datetime

import bcrypt as _bcrypt
from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String

from portal.database import Base

KEY_PREFIX = "ptl_"


def hash_key(plaintext: str) -> str:
    """Hash a key using bcrypt"""
    return _bcrypt.hashpw(plaintext.encode(), _bcrypt.gensalt()).decode()


def verify_key_hash(plaintext: str, hashed: str) -> bool:
    """Verify a plaintext key against a hash"""
    return _bcrypt.checkpw(plaintext.encode(), hashed.encode())


def generate_api_key(length: int = 32) -> str:
    """
    Generate a secure random API key.

    Format: ptl_{random_chars}

    Args:
        length: Length of the random portion (default 32)

    Returns:
        New API key string
    """
    chars = string.ascii_letters + string.digits
    random_part = "".join(secrets.choice(chars) for _ in range(length))
    return f"{KEY_PREFIX}{random_part}"


class APIKey(Base):
    """
    API Key model - authentication credential for a calling application.

    The actual key is hashed with bcrypt and cannot be retrieved.
    """

    __tablename__ = "api_keys"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)

    key_prefix = Column(String(12), nullable=False, index=True)
    key_hash = Column(String(255), nullable=False)

    permissions = Column(JSON, default=list, nullable=False)
    rate_limit = Column(Integer, default=60, nullable=False)  # requests per minute

    is_active = Column(Boolean, default=True, nullable=False)
    expires_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_used_at = Column(DateTime, nullable=True)
    use_count = Column(Integer, default=0, nullable=False)

    def __repr__(self):
        return f"<APIKey(id={self.id}, name='{self.name}', prefix='{self.key_prefix}')>"

    @classmethod
    def create_key(
        cls,
        name: str,
        permissions: list[str],
        description: str | None = None,
        rate_limit: int = 60,
        expires_at: datetime | None = None,
    ) -> tuple["APIKey", str]:
        """
        Create a new API key with a generated secret.

        Returns both the APIKey model instance and the plaintext key.
        The plaintext key should be shown to the user once and never stored.
        """
        plaintext_key = generate_api_key()

        api_key = cls(
            name=name,
            description=description,
            key_prefix=plaintext_key[:12],
            key_hash=hash_key(plaintext_key),
            permissions=permissions,
            rate_limit=rate_limit,
            expires_at=expires_at,
            is_active=True,
            use_count=0,
        )
        return api_key, plaintext_key

    def verify_key(self, plaintext_key: str) -> bool:
        """Verify a plaintext key against this key's hash"""
        return verify_key_hash(plaintext_key, self.key_hash)

    def is_valid(self) -> bool:
        """Active and not expired"""
        if not self.is_active:
            return False
        if self.expires_at and datetime.utcnow() > self.expires_at:
            return False
        return True

    def has_permission(self, permission: str) -> bool:
        """
        Check a "resource:action" permission, honouring "resource:*" and "*:*".
        """
        if not self.permissions:
            return False
        if permission in self.permissions or "*:*" in self.permissions:
            return True
        resource = permission.split(":", 1)[0]
        return f"{resource}:*" in self.permissions

    def record_use(self):
        """Record that this key was used (updates last_used_at and use_count)"""
        self.last_used_at = datetime.utcnow()
        self.use_count = (self.use_count or 0) + 1

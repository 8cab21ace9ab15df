### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - API Key Authentication Middleware -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
API Key Authentication

Calling applications authenticate with an API key in the X-API-Key
header (bcrypt-hashed in the app database). The end user on whose behalf
the application acts is passed in X-User-Id / X-User-Email / X-User-Name
and becomes the request's CallerIdentity.
"""

from datetime import datetime

from fastapi import Depends, Header, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader
from sqlalchemy.orm import Session

from portal.config import get_settings
from portal.context import CallerIdentity, RequestContext
from portal.database import get_db
from portal.models.api_key import KEY_PREFIX, APIKey

settings = get_settings()

# API Key header definition
api_key_header = APIKeyHeader(
    name=settings.api_key_header,
    auto_error=False,
    description="API key for authentication",
)


class APIKeyInfo:
    """Container for validated API key information"""

    def __init__(
        self,
        key_id: int | None,
        key_prefix: str,
        name: str,
        permissions: list,
        is_active: bool = True,
        expires_at: datetime | None = None,
        rate_limit: int = 60,
    ):
        self.key_id = key_id
        self.key_prefix = key_prefix
        self.name = name
        self.permissions = permissions
        self.is_active = is_active
        self.expires_at = expires_at
        self.rate_limit = rate_limit

    def has_permission(self, permission: str) -> bool:
        """Check a permission, honouring "resource:*" and "*:*" wildcards"""
        if not self.permissions:
            return False
        if "*:*" in self.permissions:
            return True
        resource = permission.split(":")[0] if ":" in permission else permission
        return permission in self.permissions or f"{resource}:*" in self.permissions


class ExpiredKeyError(Exception):
    """Raised when an API key has expired"""


def _check_db_key(api_key: str, db: Session) -> APIKeyInfo | None:
    """Look up a key by prefix and verify it against the stored hash"""
    if not api_key.startswith(KEY_PREFIX):
        return None

    key_prefix = api_key[:12]
    potential_keys = db.query(APIKey).filter(
        APIKey.key_prefix == key_prefix,
        APIKey.is_active,
    ).all()

    for db_key in potential_keys:
        if db_key.verify_key(api_key):
            if db_key.expires_at and datetime.utcnow() > db_key.expires_at:
                raise ExpiredKeyError(f"API key '{key_prefix}...' has expired")

            db_key.record_use()
            db.commit()

            return APIKeyInfo(
                key_id=db_key.id,
                key_prefix=db_key.key_prefix,
                name=db_key.name,
                permissions=db_key.permissions or [],
                is_active=db_key.is_active,
                expires_at=db_key.expires_at,
                rate_limit=db_key.rate_limit or 60,
            )

    return None


async def get_api_key(
    request: Request,
    api_key: str | None = Security(api_key_header),
    db: Session = Depends(get_db),
) -> APIKeyInfo:
    """
    Validate the API key from the request header.

    Raises:
        HTTPException: 401 if the key is missing, unknown or expired
    """
    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="API key is required",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    try:
        key_info = _check_db_key(api_key, db)
    except ExpiredKeyError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "ApiKey"},
        ) from e

    if key_info:
        # Stored for request logging and rate limiting
        request.state.api_key_info = key_info
        return key_info

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid API key",
        headers={"WWW-Authenticate": "ApiKey"},
    )


def require_permission(permission: str):
    """
    Dependency factory for permission checking

    Usage:
        @router.get("/protected")
        async def protected_route(
            _: None = Depends(require_permission("documents:read"))
        ):
            ...
    """

    async def check_permission(
        api_key: APIKeyInfo = Security(get_api_key),
    ) -> None:
        if not api_key.has_permission(permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Permission denied: {permission} required",
            )

    return check_permission


async def get_request_context(
    request: Request,
    x_user_id: str | None = Header(None, description="Acting user's login"),
    x_user_email: str | None = Header(None, description="Acting user's e-mail"),
    x_user_name: str | None = Header(None, description="Acting user's display name"),
) -> RequestContext:
    """
    Build the per-request caller context.

    The user id falls back to the e-mail local part.

    Raises:
        HTTPException: 400 if no user identity was sent
    """
    user_id = (x_user_id or "").strip()
    if not user_id and x_user_email:
        user_id = x_user_email.split("@", 1)[0].strip()
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-User-Id or X-User-Email header is required",
        )

    identity = CallerIdentity(
        user_id=user_id,
        email=x_user_email.strip() if x_user_email else None,
        display_name=x_user_name.strip() if x_user_name else None,
    )
    return RequestContext(
        identity=identity,
        request_id=getattr(request.state, "request_id", "-"),
    )


# Convenience dependencies for common permissions
require_documents_read = require_permission("documents:read")
require_workflows_read = require_permission("workflows:read")
require_workflows_write = require_permission("workflows:write")
require_admin = require_permission("admin:*")

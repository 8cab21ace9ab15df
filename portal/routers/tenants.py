### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Tenant Admin Router -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Tenant Administration Endpoints

Manage the country ERP backends:
- Tenants: CRUD, activate/deactivate, default tenant
- Connection tests: candidate credentials, or a stored tenant
- Pool status: cached tenant connections

Passwords are encrypted on write and masked on every read.

Note: These endpoints require admin API key with 'admin:*' permission.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from portal.database import get_db
from portal.dependencies import get_cipher, get_tenant_registry
from portal.middleware import require_admin
from portal.models import ConnectionStatus, DocumentWorkflow, Tenant
from portal.schemas.responses import APIResponse, PaginatedResponse, PaginationMeta
from portal.schemas.tenant import (
    ConnectionTestRequest,
    ConnectionTestResult,
    PoolStatusEntry,
    TenantCreate,
    TenantResponse,
    TenantUpdate,
)
from portal.services.secrets import SecretCipher, mask_secret
from portal.services.tenant_registry import TenantRegistry

router = APIRouter()

# Changing any of these invalidates the last connection test
CONNECTION_FIELDS = {
    "table_suffix",
    "db_host",
    "db_port",
    "db_database",
    "db_username",
    "db_password",
    "db_options",
    "api_base_url",
    "api_username",
    "api_password",
    "api_timeout",
    "oauth_url",
}


def _to_response(tenant: Tenant) -> TenantResponse:
    """Response model with both passwords masked"""
    response = TenantResponse.model_validate(tenant)
    response.db_password = mask_secret(tenant.db_password)
    response.api_password = mask_secret(tenant.api_password)
    return response


def _get_tenant_or_404(db: Session, tenant_id: int) -> Tenant:
    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    if not tenant:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Tenant {tenant_id} not found",
        )
    return tenant


def _unset_other_defaults(db: Session, tenant_id: int | None) -> None:
    query = db.query(Tenant).filter(Tenant.is_default)
    if tenant_id is not None:
        query = query.filter(Tenant.id != tenant_id)
    for other in query.all():
        other.is_default = False


@router.get(
    "/tenants",
    response_model=PaginatedResponse[TenantResponse],
    summary="List tenants",
    description="List all tenants with pagination",
)
async def list_tenants(
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    active_only: bool = Query(False, description="Only show active tenants"),
) -> PaginatedResponse[TenantResponse]:
    """List all tenants"""
    query = db.query(Tenant)
    if active_only:
        query = query.filter(Tenant.is_active)

    total = query.count()
    tenants = query.order_by(Tenant.code).offset((page - 1) * page_size).limit(page_size).all()

    return PaginatedResponse(
        success=True,
        data=[_to_response(t) for t in tenants],
        pagination=PaginationMeta.build(page, page_size, total),
    )


@router.get(
    "/tenants/pool-status",
    response_model=APIResponse[list[PoolStatusEntry]],
    summary="Connection pool status",
    description="Tenant connections currently cached by this process",
)
async def get_pool_status(
    _: None = Depends(require_admin),
    registry: TenantRegistry = Depends(get_tenant_registry),
) -> APIResponse[list[PoolStatusEntry]]:
    entries = [PoolStatusEntry(**entry) for entry in registry.pool_status()]
    return APIResponse(success=True, data=entries)


@router.post(
    "/tenants/test-connection",
    response_model=APIResponse[ConnectionTestResult],
    summary="Test candidate credentials",
    description="Try a SQL Server connection with the given credentials. Nothing is stored.",
)
async def test_candidate_connection(
    data: ConnectionTestRequest,
    _: None = Depends(require_admin),
    registry: TenantRegistry = Depends(get_tenant_registry),
) -> APIResponse[ConnectionTestResult]:
    result = await registry.test_connection(data)
    return APIResponse(success=True, data=result, message=result.message)


@router.post(
    "/tenants",
    response_model=APIResponse[TenantResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create tenant",
    description="Register a country ERP backend",
)
async def create_tenant(
    data: TenantCreate,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
    cipher: SecretCipher = Depends(get_cipher),
) -> APIResponse[TenantResponse]:
    """Create a new tenant"""
    existing = db.query(Tenant).filter(Tenant.code == data.code).first()
    if existing:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Tenant with code '{data.code}' already exists",
        )

    fields = data.model_dump(exclude={"db_password", "api_password"})
    tenant = Tenant(
        **fields,
        db_password=cipher.encrypt(data.db_password),
        api_password=cipher.encrypt_optional(data.api_password or None),
        connection_status=ConnectionStatus.UNTESTED.value,
    )
    if tenant.is_default:
        _unset_other_defaults(db, None)

    db.add(tenant)
    db.commit()
    db.refresh(tenant)

    return APIResponse(success=True, data=_to_response(tenant), message="Tenant created successfully")


@router.get(
    "/tenants/{tenant_id}",
    response_model=APIResponse[TenantResponse],
    summary="Get tenant",
    description="Get tenant details by ID",
)
async def get_tenant(
    tenant_id: int,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
) -> APIResponse[TenantResponse]:
    """Get tenant by ID"""
    tenant = _get_tenant_or_404(db, tenant_id)
    return APIResponse(success=True, data=_to_response(tenant))


@router.patch(
    "/tenants/{tenant_id}",
    response_model=APIResponse[TenantResponse],
    summary="Update tenant",
    description="Update tenant details. Empty passwords keep the stored value.",
)
async def update_tenant(
    tenant_id: int,
    data: TenantUpdate,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
    cipher: SecretCipher = Depends(get_cipher),
    registry: TenantRegistry = Depends(get_tenant_registry),
) -> APIResponse[TenantResponse]:
    """Update tenant"""
    tenant = _get_tenant_or_404(db, tenant_id)

    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    for secret_field in ("db_password", "api_password"):
        if secret_field in update_data:
            value = update_data.pop(secret_field)
            if value:
                update_data[secret_field] = cipher.encrypt(value)

    connection_changed = any(
        field in CONNECTION_FIELDS and getattr(tenant, field) != value
        for field, value in update_data.items()
    )

    for field, value in update_data.items():
        setattr(tenant, field, value)

    if update_data.get("is_default"):
        _unset_other_defaults(db, tenant.id)
    if connection_changed:
        tenant.connection_status = ConnectionStatus.UNTESTED.value
        tenant.connection_error = None

    db.commit()
    db.refresh(tenant)

    # Cached connection was built from the old row
    await registry.invalidate(tenant.code)

    return APIResponse(success=True, data=_to_response(tenant), message="Tenant updated successfully")


@router.delete(
    "/tenants/{tenant_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete tenant",
    description="Delete a tenant. Refused while workflows exist for its code; deactivate it instead.",
)
async def delete_tenant(
    tenant_id: int,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
    registry: TenantRegistry = Depends(get_tenant_registry),
):
    """Delete tenant"""
    tenant = _get_tenant_or_404(db, tenant_id)

    workflow_count = db.query(DocumentWorkflow).filter(DocumentWorkflow.country_code == tenant.code).count()
    if workflow_count:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Tenant {tenant.code} has {workflow_count} workflow(s); deactivate it instead",
        )

    code = tenant.code
    db.delete(tenant)
    db.commit()
    await registry.invalidate(code)


@router.post(
    "/tenants/{tenant_id}/toggle",
    response_model=APIResponse[TenantResponse],
    summary="Activate/deactivate tenant",
    description="Flip is_active. Workflows tagged with the tenant code are kept.",
)
async def toggle_tenant(
    tenant_id: int,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
    registry: TenantRegistry = Depends(get_tenant_registry),
) -> APIResponse[TenantResponse]:
    tenant = _get_tenant_or_404(db, tenant_id)
    tenant.is_active = not tenant.is_active
    db.commit()
    db.refresh(tenant)
    await registry.invalidate(tenant.code)

    state = "activated" if tenant.is_active else "deactivated"
    return APIResponse(success=True, data=_to_response(tenant), message=f"Tenant {tenant.code} {state}")


@router.post(
    "/tenants/{tenant_id}/default",
    response_model=APIResponse[TenantResponse],
    summary="Set default tenant",
)
async def set_default_tenant(
    tenant_id: int,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
) -> APIResponse[TenantResponse]:
    """Make this tenant the default (unsets any other default)"""
    tenant = _get_tenant_or_404(db, tenant_id)
    _unset_other_defaults(db, tenant.id)
    tenant.is_default = True
    db.commit()
    db.refresh(tenant)
    return APIResponse(success=True, data=_to_response(tenant), message=f"Tenant {tenant.code} is now the default")


@router.post(
    "/tenants/{tenant_id}/test-connection",
    response_model=APIResponse[ConnectionTestResult],
    summary="Test stored tenant",
    description="Test the tenant's stored database credentials and record the result",
)
async def test_tenant_connection(
    tenant_id: int,
    _: None = Depends(require_admin),
    registry: TenantRegistry = Depends(get_tenant_registry),
) -> APIResponse[ConnectionTestResult]:
    result = await registry.test_tenant_connection(tenant_id)
    return APIResponse(success=True, data=result, message=result.message)

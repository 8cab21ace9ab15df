### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Admin Router -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Admin API Endpoints

- Workflow templates: CRUD
- Approval groups: CRUD
- API keys: Create, list, update, revoke

Note: These endpoints require admin API key with 'admin:*' permission.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from portal.database import get_db
from portal.middleware import APIKeyInfo, get_api_key, require_admin
from portal.models import APIKey, ApprovalGroup, DocumentWorkflow, WorkflowTemplate
from portal.schemas.api_key import (
    KNOWN_PERMISSIONS,
    APIKeyCreate,
    APIKeyCreatedResponse,
    APIKeyResponse,
    APIKeyUpdate,
)
from portal.schemas.responses import APIResponse, PaginatedResponse, PaginationMeta
from portal.schemas.workflow import (
    ApprovalGroupCreate,
    ApprovalGroupResponse,
    ApprovalGroupUpdate,
    LevelDefinition,
    WorkflowTemplateCreate,
    WorkflowTemplateResponse,
    WorkflowTemplateUpdate,
)

router = APIRouter()


def _check_groups_exist(db: Session, levels: list[LevelDefinition]) -> None:
    names = {g for lvl in levels for g in lvl.groups}
    if not names:
        return
    found = {g.name for g in db.query(ApprovalGroup).filter(ApprovalGroup.name.in_(names)).all()}
    missing = names - found
    if missing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown approval group(s): {', '.join(sorted(missing))}",
        )


def _check_permissions(permissions: list[str]) -> None:
    unknown = [p for p in permissions if p not in KNOWN_PERMISSIONS]
    if unknown:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown permission(s): {', '.join(unknown)}",
        )


# ========================================
# Workflow Template Endpoints
# ========================================


@router.get(
    "/templates",
    response_model=APIResponse[list[WorkflowTemplateResponse]],
    summary="List workflow templates",
)
async def list_templates(
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
    active_only: bool = Query(False, description="Only show active templates"),
) -> APIResponse[list[WorkflowTemplateResponse]]:
    query = db.query(WorkflowTemplate)
    if active_only:
        query = query.filter(WorkflowTemplate.is_active)
    templates = query.order_by(WorkflowTemplate.name).all()
    return APIResponse(
        success=True,
        data=[WorkflowTemplateResponse.model_validate(t) for t in templates],
    )


@router.post(
    "/templates",
    response_model=APIResponse[WorkflowTemplateResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create workflow template",
)
async def create_template(
    data: WorkflowTemplateCreate,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
) -> APIResponse[WorkflowTemplateResponse]:
    """Create a template. Groups referenced by its levels must already exist."""
    if db.query(WorkflowTemplate).filter(WorkflowTemplate.name == data.name).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Template '{data.name}' already exists",
        )
    _check_groups_exist(db, data.levels)

    template = WorkflowTemplate(
        name=data.name,
        description=data.description,
        country_code=data.country_code.upper() if data.country_code else None,
        document_type=data.document_type,
        levels=[lvl.model_dump() for lvl in data.levels],
        is_active=data.is_active,
    )
    db.add(template)
    db.commit()
    db.refresh(template)

    return APIResponse(
        success=True,
        data=WorkflowTemplateResponse.model_validate(template),
        message="Template created successfully",
    )


@router.get(
    "/templates/{template_id}",
    response_model=APIResponse[WorkflowTemplateResponse],
    summary="Get workflow template",
)
async def get_template(
    template_id: int,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
) -> APIResponse[WorkflowTemplateResponse]:
    template = db.get(WorkflowTemplate, template_id)
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Template {template_id} not found")
    return APIResponse(success=True, data=WorkflowTemplateResponse.model_validate(template))


@router.patch(
    "/templates/{template_id}",
    response_model=APIResponse[WorkflowTemplateResponse],
    summary="Update workflow template",
    description="Running workflows keep the levels they were started with",
)
async def update_template(
    template_id: int,
    data: WorkflowTemplateUpdate,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
) -> APIResponse[WorkflowTemplateResponse]:
    template = db.get(WorkflowTemplate, template_id)
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Template {template_id} not found")

    update_data = data.model_dump(exclude_unset=True)
    if data.levels is not None:
        _check_groups_exist(db, data.levels)
        update_data["levels"] = [lvl.model_dump() for lvl in data.levels]
    if update_data.get("country_code"):
        update_data["country_code"] = update_data["country_code"].upper()

    for field, value in update_data.items():
        setattr(template, field, value)

    db.commit()
    db.refresh(template)

    return APIResponse(
        success=True,
        data=WorkflowTemplateResponse.model_validate(template),
        message="Template updated successfully",
    )


@router.delete(
    "/templates/{template_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete workflow template",
    description="Refused while workflows reference the template; deactivate it instead",
)
async def delete_template(
    template_id: int,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
):
    template = db.get(WorkflowTemplate, template_id)
    if not template:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Template {template_id} not found")

    in_use = db.query(DocumentWorkflow).filter(DocumentWorkflow.template_id == template_id).count()
    if in_use:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Template {template_id} is used by {in_use} workflow(s)",
        )

    db.delete(template)
    db.commit()


# ========================================
# Approval Group Endpoints
# ========================================


@router.get(
    "/groups",
    response_model=APIResponse[list[ApprovalGroupResponse]],
    summary="List approval groups",
)
async def list_groups(
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
) -> APIResponse[list[ApprovalGroupResponse]]:
    groups = db.query(ApprovalGroup).order_by(ApprovalGroup.name).all()
    return APIResponse(success=True, data=[ApprovalGroupResponse.model_validate(g) for g in groups])


@router.post(
    "/groups",
    response_model=APIResponse[ApprovalGroupResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create approval group",
)
async def create_group(
    data: ApprovalGroupCreate,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
) -> APIResponse[ApprovalGroupResponse]:
    if db.query(ApprovalGroup).filter(ApprovalGroup.name == data.name).first():
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Group '{data.name}' already exists",
        )

    group = ApprovalGroup(name=data.name, description=data.description, members=data.members)
    db.add(group)
    db.commit()
    db.refresh(group)

    return APIResponse(
        success=True,
        data=ApprovalGroupResponse.model_validate(group),
        message="Group created successfully",
    )


@router.patch(
    "/groups/{group_id}",
    response_model=APIResponse[ApprovalGroupResponse],
    summary="Update approval group",
    description="Membership changes apply to workflows started afterwards",
)
async def update_group(
    group_id: int,
    data: ApprovalGroupUpdate,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
) -> APIResponse[ApprovalGroupResponse]:
    group = db.get(ApprovalGroup, group_id)
    if not group:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Group {group_id} not found")

    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(group, field, value)

    db.commit()
    db.refresh(group)

    return APIResponse(
        success=True,
        data=ApprovalGroupResponse.model_validate(group),
        message="Group updated successfully",
    )


@router.delete(
    "/groups/{group_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete approval group",
    description="Refused while a template references the group",
)
async def delete_group(
    group_id: int,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
):
    group = db.get(ApprovalGroup, group_id)
    if not group:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Group {group_id} not found")

    users = [
        t.name
        for t in db.query(WorkflowTemplate).all()
        if any(group.name in (lvl.get("groups") or []) for lvl in t.levels or [])
    ]
    if users:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Group '{group.name}' is used by template(s): {', '.join(users)}",
        )

    db.delete(group)
    db.commit()


# ========================================
# API Key Endpoints
# ========================================


@router.get(
    "/api-keys",
    response_model=PaginatedResponse[APIKeyResponse],
    summary="List API keys",
    description="List all API keys (key values are not returned)",
)
async def list_api_keys(
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    active_only: bool = Query(False, description="Only show active keys"),
) -> PaginatedResponse[APIKeyResponse]:
    """List all API keys"""
    query = db.query(APIKey)
    if active_only:
        query = query.filter(APIKey.is_active)

    total = query.count()
    keys = query.order_by(APIKey.id).offset((page - 1) * page_size).limit(page_size).all()

    return PaginatedResponse(
        success=True,
        data=[APIKeyResponse.model_validate(k) for k in keys],
        pagination=PaginationMeta.build(page, page_size, total),
    )


@router.post(
    "/api-keys",
    response_model=APIResponse[APIKeyCreatedResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create API key",
    description="Create a new API key. The key will only be shown once!",
)
async def create_api_key(
    data: APIKeyCreate,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
) -> APIResponse[APIKeyCreatedResponse]:
    """
    Create a new API key.

    **IMPORTANT**: The returned `key` value is the only time the full API key
    will be shown. Store it securely - it cannot be retrieved later!
    """
    _check_permissions(data.permissions)

    new_key, plaintext_key = APIKey.create_key(
        name=data.name,
        description=data.description,
        permissions=data.permissions,
        rate_limit=data.rate_limit,
        expires_at=data.expires_at,
    )

    db.add(new_key)
    db.commit()
    db.refresh(new_key)

    return APIResponse(
        success=True,
        data=APIKeyCreatedResponse(
            id=new_key.id,
            name=new_key.name,
            key_prefix=new_key.key_prefix,
            key=plaintext_key,  # Only shown once!
            permissions=new_key.permissions,
            rate_limit=new_key.rate_limit,
            expires_at=new_key.expires_at,
            created_at=new_key.created_at,
        ),
        message="API key created successfully. Store the key securely - it cannot be retrieved later!",
    )


@router.get(
    "/api-keys/{key_id}",
    response_model=APIResponse[APIKeyResponse],
    summary="Get API key",
)
async def get_api_key_by_id(
    key_id: int,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
) -> APIResponse[APIKeyResponse]:
    """Get API key by ID"""
    key = db.get(APIKey, key_id)
    if not key:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"API key {key_id} not found")
    return APIResponse(success=True, data=APIKeyResponse.model_validate(key))


@router.patch(
    "/api-keys/{key_id}",
    response_model=APIResponse[APIKeyResponse],
    summary="Update API key",
    description="Update API key details (cannot change the key value)",
)
async def update_api_key(
    key_id: int,
    data: APIKeyUpdate,
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
) -> APIResponse[APIKeyResponse]:
    """Update API key"""
    key = db.get(APIKey, key_id)
    if not key:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"API key {key_id} not found")

    update_data = data.model_dump(exclude_unset=True)
    if update_data.get("permissions") is not None:
        _check_permissions(update_data["permissions"])

    for field, value in update_data.items():
        setattr(key, field, value)

    db.commit()
    db.refresh(key)

    return APIResponse(success=True, data=APIKeyResponse.model_validate(key), message="API key updated successfully")


@router.delete(
    "/api-keys/{key_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Revoke API key",
    description="Permanently delete an API key",
)
async def revoke_api_key(
    key_id: int,
    api_key: APIKeyInfo = Depends(get_api_key),
    _: None = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Revoke (delete) an API key. A key cannot revoke itself."""
    key = db.get(APIKey, key_id)
    if not key:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"API key {key_id} not found")

    if key.id == api_key.key_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cannot revoke the key used for this request",
        )

    db.delete(key)
    db.commit()

### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - FastAPI Dependencies -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
FastAPI Dependencies

Services are built once per application by init_services() (called from
the lifespan, or directly by tests) and stored on app.state. The getters
below hand them to routes.
"""

from typing import Callable

from fastapi import FastAPI, Request
from sqlalchemy.orm import Session

from portal.config_schema import PortalConfig
from portal.services.aggregator import DocumentAggregator
from portal.services.bulk_actions import BulkActionCoordinator
from portal.services.decision_sync import DecisionSync
from portal.services.erp_client import ERPClient
from portal.services.health import HealthService
from portal.services.secrets import SecretCipher
from portal.services.tenant_registry import TenantRegistry
from portal.services.workflow_engine import WorkflowEngine


def init_services(
    app: FastAPI,
    session_factory: Callable[[], Session],
    cipher: SecretCipher,
    config: PortalConfig,
    version: str,
    client_factory: Callable[..., ERPClient] = ERPClient,
) -> None:
    """Create the application's service graph on app.state"""
    registry = TenantRegistry(session_factory, cipher, config, client_factory=client_factory)
    engine = WorkflowEngine(
        session_factory,
        max_steps=config.workflow.max_iterations,
        write_back=config.erp.write_back,
    )

    app.state.cipher = cipher
    app.state.portal_config = config
    app.state.tenant_registry = registry
    app.state.aggregator = DocumentAggregator(registry)
    app.state.workflow_engine = engine
    app.state.bulk_coordinator = BulkActionCoordinator(engine, max_workers=config.workflow.bulk_max_workers)
    app.state.decision_sync = DecisionSync(registry, engine, enabled=config.erp.write_back)
    app.state.health_service = HealthService(session_factory, version)


async def close_services(app: FastAPI) -> None:
    """Close tenant connections (call on shutdown)"""
    registry = getattr(app.state, "tenant_registry", None)
    if registry is not None:
        await registry.close_all()


def get_cipher(request: Request) -> SecretCipher:
    return request.app.state.cipher


def get_tenant_registry(request: Request) -> TenantRegistry:
    return request.app.state.tenant_registry


def get_aggregator(request: Request) -> DocumentAggregator:
    return request.app.state.aggregator


def get_workflow_engine(request: Request) -> WorkflowEngine:
    return request.app.state.workflow_engine


def get_bulk_coordinator(request: Request) -> BulkActionCoordinator:
    return request.app.state.bulk_coordinator


def get_decision_sync(request: Request) -> DecisionSync:
    return request.app.state.decision_sync


def get_health_service(request: Request) -> HealthService:
    return request.app.state.health_service

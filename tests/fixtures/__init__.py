"""
Test fixtures and factories for Alcada Portal tests.
"""

from tests.fixtures.data import BR_DOCUMENT_ROWS, SC7_ROWS, THREE_LEVEL_TEMPLATE, scr_row
from tests.fixtures.factories import (
    create_admin_api_key,
    create_api_key,
    create_group,
    create_template,
    create_tenant,
    make_identity,
    user_headers,
)

__all__ = [
    "BR_DOCUMENT_ROWS",
    "SC7_ROWS",
    "THREE_LEVEL_TEMPLATE",
    "create_admin_api_key",
    "create_api_key",
    "create_group",
    "create_template",
    "create_tenant",
    "make_identity",
    "scr_row",
    "user_headers",
]

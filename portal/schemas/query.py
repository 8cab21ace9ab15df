### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Generic Query Schemas -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Generic Query Schemas

Typed input for portal.services.query_builder.QueryBuilder. Names are
validated by the builder, not here, so a bad field can be dropped instead
of failing the whole request.
"""

from typing import Any, Literal

from pydantic import BaseModel, Field

Operator = Literal["eq", "like", "gt", "lt", "gte", "lte", "in", "between"]


class QueryCondition(BaseModel):
    """A single WHERE condition (AND-ed with the others)"""

    field: str = Field(..., description="Column name, e.g. CR_FILIAL")
    operator: Operator = Field(default="eq", description="Comparison operator")
    value: Any = Field(..., description="Scalar, or a list for 'in' / a pair for 'between'")


class OrderBy(BaseModel):
    """ORDER BY clause specification"""

    field: str = Field(..., description="Column name to order by")
    direction: Literal["ASC", "DESC"] = Field(default="ASC", description="Sort direction")


class QueryOptions(BaseModel):
    """
    Generic query request for one ERP table.

    page_size above the builder's maximum is clamped, not rejected.
    """

    table: str = Field(..., description="Table name including the tenant suffix, e.g. SCR010")
    fields: list[str] = Field(default_factory=list, description="Columns to select (empty = all)")
    conditions: list[QueryCondition] = Field(default_factory=list)
    order_by: list[OrderBy] = Field(default_factory=list)
    page: int = Field(default=1, description="Page number (starts at 1)")
    page_size: int = Field(default=50, description="Rows per page")

### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - ERP Row Mapping -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
ERP Row Mapping

Converts generic-query rows into Document / LineItem models.

Approval rows (SCR) carry one row per document level; rows sharing
(CR_FILIAL, CR_NUM, CR_TIPO) are grouped into a single Document whose
levels are ordered by CR_NIVEL.

Protheus values are CHAR columns padded with spaces and dates are
YYYYMMDD strings.
"""

from datetime import date
from typing import Any

from portal.errors import MalformedResponseError
from portal.models.enums import LevelState
from portal.schemas.document import ApprovalLevel, Document, LineItem

# CR_STATUS codes
STATUS_CODES = {
    "01": LevelState.AWAITING_PRIOR_LEVEL,
    "02": LevelState.PENDING,
    "03": LevelState.RELEASED,
    "04": LevelState.REJECTED,  # blocked
    "05": LevelState.RELEASED,  # released by another approver of the level
    "06": LevelState.REJECTED,
}

DOCUMENT_FIELDS = [
    "CR_FILIAL",
    "CR_NUM",
    "CR_TIPO",
    "CR_NIVEL",
    "CR_USER",
    "CR_XNOME",
    "CR_STATUS",
    "CR_OBS",
    "CR_DATALIB",
    "CR_TOTAL",
    "CR_EMISSAO",
    "CR_XCOMPRA",
    "CR_XFORNEC",
]

ITEM_FIELDS = ["C7_ITEM", "C7_PRODUTO", "C7_DESCRI", "C7_QUANT", "C7_PRECO", "C7_TOTAL"]


def strip_val(val: Any) -> Any:
    """Strip CHAR padding; blank strings become None"""
    if isinstance(val, str):
        val = val.strip()
        return val or None
    return val


def parse_erp_date(date_val: str | int | None) -> date | None:
    """Convert an ERP YYYYMMDD string or int to a date object"""
    if not date_val:
        return None
    date_str = str(date_val).strip()
    if len(date_str) != 8:
        return None
    try:
        return date(int(date_str[:4]), int(date_str[4:6]), int(date_str[6:8]))
    except (ValueError, TypeError):
        return None


def parse_level_state(raw: Any, tenant_code: str | None = None) -> LevelState:
    """Map a CR_STATUS code to a LevelState"""
    code = str(raw).strip().zfill(2) if raw is not None else ""
    try:
        return STATUS_CODES[code]
    except KeyError:
        raise MalformedResponseError(f"Unknown approval status code {raw!r}", tenant_code) from None


def _to_float(val: Any) -> float | None:
    if val is None or val == "":
        return None
    try:
        return float(val)
    except (TypeError, ValueError):
        return None


def _level_order(raw: Any, tenant_code: str | None) -> int:
    try:
        order = int(str(raw).strip())
    except (TypeError, ValueError):
        order = 0
    if order < 1:
        raise MalformedResponseError(f"Invalid approval level {raw!r}", tenant_code)
    return order


def row_to_level(row: dict[str, Any], tenant_code: str | None = None) -> ApprovalLevel:
    """Build one ApprovalLevel from an SCR row"""
    return ApprovalLevel(
        level_order=_level_order(row.get("CR_NIVEL"), tenant_code),
        approver_id=strip_val(row.get("CR_USER")),
        approver_name=strip_val(row.get("CR_XNOME")),
        state=parse_level_state(row.get("CR_STATUS"), tenant_code),
        comment=strip_val(row.get("CR_OBS")),
        released_at=parse_erp_date(row.get("CR_DATALIB")),
    )


def rows_to_documents(rows: list[dict[str, Any]], tenant_code: str | None = None) -> list[Document]:
    """
    Group SCR rows into documents.

    Documents keep the order of their first row; levels are sorted by
    level order.

    Raises:
        MalformedResponseError: Missing key fields, unknown status code or
            two rows for the same level of one document
    """
    grouped: dict[tuple, dict[str, Any]] = {}

    for row in rows:
        branch = strip_val(row.get("CR_FILIAL"))
        number = strip_val(row.get("CR_NUM"))
        doc_type = strip_val(row.get("CR_TIPO"))
        if branch is None or number is None:
            raise MalformedResponseError("Approval row without CR_FILIAL/CR_NUM", tenant_code)

        key = (branch, number, doc_type)
        entry = grouped.get(key)
        if entry is None:
            entry = grouped[key] = {
                "header": Document(
                    country=tenant_code,
                    branch=branch,
                    number=number,
                    type=doc_type,
                    total_value=_to_float(row.get("CR_TOTAL")),
                    issue_date=parse_erp_date(row.get("CR_EMISSAO")),
                    buyer=strip_val(row.get("CR_XCOMPRA")),
                    supplier=strip_val(row.get("CR_XFORNEC")),
                ),
                "levels": {},
            }

        level = row_to_level(row, tenant_code)
        if level.level_order in entry["levels"]:
            raise MalformedResponseError(
                f"Document {branch}/{number} has level {level.level_order} more than once", tenant_code
            )
        entry["levels"][level.level_order] = level

    documents = []
    for entry in grouped.values():
        doc = entry["header"]
        doc.approval_levels = [entry["levels"][k] for k in sorted(entry["levels"])]
        documents.append(doc)
    return documents


def rows_to_line_items(rows: list[dict[str, Any]]) -> list[LineItem]:
    """Build line items from SC7 rows, ordered by item number"""
    items = [
        LineItem(
            item=strip_val(row.get("C7_ITEM")) or "",
            product=strip_val(row.get("C7_PRODUTO")),
            description=strip_val(row.get("C7_DESCRI")),
            quantity=_to_float(row.get("C7_QUANT")),
            unit_price=_to_float(row.get("C7_PRECO")),
            total=_to_float(row.get("C7_TOTAL")),
        )
        for row in rows
    ]
    return sorted(items, key=lambda i: i.item)

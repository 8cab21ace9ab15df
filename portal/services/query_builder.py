### Description ###
# Alcada Portal - Multi-Country ERP Approval Portal
# - Generic Query Builder -
# Author: Bailey Dixon
# Date: 10/19/2026
# Python: 3.11
####################

"""
Generic Query Builder

Turns QueryOptions into the parameters of the ERP generic-query endpoint
(tables, fields, where, orderBy, page, pageSize). The ERP runs the `where`
text as-is, so every value goes through escape_literal and every name must
match IDENTIFIER_PATTERN.

Rules:
- Invalid field names are dropped from the field list (logged)
- Invalid table, condition or order-by names raise ValidationError
- The soft-delete predicate is always the first predicate
- page_size is clamped to MAX_PAGE_SIZE
"""

import logging
import math
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from urllib.parse import urlencode

from portal.errors import ValidationError
from portal.schemas.query import QueryCondition, QueryOptions

logger = logging.getLogger(__name__)

IDENTIFIER_PATTERN = re.compile(r"^[A-Z][A-Z0-9_]*$")
SOFT_DELETE_PREDICATE = "D_E_L_E_T_ = ''"
MAX_PAGE_SIZE = 1000

_ESCAPES = {
    "\\": "\\\\",
    "'": "''",
    "\0": "\\0",
    "\n": "\\n",
    "\r": "\\r",
    "\x1a": "\\Z",
}
_UNESCAPES = {"\\": "\\", "0": "\0", "n": "\n", "r": "\r", "Z": "\x1a"}

_COMPARISONS = {
    "eq": "=",
    "like": "LIKE",
    "gt": ">",
    "lt": "<",
    "gte": ">=",
    "lte": "<=",
}


def is_valid_identifier(name: Any) -> bool:
    """Check a table/column name against the allow-list pattern"""
    return isinstance(name, str) and bool(IDENTIFIER_PATTERN.match(name))


def escape_literal(value: str) -> str:
    """
    Escape text for use inside a single-quoted SQL literal.

    Quotes are doubled; backslash, NUL, LF, CR and EOF (0x1A) become
    backslash sequences.
    """
    return "".join(_ESCAPES.get(ch, ch) for ch in value)


def unescape_literal(escaped: str) -> str:
    """
    Inverse of escape_literal.

    Raises:
        ValueError: If the text contains a lone quote (the literal would
            have ended early) or an unknown escape sequence
    """
    out = []
    i = 0
    while i < len(escaped):
        ch = escaped[i]
        if ch == "'":
            if escaped[i + 1 : i + 2] != "'":
                raise ValueError(f"Unpaired quote at position {i}")
            out.append("'")
            i += 2
        elif ch == "\\":
            nxt = escaped[i + 1 : i + 2]
            if nxt not in _UNESCAPES:
                raise ValueError(f"Invalid escape sequence at position {i}")
            out.append(_UNESCAPES[nxt])
            i += 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def format_date_for_query(d: date) -> str:
    """Convert a date to the ERP's YYYYMMDD format"""
    return d.strftime("%Y%m%d")


def render_value(value: Any) -> str:
    """Render a single condition value as SQL text"""
    # bool is an int subclass; ERP logical fields are not numbers
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"Unsupported condition value: {value!r}")
    if isinstance(value, int | Decimal):
        return str(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValidationError(f"Unsupported condition value: {value!r}")
        return repr(value)
    if isinstance(value, datetime | date):
        return f"'{format_date_for_query(value)}'"
    if isinstance(value, str):
        return f"'{escape_literal(value)}'"
    raise ValidationError(f"Unsupported condition value type: {type(value).__name__}")


class QueryBuilder:
    """
    Builds generic-query parameters from QueryOptions.

    Stateless apart from the page size ceiling; safe to share.
    """

    def __init__(self, max_page_size: int = MAX_PAGE_SIZE):
        self.max_page_size = max_page_size

    def _require_identifier(self, name: Any, what: str) -> str:
        if not is_valid_identifier(name):
            raise ValidationError(f"Invalid {what} name: {name!r}")
        return name

    def _build_fields(self, fields: list[str]) -> str:
        valid = []
        for name in fields:
            if is_valid_identifier(name):
                valid.append(name)
            else:
                logger.debug(f"Dropping invalid field name {name!r}")
        if fields and not valid:
            logger.warning("All requested fields were invalid, selecting every column")
        return ", ".join(valid) if valid else "*"

    def _build_condition(self, condition: QueryCondition) -> str:
        field = self._require_identifier(condition.field, "condition field")
        op = condition.operator
        value = condition.value

        if op == "in":
            if not isinstance(value, list | tuple) or not value:
                raise ValidationError(f"'in' on {field} requires a non-empty list")
            return f"{field} IN ({', '.join(render_value(v) for v in value)})"

        if op == "between":
            if not isinstance(value, list | tuple) or len(value) != 2:
                raise ValidationError(f"'between' on {field} requires exactly two values")
            low, high = value
            return f"{field} BETWEEN {render_value(low)} AND {render_value(high)}"

        if isinstance(value, list | tuple):
            raise ValidationError(f"'{op}' on {field} requires a single value")
        return f"{field} {_COMPARISONS[op]} {render_value(value)}"

    def build_where(self, conditions: list[QueryCondition]) -> str:
        """WHERE text, soft-delete predicate first"""
        predicates = [SOFT_DELETE_PREDICATE]
        predicates.extend(self._build_condition(c) for c in conditions)
        return " AND ".join(predicates)

    def build_params(self, options: QueryOptions | dict) -> dict[str, str]:
        """
        Build the generic-query parameters.

        Args:
            options: QueryOptions (or an equivalent mapping)

        Returns:
            Mapping of tables/fields/where/orderBy/page/pageSize

        Raises:
            ValidationError: Bad table name, bad condition or order-by field,
                or a value that cannot be rendered
        """
        if isinstance(options, dict):
            options = QueryOptions.model_validate(options)

        table = self._require_identifier(options.table, "table")
        params = {
            "tables": table,
            "fields": self._build_fields(options.fields),
            "where": self.build_where(options.conditions),
        }

        if options.order_by:
            params["orderBy"] = ", ".join(
                f"{self._require_identifier(o.field, 'order by')} {o.direction}"
                for o in options.order_by
            )

        page = max(1, options.page)
        page_size = min(max(1, options.page_size), self.max_page_size)
        if page_size != options.page_size:
            logger.debug(f"page_size {options.page_size} clamped to {page_size}")
        params["page"] = str(page)
        params["pageSize"] = str(page_size)
        return params

    def build(self, options: QueryOptions | dict) -> str:
        """Build the generic-query string (URL-encoded parameters)"""
        return urlencode(self.build_params(options))

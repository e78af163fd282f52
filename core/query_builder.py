# =============================================================================
# core/query_builder.py  -  SOQL filter builder
# =============================================================================
#
# Every user-supplied string that ends up inside a SOQL statement passes
# through escape_literal() or sanitize_pattern() in this module first.
# Handlers never concatenate SOQL themselves.
#
# QueryBuilder accumulates predicate fragments and joins them with AND.
# Optional filters that were not supplied contribute nothing: there are no
# default bounds.
# =============================================================================

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Iterable, Optional
import logging

logger = logging.getLogger(__name__)


class NameMatchPolicy(str, Enum):
    """How a name pattern is turned into LIKE conditions.

    BOUNDARY matches values that start with the pattern or contain it right
    after a space, so "Git" finds "Github Migration" and "My Github Project"
    but not "Digital".
    """

    BOUNDARY = "boundary"
    PREFIX = "prefix"
    CONTAINS = "contains"


def escape_literal(value: str) -> str:
    """Escape a value for use inside a quoted SOQL string literal."""
    return str(value).replace("\\", "\\\\").replace("'", "\\'")


def sanitize_pattern(pattern: str) -> str:
    """Escape a LIKE pattern: backslash, quote, then the % and _ wildcards."""
    return (
        escape_literal(pattern)
        .replace("%", "\\%")
        .replace("_", "\\_")
        .strip()
    )


def name_match_condition(
    field: str,
    pattern: str,
    policy: NameMatchPolicy = NameMatchPolicy.BOUNDARY,
) -> str:
    sanitized = sanitize_pattern(pattern)
    if policy == NameMatchPolicy.PREFIX:
        return f"{field} LIKE '{sanitized}%'"
    if policy == NameMatchPolicy.CONTAINS:
        return f"{field} LIKE '%{sanitized}%'"
    return f"({field} LIKE '% {sanitized}%' OR {field} LIKE '{sanitized}%')"


def format_number(value: float) -> str:
    """Render a numeric bound in plain decimal notation, without a trailing .0."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, float):
        return format(Decimal(repr(value)), "f")
    return str(value)


def parse_iso_date(value: str) -> date:
    """Validate an ISO date (YYYY-MM-DD).  Raises ValueError otherwise."""
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip())


class QueryBuilder:
    """Fluent builder for a single-object SOQL SELECT."""

    def __init__(self, object_name: str):
        self.object_name = object_name
        self._fields: list[str] = ["Id"]
        self._conditions: list[str] = []
        self._order_by: list[str] = []
        self._limit: Optional[int] = None

    @property
    def conditions(self) -> list[str]:
        return list(self._conditions)

    def select(self, fields: Iterable[str]) -> "QueryBuilder":
        selected: list[str] = []
        for name in fields:
            if name not in selected:
                selected.append(name)
        self._fields = selected or ["Id"]
        return self

    def where(self, fragment: Optional[str]) -> "QueryBuilder":
        if fragment:
            self._conditions.append(fragment)
        return self

    def where_name_match(
        self,
        field: str,
        pattern: Optional[str],
        policy: NameMatchPolicy = NameMatchPolicy.BOUNDARY,
    ) -> "QueryBuilder":
        if pattern is not None and pattern.strip():
            self._conditions.append(name_match_condition(field, pattern, policy))
        return self

    def where_equals(self, field: str, value: Optional[str]) -> "QueryBuilder":
        if value is not None:
            self._conditions.append(f"{field} = '{escape_literal(value)}'")
        return self

    def where_not_equals(self, field: str, value: Optional[str]) -> "QueryBuilder":
        if value is not None:
            self._conditions.append(f"{field} != '{escape_literal(value)}'")
        return self

    def where_boolean(self, field: str, value: Optional[bool]) -> "QueryBuilder":
        if value is not None:
            self._conditions.append(f"{field} = {'true' if value else 'false'}")
        return self

    def where_range(
        self,
        field: str,
        minimum: Optional[float] = None,
        maximum: Optional[float] = None,
    ) -> "QueryBuilder":
        if minimum is not None:
            self._conditions.append(f"{field} >= {format_number(minimum)}")
        if maximum is not None:
            self._conditions.append(f"{field} <= {format_number(maximum)}")
        return self

    def where_date_range(
        self,
        field: str,
        start: Optional[str] = None,
        end: Optional[str] = None,
    ) -> "QueryBuilder":
        # SOQL date literals are unquoted, so they are re-rendered from a
        # parsed date rather than copied from the input.
        if start is not None:
            self._conditions.append(f"{field} >= {parse_iso_date(start).isoformat()}")
        if end is not None:
            self._conditions.append(f"{field} <= {parse_iso_date(end).isoformat()}")
        return self

    def order_by(self, *clauses: str) -> "QueryBuilder":
        self._order_by = list(clauses)
        return self

    def limit(self, value: Optional[int]) -> "QueryBuilder":
        self._limit = value
        return self

    def build(self) -> str:
        query = f"SELECT {', '.join(self._fields)} FROM {self.object_name}"
        if self._conditions:
            query += " WHERE " + " AND ".join(self._conditions)
        if self._order_by:
            query += " ORDER BY " + ", ".join(self._order_by)
        if self._limit is not None:
            query += f" LIMIT {self._limit}"
        return query


# =============================================================================
# Opportunity search
# =============================================================================
SEARCH_FIELDS = [
    "Id", "Name", "Amount", "StageName", "CloseDate", "Description",
    "Account.Name", "Account.Industry", "Account.Website",
    "Owner.Name", "Owner.Email",
    "ExpectedRevenue", "Probability", "Type",
]

SEARCH_ORDER = ("CloseDate DESC", "Amount DESC NULLS LAST")


@dataclass
class SearchFilters:
    name_pattern: Optional[str] = None
    account_name_pattern: Optional[str] = None
    stage: Optional[str] = None
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    close_date_start: Optional[str] = None
    close_date_end: Optional[str] = None


def build_search_query(
    filters: SearchFilters,
    policy: NameMatchPolicy = NameMatchPolicy.BOUNDARY,
) -> str:
    """Assemble the Opportunity search SOQL (without pagination)."""
    query = (
        QueryBuilder("Opportunity")
        .select(SEARCH_FIELDS)
        .where_name_match("Name", filters.name_pattern, policy)
        .where_name_match("Account.Name", filters.account_name_pattern, policy)
        .where_equals("StageName", filters.stage)
        .where_range("Amount", filters.min_amount, filters.max_amount)
        .where_date_range("CloseDate", filters.close_date_start, filters.close_date_end)
        .order_by(*SEARCH_ORDER)
        .build()
    )
    logger.debug("Search SOQL: %s", query)
    return query


# =============================================================================
# Timeframes for the insights report
# =============================================================================
TIMEFRAMES = ("current_quarter", "last_quarter", "current_year", "last_year", "all_time")


def _quarter_start(year: int, quarter: int) -> date:
    return date(year, (quarter - 1) * 3 + 1, 1)


def _quarter_end(year: int, quarter: int) -> date:
    if quarter == 4:
        return date(year, 12, 31)
    return _quarter_start(year, quarter + 1) - timedelta(days=1)


def build_timeframe_filter(timeframe: str, today: Optional[date] = None) -> Optional[str]:
    """Translate a named timeframe into a CloseDate predicate (None = all time)."""
    today = today or date.today()
    quarter = (today.month - 1) // 3 + 1

    if timeframe == "current_quarter":
        return f"CloseDate >= {_quarter_start(today.year, quarter).isoformat()}"
    if timeframe == "last_quarter":
        year, last = (today.year - 1, 4) if quarter == 1 else (today.year, quarter - 1)
        return (
            f"CloseDate >= {_quarter_start(year, last).isoformat()} "
            f"AND CloseDate <= {_quarter_end(year, last).isoformat()}"
        )
    if timeframe == "current_year":
        return f"CloseDate >= {today.year}-01-01"
    if timeframe == "last_year":
        return f"CloseDate >= {today.year - 1}-01-01 AND CloseDate <= {today.year - 1}-12-31"
    return None

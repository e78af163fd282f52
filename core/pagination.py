# =============================================================================
# core/pagination.py  -  Pagination utility
# =============================================================================
#
# Two jobs:
#   1. paginate() slices an in-memory result set and reports page metadata.
#      It never raises: bad page sizes fall back to the default and page
#      numbers are clamped into the range that actually exists.
#   2. add_pagination_to_query() pushes the same window down to the backend
#      as LIMIT/OFFSET, unless the query already paginates itself.
#      page_from_window() then reports the rows that come back as the
#      requested page instead of slicing them a second time.
# =============================================================================

import math
import re
from typing import Optional, Sequence, TypeVar

from core.models import DEFAULT_PAGE_SIZE, PageInfo, PaginatedResult, PaginationParams

T = TypeVar("T")

_LIMIT_RE = re.compile(r"\bLIMIT\b", re.IGNORECASE)
_OFFSET_RE = re.compile(r"\bOFFSET\b", re.IGNORECASE)


def resolve_page_size(page_size: Optional[int], default: int = DEFAULT_PAGE_SIZE) -> int:
    if page_size is None or page_size <= 0:
        return default
    return page_size


def resolve_page_number(page_number: Optional[int]) -> int:
    if page_number is None or page_number < 1:
        return 1
    return page_number


def total_pages_for(total_count: int, page_size: int) -> int:
    if total_count <= 0:
        return 0
    return math.ceil(total_count / page_size)


def clamp_page(page_number: int, total_pages: int) -> int:
    return min(max(1, page_number), max(total_pages, 1))


def paginate(
    items: Sequence[T],
    params: Optional[PaginationParams] = None,
    default_page_size: int = DEFAULT_PAGE_SIZE,
) -> PaginatedResult[T]:
    """Return the requested page of `items`.

    Args:
        items: The full, already ordered result set.
        params: Requested window.  None means page 1 at the default size.
        default_page_size: Size used when params carries none (or <= 0).

    Returns:
        A PaginatedResult whose `results` is the slice
        [(page-1)*size, page*size) of `items`, clamped to bounds.
    """
    params = params or PaginationParams()
    page_size = resolve_page_size(params.page_size, default_page_size)
    total_count = len(items)
    total_pages = total_pages_for(total_count, page_size)
    page_number = clamp_page(resolve_page_number(params.page_number), total_pages)

    start = (page_number - 1) * page_size
    end = min(start + page_size, total_count)

    return PaginatedResult(
        total_count=total_count,
        page_size=page_size,
        page_number=page_number,
        total_pages=total_pages,
        results=list(items[start:end]),
    )


def page_from_window(
    rows: Sequence[T],
    params: PaginationParams,
    default_page_size: int = DEFAULT_PAGE_SIZE,
) -> PaginatedResult[T]:
    """Wrap rows the backend already cut with LIMIT/OFFSET as the requested page.

    The backend does not report the full count, so `total_count` is the
    number of rows known to exist: everything before this window plus the
    window itself.
    """
    page_size = resolve_page_size(params.page_size, default_page_size)
    page_number = resolve_page_number(params.page_number)
    total_count = (page_number - 1) * page_size + len(rows)

    return PaginatedResult(
        total_count=total_count,
        page_size=page_size,
        page_number=page_number,
        total_pages=total_pages_for(total_count, page_size),
        results=list(rows),
    )


def build_page_info(current_page: int, total_pages: int) -> PageInfo:
    return PageInfo(
        current_page=current_page,
        total_pages=total_pages,
        has_next_page=current_page < total_pages,
        has_previous_page=current_page > 1,
    )


def has_limit(query: str) -> bool:
    return bool(_LIMIT_RE.search(query))


def add_pagination_to_query(query: str, params: Optional[PaginationParams]) -> str:
    """Append LIMIT/OFFSET for `params` unless the query already has them.

    A query without pagination params is returned untouched.  OFFSET is only
    added for pages after the first.
    """
    if params is None:
        return query

    page_size = resolve_page_size(params.page_size)
    page_number = resolve_page_number(params.page_number)
    offset = (page_number - 1) * page_size

    paginated = query
    if not has_limit(paginated):
        paginated = f"{paginated.rstrip()} LIMIT {page_size}"
    if not _OFFSET_RE.search(paginated) and offset > 0:
        paginated = f"{paginated.rstrip()} OFFSET {offset}"
    return paginated

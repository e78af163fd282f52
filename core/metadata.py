# =============================================================================
# core/metadata.py  -  Metadata simplifier
# =============================================================================
#
# Salesforce describe payloads are huge (a single Opportunity describe runs
# to hundreds of kilobytes).  These functions project them down to the few
# properties an agent needs to write a query, and drop everything else.
# =============================================================================

from typing import Any, Mapping, Optional

from core.models import (
    PaginationParams,
    SimplifiedField,
    SimplifiedObjectMetadata,
    SimplifiedUserInfo,
)
from core.pagination import build_page_info, paginate

DEFAULT_FIELD_PAGE_SIZE = 50


def simplify_field(raw: Mapping[str, Any]) -> SimplifiedField:
    return SimplifiedField(
        name=raw.get("name"),
        label=raw.get("label"),
        type=raw.get("type"),
        custom=bool(raw.get("custom", False)),
        required=not raw.get("nillable", True),
    )


def simplify_object(
    raw: Mapping[str, Any],
    include_fields: bool = False,
    pagination: Optional[PaginationParams] = None,
) -> SimplifiedObjectMetadata:
    """Project an object descriptor into SimplifiedObjectMetadata.

    Fields are only projected when `include_fields` is set.  With
    `pagination` the field list gets its own page window (default 50 per
    page) and the result carries `total_fields` and `page_info`.
    """
    metadata = SimplifiedObjectMetadata(
        name=raw.get("name"),
        label=raw.get("label"),
        custom=bool(raw.get("custom", False)),
        createable=bool(raw.get("createable", False)),
        updateable=bool(raw.get("updateable", False)),
        deletable=bool(raw.get("deletable", False)),
        queryable=bool(raw.get("queryable", False)),
    )

    raw_fields = raw.get("fields")
    if not include_fields or raw_fields is None:
        return metadata

    fields = [simplify_field(f) for f in raw_fields]
    if pagination is None:
        metadata.fields = fields
        return metadata

    page = paginate(fields, pagination, default_page_size=DEFAULT_FIELD_PAGE_SIZE)
    metadata.fields = page.results
    metadata.total_fields = page.total_count
    metadata.page_info = build_page_info(page.page_number, page.total_pages)
    return metadata


def simplify_user(raw: Mapping[str, Any]) -> SimplifiedUserInfo:
    return SimplifiedUserInfo(
        id=raw.get("user_id"),
        username=raw.get("username"),
        display_name=raw.get("display_name"),
        email=raw.get("email"),
        organization_id=raw.get("organization_id"),
    )

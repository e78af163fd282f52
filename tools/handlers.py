# =============================================================================
# tools/handlers.py  -  Operation handlers
# =============================================================================
#
# One async function per tool.  Each handler:
#   1. validates its argument mapping (tools/schemas.py), raising
#      InvalidArgumentsError before any backend call
#   2. calls the RecordClient and/or the analytics engine in core/
#   3. returns the payload as a pretty-printed JSON string (format_response)
#
# ERROR POLICY:
#   Record and query handlers let ServiceErrors propagate; mcp_server turns
#   them into protocol-level ToolErrors.
#   Analytics handlers (analyze_engagement, enrich_record,
#   find_similar_records, record_insights) answer {"success": false,
#   "error": ...} instead, so the agent gets a readable result it can
#   reason about.
# =============================================================================

from dataclasses import asdict, is_dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Mapping, Optional
import json
import logging

from core.analytics import (
    ENRICH_FIELDS,
    REFERENCE_FIELDS,
    InsightsOptions,
    analyze_patterns,
    best_practices,
    build_insights_query,
    build_insights_report,
    build_similar_query,
    build_similar_search_criteria,
    build_won_deals_query,
    competitive_intelligence,
    enrichment_insights,
    filter_summary,
    market_intelligence,
    opportunity_profile,
    summarize_reference,
    summarize_similar,
)
from core.client import RecordClient
from core.conversation import ACTIVITY_FIELDS, derive_engagement_insights
from core.errors import RecordNotFoundError, ServiceError
from core.models import ActivityRecord, PaginatedResult, PaginationParams, as_opportunities
from core.opportunity import build_details_query, format_details, format_search_result
from core.outline import generate_document_outline as build_outline
from core.query_builder import QueryBuilder, SearchFilters, build_search_query, build_timeframe_filter
from tools.schemas import (
    CreateRecordArgs,
    DeleteRecordArgs,
    DescribeObjectArgs,
    DocumentOutlineArgs,
    EnrichRecordArgs,
    ExecuteQueryArgs,
    FindSimilarArgs,
    ListObjectsArgs,
    NoArgs,
    RecordIdArgs,
    RecordInsightsArgs,
    SearchRecordsArgs,
    UpdateRecordArgs,
    validate_args,
)

logger = logging.getLogger(__name__)

# Failures an analytics handler reports in its envelope.  ValueError covers
# malformed backend data (bad dates, unexpected shapes).
ENVELOPE_ERRORS = (ServiceError, ValueError)


# =============================================================================
# Response formatting
# =============================================================================
def _encode(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        to_dict = getattr(value, "to_dict", None)
        return to_dict() if callable(to_dict) else asdict(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def format_response(payload: Any) -> str:
    """Serialize a payload as the single text envelope every tool returns."""
    return json.dumps(payload, indent=2, default=_encode)


def _timestamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now(timezone.utc)).isoformat()


def _page_payload(page: PaginatedResult, convert: Callable[[Any], Any] = lambda item: item) -> dict:
    return {
        "total_count": page.total_count,
        "page_size": page.page_size,
        "page_number": page.page_number,
        "total_pages": page.total_pages,
        "results": [convert(item) for item in page.results],
    }


# =============================================================================
# Record operations (errors propagate)
# =============================================================================
async def execute_query(client: RecordClient, args: Mapping[str, Any]) -> str:
    params = validate_args(ExecuteQueryArgs, args)
    page = await client.execute_query(params.query, params.pagination())
    return format_response(_page_payload(page))


async def describe_object(client: RecordClient, args: Mapping[str, Any]) -> str:
    params = validate_args(DescribeObjectArgs, args)
    metadata = await client.describe_object(
        params.object_name,
        include_fields=params.include_fields,
        pagination=params.pagination(),
    )
    return format_response(metadata.to_dict())


async def create_record(client: RecordClient, args: Mapping[str, Any]) -> str:
    params = validate_args(CreateRecordArgs, args)
    result = await client.create_record(params.object_name, params.data)
    return format_response(result.to_dict())


async def update_record(client: RecordClient, args: Mapping[str, Any]) -> str:
    params = validate_args(UpdateRecordArgs, args)
    result = await client.update_record(params.object_name, params.record_id, params.data)
    return format_response(result.to_dict())


async def delete_record(client: RecordClient, args: Mapping[str, Any]) -> str:
    params = validate_args(DeleteRecordArgs, args)
    result = await client.delete_record(params.object_name, params.record_id)
    return format_response(result.to_dict())


async def get_user_info(client: RecordClient, args: Optional[Mapping[str, Any]] = None) -> str:
    validate_args(NoArgs, args)
    return format_response(asdict(await client.get_user_info()))


async def list_objects(client: RecordClient, args: Optional[Mapping[str, Any]] = None) -> str:
    params = validate_args(ListObjectsArgs, args)
    page = await client.list_objects(params.pagination())
    return format_response(_page_payload(page, lambda obj: obj.to_dict()))


async def get_record_details(client: RecordClient, args: Mapping[str, Any]) -> str:
    params = validate_args(RecordIdArgs, args)
    rows = await client.query_records(build_details_query(params.record_id))
    if not rows:
        raise RecordNotFoundError("Opportunity", params.record_id)
    return format_response(format_details(rows[0]))


async def search_records(client: RecordClient, args: Optional[Mapping[str, Any]] = None) -> str:
    params = validate_args(SearchRecordsArgs, args)
    query = build_search_query(
        SearchFilters(
            name_pattern=params.name_pattern,
            account_name_pattern=params.account_name_pattern,
            stage=params.stage,
            min_amount=params.min_amount,
            max_amount=params.max_amount,
            close_date_start=params.close_date_start,
            close_date_end=params.close_date_end,
        ),
        client.name_match_policy,
    )
    page = await client.execute_query(query, params.pagination() or PaginationParams())
    return format_response(_page_payload(page, format_search_result))


# =============================================================================
# Analytics operations (errors go into the envelope)
# =============================================================================
async def analyze_engagement(
    client: RecordClient,
    args: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> str:
    params = validate_args(RecordIdArgs, args)
    try:
        query = (
            QueryBuilder("Task")
            .select(ACTIVITY_FIELDS)
            .where_equals("WhatId", params.record_id)
            .order_by("CreatedDate DESC")
            .build()
        )
        rows = await client.query_records(query)
        insights = derive_engagement_insights([ActivityRecord(row) for row in rows], now)
    except ENVELOPE_ERRORS as exc:
        logger.warning("Engagement analysis for %s failed: %s", params.record_id, exc)
        return format_response({
            "success": False,
            "error": str(exc),
            "record_id": params.record_id,
            "analysis_date": _timestamp(now),
        })

    return format_response({
        "success": True,
        "record_id": params.record_id,
        "insights": insights,
        "analysis_date": _timestamp(now),
    })


async def enrich_record(
    client: RecordClient,
    args: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> str:
    params = validate_args(EnrichRecordArgs, args)
    today = (now or datetime.now(timezone.utc)).date()
    try:
        opportunity = as_opportunities([
            await client.get_record("Opportunity", params.record_id, ENRICH_FIELDS)
        ])[0]
        similar = as_opportunities(await client.query_records(build_won_deals_query(opportunity)))

        payload = {
            "success": True,
            "record_id": params.record_id,
            "opportunity_profile": opportunity_profile(opportunity),
            "market_intelligence": market_intelligence(similar),
            "strategic_insights": enrichment_insights(opportunity, similar),
            "best_practices": best_practices(opportunity) if params.include_best_practices else [],
            "competitive_intelligence": (
                competitive_intelligence(similar, today) if params.include_competitive_intel else None
            ),
            "enrichment_date": _timestamp(now),
        }
    except ENVELOPE_ERRORS as exc:
        logger.warning("Enrichment of %s failed: %s", params.record_id, exc)
        return format_response({
            "success": False,
            "error": str(exc),
            "record_id": params.record_id,
            "enrichment_date": _timestamp(now),
        })

    return format_response(payload)


async def find_similar_records(
    client: RecordClient,
    args: Optional[Mapping[str, Any]] = None,
    now: Optional[datetime] = None,
) -> str:
    params = validate_args(FindSimilarArgs, args)
    today = (now or datetime.now(timezone.utc)).date()
    try:
        reference = None
        if params.reference_record_id:
            ref_query = (
                QueryBuilder("Opportunity")
                .select(REFERENCE_FIELDS)
                .where_equals("Id", params.reference_record_id)
                .build()
            )
            ref_rows = await client.query_records(ref_query)
            if ref_rows:
                reference = as_opportunities(ref_rows)[0]
            else:
                logger.info("Reference %s not found; searching on explicit criteria", params.reference_record_id)

        criteria = build_similar_search_criteria(
            reference,
            industry=params.industry,
            min_amount=params.min_amount,
            max_amount=params.max_amount,
            stage=params.stage,
            is_won=params.is_won,
            close_date_start=params.close_date_start,
            close_date_end=params.close_date_end,
        )
        candidates = as_opportunities(await client.query_records(build_similar_query(criteria, params.limit)))

        payload = {
            "success": True,
            "search_criteria": criteria,
            "reference_record": summarize_reference(reference),
            "results": {
                "total_found": len(candidates),
                "records": [summarize_similar(c, reference) for c in candidates],
            },
            "analysis": analyze_patterns(candidates, reference, today) if params.include_analysis else None,
            "search_date": _timestamp(now),
        }
    except ENVELOPE_ERRORS as exc:
        logger.warning("Similar-record search failed: %s", exc)
        return format_response({
            "success": False,
            "error": str(exc),
            "search_date": _timestamp(now),
        })

    return format_response(payload)


async def record_insights(
    client: RecordClient,
    args: Optional[Mapping[str, Any]] = None,
    now: Optional[datetime] = None,
) -> str:
    params = validate_args(RecordInsightsArgs, args)
    today = (now or datetime.now(timezone.utc)).date()
    try:
        date_filter = build_timeframe_filter(params.timeframe, today)
        query = build_insights_query(
            date_filter,
            min_amount=params.min_amount,
            max_amount=params.max_amount,
            industry=params.industry,
            owner=params.owner,
        )
        records = as_opportunities(await client.query_records(query))

        report = build_insights_report(
            records,
            InsightsOptions(
                include_stage_analysis=params.include_stage_analysis,
                include_owner_performance=params.include_owner_performance,
                include_industry_trends=params.include_industry_trends,
                include_pipeline_health=params.include_pipeline_health,
                include_conversion_rates=params.include_conversion_rates,
            ),
            today,
        )
        payload = {
            "success": True,
            "timeframe": params.timeframe,
            "total_opportunities": len(records),
            "data_range": {
                "date_filter": date_filter or "All time",
                "total_records": len(records),
                "filters": filter_summary(
                    min_amount=params.min_amount,
                    max_amount=params.max_amount,
                    industry=params.industry,
                    owner=params.owner,
                ),
            },
            "generated_at": _timestamp(now),
            **report,
        }
    except ENVELOPE_ERRORS as exc:
        logger.warning("Insights report failed: %s", exc)
        return format_response({
            "success": False,
            "error": str(exc),
            "generated_at": _timestamp(now),
        })

    return format_response(payload)


# =============================================================================
# Document outline (no backend call)
# =============================================================================
async def generate_document_outline(client: RecordClient, args: Mapping[str, Any]) -> str:
    params = validate_args(DocumentOutlineArgs, args)
    return format_response(build_outline(params.record_id, params.client_name, params.output_format))

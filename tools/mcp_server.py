# =============================================================================
# tools/mcp_server.py  -  FastMCP Tool Server (all tools in one place)
# =============================================================================
#
# WHAT THIS FILE DOES:
#   Registers every MCP tool the agent can call.  Each tool is a thin
#   wrapper around a handler in tools/handlers.py: it logs the request,
#   awaits the handler, logs the response and returns the JSON text.
#
# HOW IT WORKS (the flow):
#   1. The agent calls a tool by name over MCP (e.g. "search_records")
#   2. FastMCP routes the call to the decorated function below
#   3. The function builds an argument dict and awaits the handler
#   4. The handler validates, calls Salesforce / core analytics, and
#      returns a pretty-printed JSON envelope
#
# TOOL NAMING CONVENTIONS:
#   - get_* / list_* / describe_*   read-only retrieval
#   - search_* / find_*             queries with filters
#   - analyze_* / enrich_* / *_insights   derived analytics (read-only)
#   - create_* / update_* / delete_*      the only tools that write
#
# ERRORS:
#   Bad arguments, missing records and Salesforce failures become
#   ToolErrors, which MCP clients show as failed tool calls.  The analytics
#   tools report backend failures inside their {"success": false} envelope
#   instead.
#
# RUNNING THIS SERVER:
#   python main.py            (loads .env, logs in, serves over stdio)
#   python -m tools.mcp_server
# =============================================================================

import asyncio
import logging
import sys
from typing import Any, Optional

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError

from core.backend import SalesforceBackend
from core.client import RecordClient
from core.config import Settings, server_name_from_env
from core.errors import (
    BackendError,
    InvalidArgumentsError,
    LoginError,
    RecordNotFoundError,
    ServiceError,
)
from tools import handlers

# =============================================================================
# Logging Setup
# =============================================================================
# Log to STDERR: STDOUT is the MCP transport, and anything printed there
# would corrupt the JSON-RPC stream.
#
# Colours:
#   CYAN    incoming requests (tool name + parameters)
#   YELLOW  intermediate status messages
#   GREEN   responses
# =============================================================================

_CYAN = "\033[36m"
_GREEN = "\033[32m"
_YELLOW = "\033[33m"
_RED = "\033[31m"
_RESET = "\033[0m"

# Responses can be large (a full insights report); the log keeps the head.
_MAX_LOGGED_RESPONSE = 2000

logger = logging.getLogger("salesforce_mcp")


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [MCP] %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
    )


def _log_request(tool_name: str, **params) -> None:
    """Log an incoming tool call with its parameters in CYAN."""
    param_str = ", ".join(f"{k}={v!r}" for k, v in params.items() if v is not None)
    logger.info(f"{_CYAN}{tool_name} called with: {param_str}{_RESET}")


def _log_status(message: str) -> None:
    """Log an intermediate status message in YELLOW."""
    logger.info(f"{_YELLOW}  → {message}{_RESET}")


def _log_response(tool_name: str, result: str) -> str:
    """Log the response text in GREEN (whitespace collapsed), then return it."""
    compact = " ".join(result.split())
    if len(compact) > _MAX_LOGGED_RESPONSE:
        compact = compact[:_MAX_LOGGED_RESPONSE] + " ..."
    logger.info(f"{_GREEN}  ← {tool_name} response: {compact}{_RESET}")
    return result


def _log_failure(tool_name: str, exc: Exception) -> None:
    logger.error(f"{_RED}  ✗ {tool_name} failed: {exc}{_RESET}")


# =============================================================================
# Server instance and the shared client
# =============================================================================
mcp = FastMCP(server_name_from_env())

_client: Optional[RecordClient] = None


def set_client(client: RecordClient) -> None:
    global _client
    _client = client


def get_client() -> RecordClient:
    if _client is None:
        raise ToolError("Salesforce client is not initialized")
    return _client


def _args(**params: Any) -> dict:
    # Omitted optional parameters fall back to the schema defaults.
    return {k: v for k, v in params.items() if v is not None}


def _convert_to_tool_error(exc: Exception) -> ToolError:
    if isinstance(exc, InvalidArgumentsError):
        return ToolError(f"Invalid arguments: {exc}")
    if isinstance(exc, (RecordNotFoundError, BackendError)):
        return ToolError(str(exc))
    return ToolError(f"Salesforce operation failed: {type(exc).__name__}")


async def _run(tool_name: str, handler, **params: Any) -> str:
    _log_request(tool_name, **params)
    try:
        result = await handler(get_client(), _args(**params))
    except ServiceError as exc:
        _log_failure(tool_name, exc)
        raise _convert_to_tool_error(exc) from exc
    return _log_response(tool_name, result)


# =============================================================================
# Record tools
# =============================================================================
@mcp.tool()
async def execute_query(
    query: str,
    page_size: Optional[int] = None,
    page_number: Optional[int] = None,
) -> str:
    """Run a SOQL query and return one page of records.

    Args:
        query: The SOQL statement. LIMIT/OFFSET are added for the requested
               page unless the query already has them.
        page_size: Records per page (default 25).
        page_number: 1-based page to return (default 1).

    Returns:
        JSON with total_count, page_size, page_number, total_pages and results.
    """
    return await _run("execute_query", handlers.execute_query,
                      query=query, page_size=page_size, page_number=page_number)


@mcp.tool()
async def describe_object(
    object_name: str,
    include_fields: bool = False,
    page_size: Optional[int] = None,
    page_number: Optional[int] = None,
) -> str:
    """Describe a Salesforce object (e.g. "Account", "Opportunity").

    Args:
        object_name: API name of the object.
        include_fields: Include the field list (name, label, type, custom, required).
        page_size: Page the field list with this many fields per page (default 50).
        page_number: Which page of fields to return.

    Returns:
        JSON with name, label, custom and the createable/updateable/deletable/
        queryable flags; plus fields, total_fields and page_info when requested.
    """
    return await _run("describe_object", handlers.describe_object,
                      object_name=object_name, include_fields=include_fields,
                      page_size=page_size, page_number=page_number)


@mcp.tool()
async def create_record(object_name: str, data: dict[str, Any]) -> str:
    """Create a record.

    Args:
        object_name: API name of the object to create.
        data: Field values, keyed by field API name.

    Returns:
        JSON with success, id and errors (validation failures land in errors).
    """
    return await _run("create_record", handlers.create_record,
                      object_name=object_name, data=data)


@mcp.tool()
async def update_record(object_name: str, record_id: str, data: dict[str, Any]) -> str:
    """Update fields on an existing record.

    Args:
        object_name: API name of the object.
        record_id: The record's Salesforce ID.
        data: Field values to change.

    Returns:
        JSON with success and errors.
    """
    return await _run("update_record", handlers.update_record,
                      object_name=object_name, record_id=record_id, data=data)


@mcp.tool()
async def delete_record(object_name: str, record_id: str) -> str:
    """Delete a record.

    Args:
        object_name: API name of the object.
        record_id: The record's Salesforce ID.

    Returns:
        JSON with success and errors.
    """
    return await _run("delete_record", handlers.delete_record,
                      object_name=object_name, record_id=record_id)


@mcp.tool()
async def get_user_info() -> str:
    """Return the connected Salesforce user: id, username, display_name, email, organization_id."""
    return await _run("get_user_info", handlers.get_user_info)


@mcp.tool()
async def list_objects(
    page_size: Optional[int] = None,
    page_number: Optional[int] = None,
) -> str:
    """List the objects available in the org, one page at a time.

    Args:
        page_size: Objects per page (default 25).
        page_number: 1-based page to return (default 1).
    """
    return await _run("list_objects", handlers.list_objects,
                      page_size=page_size, page_number=page_number)


# =============================================================================
# Opportunity tools
# =============================================================================
@mcp.tool()
async def get_record_details(record_id: str) -> str:
    """Full detail for one opportunity, with contacts, field history, tasks and notes.

    Args:
        record_id: The opportunity's Salesforce ID.
    """
    return await _run("get_record_details", handlers.get_record_details, record_id=record_id)


@mcp.tool()
async def search_records(
    name_pattern: Optional[str] = None,
    account_name_pattern: Optional[str] = None,
    stage: Optional[str] = None,
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None,
    close_date_start: Optional[str] = None,
    close_date_end: Optional[str] = None,
    page_size: Optional[int] = None,
    page_number: Optional[int] = None,
) -> str:
    """Search opportunities, newest close date first.

    Name patterns match at word starts: "Git" finds "Github Migration" and
    "My Github Project".

    Args:
        name_pattern: Match on opportunity name.
        account_name_pattern: Match on account name.
        stage: Exact stage name.
        min_amount / max_amount: Amount bounds (inclusive).
        close_date_start / close_date_end: Close date bounds, YYYY-MM-DD.
        page_size: Results per page (default 25).
        page_number: 1-based page to return (default 1).
    """
    return await _run("search_records", handlers.search_records,
                      name_pattern=name_pattern, account_name_pattern=account_name_pattern,
                      stage=stage, min_amount=min_amount, max_amount=max_amount,
                      close_date_start=close_date_start, close_date_end=close_date_end,
                      page_size=page_size, page_number=page_number)


@mcp.tool()
async def analyze_engagement(record_id: str) -> str:
    """Summarize an opportunity's activity history and recommend follow-ups.

    Counts recorded calls, inbound/outbound emails, contacts and activity
    types, and classifies the last 30 days as increasing, stable or declining.

    Args:
        record_id: The opportunity's Salesforce ID.
    """
    return await _run("analyze_engagement", handlers.analyze_engagement, record_id=record_id)


@mcp.tool()
async def enrich_record(
    record_id: str,
    include_competitive_intel: bool = False,
    include_best_practices: bool = True,
) -> str:
    """Enrich an opportunity with patterns from comparable won deals.

    Args:
        record_id: The opportunity's Salesforce ID.
        include_competitive_intel: Add recent market activity signals.
        include_best_practices: Add industry and deal-size best practices.
    """
    return await _run("enrich_record", handlers.enrich_record,
                      record_id=record_id,
                      include_competitive_intel=include_competitive_intel,
                      include_best_practices=include_best_practices)


@mcp.tool()
async def find_similar_records(
    reference_record_id: Optional[str] = None,
    industry: Optional[str] = None,
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None,
    stage: Optional[str] = None,
    is_won: Optional[bool] = None,
    close_date_start: Optional[str] = None,
    close_date_end: Optional[str] = None,
    include_analysis: bool = True,
    limit: int = 50,
) -> str:
    """Find opportunities similar to a reference deal or to explicit criteria.

    With a reference, its industry and a 0.3x-3x amount band become the
    default criteria and each result gets a 0-100 similarity score.

    Args:
        reference_record_id: Opportunity to compare against.
        industry: Account industry (overrides the reference's).
        min_amount / max_amount: Amount bounds (override the reference band).
        stage: Exact stage name.
        is_won: Only won (true) or not-won (false) deals.
        close_date_start / close_date_end: Close date bounds, YYYY-MM-DD.
        include_analysis: Add the pattern analysis of the results.
        limit: Maximum number of results (default 50).
    """
    return await _run("find_similar_records", handlers.find_similar_records,
                      reference_record_id=reference_record_id, industry=industry,
                      min_amount=min_amount, max_amount=max_amount, stage=stage,
                      is_won=is_won, close_date_start=close_date_start,
                      close_date_end=close_date_end, include_analysis=include_analysis,
                      limit=limit)


@mcp.tool()
async def record_insights(
    timeframe: str = "current_quarter",
    include_stage_analysis: bool = True,
    include_owner_performance: bool = True,
    include_industry_trends: bool = True,
    include_pipeline_health: bool = True,
    include_conversion_rates: bool = True,
    min_amount: Optional[float] = None,
    max_amount: Optional[float] = None,
    industry: Optional[str] = None,
    owner: Optional[str] = None,
) -> str:
    """Pipeline analytics over opportunities closing in a timeframe.

    Args:
        timeframe: current_quarter, last_quarter, current_year, last_year or all_time.
        include_*: Toggle each report section (all on by default).
        min_amount / max_amount: Amount bounds.
        industry: Account industry.
        owner: Opportunity owner's full name.

    Returns:
        JSON with core metrics, the requested sections and strategic
        recommendations.
    """
    return await _run("record_insights", handlers.record_insights,
                      timeframe=timeframe,
                      include_stage_analysis=include_stage_analysis,
                      include_owner_performance=include_owner_performance,
                      include_industry_trends=include_industry_trends,
                      include_pipeline_health=include_pipeline_health,
                      include_conversion_rates=include_conversion_rates,
                      min_amount=min_amount, max_amount=max_amount,
                      industry=industry, owner=owner)


@mcp.tool()
async def generate_document_outline(
    record_id: str,
    client_name: Optional[str] = None,
    output_format: str = "pdf",
) -> str:
    """Plan a business-case document for an opportunity.

    Returns the tool calls that gather the data, a markdown template with
    placeholders, how to fill each placeholder, and the export target.

    Args:
        record_id: The opportunity's Salesforce ID.
        client_name: Display name for the client.
        output_format: pdf, docx or markdown.
    """
    return await _run("generate_document_outline", handlers.generate_document_outline,
                      record_id=record_id, client_name=client_name, output_format=output_format)


# =============================================================================
# Startup
# =============================================================================
def main() -> None:
    """Log in once, then serve MCP over stdio until the client disconnects."""
    try:
        settings = Settings.from_env()
    except ValueError as exc:
        configure_logging()
        _log_failure("startup", exc)
        raise SystemExit(1) from exc
    configure_logging(settings.log_level)
    client = RecordClient(SalesforceBackend(settings), settings)
    _log_status("Connecting to Salesforce...")
    try:
        asyncio.run(client.initialize())
    except LoginError as exc:
        _log_failure("startup", exc)
        raise SystemExit(1) from exc
    set_client(client)
    _log_status(f"Serving {settings.server_name} over stdio")
    mcp.run()


if __name__ == "__main__":
    main()

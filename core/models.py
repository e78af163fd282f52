# =============================================================================
# core/models.py  -  Data Models (the "nouns" of the system)
# =============================================================================
#
# These dataclasses define the *shape* of every piece of information that
# flows between the backend client, the analytics engine and the MCP tools.
# Tools serialize them with asdict(), so a field that exists here is a field
# the agent will see.
#
# Two kinds of model live here:
#   - Plain result shapes (PaginatedResult, SimplifiedObjectMetadata, ...)
#   - Accessor views (OpportunityRecord, ActivityRecord) that wrap the raw
#     record mappings returned by Salesforce and expose only the fields the
#     analytics engine reads.  The raw mapping is never mutated.
# =============================================================================

from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Generic, Mapping, Optional, TypeVar
import re

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 25


# -----------------------------------------------------------------------------
# Pagination
# -----------------------------------------------------------------------------
@dataclass
class PaginationParams:
    """Requested page window.  Missing values fall back to page 1 of 25."""

    page_size: Optional[int] = None
    page_number: Optional[int] = None


@dataclass
class PageInfo:
    current_page: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


@dataclass
class PaginatedResult(Generic[T]):
    """One page of an ordered result set plus the metadata to walk it."""

    total_count: int
    page_size: int
    page_number: int
    total_pages: int
    results: list[T] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Metadata
# -----------------------------------------------------------------------------
@dataclass
class SimplifiedField:
    name: str
    label: str
    type: str
    custom: bool
    required: bool                     # not nillable


@dataclass
class SimplifiedObjectMetadata:
    """Minimal object descriptor.

    `fields`, `total_fields` and `page_info` are only serialized when they
    were requested, so the default describe stays small.
    """

    name: str
    label: str
    custom: bool
    createable: bool
    updateable: bool
    deletable: bool
    queryable: bool
    fields: Optional[list[SimplifiedField]] = None
    total_fields: Optional[int] = None
    page_info: Optional[PageInfo] = None

    def to_dict(self) -> dict:
        result = asdict(self)
        for key in ("fields", "total_fields", "page_info"):
            if result[key] is None:
                result.pop(key)
        return result


@dataclass
class SimplifiedUserInfo:
    id: str
    username: str
    display_name: str
    email: str
    organization_id: str


# -----------------------------------------------------------------------------
# Mutation results
# -----------------------------------------------------------------------------
@dataclass
class MutationResult:
    """Outcome of a create/update/delete round trip.

    Backend-reported problems (validation rules, missing required fields)
    arrive in `errors` with success=False instead of being raised.
    """

    success: bool
    id: Optional[str] = None
    errors: list[Any] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = asdict(self)
        if result["id"] is None:
            result.pop("id")
        return result


# -----------------------------------------------------------------------------
# Date helpers for the accessor views
# -----------------------------------------------------------------------------
_OFFSET_WITHOUT_COLON = re.compile(r"([+-]\d{2})(\d{2})$")


def parse_date(value: Any) -> Optional[date]:
    """Parse a Salesforce date ("2025-07-15") or datetime into a date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value)
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a Salesforce timestamp into an aware UTC datetime.

    Salesforce writes offsets as "+0000", which older fromisoformat()
    implementations reject, so the colon is inserted first.  Naive values
    are treated as UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        text = _OFFSET_WITHOUT_COLON.sub(r"\1:\2", text)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _nested(record: Mapping[str, Any], parent: str, key: str) -> Any:
    related = record.get(parent)
    if isinstance(related, Mapping):
        return related.get(key)
    return None


# -----------------------------------------------------------------------------
# OpportunityRecord - accessor view used by the analytics engine
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class OpportunityRecord:
    """Read-only view over a raw Opportunity mapping."""

    raw: Mapping[str, Any]

    @property
    def id(self) -> Optional[str]:
        return self.raw.get("Id")

    @property
    def name(self) -> Optional[str]:
        return self.raw.get("Name")

    @property
    def amount(self) -> Optional[float]:
        value = self.raw.get("Amount")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return value

    @property
    def amount_or_zero(self) -> float:
        return self.amount or 0

    @property
    def stage(self) -> Optional[str]:
        return self.raw.get("StageName")

    @property
    def probability(self) -> Optional[float]:
        value = self.raw.get("Probability")
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return None
        return value

    @property
    def close_date(self) -> Optional[date]:
        return parse_date(self.raw.get("CloseDate"))

    @property
    def is_won(self) -> bool:
        return bool(self.raw.get("IsWon"))

    @property
    def is_closed(self) -> bool:
        return bool(self.raw.get("IsClosed"))

    @property
    def is_lost(self) -> bool:
        return self.is_closed and not self.is_won

    @property
    def type(self) -> Optional[str]:
        return self.raw.get("Type")

    @property
    def lead_source(self) -> Optional[str]:
        return self.raw.get("LeadSource")

    @property
    def created_date(self) -> Optional[datetime]:
        return parse_datetime(self.raw.get("CreatedDate"))

    @property
    def account_name(self) -> Optional[str]:
        return _nested(self.raw, "Account", "Name")

    @property
    def industry(self) -> Optional[str]:
        return _nested(self.raw, "Account", "Industry")

    @property
    def website(self) -> Optional[str]:
        return _nested(self.raw, "Account", "Website")

    @property
    def employees(self) -> Optional[int]:
        return _nested(self.raw, "Account", "NumberOfEmployees")

    @property
    def owner_name(self) -> Optional[str]:
        return _nested(self.raw, "Owner", "Name")


def as_opportunities(records: list[Mapping[str, Any]]) -> list[OpportunityRecord]:
    return [r if isinstance(r, OpportunityRecord) else OpportunityRecord(r) for r in records]


# -----------------------------------------------------------------------------
# ActivityRecord - accessor view over a Task row
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class ActivityRecord:
    raw: Mapping[str, Any]

    @property
    def subject(self) -> str:
        return self.raw.get("Subject") or ""

    @property
    def type(self) -> str:
        return self.raw.get("Type") or "Other"

    @property
    def created_date(self) -> Optional[datetime]:
        return parse_datetime(self.raw.get("CreatedDate"))

    @property
    def contact_name(self) -> Optional[str]:
        return _nested(self.raw, "Who", "Name")


# -----------------------------------------------------------------------------
# Derived insight objects
# -----------------------------------------------------------------------------
@dataclass
class StrategicRecommendation:
    category: str
    priority: str                      # "high" | "medium" | "low"
    issue: str
    recommendation: str
    impact: str


@dataclass
class EngagementRecommendation:
    type: str                          # engagement | communication | follow-up | progression
    priority: str
    message: str


@dataclass
class EmailExchanges:
    inbound: int = 0
    outbound: int = 0


@dataclass
class EngagementInsights:
    """Conversation/engagement summary for one record's activity history."""

    total_activities: int
    call_count: int
    email_exchanges: EmailExchanges
    last_activity_date: Optional[datetime]
    call_topics: list[str] = field(default_factory=list)
    engagement_trend: str = "stable"   # increasing | stable | declining
    key_contacts: list[str] = field(default_factory=list)
    activity_types: dict[str, int] = field(default_factory=dict)
    recommendations: list[EngagementRecommendation] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Analytics rollup rows
# -----------------------------------------------------------------------------
# One row per group in each rollup.  Monetary values are sums of Amount;
# averages and percentages are whole numbers.
# -----------------------------------------------------------------------------
@dataclass
class StageSummary:
    stage: str
    count: int
    value: float
    average_size: int
    average_probability: int
    percentage: int                    # share of all records, by count


@dataclass
class OwnerPerformance:
    owner: str
    total_opportunities: int
    won_deals: int
    lost_deals: int
    open_deals: int
    win_rate: int
    total_value: float
    won_value: float
    open_value: float
    average_deal_size: int


@dataclass
class IndustryTrend:
    industry: str
    total_opportunities: int
    won_deals: int
    win_rate: int
    total_value: float
    won_value: float
    average_deal_size: int
    market_share: int


@dataclass
class PipelineBucket:
    count: int = 0
    value: float = 0


@dataclass
class PipelineCategories:
    overdue: PipelineBucket = field(default_factory=PipelineBucket)
    this_month: PipelineBucket = field(default_factory=PipelineBucket)
    next_month: PipelineBucket = field(default_factory=PipelineBucket)
    future: PipelineBucket = field(default_factory=PipelineBucket)


@dataclass
class PipelineHealth:
    total_open_opportunities: int
    total_open_value: float
    categories: PipelineCategories
    health_score: int


@dataclass
class StageConversion:
    stage: str
    entered: int
    converted: int
    conversion_rate: int

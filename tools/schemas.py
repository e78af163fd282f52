# =============================================================================
# tools/schemas.py  -  Tool argument schemas
# =============================================================================
#
# One pydantic model per operation.  Handlers call validate_args() first
# and never touch the backend with arguments that failed here.
#
# Models are strict: "25" is not an int and "true" is not a bool.  Unknown
# keys are ignored so older clients that send extra fields still work.
# =============================================================================

from typing import Annotated, Any, Literal, Mapping, Optional, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.errors import InvalidArgumentsError
from core.models import PaginationParams
from core.query_builder import parse_iso_date

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class ToolArgs(BaseModel):
    model_config = ConfigDict(strict=True, extra="ignore")


class PagedArgs(ToolArgs):
    page_size: Optional[int] = None
    page_number: Optional[int] = None

    def pagination(self) -> Optional[PaginationParams]:
        if self.page_size is None and self.page_number is None:
            return None
        return PaginationParams(page_size=self.page_size, page_number=self.page_number)


def _iso_date(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    try:
        return parse_iso_date(value).isoformat()
    except ValueError:
        raise ValueError(f"expected an ISO date (YYYY-MM-DD), got {value!r}") from None


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be empty")
    return value


NonBlank = Annotated[str, AfterValidator(_not_blank)]


# --- Record operations -------------------------------------------------------

class ExecuteQueryArgs(PagedArgs):
    query: NonBlank


class DescribeObjectArgs(PagedArgs):
    object_name: NonBlank
    include_fields: bool = False


class CreateRecordArgs(ToolArgs):
    object_name: NonBlank
    data: dict[str, Any]


class UpdateRecordArgs(ToolArgs):
    object_name: NonBlank
    record_id: NonBlank
    data: dict[str, Any]


class DeleteRecordArgs(ToolArgs):
    object_name: NonBlank
    record_id: NonBlank


class NoArgs(ToolArgs):
    pass


class ListObjectsArgs(PagedArgs):
    pass


# --- Opportunity operations --------------------------------------------------

class RecordIdArgs(ToolArgs):
    record_id: NonBlank


class SearchRecordsArgs(PagedArgs):
    name_pattern: Optional[str] = None
    account_name_pattern: Optional[str] = None
    stage: Optional[str] = None
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    close_date_start: Optional[str] = None
    close_date_end: Optional[str] = None

    @field_validator("close_date_start", "close_date_end")
    @classmethod
    def validate_dates(cls, v):
        return _iso_date(v)


class EnrichRecordArgs(RecordIdArgs):
    include_competitive_intel: bool = False
    include_best_practices: bool = True


class FindSimilarArgs(ToolArgs):
    reference_record_id: Optional[str] = None
    industry: Optional[str] = None
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    stage: Optional[str] = None
    is_won: Optional[bool] = None
    close_date_start: Optional[str] = None
    close_date_end: Optional[str] = None
    include_analysis: bool = True
    limit: int = Field(default=50, gt=0, le=2000)

    @field_validator("close_date_start", "close_date_end")
    @classmethod
    def validate_dates(cls, v):
        return _iso_date(v)


Timeframe = Literal["current_quarter", "last_quarter", "current_year", "last_year", "all_time"]


class RecordInsightsArgs(ToolArgs):
    timeframe: Timeframe = "current_quarter"
    include_stage_analysis: bool = True
    include_owner_performance: bool = True
    include_industry_trends: bool = True
    include_pipeline_health: bool = True
    include_conversion_rates: bool = True
    min_amount: Optional[float] = None
    max_amount: Optional[float] = None
    industry: Optional[str] = None
    owner: Optional[str] = None


class DocumentOutlineArgs(RecordIdArgs):
    client_name: Optional[str] = None
    output_format: Literal["pdf", "docx", "markdown"] = "pdf"


# --- Validation entry point --------------------------------------------------

def _describe(error: Mapping[str, Any]) -> str:
    location = ".".join(str(part) for part in error.get("loc", ())) or "arguments"
    return f"{location}: {error.get('msg', 'invalid value')}"


def validate_args(schema: type[SchemaT], args: Optional[Mapping[str, Any]]) -> SchemaT:
    """Parse `args` into `schema` or raise InvalidArgumentsError.

    None is treated as an empty argument object.
    """
    if args is None:
        args = {}
    if not isinstance(args, Mapping):
        raise InvalidArgumentsError(
            f"Invalid {schema.__name__} parameters",
            [f"arguments: expected an object, got {type(args).__name__}"],
        )
    try:
        return schema.model_validate(dict(args))
    except ValidationError as exc:
        raise InvalidArgumentsError(
            f"Invalid {schema.__name__} parameters",
            [_describe(error) for error in exc.errors()],
        ) from exc

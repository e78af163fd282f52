# =============================================================================
# core/client.py  -  RecordClient (async wrapper around a RecordBackend)
# =============================================================================
#
# The one long-lived object in the server process.  It owns the
# authenticated backend, is initialized once at startup, and is never
# mutated afterwards.
#
# Every operation:
#   1. runs the blocking backend call in a worker thread (asyncio.to_thread)
#   2. normalizes the raw result (strip "attributes", simplify, paginate)
#   3. wraps any failure in the operation's own BackendError subclass
# =============================================================================

import asyncio
import logging
from typing import Any, Iterable, Optional

from core.backend import RecordBackend
from core.config import Settings
from core.errors import (
    BackendError,
    DescribeError,
    ListObjectsError,
    LoginError,
    MutationError,
    QueryError,
    RecordNotFoundError,
    UserInfoError,
)
from core.metadata import simplify_object, simplify_user
from core.models import (
    MutationResult,
    PaginatedResult,
    PaginationParams,
    SimplifiedObjectMetadata,
    SimplifiedUserInfo,
)
from core.pagination import (
    add_pagination_to_query,
    has_limit,
    page_from_window,
    paginate,
    resolve_page_size,
)
from core.query_builder import NameMatchPolicy, QueryBuilder

logger = logging.getLogger(__name__)


def strip_attributes(value: Any) -> Any:
    """Remove the REST "attributes" envelope from records and subqueries."""
    if isinstance(value, dict):
        return {k: strip_attributes(v) for k, v in value.items() if k != "attributes"}
    if isinstance(value, list):
        return [strip_attributes(v) for v in value]
    return value


def _message(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


class RecordClient:
    """Authenticated, paginating client over a RecordBackend."""

    def __init__(self, backend: RecordBackend, settings: Optional[Settings] = None):
        self._backend = backend
        self._settings = settings or Settings()
        self._initialized = False

    @property
    def name_match_policy(self) -> NameMatchPolicy:
        return self._settings.name_match_policy

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Log in.  Must succeed before any other call."""
        missing = self._settings.missing_credentials()
        if missing:
            raise LoginError(
                f"Missing required Salesforce environment variables: {', '.join(missing)}"
            )
        try:
            await asyncio.to_thread(
                self._backend.login, self._settings.username, self._settings.password
            )
        except Exception as exc:
            raise LoginError(_message(exc)) from exc
        self._initialized = True

    def _require_session(self) -> None:
        if not self._initialized:
            raise LoginError("client is not initialized; call initialize() first")

    async def _call(self, error_cls: type[BackendError], fn, *args, **kwargs):
        self._require_session()
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except BackendError:
            raise
        except Exception as exc:
            raise error_cls(_message(exc)) from exc

    # --- Queries -----------------------------------------------------------

    async def execute_query(
        self,
        query: str,
        pagination: Optional[PaginationParams] = None,
    ) -> PaginatedResult[dict]:
        """Run SOQL and return one page of records.

        LIMIT/OFFSET are appended only when `pagination` is given and the
        query text does not already contain them.  When the backend honours
        the appended LIMIT, its rows are already the requested page.  A
        backend that returns more than a page is paginated in memory.
        """
        records = await self.query_records(add_pagination_to_query(query, pagination))
        pushed_down = pagination is not None and not has_limit(query)
        if pushed_down and len(records) <= resolve_page_size(pagination.page_size):
            return page_from_window(records, pagination)
        return paginate(records, pagination)

    async def query_records(self, query: str) -> list[dict]:
        """Run SOQL and return every record, unpaginated.

        The analytics tools use this so their rollups see the whole result
        set rather than its first page.
        """
        logger.info("Executing SOQL query: %s", query)
        result = await self._call(QueryError, self._backend.query, query)
        return strip_attributes(list(result.get("records") or []))

    async def get_record(
        self,
        object_name: str,
        record_id: str,
        fields: Iterable[str],
    ) -> dict:
        """Fetch one record by Id.  Raises RecordNotFoundError on zero rows."""
        query = (
            QueryBuilder(object_name)
            .select(fields)
            .where_equals("Id", record_id)
            .build()
        )
        records = await self.query_records(query)
        if not records:
            raise RecordNotFoundError(object_name, record_id)
        return records[0]

    # --- Metadata ----------------------------------------------------------

    async def describe_object(
        self,
        object_name: str,
        include_fields: bool = False,
        pagination: Optional[PaginationParams] = None,
    ) -> SimplifiedObjectMetadata:
        raw = await self._call(DescribeError, self._backend.describe, object_name)
        return simplify_object(raw, include_fields=include_fields, pagination=pagination)

    async def list_objects(
        self,
        pagination: Optional[PaginationParams] = None,
    ) -> PaginatedResult[SimplifiedObjectMetadata]:
        result = await self._call(ListObjectsError, self._backend.describe_global)
        objects = [simplify_object(obj) for obj in result.get("sobjects") or []]
        return paginate(objects, pagination)

    async def get_user_info(self) -> SimplifiedUserInfo:
        raw = await self._call(UserInfoError, self._backend.identity)
        return simplify_user(raw)

    # --- Mutations ---------------------------------------------------------

    async def _mutate(self, action: str, fn, *args) -> dict:
        self._require_session()
        try:
            return await asyncio.to_thread(fn, *args)
        except Exception as exc:
            raise MutationError(_message(exc), action=action) from exc

    async def create_record(self, object_name: str, data: dict) -> MutationResult:
        result = await self._mutate("creation", self._backend.create, object_name, data)
        return MutationResult(
            success=bool(result.get("success")),
            id=result.get("id"),
            errors=list(result.get("errors") or []),
        )

    async def update_record(self, object_name: str, record_id: str, data: dict) -> MutationResult:
        result = await self._mutate("update", self._backend.update, object_name, record_id, data)
        return MutationResult(
            success=bool(result.get("success")),
            errors=list(result.get("errors") or []),
        )

    async def delete_record(self, object_name: str, record_id: str) -> MutationResult:
        result = await self._mutate("deletion", self._backend.delete, object_name, record_id)
        return MutationResult(
            success=bool(result.get("success")),
            errors=list(result.get("errors") or []),
        )

"""Pytest fixtures: an in-memory RecordBackend and record factories."""

import copy
import re
from typing import Any, Callable, Optional

import pytest
import pytest_asyncio

from core.backend import RecordBackend
from core.client import RecordClient
from core.config import Settings


class FakeBackend(RecordBackend):
    """RecordBackend that serves canned data and remembers every call.

    `responder`, when set, maps a SOQL string to the rows to return, so a
    test can answer different queries differently.  Otherwise every query
    returns `records`.
    """

    def __init__(
        self,
        records: Optional[list[dict]] = None,
        responder: Optional[Callable[[str], list[dict]]] = None,
        describe_result: Optional[dict] = None,
        sobjects: Optional[list[dict]] = None,
        identity_result: Optional[dict] = None,
        mutation_result: Optional[dict] = None,
        error: Optional[Exception] = None,
        login_error: Optional[Exception] = None,
    ):
        self.records = records or []
        self.responder = responder
        self.describe_result = describe_result or {}
        self.sobjects = sobjects or []
        self.identity_result = identity_result or {}
        self.mutation_result = mutation_result or {"success": True, "id": "001000000000001", "errors": []}
        self.error = error
        self.login_error = login_error
        self.queries: list[str] = []
        self.calls: list[tuple] = []

    @property
    def last_query(self) -> Optional[str]:
        return self.queries[-1] if self.queries else None

    def _maybe_fail(self) -> None:
        if self.error is not None:
            raise self.error

    def login(self, username: str, password: str) -> None:
        self.calls.append(("login", username))
        if self.login_error is not None:
            raise self.login_error

    def query(self, soql: str) -> dict:
        self.queries.append(soql)
        self._maybe_fail()
        rows = self.responder(soql) if self.responder else self.records
        rows = copy.deepcopy(rows)
        return {"totalSize": len(rows), "done": True, "records": rows}

    def describe(self, object_name: str) -> dict:
        self.calls.append(("describe", object_name))
        self._maybe_fail()
        return copy.deepcopy(self.describe_result)

    def describe_global(self) -> dict:
        self.calls.append(("describe_global",))
        self._maybe_fail()
        return {"sobjects": copy.deepcopy(self.sobjects)}

    def identity(self) -> dict:
        self.calls.append(("identity",))
        self._maybe_fail()
        return dict(self.identity_result)

    def create(self, object_name: str, data: dict) -> dict:
        self.calls.append(("create", object_name, data))
        self._maybe_fail()
        return dict(self.mutation_result)

    def update(self, object_name: str, record_id: str, data: dict) -> dict:
        self.calls.append(("update", object_name, record_id, data))
        self._maybe_fail()
        return {k: v for k, v in self.mutation_result.items() if k != "id"}

    def delete(self, object_name: str, record_id: str) -> dict:
        self.calls.append(("delete", object_name, record_id))
        self._maybe_fail()
        return {k: v for k, v in self.mutation_result.items() if k != "id"}


class WindowingBackend(FakeBackend):
    """Applies the query's LIMIT/OFFSET to `records`, as a real org does."""

    def query(self, soql: str) -> dict:
        result = super().query(soql)
        limit = re.search(r"\bLIMIT (\d+)", soql)
        offset = re.search(r"\bOFFSET (\d+)", soql)
        start = int(offset.group(1)) if offset else 0
        end = start + int(limit.group(1)) if limit else None
        result["records"] = result["records"][start:end]
        return result


@pytest.fixture
def settings() -> Settings:
    return Settings(username="agent@example.com", password="secret", security_token="token")


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest_asyncio.fixture
async def client(backend: FakeBackend, settings: Settings) -> RecordClient:
    """A logged-in RecordClient over the fake backend."""
    record_client = RecordClient(backend, settings)
    await record_client.initialize()
    return record_client


@pytest.fixture
def make_opportunity() -> Callable[..., dict]:
    """Factory for raw Opportunity rows shaped like the REST API returns them."""
    counter = {"n": 0}

    def _make(
        amount: Any = 50000,
        stage: Optional[str] = "Prospecting",
        probability: Any = 10,
        close_date: Optional[str] = "2025-07-20",
        is_won: bool = False,
        is_closed: bool = False,
        industry: Optional[str] = "Technology",
        owner: Optional[str] = "Dana Reyes",
        lead_source: Optional[str] = "Web",
        type: Optional[str] = "New Business",
        name: Optional[str] = None,
        **extra: Any,
    ) -> dict:
        counter["n"] += 1
        record = {
            "attributes": {"type": "Opportunity"},
            "Id": f"006{counter['n']:012d}",
            "Name": name or f"Deal {counter['n']}",
            "Amount": amount,
            "StageName": stage,
            "Probability": probability,
            "CloseDate": close_date,
            "IsWon": is_won,
            "IsClosed": is_closed,
            "Type": type,
            "LeadSource": lead_source,
            "CreatedDate": "2025-01-10T09:30:00.000+0000",
            "Account": {"attributes": {"type": "Account"}, "Name": "Acme Corp", "Industry": industry},
            "Owner": {"attributes": {"type": "User"}, "Name": owner} if owner else None,
        }
        record.update(extra)
        return record

    return _make


@pytest.fixture
def make_task() -> Callable[..., dict]:
    """Factory for raw Task rows used by the engagement analysis."""

    def _make(
        subject: str = "Follow up",
        created: str = "2025-07-10T12:00:00.000+0000",
        type: Optional[str] = "Email",
        contact: Optional[str] = None,
    ) -> dict:
        return {
            "attributes": {"type": "Task"},
            "Subject": subject,
            "CreatedDate": created,
            "Type": type,
            "Who": {"Name": contact} if contact else None,
        }

    return _make

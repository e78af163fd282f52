"""Tests for tools/handlers.py: validation, payload shapes and error policy."""

import json
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable

import pytest

from conftest import FakeBackend, WindowingBackend
from core.client import RecordClient
from core.config import Settings
from core.errors import InvalidArgumentsError, QueryError, RecordNotFoundError
from core.query_builder import NameMatchPolicy
from tools import handlers

NOW = datetime(2025, 7, 15, 12, 0, tzinfo=timezone.utc)
STAMP = "2025-07-15T12:00:00+00:00"


class TestFormatResponse:
    def test_encodes_dates_decimals_and_enums(self) -> None:
        text = handlers.format_response(
            {"when": date(2025, 7, 1), "amount": Decimal("12.5"), "policy": NameMatchPolicy.PREFIX}
        )

        assert json.loads(text) == {"when": "2025-07-01", "amount": 12.5, "policy": "prefix"}

    def test_unknown_type_is_an_error(self) -> None:
        with pytest.raises(TypeError, match="object"):
            handlers.format_response({"value": object()})

    def test_is_pretty_printed(self) -> None:
        assert handlers.format_response({"a": 1}) == '{\n  "a": 1\n}'


class TestRecordOperations:
    @pytest.mark.asyncio
    async def test_invalid_arguments_never_reach_backend(self, client: RecordClient, backend: FakeBackend) -> None:
        with pytest.raises(InvalidArgumentsError):
            await handlers.execute_query(client, {"query": ""})

        assert backend.queries == []

    @pytest.mark.asyncio
    async def test_execute_query_page(self, client: RecordClient, backend: FakeBackend) -> None:
        backend.records = [{"Id": f"001{i:03d}"} for i in range(25)]

        payload = json.loads(
            await handlers.execute_query(
                client, {"query": "SELECT Id FROM Account", "page_size": 10, "page_number": 2}
            )
        )

        assert backend.last_query == "SELECT Id FROM Account LIMIT 10 OFFSET 10"
        assert payload["total_count"] == 25
        assert payload["page_number"] == 2
        assert payload["total_pages"] == 3
        assert payload["results"][0] == {"Id": "001010"}

    @pytest.mark.asyncio
    async def test_query_failure_propagates(self, client: RecordClient, backend: FakeBackend) -> None:
        backend.error = RuntimeError("MALFORMED_QUERY")

        with pytest.raises(QueryError):
            await handlers.execute_query(client, {"query": "SELECT"})

    @pytest.mark.asyncio
    async def test_describe_without_fields(self, client: RecordClient, backend: FakeBackend) -> None:
        backend.describe_result = {"name": "Account", "label": "Account", "queryable": True, "fields": []}

        payload = json.loads(await handlers.describe_object(client, {"object_name": "Account"}))

        assert payload["name"] == "Account"
        assert "fields" not in payload

    @pytest.mark.asyncio
    async def test_create_record(self, client: RecordClient) -> None:
        payload = json.loads(
            await handlers.create_record(client, {"object_name": "Account", "data": {"Name": "Acme"}})
        )

        assert payload == {"success": True, "id": "001000000000001", "errors": []}

    @pytest.mark.asyncio
    async def test_update_requires_record_id(self, client: RecordClient, backend: FakeBackend) -> None:
        with pytest.raises(InvalidArgumentsError, match="record_id"):
            await handlers.update_record(client, {"object_name": "Account", "data": {}})

        assert backend.calls[-1][0] == "login"

    @pytest.mark.asyncio
    async def test_delete_record(self, client: RecordClient) -> None:
        payload = json.loads(
            await handlers.delete_record(client, {"object_name": "Account", "record_id": "001A"})
        )

        assert payload == {"success": True, "errors": []}

    @pytest.mark.asyncio
    async def test_get_user_info(self, client: RecordClient, backend: FakeBackend) -> None:
        backend.identity_result = {"user_id": "005A", "username": "u", "display_name": "U", "email": "e", "organization_id": "00D"}

        payload = json.loads(await handlers.get_user_info(client))

        assert payload["id"] == "005A"

    @pytest.mark.asyncio
    async def test_list_objects(self, client: RecordClient, backend: FakeBackend) -> None:
        backend.sobjects = [{"name": "Account", "label": "Account", "queryable": True}]

        payload = json.loads(await handlers.list_objects(client, {}))

        assert payload["total_count"] == 1
        assert payload["results"][0]["name"] == "Account"
        assert "fields" not in payload["results"][0]


class TestOpportunityOperations:
    @pytest.mark.asyncio
    async def test_details_not_found(self, client: RecordClient) -> None:
        with pytest.raises(RecordNotFoundError, match="Opportunity with ID 006X not found"):
            await handlers.get_record_details(client, {"record_id": "006X"})

    @pytest.mark.asyncio
    async def test_details_formatting(self, client: RecordClient, backend: FakeBackend) -> None:
        backend.records = [{
            "Id": "006A",
            "Name": "Acme Renewal",
            "StageName": "Negotiation",
            "Account": {"Name": "Acme", "Industry": "Technology", "Website": "acme.example"},
            "Owner": {"Name": "Dana Reyes", "Email": "dana@example.com"},
            "OpportunityContactRoles": {"totalSize": 1, "records": [
                {"Contact": {"Name": "Pat Lee", "Email": "pat@example.com"}, "Role": "Decision Maker"},
            ]},
            "Histories": {"totalSize": 2, "records": [
                {"CreatedDate": "2025-06-01T00:00:00.000+0000", "Field": "StageName", "OldValue": "A", "NewValue": "B"},
                {"CreatedDate": "2025-07-01T00:00:00.000+0000", "Field": "Amount", "OldValue": 1, "NewValue": 2},
            ]},
            "Notes": None,
            "Tasks": {"totalSize": 0, "records": []},
        }]

        payload = json.loads(await handlers.get_record_details(client, {"record_id": "006A"}))

        assert "FROM OpportunityContactRoles" in backend.last_query
        assert backend.last_query.endswith("WHERE Id = '006A'")
        assert payload["basic_info"]["stage"] == "Negotiation"
        assert payload["account"] == {"name": "Acme", "industry": "Technology", "website": "acme.example"}
        assert payload["contacts"] == [{"name": "Pat Lee", "email": "pat@example.com", "role": "Decision Maker"}]
        assert [h["field"] for h in payload["history"]] == ["Amount", "StageName"]
        assert payload["notes"] == []

    @pytest.mark.asyncio
    async def test_search_defaults_to_first_page(
        self, client: RecordClient, backend: FakeBackend, make_opportunity: Callable[..., dict]
    ) -> None:
        backend.records = [make_opportunity(name="Github Migration", ExpectedRevenue=5000)]

        payload = json.loads(await handlers.search_records(client, {"name_pattern": "Git"}))

        assert "(Name LIKE '% Git%' OR Name LIKE 'Git%')" in backend.last_query
        assert backend.last_query.endswith("LIMIT 25")
        result = payload["results"][0]
        assert result["name"] == "Github Migration"
        assert result["expected_revenue"] == 5000
        assert result["owner"] == {"name": "Dana Reyes", "email": None}

    @pytest.mark.asyncio
    async def test_search_second_page_from_windowed_backend(
        self, settings: Settings, make_opportunity: Callable[..., dict]
    ) -> None:
        backend = WindowingBackend(records=[make_opportunity(name=f"Deal {i}") for i in range(12)])
        client = RecordClient(backend, settings)
        await client.initialize()

        payload = json.loads(
            await handlers.search_records(client, {"stage": "Prospecting", "page_size": 5, "page_number": 2})
        )

        assert backend.last_query.endswith("LIMIT 5 OFFSET 5")
        assert payload["page_number"] == 2
        assert payload["total_count"] == 10
        assert [r["name"] for r in payload["results"]] == [f"Deal {i}" for i in range(5, 10)]

    @pytest.mark.asyncio
    async def test_search_rejects_bad_date(self, client: RecordClient, backend: FakeBackend) -> None:
        with pytest.raises(InvalidArgumentsError):
            await handlers.search_records(client, {"close_date_start": "01/02/2025"})

        assert backend.queries == []


class TestAnalyzeEngagement:
    @pytest.mark.asyncio
    async def test_success(self, client: RecordClient, backend: FakeBackend, make_task: Callable[..., dict]) -> None:
        backend.records = [
            make_task("[Gong] Discovery call", "2025-07-14T12:00:00.000+0000", type="Call"),
            make_task("[Gong Out] Recap", "2025-07-14T13:00:00.000+0000"),
        ]

        payload = json.loads(await handlers.analyze_engagement(client, {"record_id": "006A"}, now=NOW))

        assert "FROM Task WHERE WhatId = '006A' ORDER BY CreatedDate DESC" in backend.last_query
        assert payload["success"] is True
        assert payload["analysis_date"] == STAMP
        insights = payload["insights"]
        assert insights["call_count"] == 1
        assert insights["email_exchanges"] == {"inbound": 0, "outbound": 1}
        assert insights["last_activity_date"] == "2025-07-14T13:00:00+00:00"

    @pytest.mark.asyncio
    async def test_backend_failure_goes_into_envelope(self, client: RecordClient, backend: FakeBackend) -> None:
        backend.error = RuntimeError("INVALID_FIELD")

        payload = json.loads(await handlers.analyze_engagement(client, {"record_id": "006A"}, now=NOW))

        assert payload == {
            "success": False,
            "error": "SOQL query failed: INVALID_FIELD",
            "record_id": "006A",
            "analysis_date": STAMP,
        }

    @pytest.mark.asyncio
    async def test_invalid_arguments_still_raise(self, client: RecordClient) -> None:
        with pytest.raises(InvalidArgumentsError):
            await handlers.analyze_engagement(client, {})


class TestEnrichRecord:
    @pytest.mark.asyncio
    async def test_success(
        self, client: RecordClient, backend: FakeBackend, make_opportunity: Callable[..., dict]
    ) -> None:
        opportunity = make_opportunity(Id="006R", amount=100000)
        won = [make_opportunity(amount=40000, is_won=True, is_closed=True) for _ in range(2)]
        backend.responder = lambda soql: won if "IsWon = true" in soql else [opportunity]

        payload = json.loads(
            await handlers.enrich_record(
                client, {"record_id": "006R", "include_competitive_intel": True}, now=NOW
            )
        )

        assert "Id != '006R'" in backend.last_query
        assert payload["success"] is True
        assert payload["opportunity_profile"]["amount"] == 100000
        assert payload["market_intelligence"]["similar_deals_analyzed"] == 2
        assert payload["market_intelligence"]["average_deal_size"] == 40000
        assert payload["strategic_insights"][0]["type"] == "deal_size"
        assert payload["best_practices"][-1]["category"] == "Proof of Value"
        assert payload["competitive_intelligence"]["market_activity"]["recent_similar_deals"] == 2
        assert payload["enrichment_date"] == STAMP

    @pytest.mark.asyncio
    async def test_competitive_intel_is_opt_in(
        self, client: RecordClient, backend: FakeBackend, make_opportunity: Callable[..., dict]
    ) -> None:
        backend.records = [make_opportunity(Id="006R")]

        payload = json.loads(await handlers.enrich_record(client, {"record_id": "006R"}, now=NOW))

        assert payload["competitive_intelligence"] is None

    @pytest.mark.asyncio
    async def test_missing_record_goes_into_envelope(self, client: RecordClient) -> None:
        payload = json.loads(await handlers.enrich_record(client, {"record_id": "006X"}, now=NOW))

        assert payload["success"] is False
        assert payload["error"] == "Opportunity with ID 006X not found"
        assert payload["record_id"] == "006X"


class TestFindSimilarRecords:
    @pytest.mark.asyncio
    async def test_with_reference(
        self, client: RecordClient, backend: FakeBackend, make_opportunity: Callable[..., dict]
    ) -> None:
        reference = make_opportunity(Id="006R", amount=33333, industry="Technology")
        candidates = [make_opportunity(amount=33333), make_opportunity(amount=20000, stage="Negotiation")]
        backend.responder = lambda soql: [reference] if "Id = '006R'" in soql else candidates

        payload = json.loads(
            await handlers.find_similar_records(client, {"reference_record_id": "006R", "limit": 10}, now=NOW)
        )

        similar_query = backend.last_query
        assert "Account.Industry = 'Technology'" in similar_query
        assert "Amount >= 9999 AND Amount <= 99999" in similar_query
        assert similar_query.endswith("LIMIT 10")
        assert payload["reference_record"]["id"] == "006R"
        assert payload["results"]["total_found"] == 2
        assert payload["results"]["records"][0]["similarity"] == 100
        assert payload["analysis"]["summary"]["total_opportunities"] == 2
        assert payload["search_date"] == STAMP

    @pytest.mark.asyncio
    async def test_missing_reference_falls_back_to_criteria(self, client: RecordClient, backend: FakeBackend) -> None:
        payload = json.loads(
            await handlers.find_similar_records(
                client, {"reference_record_id": "006X", "industry": "Finance", "include_analysis": False}, now=NOW
            )
        )

        assert len(backend.queries) == 2
        assert payload["success"] is True
        assert payload["reference_record"] is None
        assert payload["search_criteria"] == {"industry": "Finance"}
        assert payload["analysis"] is None

    @pytest.mark.asyncio
    async def test_empty_result_analysis_message(self, client: RecordClient) -> None:
        payload = json.loads(await handlers.find_similar_records(client, {}, now=NOW))

        assert payload["analysis"] == {"message": "No opportunities found for analysis"}


class TestRecordInsights:
    @pytest.mark.asyncio
    async def test_report(
        self, client: RecordClient, backend: FakeBackend, make_opportunity: Callable[..., dict]
    ) -> None:
        backend.records = [
            make_opportunity(amount=1000, is_won=True, is_closed=True, stage="Closed Won"),
            make_opportunity(amount=1000, is_won=True, is_closed=True, stage="Closed Won"),
            make_opportunity(amount=1000, is_closed=True, stage="Closed Lost"),
            make_opportunity(amount=1000, close_date="2025-07-01"),
        ]

        payload = json.loads(
            await handlers.record_insights(client, {"min_amount": 500, "industry": "Technology"}, now=NOW)
        )

        assert "CloseDate >= 2025-07-01" in backend.last_query
        assert backend.last_query.endswith("LIMIT 1000")
        assert payload["success"] is True
        assert payload["timeframe"] == "current_quarter"
        assert payload["total_opportunities"] == 4
        assert payload["data_range"] == {
            "date_filter": "CloseDate >= 2025-07-01",
            "total_records": 4,
            "filters": ["Min Amount: $500", "Industry: Technology"],
        }
        assert payload["core_metrics"]["win_rate"] == 67
        assert payload["pipeline_health"]["categories"]["overdue"]["count"] == 1
        assert [r["category"] for r in payload["strategic_recommendations"]] == ["Pipeline Management"]
        assert payload["generated_at"] == STAMP

    @pytest.mark.asyncio
    async def test_all_time_without_sections(self, client: RecordClient, backend: FakeBackend) -> None:
        payload = json.loads(
            await handlers.record_insights(
                client,
                {
                    "timeframe": "all_time",
                    "include_stage_analysis": False,
                    "include_owner_performance": False,
                    "include_industry_trends": False,
                    "include_pipeline_health": False,
                    "include_conversion_rates": False,
                },
                now=NOW,
            )
        )

        assert " WHERE " not in backend.last_query
        assert payload["data_range"]["date_filter"] == "All time"
        assert payload["data_range"]["filters"] == ["No additional filters"]
        assert "stage_analysis" not in payload
        assert payload["strategic_recommendations"] == [
            {
                "category": "Performance",
                "priority": "high",
                "issue": "Low win rate (0%)",
                "recommendation": "Focus on qualification criteria and competitive differentiation",
                "impact": "Improve deal quality and close rates",
            }
        ]

    @pytest.mark.asyncio
    async def test_backend_failure_goes_into_envelope(self, client: RecordClient, backend: FakeBackend) -> None:
        backend.error = RuntimeError("REQUEST_LIMIT_EXCEEDED")

        payload = json.loads(await handlers.record_insights(client, {}, now=NOW))

        assert payload == {
            "success": False,
            "error": "SOQL query failed: REQUEST_LIMIT_EXCEEDED",
            "generated_at": STAMP,
        }


class TestDocumentOutline:
    @pytest.mark.asyncio
    async def test_no_backend_call(self, client: RecordClient, backend: FakeBackend) -> None:
        payload = json.loads(
            await handlers.generate_document_outline(client, {"record_id": "006A", "output_format": "docx"})
        )

        assert backend.queries == []
        assert payload["steps"][1]["export"]["output_path"] == "business_case_006A.docx"

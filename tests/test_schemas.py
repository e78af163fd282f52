"""Tests for tools/schemas.py."""

import pytest

from core.errors import InvalidArgumentsError
from core.models import PaginationParams
from tools.schemas import (
    DocumentOutlineArgs,
    ExecuteQueryArgs,
    FindSimilarArgs,
    ListObjectsArgs,
    RecordInsightsArgs,
    SearchRecordsArgs,
    validate_args,
)


class TestValidateArgs:
    def test_valid(self) -> None:
        params = validate_args(ExecuteQueryArgs, {"query": "SELECT Id FROM Account", "page_size": 10})

        assert params.query == "SELECT Id FROM Account"
        assert params.pagination() == PaginationParams(page_size=10, page_number=None)

    def test_no_page_fields_means_no_pagination(self) -> None:
        assert validate_args(ListObjectsArgs, None).pagination() is None

    def test_missing_required(self) -> None:
        with pytest.raises(InvalidArgumentsError) as excinfo:
            validate_args(ExecuteQueryArgs, {})

        assert excinfo.value.details[0].startswith("query:")
        assert str(excinfo.value).startswith("Invalid ExecuteQueryArgs parameters: query:")

    def test_blank_string_rejected(self) -> None:
        with pytest.raises(InvalidArgumentsError, match="must not be empty"):
            validate_args(ExecuteQueryArgs, {"query": "   "})

    def test_strict_types(self) -> None:
        with pytest.raises(InvalidArgumentsError, match="page_size"):
            validate_args(ExecuteQueryArgs, {"query": "SELECT Id FROM Account", "page_size": "10"})

    def test_unknown_keys_ignored(self) -> None:
        params = validate_args(ListObjectsArgs, {"page_number": 2, "verbose": True})

        assert params.page_number == 2

    def test_non_mapping_rejected(self) -> None:
        with pytest.raises(InvalidArgumentsError, match="expected an object"):
            validate_args(ListObjectsArgs, ["page_size", 10])


class TestDateFields:
    def test_iso_date_accepted(self) -> None:
        params = validate_args(SearchRecordsArgs, {"close_date_start": "2025-01-01"})

        assert params.close_date_start == "2025-01-01"

    def test_bad_date_rejected(self) -> None:
        with pytest.raises(InvalidArgumentsError, match="close_date_end"):
            validate_args(FindSimilarArgs, {"close_date_end": "next tuesday"})


class TestDefaults:
    def test_find_similar(self) -> None:
        params = validate_args(FindSimilarArgs, {})

        assert params.limit == 50
        assert params.include_analysis is True
        assert params.is_won is None

    @pytest.mark.parametrize("limit", [0, -1, 2001])
    def test_find_similar_limit_bounds(self, limit: int) -> None:
        with pytest.raises(InvalidArgumentsError, match="limit"):
            validate_args(FindSimilarArgs, {"limit": limit})

    def test_insights_timeframe(self) -> None:
        assert validate_args(RecordInsightsArgs, {}).timeframe == "current_quarter"

        with pytest.raises(InvalidArgumentsError, match="timeframe"):
            validate_args(RecordInsightsArgs, {"timeframe": "next_decade"})

    def test_outline_format(self) -> None:
        assert validate_args(DocumentOutlineArgs, {"record_id": "006A"}).output_format == "pdf"

        with pytest.raises(InvalidArgumentsError, match="output_format"):
            validate_args(DocumentOutlineArgs, {"record_id": "006A", "output_format": "pptx"})

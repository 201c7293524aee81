"""
Tests for archive index search.

Scenarios:
- plural/singular type normalization
- total counted before paging, hasMore
- newest archivedAt first
- business date range, metadata filters, title query
- store failure surfaces as ServiceError, not an empty page
"""

import pytest

from workday_tracker.core.errors import NotFoundError, ServiceError, ValidationError
from workday_tracker.models.archive import ARCHIVE_INDEX_COLLECTION
from workday_tracker.services.archive_index_service import search_archive


@pytest.fixture
def populated(make_entry):
    for n in range(25):
        make_entry("ticket", n)
    for n in range(5):
        make_entry("workday", n, metadata={"employee": "janedoe"})


class TestSearchPaging:

    @pytest.mark.asyncio
    async def test_tickets_first_page(self, engine, populated):
        result = await engine.search_archive(type="tickets", limit=10, offset=0)
        assert len(result.items) == 10
        assert result.total == 25
        assert result.has_more is True
        assert all(item.type == "ticket" for item in result.items)

    @pytest.mark.asyncio
    async def test_last_page_has_no_more(self, engine, populated):
        result = await engine.search_archive(type="tickets", limit=10, offset=20)
        assert len(result.items) == 5
        assert result.total == 25
        assert result.has_more is False

    @pytest.mark.asyncio
    async def test_offset_past_end(self, engine, populated):
        result = await engine.search_archive(type="tickets", offset=40)
        assert result.items == []
        assert result.total == 25
        assert result.has_more is False

    @pytest.mark.asyncio
    async def test_default_limit_is_ten(self, engine, populated):
        result = await engine.search_archive()
        assert len(result.items) == 10
        assert result.total == 30

    @pytest.mark.asyncio
    async def test_newest_archived_first(self, engine, populated):
        result = await engine.search_archive(type="tickets", limit=3)
        archived = [item.archived_at for item in result.items]
        assert archived == sorted(archived, reverse=True)
        assert result.items[0].original_id == "ticket-24"


class TestSearchFilters:

    @pytest.mark.asyncio
    async def test_singular_type_accepted(self, engine, populated):
        result = await engine.search_archive(type="workday")
        assert result.total == 5

    @pytest.mark.asyncio
    async def test_date_range_uses_business_date(self, engine, make_entry):
        make_entry("ticket", 0, date="2024-11-30")
        make_entry("ticket", 1, date="2024-12-10")
        make_entry("ticket", 2, date="2024-12-31")
        result = await engine.search_archive(startDate="2024-12-01", endDate="2024-12-31")
        assert {item.date for item in result.items} == {"2024-12-10", "2024-12-31"}

    @pytest.mark.asyncio
    async def test_metadata_filter_exact_and_dotted(self, engine, make_entry):
        make_entry("ticket", 0, metadata={"jobsite": "site-1", "truck": {"number": "Truck-1"}})
        make_entry("ticket", 1, metadata={"jobsite": "site-2", "truck": {"number": "Truck-1"}})
        make_entry("ticket", 2, metadata={"jobsite": "site-1", "truck": {"number": "Truck-2"}})

        result = await engine.search_archive(metadata_filters={"jobsite": "site-1", "truck.number": "Truck-1"})
        assert [item.original_id for item in result.items] == ["ticket-0"]

    @pytest.mark.asyncio
    async def test_title_query_case_insensitive(self, engine, make_entry):
        make_entry("image", 0, title="site-photo.jpg")
        make_entry("image", 1, title="receipt.png")
        result = await engine.search_archive(type="images", query="PHOTO")
        assert [item.title for item in result.items] == ["site-photo.jpg"]

    @pytest.mark.asyncio
    async def test_no_matches_is_empty_not_error(self, engine, populated):
        result = await engine.search_archive(type="images")
        assert result.items == []
        assert result.total == 0
        assert result.has_more is False


class TestSearchErrors:

    @pytest.mark.asyncio
    async def test_store_failure_is_service_error(self, store, populated):
        store.fail_when("count", ARCHIVE_INDEX_COLLECTION)
        with pytest.raises(ServiceError) as exc_info:
            await search_archive(store, type="tickets")
        assert exc_info.value.code == "service/unavailable"
        assert exc_info.value.details["originalError"] == "simulated store fault"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    @pytest.mark.asyncio
    async def test_invalid_params_are_validation_errors(self, engine):
        with pytest.raises(ValidationError):
            await engine.search_archive(type="trucks")
        with pytest.raises(ValidationError):
            await engine.search_archive(limit=0)
        with pytest.raises(ValidationError):
            await engine.search_archive(startDate="12/01/2024")

    @pytest.mark.asyncio
    async def test_get_entry_not_found(self, engine):
        with pytest.raises(NotFoundError):
            await engine.index.get_entry("missing")

"""Batch click processing tests"""
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select

from search_proxy.core.exceptions import RecordStoreUnavailableError
from search_proxy.models.query_record import ClickedResult, QueryRecord
from search_proxy.services.batch_clicks import BatchClickProcessor
from search_proxy.services.click_attribution import AttributionResult, ClickAttributionEngine
from search_proxy.services.record_store import QueryRecordStore


def _clicks():
    return [
        {"query": "nursing", "url": "https://a"},
        {"query": "biology", "url": "https://b"},
        {"url": "https://no-query"},
        {"originalQuery": "chemistry", "clickedUrl": "https://c"},
        {"originalQuery": "physics", "clickedUrl": "https://d"},
    ]


class TestBatchClickProcessor:
    """배치 처리 테스트"""

    @pytest.mark.asyncio
    async def test_malformed_item_skipped(self, session_maker):
        async with session_maker() as session:
            seeded = QueryRecordStore(session).create_record("search", "Nursing")
            await session.commit()
        processor = BatchClickProcessor(ClickAttributionEngine(session_maker))

        result = await processor.attribute_clicks(_clicks())

        assert result.processed_count == 4
        assert result.total_count == 5
        assert result.skipped_count == 1
        assert result.results[2] is None
        assert [f.index for f in result.failures] == [2]
        assert result.failures[0].validation is True

        # Matching click appended to the seeded record
        assert result.results[0].matched is True
        assert result.results[0].record_id == seeded.id

        # Remaining valid clicks each got their own click-only record
        created = [result.results[i] for i in (1, 3, 4)]
        assert all(r.matched is False for r in created)
        assert len({r.record_id for r in created}) == 3

        async with session_maker() as session:
            records = (await session.execute(select(QueryRecord))).scalars().all()
            total_clicks = (await session.execute(select(func.count(ClickedResult.seq)))).scalar()

        by_id = {r.id: r for r in records}
        assert len(records) == 4
        assert total_clicks == 4
        assert [c.url for c in by_id[seeded.id].clicked_results] == ["https://a"]
        for outcome, url in zip(created, ("https://b", "https://c", "https://d")):
            record = by_id[outcome.record_id]
            assert record.handler_category == "click-only"
            assert [c.url for c in record.clicked_results] == [url]
        assert not any(c.url == "https://no-query" for r in records for c in r.clicked_results)

    @pytest.mark.asyncio
    async def test_store_failure_isolated(self):
        async def attribute(click):
            if click.clicked_url == "https://b":
                raise RecordStoreUnavailableError("Record store timed out")
            return AttributionResult(record_id=f"rec-{click.original_query}", matched=True)

        engine = MagicMock()
        engine.attribute_click = AsyncMock(side_effect=attribute)
        processor = BatchClickProcessor(engine)

        result = await processor.attribute_clicks(_clicks())

        assert result.processed_count == 3
        assert result.total_count == 5
        assert result.results[0].record_id == "rec-nursing"
        assert result.results[1] is None
        assert result.results[4].record_id == "rec-physics"
        failures = {f.index: f.validation for f in result.failures}
        assert failures == {1: False, 2: True}

    @pytest.mark.asyncio
    async def test_overrides_applied_to_each_click(self):
        engine = MagicMock()
        engine.attribute_click = AsyncMock(return_value=AttributionResult(record_id="r", matched=False))
        processor = BatchClickProcessor(engine)

        await processor.attribute_clicks(
            [{"query": "a", "url": "https://a"}, {"query": "b", "url": "https://b"}],
            client_ip="192.168.1.7",
        )

        ips = [call.args[0].client_ip for call in engine.attribute_click.await_args_list]
        assert ips == ["192.168.1.7", "192.168.1.7"]

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        processor = BatchClickProcessor(MagicMock())

        result = await processor.attribute_clicks([])

        assert result.processed_count == 0
        assert result.total_count == 0

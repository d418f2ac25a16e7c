"""
Unit tests for the extraction and transformation stages
"""

import asyncio
import pytest
from core.exceptions import (
    ConnectorTimeoutError,
    ExtractionError,
    NetworkError,
    AuthenticationError,
    TransformError,
    DatabaseConnectionError,
)
from ingestion.extraction import ExtractionStage
from ingestion.transformation import TransformationStage
from ingestion.transformers.deriver import KeywordDeriver
from models.raw_data import RawData
from tests.conftest import FakeConnector


class TestExtractionStage:
    """Test raw document persistence"""

    @pytest.mark.asyncio
    async def test_persists_every_document(self, store, youtube_documents):
        stage = ExtractionStage(store, timeout_seconds=1.0)

        result = await stage.run(FakeConnector("youtube", youtube_documents), "covid19", job_id="job-1")

        assert result.records_persisted == 2
        assert result.duplicates == 0
        assert result.raw_ids == [1, 2]
        rows = list(store.raw.values())
        assert [r.source_id for r in rows] == ["c1", "c2"]
        assert all(r.source == "youtube" and r.query == "covid19" for r in rows)
        assert all(r.etl_job_id == "job-1" and r.processed is False for r in rows)
        assert all(r.extracted_at is not None for r in rows)
        assert rows[0].payload == youtube_documents[0].payload

    @pytest.mark.asyncio
    async def test_without_dedup_repeats_are_stored(self, store, youtube_documents):
        stage = ExtractionStage(store, timeout_seconds=1.0, deduplicate=False)

        await stage.run(FakeConnector("youtube", youtube_documents), "covid19")
        await stage.run(FakeConnector("youtube", youtube_documents), "covid19")

        assert len(store.raw) == 4

    @pytest.mark.asyncio
    async def test_with_dedup_repeats_are_counted(self, store, youtube_documents):
        stage = ExtractionStage(store, timeout_seconds=1.0, deduplicate=True)

        await stage.run(FakeConnector("youtube", youtube_documents), "covid19")
        result = await stage.run(FakeConnector("youtube", youtube_documents), "covid19")

        assert len(store.raw) == 2
        assert result.records_persisted == 0
        assert result.duplicates == 2

    @pytest.mark.asyncio
    async def test_connector_failure_keeps_earlier_rows(self, store, youtube_documents):
        connector = FakeConnector(
            "youtube", youtube_documents, error=NetworkError("reset"), fail_after=1
        )
        stage = ExtractionStage(store, timeout_seconds=1.0)

        with pytest.raises(ExtractionError) as exc_info:
            await stage.run(connector, "covid19")

        assert exc_info.value.context["records_persisted"] == 1
        assert exc_info.value.retryable is True
        assert isinstance(exc_info.value.__cause__, NetworkError)
        assert len(store.raw) == 1

    @pytest.mark.asyncio
    async def test_permanent_connector_failure_not_retryable(self, store):
        connector = FakeConnector("youtube", error=AuthenticationError("bad key"))

        with pytest.raises(ExtractionError) as exc_info:
            await ExtractionStage(store, timeout_seconds=1.0).run(connector, "covid19")

        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_stalled_connector_times_out(self, store):
        connector = FakeConnector("news", gate=asyncio.Event())

        with pytest.raises(ExtractionError) as exc_info:
            await ExtractionStage(store, timeout_seconds=0.05).run(connector, "covid19")

        assert isinstance(exc_info.value.__cause__, ConnectorTimeoutError)

    @pytest.mark.asyncio
    async def test_persistence_failure_wrapped(self, store, youtube_documents):
        store.fail_on.add("insert_raw")

        with pytest.raises(ExtractionError) as exc_info:
            await ExtractionStage(store, timeout_seconds=1.0).run(
                FakeConnector("youtube", youtube_documents), "covid19"
            )

        assert isinstance(exc_info.value.__cause__, DatabaseConnectionError)

    @pytest.mark.asyncio
    async def test_stream_close_failure_keeps_connector_error(self, store):
        connector = BrokenCloseConnector(error=NetworkError("reset"))

        with pytest.raises(ExtractionError) as exc_info:
            await ExtractionStage(store, timeout_seconds=1.0).run(connector, "covid19")

        assert isinstance(exc_info.value.__cause__, NetworkError)
        assert connector.close_attempted

    @pytest.mark.asyncio
    async def test_stream_close_failure_after_clean_pull(self, store):
        connector = BrokenCloseConnector()

        result = await ExtractionStage(store, timeout_seconds=1.0).run(connector, "covid19")

        assert result.records_persisted == 0
        assert connector.close_attempted


class BrokenCloseConnector:
    """Document stream whose aclose() raises"""

    source = "news"

    def __init__(self, error=None):
        self.error = error
        self.close_attempted = False

    def fetch(self, query):
        return self

    def __aiter__(self):
        return self

    async def __anext__(self):
        if self.error is not None:
            raise self.error
        raise StopAsyncIteration

    async def aclose(self):
        self.close_attempted = True
        raise RuntimeError("stream already closed")


class BrokenDeriver:
    """Fails on selected raw ids, delegates the rest"""

    def __init__(self, failing_ids, error=None):
        self.failing_ids = set(failing_ids)
        self.error = error
        self.inner = KeywordDeriver()

    def derive(self, raw):
        if raw.id in self.failing_ids:
            raise self.error or TransformError("bad record", context={"raw_data_id": raw.id})
        return self.inner.derive(raw)


async def stored_raw(store, documents, source):
    records = []
    for document in documents:
        record = RawData(source=source, source_id=document.external_id, query="covid19",
                         payload=document.payload, processed=False)
        await store.insert_raw(record)
        records.append(record)
    return records


class TestTransformationStage:
    """Test derivation and persistence of processed records"""

    @pytest.mark.asyncio
    async def test_transforms_and_marks_processed(self, store, news_documents):
        records = await stored_raw(store, news_documents, "news")

        result = await TransformationStage(store).run("news", records, job_id="job-1")

        assert result.succeeded == 2
        assert result.failed == 0
        assert 0.0 < result.average_relevance <= 1.0
        assert [p.raw_data_id for p in store.processed.values()] == [r.id for r in records]
        assert all(p.etl_job_id == "job-1" for p in store.processed.values())
        assert all(r.processed and r.processed_at is not None for r in store.raw.values())

    @pytest.mark.asyncio
    async def test_failed_record_skipped_not_fatal(self, store, news_documents):
        records = await stored_raw(store, news_documents, "news")
        stage = TransformationStage(store, deriver=BrokenDeriver([records[0].id]))

        result = await stage.run("news", records)

        assert result.succeeded == 1
        assert result.failed == 1
        assert result.errors[0]["error_type"] == "TransformError"
        assert len(store.processed) == 1
        assert all(r.processed for r in store.raw.values())

    @pytest.mark.asyncio
    async def test_unexpected_deriver_error_counts_as_failure(self, store, news_documents):
        records = await stored_raw(store, news_documents, "news")
        stage = TransformationStage(store, deriver=BrokenDeriver([records[1].id], error=ZeroDivisionError()))

        result = await stage.run("news", records)

        assert result.succeeded == 1
        assert result.failed == 1

    @pytest.mark.asyncio
    async def test_empty_batch(self, store):
        result = await TransformationStage(store).run("news", [])

        assert result.succeeded == 0
        assert result.average_relevance is None
        assert "mark_raw_processed" not in store.calls

    @pytest.mark.asyncio
    async def test_persistence_failure_propagates(self, store, news_documents):
        records = await stored_raw(store, news_documents, "news")
        store.fail_on.add("insert_processed")

        with pytest.raises(DatabaseConnectionError):
            await TransformationStage(store).run("news", records)

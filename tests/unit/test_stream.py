"""Unit tests for producer to sink composition."""

from collections.abc import AsyncIterator
from typing import Any

import pytest

from stream_to_mongo.errors import FlushError, WriterClosedError
from stream_to_mongo.models import WriterConfig, WriterStatus
from stream_to_mongo.persistence.mongo import MongoStreamWriter
from stream_to_mongo.stream import pipe_records, stream_to_mongo
from tests.fakes import TEST_DB_URL, FakeCollection, FakeMongoClient


class RecordingSink:
    """Sink that remembers the calls it received."""

    def __init__(self) -> None:
        self.records: list[Any] = []
        self.ended = False
        self.closed = False

    async def accept(self, record: dict[str, Any]) -> None:
        self.records.append(record)

    async def end(self) -> None:
        self.ended = True

    async def close(self) -> None:
        self.closed = True


async def async_records(records: list[dict[str, Any]]) -> AsyncIterator[dict[str, Any]]:
    for record in records:
        yield record


class TestPipeRecords:
    """Test cases for pipe_records."""

    @pytest.mark.asyncio
    async def test_sync_source(self, sample_records) -> None:
        sink = RecordingSink()

        count = await pipe_records(sample_records, sink)

        assert count == len(sample_records)
        assert sink.records == sample_records
        assert sink.ended is True
        assert sink.closed is False

    @pytest.mark.asyncio
    async def test_async_source(self, sample_records) -> None:
        sink = RecordingSink()

        count = await pipe_records(async_records(sample_records), sink)

        assert count == len(sample_records)
        assert sink.records == sample_records
        assert sink.ended is True

    @pytest.mark.asyncio
    async def test_source_error_closes_sink(self) -> None:
        """A failing producer closes the sink instead of ending it."""

        def broken_source():
            yield {"secret": "a"}
            raise ValueError("bad input")

        sink = RecordingSink()

        with pytest.raises(ValueError, match="bad input"):
            await pipe_records(broken_source(), sink)

        assert sink.records == [{"secret": "a"}]
        assert sink.closed is True
        assert sink.ended is False


class TestStreamToMongo:
    """Test cases for stream_to_mongo."""

    @pytest.mark.asyncio
    async def test_returns_metrics(
        self, fake_client: FakeMongoClient, collection: FakeCollection, sample_records
    ) -> None:
        config = WriterConfig(db_url=TEST_DB_URL, collection="test", batch_size=10)

        metrics = await stream_to_mongo(
            async_records(sample_records), config, client_factory=fake_client.connect
        )

        assert metrics.records_written == len(sample_records)
        assert metrics.flush_count == 2
        assert len(collection.documents) == len(sample_records)

    @pytest.mark.asyncio
    async def test_propagates_write_error(
        self, fake_client: FakeMongoClient, collection: FakeCollection, sample_records
    ) -> None:
        collection.fail_with = RuntimeError("disk full")
        config = WriterConfig(db_url=TEST_DB_URL, collection="test", batch_size=5)

        with pytest.raises(FlushError, match="disk full"):
            await stream_to_mongo(sample_records, config, client_factory=fake_client.connect)

        assert len(collection.bulk_calls) == 1

    @pytest.mark.asyncio
    async def test_source_error_discards_buffer(
        self, fake_client: FakeMongoClient, collection: FakeCollection
    ) -> None:
        """Records buffered when the producer fails are never written."""

        async def broken_source():
            yield {"secret": "a"}
            raise OSError("connection reset")

        config = WriterConfig(db_url=TEST_DB_URL, collection="test", batch_size=10)
        writer = MongoStreamWriter(config, client_factory=fake_client.connect)

        with pytest.raises(OSError):
            await pipe_records(broken_source(), writer)

        assert collection.bulk_calls == []
        assert writer.status is WriterStatus.CLOSED
        assert fake_client.close_calls == 1
        with pytest.raises(WriterClosedError):
            await writer.wait_closed()

"""Tests for package-level exports."""

from __future__ import annotations


class TestPackageExports:
    """Test cases for top-level package imports."""

    def test_import_writer(self) -> None:
        """MongoStreamWriter should be importable from stream_to_mongo."""
        from stream_to_mongo import MongoStreamWriter

        assert MongoStreamWriter is not None

    def test_import_config(self) -> None:
        """WriterConfig should be importable from stream_to_mongo."""
        from stream_to_mongo import WriterConfig

        assert WriterConfig is not None

    def test_import_operation_type(self) -> None:
        """OperationType should be importable from stream_to_mongo."""
        from stream_to_mongo import OperationType

        assert OperationType is not None

    def test_import_stream_helpers(self) -> None:
        """Stream composition helpers should be importable from stream_to_mongo."""
        from stream_to_mongo import iter_json_records, pipe_records, stream_to_mongo

        assert callable(iter_json_records)
        assert callable(pipe_records)
        assert callable(stream_to_mongo)

    def test_errors_share_base(self) -> None:
        """Every exported error derives from StreamToMongoError."""
        import stream_to_mongo

        for name in stream_to_mongo.__all__:
            obj = getattr(stream_to_mongo, name)
            if isinstance(obj, type) and issubclass(obj, Exception):
                assert issubclass(obj, stream_to_mongo.StreamToMongoError), name

    def test_all_exports_match_declared(self) -> None:
        """All items in __all__ should be importable."""
        import stream_to_mongo

        for name in stream_to_mongo.__all__:
            assert hasattr(stream_to_mongo, name), f"{name} not found in stream_to_mongo"

"""
Unit tests for contextual logging.
"""

import asyncio
import logging

import pytest

from docstore.observability.logging import (clear_correlation_id,
                                            document_context,
                                            get_correlation_id, get_logger,
                                            log_operation,
                                            set_correlation_id)


def emit(caplog, message="hello", **extra):
    """Log through a contextual logger and return the captured record."""
    with caplog.at_level(logging.INFO, logger="docstore.test"):
        get_logger("docstore.test").info(message, extra=extra)
    return caplog.records[-1]


class TestCorrelationId:
    """Test correlation ID context handling."""

    def test_generate_and_clear(self):
        correlation_id = set_correlation_id()

        assert correlation_id
        assert get_correlation_id() == correlation_id

        clear_correlation_id()
        assert get_correlation_id() is None

    def test_explicit_id_is_attached(self, caplog):
        assert set_correlation_id("req-1") == "req-1"
        assert emit(caplog).correlation_id == "req-1"

    @pytest.mark.asyncio
    async def test_isolated_between_tasks(self):
        async def worker(name):
            set_correlation_id(name)
            await asyncio.sleep(0)
            return get_correlation_id()

        assert await asyncio.gather(worker("a"), worker("b")) == ["a", "b"]


class TestDocumentContext:
    """Test document context handling."""

    def test_nested_blocks_restore_outer_context(self, caplog):
        with document_context("users"):
            with document_context("users", "alice", operation="read") as inner:
                assert inner == {
                    "collection": "users", "document_id": "alice", "operation": "read"
                }
                record = emit(caplog)
                assert record.document_id == "alice"
                assert record.operation == "read"

            record = emit(caplog)
            assert record.collection == "users"
            assert not hasattr(record, "document_id")

        assert not hasattr(emit(caplog), "collection")

    def test_context_restored_on_error(self, caplog):
        with pytest.raises(ValueError):
            with document_context("orders", "o1"):
                raise ValueError("boom")

        assert not hasattr(emit(caplog), "collection")

    def test_none_fields_are_omitted(self):
        with document_context("users", None, operation=None) as context:
            assert context == {"collection": "users"}


class TestLogOperation:
    """Test structured operation logging."""

    def test_success_record(self, caplog):
        logger = logging.getLogger("docstore.test")

        with caplog.at_level(logging.DEBUG, logger="docstore.test"):
            log_operation(logger, "read", duration_ms=1.234, collection="users")

        record = caplog.records[-1]
        assert record.getMessage() == "Operation: read (duration: 1.23ms)"
        assert record.operation == "read"
        assert record.success is True
        assert record.duration_ms == 1.23
        assert record.collection == "users"

    def test_failure_record(self, caplog):
        logger = logging.getLogger("docstore.test")

        with caplog.at_level(logging.DEBUG, logger="docstore.test"):
            log_operation(logger, "insert", level=logging.WARNING, success=False)

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.getMessage() == "Operation failed: insert"

    def test_contextual_logger_adds_context(self, caplog):
        set_correlation_id("req-42")

        with document_context("orders"):
            record = emit(caplog, attempt=2)

        assert record.correlation_id == "req-42"
        assert record.collection == "orders"
        assert record.attempt == 2

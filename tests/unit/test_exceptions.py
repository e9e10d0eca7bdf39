"""
Unit tests for custom exceptions.

Tests exception hierarchy and error messages.
"""

import pytest

from docstore.exceptions import (BackendError, CollectionUnavailableError,
                                 ConfigurationError, DecodeError,
                                 DeadlineExceededError,
                                 DocumentAlreadyExistsError,
                                 DocumentNotFoundError, DocumentStoreError,
                                 InitializationError, InvalidDocumentError,
                                 InvalidDocumentIDError, QueryError,
                                 TransactionConflict, TransactionError,
                                 WriteError)


class TestExceptionHierarchy:
    """Test exception inheritance hierarchy."""

    def test_document_store_error_is_runtime_error(self):
        """Test that DocumentStoreError is a RuntimeError."""
        assert isinstance(DocumentStoreError("test error"), RuntimeError)

    @pytest.mark.parametrize(
        "error",
        [
            CollectionUnavailableError("users"),
            DocumentNotFoundError("users", "alice"),
            DocumentAlreadyExistsError("users", "alice"),
            DecodeError("bad payload"),
            QueryError("bad query"),
            BackendError("down"),
            TransactionError("aborted"),
            DeadlineExceededError("too slow"),
            ConfigurationError("config invalid"),
            InitializationError("init failed"),
        ],
    )
    def test_all_errors_share_base(self, error):
        assert isinstance(error, DocumentStoreError)

    def test_backend_error_family(self):
        assert isinstance(WriteError("x"), BackendError)
        assert isinstance(TransactionConflict("x"), BackendError)
        assert not isinstance(TransactionError("x"), BackendError)

    def test_validation_errors_are_value_errors(self):
        assert isinstance(InvalidDocumentError("x"), ValueError)
        assert isinstance(InvalidDocumentIDError("x"), ValueError)


class TestExceptionMessages:
    """Test exception message formatting."""

    def test_base_message(self):
        error = DocumentStoreError("Something went wrong")
        assert str(error) == "Something went wrong"
        assert error.message == "Something went wrong"
        assert error.context == {}

    def test_base_message_with_context(self):
        error = DocumentStoreError("Something went wrong", context={"collection": "users"})
        assert str(error) == "Something went wrong (context: collection=users)"

    def test_collection_unavailable(self):
        error = CollectionUnavailableError("orders")
        assert error.message == "could not find collection: orders"
        assert error.collection == "orders"
        assert error.context["collection"] == "orders"

    def test_collection_unavailable_custom_message(self):
        error = CollectionUnavailableError("a$b", message="Collection name must not contain '$'")
        assert error.message.startswith("Collection name")

    def test_document_already_exists(self):
        error = DocumentAlreadyExistsError("users", "alice")
        assert error.message == "doc already exists with id alice"
        assert error.document_id == "alice"
        assert error.collection == "users"

    def test_document_not_found(self):
        error = DocumentNotFoundError("users", "bob")
        assert "document_id=bob" in str(error)

    def test_query_error_fields(self):
        error = QueryError("bad", field="age", operator="<")
        assert error.field == "age"
        assert error.operator == "<"
        assert error.context == {"field": "age", "operator": "<"}

    def test_transaction_error_attempts(self):
        error = TransactionError("gave up", attempts=5)
        assert error.attempts == 5
        assert "attempts=5" in str(error)

    def test_configuration_error_key(self):
        error = ConfigurationError("bad", config_key="db_name")
        assert error.config_key == "db_name"
        assert error.context["config_key"] == "db_name"

    def test_initialization_error(self):
        error = InitializationError("failed", mongo_uri="mongodb://x", db_name="app")
        assert error.mongo_uri == "mongodb://x"
        assert error.context == {"mongo_uri": "mongodb://x", "db_name": "app"}

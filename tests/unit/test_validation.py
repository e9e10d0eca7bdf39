"""
Unit tests for collection name and document ID validation.
"""

import pytest

from docstore.exceptions import (CollectionUnavailableError,
                                 InvalidDocumentIDError)
from docstore.utils import validate_collection_name, validate_document_id


class TestValidateCollectionName:
    """Test validate_collection_name()."""

    @pytest.mark.parametrize("name", ["users", "user_events", "a.b", "x" * 255])
    def test_valid(self, name):
        assert validate_collection_name(name) == name

    @pytest.mark.parametrize(
        "name", ["", None, 42, "x" * 256, "bad$name", "nul\x00byte", "system.indexes"]
    )
    def test_invalid(self, name):
        with pytest.raises(CollectionUnavailableError):
            validate_collection_name(name)


class TestValidateDocumentId:
    """Test validate_document_id()."""

    @pytest.mark.parametrize("document_id", ["alice", "507f1f77bcf86cd799439011", "a" * 1024])
    def test_valid(self, document_id):
        assert validate_document_id(document_id) == document_id

    @pytest.mark.parametrize("document_id", ["", None, 7, "a" * 1025, "users/alice"])
    def test_invalid(self, document_id):
        with pytest.raises(InvalidDocumentIDError):
            validate_document_id(document_id)

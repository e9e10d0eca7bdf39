"""
Input validation utilities for DOCSTORE.

Shared by the client and the backends so that both reject the same
collection names and document IDs.
"""

import logging

from ..constants import (
    MAX_COLLECTION_NAME_LENGTH,
    MAX_DOCUMENT_ID_LENGTH,
    RESERVED_COLLECTION_PREFIXES,
)
from ..exceptions import CollectionUnavailableError, InvalidDocumentIDError

logger = logging.getLogger(__name__)


def validate_collection_name(name: str) -> str:
    """
    Validate a collection name.

    Args:
        name: Collection name to validate

    Returns:
        Validated collection name

    Raises:
        CollectionUnavailableError: If the name cannot name a collection
    """
    if not isinstance(name, str) or not name:
        raise CollectionUnavailableError(
            str(name), message="Collection name must be a non-empty string"
        )

    if len(name) > MAX_COLLECTION_NAME_LENGTH:
        raise CollectionUnavailableError(
            name,
            message=f"Collection name too long (max {MAX_COLLECTION_NAME_LENGTH} characters)",
        )

    if "$" in name or "\x00" in name:
        raise CollectionUnavailableError(
            name, message="Collection name must not contain '$' or null characters"
        )

    if name.startswith(RESERVED_COLLECTION_PREFIXES):
        raise CollectionUnavailableError(
            name, message=f"Collection name '{name}' uses a reserved prefix"
        )

    return name


def validate_document_id(document_id: str) -> str:
    """
    Validate a document ID.

    Raises:
        InvalidDocumentIDError: If the ID is empty, too long, not a string,
            or contains '/'
    """
    if not isinstance(document_id, str) or not document_id:
        raise InvalidDocumentIDError(
            "Document ID must be a non-empty string",
            context={"document_id": repr(document_id)},
        )

    if len(document_id) > MAX_DOCUMENT_ID_LENGTH:
        raise InvalidDocumentIDError(
            f"Document ID too long (max {MAX_DOCUMENT_ID_LENGTH} characters)",
            context={"document_id": document_id[:32] + "..."},
        )

    if "/" in document_id:
        raise InvalidDocumentIDError(
            "Document ID must not contain '/'", context={"document_id": document_id}
        )

    return document_id

"""
Custom exceptions for DOCSTORE.

Every error raised by the client derives from DocumentStoreError, which
keeps backward compatibility with RuntimeError and carries a context
dictionary (collection, document_id, operation, ...).
"""

from typing import Any, Dict, Optional


class DocumentStoreError(RuntimeError):
    """
    Base exception for document store errors.

    Attributes:
        message: Error message
        context: Optional dictionary with additional context (collection,
                 document_id, operation, etc.)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: Error message
            context: Optional dictionary with additional context information
        """
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class CollectionUnavailableError(DocumentStoreError):
    """
    Raised when a collection name does not resolve to a collection.

    Attributes:
        collection: The collection name that failed to resolve
    """

    def __init__(
        self,
        collection: str,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        context["collection"] = collection
        super().__init__(message or f"could not find collection: {collection}", context=context)
        self.collection = collection


class DocumentNotFoundError(DocumentStoreError):
    """Raised when a read targets a document that does not exist."""

    def __init__(
        self,
        collection: str,
        document_id: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        context.update({"collection": collection, "document_id": document_id})
        super().__init__("Document not found", context=context)
        self.collection = collection
        self.document_id = document_id


class DocumentAlreadyExistsError(DocumentStoreError):
    """
    Raised when a conditional insert finds its target ID occupied.

    Attributes:
        collection: Collection of the conflicting document
        document_id: The ID that is already taken
    """

    def __init__(
        self,
        collection: str,
        document_id: str,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        context.update({"collection": collection, "document_id": document_id})
        super().__init__(f"doc already exists with id {document_id}", context=context)
        self.collection = collection
        self.document_id = document_id


class DecodeError(DocumentStoreError):
    """Raised when a stored payload cannot be decoded into a mapping."""


class InvalidDocumentError(DocumentStoreError, ValueError):
    """Raised when a payload cannot be encoded for storage."""


class InvalidDocumentIDError(DocumentStoreError, ValueError):
    """Raised when a document ID is malformed."""


class QueryError(DocumentStoreError):
    """
    Raised when a predicate is unsupported or malformed.

    Attributes:
        field: Field path of the offending predicate (if available)
        operator: Operator of the offending predicate (if available)
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        operator: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if field is not None:
            context["field"] = field
        if operator is not None:
            context["operator"] = operator
        super().__init__(message, context=context)
        self.field = field
        self.operator = operator


class BackendError(DocumentStoreError):
    """Raised for genuine backend failures (transport, permissions, server errors)."""


class WriteError(BackendError):
    """Raised when the backend fails to store a new document."""


class TransactionConflict(BackendError):
    """
    Raised by a backend when a transaction lost a race and may be retried.

    The conditional insert retries these transparently; callers only see
    them wrapped in TransactionError once the attempts are exhausted.
    """


class TransactionError(DocumentStoreError):
    """
    Raised when a transaction aborts for a reason other than an occupied ID.

    Attributes:
        attempts: Number of attempts made before giving up
    """

    def __init__(
        self,
        message: str,
        attempts: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if attempts is not None:
            context["attempts"] = attempts
        super().__init__(message, context=context)
        self.attempts = attempts


class DeadlineExceededError(DocumentStoreError):
    """Raised when the caller-supplied deadline fires before an operation completes."""


class ConfigurationError(DocumentStoreError):
    """
    Raised when configuration is invalid or missing.

    Attributes:
        config_key: Configuration key that caused the error (if available)
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if config_key:
            context["config_key"] = config_key
        super().__init__(message, context=context)
        self.config_key = config_key


class InitializationError(DocumentStoreError):
    """
    Raised when a backend fails to connect.

    Attributes:
        mongo_uri: MongoDB connection URI (if available)
        db_name: Database name (if available)
    """

    def __init__(
        self,
        message: str,
        mongo_uri: Optional[str] = None,
        db_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if mongo_uri:
            context["mongo_uri"] = mongo_uri
        if db_name:
            context["db_name"] = db_name
        super().__init__(message, context=context)
        self.mongo_uri = mongo_uri
        self.db_name = db_name

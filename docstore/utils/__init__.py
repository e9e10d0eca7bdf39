"""
Utility functions for DOCSTORE.
"""

from .validation import validate_collection_name, validate_document_id

__all__ = [
    "validate_collection_name",
    "validate_document_id",
]

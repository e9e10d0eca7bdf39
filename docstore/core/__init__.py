"""
Core document handling: payload codec and predicate translation.
"""

from .codec import DocumentData, decode_document, encode_document, encode_value
from .query import Operator, Predicate, resolve_field, values_equal

__all__ = [
    # Codec
    "DocumentData",
    "encode_document",
    "encode_value",
    "decode_document",
    # Queries
    "Operator",
    "Predicate",
    "resolve_field",
    "values_equal",
]

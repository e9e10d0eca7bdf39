"""
Document codec.

Explicit encode/decode boundary between caller payloads and what a backend
stores. Callers hand in and get back plain ``dict[str, Any]`` documents whose
values are limited to:

    None, bool, int (64-bit), float, Decimal, str, bytes,
    timezone-aware datetime, list, nested mapping

encode_document() validates and copies a payload before it reaches a
backend. Datetimes are normalised to UTC at millisecond precision, which is
what BSON stores, so every backend hands back the same value.
decode_document() turns whatever a backend returned into that shape again
(BSON ObjectId -> str, Decimal128 -> Decimal, ``_id`` stripped) or raises
DecodeError.
"""

from collections.abc import Mapping
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from bson import ObjectId
from bson.codec_options import TypeCodec, TypeRegistry
from bson.decimal128 import Decimal128

from ..constants import ID_FIELD, MAX_INT64, MIN_INT64
from ..exceptions import DecodeError, InvalidDocumentError

DocumentData = dict[str, Any]

_SCALAR_TYPES = (type(None), bool, float, str, bytes)

_DECODED_TYPES = _SCALAR_TYPES + (int, datetime, Decimal)


class DecimalCodec(TypeCodec):
    """Store Decimal as BSON Decimal128 and read Decimal128 back as Decimal."""

    python_type = Decimal
    bson_type = Decimal128

    def transform_python(self, value: Decimal) -> Decimal128:
        return Decimal128(value)

    def transform_bson(self, value: Decimal128) -> Decimal:
        return value.to_decimal()


BSON_TYPE_REGISTRY = TypeRegistry([DecimalCodec()])
"""Type registry for MongoDB clients, so Decimal values round-trip."""


def _check_key(key: Any, path: str, top_level: bool) -> None:
    if not isinstance(key, str):
        raise InvalidDocumentError(
            f"Field names must be strings, got {type(key).__name__}", context={"path": path}
        )
    if not key:
        raise InvalidDocumentError("Field names must not be empty", context={"path": path})
    if key.startswith("$"):
        raise InvalidDocumentError(
            f"Field name '{key}' must not start with '$'", context={"path": path}
        )
    if "." in key:
        raise InvalidDocumentError(
            f"Field name '{key}' must not contain '.'", context={"path": path}
        )
    if top_level and key == ID_FIELD:
        raise InvalidDocumentError(
            f"Field name '{ID_FIELD}' is reserved for the document ID", context={"path": path}
        )


def _encode_datetime(value: datetime, path: str) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise InvalidDocumentError(
            "Datetime values must be timezone-aware", context={"path": path}
        )
    value = value.astimezone(timezone.utc)
    return value.replace(microsecond=value.microsecond - value.microsecond % 1000)


def _encode_value(value: Any, path: str) -> Any:
    if isinstance(value, _SCALAR_TYPES):
        return value
    if isinstance(value, int):
        if not MIN_INT64 <= value <= MAX_INT64:
            raise InvalidDocumentError(
                "Integer does not fit in 64 bits", context={"path": path}
            )
        return value
    if isinstance(value, datetime):
        return _encode_datetime(value, path)
    if isinstance(value, Decimal):
        try:
            Decimal128(value)
        except (ArithmeticError, ValueError) as e:
            raise InvalidDocumentError(
                f"Decimal {value} cannot be stored as a 128-bit decimal",
                context={"path": path},
            ) from e
        return value
    if isinstance(value, Mapping):
        encoded = {}
        for key, item in value.items():
            child = f"{path}.{key}"
            _check_key(key, child, top_level=False)
            encoded[key] = _encode_value(item, child)
        return encoded
    if isinstance(value, (list, tuple)):
        return [_encode_value(item, f"{path}[{i}]") for i, item in enumerate(value)]
    raise InvalidDocumentError(
        f"Unsupported value type {type(value).__name__}", context={"path": path}
    )


def encode_value(value: Any, path: str = "value") -> Any:
    """
    Validate and copy a single value (e.g. a query operand).

    Raises:
        InvalidDocumentError: If the value holds unsupported types
    """
    return _encode_value(value, path)


def encode_document(data: Any) -> DocumentData:
    """
    Validate a caller payload and return a deep copy ready for storage.

    Raises:
        InvalidDocumentError: If the payload is not a mapping, has invalid
            field names, or holds values that cannot be stored (unsupported
            types, integers beyond 64 bits, naive datetimes)
    """
    if not isinstance(data, Mapping):
        raise InvalidDocumentError(
            f"Document data must be a mapping, got {type(data).__name__}"
        )
    encoded: DocumentData = {}
    for key, value in data.items():
        _check_key(key, str(key), top_level=True)
        encoded[key] = _encode_value(value, key)
    return encoded


def _decode_value(value: Any, path: str) -> Any:
    if isinstance(value, _DECODED_TYPES):
        return value
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, Mapping):
        decoded = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise DecodeError(
                    f"Stored field name is not a string: {key!r}", context={"path": path}
                )
            decoded[key] = _decode_value(item, f"{path}.{key}")
        return decoded
    if isinstance(value, (list, tuple)):
        return [_decode_value(item, f"{path}[{i}]") for i, item in enumerate(value)]
    raise DecodeError(
        f"Stored value of type {type(value).__name__} cannot be decoded",
        context={"path": path},
    )


def decode_document(raw: Any, document_id: str | None = None) -> DocumentData:
    """
    Convert a stored payload into a plain document mapping.

    Args:
        raw: Payload as returned by the backend
        document_id: ID of the document, used for error context

    Raises:
        DecodeError: If the payload is not a mapping or holds values that
            cannot be represented
    """
    context = {"document_id": document_id} if document_id is not None else {}
    if not isinstance(raw, Mapping):
        raise DecodeError(
            f"Stored document is not a mapping (got {type(raw).__name__})", context=context
        )
    decoded: DocumentData = {}
    try:
        for key, value in raw.items():
            if key == ID_FIELD:
                continue
            if not isinstance(key, str):
                raise DecodeError(f"Stored field name is not a string: {key!r}")
            decoded[key] = _decode_value(value, key)
    except DecodeError as e:
        e.context.update(context)
        raise
    return decoded

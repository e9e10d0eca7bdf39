"""
Predicate query translation.

A Predicate is a validated (field, operator, value) triple. It can be
translated into a MongoDB filter document (to_mongo_filter) or evaluated
directly against a document mapping (matches), and both renderings follow
the same rules:

- field paths are dotted paths into nested mappings
- a missing field never matches; ``!=`` and ``not-in`` also skip null fields
- ordering operators only compare values of the same type class
  (numbers, strings, bytes, datetimes)
- booleans are never equal to numbers
- arrays compare as whole values: ``==``, ``in`` and the ordering
  operators never match an array field against a scalar operand
- ``array-contains`` / ``array-contains-any`` only match list fields

Operands are always wrapped in explicit operators ($eq, $in, ...) so a
mapping value can never be interpreted as query syntax.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from ..constants import ID_FIELD, MAX_DISJUNCTION_VALUES
from ..exceptions import InvalidDocumentError, QueryError
from .codec import encode_value

logger = logging.getLogger(__name__)


class Operator(str, Enum):
    """Supported predicate operators."""

    EQUAL = "=="
    NOT_EQUAL = "!="
    LESS_THAN = "<"
    LESS_THAN_OR_EQUAL = "<="
    GREATER_THAN = ">"
    GREATER_THAN_OR_EQUAL = ">="
    ARRAY_CONTAINS = "array-contains"
    ARRAY_CONTAINS_ANY = "array-contains-any"
    IN = "in"
    NOT_IN = "not-in"

    @classmethod
    def parse(cls, value: "Operator | str") -> "Operator":
        """
        Resolve an operator from its symbol, member name or short alias.

        Examples: "==", "EQUAL", "eq", "not-in", "NOT_IN", "not_in".

        Raises:
            QueryError: If the operator is not supported
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            text = value.strip()
            try:
                return cls(text)
            except ValueError:
                pass
            key = text.lower().replace("_", "-")
            if key in _ALIASES:
                return _ALIASES[key]
            try:
                return cls(key)
            except ValueError:
                pass
            member = cls.__members__.get(text.upper().replace("-", "_"))
            if member is not None:
                return member
        raise QueryError(f"Unsupported query operator: {value!r}", operator=str(value))


_ALIASES: dict[str, Operator] = {
    "=": Operator.EQUAL,
    "eq": Operator.EQUAL,
    "ne": Operator.NOT_EQUAL,
    "<>": Operator.NOT_EQUAL,
    "lt": Operator.LESS_THAN,
    "le": Operator.LESS_THAN_OR_EQUAL,
    "lte": Operator.LESS_THAN_OR_EQUAL,
    "gt": Operator.GREATER_THAN,
    "ge": Operator.GREATER_THAN_OR_EQUAL,
    "gte": Operator.GREATER_THAN_OR_EQUAL,
    "nin": Operator.NOT_IN,
}

_ORDERING = {
    Operator.LESS_THAN: "$lt",
    Operator.LESS_THAN_OR_EQUAL: "$lte",
    Operator.GREATER_THAN: "$gt",
    Operator.GREATER_THAN_OR_EQUAL: "$gte",
}

_DISJUNCTIVE = (Operator.IN, Operator.NOT_IN, Operator.ARRAY_CONTAINS_ANY)

_ORDERABLE_CLASSES = ("number", "string", "bytes", "timestamp")


def _not_array() -> dict[str, Any]:
    return {"$not": {"$type": "array"}}


def _type_class(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, (int, float, Decimal)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, bytes):
        return "bytes"
    if isinstance(value, datetime):
        return "timestamp"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, Mapping):
        return "map"
    return "unknown"


def values_equal(left: Any, right: Any) -> bool:
    """Compare two document values with type-aware equality."""
    kind = _type_class(left)
    if kind != _type_class(right):
        return False
    if kind == "array":
        return len(left) == len(right) and all(
            values_equal(a, b) for a, b in zip(left, right)
        )
    if kind == "map":
        return left.keys() == right.keys() and all(
            values_equal(left[k], right[k]) for k in left
        )
    return left == right


def _compare(left: Any, right: Any, operator: Operator) -> bool:
    kind = _type_class(left)
    if kind not in _ORDERABLE_CLASSES or kind != _type_class(right):
        return False
    try:
        if operator is Operator.LESS_THAN:
            return left < right
        if operator is Operator.LESS_THAN_OR_EQUAL:
            return left <= right
        if operator is Operator.GREATER_THAN:
            return left > right
        return left >= right
    except TypeError:
        # naive vs aware datetimes
        return False


def resolve_field(document: Mapping[str, Any], path: str) -> tuple[bool, Any]:
    """
    Walk a dotted field path through nested mappings.

    Returns:
        (found, value); found is False when any segment is missing
    """
    current: Any = document
    for segment in path.split("."):
        if not isinstance(current, Mapping) or segment not in current:
            return False, None
        current = current[segment]
    return True, current


def _validate_field(field: Any) -> str:
    if not isinstance(field, str) or not field:
        raise QueryError("Field path must be a non-empty string", field=str(field))
    segments = field.split(".")
    for segment in segments:
        if not segment:
            raise QueryError(f"Field path '{field}' has an empty segment", field=field)
        if segment.startswith("$"):
            raise QueryError(
                f"Field path '{field}' must not contain '$'-prefixed segments", field=field
            )
    if segments[0] == ID_FIELD:
        raise QueryError(f"Field '{ID_FIELD}' is reserved for the document ID", field=field)
    return field


@dataclass(frozen=True)
class Predicate:
    """
    A validated query predicate.

    Build instances with Predicate.build(), which checks the field path and
    that the value suits the operator.

    Example:
        predicate = Predicate.build("status", "==", "active")
        predicate.to_mongo_filter()
        # {"status": {"$eq": "active", "$not": {"$type": "array"}}}
        predicate.matches({"status": "active"})  # True
    """

    field: str
    operator: Operator
    value: Any

    @classmethod
    def build(cls, field: str, operator: "Operator | str", value: Any) -> "Predicate":
        """
        Validate and build a predicate.

        Raises:
            QueryError: If the operator is unsupported or the value does not
                suit it
        """
        field = _validate_field(field)
        op = Operator.parse(operator)

        try:
            value = encode_value(value, field)
        except InvalidDocumentError as e:
            raise QueryError(
                f"Unsupported query value: {e.message}", field=field, operator=op.value
            ) from e

        if op in _DISJUNCTIVE:
            if not isinstance(value, list):
                raise QueryError(
                    f"Operator '{op.value}' requires a list of values",
                    field=field,
                    operator=op.value,
                )
            if not value:
                raise QueryError(
                    f"Operator '{op.value}' requires at least one value",
                    field=field,
                    operator=op.value,
                )
            if len(value) > MAX_DISJUNCTION_VALUES:
                raise QueryError(
                    f"Operator '{op.value}' accepts at most {MAX_DISJUNCTION_VALUES} values, "
                    f"got {len(value)}",
                    field=field,
                    operator=op.value,
                )
        elif op in _ORDERING:
            if _type_class(value) not in _ORDERABLE_CLASSES:
                raise QueryError(
                    f"Operator '{op.value}' requires a number, string, bytes or datetime "
                    f"value, got {type(value).__name__}",
                    field=field,
                    operator=op.value,
                )

        return cls(field=field, operator=op, value=value)

    def _exclusion_filter(self, values: list[Any]) -> dict[str, Any]:
        """Filter for != and not-in: present, non-null and equal to none of ``values``."""
        excluded = list(values)
        if not any(v is None for v in excluded):
            # $nin with null also excludes missing fields
            excluded.append(None)
        condition = {self.field: {"$nin": excluded}}
        if any(isinstance(v, list) for v in values):
            return condition
        # $nin looks inside arrays; an array never equals a scalar operand
        return {"$or": [{self.field: {"$type": "array"}}, condition]}

    def to_mongo_filter(self) -> dict[str, Any]:
        """
        Render the predicate as a MongoDB filter document.

        MongoDB applies $eq, $in and the ordering operators to each element
        of an array field. Scalar operands therefore carry a
        ``$not: {$type: "array"}`` guard so arrays are compared as whole
        values, as matches() does.
        """
        op = self.operator
        value = self.value

        if op is Operator.EQUAL:
            condition: dict[str, Any] = {"$eq": value}
            if value is None:
                condition["$exists"] = True
            if not isinstance(value, list):
                condition.update(_not_array())
        elif op is Operator.NOT_EQUAL:
            return self._exclusion_filter([value])
        elif op in _ORDERING:
            condition = {_ORDERING[op]: value, **_not_array()}
        elif op is Operator.ARRAY_CONTAINS:
            condition = {"$elemMatch": {"$eq": value}}
        elif op is Operator.ARRAY_CONTAINS_ANY:
            condition = {"$elemMatch": {"$in": list(value)}}
        elif op is Operator.IN:
            condition = {"$in": list(value)}
            if any(v is None for v in value):
                condition["$exists"] = True
            if not any(isinstance(v, list) for v in value):
                condition.update(_not_array())
        elif op is Operator.NOT_IN:
            return self._exclusion_filter(list(value))
        else:
            raise QueryError(f"Unsupported query operator: {op!r}", field=self.field)

        return {self.field: condition}

    def matches(self, document: Mapping[str, Any]) -> bool:
        """Evaluate the predicate against a decoded document."""
        found, actual = resolve_field(document, self.field)
        if not found:
            return False

        op = self.operator
        if op is Operator.EQUAL:
            return values_equal(actual, self.value)
        if op is Operator.NOT_EQUAL:
            return actual is not None and not values_equal(actual, self.value)
        if op in _ORDERING:
            return _compare(actual, self.value, op)
        if op is Operator.ARRAY_CONTAINS:
            return isinstance(actual, list) and any(
                values_equal(item, self.value) for item in actual
            )
        if op is Operator.ARRAY_CONTAINS_ANY:
            return isinstance(actual, list) and any(
                values_equal(item, candidate) for item in actual for candidate in self.value
            )
        if op is Operator.IN:
            return any(values_equal(actual, candidate) for candidate in self.value)
        if op is Operator.NOT_IN:
            return actual is not None and not any(
                values_equal(actual, candidate) for candidate in self.value
            )
        raise QueryError(f"Unsupported query operator: {op!r}", field=self.field)

    def describe(self) -> str:
        return f"{self.field} {self.operator.value} {self.value!r}"

"""
Normalize loosely-typed source rows into plain Python values.

Warehouse rows may carry date values wrapped in carrier objects (anything
exposing a ``.value`` string, or a ``{"value": ...}`` mapping) and numerics
as strings or Decimals. Each entity declares a static field spec mapping a
field name to its kind; fields not named in the spec pass through untouched.
"""

from typing import Any, Dict, Iterable, Mapping, Optional
from datetime import date, datetime
from decimal import Decimal
import enum

from core.exceptions import NormalizationError, ValidationError


class FieldKind(str, enum.Enum):
    """How a source field is normalized"""
    DATE = "date"
    NUMERIC = "numeric"
    PASSTHROUGH = "passthrough"


FieldSpec = Mapping[str, FieldKind]


def _unwrap(value: Any) -> Any:
    """Return the payload of a carrier object, or the value itself."""
    if isinstance(value, Mapping) and "value" in value:
        return value["value"]
    if isinstance(value, (str, bytes, int, float, Decimal, date)) or value is None:
        return value
    if hasattr(value, "value"):
        return value.value
    return value


def normalize_date(value: Any) -> Optional[str]:
    """
    Unwrap a date-like value into an ISO-8601 string.

    Plain strings are returned unchanged; date and datetime objects are
    rendered with ``isoformat()``.
    """
    value = _unwrap(value)
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def normalize_numeric(value: Any, field_name: str = None) -> Optional[float]:
    """
    Parse a numeric value to float.

    None stays None and empty strings become None; nothing is coerced to 0.

    Raises:
        NormalizationError: If the value is not a number
    """
    value = _unwrap(value)
    if value is None:
        return None
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, str):
        if not value.strip():
            return None
        try:
            return float(value.strip())
        except ValueError as e:
            raise NormalizationError(
                f"Cannot parse {value!r} as a number",
                context={"field_name": field_name, "field_kind": FieldKind.NUMERIC.value},
                original_exception=e
            )
    raise NormalizationError(
        f"Unsupported numeric value of type {type(value).__name__}",
        context={"field_name": field_name, "field_kind": FieldKind.NUMERIC.value}
    )


def normalize(row: Mapping[str, Any], field_spec: FieldSpec) -> Dict[str, Any]:
    """
    Return a normalized copy of ``row``. The input is never mutated.

    Fields absent from ``row`` are not added, fields absent from
    ``field_spec`` are copied as-is.
    """
    result = dict(row)
    for field_name, kind in field_spec.items():
        if field_name not in result:
            continue
        if kind == FieldKind.DATE:
            result[field_name] = normalize_date(result[field_name])
        elif kind == FieldKind.NUMERIC:
            result[field_name] = normalize_numeric(result[field_name], field_name)
    return result


def require_fields(record: Mapping[str, Any], fields: Iterable[str], entity: str):
    """
    Check that every required field carries a non-empty value.

    Raises:
        ValidationError: Listing the missing fields
    """
    missing = [f for f in fields if record.get(f) is None or record.get(f) == ""]
    if missing:
        raise ValidationError(
            f"{entity} record is missing required fields: {', '.join(missing)}",
            context={"entity": entity, "missing_fields": missing}
        )

"""Legacy field-type resolution.

Template authors have used a number of field-type spellings over time. They
are modelled as the closed `LegacyFieldType` enum and mapped onto the four
`ResponseType` members with an exhaustive `match`, so adding a legacy member
without a mapping is caught by type checkers through `assert_never`.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional, assert_never

from fleetcheck.models.template import ResponseType

logger = logging.getLogger(__name__)


class LegacyFieldType(str, Enum):
    TEXT = "text"
    TEXTAREA = "textarea"
    DATE = "date"
    DATETIME = "datetime"
    YES_NO = "yes_no"
    BOOLEAN = "boolean"
    NUMBER = "number"
    INTEGER = "integer"
    DECIMAL = "decimal"
    TABLE = "table"
    FILE = "file"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"


def to_response_type(field_type: LegacyFieldType) -> ResponseType:
    match field_type:
        case LegacyFieldType.TEXT | LegacyFieldType.TEXTAREA:
            return ResponseType.TEXT
        case LegacyFieldType.NUMBER | LegacyFieldType.INTEGER | LegacyFieldType.DECIMAL:
            return ResponseType.TEXT
        case LegacyFieldType.FILE | LegacyFieldType.SELECT | LegacyFieldType.RADIO:
            return ResponseType.TEXT
        case LegacyFieldType.DATE | LegacyFieldType.DATETIME:
            return ResponseType.DATE
        case LegacyFieldType.YES_NO | LegacyFieldType.BOOLEAN | LegacyFieldType.CHECKBOX:
            return ResponseType.YES_NO_NA
        case LegacyFieldType.TABLE:
            return ResponseType.TABLE
        case _:
            assert_never(field_type)


def resolve_response_type(
    explicit: Any = None,
    field_type: Any = None,
    *,
    default: ResponseType = ResponseType.TEXT,
) -> ResponseType:
    """Pick the response type for one template entry.

    An explicit `response_type` already in the enum wins. Otherwise the legacy
    `field_type` string goes through the lookup; unknown strings fall back to
    text. With neither present, `default` applies.
    """
    if isinstance(explicit, str) and explicit.strip():
        try:
            return ResponseType(explicit.strip().lower())
        except ValueError:
            # Older templates put legacy spellings in response_type as well
            field_type = field_type or explicit
    if isinstance(field_type, str) and field_type.strip():
        legacy = _parse_legacy(field_type)
        if legacy is None:
            logger.warning("field_type_unknown value=%s default=text", field_type)
            return ResponseType.TEXT
        return to_response_type(legacy)
    return default


def _parse_legacy(value: str) -> Optional[LegacyFieldType]:
    try:
        return LegacyFieldType(value.strip().lower())
    except ValueError:
        return None


__all__ = ["LegacyFieldType", "to_response_type", "resolve_response_type"]

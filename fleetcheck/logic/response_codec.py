"""Conversion between form answers and the persisted wire format.

A wire response carries its value in exactly one of `yes_no_na_value`,
`text_value`, `date_value` or `table_data`, chosen by the item's response
type. Only meaningful responses are ever sent to the store.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from fleetcheck.logic.errors import ChecklistValidationError
from fleetcheck.models.checklist import FormAnswer, WireResponse
from fleetcheck.models.template import ChecklistItem, NormalizedTemplate, ResponseType

logger = logging.getLogger(__name__)

YES = "Yes"
NO = "No"
NOT_APPLICABLE = "N/A"

_YES_NO_NA = {
    "yes": YES,
    "y": YES,
    "no": NO,
    "n": NO,
    "n/a": NOT_APPLICABLE,
    "na": NOT_APPLICABLE,
    "not applicable": NOT_APPLICABLE,
}

AnswerLike = Union[FormAnswer, Mapping[str, Any], str, date, list, None]


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _row_has_content(row: Mapping[str, Any]) -> bool:
    return any(not _blank(v) for k, v in row.items() if not str(k).startswith("_"))


def is_meaningful(response: WireResponse) -> bool:
    """True when at least one value field holds real content.

    Remarks alone never make a response meaningful.
    """
    if response.yes_no_na_value is not None and response.yes_no_na_value != "":
        return True
    if response.text_value is not None and response.text_value.strip():
        return True
    if response.date_value:
        return True
    if response.table_data:
        return any(_row_has_content(row) for row in response.table_data if isinstance(row, Mapping))
    return False


def canonical_yes_no_na(value: Any, item_id: str = "") -> str:
    if isinstance(value, bool):
        return YES if value else NO
    token = str(value).strip().lower()
    try:
        return _YES_NO_NA[token]
    except KeyError:
        raise ChecklistValidationError(
            f"item {item_id}: expected Yes, No or N/A, got {value!r}", item_id=item_id
        ) from None


def _date_value(value: Any, item_id: str) -> str:
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    head = text[:10]
    try:
        return date.fromisoformat(head).isoformat()
    except ValueError:
        raise ChecklistValidationError(
            f"item {item_id}: expected a YYYY-MM-DD date, got {value!r}", item_id=item_id
        ) from None


def _table_rows(value: Any, item_id: str) -> List[Dict[str, Any]]:
    rows = value
    if isinstance(rows, str):
        try:
            rows = json.loads(rows) if rows.strip() else []
        except json.JSONDecodeError:
            raise ChecklistValidationError(f"item {item_id}: table data is not valid JSON", item_id=item_id) from None
    if not isinstance(rows, list) or not all(isinstance(r, Mapping) for r in rows):
        raise ChecklistValidationError(f"item {item_id}: table data must be a list of rows", item_id=item_id)
    return [{str(k): v for k, v in row.items() if not str(k).startswith("_")} for row in rows]


def _as_answer(raw: AnswerLike, item_id: str) -> FormAnswer:
    if isinstance(raw, FormAnswer):
        return raw
    if isinstance(raw, Mapping):
        try:
            return FormAnswer.model_validate(dict(raw))
        except PydanticValidationError as exc:
            raise ChecklistValidationError(f"item {item_id}: malformed answer", item_id=item_id) from exc
    # Bare values are accepted as the answer's response
    return FormAnswer(response=raw)


def encode_answer(item: ChecklistItem, raw: AnswerLike) -> Optional[WireResponse]:
    """Encode one answer for one item, or None when there is nothing to store."""
    answer = _as_answer(raw, item.item_id)
    remarks = answer.remarks if answer.remarks is not None else answer.comments
    remarks = remarks.strip() if isinstance(remarks, str) and remarks.strip() else None
    value = answer.response
    wire: Dict[str, Any] = {"item_id": item.item_id, "remarks": remarks}

    if item.response_type is ResponseType.TABLE:
        source = answer.table_data if answer.table_data is not None else value
        rows = _table_rows(source, item.item_id) if source is not None else []
        if rows:
            wire["table_data"] = rows
    elif _blank(value):
        pass
    elif item.response_type is ResponseType.YES_NO_NA:
        wire["yes_no_na_value"] = canonical_yes_no_na(value, item.item_id)
    elif item.response_type is ResponseType.DATE:
        wire["date_value"] = _date_value(value, item.item_id)
    else:
        wire["text_value"] = str(value)

    if len(wire) == 2 and remarks is None:
        return None
    return WireResponse(**wire)


def encode_responses(
    form_answers: Mapping[str, AnswerLike],
    template: NormalizedTemplate,
) -> List[WireResponse]:
    """Encode a form's answers in template order.

    Unknown item ids are ignored (logged); items with neither a value nor
    remarks are skipped; an invalid value raises `ChecklistValidationError`.
    """
    known = set()
    out: List[WireResponse] = []
    for item in template.items:
        known.add(item.item_id)
        if item.item_id not in form_answers:
            continue
        encoded = encode_answer(item, form_answers[item.item_id])
        if encoded is not None:
            out.append(encoded)
    unknown = [k for k in form_answers if k not in known]
    if unknown:
        logger.warning("responses_unknown_items template_id=%s item_ids=%s", template.template_id, unknown)
    return out


def optimize_responses(responses: Iterable[Union[WireResponse, Mapping[str, Any]]]) -> List[WireResponse]:
    """Dedupe by item id (last value wins, first position kept), drop empties."""
    latest: Dict[str, WireResponse] = {}
    for r in responses:
        response = r if isinstance(r, WireResponse) else WireResponse.model_validate(dict(r))
        # dict keeps the position of the first insertion on overwrite
        latest[response.item_id] = response
    return [r for r in latest.values() if is_meaningful(r)]


def decode_response(item: Optional[ChecklistItem], response: WireResponse) -> FormAnswer:
    response_type = item.response_type if item is not None else None
    if response_type is ResponseType.TABLE or (response_type is None and response.table_data is not None):
        rows = list(response.table_data or [])
        return FormAnswer(response=None, table_data=rows, remarks=response.remarks)
    if response_type is ResponseType.YES_NO_NA:
        value: Any = response.yes_no_na_value
    elif response_type is ResponseType.DATE:
        value = response.date_value
    elif response_type is ResponseType.TEXT:
        value = response.text_value
    else:
        value = next(
            (v for v in (response.yes_no_na_value, response.text_value, response.date_value) if v is not None),
            None,
        )
    return FormAnswer(response=value, remarks=response.remarks)


def decode_responses(
    stored: Iterable[Union[WireResponse, Mapping[str, Any]]],
    template: Optional[NormalizedTemplate] = None,
) -> Dict[str, FormAnswer]:
    """Inverse of `encode_responses`, used to initialize a form."""
    by_id = template.items_by_id() if template is not None else {}
    answers: Dict[str, FormAnswer] = {}
    for r in stored:
        response = r if isinstance(r, WireResponse) else WireResponse.model_validate(dict(r))
        answers[response.item_id] = decode_response(by_id.get(response.item_id), response)
    return answers


__all__ = [
    "YES",
    "NO",
    "NOT_APPLICABLE",
    "is_meaningful",
    "canonical_yes_no_na",
    "encode_answer",
    "encode_responses",
    "optimize_responses",
    "decode_response",
    "decode_responses",
]

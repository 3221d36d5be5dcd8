"""Template normalization.

Turns a raw template document into one flat, order-stable list of
`ChecklistItem` objects. Two historical document shapes are in circulation:

- sections -> fields (flat legacy shape)
- sections -> subsections -> items (nested shape, `subsections` or
  `sub_sections`)

A section may also carry `items` directly. Each section's shape is detected
once at the parsing boundary (`SectionShape`) and normalized immediately, so
nothing past this module sees the union.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from pydantic import ValidationError

from fleetcheck.logic.errors import TemplateError
from fleetcheck.logic.field_types import resolve_response_type
from fleetcheck.models.template import (
    ChecklistItem,
    ChecklistTemplate,
    NormalizedTemplate,
    ResponseType,
    TableStructure,
)

logger = logging.getLogger(__name__)


class SectionShape(str, Enum):
    FIELDS = "fields"
    SUBSECTIONS = "subsections"
    ITEMS = "items"
    EMPTY = "empty"


def detect_shape(section: Mapping[str, Any]) -> Tuple[SectionShape, List[Any]]:
    """Return the shape tag and its payload list for one section."""
    fields = section.get("fields")
    if isinstance(fields, list) and fields:
        return SectionShape.FIELDS, fields
    subsections = section.get("subsections")
    if not isinstance(subsections, list) or not subsections:
        subsections = section.get("sub_sections")
    if isinstance(subsections, list) and subsections:
        return SectionShape.SUBSECTIONS, subsections
    items = section.get("items")
    if isinstance(items, list) and items:
        return SectionShape.ITEMS, items
    return SectionShape.EMPTY, []


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _flag(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"true", "1", "yes", "y"}
    return bool(value)


def _first(entry: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = entry.get(key)
        if value is not None and value != "":
            return value
    return None


def _table_structure(entry: Mapping[str, Any], response_type: ResponseType) -> Optional[TableStructure]:
    raw = entry.get("table_structure")
    if isinstance(raw, Mapping):
        return TableStructure.model_validate(dict(raw))
    if response_type is ResponseType.TABLE:
        # Older templates put columns/predefined_rows on the field itself
        columns = entry.get("columns") or entry.get("table_columns")
        rows = entry.get("predefined_rows")
        if isinstance(columns, list) or isinstance(rows, list):
            return TableStructure.model_validate({"columns": columns or [], "predefined_rows": rows})
    return None


def _field_item(entry: Mapping[str, Any], section_name: str, index: int) -> ChecklistItem:
    response_type = resolve_response_type(
        entry.get("response_type"), entry.get("field_type") or entry.get("type"), default=ResponseType.TEXT
    )
    item_id = _first(entry, "field_id", "item_id", "id")
    if item_id is None:
        item_id = f"{section_name}_{index}"
    return ChecklistItem(
        item_id=str(item_id),
        section_name=section_name,
        sub_section_name=None,
        description=_text(_first(entry, "label", "description", "check", "check_description")),
        pic=_text(entry.get("pic")),
        guidance=_text(_first(entry, "guidance", "placeholder", "help_text")),
        response_type=response_type,
        is_mandatory=_flag(_first(entry, "is_mandatory", "mandatory", "required"), True),
        requires_evidence=_flag(entry.get("requires_evidence"), False),
        table_structure=_table_structure(entry, response_type),
    )


def _nested_item(
    entry: Mapping[str, Any],
    section_name: str,
    sub_section_name: Optional[str],
    index: int,
    fallback_id: str,
) -> ChecklistItem:
    response_type = resolve_response_type(
        entry.get("response_type"), entry.get("field_type") or entry.get("type"), default=ResponseType.YES_NO_NA
    )
    item_id = _first(entry, "item_id", "field_id", "id")
    if item_id is None:
        item_id = fallback_id
    return ChecklistItem(
        item_id=str(item_id),
        section_name=section_name,
        sub_section_name=sub_section_name,
        description=_text(_first(entry, "check", "check_description", "description", "label")),
        pic=_text(entry.get("pic")),
        guidance=_text(_first(entry, "guidance", "placeholder", "help_text")),
        response_type=response_type,
        is_mandatory=_flag(_first(entry, "mandatory", "is_mandatory", "required"), True),
        requires_evidence=_flag(entry.get("requires_evidence"), False),
        table_structure=_table_structure(entry, response_type),
    )


def _walk_section(section: Mapping[str, Any], section_index: int) -> Iterator[ChecklistItem]:
    section_name = _text(_first(section, "section_name", "name", "title")) or f"Section {section_index}"
    shape, payload = detect_shape(section)
    if shape is SectionShape.FIELDS:
        for i, field in enumerate(payload, start=1):
            if isinstance(field, Mapping):
                yield _field_item(field, section_name, i)
    elif shape is SectionShape.SUBSECTIONS:
        for s_idx, sub in enumerate(payload, start=1):
            if not isinstance(sub, Mapping):
                continue
            sub_name = _text(_first(sub, "subsection_name", "sub_section_name", "name", "title")) or f"Subsection {s_idx}"
            items = sub.get("items")
            if not isinstance(items, list):
                continue
            for i, item in enumerate(items, start=1):
                if isinstance(item, Mapping):
                    yield _nested_item(item, section_name, sub_name, i, f"{section_name}_{sub_name}_{i}")
    elif shape is SectionShape.ITEMS:
        for i, item in enumerate(payload, start=1):
            if isinstance(item, Mapping):
                yield _nested_item(item, section_name, None, i, f"{section_name}_{i}")
    else:
        logger.debug("template_section_empty section=%s", section_name)


def _decode_document(template_data: Any, template_id: Optional[str]) -> Dict[str, Any]:
    document = template_data
    if isinstance(document, (bytes, bytearray)):
        try:
            document = document.decode("utf-8")
        except UnicodeDecodeError as exc:
            logger.warning("template_decode_failed template_id=%s error=%s", template_id, exc)
            raise TemplateError(TemplateError.INVALID_JSON, f"template_data is not UTF-8 text: {exc}", template_id=template_id) from exc
    if isinstance(document, str):
        try:
            document = json.loads(document)
        except json.JSONDecodeError as exc:
            logger.warning("template_parse_failed template_id=%s error=%s", template_id, exc)
            raise TemplateError(TemplateError.INVALID_JSON, f"template_data is not valid JSON: {exc}", template_id=template_id) from exc
    if not isinstance(document, Mapping):
        raise TemplateError(TemplateError.MISSING_SECTIONS, "template_data is missing or not an object", template_id=template_id)
    if not isinstance(document.get("sections"), list):
        raise TemplateError(TemplateError.MISSING_SECTIONS, "template_data has no sections list", template_id=template_id)
    return dict(document)


def normalize_template(raw: Union[ChecklistTemplate, Mapping[str, Any]]) -> NormalizedTemplate:
    """Normalize a raw template into answerable items.

    Raises `TemplateError` with reason `invalid_json`, `missing_sections`,
    `invalid_structure` or `no_items`; a partial template is never returned.
    """
    if isinstance(raw, ChecklistTemplate):
        template = raw
    else:
        try:
            template = ChecklistTemplate.model_validate(dict(raw))
        except ValidationError as exc:
            raw_id = raw.get("template_id", raw.get("id"))
            raise TemplateError(
                TemplateError.INVALID_STRUCTURE,
                f"template envelope is malformed: {exc.error_count()} error(s)",
                template_id=str(raw_id) if raw_id is not None else None,
            ) from exc
    template_id = str(template.template_id) if template.template_id is not None else None
    document = _decode_document(template.template_data, template_id)

    items: List[ChecklistItem] = []
    seen: set[str] = set()
    duplicates = 0
    for section_index, section in enumerate(document["sections"], start=1):
        if not isinstance(section, Mapping):
            continue
        try:
            for item in _walk_section(section, section_index):
                if item.item_id in seen:
                    duplicates += 1
                    continue
                seen.add(item.item_id)
                items.append(item.model_copy(update={"order_index": len(items)}))
        except ValidationError as exc:
            logger.warning("template_item_invalid template_id=%s section=%s error=%s", template_id, section_index, exc)
            raise TemplateError(
                TemplateError.INVALID_STRUCTURE,
                f"section {section_index} has a malformed item: {exc.error_count()} error(s)",
                template_id=template_id,
            ) from exc

    if duplicates:
        logger.warning("template_duplicate_item_ids template_id=%s dropped=%s", template_id, duplicates)
    if not items:
        raise TemplateError(TemplateError.NO_ITEMS, "template has no answerable items", template_id=template_id)

    normalized = NormalizedTemplate(
        template_id=template_id,
        name=template.name,
        template_type=template.template_type,
        category=template.category,
        items=items,
        descriptions=[i.description for i in items],
        item_types=[i.response_type for i in items],
        is_mandatory=[i.is_mandatory for i in items],
        total_items=len(items),
        mandatory_items=sum(1 for i in items if i.is_mandatory),
    )
    logger.info(
        "template_normalized template_id=%s items=%s mandatory=%s",
        template_id,
        normalized.total_items,
        normalized.mandatory_items,
    )
    return normalized


__all__ = ["SectionShape", "detect_shape", "normalize_template"]

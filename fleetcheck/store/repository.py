"""Data access for the reference checklist store.

Plain SQL through `sqlalchemy.text`, one function per store operation. Each
function takes an open Connection; callers own the transaction. Derived
progress fields are computed from the stored responses on every read.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection

from fleetcheck.logic.errors import TemplateError
from fleetcheck.logic.lifecycle import derive_status
from fleetcheck.logic.progress import find_missing_mandatory, summarize_progress
from fleetcheck.logic.template_normalizer import normalize_template
from fleetcheck.models.checklist import ChecklistStatus, MissingItem, WireResponse
from fleetcheck.models.template import NormalizedTemplate

logger = logging.getLogger(__name__)

_CHECKLIST_COLUMNS = """
    c.checklist_id, c.voyage_id, c.vessel_name, c.template_id, c.status,
    c.created_by, c.created_at, c.updated_at, c.submitted_at, c.submitted_by,
    t.name AS template_name, t.template_type AS template_type, t.template_data AS template_data
"""

_RESPONSE_FIELDS = ("yes_no_na_value", "text_value", "date_value", "table_data", "remarks")


def _now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


# ------------------
# Templates
# ------------------

def insert_template(conn: Connection, template: Mapping[str, Any], *, auto_create: bool = True) -> str:
    template_id = str(template.get("template_id") or template.get("id") or uuid.uuid4())
    data = template.get("template_data")
    conn.execute(
        sql_text(
            """
            INSERT INTO checklist_template (template_id, name, template_type, category, template_data, is_active, auto_create, created_at)
            VALUES (:tid, :name, :ttype, :cat, :data, 1, :auto, :at)
            """
        ),
        {
            "tid": template_id,
            "name": template.get("name") or template_id,
            "ttype": template.get("template_type"),
            "cat": template.get("category"),
            "data": data if isinstance(data, str) else json.dumps(data),
            "auto": 1 if auto_create else 0,
            "at": _now(),
        },
    )
    return template_id


def _template_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["template_id"],
        "template_id": row["template_id"],
        "name": row["name"],
        "template_type": row["template_type"],
        "category": row["category"],
        "template_data": row["template_data"],
    }


def list_templates(conn: Connection) -> List[Dict[str, Any]]:
    rows = conn.execute(
        sql_text(
            "SELECT template_id, name, template_type, category, template_data FROM checklist_template "
            "WHERE is_active = 1 ORDER BY name ASC, template_id ASC"
        )
    ).mappings().all()
    return [_template_row(r) for r in rows]


def get_template(conn: Connection, template_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        sql_text(
            "SELECT template_id, name, template_type, category, template_data FROM checklist_template WHERE template_id = :tid"
        ),
        {"tid": template_id},
    ).mappings().first()
    return _template_row(row) if row else None


# ------------------
# Checklists
# ------------------

def _normalized(row: Mapping[str, Any]) -> Optional[NormalizedTemplate]:
    try:
        return normalize_template({"id": row["template_id"], "name": row["template_name"] or "", "template_data": row["template_data"]})
    except TemplateError as exc:
        logger.warning("store_template_unusable template_id=%s reason=%s", row["template_id"], exc.reason)
        return None


def list_responses(conn: Connection, checklist_id: str) -> List[Dict[str, Any]]:
    rows = conn.execute(
        sql_text(
            """
            SELECT item_id, yes_no_na_value, text_value, date_value, table_data, remarks
            FROM checklist_response WHERE checklist_id = :cid ORDER BY item_id ASC
            """
        ),
        {"cid": checklist_id},
    ).mappings().all()
    return [{k: v for k, v in dict(r).items() if v is not None} for r in rows]


def _checklist_dict(conn: Connection, row: Mapping[str, Any], *, detail: bool) -> Dict[str, Any]:
    responses = list_responses(conn, row["checklist_id"])
    template = _normalized(row)
    data: Dict[str, Any] = {
        "checklist_id": row["checklist_id"],
        "voyage_id": row["voyage_id"],
        "vessel_name": row["vessel_name"],
        "template_id": row["template_id"],
        "template_name": row["template_name"],
        "template_type": row["template_type"],
        "status": row["status"],
        "created_by": row["created_by"],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
        "submitted_at": row["submitted_at"],
        "submitted_by": row["submitted_by"],
        "total_items": 0,
        "items_completed": 0,
        "mandatory_items_completed": 0,
        "progress_percentage": 0,
    }
    if template is not None:
        summary = summarize_progress(responses, template)
        data.update(
            total_items=summary.total,
            items_completed=summary.completed,
            mandatory_items_completed=summary.mandatory_completed,
            progress_percentage=summary.percentage,
        )
    if detail:
        data["responses"] = responses
        data["template_data"] = row["template_data"]
    return data


def list_checklists(conn: Connection, voyage_id: str) -> List[Dict[str, Any]]:
    rows = conn.execute(
        sql_text(
            f"""
            SELECT {_CHECKLIST_COLUMNS}
            FROM checklist c JOIN checklist_template t ON t.template_id = c.template_id
            WHERE c.voyage_id = :vid
            ORDER BY c.created_at ASC, t.name ASC, c.checklist_id ASC
            """
        ),
        {"vid": voyage_id},
    ).mappings().all()
    return [_checklist_dict(conn, r, detail=False) for r in rows]


def _checklist_row(conn: Connection, checklist_id: str) -> Optional[Mapping[str, Any]]:
    return conn.execute(
        sql_text(
            f"""
            SELECT {_CHECKLIST_COLUMNS}
            FROM checklist c JOIN checklist_template t ON t.template_id = c.template_id
            WHERE c.checklist_id = :cid
            """
        ),
        {"cid": checklist_id},
    ).mappings().first()


def get_checklist(conn: Connection, checklist_id: str) -> Optional[Dict[str, Any]]:
    row = _checklist_row(conn, checklist_id)
    return _checklist_dict(conn, row, detail=True) if row else None


def count_checklists(conn: Connection, voyage_id: str) -> int:
    return int(
        conn.execute(sql_text("SELECT COUNT(*) FROM checklist WHERE voyage_id = :vid"), {"vid": voyage_id}).scalar_one()
    )


def checklist_exists(conn: Connection, voyage_id: str, template_id: str) -> bool:
    row = conn.execute(
        sql_text("SELECT 1 FROM checklist WHERE voyage_id = :vid AND template_id = :tid"),
        {"vid": voyage_id, "tid": template_id},
    ).first()
    return row is not None


def insert_checklist(conn: Connection, voyage_id: str, template_id: str, vessel_name: str, user_id: str) -> str:
    checklist_id = str(uuid.uuid4())
    now = _now()
    conn.execute(
        sql_text(
            """
            INSERT INTO checklist (checklist_id, voyage_id, vessel_name, template_id, status, created_by, created_at, updated_at)
            VALUES (:cid, :vid, :vessel, :tid, 'draft', :uid, :at, :at)
            """
        ),
        {"cid": checklist_id, "vid": voyage_id, "vessel": vessel_name, "tid": template_id, "uid": user_id, "at": now},
    )
    logger.info("store_checklist_created checklist_id=%s voyage_id=%s template_id=%s", checklist_id, voyage_id, template_id)
    return checklist_id


def auto_create_template_ids(conn: Connection) -> List[str]:
    rows = conn.execute(
        sql_text(
            "SELECT template_id FROM checklist_template WHERE is_active = 1 AND auto_create = 1 ORDER BY name ASC, template_id ASC"
        )
    ).all()
    return [r[0] for r in rows]


def upsert_responses(conn: Connection, checklist_id: str, responses: List[WireResponse], user_id: str) -> Dict[str, int]:
    existing = {
        r[0]
        for r in conn.execute(
            sql_text("SELECT item_id FROM checklist_response WHERE checklist_id = :cid"), {"cid": checklist_id}
        )
    }
    now = _now()
    created = updated = 0
    for response in responses:
        params = {
            "cid": checklist_id,
            "iid": response.item_id,
            "yn": response.yes_no_na_value,
            "txt": response.text_value,
            "dt": response.date_value,
            "tbl": json.dumps(response.table_data) if response.table_data is not None else None,
            "rem": response.remarks,
            "uid": user_id,
            "at": now,
        }
        if response.item_id in existing:
            conn.execute(
                sql_text(
                    """
                    UPDATE checklist_response
                    SET yes_no_na_value=:yn, text_value=:txt, date_value=:dt, table_data=:tbl, remarks=:rem,
                        updated_by=:uid, updated_at=:at
                    WHERE checklist_id = :cid AND item_id = :iid
                    """
                ),
                params,
            )
            updated += 1
        else:
            conn.execute(
                sql_text(
                    """
                    INSERT INTO checklist_response
                        (checklist_id, item_id, yes_no_na_value, text_value, date_value, table_data, remarks, updated_by, updated_at)
                    VALUES (:cid, :iid, :yn, :txt, :dt, :tbl, :rem, :uid, :at)
                    """
                ),
                params,
            )
            existing.add(response.item_id)
            created += 1
    return {"created": created, "updated": updated, "total_processed": len(responses)}


def refresh_status(conn: Connection, checklist_id: str) -> ChecklistStatus:
    """Re-derive a non-submitted checklist's status from its progress."""
    row = _checklist_row(conn, checklist_id)
    current = ChecklistStatus(row["status"])
    template = _normalized(row)
    pct = summarize_progress(list_responses(conn, checklist_id), template).percentage if template else 0
    target = derive_status(current, pct)
    conn.execute(
        sql_text("UPDATE checklist SET status = :st, updated_at = :at WHERE checklist_id = :cid"),
        {"st": target.value, "at": _now(), "cid": checklist_id},
    )
    return target


def missing_mandatory(conn: Connection, checklist_id: str) -> List[MissingItem]:
    row = _checklist_row(conn, checklist_id)
    template = _normalized(row)
    if template is None:
        return []
    return find_missing_mandatory(list_responses(conn, checklist_id), template)


def mark_submitted(conn: Connection, checklist_id: str, user_id: str) -> bool:
    """Conditionally submit; False when the checklist was already submitted."""
    now = _now()
    result = conn.execute(
        sql_text(
            """
            UPDATE checklist SET status = 'submitted', submitted_at = :at, submitted_by = :uid, updated_at = :at
            WHERE checklist_id = :cid AND status <> 'submitted'
            """
        ),
        {"at": now, "uid": user_id, "cid": checklist_id},
    )
    return result.rowcount == 1


def delete_checklist(conn: Connection, checklist_id: str) -> bool:
    conn.execute(sql_text("DELETE FROM checklist_response WHERE checklist_id = :cid"), {"cid": checklist_id})
    result = conn.execute(sql_text("DELETE FROM checklist WHERE checklist_id = :cid"), {"cid": checklist_id})
    return result.rowcount > 0


__all__ = [
    "insert_template",
    "list_templates",
    "get_template",
    "list_responses",
    "list_checklists",
    "get_checklist",
    "count_checklists",
    "checklist_exists",
    "insert_checklist",
    "auto_create_template_ids",
    "upsert_responses",
    "refresh_status",
    "missing_mandatory",
    "mark_submitted",
    "delete_checklist",
]

"""Reference checklist store.

A small FastAPI + SQLAlchemy service implementing the remote store contract
the engine consumes. It backs local development and in-process end-to-end
tests; production deployments point the engine at the real store.

Behaviour worth knowing:
- auto-create on a voyage that already has checklists answers 409
- creating a second checklist for the same (voyage, template) answers 409
- submitting an already submitted checklist answers 409, whatever
  `force_overwrite` says; the engine decides how to treat that
- submitting with unanswered mandatory items answers 422 with `missing_items`
- unknown ids answer 404

Migrations are applied when the app is created, so the schema exists even
when the app runs under a transport that does not emit lifespan events.
Database work is synchronous and runs on the event loop thread, which keeps
the single shared in-memory SQLite connection serialized.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import uvicorn
from fastapi import FastAPI, HTTPException, Response
from pydantic import BaseModel, Field
from sqlalchemy.engine import Engine

from fleetcheck.logging_setup import configure_logging
from fleetcheck.models.checklist import WireResponse
from fleetcheck.store import repository
from fleetcheck.store.db import make_engine
from fleetcheck.store.migrations_runner import apply_migrations

logger = logging.getLogger(__name__)

SAMPLE_TEMPLATES_PATH = Path(__file__).resolve().parent / "seed" / "sample_templates.json"


class AutoCreateBody(BaseModel):
    vessel_name: str = "Unknown Vessel"
    user_id: str = "system"


class CreateBody(BaseModel):
    template_id: str
    vessel_name: str = "Unknown Vessel"
    user_id: str = "system"


class ResponsesBody(BaseModel):
    responses: List[WireResponse] = Field(default_factory=list)
    user_id: str = "system"


class SubmitBody(BaseModel):
    user_id: str = "system"
    force_overwrite: bool = False


def load_sample_templates(path: Path = SAMPLE_TEMPLATES_PATH) -> List[Dict[str, Any]]:
    return json.loads(path.read_text(encoding="utf-8"))


def seed_templates(engine: Engine, templates: Iterable[Mapping[str, Any]]) -> List[str]:
    with engine.begin() as conn:
        return [
            repository.insert_template(conn, t, auto_create=bool(t.get("auto_create", True)))
            for t in templates
        ]


def _not_found(what: str) -> HTTPException:
    return HTTPException(status_code=404, detail={"detail": f"{what} not found"})


def create_store_app(
    engine: Optional[Engine] = None,
    *,
    templates: Optional[Iterable[Mapping[str, Any]]] = None,
) -> FastAPI:
    engine = engine or make_engine()
    apply_migrations(engine)
    if templates:
        seed_templates(engine, templates)

    app = FastAPI(title="fleetcheck reference store")
    app.state.engine = engine

    @app.get("/checklist-templates")
    async def list_templates() -> list:
        with engine.connect() as conn:
            return repository.list_templates(conn)

    @app.get("/checklist-templates/{template_id}")
    async def get_template(template_id: str) -> dict:
        with engine.connect() as conn:
            template = repository.get_template(conn, template_id)
        if template is None:
            raise _not_found(f"template {template_id}")
        return template

    @app.get("/voyage/{voyage_id}/checklists")
    async def list_checklists(voyage_id: str) -> list:
        with engine.connect() as conn:
            return repository.list_checklists(conn, voyage_id)

    @app.post("/voyage/{voyage_id}/checklists/auto-create", status_code=201)
    async def auto_create(voyage_id: str, body: AutoCreateBody) -> dict:
        with engine.begin() as conn:
            if repository.count_checklists(conn, voyage_id):
                raise HTTPException(
                    status_code=409, detail={"detail": f"voyage {voyage_id} already has checklists"}
                )
            ids = [
                repository.insert_checklist(conn, voyage_id, tid, body.vessel_name, body.user_id)
                for tid in repository.auto_create_template_ids(conn)
            ]
            created = [repository.get_checklist(conn, cid) for cid in ids]
        for c in created:
            c.pop("template_data", None)
        return {"checklists": created}

    @app.post("/voyage/{voyage_id}/checklists/create", status_code=201)
    async def create_checklist(voyage_id: str, body: CreateBody) -> dict:
        with engine.begin() as conn:
            if repository.get_template(conn, body.template_id) is None:
                raise _not_found(f"template {body.template_id}")
            if repository.checklist_exists(conn, voyage_id, body.template_id):
                raise HTTPException(
                    status_code=409,
                    detail={"detail": f"voyage {voyage_id} already has a checklist for template {body.template_id}"},
                )
            cid = repository.insert_checklist(conn, voyage_id, body.template_id, body.vessel_name, body.user_id)
            checklist = repository.get_checklist(conn, cid)
        checklist.pop("template_data", None)
        return {"checklist": checklist}

    @app.get("/checklist/{checklist_id}")
    async def get_checklist(checklist_id: str) -> dict:
        with engine.connect() as conn:
            checklist = repository.get_checklist(conn, checklist_id)
        if checklist is None:
            raise _not_found(f"checklist {checklist_id}")
        return checklist

    @app.put("/checklist/{checklist_id}/responses")
    async def update_responses(checklist_id: str, body: ResponsesBody) -> dict:
        with engine.begin() as conn:
            if repository.get_checklist(conn, checklist_id) is None:
                raise _not_found(f"checklist {checklist_id}")
            summary = repository.upsert_responses(conn, checklist_id, body.responses, body.user_id)
            status = repository.refresh_status(conn, checklist_id)
        logger.info(
            "store_responses_saved checklist_id=%s created=%s updated=%s status=%s",
            checklist_id,
            summary["created"],
            summary["updated"],
            status.value,
        )
        return {"summary": summary}

    @app.post("/checklist/{checklist_id}/submit")
    async def submit(checklist_id: str, body: SubmitBody) -> dict:
        with engine.begin() as conn:
            current = repository.get_checklist(conn, checklist_id)
            if current is None:
                raise _not_found(f"checklist {checklist_id}")
            if current["status"] == "submitted":
                raise HTTPException(
                    status_code=409,
                    detail={"detail": f"checklist {checklist_id} is already submitted", "checklist_id": checklist_id},
                )
            missing = repository.missing_mandatory(conn, checklist_id)
            if missing:
                raise HTTPException(
                    status_code=422,
                    detail={
                        "detail": f"{len(missing)} mandatory item(s) have no response",
                        "missing_items": [m.model_dump() for m in missing],
                    },
                )
            if not repository.mark_submitted(conn, checklist_id, body.user_id):
                raise HTTPException(
                    status_code=409,
                    detail={"detail": f"checklist {checklist_id} is already submitted", "checklist_id": checklist_id},
                )
            checklist = repository.get_checklist(conn, checklist_id)
        logger.info(
            "store_checklist_submitted checklist_id=%s by=%s force_overwrite=%s",
            checklist_id,
            body.user_id,
            body.force_overwrite,
        )
        checklist.pop("template_data", None)
        return {"checklist": checklist}

    @app.delete("/checklist/{checklist_id}", status_code=204)
    async def delete(checklist_id: str) -> Response:
        with engine.begin() as conn:
            if not repository.delete_checklist(conn, checklist_id):
                raise _not_found(f"checklist {checklist_id}")
        return Response(status_code=204)

    return app


def serve() -> None:
    """Console entry point: run the reference store under uvicorn."""
    configure_logging()
    engine = make_engine()
    seed_path = os.getenv("FLEETCHECK_STORE_SEED")
    templates = load_sample_templates(Path(seed_path)) if seed_path else load_sample_templates()
    app = create_store_app(engine, templates=templates)
    uvicorn.run(
        app,
        host=os.getenv("FLEETCHECK_STORE_HOST", "127.0.0.1"),
        port=int(os.getenv("FLEETCHECK_STORE_PORT", "8001")),
        log_config=None,
    )


__all__ = ["create_store_app", "load_sample_templates", "seed_templates", "serve", "SAMPLE_TEMPLATES_PATH"]

"""FastAPI entry points: object arrival, analysis callback, run status."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, field_validator

from core import ObjectArrivalEvent, ProcessingState
from webapp.runtime import get_pipeline


logger = logging.getLogger(__name__)

app = FastAPI(title="Station Video Story Pipeline API")


class ObjectArrivalPayload(BaseModel):
    name: str
    uri: str
    created_at: Optional[datetime] = None

    @field_validator("name", "uri")
    @classmethod
    def _strip_required(cls, value: str) -> str:
        text = str(value or "").strip()
        if not text:
            raise ValueError("value is required")
        return text


@app.get("/api/health")
def health() -> Dict[str, Any]:
    return {"ok": True, "ts": datetime.now(timezone.utc).isoformat(timespec="seconds")}


@app.post("/api/videos/arrivals")
async def object_arrival(payload: ObjectArrivalPayload) -> Dict[str, Any]:
    event_fields: Dict[str, Any] = {"name": payload.name, "uri": payload.uri}
    if payload.created_at is not None:
        event_fields["created_at"] = payload.created_at
    event = ObjectArrivalEvent(**event_fields)

    run = await get_pipeline().handle_object_arrival(event)
    return {"run_id": run.run_id, "state": run.state.value, "run": run.model_dump(mode="json")}


@app.post("/api/videos/callback")
async def analysis_callback(
    video_id: str = Query(..., alias="id"),
    state: ProcessingState = Query(...),
) -> Dict[str, Any]:
    video_id = video_id.strip()
    if not video_id:
        raise HTTPException(status_code=422, detail="id is required")

    run = await get_pipeline().handle_analysis_callback(video_id, state)
    if run is None:
        return {"acknowledged": True, "video_id": video_id, "state": state.value, "run_id": None}
    return {
        "acknowledged": True,
        "video_id": video_id,
        "state": state.value,
        "run_id": run.run_id,
        "run": run.model_dump(mode="json"),
    }


@app.get("/api/runs")
def list_runs(limit: int = 50) -> Dict[str, Any]:
    runs = get_pipeline().run_log.list_runs(limit=limit)
    return {"runs": [run.model_dump(mode="json") for run in runs], "count": len(runs)}


@app.get("/api/runs/{run_id}")
def get_run(run_id: str) -> Dict[str, Any]:
    run = get_pipeline().get_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="run not found")
    return run.model_dump(mode="json")

"""In-memory run log for pipeline instance tracking."""

from __future__ import annotations

from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from core import PipelineState

from .states import check_transition, is_terminal


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_run_id() -> str:
    return f"run_{_utcnow().strftime('%Y%m%d_%H%M%S')}_{uuid4().hex[:8]}"


class RunEvent(BaseModel):
    ts: str
    event: str
    message: str = ""


class PipelineRun(BaseModel):
    """One pipeline instance, from trigger to terminal state."""

    run_id: str
    trigger: str
    state: PipelineState = PipelineState.DETECTED
    station: Optional[str] = None
    video_name: Optional[str] = None
    video_id: Optional[str] = None
    story_id: Optional[str] = None
    force_share: bool = False
    keywords: List[str] = Field(default_factory=list)
    stations: List[str] = Field(default_factory=list)
    message_id: Optional[str] = None
    delivered_to: Optional[str] = None
    errors: List[str] = Field(default_factory=list)
    events: List[RunEvent] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.state)


class InMemoryRunLog:
    """Thread-safe store for pipeline runs. Every read returns a copy."""

    def __init__(self) -> None:
        self._runs: Dict[str, PipelineRun] = {}
        self._lock = Lock()

    def create(self, trigger: str, *, state: PipelineState = PipelineState.DETECTED, **fields: Any) -> PipelineRun:
        run = PipelineRun(run_id=_new_run_id(), trigger=trigger, state=state, **fields)
        run.events.append(_event("created", f"trigger={trigger} state={state.value}"))
        with self._lock:
            self._runs[run.run_id] = run
            return run.model_copy(deep=True)

    def get(self, run_id: str) -> Optional[PipelineRun]:
        with self._lock:
            run = self._runs.get(run_id)
            return run.model_copy(deep=True) if run else None

    def find_open_by_video_id(self, video_id: str) -> Optional[PipelineRun]:
        """Latest non-terminal run waiting on the given analysis id."""
        with self._lock:
            matches = [
                run for run in self._runs.values()
                if run.video_id == video_id and not run.is_terminal
            ]
            if not matches:
                return None
            latest = max(matches, key=lambda run: run.created_at)
            return latest.model_copy(deep=True)

    def list_runs(self, limit: int = 50) -> List[PipelineRun]:
        with self._lock:
            runs = sorted(self._runs.values(), key=lambda run: run.created_at, reverse=True)
            return [run.model_copy(deep=True) for run in runs[: max(0, int(limit))]]

    def update(self, run_id: str, **fields: Any) -> Optional[PipelineRun]:
        with self._lock:
            run = self._runs.get(run_id)
            if not run:
                return None
            for key, value in fields.items():
                setattr(run, key, value)
            run.updated_at = _utcnow()
            return run.model_copy(deep=True)

    def transition(self, run_id: str, target: PipelineState, message: str = "") -> Optional[PipelineRun]:
        """Move a run to target. Raises InvalidTransition when the table forbids it."""
        with self._lock:
            run = self._runs.get(run_id)
            if not run:
                return None
            check_transition(run.state, target)
            run.state = target
            run.updated_at = _utcnow()
            run.events.append(_event(target.value, message))
            return run.model_copy(deep=True)

    def append_event(self, run_id: str, event: str, message: str = "") -> bool:
        with self._lock:
            run = self._runs.get(run_id)
            if not run:
                return False
            run.events.append(_event(event, message))
            return True

    def mark_failed(self, run_id: str, error: str) -> Optional[PipelineRun]:
        with self._lock:
            run = self._runs.get(run_id)
            if not run:
                return None
            if error:
                run.errors.append(str(error))
            if not run.is_terminal:
                run.state = PipelineState.FAILED
                run.events.append(_event(PipelineState.FAILED.value, str(error or "")))
            run.updated_at = _utcnow()
            return run.model_copy(deep=True)

    def size(self) -> int:
        with self._lock:
            return len(self._runs)


def _event(event: str, message: str) -> RunEvent:
    return RunEvent(
        ts=_utcnow().isoformat(timespec="seconds"),
        event=str(event or "").strip() or "event",
        message=str(message or "").strip(),
    )

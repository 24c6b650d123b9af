"""FastAPI application exposing the tracking facade to a local UI."""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict

from .clock import Clock
from .config import TrackerSettings, get_db_path
from .db import SqliteStore
from .errors import (
    AlreadyTrackingError,
    InvalidConfigError,
    NoActiveEntryError,
    NoPendingDecisionError,
    PendingIdleDecisionError,
    ProbeUnavailableError,
    ReasonRequiredError,
    TrackerError,
)
from .models import IdleDecisionRequest, StatusSnapshot, TimeEntry
from .orchestrator import TrackingOrchestrator
from .probe import ActivityProbe

logger = logging.getLogger(__name__)

_CONFLICT_ERRORS = (
    AlreadyTrackingError,
    NoActiveEntryError,
    PendingIdleDecisionError,
    NoPendingDecisionError,
)
_VALIDATION_ERRORS = (ReasonRequiredError, InvalidConfigError)


class StartPayload(BaseModel):
    project_id: str
    task_id: str

    model_config = ConfigDict(extra="forbid")


class IdleDecisionPayload(BaseModel):
    keep: bool
    reason: Optional[str] = None

    model_config = ConfigDict(extra="forbid")


class ConfigPatch(BaseModel):
    track_keyboard: Optional[bool] = None
    track_mouse: Optional[bool] = None
    idle_detection_enabled: Optional[bool] = None
    idle_threshold_minutes: Optional[int] = None
    require_idle_reason: Optional[bool] = None

    model_config = ConfigDict(extra="forbid")


def create_app(
    *,
    db_path: Optional[Path] = None,
    probe: Optional[ActivityProbe] = None,
    settings: Optional[TrackerSettings] = None,
    clock: Optional[Clock] = None,
    scheduler: Any = None,
) -> FastAPI:
    """Instantiate the FastAPI application."""
    resolved_db_path = Path(db_path or get_db_path())
    if probe is None:
        from .probe import HookedInputProbe

        probe = HookedInputProbe.create()
    store = SqliteStore(resolved_db_path)
    orchestrator = TrackingOrchestrator(
        store,
        probe,
        clock=clock,
        scheduler=scheduler,
        settings=settings or TrackerSettings(),
    )

    app = FastAPI(title="Task Timer", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.db_path = resolved_db_path
    app.state.store = store
    app.state.orchestrator = orchestrator

    @app.on_event("startup")
    async def _startup() -> None:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
        logger.info("Task timer API using %s", resolved_db_path)

    @app.on_event("shutdown")
    async def _shutdown() -> None:
        orchestrator.shutdown()
        close = getattr(probe, "close", None)
        if close is not None:
            close()
        store.close()

    @app.get("/api/status")
    def status(request: Request) -> Dict[str, Any]:
        return _snapshot_payload(request.app.state.orchestrator.snapshot())

    @app.post("/api/tracking/start")
    def start_tracking(payload: StartPayload, request: Request) -> Dict[str, Any]:
        project_id = payload.project_id.strip()
        task_id = payload.task_id.strip()
        if not project_id or not task_id:
            raise HTTPException(status_code=400, detail="project_id and task_id are required")
        entry = _call(request.app.state.orchestrator.start, project_id, task_id)
        return _entry_payload(entry)

    @app.post("/api/tracking/stop")
    def stop_tracking(request: Request) -> Dict[str, Any]:
        return _entry_payload(_call(request.app.state.orchestrator.stop))

    @app.post("/api/idle/decision")
    def idle_decision(payload: IdleDecisionPayload, request: Request) -> Dict[str, Any]:
        interval = _call(
            request.app.state.orchestrator.resolve_idle, payload.keep, payload.reason
        )
        return {
            "start": interval.start.isoformat(),
            "end": interval.end.isoformat(),
            "discarded": interval.discarded,
            "reason": interval.reason,
            "duration_seconds": interval.duration_seconds,
        }

    @app.get("/api/config")
    def get_config(request: Request) -> Dict[str, Any]:
        return request.app.state.orchestrator.config.to_dict()

    @app.patch("/api/config")
    def update_config(payload: ConfigPatch, request: Request) -> Dict[str, Any]:
        updates = payload.model_dump(exclude_unset=True)
        config = _call(request.app.state.orchestrator.configure, updates)
        return config.to_dict()

    @app.get("/api/entries")
    def entries(
        request: Request,
        date: Optional[str] = Query(
            default=None,
            description="Target date in YYYY-MM-DD format.",
        ),
    ) -> Dict[str, Any]:
        target_day = _parse_date(date)
        rows = request.app.state.store.entries_for_day(target_day)
        return {
            "date": target_day.strftime("%Y-%m-%d"),
            "entries": [_entry_payload(entry) for entry in rows],
        }

    @app.get("/api/activity")
    def activity(request: Request) -> Dict[str, Any]:
        orchestrator = request.app.state.orchestrator
        threshold = orchestrator.config.idle_threshold_minutes
        try:
            # Raw reading from the probe: any device, regardless of tracking switches.
            input_idle = probe.is_idle(threshold)
        except ProbeUnavailableError as exc:
            raise HTTPException(status_code=503, detail=str(exc)) from exc
        snapshot = orchestrator.snapshot()
        return {
            "activity_status": asdict(snapshot.activity_status),
            "is_idle": orchestrator.user_idle,
            "input_idle": input_idle,
            "idle_threshold_minutes": threshold,
        }

    return app


def _call(func: Any, *args: Any) -> Any:
    try:
        return func(*args)
    except _CONFLICT_ERRORS as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except _VALIDATION_ERRORS as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except TrackerError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


def _parse_date(value: Optional[str]) -> datetime:
    if not value:
        return _start_of_day(datetime.now())
    try:
        parsed = datetime.strptime(value, "%Y-%m-%d")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date format") from exc
    return _start_of_day(parsed)


def _start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _entry_payload(entry: TimeEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "project_id": entry.project_id,
        "task_id": entry.task_id,
        "start_time": entry.start_time.isoformat(),
        "end_time": entry.end_time.isoformat() if entry.end_time else None,
        "duration": entry.duration,
        "idle_intervals": [
            {
                "start": interval.start.isoformat(),
                "end": interval.end.isoformat(),
                "discarded": interval.discarded,
                "reason": interval.reason,
            }
            for interval in entry.idle_intervals
        ],
    }


def _decision_payload(request: Optional[IdleDecisionRequest]) -> Optional[Dict[str, Any]]:
    if request is None:
        return None
    return {
        "interval": {
            "start": request.interval.start.isoformat(),
            "end": request.interval.end.isoformat(),
        },
        "requires_reason": request.requires_reason,
    }


def _snapshot_payload(snapshot: StatusSnapshot) -> Dict[str, Any]:
    return {
        "is_tracking": snapshot.is_tracking,
        "elapsed_seconds": snapshot.elapsed_seconds,
        "activity_status": asdict(snapshot.activity_status),
        "pending_decision": _decision_payload(snapshot.pending_decision),
        "entry": _entry_payload(snapshot.entry) if snapshot.entry else None,
    }

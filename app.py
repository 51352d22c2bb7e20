"""FastAPI service for the habit mentor.

Owns one LogStore for the lifetime of the process: loaded from the JSON slot
at startup and written through on every change.  Serves daily records,
trailing-window analytics, PNG trend charts, and on-demand mentor insights.

Deployment: uvicorn app:app --host 127.0.0.1 --port 8204
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from datetime import date
from pathlib import Path
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import Response

from analytics import build_dashboard_payload, derive_window
from charts import CHARTS, render_chart
from habit_log import HABIT_CATALOG, LogStore, date_key, default_record, habit_ids, parse_date_key
from mentor import generate_insight, select_recent_records
from schemas import DailyRecordUpdate, InsightResponse, InsightSave, RecordResponse

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
LOG_PATH = Path(os.environ.get("HABIT_LOG_PATH", Path(__file__).parent / "habit_logs.json"))
ANALYTICS_WINDOW_DAYS = 14
MAX_WINDOW_DAYS = 366
INSIGHT_RECORD_COUNT = 7

CALL_FAILED_BANNER = "Failed to connect to your AI Mentor. Please try again later."


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    store = LogStore(LOG_PATH)
    store.load()
    app.state.store = store
    yield


app = FastAPI(title="Habit Mentor", lifespan=lifespan)


def get_store(request: Request) -> LogStore:
    return request.app.state.store


def _check_date_key(key: str) -> date:
    try:
        return parse_date_key(key)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


def _anchor_or_today(anchor: str | None) -> date:
    return _check_date_key(anchor) if anchor else date.today()


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health")
@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.get("/api/habits")
def api_habits():
    return HABIT_CATALOG


@app.get("/api/logs")
def api_logs(store: LogStore = Depends(get_store)) -> dict[str, Any]:
    """Return every stored record, keyed by date."""
    return store.records()


@app.get("/api/logs/{key}", response_model=RecordResponse)
def api_get_log(key: str, store: LogStore = Depends(get_store)):
    """Return the record for a day, or the defaults if it was never logged.

    Reading never creates a record; ``saved`` tells the two cases apart.
    """
    _check_date_key(key)
    record = store.get(key)
    if record is None:
        return {"record": default_record(key), "saved": False}
    return {"record": record, "saved": True}


@app.patch("/api/logs/{key}", response_model=RecordResponse)
def api_update_log(key: str, update: DailyRecordUpdate, store: LogStore = Depends(get_store)):
    _check_date_key(key)
    record = store.update(key, update.to_fields())
    return {"record": record, "saved": True}


@app.post("/api/logs/{key}/habits/{habit_id}/toggle", response_model=RecordResponse)
def api_toggle_habit(key: str, habit_id: str, store: LogStore = Depends(get_store)):
    _check_date_key(key)
    if habit_id not in habit_ids():
        raise HTTPException(status_code=404, detail=f"Unknown habit: {habit_id}")
    return {"record": store.toggle_habit(key, habit_id), "saved": True}


@app.put("/api/logs/{key}/insight", response_model=RecordResponse)
def api_save_insight(key: str, body: InsightSave, store: LogStore = Depends(get_store)):
    """Save a generated insight to the day's journal entry."""
    _check_date_key(key)
    return {"record": store.save_insight(key, body.insight), "saved": True}


@app.get("/api/analytics")
def api_analytics(
    days: int = Query(ANALYTICS_WINDOW_DAYS, ge=1, le=MAX_WINDOW_DAYS),
    anchor: str | None = None,
    store: LogStore = Depends(get_store),
):
    """Return the dashboard payload for the *days* ending on *anchor* (default today)."""
    return build_dashboard_payload(store, days, _anchor_or_today(anchor))


@app.get("/api/charts/{name}.png")
def api_chart(
    name: str,
    days: int = Query(ANALYTICS_WINDOW_DAYS, ge=1, le=MAX_WINDOW_DAYS),
    anchor: str | None = None,
    store: LogStore = Depends(get_store),
):
    if name not in CHARTS:
        raise HTTPException(status_code=404, detail=f"Unknown chart: {name}")
    metrics = derive_window(store, days, _anchor_or_today(anchor))
    return Response(content=render_chart(name, metrics), media_type="image/png")


@app.post("/api/mentor/insight", response_model=InsightResponse)
async def api_mentor_insight(
    anchor: str | None = Body(None, embed=True),
    store: LogStore = Depends(get_store),
):
    """Generate (but do not save) an insight from the latest records up to *anchor*.

    A failed call still returns 200 with the fallback text, plus an
    ``error`` banner message.
    """
    day = _anchor_or_today(anchor)
    records = select_recent_records(store.records(), INSIGHT_RECORD_COUNT, until=date_key(day))
    result = await generate_insight(records)
    if result.failed:
        logger.info("Mentor insight unavailable (%s)", result.reason.value)
    return {
        "date": date_key(day),
        "insight": result.text,
        "reason": result.reason.value,
        "error": CALL_FAILED_BANNER if result.failed else None,
        "records_used": len(records),
    }

"""Trailing-window analytics over the daily habit log.

Produces the fixed-length, gap-free day series the charts depend on, plus
summary statistics and a per-habit breakdown.  Used by the web service
(app.py) and the chart renderer (charts.py).
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Any, Protocol

from habit_log import HABIT_CATALOG, date_key, parse_date_key


class RecordSource(Protocol):
    """Anything that can look a daily record up by date key (LogStore, dict)."""

    def get(self, key: str) -> dict | None: ...


def _resolve_anchor(anchor: date | str) -> date:
    if isinstance(anchor, datetime):
        return anchor.date()
    if isinstance(anchor, date):
        return anchor
    return parse_date_key(anchor)


def _window_days(window_days: int, anchor: date | str) -> list[date]:
    """Return the *window_days* calendar dates ending on *anchor*, oldest first.

    Raises:
        ValueError: If *window_days* is negative or *anchor* is not a date
            or valid date key.
    """
    if window_days < 0:
        raise ValueError(f"window_days must be >= 0, got {window_days}")
    end = _resolve_anchor(anchor)
    return [end - timedelta(days=offset) for offset in range(window_days - 1, -1, -1)]


def _window_records(
    store: RecordSource, window_days: int, anchor: date | str
) -> list[tuple[date, dict | None]]:
    """Pair each day of the window with its record (None when not logged)."""
    return [(d, store.get(date_key(d))) for d in _window_days(window_days, anchor)]


def _safe_div(num: float, den: float, default: float = 0.0) -> float:
    """Safe division returning *default* when denominator is zero.

    Args:
        num: Numerator.
        den: Denominator.
        default: Value to return when *den* is zero or falsy.

    Returns:
        ``round(num / den, 2)`` when *den* is truthy, otherwise *default*.
    """
    return round(num / den, 2) if den else default


def completion_rate(record: dict | None, catalog: list[dict] = HABIT_CATALOG) -> float:
    """Percentage of catalog habits marked done in *record*.

    Counts every habit id mapped to true.  Returns 0.0 for a missing record
    or an empty catalog rather than dividing by zero.
    """
    if not record or not catalog:
        return 0.0
    completed = sum(1 for done in record.get("habits", {}).values() if done)
    return 100 * completed / len(catalog)


def sleep_hours(bed_time: str, wake_time: str) -> float:
    """Hours between *bed_time* and *wake_time* (``HH:mm``), wrapping midnight.

    Equal times are treated as zero hours slept.
    """
    bed_h, bed_m = (int(p) for p in bed_time.split(":"))
    wake_h, wake_m = (int(p) for p in wake_time.split(":"))
    minutes = ((wake_h * 60 + wake_m) - (bed_h * 60 + bed_m)) % (24 * 60)
    return round(minutes / 60, 2)


def derive_window(
    store: RecordSource,
    window_days: int,
    anchor: date | str,
    catalog: list[dict] = HABIT_CATALOG,
) -> list[dict[str, Any]]:
    """Compute one chart point per calendar day for a trailing window.

    Always returns exactly *window_days* entries in ascending date order,
    ending on *anchor*.  Days with no record produce a fully-zeroed entry
    instead of being skipped, so chart consumers can rely on a fixed-length,
    gap-free series.

    Args:
        store: Record lookup by date key; a ``LogStore`` or a plain dict of
            date key to record.
        window_days: Number of days in the window (0 returns an empty list).
        anchor: Last day of the window, as a ``date`` or ``YYYY-MM-DD`` key.
        catalog: Habit catalog the completion rate is measured against.

    Returns:
        List of dicts with keys date, label (``MM/DD``), mood, energy,
        sleep_quality, instagram_minutes, study_minutes, completion_rate.

    Raises:
        ValueError: If *window_days* is negative or *anchor* is invalid.
    """
    metrics = []
    for day, record in _window_records(store, window_days, anchor):
        rec = record or {}
        metrics.append(
            {
                "date": date_key(day),
                "label": day.strftime("%m/%d"),
                "mood": rec.get("mood", 0),
                "energy": rec.get("energy", 0),
                "sleep_quality": rec.get("sleepQuality", 0),
                "instagram_minutes": rec.get("instagramMinutes", 0),
                "study_minutes": rec.get("studyMinutes", 0),
                "completion_rate": completion_rate(record, catalog),
            }
        )
    return metrics


# ---------------------------------------------------------------------------
# Rolling average helpers (pure Python, no pandas)
# ---------------------------------------------------------------------------

def _rolling_avg(values: list[float], window: int) -> list[float]:
    """Compute rolling average, using available values when the window is not yet full.

    Args:
        values: Numeric series to smooth.
        window: Maximum number of trailing values to average.  At the
            start of the series, fewer values are used (expanding window
            until *window* values are available).

    Returns:
        List of floats the same length as *values*, where each element
        is the mean of the trailing *window* (or fewer) values.
    """
    result = []
    for i in range(len(values)):
        start = max(0, i - window + 1)
        w = values[start : i + 1]
        result.append(sum(w) / len(w))
    return result


def _format_rolling(values: list[float], window: int) -> list[float]:
    """Compute a rolling average and round each element to 2 decimal places."""
    return [round(v, 2) for v in _rolling_avg(values, window)]


def _build_chart_series(values: list[float]) -> dict[str, list[float]]:
    """Wrap a metric series with its 7-day rolling average."""
    return {
        "values": values,
        "avg_7d": _format_rolling(values, 7),
    }


CHART_METRICS = (
    "mood",
    "energy",
    "sleep_quality",
    "instagram_minutes",
    "study_minutes",
    "completion_rate",
)


def compute_chart_data(metrics: list[dict]) -> dict[str, Any]:
    """Compute chart series from a derived window.

    Args:
        metrics: Output of ``derive_window`` (already in date order).

    Returns:
        Dict with keys labels, dates, and one ``{values, avg_7d}`` series
        per metric in ``CHART_METRICS``.  Completion rates are rounded to
        2dp for display.
    """
    charts: dict[str, Any] = {
        "labels": [m["label"] for m in metrics],
        "dates": [m["date"] for m in metrics],
    }
    for name in CHART_METRICS:
        values = [m[name] for m in metrics]
        if name == "completion_rate":
            values = [round(v, 2) for v in values]
        charts[name] = _build_chart_series(values)
    return charts


def compute_summary_stats(
    store: RecordSource,
    window_days: int,
    anchor: date | str,
    catalog: list[dict] = HABIT_CATALOG,
) -> dict[str, Any]:
    """Compute headline statistics for the logged days in a window.

    Averages are taken over logged days only, so unlogged days do not drag
    the mood or sleep numbers towards zero the way the chart series do.

    Args:
        store: Record lookup by date key.
        window_days: Number of days in the window.
        anchor: Last day of the window.
        catalog: Habit catalog for completion rates.

    Returns:
        Dict with keys: days_in_window, days_logged, avg_mood, avg_energy,
        avg_sleep_quality, avg_sleep_hours, avg_completion_rate,
        total_study_minutes, total_instagram_minutes,
        study_to_instagram_ratio, total_study_sessions, goals_set,
        goals_completed, goal_completion_rate.
    """
    logged = [rec for _, rec in _window_records(store, window_days, anchor) if rec]
    n = len(logged)

    total_study = sum(r["studyMinutes"] for r in logged)
    total_instagram = sum(r["instagramMinutes"] for r in logged)
    goals_set = [r for r in logged if r["dailyGoal"].strip()]
    goals_completed = sum(1 for r in goals_set if r["dailyGoalCompleted"])

    return {
        "days_in_window": window_days,
        "days_logged": n,
        "avg_mood": _safe_div(sum(r["mood"] for r in logged), n),
        "avg_energy": _safe_div(sum(r["energy"] for r in logged), n),
        "avg_sleep_quality": _safe_div(sum(r["sleepQuality"] for r in logged), n),
        "avg_sleep_hours": _safe_div(
            sum(sleep_hours(r["bedTime"], r["wakeTime"]) for r in logged), n
        ),
        "avg_completion_rate": _safe_div(
            sum(completion_rate(r, catalog) for r in logged), n
        ),
        "total_study_minutes": total_study,
        "total_instagram_minutes": total_instagram,
        "study_to_instagram_ratio": _safe_div(total_study, total_instagram),
        "total_study_sessions": sum(r["studySessions"] for r in logged),
        "goals_set": len(goals_set),
        "goals_completed": goals_completed,
        "goal_completion_rate": _safe_div(goals_completed * 100, len(goals_set)),
    }


def compute_habit_breakdown(
    store: RecordSource,
    window_days: int,
    anchor: date | str,
    catalog: list[dict] = HABIT_CATALOG,
) -> list[dict]:
    """Per-habit completion counts over the window, in catalog order.

    Returns:
        List of dicts with keys id, label, completed_days, and rate (percent
        of the days in the window, 0.0 for an empty window).
    """
    window = _window_records(store, window_days, anchor)
    rows = []
    for habit in catalog:
        done = sum(
            1 for _, rec in window if rec and rec.get("habits", {}).get(habit["id"])
        )
        rows.append(
            {
                "id": habit["id"],
                "label": habit["label"],
                "completed_days": done,
                "rate": _safe_div(done * 100, len(window)),
            }
        )
    return rows


def build_dashboard_payload(
    store: RecordSource,
    window_days: int,
    anchor: date | str,
    catalog: list[dict] = HABIT_CATALOG,
) -> dict[str, Any]:
    """One-call entry point: every analytics section the dashboard needs.

    Args:
        store: Record lookup by date key.
        window_days: Number of days in the trailing window.
        anchor: Last day of the window.
        catalog: Habit catalog for completion rates.

    Returns:
        Dict with keys: generated_at (ISO timestamp), window (start, end,
        days), days (``derive_window`` output), charts, summary, habits.
    """
    metrics = derive_window(store, window_days, anchor, catalog)
    end = _resolve_anchor(anchor)
    start = end - timedelta(days=window_days - 1) if window_days else end
    return {
        "generated_at": datetime.now().isoformat(),
        "window": {
            "start": date_key(start),
            "end": date_key(end),
            "days": window_days,
        },
        "days": metrics,
        "charts": compute_chart_data(metrics),
        "summary": compute_summary_stats(store, window_days, anchor, catalog),
        "habits": compute_habit_breakdown(store, window_days, anchor, catalog),
    }

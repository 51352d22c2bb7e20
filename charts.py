"""PNG trend charts for a derived analytics window.

Three charts, each with a 7-day rolling average overlay where it helps:
focus vs distraction minutes, mood and sleep quality, and overall habit
consistency.
"""

from __future__ import annotations

import io
import threading
from typing import Callable

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402
import seaborn as sns  # noqa: E402

sns.set_theme(style="whitegrid")

# pyplot keeps global figure state
_render_lock = threading.Lock()


def metrics_frame(metrics: list[dict]) -> pd.DataFrame:
    """Build a date-indexed DataFrame from ``analytics.derive_window`` output."""
    df = pd.DataFrame(metrics)
    if df.empty:
        return df
    df["date"] = pd.to_datetime(df["date"])
    df = df.sort_values("date")
    df["study_7_day_avg"] = df["study_minutes"].rolling(window=7, min_periods=1).mean()
    df["instagram_7_day_avg"] = df["instagram_minutes"].rolling(window=7, min_periods=1).mean()
    df["completion_7_day_avg"] = df["completion_rate"].rolling(window=7, min_periods=1).mean()
    return df


def _focus_chart(df: pd.DataFrame, ax: plt.Axes) -> None:
    x = range(len(df))
    ax.bar([i - 0.2 for i in x], df["study_minutes"], width=0.4, color="#10b981", label="Study Time")
    ax.bar([i + 0.2 for i in x], df["instagram_minutes"], width=0.4, color="#f43f5e", label="Instagram")
    ax.plot(x, df["study_7_day_avg"], color="#047857", linewidth=2, label="Study 7-day Average")
    ax.plot(x, df["instagram_7_day_avg"], color="#be123c", linewidth=2, label="Instagram 7-day Average")
    ax.set_title("Focus vs Distraction (Minutes)", fontsize=14, pad=20)
    ax.set_ylabel("Minutes", fontsize=12)


def _mood_chart(df: pd.DataFrame, ax: plt.Axes) -> None:
    x = range(len(df))
    ax.plot(x, df["mood"], color="#f59e0b", linewidth=3, marker="o", label="Mood")
    ax.plot(x, df["sleep_quality"], color="#6366f1", linewidth=3, marker="o", label="Sleep Quality")
    ax.set_ylim(0, 5)
    ax.set_title("Mood & Sleep Quality Trend", fontsize=14, pad=20)
    ax.set_ylabel("Rating", fontsize=12)


def _consistency_chart(df: pd.DataFrame, ax: plt.Axes) -> None:
    x = range(len(df))
    ax.fill_between(x, df["completion_rate"], color="#818cf8", alpha=0.3)
    ax.plot(x, df["completion_rate"], color="#6366f1", linewidth=2, label="Completion %")
    ax.plot(x, df["completion_7_day_avg"], color="purple", linewidth=2, linestyle="--", label="7-day Average")
    ax.set_ylim(0, 100)
    ax.set_title("Overall Habit Consistency (%)", fontsize=14, pad=20)
    ax.set_ylabel("Completion %", fontsize=12)


CHARTS: dict[str, Callable[[pd.DataFrame, plt.Axes], None]] = {
    "focus": _focus_chart,
    "mood": _mood_chart,
    "consistency": _consistency_chart,
}


def render_chart(name: str, metrics: list[dict], dpi: int = 100) -> bytes:
    """Render one named chart to PNG bytes.

    Args:
        name: One of ``CHARTS`` ("focus", "mood", "consistency").
        metrics: Output of ``analytics.derive_window``.
        dpi: Output resolution.

    Returns:
        PNG image bytes.  An empty window renders empty axes.

    Raises:
        KeyError: If *name* is not a known chart.
    """
    draw = CHARTS[name]
    df = metrics_frame(metrics)

    with _render_lock:
        fig, ax = plt.subplots(figsize=(15, 8))
        try:
            if not df.empty:
                draw(df, ax)
                ax.set_xticks(range(len(df)))
                ax.set_xticklabels(df["label"], rotation=45)
                ax.legend()
            ax.set_xlabel("Date", fontsize=12)
            fig.tight_layout()
            buf = io.BytesIO()
            fig.savefig(buf, format="png", dpi=dpi, bbox_inches="tight")
        finally:
            plt.close(fig)
    return buf.getvalue()

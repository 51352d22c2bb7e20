"""Daily habit log: record defaults, the habit catalog, and the owned log store.

Records are plain JSON-compatible dicts keyed by the same camelCase field
names that are written to the durable slot, so a loaded slot and an in-memory
store compare equal field for field.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import re
import threading
import time
from datetime import date
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from schemas import DailyRecord

logger = logging.getLogger(__name__)

DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

HABIT_CATALOG: list[dict[str, str]] = [
    {"id": "exercise", "label": "Exercise"},
    {"id": "noPhoneMorning", "label": "No Morning Phone"},
    {"id": "deepWork", "label": "Deep Work Session"},
    {"id": "read", "label": "Reading"},
    {"id": "meditate", "label": "Meditation"},
    {"id": "planTomorrow", "label": "Plan Tomorrow"},
]

# Fields a caller may set through LogStore.update; "date" is owned by the key.
UPDATABLE_FIELDS = frozenset(
    {
        "habits",
        "mood",
        "energy",
        "bedTime",
        "wakeTime",
        "sleepQuality",
        "instagramMinutes",
        "studyMinutes",
        "studySessions",
        "dailyGoal",
        "dailyGoalCompleted",
        "reflection",
        "aiMentorInsight",
        "waterIntake",
    }
)


class SlotParseError(ValueError):
    """The durable slot holds content that is not a valid log store."""


class StoreNotLoadedError(RuntimeError):
    """Persistence was requested before the store finished loading."""


def date_key(day: date) -> str:
    """Return the canonical ``YYYY-MM-DD`` key for *day*."""
    return day.isoformat()


def parse_date_key(key: str) -> date:
    """Parse a canonical date key.

    Args:
        key: A ``YYYY-MM-DD`` string.

    Returns:
        The corresponding ``datetime.date``.

    Raises:
        ValueError: If *key* is not exactly ``YYYY-MM-DD`` or names an
            impossible calendar date (e.g. ``2024-02-30``).
    """
    if not isinstance(key, str) or not DATE_KEY_RE.match(key):
        raise ValueError(f"Invalid date key: {key!r} (expected YYYY-MM-DD)")
    return date.fromisoformat(key)


def habit_ids(catalog: list[dict[str, str]] | None = None) -> list[str]:
    """Return the habit ids of *catalog* (the default catalog if omitted)."""
    return [h["id"] for h in (HABIT_CATALOG if catalog is None else catalog)]


def default_record(key: str) -> dict[str, Any]:
    """Build the fully-populated record used when a day has no entry yet.

    Args:
        key: Date key the record belongs to.  Stored on the record as
            ``date``; not validated here.

    Returns:
        A fresh dict.  Nothing is shared between calls, so callers may
        mutate the nested ``habits`` map freely.
    """
    return {
        "date": key,
        "habits": {},
        "mood": 3,
        "energy": 3,
        "bedTime": "23:00",
        "wakeTime": "07:00",
        "sleepQuality": 3,
        "instagramMinutes": 0,
        "studyMinutes": 0,
        "studySessions": 0,
        "dailyGoal": "",
        "dailyGoalCompleted": False,
        "reflection": "",
        "waterIntake": 4,
    }


def validate_record(record: dict[str, Any]) -> dict[str, Any]:
    """Check *record* is a complete, correctly typed daily record.

    Returns:
        The record as a fresh dict of slot field names.

    Raises:
        pydantic.ValidationError: On a missing, null, unknown, out-of-range
            or wrongly typed field.
    """
    return DailyRecord.model_validate(record).to_record()


def _parse_slot(text: str) -> dict[str, dict[str, Any]]:
    """Parse slot text into a records mapping.

    Records missing fields are completed from ``default_record`` and their
    ``date`` is forced to the key they are stored under.

    Raises:
        SlotParseError: If the text is not a JSON object of date key to
            record object.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SlotParseError(f"invalid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise SlotParseError(f"expected a JSON object, got {type(data).__name__}")

    records: dict[str, dict[str, Any]] = {}
    for key, value in data.items():
        try:
            parse_date_key(key)
        except ValueError as exc:
            raise SlotParseError(str(exc)) from exc
        if not isinstance(value, dict):
            raise SlotParseError(f"record for {key} is not an object")
        record = default_record(key)
        record.update(value)
        record["date"] = key
        try:
            records[key] = validate_record(record)
        except ValidationError as exc:
            raise SlotParseError(f"record for {key} is invalid: {exc}") from exc
    return records


class LogStore:
    """Owned mapping of date key to daily record, persisted to one JSON slot.

    Lifecycle: construct with the slot path, call ``load()`` once, then mutate
    through ``update`` (or the helpers built on it).  Every mutation after
    load is written through to the slot in full.
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)
        self._records: dict[str, dict[str, Any]] = {}
        self._loaded = False
        self._lock = threading.RLock()

    @property
    def loaded(self) -> bool:
        return self._loaded

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def get(self, key: str) -> dict[str, Any] | None:
        """Return a copy of the record for *key*, or None.  Never creates one."""
        with self._lock:
            record = self._records.get(key)
            return copy.deepcopy(record) if record is not None else None

    def records(self) -> dict[str, dict[str, Any]]:
        """Return a copy of every record, keyed by date."""
        with self._lock:
            return copy.deepcopy(self._records)

    def update(self, key: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Merge *fields* over the stored (or default) record for *key*.

        The merge is shallow: a supplied ``habits`` map replaces the stored
        one whole.  Toggle individual habits with ``toggle_habit``.

        Args:
            key: Date key of the day to update.
            fields: Partial record.  May be empty, which materialises the
                default record for a new day.

        Returns:
            A copy of the merged record as stored.

        Raises:
            ValueError: If *key* is not a valid date key, *fields* names a
                field that does not exist or tries to change ``date``, or the
                merged record has a null or wrongly typed value.  The store
                is left untouched.
        """
        parse_date_key(key)
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown or read-only record fields: {sorted(unknown)}")

        with self._lock:
            base = self._records.get(key) or default_record(key)
            try:
                merged = validate_record({**base, **fields})
            except ValidationError as exc:
                raise ValueError(f"Invalid record for {key}: {exc}") from exc
            self._records[key] = merged
            if self._loaded:
                self._write()
            else:
                logger.debug("Store not loaded yet; skipping persist of %s", key)
            return copy.deepcopy(merged)

    def toggle_habit(self, key: str, habit_id: str) -> dict[str, Any]:
        """Flip one habit for *key* and store the pre-merged habits map.

        Raises:
            ValueError: If *habit_id* is not in the habit catalog.
        """
        if habit_id not in habit_ids():
            raise ValueError(f"Unknown habit: {habit_id!r}")
        with self._lock:
            current = self.get(key) or default_record(key)
            habits = dict(current["habits"])
            habits[habit_id] = not habits.get(habit_id, False)
            return self.update(key, {"habits": habits})

    def save_insight(self, key: str, text: str) -> dict[str, Any]:
        """Attach a generated mentor insight to the record for *key*."""
        return self.update(key, {"aiMentorInsight": text})

    def persist(self) -> None:
        """Write the whole store to the slot.

        Raises:
            StoreNotLoadedError: If ``load()`` has not completed, so a store
                that was never rehydrated cannot clobber the slot.
        """
        with self._lock:
            if not self._loaded:
                raise StoreNotLoadedError("load() must complete before persist()")
            self._write()

    def load(self) -> int:
        """Rehydrate the store from the slot, replacing any in-memory records.

        A missing or blank slot yields an empty store.  Malformed content is
        logged, copied aside to ``<slot>.corrupt-<epoch>.json``, and also
        yields an empty store; nothing is raised.

        Returns:
            Number of records loaded.
        """
        records: dict[str, dict[str, Any]] = {}
        if self.path.exists():
            text = self.path.read_text(encoding="utf-8")
            if text.strip():
                try:
                    records = _parse_slot(text)
                except SlotParseError as exc:
                    logger.warning("Failed to parse log slot %s: %s", self.path, exc)
                    self._back_up_corrupt(text)
                    records = {}

        with self._lock:
            if self._records:
                logger.warning(
                    "Discarding %d unsaved records updated before load: %s",
                    len(self._records),
                    ", ".join(sorted(self._records)),
                )
            self._records = records
            self._loaded = True
        logger.info("Loaded %d daily records from %s", len(records), self.path)
        return len(records)

    def _back_up_corrupt(self, text: str) -> None:
        backup = self.path.with_name(f"{self.path.stem}.corrupt-{int(time.time())}.json")
        try:
            backup.write_text(text, encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not back up corrupt slot to %s: %s", backup, exc)

    def _write(self) -> None:
        # Caller holds self._lock.
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        payload = json.dumps(self._records, indent=2, sort_keys=True, ensure_ascii=False) + "\n"

        with open(tmp, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())

        os.replace(tmp, self.path)

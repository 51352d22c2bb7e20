"""Shared fixtures for habit mentor tests."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from habit_log import LogStore


@pytest.fixture()
def slot_path(tmp_path: Path) -> Path:
    """Path of the JSON slot, not created yet."""
    return tmp_path / "habit_logs.json"


@pytest.fixture()
def store(slot_path: Path) -> LogStore:
    """A loaded, empty store backed by a temporary slot."""
    s = LogStore(slot_path)
    s.load()
    return s


@pytest.fixture()
def client(slot_path: Path):
    """TestClient for app.py backed by a temporary slot.

    Patches LOG_PATH before startup so the lifespan loads (and later
    writes) the temporary slot instead of the real one.
    """
    import app as app_module

    with patch.object(app_module, "LOG_PATH", slot_path):
        with TestClient(app_module.app) as tc:
            yield tc

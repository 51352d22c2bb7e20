"""Shared test helpers for habit mentor tests.

Regular functions (not fixtures) that can be imported by any test module.
"""

from __future__ import annotations

from types import SimpleNamespace

from habit_log import default_record


def make_record(key: str, **fields) -> dict:
    """Build a full record for *key* with *fields* (slot names) overridden."""
    record = default_record(key)
    record.update(fields)
    return record


def make_records(day_configs: list[tuple[str, dict]]) -> dict[str, dict]:
    """Build a date-keyed record mapping from (date_key, overrides) tuples."""
    return {key: make_record(key, **overrides) for key, overrides in day_configs}


class FakeCompletions:
    """Stands in for ``client.chat.completions`` and counts calls."""

    def __init__(self, content: str | None = "insight", error: Exception | None = None):
        self.content = content
        self.error = error
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeOpenAI:
    """Minimal ``AsyncOpenAI`` look-alike exposing ``chat.completions.create``."""

    def __init__(self, content: str | None = "insight", error: Exception | None = None):
        self.completions = FakeCompletions(content=content, error=error)
        self.chat = SimpleNamespace(completions=self.completions)

    @property
    def call_count(self) -> int:
        return len(self.completions.calls)

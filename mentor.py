"""AI mentor insights for the most recent daily records.

One request per call to an OpenAI chat-completions model, no retries and no
streaming.  ``generate_insight`` reports what happened as an ``InsightResult``
so callers can tell an outright failure from a merely empty reply;
``request_insight`` collapses that to display text.
"""

from __future__ import annotations

import enum
import json
import logging
import os
from dataclasses import dataclass
from typing import Any

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
MENTOR_MODEL = os.environ.get("MENTOR_MODEL", "gpt-4o-mini")
MENTOR_TEMPERATURE = 0.7
MENTOR_MAX_TOKENS = 600

NOT_ENOUGH_DATA_MESSAGE = (
    "I don't have enough data yet! Please track your habits for a day or two first."
)
EMPTY_RESPONSE_MESSAGE = "I couldn't generate an insight right now. Keep tracking!"
SERVICE_ERROR_MESSAGE = (
    "Start tracking your habits to unlock AI insights! "
    "(Or check if your API key is valid)."
)

PROMPT_TEMPLATE = """\
You are a strict but encouraging lifestyle mentor and accountability partner.
Your goal is to help the user stop being lazy, reduce Instagram addiction, and study more effectively.

Analyze the following JSON data representing the user's last few days of habits.

Data:
{data}

Please provide a response (max 200 words) using the following structure:

### Reality Check
(Analyze their "Study vs Instagram" ratio. If Instagram > Study, call them out. If they studied well, praise them.)

### Pattern Spotted
(Connect their Sleep Quality or Mood to their productivity, e.g. "You focus better when you wake up before 8 AM" or "Late nights are killing your focus.")

### Tomorrow's Mission
(Give one specific, hard challenge for tomorrow, e.g. "0 minutes of Instagram before 6 PM" or "2 hours deep work".)

Be direct, concise, and motivational. Use Markdown.
"""


class InsightReason(enum.Enum):
    OK = "ok"
    INSUFFICIENT_DATA = "insufficient_data"
    EMPTY_RESPONSE = "empty_response"
    SERVICE_ERROR = "service_error"
    NOT_CONFIGURED = "not_configured"


_FALLBACK_TEXT = {
    InsightReason.INSUFFICIENT_DATA: NOT_ENOUGH_DATA_MESSAGE,
    InsightReason.EMPTY_RESPONSE: EMPTY_RESPONSE_MESSAGE,
    InsightReason.SERVICE_ERROR: SERVICE_ERROR_MESSAGE,
    InsightReason.NOT_CONFIGURED: SERVICE_ERROR_MESSAGE,
}


@dataclass(frozen=True)
class InsightResult:
    """Outcome of one insight request.

    ``content`` holds the model's reply only when ``reason`` is OK.
    """

    reason: InsightReason
    content: str = ""
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.reason is InsightReason.OK

    @property
    def failed(self) -> bool:
        """True when the call itself failed (as opposed to an empty reply)."""
        return self.reason in (InsightReason.SERVICE_ERROR, InsightReason.NOT_CONFIGURED)

    @property
    def text(self) -> str:
        """The reply, or the fixed message for this outcome."""
        if self.ok:
            return self.content
        return _FALLBACK_TEXT[self.reason]


def select_recent_records(
    records: dict[str, dict] | list[dict],
    count: int = 7,
    until: str | None = None,
) -> list[dict]:
    """Return the *count* records with the latest date keys, oldest first.

    Args:
        records: Mapping of date key to record, or a list of records.
        count: Maximum number of records to keep.
        until: Date key of the last day to consider; later records are
            ignored.  All records are considered when omitted.
    """
    values = list(records.values()) if isinstance(records, dict) else list(records)
    if until is not None:
        values = [r for r in values if r["date"] <= until]
    values.sort(key=lambda r: r["date"])
    return values[-count:] if count > 0 else []


def build_prompt(records: list[dict]) -> str:
    """Embed the records, sorted ascending by date, into the mentor prompt.

    The input is not assumed to be sorted; a sorted copy is serialised.
    """
    ordered = sorted(records, key=lambda r: r["date"])
    return PROMPT_TEMPLATE.format(data=json.dumps(ordered, indent=2, ensure_ascii=False))


def get_openai_client() -> AsyncOpenAI | None:
    """Build a client from ``OPENAI_API_KEY``, or None when no key is set."""
    api_key = os.environ.get("OPENAI_API_KEY")
    if not api_key:
        logger.warning("OPENAI_API_KEY is not set; AI mentor is disabled.")
        return None
    return AsyncOpenAI(api_key=api_key)


async def generate_insight(
    records: list[dict],
    client: Any = None,
    model: str | None = None,
) -> InsightResult:
    """Ask the generation service for a mentor insight on *records*.

    Args:
        records: Daily records in any order.  Empty input short-circuits to
            ``INSUFFICIENT_DATA`` without any outbound call.
        client: An ``AsyncOpenAI``-compatible client.  Built from the
            environment when omitted.
        model: Model name; defaults to ``MENTOR_MODEL``.

    Returns:
        An ``InsightResult``.  Failures of the request are reported, never
        raised.
    """
    if not records:
        return InsightResult(InsightReason.INSUFFICIENT_DATA)

    if client is None:
        client = get_openai_client()
        if client is None:
            return InsightResult(InsightReason.NOT_CONFIGURED, detail="OPENAI_API_KEY not set")

    prompt = build_prompt(records)
    try:
        response = await client.chat.completions.create(
            model=model or MENTOR_MODEL,
            messages=[{"role": "user", "content": prompt}],
            temperature=MENTOR_TEMPERATURE,
            max_tokens=MENTOR_MAX_TOKENS,
        )
        choices = response.choices or []
        content = (choices[0].message.content or "").strip() if choices else ""
    except Exception as exc:
        logger.warning("Mentor insight request failed: %s", exc)
        return InsightResult(InsightReason.SERVICE_ERROR, detail=str(exc))

    if not content:
        logger.warning("Mentor insight request returned an empty reply")
        return InsightResult(InsightReason.EMPTY_RESPONSE)

    return InsightResult(InsightReason.OK, content=content)


async def request_insight(records: list[dict], client: Any = None) -> str:
    """Return insight text for *records*, substituting fixed fallback messages."""
    result = await generate_insight(records, client=client)
    return result.text

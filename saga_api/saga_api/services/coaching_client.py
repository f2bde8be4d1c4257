"""HTTP client for the hosted coaching engine."""

from __future__ import annotations

import logging
import re
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Prompt injection sanitization
# ---------------------------------------------------------------------------

_PROMPT_INJECTION_PATTERNS = re.compile(
    r"<\|system\|>|<\|user\|>|<\|assistant\|>|"
    r"Human:|Assistant:|"
    r"\[INST\]|\[/INST\]|"
    r"<<SYS>>|<</SYS>>|"
    r"<\|im_start\|>|<\|im_end\|>",
    re.IGNORECASE,
)
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")
_MAX_FIELD_SIZE = 20 * 1024


def sanitize_text(value: str, field_name: str = "input") -> str:
    """Clean user-written text before it is forwarded to the engine.

    Control characters other than newline, tab and carriage return are
    dropped, role/delimiter markers are replaced with ``[FILTERED]``, and
    anything past the field size cap is cut off with a marker.

    Parameters
    ----------
    value:
        Raw text from the member.
    field_name:
        Field name used in the truncation marker.
    """
    cleaned = _CONTROL_CHARS.sub("", value)
    cleaned = _PROMPT_INJECTION_PATTERNS.sub("[FILTERED]", cleaned)
    if len(cleaned) > _MAX_FIELD_SIZE:
        cleaned = cleaned[:_MAX_FIELD_SIZE] + f"\n[TRUNCATED: {field_name} exceeded {_MAX_FIELD_SIZE} bytes]"
    return cleaned


def _sanitize_messages(messages: list[dict[str, str]]) -> list[dict[str, str]]:
    return [
        {"role": m.get("role", "user"), "content": sanitize_text(m.get("content", ""), f"messages[{i}]")}
        for i, m in enumerate(messages)
    ]


class CoachingEngineClient:
    """Thin async wrapper around the coaching engine REST API.

    Every public method returns ``None`` on failure so that the routers
    can answer ``503`` instead of surfacing transport errors.

    Parameters
    ----------
    base_url:
        Root URL of the engine (e.g. ``http://localhost:8001``).
    timeout:
        Per-request timeout in seconds.
    transport:
        Optional httpx transport, used by tests to stub the engine.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout),
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    # -- Coaching endpoints --------------------------------------------------

    async def chat(self, uid: str, messages: list[dict[str, str]]) -> dict[str, Any] | None:
        """Send a chat transcript and return the coach's reply.

        Calls ``POST /chat`` on the engine.
        """
        payload = {"uid": uid, "messages": _sanitize_messages(messages)}
        return await self._post("/chat", payload)

    async def analyze_journal(self, uid: str, entry: str, mood: str | None = None) -> dict[str, Any] | None:
        payload: dict[str, Any] = {"uid": uid, "entry": sanitize_text(entry, "entry")}
        if mood is not None:
            payload["mood"] = sanitize_text(mood, "mood")
        return await self._post("/journal/analyze", payload)

    async def generate_scenarios(self, uid: str, topic: str, count: int = 3) -> dict[str, Any] | None:
        payload = {"uid": uid, "topic": sanitize_text(topic, "topic"), "count": count}
        return await self._post("/scenarios", payload)

    async def book_sos(
        self,
        uid: str,
        situation: str,
        *,
        urgency: str = "normal",
        priority: bool = False,
    ) -> dict[str, Any] | None:
        """Request an SOS coaching session.

        ``priority`` marks the booking for the front of the queue; the
        caller decides it from the member's capabilities.
        """
        payload = {
            "uid": uid,
            "situation": sanitize_text(situation, "situation"),
            "urgency": urgency,
            "priority": priority,
        }
        return await self._post("/sos/book", payload)

    # -- Lifecycle -----------------------------------------------------------

    async def health_check(self) -> bool:
        """Return ``True`` if the engine responds to a health ping."""
        try:
            resp = await self._client.get("/health")
            return resp.status_code == 200
        except httpx.HTTPError:
            return False

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        await self._client.aclose()

    # -- Internal helpers ----------------------------------------------------

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any] | None:
        """Fire a POST request and return the JSON body, or ``None`` on error."""
        try:
            response = await self._client.post(path, json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Coaching engine returned %d for %s: %s",
                exc.response.status_code,
                path,
                exc.response.text[:500],
            )
            return None
        except httpx.RequestError as exc:
            logger.warning("Coaching engine request to %s failed: %s", path, str(exc))
            return None
        except ValueError as exc:
            logger.warning("Coaching engine returned a non-JSON body for %s: %s", path, exc)
            return None

"""Remote placement assistance over an Anthropic-style messages API.

The adapter sends a window of source around the cursor plus the
description, and turns the JSON reply into a PlacementProposal. It never
raises: timeouts, HTTP errors, malformed replies, a missing credential and
the local rate limit all come back as ``None`` so the engine can fall back
to local analysis. Whatever it returns still goes through the validator.
"""

import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import backoff
import httpx
from pydantic import BaseModel, ValidationError, field_validator

from .document import Document
from .models import InsertPosition, PlacementProposal, ProposalSource
from .prompts import build_placement_prompt
from .rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.anthropic.com/v1/messages"
DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 2000
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_TIMEOUT = 8.0
DEFAULT_MAX_TRIES = 2
DEFAULT_CONTEXT_RADIUS = 20
REMOTE_CONFIDENCE = 0.7


class RemoteReply(BaseModel):
    """Structured reply expected from the remote assistant."""

    comment: str = ""
    targetLine: int
    position: str = "BEFORE"
    indentation: int = 0
    reasoning: str = ""

    @field_validator("position")
    @classmethod
    def _normalize_position(cls, value: str) -> str:
        value = (value or "BEFORE").strip().upper()
        if value not in ("BEFORE", "AFTER"):
            raise ValueError(f"position must be BEFORE or AFTER, got {value!r}")
        return value


def parse_reply(raw: str) -> Optional[RemoteReply]:
    """Parse the assistant's text into a RemoteReply, stripping markdown fences."""
    cleaned = raw.strip()
    if "```json" in cleaned:
        cleaned = cleaned.split("```json", 1)[1]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if "```" in cleaned:
        cleaned = cleaned.split("```", 1)[0]
    cleaned = cleaned.strip()

    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.warning(f"Remote reply is not JSON: {e}. Attempting repair.")
        start = cleaned.find("{")
        end = cleaned.rfind("}")
        if start < 0 or end <= start:
            return None
        try:
            data = json.loads(cleaned[start:end + 1])
        except json.JSONDecodeError:
            return None

    if not isinstance(data, dict):
        return None
    try:
        return RemoteReply.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Remote reply failed validation: {e.error_count()} error(s)")
        return None


# =========================================================================
# Metrics
# =========================================================================

@dataclass
class RemoteMetrics:
    """In-memory remote call metrics; guarded by the adapter's lock."""

    total_calls: int = 0
    errors: int = 0
    retries: int = 0
    rate_limited: int = 0
    total_latency_ms: float = 0.0

    def to_dict(self) -> dict:
        return {
            "total_calls": self.total_calls,
            "errors": self.errors,
            "retries": self.retries,
            "rate_limited": self.rate_limited,
            "total_latency_ms": round(self.total_latency_ms, 1),
            "avg_latency_ms": round(self.total_latency_ms / max(self.total_calls, 1), 1),
        }


def _is_permanent(error: Exception) -> bool:
    """Client errors other than 429 are not worth retrying."""
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        return status < 500 and status != 429
    return False


# =========================================================================
# Adapter
# =========================================================================

class RemoteAssistAdapter:
    """Asks a remote assistant where a comment belongs.

    Public API:
        propose(document, cursor_line, description) → Optional[PlacementProposal]
        get_metrics() → dict
    """

    def __init__(
        self,
        api_key: Optional[str],
        url: str = DEFAULT_API_URL,
        model: str = DEFAULT_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout: float = DEFAULT_TIMEOUT,
        max_tries: int = DEFAULT_MAX_TRIES,
        context_radius: int = DEFAULT_CONTEXT_RADIUS,
        rate_limiter: Optional[RateLimiter] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.api_key = api_key
        self.url = url
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.max_tries = max(1, max_tries)
        self.context_radius = context_radius
        self.rate_limiter = rate_limiter or RateLimiter()
        self._client = client
        self._metrics = RemoteMetrics()
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Any, api_key: Optional[str]) -> "RemoteAssistAdapter":
        """Build an adapter from a RemoteSettings block."""
        return cls(
            api_key=api_key,
            url=settings.url,
            model=settings.model,
            max_tokens=settings.max_tokens,
            timeout=settings.timeout,
            max_tries=settings.max_tries,
            context_radius=settings.context_radius,
            rate_limiter=RateLimiter(settings.rate_limit_calls, settings.rate_limit_window),
        )

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)

    def propose(self, document: Document, cursor_line: int, description: str) -> Optional[PlacementProposal]:
        """Return the remote proposal, or None on any failure."""
        if not self.api_key:
            logger.debug("No API key configured; remote assistance unavailable")
            return None
        if not self.rate_limiter.try_acquire():
            with self._lock:
                self._metrics.rate_limited += 1
            logger.warning("Remote rate limit reached; using local analysis")
            return None

        prompt = self._build_prompt(document, cursor_line, description)
        t0 = time.time()
        try:
            text = self._request(prompt)
        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as e:
            self._record_error()
            logger.warning(f"Remote placement request failed: {type(e).__name__}: {e}")
            return None

        latency_ms = (time.time() - t0) * 1000
        with self._lock:
            self._metrics.total_calls += 1
            self._metrics.total_latency_ms += latency_ms

        reply = parse_reply(text)
        if reply is None:
            self._record_error()
            logger.warning("Remote reply could not be parsed; using local analysis")
            return None

        logger.info(
            f"Remote proposal: line {reply.targetLine} {reply.position} "
            f"({latency_ms:.0f}ms, model={self.model})"
        )
        return PlacementProposal(
            target_line=reply.targetLine,
            insert_position=InsertPosition.AFTER if reply.position == "AFTER" else InsertPosition.BEFORE,
            description=description,
            source=ProposalSource.REMOTE,
            comment_text=reply.comment or None,
            reasoning=reply.reasoning or "remote placement",
            confidence=REMOTE_CONFIDENCE,
        )

    # =========================================================================
    # Request
    # =========================================================================

    def _build_prompt(self, document: Document, cursor_line: int, description: str) -> str:
        last = document.line_count - 1
        cursor_line = min(max(cursor_line, 0), last)
        start = max(0, cursor_line - self.context_radius)
        end = min(last, cursor_line + self.context_radius)
        code = "\n".join(document.line_at(i) for i in range(start, end + 1))
        return build_placement_prompt(
            code=code,
            language=document.language_id,
            description=description,
            cursor_line=cursor_line,
            cursor_offset=cursor_line - start,
        )

    def _request(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
        }

        @backoff.on_exception(
            backoff.expo,
            (httpx.TransportError, httpx.HTTPStatusError),
            max_tries=self.max_tries,
            max_time=self.timeout * self.max_tries,
            giveup=_is_permanent,
            on_backoff=self._on_retry,
        )
        def _do_call() -> Dict[str, Any]:
            if self._client is not None:
                response = self._client.post(self.url, json=payload, headers=headers, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(self.url, json=payload, headers=headers)
            response.raise_for_status()
            return response.json()

        data = _do_call()
        return data["content"][0]["text"]

    def _on_retry(self, details: dict) -> None:
        with self._lock:
            self._metrics.retries += 1
        logger.warning(
            f"Remote retry {details['tries']}/{self.max_tries} "
            f"after {details['wait']:.1f}s ({type(details.get('exception')).__name__})"
        )

    def _record_error(self) -> None:
        with self._lock:
            self._metrics.errors += 1

    def get_metrics(self) -> dict:
        """Return a thread-safe snapshot of current metrics."""
        with self._lock:
            result = self._metrics.to_dict()
            result["model"] = self.model
            return result

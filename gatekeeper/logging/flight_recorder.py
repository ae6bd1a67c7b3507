from __future__ import annotations

import time
from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List

import logging
from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

STAGES = (
    "WEBHOOK",
    "JOIN",
    "VERIFY",
    "REGISTRY",
    "NOTIFY",
    "EVICT",
    "COMMAND",
)

# person_id keeps a short suffix so log lines can still be correlated.
_MASKED_KEYS = {"name", "phone"}
_SUFFIXED_KEYS = {"person_id"}


@dataclass
class StageEvent:
    stage: str
    message: str
    elapsed_ms: float
    metadata: Dict[str, Any] = field(default_factory=dict)


class FlightRecorder:
    """Collects what happened while handling one webhook or one session.

    Events are kept in memory for inspection and mirrored to the module
    logger with personal data redacted.
    """

    def __init__(self) -> None:
        self.events: List[StageEvent] = []
        self.start_time = time.perf_counter()

    def total_ms(self) -> float:
        return round((time.perf_counter() - self.start_time) * 1000, 2)

    def _record(self, stage: str, message: str, elapsed_ms: float, metadata: Dict[str, Any]) -> Dict[str, Any]:
        if stage not in STAGES:
            logger.warning("flight_recorder.unknown_stage stage=%s", stage)
        redacted = _redact(metadata)
        self.events.append(
            StageEvent(
                stage=stage,
                message=message,
                elapsed_ms=elapsed_ms,
                metadata={"total_ms": self.total_ms(), **redacted},
            )
        )
        return redacted

    @contextmanager
    def stage(self, stage: str, **metadata: Any) -> Iterator[None]:
        started = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
            redacted = self._record(stage, f"{stage} completed", elapsed_ms, metadata)
            logger.info(
                "flight_recorder.stage stage=%s elapsed_ms=%.2f metadata=%s",
                stage,
                elapsed_ms,
                redacted,
            )

    def log(self, stage: str, message: str, **metadata: Any) -> None:
        redacted = self._record(stage, message, 0.0, metadata)
        logger.info("flight_recorder.log stage=%s message=%s metadata=%s", stage, message, redacted)

    def messages(self, stage: str) -> List[str]:
        return [event.message for event in self.events if event.stage == stage]

    def summary(self) -> Dict[str, int]:
        """Event count per stage, in pipeline order."""
        counts = Counter(event.stage for event in self.events)
        return {stage: counts[stage] for stage in STAGES if counts[stage]}


def redact_id(value: str) -> str:
    if len(value) <= 4:
        return "***"
    return f"***{value[-4:]}"


def _redact(payload: Dict[str, Any]) -> Dict[str, Any]:
    redacted: Dict[str, Any] = {}
    for key, value in payload.items():
        if not value:
            redacted[key] = value
        elif key in _MASKED_KEYS:
            redacted[key] = "***"
        elif key in _SUFFIXED_KEYS:
            redacted[key] = redact_id(str(value))
        else:
            redacted[key] = value
    return redacted


class FlightRecorderMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        recorder = FlightRecorder()
        request.state.flight_recorder = recorder
        response = await call_next(request)
        if recorder.events:
            logger.info(
                "flight_recorder.request path=%s status=%d total_ms=%.2f stages=%s",
                request.url.path,
                response.status_code,
                recorder.total_ms(),
                recorder.summary(),
            )
        return response


def register_log_middleware(app: FastAPI) -> None:
    app.add_middleware(FlightRecorderMiddleware)

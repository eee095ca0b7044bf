from __future__ import annotations

import asyncio
import inspect
import json
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from plotform.generate.plan_dto import ValidatedPlanResponse
from plotform.utils.errors import ErrorKind


class StageName(str, Enum):
    PLANNING = "planning"
    EXPANDING = "expanding"
    ENRICHING = "enriching"
    VALIDATING = "validating"
    COMMITTING = "committing"


class BaseEvent(BaseModel):
    def payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class StageStarted(BaseEvent):
    t: Literal["stage.started"] = "stage.started"
    stage: StageName
    message: str = ""
    progress: Optional[int] = Field(None, description="Overall progress in percent.")
    part_index: Optional[int] = None
    total_parts: Optional[int] = None


class RetryScheduled(BaseEvent):
    t: Literal["retry.scheduled"] = "retry.scheduled"
    attempt: int = Field(..., description="The attempt that just failed, counted from 1.")
    delay_ms: int
    reason: str = ""
    stage: Optional[StageName] = None


class StageFailed(BaseEvent):
    t: Literal["stage.failed"] = "stage.failed"
    stage: StageName
    error_kind: ErrorKind
    message: str
    part_index: Optional[int] = None


class AwaitingCommitChoice(BaseEvent):
    t: Literal["commit.awaiting"] = "commit.awaiting"
    response: ValidatedPlanResponse
    active_category: str


class Committed(BaseEvent):
    t: Literal["committed"] = "committed"
    item_count: int
    category: str
    item_ids: List[str] = Field(default_factory=list)


ProgressEvent = Union[
    StageStarted, RetryScheduled, StageFailed, AwaitingCommitChoice, Committed
]


class RunEventHub:
    """Fan-out of run events to SSE subscribers, with a bounded replay history."""

    def __init__(self, history_limit: int = 500, replay: int = 100):
        self.queues: Dict[str, List[asyncio.Queue[str]]] = {}
        self.history: Dict[str, List[str]] = {}
        self.HISTORY_LIMIT = history_limit
        self.REPLAY = replay

    def _ensure(self, run_id: str):
        self.queues.setdefault(run_id, [])
        self.history.setdefault(run_id, [])

    async def subscribe(self, run_id: str) -> asyncio.Queue[str]:
        self._ensure(run_id)
        q: asyncio.Queue[str] = asyncio.Queue(maxsize=2048)
        self.queues[run_id].append(q)
        for line in self.history[run_id][-self.REPLAY :]:
            await q.put(line)
        return q

    def unsubscribe(self, run_id: str, q: asyncio.Queue[str]):
        arr = self.queues.get(run_id, [])
        if q in arr:
            arr.remove(q)

    def clear(self, run_id: str):
        if run_id in self.history:
            self.history[run_id] = []

    def lines(self, run_id: str) -> List[str]:
        return list(self.history.get(run_id, []))

    async def emit(self, run_id: str, event: Union[Dict[str, Any], BaseEvent]):
        if isinstance(event, BaseEvent):
            event = event.payload()
        self._ensure(run_id)
        payload = {
            "t": event.get("t", "log"),
            "ts": event.get("ts", int(time.time() * 1000)),
            **event,
        }
        line = f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"
        hist = self.history[run_id]
        hist.append(line)
        if len(hist) > self.HISTORY_LIMIT:
            del hist[: len(hist) - self.HISTORY_LIMIT]
        for q in list(self.queues[run_id]):
            try:
                q.put_nowait(line)
            except asyncio.QueueFull:
                self.unsubscribe(run_id, q)

    async def log(self, run_id: str, chunk: str, stream: str = "stdout"):
        await self.emit(run_id, {"t": "log", "stream": stream, "chunk": chunk})


async def notify(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    """Call an observer that may be a plain function or a coroutine function."""
    if callback is None:
        return
    res = callback(*args)
    if inspect.isawaitable(res):
        await res


hub = RunEventHub()

import json

import pytest

from plotform.generate.plan_dto import GeneratedItem, ValidatedPlanResponse
from plotform.run_utils.events import (
    AwaitingCommitChoice,
    RunEventHub,
    StageFailed,
    StageName,
    StageStarted,
    notify,
)
from plotform.utils.errors import ErrorKind


def _data(line: str):
    assert line.startswith("data: ")
    return json.loads(line[len("data: "):])


class TestPayloads:
    def test_stage_failed_payload(self):
        payload = StageFailed(
            stage=StageName.EXPANDING, error_kind=ErrorKind.SHAPE, message="bad", part_index=2
        ).payload()
        assert payload == {
            "t": "stage.failed",
            "stage": "expanding",
            "error_kind": "shape",
            "message": "bad",
            "part_index": 2,
        }

    def test_awaiting_choice_uses_wire_names(self):
        resp = ValidatedPlanResponse(plan=[GeneratedItem(title="A")], suggested_category="Music Album")
        payload = AwaitingCommitChoice(response=resp, active_category="Podcast").payload()
        assert payload["response"]["suggestedCategory"] == "Music Album"
        assert payload["response"]["plan"][0]["subItems"] == []


class TestRunEventHub:
    @pytest.mark.asyncio
    async def test_subscriber_gets_history_then_live_events(self):
        hub = RunEventHub()
        await hub.emit("r", StageStarted(stage=StageName.PLANNING, progress=5))
        q = await hub.subscribe("r")
        await hub.log("r", "hello")

        first, second = _data(q.get_nowait()), _data(q.get_nowait())
        assert first["t"] == "stage.started"
        assert first["progress"] == 5
        assert "ts" in first
        assert second == {**second, "t": "log", "stream": "stdout", "chunk": "hello"}

    @pytest.mark.asyncio
    async def test_history_is_bounded(self):
        hub = RunEventHub(history_limit=3)
        for i in range(5):
            await hub.emit("r", {"t": "log", "chunk": str(i)})
        assert [_data(line)["chunk"] for line in hub.lines("r")] == ["2", "3", "4"]

    @pytest.mark.asyncio
    async def test_unsubscribed_queue_gets_nothing(self):
        hub = RunEventHub()
        q = await hub.subscribe("r")
        hub.unsubscribe("r", q)
        await hub.log("r", "x")
        assert q.empty()


@pytest.mark.asyncio
async def test_notify_accepts_sync_and_async_callbacks():
    seen = []

    async def later(x):
        seen.append(("async", x))

    await notify(lambda x: seen.append(("sync", x)), 1)
    await notify(later, 2)
    await notify(None, 3)
    assert seen == [("sync", 1), ("async", 2)]

import asyncio

import pytest

from helpers import checklist_payload
from plotform.generate.checklist import enrich_checklists, make_prompt
from plotform.generate.plan_dto import GeneratedItem, GeneratedSubItem


def _items(n: int):
    return [
        GeneratedItem(
            title=f"Item {i}",
            sub_items=[GeneratedSubItem(title="Intro", content="x" * 300)],
        )
        for i in range(1, n + 1)
    ]


class TestEnrichChecklists:
    """Per-item enrichment where one failure degrades only its own item."""

    @pytest.mark.asyncio
    async def test_failure_on_one_item_is_contained(self, client, caller):
        client.queue(
            "checklist",
            checklist_payload("a1"),
            checklist_payload("b1", "b2"),
            ValueError("boom"),
            checklist_payload("d1"),
            checklist_payload("e1"),
        )
        degraded = []

        result = await enrich_checklists("r1", _items(5), caller=caller, on_degraded=degraded.append)

        assert len(result) == 5
        assert result[2].checklist == []
        assert [bool(i.checklist) for i in result] == [True, True, False, True, True]
        assert [i.title for i in result] == [f"Item {n}" for n in range(1, 6)]
        assert len(degraded) == 1
        assert degraded[0].item_index == 3

    @pytest.mark.asyncio
    async def test_exhausted_retries_degrade_the_item(self, client, sleeps, caller):
        client.queue("checklist", *[RuntimeError("overloaded")] * 4, checklist_payload("b1"))

        result = await enrich_checklists("r1", _items(2), caller=caller)

        assert result[0].checklist == []
        assert result[1].checklist == ["b1"]
        assert sleeps.calls == [1.5, 3.0, 6.0]

    @pytest.mark.asyncio
    async def test_malformed_response_degrades(self, client, caller):
        client.queue("checklist", {"tasks": ["a"]})

        result = await enrich_checklists("r1", _items(1), caller=caller)

        assert result[0].checklist == []

    @pytest.mark.asyncio
    async def test_calls_are_sequential_and_in_order(self, client, caller):
        client.queue("checklist", *[checklist_payload()] * 3)

        await enrich_checklists("r1", _items(3), caller=caller)

        prompts = client.prompts_for("checklist")
        assert ["Item 1" in prompts[0], "Item 2" in prompts[1], "Item 3" in prompts[2]] == [True] * 3

    @pytest.mark.asyncio
    async def test_cancellation_is_not_swallowed(self, client, caller):
        client.queue("checklist", asyncio.CancelledError())

        with pytest.raises(asyncio.CancelledError):
            await enrich_checklists("r1", _items(1), caller=caller)

    @pytest.mark.asyncio
    async def test_input_items_are_not_mutated(self, client, caller):
        items = _items(1)
        client.queue("checklist", checklist_payload("a"))

        result = await enrich_checklists("r1", items, caller=caller)

        assert items[0].checklist == []
        assert result[0].checklist == ["a"]


def test_prompt_uses_short_excerpts():
    prompt = make_prompt(_items(1)[0])
    assert "Item 1" in prompt
    assert "x" * 100 + "..." in prompt
    assert "x" * 101 not in prompt

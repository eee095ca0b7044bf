from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from plotform.generate.plan_dto import Category, GeneratedItem, GenerationPlan
from plotform.run_utils.events import notify
from plotform.run_utils.llm import BackoffCaller, RetryObserver
from plotform.utils.errors import ContentGenerationFailure, PipelineError

logger = logging.getLogger(__name__)

ITEMS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["items"],
    "properties": {
        "items": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["title", "notes", "subItems"],
                "properties": {
                    "title": {"type": "string"},
                    "notes": {"type": "string"},
                    "seasonName": {"type": ["string", "null"]},
                    "seasonNumber": {"type": ["integer", "null"]},
                    "itemNumber": {"type": ["integer", "null"]},
                    "subItems": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "required": ["title", "content"],
                            "properties": {
                                "title": {"type": "string"},
                                "content": {"type": "string"},
                                "productionNotes": {"type": ["string", "null"]},
                            },
                        },
                    },
                },
            },
        }
    },
}


def describe_part(plan: GenerationPlan, part_index: int) -> str:
    if not plan.is_multi_part:
        return "This is a single-part generation."
    descriptions = plan.part_descriptions or []
    topic = descriptions[part_index - 1] if part_index <= len(descriptions) else ""
    return f"This is part {part_index} of {plan.part_count}. The topic for this part is: {topic}"


def serialize_context(accumulated: List[GeneratedItem]) -> str:
    return json.dumps(
        [it.model_dump(mode="json", by_alias=True) for it in accumulated],
        indent=2,
        ensure_ascii=False,
    )


def make_prompt(
    idea: str,
    plan: GenerationPlan,
    part_index: int,
    accumulated: List[GeneratedItem],
    category: Optional[Category] = None,
) -> str:
    item_label = category.item_label if category else "Episode"
    sub_item_label = category.sub_item_label if category else "Segment"
    if accumulated:
        context = (
            "For context, here are the parts you have already generated:\n"
            f"{serialize_context(accumulated)}\n\n"
            "Continue from there without repeating any of them.\n\n"
        )
    else:
        context = ""
    return (
        f"User's idea:\n{idea}\n\n"
        f"{describe_part(plan, part_index)}\n\n"
        f"{context}"
        f"Generate the {item_label.lower()}s for this part. Each item is one {item_label} "
        f"with a title, notes and an ordered list of {sub_item_label.lower()}s in 'subItems'; "
        "each sub-item has a title, long-form 'content' and optional 'productionNotes'.\n"
        "Use 'seasonName'/'seasonNumber' only when the idea calls for a specific grouping, otherwise null.\n\n"
        f"Schema (for JSON output):\n{json.dumps(ITEMS_SCHEMA, ensure_ascii=False)}"
    )


def parse_items(data: Any, part_index: int) -> List[GeneratedItem]:
    raw = data.get("items") if isinstance(data, dict) else None
    if not isinstance(raw, list):
        raise ContentGenerationFailure(
            f"Part {part_index} did not return a list of items.", part_index=part_index
        )
    items: List[GeneratedItem] = []
    for idx, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise ContentGenerationFailure(
                f"Part {part_index}: items[{idx}] must be an object.", part_index=part_index
            )
        try:
            items.append(GeneratedItem.model_validate(entry))
        except ValidationError as e:
            raise ContentGenerationFailure(
                f"Part {part_index}: items[{idx}] has {e.error_count()} invalid field(s).",
                part_index=part_index,
            ) from e
    return items


def backfill(item: GeneratedItem, plan: GenerationPlan) -> GeneratedItem:
    update: Dict[str, Any] = {}
    if item.season_name is None:
        update["season_name"] = plan.season_name
    if item.season_number is None:
        update["season_number"] = plan.season_number if plan.season_number is not None else 1
    return item.model_copy(update=update) if update else item


async def expand_plan(
    run_id: str,
    plan: GenerationPlan,
    idea: str,
    *,
    caller: BackoffCaller,
    category: Optional[Category] = None,
    on_part: Optional[Callable[[int, int], Any]] = None,
    on_retry: Optional[RetryObserver] = None,
) -> List[GeneratedItem]:
    """
    Generate every planned part in order. Each prompt carries the items of all
    earlier parts, so parts are never requested concurrently.
    """
    accumulated: List[GeneratedItem] = []
    total = plan.part_count

    for i in range(1, total + 1):
        await notify(on_part, i, total)
        prompt = make_prompt(idea, plan, i, accumulated, category)
        try:
            data = await caller.call(prompt, run_id=run_id, where="expander", on_retry=on_retry)
        except PipelineError as e:
            e.part_index = i
            raise
        items = [backfill(it, plan) for it in parse_items(data, i)]
        logger.info("run %s: part %d/%d produced %d item(s)", run_id, i, total, len(items))
        accumulated.extend(items)

    return accumulated

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional

from plotform.generate.plan_dto import Category, GeneratedItem
from plotform.run_utils.events import notify
from plotform.run_utils.llm import BackoffCaller, RetryObserver
from plotform.utils.errors import ItemEnrichmentError, ShapeError

logger = logging.getLogger(__name__)

EXCERPT_CHARS = 100


def _excerpt(text: Optional[str]) -> str:
    text = (text or "").strip()
    if len(text) <= EXCERPT_CHARS:
        return text
    return text[:EXCERPT_CHARS] + "..."


def make_prompt(item: GeneratedItem, category: Optional[Category] = None) -> str:
    item_label = category.item_label if category else "Episode"
    sub_item_label = category.sub_item_label if category else "Segment"
    lines = [f"- {s.title or 'Untitled'}: {_excerpt(s.content)}" for s in item.sub_items]
    outline = "\n".join(lines) if lines else "- (no content yet)"
    return (
        f"Based on the following {item_label.lower()}, generate a production checklist of "
        "3 to 5 specific, actionable tasks needed to finish it.\n\n"
        f"{item_label} title: {item.title}\n"
        f"{sub_item_label}s:\n{outline}\n\n"
        'Respond with JSON of the form {"checklist": ["task 1", "task 2", "task 3"]}.'
    )


def parse_checklist(data: Any) -> List[str]:
    raw = data.get("checklist") if isinstance(data, dict) else None
    if not isinstance(raw, list):
        raise ShapeError("The checklist response did not contain a 'checklist' list.")
    return [t.strip() for t in raw if isinstance(t, str) and t.strip()]


async def enrich_checklists(
    run_id: str,
    items: List[GeneratedItem],
    *,
    caller: BackoffCaller,
    category: Optional[Category] = None,
    on_degraded: Optional[Callable[[ItemEnrichmentError], Any]] = None,
    on_retry: Optional[RetryObserver] = None,
) -> List[GeneratedItem]:
    """
    Attach a checklist to every item, one call at a time. A failed call
    degrades only its own item to an empty checklist.
    """
    enriched: List[GeneratedItem] = []

    for idx, item in enumerate(items, start=1):
        try:
            data = await caller.call(
                make_prompt(item, category), run_id=run_id, where="checklist", on_retry=on_retry
            )
            checklist = parse_checklist(data)
        except Exception as e:
            err = ItemEnrichmentError(
                f"Checklist for item {idx} ('{item.title}') could not be generated: {e}", idx, e
            )
            logger.warning("run %s: %s", run_id, err.message)
            checklist = []
            await notify(on_degraded, err)
        enriched.append(item.model_copy(update={"checklist": checklist}))

    return enriched

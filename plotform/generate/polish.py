from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from plotform.generate.plan_dto import Category, PolishedSubItem, PolishResult
from plotform.run_utils.llm import BackoffCaller, RetryObserver
from plotform.utils.errors import ShapeError

logger = logging.getLogger(__name__)

POLISH_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["segments"],
    "properties": {
        "segments": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "polishedTitle", "polishedNotes"],
                "properties": {
                    "id": {"type": "string"},
                    "polishedTitle": {"type": "string"},
                    "polishedNotes": {"type": "string"},
                },
            },
        }
    },
}


def split_sub_items(
    item: Dict[str, Any], locked_ids: Iterable[str] = ()
) -> Tuple[List[Dict[str, str]], List[Dict[str, str]]]:
    """Return (to_polish, locked) as {id, title, notes} views of the item's sub-items."""
    locked_set = set(locked_ids)
    to_polish: List[Dict[str, str]] = []
    locked: List[Dict[str, str]] = []
    for s in item.get("sub_items") or []:
        view = {"id": s["id"], "title": s.get("title") or "", "notes": s.get("content") or ""}
        (locked if s["id"] in locked_set else to_polish).append(view)
    return to_polish, locked


def make_prompt(
    to_polish: List[Dict[str, str]],
    locked: List[Dict[str, str]],
    category: Optional[Category] = None,
) -> str:
    category_name = category.name if category else "Podcast"
    sub_item_label = category.sub_item_label if category else "Segment"
    context = json.dumps(locked, indent=2, ensure_ascii=False) if locked else "None."
    return (
        f'You are a creative co-writer and editor for a "{category_name}" project.\n\n'
        f"For each {sub_item_label.lower()} in SEGMENTS TO POLISH, rewrite and enhance the title and notes "
        "to be more engaging and well-structured. Keep the core idea. Expand on brief notes. "
        "Do not change the ids.\n\n"
        f"Context from locked {sub_item_label.lower()}s (already good):\n{context}\n\n"
        f"SEGMENTS TO POLISH:\n{json.dumps(to_polish, indent=2, ensure_ascii=False)}\n\n"
        f"Schema (for JSON output):\n{json.dumps(POLISH_SCHEMA, ensure_ascii=False)}"
    )


def parse_polish(data: Any, allowed_ids: Iterable[str]) -> List[PolishedSubItem]:
    try:
        result = PolishResult.model_validate(data)
    except ValidationError as e:
        raise ShapeError("The AI returned data in an unexpected format.") from e

    allowed = set(allowed_ids)
    polished = []
    for seg in result.segments:
        if seg.id not in allowed:
            logger.warning("ignoring polish for unknown or locked sub-item %s", seg.id)
            continue
        polished.append(seg)
    return polished


async def polish_item(
    run_id: str,
    item: Dict[str, Any],
    *,
    caller: BackoffCaller,
    category: Optional[Category] = None,
    locked_ids: Iterable[str] = (),
    on_retry: Optional[RetryObserver] = None,
) -> List[PolishedSubItem]:
    """
    Rewrite the title and notes of every unlocked sub-item of one committed
    item in a single call. Locked sub-items are sent along as context only.
    """
    to_polish, locked = split_sub_items(item, locked_ids)
    if not to_polish:
        raise ValueError("There is nothing to polish: every segment is locked.")

    data = await caller.call(
        make_prompt(to_polish, locked, category), run_id=run_id, where="polish", on_retry=on_retry
    )
    polished = parse_polish(data, [s["id"] for s in to_polish])
    logger.info("polished %d of %d sub-item(s) of %s", len(polished), len(to_polish), item.get("id"))
    return polished


def apply_polish(item: Dict[str, Any], polished: List[PolishedSubItem]) -> List[Dict[str, Any]]:
    """Sub-items of ``item`` with the polished titles and notes merged in."""
    by_id = {p.id: p for p in polished}
    merged = []
    for s in item.get("sub_items") or []:
        p = by_id.get(s["id"])
        if p is None:
            merged.append(dict(s))
        else:
            merged.append({**s, "title": p.polished_title, "content": p.polished_notes})
    return merged

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from plotform.generate.categories import find_category
from plotform.generate.plan_dto import Category, GenerationPlan
from plotform.run_utils.llm import BackoffCaller, RetryObserver
from plotform.utils.errors import PlanningFailure

logger = logging.getLogger(__name__)

PLAN_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "required": ["isMultiPart", "suggestedCategory"],
    "properties": {
        "isMultiPart": {"type": "boolean"},
        "totalParts": {"type": ["integer", "null"], "minimum": 1},
        "partDescriptions": {"type": ["array", "null"], "items": {"type": "string"}},
        "suggestedCategory": {"type": "string"},
        "seasonName": {"type": ["string", "null"]},
        "seasonNumber": {"type": ["integer", "null"]},
    },
}


def make_prompt(idea: str, category_names: List[str]) -> str:
    return (
        "Analyze the user's content idea and decide how it should be generated.\n\n"
        f"User's idea:\n{idea}\n\n"
        f"Available categories:\n{json.dumps(category_names, ensure_ascii=False)}\n\n"
        "Rules:\n"
        "- If the user asks for more than 5 items, or the request is complex, set 'isMultiPart' to true "
        "and split the work into parts of a few items each.\n"
        "- 'totalParts' is the number of parts; 'partDescriptions' has exactly one short topic line per part.\n"
        "- If the request is simple, set 'isMultiPart' to false and omit the part fields.\n"
        "- 'suggestedCategory' MUST be one of the available categories, copied exactly.\n"
        "- 'seasonName' and 'seasonNumber' are optional grouping hints (null when not applicable).\n\n"
        f"Schema (for JSON output):\n{json.dumps(PLAN_SCHEMA, ensure_ascii=False)}"
    )


def validate_sketch(
    data: Any, categories: List[Category], fallback_category: Optional[str] = None
) -> GenerationPlan:
    """Check the planning response and normalise part count and category."""
    if not isinstance(data, dict):
        raise PlanningFailure("The planning response must be a JSON object.")
    try:
        plan = GenerationPlan.model_validate(data)
    except ValidationError as e:
        raise PlanningFailure(
            f"The planning response has {e.error_count()} invalid field(s)."
        ) from e

    update: Dict[str, Any] = {}
    if plan.is_multi_part:
        descriptions = plan.part_descriptions or []
        if not descriptions:
            raise PlanningFailure("The plan is multi-part but lists no part descriptions.")
        if plan.total_parts is None:
            update["total_parts"] = len(descriptions)
        elif plan.total_parts < 1 or plan.total_parts != len(descriptions):
            raise PlanningFailure(
                f"The plan announces {plan.total_parts} part(s) but describes {len(descriptions)}."
            )

    matched = find_category(plan.suggested_category, categories)
    if matched:
        update["suggested_category"] = matched.name
    elif fallback_category:
        logger.info(
            "suggested category %r is unknown, using %r",
            plan.suggested_category,
            fallback_category,
        )
        update["suggested_category"] = fallback_category

    return plan.model_copy(update=update) if update else plan


async def sketch_plan(
    run_id: str,
    idea: str,
    categories: List[Category],
    *,
    caller: BackoffCaller,
    fallback_category: Optional[str] = None,
    on_retry: Optional[RetryObserver] = None,
) -> GenerationPlan:
    prompt = make_prompt(idea, [c.name for c in categories])
    data = await caller.call(prompt, run_id=run_id, where="sketcher", on_retry=on_retry)
    plan = validate_sketch(data, categories, fallback_category)
    logger.info(
        "run %s: plan with %d part(s), category %s",
        run_id,
        plan.part_count,
        plan.suggested_category,
    )
    return plan

from typing import List, Optional

from plotform.generate.plan_dto import GeneratedItem, ValidatedPlanResponse
from plotform.utils.errors import ValidationFailure


def validate_plan(items: List[GeneratedItem], suggested_category: Optional[str]) -> ValidatedPlanResponse:
    """Structural gate in front of the commit step; collects every failure it finds."""
    validation_failures: List[str] = []

    if not isinstance(items, list) or not items:
        validation_failures.append("plan must contain at least one item")
    else:
        for idx, item in enumerate(items):
            if not isinstance(item, GeneratedItem):
                validation_failures.append(f"plan[{idx}] must be a generated item")
                continue
            if not item.title or not item.title.strip():
                validation_failures.append(f"plan[{idx}] title must be a non-empty string")

    if not isinstance(suggested_category, str) or not suggested_category.strip():
        validation_failures.append("suggestedCategory must be a non-empty string")

    if validation_failures:
        raise ValidationFailure(
            f"Plan validation failed with {len(validation_failures)} issue(s)",
            validation_failures,
        )

    return ValidatedPlanResponse(plan=items, suggested_category=suggested_category.strip())

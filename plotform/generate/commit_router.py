from enum import Enum

from plotform.utils.dto import Action


class CommitChoice(str, Enum):
    CURRENT = "current"
    SWITCH_AND_COMMIT = "switch-and-commit"


def route_commit(suggested_category: str, active_category: str) -> Action:
    """Deterministic decision taken right after validation."""
    if suggested_category.strip().lower() == active_category.strip().lower():
        return Action("AUTO_COMMIT", args={"category": active_category}, reason="Suggested category is already active")
    return Action(
        "AWAIT_CHOICE",
        args={"suggested": suggested_category, "active": active_category},
        reason="Suggested category differs from the active one; ask the user",
    )


def resolve_choice(choice: CommitChoice, suggested_category: str, active_category: str) -> Action:
    if choice == CommitChoice.SWITCH_AND_COMMIT:
        return Action("SWITCH_AND_COMMIT", args={"category": suggested_category}, reason="User switched category")
    return Action("COMMIT_CURRENT", args={"category": active_category}, reason="User kept the active category")

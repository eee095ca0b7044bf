from __future__ import annotations

import copy
import uuid
from typing import Any, Dict, List, Optional, Protocol

from plotform.generate.categories import BUILTIN_CATEGORIES, default_category, find_category
from plotform.generate.plan_dto import Category

IDEA_HISTORY_LIMIT = 4


class UnknownCategoryError(KeyError):
    pass


class WorkspaceStore(Protocol):
    def list_existing_items(self, owner: str, season_number: int) -> List[Dict[str, Any]]:
        ...

    def create_item(self, data: Dict[str, Any]) -> str:
        ...

    def get_item(self, owner: str, item_id: str) -> Optional[Dict[str, Any]]:
        ...

    def update_item(self, item_id: str, changes: Dict[str, Any]) -> None:
        ...


class CategoryRegistry(Protocol):
    def list_categories(self) -> List[Category]:
        ...

    def get_active_category(self, owner: str) -> Category:
        ...

    def set_active_category(self, owner: str, name: str) -> Category:
        ...


class IdeaHistory(Protocol):
    def remember_idea(self, owner: str, idea: str) -> List[str]:
        ...

    def list_ideas(self, owner: str) -> List[str]:
        ...


def push_idea(history: List[str], idea: str, limit: int = IDEA_HISTORY_LIMIT) -> List[str]:
    """Most recent first, without duplicates, capped at ``limit`` entries."""
    idea = idea.strip()
    if not idea:
        return list(history[:limit])
    return [idea, *[h for h in history if h != idea]][:limit]


class MemoryWorkspaceStore:
    def __init__(self):
        self.items: Dict[str, Dict[str, Any]] = {}

    def list_existing_items(self, owner: str, season_number: int) -> List[Dict[str, Any]]:
        return [
            {"itemNumber": it.get("item_number")}
            for it in self.items.values()
            if it.get("owner") == owner and it.get("season_number") == season_number
        ]

    def create_item(self, data: Dict[str, Any]) -> str:
        item_id = data.get("id") or str(uuid.uuid4())
        self.items[item_id] = {**copy.deepcopy(data), "id": item_id}
        return item_id

    def list_items(self, owner: str) -> List[Dict[str, Any]]:
        return [it for it in self.items.values() if it.get("owner") == owner]

    def get_item(self, owner: str, item_id: str) -> Optional[Dict[str, Any]]:
        it = self.items.get(item_id)
        if it is None or it.get("owner") != owner:
            return None
        return copy.deepcopy(it)

    def update_item(self, item_id: str, changes: Dict[str, Any]) -> None:
        if item_id not in self.items:
            raise KeyError(item_id)
        self.items[item_id].update(copy.deepcopy(changes))


class MemoryCategoryRegistry:
    def __init__(self, categories: Optional[List[Category]] = None):
        self.categories = list(categories or BUILTIN_CATEGORIES)
        self.active: Dict[str, str] = {}

    def list_categories(self) -> List[Category]:
        return list(self.categories)

    def get_active_category(self, owner: str) -> Category:
        name = self.active.get(owner)
        found = find_category(name, self.categories)
        if found:
            return found
        return find_category(default_category().name, self.categories) or self.categories[0]

    def set_active_category(self, owner: str, name: str) -> Category:
        found = find_category(name, self.categories)
        if not found:
            raise UnknownCategoryError(name)
        self.active[owner] = found.name
        return found


class MemoryIdeaHistory:
    def __init__(self):
        self.ideas: Dict[str, List[str]] = {}

    def remember_idea(self, owner: str, idea: str) -> List[str]:
        self.ideas[owner] = push_idea(self.ideas.get(owner, []), idea)
        return list(self.ideas[owner])

    def list_ideas(self, owner: str) -> List[str]:
        return list(self.ideas.get(owner, []))


class MemoryWorkspace(MemoryWorkspaceStore, MemoryCategoryRegistry, MemoryIdeaHistory):
    """All three workspace collaborators in one process-local object."""

    def __init__(self, categories: Optional[List[Category]] = None):
        MemoryWorkspaceStore.__init__(self)
        MemoryCategoryRegistry.__init__(self, categories)
        MemoryIdeaHistory.__init__(self)

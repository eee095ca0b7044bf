from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import MongoClient

from plotform.config import MONGO_DB, MONGO_URL
from plotform.generate.categories import BUILTIN_CATEGORIES, default_category, find_category
from plotform.generate.plan_dto import Category
from plotform.run_utils.store import UnknownCategoryError, push_idea


class WorkspaceService:
    """MongoDB-backed workspace store, category registry and idea history."""

    def __init__(self, client: Optional[MongoClient] = None, categories: Optional[List[Category]] = None):
        self.client = client or MongoClient(MONGO_URL)
        self.db = self.client[MONGO_DB]
        self.items_collection = self.db["items"]
        self.settings_collection = self.db["settings"]
        self.categories = list(categories or BUILTIN_CATEGORIES)

    def list_existing_items(self, owner: str, season_number: int) -> List[Dict[str, Any]]:
        """
        Item numbers already used in one group of the owner's workspace.
        """
        cursor = self.items_collection.find(
            {"owner": owner, "season_number": season_number},
            {"item_number": 1},
        )
        return [{"itemNumber": doc.get("item_number")} for doc in cursor]

    def create_item(self, data: Dict[str, Any]) -> str:
        """
        Insert one committed item and return its id.
        """
        doc = {**data, "_id": data["id"], "updated_at": datetime.now(timezone.utc)}
        doc.pop("id")
        self.items_collection.insert_one(doc)
        return str(doc["_id"])

    def list_items(self, owner: str) -> List[Dict[str, Any]]:
        items = []
        for doc in self.items_collection.find({"owner": owner}).sort(
            [("season_number", 1), ("item_number", 1)]
        ):
            doc["id"] = str(doc.pop("_id"))
            items.append(doc)
        return items

    def get_item(self, owner: str, item_id: str) -> Optional[Dict[str, Any]]:
        doc = self.items_collection.find_one({"_id": item_id, "owner": owner})
        if doc is None:
            return None
        doc["id"] = str(doc.pop("_id"))
        return doc

    def update_item(self, item_id: str, changes: Dict[str, Any]) -> None:
        self.items_collection.update_one(
            {"_id": item_id},
            {"$set": {**changes, "updated_at": datetime.now(timezone.utc)}},
        )

    def list_categories(self) -> List[Category]:
        return list(self.categories)

    def _settings(self, owner: str) -> Dict[str, Any]:
        return self.settings_collection.find_one({"_id": owner}) or {}

    def get_active_category(self, owner: str) -> Category:
        found = find_category(self._settings(owner).get("active_category"), self.categories)
        if found:
            return found
        return find_category(default_category().name, self.categories) or self.categories[0]

    def set_active_category(self, owner: str, name: str) -> Category:
        found = find_category(name, self.categories)
        if not found:
            raise UnknownCategoryError(name)
        self.settings_collection.update_one(
            {"_id": owner}, {"$set": {"active_category": found.name}}, upsert=True
        )
        return found

    def remember_idea(self, owner: str, idea: str) -> List[str]:
        ideas = push_idea(self._settings(owner).get("ideas", []), idea)
        self.settings_collection.update_one(
            {"_id": owner}, {"$set": {"ideas": ideas}}, upsert=True
        )
        return ideas

    def list_ideas(self, owner: str) -> List[str]:
        return list(self._settings(owner).get("ideas", []))

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from plotform.generate.plan_dto import Category, GeneratedItem, ValidatedPlanResponse
from plotform.run_utils.store import WorkspaceStore

logger = logging.getLogger(__name__)


class WorkspaceCommitter:
    """Persists a validated plan, numbering items after the highest existing one in their group."""

    def __init__(self, store: WorkspaceStore):
        self.store = store

    def next_item_number(self, owner: str, season_number: int) -> int:
        existing = self.store.list_existing_items(owner, season_number)
        numbers = [e.get("itemNumber") or 0 for e in existing]
        return max(numbers, default=0) + 1

    def build_record(
        self,
        item: GeneratedItem,
        position: int,
        item_number: int,
        category: Category,
        *,
        owner: str,
        idea: str,
    ) -> Dict[str, Any]:
        checklist = item.checklist or category.default_checklist
        return {
            "id": str(uuid.uuid4()),
            "owner": owner,
            "title": item.title or f"Untitled Item {position}",
            "season_name": item.season_name,
            "season_number": item.season_number if item.season_number is not None else 1,
            "item_number": item_number,
            "notes": item.notes or "",
            "sub_items": [
                {
                    "id": str(uuid.uuid4()),
                    "title": s.title or "Untitled Segment",
                    "production_notes": s.production_notes or "",
                    "content": s.content or "",
                }
                for s in item.sub_items
            ],
            "checklist": [
                {"id": str(uuid.uuid4()), "text": text, "completed": False}
                for text in checklist
            ],
            "is_ai_generated": True,
            "prompt_used": idea.strip(),
            "category": category.name,
            "created_at": datetime.now(timezone.utc),
        }

    def commit(
        self,
        response: ValidatedPlanResponse,
        category: Category,
        *,
        owner: str,
        idea: str,
    ) -> List[str]:
        counters: Dict[Tuple[str, int], int] = {}
        ids: List[str] = []

        for position, item in enumerate(response.plan, start=1):
            season = item.season_number if item.season_number is not None else 1
            key = (owner, season)
            if key not in counters:
                counters[key] = self.next_item_number(owner, season)
            number = counters[key]
            counters[key] += 1

            record = self.build_record(item, position, number, category, owner=owner, idea=idea)
            ids.append(self.store.create_item(record))

        logger.info("committed %d item(s) for %s into %s", len(ids), owner, category.name)
        return ids

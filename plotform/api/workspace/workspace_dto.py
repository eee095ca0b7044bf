from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from plotform.generate.plan_dto import Category


class SubItemRecord(BaseModel):
    id: str = Field(..., description="Unique identifier of the sub-item.")
    title: str = Field(..., description="Title of the sub-item (segment, shot, lesson...).")
    production_notes: str = Field("", description="Short production notes.")
    content: str = Field("", description="Long-form body text.")


class ChecklistEntry(BaseModel):
    id: str = Field(..., description="Unique identifier of the task.")
    text: str = Field(..., description="What has to be done.")
    completed: bool = Field(False, description="Whether the task is done.")


class WorkspaceItemResponse(BaseModel):
    id: str = Field(..., description="The unique identifier of the item.")
    title: str = Field(..., description="Title of the item.")
    season_name: Optional[str] = Field(None, description="Name of the group the item belongs to.")
    season_number: int = Field(1, description="Number of the group the item belongs to.")
    item_number: int = Field(..., description="Sequential number within the group.")
    notes: str = Field("", description="Free-form notes.")
    sub_items: List[SubItemRecord] = Field(default_factory=list)
    checklist: List[ChecklistEntry] = Field(default_factory=list)
    is_ai_generated: bool = Field(False, description="Whether the item came from the plan generator.")
    prompt_used: Optional[str] = Field(None, description="The idea the item was generated from.")
    category: str = Field(..., description="Category the item was committed into.")
    created_at: Optional[datetime] = None


class ListItemsResponse(BaseModel):
    items: List[WorkspaceItemResponse] = Field(
        ..., description="Items in the workspace of the current user."
    )


class ListCategoriesResponse(BaseModel):
    categories: List[Category] = Field(..., description="Every category a plan can target.")
    active: str = Field(..., description="Name of the user's active category.")


class SetActiveCategoryRequest(BaseModel):
    name: str = Field(..., description="Name of the category to make active.")

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PlanModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class GenerationPlan(PlanModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    is_multi_part: bool = Field(
        False, alias="isMultiPart", description="Whether the idea needs several sequential parts."
    )
    total_parts: Optional[int] = Field(
        None, alias="totalParts", description="Number of parts; required when multi-part."
    )
    part_descriptions: Optional[List[str]] = Field(
        None, alias="partDescriptions", description="One topic line per part, in order."
    )
    suggested_category: Optional[str] = Field(
        None, alias="suggestedCategory", description="Category the service thinks fits best."
    )
    season_name: Optional[str] = Field(None, alias="seasonName")
    season_number: Optional[int] = Field(None, alias="seasonNumber")

    @property
    def part_count(self) -> int:
        if self.is_multi_part:
            return self.total_parts or 1
        return 1


class GeneratedSubItem(PlanModel):
    title: str = Field("", description="Title of the segment.")
    content: Optional[str] = Field("", description="Long-form body text of the segment.")
    production_notes: Optional[str] = Field(None, alias="productionNotes")


class GeneratedItem(PlanModel):
    title: str = Field("", description="Title of the generated item (episode, chapter...).")
    notes: Optional[str] = Field("", description="Free-form notes about the item.")
    season_name: Optional[str] = Field(None, alias="seasonName")
    season_number: Optional[int] = Field(None, alias="seasonNumber")
    item_number: Optional[int] = Field(None, alias="itemNumber")
    sub_items: List[GeneratedSubItem] = Field(default_factory=list, alias="subItems")
    checklist: List[str] = Field(default_factory=list)


class ValidatedPlanResponse(PlanModel):
    plan: List[GeneratedItem] = Field(..., min_length=1)
    suggested_category: str = Field(..., alias="suggestedCategory", min_length=1)


class Category(PlanModel):
    name: str = Field(..., description="Unique category (mode) name.")
    group_label: str = Field("Season", alias="groupLabel")
    item_label: str = Field("Episode", alias="itemLabel")
    sub_item_label: str = Field("Segment", alias="subItemLabel")
    default_checklist: List[str] = Field(default_factory=list, alias="defaultChecklist")


class PolishedSubItem(PlanModel):
    id: str = Field(..., description="Id of the sub-item that was rewritten.")
    polished_title: str = Field(..., alias="polishedTitle")
    polished_notes: str = Field(..., alias="polishedNotes")


class PolishResult(PlanModel):
    segments: List[PolishedSubItem] = Field(default_factory=list)

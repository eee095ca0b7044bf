from typing import List, Optional

from pydantic import BaseModel, Field

from plotform.generate.commit_router import CommitChoice
from plotform.generate.plan_dto import PolishedSubItem


class StartRunRequest(BaseModel):
    idea: str = Field(..., description="Free-text idea to turn into a plan.")


class StartRunResponse(BaseModel):
    run_id: str = Field(..., description="Identifier of the started run.")


class CommitChoiceRequest(BaseModel):
    choice: CommitChoice = Field(
        ..., description="'current' keeps the active category, 'switch-and-commit' switches to the suggested one."
    )


class PipelineStatusResponse(BaseModel):
    state: str = Field(..., description="Current state of the user's pipeline.")
    run_id: Optional[str] = Field(None, description="Most recent run of the pipeline.")
    busy: bool = Field(False, description="Whether a run is in flight.")


class IdeaRequest(BaseModel):
    idea: str = Field(..., description="The idea to work on.")


class IdeaResponse(BaseModel):
    idea: str = Field(..., description="The resulting idea text.")


class IdeaHistoryResponse(BaseModel):
    ideas: List[str] = Field(..., description="Most recent ideas first, at most four.")


class PolishRequest(BaseModel):
    locked_ids: List[str] = Field(
        default_factory=list, description="Sub-items to keep as they are; sent along as context."
    )
    apply: bool = Field(False, description="Write the polished titles and notes back to the item.")


class PolishResponse(BaseModel):
    item_id: str = Field(..., description="The polished item.")
    segments: List[PolishedSubItem] = Field(..., description="Rewritten title and notes per sub-item.")
    applied: bool = Field(False, description="Whether the suggestions were saved.")

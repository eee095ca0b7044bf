from typing import Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pymongo.errors import PyMongoError

from plotform.api.workspace.workspace_dto import (
    ListCategoriesResponse,
    ListItemsResponse,
    SetActiveCategoryRequest,
    WorkspaceItemResponse,
)
from plotform.api.workspace.workspace_service import WorkspaceService
from plotform.config import PLOTFORM_STORE
from plotform.generate.plan_dto import Category
from plotform.run_utils.store import MemoryWorkspace, UnknownCategoryError
from plotform.utils.auth import get_current_user

router = APIRouter(
    tags=["Workspace"],
    prefix="/workspace",
)

Workspace = Union[WorkspaceService, MemoryWorkspace]

_memory_workspace = MemoryWorkspace()
_mongo_workspace: Optional[WorkspaceService] = None


def get_workspace_service() -> Workspace:
    global _mongo_workspace
    if PLOTFORM_STORE == "memory":
        return _memory_workspace
    if _mongo_workspace is None:
        _mongo_workspace = WorkspaceService()
    return _mongo_workspace


@router.get(
    "/categories",
    response_model=ListCategoriesResponse,
    summary="List the categories a plan can target and the active one",
)
async def list_categories(
    current_user: str = Depends(get_current_user),
    workspace: Workspace = Depends(get_workspace_service),
) -> ListCategoriesResponse:
    try:
        return ListCategoriesResponse(
            categories=workspace.list_categories(),
            active=workspace.get_active_category(current_user).name,
        )
    except PyMongoError as e:
        raise HTTPException(status_code=500, detail=f"Failed to load categories: {e}")


@router.get(
    "/categories/active",
    response_model=Category,
    summary="Get the active category of the current user",
)
async def get_active_category(
    current_user: str = Depends(get_current_user),
    workspace: Workspace = Depends(get_workspace_service),
) -> Category:
    try:
        return workspace.get_active_category(current_user)
    except PyMongoError as e:
        raise HTTPException(status_code=500, detail=f"Failed to load category: {e}")


@router.put(
    "/categories/active",
    response_model=Category,
    summary="Switch the active category of the current user",
)
async def set_active_category(
    body: SetActiveCategoryRequest,
    current_user: str = Depends(get_current_user),
    workspace: Workspace = Depends(get_workspace_service),
) -> Category:
    try:
        return workspace.set_active_category(current_user, body.name)
    except UnknownCategoryError:
        raise HTTPException(status_code=404, detail=f"Unknown category: {body.name}")
    except PyMongoError as e:
        raise HTTPException(status_code=500, detail=f"Failed to update category: {e}")


@router.get(
    "/items",
    response_model=ListItemsResponse,
    summary="List the items in the current user's workspace",
)
async def list_items(
    current_user: str = Depends(get_current_user),
    workspace: Workspace = Depends(get_workspace_service),
) -> ListItemsResponse:
    try:
        items = workspace.list_items(current_user)
    except PyMongoError as e:
        raise HTTPException(status_code=500, detail=f"Failed to retrieve items: {e}")
    return ListItemsResponse(items=[WorkspaceItemResponse(**it) for it in items])

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import StreamingResponse

from plotform.api.agent_pipeline.pipeline_dto import (
    CommitChoiceRequest,
    IdeaHistoryResponse,
    IdeaRequest,
    IdeaResponse,
    PipelineStatusResponse,
    PolishRequest,
    PolishResponse,
    StartRunRequest,
    StartRunResponse,
)
from plotform.api.workspace.workspace_controller import Workspace, get_workspace_service
from plotform.config import PLOTFORM_ENHANCE_MODEL
from plotform.generate.categories import find_category
from plotform.generate.ideas import enhance_idea, random_idea
from plotform.generate.pipeline_core import ContentPipeline
from plotform.generate.polish import apply_polish, polish_item
from plotform.run_utils.events import hub
from plotform.run_utils.llm import BackoffCaller, default_client
from plotform.run_utils.report import build_report
from plotform.run_utils.state import RUNS, list_runs
from plotform.utils.auth import get_current_user
from plotform.utils.errors import InvalidCommitChoiceError, PipelineError, RunInProgressError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Plans"], prefix="/plans")

PIPELINES: Dict[str, ContentPipeline] = {}
_caller: Optional[BackoffCaller] = None
_enhance_caller: Optional[BackoffCaller] = None


def get_backoff_caller() -> BackoffCaller:
    global _caller
    if _caller is None:
        _caller = BackoffCaller(default_client())
    return _caller


def get_enhance_caller() -> BackoffCaller:
    global _enhance_caller
    if _enhance_caller is None:
        _enhance_caller = BackoffCaller(default_client(PLOTFORM_ENHANCE_MODEL))
    return _enhance_caller


def get_user_pipeline(
    user: str = Depends(get_current_user),
    workspace: Workspace = Depends(get_workspace_service),
    caller: BackoffCaller = Depends(get_backoff_caller),
) -> ContentPipeline:
    p = PIPELINES.get(user)
    if p is None:
        p = ContentPipeline(user, caller=caller, store=workspace, registry=workspace, ideas=workspace)
        PIPELINES[user] = p
    return p


def decode_token(token: str) -> str:
    return get_current_user(token)


async def get_current_user_from_query(token: str = Query(...)):
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing token",
        )
    return decode_token(token)


def _owned_run(run_id: str, user: str) -> Dict[str, Any]:
    r = RUNS.get(run_id)
    if not r or r.get("owner") != user:
        raise HTTPException(status_code=404, detail="Run not found")
    return r


@router.post("/runs", response_model=StartRunResponse)
async def start_run(
    body: StartRunRequest,
    pipeline: ContentPipeline = Depends(get_user_pipeline),
) -> StartRunResponse:
    try:
        pipeline.start_run(body.idea, stream=False)
    except RunInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info("started run %s for %s", pipeline.run_id, pipeline.owner)
    return StartRunResponse(run_id=pipeline.run_id)


@router.get("/runs/{run_id}/events")
async def stream_events(
    run_id: str,
    request: Request,
    user: str = Depends(get_current_user_from_query),
):
    _owned_run(run_id, user)
    q = await hub.subscribe(run_id)

    async def heartbeats():
        while True:
            await asyncio.sleep(15)
            try:
                await q.put(": ping\n\n")
            except RuntimeError:
                break

    async def gen():
        hb_task = asyncio.create_task(heartbeats())
        try:
            while True:
                if await request.is_disconnected():
                    break
                chunk: str = await q.get()
                yield chunk.encode("utf-8")
        finally:
            hb_task.cancel()
            hub.unsubscribe(run_id, q)

    headers = {
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",
    }
    return StreamingResponse(gen(), media_type="text/event-stream", headers=headers)


@router.post("/runs/{run_id}/commit")
async def choose_commit(
    run_id: str,
    body: CommitChoiceRequest,
    pipeline: ContentPipeline = Depends(get_user_pipeline),
):
    _owned_run(run_id, pipeline.owner)
    if pipeline.run_id != run_id:
        raise HTTPException(status_code=409, detail="This run is no longer active.")
    try:
        choice = pipeline.choose_commit(body.choice)
    except InvalidCommitChoiceError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"ok": True, "choice": choice.value}


@router.post("/runs/{run_id}/cancel")
async def cancel_run(
    run_id: str,
    pipeline: ContentPipeline = Depends(get_user_pipeline),
):
    _owned_run(run_id, pipeline.owner)
    cancelled = pipeline.run_id == run_id and pipeline.cancel()
    return {"ok": True, "cancelled": cancelled}


@router.get("/runs/{run_id}/report")
async def get_report(run_id: str, user: str = Depends(get_current_user)):
    _owned_run(run_id, user)
    return build_report(run_id)


@router.get("/runs")
async def runs_index(user: str = Depends(get_current_user)):
    return {"runs": [build_report(r["id"]) for r in list_runs(user)]}


@router.get("/state", response_model=PipelineStatusResponse)
async def pipeline_state(pipeline: ContentPipeline = Depends(get_user_pipeline)):
    return PipelineStatusResponse(
        state=pipeline.state.value, run_id=pipeline.run_id, busy=pipeline.busy
    )


@router.post("/ideas/enhance", response_model=IdeaResponse)
async def enhance(
    body: IdeaRequest,
    user: str = Depends(get_current_user),
    caller: BackoffCaller = Depends(get_enhance_caller),
) -> IdeaResponse:
    if not body.idea.strip():
        raise HTTPException(status_code=400, detail="Please enter an idea to enhance.")
    try:
        return IdeaResponse(idea=await enhance_idea("", body.idea, caller=caller))
    except PipelineError as e:
        raise HTTPException(status_code=502, detail=e.message)


@router.get("/ideas/random", response_model=IdeaResponse)
async def random_prompt(
    category: Optional[str] = None,
    user: str = Depends(get_current_user),
    workspace: Workspace = Depends(get_workspace_service),
) -> IdeaResponse:
    name = category or workspace.get_active_category(user).name
    return IdeaResponse(idea=random_idea(name))


@router.get("/ideas/history", response_model=IdeaHistoryResponse)
async def idea_history(
    user: str = Depends(get_current_user),
    workspace: Workspace = Depends(get_workspace_service),
) -> IdeaHistoryResponse:
    return IdeaHistoryResponse(ideas=workspace.list_ideas(user))


@router.post("/items/{item_id}/polish", response_model=PolishResponse)
async def polish(
    item_id: str,
    body: PolishRequest,
    user: str = Depends(get_current_user),
    workspace: Workspace = Depends(get_workspace_service),
    caller: BackoffCaller = Depends(get_enhance_caller),
) -> PolishResponse:
    item = workspace.get_item(user, item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Item not found")
    category = find_category(item.get("category"), workspace.list_categories())
    try:
        segments = await polish_item(
            "",
            item,
            caller=caller,
            category=category or workspace.get_active_category(user),
            locked_ids=body.locked_ids,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PipelineError as e:
        raise HTTPException(status_code=502, detail=e.message)

    applied = body.apply and bool(segments)
    if applied:
        workspace.update_item(item_id, {"sub_items": apply_polish(item, segments)})
        logger.info("applied polish to %s for %s", item_id, user)
    return PolishResponse(item_id=item_id, segments=segments, applied=applied)

from __future__ import annotations

import asyncio
import functools
import logging
import uuid
from enum import Enum
from typing import Any, AsyncIterator, List, Optional

from plotform.generate.categories import find_category
from plotform.generate.checklist import enrich_checklists
from plotform.generate.commit_router import CommitChoice, resolve_choice, route_commit
from plotform.generate.committer import WorkspaceCommitter
from plotform.generate.expander import expand_plan
from plotform.generate.plan_dto import Category, GeneratedItem, ValidatedPlanResponse
from plotform.generate.sketcher import sketch_plan
from plotform.generate.validator import validate_plan
from plotform.run_utils.events import (
    AwaitingCommitChoice,
    BaseEvent,
    Committed,
    RetryScheduled,
    RunEventHub,
    StageFailed,
    StageName,
    StageStarted,
    hub,
)
from plotform.run_utils.llm import BackoffCaller
from plotform.run_utils.metrics import count_retry, step_end, step_start
from plotform.run_utils.state import create_run, get_run
from plotform.run_utils.store import CategoryRegistry, IdeaHistory, WorkspaceStore
from plotform.utils.errors import (
    ErrorKind,
    InvalidCommitChoiceError,
    ItemEnrichmentError,
    PipelineError,
    RunInProgressError,
)

logger = logging.getLogger(__name__)

_END = object()


class PipelineState(str, Enum):
    IDLE = "IDLE"
    PLANNING = "PLANNING"
    EXPANDING = "EXPANDING"
    ENRICHING = "ENRICHING"
    VALIDATING = "VALIDATING"
    AUTO_COMMIT = "AUTO_COMMIT"
    AWAITING_USER_CHOICE = "AWAITING_USER_CHOICE"
    COMMITTED = "COMMITTED"


class ContentPipeline:
    """
    Turns one idea into committed workspace items for a single owner.

    At most one run is in flight per pipeline. A run moves through
    planning, expansion, enrichment and validation; any failure on the way
    emits StageFailed and returns the pipeline to IDLE with nothing committed.
    """

    def __init__(
        self,
        owner: str,
        *,
        caller: BackoffCaller,
        store: WorkspaceStore,
        registry: CategoryRegistry,
        ideas: Optional[IdeaHistory] = None,
        event_hub: RunEventHub = hub,
    ):
        self.owner = owner
        self.caller = caller
        self.registry = registry
        self.ideas = ideas
        self.hub = event_hub
        self.committer = WorkspaceCommitter(store)

        self.state = PipelineState.IDLE
        self.run_id: Optional[str] = None
        self.accumulated: List[GeneratedItem] = []
        self.validated: Optional[ValidatedPlanResponse] = None
        self._task: Optional[asyncio.Task] = None
        self._queue: Optional[asyncio.Queue] = None
        self._choice: Optional[asyncio.Future] = None
        self._cleanup: Optional[asyncio.Task] = None

    @property
    def busy(self) -> bool:
        return self._task is not None and not self._task.done()

    def start_run(
        self, idea: str, *, run_id: Optional[str] = None, stream: bool = True
    ) -> Optional[AsyncIterator[BaseEvent]]:
        """
        Start a run in the background. With ``stream`` the run's events are
        also returned as an async iterator; without it they only reach the hub.
        """
        if self.busy:
            raise RunInProgressError("A generation run is already in progress.")
        idea = (idea or "").strip()
        if not idea:
            raise ValueError("Please enter an idea for your plan.")

        self.run_id = run_id or str(uuid.uuid4())
        create_run(self.run_id, self.owner, idea)
        self._set_state(PipelineState.PLANNING)
        queue: Optional[asyncio.Queue] = asyncio.Queue() if stream else None
        self._queue = queue
        self._task = asyncio.get_running_loop().create_task(self._run(self.run_id, idea, queue))
        self._task.add_done_callback(functools.partial(self._on_task_done, self.run_id, queue))
        return self._drain(queue) if queue is not None else None

    def choose_commit(self, choice: Any) -> CommitChoice:
        if (
            self.state != PipelineState.AWAITING_USER_CHOICE
            or self._choice is None
            or self._choice.done()
        ):
            raise InvalidCommitChoiceError("There is no plan waiting for a commit choice.")
        try:
            resolved = CommitChoice(choice)
        except ValueError:
            raise InvalidCommitChoiceError(f"Unknown commit choice: {choice!r}") from None
        self._choice.set_result(resolved)
        return resolved

    def cancel(self) -> bool:
        if not self.busy or self.state == PipelineState.COMMITTED:
            return False
        self._task.cancel()
        return True

    async def join(self) -> None:
        pending = [t for t in (self._task, self._cleanup) if t is not None]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def _drain(self, queue: asyncio.Queue) -> AsyncIterator[BaseEvent]:
        while True:
            event = await queue.get()
            if event is _END:
                return
            yield event

    def _on_task_done(self, run_id: str, queue: Optional[asyncio.Queue], task: asyncio.Task):
        # A task cancelled before its first step never enters _run.
        r = get_run(run_id)
        if not task.cancelled() or r.get("status") != "running":
            return
        message = "The run was cancelled."
        r["status"] = "cancelled"
        r["error"] = {
            "stage": StageName.PLANNING.value,
            "kind": ErrorKind.CANCELLED.value,
            "message": message,
            "partIndex": None,
        }
        if self.run_id == run_id:
            self._set_state(PipelineState.IDLE)
        logger.warning("run %s cancelled before it started", run_id)
        event = StageFailed(stage=StageName.PLANNING, error_kind=ErrorKind.CANCELLED, message=message)
        if queue is not None:
            queue.put_nowait(event)
            queue.put_nowait(_END)
        self._cleanup = asyncio.get_running_loop().create_task(self._announce_cancelled(run_id, event))

    async def _announce_cancelled(self, run_id: str, event: StageFailed):
        await self.hub.emit(run_id, event)
        await self.hub.log(run_id, f"{event.stage.value} failed: {event.message}", stream="stderr")
        await self.hub.emit(run_id, {"t": "done", "ok": False})

    def _set_state(self, state: PipelineState):
        self.state = state
        if self.run_id:
            get_run(self.run_id)["state"]["current"] = state.value
        logger.debug("pipeline %s -> %s", self.owner, state.value)

    async def _emit(self, event: BaseEvent):
        if self._queue is not None:
            self._queue.put_nowait(event)
        await self.hub.emit(self.run_id, event)

    def _retry_observer(self, stage: StageName):
        async def on_retry(attempt: int, delay_ms: int, reason: str):
            count_retry(self.run_id, stage.value)
            await self._emit(
                RetryScheduled(attempt=attempt, delay_ms=delay_ms, reason=reason, stage=stage)
            )

        return on_retry

    async def _on_degraded(self, err: ItemEnrichmentError):
        r = get_run(self.run_id)
        r.setdefault("degraded_items", []).append(err.item_index)
        await self.hub.log(self.run_id, err.message, stream="stderr")

    async def _run(self, run_id: str, idea: str, queue: Optional[asyncio.Queue]):
        r = get_run(run_id)
        stage = StageName.PLANNING
        ok = False
        try:
            if self.ideas is not None:
                self.ideas.remember_idea(self.owner, idea)
            active = self.registry.get_active_category(self.owner)
            categories = self.registry.list_categories()

            await self._emit(
                StageStarted(stage=stage, message="Analyzing your request and creating a plan...", progress=5)
            )
            step_start(run_id, stage.value)
            plan = await sketch_plan(
                run_id,
                idea,
                categories,
                caller=self.caller,
                fallback_category=active.name,
                on_retry=self._retry_observer(stage),
            )
            step_end(run_id, stage.value, ok=True, extra={"parts": plan.part_count})
            r["plan"] = plan.model_dump(mode="json", by_alias=True)
            target = find_category(plan.suggested_category, categories) or active

            stage = StageName.EXPANDING
            self._set_state(PipelineState.EXPANDING)
            step_start(run_id, stage.value)

            async def on_part(i: int, total: int):
                await self._emit(
                    StageStarted(
                        stage=StageName.EXPANDING,
                        message=f"Generating part {i} of {total}...",
                        progress=10 + int(80 * i / total),
                        part_index=i,
                        total_parts=total,
                    )
                )

            self.accumulated = await expand_plan(
                run_id,
                plan,
                idea,
                caller=self.caller,
                category=target,
                on_part=on_part,
                on_retry=self._retry_observer(stage),
            )
            step_end(run_id, stage.value, ok=True, extra={"items": len(self.accumulated)})

            stage = StageName.ENRICHING
            self._set_state(PipelineState.ENRICHING)
            await self._emit(
                StageStarted(stage=stage, message="Generating production checklists...", progress=95)
            )
            step_start(run_id, stage.value)
            self.accumulated = await enrich_checklists(
                run_id,
                self.accumulated,
                caller=self.caller,
                category=target,
                on_degraded=self._on_degraded,
                on_retry=self._retry_observer(stage),
            )
            step_end(run_id, stage.value, ok=True)

            stage = StageName.VALIDATING
            self._set_state(PipelineState.VALIDATING)
            await self._emit(StageStarted(stage=stage, message="Validating the generated plan...", progress=98))
            step_start(run_id, stage.value)
            self.validated = validate_plan(self.accumulated, plan.suggested_category)
            step_end(run_id, stage.value, ok=True)
            r["item_count"] = len(self.validated.plan)

            decision = route_commit(self.validated.suggested_category, active.name)
            r.setdefault("history", []).append({"action": decision.action, "reason": decision.reason})
            if decision.action == "AUTO_COMMIT":
                self._set_state(PipelineState.AUTO_COMMIT)
                choice = CommitChoice.CURRENT
            else:
                self._set_state(PipelineState.AWAITING_USER_CHOICE)
                self._choice = asyncio.get_running_loop().create_future()
                await self._emit(
                    AwaitingCommitChoice(response=self.validated, active_category=active.name)
                )
                choice = await self._choice

            stage = StageName.COMMITTING
            await self._commit(run_id, idea, choice, active)
            ok = True

        except asyncio.CancelledError:
            await self._fail(stage, PipelineError("The run was cancelled.", kind=ErrorKind.CANCELLED))
            raise
        except PipelineError as e:
            await self._fail(stage, e)
        except Exception as e:
            logger.exception("run %s: unhandled error during %s", run_id, stage.value)
            await self._fail(stage, PipelineError(f"Unexpected error: {e}", kind=ErrorKind.UNEXPECTED))
        finally:
            self.accumulated = []
            self.validated = None
            self._choice = None
            self._set_state(PipelineState.IDLE)
            if queue is not None:
                queue.put_nowait(_END)
            await self.hub.emit(run_id, {"t": "done", "ok": ok})

    async def _commit(self, run_id: str, idea: str, choice: CommitChoice, active: Category):
        action = resolve_choice(choice, self.validated.suggested_category, active.name)
        self._set_state(PipelineState.COMMITTED)
        await self._emit(
            StageStarted(
                stage=StageName.COMMITTING,
                message=f"Adding {len(self.validated.plan)} item(s) to your workspace...",
                progress=100,
            )
        )
        step_start(run_id, StageName.COMMITTING.value)
        try:
            if action.action == "SWITCH_AND_COMMIT":
                category = self.registry.set_active_category(self.owner, action.args["category"])
            else:
                category = active
            ids = self.committer.commit(self.validated, category, owner=self.owner, idea=idea)
        except Exception as e:
            raise PipelineError(
                f"Failed to add the plan to your workspace: {e}",
                kind=ErrorKind.UNEXPECTED,
            ) from e
        step_end(run_id, StageName.COMMITTING.value, ok=True, extra={"items": len(ids)})

        r = get_run(run_id)
        r["status"] = "committed"
        r["committed_ids"] = ids
        await self._emit(Committed(item_count=len(ids), category=category.name, item_ids=ids))
        await self.hub.log(run_id, f"Added {len(ids)} item(s) to {category.name}.")

    async def _fail(self, stage: StageName, err: PipelineError):
        if err.stage is None:
            err.stage = stage.value
        step_end(self.run_id, stage.value, ok=False)
        r = get_run(self.run_id)
        r["status"] = "cancelled" if err.kind == ErrorKind.CANCELLED else "failed"
        r["error"] = {"stage": err.stage, "kind": err.kind.value, "message": err.message, "partIndex": err.part_index}
        logger.warning("run %s failed during %s (%s): %s", self.run_id, stage.value, err.kind.value, err.message)
        await self._emit(
            StageFailed(stage=stage, error_kind=err.kind, message=err.message, part_index=err.part_index)
        )
        await self.hub.log(self.run_id, f"{stage.value} failed: {err.message}", stream="stderr")

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol

import openai
from openai import AsyncOpenAI

from plotform.config import (
    OPENAI_API_KEY,
    PLOTFORM_BASE_DELAY_MS,
    PLOTFORM_MAX_ATTEMPTS,
    PLOTFORM_MODEL,
    devmode,
)
from plotform.run_utils.events import notify
from plotform.run_utils.metrics import add_tokens
from plotform.utils.errors import ErrorKind, GenerationFailure, PipelineError, ShapeError

logger = logging.getLogger(__name__)

BASE_SYS = (
    "You are the planning engine of PlotForm, a content-planning workspace. "
    "You help creators turn ideas into structured, multi-part content plans. "
    "Always answer with a single strict JSON object and nothing else."
)

CREDENTIAL_MESSAGE = (
    "The provided API key is not valid. Please check your configuration and try again."
)
TRANSIENT_STATUS = {429, 500, 502, 503, 504, 529}
TRANSIENT_MARKERS = ("503", "overloaded", "unavailable")
CREDENTIAL_MARKERS = (
    "api key not valid",
    "api_key_invalid",
    "incorrect api key",
    "api_key client option",
)

_FENCED = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)

_client: Optional[AsyncOpenAI] = None


def get_client() -> AsyncOpenAI:
    """Lazily build the shared SDK client; retries are owned by BackoffCaller."""
    global _client
    if _client is None:
        _client = AsyncOpenAI(api_key=OPENAI_API_KEY, max_retries=0)
    return _client


async def chat_json(run_id: str, where: str, **kwargs) -> Any:
    resp = await get_client().chat.completions.create(**kwargs)
    u = getattr(resp, "usage", None)
    if u and run_id:
        add_tokens(
            run_id,
            where,
            getattr(u, "prompt_tokens", 0) or 0,
            getattr(u, "completion_tokens", 0) or 0,
        )
    return resp


class GenerativeClient(Protocol):
    async def send(self, prompt: str, *, run_id: str = "", where: str = "") -> str:
        ...


class OpenAIGenerativeClient:
    """Chat-completions client asking for a JSON object response."""

    def __init__(self, model: str = PLOTFORM_MODEL, system: str = BASE_SYS):
        self.model = model
        self.system = system

    async def send(self, prompt: str, *, run_id: str = "", where: str = "") -> str:
        resp = await chat_json(
            run_id,
            where,
            model=self.model,
            response_format={"type": "json_object"},
            messages=[
                {"role": "system", "content": self.system},
                {"role": "user", "content": prompt},
            ],
        )
        content = resp.choices[0].message.content
        if content is None:
            raise ShapeError("No content returned from the generative service.")
        return content


DEV_RESPONSES: Dict[str, Dict[str, Any]] = {
    "sketcher": {
        "isMultiPart": True,
        "totalParts": 2,
        "partDescriptions": [
            "Episodes 1-3: origins and first steps",
            "Episodes 4-6: turning points and lessons learned",
        ],
        "suggestedCategory": "Podcast",
        "seasonName": "Sample Season",
        "seasonNumber": 1,
    },
    "expander": {
        "items": [
            {
                "title": "Sample Episode",
                "notes": "Generated offline in dev mode.",
                "subItems": [
                    {
                        "title": "Cold Open",
                        "content": "A short hook that sets up the episode.",
                        "productionNotes": "Add ambient music bed.",
                    },
                    {
                        "title": "Main Story",
                        "content": "The main discussion of the episode.",
                    },
                ],
            }
        ]
    },
    "checklist": {
        "checklist": [
            "Record intro",
            "Book guest",
            "Edit main story",
        ]
    },
    "enhance": {
        "prompt": "A weekly podcast that follows first-time founders through their first year, "
        "with one guest per episode, a warm conversational tone and short listener Q&A segments."
    },
    "polish": {"segments": []},
}


class DevModeClient:
    """Offline client answering every call site with a canned payload."""

    def __init__(self, delay: float = 0.2):
        self.delay = delay

    async def send(self, prompt: str, *, run_id: str = "", where: str = "") -> str:
        await asyncio.sleep(self.delay)
        return json.dumps(DEV_RESPONSES.get(where, {}))


def classify_error(exc: BaseException) -> ErrorKind:
    """Decide whether a failed round-trip is worth retrying."""
    if isinstance(exc, (openai.AuthenticationError, openai.PermissionDeniedError)):
        return ErrorKind.CREDENTIAL
    if isinstance(
        exc,
        (openai.RateLimitError, openai.InternalServerError, openai.APIConnectionError),
    ):
        return ErrorKind.TRANSPORT
    if isinstance(exc, openai.APIStatusError) and exc.status_code in TRANSIENT_STATUS:
        return ErrorKind.TRANSPORT

    text = str(exc).lower()
    if any(m in text for m in CREDENTIAL_MARKERS):
        return ErrorKind.CREDENTIAL
    if any(m in text for m in TRANSIENT_MARKERS):
        return ErrorKind.TRANSPORT
    return ErrorKind.UNEXPECTED


def parse_structured(raw: Optional[str]) -> Any:
    """
    Parse a service response as JSON. When the text is not JSON as a whole,
    fall back to the first fenced block, then to the outermost {...} span.
    """
    text = (raw or "").strip()
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    candidates = []
    m = _FENCED.search(text)
    if m:
        candidates.append(m.group(1))
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start : end + 1])

    for c in candidates:
        try:
            return json.loads(c)
        except json.JSONDecodeError:
            continue
    raise ShapeError("The AI returned data in an unexpected format. Please try again.")


RetryObserver = Callable[[int, int, str], Optional[Awaitable[None]]]


class BackoffCaller:
    """
    One structured round-trip to the generative service with bounded retry.

    Transient failures are retried up to ``max_attempts`` tries in total, waiting
    ``base_delay_ms * 2 ** (attempt - 1)`` after failed attempt ``attempt``. The
    observer is told the failed attempt number, the wait and the reason before
    each sleep. Everything else is terminal and raised as GenerationFailure.
    """

    def __init__(
        self,
        client: GenerativeClient,
        *,
        max_attempts: int = PLOTFORM_MAX_ATTEMPTS,
        base_delay_ms: int = PLOTFORM_BASE_DELAY_MS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.client = client
        self.max_attempts = max_attempts
        self.base_delay_ms = base_delay_ms
        self.sleep = sleep

    def delay_for(self, attempt: int) -> int:
        return self.base_delay_ms * 2 ** (attempt - 1)

    async def call(
        self,
        prompt: str,
        *,
        run_id: str = "",
        where: str = "",
        on_retry: Optional[RetryObserver] = None,
    ) -> Any:
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                raw = await self.client.send(prompt, run_id=run_id, where=where)
            except PipelineError:
                raise
            except Exception as e:
                kind = classify_error(e)
                if kind == ErrorKind.CREDENTIAL:
                    logger.error("%s: credential error from generative service: %s", where, e)
                    raise GenerationFailure(CREDENTIAL_MESSAGE, kind=kind) from e
                if kind != ErrorKind.TRANSPORT:
                    logger.error("%s: unexpected error from generative service: %s", where, e)
                    raise GenerationFailure(f"Unexpected error: {e}", kind=kind) from e

                last_error = e
                if attempt == self.max_attempts:
                    break

                delay = self.delay_for(attempt)
                logger.warning(
                    "%s: attempt %d/%d failed (%s), retrying in %dms",
                    where,
                    attempt,
                    self.max_attempts,
                    e,
                    delay,
                )
                await notify(on_retry, attempt, delay, str(e))
                await self.sleep(delay / 1000)
                continue

            return parse_structured(raw)

        logger.error("%s: giving up after %d attempts (%s)", where, self.max_attempts, last_error)
        raise GenerationFailure(
            "The AI service is currently overloaded and could not respond after "
            f"{self.max_attempts} attempts. Please try again in a few moments.",
            kind=ErrorKind.TRANSPORT,
        ) from last_error


def default_client(model: str = PLOTFORM_MODEL) -> GenerativeClient:
    if devmode():
        return DevModeClient()
    return OpenAIGenerativeClient(model=model)

import asyncio
import json
from typing import Any, Dict, List, Optional, Tuple


class ScriptedClient:
    """Generative client double answering from one queue per call site.

    An answer may be a dict (sent as JSON), a raw string, an exception to
    raise, or a callable taking the prompt and returning one of those.
    """

    def __init__(self, responses: Optional[Dict[str, List[Any]]] = None):
        self.responses: Dict[str, List[Any]] = {k: list(v) for k, v in (responses or {}).items()}
        self.calls: List[Tuple[str, str]] = []

    def queue(self, where: str, *answers: Any) -> "ScriptedClient":
        self.responses.setdefault(where, []).extend(answers)
        return self

    def prompts_for(self, where: str) -> List[str]:
        return [p for w, p in self.calls if w == where]

    async def send(self, prompt: str, *, run_id: str = "", where: str = "") -> str:
        self.calls.append((where, prompt))
        answers = self.responses.get(where) or []
        if not answers:
            raise LookupError(f"no scripted answer left for {where!r}")
        answer = answers.pop(0)
        if callable(answer) and not isinstance(answer, BaseException):
            answer = answer(prompt)
        if isinstance(answer, BaseException):
            raise answer
        if isinstance(answer, str):
            return answer
        return json.dumps(answer)


class SleepRecorder:
    """Stands in for asyncio.sleep and remembers every requested wait."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float):
        self.calls.append(seconds)


class GatedSleep(SleepRecorder):
    """A sleep that blocks until the gate is opened."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def __call__(self, seconds: float):
        self.calls.append(seconds)
        await self.gate.wait()


def plan_payload(
    descriptions: Optional[List[str]] = None,
    category: str = "Podcast",
    season_name: Optional[str] = "Season One",
    season_number: Optional[int] = 1,
) -> Dict[str, Any]:
    if descriptions is None:
        return {
            "isMultiPart": False,
            "suggestedCategory": category,
            "seasonName": season_name,
            "seasonNumber": season_number,
        }
    return {
        "isMultiPart": True,
        "totalParts": len(descriptions),
        "partDescriptions": descriptions,
        "suggestedCategory": category,
        "seasonName": season_name,
        "seasonNumber": season_number,
    }


def items_payload(*titles: str) -> Dict[str, Any]:
    return {
        "items": [
            {
                "title": t,
                "notes": f"Notes for {t}",
                "subItems": [
                    {"title": f"{t} intro", "content": f"Opening of {t}. " * 10},
                    {"title": f"{t} main", "content": f"Body of {t}.", "productionNotes": "b-roll"},
                ],
            }
            for t in titles
        ]
    }


def checklist_payload(*tasks: str) -> Dict[str, Any]:
    return {"checklist": list(tasks or ("Outline", "Record", "Edit"))}



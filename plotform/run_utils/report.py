from typing import Any, Dict

from plotform.run_utils.state import get_run


def build_report(run_id: str) -> Dict[str, Any]:
    r = get_run(run_id)
    plan = r.get("plan") or {}
    metrics = r.get("metrics", {})
    tokens = r.get("tokens", {})
    return {
        "runId": run_id,
        "idea": r.get("idea", ""),
        "status": r.get("status"),
        "state": r.get("state", {}).get("current"),
        "error": r.get("error"),
        "plan": {
            "isMultiPart": plan.get("isMultiPart"),
            "totalParts": plan.get("totalParts"),
            "suggestedCategory": plan.get("suggestedCategory"),
        },
        "itemCount": r.get("item_count", 0),
        "degradedItems": r.get("degraded_items", []),
        "committedIds": r.get("committed_ids", []),
        "retries": r.get("retries", {}),
        "metrics": metrics,
        "tokens": {
            "byStage": tokens,
            "prompt": sum(e.get("prompt", 0) for e in tokens.values()),
            "completion": sum(e.get("completion", 0) for e in tokens.values()),
        },
    }

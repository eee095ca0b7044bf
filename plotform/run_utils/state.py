import time
from typing import Any, Dict, List

RUNS: Dict[str, Dict[str, Any]] = {}


def create_run(run_id: str, owner: str, idea: str) -> Dict[str, Any]:
    RUNS[run_id] = {
        "id": run_id,
        "owner": owner,
        "idea": idea,
        "created": time.time(),
        "status": "running",
        "state": {"current": "IDLE"},
    }
    return RUNS[run_id]


def get_run(run_id: str) -> Dict[str, Any]:
    r = RUNS.setdefault(run_id, {"id": run_id})
    r.setdefault("state", {"current": "IDLE"})
    return r


def list_runs(owner: str, limit: int = 50) -> List[Dict[str, Any]]:
    own = [r for r in RUNS.values() if r.get("owner") == owner]
    return sorted(own, key=lambda r: r.get("created", 0), reverse=True)[:limit]

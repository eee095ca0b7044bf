import pytest

from helpers import ScriptedClient, SleepRecorder
from plotform.run_utils.events import RunEventHub
from plotform.run_utils.llm import BackoffCaller
from plotform.run_utils.state import RUNS
from plotform.run_utils.store import MemoryWorkspace


@pytest.fixture(autouse=True)
def _clear_runs():
    yield
    RUNS.clear()


@pytest.fixture
def client() -> ScriptedClient:
    return ScriptedClient()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def caller(client, sleeps) -> BackoffCaller:
    return BackoffCaller(client, max_attempts=4, base_delay_ms=1500, sleep=sleeps)


@pytest.fixture
def workspace() -> MemoryWorkspace:
    return MemoryWorkspace()


@pytest.fixture
def event_hub() -> RunEventHub:
    return RunEventHub()

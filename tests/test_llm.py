import httpx
import openai
import pytest

from helpers import ScriptedClient, SleepRecorder
from plotform.run_utils.llm import (
    CREDENTIAL_MESSAGE,
    BackoffCaller,
    DevModeClient,
    OpenAIGenerativeClient,
    classify_error,
    default_client,
    parse_structured,
)
from plotform.utils.errors import ErrorKind, GenerationFailure, ShapeError

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _status_error(cls, code: int, message: str):
    return cls(message, response=httpx.Response(code, request=_REQUEST), body=None)


class TestBackoffCaller:
    """Retry and classification behaviour of one structured call."""

    @pytest.mark.asyncio
    async def test_transient_failures_back_off_exponentially(self, client, sleeps, caller):
        client.queue("x", *[RuntimeError("503 Service Unavailable: model overloaded")] * 4)
        seen = []

        with pytest.raises(GenerationFailure) as exc:
            await caller.call("prompt", where="x", on_retry=lambda a, d, r: seen.append((a, d)))

        assert seen == [(1, 1500), (2, 3000), (3, 6000)]
        assert sleeps.calls == [1.5, 3.0, 6.0]
        assert len(client.calls) == 4
        assert exc.value.kind == ErrorKind.TRANSPORT
        assert "overloaded" in exc.value.message
        assert "4 attempts" in exc.value.message

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failures(self, client, sleeps, caller):
        client.queue("x", RuntimeError("The model is overloaded"), RuntimeError("503"), {"ok": True})

        assert await caller.call("prompt", where="x") == {"ok": True}
        assert sleeps.calls == [1.5, 3.0]

    @pytest.mark.asyncio
    async def test_async_observer_is_awaited(self, client, caller):
        client.queue("x", RuntimeError("overloaded"), {"ok": 1})
        seen = []

        async def observer(attempt, delay_ms, reason):
            seen.append((attempt, delay_ms, reason))

        await caller.call("prompt", where="x", on_retry=observer)
        assert seen == [(1, 1500, "overloaded")]

    @pytest.mark.asyncio
    async def test_credential_error_is_not_retried(self, client, sleeps, caller):
        client.queue("x", RuntimeError("API key not valid. Please pass a valid API key."))

        with pytest.raises(GenerationFailure) as exc:
            await caller.call("prompt", where="x")

        assert exc.value.kind == ErrorKind.CREDENTIAL
        assert exc.value.message == CREDENTIAL_MESSAGE
        assert len(client.calls) == 1
        assert sleeps.calls == []

    @pytest.mark.asyncio
    async def test_unclassified_error_is_terminal(self, client, sleeps, caller):
        client.queue("x", ValueError("boom"))

        with pytest.raises(GenerationFailure) as exc:
            await caller.call("prompt", where="x")

        assert exc.value.kind == ErrorKind.UNEXPECTED
        assert exc.value.message == "Unexpected error: boom"
        assert sleeps.calls == []

    @pytest.mark.asyncio
    async def test_unparseable_response_is_a_shape_error(self, client, sleeps, caller):
        client.queue("x", "Sorry, I cannot help with that.")

        with pytest.raises(ShapeError):
            await caller.call("prompt", where="x")
        assert len(client.calls) == 1
        assert sleeps.calls == []

    @pytest.mark.asyncio
    async def test_custom_attempt_budget(self):
        client = ScriptedClient().queue("x", RuntimeError("overloaded"), RuntimeError("overloaded"))
        sleeps = SleepRecorder()
        caller = BackoffCaller(client, max_attempts=2, base_delay_ms=100, sleep=sleeps)

        with pytest.raises(GenerationFailure) as exc:
            await caller.call("prompt", where="x")
        assert sleeps.calls == [0.1]
        assert "2 attempts" in exc.value.message

    def test_rejects_zero_attempts(self, client):
        with pytest.raises(ValueError):
            BackoffCaller(client, max_attempts=0)


class TestClassifyError:
    def test_sdk_rate_limit_is_transient(self):
        assert classify_error(_status_error(openai.RateLimitError, 429, "slow down")) == ErrorKind.TRANSPORT

    def test_sdk_server_errors_are_transient(self):
        err = _status_error(openai.InternalServerError, 503, "unavailable")
        assert classify_error(err) == ErrorKind.TRANSPORT

    def test_sdk_connection_error_is_transient(self):
        assert classify_error(openai.APIConnectionError(request=_REQUEST)) == ErrorKind.TRANSPORT

    def test_sdk_authentication_is_credential(self):
        err = _status_error(openai.AuthenticationError, 401, "Incorrect API key provided")
        assert classify_error(err) == ErrorKind.CREDENTIAL

    def test_sdk_bad_request_is_unexpected(self):
        err = _status_error(openai.BadRequestError, 400, "invalid request")
        assert classify_error(err) == ErrorKind.UNEXPECTED

    def test_message_sniffing(self):
        assert classify_error(RuntimeError("[503] backend busy")) == ErrorKind.TRANSPORT
        assert classify_error(RuntimeError("API_KEY_INVALID")) == ErrorKind.CREDENTIAL
        assert classify_error(RuntimeError("disk full")) == ErrorKind.UNEXPECTED


class TestParseStructured:
    def test_plain_json(self):
        assert parse_structured('{"a": 1}') == {"a": 1}

    def test_fenced_block_inside_prose(self):
        raw = 'Here is your plan:\n```json\n{"items": [{"title": "A"}]}\n```\nEnjoy!'
        assert parse_structured(raw) == {"items": [{"title": "A"}]}

    def test_outermost_object_span(self):
        assert parse_structured('Result: {"a": {"b": 2}} done') == {"a": {"b": 2}}

    def test_garbage_raises_shape_error(self):
        with pytest.raises(ShapeError):
            parse_structured("no json here")

    def test_empty_raises_shape_error(self):
        with pytest.raises(ShapeError):
            parse_structured(None)


class TestDefaultClient:
    def test_builds_client_for_the_given_model(self, monkeypatch):
        monkeypatch.delenv("DEVMODE", raising=False)
        c = default_client("gpt-enhance")
        assert isinstance(c, OpenAIGenerativeClient)
        assert c.model == "gpt-enhance"

    def test_devmode_is_offline(self, monkeypatch):
        monkeypatch.setenv("DEVMODE", "true")
        assert isinstance(default_client("gpt-enhance"), DevModeClient)

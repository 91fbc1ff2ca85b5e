"""Tests for the Judge0 adapter and result formatting."""

import json

import httpx
import pytest

from compiler_api.adapters.judge.judge0_client import Judge0Client
from compiler_api.adapters.judge.languages import (
    COMPILABLE_LANGUAGES,
    JudgeStatus,
    format_result,
    get_language_id,
    get_language_name,
    has_compilation_error,
    is_successful,
    status_description,
    supported_languages,
)
from compiler_api.core.errors import JudgeAppError

ACCEPTED = {
    "stdout": "42\n",
    "stderr": None,
    "compile_output": None,
    "status": {"id": 3, "description": "Accepted"},
    "time": "0.031",
    "memory": 9344,
    "language_id": 71,
    "exit_code": 0,
    "signal": None,
}


def make_client(handler, **kwargs) -> Judge0Client:
    return Judge0Client("https://judge.test", transport=httpx.MockTransport(handler), **kwargs)


class TestJudge0Client:
    @pytest.mark.asyncio
    async def test_submit_waits_for_result(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json=ACCEPTED)

        client = make_client(handler)
        result = await client.submit(71, "print(42)", stdin="")
        await client.close()

        assert result == ACCEPTED
        request = seen[0]
        assert request.method == "POST"
        assert request.url.path == "/submissions"
        assert request.url.params["wait"] == "true"
        assert request.url.params["base64_encoded"] == "false"
        body = json.loads(request.content)
        assert body["language_id"] == 71
        assert body["source_code"] == "print(42)"
        assert body["cpu_time_limit"] == 5.0
        assert body["memory_limit"] == 262_144

    @pytest.mark.asyncio
    async def test_rapidapi_headers_only_with_key(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=ACCEPTED)

        keyed = make_client(handler, api_key="k-123", api_host="judge0-ce.p.rapidapi.com")
        await keyed.get_submission("tok")
        plain = make_client(handler)
        await plain.get_submission("tok")

        assert seen[0].headers["X-RapidAPI-Key"] == "k-123"
        assert seen[0].headers["X-RapidAPI-Host"] == "judge0-ce.p.rapidapi.com"
        assert "X-RapidAPI-Key" not in seen[1].headers

    @pytest.mark.asyncio
    async def test_upstream_error_carries_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, json={"message": "You have exceeded the rate limit"})

        client = make_client(handler)
        with pytest.raises(JudgeAppError) as exc_info:
            await client.submit(71, "print(1)")

        assert exc_info.value.http_status == 429
        assert exc_info.value.message == "You have exceeded the rate limit"

    @pytest.mark.asyncio
    async def test_network_failure_is_500(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = make_client(handler)
        with pytest.raises(JudgeAppError) as exc_info:
            await client.submit(71, "print(1)")

        assert exc_info.value.http_status == 500

    @pytest.mark.asyncio
    async def test_batch_joins_tokens(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"submissions": [ACCEPTED, ACCEPTED]})

        client = make_client(handler)
        result = await client.get_batch(["a", "b"])

        assert len(result["submissions"]) == 2
        assert seen[0].url.path == "/submissions/batch"
        assert seen[0].url.params["tokens"] == "a,b"

    @pytest.mark.asyncio
    async def test_empty_tokens_rejected(self) -> None:
        client = make_client(lambda request: httpx.Response(200, json={}))

        with pytest.raises(JudgeAppError) as exc_info:
            await client.get_batch([])
        assert exc_info.value.http_status == 400


class TestLanguages:
    def test_language_lookup(self) -> None:
        assert get_language_id("Python") == 71
        assert get_language_id("cobol") is None
        assert get_language_name(54) == "cpp"
        assert get_language_name(None) is None
        assert len(supported_languages()) == 14

    def test_compilable_subset(self) -> None:
        assert set(COMPILABLE_LANGUAGES) == {"cpp", "java", "javascript", "python"}

    def test_status_descriptions(self) -> None:
        assert status_description(JudgeStatus.ACCEPTED) == "Accepted"
        assert status_description(6) == "Compilation Error"
        assert status_description(42) == "Unknown Status"

    def test_status_predicates(self) -> None:
        assert is_successful(ACCEPTED)
        assert has_compilation_error({"status": {"id": 6}})
        assert not is_successful({})


class TestFormatResult:
    def test_accepted_submission(self) -> None:
        assert format_result(ACCEPTED) == {
            "output": "42",
            "error": "",
            "status": "Accepted",
            "executionTime": 0.031,
            "memoryUsed": 9344,
            "language": "python",
            "statusId": 3,
            "exitCode": 0,
            "signal": None,
        }

    def test_compile_error_uses_compile_output(self) -> None:
        result = format_result(
            {
                "stdout": None,
                "compile_output": "main.cpp:1: error",
                "status": {"id": 6, "description": "Compilation Error"},
                "time": None,
                "memory": None,
                "language_id": 54,
            }
        )

        assert result["error"] == "main.cpp:1: error"
        assert result["output"] == ""
        assert result["executionTime"] == 0.0
        assert result["memoryUsed"] == 0

    def test_missing_status(self) -> None:
        assert format_result({})["status"] == "Unknown"

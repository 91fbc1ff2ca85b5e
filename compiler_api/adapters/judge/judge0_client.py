"""Judge0 remote execution adapter."""

import logging
from typing import Any

import httpx

from compiler_api.adapters.judge.base import AbstractJudgeClient
from compiler_api.core.errors import JudgeAppError

logger = logging.getLogger(__name__)


def _upstream_message(response: httpx.Response) -> Any:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and body.get("message"):
        return body["message"]
    return body


class Judge0Client(AbstractJudgeClient):
    """Client for the Judge0 submissions API.

    Submissions are sent with ``wait=true`` so one call returns the finished
    result. Sources are sent as plain text (``base64_encoded=false``).
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        api_host: str | None = None,
        timeout_seconds: float = 30.0,
        cpu_time_limit: float = 5.0,
        memory_limit: int = 262_144,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the async HTTP client.

        Args:
            base_url: Judge0 base URL.
            api_key: RapidAPI key; adds the X-RapidAPI-* headers when set.
            api_host: X-RapidAPI-Host value.
            timeout_seconds: Timeout for each request.
            cpu_time_limit: Default CPU limit per submission (seconds).
            memory_limit: Default memory limit per submission (KB).
            transport: Optional transport override (tests).
        """
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if api_key:
            headers["X-RapidAPI-Key"] = api_key
            headers["X-RapidAPI-Host"] = api_host or httpx.URL(base_url).host

        self.client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )
        self.cpu_time_limit = cpu_time_limit
        self.memory_limit = memory_limit

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            response = await self.client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            upstream = _upstream_message(exc.response)
            logger.warning(
                "judge.request_failed",
                extra={"http_status": exc.response.status_code, "upstream_error": upstream},
            )
            raise JudgeAppError(
                code="judge_request_failed",
                message=str(upstream),
                details={"http_status": exc.response.status_code, "upstream_error": upstream},
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "judge.unreachable",
                extra={"error_type": type(exc).__name__, "error_msg": str(exc)},
            )
            raise JudgeAppError(
                code="judge_unreachable",
                message=str(exc) or type(exc).__name__,
            ) from exc

        try:
            return response.json()
        except ValueError as exc:
            raise JudgeAppError(
                code="judge_invalid_response",
                message="Judge returned a non-JSON response",
            ) from exc

    async def submit(
        self,
        language_id: int,
        source_code: str,
        *,
        stdin: str = "",
        **kwargs: Any,
    ) -> dict[str, Any]:
        payload = {
            "language_id": language_id,
            "source_code": source_code,
            "stdin": stdin or "",
            "cpu_time_limit": kwargs.get("cpu_time_limit", self.cpu_time_limit),
            "memory_limit": kwargs.get("memory_limit", self.memory_limit),
        }
        return await self._request(
            "POST",
            "/submissions",
            params={"base64_encoded": "false", "wait": "true"},
            json=payload,
        )

    async def get_submission(self, token: str) -> dict[str, Any]:
        if not token:
            raise JudgeAppError(
                code="judge_token_required",
                message="Token is required",
                details={"http_status": 400},
            )
        return await self._request(
            "GET",
            f"/submissions/{token}",
            params={"base64_encoded": "false"},
        )

    async def get_batch(self, tokens: list[str]) -> dict[str, Any]:
        if not tokens:
            raise JudgeAppError(
                code="judge_tokens_required",
                message="Tokens array is required",
                details={"http_status": 400},
            )
        return await self._request(
            "GET",
            "/submissions/batch",
            params={"tokens": ",".join(tokens), "base64_encoded": "false"},
        )

    async def close(self) -> None:
        await self.client.aclose()

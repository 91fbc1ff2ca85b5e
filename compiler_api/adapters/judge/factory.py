"""Factory for the configured judge client."""

from compiler_api.adapters.judge.base import AbstractJudgeClient
from compiler_api.adapters.judge.judge0_client import Judge0Client
from compiler_api.core.config import settings
from compiler_api.core.errors import ValidationAppError


def create_judge_client() -> AbstractJudgeClient:
    """Instantiate the judge client from ``settings.judge``.

    Raises:
        ValidationAppError: If no base URL is configured.
    """
    judge = settings.judge
    if not judge.api_url:
        raise ValidationAppError(
            code="judge_missing_url",
            message="Judge0 requires JUDGE0_API_URL",
        )
    return Judge0Client(
        base_url=judge.api_url,
        api_key=judge.api_key,
        api_host=judge.api_host,
        timeout_seconds=judge.timeout_seconds,
        cpu_time_limit=judge.cpu_time_limit,
        memory_limit=judge.memory_limit,
    )

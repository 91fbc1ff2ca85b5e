"""Remote code execution adapter layer."""

from compiler_api.adapters.judge.base import AbstractJudgeClient
from compiler_api.adapters.judge.factory import create_judge_client
from compiler_api.adapters.judge.judge0_client import Judge0Client

__all__ = [
    "AbstractJudgeClient",
    "Judge0Client",
    "create_judge_client",
]

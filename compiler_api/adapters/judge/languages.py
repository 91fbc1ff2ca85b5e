"""Judge0 language ids and submission statuses."""

from __future__ import annotations

from enum import IntEnum
from typing import Any

LANGUAGE_IDS: dict[str, int] = {
    "javascript": 63,
    "python": 71,
    "java": 62,
    "cpp": 54,
    "c": 50,
    "csharp": 51,
    "go": 60,
    "rust": 73,
    "php": 68,
    "ruby": 72,
    "swift": 83,
    "kotlin": 78,
    "typescript": 74,
    "scala": 81,
}

LANGUAGE_NAMES: dict[int, str] = {v: k for k, v in LANGUAGE_IDS.items()}

# Languages the compile endpoint accepts; snippets may use any known language.
COMPILABLE_LANGUAGES: tuple[str, ...] = ("cpp", "java", "javascript", "python")


class JudgeStatus(IntEnum):
    QUEUED = 1
    PROCESSING = 2
    ACCEPTED = 3
    WRONG_ANSWER = 4
    TIME_LIMIT_EXCEEDED = 5
    COMPILE_ERROR = 6
    RUNTIME_ERROR = 7
    INTERNAL_ERROR = 8
    EXEC_FORMAT_ERROR = 9


STATUS_DESCRIPTIONS: dict[int, str] = {
    JudgeStatus.QUEUED: "In Queue",
    JudgeStatus.PROCESSING: "Processing",
    JudgeStatus.ACCEPTED: "Accepted",
    JudgeStatus.WRONG_ANSWER: "Wrong Answer",
    JudgeStatus.TIME_LIMIT_EXCEEDED: "Time Limit Exceeded",
    JudgeStatus.COMPILE_ERROR: "Compilation Error",
    JudgeStatus.RUNTIME_ERROR: "Runtime Error",
    JudgeStatus.INTERNAL_ERROR: "Internal Error",
    JudgeStatus.EXEC_FORMAT_ERROR: "Exec Format Error",
}


def get_language_id(language: str) -> int | None:
    return LANGUAGE_IDS.get(language.lower())


def get_language_name(language_id: int | None) -> str | None:
    if language_id is None:
        return None
    return LANGUAGE_NAMES.get(language_id)


def supported_languages() -> list[dict[str, Any]]:
    return [{"name": name, "id": language_id} for name, language_id in LANGUAGE_IDS.items()]


def status_description(status_id: int | None) -> str:
    return STATUS_DESCRIPTIONS.get(status_id, "Unknown Status")  # type: ignore[arg-type]


def _status_id(result: dict[str, Any]) -> int | None:
    status = result.get("status") or {}
    return status.get("id")


def is_successful(result: dict[str, Any]) -> bool:
    return _status_id(result) == JudgeStatus.ACCEPTED


def has_compilation_error(result: dict[str, Any]) -> bool:
    return _status_id(result) == JudgeStatus.COMPILE_ERROR


def has_runtime_error(result: dict[str, Any]) -> bool:
    return _status_id(result) == JudgeStatus.RUNTIME_ERROR


def is_time_limit_exceeded(result: dict[str, Any]) -> bool:
    return _status_id(result) == JudgeStatus.TIME_LIMIT_EXCEEDED


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def format_result(result: dict[str, Any]) -> dict[str, Any]:
    """Shape a raw Judge0 submission into the API response.

    Args:
        result: Submission object (``stdout``, ``stderr``, ``compile_output``,
            ``status``, ``time``, ``memory``, ``language_id``, ...).

    Returns:
        dict with ``output``, ``error``, ``status``, ``executionTime``,
        ``memoryUsed``, ``language``, ``statusId``, ``exitCode``, ``signal``.
    """
    status = result.get("status") or {}
    stdout = result.get("stdout")
    return {
        "output": stdout.strip() if stdout else "",
        "error": result.get("stderr") or result.get("compile_output") or "",
        "status": status.get("description") or "Unknown",
        "executionTime": _to_float(result.get("time")),
        "memoryUsed": result.get("memory") or 0,
        "language": get_language_name(result.get("language_id")),
        "statusId": status.get("id"),
        "exitCode": result.get("exit_code"),
        "signal": result.get("signal"),
    }

"""Code execution through the remote judge."""

from __future__ import annotations

import logging
from typing import Any

from compiler_api.adapters.judge.base import AbstractJudgeClient
from compiler_api.adapters.judge.languages import (
    COMPILABLE_LANGUAGES,
    LANGUAGE_IDS,
    format_result,
    supported_languages,
)
from compiler_api.core.config import settings
from compiler_api.core.errors import ValidationAppError

logger = logging.getLogger(__name__)


class CompilerService:
    def __init__(self, judge: AbstractJudgeClient) -> None:
        self.judge = judge

    async def compile(self, language: str | None, code: str | None, stdin: str | None = "") -> dict[str, Any]:
        """Run ``code`` and return the formatted judge result.

        Raises:
            ValidationAppError: Missing fields, unsupported language or code too large.
            JudgeAppError: Upstream failure (carries the upstream status).
        """
        if not language or not code:
            raise ValidationAppError(code="compile_fields_required", message="Language and code are required")

        language = language.lower()
        if language not in COMPILABLE_LANGUAGES:
            raise ValidationAppError(
                code="unsupported_language",
                message=(
                    "Unsupported language. This compiler only supports: "
                    + ", ".join(COMPILABLE_LANGUAGES)
                ),
                details={"supported": list(COMPILABLE_LANGUAGES)},
            )

        max_chars = settings.app.max_compile_code_chars
        if len(code) > max_chars:
            raise ValidationAppError(
                code="code_too_large",
                message=f"Code size exceeds maximum limit ({max_chars} characters)",
                details={"max_chars": max_chars, "actual_chars": len(code)},
            )

        raw = await self.judge.submit(LANGUAGE_IDS[language], code, stdin=stdin or "")
        result = format_result(raw)
        logger.info(
            "compile.completed",
            extra={
                "language": language,
                "status_id": result["statusId"],
                "execution_time": result["executionTime"],
            },
        )
        return result

    async def get_submission(self, token: str) -> dict[str, Any]:
        return format_result(await self.judge.get_submission(token))

    def languages(self) -> dict[str, Any]:
        return {"languages": supported_languages(), "compilable": list(COMPILABLE_LANGUAGES)}

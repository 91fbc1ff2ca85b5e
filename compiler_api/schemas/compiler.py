"""Pydantic schemas for code execution."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class CompileRequest(BaseModel):
    language: str | None = Field(default=None, description="One of cpp, java, javascript, python.")
    code: str | None = Field(default=None, description="Program source.")
    input: str | None = Field(default="", description="Standard input for the program.")


class CompileResult(BaseModel):
    """Execution result returned to the client."""

    model_config = ConfigDict(populate_by_name=True)

    output: str = Field("", description="Trimmed stdout.")
    error: str = Field("", description="stderr or compiler output.")
    status: str = Field("Unknown", description="Judge status description.")
    execution_time: float = Field(0.0, alias="executionTime", description="CPU time in seconds.")
    memory_used: int = Field(0, alias="memoryUsed", description="Peak memory in KB.")
    language: str | None = None
    status_id: int | None = Field(None, alias="statusId")
    exit_code: int | None = Field(None, alias="exitCode")
    signal: int | None = None


class LanguageInfo(BaseModel):
    name: str
    id: int


class LanguagesResponse(BaseModel):
    languages: list[LanguageInfo]
    compilable: list[str]

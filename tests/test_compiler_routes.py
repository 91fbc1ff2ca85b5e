"""Tests for the compile endpoints."""

from compiler_api.core.errors import JudgeAppError


def test_compile_returns_formatted_result(client, judge) -> None:
    resp = client.post(
        "/api/compiler/compile",
        json={"language": "Python", "code": "print('hello')", "input": "x"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["output"] == "hello"
    assert body["status"] == "Accepted"
    assert body["executionTime"] == 0.012
    assert body["language"] == "python"
    assert judge.submissions == [{"language_id": 71, "source_code": "print('hello')", "stdin": "x"}]


def test_compile_requires_language_and_code(client) -> None:
    resp = client.post("/api/compiler/compile", json={"language": "python"})

    assert resp.status_code == 400
    assert resp.json()["message"] == "Language and code are required"


def test_compile_rejects_unsupported_language(client, judge) -> None:
    resp = client.post("/api/compiler/compile", json={"language": "rust", "code": "fn main() {}"})

    assert resp.status_code == 400
    assert resp.json()["message"] == (
        "Unsupported language. This compiler only supports: cpp, java, javascript, python"
    )
    assert judge.submissions == []


def test_compile_rejects_oversized_code(client) -> None:
    resp = client.post("/api/compiler/compile", json={"language": "python", "code": "x" * 500_001})

    assert resp.status_code == 400
    assert resp.json()["code"] == "code_too_large"


def test_upstream_failure_returns_upstream_status(client, judge) -> None:
    judge.error = JudgeAppError(
        code="judge_request_failed",
        message="Service unavailable",
        details={"http_status": 503},
    )

    resp = client.post("/api/compiler/compile", json={"language": "python", "code": "print(1)"})

    assert resp.status_code == 503
    assert resp.json()["message"] == "Code execution failed"
    assert resp.json()["error"] == "Service unavailable"


def test_languages_listing(client) -> None:
    body = client.get("/api/compiler/languages").json()

    assert {"name": "python", "id": 71} in body["languages"]
    assert body["compilable"] == ["cpp", "java", "javascript", "python"]


def test_submission_lookup(client) -> None:
    resp = client.get("/api/compiler/submissions/abc-123")

    assert resp.status_code == 200
    assert resp.json()["statusId"] == 3

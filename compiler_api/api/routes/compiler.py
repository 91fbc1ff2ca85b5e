from fastapi import APIRouter, Depends, Request

from compiler_api.core.rate_limit import rate_limit
from compiler_api.schemas.compiler import CompileRequest, CompileResult, LanguagesResponse
from compiler_api.services.compiler_service import CompilerService
from compiler_api.services.rate_limit_policies import COMPILE

router = APIRouter(prefix="/api/compiler", tags=["Compiler"])


def get_compiler_service(request: Request) -> CompilerService:
    return request.app.state.compiler_service


@router.post(
    "/compile",
    response_model=CompileResult,
    dependencies=[Depends(rate_limit(COMPILE))],
)
async def compile_code(
    body: CompileRequest,
    service: CompilerService = Depends(get_compiler_service),
) -> CompileResult:
    """Run a program on the remote judge and return its result.

    Signed-in users get a larger compile allowance than guests.

    Raises:
        ValidationAppError: 400 for missing fields, unsupported language or
            oversized code.
        JudgeAppError: Upstream failure, answered with the upstream status.
    """

    result = await service.compile(body.language, body.code, body.input)
    return CompileResult(**result)


@router.get("/languages", response_model=LanguagesResponse)
async def list_languages(service: CompilerService = Depends(get_compiler_service)) -> LanguagesResponse:
    return LanguagesResponse(**service.languages())


@router.get("/submissions/{token}", response_model=CompileResult)
async def get_submission(
    token: str,
    service: CompilerService = Depends(get_compiler_service),
) -> CompileResult:
    return CompileResult(**await service.get_submission(token))

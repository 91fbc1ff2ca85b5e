from fastapi import APIRouter, Depends, Request, Response

from compiler_api.core.auth import clear_session_cookie, set_session_cookie
from compiler_api.core.rate_limit import rate_limit
from compiler_api.schemas.auth import (
    LoginResponse,
    MessageResponse,
    OtpRequest,
    OtpSentResponse,
    OtpVerifyRequest,
)
from compiler_api.services.auth_service import AuthService
from compiler_api.services.rate_limit_policies import LOGIN, OTP_REQUEST, OTP_VERIFY

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


@router.post(
    "/request-otp",
    response_model=OtpSentResponse,
    dependencies=[Depends(rate_limit(OTP_REQUEST))],
)
async def request_otp(
    body: OtpRequest,
    service: AuthService = Depends(get_auth_service),
) -> OtpSentResponse:
    """Email a one-time passcode, replacing any pending one for the address."""

    return OtpSentResponse(**await service.request_otp(body.email))


@router.post(
    "/verify-otp",
    response_model=LoginResponse,
    dependencies=[Depends(rate_limit(OTP_VERIFY)), Depends(rate_limit(LOGIN))],
)
async def verify_otp(
    body: OtpVerifyRequest,
    response: Response,
    service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    """Consume the passcode and open a session.

    The session token is returned only as an HttpOnly cookie.
    """

    user, token = await service.verify_otp(body.email, body.otp)
    set_session_cookie(response, token)
    return LoginResponse(message="Login successful", user={"id": user.id, "email": user.email})


@router.post("/logout", response_model=MessageResponse)
async def logout(response: Response) -> MessageResponse:
    clear_session_cookie(response)
    return MessageResponse(message="Logged out successfully")

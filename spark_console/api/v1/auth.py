from fastapi import APIRouter
from fastapi.responses import JSONResponse

from spark_console.config import settings
from spark_console.core.exceptions import AuthenticationError
from spark_console.core.middleware import SESSION_COOKIE, token_matches
from spark_console.schemas.auth import LoginRequest, LoginResponse

router = APIRouter()

SESSION_MAX_AGE = 7 * 24 * 3600


@router.post("/auth/login")
async def login(body: LoginRequest) -> JSONResponse:
    """Exchange the shared token for an HttpOnly session cookie."""
    expected = settings.spark_auth_token
    if expected and not token_matches(body.token, expected):
        raise AuthenticationError("Invalid token.")

    response = JSONResponse(content=LoginResponse().model_dump())
    if expected:
        response.set_cookie(
            SESSION_COOKIE,
            body.token,
            max_age=SESSION_MAX_AGE,
            httponly=True,
            secure=True,
            samesite="strict",
        )
    return response

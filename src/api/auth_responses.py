"""Map an AuthResult to an HTTP response.

The login route is a thin caller: it runs ``authenticate`` and hands the
result to ``to_http_response``. Session or token issuance on success is
the caller's concern.
"""

import math

from fastapi import status
from fastapi.responses import JSONResponse

from api.models import AccountResponse, LoginResult
from domain.model.auth_result import AuthResult, AuthStatus

STATUS_CODES: dict[AuthStatus, int] = {
    AuthStatus.SUCCESS: status.HTTP_200_OK,
    AuthStatus.CREDENTIALS_INVALID: status.HTTP_401_UNAUTHORIZED,
    AuthStatus.ACCOUNT_INACTIVE: status.HTTP_403_FORBIDDEN,
    AuthStatus.ACCOUNT_LOCKED: status.HTTP_423_LOCKED,
    AuthStatus.STORE_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}

MESSAGES: dict[AuthStatus, str] = {
    AuthStatus.SUCCESS: "Login successful",
    AuthStatus.CREDENTIALS_INVALID: "Invalid credentials",
    AuthStatus.ACCOUNT_INACTIVE: "Account is inactive",
    AuthStatus.ACCOUNT_LOCKED: "Account temporarily locked due to too many failed login attempts",
    AuthStatus.STORE_ERROR: "Authentication is temporarily unavailable",
}


def to_login_result(result: AuthResult) -> LoginResult:
    """Build the response body for an AuthResult."""
    user = AccountResponse.from_profile(result.account) if result.ok and result.account else None
    retry_after = None
    if result.status is AuthStatus.ACCOUNT_LOCKED and result.retry_after is not None:
        retry_after = max(0, math.ceil(result.retry_after.total_seconds()))

    return LoginResult(
        success=result.ok,
        message=MESSAGES[result.status],
        code=result.status.value,
        user=user,
        retry_after_seconds=retry_after,
    )


def to_http_response(result: AuthResult) -> JSONResponse:
    """Return the JSON response for an AuthResult.

    SUCCESS 200, CREDENTIALS_INVALID 401, ACCOUNT_INACTIVE 403,
    ACCOUNT_LOCKED 423 (with Retry-After), STORE_ERROR 503.
    """
    body = to_login_result(result)
    headers = {}
    if result.status is AuthStatus.CREDENTIALS_INVALID:
        headers["WWW-Authenticate"] = "Bearer"
    if body.retry_after_seconds is not None:
        headers["Retry-After"] = str(body.retry_after_seconds)

    return JSONResponse(
        status_code=STATUS_CODES[result.status],
        content=body.model_dump(mode="json", exclude_none=True),
        headers=headers or None,
    )

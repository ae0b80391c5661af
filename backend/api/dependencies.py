from functools import lru_cache
from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials
from core.exceptions import InvalidCredentialsError
from core.security import bearer_scheme
from services.auth_service import IdentityService
from services.otp_service import OtpManager
from services.token_service import ClientInfo, TokenIssuer


@lru_cache(maxsize=1)
def get_identity_service() -> IdentityService:
    return IdentityService(token_issuer=TokenIssuer.from_settings(), otp_manager=OtpManager())


def get_client_info(request: Request) -> ClientInfo:
    return ClientInfo(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def get_bearer_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> str:
    if credentials is None or not credentials.credentials:
        raise InvalidCredentialsError("Missing bearer token")
    return credentials.credentials

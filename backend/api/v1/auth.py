from fastapi import APIRouter, Depends, Response, status
from schemas.user_schema import (
    Account,
    ChangePasswordRequest,
    EmailRequest,
    LoginRequest,
    RegisterRequest,
    Token,
    TokenRequest,
    TokenValidity,
    VerifyEmailRequest,
    VerifyPasswordResetRequest,
)
from services.auth_service import IdentityService
from services.token_service import ClientInfo
from api.dependencies import get_bearer_token, get_client_info, get_identity_service
from utils.responses import no_store_json

router = APIRouter(prefix="/auth")


def _token_response(token: str, status_code: int = 200):
    return no_store_json(Token(access_token=token).model_dump(), status_code=status_code)


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(
    payload: RegisterRequest,
    client: ClientInfo = Depends(get_client_info),
    service: IdentityService = Depends(get_identity_service),
):
    return _token_response(await service.register(payload, client), status_code=status.HTTP_201_CREATED)


@router.post("/login", response_model=Token)
async def login(
    payload: LoginRequest,
    client: ClientInfo = Depends(get_client_info),
    service: IdentityService = Depends(get_identity_service),
):
    return _token_response(await service.login(payload.email, payload.password, client))


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(payload: TokenRequest, service: IdentityService = Depends(get_identity_service)):
    await service.logout(payload.token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/refresh-token", response_model=Token)
async def refresh_token(
    payload: TokenRequest,
    client: ClientInfo = Depends(get_client_info),
    service: IdentityService = Depends(get_identity_service),
):
    return _token_response(await service.refresh_token(payload.token, client))


@router.post("/validate-token", response_model=TokenValidity)
async def validate_token(payload: TokenRequest, service: IdentityService = Depends(get_identity_service)):
    return TokenValidity(valid=service.validate_token(payload.token))


@router.get("/me", response_model=Account)
async def me(token: str = Depends(get_bearer_token), service: IdentityService = Depends(get_identity_service)):
    account = await service.get_user_info(token)
    if account is None:
        return no_store_json({"detail": "User not found"}, status_code=status.HTTP_404_NOT_FOUND)
    return account


@router.put("/change-password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    payload: ChangePasswordRequest,
    token: str = Depends(get_bearer_token),
    service: IdentityService = Depends(get_identity_service),
):
    await service.change_password(token, payload.old_password, payload.new_password)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/reset-password-request")
async def reset_password_request(payload: EmailRequest, service: IdentityService = Depends(get_identity_service)):
    await service.request_password_reset(payload.email)
    return no_store_json({"message": "If an account exists, a reset code has been sent"})


@router.post("/verify-password-reset")
async def verify_password_reset(
    payload: VerifyPasswordResetRequest, service: IdentityService = Depends(get_identity_service)
):
    await service.verify_password_reset(payload.code, payload.new_password)
    return no_store_json({"message": "Password reset successful"})


@router.post("/verify-email")
async def verify_email(payload: VerifyEmailRequest, service: IdentityService = Depends(get_identity_service)):
    await service.verify_email(payload.code)
    return no_store_json({"message": "Email verified successfully"})


@router.post("/resend-verification")
async def resend_verification(payload: EmailRequest, service: IdentityService = Depends(get_identity_service)):
    await service.request_email_verification(payload.email)
    return no_store_json({"message": "If the account is unverified, a new code has been sent"})

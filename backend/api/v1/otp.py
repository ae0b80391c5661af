from fastapi import APIRouter, Depends, Response, status
from schemas.otp_schema import OtpCodeOut, OtpValidateRequest
from services.auth_service import IdentityService
from api.dependencies import get_identity_service
from utils.responses import no_store_json

router = APIRouter(prefix="/otp")


@router.post("/validate", response_model=OtpCodeOut)
async def validate_otp(payload: OtpValidateRequest, service: IdentityService = Depends(get_identity_service)):
    otp = await service.find_otp(payload.user_id, payload.kind, payload.code)
    if otp is None:
        return no_store_json({"detail": "OTP code not found or is invalid"}, status_code=status.HTTP_404_NOT_FOUND)
    return otp


@router.put("/{otp_id}/verify", status_code=status.HTTP_204_NO_CONTENT)
async def verify_otp(otp_id: str, service: IdentityService = Depends(get_identity_service)):
    await service.verify_otp(otp_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

from datetime import datetime
from pydantic import BaseModel, Field
from db.models.otp_code import OtpKind


class OtpValidateRequest(BaseModel):
    user_id: str = Field(min_length=1)
    kind: OtpKind
    code: str = Field(pattern=r"^\d{6}$")


class OtpCodeOut(BaseModel):
    """A matched code, without the code digits themselves."""

    id: str
    user_id: str
    kind: OtpKind
    expires_at: datetime
    verified: bool
    created_at: datetime

    class Config:
        from_attributes = True

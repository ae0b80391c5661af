import enum
from sqlalchemy import Column, String, Boolean, DateTime, Enum, ForeignKey, Index
from sqlalchemy.sql import func
from db.session import Base
from db.models.user import _new_id


class OtpKind(str, enum.Enum):
    EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
    PHONE_VERIFICATION = "PHONE_VERIFICATION"
    LOGIN = "LOGIN"
    PASSWORD_RESET = "PASSWORD_RESET"


class OtpCode(Base):
    __tablename__ = "otp_codes"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    code = Column(String(6), nullable=False)
    kind = Column(Enum(OtpKind, name="otp_kind"), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    # Set client side so "most recent wins" ordering is stable within a second
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("ix_otp_codes_kind_code", "kind", "code"),
    )

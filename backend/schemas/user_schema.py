from datetime import datetime
from decimal import Decimal
from enum import Enum
from pydantic import BaseModel, EmailStr, Field, model_validator
from typing import Annotated, Any, Dict, Literal, Optional, Tuple, Union

MIN_PASSWORD_LENGTH = 8


class UserRole(str, Enum):
    STANDARD = "STANDARD"
    AGENT = "AGENT"
    CORPORATE = "CORPORATE"


class AgentAccessLevel(str, Enum):
    BASIC = "BASIC"
    SUPERVISOR = "SUPERVISOR"
    MANAGER = "MANAGER"
    ADMIN = "ADMIN"


# Columns each record receives from a registration payload
USER_FIELDS: Tuple[str, ...] = (
    "first_name", "last_name", "phone", "date_of_birth", "nationality", "passport_number",
)
ROLE_PROFILE_FIELDS: Dict[UserRole, Tuple[str, ...]] = {
    UserRole.STANDARD: (),
    UserRole.AGENT: ("agent_code", "department", "access_level"),
    UserRole.CORPORATE: ("company_id", "employee_id", "cost_center", "approval_limit", "is_approver"),
}
REQUIRED_ROLE_FIELDS: Dict[UserRole, Tuple[str, ...]] = {
    UserRole.STANDARD: (),
    UserRole.AGENT: ("agent_code",),
    UserRole.CORPORATE: ("company_id",),
}


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=72)
    role: UserRole = UserRole.STANDARD
    first_name: str = ""
    last_name: str = ""
    phone: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    nationality: Optional[str] = None
    passport_number: Optional[str] = None

    # Agent
    agent_code: Optional[str] = None
    department: Optional[str] = None
    access_level: Optional[AgentAccessLevel] = None

    # Corporate
    company_id: Optional[str] = None
    employee_id: Optional[str] = None
    cost_center: Optional[str] = None
    approval_limit: Optional[Decimal] = Field(default=None, ge=0)
    is_approver: Optional[bool] = None

    @model_validator(mode="after")
    def _check_role_fields(self) -> "RegisterRequest":
        missing = [name for name in REQUIRED_ROLE_FIELDS[self.role] if not getattr(self, name)]
        if missing:
            raise ValueError(f"{self.role.value} registration requires: {', '.join(missing)}")
        return self

    def user_fields(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in USER_FIELDS if getattr(self, name) is not None}

    def profile_fields(self) -> Dict[str, Any]:
        """Only the fields relevant to ``role``; unset values fall back to column defaults."""
        fields = {}
        for name in ROLE_PROFILE_FIELDS[self.role]:
            value = getattr(self, name)
            if value is None:
                continue
            fields[name] = value.value if isinstance(value, Enum) else value
        return fields


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class TokenRequest(BaseModel):
    token: str = Field(min_length=1)


class ChangePasswordRequest(BaseModel):
    old_password: str = Field(min_length=1)
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=72)


class EmailRequest(BaseModel):
    email: EmailStr


class VerifyPasswordResetRequest(BaseModel):
    code: str = Field(pattern=r"^\d{6}$")
    new_password: str = Field(min_length=MIN_PASSWORD_LENGTH, max_length=72)


class VerifyEmailRequest(BaseModel):
    code: str = Field(pattern=r"^\d{6}$")


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class TokenValidity(BaseModel):
    valid: bool


class UserOut(BaseModel):
    id: str
    email: EmailStr
    first_name: str
    last_name: str
    phone: Optional[str] = None
    nationality: Optional[str] = None
    is_active: bool
    is_verified: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
        extra = "ignore"


class AgentProfileOut(BaseModel):
    id: str
    user_id: str
    agent_code: str
    department: Optional[str] = None
    access_level: AgentAccessLevel
    is_active: bool

    class Config:
        from_attributes = True
        extra = "ignore"


class CorporateProfileOut(BaseModel):
    id: str
    user_id: str
    company_id: str
    employee_id: Optional[str] = None
    cost_center: Optional[str] = None
    approval_limit: Optional[Decimal] = None
    is_approver: bool

    class Config:
        from_attributes = True
        extra = "ignore"


class StandardAccount(BaseModel):
    kind: Literal["STANDARD"] = "STANDARD"
    user: UserOut


class AgentAccount(BaseModel):
    kind: Literal["AGENT"] = "AGENT"
    user: UserOut
    profile: AgentProfileOut


class CorporateAccount(BaseModel):
    kind: Literal["CORPORATE"] = "CORPORATE"
    user: UserOut
    profile: CorporateProfileOut


Account = Annotated[Union[StandardAccount, AgentAccount, CorporateAccount], Field(discriminator="kind")]


def resolve_account(user) -> Union[StandardAccount, AgentAccount, CorporateAccount]:
    """Build the account view once; corporate wins over agent, agent over the bare user."""
    base = UserOut.model_validate(user)
    if user.corporate_profile is not None:
        return CorporateAccount(user=base, profile=CorporateProfileOut.model_validate(user.corporate_profile))
    if user.agent_profile is not None:
        return AgentAccount(user=base, profile=AgentProfileOut.model_validate(user.agent_profile))
    return StandardAccount(user=base)

"""
Storefront — Auth schemas
"""
from pydantic import BaseModel, EmailStr, Field

from storefront.models.profile import Role


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class SignUpRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    role: Role = Role.OWNER


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class MeResponse(BaseModel):
    profile_id: str
    email: str | None
    role: Role
    name: str | None = None
    storename: str | None = None
    customernumber: str | None = None

    model_config = {"from_attributes": True}

"""Pydantic-scheman för request/response."""
import uuid
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class Credentials(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalise_email(cls, value: str) -> str:
        value = value.strip().lower()
        if "@" not in value:
            raise ValueError("invalid email")
        return value


class RegisterRequest(Credentials):
    password: str = Field(..., min_length=8, max_length=128)


class UserSummary(BaseModel):
    id: uuid.UUID
    email: str
    is_pro: bool

    model_config = {"from_attributes": True}


class AuthResponse(BaseModel):
    ok: bool = True
    user: UserSummary


class AccountResponse(BaseModel):
    id: uuid.UUID
    email: str
    role: str
    pro: bool


class PlanResponse(BaseModel):
    plan: str
    fileLimit: int
    filesUsed: int


class PromoRequest(BaseModel):
    code: Optional[str] = None
    promoCode: Optional[str] = None

    @property
    def value(self) -> str:
        return self.promoCode or self.code or ""


class PromoResponse(BaseModel):
    success: bool
    message: str

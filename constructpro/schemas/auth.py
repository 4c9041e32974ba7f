from datetime import datetime
from pydantic import BaseModel, ConfigDict, EmailStr, field_validator
from typing import Literal, Optional

Role = Literal["admin", "project_manager", "store_manager", "employee"]


class RegisterIn(BaseModel):
    email: EmailStr
    full_name: str
    password: str
    username: Optional[str] = None

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("full_name is required")
        return cleaned

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        if len(value) < 8:
            raise ValueError("password must be at least 8 characters")
        return value

    @field_validator("username")
    @classmethod
    def normalize_username(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "email": "storekeeper@example.com",
                "full_name": "Ada Storekeeper",
                "password": "password123",
                "username": "ada_store",
            }
        }
    )


class LoginIn(BaseModel):
    identifier: str
    password: str

    @field_validator("identifier")
    @classmethod
    def validate_identifier(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("identifier is required")
        return cleaned

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "identifier": "storekeeper@example.com",
                "password": "password123",
            }
        }
    )


class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"


class RoleUpdateIn(BaseModel):
    role: Role


class UserProfileOut(BaseModel):
    id: str
    email: EmailStr
    username: str
    full_name: Optional[str] = None
    role: str
    is_active: bool
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

"""Auth Schema"""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field, EmailStr, field_validator


class UserRegister(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(..., min_length=1, max_length=100)
    role: str = Field(default="CUSTOMER", description="CUSTOMER or VENDOR")

    @field_validator("role")
    @classmethod
    def check_role(cls, v: str) -> str:
        v = v.upper()
        if v not in ("CUSTOMER", "VENDOR"):
            raise ValueError("role must be CUSTOMER or VENDOR")
        return v


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserResponse(BaseModel):
    id: int
    email: str
    name: str
    role: str
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse

from pydantic import EmailStr, Field
from datetime import datetime

from app.models.user import UserRole
from app.schemas.common import ApiModel


class UserRegister(ApiModel):
    """Schema for user registration"""
    email: EmailStr
    password: str = Field(..., min_length=8, description="Password must be at least 8 characters")


class UserLogin(ApiModel):
    """Schema for user login"""
    email: EmailStr
    password: str


class UserResponse(ApiModel):
    """Schema for user data response"""
    id: int
    email: str
    role: UserRole
    created_at: datetime


class TokenResponse(ApiModel):
    """Schema for token response"""
    token: str
    token_type: str = "bearer"
    user: UserResponse

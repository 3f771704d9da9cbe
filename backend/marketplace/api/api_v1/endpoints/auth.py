"""Registration and login"""

import logging
from typing import Any
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.core.deps import get_db, get_current_user
from marketplace.core.security import get_password_hash, verify_password, create_access_token
from marketplace.models import User
from marketplace.schemas.user import UserRegister, UserLogin, UserResponse, Token

logger = logging.getLogger(__name__)

router = APIRouter()


def build_token_response(user: User) -> Token:
    return Token(
        access_token=create_access_token(user.id, user.role),
        user=UserResponse.model_validate(user),
    )


@router.post("/register", response_model=Token, status_code=201)
async def register(
    *,
    db: AsyncSession = Depends(get_db),
    user_in: UserRegister) -> Any:
    """Create a customer or vendor account"""
    email = user_in.email.lower()
    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="An account with this email already exists")

    user = User(
        email=email,
        name=user_in.name,
        hashed_password=get_password_hash(user_in.password),
        role=user_in.role,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    logger.info(f"Registered {user.role.lower()} {email}")
    return build_token_response(user)


@router.post("/login", response_model=Token)
async def login(
    *,
    db: AsyncSession = Depends(get_db),
    credentials: UserLogin) -> Any:
    result = await db.execute(select(User).where(User.email == credentials.email.lower()))
    user = result.scalar_one_or_none()
    if not user or not verify_password(credentials.password, user.hashed_password):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account disabled")
    return build_token_response(user)


@router.get("/me", response_model=UserResponse)
async def read_me(current_user: User = Depends(get_current_user)) -> Any:
    return current_user

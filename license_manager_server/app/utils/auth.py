# -*- coding: utf-8 -*-
"""
Authentication & JWT for the license server admin (Cookie-Based)
"""

import jwt
from datetime import datetime, timedelta, timezone
from passlib.context import CryptContext
from fastapi import HTTPException, Header, Request, status
from typing import Optional

import config

ADMIN_COOKIE = "lms_admin"

# -------------------------------------------------------------
# Password Hashing (bcrypt)
# -------------------------------------------------------------
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def hash_password(password: str) -> str:
    return pwd_context.hash(password[:72])

def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password[:72], hashed_password)
    except ValueError:
        # malformed hash
        return False


# -------------------------------------------------------------
# JWT Token Management
# -------------------------------------------------------------
def create_admin_token(username: str, expires_in_minutes: int = 240) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": username,
        "exp": now + timedelta(minutes=expires_in_minutes),
        "iat": now,
    }
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session expired. Please login again."
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication token."
        )


def get_current_admin(request: Request) -> str:
    token = request.cookies.get(ADMIN_COOKIE)

    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    payload = decode_token(token)
    username = payload.get("sub")

    if not username or username != config.ADMIN_USERNAME:
        raise HTTPException(status_code=401, detail="Invalid token")

    return username


# -------------------------------------------------------------
# Internal API key (order system -> license server)
# -------------------------------------------------------------
def require_api_key(x_api_key: Optional[str] = Header(None)) -> bool:
    """
    Expects header:
      X-API-KEY: <LICENSE_API_KEY>
    """
    if not config.LICENSE_API_KEY or x_api_key != config.LICENSE_API_KEY:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or missing API key")
    return True

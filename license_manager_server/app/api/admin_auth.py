# app/api/admin_auth.py
# -*- coding: utf-8 -*-

from fastapi import APIRouter, Form, HTTPException
from fastapi.responses import JSONResponse

import config
from app.utils.auth import ADMIN_COOKIE, verify_password, create_admin_token

router = APIRouter(prefix="/admin", tags=["admin-auth"])


@router.post("/login")
def login_submit(
    username: str = Form(...),
    password: str = Form(...)
):

    if username != config.ADMIN_USERNAME:
        raise HTTPException(status_code=401, detail="Invalid username or password")

    if not verify_password(password, config.ADMIN_PASSWORD_HASH):
        raise HTTPException(status_code=401, detail="Invalid username or password")

    token = create_admin_token(username)

    response = JSONResponse({"status": "ok", "username": username})
    response.set_cookie(
        key=ADMIN_COOKIE,
        value=token,
        httponly=True,
        secure=False,
        samesite="lax",
        max_age=86400,
        path="/"
    )

    return response


@router.get("/logout")
def logout():
    response = JSONResponse({"status": "logged_out"})
    response.delete_cookie(ADMIN_COOKIE, path="/")
    return response

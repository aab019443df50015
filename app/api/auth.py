from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from app.config import AUTH_RATE_LIMIT_PER_MINUTE
from app.core.exceptions import AuthenticationError
from app.core.rate_limit import RateLimiter, rate_limit_dependency
from app.core.security import clear_session_cookie, read_session_user_id, set_session_cookie
from app.db import get_session
from app.models import User
from app.services.accounts import authenticate, get_user, register_user, user_projection
from app.services.availability import check_availability

router = APIRouter()

logger = logging.getLogger("printshelf")

auth_rate_limiter = RateLimiter(AUTH_RATE_LIMIT_PER_MINUTE, namespace="auth")
enforce_auth_rate_limit = rate_limit_dependency(auth_rate_limiter)


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    firstname: Optional[str] = None
    lastname: Optional[str] = None
    email: Optional[str] = None
    username: Optional[str] = None
    phone: Optional[str] = None
    password: Optional[str] = None
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword")


class LoginRequest(BaseModel):
    identifier: Optional[str] = None
    password: Optional[str] = None


class AvailabilityRequest(BaseModel):
    email: Optional[str] = None
    username: Optional[str] = None
    phone: Optional[str] = None


def require_user(request: Request, session: Session = Depends(get_session)) -> User:
    """Dependency for routes that need a signed-in user."""
    user_id = read_session_user_id(request)
    user = get_user(session, user_id)
    if user is None:
        if user_id:
            logger.info("event=stale_session_cleared user_id=%s", user_id)
        raise AuthenticationError("Authentication required", clear_session=bool(user_id))
    return user


@router.post("/auth/register", status_code=201, dependencies=[Depends(enforce_auth_rate_limit)])
def register(payload: RegisterRequest, session: Session = Depends(get_session)):
    user = register_user(session, payload.model_dump())
    response = JSONResponse({"success": True, "user": user_projection(user)}, status_code=201)
    set_session_cookie(response, user.id)
    return response


@router.post("/auth/login", dependencies=[Depends(enforce_auth_rate_limit)])
def login(payload: LoginRequest, session: Session = Depends(get_session)):
    user = authenticate(session, payload.identifier, payload.password)
    response = JSONResponse({"success": True, "data": {"user": user_projection(user)}})
    set_session_cookie(response, user.id)
    return response


@router.get("/auth/login")
def login_status(request: Request, session: Session = Depends(get_session)):
    user_id = read_session_user_id(request)
    user = get_user(session, user_id)
    if user is None:
        response = JSONResponse(AuthenticationError().to_payload(), status_code=401)
        if user_id:
            logger.info("event=stale_session_cleared user_id=%s", user_id)
            clear_session_cookie(response)
        return response
    return {"success": True, "data": {"user": user_projection(user)}}


@router.post("/auth/logout")
def logout(request: Request):
    logger.info("event=logout user_id=%s", read_session_user_id(request))
    response = RedirectResponse(url="/", status_code=303)
    clear_session_cookie(response)
    return response


@router.get("/users/check")
def check_users_get(
    email: Optional[str] = Query(default=None),
    username: Optional[str] = Query(default=None),
    phone: Optional[str] = Query(default=None),
    session: Session = Depends(get_session),
):
    values = {"email": email, "username": username, "phone": phone}
    return check_availability(session, values)


@router.post("/users/check")
def check_users_post(payload: AvailabilityRequest, session: Session = Depends(get_session)):
    return check_availability(session, payload.model_dump(), collect_errors=True)

from passlib.context import CryptContext
from starlette.requests import Request
from starlette.responses import Response

from app.config import BCRYPT_ROUNDS, IS_PRODUCTION, SESSION_COOKIE_NAME, SESSION_MAX_AGE_SECONDS

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=BCRYPT_ROUNDS)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed_password: str) -> bool:
    return pwd_context.verify(password, hashed_password)


def set_session_cookie(response: Response, user_id: str) -> None:
    response.set_cookie(
        SESSION_COOKIE_NAME,
        user_id,
        max_age=SESSION_MAX_AGE_SECONDS,
        httponly=True,
        secure=IS_PRODUCTION,
        samesite="lax",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        SESSION_COOKIE_NAME,
        httponly=True,
        secure=IS_PRODUCTION,
        samesite="lax",
    )


def read_session_user_id(request: Request) -> str | None:
    value = request.cookies.get(SESSION_COOKIE_NAME)
    if not value or not value.strip():
        return None
    return value.strip()

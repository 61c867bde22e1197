"""
Cookie-based session authentication.

Tokens are stateless HS256 JWTs carried in an HTTP-only cookie. Nothing is kept
server side: a token is valid while its signature checks out and it has not
expired, so logging out only removes the cookie from the client.
"""

import html
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Request, Response
from jose import JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import USERS
from errors import DuplicateUser, InvalidCredentials, InvalidInput, Unauthorized
from schemas import User as UserSchema

logger = logging.getLogger(__name__)

SECRET_KEY = os.getenv("SECRET_KEY", "dev_secret")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 24 * 60
COOKIE_NAME = os.getenv("COOKIE_NAME", "potions_token")
COOKIE_SECURE = os.getenv("COOKIE_SECURE", "false").lower() in ("1", "true", "yes")

NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 30
PASSWORD_MIN_LENGTH = 6

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


@dataclass(frozen=True)
class SessionUser:
    user_id: str
    user_name: str

    def to_dict(self) -> dict:
        return {"userId": self.user_id, "userName": self.user_name}


def sanitize_input(value: str) -> str:
    """Trim, drop control characters and escape markup-significant characters."""
    value = _CONTROL_CHARS.sub("", value.strip())
    return html.escape(value, quote=True).replace("/", "&#x2F;")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def register(db: Database, name: str, password: str) -> str:
    name = sanitize_input(name)
    if not NAME_MIN_LENGTH <= len(name) <= NAME_MAX_LENGTH:
        raise InvalidInput(f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters")
    if len(password.strip()) < PASSWORD_MIN_LENGTH:
        raise InvalidInput(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")

    user_doc = UserSchema(name=name, password_hash=hash_password(password)).model_dump()
    try:
        res = db[USERS].insert_one(user_doc)
    except DuplicateKeyError:
        logger.warning("Registration rejected, name already taken: %s", name)
        raise DuplicateUser(name)
    logger.info("Registered user %s", name)
    return str(res.inserted_id)


def create_access_token(user_id: str, user_name: str, issued_at: Optional[datetime] = None) -> str:
    issued_at = issued_at or datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "name": user_name,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def login(db: Database, name: str, password: str) -> str:
    # same failure for unknown name and wrong password
    user = db[USERS].find_one({"name": sanitize_input(name)})
    if not user or not verify_password(password, user.get("password_hash", "")):
        logger.warning("Failed login for name %s", name)
        raise InvalidCredentials()
    return create_access_token(str(user["_id"]), user["name"])


def verify(token: Optional[str]) -> SessionUser:
    if not token:
        raise Unauthorized()
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.debug("Rejected session token: %s", e)
        raise Unauthorized("Invalid or expired session")
    user_id = payload.get("sub")
    user_name = payload.get("name")
    if not user_id or not user_name:
        raise Unauthorized("Invalid or expired session")
    return SessionUser(user_id=user_id, user_name=user_name)


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        COOKIE_NAME,
        token,
        httponly=True,
        samesite="strict",
        secure=COOKIE_SECURE,
        max_age=ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


def logout(response: Response) -> None:
    response.delete_cookie(COOKIE_NAME, httponly=True, samesite="strict", secure=COOKIE_SECURE)


async def get_current_user(request: Request) -> SessionUser:
    return verify(request.cookies.get(COOKIE_NAME))

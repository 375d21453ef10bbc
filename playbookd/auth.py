# playbookd/auth.py
from datetime import datetime, timedelta, timezone
import uuid
from typing import Optional

from fastapi import HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext

from playbookd import db as store
from playbookd.roles import normalize_role
from playbookd.settings import SECRET_KEY, JWT_ALG, ACCESS_TOKEN_EXPIRE_MIN

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


# --- password utils ----------------------------------------------------------
def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def new_uid() -> str:
    """Opaque string id used as ``_id`` for users and their profile docs."""
    return uuid.uuid4().hex


# --- user lookup -------------------------------------------------------------
def get_user_by_email(email: str) -> Optional[dict]:
    return store.users.find_one({"email": (email or "").strip().lower()})


def get_user(uid: str) -> Optional[dict]:
    if not uid:
        return None
    return store.users.find_one({"_id": uid})


def public_user(user: dict) -> dict:
    """The subset of a user doc that route handlers get to see."""
    return {
        "uid": str(user["_id"]),
        "email": user.get("email"),
        "displayName": user.get("displayName"),
        "role": normalize_role(user.get("role")),
        "coachId": user.get("coachId"),
        "assignedCoachId": user.get("assignedCoachId"),
        "permissions": user.get("permissions") or {},
        "subscription": user.get("subscription") or {},
    }


# --- JWT helpers -------------------------------------------------------------
def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def create_access_token(sub: str) -> str:
    iat = _now_utc()
    exp = iat + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MIN)
    payload = {
        "sub": sub,
        "type": "access",
        "jti": str(uuid.uuid4()),
        "iat": int(iat.timestamp()),
        "exp": int(exp.timestamp()),
    }
    return jwt.encode(payload, SECRET_KEY, algorithm=JWT_ALG)


def decode_token(raw: str) -> dict:
    try:
        return jwt.decode(raw, SECRET_KEY, algorithms=[JWT_ALG])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")


def is_revoked(jti: str) -> bool:
    return store.revoked_tokens.find_one({"jti": jti}) is not None


def revoke_token(jti: str, sub: str, exp: int, reason: str = "logout") -> None:
    # upsert so double-logout is harmless
    store.revoked_tokens.update_one(
        {"jti": jti},
        {"$set": {"jti": jti, "sub": sub, "exp": exp, "reason": reason}},
        upsert=True,
    )


def _token_from_request(request: Request) -> Optional[str]:
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip()
    return request.cookies.get("token")


# --- dependency used by routes ------------------------------------------------
def get_current_user(request: Request) -> dict:
    """
    Pull token from Authorization header (Bearer) OR from 'token' cookie.
    """
    token = _token_from_request(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing authentication token")

    payload = decode_token(token)

    if payload.get("type") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Wrong token type")
    if is_revoked(payload["jti"]):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token has been revoked")

    user = get_user(payload.get("sub"))
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    return public_user(user)


def authenticate_user(email: str, password: str) -> Optional[dict]:
    user = get_user_by_email(email)
    # Google-only accounts have no password
    if not user or not user.get("password"):
        return None
    if not verify_password(password, user["password"]):
        return None
    return user

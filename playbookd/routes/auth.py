# playbookd/routes/auth.py
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Form, Request
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordRequestForm

from playbookd import db as store
from playbookd.auth import (
    authenticate_user,
    create_access_token,
    decode_token,
    get_current_user,
    get_password_hash,
    get_user_by_email,
    new_uid,
    revoke_token,
)
from playbookd.roles import ATHLETE, default_permissions, dashboard_route_for, normalize_role
from playbookd.utils.logger import log_activity

router = APIRouter(prefix="/auth", tags=["auth"])

SIGNUP_ROLES = (ATHLETE,)


def _token_response(user: dict) -> JSONResponse:
    access_token = create_access_token(str(user["_id"]))
    role = normalize_role(user.get("role"))
    resp = JSONResponse({
        "access_token": access_token,
        "token_type": "bearer",
        "role": role,
        "dashboardRoute": dashboard_route_for(role),
    })
    resp.set_cookie(key="token", value=access_token, httponly=False, samesite="lax")
    return resp


# ---------- Signup ----------
@router.post("/signup", status_code=201)
def signup(
    email: str = Form(...),
    password: str = Form(...),
    display_name: str = Form(""),
    role: str = Form(ATHLETE),
):
    email = email.strip().lower()
    role = role.strip().lower()
    if role not in SIGNUP_ROLES:
        # coaches arrive by invitation or baked-profile adoption; admins never self-register
        raise HTTPException(status_code=400, detail=f"Role must be one of: {', '.join(SIGNUP_ROLES)}")
    if len(password) < 8:
        raise HTTPException(status_code=400, detail="Password must be at least 8 characters")
    if get_user_by_email(email):
        raise HTTPException(status_code=409, detail="Email already registered")

    now = datetime.now(timezone.utc)
    uid = new_uid()
    store.users.insert_one({
        "_id": uid,
        "email": email,
        "displayName": display_name.strip() or email.split("@")[0],
        "password": get_password_hash(password),
        "role": role,
        "permissions": default_permissions(role),
        "createdAt": now,
        "updatedAt": now,
    })

    log_activity(user_id=uid, action="signup", metadata={"email": email, "role": role})
    return {"message": "User created", "uid": uid}


# ---------- Email/Password Login ----------
@router.post("/token")
def login(form_data: OAuth2PasswordRequestForm = Depends()):
    user = authenticate_user(form_data.username, form_data.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials")

    store.users.update_one({"_id": user["_id"]}, {"$set": {"lastLoginAt": datetime.now(timezone.utc)}})
    log_activity(user_id=str(user["_id"]), action="login_password", metadata={})
    return _token_response(user)


@router.get("/me")
def me(current_user: dict = Depends(get_current_user)):
    perms = current_user.get("permissions") or default_permissions(current_user["role"])
    return {
        **current_user,
        "permissions": perms,
        "dashboardRoute": dashboard_route_for(current_user["role"]),
    }


# ---------- Logout ----------
@router.post("/logout")
def logout(request: Request, current_user: dict = Depends(get_current_user)):
    auth_header = request.headers.get("Authorization") or ""
    raw = auth_header.split(" ", 1)[1].strip() if auth_header.lower().startswith("bearer ") else request.cookies.get("token")
    p = decode_token(raw)
    revoke_token(p["jti"], p["sub"], p["exp"], reason="logout")
    log_activity(user_id=current_user["uid"], action="logout", metadata={})

    resp = JSONResponse({"message": "Logged Out"})
    resp.delete_cookie("token")
    return resp

from datetime import datetime, timezone

from authlib.integrations.starlette_client import OAuth
from fastapi import APIRouter, Request, HTTPException
from fastapi.responses import RedirectResponse

from playbookd import db as store
from playbookd import settings
from playbookd.auth import create_access_token, get_user_by_email, new_uid
from playbookd.roles import ATHLETE, default_permissions, dashboard_route_for
from playbookd.utils.logger import log_activity

router = APIRouter(prefix="/auth/google", tags=["auth-google"])

oauth = OAuth()

oauth.register(
    name="google",
    client_id=settings.GOOGLE_CLIENT_ID,
    client_secret=settings.GOOGLE_CLIENT_SECRET,
    server_metadata_url="https://accounts.google.com/.well-known/openid-configuration",
    client_kwargs={"scope": "openid email profile"},
)


@router.get("/login")
async def login_via_google(request: Request):
    """
    step 1: Redirect user to Google's consent page
    """
    if not settings.GOOGLE_CLIENT_ID:
        raise HTTPException(status_code=503, detail="Google sign-in is not configured")
    redirect_uri = request.url_for("auth_via_google_callback")
    return await oauth.google.authorize_redirect(request, redirect_uri)


@router.get("/callback")
async def auth_via_google_callback(request: Request):
    token = await oauth.google.authorize_access_token(request)
    user_info = token.get("userinfo")
    if not user_info:
        raise HTTPException(status_code=400, detail="Failed to retrieve Google user info")

    email = user_info["email"].lower()
    user = get_user_by_email(email)
    if not user:
        now = datetime.now(timezone.utc)
        user = {
            "_id": new_uid(),
            "email": email,
            "displayName": user_info.get("name") or email.split("@")[0],
            "photoURL": user_info.get("picture") or "",
            "provider": "google",
            "role": ATHLETE,
            "permissions": default_permissions(ATHLETE),
            "createdAt": now,
            "updatedAt": now,
        }
        store.users.insert_one(user)

    log_activity(user_id=str(user["_id"]), action="login_google", metadata={"email": email})

    resp = RedirectResponse(url=f"{settings.BASE_URL}{dashboard_route_for(user.get('role'))}")
    resp.set_cookie("token", create_access_token(str(user["_id"])), httponly=False, samesite="lax")
    return resp

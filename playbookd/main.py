import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from playbookd import settings
from playbookd.db_init import ensure_indexes
from playbookd.routes import (
    admin,
    ai,
    athletes,
    auth,
    auth_google,
    billing,
    coach_profile,
    invitations,
    lessons,
    messages,
    submissions,
)
from playbookd.services.billing import configure_stripe
from playbookd.utils.logger import configure_logging

logger = logging.getLogger(__name__)

app = FastAPI(title="PLAYBOOKD API")

# authlib keeps the OAuth state in the session
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SESSION_SECRET_KEY,
    same_site="lax",
)

# Routers
app.include_router(auth.router)
app.include_router(auth_google.router)
app.include_router(coach_profile.router)
app.include_router(invitations.router)
app.include_router(messages.router)
app.include_router(athletes.router)
app.include_router(submissions.router)
app.include_router(lessons.router)
app.include_router(ai.router)
app.include_router(billing.router)
app.include_router(admin.router)


@app.on_event("startup")
async def _startup():
    configure_logging()
    ensure_indexes()
    configure_stripe()
    logger.info("playbookd started", extra={"db": settings.MONGO_DB, "transactions": settings.MONGO_TRANSACTIONS})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse({"detail": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # missing or malformed fields are a plain 400 across the API
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse({"detail": "Invalid request", "errors": errors}, status_code=400)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled error", extra={"path": request.url.path, "method": request.method})
    return JSONResponse({"detail": "Internal server error"}, status_code=500)


@app.get("/health")
def health():
    return {"status": "ok"}

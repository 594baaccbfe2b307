import logging
import os
import subprocess
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session

from leaguenight.database import engine, init_db
from leaguenight.routes import admin, league_nights, matches, partnerships
from leaguenight.services.errors import (
    KIND_AUTHORIZATION,
    KIND_CONFLICT,
    KIND_NOT_FOUND,
    KIND_PRECONDITION,
    KIND_VALIDATION,
    LeagueNightError,
)
from leaguenight.services.events import get_event_bus
from leaguenight.services.notifications import SmsNotifier
from leaguenight.services.twilio_service import get_twilio_service

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="League Night API")

STATUS_BY_KIND = {
    KIND_VALIDATION: 422,
    KIND_CONFLICT: 409,
    KIND_NOT_FOUND: 404,
    KIND_AUTHORIZATION: 403,
    KIND_PRECONDITION: 400,
}


# Get build info
def get_build_info():
    """Get git commit hash or build timestamp"""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            cwd=os.path.dirname(os.path.dirname(__file__)),
            capture_output=True,
            text=True,
            timeout=2,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except Exception:
        pass

    # Fallback to build timestamp
    return datetime.now().strftime("%Y%m%d-%H%M%S")


BUILD_HASH = get_build_info()

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_extra = os.getenv("CORS_ORIGINS", "")
if _extra:
    _cors_origins.extend(o.strip() for o in _extra.split(",") if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LeagueNightError)
def league_night_error_handler(request: Request, exc: LeagueNightError):
    status = STATUS_BY_KIND.get(exc.kind, 400)
    logger.info("%s %s -> %s %s: %s", request.method, request.url.path, status, exc.code, exc.message)
    return JSONResponse(
        status_code=status,
        content={
            "detail": exc.message,
            "error": exc.kind,
            "code": exc.code,
            "retryable": exc.retryable,
        },
    )


app.include_router(league_nights.router, prefix="/api", tags=["league-nights"])
app.include_router(partnerships.router, prefix="/api", tags=["partnerships"])
app.include_router(matches.router, prefix="/api", tags=["matches"])
# Organizer console (role checked per call)
app.include_router(admin.router, prefix="/api", tags=["admin"])

# Player texts go out after each committed change, in their own session
sms_notifier = SmsNotifier(lambda: Session(engine), get_twilio_service())
sms_notifier.register(get_event_bus())


@app.on_event("startup")
def on_startup():
    init_db()  # Use centralized init_db() which imports models and creates tables
    logger.info("League Night API started (build %s, %d routes)", BUILD_HASH, len(app.routes))


@app.get("/api/health")
def health_check():
    """Diagnostic endpoint to verify which code is running"""
    return {"app_name": "League Night API", "build_hash": BUILD_HASH, "status": "healthy"}

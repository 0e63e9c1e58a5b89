from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from pathlib import Path
import os
import logging
from dotenv import load_dotenv

load_dotenv(dotenv_path=Path(__file__).parent / ".env", override=True)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

from app.services.workspace import WorkspaceError  # noqa: E402

app = FastAPI(title="Timesheet Portal API")

# --- Routers ---
from app.routers.auth import router as auth_router  # noqa: E402
from app.routers.iam import router as iam_router  # noqa: E402
from app.routers.timesheets import router as timesheets_router  # noqa: E402
from app.routers.weekly_estimates import router as estimates_router  # noqa: E402
from app.routers.approvals import router as approvals_router  # noqa: E402
from app.routers.leave import router as leave_router  # noqa: E402
from app.routers.projects import router as projects_router  # noqa: E402
from app.routers.analytics import router as analytics_router  # noqa: E402
from app.routers.cron import router as cron_router  # noqa: E402

app.include_router(auth_router)
app.include_router(iam_router)
app.include_router(timesheets_router)
app.include_router(estimates_router)
app.include_router(approvals_router)
app.include_router(leave_router)
app.include_router(projects_router)
app.include_router(analytics_router)
app.include_router(cron_router)


CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in CORS_ORIGINS],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error rendering: every failure is {"error": ..., ...extra} ---

@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict):
        body = {"error": exc.detail.get("error") or "Request failed", **exc.detail}
    else:
        body = {"error": exc.detail}
    return JSONResponse(body, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"Invalid {field}: {first.get('msg')}" if field else "Invalid request"
    return JSONResponse(
        {"error": message, "details": jsonable_errors(exc)},
        status_code=400,
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [{"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in exc.errors()]


@app.exception_handler(WorkspaceError)
async def workspace_exception_handler(request: Request, exc: WorkspaceError):
    logger.error("Workspace API failure on %s: %s", request.url.path, exc)
    return JSONResponse(
        {"error": exc.message, "status": exc.status_code, "details": exc.details},
        status_code=502,
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse({"error": "Internal server error", "details": str(exc)}, status_code=500)


@app.get("/health")
def health():
    return {"ok": True}

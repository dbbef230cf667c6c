from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from orilla.core.errors import OrillaError
from orilla.core.logging import configure_logging
from orilla.models import entry_message, organisation, project, time_entry, time_sheet, user  # noqa: F401
from orilla.routers.auth import router as auth_router
from orilla.routers.budgets import router as budgets_router
from orilla.routers.time_entries import router as time_entries_router
from orilla.routers.time_sheets import router as time_sheets_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    yield


app = FastAPI(
    title="Orilla Budget",
    lifespan=lifespan,
)


@app.exception_handler(OrillaError)
async def handle_orilla_error(request: Request, exc: OrillaError):
    log = logger.warning if exc.http_status == 409 else logger.info
    log(
        "Request rejected",
        extra={"path": request.url.path, "code": exc.code, "reason": exc.reason},
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


@app.middleware("http")
async def catch_unhandled_exceptions(request: Request, call_next):
    try:
        return await call_next(request)
    except Exception:
        logger.exception("Unhandled exception")
        return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


app.include_router(auth_router)
app.include_router(time_sheets_router)
app.include_router(time_entries_router)
app.include_router(budgets_router)


@app.get("/")
def root():
    return {"status": "Orilla Budget running"}


@app.get("/health")
def health():
    return {
        "status": "ok",
        "version": "1.0.0",
    }

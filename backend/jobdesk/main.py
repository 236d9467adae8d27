import logging
import sqlite3
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jobdesk.config import settings
from jobdesk.database import init_db
from jobdesk.errors import ApiError
from jobdesk.routers import ROUTERS

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("jobdesk")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create or migrate the database, then integrity-check it
    settings.data_path.mkdir(parents=True, exist_ok=True)
    try:
        init_db(settings.db_path)
        conn = sqlite3.connect(str(settings.db_path))
        result = conn.execute("PRAGMA integrity_check").fetchone()
        conn.close()
        if result and result[0] == "ok":
            logger.info("Database integrity check passed.")
        else:
            logger.error("DATABASE INTEGRITY CHECK FAILED: %s", result)
    except sqlite3.Error as exc:
        logger.error("Could not run startup migration/integrity check: %s", exc)
    yield
    # Shutdown: drop in-memory sessions
    from jobdesk.services.auth_service import auth_service
    auth_service.clear()


app = FastAPI(
    title="JobDesk",
    description="Job scheduling, recurring bookings and public booking pages for field-service teams",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, **exc.extra})


for routers in ROUTERS.values():
    for router in routers:
        app.include_router(router, prefix=settings.api_prefix)


@app.get("/health")
async def health():
    return {"status": "ok", "version": "0.1.0"}

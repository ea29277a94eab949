import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

# IMPORTANT:
# This imports ALL models so SQLAlchemy registers tables + FKs correctly
import clubhub.models  # noqa: F401
from clubhub.core.config import settings
from clubhub.core.db import init_models
from clubhub.core.logging_config import setup_logging

# Routers
from clubhub.routers.auth import router as auth_router
from clubhub.routers.events import router as events_router
from clubhub.routers.receipts import router as receipts_router
from clubhub.routers.payments import router as payments_router
from clubhub.routers.directory import router as directory_router
from clubhub.routers.realtime import router as realtime_router

from clubhub.routers.admin_events import router as admin_events_router
from clubhub.routers.admin_payments import router as admin_payments_router
from clubhub.routers.admin_users import router as admin_users_router
from clubhub.routers.admin_email import router as admin_email_router

from clubhub.services.registrations import install_registration_hooks

logger = logging.getLogger(__name__)

Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    await init_models()
    install_registration_hooks()
    logger.info("ClubHub API started (env=%s)", settings.ENVIRONMENT)
    yield
    logger.info("ClubHub API stopping")


app = FastAPI(title="ClubHub API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


# uploaded payment receipts
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")


@app.get("/health")
async def health():
    return {"status": "ok"}


# Public & member
app.include_router(auth_router)
app.include_router(events_router)
app.include_router(receipts_router)
app.include_router(payments_router)
app.include_router(directory_router)
app.include_router(realtime_router)

# Admin
app.include_router(admin_events_router)
app.include_router(admin_payments_router)
app.include_router(admin_users_router)
app.include_router(admin_email_router)

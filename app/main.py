from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from app.api.router import router as api_router
from app.core.config import settings
from app.core.errors import register_exception_handlers
from app.core.logging import setup_logging
from app.core.telemetry import setup_telemetry
from app.services.storage import UPLOAD_MOUNT

setup_logging(settings.log_level, settings.log_format)

app = FastAPI(title="PropertyHub API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
setup_telemetry(app)
app.include_router(api_router)

Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
app.mount(UPLOAD_MOUNT, StaticFiles(directory=settings.upload_dir), name="uploads")

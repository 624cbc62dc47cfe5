import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.core.config import get_settings
from app.core.database import engine, Base
from app.api.v1 import router as api_router
# Import all models to register them with Base
from app import models  # noqa: F401

settings = get_settings()

_log_level = os.getenv("LOG_LEVEL", "DEBUG" if settings.debug else "INFO").upper()
logging.basicConfig(
    level=_log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.INFO)
logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"


def _pdf_export_available() -> bool:
    return bool(settings.pdf_font_path) and Path(settings.pdf_font_path).is_file()


@asynccontextmanager
async def lifespan(app: FastAPI):
    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if not settings.openai_api_key:
        logger.warning("OPENAI_API_KEY is not set; generation, polish and checks will fail")
    if not _pdf_export_available():
        logger.warning("PDF_FONT_PATH is not a readable font file; PDF export is disabled")
    logger.info("%s started, storing files in %s", settings.app_name, settings.upload_dir)
    yield
    await engine.dispose()


app = FastAPI(
    title=settings.app_name,
    version=APP_VERSION,
    description="AI-assisted academic paper writing service",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "Origin", "X-Requested-With"],
)

app.include_router(api_router, prefix=settings.api_v1_prefix)


@app.get("/health")
async def health_check():
    """Liveness plus which optional integrations are configured."""
    return {
        "status": "healthy",
        "version": APP_VERSION,
        "features": {
            "llm": bool(settings.openai_api_key),
            "scholar_search": bool(settings.ai4scholar_headers()),
            "pdf_export": _pdf_export_available(),
        },
    }

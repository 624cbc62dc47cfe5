from fastapi import APIRouter
from app.api.v1 import (
    auth, papers, references, quality, polish, translation, charts,
    knowledge, dashboard, folders, tags, scholar, payment, files,
)

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(papers.router, prefix="/papers", tags=["papers"])
router.include_router(references.router, prefix="/references", tags=["references"])
router.include_router(quality.router, prefix="/quality", tags=["quality"])
router.include_router(polish.router, prefix="/polish", tags=["polish"])
router.include_router(translation.router, prefix="/translation", tags=["translation"])
router.include_router(charts.router, prefix="/charts", tags=["charts"])
router.include_router(knowledge.router, prefix="/knowledge", tags=["knowledge"])
router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
router.include_router(folders.router, prefix="/folders", tags=["folders"])
router.include_router(tags.router, prefix="/tags", tags=["tags"])
router.include_router(scholar.router, prefix="/scholar", tags=["scholar"])
router.include_router(payment.router, prefix="/payment", tags=["payment"])
router.include_router(files.router, prefix="/files", tags=["files"])

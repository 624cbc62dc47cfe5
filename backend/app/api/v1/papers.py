import uuid
import asyncio
import logging
from datetime import datetime, timezone
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from app.core import get_db, get_settings
from app.models import Folder, KnowledgeDocument, Paper, PaperStatus, PaperType, PaperVersion, User
from app.schemas import (
    PaperCreate, PaperSummary, PaperResponse, GenerateRequest, OutlineResponse, ContentResponse,
    PaperFolderUpdate, PaperEdit, PaperVersionResponse, StructureModule,
    WordExportRequest, LatexExportRequest, ExportResponse, LatexExportResponse,
)
from app.api.v1.auth import get_current_user
from app.services.storage import StorageService
from app.services.llm import LLMError
from app.services.paper_generation import generate_outline, generate_content
from app.services.document_export import (
    PdfExportError, render_pdf_document, render_word_document, resolve_word_style_profile,
)
from app.services.latex_exporter import generate_latex_document, get_template_descriptions
from app.utils.paper_structure import default_structure_for

router = APIRouter()
settings = get_settings()
logger = logging.getLogger(__name__)

EDIT_DESCRIPTION = "编辑修改"


async def verify_paper_access(
    paper_id: uuid.UUID,
    current_user: User,
    db: AsyncSession,
    include_deleted: bool = False,
) -> Paper:
    """Load a paper owned by the current user. Soft-deleted papers count as missing."""
    paper = await db.get(Paper, paper_id)
    if not paper:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Paper not found")
    if paper.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No access to this paper")
    if paper.is_deleted and not include_deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Paper not found")
    return paper


async def verify_folder_access(folder_id: uuid.UUID, current_user: User, db: AsyncSession) -> Folder:
    folder = await db.get(Folder, folder_id)
    if not folder or folder.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Folder not found")
    return folder


async def _load_documents(
    db: AsyncSession, current_user: User, document_ids: list[uuid.UUID]
) -> list[KnowledgeDocument]:
    if not document_ids:
        return []
    result = await db.execute(
        select(KnowledgeDocument).where(
            KnowledgeDocument.id.in_(document_ids),
            KnowledgeDocument.user_id == current_user.id,
        )
    )
    return list(result.scalars().all())


async def record_version(db: AsyncSession, paper: Paper, change_description: str) -> PaperVersion:
    """Snapshot the paper's current outline and content as the next version."""
    result = await db.execute(
        select(func.max(PaperVersion.version_number)).where(PaperVersion.paper_id == paper.id)
    )
    version = PaperVersion(
        paper_id=paper.id,
        version_number=(result.scalar() or 0) + 1,
        outline=paper.outline,
        content=paper.content,
        change_description=change_description,
    )
    db.add(version)
    return version


async def _mark_failed(db: AsyncSession, paper: Paper, message: str) -> None:
    # A completed paper keeps its status; only the error is recorded.
    if paper.status != PaperStatus.COMPLETED:
        paper.status = PaperStatus.FAILED
    paper.error_message = message
    await db.commit()


@router.post("", response_model=PaperResponse, status_code=status.HTTP_201_CREATED)
async def create_paper(
    paper_data: PaperCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    if paper_data.folder_id:
        await verify_folder_access(paper_data.folder_id, current_user, db)

    paper = Paper(
        user_id=current_user.id,
        folder_id=paper_data.folder_id,
        title=paper_data.title,
        type=paper_data.type,
        status=PaperStatus.GENERATING,
    )
    db.add(paper)
    await db.commit()
    await db.refresh(paper)
    return paper


@router.get("", response_model=list[PaperSummary])
async def list_papers(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    folder_id: uuid.UUID | None = None,
    limit: int = Query(default=50, le=100),
    offset: int = Query(default=0, ge=0)
):
    query = select(Paper).where(Paper.user_id == current_user.id, Paper.is_deleted.is_(False))
    if folder_id:
        query = query.where(Paper.folder_id == folder_id)
    result = await db.execute(
        query.order_by(Paper.updated_at.desc()).offset(offset).limit(limit)
    )
    return result.scalars().all()


@router.get("/deleted", response_model=list[PaperSummary])
async def list_deleted_papers(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    result = await db.execute(
        select(Paper)
        .where(Paper.user_id == current_user.id, Paper.is_deleted.is_(True))
        .order_by(Paper.deleted_at.desc())
    )
    return result.scalars().all()


@router.get("/latex/templates")
async def list_latex_templates(current_user: Annotated[User, Depends(get_current_user)]):
    return get_template_descriptions()


@router.get("/structure", response_model=list[StructureModule])
async def get_default_structure(
    current_user: Annotated[User, Depends(get_current_user)],
    paper_type: PaperType = Query(default=PaperType.GRADUATION, alias="type"),
):
    """Module layout a new paper of this type starts with."""
    return default_structure_for(paper_type.value)


@router.post("/versions/{version_id}/restore", response_model=PaperResponse)
async def restore_version(
    version_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    version = await db.get(PaperVersion, version_id)
    if not version:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Version not found")
    paper = await verify_paper_access(version.paper_id, current_user, db)

    paper.outline = version.outline
    paper.content = version.content
    await record_version(db, paper, f"恢复到版本 {version.version_number}")
    await db.commit()
    await db.refresh(paper)
    return paper


@router.get("/{paper_id}", response_model=PaperResponse)
async def get_paper(
    paper_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return await verify_paper_access(paper_id, current_user, db)


@router.put("/{paper_id}", response_model=PaperResponse)
async def save_paper_edit(
    paper_id: uuid.UUID,
    edit: PaperEdit,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Save edited outline/content and snapshot it as a new version."""
    paper = await verify_paper_access(paper_id, current_user, db)
    if edit.outline is None and edit.content is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Nothing to update")

    if edit.outline is not None:
        paper.outline = edit.outline
    if edit.content is not None:
        paper.content = edit.content
    await record_version(db, paper, edit.change_description or EDIT_DESCRIPTION)
    await db.commit()
    await db.refresh(paper)
    return paper


@router.post("/{paper_id}/outline", response_model=OutlineResponse)
async def generate_paper_outline(
    paper_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    request: GenerateRequest | None = None,
):
    paper = await verify_paper_access(paper_id, current_user, db)
    documents = await _load_documents(db, current_user, request.document_ids if request else [])

    try:
        outline = await generate_outline(paper.title, paper.type, documents)
    except LLMError as e:
        logger.exception("Outline generation failed for paper %s", paper.id)
        await _mark_failed(db, paper, str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"大纲生成失败: {e}")

    paper.outline = outline
    await record_version(db, paper, "生成大纲")
    await db.commit()
    return {"outline": outline}


@router.post("/{paper_id}/content", response_model=ContentResponse)
async def generate_paper_content(
    paper_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    request: GenerateRequest | None = None,
):
    paper = await verify_paper_access(paper_id, current_user, db)
    if not paper.outline:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="请先生成论文大纲")
    documents = await _load_documents(db, current_user, request.document_ids if request else [])

    try:
        content = await generate_content(paper.title, paper.type, paper.outline, documents)
    except LLMError as e:
        logger.exception("Content generation failed for paper %s", paper.id)
        await _mark_failed(db, paper, str(e))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"内容生成失败: {e}")

    paper.content = content
    paper.status = PaperStatus.COMPLETED
    paper.error_message = None
    await record_version(db, paper, "生成正文")
    await db.commit()
    return {"content": content}


@router.patch("/{paper_id}/folder", response_model=PaperResponse)
async def move_paper_to_folder(
    paper_id: uuid.UUID,
    move: PaperFolderUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    paper = await verify_paper_access(paper_id, current_user, db)
    if move.folder_id:
        await verify_folder_access(move.folder_id, current_user, db)
    paper.folder_id = move.folder_id
    await db.commit()
    await db.refresh(paper)
    return paper


@router.delete("/{paper_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_paper(
    paper_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Move a paper to the recycle bin."""
    paper = await verify_paper_access(paper_id, current_user, db)
    paper.is_deleted = True
    paper.deleted_at = datetime.now(timezone.utc)
    await db.commit()


@router.post("/{paper_id}/restore", response_model=PaperResponse)
async def restore_paper(
    paper_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    paper = await verify_paper_access(paper_id, current_user, db, include_deleted=True)
    if not paper.is_deleted:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Paper is not deleted")
    paper.is_deleted = False
    paper.deleted_at = None
    await db.commit()
    await db.refresh(paper)
    return paper


@router.delete("/{paper_id}/permanent", status_code=status.HTTP_204_NO_CONTENT)
async def delete_paper_permanently(
    paper_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    paper = await verify_paper_access(paper_id, current_user, db, include_deleted=True)

    storage = StorageService()
    for key in (paper.word_file_key, paper.pdf_file_key, paper.latex_file_key):
        if key:
            await storage.delete_file(key)

    await db.delete(paper)
    await db.commit()
    logger.info("Permanently deleted paper %s", paper_id)


@router.get("/{paper_id}/versions", response_model=list[PaperVersionResponse])
async def list_versions(
    paper_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    await verify_paper_access(paper_id, current_user, db)
    result = await db.execute(
        select(PaperVersion)
        .where(PaperVersion.paper_id == paper_id)
        .order_by(PaperVersion.version_number.desc())
    )
    return result.scalars().all()


def _require_content(paper: Paper) -> str:
    if not paper.content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="论文内容为空，无法导出")
    return paper.content


def _export_key(current_user: User, paper: Paper, extension: str) -> str:
    return StorageService.owned_key(current_user.id, f"papers/{paper.id}/{uuid.uuid4().hex}.{extension}")


@router.post("/{paper_id}/export/word", response_model=ExportResponse)
async def export_word(
    paper_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    request: WordExportRequest | None = None,
):
    paper = await verify_paper_access(paper_id, current_user, db)
    content = _require_content(paper)

    overrides = request.style_profile.model_dump(exclude_none=True) if request and request.style_profile else None
    profile = resolve_word_style_profile(overrides)
    docx_bytes = await asyncio.to_thread(
        render_word_document, paper.title, paper.type, paper.outline or "", content, profile
    )

    key = _export_key(current_user, paper, "docx")
    url = await StorageService().put(key, docx_bytes)
    paper.word_file_key = key
    paper.word_file_url = url
    await db.commit()
    return {"file_key": key, "file_url": url}


@router.post("/{paper_id}/export/pdf", response_model=ExportResponse)
async def export_pdf(
    paper_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    paper = await verify_paper_access(paper_id, current_user, db)
    content = _require_content(paper)

    try:
        pdf_bytes = await asyncio.to_thread(
            render_pdf_document, paper.title, paper.type, paper.outline or "", content, settings.pdf_font_path
        )
    except PdfExportError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    key = _export_key(current_user, paper, "pdf")
    url = await StorageService().put(key, pdf_bytes)
    paper.pdf_file_key = key
    paper.pdf_file_url = url
    await db.commit()
    return {"file_key": key, "file_url": url}


@router.post("/{paper_id}/export/latex", response_model=LatexExportResponse)
async def export_latex(
    paper_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    request: LatexExportRequest | None = None,
):
    paper = await verify_paper_access(paper_id, current_user, db)
    content = _require_content(paper)
    request = request or LatexExportRequest()

    latex = generate_latex_document(
        paper.title,
        content,
        template=request.template,
        authors=request.authors,
        abstract=request.abstract,
        keywords=request.keywords,
    )

    key = _export_key(current_user, paper, "tex")
    url = await StorageService().put(key, latex)
    paper.latex_file_key = key
    paper.latex_file_url = url
    await db.commit()
    return {"file_key": key, "file_url": url, "latex_content": latex}

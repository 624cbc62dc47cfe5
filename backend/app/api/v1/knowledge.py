import uuid
import asyncio
import base64
import binascii
import logging
from typing import Annotated
from fastapi import APIRouter, Depends, HTTPException, status, Query, UploadFile, File, Form
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from app.core import get_db, get_settings
from app.models import DocumentStatus, KnowledgeDocument, User
from app.schemas import (
    KnowledgeUploadBase64, KnowledgeDocumentResponse, KnowledgeDocumentDetail,
    DocumentChatRequest, DocumentChatResponse, RagGenerateRequest, RagGenerateResponse,
)
from app.api.v1.auth import get_current_user
from app.api.v1.papers import verify_paper_access
from app.services.storage import StorageService, safe_filename
from app.services.llm import LLMError
from app.services.knowledge_base import (
    PDF_MAGIC, ChatTurn, DocumentParseError, analyze_document, chat_with_document, extract_text, generate_with_rag,
)

router = APIRouter()
settings = get_settings()
logger = logging.getLogger(__name__)


def _document_key(current_user: User, file_name: str) -> str:
    name = safe_filename(file_name, default="document")
    return StorageService.owned_key(current_user.id, f"knowledge/{uuid.uuid4().hex}_{name}")


async def _get_owned_document(document_id: uuid.UUID, current_user: User, db: AsyncSession) -> KnowledgeDocument:
    document = await db.get(KnowledgeDocument, document_id)
    if not document:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    if document.user_id != current_user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No access to this document")
    return document


async def _ingest(
    db: AsyncSession,
    current_user: User,
    paper_id: uuid.UUID | None,
    file_name: str,
    mime_type: str,
    key: str,
    content: bytes,
) -> KnowledgeDocument:
    """Record an uploaded file and extract its text.

    A file that cannot be parsed is kept with status ``failed`` and reported as 400.
    """
    document = KnowledgeDocument(
        user_id=current_user.id,
        paper_id=paper_id,
        file_name=file_name,
        file_key=key,
        file_url=StorageService().get_file_url(key),
        file_size=len(content),
        mime_type=mime_type,
        status=DocumentStatus.PROCESSING,
    )
    db.add(document)
    await db.flush()

    try:
        extracted = await asyncio.to_thread(extract_text, content, mime_type)
    except DocumentParseError as e:
        document.status = DocumentStatus.FAILED
        await db.commit()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    document.extracted_text = extracted.text
    document.doc_metadata = {
        "page_count": extracted.page_count,
        "title": extracted.title,
        "authors": [extracted.author] if extracted.author else [],
    }
    document.status = DocumentStatus.READY
    await db.commit()
    await db.refresh(document)
    logger.info("Ingested document %s (%d chars)", document.id, len(extracted.text))
    return document


@router.post("/upload", response_model=KnowledgeDocumentResponse, status_code=status.HTTP_201_CREATED)
async def upload_document(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    file: UploadFile = File(...),
    paper_id: uuid.UUID | None = Form(default=None),
):
    """Upload a PDF or plain-text reference document."""
    if paper_id:
        await verify_paper_access(paper_id, current_user, db)

    file_name = file.filename or "document"
    mime_type = file.content_type or "application/octet-stream"
    key = _document_key(current_user, file_name)
    storage = StorageService()
    magic = PDF_MAGIC if mime_type == "application/pdf" else None
    try:
        await storage.save_upload_file(file, key, settings.max_upload_size, magic_header=magic)
    except ValueError as e:
        msg = str(e)
        if msg == "File size exceeds limit":
            msg = f"File size exceeds {settings.max_upload_size_mb}MB limit"
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=msg)

    content = await storage.read_file(key)
    return await _ingest(db, current_user, paper_id, file_name, mime_type, key, content)


@router.post("/upload/base64", response_model=KnowledgeDocumentResponse, status_code=status.HTTP_201_CREATED)
async def upload_document_base64(
    upload: KnowledgeUploadBase64,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    if upload.paper_id:
        await verify_paper_access(upload.paper_id, current_user, db)

    payload = upload.content_base64
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    try:
        content = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid base64 content")
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty file")
    if len(content) > settings.max_upload_size:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"File size exceeds {settings.max_upload_size_mb}MB limit",
        )

    key = _document_key(current_user, upload.file_name)
    await StorageService().put(key, content)
    return await _ingest(db, current_user, upload.paper_id, upload.file_name, upload.mime_type, key, content)


@router.get("", response_model=list[KnowledgeDocumentResponse])
async def list_documents(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)],
    paper_id: uuid.UUID | None = None,
    limit: int = Query(default=50, le=100),
    offset: int = Query(default=0, ge=0)
):
    query = select(KnowledgeDocument).where(KnowledgeDocument.user_id == current_user.id)
    if paper_id:
        query = query.where(KnowledgeDocument.paper_id == paper_id)
    result = await db.execute(
        query.order_by(KnowledgeDocument.created_at.desc()).offset(offset).limit(limit)
    )
    return result.scalars().all()


@router.post("/generate", response_model=RagGenerateResponse)
async def generate_from_documents(
    request: RagGenerateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Write paper text grounded in the selected documents."""
    paper = await verify_paper_access(request.paper_id, current_user, db)
    result = await db.execute(
        select(KnowledgeDocument).where(
            KnowledgeDocument.id.in_(request.document_ids),
            KnowledgeDocument.user_id == current_user.id,
            KnowledgeDocument.status == DocumentStatus.READY,
        )
    )
    texts = [doc.extracted_text for doc in result.scalars().all() if doc.extracted_text]
    if not texts:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="所选文献没有可用的文本内容")

    try:
        content = await generate_with_rag(texts, request.prompt, paper.title)
    except LLMError as e:
        logger.exception("RAG generation failed for paper %s", paper.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"内容生成失败: {e}")
    return {"content": content}


@router.get("/{document_id}", response_model=KnowledgeDocumentDetail)
async def get_document(
    document_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    return await _get_owned_document(document_id, current_user, db)


@router.post("/{document_id}/analyze", response_model=KnowledgeDocumentResponse)
async def analyze(
    document_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    document = await _get_owned_document(document_id, current_user, db)
    if not document.extracted_text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="文档尚未完成解析")

    try:
        analysis = await analyze_document(document.extracted_text)
    except LLMError as e:
        logger.exception("Document analysis failed for %s", document.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"文献分析失败: {e}")

    document.summary = analysis.summary
    document.doc_metadata = {
        "page_count": (document.doc_metadata or {}).get("page_count", 0),
        **analysis.metadata(),
    }
    await db.commit()
    await db.refresh(document)
    return document


@router.post("/{document_id}/chat", response_model=DocumentChatResponse)
async def chat(
    document_id: uuid.UUID,
    request: DocumentChatRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    document = await _get_owned_document(document_id, current_user, db)
    if not document.extracted_text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="文档尚未完成解析")

    history = [ChatTurn(role=turn.role, content=turn.content) for turn in request.history]
    try:
        answer = await chat_with_document(document.extracted_text, request.question, history)
    except LLMError as e:
        logger.exception("Document chat failed for %s", document.id)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"问答失败: {e}")
    return {"answer": answer}


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    document_id: uuid.UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    document = await _get_owned_document(document_id, current_user, db)
    await StorageService().delete_file(document.file_key)
    await db.delete(document)
    await db.commit()

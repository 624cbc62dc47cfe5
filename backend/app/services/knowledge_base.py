import io
import logging
from typing import Literal, Sequence
from pydantic import BaseModel, Field, ValidationError
from pypdf import PdfReader
from pypdf.errors import PdfReadError
from app.services.llm import LLMError, invoke_llm, invoke_llm_json

logger = logging.getLogger(__name__)

ANALYSIS_TEXT_CHARS = 15000
CHAT_TEXT_CHARS = 15000
RAG_TEXT_CHARS = 8000

PDF_MAGIC = b"%PDF"


class DocumentParseError(Exception):
    """Raised when an uploaded document cannot be read as text."""


class ExtractedDocument(BaseModel):
    text: str
    page_count: int = 0
    title: str | None = None
    author: str | None = None


class DocumentAnalysis(BaseModel):
    summary: str
    title: str = ""
    authors: list[str] = Field(default_factory=list)
    abstract: str = ""
    keywords: list[str] = Field(default_factory=list)
    methodology: str = ""
    findings: str = ""

    def metadata(self) -> dict:
        return self.model_dump(exclude={"summary"})


class ChatTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


ANALYSIS_SCHEMA = {
    "type": "object",
    "properties": {
        "summary": {"type": "string", "description": "文献摘要（200-500字）"},
        "title": {"type": "string", "description": "文献标题"},
        "authors": {"type": "array", "items": {"type": "string"}, "description": "作者列表"},
        "abstract": {"type": "string", "description": "原文摘要"},
        "keywords": {"type": "array", "items": {"type": "string"}, "description": "关键词"},
        "methodology": {"type": "string", "description": "研究方法"},
        "findings": {"type": "string", "description": "主要发现"},
    },
    "required": ["summary", "title", "authors", "abstract", "keywords", "methodology", "findings"],
    "additionalProperties": False,
}


def extract_text_from_pdf(pdf_bytes: bytes) -> ExtractedDocument:
    """Extract text from PDF bytes using pypdf."""
    try:
        reader = PdfReader(io.BytesIO(pdf_bytes))
        pages_text = []
        for page in reader.pages:
            text = page.extract_text()
            if text:
                pages_text.append(text)
        info = reader.metadata
    except (PdfReadError, ValueError) as e:
        logger.warning("PDF extraction failed: %s", e)
        raise DocumentParseError("PDF文档解析失败，请确保文件格式正确") from e

    full_text = "\n\n".join(pages_text)
    logger.info("Extracted %d chars from %d pages", len(full_text), len(reader.pages))
    return ExtractedDocument(
        text=full_text,
        page_count=len(reader.pages),
        title=(info.title if info else None) or None,
        author=(info.author if info else None) or None,
    )


def extract_text(content: bytes, mime_type: str) -> ExtractedDocument:
    """Dispatch on content type: PDFs go through pypdf, anything else is decoded as text."""
    if mime_type == "application/pdf" or content.startswith(PDF_MAGIC):
        return extract_text_from_pdf(content)
    try:
        return ExtractedDocument(text=content.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise DocumentParseError("仅支持PDF或UTF-8文本文件") from e


async def analyze_document(text: str) -> DocumentAnalysis:
    data = await invoke_llm_json(
        [
            {"role": "system", "content": "你是一位学术文献分析专家。请分析以下学术文献的内容，提取关键信息。返回JSON格式。"},
            {"role": "user", "content": f"请分析以下文献内容并提取关键信息：\n\n{text[:ANALYSIS_TEXT_CHARS]}"},
        ],
        schema_name="document_analysis",
        schema=ANALYSIS_SCHEMA,
    )
    try:
        return DocumentAnalysis.model_validate(data)
    except ValidationError as e:
        raise LLMError("文献分析结果格式错误") from e


async def chat_with_document(
    document_text: str,
    question: str,
    history: Sequence[ChatTurn] = (),
) -> str:
    system = (
        "你是一位学术文献阅读助手。以下是用户上传的文献内容，请基于该文献回答用户的问题。\n"
        "如果问题超出文献内容范围，请明确告知用户。回答应准确、专业，并引用文献中的具体内容。\n\n"
        f"文献内容：\n{document_text[:CHAT_TEXT_CHARS]}"
    )
    messages = [{"role": "system", "content": system}]
    messages.extend({"role": turn.role, "content": turn.content} for turn in history)
    messages.append({"role": "user", "content": question})
    return await invoke_llm(messages)


async def generate_with_rag(document_texts: Sequence[str], prompt: str, paper_title: str) -> str:
    context = "\n\n---\n\n".join(
        f"[文献 {i + 1}]:\n{text[:RAG_TEXT_CHARS]}" for i, text in enumerate(document_texts)
    )
    system = (
        "你是一位资深的学术论文写作专家。用户已上传参考文献，请基于这些文献内容生成学术论文内容。\n"
        "要求：\n"
        "1. 内容必须基于提供的文献，减少AI幻觉\n"
        "2. 适当引用文献中的观点和数据\n"
        "3. 使用学术化的语言风格\n"
        "4. 保持内容的准确性和可验证性\n\n"
        f"参考文献内容：\n{context}"
    )
    return await invoke_llm([
        {"role": "system", "content": system},
        {"role": "user", "content": f"论文标题：{paper_title}\n\n{prompt}"},
    ])

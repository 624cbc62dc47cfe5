import uuid
from datetime import datetime
from typing import Any, Literal
from pydantic import BaseModel, EmailStr, Field, computed_field
from app.models import (
    ChartType, CitationFormat, DocumentType, PaperStatus, PaperType, PolishType,
)
from app.services.latex_exporter import LatexTemplateId

TranslationDomain = Literal[
    "general", "computer_science", "medicine", "law",
    "economics", "engineering", "natural_science", "social_science",
]


class UserBase(BaseModel):
    email: EmailStr
    name: str | None = None


class UserCreate(UserBase):
    password: str = Field(min_length=6)


class UserResponse(UserBase):
    id: uuid.UUID
    role: str
    is_active: bool
    subscription_status: str
    created_at: datetime
    last_signed_in_at: datetime | None = None

    class Config:
        from_attributes = True


# Folders & tags


class FolderCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    parent_id: uuid.UUID | None = None
    color: str | None = Field(default=None, max_length=20)


class FolderUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    parent_id: uuid.UUID | None = None
    color: str | None = Field(default=None, max_length=20)


class FolderResponse(BaseModel):
    id: uuid.UUID
    name: str
    parent_id: uuid.UUID | None
    color: str | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TagCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    color: str | None = Field(default=None, max_length=20)


class TagResponse(BaseModel):
    id: uuid.UUID
    name: str
    color: str | None
    created_at: datetime

    class Config:
        from_attributes = True


# Papers


class PaperCreate(BaseModel):
    title: str = Field(min_length=1, max_length=1000)
    type: PaperType
    folder_id: uuid.UUID | None = None


class PaperSummary(BaseModel):
    id: uuid.UUID
    folder_id: uuid.UUID | None
    title: str
    type: PaperType
    status: PaperStatus
    error_message: str | None = None
    is_deleted: bool = False
    deleted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PaperResponse(PaperSummary):
    outline: str | None = None
    content: str | None = None
    word_file_url: str | None = None
    pdf_file_url: str | None = None
    latex_file_url: str | None = None


class GenerateRequest(BaseModel):
    document_ids: list[uuid.UUID] = Field(default_factory=list)


class OutlineResponse(BaseModel):
    outline: str


class ContentResponse(BaseModel):
    content: str


class PaperFolderUpdate(BaseModel):
    folder_id: uuid.UUID | None = None


class PaperEdit(BaseModel):
    outline: str | None = None
    content: str | None = None
    change_description: str | None = Field(default=None, max_length=500)


class PaperVersionResponse(BaseModel):
    id: uuid.UUID
    paper_id: uuid.UUID
    version_number: int
    outline: str | None
    content: str | None
    change_description: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class StructureModule(BaseModel):
    module: str
    label: str
    enabled: bool
    order: int
    required: bool


class LineSpacingOverride(BaseModel):
    mode: Literal["multiple", "exact"] | None = None
    value: float | None = Field(default=None, gt=0)


class WordStyleOverrides(BaseModel):
    profile_name: str | None = None
    chinese_body_font: str | None = None
    chinese_heading_font: str | None = None
    latin_font: str | None = None
    body_font_size_pt: float | None = Field(default=None, gt=0, le=72)
    paragraph_before_pt: float | None = Field(default=None, ge=0)
    paragraph_after_pt: float | None = Field(default=None, ge=0)
    line_spacing: LineSpacingOverride | None = None


class WordExportRequest(BaseModel):
    style_profile: WordStyleOverrides | None = None


class LatexExportRequest(BaseModel):
    template: LatexTemplateId = "generic"
    authors: list[str] | None = None
    abstract: str | None = None
    keywords: list[str] | None = None


class ExportResponse(BaseModel):
    file_key: str
    file_url: str


class LatexExportResponse(ExportResponse):
    latex_content: str


# References


class ReferenceFields(BaseModel):
    title: str = Field(min_length=1)
    authors: list[str] = Field(default_factory=list)
    year: int | None = None
    journal: str | None = None
    volume: str | None = None
    issue: str | None = None
    pages: str | None = None
    doi: str | None = None
    url: str | None = None
    document_type: DocumentType = DocumentType.JOURNAL
    citation_format: CitationFormat = CitationFormat.GBT7714


class ReferenceCreate(ReferenceFields):
    paper_id: uuid.UUID


class ReferenceFormatUpdate(BaseModel):
    citation_format: CitationFormat


class ReferenceResponse(BaseModel):
    id: uuid.UUID
    paper_id: uuid.UUID
    title: str
    authors: list[str]
    year: int | None
    journal: str | None
    volume: str | None
    issue: str | None
    pages: str | None
    doi: str | None
    url: str | None
    document_type: DocumentType
    citation_format: CitationFormat
    formatted_citation: str | None
    created_at: datetime

    class Config:
        from_attributes = True


class CitationPreview(BaseModel):
    citation_format: CitationFormat
    formatted_citation: str


class ReferenceSearchRequest(BaseModel):
    paper_id: uuid.UUID
    query: str = Field(min_length=1, max_length=500)


class ReferenceCandidate(BaseModel):
    title: str
    authors: list[str] = Field(default_factory=list)
    year: int | None = None
    journal: str | None = None
    volume: str | None = None
    issue: str | None = None
    pages: str | None = None
    doi: str | None = None
    url: str | None = None


# Quality


class QualityCheckResponse(BaseModel):
    id: uuid.UUID
    paper_id: uuid.UUID
    overall_score: int
    plagiarism_score: int | None
    grammar_score: int | None
    academic_style_score: int | None
    structure_score: int | None
    issues: list[dict[str, Any]]
    suggestions: list[str]
    created_at: datetime

    class Config:
        from_attributes = True


class GrammarCheckRequest(BaseModel):
    text: str = Field(min_length=1)


class GrammarErrorItem(BaseModel):
    text: str
    suggestion: str
    position: int


class GrammarCheckResponse(BaseModel):
    errors: list[GrammarErrorItem]


# Polish


class PolishTextRequest(BaseModel):
    text: str = Field(min_length=1)
    polish_type: PolishType = PolishType.COMPREHENSIVE
    paper_id: uuid.UUID | None = None


class PolishSuggestionItem(BaseModel):
    text: str
    explanation: str
    confidence: float


class PolishTextResponse(BaseModel):
    polished_text: str
    suggestions: list[PolishSuggestionItem]
    history_id: uuid.UUID | None = None


class PolishParagraphsRequest(BaseModel):
    paragraphs: list[str] = Field(min_length=1)
    polish_type: PolishType = PolishType.COMPREHENSIVE
    paper_id: uuid.UUID | None = None


class PolishParagraphsResponse(BaseModel):
    paragraphs: list[str]


class PolishHistoryResponse(BaseModel):
    id: uuid.UUID
    paper_id: uuid.UUID
    original_text: str
    polished_text: str
    polish_type: PolishType
    suggestions: list[dict[str, Any]]
    applied: bool
    created_at: datetime

    class Config:
        from_attributes = True


# Translation


class TranslateRequest(BaseModel):
    text: str = Field(min_length=1)
    source_lang: str = Field(default="zh", max_length=10)
    target_lang: str = Field(default="en", max_length=10)
    domain: TranslationDomain = "general"
    paper_id: uuid.UUID | None = None


class TranslationResponse(BaseModel):
    id: uuid.UUID
    paper_id: uuid.UUID | None
    source_text: str
    translated_text: str
    source_lang: str
    target_lang: str
    domain: str
    terminology: list[dict[str, str]]
    created_at: datetime

    class Config:
        from_attributes = True


class TranslationPolishRequest(BaseModel):
    text: str = Field(min_length=1)
    language: str = Field(default="en", max_length=10)
    domain: TranslationDomain = "general"


class TranslationPolishResponse(BaseModel):
    polished_text: str


class DomainOption(BaseModel):
    value: str
    label: str


# Charts


class ChartFromCSVRequest(BaseModel):
    paper_id: uuid.UUID
    csv_data: str = Field(min_length=1)
    description: str = ""


class ChartFromDescriptionRequest(BaseModel):
    paper_id: uuid.UUID
    description: str = Field(min_length=1)


class ChartUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    chart_type: ChartType | None = None
    description: str | None = None
    figure_number: int | None = Field(default=None, ge=1)
    chart_config: dict[str, Any] | None = None


class ChartResponse(BaseModel):
    id: uuid.UUID
    paper_id: uuid.UUID
    title: str
    chart_type: ChartType
    data_source: list[dict[str, Any]]
    chart_config: dict[str, Any]
    description: str | None
    figure_number: int | None
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def embed_url(self) -> str:
        return f"/charts?paperId={self.paper_id}&chartId={self.id}"

    class Config:
        from_attributes = True


# Knowledge base


class KnowledgeUploadBase64(BaseModel):
    file_name: str = Field(min_length=1, max_length=255)
    content_base64: str = Field(min_length=1)
    mime_type: str = "application/pdf"
    paper_id: uuid.UUID | None = None


class KnowledgeDocumentResponse(BaseModel):
    id: uuid.UUID
    paper_id: uuid.UUID | None
    file_name: str
    file_url: str
    file_size: int
    mime_type: str
    summary: str | None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias="doc_metadata")
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class KnowledgeDocumentDetail(KnowledgeDocumentResponse):
    extracted_text: str | None = None


class ChatTurnItem(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class DocumentChatRequest(BaseModel):
    question: str = Field(min_length=1)
    history: list[ChatTurnItem] = Field(default_factory=list)


class DocumentChatResponse(BaseModel):
    answer: str


class RagGenerateRequest(BaseModel):
    paper_id: uuid.UUID
    document_ids: list[uuid.UUID] = Field(min_length=1)
    prompt: str = Field(min_length=1)


class RagGenerateResponse(BaseModel):
    content: str


# Dashboard


class QualityTrendPoint(BaseModel):
    date: str
    score: float


class DashboardStatistics(BaseModel):
    total_papers: int
    completed_papers: int
    average_quality_score: float
    quality_trend: list[QualityTrendPoint]
    citation_format_distribution: dict[str, int]
    paper_type_distribution: dict[str, int]
    total_documents: int
    recent_papers: list[PaperSummary]


class QualityComparisonRequest(BaseModel):
    paper_ids: list[uuid.UUID] = Field(min_length=1, max_length=20)


class QualityComparisonItem(BaseModel):
    paper_id: uuid.UUID
    title: str
    overall_score: int
    plagiarism_score: int | None
    grammar_score: int | None
    academic_style_score: int | None
    structure_score: int | None
    checked_at: datetime


# Payment


class ProductResponse(BaseModel):
    id: str
    name: str
    description: str
    features: list[str]
    price_id: str
    price: int
    currency: str
    type: Literal["one_time", "subscription"]
    interval: Literal["month", "year"] | None = None

    class Config:
        from_attributes = True

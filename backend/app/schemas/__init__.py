from app.schemas.schemas import (
    UserBase, UserCreate, UserResponse,
    FolderCreate, FolderUpdate, FolderResponse,
    TagCreate, TagResponse,
    PaperCreate, PaperSummary, PaperResponse,
    GenerateRequest, OutlineResponse, ContentResponse,
    PaperFolderUpdate, PaperEdit, PaperVersionResponse, StructureModule,
    LineSpacingOverride, WordStyleOverrides, WordExportRequest, LatexExportRequest,
    ExportResponse, LatexExportResponse,
    ReferenceFields, ReferenceCreate, ReferenceFormatUpdate, ReferenceResponse,
    CitationPreview, ReferenceSearchRequest, ReferenceCandidate,
    QualityCheckResponse, GrammarCheckRequest, GrammarErrorItem, GrammarCheckResponse,
    PolishTextRequest, PolishSuggestionItem, PolishTextResponse,
    PolishParagraphsRequest, PolishParagraphsResponse, PolishHistoryResponse,
    TranslateRequest, TranslationResponse, TranslationPolishRequest,
    TranslationPolishResponse, DomainOption,
    ChartFromCSVRequest, ChartFromDescriptionRequest, ChartUpdate, ChartResponse,
    KnowledgeUploadBase64, KnowledgeDocumentResponse, KnowledgeDocumentDetail,
    ChatTurnItem, DocumentChatRequest, DocumentChatResponse, RagGenerateRequest, RagGenerateResponse,
    QualityTrendPoint, DashboardStatistics, QualityComparisonRequest, QualityComparisonItem,
    ProductResponse,
)

__all__ = [
    "UserBase", "UserCreate", "UserResponse",
    "FolderCreate", "FolderUpdate", "FolderResponse",
    "TagCreate", "TagResponse",
    "PaperCreate", "PaperSummary", "PaperResponse",
    "GenerateRequest", "OutlineResponse", "ContentResponse",
    "PaperFolderUpdate", "PaperEdit", "PaperVersionResponse", "StructureModule",
    "LineSpacingOverride", "WordStyleOverrides", "WordExportRequest", "LatexExportRequest",
    "ExportResponse", "LatexExportResponse",
    "ReferenceFields", "ReferenceCreate", "ReferenceFormatUpdate", "ReferenceResponse",
    "CitationPreview", "ReferenceSearchRequest", "ReferenceCandidate",
    "QualityCheckResponse", "GrammarCheckRequest", "GrammarErrorItem", "GrammarCheckResponse",
    "PolishTextRequest", "PolishSuggestionItem", "PolishTextResponse",
    "PolishParagraphsRequest", "PolishParagraphsResponse", "PolishHistoryResponse",
    "TranslateRequest", "TranslationResponse", "TranslationPolishRequest",
    "TranslationPolishResponse", "DomainOption",
    "ChartFromCSVRequest", "ChartFromDescriptionRequest", "ChartUpdate", "ChartResponse",
    "KnowledgeUploadBase64", "KnowledgeDocumentResponse", "KnowledgeDocumentDetail",
    "ChatTurnItem", "DocumentChatRequest", "DocumentChatResponse", "RagGenerateRequest", "RagGenerateResponse",
    "QualityTrendPoint", "DashboardStatistics", "QualityComparisonRequest", "QualityComparisonItem",
    "ProductResponse",
]

from app.models.models import (
    User, Folder, Paper, PaperVersion, Reference, QualityCheck, PolishHistory,
    KnowledgeDocument, Chart, PaperTag, PaperTagAssociation, Translation,
    UserRole, SubscriptionStatus, PaperType, PaperStatus, DocumentType,
    CitationFormat, PolishType, DocumentStatus, ChartType
)

__all__ = [
    "User", "Folder", "Paper", "PaperVersion", "Reference", "QualityCheck", "PolishHistory",
    "KnowledgeDocument", "Chart", "PaperTag", "PaperTagAssociation", "Translation",
    "UserRole", "SubscriptionStatus", "PaperType", "PaperStatus", "DocumentType",
    "CitationFormat", "PolishType", "DocumentStatus", "ChartType"
]

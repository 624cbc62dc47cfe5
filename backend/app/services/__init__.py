from app.services.storage import StorageService
from app.services.llm import LLMError, invoke_llm, invoke_llm_json

__all__ = [
    "StorageService",
    "LLMError",
    "invoke_llm",
    "invoke_llm_json",
]

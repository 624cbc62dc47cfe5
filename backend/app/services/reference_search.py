import logging
from pydantic import BaseModel, Field, ValidationError, field_validator
from app.services.llm import LLMError, invoke_llm_json

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "你是一个学术文献搜索助手。根据用户提供的关键词，搜索并返回真实的、可验证的学术文献。"
    "优先使用中文数据库（CNKI、万方）中的文献。返回5-10篇相关文献。"
)

_SEARCH_SCHEMA = {
    "type": "object",
    "properties": {
        "references": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string", "description": "文献标题"},
                    "authors": {"type": "array", "items": {"type": "string"}, "description": "作者列表"},
                    "year": {"type": "number", "description": "发表年份"},
                    "journal": {"type": "string", "description": "期刊名称"},
                    "volume": {"type": "string", "description": "卷号"},
                    "issue": {"type": "string", "description": "期号"},
                    "pages": {"type": "string", "description": "页码"},
                    "doi": {"type": "string", "description": "DOI"},
                    "url": {"type": "string", "description": "文献链接"},
                },
                "required": ["title", "authors", "year", "journal"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["references"],
    "additionalProperties": False,
}


class SearchedReference(BaseModel):
    title: str
    authors: list[str] = Field(default_factory=list)
    year: int | None = None
    journal: str | None = None
    volume: str | None = None
    issue: str | None = None
    pages: str | None = None
    doi: str | None = None
    url: str | None = None

    @field_validator("year", mode="before")
    @classmethod
    def coerce_year(cls, v):
        if isinstance(v, float):
            return int(v)
        if isinstance(v, str):
            return int(v) if v.strip().isdigit() else None
        return v

    @field_validator("volume", "issue", "pages", mode="before")
    @classmethod
    def coerce_str(cls, v):
        return str(v) if isinstance(v, (int, float)) else v


async def search_references(query: str) -> list[SearchedReference]:
    """Ask the model for candidate references matching ``query``."""
    data = await invoke_llm_json(
        [
            {"role": "system", "content": _SYSTEM_PROMPT},
            {"role": "user", "content": f"搜索关键词：{query}"},
        ],
        schema_name="reference_search_results",
        schema=_SEARCH_SCHEMA,
    )
    try:
        return [SearchedReference.model_validate(item) for item in data.get("references") or []]
    except ValidationError as e:
        logger.warning("Malformed reference search result: %s", e)
        raise LLMError("搜索结果格式错误") from e

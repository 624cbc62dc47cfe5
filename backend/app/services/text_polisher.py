import logging
from pydantic import BaseModel, Field, ValidationError, field_validator
from app.models import PolishType
from app.services.llm import LLMError, invoke_llm_json

logger = logging.getLogger(__name__)

_SYSTEM_PROMPTS: dict[str, str] = {
    PolishType.EXPRESSION.value: "你是一个专业的文字编辑。请优化文本的语言表达，使其更加流畅、准确、易读，同时保持原意不变。",
    PolishType.GRAMMAR.value: "你是一个专业的语法专家。请修正文本中的语法错误、标点符号错误、拼写错误，使其符合规范。",
    PolishType.ACADEMIC.value: "你是一个学术写作专家。请调整文本的学术用语，使其更加专业、严谨、规范，符合学术论文的写作标准。",
    PolishType.COMPREHENSIVE.value: "你是一个全能的学术编辑。请全面优化文本，包括语言表达、语法规范、学术用语等各个方面，使其达到高质量学术论文的标准。",
}

POLISH_SCHEMA = {
    "type": "object",
    "properties": {
        "polishedText": {"type": "string", "description": "润色后的文本（推荐版本）"},
        "suggestions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "text": {"type": "string", "description": "改写建议文本"},
                    "explanation": {"type": "string", "description": "改写说明"},
                    "confidence": {"type": "number", "description": "推荐度(0-1)"},
                },
                "required": ["text", "explanation", "confidence"],
                "additionalProperties": False,
            },
            "description": "多个改写建议",
        },
    },
    "required": ["polishedText", "suggestions"],
    "additionalProperties": False,
}


class PolishSuggestion(BaseModel):
    text: str
    explanation: str = ""
    confidence: float = 0.0

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, v):
        # Some models answer with a percentage.
        if isinstance(v, (int, float)):
            if v > 1:
                v = v / 100
            return max(0.0, min(1.0, float(v)))
        return v


class PolishResult(BaseModel):
    polishedText: str
    suggestions: list[PolishSuggestion] = Field(default_factory=list)


async def polish_text(text: str, polish_type: str) -> PolishResult:
    system_prompt = _SYSTEM_PROMPTS.get(polish_type, _SYSTEM_PROMPTS[PolishType.COMPREHENSIVE.value])
    data = await invoke_llm_json(
        [
            {
                "role": "system",
                "content": f"{system_prompt}\n\n请提供3个不同的改写建议，每个建议都应该有不同的侧重点和风格。",
            },
            {"role": "user", "content": f"请润色以下文本：\n\n{text}"},
        ],
        schema_name="polish_result",
        schema=POLISH_SCHEMA,
        temperature=0.7,
    )
    try:
        return PolishResult.model_validate(data)
    except ValidationError as e:
        raise LLMError("润色结果格式错误") from e


async def polish_paragraphs(paragraphs: list[str], polish_type: str) -> list[str]:
    """Polish each paragraph in turn; blank or failing paragraphs come back unchanged."""
    polished: list[str] = []
    for paragraph in paragraphs:
        if not paragraph.strip():
            polished.append(paragraph)
            continue
        try:
            result = await polish_text(paragraph, polish_type)
            polished.append(result.polishedText)
        except LLMError:
            logger.exception("Failed to polish paragraph, keeping original")
            polished.append(paragraph)
    return polished

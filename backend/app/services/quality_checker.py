import logging
from typing import Literal
from pydantic import BaseModel, Field, ValidationError, field_validator
from app.services.llm import LLMError, invoke_llm_json

logger = logging.getLogger(__name__)

QUALITY_CONTENT_CHARS = 8000
GRAMMAR_TEXT_CHARS = 2000


class QualityIssue(BaseModel):
    type: Literal["plagiarism", "grammar", "style", "structure"]
    severity: Literal["high", "medium", "low"]
    description: str
    location: str | None = None


class QualityCheckResult(BaseModel):
    overallScore: int = Field(ge=0, le=100)
    plagiarismScore: int = Field(ge=0, le=100)
    grammarScore: int = Field(ge=0, le=100)
    academicStyleScore: int = Field(ge=0, le=100)
    structureScore: int = Field(ge=0, le=100)
    issues: list[QualityIssue] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)

    @field_validator(
        "overallScore", "plagiarismScore", "grammarScore", "academicStyleScore", "structureScore",
        mode="before",
    )
    @classmethod
    def round_score(cls, v):
        if isinstance(v, float):
            return max(0, min(100, round(v)))
        return v


class GrammarError(BaseModel):
    text: str
    suggestion: str
    position: int = 0


class GrammarCheckResult(BaseModel):
    errors: list[GrammarError] = Field(default_factory=list)


_SCORE = {"type": "number"}

QUALITY_SCHEMA = {
    "type": "object",
    "properties": {
        "overallScore": {**_SCORE, "description": "总体评分(0-100)"},
        "plagiarismScore": {**_SCORE, "description": "查重风险评分(0-100,越高风险越大)"},
        "grammarScore": {**_SCORE, "description": "语法评分(0-100)"},
        "academicStyleScore": {**_SCORE, "description": "学术风格评分(0-100)"},
        "structureScore": {**_SCORE, "description": "结构评分(0-100)"},
        "issues": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "type": {"type": "string", "enum": ["plagiarism", "grammar", "style", "structure"]},
                    "severity": {"type": "string", "enum": ["high", "medium", "low"]},
                    "description": {"type": "string", "description": "问题描述"},
                    "location": {"type": "string", "description": "问题位置"},
                },
                "required": ["type", "severity", "description", "location"],
                "additionalProperties": False,
            },
        },
        "suggestions": {"type": "array", "items": {"type": "string"}, "description": "改进建议列表"},
    },
    "required": [
        "overallScore", "plagiarismScore", "grammarScore",
        "academicStyleScore", "structureScore", "issues", "suggestions",
    ],
    "additionalProperties": False,
}

GRAMMAR_SCHEMA = {
    "type": "object",
    "properties": {
        "errors": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "text": {"type": "string", "description": "错误文本"},
                    "suggestion": {"type": "string", "description": "修正建议"},
                    "position": {"type": "number", "description": "错误位置（字符索引）"},
                },
                "required": ["text", "suggestion", "position"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["errors"],
    "additionalProperties": False,
}

_QUALITY_SYSTEM_PROMPT = """你是一个专业的学术论文质量评估专家。你需要从以下几个维度评估论文质量：
1. 查重检测：检测是否有明显的抄袭或重复内容
2. 语法检查：检查语法错误、标点符号使用、句式结构
3. 学术风格：评估学术用语的规范性、专业术语使用、表达严谨性
4. 结构完整性：评估论文结构是否完整、逻辑是否清晰、章节安排是否合理

请对论文进行全面评估，并给出具体的问题和改进建议。"""


async def check_paper_quality(content: str, outline: str) -> QualityCheckResult:
    data = await invoke_llm_json(
        [
            {"role": "system", "content": _QUALITY_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"请评估以下论文：\n\n【论文大纲】\n{outline}\n\n【论文内容】\n{content[:QUALITY_CONTENT_CHARS]}",
            },
        ],
        schema_name="quality_check_result",
        schema=QUALITY_SCHEMA,
    )
    try:
        return QualityCheckResult.model_validate(data)
    except ValidationError as e:
        logger.warning("Malformed quality check result: %s", e)
        raise LLMError("质量检测结果格式错误") from e


async def check_grammar(text: str) -> GrammarCheckResult:
    data = await invoke_llm_json(
        [
            {
                "role": "system",
                "content": "你是一个专业的语法检查工具。请检测文本中的语法错误、标点符号错误、拼写错误等，并给出修正建议。",
            },
            {"role": "user", "content": f"请检查以下文本的语法错误：\n\n{text[:GRAMMAR_TEXT_CHARS]}"},
        ],
        schema_name="grammar_check_result",
        schema=GRAMMAR_SCHEMA,
    )
    try:
        return GrammarCheckResult.model_validate(data)
    except ValidationError as e:
        raise LLMError("语法检查结果格式错误") from e

import logging
from pydantic import BaseModel, Field, ValidationError
from app.services.llm import EmptyResponseError, LLMError, invoke_llm, invoke_llm_json

logger = logging.getLogger(__name__)

DOMAIN_LABELS: dict[str, str] = {
    "general": "通用",
    "computer_science": "计算机科学",
    "medicine": "医学",
    "law": "法学",
    "economics": "经济学",
    "engineering": "工程学",
    "natural_science": "自然科学",
    "social_science": "社会科学",
}

LANGUAGE_NAMES: dict[str, str] = {
    "zh": "中文",
    "en": "英文",
    "ja": "日文",
    "ko": "韩文",
    "fr": "法文",
    "de": "德文",
}

TRANSLATION_SCHEMA = {
    "type": "object",
    "properties": {
        "translatedText": {"type": "string", "description": "翻译后的文本"},
        "terminology": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "source": {"type": "string", "description": "原文术语"},
                    "target": {"type": "string", "description": "译文术语"},
                },
                "required": ["source", "target"],
                "additionalProperties": False,
            },
            "description": "关键术语对照表",
        },
    },
    "required": ["translatedText", "terminology"],
    "additionalProperties": False,
}


class TermPair(BaseModel):
    source: str
    target: str


class TranslationResult(BaseModel):
    translatedText: str
    terminology: list[TermPair] = Field(default_factory=list)


def domain_label(domain: str) -> str:
    return DOMAIN_LABELS.get(domain, DOMAIN_LABELS["general"])


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, code)


async def translate_text(
    text: str,
    source_lang: str,
    target_lang: str,
    domain: str = "general",
) -> TranslationResult:
    domain_name = domain_label(domain)
    system = (
        f"你是一位专业的学术翻译专家，精通{domain_name}领域的学术术语。\n"
        f"请将以下{language_name(source_lang)}学术文本翻译为{language_name(target_lang)}。\n\n"
        "要求：\n"
        "1. 保持学术语言的专业性和准确性\n"
        f"2. 专业术语翻译要符合{domain_name}领域的通用表达\n"
        "3. 保持原文的逻辑结构和段落划分\n"
        "4. 翻译应自然流畅，达到母语水平\n"
        "5. 同时列出翻译中使用的关键术语对照表"
    )
    data = await invoke_llm_json(
        [
            {"role": "system", "content": system},
            {"role": "user", "content": f"请翻译以下文本：\n\n{text}"},
        ],
        schema_name="translation_result",
        schema=TRANSLATION_SCHEMA,
    )
    try:
        return TranslationResult.model_validate(data)
    except ValidationError as e:
        raise LLMError("翻译结果格式错误") from e


async def polish_translation(text: str, language: str, domain: str = "general") -> str:
    """Native-level polish of translated text; an empty answer keeps the input."""
    system = (
        f"你是一位{language_name(language)}学术写作润色专家，精通{domain_label(domain)}领域。\n"
        "请对以下学术文本进行母语级润色，使其更加自然、专业、流畅。\n"
        "保持原文含义不变，仅改善表达方式。"
    )
    try:
        return await invoke_llm([
            {"role": "system", "content": system},
            {"role": "user", "content": text},
        ])
    except EmptyResponseError:
        logger.warning("Translation polish returned nothing, keeping input")
        return text

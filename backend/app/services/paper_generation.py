import logging
from typing import Sequence
from app.models import KnowledgeDocument, PaperType
from app.services.llm import invoke_llm
from app.utils.paper_structure import enforce_graduation_structure, structure_order_text

logger = logging.getLogger(__name__)

PAPER_TYPE_NAMES: dict[str, str] = {
    PaperType.GRADUATION.value: "毕业论文",
    PaperType.JOURNAL.value: "期刊论文",
    PaperType.PROPOSAL.value: "开题报告",
    PaperType.PROFESSIONAL.value: "职称论文",
}

OUTLINE_CONTEXT_CHARS = 5000
CONTENT_CONTEXT_CHARS = 8000


def type_name(paper_type: str) -> str:
    return PAPER_TYPE_NAMES.get(paper_type, paper_type)


def build_rag_context(documents: Sequence[KnowledgeDocument], header: str, limit: int) -> str:
    docs = [d for d in documents if d.extracted_text]
    if not docs:
        return ""
    blocks = [
        f"[文献{i + 1}] {d.file_name}:\n{d.extracted_text[:limit]}"
        for i, d in enumerate(docs)
    ]
    return f"\n\n{header}\n" + "\n\n".join(blocks)


def _structure_requirement(paper_type: str) -> str:
    if paper_type != PaperType.GRADUATION.value:
        return ""
    return f"\n必须严格按照以下顺序组织一级章节（使用##标题）：{structure_order_text()}"


async def generate_outline(
    title: str,
    paper_type: str,
    documents: Sequence[KnowledgeDocument] = (),
) -> str:
    """Generate a markdown outline; graduation outlines are normalized afterwards."""
    name = type_name(paper_type)
    rag_context = build_rag_context(
        documents, "用户已上传以下参考文献，请基于这些文献内容生成大纲：", OUTLINE_CONTEXT_CHARS
    )
    system = (
        "你是一位资深的学术论文写作专家。你需要根据用户提供的论文类型和标题，生成一份详细的学术论文大纲。\n\n"
        "要求：\n"
        "1. 大纲应包含完整的章节结构\n"
        "2. 每个章节应有清晰的小节划分\n"
        "3. 使用学术化的语言\n"
        f"4. 符合{name}的规范和要求\n"
        "5. 大纲应该详细且具有逻辑性"
    )
    if rag_context:
        system += "\n6. 充分参考用户上传的文献内容"
    system += _structure_requirement(paper_type)
    system += "\n\n请以Markdown格式输出大纲，使用标题层级（#, ##, ###）来表示章节结构。"

    outline = await invoke_llm([
        {"role": "system", "content": system},
        {"role": "user", "content": f"论文类型：{name}\n论文标题：{title}\n\n请生成详细的论文大纲。{rag_context}"},
    ])

    if paper_type == PaperType.GRADUATION.value:
        outline = enforce_graduation_structure(outline, "outline")
    logger.info("Generated outline for %r (%d chars)", title, len(outline))
    return outline


async def generate_content(
    title: str,
    paper_type: str,
    outline: str,
    documents: Sequence[KnowledgeDocument] = (),
) -> str:
    """Write the full paper body from an existing outline."""
    name = type_name(paper_type)
    rag_context = build_rag_context(
        documents, "参考文献内容（请基于以下文献生成更准确的论文内容）：", CONTENT_CONTEXT_CHARS
    )
    system = (
        "你是一位资深的学术论文写作专家。你需要根据提供的论文大纲，撰写完整的学术论文内容。\n\n"
        "要求：\n"
        "1. 使用学术化的语言风格\n"
        "2. 内容必须以完整的段落形式输出\n"
        "3. 每个章节应有充实的内容，字数不少于8000字\n"
        "4. 可以在段落间插入表格进行阐述\n"
        f"5. 符合{name}的规范和要求\n"
        "6. 内容应具有学术深度和专业性\n"
        "7. 适当引用相关研究（可以使用占位符如[1][2]表示引用）"
    )
    if rag_context:
        system += "\n8. 优先参考用户上传的文献内容，减少AI幻觉"
    system += _structure_requirement(paper_type)
    system += "\n\n请以Markdown格式输出论文全文。"

    content = await invoke_llm([
        {"role": "system", "content": system},
        {"role": "user", "content": f"论文标题：{title}\n\n论文大纲：\n{outline}\n\n请根据以上大纲撰写完整的论文内容。{rag_context}"},
    ])

    if paper_type == PaperType.GRADUATION.value:
        content = enforce_graduation_structure(content, "content")
    logger.info("Generated content for %r (%d chars)", title, len(content))
    return content

"""Fixed-order section structure for generated papers.

Graduation theses must present eight modules in a regulated order. LLM output
rarely follows it exactly, so generated outlines and contents are normalized
here: module sections are recognized by heading, merged, reordered, and any
missing module is inserted with a placeholder.
"""

import re
from typing import Literal

StructureKind = Literal["outline", "content"]

PAPER_STRUCTURE_MODULES: tuple[str, ...] = (
    "cover",
    "integrity_statement",
    "authorization_letter",
    "chinese_abstract",
    "english_abstract",
    "body",
    "references",
    "acknowledgements",
)

MODULE_LABELS: dict[str, str] = {
    "cover": "封面",
    "integrity_statement": "诚信声明",
    "authorization_letter": "授权书",
    "chinese_abstract": "中文摘要与关键词",
    "english_abstract": "英文摘要与关键词",
    "body": "正文",
    "references": "参考文献",
    "acknowledgements": "致谢",
}

MODULE_ALIASES: dict[str, tuple[str, ...]] = {
    "cover": ("封面", "题名页", "扉页", "cover", "cover page", "title page"),
    "integrity_statement": (
        "诚信声明", "学术诚信声明", "原创性声明", "独创性声明", "诚信承诺书",
        "integrity statement", "declaration of originality", "declaration",
    ),
    "authorization_letter": (
        "授权书", "使用授权书", "版权使用授权书", "学位论文使用授权书", "论文使用授权书",
        "授权声明", "authorization letter", "copyright authorization",
    ),
    "chinese_abstract": ("中文摘要", "摘要", "关键词", "关键字"),
    "english_abstract": ("英文摘要", "abstract", "english abstract", "keywords", "key words"),
    "body": ("正文", "论文正文", "body", "main body", "main text"),
    "references": ("参考文献", "参考资料", "references", "reference", "bibliography"),
    "acknowledgements": (
        "致谢", "谢辞", "致谢辞", "致谢词",
        "acknowledgements", "acknowledgments", "acknowledgement", "acknowledgment",
    ),
}

DEFAULT_MODULES_BY_TYPE: dict[str, tuple[str, ...]] = {
    "graduation": PAPER_STRUCTURE_MODULES,
    "journal": ("chinese_abstract", "english_abstract", "body", "references"),
    "proposal": ("cover", "body", "references"),
    "professional": ("cover", "chinese_abstract", "body", "references"),
}

_OUTLINE_PLACEHOLDERS: dict[str, str] = {
    "cover": "- 论文题目、学生姓名、学号、专业、指导教师、完成日期",
    "integrity_statement": "- 本人郑重声明所呈交论文为独立研究成果",
    "authorization_letter": "- 学位论文版权使用授权说明",
    "chinese_abstract": "- 中文摘要（300-500字）\n- 关键词（3-5个）",
    "english_abstract": "- Abstract\n- Keywords",
    "body": "- 绪论\n- 相关研究\n- 研究方法\n- 结果与分析\n- 结论",
    "references": "- 按 GB/T 7714 格式列出参考文献",
    "acknowledgements": "- 致谢导师、同学与家人",
}

_CONTENT_PLACEHOLDERS: dict[str, str] = {
    "cover": "论文题目：\n\n学生姓名：\n\n学号：\n\n专业：\n\n指导教师：\n\n完成日期：",
    "integrity_statement": (
        "本人郑重声明：所呈交的论文是本人在导师指导下独立进行研究所取得的成果。"
        "除文中已经注明引用的内容外，本论文不包含任何其他个人或集体已经发表或撰写过的作品成果。"
    ),
    "authorization_letter": (
        "本人完全了解学校有关保留、使用学位论文的规定，同意学校保留并向有关部门送交论文的复印件和电子版，"
        "允许论文被查阅和借阅。"
    ),
    "chinese_abstract": "（待补充中文摘要）\n\n关键词：",
    "english_abstract": "(Abstract to be completed)\n\nKeywords:",
    "body": "（待补充正文内容）",
    "references": "（待补充参考文献）",
    "acknowledgements": "（待补充致谢）",
}

_HEADING_RE = re.compile(r"^(#{1,2})\s+(.+?)\s*#*\s*$")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")
_NUMBER_PREFIX_RE = re.compile(
    r"^(?:第[一二三四五六七八九十百零\d]+[章节部分篇]|chapter\s+\d+|[一二三四五六七八九十]+[、.．]|"
    r"\d+(?:\.\d+)*[、.．]?|[ivx]+[.、]|[（(]\s*[\d一二三四五六七八九十]+\s*[)）])\s*",
    re.IGNORECASE,
)
_CHAPTER_RE = re.compile(
    r"^(?:第[一二三四五六七八九十百零\d]+[章部分篇]|chapter\s+\d+|\d+(?:\.\d+)*(?:[、.．]|\s)|[一二三四五六七八九十]+[、.．])",
    re.IGNORECASE,
)
_PAREN_RE = re.compile(r"[（(][^）)]*[）)]")
_KEYWORD_SUFFIX_RE = re.compile(
    r"\s*(?:与|及|和|and|&)\s*(?:关键词|关键字|key\s*words?)$", re.IGNORECASE
)


def normalize_heading(heading: str) -> str:
    """Reduce a heading to the comparable core used for module matching."""
    text = heading.strip().strip("*").strip()
    text = _NUMBER_PREFIX_RE.sub("", text)
    text = _PAREN_RE.sub("", text)
    text = text.rstrip(":：").strip().lower()
    text = re.sub(r"\s+", " ", text)
    text = _KEYWORD_SUFFIX_RE.sub("", text)
    return text.strip()


_ALIAS_INDEX: dict[str, str] = {
    normalize_heading(alias): module
    for module, aliases in MODULE_ALIASES.items()
    for alias in aliases
}
_ALIAS_INDEX.update({normalize_heading(label): module for module, label in MODULE_LABELS.items()})


def match_module(heading: str) -> str | None:
    return _ALIAS_INDEX.get(normalize_heading(heading))


def _trim_blank(lines: list[str]) -> str:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return "\n".join(line.rstrip() for line in lines[start:end])


def _split_title(preamble: str) -> tuple[str, str]:
    lines = preamble.split("\n")
    if lines and lines[0].startswith("# "):
        return lines[0], _trim_blank(lines[1:])
    return "", preamble


def split_sections(text: str) -> tuple[str, list[tuple[str, str, str]]]:
    """Split markdown into a preamble and top-level sections.

    A section starts at a ``## `` heading. A ``# `` heading starts one too unless
    it is the first one and reads like a title: models often write chapters at
    level one, but a leading unnumbered ``# `` line is the paper title and stays
    in the preamble.

    Returns:
        (preamble, [(heading_text, heading_line, body), ...])
    """
    preamble: list[str] = []
    sections: list[tuple[str, str, list[str]]] = []
    in_fence = False
    title_seen = False

    for line in text.replace("\r\n", "\n").split("\n"):
        if _FENCE_RE.match(line):
            in_fence = not in_fence
        match = None if in_fence else _HEADING_RE.match(line)
        if match:
            heading = match.group(2).strip()
            if (
                len(match.group(1)) == 2
                or sections
                or title_seen
                or match_module(heading)
                or _CHAPTER_RE.match(heading)
            ):
                sections.append((heading, line.rstrip(), []))
                continue
            title_seen = True
        if sections:
            sections[-1][2].append(line)
        else:
            preamble.append(line)

    return _trim_blank(preamble), [(h, hl, _trim_blank(body)) for h, hl, body in sections]


def normalize_structure(
    text: str,
    modules: tuple[str, ...] | list[str] = PAPER_STRUCTURE_MODULES,
    kind: StructureKind = "outline",
) -> str:
    """Emit every module in ``modules`` exactly once, in canonical order.

    Sections whose heading names a module are merged under that module's label.
    Unrecognized sections are kept, in their original order, inside the body
    module (or after the last module when no body is enabled). Sections naming a
    module that is not enabled are kept as they are after the enabled modules.
    Only a leading ``# `` title stays ahead of the modules; other text before
    the first section opens the body.
    Normalizing already-normalized text returns it unchanged.
    """
    enabled = [m for m in PAPER_STRUCTURE_MODULES if m in modules]
    preamble, sections = split_sections(text or "")

    chunks: dict[str, list[str]] = {m: [] for m in enabled}
    trailing: list[str] = []
    anchor = "body" if "body" in chunks else (enabled[-1] if enabled else None)

    title, intro = _split_title(preamble)
    if intro and anchor is not None:
        chunks[anchor].append(intro)
        intro = ""

    for heading, heading_line, body in sections:
        module = match_module(heading)
        if module in chunks:
            if body:
                chunks[module].append(body)
            continue
        whole = f"{heading_line}\n{body}" if body else heading_line
        if module is None and anchor is not None:
            chunks[anchor].append(whole)
        else:
            trailing.append(whole)

    placeholders = _OUTLINE_PLACEHOLDERS if kind == "outline" else _CONTENT_PLACEHOLDERS
    parts: list[str] = [p for p in (title, intro) if p]
    for module in enabled:
        body = "\n\n".join(chunks[module]) or placeholders[module]
        parts.append(f"## {MODULE_LABELS[module]}\n\n{body}")
    parts.extend(trailing)
    return "\n\n".join(parts) + "\n"


def enforce_graduation_structure(text: str, kind: StructureKind = "outline") -> str:
    return normalize_structure(text, PAPER_STRUCTURE_MODULES, kind)


def default_structure_for(paper_type: str) -> list[dict]:
    """Structure config for a paper type, one entry per known module."""
    enabled = DEFAULT_MODULES_BY_TYPE.get(paper_type, PAPER_STRUCTURE_MODULES)
    return [
        {
            "module": module,
            "label": MODULE_LABELS[module],
            "enabled": module in enabled,
            "order": index + 1,
            "required": True,
        }
        for index, module in enumerate(PAPER_STRUCTURE_MODULES)
    ]


def structure_order_text(modules: tuple[str, ...] | list[str] = PAPER_STRUCTURE_MODULES) -> str:
    return " → ".join(MODULE_LABELS[m] for m in PAPER_STRUCTURE_MODULES if m in modules)

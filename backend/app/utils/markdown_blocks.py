"""Line-oriented markdown model shared by the Word, PDF and LaTeX exporters."""

import re
from typing import Literal
from pydantic import BaseModel, Field

BlockKind = Literal["heading", "paragraph", "bullet", "numbered", "table", "code", "blank"]

# Heading level N (1-3) is numbered at depth N-1 with these patterns.
NUMBERING_LEVEL_TEXTS: tuple[str, ...] = ("%1.", "%1.%2", "%1.%2.%3")
MAX_HEADING_LEVEL = 4

_HEADING_RE = re.compile(r"^(#{1,6})\s+(.*?)\s*#*\s*$")
_BULLET_RE = re.compile(r"^\s*[-*+]\s+(.*)$")
_NUMBERED_RE = re.compile(r"^\s*(\d+)[.)]\s+(.*)$")
_RULE_RE = re.compile(r"^\s*(?:-{3,}|\*{3,}|_{3,})\s*$")
_FENCE_RE = re.compile(r"^\s*(```|~~~)")
_TABLE_SEP_RE = re.compile(r"^\s*\|?\s*:?-{3,}:?\s*(?:\|\s*:?-{3,}:?\s*)*\|?\s*$")
_QUOTE_RE = re.compile(r"^\s*>\s?(.*)$")

# Order matters: *** before ** before *.
_INLINE_RE = re.compile(r"(\*\*\*[^*]+\*\*\*|\*\*[^*]+\*\*|\*[^*\s][^*]*\*|`[^`]+`)")
CITATION_RE = re.compile(r"\[(\d+)\]")


class InlineRun(BaseModel):
    text: str
    bold: bool = False
    italic: bool = False
    code: bool = False
    citation: int | None = None


class Block(BaseModel):
    kind: BlockKind
    text: str = ""
    level: int = 0
    number: int | None = None
    rows: list[list[str]] = Field(default_factory=list)


def heading_numbering_depth(level: int) -> int | None:
    """Numbering depth for a heading level; level 4 and below are unnumbered."""
    if 1 <= level <= len(NUMBERING_LEVEL_TEXTS):
        return level - 1
    return None


def _split_citations(run: InlineRun) -> list[InlineRun]:
    if run.code or not CITATION_RE.search(run.text):
        return [run]
    out: list[InlineRun] = []
    last = 0
    for match in CITATION_RE.finditer(run.text):
        if match.start() > last:
            out.append(run.model_copy(update={"text": run.text[last:match.start()]}))
        out.append(run.model_copy(update={"text": match.group(0), "citation": int(match.group(1))}))
        last = match.end()
    if last < len(run.text):
        out.append(run.model_copy(update={"text": run.text[last:]}))
    return out


def parse_inline(text: str) -> list[InlineRun]:
    """Split a line into formatted runs.

    ``***x***`` is bold and italic, ``**x**`` bold, ``*x*`` italic, `` `x` `` code,
    and ``[n]`` becomes a citation run for reference n.
    """
    runs: list[InlineRun] = []
    last = 0
    for match in _INLINE_RE.finditer(text):
        if match.start() > last:
            runs.append(InlineRun(text=text[last:match.start()]))
        token = match.group(0)
        if token.startswith("***"):
            runs.append(InlineRun(text=token[3:-3], bold=True, italic=True))
        elif token.startswith("**"):
            runs.append(InlineRun(text=token[2:-2], bold=True))
        elif token.startswith("`"):
            runs.append(InlineRun(text=token[1:-1], code=True))
        else:
            runs.append(InlineRun(text=token[1:-1], italic=True))
        last = match.end()
    if last < len(text):
        runs.append(InlineRun(text=text[last:]))

    result: list[InlineRun] = []
    for run in runs:
        result.extend(_split_citations(run))
    return result or [InlineRun(text=text)]


def split_table_row(line: str) -> list[str]:
    stripped = line.strip()
    if stripped.startswith("|"):
        stripped = stripped[1:]
    if stripped.endswith("|"):
        stripped = stripped[:-1]
    return [cell.strip() for cell in stripped.split("|")]


def parse_blocks(markdown: str) -> list[Block]:
    lines = (markdown or "").replace("\r\n", "\n").split("\n")
    blocks: list[Block] = []
    i = 0
    while i < len(lines):
        line = lines[i]

        if _FENCE_RE.match(line):
            fence = _FENCE_RE.match(line).group(1)
            code: list[str] = []
            i += 1
            while i < len(lines) and not lines[i].strip().startswith(fence):
                code.append(lines[i])
                i += 1
            blocks.append(Block(kind="code", text="\n".join(code)))
            i += 1
            continue

        if not line.strip() or _RULE_RE.match(line):
            blocks.append(Block(kind="blank"))
            i += 1
            continue

        heading = _HEADING_RE.match(line)
        if heading:
            level = min(len(heading.group(1)), MAX_HEADING_LEVEL)
            blocks.append(Block(kind="heading", text=heading.group(2), level=level))
            i += 1
            continue

        if line.lstrip().startswith("|") and i + 1 < len(lines) and _TABLE_SEP_RE.match(lines[i + 1]):
            rows = [split_table_row(line)]
            i += 2
            while i < len(lines) and lines[i].lstrip().startswith("|"):
                rows.append(split_table_row(lines[i]))
                i += 1
            width = len(rows[0])
            rows = [(row + [""] * width)[:width] for row in rows]
            blocks.append(Block(kind="table", rows=rows))
            continue

        bullet = _BULLET_RE.match(line)
        if bullet:
            blocks.append(Block(kind="bullet", text=bullet.group(1)))
            i += 1
            continue

        numbered = _NUMBERED_RE.match(line)
        if numbered:
            blocks.append(Block(kind="numbered", text=numbered.group(2), number=int(numbered.group(1))))
            i += 1
            continue

        quote = _QUOTE_RE.match(line)
        blocks.append(Block(kind="paragraph", text=quote.group(1) if quote else line.strip()))
        i += 1

    return blocks


# CJK ideographs, kana, hangul, CJK punctuation and full-width forms
CJK_RE = re.compile(r"[\u3000-\u303F\u3400-\u9FFF\uF900-\uFAFF\u3040-\u30FF\uAC00-\uD7AF\uFF00-\uFFEF]")


def contains_cjk(text: str) -> bool:
    return bool(CJK_RE.search(text or ""))


def split_cjk_segments(text: str) -> list[tuple[str, bool]]:
    """Split text into maximal runs of CJK and non-CJK characters.

    Returns:
        [(segment, is_cjk), ...] covering the input in order.
    """
    segments: list[tuple[str, bool]] = []
    for char in text:
        is_cjk = bool(CJK_RE.match(char))
        if segments and segments[-1][1] == is_cjk:
            segments[-1] = (segments[-1][0] + char, is_cjk)
        else:
            segments.append((char, is_cjk))
    return segments

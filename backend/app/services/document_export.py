"""Word and PDF rendering of a paper's outline and content."""

import io
import logging
from pathlib import Path
from typing import Any, Literal, Sequence
from docx import Document
from docx.document import Document as DocxDocument
from docx.enum.style import WD_STYLE_TYPE
from docx.enum.text import WD_ALIGN_PARAGRAPH, WD_LINE_SPACING
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Pt, RGBColor
from fpdf import FPDF
from pydantic import BaseModel
from app.services.paper_generation import type_name
from app.utils.markdown_blocks import (
    NUMBERING_LEVEL_TEXTS,
    Block,
    contains_cjk,
    heading_numbering_depth,
    parse_blocks,
    parse_inline,
    split_cjk_segments,
)

logger = logging.getLogger(__name__)

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PDF_MIME = "application/pdf"

OUTLINE_HEADING = "论文大纲"
CONTENT_HEADING = "论文正文"

BODY_STYLE = "Body Text"
_HEADING_SIZE_DELTA = {1: 4, 2: 2, 3: 1, 4: 0}
_HEADING_SPACING = {1: (14, 8), 2: (12, 6), 3: (10, 4), 4: (8, 4)}
_THEME_FONT_ATTRS = ("w:asciiTheme", "w:hAnsiTheme", "w:eastAsiaTheme", "w:cstheme")


class LineSpacing(BaseModel):
    mode: Literal["multiple", "exact"] = "multiple"
    # Multiple of single spacing, or points when mode is exact
    value: float = 1.5


class WordStyleProfile(BaseModel):
    profile_name: str = "高校通用毕业论文"
    chinese_body_font: str = "宋体"
    chinese_heading_font: str = "黑体"
    latin_font: str = "Times New Roman"
    body_font_size_pt: float = 12
    paragraph_before_pt: float = 0
    paragraph_after_pt: float = 8
    line_spacing: LineSpacing = LineSpacing()


DEFAULT_WORD_STYLE_PROFILE = WordStyleProfile()


def resolve_word_style_profile(overrides: dict[str, Any] | None = None) -> WordStyleProfile:
    """Merge partial overrides over the defaults; line spacing merges field by field."""
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
    spacing = overrides.pop("line_spacing", None) or {}
    if isinstance(spacing, BaseModel):
        spacing = spacing.model_dump(exclude_none=True)
    merged = DEFAULT_WORD_STYLE_PROFILE.model_dump()
    merged.update(overrides)
    merged["line_spacing"] = {
        **DEFAULT_WORD_STYLE_PROFILE.line_spacing.model_dump(),
        **{k: v for k, v in spacing.items() if v is not None},
    }
    return WordStyleProfile.model_validate(merged)


# Word


def _set_fonts(rpr_owner, latin: str, east_asia: str) -> None:
    """Set Latin and East-Asian fonts on a run or style, dropping theme fonts that would win."""
    rpr_owner.font.name = latin
    r_fonts = rpr_owner.element.rPr.rFonts
    for attr in _THEME_FONT_ATTRS:
        r_fonts.attrib.pop(qn(attr), None)
    r_fonts.set(qn("w:eastAsia"), east_asia)
    r_fonts.set(qn("w:cs"), latin)


def _apply_spacing(paragraph_format, profile: WordStyleProfile) -> None:
    paragraph_format.space_before = Pt(profile.paragraph_before_pt)
    paragraph_format.space_after = Pt(profile.paragraph_after_pt)
    if profile.line_spacing.mode == "exact":
        paragraph_format.line_spacing = Pt(profile.line_spacing.value)
        paragraph_format.line_spacing_rule = WD_LINE_SPACING.EXACTLY
    else:
        paragraph_format.line_spacing = profile.line_spacing.value


def _configure_styles(document: DocxDocument, profile: WordStyleProfile) -> None:
    styles = document.styles
    try:
        body = styles[BODY_STYLE]
    except KeyError:
        body = styles.add_style(BODY_STYLE, WD_STYLE_TYPE.PARAGRAPH)
    for style in (styles["Normal"], body):
        _set_fonts(style, profile.latin_font, profile.chinese_body_font)
        style.font.size = Pt(profile.body_font_size_pt)
        _apply_spacing(style.paragraph_format, profile)
    body.paragraph_format.alignment = WD_ALIGN_PARAGRAPH.JUSTIFY

    for level, delta in _HEADING_SIZE_DELTA.items():
        style = styles[f"Heading {level}"]
        _set_fonts(style, profile.latin_font, profile.chinese_heading_font)
        style.font.size = Pt(profile.body_font_size_pt + delta)
        style.font.bold = True
        style.font.italic = False
        style.font.color.rgb = RGBColor(0, 0, 0)
        before, after = _HEADING_SPACING[level]
        style.paragraph_format.space_before = Pt(before)
        style.paragraph_format.space_after = Pt(after)


def add_heading_numbering(document: DocxDocument) -> int:
    """Register a multilevel decimal list for headings and return its numId."""
    numbering = document.part.numbering_part.element
    existing = [int(a.get(qn("w:abstractNumId"))) for a in numbering.findall(qn("w:abstractNum"))]
    abstract_id = max(existing, default=-1) + 1

    abstract = OxmlElement("w:abstractNum")
    abstract.set(qn("w:abstractNumId"), str(abstract_id))
    multi = OxmlElement("w:multiLevelType")
    multi.set(qn("w:val"), "multilevel")
    abstract.append(multi)
    for ilvl, level_text in enumerate(NUMBERING_LEVEL_TEXTS):
        lvl = OxmlElement("w:lvl")
        lvl.set(qn("w:ilvl"), str(ilvl))
        for tag, val in (
            ("w:start", "1"),
            ("w:numFmt", "decimal"),
            ("w:lvlText", level_text),
            ("w:lvlJc", "left"),
        ):
            child = OxmlElement(tag)
            child.set(qn("w:val"), val)
            lvl.append(child)
        abstract.append(lvl)

    # abstractNum elements must precede every num
    nums = numbering.findall(qn("w:num"))
    if nums:
        nums[0].addprevious(abstract)
    else:
        numbering.append(abstract)

    num = numbering.add_num(abstract_id)
    return num.numId


def _number_heading(paragraph, num_id: int, depth: int) -> None:
    num_pr = paragraph._p.get_or_add_pPr().get_or_add_numPr()
    num_pr.get_or_add_ilvl().val = depth
    num_pr.get_or_add_numId().val = num_id


def _add_runs(paragraph, text: str, profile: WordStyleProfile, *, cjk_font: str | None = None) -> None:
    """Add formatted runs, splitting mixed CJK/Latin text so each gets its own East-Asian font."""
    cjk_font = cjk_font or profile.chinese_body_font
    for inline in parse_inline(text):
        if inline.citation is not None:
            run = paragraph.add_run(inline.text)
            _set_fonts(run, profile.latin_font, profile.latin_font)
            run.font.superscript = True
            continue
        segments = split_cjk_segments(inline.text) if contains_cjk(inline.text) else [(inline.text, False)]
        for segment, is_cjk in segments:
            run = paragraph.add_run(segment)
            _set_fonts(run, profile.latin_font, cjk_font if is_cjk else profile.latin_font)
            if inline.bold:
                run.bold = True
            if inline.italic:
                run.italic = True
            if inline.code:
                run.font.name = "Courier New"


def _add_heading(document: DocxDocument, text: str, level: int, profile: WordStyleProfile, num_id: int):
    paragraph = document.add_paragraph(style=f"Heading {level}")
    _add_runs(paragraph, text, profile, cjk_font=profile.chinese_heading_font)
    depth = heading_numbering_depth(level)
    if depth is not None:
        _number_heading(paragraph, num_id, depth)
    return paragraph


def _add_table(document: DocxDocument, rows: list[list[str]], profile: WordStyleProfile) -> None:
    table = document.add_table(rows=len(rows), cols=len(rows[0]))
    table.style = "Table Grid"
    for r, row in enumerate(rows):
        for c, value in enumerate(row):
            paragraph = table.cell(r, c).paragraphs[0]
            _add_runs(paragraph, value, profile)
            if r == 0:
                for run in paragraph.runs:
                    run.bold = True


def _add_blocks(document: DocxDocument, blocks: Sequence[Block], profile: WordStyleProfile, num_id: int) -> None:
    for block in blocks:
        if block.kind == "blank":
            continue
        if block.kind == "heading":
            _add_heading(document, block.text, block.level, profile, num_id)
        elif block.kind == "table":
            _add_table(document, block.rows, profile)
        elif block.kind == "bullet":
            _add_runs(document.add_paragraph(style="List Bullet"), block.text, profile)
        elif block.kind == "numbered":
            _add_runs(document.add_paragraph(style=BODY_STYLE), f"{block.number}. {block.text}", profile)
        elif block.kind == "code":
            run = document.add_paragraph(style=BODY_STYLE).add_run(block.text)
            run.font.name = "Courier New"
        else:
            _add_runs(document.add_paragraph(style=BODY_STYLE), block.text, profile)


def render_word_document(
    title: str,
    paper_type: str,
    outline: str,
    content: str,
    profile: WordStyleProfile | None = None,
) -> bytes:
    profile = profile or DEFAULT_WORD_STYLE_PROFILE
    document = Document()
    _configure_styles(document, profile)
    num_id = add_heading_numbering(document)

    title_para = document.add_paragraph(style=BODY_STYLE)
    title_para.alignment = WD_ALIGN_PARAGRAPH.CENTER
    title_para.paragraph_format.space_before = Pt(20)
    title_para.paragraph_format.space_after = Pt(20)
    run = title_para.add_run(title)
    _set_fonts(run, profile.latin_font, profile.chinese_heading_font)
    run.bold = True
    run.font.size = Pt(profile.body_font_size_pt + 8)

    type_para = document.add_paragraph(style=BODY_STYLE)
    type_para.alignment = WD_ALIGN_PARAGRAPH.CENTER
    type_para.paragraph_format.space_after = Pt(40)
    _add_runs(type_para, type_name(paper_type), profile)

    _add_heading(document, OUTLINE_HEADING, 1, profile, num_id)
    _add_blocks(document, parse_blocks(outline), profile, num_id)

    content_heading = _add_heading(document, CONTENT_HEADING, 1, profile, num_id)
    content_heading.paragraph_format.page_break_before = True
    _add_blocks(document, parse_blocks(content), profile, num_id)

    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


# PDF


class PdfExportError(ValueError):
    pass


_PDF_FAMILY = "paperfont"
_PDF_BODY_PT = 11
_PDF_HEADING_PT = {1: 16, 2: 14, 3: 12, 4: 11}


class _PaperPDF:
    """Streams blocks into an fpdf2 document, numbering headings like the Word export."""

    def __init__(self, font_path: str):
        self.pdf = FPDF()
        self.pdf.set_auto_page_break(auto=True, margin=15)
        for style in ("", "B", "I", "BI"):
            self.pdf.add_font(_PDF_FAMILY, style=style, fname=font_path)
        self.family = _PDF_FAMILY
        self.counters = [0] * len(NUMBERING_LEVEL_TEXTS)
        self.pdf.add_page()

    def _line_height(self, size_pt: float) -> float:
        return size_pt * 0.55

    def heading_prefix(self, level: int) -> str:
        depth = heading_numbering_depth(level)
        if depth is None:
            return ""
        self.counters[depth] += 1
        for deeper in range(depth + 1, len(self.counters)):
            self.counters[deeper] = 0
        prefix = NUMBERING_LEVEL_TEXTS[depth]
        for i in range(depth + 1):
            prefix = prefix.replace(f"%{i + 1}", str(self.counters[i]))
        return prefix + " "

    def title(self, title: str, subtitle: str) -> None:
        self.pdf.set_font(self.family, "B", _PDF_BODY_PT + 8)
        self.pdf.multi_cell(0, 12, title, align="C", new_x="LMARGIN", new_y="NEXT")
        self.pdf.set_font(self.family, "", _PDF_BODY_PT)
        self.pdf.multi_cell(0, 8, subtitle, align="C", new_x="LMARGIN", new_y="NEXT")
        self.pdf.ln(10)

    def heading(self, text: str, level: int) -> None:
        size = _PDF_HEADING_PT.get(level, _PDF_BODY_PT)
        plain = "".join(run.text for run in parse_inline(text))
        self.pdf.ln(3)
        self.pdf.set_font(self.family, "B", size)
        self.pdf.multi_cell(
            0, self._line_height(size), self.heading_prefix(level) + plain,
            new_x="LMARGIN", new_y="NEXT",
        )
        self.pdf.ln(1)

    def paragraph(self, text: str, prefix: str = "") -> None:
        height = self._line_height(_PDF_BODY_PT)
        if prefix:
            self.pdf.set_font(self.family, "", _PDF_BODY_PT)
            self.pdf.write(height, prefix)
        for run in parse_inline(text):
            style = ("B" if run.bold else "") + ("I" if run.italic else "")
            self.pdf.set_font(self.family, style, _PDF_BODY_PT)
            if run.citation is not None:
                self.pdf.char_vpos = "SUP"
                self.pdf.write(height, run.text)
                self.pdf.char_vpos = "LINE"
            else:
                self.pdf.write(height, run.text)
        self.pdf.ln(height)
        self.pdf.ln(2)

    def table(self, rows: list[list[str]]) -> None:
        self.pdf.set_font(self.family, "", _PDF_BODY_PT - 1)
        with self.pdf.table() as table:
            for row in rows:
                cells = table.row()
                for value in row:
                    cells.cell("".join(run.text for run in parse_inline(value)))
        self.pdf.ln(2)

    def blocks(self, blocks: Sequence[Block]) -> None:
        bullet = "• "
        for block in blocks:
            if block.kind == "blank":
                continue
            if block.kind == "heading":
                self.heading(block.text, block.level)
            elif block.kind == "table":
                self.table(block.rows)
            elif block.kind == "bullet":
                self.paragraph(block.text, prefix=bullet)
            elif block.kind == "numbered":
                self.paragraph(block.text, prefix=f"{block.number}. ")
            elif block.kind == "code":
                self.pdf.set_font(self.family, "", _PDF_BODY_PT - 1)
                self.pdf.multi_cell(0, 5, block.text, new_x="LMARGIN", new_y="NEXT")
            else:
                self.paragraph(block.text)

    def new_page(self) -> None:
        self.pdf.add_page()

    def output(self) -> bytes:
        return bytes(self.pdf.output())


def render_pdf_document(
    title: str,
    paper_type: str,
    outline: str,
    content: str,
    font_path: str | None = None,
) -> bytes:
    """Render the Word layout as PDF.

    The layout itself carries CJK headings, so a Unicode TTF at ``font_path``
    is always required.
    """
    if not font_path or not Path(font_path).is_file():
        raise PdfExportError("导出PDF需要配置中文字体（PDF_FONT_PATH）")

    doc = _PaperPDF(font_path)
    doc.title(title, type_name(paper_type))
    doc.heading(OUTLINE_HEADING, 1)
    doc.blocks(parse_blocks(outline))
    doc.new_page()
    doc.heading(CONTENT_HEADING, 1)
    doc.blocks(parse_blocks(content))
    pdf_bytes = doc.output()
    logger.info("Rendered PDF for %r (%d bytes)", title, len(pdf_bytes))
    return pdf_bytes

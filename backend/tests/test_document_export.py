"""Unit tests for Word and PDF rendering."""

import io
import os
from pathlib import Path

import pytest
from docx import Document

from app.services.document_export import (
    CONTENT_HEADING,
    DEFAULT_WORD_STYLE_PROFILE,
    OUTLINE_HEADING,
    PdfExportError,
    add_heading_numbering,
    render_pdf_document,
    render_word_document,
    resolve_word_style_profile,
)

OUTLINE = "# 绪论\n## 研究背景\n#### 补充说明"
CONTENT = (
    "# 绪论\n"
    "深度学习[1]在图像识别中取得了**显著**进展。\n"
    "\n"
    "| 方法 | 准确率 |\n"
    "| --- | --- |\n"
    "| CNN | 95% |\n"
    "\n"
    "- 第一点\n"
    "1. 第一步\n"
)

_CJK_FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/droid/DroidSansFallbackFull.ttf",
    "/usr/share/fonts/truetype/wqy/wqy-microhei.ttc",
    "/usr/share/fonts/opentype/noto/NotoSansCJK-Regular.ttc",
]


def _find_cjk_font() -> str | None:
    env_font = os.environ.get("PDF_TEST_FONT")
    if env_font and Path(env_font).is_file():
        return env_font
    for candidate in _CJK_FONT_CANDIDATES:
        if candidate.endswith(".ttf") and Path(candidate).is_file():
            return candidate
    return None


def _numbered(paragraph) -> bool:
    p_pr = paragraph._p.pPr
    return p_pr is not None and p_pr.numPr is not None


class TestStyleProfile:
    """Merging partial style overrides."""

    def test_defaults(self):
        profile = resolve_word_style_profile()
        assert profile == DEFAULT_WORD_STYLE_PROFILE
        assert profile.chinese_body_font == "宋体"
        assert profile.line_spacing.mode == "multiple"

    def test_partial_override_keeps_other_fields(self):
        profile = resolve_word_style_profile({"body_font_size_pt": 10.5, "latin_font": None})
        assert profile.body_font_size_pt == 10.5
        assert profile.latin_font == "Times New Roman"

    def test_line_spacing_merges_field_by_field(self):
        profile = resolve_word_style_profile({"line_spacing": {"mode": "exact", "value": None}})
        assert profile.line_spacing.mode == "exact"
        assert profile.line_spacing.value == 1.5


class TestWordExport:
    """The generated .docx document."""

    @pytest.fixture
    def document(self):
        data = render_word_document("图像识别研究", "graduation", OUTLINE, CONTENT)
        assert data[:2] == b"PK"
        return Document(io.BytesIO(data))

    def test_title_and_type(self, document):
        texts = [p.text for p in document.paragraphs]
        assert texts[0] == "图像识别研究"
        assert texts[1] == "毕业论文"

    def test_section_headings(self, document):
        headings = [(p.style.name, p.text) for p in document.paragraphs if p.style.name.startswith("Heading")]
        assert ("Heading 1", OUTLINE_HEADING) in headings
        assert ("Heading 1", CONTENT_HEADING) in headings
        assert ("Heading 2", "研究背景") in headings
        assert ("Heading 4", "补充说明") in headings

    def test_heading_numbering_stops_at_level_four(self, document):
        for paragraph in document.paragraphs:
            if paragraph.style.name in ("Heading 1", "Heading 2"):
                assert _numbered(paragraph), paragraph.text
            if paragraph.style.name == "Heading 4":
                assert not _numbered(paragraph), paragraph.text

    def test_content_starts_on_new_page(self, document):
        heading = next(p for p in document.paragraphs if p.text == CONTENT_HEADING)
        assert heading.paragraph_format.page_break_before is True

    def test_citation_is_superscript(self, document):
        runs = [r for p in document.paragraphs for r in p.runs if r.text == "[1]"]
        assert runs and all(r.font.superscript for r in runs)

    def test_bold_run(self, document):
        runs = [r for p in document.paragraphs for r in p.runs if r.text == "显著"]
        assert runs and runs[0].bold

    def test_table(self, document):
        assert len(document.tables) == 1
        table = document.tables[0]
        assert table.cell(0, 0).text == "方法"
        assert table.cell(1, 1).text == "95%"

    def test_list_items(self, document):
        texts = [p.text for p in document.paragraphs]
        assert "第一点" in texts
        assert "1. 第一步" in texts

    def test_numbering_definitions_appended(self):
        document = Document()
        first = add_heading_numbering(document)
        second = add_heading_numbering(document)
        assert second != first


class TestPdfExport:
    """PDF rendering needs a CJK capable TTF."""

    @pytest.mark.parametrize("font_path", [None, "", "/nonexistent/font.ttf"])
    def test_missing_font(self, font_path):
        with pytest.raises(PdfExportError):
            render_pdf_document("标题", "journal", OUTLINE, CONTENT, font_path)

    def test_render_with_font(self):
        font = _find_cjk_font()
        if not font:
            pytest.skip("no CJK TrueType font available")
        data = render_pdf_document("图像识别研究", "graduation", OUTLINE, CONTENT, font)
        assert data.startswith(b"%PDF")

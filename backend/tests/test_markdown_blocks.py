"""Unit tests for the markdown model shared by the exporters."""

import pytest

from app.utils.markdown_blocks import (
    contains_cjk,
    heading_numbering_depth,
    parse_blocks,
    parse_inline,
    split_cjk_segments,
    split_table_row,
)


class TestHeadingNumbering:
    """Heading level to numbering depth."""

    @pytest.mark.parametrize("level, depth", [(1, 0), (2, 1), (3, 2)])
    def test_numbered_levels(self, level, depth):
        assert heading_numbering_depth(level) == depth

    @pytest.mark.parametrize("level", [0, 4, 5])
    def test_unnumbered_levels(self, level):
        assert heading_numbering_depth(level) is None


class TestParseInline:
    """Inline emphasis, code and citations."""

    def test_bold_italic_compose(self):
        runs = parse_inline("这是***重点***和**粗体**以及*斜体*")
        assert [(r.text, r.bold, r.italic) for r in runs] == [
            ("这是", False, False),
            ("重点", True, True),
            ("和", False, False),
            ("粗体", True, False),
            ("以及", False, False),
            ("斜体", False, True),
        ]

    def test_citation_markers(self):
        runs = parse_inline("已有研究[1]表明[12]")
        citations = [r.citation for r in runs if r.citation is not None]
        assert citations == [1, 12]
        assert "".join(r.text for r in runs) == "已有研究[1]表明[12]"

    def test_citation_inside_bold_keeps_bold(self):
        runs = parse_inline("**见文献[3]**")
        cited = [r for r in runs if r.citation == 3]
        assert len(cited) == 1
        assert cited[0].bold

    def test_code_not_split_on_brackets(self):
        runs = parse_inline("`arr[0]`")
        assert len(runs) == 1
        assert runs[0].code
        assert runs[0].citation is None

    def test_plain_text(self):
        runs = parse_inline("plain")
        assert len(runs) == 1
        assert runs[0].text == "plain"


class TestParseBlocks:
    """Block level parsing."""

    def test_headings_capped_at_level_four(self):
        blocks = parse_blocks("# 一\n## 二\n##### 五")
        assert [(b.kind, b.level) for b in blocks] == [("heading", 1), ("heading", 2), ("heading", 4)]

    def test_table(self):
        blocks = parse_blocks("| 方法 | 准确率 |\n| --- | ---: |\n| CNN | 95% |\n| RNN |")
        assert len(blocks) == 1
        assert blocks[0].kind == "table"
        assert blocks[0].rows == [["方法", "准确率"], ["CNN", "95%"], ["RNN", ""]]

    def test_lists(self):
        blocks = parse_blocks("- 第一点\n* 第二点\n3. 第三点")
        assert [b.kind for b in blocks] == ["bullet", "bullet", "numbered"]
        assert blocks[2].number == 3
        assert blocks[2].text == "第三点"

    def test_code_fence(self):
        blocks = parse_blocks("```python\nprint('x')\n# not heading\n```\n正文")
        assert blocks[0].kind == "code"
        assert blocks[0].text == "print('x')\n# not heading"
        assert blocks[1].kind == "paragraph"

    def test_blank_and_rule(self):
        blocks = parse_blocks("a\n\n---\nb")
        assert [b.kind for b in blocks] == ["paragraph", "blank", "blank", "paragraph"]

    def test_quote_becomes_paragraph(self):
        assert parse_blocks("> 引用")[0].text == "引用"

    def test_empty(self):
        assert [b.kind for b in parse_blocks("")] == ["blank"]


class TestHelpers:
    """Table rows and CJK detection."""

    def test_split_table_row(self):
        assert split_table_row("| a | b |") == ["a", "b"]
        assert split_table_row("a|b") == ["a", "b"]

    def test_contains_cjk(self):
        assert contains_cjk("深度learning")
        assert not contains_cjk("deep learning")
        assert not contains_cjk("")

    def test_split_cjk_segments(self):
        assert split_cjk_segments("基于CNN的方法") == [("基于", True), ("CNN", False), ("的方法", True)]

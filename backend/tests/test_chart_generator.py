"""Unit tests for CSV parsing and chart config assembly."""

import pytest

from app.services import chart_generator
from app.services.chart_generator import ACADEMIC_COLORS, CSVParseError, palette_color, parse_csv
from app.services.llm import LLMError


class TestParseCSV:
    """Header row plus typed data rows."""

    def test_numbers_are_coerced(self):
        headers, rows = parse_csv("年份,准确率,模型\n2020,0.85,CNN\n2021,92,ResNet")
        assert headers == ["年份", "准确率", "模型"]
        assert rows == [
            {"年份": 2020, "准确率": 0.85, "模型": "CNN"},
            {"年份": 2021, "准确率": 92, "模型": "ResNet"},
        ]

    def test_quotes_stripped_and_blank_lines_ignored(self):
        headers, rows = parse_csv('"name","value"\n\n"a","1"\n')
        assert headers == ["name", "value"]
        assert rows == [{"name": "a", "value": 1}]

    def test_short_rows_padded(self):
        _, rows = parse_csv("a,b,c\n1")
        assert rows == [{"a": 1, "b": "", "c": ""}]

    def test_nan_kept_as_text(self):
        _, rows = parse_csv("a\nnan")
        assert rows == [{"a": "nan"}]

    @pytest.mark.parametrize("text", ["", "   ", "only,header"])
    def test_needs_header_and_data(self, text):
        with pytest.raises(CSVParseError):
            parse_csv(text)


class TestPalette:
    """Academic color cycling."""

    def test_wraps_around(self):
        assert palette_color(0) == ACADEMIC_COLORS[0]
        assert palette_color(len(ACADEMIC_COLORS) + 2) == ACADEMIC_COLORS[2]

    def test_float_index(self):
        assert palette_color(1.0) == ACADEMIC_COLORS[1]


class TestGenerateConfig:
    """Model output mapped onto a chart."""

    async def test_config_uses_palette(self, monkeypatch):
        async def fake_llm_json(messages, **kwargs):
            return {
                "chartType": "line",
                "title": "准确率变化",
                "xAxisKey": "年份",
                "dataKeys": [{"key": "准确率", "name": "准确率", "colorIndex": 3}],
                "xAxisLabel": "年份",
                "yAxisLabel": "准确率",
                "description": "逐年上升",
            }

        monkeypatch.setattr(chart_generator, "invoke_llm_json", fake_llm_json)
        headers, rows = parse_csv("年份,准确率\n2020,0.8\n2021,0.9")
        chart = await chart_generator.generate_chart_config(rows, headers, "趋势")

        assert chart.chartType == "line"
        assert chart.data == rows
        assert chart.chart_config()["dataKeys"] == [
            {"key": "准确率", "name": "准确率", "color": ACADEMIC_COLORS[3]}
        ]

    async def test_unknown_chart_type_rejected(self, monkeypatch):
        async def fake_llm_json(messages, **kwargs):
            return {"chartType": "donut", "title": "x", "xAxisKey": "a", "dataKeys": []}

        monkeypatch.setattr(chart_generator, "invoke_llm_json", fake_llm_json)
        with pytest.raises(LLMError):
            await chart_generator.generate_chart_config([{"a": 1}], ["a"], "")

    async def test_description_chart_validated(self, monkeypatch):
        async def fake_llm_json(messages, **kwargs):
            return {"chartType": "pie", "title": "占比", "xAxisKey": "类别"}

        monkeypatch.setattr(chart_generator, "invoke_llm_json", fake_llm_json)
        chart = await chart_generator.generate_chart_from_description("各类别占比")
        assert chart.chartType == "pie"
        assert chart.data == []

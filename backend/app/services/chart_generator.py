import json
import logging
from typing import Any, Literal
from pydantic import BaseModel, Field, ValidationError
from app.services.llm import LLMError, invoke_llm_json

logger = logging.getLogger(__name__)

ChartTypeName = Literal["line", "bar", "scatter", "pie", "radar", "area"]
CHART_TYPES: list[str] = ["line", "bar", "scatter", "pie", "radar", "area"]

ACADEMIC_COLORS: tuple[str, ...] = (
    "#2563eb", "#dc2626", "#16a34a", "#ca8a04", "#9333ea",
    "#0891b2", "#e11d48", "#65a30d", "#d97706", "#7c3aed",
)

SAMPLE_ROWS = 5


class CSVParseError(ValueError):
    pass


class DataKey(BaseModel):
    key: str
    name: str
    color: str


class GeneratedChart(BaseModel):
    chartType: ChartTypeName
    title: str
    data: list[dict[str, Any]] = Field(default_factory=list)
    xAxisKey: str
    dataKeys: list[DataKey] = Field(default_factory=list)
    xAxisLabel: str | None = None
    yAxisLabel: str | None = None
    description: str | None = None

    def chart_config(self) -> dict[str, Any]:
        """Rendering settings as persisted on a Chart row."""
        return {
            "xAxisKey": self.xAxisKey,
            "dataKeys": [dk.model_dump() for dk in self.dataKeys],
            "xAxisLabel": self.xAxisLabel,
            "yAxisLabel": self.yAxisLabel,
        }


def palette_color(index: int) -> str:
    return ACADEMIC_COLORS[int(index) % len(ACADEMIC_COLORS)]


def _coerce(value: str) -> str | int | float:
    if value == "":
        return value
    try:
        return int(value)
    except ValueError:
        pass
    try:
        number = float(value)
    except ValueError:
        return value
    # nan/inf are not chartable numbers
    return number if number == number and number not in (float("inf"), float("-inf")) else value


def _strip_quotes(value: str) -> str:
    value = value.strip()
    if value.startswith('"'):
        value = value[1:]
    if value.endswith('"'):
        value = value[:-1]
    return value


def parse_csv(csv_text: str) -> tuple[list[str], list[dict[str, Any]]]:
    """Parse simple comma separated text into headers and typed rows.

    Cells are not quote-aware: commas always split. Numeric cells become numbers.
    """
    lines = [line.strip() for line in (csv_text or "").strip().splitlines()]
    lines = [line for line in lines if line]
    if len(lines) < 2:
        raise CSVParseError("CSV数据至少需要包含标题行和一行数据")

    headers = [_strip_quotes(h) for h in lines[0].split(",")]
    rows: list[dict[str, Any]] = []
    for line in lines[1:]:
        values = [_strip_quotes(v) for v in line.split(",")]
        rows.append({
            header: _coerce(values[j] if j < len(values) else "")
            for j, header in enumerate(headers)
        })
    return headers, rows


_CHART_CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "chartType": {"type": "string", "enum": CHART_TYPES},
        "title": {"type": "string", "description": "图表标题"},
        "xAxisKey": {"type": "string", "description": "X轴对应的数据列名"},
        "dataKeys": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "key": {"type": "string", "description": "数据列名"},
                    "name": {"type": "string", "description": "图例显示名称"},
                    "colorIndex": {"type": "number", "description": "颜色索引（0-9）"},
                },
                "required": ["key", "name", "colorIndex"],
                "additionalProperties": False,
            },
        },
        "xAxisLabel": {"type": "string", "description": "X轴标签"},
        "yAxisLabel": {"type": "string", "description": "Y轴标签"},
        "description": {"type": "string", "description": "图表描述/注释"},
    },
    "required": ["chartType", "title", "xAxisKey", "dataKeys", "xAxisLabel", "yAxisLabel", "description"],
    "additionalProperties": False,
}

_CHART_WITH_DATA_SCHEMA = {
    "type": "object",
    "properties": {
        "chartType": {"type": "string", "enum": CHART_TYPES},
        "title": {"type": "string"},
        "data": {"type": "array", "items": {"type": "object", "additionalProperties": {}}},
        "xAxisKey": {"type": "string"},
        "dataKeys": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "key": {"type": "string"},
                    "name": {"type": "string"},
                    "color": {"type": "string"},
                },
                "required": ["key", "name", "color"],
                "additionalProperties": False,
            },
        },
        "xAxisLabel": {"type": "string"},
        "yAxisLabel": {"type": "string"},
        "description": {"type": "string"},
    },
    "required": ["chartType", "title", "data", "xAxisKey", "dataKeys", "xAxisLabel", "yAxisLabel", "description"],
    "additionalProperties": False,
}


async def generate_chart_config(
    data: list[dict[str, Any]],
    headers: list[str],
    description: str,
) -> GeneratedChart:
    """Let the model pick a chart type and series for parsed CSV data."""
    system = (
        "你是一位学术数据可视化专家。根据用户提供的数据和描述，选择最合适的图表类型并生成配置。\n"
        "图表应符合学术论文的规范，包含清晰的标题、轴标签和图例。\n\n"
        "可用的图表类型：line（折线图）、bar（柱状图）、scatter（散点图）、pie（饼图）、radar（雷达图）、area（面积图）\n\n"
        f"数据列名：{', '.join(headers)}\n"
        f"数据样例：{json.dumps(data[:SAMPLE_ROWS], ensure_ascii=False)}\n"
        f"总数据行数：{len(data)}"
    )
    config = await invoke_llm_json(
        [
            {"role": "system", "content": system},
            {"role": "user", "content": f"请根据以下描述生成图表配置：{description}"},
        ],
        schema_name="chart_config",
        schema=_CHART_CONFIG_SCHEMA,
    )
    try:
        return GeneratedChart(
            chartType=config.get("chartType"),
            title=config.get("title") or "",
            data=data,
            xAxisKey=config.get("xAxisKey") or (headers[0] if headers else ""),
            dataKeys=[
                DataKey(key=dk["key"], name=dk.get("name") or dk["key"], color=palette_color(dk.get("colorIndex", i)))
                for i, dk in enumerate(config.get("dataKeys") or [])
            ],
            xAxisLabel=config.get("xAxisLabel"),
            yAxisLabel=config.get("yAxisLabel"),
            description=config.get("description"),
        )
    except (ValidationError, KeyError, TypeError, ValueError) as e:
        raise LLMError("图表配置生成失败") from e


async def generate_chart_from_description(description: str) -> GeneratedChart:
    """Invent plausible sample data and a chart config from a text description."""
    config = await invoke_llm_json(
        [
            {
                "role": "system",
                "content": "你是一位学术数据可视化专家。根据用户的文字描述，生成示例数据和图表配置。\n数据应真实合理，适合学术论文使用。",
            },
            {"role": "user", "content": f"请根据以下描述生成图表数据和配置：{description}"},
        ],
        schema_name="chart_with_data",
        schema=_CHART_WITH_DATA_SCHEMA,
    )
    try:
        return GeneratedChart.model_validate(config)
    except ValidationError as e:
        raise LLMError("图表生成失败") from e

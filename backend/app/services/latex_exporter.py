"""LaTeX export with academic journal and thesis templates."""

import re
from typing import Literal, Sequence
from pydantic import BaseModel, Field
from app.utils.markdown_blocks import Block, parse_blocks, parse_inline

LatexTemplateId = Literal[
    "generic",
    "ieee",
    "nature",
    "elsevier",
    "springer",
    "cn_cjc",
    "cn_jos",
    "thesis_undergrad",
    "thesis_master",
    "thesis_phd",
]


class TemplateConfig(BaseModel):
    document_class: str
    packages: list[str]
    front_matter_rules: list[str] = Field(default_factory=list)
    bibliography_style: str | None = None


_BASE_PACKAGES = [
    r"\usepackage{amsmath,amssymb}",
    r"\usepackage{graphicx}",
    r"\usepackage{booktabs}",
    r"\usepackage{hyperref}",
]


def _cn_packages(margin: str) -> list[str]:
    return [
        *_BASE_PACKAGES,
        r"\usepackage{geometry}",
        rf"\geometry{{a4paper,margin={margin}}}",
        r"\usepackage{setspace}",
    ]


TEMPLATES: dict[str, TemplateConfig] = {
    "generic": TemplateConfig(
        document_class=r"\documentclass[12pt,a4paper]{article}",
        packages=[
            r"\usepackage[utf8]{inputenc}",
            r"\usepackage[T1]{fontenc}",
            r"\usepackage{ctex}",
            *_BASE_PACKAGES,
            r"\usepackage[margin=2.5cm]{geometry}",
            r"\usepackage{setspace}",
        ],
        front_matter_rules=[r"\onehalfspacing"],
    ),
    "ieee": TemplateConfig(
        document_class=r"\documentclass[conference]{IEEEtran}",
        packages=[
            r"\usepackage[utf8]{inputenc}",
            r"\usepackage{ctex}",
            *_BASE_PACKAGES,
            r"\usepackage{cite}",
        ],
    ),
    "nature": TemplateConfig(
        document_class=r"\documentclass[12pt]{article}",
        packages=[
            r"\usepackage[utf8]{inputenc}",
            r"\usepackage[T1]{fontenc}",
            r"\usepackage{ctex}",
            *_BASE_PACKAGES,
            r"\usepackage[margin=2cm]{geometry}",
            r"\usepackage{natbib}",
            r"\usepackage{setspace}",
        ],
        front_matter_rules=[r"\doublespacing"],
        bibliography_style="naturemag",
    ),
    "elsevier": TemplateConfig(
        document_class=r"\documentclass[preprint,12pt]{elsarticle}",
        packages=[
            r"\usepackage[utf8]{inputenc}",
            r"\usepackage{ctex}",
            *_BASE_PACKAGES,
            r"\usepackage{lineno}",
        ],
        front_matter_rules=[r"\linenumbers"],
    ),
    "springer": TemplateConfig(
        document_class=r"\documentclass[smallextended]{svjour3}",
        packages=[
            r"\usepackage[utf8]{inputenc}",
            r"\usepackage{ctex}",
            *_BASE_PACKAGES,
        ],
    ),
    "cn_cjc": TemplateConfig(
        document_class=r"\documentclass[UTF8,zihao=-4]{ctexart}",
        packages=_cn_packages("2.5cm"),
        front_matter_rules=[r"\onehalfspacing"],
        bibliography_style="gbt7714-numerical",
    ),
    "cn_jos": TemplateConfig(
        document_class=r"\documentclass[UTF8,zihao=-4]{ctexart}",
        packages=_cn_packages("2.2cm"),
        front_matter_rules=[r"\setstretch{1.3}"],
        bibliography_style="gbt7714-numerical",
    ),
    "thesis_undergrad": TemplateConfig(
        document_class=r"\documentclass[UTF8,zihao=-4,oneside]{ctexrep}",
        packages=_cn_packages("2.5cm"),
        front_matter_rules=[r"\onehalfspacing"],
        bibliography_style="gbt7714-numerical",
    ),
    "thesis_master": TemplateConfig(
        document_class=r"\documentclass[UTF8,zihao=-4,oneside]{ctexbook}",
        packages=_cn_packages("2.5cm"),
        front_matter_rules=[r"\setstretch{1.5}"],
        bibliography_style="gbt7714-numerical",
    ),
    "thesis_phd": TemplateConfig(
        document_class=r"\documentclass[UTF8,zihao=-4,oneside]{ctexbook}",
        packages=_cn_packages("2.8cm"),
        front_matter_rules=[r"\setstretch{1.6}"],
        bibliography_style="gbt7714-numerical",
    ),
}

LATEX_TEMPLATE_IDS: tuple[str, ...] = tuple(TEMPLATES)

_HEADING_COMMANDS = {1: "section", 2: "subsection", 3: "subsubsection", 4: "paragraph"}

_LATEX_SPECIALS = {
    "\\": r"\textbackslash{}",
    "&": r"\&",
    "%": r"\%",
    "$": r"\$",
    "#": r"\#",
    "_": r"\_",
    "{": r"\{",
    "}": r"\}",
    "~": r"\textasciitilde{}",
    "^": r"\textasciicircum{}",
}
_LATEX_SPECIALS_RE = re.compile(r"[\\&%$#_{}~^]")


def escape_latex(text: str) -> str:
    return _LATEX_SPECIALS_RE.sub(lambda m: _LATEX_SPECIALS[m.group(0)], text)


def build_preamble(template: str) -> str:
    config = TEMPLATES.get(template, TEMPLATES["generic"])
    lines = [config.document_class, *config.packages]
    if config.bibliography_style:
        lines.append(rf"\bibliographystyle{{{config.bibliography_style}}}")
    lines.extend(config.front_matter_rules)
    return "\n".join(lines)


def inline_to_latex(text: str) -> str:
    """Escape each run first, then wrap it, so markup never gets escaped."""
    out: list[str] = []
    for run in parse_inline(text):
        if run.citation is not None:
            out.append(rf"\cite{{ref{run.citation}}}")
            continue
        body = escape_latex(run.text)
        if run.code:
            body = rf"\texttt{{{body}}}"
        elif run.bold and run.italic:
            body = rf"\textbf{{\textit{{{body}}}}}"
        elif run.bold:
            body = rf"\textbf{{{body}}}"
        elif run.italic:
            body = rf"\textit{{{body}}}"
        out.append(body)
    return "".join(out)


def _table_to_latex(rows: list[list[str]]) -> str:
    header, body = rows[0], rows[1:]
    col_spec = " ".join("c" for _ in header)
    lines = [
        r"\begin{table}[htbp]",
        r"\centering",
        rf"\begin{{tabular}}{{{col_spec}}}",
        r"\toprule",
        " & ".join(inline_to_latex(cell) for cell in header) + r" \\",
        r"\midrule",
    ]
    for row in body:
        lines.append(" & ".join(inline_to_latex(cell) for cell in row) + r" \\")
    lines.extend([r"\bottomrule", r"\end{tabular}", r"\end{table}"])
    return "\n".join(lines)


def _blocks_to_latex(blocks: Sequence[Block]) -> list[str]:
    out: list[str] = []
    open_list: str | None = None

    def close_list():
        nonlocal open_list
        if open_list:
            out.append(rf"\end{{{open_list}}}")
            open_list = None

    for block in blocks:
        if block.kind in ("bullet", "numbered"):
            env = "itemize" if block.kind == "bullet" else "enumerate"
            if open_list != env:
                close_list()
                out.append(rf"\begin{{{env}}}")
                open_list = env
            out.append(rf"\item {inline_to_latex(block.text)}")
            continue

        close_list()
        if block.kind == "heading":
            command = _HEADING_COMMANDS.get(block.level, "paragraph")
            out.append(f"\\{command}{{{inline_to_latex(block.text)}}}")
        elif block.kind == "table":
            out.append(_table_to_latex(block.rows))
        elif block.kind == "code":
            out.append("\\begin{verbatim}\n" + block.text + "\n\\end{verbatim}")
        elif block.kind == "blank":
            if out and out[-1] != "":
                out.append("")
        else:
            out.append(inline_to_latex(block.text))

    close_list()
    return out


def markdown_to_latex(markdown: str) -> str:
    return "\n".join(_blocks_to_latex(parse_blocks(markdown))).strip()


def generate_latex_document(
    title: str,
    content: str,
    template: str = "generic",
    authors: Sequence[str] | None = None,
    abstract: str | None = None,
    keywords: Sequence[str] | None = None,
) -> str:
    """Assemble a complete .tex source for the given template."""
    authors = [a for a in (authors or []) if a and a.strip()]
    keywords = [k for k in (keywords or []) if k and k.strip()]

    author_str = ""
    if authors:
        if template == "elsevier":
            author_str = "\n".join(rf"\author{{{escape_latex(a)}}}" for a in authors)
        else:
            joined = r" \and ".join(escape_latex(a) for a in authors)
            author_str = rf"\author{{{joined}}}"

    abstract_section = ""
    if abstract:
        abstract_section = f"\\begin{{abstract}}\n{inline_to_latex(abstract)}\n\\end{{abstract}}"

    keywords_section = ""
    if keywords:
        escaped = [escape_latex(k) for k in keywords]
        if template == "elsevier":
            joined = r" \sep ".join(escaped)
            keywords_section = f"\\begin{{keyword}}\n{joined}\n\\end{{keyword}}"
        else:
            keywords_section = rf"\noindent\textbf{{关键词：}}{'；'.join(escaped)}\\"

    return (
        f"{build_preamble(template)}\n\n"
        f"\\title{{{escape_latex(title)}}}\n"
        f"{author_str}\n"
        "\\date{\\today}\n\n"
        "\\begin{document}\n\n"
        "\\maketitle\n\n"
        f"{abstract_section}\n\n"
        f"{keywords_section}\n\n"
        f"{markdown_to_latex(content)}\n\n"
        "\\end{document}\n"
    )


def get_template_descriptions() -> list[dict]:
    return [
        {
            "category": "international_journal",
            "category_name": "国际期刊",
            "description": "适用于英文投稿或国际出版社模板要求。",
            "templates": [
                {"id": "generic", "name": "通用模板", "description": "通用学术论文版式，12pt字号，A4纸张", "use_case": "预审稿与跨学科初稿"},
                {"id": "ieee", "name": "IEEE", "description": "IEEE会议/期刊格式，双栏排版", "use_case": "计算机与电子信息会议投稿"},
                {"id": "nature", "name": "Nature", "description": "Nature风格，双倍行距", "use_case": "生命科学与综合类国际期刊"},
                {"id": "elsevier", "name": "Elsevier", "description": "Elsevier 预印版格式，含行号", "use_case": "工程与应用科学期刊投稿"},
                {"id": "springer", "name": "Springer", "description": "Springer 期刊模板风格", "use_case": "Springer 系列期刊投稿"},
            ],
        },
        {
            "category": "domestic_journal",
            "category_name": "国内期刊",
            "description": "适用于中文核心与国内学术期刊常见规范。",
            "templates": [
                {"id": "cn_cjc", "name": "中国通信（CJC）", "description": "中文期刊模板（通信方向）", "use_case": "通信与信息网络方向中文稿件"},
                {"id": "cn_jos", "name": "软件学报（JOS）", "description": "中文期刊模板（软件与系统方向）", "use_case": "计算机软件与理论研究投稿"},
            ],
        },
        {
            "category": "thesis",
            "category_name": "学位论文",
            "description": "适用于高校毕业论文与研究生学位论文写作。",
            "templates": [
                {"id": "thesis_undergrad", "name": "本科毕业论文", "description": "本科毕业设计/论文基础版式", "use_case": "本科毕业论文提交与答辩材料"},
                {"id": "thesis_master", "name": "硕士学位论文", "description": "硕士论文常用章节与行距设置", "use_case": "硕士学位论文送审与归档"},
                {"id": "thesis_phd", "name": "博士学位论文", "description": "博士论文排版与较宽边距", "use_case": "博士学位论文预审与终稿"},
            ],
        },
    ]

"""Citation formatting for GB/T 7714, APA, MLA and Chicago."""

from typing import Literal
from pydantic import BaseModel, Field

CitationStyle = Literal["gbt7714", "apa", "mla", "chicago"]

GBT7714_TYPE_CODES = {
    "journal": "J",
    "book": "M",
    "thesis": "D",
    "conference": "C",
    "report": "R",
    "standard": "S",
    "patent": "P",
    "web": "EB/OL",
}


class ReferenceData(BaseModel):
    title: str
    authors: list[str] = Field(default_factory=list)
    document_type: str | None = None
    year: int | None = None
    journal: str | None = None
    volume: str | None = None
    issue: str | None = None
    pages: str | None = None
    doi: str | None = None
    url: str | None = None


def _clean(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _authors(ref: ReferenceData) -> list[str]:
    return [a.strip() for a in ref.authors if a and a.strip()]


def _is_terminated(text: str) -> bool:
    return text.rstrip('"').endswith((".", "?", "!", "。"))


def _finish(text: str) -> str:
    """Terminate with a single period, also when the text ends in a quoted title."""
    text = text.rstrip()
    if not text or _is_terminated(text):
        return text
    return text + "."


def _join_sentences(parts: list[str], sep: str = ". ") -> str:
    parts = [p for p in parts if p]
    out = ""
    for part in parts:
        if not out:
            out = part
        elif _is_terminated(out):
            out = f"{out} {part}"
        else:
            out = f"{out}{sep}{part}"
    return _finish(out)


def _gbt7714_authors(authors: list[str]) -> str:
    if len(authors) <= 3:
        return ", ".join(authors)
    return f"{', '.join(authors[:3])}, 等"


def _apa_authors(authors: list[str]) -> str:
    if len(authors) == 1:
        return authors[0]
    if len(authors) <= 20:
        return f"{', '.join(authors[:-1])}, & {authors[-1]}"
    return f"{', '.join(authors[:19])}, ... {authors[-1]}"


def _mla_authors(authors: list[str]) -> str:
    if len(authors) == 1:
        return authors[0]
    if len(authors) == 2:
        return f"{authors[0]}, and {authors[1]}"
    return f"{authors[0]}, et al."


def _chicago_authors(authors: list[str]) -> str:
    if len(authors) == 1:
        return authors[0]
    if len(authors) == 2:
        return f"{authors[0]} and {authors[1]}"
    if len(authors) <= 10:
        return f"{', '.join(authors[:-1])}, and {authors[-1]}"
    return f"{', '.join(authors[:7])}, et al."


def format_gbt7714(ref: ReferenceData, fallback_type_code: str = "J") -> str:
    """作者. 题名[文献类型标识]. 刊名, 年, 卷(期), 页码."""
    parts: list[str] = []
    authors = _authors(ref)
    if authors:
        parts.append(_gbt7714_authors(authors))

    code = GBT7714_TYPE_CODES.get(ref.document_type or "", fallback_type_code)
    parts.append(f"{_clean(ref.title)}[{code}]")

    source: list[str] = []
    if _clean(ref.journal):
        source.append(_clean(ref.journal))
    if ref.year:
        source.append(str(ref.year))
    volume, issue = _clean(ref.volume), _clean(ref.issue)
    if volume:
        source.append(f"{volume}({issue})" if issue else volume)
    elif issue:
        source.append(f"({issue})")
    if _clean(ref.pages):
        source.append(_clean(ref.pages))
    if source:
        parts.append(", ".join(source))

    if ref.document_type == "web" and _clean(ref.url):
        parts.append(_clean(ref.url))

    return _join_sentences(parts)


def format_apa(ref: ReferenceData) -> str:
    parts: list[str] = []
    authors = _authors(ref)
    if authors:
        parts.append(_apa_authors(authors))
    if ref.year:
        parts.append(f"({ref.year})")
    parts.append(_clean(ref.title))

    journal = _clean(ref.journal)
    if journal:
        segment = journal
        volume, issue = _clean(ref.volume), _clean(ref.issue)
        if volume:
            segment += f", {volume}"
            if issue:
                segment += f"({issue})"
        if _clean(ref.pages):
            segment += f", {_clean(ref.pages)}"
        parts.append(segment)

    doi = _clean(ref.doi)
    if doi:
        parts.append(doi if doi.startswith("http") else f"https://doi.org/{doi}")

    return _join_sentences(parts)


def format_mla(ref: ReferenceData) -> str:
    parts: list[str] = []
    authors = _authors(ref)
    if authors:
        parts.append(_finish(_mla_authors(authors)))
    parts.append(f'"{_finish(_clean(ref.title))}"')

    journal = _clean(ref.journal)
    if journal:
        segment = journal
        if _clean(ref.volume):
            segment += f", vol. {_clean(ref.volume)}"
        if _clean(ref.issue):
            segment += f", no. {_clean(ref.issue)}"
        if ref.year:
            segment += f", {ref.year}"
        if _clean(ref.pages):
            segment += f", pp. {_clean(ref.pages)}"
        parts.append(segment)

    return _finish(" ".join(parts))


def format_chicago(ref: ReferenceData) -> str:
    parts: list[str] = []
    authors = _authors(ref)
    if authors:
        parts.append(_finish(_chicago_authors(authors)))
    parts.append(f'"{_finish(_clean(ref.title))}"')

    journal = _clean(ref.journal)
    if journal:
        segment = journal
        if _clean(ref.volume):
            segment += f" {_clean(ref.volume)}"
        if _clean(ref.issue):
            segment += f", no. {_clean(ref.issue)}"
        if ref.year:
            segment += f" ({ref.year})"
        if _clean(ref.pages):
            segment += f": {_clean(ref.pages)}"
        parts.append(segment)

    return _finish(" ".join(parts))


_FORMATTERS = {
    "gbt7714": format_gbt7714,
    "apa": format_apa,
    "mla": format_mla,
    "chicago": format_chicago,
}


def format_reference(ref: ReferenceData, style: str = "gbt7714") -> str:
    """Format a reference in the requested style; unknown styles use GB/T 7714."""
    formatter = _FORMATTERS.get(style, format_gbt7714)
    return formatter(ref)

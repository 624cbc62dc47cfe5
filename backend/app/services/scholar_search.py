import logging
from typing import Any
import httpx
from app.core.config import get_settings

logger = logging.getLogger(__name__)

SEARCH_TIMEOUT_SECONDS = 30.0


class ScholarConfigError(Exception):
    """The scholar API key is not configured."""


class ScholarUpstreamError(Exception):
    def __init__(self, status_code: int, body: str):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Semantic Scholar 请求失败（{status_code}）：{body or '未知错误'}")


def _auth_headers() -> dict[str, str]:
    headers = get_settings().ai4scholar_headers()
    if not headers:
        raise ScholarConfigError("未配置 AI4SCHOLAR_API_KEY，无法调用 Semantic Scholar 接口")
    return headers


def build_search_params(
    query: str,
    limit: int = 10,
    offset: int | None = None,
    year: str | None = None,
    fields_of_study: str | None = None,
    open_access_only: bool | None = None,
) -> dict[str, str]:
    params = {"query": query, "limit": str(limit)}
    if offset is not None:
        params["offset"] = str(offset)
    if year:
        params["year"] = year
    if fields_of_study:
        params["fields_of_study"] = fields_of_study
    if open_access_only is not None:
        params["open_access_only"] = "true" if open_access_only else "false"
    return params


async def search_papers(
    query: str,
    limit: int = 10,
    offset: int | None = None,
    year: str | None = None,
    fields_of_study: str | None = None,
    open_access_only: bool | None = None,
) -> dict[str, Any]:
    """Proxy a Semantic Scholar paper search through ai4scholar."""
    settings = get_settings()
    headers = _auth_headers()
    params = build_search_params(query, limit, offset, year, fields_of_study, open_access_only)
    endpoint = f"{settings.ai4scholar_base_url.rstrip('/')}/graph/v1/paper/search"

    try:
        async with httpx.AsyncClient(timeout=SEARCH_TIMEOUT_SECONDS) as client:
            resp = await client.get(endpoint, params=params, headers=headers)
    except httpx.HTTPError as e:
        logger.warning("Scholar search request failed: %s", e)
        raise ScholarUpstreamError(0, str(e)) from e

    if resp.status_code != 200:
        raise ScholarUpstreamError(resp.status_code, resp.text)

    return resp.json()

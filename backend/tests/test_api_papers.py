"""API tests for auth, paper lifecycle, versions, recycle bin and exports."""

import pytest

from app.api.v1 import papers as papers_api
from app.services import paper_generation
from app.services.llm import LLMError
from conftest import API, PASSWORD, login_as, register_user

RAW_OUTLINE = "# 基于深度学习的图像识别研究\n## 第一章 绪论\n### 1.1 研究背景"


def fake_invoke_llm(answer: str):
    async def _invoke(messages, **kwargs):
        return answer
    return _invoke


def set_content(client, paper_id: str, content: str = "# 绪论\n深度学习[1]发展迅速。") -> dict:
    resp = client.put(f"{API}/papers/{paper_id}", json={"content": content})
    assert resp.status_code == 200, resp.text
    return resp.json()


class TestAuth:
    """Registration, login and cookie sessions."""

    def test_register_logs_in(self, client, user):
        resp = client.get(f"{API}/auth/me")
        assert resp.status_code == 200
        assert resp.json()["email"] == user["email"]
        assert resp.json()["role"] == "user"

    def test_duplicate_email(self, client, user):
        resp = client.post(f"{API}/auth/register", json={"email": user["email"], "password": PASSWORD})
        assert resp.status_code == 400

    def test_wrong_password(self, client, user):
        resp = client.post(f"{API}/auth/login", data={"username": user["email"], "password": "wrong-pass"})
        assert resp.status_code == 401

    def test_logout_then_login(self, client, user):
        assert client.post(f"{API}/auth/logout").status_code == 200
        assert client.get(f"{API}/auth/me").status_code == 401
        login_as(client, user)
        assert client.get(f"{API}/auth/me").status_code == 200

    def test_refresh(self, client, user):
        resp = client.post(f"{API}/auth/refresh")
        assert resp.status_code == 200

    def test_requires_auth(self, client):
        client.cookies.clear()
        assert client.get(f"{API}/papers").status_code == 401


class TestPaperCrud:
    """Creating, listing and editing papers."""

    def test_create_and_get(self, client, paper):
        assert paper["status"] == "generating"
        assert paper["outline"] is None
        resp = client.get(f"{API}/papers/{paper['id']}")
        assert resp.status_code == 200
        assert resp.json()["title"] == paper["title"]

    def test_list_excludes_body(self, client, paper):
        resp = client.get(f"{API}/papers")
        assert resp.status_code == 200
        items = resp.json()
        assert [p["id"] for p in items] == [paper["id"]]
        assert "content" not in items[0]

    def test_invalid_type(self, client, user):
        resp = client.post(f"{API}/papers", json={"title": "x", "type": "novel"})
        assert resp.status_code == 422

    def test_edit_records_version(self, client, paper):
        resp = client.put(
            f"{API}/papers/{paper['id']}",
            json={"content": "新的正文", "change_description": "手动修改"},
        )
        assert resp.status_code == 200
        assert resp.json()["content"] == "新的正文"

        versions = client.get(f"{API}/papers/{paper['id']}/versions").json()
        assert len(versions) == 1
        assert versions[0]["version_number"] == 1
        assert versions[0]["change_description"] == "手动修改"

    def test_edit_default_description(self, client, paper):
        set_content(client, paper["id"])
        versions = client.get(f"{API}/papers/{paper['id']}/versions").json()
        assert versions[0]["change_description"] == "编辑修改"

    def test_empty_edit_rejected(self, client, paper):
        assert client.put(f"{API}/papers/{paper['id']}", json={}).status_code == 400

    def test_unknown_paper(self, client, user):
        resp = client.get(f"{API}/papers/00000000-0000-0000-0000-000000000000")
        assert resp.status_code == 404

    def test_other_users_paper(self, client, paper):
        register_user(client, "Intruder")
        assert client.get(f"{API}/papers/{paper['id']}").status_code == 403
        assert client.put(f"{API}/papers/{paper['id']}", json={"content": "x"}).status_code == 403

    def test_structure_defaults(self, client, user):
        resp = client.get(f"{API}/papers/structure", params={"type": "journal"})
        assert resp.status_code == 200
        enabled = [m["module"] for m in resp.json() if m["enabled"]]
        assert enabled == ["chinese_abstract", "english_abstract", "body", "references"]


class TestGeneration:
    """Outline and content generation."""

    def test_outline_normalized_for_graduation(self, client, paper, monkeypatch):
        monkeypatch.setattr(paper_generation, "invoke_llm", fake_invoke_llm(RAW_OUTLINE))
        resp = client.post(f"{API}/papers/{paper['id']}/outline")
        assert resp.status_code == 200, resp.text
        outline = resp.json()["outline"]
        assert "## 封面" in outline
        assert "## 致谢" in outline
        assert "### 1.1 研究背景" in outline

        stored = client.get(f"{API}/papers/{paper['id']}").json()
        assert stored["status"] == "generating"
        assert stored["outline"] == outline

    def test_journal_outline_untouched(self, client, user, monkeypatch):
        created = client.post(f"{API}/papers", json={"title": "期刊论文", "type": "journal"}).json()
        monkeypatch.setattr(paper_generation, "invoke_llm", fake_invoke_llm(RAW_OUTLINE))
        resp = client.post(f"{API}/papers/{created['id']}/outline")
        assert resp.json()["outline"] == RAW_OUTLINE

    def test_content_needs_outline(self, client, paper):
        resp = client.post(f"{API}/papers/{paper['id']}/content")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "请先生成论文大纲"

    def test_versions_increase(self, client, paper, monkeypatch):
        monkeypatch.setattr(paper_generation, "invoke_llm", fake_invoke_llm(RAW_OUTLINE))
        assert client.post(f"{API}/papers/{paper['id']}/outline").status_code == 200
        assert client.post(f"{API}/papers/{paper['id']}/content").status_code == 200

        versions = client.get(f"{API}/papers/{paper['id']}/versions").json()
        assert [v["version_number"] for v in versions] == [2, 1]
        assert [v["change_description"] for v in versions] == ["生成正文", "生成大纲"]
        assert versions[1]["content"] is None

    def test_failure_marks_paper_failed(self, client, paper, monkeypatch):
        async def failing(*args, **kwargs):
            raise LLMError("provider down")

        monkeypatch.setattr(papers_api, "generate_outline", failing)
        resp = client.post(f"{API}/papers/{paper['id']}/outline")
        assert resp.status_code == 500

        stored = client.get(f"{API}/papers/{paper['id']}").json()
        assert stored["status"] == "failed"
        assert stored["error_message"] == "provider down"

    def test_content_completes_paper(self, client, paper, monkeypatch):
        monkeypatch.setattr(paper_generation, "invoke_llm", fake_invoke_llm(RAW_OUTLINE))
        client.post(f"{API}/papers/{paper['id']}/outline")
        client.post(f"{API}/papers/{paper['id']}/content")
        assert client.get(f"{API}/papers/{paper['id']}").json()["status"] == "completed"

    def test_completed_paper_stays_completed_on_failure(self, client, paper, monkeypatch):
        monkeypatch.setattr(paper_generation, "invoke_llm", fake_invoke_llm(RAW_OUTLINE))
        trace = []
        for step in ("outline", "content"):
            assert client.post(f"{API}/papers/{paper['id']}/{step}").status_code == 200
            trace.append(client.get(f"{API}/papers/{paper['id']}").json()["status"])

        async def failing(*args, **kwargs):
            raise LLMError("provider down")

        monkeypatch.setattr(papers_api, "generate_content", failing)
        assert client.post(f"{API}/papers/{paper['id']}/content").status_code == 500
        monkeypatch.setattr(papers_api, "generate_outline", failing)
        assert client.post(f"{API}/papers/{paper['id']}/outline").status_code == 500

        stored = client.get(f"{API}/papers/{paper['id']}").json()
        trace.append(stored["status"])
        assert trace == ["generating", "completed", "completed"]
        assert stored["error_message"] == "provider down"

    def test_regeneration_never_returns_to_generating(self, client, paper, monkeypatch):
        monkeypatch.setattr(paper_generation, "invoke_llm", fake_invoke_llm(RAW_OUTLINE))
        client.post(f"{API}/papers/{paper['id']}/outline")
        client.post(f"{API}/papers/{paper['id']}/content")
        assert client.post(f"{API}/papers/{paper['id']}/outline").status_code == 200
        assert client.get(f"{API}/papers/{paper['id']}").json()["status"] == "completed"

    def test_failed_paper_recovers_through_content(self, client, paper, monkeypatch):
        monkeypatch.setattr(paper_generation, "invoke_llm", fake_invoke_llm(RAW_OUTLINE))
        client.post(f"{API}/papers/{paper['id']}/outline")

        async def failing(*args, **kwargs):
            raise LLMError("timeout")

        with monkeypatch.context() as m:
            m.setattr(papers_api, "generate_content", failing)
            client.post(f"{API}/papers/{paper['id']}/content")
        assert client.get(f"{API}/papers/{paper['id']}").json()["status"] == "failed"

        assert client.post(f"{API}/papers/{paper['id']}/content").status_code == 200
        stored = client.get(f"{API}/papers/{paper['id']}").json()
        assert stored["status"] == "completed"
        assert stored["error_message"] is None

    def test_restore_version(self, client, paper):
        set_content(client, paper["id"], "第一版")
        set_content(client, paper["id"], "第二版")
        versions = client.get(f"{API}/papers/{paper['id']}/versions").json()
        first = next(v for v in versions if v["version_number"] == 1)

        resp = client.post(f"{API}/papers/versions/{first['id']}/restore")
        assert resp.status_code == 200
        assert resp.json()["content"] == "第一版"

        latest = client.get(f"{API}/papers/{paper['id']}/versions").json()[0]
        assert latest["version_number"] == 3
        assert latest["change_description"] == "恢复到版本 1"


class TestRecycleBin:
    """Soft delete, restore and permanent delete."""

    def test_soft_delete_and_restore(self, client, paper):
        assert client.delete(f"{API}/papers/{paper['id']}").status_code == 204
        assert client.get(f"{API}/papers/{paper['id']}").status_code == 404
        assert client.get(f"{API}/papers").json() == []

        deleted = client.get(f"{API}/papers/deleted").json()
        assert [p["id"] for p in deleted] == [paper["id"]]
        assert deleted[0]["deleted_at"] is not None

        resp = client.post(f"{API}/papers/{paper['id']}/restore")
        assert resp.status_code == 200
        assert resp.json()["is_deleted"] is False
        assert client.get(f"{API}/papers/deleted").json() == []

    def test_restore_active_paper(self, client, paper):
        assert client.post(f"{API}/papers/{paper['id']}/restore").status_code == 400

    def test_permanent_delete(self, client, paper):
        client.delete(f"{API}/papers/{paper['id']}")
        assert client.delete(f"{API}/papers/{paper['id']}/permanent").status_code == 204
        assert client.get(f"{API}/papers/deleted").json() == []
        assert client.post(f"{API}/papers/{paper['id']}/restore").status_code == 404


class TestExports:
    """Word, PDF and LaTeX export plus owner-checked downloads."""

    def test_export_needs_content(self, client, paper):
        assert client.post(f"{API}/papers/{paper['id']}/export/word").status_code == 400

    def test_word_export_and_download(self, client, user, paper):
        set_content(client, paper["id"])
        resp = client.post(
            f"{API}/papers/{paper['id']}/export/word",
            json={"style_profile": {"body_font_size_pt": 10.5, "line_spacing": {"mode": "exact", "value": 20}}},
        )
        assert resp.status_code == 200, resp.text
        key = resp.json()["file_key"]
        assert key.startswith(f"users/{user['id']}/papers/{paper['id']}/")
        assert key.endswith(".docx")
        assert resp.json()["file_url"] == f"{API}/files/{key}"

        download = client.get(resp.json()["file_url"])
        assert download.status_code == 200
        assert download.content[:2] == b"PK"

        assert client.get(f"{API}/papers/{paper['id']}").json()["word_file_url"] == resp.json()["file_url"]

        register_user(client, "Stranger")
        assert client.get(resp.json()["file_url"]).status_code == 403

    def test_pdf_export_without_font(self, client, paper):
        set_content(client, paper["id"])
        resp = client.post(f"{API}/papers/{paper['id']}/export/pdf")
        assert resp.status_code == 400
        assert "PDF_FONT_PATH" in resp.json()["detail"]

    def test_latex_export(self, client, paper):
        set_content(client, paper["id"])
        resp = client.post(
            f"{API}/papers/{paper['id']}/export/latex",
            json={"template": "ieee", "authors": ["张三"], "keywords": ["深度学习"]},
        )
        assert resp.status_code == 200, resp.text
        latex = resp.json()["latex_content"]
        assert latex.startswith(r"\documentclass[conference]{IEEEtran}")
        assert r"\cite{ref1}" in latex
        assert resp.json()["file_key"].endswith(".tex")

    def test_latex_unknown_template(self, client, paper):
        set_content(client, paper["id"])
        resp = client.post(f"{API}/papers/{paper['id']}/export/latex", json={"template": "acm"})
        assert resp.status_code == 422

    def test_latex_templates(self, client, user):
        resp = client.get(f"{API}/papers/latex/templates")
        assert resp.status_code == 200
        assert {g["category"] for g in resp.json()} == {"international_journal", "domestic_journal", "thesis"}

    @pytest.mark.parametrize("key", ["users/not-a-uuid/x.docx", "shared/x.docx"])
    def test_download_rejects_foreign_keys(self, client, user, key):
        assert client.get(f"{API}/files/{key}").status_code == 403


class TestHealth:
    """Liveness endpoint."""

    def test_reports_optional_features(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["features"] == {"llm": True, "scholar_search": False, "pdf_export": False}

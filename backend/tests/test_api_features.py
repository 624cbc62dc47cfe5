"""API tests for references, quality, polish, translation, charts, knowledge base and organization."""

import asyncio
import base64

from app.api.v1 import knowledge as knowledge_api
from app.services import chart_generator, knowledge_base, quality_checker, text_polisher, translator
from conftest import API, register_user

QUALITY_RESULT = {
    "overallScore": 82,
    "plagiarismScore": 10,
    "grammarScore": 88,
    "academicStyleScore": 79.6,
    "structureScore": 85,
    "issues": [{"type": "style", "severity": "low", "description": "口语化表达", "location": "第一章"}],
    "suggestions": ["补充实验细节"],
}


def fake_llm_json(answer: dict):
    async def _invoke(messages, **kwargs):
        return answer
    return _invoke


def fake_llm(answer: str):
    async def _invoke(messages, **kwargs):
        return answer
    return _invoke


def set_content(client, paper_id: str, content: str) -> None:
    resp = client.put(f"{API}/papers/{paper_id}", json={"content": content})
    assert resp.status_code == 200, resp.text


class TestReferences:
    """Adding, formatting and listing references."""

    def test_add_and_reformat(self, client, paper):
        resp = client.post(f"{API}/references", json={"paper_id": paper["id"], "title": "Untitled study"})
        assert resp.status_code == 201, resp.text
        reference = resp.json()
        assert reference["citation_format"] == "gbt7714"
        assert reference["formatted_citation"] == "Untitled study[J]."

        resp = client.patch(f"{API}/references/{reference['id']}/format", json={"citation_format": "apa"})
        assert resp.status_code == 200
        assert resp.json()["formatted_citation"] == "Untitled study."

        listed = client.get(f"{API}/references", params={"paper_id": paper["id"]}).json()
        assert [r["id"] for r in listed] == [reference["id"]]

    def test_preview_does_not_store(self, client, paper):
        resp = client.post(f"{API}/references/preview", json={"title": "简单论文标题"})
        assert resp.status_code == 200
        assert resp.json()["formatted_citation"] == "简单论文标题[J]."
        assert client.get(f"{API}/references", params={"paper_id": paper["id"]}).json() == []

    def test_delete(self, client, paper):
        reference = client.post(f"{API}/references", json={"paper_id": paper["id"], "title": "T"}).json()
        assert client.delete(f"{API}/references/{reference['id']}").status_code == 204
        assert client.get(f"{API}/references", params={"paper_id": paper["id"]}).json() == []

    def test_other_user_cannot_reformat(self, client, paper):
        reference = client.post(f"{API}/references", json={"paper_id": paper["id"], "title": "T"}).json()
        register_user(client, "Other")
        resp = client.patch(f"{API}/references/{reference['id']}/format", json={"citation_format": "mla"})
        assert resp.status_code == 403


class TestQuality:
    """Quality checks and the dashboard built on them."""

    def test_check_requires_content(self, client, paper):
        assert client.post(f"{API}/quality/papers/{paper['id']}/check").status_code == 400

    def test_check_history_and_dashboard(self, client, paper, monkeypatch):
        set_content(client, paper["id"], "# 绪论\n正文内容。")
        assert client.get(f"{API}/quality/papers/{paper['id']}/latest").json() is None

        monkeypatch.setattr(quality_checker, "invoke_llm_json", fake_llm_json(QUALITY_RESULT))
        resp = client.post(f"{API}/quality/papers/{paper['id']}/check")
        assert resp.status_code == 201, resp.text
        check = resp.json()
        assert check["overall_score"] == 82
        assert check["academic_style_score"] == 80
        assert check["issues"][0]["severity"] == "low"

        latest = client.get(f"{API}/quality/papers/{paper['id']}/latest").json()
        assert latest["id"] == check["id"]
        assert len(client.get(f"{API}/quality/papers/{paper['id']}/history").json()) == 1

        stats = client.get(f"{API}/dashboard/statistics").json()
        assert stats["total_papers"] == 1
        assert stats["average_quality_score"] == 82.0
        assert stats["paper_type_distribution"] == {"graduation": 1}
        assert len(stats["quality_trend"]) == 1
        assert stats["recent_papers"][0]["id"] == paper["id"]

        comparison = client.post(f"{API}/dashboard/quality-comparison", json={"paper_ids": [paper["id"]]}).json()
        assert comparison[0]["overall_score"] == 82

    def test_comparison_skips_unchecked(self, client, paper):
        resp = client.post(f"{API}/dashboard/quality-comparison", json={"paper_ids": [paper["id"]]})
        assert resp.status_code == 200
        assert resp.json() == []

    def test_grammar(self, client, user, monkeypatch):
        monkeypatch.setattr(
            quality_checker,
            "invoke_llm_json",
            fake_llm_json({"errors": [{"text": "的的", "suggestion": "的", "position": 3}]}),
        )
        resp = client.post(f"{API}/quality/grammar", json={"text": "这是的的测试"})
        assert resp.status_code == 200
        assert resp.json()["errors"] == [{"text": "的的", "suggestion": "的", "position": 3}]


class TestPolish:
    """Polishing text and applying it to the paper."""

    def test_polish_and_apply(self, client, paper, monkeypatch):
        set_content(client, paper["id"], "这个方法很好用。其他内容。")
        monkeypatch.setattr(
            text_polisher,
            "invoke_llm_json",
            fake_llm_json({
                "polishedText": "该方法具有良好的适用性。",
                "suggestions": [{"text": "该方法较为有效。", "explanation": "更学术", "confidence": 0.8}],
            }),
        )
        resp = client.post(
            f"{API}/polish/text",
            json={"text": "这个方法很好用。", "polish_type": "academic", "paper_id": paper["id"]},
        )
        assert resp.status_code == 200, resp.text
        body = resp.json()
        assert body["polished_text"] == "该方法具有良好的适用性。"
        assert body["history_id"] is not None

        resp = client.post(f"{API}/polish/history/{body['history_id']}/apply")
        assert resp.status_code == 200
        assert resp.json()["applied"] is True

        stored = client.get(f"{API}/papers/{paper['id']}").json()
        assert stored["content"] == "该方法具有良好的适用性。其他内容。"
        versions = client.get(f"{API}/papers/{paper['id']}/versions").json()
        assert versions[0]["change_description"] == "应用润色"

        # a second apply changes nothing
        client.post(f"{API}/polish/history/{body['history_id']}/apply")
        assert len(client.get(f"{API}/papers/{paper['id']}/versions").json()) == len(versions)

    def test_polish_without_paper_keeps_no_history(self, client, paper, monkeypatch):
        monkeypatch.setattr(text_polisher, "invoke_llm_json", fake_llm_json({"polishedText": "好", "suggestions": []}))
        resp = client.post(f"{API}/polish/text", json={"text": "不错"})
        assert resp.json()["history_id"] is None
        assert client.get(f"{API}/polish/history", params={"paper_id": paper["id"]}).json() == []

    def test_paragraphs(self, client, paper, monkeypatch):
        monkeypatch.setattr(text_polisher, "invoke_llm_json", fake_llm_json({"polishedText": "润色", "suggestions": []}))
        resp = client.post(
            f"{API}/polish/paragraphs",
            json={"paragraphs": ["第一段", "", "润色"], "paper_id": paper["id"]},
        )
        assert resp.json()["paragraphs"] == ["润色", "", "润色"]
        history = client.get(f"{API}/polish/history", params={"paper_id": paper["id"]}).json()
        assert [h["original_text"] for h in history] == ["第一段"]


class TestTranslation:
    """Academic translation."""

    def test_translate_and_history(self, client, user, monkeypatch):
        monkeypatch.setattr(
            translator,
            "invoke_llm_json",
            fake_llm_json({"translatedText": "Image recognition", "terminology": [{"source": "图像识别", "target": "image recognition"}]}),
        )
        resp = client.post(f"{API}/translation/translate", json={"text": "图像识别", "domain": "computer_science"})
        assert resp.status_code == 201, resp.text
        assert resp.json()["translated_text"] == "Image recognition"
        assert resp.json()["terminology"] == [{"source": "图像识别", "target": "image recognition"}]

        history = client.get(f"{API}/translation/history").json()
        assert [t["id"] for t in history] == [resp.json()["id"]]

    def test_same_language_rejected(self, client, user):
        resp = client.post(f"{API}/translation/translate", json={"text": "x", "source_lang": "en", "target_lang": "en"})
        assert resp.status_code == 400

    def test_unknown_domain_rejected(self, client, user):
        resp = client.post(f"{API}/translation/translate", json={"text": "x", "domain": "astrology"})
        assert resp.status_code == 422

    def test_polish(self, client, user, monkeypatch):
        monkeypatch.setattr(translator, "invoke_llm", fake_llm("Polished text."))
        resp = client.post(f"{API}/translation/polish", json={"text": "Some text."})
        assert resp.json() == {"polished_text": "Polished text."}

    def test_domains(self, client):
        values = [d["value"] for d in client.get(f"{API}/translation/domains").json()]
        assert "general" in values and len(values) == 8


class TestCharts:
    """Chart generation from CSV."""

    CONFIG = {
        "chartType": "bar",
        "title": "模型准确率",
        "xAxisKey": "模型",
        "dataKeys": [{"key": "准确率", "name": "准确率", "colorIndex": 0}],
        "xAxisLabel": "模型",
        "yAxisLabel": "准确率",
        "description": "不同模型对比",
    }

    def test_csv_chart_numbering(self, client, paper, monkeypatch):
        monkeypatch.setattr(chart_generator, "invoke_llm_json", fake_llm_json(self.CONFIG))
        payload = {"paper_id": paper["id"], "csv_data": "模型,准确率\nCNN,0.95\nRNN,0.9"}

        first = client.post(f"{API}/charts/csv", json=payload)
        assert first.status_code == 201, first.text
        second = client.post(f"{API}/charts/csv", json=payload).json()
        assert first.json()["figure_number"] == 1
        assert second["figure_number"] == 2
        assert first.json()["data_source"][0] == {"模型": "CNN", "准确率": 0.95}
        assert first.json()["embed_url"] == f"/charts?paperId={paper['id']}&chartId={first.json()['id']}"

        charts = client.get(f"{API}/charts", params={"paper_id": paper["id"]}).json()
        assert [c["figure_number"] for c in charts] == [1, 2]

    def test_numbering_after_delete(self, client, paper, monkeypatch):
        monkeypatch.setattr(chart_generator, "invoke_llm_json", fake_llm_json(self.CONFIG))
        payload = {"paper_id": paper["id"], "csv_data": "a,b\n1,2"}
        first = client.post(f"{API}/charts/csv", json=payload).json()
        second = client.post(f"{API}/charts/csv", json=payload).json()
        assert client.delete(f"{API}/charts/{first['id']}").status_code == 204

        third = client.post(f"{API}/charts/csv", json=payload).json()
        assert third["figure_number"] == 3
        charts = client.get(f"{API}/charts", params={"paper_id": paper["id"]}).json()
        assert sorted(c["figure_number"] for c in charts) == [second["figure_number"], 3]

    def test_bad_csv(self, client, paper):
        resp = client.post(f"{API}/charts/csv", json={"paper_id": paper["id"], "csv_data": "only header"})
        assert resp.status_code == 400

    def test_update_and_delete(self, client, paper, monkeypatch):
        monkeypatch.setattr(chart_generator, "invoke_llm_json", fake_llm_json(self.CONFIG))
        chart = client.post(f"{API}/charts/csv", json={"paper_id": paper["id"], "csv_data": "a,b\n1,2"}).json()

        resp = client.patch(f"{API}/charts/{chart['id']}", json={"title": "新标题", "chart_type": "line"})
        assert resp.json()["title"] == "新标题"
        assert resp.json()["chart_type"] == "line"

        assert client.delete(f"{API}/charts/{chart['id']}").status_code == 204
        assert client.get(f"{API}/charts/{chart['id']}").status_code == 404


class TestKnowledgeBase:
    """Document upload, parsing and grounded generation."""

    TEXT = "卷积神经网络在图像识别任务中表现优异。"

    def upload(self, client, paper_id=None, text=None):
        content = base64.b64encode((text or self.TEXT).encode("utf-8")).decode()
        return client.post(
            f"{API}/knowledge/upload/base64",
            json={"file_name": "notes.txt", "content_base64": content, "mime_type": "text/plain", "paper_id": paper_id},
        )

    def test_base64_text_upload(self, client, paper):
        resp = self.upload(client, paper["id"])
        assert resp.status_code == 201, resp.text
        document = resp.json()
        assert document["status"] == "ready"
        assert document["metadata"]["page_count"] == 0

        detail = client.get(f"{API}/knowledge/{document['id']}").json()
        assert detail["extracted_text"] == self.TEXT

        listed = client.get(f"{API}/knowledge", params={"paper_id": paper["id"]}).json()
        assert [d["id"] for d in listed] == [document["id"]]

    def test_multipart_upload(self, client, user):
        resp = client.post(
            f"{API}/knowledge/upload",
            files={"file": ("notes.txt", self.TEXT.encode("utf-8"), "text/plain")},
        )
        assert resp.status_code == 201, resp.text
        assert resp.json()["file_size"] == len(self.TEXT.encode("utf-8"))

    def test_multipart_pdf_header_checked(self, client, user):
        resp = client.post(
            f"{API}/knowledge/upload",
            files={"file": ("paper.pdf", b"not really a pdf", "application/pdf")},
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid file format"

    def test_extraction_runs_in_worker_thread(self, client, user, monkeypatch):
        calls = []
        real_extract = knowledge_api.extract_text

        def recording_extract(content, mime_type):
            try:
                asyncio.get_running_loop()
                calls.append("event loop")
            except RuntimeError:
                calls.append("worker thread")
            return real_extract(content, mime_type)

        monkeypatch.setattr(knowledge_api, "extract_text", recording_extract)
        assert self.upload(client).status_code == 201
        assert calls == ["worker thread"]

    def test_data_url_prefix(self, client, user):
        content = "data:text/plain;base64," + base64.b64encode(b"hello").decode()
        resp = client.post(
            f"{API}/knowledge/upload/base64",
            json={"file_name": "a.txt", "content_base64": content, "mime_type": "text/plain"},
        )
        assert resp.status_code == 201

    def test_invalid_base64(self, client, user):
        resp = client.post(
            f"{API}/knowledge/upload/base64",
            json={"file_name": "a.txt", "content_base64": "not base64!!", "mime_type": "text/plain"},
        )
        assert resp.status_code == 400

    def test_unparseable_document_kept_as_failed(self, client, user):
        content = base64.b64encode(b"%PDF-broken").decode()
        resp = client.post(
            f"{API}/knowledge/upload/base64",
            json={"file_name": "bad.pdf", "content_base64": content, "mime_type": "application/pdf"},
        )
        assert resp.status_code == 400
        statuses = [d["status"] for d in client.get(f"{API}/knowledge").json()]
        assert statuses == ["failed"]

    def test_rag_generate(self, client, paper, monkeypatch):
        document = self.upload(client, paper["id"]).json()
        monkeypatch.setattr(knowledge_base, "invoke_llm", fake_llm("基于文献的段落。"))
        resp = client.post(
            f"{API}/knowledge/generate",
            json={"paper_id": paper["id"], "document_ids": [document["id"]], "prompt": "写一段相关研究"},
        )
        assert resp.status_code == 200, resp.text
        assert resp.json() == {"content": "基于文献的段落。"}

    def test_chat(self, client, user, monkeypatch):
        document = self.upload(client).json()
        monkeypatch.setattr(knowledge_base, "invoke_llm", fake_llm("文献讨论了卷积神经网络。"))
        resp = client.post(f"{API}/knowledge/{document['id']}/chat", json={"question": "主要内容？"})
        assert resp.json() == {"answer": "文献讨论了卷积神经网络。"}

    def test_delete(self, client, user):
        document = self.upload(client).json()
        assert client.delete(f"{API}/knowledge/{document['id']}").status_code == 204
        assert client.get(f"{API}/knowledge/{document['id']}").status_code == 404


class TestOrganization:
    """Folders and tags."""

    def test_folder_lifecycle(self, client, user):
        folder = client.post(f"{API}/folders", json={"name": "毕业设计"}).json()
        created = client.post(
            f"{API}/papers", json={"title": "论文", "type": "journal", "folder_id": folder["id"]}
        ).json()
        assert created["folder_id"] == folder["id"]

        in_folder = client.get(f"{API}/papers", params={"folder_id": folder["id"]}).json()
        assert [p["id"] for p in in_folder] == [created["id"]]

        resp = client.patch(f"{API}/folders/{folder['id']}", json={"parent_id": folder["id"]})
        assert resp.status_code == 400

        assert client.delete(f"{API}/folders/{folder['id']}").status_code == 204
        assert client.get(f"{API}/papers/{created['id']}").json()["folder_id"] is None

    def test_nested_cycle_rejected(self, client, user):
        parent = client.post(f"{API}/folders", json={"name": "A"}).json()
        child = client.post(f"{API}/folders", json={"name": "B", "parent_id": parent["id"]}).json()
        grandchild = client.post(f"{API}/folders", json={"name": "C", "parent_id": child["id"]}).json()

        for descendant in (child, grandchild):
            resp = client.patch(f"{API}/folders/{parent['id']}", json={"parent_id": descendant["id"]})
            assert resp.status_code == 400

        resp = client.patch(f"{API}/folders/{grandchild['id']}", json={"parent_id": parent["id"]})
        assert resp.status_code == 200
        assert resp.json()["parent_id"] == parent["id"]

    def test_move_paper(self, client, paper):
        folder = client.post(f"{API}/folders", json={"name": "草稿"}).json()
        resp = client.patch(f"{API}/papers/{paper['id']}/folder", json={"folder_id": folder["id"]})
        assert resp.json()["folder_id"] == folder["id"]

    def test_tags(self, client, paper):
        tag = client.post(f"{API}/tags", json={"name": "重要", "color": "#dc2626"}).json()
        assert client.post(f"{API}/tags", json={"name": "重要"}).status_code == 400

        assert client.post(f"{API}/tags/{tag['id']}/papers/{paper['id']}").status_code == 204
        # tagging twice is a no-op
        assert client.post(f"{API}/tags/{tag['id']}/papers/{paper['id']}").status_code == 204
        assert [t["id"] for t in client.get(f"{API}/tags/papers/{paper['id']}").json()] == [tag["id"]]

        assert client.delete(f"{API}/tags/{tag['id']}/papers/{paper['id']}").status_code == 204
        assert client.get(f"{API}/tags/papers/{paper['id']}").json() == []

        assert client.delete(f"{API}/tags/{tag['id']}").status_code == 204
        assert client.get(f"{API}/tags").json() == []


class TestExternal:
    """Scholar search and the product catalog."""

    def test_scholar_needs_key(self, client, user):
        resp = client.get(f"{API}/scholar/search", params={"query": "deep learning"})
        assert resp.status_code == 412

    def test_products(self, client):
        ids = [p["id"] for p in client.get(f"{API}/payment/products").json()]
        assert ids == ["basic_paper", "monthly_subscription", "yearly_subscription"]
        assert client.get(f"{API}/payment/products/unknown").status_code == 404

"""
Integration tests for the HTTP API.
Services are wired against temporary storage and a scripted model provider.
"""

import base64
import pytest
from fastapi.testclient import TestClient

from estock_support.config import Settings
from estock_support.llm.base import FunctionCall, ModelReply
from estock_support.main import app
from estock_support.services import build_services, get_services
from estock_support.utils.auth import ROLE_ADMIN, create_access_token
from estock_support.utils.export import BOM

from conftest import FakeProvider, text_reply


@pytest.fixture
def make_client(tmp_path):
    """Build a TestClient bound to fresh services; returns (client, services)."""
    def _make(provider=None, **overrides):
        settings = Settings(
            local_storage_path=str(tmp_path / "data"),
            local_cache_path=str(tmp_path / "cache"),
            llm_api_key="",
            gemini_api_key=None,
            **overrides,
        )
        services = build_services(settings, llm_provider=provider)
        app.dependency_overrides[get_services] = lambda: services
        return TestClient(app), services

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {create_access_token('admin', ROLE_ADMIN)}"}


class TestAuthAPI:

    def test_register_login_me(self, make_client):
        client, _ = make_client()

        response = client.post("/auth/register", json={"name": "صيدلية الأمل", "contractNumber": "9001"})
        assert response.status_code == 201
        assert response.json()["contractNumber"] == "9001"

        duplicate = client.post("/auth/register", json={"name": "Other", "contractNumber": "9001"})
        assert duplicate.status_code == 400
        assert duplicate.json()["detail"] == "رقم التعاقد مسجل بالفعل"

        login = client.post("/auth/login", json={"name": "صيدلية الأمل", "contractNumber": "9001"})
        assert login.status_code == 200
        token = login.json()["access_token"]

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["name"] == "صيدلية الأمل"

    def test_wrong_login(self, make_client):
        client, _ = make_client()
        response = client.post("/auth/login", json={"name": "x", "contractNumber": "0"})
        assert response.status_code == 401

    def test_admin_token_not_a_customer(self, make_client, admin_headers):
        client, _ = make_client()
        assert client.get("/auth/me", headers=admin_headers).status_code == 401


class TestChatAPI:

    def test_full_session(self, make_client):
        provider = FakeProvider([
            text_reply("من عيوني"),
            text_reply('{"clientName": "سارة", "summary": "سؤال عن المبيعات"}'),
        ])
        client, services = make_client(provider)

        start = client.post("/chat/sessions")
        assert start.status_code == 201
        session = start.json()
        assert session["state"] == "ready"
        assert session["messages"][0]["id"] == "init"
        session_id = session["sessionId"]

        turn = client.post(f"/chat/sessions/{session_id}/turns", data={"text": "أنا سارة"})
        assert turn.status_code == 200
        body = turn.json()
        assert body["state"] == "ready"
        assert [m["role"] for m in body["messages"]] == ["user", "model"]

        view = client.get(f"/chat/sessions/{session_id}")
        assert len(view.json()["messages"]) == 3

        end = client.post(f"/chat/sessions/{session_id}/end")
        assert end.status_code == 200
        assert end.json() == {"logId": session_id, "status": "closed"}

        assert client.post(f"/chat/sessions/{session_id}/end").status_code == 410
        assert client.post(f"/chat/sessions/{session_id}/turns", data={"text": "hi"}).status_code == 410

    def test_customer_session_personalized(self, make_client):
        provider = FakeProvider()
        client, services = make_client(provider)
        client.post("/auth/register", json={"name": "صيدلية النيل", "contractNumber": "55"})
        token = client.post(
            "/auth/login", json={"name": "صيدلية النيل", "contractNumber": "55"}
        ).json()["access_token"]

        response = client.post("/chat/sessions", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 201
        assert "Client Name: صيدلية النيل" in provider.chat.system_instruction

    def test_missing_api_key_session(self, make_client):
        client, _ = make_client(provider=None)
        session = client.post("/chat/sessions").json()
        assert session["state"] == "error"
        assert session["messages"][0]["id"] == "error_init"

        turn = client.post(f"/chat/sessions/{session['sessionId']}/turns", data={"text": "hi"})
        assert turn.status_code == 409

    def test_rejected_turns(self, make_client):
        client, _ = make_client(FakeProvider(), max_image_bytes=8)
        session_id = client.post("/chat/sessions").json()["sessionId"]

        empty = client.post(f"/chat/sessions/{session_id}/turns", data={"text": "  "})
        assert empty.status_code == 400

        too_big = client.post(
            f"/chat/sessions/{session_id}/turns",
            files={"image": ("error.png", b"x" * 9, "image/png")},
        )
        assert too_big.status_code == 413

        wrong_type = client.post(
            f"/chat/sessions/{session_id}/turns",
            files={"image": ("notes.pdf", b"%PDF", "application/pdf")},
        )
        assert wrong_type.status_code == 400

    def test_unknown_session(self, make_client):
        client, _ = make_client(FakeProvider())
        assert client.get("/chat/sessions/does-not-exist").status_code == 404

    def test_streaming_turn(self, make_client):
        provider = FakeProvider([
            ModelReply(function_calls=[FunctionCall("show_screen_image", {"screen_name": "sales"}, "c1")]),
            text_reply("دي الشاشة"),
        ])
        client, _ = make_client(provider)
        session_id = client.post("/chat/sessions").json()["sessionId"]

        response = client.post(
            f"/chat/sessions/{session_id}/turns?stream=true", data={"text": "وريني المبيعات"}
        )
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = [line for line in response.text.split("\n\n") if line.startswith("data: ")]
        assert len(events) == 4
        assert '"type": "done"' in events[-1]
        assert "placehold.co" in events[1]


class TestFeedbackAPI:

    def test_submit(self, make_client):
        client, services = make_client()
        response = client.post("/feedback", json={"chatId": "123", "rating": 4, "comment": "ممتاز"})
        assert response.status_code == 201
        assert response.json()["rating"] == 4

    def test_rating_out_of_range(self, make_client):
        client, _ = make_client()
        assert client.post("/feedback", json={"chatId": "123", "rating": 6}).status_code == 422


class TestStatelessAPI:

    def test_missing_key(self, make_client):
        client, _ = make_client(provider=None)
        response = client.post("/api/chat", json={"message": "hi"})
        assert response.status_code == 500
        assert response.json()["error"] == "API key not configured"

    def test_method_not_allowed(self, make_client):
        client, _ = make_client()
        response = client.get("/api/chat")
        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}

    def test_message_required(self, make_client):
        client, _ = make_client(FakeProvider())
        response = client.post("/api/chat", json={"systemInstruction": "x"})
        assert response.status_code == 400

    def test_function_calls_returned(self, make_client):
        provider = FakeProvider([
            ModelReply(function_calls=[FunctionCall("search_knowledge_base", {"query": "q"}, "id1")]),
        ])
        client, _ = make_client(provider)

        response = client.post("/api/chat", json={
            "message": "login error",
            "systemInstruction": "be helpful",
            "tools": [{"functionDeclarations": [{"name": "search_knowledge_base", "description": "d"}]}],
        })
        assert response.status_code == 200
        assert response.json() == {
            "text": "",
            "functionCalls": [{"name": "search_knowledge_base", "args": {"query": "q"}, "id": "id1"}],
        }
        assert provider.chat.system_instruction == "be helpful"
        assert provider.chat.tools[0].name == "search_knowledge_base"

    def test_text_reply(self, make_client):
        client, _ = make_client(FakeProvider([text_reply("تمام")]))
        response = client.post("/api/chat", json={"message": [{"text": "hello"}]})
        assert response.json() == {"text": "تمام", "functionCalls": None}


class TestAdminAPI:

    def test_login(self, make_client):
        client, _ = make_client()
        assert client.post("/admin/login", json={"password": "wrong"}).status_code == 401
        response = client.post("/admin/login", json={"password": "admin123"})
        assert response.status_code == 200
        assert "access_token" in response.json()

    def test_requires_admin_token(self, make_client):
        client, _ = make_client()
        assert client.get("/admin/manual").status_code in (401, 403)

        customer_token = create_access_token("c1", "customer")
        response = client.get("/admin/manual", headers={"Authorization": f"Bearer {customer_token}"})
        assert response.status_code == 401

    def test_reset_password(self, make_client):
        client, _ = make_client()
        wrong = client.post("/admin/reset-password", json={"recoveryKey": "nope", "newPassword": "newpass"})
        assert wrong.status_code == 403

        ok = client.post(
            "/admin/reset-password", json={"recoveryKey": "admin-recovery", "newPassword": "newpass"}
        )
        assert ok.status_code == 204
        assert client.post("/admin/login", json={"password": "newpass"}).status_code == 200

    def test_manual_lifecycle(self, make_client, admin_headers):
        client, _ = make_client()

        client.put("/admin/manual", json={"content": "Base"}, headers=admin_headers)
        appended = client.post(
            "/admin/manual/append",
            json={"sourceName": "guide.pdf", "content": "More"},
            headers=admin_headers,
        )
        assert appended.json()["length"] == len(client.get("/admin/manual", headers=admin_headers).json()["content"])

        cleared = client.delete("/admin/manual", headers=admin_headers)
        assert cleared.json() == {"length": 0}
        assert client.get("/admin/manual", headers=admin_headers).json()["content"] == ""

        restored = client.post("/admin/manual/restore", headers=admin_headers)
        assert restored.json()["length"] > 0

    def test_snippets(self, make_client, admin_headers):
        client, _ = make_client(max_image_bytes=8)
        image = "data:image/png;base64," + base64.b64encode(b"abc").decode()

        created = client.post("/admin/snippets", json={"content": "New price list", "imageUrl": image},
                              headers=admin_headers)
        assert created.status_code == 201
        snippet_id = created.json()["id"]

        too_big = "data:image/png;base64," + base64.b64encode(b"x" * 9).decode()
        assert client.post("/admin/snippets", json={"content": "x", "imageUrl": too_big},
                           headers=admin_headers).status_code == 413
        assert client.post("/admin/snippets", json={"content": "x", "imageUrl": "https://a/b.png"},
                           headers=admin_headers).status_code == 400

        listed = client.get("/admin/snippets", headers=admin_headers).json()
        assert [s["id"] for s in listed] == [snippet_id]

        assert client.delete(f"/admin/snippets/{snippet_id}", headers=admin_headers).status_code == 204
        assert client.delete(f"/admin/snippets/{snippet_id}", headers=admin_headers).status_code == 404

    def test_logs_and_feedback_exports(self, make_client, admin_headers):
        client, _ = make_client(FakeProvider())
        session_id = client.post("/chat/sessions").json()["sessionId"]
        client.post(f"/chat/sessions/{session_id}/end")
        client.post("/feedback", json={"chatId": session_id, "rating": 5})
        client.post("/feedback", json={"chatId": session_id, "rating": 2})

        logs = client.get("/admin/logs", headers=admin_headers).json()
        assert [entry["id"] for entry in logs] == [session_id]

        csv_export = client.get("/admin/logs/export", headers=admin_headers)
        assert csv_export.text.startswith(BOM + "رقم الجلسة")
        assert "attachment" in csv_export.headers["content-disposition"]

        feedback = client.get("/admin/feedback", headers=admin_headers).json()
        assert feedback["averageRating"] == 3.5
        assert len(feedback["items"]) == 2

    def test_company_info(self, make_client, admin_headers):
        client, _ = make_client()
        info = client.get("/admin/company-info", headers=admin_headers).json()
        info["phone"] = "0100000000"
        assert client.put("/admin/company-info", json=info, headers=admin_headers).status_code == 200
        assert client.get("/admin/company-info", headers=admin_headers).json()["phone"] == "0100000000"

    def test_customers(self, make_client, admin_headers):
        client, _ = make_client()
        added = client.post("/admin/customers/bulk", json=[
            {"name": "A", "contractNumber": "1"},
            {"name": "B", "contractNumber": "2"},
            {"name": "", "contractNumber": "3"},
        ], headers=admin_headers)
        assert added.json() == {"added": 2}

        customers = client.get("/admin/customers", headers=admin_headers).json()
        first = customers[0]
        first["isActive"] = False
        updated = client.put(f"/admin/customers/{first['id']}", json=first, headers=admin_headers)
        assert updated.json()["isActive"] is False
        assert client.post("/auth/login", json={"name": "A", "contractNumber": "1"}).status_code == 401

        assert client.delete(f"/admin/customers/{first['id']}", headers=admin_headers).status_code == 204


class TestHealth:

    def test_degraded_without_model_key(self, make_client):
        client, _ = make_client(provider=None)
        body = client.get("/health").json()
        assert body["status"] == "degraded"
        assert body["llmConfigured"] is False

    def test_counts_live_sessions(self, make_client):
        client, _ = make_client(FakeProvider())
        session_id = client.post("/chat/sessions").json()["sessionId"]
        assert client.get("/health").json()["activeSessions"] == 1

        client.post(f"/chat/sessions/{session_id}/end")
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["activeSessions"] == 0

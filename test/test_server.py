import pytest

from finance_buddy.db import queries
from finance_buddy.server import create_app


@pytest.fixture
def client(store, logger):
    app = create_app(logger=logger)
    app.config["TESTING"] = True
    return app.test_client()


def test_chat_requires_message(client):
    resp = client.post("/chat", json={"user_id": "demo-user", "message": "  "})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "Empty message"


def test_chat_requires_user(client):
    resp = client.post("/chat", json={"message": "gastos"})
    assert resp.status_code == 401


def test_chat_reply(client, demo_user):
    resp = client.post("/chat", json={"user_id": demo_user, "message": "Quanto gastei?"})
    body = resp.get_json()

    assert resp.status_code == 200
    assert body["intent"] == "expense_inquiry"
    assert "R$ 3.050,00" in body["response"]
    assert len(body["recommendations"]) == 3


def test_messages_summary_and_clear(client, demo_user):
    client.post("/chat", json={"user_id": demo_user, "message": "gastos"})
    client.post("/chat", json={"user_id": demo_user, "message": "dívida"})

    messages = client.get(f"/messages?user_id={demo_user}").get_json()["messages"]
    assert [m["role"] for m in messages] == ["user", "assistant", "user", "assistant"]
    assert messages[1]["metadata"]["intent"] == "expense_inquiry"

    summary = client.get(f"/summary?user_id={demo_user}").get_json()
    assert summary["totalMessages"] == 4
    assert summary["topIntents"] == ["expense_inquiry", "debt_analysis"]

    assert client.post("/clear", json={"user_id": demo_user}).status_code == 200
    assert client.get(f"/messages?user_id={demo_user}").get_json()["messages"] == []


def test_sessions_are_per_user(client, demo_user):
    queries.get_store().insert("profiles", {"id": "other", "name": "Bia"})
    client.post("/chat", json={"user_id": demo_user, "message": "gastos"})

    client.post("/chat", json={"user_id": "other", "message": "metas"})

    assert len(client.get("/messages?user_id=other").get_json()["messages"]) == 2
    assert len(client.get(f"/messages?user_id={demo_user}").get_json()["messages"]) == 2
    status = client.get("/status").get_json()
    assert status["active_sessions"] == 2
    assert status["backend"] == "sqlite"


def test_session_routes_need_a_chat_first(client, demo_user):
    assert client.get(f"/messages?user_id={demo_user}").status_code == 404
    assert client.get("/summary?user_id=nobody").status_code == 404
    assert client.post("/clear", json={"user_id": "nobody"}).get_json()["error"] == "No active session"
    assert client.get("/status").get_json()["active_sessions"] == 0


def test_logout_drops_session(client, demo_user):
    client.post("/chat", json={"user_id": demo_user, "message": "gastos"})
    assert client.post("/logout", json={"user_id": demo_user}).status_code == 200
    assert client.get("/status").get_json()["active_sessions"] == 0


def test_profile_endpoint(client, demo_user):
    body = client.get(f"/profile?user_id={demo_user}").get_json()
    assert body["complete"] is True
    assert body["missing_fields"] == []
    assert body["profile"]["risk_profile"] == "moderate"

    assert client.get("/profile?user_id=nobody").status_code == 404


def test_market_endpoint(client, demo_user):
    rows = client.get("/market?limit=2").get_json()["market_data"]
    assert len(rows) == 2
    assert {"symbol", "price", "change_percent"} <= set(rows[0])


def test_analysis_endpoint(client, demo_user):
    body = client.post("/analysis", json={"user_id": demo_user}).get_json()
    assert body["status"] == "completed"
    assert body["route"] == "high_confidence"
    assert body["recommendations"]


def test_analysis_year_must_be_integer(client, demo_user):
    resp = client.post("/analysis", json={"user_id": demo_user, "year": "dois mil"})
    assert resp.status_code == 400
    assert resp.is_json
    assert "Invalid year" in resp.get_json()["error"]

    resp = client.post("/analysis", json={"user_id": demo_user, "year": "2026"})
    assert resp.status_code == 200
    assert resp.get_json()["status"] == "completed"


def test_analysis_unexpected_error_is_json(client, demo_user, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr("finance_buddy.server.run_financial_analysis", broken)
    resp = client.post("/analysis", json={"user_id": demo_user})
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "disk full"}


def test_analysis_unknown_user(client):
    resp = client.post("/analysis", json={"user_id": "nobody"})
    assert resp.status_code == 400
    assert resp.get_json()["error"]["code"] == "STEP_EXECUTION_FAILED"


def test_flow_plot(client):
    data = client.get("/flow/plot").get_json()
    assert any(n["id"] == "determine_analysis_confidence" for n in data["nodes"])

    page = client.get("/flow/plot?format=html")
    assert page.mimetype == "text/html"
    assert b"FinancialAnalysisFlow" in page.data


def test_shutdown(client):
    resp = client.post("/shutdown")
    assert resp.status_code == 200

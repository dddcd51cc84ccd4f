import json

import pytest
import requests

from finance_buddy.db.rest_store import RestStore
from finance_buddy.errors import DataAccessError


class FakeResponse:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.content = b"" if body is None else json.dumps(body).encode()
        self.text = self.content.decode()

    def json(self):
        return json.loads(self.content)


class FakeSession:
    def __init__(self, responses=None, error=None):
        self.headers = {}
        self.calls = []
        self.responses = list(responses or [])
        self.error = error

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        if self.error:
            raise self.error
        return self.responses.pop(0) if self.responses else FakeResponse(200, [])


def make_store(session):
    return RestStore("https://project.supabase.co/", "anon-key", timeout=3, session=session)


def test_requires_credentials():
    with pytest.raises(ValueError):
        RestStore(None, "key")


def test_auth_headers():
    session = FakeSession()
    make_store(session)
    assert session.headers["apikey"] == "anon-key"
    assert session.headers["Authorization"] == "Bearer anon-key"


def test_select_builds_postgrest_query():
    session = FakeSession([FakeResponse(200, [{"id": "1", "amount": 10}])])
    rows = make_store(session).select("detailed_expenses", {"user_id": "u1"},
                                      order_by="date", descending=True, limit=10)

    assert rows == [{"id": "1", "amount": 10}]
    call = session.calls[0]
    assert call["method"] == "GET"
    assert call["url"] == "https://project.supabase.co/rest/v1/detailed_expenses"
    assert call["params"] == {"select": "*", "user_id": "eq.u1", "order": "date.desc", "limit": "10"}
    assert call["timeout"] == 3


def test_boolean_filters():
    session = FakeSession()
    make_store(session).select("financial_profiles", {"has_debts": True})
    assert session.calls[0]["params"]["has_debts"] == "eq.true"


def test_upsert_merges_duplicates():
    session = FakeSession([FakeResponse(201, [{"user_id": "u1", "year": 2025}])])
    make_store(session).upsert("monthly_savings", {"user_id": "u1", "year": 2025, "data": []},
                               ["user_id", "year"])

    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["params"] == {"on_conflict": "user_id,year"}
    assert "resolution=merge-duplicates" in call["headers"]["Prefer"]


def test_update_and_delete_count_rows():
    session = FakeSession([FakeResponse(200, [{"id": "g1"}]), FakeResponse(200, [])])
    store = make_store(session)

    assert store.update("financial_goals", {"id": "g1", "current_amount": 5},
                        {"user_id": "u1", "id": "g1"}) == 1
    assert session.calls[0]["method"] == "PATCH"
    assert session.calls[0]["json"] == {"current_amount": 5}

    assert store.delete("financial_goals", {"user_id": "u1", "id": "g1"}) == 0
    assert session.calls[1]["method"] == "DELETE"


def test_refuses_unfiltered_delete():
    with pytest.raises(DataAccessError):
        make_store(FakeSession()).delete("investments", {})


def test_http_error_raises():
    session = FakeSession([FakeResponse(500, {"message": "boom"})])
    with pytest.raises(DataAccessError) as info:
        make_store(session).select("investments")
    assert "500" in str(info.value)
    assert info.value.table == "investments"


def test_network_error_raises():
    session = FakeSession(error=requests.ConnectionError("unreachable"))
    with pytest.raises(DataAccessError):
        make_store(session).insert("investments", {"name": "X"})


def test_unknown_table_never_hits_network():
    session = FakeSession()
    with pytest.raises(DataAccessError):
        make_store(session).select("users")
    assert session.calls == []

import json

from finance_buddy import cli
from finance_buddy.db import queries
from finance_buddy.db.store import SQLiteStore, set_store


def test_init_db_with_seed(tmp_path, capsys):
    db = tmp_path / "cli.db"
    assert cli.main(["init-db", "--db", str(db), "--seed"]) == 0
    assert "Demo user seeded" in capsys.readouterr().out

    set_store(SQLiteStore(str(db)))
    assert queries.get_user_profile("demo-user").name == "Ana Demo"


def test_analyze_prints_report(demo_user, capsys):
    assert cli.main(["analyze", "--user", demo_user]) == 0
    out = capsys.readouterr().out
    report = json.loads(out[out.index("{"):])
    assert report["status"] == "completed"


def test_analyze_unknown_user(store, capsys):
    assert cli.main(["analyze", "--user", "nobody"]) == 1


def test_plot_flow_json_and_html(tmp_path, capsys):
    assert cli.main(["plot-flow"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["nodes"][0]["id"] == "initialize_analysis"

    out = tmp_path / "flow.html"
    assert cli.main(["plot-flow", "--html", str(out)]) == 0
    assert "<!DOCTYPE html>" in out.read_text(encoding="utf-8")


def test_chat_session(demo_user, monkeypatch, capsys):
    answers = iter(["quanto gastei?", "summary", "exit"])
    monkeypatch.setattr("builtins.input", lambda prompt="": next(answers))

    assert cli.main(["chat", "--user", demo_user]) == 0
    out = capsys.readouterr().out
    assert "R$ 3.050,00" in out
    assert '"totalMessages": 2' in out


def test_chat_unknown_user(store, capsys):
    assert cli.main(["chat", "--user", "nobody"]) == 1

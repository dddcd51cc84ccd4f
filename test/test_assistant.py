import time

import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding

from finance_buddy.agents.assistant import NOT_LOGGED_IN, PROCESSING_ERROR, FinanceAssistant
from finance_buddy.agents.context_fetcher import ContextFetcher
from finance_buddy.core.memory import ConversationMemory
from finance_buddy.db import queries


@pytest.fixture
def assistant(demo_user, processor, logger):
    return FinanceAssistant(
        user_id=demo_user,
        profile=queries.get_user_profile(demo_user),
        logger=logger,
        fetcher=ContextFetcher(processor=processor, logger=logger),
    )


def test_requires_login(store, logger):
    assistant = FinanceAssistant(logger=logger)
    reply = assistant.send_message("quanto gastei?")
    assert reply["action"] == "error"
    assert reply["message"] == NOT_LOGGED_IN
    assert assistant.messages == []


def test_expense_question_round_trip(assistant, demo_user):
    reply = assistant.send_message("Quanto gastei?")

    assert reply["action"] == "reply"
    assert reply["data"]["intent"] == "expense_inquiry"
    # 1800 + 650 + 220 + 380
    assert "R$ 3.050,00" in reply["message"]

    user_msg, ai_msg = assistant.messages
    assert user_msg.role == "user" and user_msg.content == "Quanto gastei?"
    assert ai_msg.role == "assistant"
    assert ai_msg.metadata.intent == "expense_inquiry"
    assert ai_msg.metadata.data_accessed == ["profile", "expenses", "savings", "investments"]
    assert ai_msg.recommendations == reply["data"]["recommendations"]
    assert assistant.is_loading is False


def test_exchange_is_stored(assistant, demo_user):
    assistant.send_message("minhas economias")

    docs = queries.get_documents(demo_user)
    assert len(docs) == 1
    assert docs[0]["content"].startswith("User: minhas economias\nAssistant: Sua taxa de Economias")
    assert docs[0]["metadata"]["intent"] == "savings_inquiry"
    assert docs[0]["metadata"]["userId"] == demo_user
    assert docs[0]["embedding"] == []


def test_memory_failure_does_not_fail_turn(assistant, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("vector store offline")

    monkeypatch.setattr(assistant.memory, "remember_exchange", broken)
    reply = assistant.send_message("minhas dívidas")

    assert reply["action"] == "reply"
    assert reply["data"]["document_id"] is None
    assert len(assistant.messages) == 2


def test_goal_action_is_executed(store, processor, logger):
    queries.get_store().insert("profiles", {"id": "new-user", "name": "Bia"})
    assistant = FinanceAssistant(user_id="new-user", logger=logger,
                                 fetcher=ContextFetcher(processor=processor))

    reply = assistant.send_message("quero definir uma meta")

    assert reply["data"]["intent"] == "goal_management"
    assert reply["data"]["actions"] == [{"type": "create", "table": "financial_goals", "success": True}]
    goals = queries.get_financial_goals("new-user")
    assert goals[0]["name"] == "Reserva de Emergência"
    assert goals[0]["target_amount"] == 30000


def test_degraded_context_writes_nothing(demo_user, processor, logger, monkeypatch):
    real = queries.get_investments

    def slow(user_id):
        time.sleep(0.5)
        return real(user_id)

    monkeypatch.setattr(queries, "get_investments", slow)
    assistant = FinanceAssistant(
        user_id=demo_user, profile=queries.get_user_profile(demo_user), logger=logger,
        fetcher=ContextFetcher(processor=processor, logger=logger, timeout=0.1),
    )

    reply = assistant.send_message("minha meta")

    assert reply["action"] == "reply"
    assert reply["data"]["context_complete"] is False
    assert reply["data"]["actions"] == []
    assert len(queries.get_financial_goals(demo_user)) == 2
    decisions = [e["content"]["action"] for e in logger.read_entries()
                 if e.get("step_type") == "decision"]
    assert "skip_actions" in decisions


def test_pipeline_error_message(assistant, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("template missing")

    monkeypatch.setattr(assistant.generator, "generate", broken)
    reply = assistant.send_message("gastos")

    assert reply["action"] == "error"
    assert reply["message"] == PROCESSING_ERROR
    assert assistant.is_loading is False


def test_conversation_summary(assistant):
    assert assistant.get_conversation_summary() == {
        "totalMessages": 0, "userMessages": 0, "aiMessages": 0, "topIntents": [], "duration": 0,
    }

    assistant.send_message("gastos")
    assistant.send_message("investimento")
    assistant.send_message("gastos de novo")

    summary = assistant.get_conversation_summary()
    assert summary["totalMessages"] == 6
    assert summary["userMessages"] == 3
    assert summary["aiMessages"] == 3
    assert summary["topIntents"] == ["expense_inquiry", "investment_advice"]
    assert summary["duration"] >= 0


def test_clear_and_logout(assistant):
    assistant.send_message("gastos")
    assistant.clear_messages()
    assert assistant.messages == []

    assistant.send_message("gastos")
    assistant.logout()
    assert assistant.messages == []
    assert assistant.send_message("gastos")["message"] == NOT_LOGGED_IN


def test_search_history_with_embeddings(demo_user, processor, logger):
    assistant = FinanceAssistant(
        user_id=demo_user, logger=logger,
        fetcher=ContextFetcher(processor=processor),
        memory=ConversationMemory(DeterministicFakeEmbedding(size=16)),
    )
    assistant.send_message("gastos")

    content = queries.get_documents(demo_user)[0]["content"]
    hits = assistant.search_history(content, threshold=0.99)
    assert len(hits) == 1
    assert hits[0]["similarity"] == pytest.approx(1.0)


def test_trace_file_records_turns(assistant, logger):
    assistant.send_message("gastos")
    events = [e["event"] for e in logger.read_entries()]
    assert events[0] == "session_start"
    assert "turn_start" in events
    assert events[-1] == "turn_end"

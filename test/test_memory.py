import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding

from finance_buddy.core.memory import (
    ConversationMemory,
    extract_text_from_document,
    format_embedding_for_storage,
    is_embedding_vector,
    prepare_document_metadata,
    validate_embedding_dimensions,
)


@pytest.fixture
def memory(store):
    return ConversationMemory(DeterministicFakeEmbedding(size=32))


def test_embedding_helpers():
    assert format_embedding_for_storage([0.1, 2, -3.5]) == "[0.1,2,-3.5]"
    assert is_embedding_vector([0.1, 0.2])
    assert not is_embedding_vector([])
    assert not is_embedding_vector(["a"])
    assert not is_embedding_vector([True, False])
    assert validate_embedding_dimensions([0.0] * 1536)
    assert not validate_embedding_dimensions([0.0] * 10)
    assert validate_embedding_dimensions([0.0] * 10, expected_dimension=10)


def test_extract_text_strips_html():
    assert extract_text_from_document("<p>Olá <b>mundo</b></p>").split() == ["Olá", "mundo"]


def test_prepare_metadata():
    meta = prepare_document_metadata("Guia", "upload", ["fii"], lang="pt")
    assert meta["title"] == "Guia"
    assert meta["tags"] == ["fii"]
    assert meta["lang"] == "pt"
    assert "extractedAt" in meta


def test_store_update_delete(memory):
    doc_id = memory.store_document("primeiro", [0.1, 0.2], {"k": 1}, "u1")
    assert doc_id

    assert memory.update_document(doc_id, "editado", [0.3, 0.4], {"k": 2}, "u1") is True
    docs = memory.get_user_documents("u1")
    assert docs[0]["content"] == "editado"
    assert docs[0]["embedding"] == [0.3, 0.4]
    assert docs[0]["metadata"] == {"k": 2}

    # another user cannot touch it
    assert memory.delete_document(doc_id, "u2") is False
    assert memory.delete_document(doc_id, "u1") is True
    assert memory.get_user_documents("u1") == []


def test_search_ranks_by_similarity(memory):
    texts = ["gastos com mercado", "metas de viagem", "investimentos em FII"]
    for text in texts:
        memory.store_document(text, memory.embed(text), {}, "u1")
    memory.store_document("sem vetor", [], {}, "u1")

    hits = memory.search_similar_documents("metas de viagem", "u1", threshold=0.0, limit=5)

    assert hits[0]["content"] == "metas de viagem"
    assert hits[0]["similarity"] == pytest.approx(1.0)
    assert all(h["content"] != "sem vetor" for h in hits)
    sims = [h["similarity"] for h in hits]
    assert sims == sorted(sims, reverse=True)


def test_search_respects_threshold_limit_and_user(memory):
    for i in range(3):
        memory.store_document("mesmo texto", memory.embed("mesmo texto"), {"i": i}, "u1")
    memory.store_document("mesmo texto", memory.embed("mesmo texto"), {}, "u2")

    hits = memory.search_similar_documents("mesmo texto", "u1", threshold=0.99, limit=2)
    assert len(hits) == 2
    assert all(h["user_id"] == "u1" for h in hits)


def test_without_model_nothing_is_found(store):
    memory = ConversationMemory()
    doc_id = memory.remember_exchange("u1", "oi", "olá", {"intent": "general_inquiry"})
    docs = memory.get_user_documents("u1")

    assert docs[0]["id"] == doc_id
    assert docs[0]["content"] == "User: oi\nAssistant: olá"
    assert docs[0]["embedding"] == []
    assert memory.search_similar_documents("oi", "u1") == []

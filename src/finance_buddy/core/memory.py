"""
Conversation Memory - stores chat exchanges in document_embeddings and finds
similar past exchanges by cosine similarity.

Embeddings come from any langchain Embeddings model. Without one (no
OPENAI_API_KEY) documents are stored with an empty vector and search returns
nothing.
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

import numpy as np
from langchain_core.embeddings import Embeddings

from finance_buddy.config import get_settings
from finance_buddy.db import queries

EMBEDDING_DIMENSION = 1536


# ── embedding helpers ────────────────────────────────────────────────

def format_embedding_for_storage(embedding: List[float]) -> str:
    """[0.1, 0.2] -> '[0.1,0.2]' (pgvector literal)"""
    return "[" + ",".join(str(x) for x in embedding) + "]"


def is_embedding_vector(value: Any) -> bool:
    return (
        isinstance(value, (list, tuple))
        and len(value) > 0
        and all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in value)
    )


def validate_embedding_dimensions(embedding: List[float], expected_dimension: int = EMBEDDING_DIMENSION) -> bool:
    return isinstance(embedding, (list, tuple)) and len(embedding) == expected_dimension


def extract_text_from_document(content: str) -> str:
    """Strip HTML tags."""
    return re.sub(r"<[^>]+>", " ", content).strip()


def prepare_document_metadata(title: str, source: str, tags: Optional[List[str]] = None,
                              **extra) -> Dict[str, Any]:
    return {
        "title": title,
        "source": source,
        "tags": list(tags or []),
        "extractedAt": datetime.now().isoformat(),
        **extra,
    }


def default_embeddings() -> Optional[Embeddings]:
    """OpenAI embeddings when a key is configured, else None."""
    api_key = get_settings().openai_key
    if not api_key:
        return None
    from langchain_openai import OpenAIEmbeddings
    return OpenAIEmbeddings(api_key=api_key)


class ConversationMemory:
    """document_embeddings reader/writer"""

    def __init__(self, embeddings: Optional[Embeddings] = None):
        self.embeddings = embeddings

    def embed(self, text: str) -> List[float]:
        if self.embeddings is None:
            return []
        try:
            return list(self.embeddings.embed_query(text))
        except Exception as exc:
            print(f"[ConversationMemory.embed] {exc}")
            return []

    # ── writes ───────────────────────────────────────────────────────

    def store_document(self, content: str, embedding: List[float],
                       metadata: Optional[Dict[str, Any]], user_id: str) -> Optional[str]:
        """Returns the stored document id, or None on failure."""
        return queries.add_document(user_id, content, list(embedding or []), metadata or {})

    def update_document(self, doc_id: str, content: str, embedding: List[float],
                        metadata: Optional[Dict[str, Any]], user_id: str) -> bool:
        return queries.update_document(user_id, doc_id, content, list(embedding or []), metadata or {})

    def delete_document(self, doc_id: str, user_id: str) -> bool:
        return queries.delete_document(user_id, doc_id)

    def remember_exchange(self, user_id: str, user_message: str, reply: str,
                          metadata: Dict[str, Any]) -> Optional[str]:
        content = f"User: {user_message}\nAssistant: {reply}"
        return self.store_document(content, self.embed(content), metadata, user_id)

    # ── reads ────────────────────────────────────────────────────────

    def get_user_documents(self, user_id: str) -> List[Dict[str, Any]]:
        return queries.get_documents(user_id)

    def search_similar_documents(self, query: str, user_id: str,
                                 threshold: float = 0.7, limit: int = 5) -> List[Dict[str, Any]]:
        """Documents whose cosine similarity to query is >= threshold, best first."""
        query_vec = self.embed(query)
        if not query_vec:
            return []
        q = np.asarray(query_vec, dtype=float)
        q_norm = np.linalg.norm(q)
        if q_norm == 0:
            return []

        scored = []
        for doc in self.get_user_documents(user_id):
            vec = doc.get("embedding")
            if not is_embedding_vector(vec) or len(vec) != len(q):
                continue
            v = np.asarray(vec, dtype=float)
            v_norm = np.linalg.norm(v)
            if v_norm == 0:
                continue
            similarity = float(np.dot(q, v) / (q_norm * v_norm))
            if similarity >= threshold:
                scored.append({**doc, "similarity": similarity})

        scored.sort(key=lambda d: d["similarity"], reverse=True)
        return scored[:limit]

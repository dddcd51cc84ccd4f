"""
Finance Assistant - the chat session that ties the pipeline together.

Per message
───────────
1. Record the user's message.
2. Classify intent (keyword scoring).
3. Fetch the user's context (parallel reads).
4. Generate the templated answer and record it with its metadata.
5. Store the exchange in document_embeddings (best effort).
6. Execute any suggested actions for the logged-in user.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Any, Dict, List, Optional

from finance_buddy.agents.action_executor import ActionExecutor
from finance_buddy.agents.context_fetcher import ContextFetcher
from finance_buddy.agents.intent_classifier import IntentClassifier
from finance_buddy.agents.response_generator import ResponseGenerator
from finance_buddy.core.memory import ConversationMemory, default_embeddings
from finance_buddy.models import ChatMessage, MessageMetadata, UserProfile
from finance_buddy.utils.logger import AgentLogger

NOT_LOGGED_IN = "Você precisa estar logado para usar o assistente IA."
PROCESSING_ERROR = "Ocorreu um erro ao processar sua mensagem."
DATA_ACCESSED = ["profile", "expenses", "savings", "investments"]


class FinanceAssistant:
    """Rule-based chat assistant for one user session."""

    def __init__(
        self,
        user_id: Optional[str] = None,
        profile: Optional[UserProfile] = None,
        logger: Optional[AgentLogger] = None,
        classifier: Optional[IntentClassifier] = None,
        fetcher: Optional[ContextFetcher] = None,
        generator: Optional[ResponseGenerator] = None,
        executor: Optional[ActionExecutor] = None,
        memory: Optional[ConversationMemory] = None,
    ) -> None:
        self.logger     = logger or AgentLogger()
        self.classifier = classifier or IntentClassifier()
        self.fetcher    = fetcher or ContextFetcher(logger=self.logger)
        self.generator  = generator or ResponseGenerator()
        self.executor   = executor or ActionExecutor(logger=self.logger)
        self.memory     = memory or ConversationMemory(default_embeddings())

        self.current_user_id = user_id
        self.profile         = profile
        self.messages: List[ChatMessage] = []
        self.is_loading = False
        self._lock = threading.Lock()

    # ── Session management ───────────────────────────────────────────

    def login(self, user_id: str, profile: Optional[UserProfile] = None) -> None:
        if user_id != self.current_user_id:
            self.messages = []
        self.current_user_id = user_id
        self.profile = profile

    def logout(self) -> None:
        self.current_user_id = None
        self.profile = None
        self.messages = []

    # ── Chat ─────────────────────────────────────────────────────────

    def send_message(self, user_message: str) -> Dict[str, Any]:
        """
        Answer one message.

        Returns {"action": "reply" | "error", "message": str, "data": {...}}.
        Without a logged-in user nothing is recorded.
        """
        user_id = self.current_user_id
        if not user_id:
            return {"action": "error", "message": NOT_LOGGED_IN, "data": {}}

        with self._lock:
            self.is_loading = True
            self.logger.start_turn(user_message, user_id)
            try:
                reply = self._process(user_message, user_id)
            except Exception as exc:
                print(f"[FinanceAssistant.send_message] Error in AI chat: {exc}")
                self.logger.log_error("send_message", exc)
                self.logger.end_turn(PROCESSING_ERROR)
                return {"action": "error", "message": PROCESSING_ERROR, "data": {"error": str(exc)}}
            finally:
                self.is_loading = False

        self.logger.end_turn(reply["message"])
        return reply

    def _process(self, user_message: str, user_id: str) -> Dict[str, Any]:
        self.messages.append(ChatMessage(role="user", content=user_message))

        result = self.classifier.classify(user_message)
        self.logger.log_decision(result.intent, f"keyword confidence {result.confidence:.2f}")

        context = self.fetcher.fetch(user_id, fallback_profile=self.profile)
        response = self.generator.generate(user_message, result.intent, context)

        ai_msg = ChatMessage(
            role="assistant",
            content=response.message,
            metadata=MessageMetadata(
                intent=result.intent,
                confidence=result.confidence,
                data_accessed=list(DATA_ACCESSED),
            ),
            recommendations=response.recommendations,
        )
        self.messages.append(ai_msg)

        document_id = self._remember(user_id, user_message, response.message,
                                     result.intent, result.confidence)

        executed = []
        if not context.complete and response.actions:
            # answers built on placeholder data must not write anything back
            self.logger.log_decision("skip_actions", "user context incomplete")
        else:
            for action in response.actions:
                ok = self.executor.execute(action, user_id)
                executed.append({"type": action.type, "table": action.table, "success": ok})

        return {
            "action": "reply",
            "message": response.message,
            "data": {
                "intent": result.intent,
                "confidence": result.confidence,
                "recommendations": response.recommendations,
                "actions": executed,
                "context_complete": context.complete,
                "message_id": ai_msg.id,
                "document_id": document_id,
            },
        }

    def _remember(self, user_id: str, user_message: str, reply: str,
                  intent: str, confidence: float) -> Optional[str]:
        """Store the exchange; a failure here never fails the turn."""
        try:
            return self.memory.remember_exchange(user_id, user_message, reply, {
                "intent": intent,
                "confidence": confidence,
                "timestamp": datetime.now().isoformat(),
                "userId": user_id,
            })
        except Exception as exc:
            print(f"[FinanceAssistant._remember] {exc}")
            self.logger.log_error("store_conversation", exc)
            return None

    # ── History ──────────────────────────────────────────────────────

    def clear_messages(self) -> None:
        self.messages = []

    def get_conversation_summary(self) -> Dict[str, Any]:
        user_messages = sum(1 for m in self.messages if m.role == "user")
        ai_messages = sum(1 for m in self.messages if m.role == "assistant")

        top_intents: List[str] = []
        for m in self.messages:
            intent = m.metadata.intent if m.metadata else None
            if intent and intent not in top_intents:
                top_intents.append(intent)

        duration = 0
        if self.messages:
            elapsed = datetime.now() - self.messages[0].timestamp
            duration = int(elapsed.total_seconds() * 1000)

        return {
            "totalMessages": len(self.messages),
            "userMessages": user_messages,
            "aiMessages": ai_messages,
            "topIntents": top_intents,
            "duration": duration,
        }

    def search_history(self, query: str, threshold: float = 0.7, limit: int = 5) -> List[Dict[str, Any]]:
        if not self.current_user_id:
            return []
        return self.memory.search_similar_documents(query, self.current_user_id, threshold, limit)

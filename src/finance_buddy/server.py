"""
Finance Buddy Web Server
Flask wrapper around FinanceAssistant and the financial analysis flow.

Usage:
    finance-buddy serve
Then POST {"user_id": "...", "message": "..."} to http://localhost:5013/chat
"""

import threading
from typing import Dict, Optional

from flask import Flask, Response, jsonify, request
from flask_cors import CORS

from finance_buddy.agents.assistant import FinanceAssistant
from finance_buddy.config import get_settings
from finance_buddy.core.profile import missing_profile_fields
from finance_buddy.db import queries
from finance_buddy.errors import DataAccessError
from finance_buddy.flows.base import FlowError
from finance_buddy.flows.financial_analysis import FinancialAnalysisFlow, run_financial_analysis
from finance_buddy.models import MarketData
from finance_buddy.utils.async_processor import get_async_processor
from finance_buddy.utils.logger import AgentLogger


def _user_id() -> Optional[str]:
    data = request.get_json(silent=True) or {}
    return data.get("user_id") or request.args.get("user_id")


def create_app(logger: Optional[AgentLogger] = None) -> Flask:
    app = Flask(__name__)
    CORS(app)

    _logger = logger or AgentLogger()
    _assistants: Dict[str, FinanceAssistant] = {}
    _sessions_lock = threading.Lock()

    def get_assistant(user_id: str) -> FinanceAssistant:
        """One assistant per user, created by the first chat message."""
        with _sessions_lock:
            if user_id not in _assistants:
                try:
                    profile = queries.get_user_profile(user_id)
                except DataAccessError as e:
                    print(f"[get_assistant] Profile unavailable: {e}")
                    profile = None
                _assistants[user_id] = FinanceAssistant(user_id=user_id, profile=profile, logger=_logger)
            return _assistants[user_id]

    def find_assistant(user_id: str) -> Optional[FinanceAssistant]:
        with _sessions_lock:
            return _assistants.get(user_id)

    def no_session():
        return jsonify({"error": "No active session"}), 404

    app.config["ASSISTANTS"] = _assistants

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    @app.route("/chat", methods=["POST"])
    def chat():
        """
        Main chat endpoint.
        """
        data = request.get_json(silent=True) or {}
        user_input = (data.get("message") or "").strip()
        user_id = _user_id()

        if not user_input:
            return jsonify({"error": "Empty message"}), 400
        if not user_id:
            return jsonify({"error": "Você precisa estar logado para usar o assistente IA."}), 401

        try:
            assistant = get_assistant(user_id)
            reply = assistant.send_message(user_input)
        except Exception as e:
            _logger.log_error("chat", e)
            return jsonify({"error": str(e)}), 500

        status = 200 if reply["action"] == "reply" else 500
        return jsonify({
            "response": reply["message"],
            "user_id": user_id,
            **reply["data"],
        }), status

    @app.route("/messages")
    def messages():
        user_id = _user_id()
        if not user_id:
            return jsonify({"error": "user_id required"}), 401
        assistant = find_assistant(user_id)
        if assistant is None:
            return no_session()
        return jsonify({
            "messages": [m.model_dump(mode="json") for m in assistant.messages],
            "is_loading": assistant.is_loading,
        })

    @app.route("/clear", methods=["POST"])
    def clear():
        user_id = _user_id()
        if not user_id:
            return jsonify({"error": "user_id required"}), 401
        assistant = find_assistant(user_id)
        if assistant is None:
            return no_session()
        assistant.clear_messages()
        return jsonify({"message": "Conversation cleared"})

    @app.route("/summary")
    def summary():
        user_id = _user_id()
        if not user_id:
            return jsonify({"error": "user_id required"}), 401
        assistant = find_assistant(user_id)
        if assistant is None:
            return no_session()
        return jsonify(assistant.get_conversation_summary())

    @app.route("/logout", methods=["POST"])
    def logout():
        """
        Drop the user's session.
        """
        user_id = _user_id()
        with _sessions_lock:
            assistant = _assistants.pop(user_id, None) if user_id else None
        if assistant is not None:
            assistant.logout()
        return jsonify({"message": "Logged out successfully"})

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    @app.route("/profile")
    def profile():
        user_id = _user_id()
        if not user_id:
            return jsonify({"error": "user_id required"}), 401
        try:
            user_profile = queries.get_user_profile(user_id)
        except DataAccessError as e:
            return jsonify({"error": str(e)}), 500
        if user_profile is None:
            return jsonify({"error": "Profile not found"}), 404

        missing = missing_profile_fields(user_profile)
        return jsonify({
            "profile": user_profile.model_dump(mode="json"),
            "complete": not missing,
            "missing_fields": missing,
        })

    @app.route("/market")
    def market():
        limit = request.args.get("limit", default=20, type=int)
        try:
            rows = queries.get_market_data(limit=limit)
        except DataAccessError as e:
            return jsonify({"error": str(e)}), 500
        return jsonify({"market_data": [MarketData.model_validate(r).model_dump() for r in rows]})

    # ------------------------------------------------------------------
    # Analysis flow
    # ------------------------------------------------------------------

    @app.route("/analysis", methods=["POST"])
    def analysis():
        data = request.get_json(silent=True) or {}
        user_id = _user_id()
        if not user_id:
            return jsonify({"error": "user_id required"}), 401

        year = data.get("year", request.args.get("year"))
        if year is not None:
            try:
                year = int(year)
            except (TypeError, ValueError):
                return jsonify({"error": f"Invalid year: {year!r}"}), 400

        try:
            report = run_financial_analysis(user_id, year, logger=_logger)
        except FlowError as e:
            return jsonify({"error": e.to_dict()}), 400
        except Exception as e:
            _logger.log_error("analysis", e)
            return jsonify({"error": str(e)}), 500
        return jsonify(report)

    @app.route("/flow/plot")
    def flow_plot():
        flow = FinancialAnalysisFlow()
        if request.args.get("format") == "html":
            return Response(flow.plot_html(), mimetype="text/html")
        return jsonify(flow.plot())

    # ------------------------------------------------------------------
    # Service
    # ------------------------------------------------------------------

    @app.route("/status")
    def status():
        """
        Returns service metadata.
        """
        settings = get_settings()
        with _sessions_lock:
            users = sorted(_assistants.keys())
        return jsonify({
            "backend": settings.backend,
            "active_sessions": len(users),
            "users": users,
            "embeddings": bool(settings.openai_key),
        })

    @app.route("/shutdown", methods=["POST"])
    def shutdown():
        """
        Optional graceful shutdown endpoint.
        """
        try:
            get_async_processor().shutdown()
            return jsonify({"message": "Async processor shutdown complete"})
        except Exception as e:
            return jsonify({"error": str(e)}), 500

    return app


def main(host: str = "0.0.0.0", port: Optional[int] = None, debug: bool = False):
    port = port or get_settings().port

    print("\n" + "=" * 60)
    print("  Finance Buddy")
    print("  Rule-based personal finance assistant")
    print(f"  Listening on http://localhost:{port}")
    print("=" * 60 + "\n")

    create_app().run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    main()

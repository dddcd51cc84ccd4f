"""
JSON-lines trace logger. One file per session, one line per event:

    session_start  when the logger is created
    turn_start     a user message arrives
    step           anything the pipeline wants on record (decision, action, error...)
    turn_end       the reply that was sent back
"""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from finance_buddy.config import get_settings


class AgentLogger:
    def __init__(self, log_dir: Optional[str] = None, name: str = "trace"):
        self.log_dir = Path(log_dir or get_settings().log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        self.session_id = stamp
        self.log_file = self.log_dir / f"{name}_{stamp}.jsonl"
        self.current_turn_id: Optional[str] = None
        self._lock = threading.Lock()

        self._event("session_start", session_id=stamp)

    # ── turns ────────────────────────────────────────────────────────

    def start_turn(self, user_query: str, user_id: Optional[str] = None):
        self.current_turn_id = datetime.now().strftime("%H%M%S_%f")
        self._event("turn_start", user_id=user_id, content=user_query)

    def end_turn(self, final_answer: str):
        self._event("turn_end", content=final_answer)
        self.current_turn_id = None

    # ── steps ────────────────────────────────────────────────────────

    def log_step(self, step_type: str, content: Any, metadata: Optional[Dict[str, Any]] = None):
        """Record one pipeline step inside the current turn (if any)."""
        extra = {"metadata": metadata} if metadata else {}
        self._event("step", step_type=step_type, content=content, **extra)

    def log_decision(self, decision: str, reason: str):
        self.log_step("decision", {"action": decision, "reason": reason})

    def log_error(self, where: str, error: Exception):
        self.log_step("error", {"where": where, "type": type(error).__name__, "message": str(error)})

    # ── file ─────────────────────────────────────────────────────────

    def read_entries(self) -> List[Dict[str, Any]]:
        """Every entry written so far, oldest first."""
        with open(self.log_file, "r", encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]

    def _event(self, event: str, **fields):
        entry: Dict[str, Any] = {"event": event}
        if event != "session_start":
            entry["turn_id"] = self.current_turn_id
        entry.update(fields)
        entry["timestamp"] = datetime.now().isoformat()

        line = json.dumps(entry, default=str, ensure_ascii=False)
        with self._lock, open(self.log_file, "a", encoding="utf-8") as f:
            f.write(line + "\n")

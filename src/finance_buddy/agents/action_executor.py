"""
Action Executor - applies one suggested create/update/delete to a table,
always scoped to the acting user. Failures are logged, never raised.
"""

from typing import Any, Dict, Optional, Union

from finance_buddy.db import queries
from finance_buddy.models import SuggestedAction, new_id
from finance_buddy.utils.logger import AgentLogger


class ActionExecutor:
    def __init__(self, logger: Optional[AgentLogger] = None):
        self.logger = logger

    def execute(self, action: Union[SuggestedAction, Dict[str, Any]], user_id: str) -> bool:
        """Run a single action for user_id. Returns True when a row was written."""
        try:
            if not isinstance(action, SuggestedAction):
                action = SuggestedAction.model_validate(action)
        except ValueError as exc:
            print(f"[ActionExecutor.execute] Invalid action {action!r}: {exc}")
            self._log(action, user_id, False, str(exc))
            return False

        data = dict(action.data)
        if action.type == "create":
            ok = queries.insert_row(action.table, {**data, "user_id": user_id, "id": new_id()})
        elif action.type == "update":
            ok = self._require_id(action, data) and queries.update_user_row(
                action.table, user_id, str(data["id"]), data
            )
        else:
            ok = self._require_id(action, data) and queries.delete_user_row(
                action.table, user_id, str(data["id"])
            )

        if not ok:
            print(f"[ActionExecutor.execute] Error executing {action.type} action on {action.table}")
        self._log(action, user_id, ok)
        return ok

    @staticmethod
    def _require_id(action: SuggestedAction, data: Dict[str, Any]) -> bool:
        if data.get("id") is None:
            print(f"[ActionExecutor.execute] {action.type} on {action.table} needs data.id")
            return False
        return True

    def _log(self, action, user_id: str, ok: bool, error: Optional[str] = None):
        if not self.logger:
            return
        payload = action.model_dump() if isinstance(action, SuggestedAction) else {"raw": repr(action)}
        meta = {"user_id": user_id, "success": ok}
        if error:
            meta["error"] = error
        self.logger.log_step("action", payload, meta)

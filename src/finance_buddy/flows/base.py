"""
Flow engine - event-driven step execution.

Steps are methods marked with @start(), @listen(condition) or @router(condition).
When a step completes its name is emitted; when a router completes the label it
returns is emitted instead. Every step whose condition is satisfied by the
emitted names then runs, once.

    and_("a", "b")   runs after both a and b
    or_("a", "b")    runs after either one
    ["a", "b"]       same as and_
"""

import html
import inspect
import time
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from finance_buddy.utils.logger import AgentLogger


class FlowStatus(Enum):
    INITIALIZED = "initialized"
    RUNNING = "running"
    WAITING = "waiting"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class StepType(Enum):
    DATA_COLLECTION = "data_collection"
    ANALYSIS = "analysis"
    AGENT_EXECUTION = "agent_execution"
    DECISION_POINT = "decision_point"
    USER_INTERACTION = "user_interaction"
    DATA_STORAGE = "data_storage"


class FlowError(Exception):
    """A flow step failed."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None,
                 recoverable: bool = False, timestamp: Optional[datetime] = None):
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.details     = details or {}
        self.recoverable = recoverable
        self.timestamp   = timestamp or datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "timestamp": self.timestamp.isoformat(),
        }


# ═══════════════════════════════════════════════════════════════════
# Conditions
# ═══════════════════════════════════════════════════════════════════

class Condition:
    """A set of trigger names combined with AND or OR."""

    def __init__(self, mode: str, triggers: Iterable[Any]):
        if mode not in ("and", "or"):
            raise ValueError(f"Unknown condition mode: {mode}")
        self.mode = mode
        self.triggers = [_trigger_name(t) for t in triggers]

    def is_met(self, emitted: Iterable[str]) -> bool:
        emitted = set(emitted)
        if self.mode == "and":
            return all(t in emitted for t in self.triggers)
        return any(t in emitted for t in self.triggers)

    def __repr__(self):
        return f"{self.mode}_({', '.join(self.triggers)})"


def _trigger_name(trigger: Any) -> str:
    if isinstance(trigger, str):
        return trigger
    if callable(trigger):
        return trigger.__name__
    raise TypeError(f"Invalid trigger: {trigger!r}")


def and_(*triggers) -> Condition:
    return Condition("and", triggers)


def or_(*triggers) -> Condition:
    return Condition("or", triggers)


def _as_condition(condition: Any) -> Condition:
    if isinstance(condition, Condition):
        return condition
    if isinstance(condition, (list, tuple)):
        return and_(*condition)
    return or_(condition)


# ═══════════════════════════════════════════════════════════════════
# Decorators
# ═══════════════════════════════════════════════════════════════════

class StepDef:
    def __init__(self, name: str, step_type: StepType, condition: Optional[Condition] = None,
                 is_start: bool = False, is_router: bool = False, description: str = ""):
        self.name        = name
        self.step_type   = step_type
        self.condition   = condition
        self.is_start    = is_start
        self.is_router   = is_router
        self.description = description


def _mark(func: Callable, **kwargs) -> Callable:
    func._flow_step = StepDef(
        name=func.__name__,
        description=(func.__doc__ or "").strip().split("\n")[0],
        **kwargs,
    )
    return func


def start(step_type: StepType = StepType.DATA_COLLECTION):
    """Entry step of the flow."""
    def decorator(func):
        return _mark(func, step_type=step_type, is_start=True)
    return decorator


def listen(condition: Any, step_type: StepType = StepType.ANALYSIS):
    """Run after the condition is met."""
    def decorator(func):
        return _mark(func, step_type=step_type, condition=_as_condition(condition))
    return decorator


def router(condition: Any):
    """Run after the condition is met; the returned label is emitted."""
    def decorator(func):
        return _mark(func, step_type=StepType.DECISION_POINT,
                     condition=_as_condition(condition), is_router=True)
    return decorator


# ═══════════════════════════════════════════════════════════════════
# Base flow
# ═══════════════════════════════════════════════════════════════════

class BaseFlow:
    """
    Subclass and decorate methods. Use kickoff(inputs) to run the flow;
    state is a plain dict shared by every step.
    """

    _steps: Dict[str, StepDef] = {}

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        steps: Dict[str, StepDef] = {}
        for klass in reversed(cls.__mro__):
            for attr, value in vars(klass).items():
                step_def = getattr(value, "_flow_step", None)
                if step_def is not None:
                    steps[attr] = step_def
        cls._steps = steps

    def __init__(self, initial_state: Optional[Dict[str, Any]] = None,
                 logger: Optional[AgentLogger] = None):
        self.logger = logger
        self.state  = self.create_initial_state(initial_state or {})
        self.status = FlowStatus.INITIALIZED

        self.execution_id = f"exec_{uuid.uuid4().hex[:12]}"
        self.execution_history: List[Dict[str, Any]] = []
        self.step_results: Dict[str, Any] = {}
        self.completed_steps: List[str] = []
        self._emitted: List[str] = []
        self._last_result: Any = None

    # ── State ────────────────────────────────────────────────────────

    def create_initial_state(self, overrides: Dict[str, Any]) -> Dict[str, Any]:
        now = datetime.now()
        state = {
            "id": f"flow_{uuid.uuid4().hex[:12]}",
            "status": FlowStatus.INITIALIZED.value,
            "current_step": None,
            "total_steps": len(self._steps),
            "context": {},
            "results": {},
            "created_at": now,
            "updated_at": now,
        }
        state.update(overrides)
        return state

    def get_state(self) -> Dict[str, Any]:
        return dict(self.state)

    def _set_status(self, status: FlowStatus):
        self.status = status
        self.state["status"] = status.value
        self.state["updated_at"] = datetime.now()

    def _log_event(self, event_type: str, data: Dict[str, Any]):
        event = {
            "id": f"event_{uuid.uuid4().hex[:12]}",
            "execution_id": self.execution_id,
            "type": event_type,
            "timestamp": datetime.now().isoformat(),
            "data": data,
        }
        self.execution_history.append(event)
        if self.logger:
            self.logger.log_step("flow_event", {"type": event_type, **data},
                                 {"flow": type(self).__name__, "execution_id": self.execution_id})

    # ── Execution ────────────────────────────────────────────────────

    def get_start_step(self) -> Optional[str]:
        for name, step_def in self._steps.items():
            if step_def.is_start:
                return name
        return None

    def kickoff(self, inputs: Optional[Dict[str, Any]] = None) -> Any:
        """Run the flow from its start step. Returns the last step's result."""
        flow_name = type(self).__name__
        print(f"[{flow_name}] Starting flow")
        self._set_status(FlowStatus.RUNNING)
        self._log_event("flow_started", {"inputs": list((inputs or {}).keys())})

        if inputs:
            self.state.update(inputs)

        try:
            start_step = self.get_start_step()
            if start_step is None:
                raise FlowError("NO_START_STEP", "No start step defined. Use @start() on a method.")
            self._execute_step(start_step)
        except FlowError as exc:
            self._set_status(FlowStatus.FAILED)
            self._log_event("flow_failed", {"error": exc.message})
            print(f"[{flow_name}] Flow failed: {exc.message}")
            raise

        self._set_status(FlowStatus.COMPLETED)
        self._log_event("flow_completed", {"steps": list(self.completed_steps)})
        print(f"[{flow_name}] Flow completed")
        return self._last_result

    def can_execute_step(self, name: str) -> bool:
        step_def = self._steps.get(name)
        if step_def is None or name in self.step_results:
            return False
        if step_def.condition is None:
            return True
        return step_def.condition.is_met(self._emitted)

    def _call(self, name: str, previous_result: Any) -> Any:
        method = getattr(self, name)
        if inspect.signature(method).parameters:
            return method(previous_result)
        return method()

    def _execute_step(self, name: str, previous_result: Any = None) -> Any:
        step_def = self._steps[name]
        self.state["current_step"] = name
        self._log_event("step_started", {"step": name})

        started = time.time()
        try:
            result = self._call(name, previous_result)
        except FlowError:
            raise
        except Exception as exc:
            self._log_event("step_failed", {"step": name, "error": str(exc)})
            raise FlowError(
                code="STEP_EXECUTION_FAILED",
                message=f"Step {name} failed: {exc}",
                details={"step": name, "error": str(exc), "type": type(exc).__name__},
                recoverable=False,
            ) from exc

        duration_ms = int((time.time() - started) * 1000)
        self.step_results[name] = result
        self.completed_steps.append(name)
        self._last_result = result
        self._log_event("step_completed", {"step": name, "duration_ms": duration_ms})

        trigger = name
        if step_def.is_router:
            trigger = str(result)
            self._log_event("decision_made", {"step": name, "label": trigger})
        self._emitted.append(trigger)

        self._execute_listeners(trigger, result)
        return result

    def _execute_listeners(self, trigger: str, result: Any):
        for name, step_def in self._steps.items():
            if step_def.condition is None or trigger not in step_def.condition.triggers:
                continue
            if self.can_execute_step(name):
                self._execute_step(name, result)

    # ── Visualisation ────────────────────────────────────────────────

    def plot(self) -> Dict[str, List[Dict[str, Any]]]:
        """Nodes and edges of the step graph."""
        nodes, edges = [], []
        for index, (name, step_def) in enumerate(self._steps.items()):
            nodes.append({
                "id": name,
                "label": step_def.description or name,
                "type": step_def.step_type.value,
                "is_start": step_def.is_start,
                "is_router": step_def.is_router,
                "position": {"x": index * 200, "y": 0},
            })
            if step_def.condition is None:
                continue
            for trigger in step_def.condition.triggers:
                edges.append({
                    "source": trigger,
                    "target": name,
                    "type": "route" if trigger not in self._steps else "dependency",
                    "mode": step_def.condition.mode,
                })
        return {"nodes": nodes, "edges": edges}

    def plot_html(self) -> str:
        data = self.plot()
        title = html.escape(type(self).__name__)
        nodes = "\n".join(
            f'    <div class="node{" start-node" if n["is_start"] else ""}">'
            f'{html.escape(n["id"])} <small>({n["type"]})</small></div>'
            for n in data["nodes"]
        )
        edges = "\n".join(
            f'    <li>{html.escape(e["source"])} &rarr; {html.escape(e["target"])}'
            f' <small>{e["type"]}, {e["mode"]}</small></li>'
            for e in data["edges"]
        )
        return f"""<!DOCTYPE html>
<html>
<head>
  <title>Flow Visualization - {title}</title>
  <style>
    body {{ font-family: Arial, sans-serif; margin: 20px; }}
    .node {{ background: #f0f0f0; border: 1px solid #ccc; padding: 10px; margin: 5px; }}
    .start-node {{ background: #90EE90; }}
  </style>
</head>
<body>
  <h1>Flow: {title}</h1>
  <div>
{nodes}
  </div>
  <h2>Dependencies</h2>
  <ul>
{edges}
  </ul>
</body>
</html>
"""

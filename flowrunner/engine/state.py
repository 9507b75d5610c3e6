"""
Run State for the Workflow Engine.

An ExecutionRun is the engine's record of one run: which nodes were already
dispatched, which are still queued, and where a paused run should pick up.
It survives a pause/resume cycle and is cleared when the run ends.
"""

from typing import Any, Deque, Dict, List, Optional, Set
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
import asyncio
import uuid

from flowrunner.engine.node import Node


class RunPhase(str, Enum):
    """Phase of the engine's state machine."""
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


@dataclass
class ControlResult:
    """Outcome of a control call (start, pause, resume, reset)."""
    ok: bool
    reason: str

    def __bool__(self) -> bool:
        return self.ok

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": self.ok, "reason": self.reason}


@dataclass
class ExecutionStep:
    """A single node dispatch in the execution log."""
    step: int
    node_id: str
    node_name: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_ms: Optional[float] = None
    result: str = "running"
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "step": self.step,
            "node_id": self.node_id,
            "node_name": self.node_name,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
            "result": self.result,
            "error": self.error,
        }


@dataclass
class ExecutionRun:
    """
    Engine-internal state of the live run.

    Attributes:
        visited: Ids of nodes already dispatched in this run
        frontier: FIFO queue of nodes awaiting dispatch
        pending_entries: Entry nodes whose traversal has not started yet
        current: Node whose execution is in flight
        paused_at: Node to resume from, set only while paused
        steps: Dispatch log
        interrupt: Set on pause or reset to cut a pacing wait short
        task: Background task driving this run's traversal
    """

    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    visited: Set[str] = field(default_factory=set)
    frontier: Deque[Node] = field(default_factory=deque)
    pending_entries: Deque[Node] = field(default_factory=deque)
    current: Optional[Node] = None
    paused_at: Optional[Node] = None
    active_entry: Optional[Node] = None
    steps: List[ExecutionStep] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    interrupt: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    task: Optional[asyncio.Task] = field(default=None, repr=False)

    @classmethod
    def for_entries(cls, entries: List[Node]) -> "ExecutionRun":
        return cls(pending_entries=deque(entries))

    @property
    def driving(self) -> bool:
        """True while a traversal of this run is still in flight."""
        return self.task is not None and not self.task.done()

    def next_entry(self) -> Optional[Node]:
        """Seed the frontier with the next entry node, if any."""
        if not self.pending_entries:
            return None
        entry = self.pending_entries.popleft()
        self.active_entry = entry
        self.frontier.append(entry)
        return entry

    def hold(self, node: Node) -> None:
        """Put an interrupted node back so it is dispatched again on resume."""
        self.visited.discard(node.id)
        self.frontier.appendleft(node)
        self.paused_at = node

    def start_step(self, node: Node) -> ExecutionStep:
        step = ExecutionStep(
            step=len(self.steps) + 1,
            node_id=node.id,
            node_name=node.name,
            started_at=datetime.now(),
        )
        self.steps.append(step)
        return step

    def clear(self) -> None:
        """Drop all traversal state."""
        self.visited.clear()
        self.frontier.clear()
        self.pending_entries.clear()
        self.current = None
        self.paused_at = None
        self.active_entry = None

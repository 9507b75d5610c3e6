"""
Async Execution Engine.

The engine owns the run/pause/resume state machine and walks the graph
breadth-first from every entry node, dispatching each reachable node to the
NodeExecutor exactly once per run.
"""

from typing import Any, Dict, List, Optional, Set
from datetime import datetime
import asyncio
import logging

from flowrunner.engine.errors import NodeExecutionError
from flowrunner.engine.events import (
    EventSink,
    Notification,
    NotificationLevel,
    NullSink,
    StatusChange,
)
from flowrunner.engine.executor import NodeExecutor
from flowrunner.engine.graph import Graph
from flowrunner.engine.node import Node, NodeStatus
from flowrunner.engine.state import ControlResult, ExecutionRun, ExecutionStep, RunPhase


logger = logging.getLogger(__name__)


class ExecutionEngine:
    """
    Runs a workflow graph.

    Handles:
    - Breadth-first traversal from each entry node, in declaration order
    - At-most-once dispatch per node per run (diamonds and cycles)
    - Cooperative pause, observed when the in-flight node settles
    - Resume without re-running completed nodes
    - Run-level failure on the first node error

    Only one run is live at a time. Pause and reset are plain methods so
    they can be called while `start()` is being awaited elsewhere.

    Usage:
        engine = ExecutionEngine(graph, sink)
        result = await engine.start()
    """

    def __init__(
        self,
        graph: Graph,
        sink: Optional[EventSink] = None,
        executor: Optional[NodeExecutor] = None,
    ):
        """
        Initialize the engine.

        Args:
            graph: The graph to run; read at start and on every successor lookup
            sink: Receiver of notifications and status changes
            executor: Node executor (defaults to a NodeExecutor on the same sink)
        """
        self.graph = graph
        self.sink = sink or NullSink()
        self.executor = executor or NodeExecutor(self.sink)

        self._phase = RunPhase.IDLE
        self._run: Optional[ExecutionRun] = None
        self._task: Optional[asyncio.Task] = None
        self._tasks: Set[asyncio.Task] = set()
        self._last_steps: List[ExecutionStep] = []

    @property
    def phase(self) -> RunPhase:
        """Get the current phase."""
        return self._phase

    @property
    def run(self) -> Optional[ExecutionRun]:
        """The live run, if any."""
        return self._run

    @property
    def current_node(self) -> Optional[Node]:
        return self._run.current if self._run else None

    @property
    def paused_at(self) -> Optional[Node]:
        if self._run and self._phase == RunPhase.PAUSED:
            return self._run.paused_at
        return None

    # ------------------------------------------------------------
    # Control operations
    # ------------------------------------------------------------

    async def start(self) -> ControlResult:
        """
        Start a run and drive it until it completes, pauses or fails.

        Starting while paused continues the paused run.
        """
        if self._phase == RunPhase.PAUSED:
            return await self.resume()

        result = self._begin_run()
        if not result:
            return result
        return await self._spawn(self._run)

    def start_background(self) -> ControlResult:
        """Validate and start a run, driving it in a background task."""
        if self._phase == RunPhase.PAUSED:
            return self.resume_background()

        result = self._begin_run()
        if result:
            self._spawn(self._run)
        return result

    def pause(self) -> ControlResult:
        """
        Pause the running workflow.

        The in-flight node's visible status goes back to idle; its side
        effect is not rolled back, and the node runs again on resume.
        """
        if self._phase != RunPhase.RUNNING:
            return self._reject(NotificationLevel.WARNING, "No workflow is currently executing")

        run = self._run
        self._phase = RunPhase.PAUSED
        run.interrupt.set()
        run.paused_at = run.current
        if run.current is not None:
            self._set_status(run.current, NodeStatus.IDLE)

        where = run.current.name if run.current else "next queued node"
        self._notify(NotificationLevel.WARNING, f"Workflow execution paused at: {where}")
        logger.info(f"Run {run.run_id} paused at {where}")
        return ControlResult(True, "paused")

    async def resume(self) -> ControlResult:
        """
        Resume a paused run and drive it until it completes, pauses or fails.

        If the node that was in flight at pause time has not settled yet,
        its traversal simply carries on.
        """
        result = self._resume_run()
        if not result:
            return result
        return await self._driver_for(self._run)

    def resume_background(self) -> ControlResult:
        """Resume a paused run in a background task."""
        result = self._resume_run()
        if result:
            self._driver_for(self._run)
        return result

    def reset(self) -> ControlResult:
        """
        Return to idle from any phase.

        All node statuses go back to idle and the run is discarded. A node
        still in flight finishes in the background without touching status,
        and a new run can start right away.
        """
        run = self._run
        self._phase = RunPhase.IDLE
        self._run = None
        if run is not None:
            run.interrupt.set()
            self._last_steps = list(run.steps)
            run.clear()

        self._clear_statuses()
        self._notify(NotificationLevel.INFO, "Execution state reset")
        return ControlResult(True, "reset")

    async def wait(self) -> Optional[ControlResult]:
        """Wait for the latest run task, if one was started."""
        if self._task is None:
            return None
        return await self._task

    async def close(self) -> None:
        """Reset and cancel every traversal still in flight."""
        self.reset()
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------

    def _begin_run(self) -> ControlResult:
        if self._phase == RunPhase.RUNNING:
            return self._reject(NotificationLevel.WARNING, "Workflow is already executing")

        # Recomputed on every start, never cached
        entries = self.graph.find_entry_nodes()
        if not entries:
            return self._reject(
                NotificationLevel.ERROR,
                "No entry nodes found. Please add an entry node to begin execution."
            )
        if not self.graph.find_exit_nodes():
            return self._reject(
                NotificationLevel.ERROR,
                "No exit nodes found. Please add an exit node to complete execution."
            )

        self._notify(NotificationLevel.SUCCESS, "Starting workflow execution...")
        self._clear_statuses()
        self._run = ExecutionRun.for_entries(entries)
        self._phase = RunPhase.RUNNING
        logger.info(f"Run {self._run.run_id} started with {len(entries)} entry node(s)")
        return ControlResult(True, "started")

    def _resume_run(self) -> ControlResult:
        if self._phase != RunPhase.PAUSED or self._run is None:
            return self._reject(NotificationLevel.WARNING, "No paused workflow to resume")

        run = self._run
        where = run.paused_at.name if run.paused_at else "next queued node"
        run.paused_at = None
        run.interrupt.clear()
        self._phase = RunPhase.RUNNING
        # Paused node has not settled yet; it counts as running again
        if run.driving and run.current is not None:
            self._set_status(run.current, NodeStatus.RUNNING)

        self._notify(NotificationLevel.INFO, f"Resuming workflow execution from: {where}")
        return ControlResult(True, "resumed")

    def _end_run(self, run: ExecutionRun) -> None:
        self._last_steps = list(run.steps)
        run.clear()
        self._run = None
        self._phase = RunPhase.IDLE

    def _spawn(self, run: ExecutionRun) -> asyncio.Task:
        task = asyncio.create_task(self._drive(run))
        run.task = task
        self._task = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _driver_for(self, run: ExecutionRun) -> asyncio.Task:
        """Reuse the run's traversal if it is still in flight, else start one."""
        if run.driving:
            self._task = run.task
            return run.task
        return self._spawn(run)

    def _is_live(self, run: ExecutionRun) -> bool:
        return self._run is run and self._phase == RunPhase.RUNNING

    # ------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------

    async def _drive(self, run: ExecutionRun) -> ControlResult:
        """Traverse from each pending entry node until done, paused or failed."""
        try:
            while self._is_live(run):
                if not run.frontier and run.next_entry() is None:
                    break
                await self._execute_from_node(run)
                if self._is_live(run) and not run.frontier:
                    self._notify(
                        NotificationLevel.INFO,
                        f"Finished traversal from {run.active_entry.name}"
                    )
        except NodeExecutionError as e:
            if self._run is run:
                self._end_run(run)
            self._notify(NotificationLevel.ERROR, f"Workflow execution failed: {e}")
            logger.error(f"Run {run.run_id} failed: {e}")
            return ControlResult(False, str(e))

        if self._run is not run:
            return ControlResult(False, "Execution was reset")
        if self._phase == RunPhase.PAUSED:
            return ControlResult(True, "paused")

        self._end_run(run)
        self._notify(NotificationLevel.SUCCESS, "Workflow execution completed successfully")
        logger.info(f"Run {run.run_id} completed")
        return ControlResult(True, "completed")

    async def _execute_from_node(self, run: ExecutionRun) -> None:
        """Drain the frontier breadth-first."""
        while run.frontier and self._is_live(run):
            node = run.frontier.popleft()

            # Reachable through several predecessors, or removed by the editor
            if node.id in run.visited or node.id not in self.graph.nodes:
                continue
            run.visited.add(node.id)

            if node.status == NodeStatus.COMPLETED:
                run.frontier.extend(self.graph.successors_of(node))
                continue

            await self._dispatch(run, node)

    async def _dispatch(self, run: ExecutionRun, node: Node) -> None:
        """Execute one node and record the outcome."""
        run.current = node
        step = run.start_step(node)
        self._set_status(node, NodeStatus.RUNNING)
        self._notify(NotificationLevel.INFO, f"Executing: {node.name}")

        try:
            await self.executor.execute(node, run.interrupt)
        except Exception as e:
            self._finish_step(step, error=e)
            if self._interrupted(run, node, step):
                # Still reported; the run stays paused and the node is retried on resume
                if self._run is run:
                    self._set_status(node, NodeStatus.ERROR)
                self._notify(NotificationLevel.ERROR, f"Error executing {node.name}: {e}")
                logger.info(f"'{node.name}' failed after the run was interrupted: {e}")
                return
            self._set_status(node, NodeStatus.ERROR)
            self._notify(NotificationLevel.ERROR, f"Error executing {node.name}: {e}")
            if isinstance(e, NodeExecutionError):
                raise
            raise NodeExecutionError(node.id, str(e) or e.__class__.__name__, e) from e
        finally:
            run.current = None

        self._finish_step(step)
        if self._interrupted(run, node, step):
            return

        self._set_status(node, NodeStatus.COMPLETED)
        self._notify(NotificationLevel.SUCCESS, f"Completed: {node.name}")
        run.frontier.extend(self.graph.successors_of(node))

    def _interrupted(self, run: ExecutionRun, node: Node, step: ExecutionStep) -> bool:
        """Check for a pause or reset that happened while the node was in flight."""
        if self._is_live(run):
            return False
        step.result = "interrupted"
        if self._run is run:
            run.hold(node)
        return True

    @staticmethod
    def _finish_step(step: ExecutionStep, error: Optional[Exception] = None) -> None:
        step.completed_at = datetime.now()
        step.duration_ms = (step.completed_at - step.started_at).total_seconds() * 1000
        if error is None:
            step.result = "success"
        else:
            step.result = "error"
            step.error = str(error)

    # ------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------

    def _set_status(self, node: Node, status: NodeStatus) -> None:
        if node.status == status:
            return
        node.status = status
        try:
            self.sink.status_changed(StatusChange(node.id, status))
        except Exception as e:
            logger.warning(f"Status callback failed: {e}")

    def _clear_statuses(self) -> None:
        for node in self.graph.nodes.values():
            self._set_status(node, NodeStatus.IDLE)

    def _notify(self, level: NotificationLevel, message: str) -> None:
        try:
            self.sink.notify(Notification(level, message))
        except Exception as e:
            logger.warning(f"Notification callback failed: {e}")

    def _reject(self, level: NotificationLevel, message: str) -> ControlResult:
        self._notify(level, message)
        return ControlResult(False, message)

    def get_execution_summary(self) -> Dict[str, Any]:
        """Get a summary of the current execution."""
        run = self._run
        steps = run.steps if run else self._last_steps
        return {
            "phase": self._phase.value,
            "run_id": run.run_id if run else None,
            "current_node": run.current.id if run and run.current else None,
            "paused_at": self.paused_at.id if self.paused_at else None,
            "statuses": {
                node_id: node.status.value
                for node_id, node in self.graph.nodes.items()
            },
            "steps": [s.to_dict() for s in steps],
        }

"""
Node Executor.

Performs the type-specific side effect of a single node. Entry and exit
nodes (and action nodes without a URL) only wait for the pacing delay;
action nodes with a URL issue an HTTP request under a hard timeout.
"""

from typing import Dict, Optional
from dataclasses import dataclass
import asyncio
import json
import logging
import time

import httpx

from flowrunner.engine.errors import NodeExecutionError
from flowrunner.engine.events import EventSink, Notification, NotificationLevel, NullSink
from flowrunner.engine.node import ActionConfig, Node, NodeType


logger = logging.getLogger(__name__)


@dataclass
class NodeResult:
    """Outcome of a successful node execution."""
    node_id: str
    duration_ms: float
    status_code: Optional[int] = None

    @property
    def http_ok(self) -> Optional[bool]:
        if self.status_code is None:
            return None
        return 200 <= self.status_code < 300


class NodeExecutor:
    """
    Dispatches a node to its side effect.

    Transport failures (connection errors, timeouts, invalid URLs) raise
    NodeExecutionError and stop the run. An HTTP error status is only a
    warning: the service was reached, so the node still completes.

    Usage:
        executor = NodeExecutor(sink)
        await executor.execute(node, interrupt)
    """

    def __init__(
        self,
        sink: Optional[EventSink] = None,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        pacing_delay: float = 0.0,
    ):
        """
        Initialize the executor.

        Args:
            sink: Where notifications go (defaults to a no-op sink)
            client: Shared HTTP client; a short-lived one is opened per call if omitted
            transport: Transport for per-call clients (e.g. httpx.MockTransport)
            pacing_delay: Seconds no-op nodes wait before completing
        """
        self.sink = sink or NullSink()
        self._client = client
        self._transport = transport
        self.pacing_delay = max(0.0, pacing_delay)

    async def execute(
        self,
        node: Node,
        interrupt: Optional[asyncio.Event] = None
    ) -> NodeResult:
        """
        Execute a node.

        Args:
            node: The node to execute; its config is read now, not earlier
            interrupt: Set by the engine on pause/reset to cut the pacing wait short

        Returns:
            NodeResult on success

        Raises:
            NodeExecutionError: if the node's side effect failed
        """
        started = time.time()
        status_code = None

        if node.type == NodeType.ACTION and node.config and node.config.url:
            status_code = await self._call_api(node)
        else:
            await self._pace(interrupt)

        return NodeResult(
            node_id=node.id,
            duration_ms=(time.time() - started) * 1000,
            status_code=status_code,
        )

    async def _pace(self, interrupt: Optional[asyncio.Event]) -> None:
        """Wait for the pacing delay, returning early once interrupted."""
        if self.pacing_delay <= 0:
            await asyncio.sleep(0)
            return
        if interrupt is None:
            await asyncio.sleep(self.pacing_delay)
            return
        try:
            await asyncio.wait_for(interrupt.wait(), timeout=self.pacing_delay)
        except asyncio.TimeoutError:
            pass  # delay elapsed without interruption

    async def _call_api(self, node: Node) -> int:
        """Issue the configured request and classify the outcome."""
        config: ActionConfig = node.config
        self._notify(NotificationLevel.INFO, f"Making {config.method} request to {config.url}")

        request_kwargs = {"headers": self.parse_headers(config.headers)}
        if config.sends_body:
            request_kwargs["content"] = config.body

        timeout = config.timeout_seconds
        try:
            response = await asyncio.wait_for(
                self._send(config.method, config.url, timeout, **request_kwargs),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            message = f"Request to {config.url} timed out after {timeout}s"
            self._notify(NotificationLevel.ERROR, f"API call failed: {message}")
            raise NodeExecutionError(node.id, message, e) from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            message = str(e) or e.__class__.__name__
            self._notify(NotificationLevel.ERROR, f"API call failed: {message}")
            raise NodeExecutionError(node.id, message, e) from e

        if response.is_success:
            self._notify(
                NotificationLevel.SUCCESS,
                f"API call successful: {response.status_code} {response.reason_phrase}"
            )
        else:
            self._notify(
                NotificationLevel.WARNING,
                f"API call failed: {response.status_code} {response.reason_phrase}"
            )

        logger.debug(f"API response from {config.url}: {response.text[:1000]}")
        return response.status_code

    async def _send(
        self,
        method: str,
        url: str,
        timeout: float,
        **kwargs
    ) -> httpx.Response:
        if self._client is not None:
            return await self._client.request(method, url, timeout=timeout, **kwargs)

        async with httpx.AsyncClient(transport=self._transport, timeout=timeout) as client:
            return await client.request(method, url, **kwargs)

    def parse_headers(self, raw: str) -> Dict[str, str]:
        """
        Parse a JSON object of headers.

        An empty string means no headers. Anything that is not a JSON object
        falls back to no headers with a warning.
        """
        if not raw or not raw.strip():
            return {}
        try:
            parsed = json.loads(raw)
        except ValueError:
            parsed = None

        if not isinstance(parsed, dict):
            self._notify(NotificationLevel.WARNING, "Invalid headers JSON, using default headers")
            return {}

        return {str(k): str(v) for k, v in parsed.items()}

    def _notify(self, level: NotificationLevel, message: str) -> None:
        self.sink.notify(Notification(level, message))

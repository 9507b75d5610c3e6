"""
Demo Workflow.

A three-node workflow that shows the engine end to end:
1. Start Node (entry)
2. API Call Node - GET a sample JSON document
3. End Node (exit)
"""

from typing import Optional
import logging

from flowrunner.engine.graph import Graph
from flowrunner.engine.node import ActionConfig, Node, NodeType
from flowrunner.workspace import Workspace


logger = logging.getLogger(__name__)


DEMO_URL = "https://jsonplaceholder.typicode.com/todos/1"


def create_demo_workflow(graph: Optional[Graph] = None, url: str = DEMO_URL) -> Graph:
    """
    Build the demo workflow.

    Args:
        graph: Graph to add the nodes to (a new one if omitted)
        url: Endpoint the action node calls

    Returns:
        The populated graph
    """
    graph = graph if graph is not None else Graph(name="Demo Workflow")

    start = graph.add_node(Node(type=NodeType.ENTRY))
    fetch = graph.add_node(Node(
        type=NodeType.ACTION,
        name="Fetch Todo",
        config=ActionConfig(url=url, method="GET", timeout_seconds=10),
    ))
    end = graph.add_node(Node(type=NodeType.EXIT))

    graph.add_connection(start, fetch)
    graph.add_connection(fetch, end)
    return graph


def load_demo_workflow(workspace: Workspace) -> Graph:
    """Populate an empty workspace with the demo workflow."""
    if len(workspace.graph):
        logger.info("Workspace already has nodes, skipping demo workflow")
        return workspace.graph

    create_demo_workflow(workspace.graph, url=workspace.settings.DEMO_API_URL)
    logger.info("Loaded demo workflow")
    return workspace.graph

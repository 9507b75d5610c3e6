"""
Graph Definition for the Workflow Engine.

The Graph holds the typed nodes and the directed connections between them.
The editor builds and mutates it; the engine only reads it and writes
per-node status.
"""

from typing import Any, Dict, List, Optional, Union
from dataclasses import dataclass, field
import uuid

from flowrunner.engine.errors import GraphError
from flowrunner.engine.node import ActionConfig, Node, NodeType


NodeRef = Union[Node, str]


@dataclass(frozen=True)
class Connection:
    """A directed connection between two nodes, referenced by id."""
    source: str
    target: str

    def to_dict(self) -> Dict[str, str]:
        return {"source": self.source, "target": self.target}


@dataclass
class Graph:
    """
    A workflow graph consisting of nodes and connections.

    Node insertion order is the declaration order used when the engine
    picks entry nodes; connection insertion order is the order in which
    successors are enqueued.

    Attributes:
        graph_id: Unique identifier for this graph
        name: Human-readable name
        nodes: Dict of node_id -> Node
        connections: Ordered list of connections
    """

    graph_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    name: str = "Untitled Workflow"
    nodes: Dict[str, Node] = field(default_factory=dict)
    connections: List[Connection] = field(default_factory=list)
    description: str = ""

    # ------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------

    def add_node(self, node: Node) -> Node:
        """Add an existing node to the graph."""
        if node.id in self.nodes:
            raise GraphError(f"Node '{node.id}' already exists in the graph")
        self.nodes[node.id] = node
        return node

    def create_node(
        self,
        node_type: Union[NodeType, str],
        name: str = "",
        config: Optional[Union[ActionConfig, Dict[str, Any]]] = None,
    ) -> Node:
        """
        Create a node of the given type and add it to the graph.

        Args:
            node_type: Entry, action or exit
            name: Label (defaults to the type's default name)
            config: Action configuration, as a model or plain dict

        Returns:
            The created node
        """
        if isinstance(config, dict):
            config = ActionConfig(**config)
        return self.add_node(Node(type=node_type, name=name, config=config))

    def get_node(self, node_id: str) -> Optional[Node]:
        """Get a node by id."""
        return self.nodes.get(node_id)

    def remove_node(self, node: NodeRef) -> bool:
        """Remove a node together with every connection touching it."""
        node_id = self._resolve_id(node)
        if node_id not in self.nodes:
            return False
        del self.nodes[node_id]
        self.connections = [
            c for c in self.connections
            if c.source != node_id and c.target != node_id
        ]
        return True

    def add_connection(self, source: NodeRef, target: NodeRef) -> Connection:
        """
        Connect source to target.

        Raises:
            GraphError: on unknown endpoints, self-connections or duplicates
        """
        source_id = self._resolve_id(source)
        target_id = self._resolve_id(target)

        if source_id not in self.nodes:
            raise GraphError(f"Source node '{source_id}' not found in graph")
        if target_id not in self.nodes:
            raise GraphError(f"Target node '{target_id}' not found in graph")
        if source_id == target_id:
            raise GraphError(f"Node '{source_id}' cannot be connected to itself")
        if self.has_connection(source_id, target_id):
            raise GraphError(
                f"Connection '{source_id}' -> '{target_id}' already exists"
            )

        connection = Connection(source=source_id, target=target_id)
        self.connections.append(connection)
        return connection

    def remove_connection(self, source: NodeRef, target: NodeRef) -> bool:
        """Remove the connection source -> target if present."""
        source_id = self._resolve_id(source)
        target_id = self._resolve_id(target)
        before = len(self.connections)
        self.connections = [
            c for c in self.connections
            if not (c.source == source_id and c.target == target_id)
        ]
        return len(self.connections) < before

    def clear(self) -> None:
        """Drop every node and connection."""
        self.nodes.clear()
        self.connections.clear()

    # ------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------

    def find_entry_nodes(self) -> List[Node]:
        return [n for n in self.nodes.values() if n.is_entry]

    def find_exit_nodes(self) -> List[Node]:
        return [n for n in self.nodes.values() if n.is_exit]

    def successors_of(self, node: NodeRef) -> List[Node]:
        """
        Get the nodes reachable through one outgoing connection.

        Targets are returned in connection insertion order. Connections
        pointing at nodes that no longer exist are ignored.
        """
        node_id = self._resolve_id(node)
        return [
            self.nodes[c.target]
            for c in self.connections
            if c.source == node_id and c.target in self.nodes
        ]

    def has_connection(self, source: NodeRef, target: NodeRef) -> bool:
        source_id = self._resolve_id(source)
        target_id = self._resolve_id(target)
        return any(
            c.source == source_id and c.target == target_id
            for c in self.connections
        )

    def validate(self) -> List[str]:
        """
        Validate the graph structure.

        Only the presence of entry and exit nodes is checked; cycles and
        unreachable nodes are allowed.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []
        if not self.find_entry_nodes():
            errors.append("No entry nodes found. Please add an entry node to begin execution.")
        if not self.find_exit_nodes():
            errors.append("No exit nodes found. Please add an exit node to complete execution.")
        return errors

    @staticmethod
    def _resolve_id(node: NodeRef) -> str:
        return node.id if isinstance(node, Node) else node

    # ------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the graph to a dictionary."""
        return {
            "graph_id": self.graph_id,
            "name": self.name,
            "description": self.description,
            "nodes": [node.to_dict() for node in self.nodes.values()],
            "connections": [c.to_dict() for c in self.connections],
            "entry_nodes": [n.id for n in self.find_entry_nodes()],
            "exit_nodes": [n.id for n in self.find_exit_nodes()],
        }

    def to_mermaid(self) -> str:
        """Generate a Mermaid diagram of the graph."""
        lines = ["graph LR"]

        for node_id, node in self.nodes.items():
            label = node.name.replace('"', "'")
            if node.type == NodeType.ENTRY:
                lines.append(f'    {node_id}(["{label}"])')
            elif node.type == NodeType.EXIT:
                lines.append(f'    {node_id}[["{label}"]]')
            else:
                lines.append(f'    {node_id}["{label}"]')

        for c in self.connections:
            lines.append(f"    {c.source} --> {c.target}")

        return "\n".join(lines)

    def __len__(self) -> int:
        return len(self.nodes)

    def __repr__(self) -> str:
        return (
            f"Graph(name='{self.name}', nodes={list(self.nodes.keys())}, "
            f"connections={len(self.connections)})"
        )

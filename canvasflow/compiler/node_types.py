"""
Node Type Registry - Canvas palette entries, connection points, and node factories.
Maps the canvas renderer names onto payload variants and applies the
form-save rules (blank rows are dropped) before a node reaches the compiler.
"""

import uuid
from typing import Optional, Dict, List, Any

from canvasflow.compiler.manifest import (
    CANVAS_NODE_TYPES, DEFAULT_HANDLE, NodeKind, FlowGraph, FlowNode,
    InputNodeData, ActionNodeData, ConditionNodeData,
)


ENTRY_NODE_ID = "input"

NODE_LABELS: Dict[NodeKind, str] = {
    NodeKind.INPUT: "Input",
    NodeKind.ACTION: "Action",
    NodeKind.CONDITION: "Condition",
}

# The input node is created with the graph; only these can be dropped from the palette
PALETTE_KINDS = (NodeKind.ACTION, NodeKind.CONDITION)

CANVAS_TYPE_BY_KIND: Dict[NodeKind, str] = {kind: name for name, kind in CANVAS_NODE_TYPES.items()}


def generate_node_id() -> str:
    return uuid.uuid4().hex[:21]


def list_node_types() -> List[Dict[str, Any]]:
    """Registry listing for the palette."""
    return [
        {
            "kind": kind.value,
            "canvas_type": CANVAS_TYPE_BY_KIND[kind],
            "label": NODE_LABELS[kind],
            "droppable": kind in PALETTE_KINDS,
        }
        for kind in NodeKind
    ]


def source_handles(node: FlowNode) -> List[Dict[str, Optional[str]]]:
    """Outgoing connection points of a node, in the order the canvas draws them."""
    if isinstance(node.data, ConditionNodeData):
        return [{"id": DEFAULT_HANDLE, "label": "Default Branch"}] + [
            {"id": c.id, "label": c.label} for c in node.data.conditions
        ]
    return [{"id": None, "label": None}]


def new_node(kind: NodeKind, position: Optional[Dict[str, float]] = None) -> FlowNode:
    """Create a fresh palette node with default payload."""
    kind = NodeKind(kind)
    if kind not in PALETTE_KINDS:
        raise ValueError(f"Node kind '{kind.value}' cannot be created from the palette")

    data = ActionNodeData() if kind == NodeKind.ACTION else ConditionNodeData()
    return FlowNode(
        id=generate_node_id(),
        type=CANVAS_TYPE_BY_KIND[kind],
        position=position or {"x": 0, "y": 0},
        data=data,
    )


def initial_graph() -> FlowGraph:
    """A new canvas holds only the input node."""
    return FlowGraph(nodes=(
        FlowNode(
            id=ENTRY_NODE_ID,
            type=CANVAS_TYPE_BY_KIND[NodeKind.INPUT],
            position={"x": 250, "y": 20},
            data=InputNodeData(),
        ),
    ))


def normalize_node(node: FlowNode) -> FlowNode:
    """Apply the form-save rules: rows with a blank name/label/parameter are dropped."""
    data = node.data
    if isinstance(data, InputNodeData):
        data = data.model_copy(update={
            "properties": tuple(p for p in data.properties if p.name.strip()),
        })
    elif isinstance(data, ActionNodeData):
        data = data.model_copy(update={
            "inputs": tuple(b for b in data.inputs if b.parameter.strip()),
        })
    elif isinstance(data, ConditionNodeData):
        data = data.model_copy(update={
            "conditions": tuple(c for c in data.conditions if c.label.strip()),
        })
    return node.model_copy(update={"data": data})


def normalize_graph(graph: FlowGraph) -> FlowGraph:
    return graph.model_copy(update={"nodes": tuple(normalize_node(n) for n in graph.nodes)})

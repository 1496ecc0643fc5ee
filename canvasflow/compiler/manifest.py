"""
Graph Manifest Schema - Immutable snapshot of the canvas graph (nodes + edges).
The manifest is the bridge between the ReactFlow canvas and the flow compiler.
Every canvas state serializes to this format before compilation.
"""

from typing import Annotated, Optional, Dict, List, Any, Literal, Tuple, Union
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


DEFAULT_HANDLE = "default"


class NodeKind(str, Enum):
    """Payload variants a canvas node can carry."""
    INPUT = "input"
    ACTION = "action"
    CONDITION = "condition"


# canvas renderer name -> payload variant
CANVAS_NODE_TYPES: Dict[str, NodeKind] = {
    "app-input": NodeKind.INPUT,
    "app-action": NodeKind.ACTION,
    "app-condition": NodeKind.CONDITION,
}


class InputProperty(BaseModel):
    """A property declared on the input node; becomes a schema property."""
    model_config = ConfigDict(frozen=True)

    id: str = ""
    name: str
    type: Literal["string", "number"] = "string"
    required: bool = False

    @field_validator("type", mode="before")
    @classmethod
    def lower_type(cls, v: Any) -> Any:
        # the canvas form sends "String"/"Number" in some versions
        return v.lower() if isinstance(v, str) else v


class ParameterBinding(BaseModel):
    """Maps an action parameter to an expression evaluated by the engine."""
    model_config = ConfigDict(frozen=True)

    id: str = ""
    parameter: str
    expression: str = ""


class BranchDeclaration(BaseModel):
    """A guarded branch on a condition node. `id` doubles as its source handle."""
    model_config = ConfigDict(frozen=True)

    id: str
    label: str = ""
    expression: str = ""


class InputNodeData(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["input"] = "input"
    properties: Tuple[InputProperty, ...] = ()


class ActionNodeData(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: Literal["action"] = "action"
    action_name: Optional[str] = Field(default=None, alias="actionName")
    inputs: Tuple[ParameterBinding, ...] = ()


class ConditionNodeData(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["condition"] = "condition"
    conditions: Tuple[BranchDeclaration, ...] = ()


NodeData = Annotated[
    Union[InputNodeData, ActionNodeData, ConditionNodeData],
    Field(discriminator="type"),
]


class FlowNode(BaseModel):
    """A single node on the canvas."""
    model_config = ConfigDict(frozen=True)

    id: str
    type: Optional[str] = None  # canvas renderer, e.g. "app-action"
    position: Dict[str, float] = Field(default_factory=lambda: {"x": 0, "y": 0})
    data: NodeData

    @model_validator(mode="before")
    @classmethod
    def infer_payload_type(cls, values: Any) -> Any:
        """Fill `data.type` from the canvas renderer name when the payload omits it."""
        if not isinstance(values, dict):
            return values
        data = values.get("data")
        kind = CANVAS_NODE_TYPES.get(values.get("type") or "")
        if isinstance(data, dict) and "type" not in data and kind is not None:
            values = {**values, "data": {**data, "type": kind.value}}
        return values

    @property
    def kind(self) -> NodeKind:
        return NodeKind(self.data.type)


class FlowEdge(BaseModel):
    """A directed connection; `source_handle` picks the exit point on a condition node."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: Optional[str] = None
    source: str
    target: str
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")


class FlowGraph(BaseModel):
    """
    Read-only snapshot of the canvas handed to the compiler.
    Node and edge order is preserved; the first matching edge always wins.
    """
    model_config = ConfigDict(frozen=True)

    nodes: Tuple[FlowNode, ...] = ()
    edges: Tuple[FlowEdge, ...] = ()

    @classmethod
    def from_canvas(cls, nodes: Any, edges: Any) -> "FlowGraph":
        """Snapshot raw canvas collections (dicts or models) into a frozen graph."""
        return cls.model_validate({
            "nodes": [_as_dict(n) for n in nodes or []],
            "edges": [_as_dict(e) for e in edges or []],
        })

    def get_node(self, node_id: str) -> Optional[FlowNode]:
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def get_outgoing_edges(self, node_id: str) -> List[FlowEdge]:
        return [e for e in self.edges if e.source == node_id]

    def get_incoming_edges(self, node_id: str) -> List[FlowEdge]:
        return [e for e in self.edges if e.target == node_id]

    def find_edge(self, source: str, handle: str) -> Optional[FlowEdge]:
        for e in self.edges:
            if e.source == source and e.source_handle == handle:
                return e
        return None

    def get_entry_nodes(self) -> List[FlowNode]:
        return [n for n in self.nodes if isinstance(n.data, InputNodeData)]

    def validate(self) -> List[str]:
        """Lint the graph for structural problems. Returns list of issue messages."""
        issues = []
        node_ids = [n.id for n in self.nodes]
        known = set(node_ids)

        if not self.nodes:
            issues.append("Graph has no nodes")

        seen = set()
        for nid in node_ids:
            if nid in seen:
                issues.append(f"Duplicate node id '{nid}'")
            seen.add(nid)

        entries = self.get_entry_nodes()
        if not entries:
            issues.append("No input node found")
        elif len(entries) > 1:
            issues.append(
                f"Multiple input nodes found: {', '.join(n.id for n in entries)}"
            )

        for e in self.edges:
            label = e.id or f"{e.source}->{e.target}"
            if e.source not in known:
                issues.append(f"Edge {label}: source '{e.source}' not found")
            if e.target not in known:
                issues.append(f"Edge {label}: target '{e.target}' not found")
            target = self.get_node(e.target)
            if target is not None and isinstance(target.data, InputNodeData):
                issues.append(f"Edge {label}: input node '{e.target}' cannot be a target")

        for n in self.nodes:
            outgoing = self.get_outgoing_edges(n.id)
            if isinstance(n.data, ConditionNodeData):
                handles = {DEFAULT_HANDLE} | {c.id for c in n.data.conditions}
                for e in outgoing:
                    if e.source_handle not in handles:
                        issues.append(
                            f"Condition node '{n.id}' has an edge from unknown handle "
                            f"'{e.source_handle}'"
                        )
            elif len(outgoing) > 1:
                issues.append(
                    f"Node '{n.id}' has {len(outgoing)} outgoing edges; only the first is followed"
                )

        return issues


def _as_dict(item: Any) -> Any:
    if isinstance(item, BaseModel):
        return item.model_dump(by_alias=True)
    return item

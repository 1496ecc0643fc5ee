"""
Graph Compiler - Compiles a canvas graph snapshot into a nested flow definition.
This is the bridge between the no-code canvas and the workflow engine.

Compilation Pipeline:
1. Entry resolution (exactly one input node)
2. Traversal from the entry node (linear chains walked in place, branches recursed)
3. Module construction (actions -> scripts, conditions -> branch constructs)
4. Input schema derivation from the entry node's declared properties
5. Result assembly with fatal errors and non-fatal warnings kept apart
"""

import logging
import time
from enum import Enum
from typing import Optional, Dict, List, Any, Iterable, Sequence, Set, Tuple
from pydantic import BaseModel, Field

from canvasflow.compiler.manifest import (
    DEFAULT_HANDLE, FlowGraph, FlowNode, FlowEdge,
    InputNodeData, ActionNodeData, ConditionNodeData,
)
from canvasflow.compiler.flow import (
    Branch, BranchOneValue, FlowDocument, FlowModule, FlowValue,
    InputSchema, InputTransform, SchemaProperty, ScriptValue,
)
from canvasflow.config.settings import settings

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    """Structural failures that prevent producing any document."""
    NO_ENTRY_NODE = "no_entry_node"
    MULTIPLE_ENTRY_NODES = "multiple_entry_nodes"
    CYCLE_DETECTED = "cycle_detected"


class WarningKind(str, Enum):
    """Anomalies absorbed into a best-effort partial document."""
    UNRESOLVED_TARGET = "unresolved_target"
    MISSING_BRANCH_EDGE = "missing_branch_edge"
    AMBIGUOUS_SUCCESSOR = "ambiguous_successor"
    INCOMPLETE_ACTION = "incomplete_action"


class CompileError(BaseModel):
    kind: ErrorKind
    message: str
    node_ids: List[str] = Field(default_factory=list)


class CompileWarning(BaseModel):
    kind: WarningKind
    message: str
    node_id: str
    edge_id: Optional[str] = None


class CycleDetectedError(Exception):
    """Raised mid-traversal when a node is reached again on its own path."""

    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__(f"Cycle detected: {' -> '.join(self.cycle)}")


class CompilationResult(BaseModel):
    """Result of compiling a canvas graph."""
    success: bool = False
    flow: Optional[FlowDocument] = None
    error: Optional[CompileError] = None
    warnings: List[CompileWarning] = Field(default_factory=list)
    entry_node: str = ""
    node_count: int = 0
    edge_count: int = 0
    compiled_node_ids: List[str] = Field(default_factory=list)
    compilation_time_ms: float = 0.0

    @property
    def status(self) -> str:
        if not self.success:
            return "not_compilable"
        return "compiled_with_warnings" if self.warnings else "compiled"

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json", exclude={"flow"})
        data["flow"] = self.flow.to_dict() if self.flow else None
        return data


class _CompileContext:
    """Per-call accumulator; nothing here outlives a single compile."""

    def __init__(self, graph: FlowGraph):
        self.graph = graph
        self.warnings: List[CompileWarning] = []
        self.compiled_node_ids: List[str] = []
        self._seen_warnings: Set[Tuple[Any, ...]] = set()

    def warn(
        self,
        kind: WarningKind,
        node_id: str,
        message: str,
        edge: Optional[FlowEdge] = None,
        branch_id: Optional[str] = None,
    ) -> None:
        edge_id = edge.id if edge else None
        # edge ids are optional, so the edge is keyed by its endpoints too
        key = (
            kind,
            node_id,
            branch_id,
            edge_id,
            edge.source_handle if edge else None,
            edge.target if edge else None,
        )
        # a node shared by two branches is compiled twice; report once
        if key in self._seen_warnings:
            return
        self._seen_warnings.add(key)
        logger.warning("%s (node=%s, edge=%s)", message, node_id, edge_id)
        self.warnings.append(
            CompileWarning(kind=kind, message=message, node_id=node_id, edge_id=edge_id)
        )


class GraphCompiler:
    """
    Compiles a FlowGraph (the canvas snapshot) into a FlowDocument.
    Stateless between calls: the same snapshot always yields the same document.
    """

    def __init__(
        self,
        schema_dialect: Optional[str] = None,
        honor_required: Optional[bool] = None,
    ):
        self._schema_dialect = schema_dialect or settings.json_schema_dialect
        self._honor_required = (
            settings.schema_honor_required if honor_required is None else honor_required
        )

    def compile(
        self,
        graph: FlowGraph,
        summary: str = "",
        description: str = "",
    ) -> CompilationResult:
        """
        Compile a FlowGraph into a FlowDocument.

        Returns a CompilationResult carrying either the document (plus any
        warnings) or the structural error that prevented compilation.
        """
        start = time.time()
        result = CompilationResult(
            node_count=len(graph.nodes),
            edge_count=len(graph.edges),
        )

        # Step 1: Resolve the entry node
        entries = graph.get_entry_nodes()
        if not entries:
            result.error = CompileError(kind=ErrorKind.NO_ENTRY_NODE, message="No start node")
            return self._finish(result, start)
        if len(entries) > 1:
            result.error = CompileError(
                kind=ErrorKind.MULTIPLE_ENTRY_NODES,
                message=f"Expected one input node, found {len(entries)}",
                node_ids=[n.id for n in entries],
            )
            return self._finish(result, start)

        entry = entries[0]
        result.entry_node = entry.id

        # Step 2-3: Walk the graph and build modules
        ctx = _CompileContext(graph)
        try:
            modules = self._collect_modules(entry, [], ctx)
        except CycleDetectedError as e:
            result.error = CompileError(
                kind=ErrorKind.CYCLE_DETECTED,
                message=str(e),
                node_ids=e.cycle,
            )
            result.warnings = ctx.warnings
            return self._finish(result, start)

        # Step 4: Derive the input schema
        result.flow = FlowDocument(
            summary=summary,
            description=description,
            value=FlowValue(modules=modules),
            input_schema=self.derive_schema(entry.data),
        )
        result.warnings = ctx.warnings
        result.compiled_node_ids = ctx.compiled_node_ids
        result.success = True
        return self._finish(result, start)

    def derive_schema(self, data: InputNodeData) -> InputSchema:
        """Build the JSON-Schema object contract from the input node's properties."""
        properties = {
            p.name: SchemaProperty(type=p.type.lower(), description="")
            for p in data.properties
        }
        required: List[str] = []
        if self._honor_required:
            for p in data.properties:
                if p.required and p.name not in required:
                    required.append(p.name)
        return InputSchema(
            schema_uri=self._schema_dialect,
            properties=properties,
            required=required,
        )

    def _finish(self, result: CompilationResult, start: float) -> CompilationResult:
        result.compilation_time_ms = round((time.time() - start) * 1000, 1)
        if result.success:
            logger.info(
                "Compiled flow from entry '%s': %d modules, %d warnings",
                result.entry_node,
                len(result.flow.value.modules),
                len(result.warnings),
            )
        else:
            logger.info("Flow not compilable: %s", result.error.message)
        return result

    # ── Traversal ─────────────────────────────────────────────────────

    def _collect_modules(
        self,
        start: FlowNode,
        ancestors: Iterable[str],
        ctx: _CompileContext,
    ) -> List[FlowModule]:
        """
        Compile the chain starting at `start` into a module list.

        Linear successors are followed in a loop; only condition branches
        recurse. `ancestors` is the path above this chain, used to detect cycles.
        """
        modules: List[FlowModule] = []
        path = list(ancestors)
        on_path = set(path)
        node = start

        while True:
            if node.id in on_path:
                raise CycleDetectedError(path[path.index(node.id):] + [node.id])
            path.append(node.id)
            on_path.add(node.id)
            logger.debug("Compiling node '%s' (%s)", node.id, node.data.type)

            data = node.data
            if isinstance(data, InputNodeData):
                pass
            elif isinstance(data, ActionNodeData):
                ctx.compiled_node_ids.append(node.id)
                modules.append(self._build_script_module(node, data, ctx))
            elif isinstance(data, ConditionNodeData):
                ctx.compiled_node_ids.append(node.id)
                modules.append(self._build_branch_module(node, data, path, ctx))
                # No other node can be put after a condition: everything
                # downstream lives under its default path or one of its branches.
                return modules
            else:
                raise ValueError(f"Unsupported node payload: {type(data).__name__}")

            next_node = self._next_node(node, ctx)
            if next_node is None:
                return modules
            node = next_node

    def _next_node(self, node: FlowNode, ctx: _CompileContext) -> Optional[FlowNode]:
        outgoing = ctx.graph.get_outgoing_edges(node.id)
        if not outgoing:
            return None

        edge = outgoing[0]
        if len(outgoing) > 1:
            ctx.warn(
                WarningKind.AMBIGUOUS_SUCCESSOR,
                node.id,
                f"Node '{node.id}' has {len(outgoing)} outgoing edges; following the first",
                edge,
            )
        return self._resolve_target(node, edge, ctx)

    def _resolve_target(
        self,
        node: FlowNode,
        edge: FlowEdge,
        ctx: _CompileContext,
    ) -> Optional[FlowNode]:
        target = ctx.graph.get_node(edge.target)
        if target is None:
            ctx.warn(
                WarningKind.UNRESOLVED_TARGET,
                node.id,
                f"Edge from '{node.id}' points to unknown node '{edge.target}'",
                edge,
            )
        return target

    def _build_script_module(
        self,
        node: FlowNode,
        data: ActionNodeData,
        ctx: _CompileContext,
    ) -> FlowModule:
        """Build a script invocation; parameter bindings keep their declared order."""
        if not data.action_name:
            ctx.warn(
                WarningKind.INCOMPLETE_ACTION,
                node.id,
                f"Action node '{node.id}' has no action selected",
            )
        return FlowModule(
            id=node.id,
            value=ScriptValue(
                path=data.action_name,
                input_transforms={
                    binding.parameter: InputTransform(expr=binding.expression)
                    for binding in data.inputs
                },
            ),
        )

    def _build_branch_module(
        self,
        node: FlowNode,
        data: ConditionNodeData,
        path: List[str],
        ctx: _CompileContext,
    ) -> FlowModule:
        """Build a branch construct from the default handle and each declared branch."""
        default_modules: List[FlowModule] = []
        default_edge = ctx.graph.find_edge(node.id, DEFAULT_HANDLE)
        if default_edge is not None:
            default_first = self._resolve_target(node, default_edge, ctx)
            if default_first is not None:
                default_modules = self._collect_modules(default_first, path, ctx)

        branches: List[Branch] = []
        for condition in data.conditions:
            branch_edge = ctx.graph.find_edge(node.id, condition.id)
            if branch_edge is None:
                ctx.warn(
                    WarningKind.MISSING_BRANCH_EDGE,
                    node.id,
                    f"Branch '{condition.label}' of condition '{node.id}' is not connected",
                    branch_id=condition.id,
                )
                continue

            branch_first = self._resolve_target(node, branch_edge, ctx)
            if branch_first is None:
                continue

            branches.append(Branch(
                summary=condition.label,
                expr=condition.expression,
                modules=self._collect_modules(branch_first, path, ctx),
            ))

        return FlowModule(
            id=node.id,
            summary="",
            value=BranchOneValue(default=default_modules, branches=branches),
        )


def compile_flow(
    nodes: Any,
    edges: Any,
    summary: str = "",
    description: str = "",
    compiler: Optional[GraphCompiler] = None,
) -> CompilationResult:
    """Snapshot raw canvas nodes/edges and compile them in one call."""
    graph = FlowGraph.from_canvas(nodes, edges)
    return (compiler or GraphCompiler()).compile(graph, summary=summary, description=description)

"""Flow Compiler - Compile canvas graphs into nested flow definitions"""
from .manifest import FlowGraph, FlowNode, FlowEdge, NodeKind
from .flow import FlowDocument, FlowModule, InputSchema
from .compiler import (
    GraphCompiler, CompilationResult, CompileError, CompileWarning,
    CycleDetectedError, ErrorKind, WarningKind, compile_flow,
)

__all__ = [
    "FlowGraph",
    "FlowNode",
    "FlowEdge",
    "NodeKind",
    "FlowDocument",
    "FlowModule",
    "InputSchema",
    "GraphCompiler",
    "CompilationResult",
    "CompileError",
    "CompileWarning",
    "CycleDetectedError",
    "ErrorKind",
    "WarningKind",
    "compile_flow",
]

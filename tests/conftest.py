"""
Shared fixtures for the canvasflow test suite.
"""
import sys
import os
import pytest

# Ensure project root is on sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# Set env vars before any imports that read them
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("LOG_LEVEL", "DEBUG")
os.environ.setdefault("SCHEMA_HONOR_REQUIRED", "true")


def input_node(properties=None, node_id="input"):
    return {
        "id": node_id,
        "type": "app-input",
        "data": {"type": "input", "properties": properties or []},
    }


def action_node(node_id, action_name=None, inputs=None):
    data = {"type": "action", "inputs": inputs or []}
    if action_name is not None:
        data["actionName"] = action_name
    return {"id": node_id, "type": "app-action", "data": data}


def condition_node(node_id, conditions=None):
    return {
        "id": node_id,
        "type": "app-condition",
        "data": {"type": "condition", "conditions": conditions or []},
    }


def edge(source, target, handle=None, edge_id=None):
    e = {"id": edge_id or f"e-{source}-{target}-{handle or 'out'}", "source": source, "target": target}
    if handle is not None:
        e["sourceHandle"] = handle
    return e


@pytest.fixture
def compiler():
    """Fresh GraphCompiler honoring required flags."""
    from canvasflow.compiler.compiler import GraphCompiler
    return GraphCompiler(honor_required=True)


@pytest.fixture
def branching_graph():
    """Input -> check; check branches: default -> fallback, big -> notify -> archive, small -> log."""
    from canvasflow.compiler.manifest import FlowGraph
    nodes = [
        input_node([{"id": "p1", "name": "amount", "type": "number", "required": True}]),
        condition_node("check", [
            {"id": "big", "label": "Large", "expression": "amount > 100"},
            {"id": "small", "label": "Small", "expression": "amount <= 100"},
        ]),
        action_node("fallback", "noop"),
        action_node("notify", "send_mail", [{"id": "b1", "parameter": "to", "expression": "'ops'"}]),
        action_node("archive", "archive"),
        action_node("log", "log_amount", [{"id": "b2", "parameter": "value", "expression": "amount"}]),
    ]
    edges = [
        edge("input", "check"),
        edge("check", "fallback", "default"),
        edge("check", "notify", "big"),
        edge("notify", "archive"),
        edge("check", "log", "small"),
    ]
    return FlowGraph.from_canvas(nodes, edges)

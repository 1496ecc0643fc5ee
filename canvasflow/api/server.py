"""
canvasflow — FastAPI Server (preview surface for the visual canvas)
The editor posts graph snapshots here to get compiled flow definitions,
read-only JSON previews, lint results, and fresh palette nodes.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional, List, Dict, Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from canvasflow.config.settings import settings
from canvasflow.compiler.manifest import FlowGraph, FlowNode, FlowEdge, NodeKind
from canvasflow.compiler.compiler import GraphCompiler
from canvasflow.compiler.node_types import (
    initial_graph, list_node_types, new_node, normalize_graph, source_handles,
)

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("canvasflow.api")

VERSION = "0.1.0"

graph_compiler = GraphCompiler()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("[CANVASFLOW] Starting preview API v%s (%s)", VERSION, settings.environment)
    logger.info("[CANVASFLOW]   Schema dialect: %s", settings.json_schema_dialect)
    logger.info(
        "[CANVASFLOW]   Required flags: %s",
        "honored" if settings.schema_honor_required else "ignored",
    )
    yield
    logger.info("[CANVASFLOW] Shutting down...")


_openapi_tags = [
    {"name": "System", "description": "Health checks and platform info"},
    {"name": "Nodes", "description": "Node type registry and palette node factory"},
    {"name": "Flows", "description": "Compile, preview, and lint canvas graphs"},
]

app = FastAPI(
    title="canvasflow",
    description="Compiles visual workflow graphs into flow definitions.",
    version=VERSION,
    lifespan=lifespan,
    openapi_tags=_openapi_tags,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request/Response Models ───────────────────────────────────────────────────

class GraphRequest(BaseModel):
    nodes: List[FlowNode] = Field(default_factory=list)
    edges: List[FlowEdge] = Field(default_factory=list)
    summary: str = ""
    description: str = ""

    def snapshot(self) -> FlowGraph:
        return FlowGraph(nodes=tuple(self.nodes), edges=tuple(self.edges))


class NewNodeRequest(BaseModel):
    position: Optional[Dict[str, float]] = None


# ── System ────────────────────────────────────────────────────────────────────

@app.get("/health", tags=["System"])
async def health():
    return {"status": "ok", "version": VERSION}


@app.get("/info", tags=["System"])
async def platform_info():
    return {
        "platform": "canvasflow",
        "version": VERSION,
        "environment": settings.environment,
        "schema_dialect": settings.json_schema_dialect,
        "honor_required": settings.schema_honor_required,
        "node_types": len(list_node_types()),
    }


# ── Nodes ─────────────────────────────────────────────────────────────────────

@app.get("/node-types", tags=["Nodes"])
async def get_node_types():
    return {"node_types": list_node_types()}


@app.post("/nodes/{kind}", tags=["Nodes"])
async def create_node(kind: str, req: Optional[NewNodeRequest] = None):
    """Create a fresh node for a palette drop."""
    try:
        node = new_node(NodeKind(kind), position=req.position if req else None)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return node.model_dump(mode="json", by_alias=True)


@app.post("/node-handles", tags=["Nodes"])
async def get_node_handles(node: FlowNode):
    """Outgoing connection points the canvas draws for a node."""
    return {"handles": source_handles(node)}


# ── Flows ─────────────────────────────────────────────────────────────────────

@app.get("/flows/initial", tags=["Flows"])
async def get_initial_graph():
    return initial_graph().model_dump(mode="json", by_alias=True)


@app.post("/flows/compile", tags=["Flows"])
def compile_graph(req: GraphRequest) -> Dict[str, Any]:
    """Compile a canvas snapshot into a flow definition."""
    result = graph_compiler.compile(req.snapshot(), summary=req.summary, description=req.description)
    return result.to_dict()


@app.post("/flows/preview", tags=["Flows"])
def preview_graph(req: GraphRequest) -> Dict[str, Any]:
    """Render the read-only JSON preview shown next to the canvas."""
    result = graph_compiler.compile(req.snapshot(), summary=req.summary, description=req.description)
    return {
        "status": result.status,
        "preview": (
            result.flow.to_json(indent=settings.preview_indent)
            if result.flow else "Failed to compile the workflow."
        ),
        "warnings": [w.model_dump(mode="json") for w in result.warnings],
        "error": result.error.model_dump(mode="json") if result.error else None,
    }


@app.post("/flows/normalize", tags=["Flows"])
def normalize_flow(req: GraphRequest) -> Dict[str, Any]:
    """Apply the form-save rules (blank rows dropped) to every node."""
    return normalize_graph(req.snapshot()).model_dump(mode="json", by_alias=True)


@app.post("/flows/validate", tags=["Flows"])
def validate_graph(req: GraphRequest) -> Dict[str, Any]:
    """Lint a canvas snapshot for structural problems."""
    issues = req.snapshot().validate()
    return {"valid": len(issues) == 0, "issues": issues}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)

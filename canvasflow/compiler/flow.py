"""
Flow Definition Schema - The compiled document handed to the workflow engine.
Modules nest to mirror the canvas topology: scripts run in order, branch
constructs hold a default path plus guarded branches.
"""

import json
from typing import Annotated, Optional, Dict, List, Any, Literal, Union
from pydantic import BaseModel, ConfigDict, Field

from canvasflow.config.settings import JSON_SCHEMA_DRAFT_2020_12


class InputTransform(BaseModel):
    """Expression the engine evaluates to fill one script parameter."""
    type: Literal["javascript"] = "javascript"
    expr: str = ""


class ScriptValue(BaseModel):
    type: Literal["script"] = "script"
    path: Optional[str] = None  # unset on incomplete actions; omitted from JSON
    input_transforms: Dict[str, InputTransform] = Field(default_factory=dict)


class Branch(BaseModel):
    summary: str = ""
    expr: str = ""
    modules: List["FlowModule"] = Field(default_factory=list)


class BranchOneValue(BaseModel):
    type: Literal["branchone"] = "branchone"
    default: List["FlowModule"] = Field(default_factory=list)
    branches: List[Branch] = Field(default_factory=list)


ModuleValue = Annotated[Union[ScriptValue, BranchOneValue], Field(discriminator="type")]


class FlowModule(BaseModel):
    """One compiled unit of work, keyed by the id of the node it came from."""
    id: str
    summary: Optional[str] = None
    value: ModuleValue


FlowModule.model_rebuild()
Branch.model_rebuild()
BranchOneValue.model_rebuild()


class FlowValue(BaseModel):
    modules: List[FlowModule] = Field(default_factory=list)


class SchemaProperty(BaseModel):
    type: str
    description: str = ""


class InputSchema(BaseModel):
    """JSON-Schema "object" contract derived from the input node's properties."""
    model_config = ConfigDict(populate_by_name=True)

    schema_uri: str = Field(default=JSON_SCHEMA_DRAFT_2020_12, alias="$schema")
    type: Literal["object"] = "object"
    properties: Dict[str, SchemaProperty] = Field(default_factory=dict)
    required: List[str] = Field(default_factory=list)


class FlowDocument(BaseModel):
    """
    The final artifact: summary, description, the module tree and the
    input schema. Dump with `to_dict()` so field names match what the
    engine's flow-definition API expects (`$schema`, `schema`).
    """
    model_config = ConfigDict(populate_by_name=True)

    summary: str = ""
    description: str = ""
    value: FlowValue = Field(default_factory=FlowValue)
    input_schema: InputSchema = Field(default_factory=InputSchema, alias="schema")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self, indent: Optional[int] = 2) -> str:
        """Render the read-only preview text."""
        return json.dumps(self.to_dict(), indent=indent)

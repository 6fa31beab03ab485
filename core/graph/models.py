import copy
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Dict, Any, Optional

from core.catalog.models import NodeKind


class Node(BaseModel):
    """One step of a workflow. Unknown keys (e.g. ``position``) are kept as-is.

    ``id`` and ``type`` may be absent so that incomplete model output still
    becomes a graph; the validator reports them and Fix repairs them.
    """
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    type: Optional[str] = None
    label: str = ""
    params: Dict[str, Any] = Field(default_factory=dict)
    inputs: Optional[List[str]] = None
    outputs: Optional[List[str]] = None
    note: Optional[str] = None

    @field_validator("label", mode="before")
    @classmethod
    def _null_label(cls, value):
        return "" if value is None else value

    @field_validator("params", mode="before")
    @classmethod
    def _null_params(cls, value):
        return {} if value is None else value

    @property
    def kind(self) -> Optional[NodeKind]:
        return NodeKind.from_type_id(self.type)

    @property
    def app(self) -> str:
        parts = (self.type or "").split(".")
        return parts[1] if len(parts) > 1 else ""

    @property
    def function(self) -> str:
        parts = (self.type or "").split(".")
        return ".".join(parts[2:]) if len(parts) > 2 else ""


class Edge(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None
    label: Optional[str] = None
    data_type: Optional[str] = Field(default=None, alias="dataType")


class NodeGraph(BaseModel):
    """A workflow: typed nodes wired by directed edges.

    Graphs move between phases by value. ``copy_graph`` is used wherever a
    phase hands a graph on so that no caller observes in-place edits.
    """
    model_config = ConfigDict(extra="allow")

    id: str = ""
    name: str = ""
    version: int = 1
    nodes: List[Node] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)
    scopes: List[str] = Field(default_factory=list)
    secrets: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("id", "name", mode="before")
    @classmethod
    def _null_text(cls, value):
        return "" if value is None else value

    @field_validator("version", mode="before")
    @classmethod
    def _null_version(cls, value):
        return 1 if value is None else value

    @field_validator("nodes", "edges", "scopes", "secrets", mode="before")
    @classmethod
    def _null_list(cls, value):
        return [] if value is None else value

    @field_validator("metadata", mode="before")
    @classmethod
    def _null_metadata(cls, value):
        return {} if value is None else value

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeGraph":
        """Build a graph from its wire form; raises pydantic.ValidationError on bad shapes."""
        return cls.model_validate(data)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    def copy_graph(self) -> "NodeGraph":
        return NodeGraph.model_validate(copy.deepcopy(self.to_dict()))

    def node_ids(self) -> List[str]:
        return [node.id for node in self.nodes if node.id]

    def get_node(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def edge_pairs(self) -> List[tuple]:
        return [(edge.from_, edge.to) for edge in self.edges if edge.from_ and edge.to]

    def node_types(self) -> List[str]:
        return list(dict.fromkeys(node.type for node in self.nodes if node.type))

from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import List, Dict, Any, Optional
from enum import Enum


# Node kinds, decoded from the first segment of a type id
class NodeKind(str, Enum):
    TRIGGER = "trigger"
    TRANSFORM = "transform"
    ACTION = "action"

    @classmethod
    def from_type_id(cls, type_id: Any) -> Optional["NodeKind"]:
        """Return the kind encoded in ``<kind>.<app>.<function>`` or None."""
        if not isinstance(type_id, str) or "." not in type_id:
            return None
        prefix = type_id.split(".", 1)[0]
        try:
            return cls(prefix)
        except ValueError:
            return None


# How a trigger is delivered to the generated script
class TriggerDelivery(str, Enum):
    WEBHOOK = "webhook"
    SCHEDULE = "schedule"
    POLLING = "polling"


# Node Type Specifications
class NodeTypeSpec(BaseModel):
    """A catalog entry describing one node type.

    Transforms are pure data manipulation, so a transform spec that declares
    required scopes is rejected at construction time.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    description: str = ""
    kind: NodeKind
    app: str
    params_schema: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        alias="paramsSchema"
    )
    required_scopes: List[str] = Field(default_factory=list, alias="requiredScopes")
    delivery: Optional[TriggerDelivery] = None
    complexity: str = "simple"
    secrets: List[str] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _infer_kind(cls, data: Any) -> Any:
        if isinstance(data, dict) and "kind" not in data:
            kind = NodeKind.from_type_id(data.get("id"))
            if kind is not None:
                data = {**data, "kind": kind}
        return data

    @model_validator(mode="after")
    def _check_kind_rules(self) -> "NodeTypeSpec":
        if NodeKind.from_type_id(self.id) != self.kind:
            raise ValueError(f"Type id '{self.id}' does not start with kind '{self.kind.value}'")
        if self.kind == NodeKind.TRANSFORM and self.required_scopes:
            raise ValueError(f"Transform '{self.id}' cannot declare required scopes")
        if self.delivery is not None and self.kind != NodeKind.TRIGGER:
            raise ValueError(f"Only triggers have a delivery mode, got one on '{self.id}'")
        return self

    @property
    def required_params(self) -> List[str]:
        return list(self.params_schema.get("required", []))

    @property
    def properties(self) -> Dict[str, Any]:
        return dict(self.params_schema.get("properties", {}))

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


# App Models
class AppSummary(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    category: str = "General"
    description: str = ""
    auth_type: str = Field(default="oauth2", alias="authType")
    popularity: int = 0
    node_types: List[str] = Field(default_factory=list, alias="nodeTypes")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# Catalog Response Models
class NodeCatalog(BaseModel):
    triggers: Dict[str, NodeTypeSpec] = Field(default_factory=dict)
    transforms: Dict[str, NodeTypeSpec] = Field(default_factory=dict)
    actions: Dict[str, NodeTypeSpec] = Field(default_factory=dict)
    categories: List[str] = Field(default_factory=list)

    def flatten(self) -> Dict[str, NodeTypeSpec]:
        """Union of triggers, transforms and actions keyed by type id."""
        return {**self.triggers, **self.transforms, **self.actions}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "triggers": {k: v.to_dict() for k, v in self.triggers.items()},
            "transforms": {k: v.to_dict() for k, v in self.transforms.items()},
            "actions": {k: v.to_dict() for k, v in self.actions.items()},
            "categories": list(self.categories),
        }


class Capabilities(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    nodes: List[NodeTypeSpec] = Field(default_factory=list)
    schemas_by_type: Dict[str, Dict[str, Any]] = Field(default_factory=dict, alias="schemasByType")
    scopes_by_type: Dict[str, List[str]] = Field(default_factory=dict, alias="scopesByType")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "schemasByType": self.schemas_by_type,
            "scopesByType": self.scopes_by_type,
        }

"""
Catalog service: the immutable registry of node types and apps.

A ``Catalog`` is built once (from the built-in set, optionally merged with a
JSON file) and passed explicitly to the validator, orchestrator and compiler.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from .builtin import BUILTIN_APPS, BUILTIN_NODE_TYPES, connector_node_types
from .models import AppSummary, Capabilities, NodeCatalog, NodeKind, NodeTypeSpec

logger = logging.getLogger(__name__)


class Catalog:
    """Read-only lookup over node types and the apps that provide them."""

    def __init__(self, node_types: Iterable[NodeTypeSpec], apps: Iterable[AppSummary] = ()):
        self._types: Dict[str, NodeTypeSpec] = {}
        for spec in node_types:
            if spec.id in self._types:
                logger.debug(f"Overriding catalog entry {spec.id}")
            self._types[spec.id] = spec

        # Link each app to the node types it provides, matching on app name
        types_by_app: Dict[str, List[str]] = {}
        for spec in self._types.values():
            types_by_app.setdefault(spec.app.lower(), []).append(spec.id)

        self._apps: Dict[str, AppSummary] = {}
        for app in apps:
            linked = types_by_app.get(app.name.lower(), [])
            merged = list(dict.fromkeys(list(app.node_types) + linked))
            self._apps[app.id] = app.model_copy(update={"node_types": merged})

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def builtin(cls) -> "Catalog":
        """Catalog with the built-in Google Workspace, generic and connector node types."""
        return cls.from_dict({}, include_builtins=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], include_builtins: bool = True) -> "Catalog":
        """
        Build a catalog from ``{"apps": [...], "nodeTypes": [...]}``.

        Apps flagged ``connector: true`` get generated CRUD actions and
        polling triggers. Entries in ``data`` override built-ins with the
        same id.

        Raises:
            ValueError: if an entry is malformed (e.g. a transform with scopes)
        """
        raw_apps: List[Dict[str, Any]] = []
        raw_types: List[Dict[str, Any]] = []
        if include_builtins:
            raw_apps.extend(BUILTIN_APPS)
            raw_types.extend(BUILTIN_NODE_TYPES)
        raw_apps.extend(data.get("apps", []))
        raw_types.extend(data.get("nodeTypes", []))

        generated: List[Dict[str, Any]] = []
        for app in raw_apps:
            if app.get("connector"):
                generated.extend(connector_node_types(app))

        node_types = [NodeTypeSpec.model_validate(entry) for entry in generated + raw_types]
        apps = [
            AppSummary.model_validate({k: v for k, v in app.items() if k != "connector"})
            for app in raw_apps
        ]
        catalog = cls(node_types, apps)
        logger.debug(f"📚 Catalog loaded: {len(catalog._types)} node types, {len(catalog._apps)} apps")
        return catalog

    @classmethod
    def from_file(cls, path: Union[str, Path], include_builtins: bool = True) -> "Catalog":
        """Load a catalog JSON file and merge it over the built-ins."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        logger.info(f"📂 Loading catalog from {path}")
        return cls.from_dict(data, include_builtins=include_builtins)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_node_catalog(self) -> NodeCatalog:
        """Node types grouped by kind, plus the app categories."""
        grouped: Dict[NodeKind, Dict[str, NodeTypeSpec]] = {kind: {} for kind in NodeKind}
        for spec in self._types.values():
            grouped[spec.kind][spec.id] = spec
        categories = sorted({app.category for app in self._apps.values()})
        return NodeCatalog(
            triggers=grouped[NodeKind.TRIGGER],
            transforms=grouped[NodeKind.TRANSFORM],
            actions=grouped[NodeKind.ACTION],
            categories=categories,
        )

    def get_node_type(self, type_id: str) -> Optional[NodeTypeSpec]:
        return self._types.get(type_id)

    def has_type(self, type_id: Any) -> bool:
        return isinstance(type_id, str) and type_id in self._types

    def node_types(self) -> List[NodeTypeSpec]:
        return list(self._types.values())

    def apps(self) -> List[AppSummary]:
        return list(self._apps.values())

    def search_apps(self, query: str) -> List[AppSummary]:
        """
        Find apps whose name, category or description contains ``query``.

        Matching is case-insensitive; results are ordered by popularity
        (highest first), then name. An empty query returns every app.
        """
        needle = (query or "").strip().lower()
        matches = [
            app for app in self._apps.values()
            if not needle
            or needle in app.name.lower()
            or needle in app.category.lower()
            or needle in app.description.lower()
        ]
        return sorted(matches, key=lambda app: (-app.popularity, app.name))

    def get_app_functions(self, app_name: str) -> Dict[str, List[NodeTypeSpec]]:
        """
        Node types provided by one app, grouped as actions/triggers/transforms.

        The app may be given by id or display name (case-insensitive). An
        unknown app yields empty lists.
        """
        needle = (app_name or "").strip().lower()
        app = next(
            (a for a in self._apps.values() if a.id.lower() == needle or a.name.lower() == needle),
            None
        )
        app_label = app.name.lower() if app else needle

        result: Dict[str, List[NodeTypeSpec]] = {"actions": [], "triggers": [], "transforms": []}
        for spec in self._types.values():
            if spec.app.lower() != app_label:
                continue
            result[spec.kind.value + "s"].append(spec)
        return result

    def get_capabilities(self) -> Capabilities:
        nodes = list(self._types.values())
        return Capabilities(
            nodes=nodes,
            schemas_by_type={spec.id: spec.params_schema for spec in nodes},
            scopes_by_type={spec.id: list(spec.required_scopes) for spec in nodes},
        )

    def required_scopes_for(self, type_ids: Iterable[str]) -> List[str]:
        """Ordered union of the scopes required by the given node types; unknown types contribute nothing."""
        scopes: List[str] = []
        for type_id in type_ids:
            spec = self._types.get(type_id)
            if spec is None:
                continue
            for scope in spec.required_scopes:
                if scope not in scopes:
                    scopes.append(scope)
        return scopes

    def secrets_for(self, type_ids: Iterable[str]) -> List[str]:
        secrets: List[str] = []
        for type_id in type_ids:
            spec = self._types.get(type_id)
            if spec is None:
                continue
            for secret in spec.secrets:
                if secret not in secrets:
                    secrets.append(secret)
        return secrets

    def __contains__(self, type_id: object) -> bool:
        return isinstance(type_id, str) and type_id in self._types

    def __len__(self) -> int:
        return len(self._types)

"""
Node type catalog.
Node type specifications, app summaries and the injected Catalog registry.
"""

from .models import (
    NodeKind,
    TriggerDelivery,
    NodeTypeSpec,
    AppSummary,
    NodeCatalog,
    Capabilities,
)

from .service import Catalog

__all__ = [
    "NodeKind",
    "TriggerDelivery",
    "NodeTypeSpec",
    "AppSummary",
    "NodeCatalog",
    "Capabilities",
    "Catalog",
]

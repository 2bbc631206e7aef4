"""
Pydantic request and response models, re-exported per domain.
"""

from .ownership import (
    OwnerTarget,
    ResolvedOwner,
    OwnerIdentity,
    OwnerNode,
    ResolveOwnersRequest,
    ResolveOwnersResponse,
    EntityOwnership,
    TraversalSessionCreate,
    TraversalSession,
    ExpandRequest,
    CollapseRequest,
    CollapseResponse,
    Expansion,
    NodeChildren,
    LoadDetailsRequest,
    LoadDetailsResponse,
)

__all__ = [
    "OwnerTarget",
    "ResolvedOwner",
    "OwnerIdentity",
    "OwnerNode",
    "ResolveOwnersRequest",
    "ResolveOwnersResponse",
    "EntityOwnership",
    "TraversalSessionCreate",
    "TraversalSession",
    "ExpandRequest",
    "CollapseRequest",
    "CollapseResponse",
    "Expansion",
    "NodeChildren",
    "LoadDetailsRequest",
    "LoadDetailsResponse",
]

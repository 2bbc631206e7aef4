"""
Ownership-graph resolution.

Resolves who owns a legal entity (individuals or other entities, recursively),
expands the ownership tree lazily with cycle-safe traversal, and picks the
best available display identity for each owner.
"""

from .types import (
    AncestorPath,
    IndividualOwner,
    LegalEntity,
    LinkedBorrower,
    LinkedEntity,
    MemberType,
    OwnerTarget,
    OwnershipEdge,
    ReferenceStatus,
    ResolvedOwnerView,
    TargetIdentity,
    Unlinked,
)
from .errors import NodeFetchFailed, OwnershipError, StoreUnavailable, UnknownSession
from .identity import IdentityRegistry, IdentitySource, ResolvedIdentity, resolve_identity
from .store import RecordStore, SqlRecordStore
from .aggregator import OwnershipAggregator
from .traversal import ChildNode, ExpansionEngine, ExpansionResult, ExpansionStatus, NodeState

__all__ = [
    # data model
    "AncestorPath",
    "IndividualOwner",
    "LegalEntity",
    "LinkedBorrower",
    "LinkedEntity",
    "MemberType",
    "OwnerTarget",
    "OwnershipEdge",
    "ReferenceStatus",
    "ResolvedOwnerView",
    "TargetIdentity",
    "Unlinked",
    # errors
    "NodeFetchFailed",
    "OwnershipError",
    "StoreUnavailable",
    "UnknownSession",
    # identity
    "IdentityRegistry",
    "IdentitySource",
    "ResolvedIdentity",
    "resolve_identity",
    # store / aggregation / traversal
    "RecordStore",
    "SqlRecordStore",
    "OwnershipAggregator",
    "ChildNode",
    "ExpansionEngine",
    "ExpansionResult",
    "ExpansionStatus",
    "NodeState",
]

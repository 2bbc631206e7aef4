"""
Ownership data model.

Read-only records supplied by the record store (legal entities, borrower-linked
individuals, ownership edges) plus the views the aggregator builds from them.
Owner targets are modelled as a tagged variant so callers never have to guess
which of the two optional ids on an edge is the real one.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Hashable, Iterable, Iterator, Optional, Tuple, Union

logger = logging.getLogger(__name__)

# Entity/borrower ids are opaque to the core (UUIDs in the service, strings in tests).
NodeId = Hashable


class MemberType(str, Enum):
    INDIVIDUAL = "individual"
    ENTITY = "entity"

    @classmethod
    def parse(cls, value) -> Optional["MemberType"]:
        """Accept stored values case-insensitively ('Individual', 'ENTITY', ...)."""
        if value is None:
            return None
        if isinstance(value, MemberType):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class ReferenceStatus(str, Enum):
    UNLINKED = "unlinked"
    RESOLVED = "resolved"
    DANGLING = "dangling"


# Owner target variant
@dataclass(frozen=True)
class Unlinked:
    kind = "unlinked"


@dataclass(frozen=True)
class LinkedBorrower:
    borrower_id: NodeId
    kind = "borrower"


@dataclass(frozen=True)
class LinkedEntity:
    entity_id: NodeId
    kind = "entity"


OwnerTarget = Union[Unlinked, LinkedBorrower, LinkedEntity]


def normalize_percent(value) -> Optional[float]:
    """Return the percent as a float in [0, 100], or None when unknown/out of range."""
    if value is None:
        return None
    try:
        pct = float(value)
    except (TypeError, ValueError):
        logger.warning("ownership_percent_unparseable: value=%r", value)
        return None
    if pct != pct or pct < 0 or pct > 100:
        logger.warning("ownership_percent_out_of_range: value=%r", value)
        return None
    return pct


@dataclass(frozen=True)
class LegalEntity:
    id: NodeId
    display_id: Optional[str] = None
    name: Optional[str] = None
    entity_type: Optional[str] = None
    organization_id: Optional[NodeId] = None
    ein: Optional[str] = None


@dataclass(frozen=True)
class IndividualOwner:
    id: NodeId
    display_id: Optional[str] = None
    name: Optional[str] = None
    organization_id: Optional[NodeId] = None


@dataclass(frozen=True)
class OwnershipEdge:
    owning_entity_id: NodeId
    target_entity_id: Optional[NodeId] = None
    target_borrower_id: Optional[NodeId] = None
    name_snapshot: Optional[str] = None
    title: Optional[str] = None
    ownership_percent: Optional[float] = None
    member_type: Optional[MemberType] = None
    id: Optional[NodeId] = None
    ssn_last4: Optional[str] = None
    ein: Optional[str] = None
    address: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        # Frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "ownership_percent", normalize_percent(self.ownership_percent))
        object.__setattr__(self, "member_type", MemberType.parse(self.member_type))

    @property
    def target(self) -> OwnerTarget:
        entity_id, borrower_id = self.target_entity_id, self.target_borrower_id
        if entity_id is not None and borrower_id is not None:
            logger.warning(
                "ownership_edge_double_target: edge=%s owning_entity=%s member_type=%s",
                self.id, self.owning_entity_id, self.member_type,
            )
            if self.member_type == MemberType.INDIVIDUAL:
                return LinkedBorrower(borrower_id)
            return LinkedEntity(entity_id)
        if entity_id is not None:
            return LinkedEntity(entity_id)
        if borrower_id is not None:
            return LinkedBorrower(borrower_id)
        return Unlinked()

    @property
    def is_linked(self) -> bool:
        return not isinstance(self.target, Unlinked)


@dataclass(frozen=True)
class TargetIdentity:
    """Display identity of a linked target as captured from a store lookup."""

    display_id: Optional[str] = None
    name: Optional[str] = None
    owner_type: Optional[str] = None
    ein: Optional[str] = None
    entity_type: Optional[str] = None

    @classmethod
    def from_entity(cls, entity: LegalEntity) -> "TargetIdentity":
        return cls(
            display_id=entity.display_id,
            name=entity.name,
            owner_type=MemberType.ENTITY.value,
            ein=entity.ein,
            entity_type=entity.entity_type,
        )

    @classmethod
    def from_borrower(cls, borrower: IndividualOwner) -> "TargetIdentity":
        return cls(
            display_id=borrower.display_id,
            name=borrower.name,
            owner_type=MemberType.INDIVIDUAL.value,
        )


@dataclass(frozen=True)
class ResolvedOwnerView:
    """An ownership edge enriched with its linked target's display identity."""

    edge: OwnershipEdge
    enrichment: Optional[TargetIdentity] = None
    status: ReferenceStatus = ReferenceStatus.UNLINKED
    display_id: Optional[str] = None
    display_name: str = ""
    owner_type: Optional[str] = None

    @property
    def target(self) -> OwnerTarget:
        return self.edge.target

    @property
    def is_dangling(self) -> bool:
        return self.status == ReferenceStatus.DANGLING

    @property
    def expandable(self) -> bool:
        return isinstance(self.target, LinkedEntity) and not self.is_dangling

    @property
    def target_ein(self) -> Optional[str]:
        return self.enrichment.ein if self.enrichment else None

    @property
    def target_entity_type(self) -> Optional[str]:
        return self.enrichment.entity_type if self.enrichment else None


@dataclass(frozen=True)
class AncestorPath:
    """Immutable ordered set of entity ids from the traversal root to the current node."""

    nodes: Tuple[NodeId, ...] = ()
    _members: frozenset = field(default=frozenset(), repr=False, compare=False)

    def __post_init__(self):
        ordered = tuple(dict.fromkeys(self.nodes))
        object.__setattr__(self, "nodes", ordered)
        object.__setattr__(self, "_members", frozenset(ordered))

    @classmethod
    def of(cls, nodes: Iterable[NodeId] = ()) -> "AncestorPath":
        return cls(tuple(nodes))

    def extend(self, node_id: NodeId) -> "AncestorPath":
        if node_id in self._members:
            return self
        return AncestorPath(self.nodes + (node_id,))

    def __contains__(self, node_id) -> bool:
        return node_id in self._members

    def __iter__(self) -> Iterator[NodeId]:
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)

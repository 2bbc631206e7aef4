"""
Owner identity resolution.

Picks the display id, name and type shown for an owner row. Each field is
resolved independently against an ordered list of sources:

1. the linked target's own detail record, when it has been loaded separately
2. the enrichment snapshot captured when the parent edge was resolved
3. the snapshot fields stored on the edge itself

Unlinked (free-text) owners use the edge's own name/title and have no chain.
Detail records may arrive in any order relative to the parent edge, so they
are merged field by field: a value is only ever replaced by another value,
never by a blank. Resolution is therefore monotonic and idempotent.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from enum import IntEnum
from typing import Dict, Iterable, Optional, Tuple

from backoffice.ownership.types import (
    IndividualOwner,
    LegalEntity,
    LinkedBorrower,
    LinkedEntity,
    OwnerTarget,
    OwnershipEdge,
    ResolvedOwnerView,
    TargetIdentity,
    Unlinked,
)
from backoffice.utils.config import (
    DEFAULT_PLACEHOLDER_NAME,
    IDENTITY_POLICY_LIVE,
    IDENTITY_POLICY_SNAPSHOT,
    IdentityPolicy,
)

logger = logging.getLogger(__name__)

IDENTITY_FIELDS: Tuple[str, ...] = ("display_id", "name", "owner_type")


class IdentitySource(IntEnum):
    LIVE_RECORD = 1
    ENRICHMENT = 2
    EDGE_SNAPSHOT = 3
    UNLINKED = 4
    PLACEHOLDER = 5


@dataclass(frozen=True)
class ResolvedIdentity:
    display_id: Optional[str]
    name: str
    owner_type: Optional[str]
    display_id_source: IdentitySource
    name_source: IdentitySource
    owner_type_source: IdentitySource

    @property
    def is_placeholder(self) -> bool:
        return self.name_source == IdentitySource.PLACEHOLDER

    def source_of(self, field_name: str) -> IdentitySource:
        return getattr(self, f"{field_name}_source")


def _present(value) -> bool:
    return value is not None and value != ""


def _edge_snapshot(edge: OwnershipEdge) -> Dict[str, Optional[str]]:
    return {
        "display_id": None,
        "name": edge.name_snapshot,
        "owner_type": edge.member_type.value if edge.member_type else None,
    }


def _identity_fields(identity: Optional[TargetIdentity]) -> Dict[str, Optional[str]]:
    if identity is None:
        return {}
    return {name: getattr(identity, name) for name in IDENTITY_FIELDS}


def _source_order(policy: IdentityPolicy) -> Tuple[IdentitySource, ...]:
    if policy == IDENTITY_POLICY_SNAPSHOT:
        # Historical/audit views keep what was captured on the edge.
        return (IdentitySource.EDGE_SNAPSHOT, IdentitySource.ENRICHMENT, IdentitySource.LIVE_RECORD)
    return (IdentitySource.LIVE_RECORD, IdentitySource.ENRICHMENT, IdentitySource.EDGE_SNAPSHOT)


def _resolve_unlinked(edge: OwnershipEdge, placeholder_name: str) -> ResolvedIdentity:
    name = edge.name_snapshot if _present(edge.name_snapshot) else edge.title
    owner_type = edge.member_type.value if edge.member_type else None
    return ResolvedIdentity(
        display_id=None,
        name=name if _present(name) else placeholder_name,
        owner_type=owner_type,
        display_id_source=IdentitySource.UNLINKED,
        name_source=IdentitySource.UNLINKED if _present(name) else IdentitySource.PLACEHOLDER,
        owner_type_source=IdentitySource.UNLINKED if owner_type else IdentitySource.PLACEHOLDER,
    )


def resolve_identity(
    edge: OwnershipEdge,
    enrichment: Optional[TargetIdentity] = None,
    live: Optional[TargetIdentity] = None,
    *,
    policy: IdentityPolicy = IDENTITY_POLICY_LIVE,
    placeholder_name: str = DEFAULT_PLACEHOLDER_NAME,
) -> ResolvedIdentity:
    """Resolve every identity field of one owner row from the available sources."""
    if isinstance(edge.target, Unlinked):
        return _resolve_unlinked(edge, placeholder_name)

    candidates = {
        IdentitySource.LIVE_RECORD: _identity_fields(live),
        IdentitySource.ENRICHMENT: _identity_fields(enrichment),
        IdentitySource.EDGE_SNAPSHOT: _edge_snapshot(edge),
    }
    order = _source_order(policy)

    values: Dict[str, Optional[str]] = {}
    sources: Dict[str, IdentitySource] = {}
    for field_name in IDENTITY_FIELDS:
        values[field_name] = None
        sources[field_name] = IdentitySource.PLACEHOLDER
        for source in order:
            value = candidates[source].get(field_name)
            if _present(value):
                values[field_name] = value
                sources[field_name] = source
                break

    return ResolvedIdentity(
        display_id=values["display_id"],
        name=values["name"] if _present(values["name"]) else placeholder_name,
        owner_type=values["owner_type"],
        display_id_source=sources["display_id"],
        name_source=sources["name"],
        owner_type_source=sources["owner_type"],
    )


def merge_identity(current: Optional[TargetIdentity], incoming: TargetIdentity) -> TargetIdentity:
    """Overlay ``incoming`` onto ``current``; blank incoming values never erase known ones."""
    if current is None:
        return incoming
    updates = {
        f.name: getattr(incoming, f.name)
        for f in fields(TargetIdentity)
        if _present(getattr(incoming, f.name))
    }
    return replace(current, **updates)


class IdentityRegistry:
    """Session-scoped store of separately loaded detail records (source tier 1)."""

    def __init__(
        self,
        policy: IdentityPolicy = IDENTITY_POLICY_LIVE,
        placeholder_name: str = DEFAULT_PLACEHOLDER_NAME,
    ):
        self.policy = policy
        self.placeholder_name = placeholder_name
        self._live: Dict[OwnerTarget, TargetIdentity] = {}

    def record_entity(self, entity: LegalEntity) -> TargetIdentity:
        return self._record(LinkedEntity(entity.id), TargetIdentity.from_entity(entity))

    def record_borrower(self, borrower: IndividualOwner) -> TargetIdentity:
        return self._record(LinkedBorrower(borrower.id), TargetIdentity.from_borrower(borrower))

    def record_many(
        self,
        entities: Iterable[LegalEntity] = (),
        borrowers: Iterable[IndividualOwner] = (),
    ) -> int:
        count = 0
        for entity in entities:
            self.record_entity(entity)
            count += 1
        for borrower in borrowers:
            self.record_borrower(borrower)
            count += 1
        return count

    def _record(self, target: OwnerTarget, identity: TargetIdentity) -> TargetIdentity:
        merged = merge_identity(self._live.get(target), identity)
        self._live[target] = merged
        logger.debug("identity_recorded: target=%s name=%s", target, merged.name)
        return merged

    def live_record(self, target: OwnerTarget) -> Optional[TargetIdentity]:
        return self._live.get(target)

    def resolve(self, view: ResolvedOwnerView) -> ResolvedIdentity:
        return resolve_identity(
            view.edge,
            enrichment=view.enrichment,
            live=self.live_record(view.target),
            policy=self.policy,
            placeholder_name=self.placeholder_name,
        )

    def __len__(self) -> int:
        return len(self._live)

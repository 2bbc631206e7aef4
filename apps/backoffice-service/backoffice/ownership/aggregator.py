"""
Ownership aggregator.

Resolves one hierarchy level for a batch of entities in a bounded number of
store calls: one edge query, then at most one entity lookup and one borrower
lookup for all the targets those edges reference. Cost is linear in edges
plus distinct targets and independent of hierarchy depth.

Classes:
    OwnershipAggregator: ``resolve_owners(entity_ids)`` implementation

Usage:
    aggregator = OwnershipAggregator(store)
    owners = await aggregator.resolve_owners({entity_id})
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional

from backoffice.ownership.errors import StoreUnavailable
from backoffice.ownership.identity import resolve_identity
from backoffice.ownership.store import RecordStore
from backoffice.ownership.types import (
    LinkedBorrower,
    LinkedEntity,
    NodeId,
    OwnershipEdge,
    ReferenceStatus,
    ResolvedOwnerView,
    TargetIdentity,
    Unlinked,
)
from backoffice.utils.config import DEFAULT_PLACEHOLDER_NAME, IDENTITY_POLICY_LIVE, IdentityPolicy

logger = logging.getLogger(__name__)


class OwnershipAggregator:
    def __init__(
        self,
        store: RecordStore,
        placeholder_name: str = DEFAULT_PLACEHOLDER_NAME,
        policy: IdentityPolicy = IDENTITY_POLICY_LIVE,
    ):
        self.store = store
        self.placeholder_name = placeholder_name
        self.policy = policy

    async def resolve_owners(self, entity_ids: Iterable[NodeId]) -> Dict[NodeId, List[ResolvedOwnerView]]:
        """
        Resolve the direct owners of every entity in ``entity_ids``.

        Args:
            entity_ids: Organization-scoped entity ids (already authorized)

        Returns:
            Mapping of every requested entity id to its owner views, in edge
            creation order. Entities without edges map to an empty list.

        Raises:
            StoreUnavailable: the edge fetch or a batch lookup failed; no
                partial map is returned.
        """
        requested = list(dict.fromkeys(entity_ids))
        if not requested:
            return {}

        edges = await self._fetch("get_ownership_edges", self.store.get_ownership_edges, requested)

        # Distinct targets in first-seen order
        entity_targets: Dict[NodeId, None] = {}
        borrower_targets: Dict[NodeId, None] = {}
        for edge in edges:
            target = edge.target
            if isinstance(target, LinkedEntity):
                entity_targets.setdefault(target.entity_id)
            elif isinstance(target, LinkedBorrower):
                borrower_targets.setdefault(target.borrower_id)

        entity_identities: Dict[NodeId, TargetIdentity] = {}
        if entity_targets:
            entities = await self._fetch("get_entities_by_ids", self.store.get_entities_by_ids, list(entity_targets))
            entity_identities = {e.id: TargetIdentity.from_entity(e) for e in entities}

        borrower_identities: Dict[NodeId, TargetIdentity] = {}
        if borrower_targets:
            borrowers = await self._fetch("get_borrowers_by_ids", self.store.get_borrowers_by_ids, list(borrower_targets))
            borrower_identities = {b.id: TargetIdentity.from_borrower(b) for b in borrowers}

        resolved: Dict[NodeId, List[ResolvedOwnerView]] = {entity_id: [] for entity_id in requested}
        for edge in edges:
            bucket = resolved.get(edge.owning_entity_id)
            if bucket is None:
                logger.warning(
                    "ownership_edge_unrequested_owner: edge=%s owning_entity=%s",
                    edge.id, edge.owning_entity_id,
                )
                continue
            bucket.append(self._build_view(edge, entity_identities, borrower_identities))

        logger.debug(
            "ownership_resolved: entities=%d edges=%d entity_targets=%d borrower_targets=%d",
            len(requested), len(edges), len(entity_targets), len(borrower_targets),
        )
        return resolved

    async def _fetch(self, operation: str, call, ids: List[NodeId]) -> list:
        try:
            return list(await call(ids))
        except StoreUnavailable:
            raise
        except Exception as e:
            logger.error("ownership_store_failed: operation=%s ids=%d error=%s", operation, len(ids), e)
            raise StoreUnavailable(operation, e) from e

    def _build_view(
        self,
        edge: OwnershipEdge,
        entity_identities: Dict[NodeId, TargetIdentity],
        borrower_identities: Dict[NodeId, TargetIdentity],
    ) -> ResolvedOwnerView:
        target = edge.target
        enrichment: Optional[TargetIdentity] = None
        if isinstance(target, Unlinked):
            status = ReferenceStatus.UNLINKED
        else:
            if isinstance(target, LinkedEntity):
                enrichment = entity_identities.get(target.entity_id)
            else:
                enrichment = borrower_identities.get(target.borrower_id)
            if enrichment is None:
                status = ReferenceStatus.DANGLING
                logger.warning(
                    "ownership_dangling_reference: edge=%s owning_entity=%s target=%s",
                    edge.id, edge.owning_entity_id, target,
                )
            else:
                status = ReferenceStatus.RESOLVED

        identity = resolve_identity(edge, enrichment, policy=self.policy, placeholder_name=self.placeholder_name)
        return ResolvedOwnerView(
            edge=edge,
            enrichment=enrichment,
            status=status,
            display_id=identity.display_id,
            display_name=identity.name,
            owner_type=identity.owner_type,
        )

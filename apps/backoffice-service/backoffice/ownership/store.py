"""
Record store boundary.

``RecordStore`` is the read-only, batched interface the ownership core
consumes. ``SqlRecordStore`` implements it over the SQLAlchemy repositories
for one organization: the caller has already authorized the organization, so
every query is scoped to it.
"""
from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Callable, Iterable, List, Protocol, Sequence, TypeVar

from sqlalchemy.orm import Session

from backoffice.db import models
from backoffice.db.repositories import ownership as ownership_repo
from backoffice.ownership.types import IndividualOwner, LegalEntity, NodeId, OwnershipEdge

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RecordStore(Protocol):
    async def get_ownership_edges(self, entity_ids: Sequence[NodeId]) -> List[OwnershipEdge]:
        """Edges whose owning entity is in ``entity_ids``, creation order ascending."""
        ...

    async def get_entities_by_ids(self, ids: Sequence[NodeId]) -> List[LegalEntity]:
        ...

    async def get_borrowers_by_ids(self, ids: Sequence[NodeId]) -> List[IndividualOwner]:
        ...

    async def get_owned_entity_ids(self, entity_id: NodeId) -> List[NodeId]:
        """Entities in which ``entity_id`` holds a stake (reverse edge direction)."""
        ...


def edge_from_row(row: models.EntityOwner) -> OwnershipEdge:
    return OwnershipEdge(
        id=row.id,
        owning_entity_id=row.entity_id,
        target_entity_id=row.entity_owner_id,
        target_borrower_id=row.borrower_id,
        name_snapshot=row.name,
        title=row.title,
        ownership_percent=row.ownership_percent,
        member_type=row.member_type,
        ssn_last4=row.ssn_last4,
        ein=row.ein,
        address=row.address,
        created_at=row.created_at,
    )


def entity_from_row(row: models.Entity) -> LegalEntity:
    return LegalEntity(
        id=row.id,
        display_id=row.display_id,
        name=row.entity_name,
        entity_type=row.entity_type,
        organization_id=row.organization_id,
        ein=row.ein,
    )


def borrower_from_row(row: models.Borrower) -> IndividualOwner:
    return IndividualOwner(
        id=row.id,
        display_id=row.display_id,
        name=row.full_name,
        organization_id=row.organization_id,
    )


class SqlRecordStore:
    """Organization-scoped ``RecordStore`` backed by short-lived SQLAlchemy sessions."""

    def __init__(self, session_factory: Callable[[], Session], organization_id: uuid.UUID):
        self.session_factory = session_factory
        self.organization_id = organization_id

    def _query(self, fn: Callable[..., Iterable], mapper: Callable[..., T], ids) -> List[T]:
        db = self.session_factory()
        try:
            rows = fn(db, list(ids), organization_id=self.organization_id)
            return [mapper(row) for row in rows]
        finally:
            db.close()

    async def _run(self, fn, mapper, ids) -> list:
        # Repository calls are synchronous; keep them off the event loop.
        return await asyncio.to_thread(self._query, fn, mapper, ids)

    async def get_ownership_edges(self, entity_ids: Sequence[NodeId]) -> List[OwnershipEdge]:
        return await self._run(ownership_repo.get_ownership_edges, edge_from_row, entity_ids)

    async def get_entities_by_ids(self, ids: Sequence[NodeId]) -> List[LegalEntity]:
        return await self._run(ownership_repo.get_entities_by_ids, entity_from_row, ids)

    async def get_borrowers_by_ids(self, ids: Sequence[NodeId]) -> List[IndividualOwner]:
        return await self._run(ownership_repo.get_borrowers_by_ids, borrower_from_row, ids)

    async def get_owned_entity_ids(self, entity_id: NodeId) -> List[uuid.UUID]:
        """Reverse direction: entities this entity holds a stake in."""
        def _owned():
            db = self.session_factory()
            try:
                return ownership_repo.get_owned_entity_ids(db, entity_id, organization_id=self.organization_id)
            finally:
                db.close()

        return await asyncio.to_thread(_owned)

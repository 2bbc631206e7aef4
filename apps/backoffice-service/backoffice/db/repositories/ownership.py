"""
Ownership repository functions.

Read-only, batched, organization-scoped queries over entities, borrowers and
ownership edges. Each function issues exactly one query regardless of how
many ids it is given.
"""
from __future__ import annotations

import uuid
from typing import Iterable, List, Optional
from sqlalchemy.orm import Session

from backoffice.db import models, scope_utils


def get_ownership_edges(
    db: Session,
    entity_ids: Iterable,
    *,
    organization_id: Optional[uuid.UUID],
) -> List[models.EntityOwner]:
    """Edges owned by any of ``entity_ids``, oldest first (display order)."""
    ids = scope_utils.coerce_uuid_list(entity_ids)
    if not ids:
        return []
    q = db.query(models.EntityOwner).filter(models.EntityOwner.entity_id.in_(ids))
    q = scope_utils.apply_organization_scope(q, organization_id, models.EntityOwner)
    return q.order_by(models.EntityOwner.created_at.asc(), models.EntityOwner.id.asc()).all()


def get_entities_by_ids(
    db: Session,
    entity_ids: Iterable,
    *,
    organization_id: Optional[uuid.UUID],
) -> List[models.Entity]:
    ids = scope_utils.coerce_uuid_list(entity_ids)
    if not ids:
        return []
    q = db.query(models.Entity).filter(models.Entity.id.in_(ids))
    q = scope_utils.apply_organization_scope(q, organization_id, models.Entity)
    return q.all()


def get_borrowers_by_ids(
    db: Session,
    borrower_ids: Iterable,
    *,
    organization_id: Optional[uuid.UUID],
) -> List[models.Borrower]:
    ids = scope_utils.coerce_uuid_list(borrower_ids)
    if not ids:
        return []
    q = db.query(models.Borrower).filter(models.Borrower.id.in_(ids))
    q = scope_utils.apply_organization_scope(q, organization_id, models.Borrower)
    return q.all()


def get_owned_entity_ids(
    db: Session,
    entity_id: uuid.UUID,
    *,
    organization_id: Optional[uuid.UUID],
) -> List[uuid.UUID]:
    """Entities that ``entity_id`` holds a stake in (the reverse edge direction)."""
    q = db.query(models.EntityOwner.entity_id).filter(models.EntityOwner.entity_owner_id == entity_id)
    q = scope_utils.apply_organization_scope(q, organization_id, models.EntityOwner)
    rows = q.order_by(models.EntityOwner.created_at.asc()).all()
    return list(dict.fromkeys(row[0] for row in rows))

"""
API dependency helpers.

Resolves the caller's organization scope and the record store used by the
ownership routes. Authentication and per-user visibility are enforced in
front of this service; by the time a request arrives its organization header
has been vetted, and every id is queried inside that organization only.
"""
import uuid
from typing import Callable, Optional

from fastapi import Header, HTTPException, status

from backoffice.db import database
from backoffice.db.scope_utils import coerce_uuid
from backoffice.ownership.sessions import TraversalSessionRegistry, get_session_registry
from backoffice.ownership.store import RecordStore, SqlRecordStore

RecordStoreFactory = Callable[[uuid.UUID], RecordStore]


def get_organization_id(
    x_organization_id: Optional[str] = Header(default=None),
) -> uuid.UUID:
    if not x_organization_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "organization_required", "message": "X-Organization-Id header is required"},
        )
    org_id = coerce_uuid(x_organization_id)
    if org_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"code": "organization_invalid", "message": "X-Organization-Id must be a UUID"},
        )
    return org_id


def _sql_store_factory(organization_id: uuid.UUID) -> RecordStore:
    # Resolve SessionLocal at call time so rebinding the module (tests, e2e) takes effect.
    return SqlRecordStore(database.SessionLocal, organization_id)


def get_record_store_factory() -> RecordStoreFactory:
    return _sql_store_factory


def get_traversal_registry() -> TraversalSessionRegistry:
    return get_session_registry()

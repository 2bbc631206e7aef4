"""
Ownership API endpoints.

Batch owner resolution, the per-entity ownership summary, and traversal
sessions that drive lazy, cycle-safe expansion of an ownership tree.
"""
from typing import List
import logging
import uuid
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from backoffice.api.deps import (
    RecordStoreFactory,
    get_organization_id,
    get_record_store_factory,
    get_traversal_registry,
)
from backoffice.db import schemas
from backoffice.ownership.aggregator import OwnershipAggregator
from backoffice.ownership.errors import StoreUnavailable
from backoffice.ownership.sessions import TraversalSession, TraversalSessionRegistry
from backoffice.ownership.store import RecordStore
from backoffice.ownership.traversal import ExpansionStatus, NodeState
from backoffice.ownership.types import LinkedEntity
from backoffice.utils.config import get_ownership_settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ownership"])


def _aggregator(store: RecordStore) -> OwnershipAggregator:
    settings = get_ownership_settings()
    return OwnershipAggregator(
        store, placeholder_name=settings.placeholder_name, policy=settings.identity_policy,
    )


def _session_out(session: TraversalSession) -> schemas.TraversalSession:
    return schemas.TraversalSession(
        id=session.id,
        organization_id=session.organization_id,
        root_entity_id=session.root_entity_id,
        cached_nodes=len(session.engine),
        created_at=session.created_at,
        last_used_at=session.last_used_at,
    )


@router.post("/ownership/resolve", response_model=schemas.ResolveOwnersResponse)
async def resolve_owners_endpoint(
    payload: schemas.ResolveOwnersRequest,
    organization_id: uuid.UUID = Depends(get_organization_id),
    store_factory: RecordStoreFactory = Depends(get_record_store_factory),
):
    resolved = await _aggregator(store_factory(organization_id)).resolve_owners(payload.entity_ids)
    return {
        "owners": {
            entity_id: [schemas.ResolvedOwner.from_view(v) for v in views]
            for entity_id, views in resolved.items()
        }
    }


@router.get("/entities/{entity_id}/ownership", response_model=schemas.EntityOwnership)
async def get_entity_ownership_endpoint(
    entity_id: uuid.UUID,
    organization_id: uuid.UUID = Depends(get_organization_id),
    store_factory: RecordStoreFactory = Depends(get_record_store_factory),
):
    store = store_factory(organization_id)
    try:
        found = await store.get_entities_by_ids([entity_id])
    except Exception as e:
        raise StoreUnavailable("get_entities_by_ids", e) from e
    if not found:
        raise HTTPException(status_code=404, detail="Entity not found")

    aggregator = _aggregator(store)
    views = (await aggregator.resolve_owners([entity_id])).get(entity_id, [])
    try:
        owns = await store.get_owned_entity_ids(entity_id)
    except Exception as e:
        raise StoreUnavailable("get_owned_entity_ids", e) from e

    owned_by = [v.target.entity_id for v in views if isinstance(v.target, LinkedEntity)]
    return schemas.EntityOwnership(
        entity_id=entity_id,
        owners=[schemas.ResolvedOwner.from_view(v) for v in views],
        owned_by_entities=list(dict.fromkeys(owned_by)),
        owns_entities=owns,
    )


# ----- traversal sessions ---------------------------------------------------

@router.post("/ownership/sessions", response_model=schemas.TraversalSession, status_code=status.HTTP_201_CREATED)
async def create_session_endpoint(
    payload: schemas.TraversalSessionCreate,
    organization_id: uuid.UUID = Depends(get_organization_id),
    store_factory: RecordStoreFactory = Depends(get_record_store_factory),
    registry: TraversalSessionRegistry = Depends(get_traversal_registry),
):
    session = registry.create(organization_id, store_factory, root_entity_id=payload.root_entity_id)
    return _session_out(session)


@router.get("/ownership/sessions/{session_id}", response_model=schemas.TraversalSession)
async def get_session_endpoint(
    session_id: uuid.UUID,
    organization_id: uuid.UUID = Depends(get_organization_id),
    registry: TraversalSessionRegistry = Depends(get_traversal_registry),
):
    return _session_out(registry.get(session_id, organization_id))


@router.delete("/ownership/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_session_endpoint(
    session_id: uuid.UUID,
    organization_id: uuid.UUID = Depends(get_organization_id),
    registry: TraversalSessionRegistry = Depends(get_traversal_registry),
):
    if not registry.close(session_id, organization_id):
        raise HTTPException(status_code=404, detail="Traversal session not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/ownership/sessions/{session_id}/expand", response_model=schemas.Expansion)
async def expand_node_endpoint(
    session_id: uuid.UUID,
    payload: schemas.ExpandRequest,
    organization_id: uuid.UUID = Depends(get_organization_id),
    registry: TraversalSessionRegistry = Depends(get_traversal_registry),
):
    engine = registry.get(session_id, organization_id).engine
    result = await engine.expand(payload.node_id, payload.ancestor_path)
    children = None
    if result.status == ExpansionStatus.LOADED:
        children = engine.describe_children(payload.node_id, payload.ancestor_path)
    return schemas.Expansion.from_result(result, children, expanded=engine.is_expanded(payload.node_id))


@router.post("/ownership/sessions/{session_id}/collapse", response_model=schemas.CollapseResponse)
async def collapse_node_endpoint(
    session_id: uuid.UUID,
    payload: schemas.CollapseRequest,
    organization_id: uuid.UUID = Depends(get_organization_id),
    registry: TraversalSessionRegistry = Depends(get_traversal_registry),
):
    engine = registry.get(session_id, organization_id).engine
    was_expanded = engine.collapse(payload.node_id)
    return schemas.CollapseResponse(
        node_id=payload.node_id,
        was_expanded=was_expanded,
        cached=engine.get_cached_children(payload.node_id) is not None,
    )


@router.get("/ownership/sessions/{session_id}/nodes/{node_id}", response_model=schemas.NodeChildren)
async def get_cached_children_endpoint(
    session_id: uuid.UUID,
    node_id: uuid.UUID,
    ancestor_path: List[uuid.UUID] = Query(default=[]),
    organization_id: uuid.UUID = Depends(get_organization_id),
    registry: TraversalSessionRegistry = Depends(get_traversal_registry),
):
    engine = registry.get(session_id, organization_id).engine
    children = engine.describe_children(node_id, ancestor_path)
    state = engine.node_state(node_id)
    return schemas.NodeChildren(
        node_id=node_id,
        state=state.value,
        expanded=engine.is_expanded(node_id),
        loaded=children is not None,
        retryable=state == NodeState.FAILED,
        children=[schemas.OwnerNode.from_child(c) for c in children or []],
    )


@router.post("/ownership/sessions/{session_id}/details", response_model=schemas.LoadDetailsResponse)
async def load_details_endpoint(
    session_id: uuid.UUID,
    payload: schemas.LoadDetailsRequest,
    organization_id: uuid.UUID = Depends(get_organization_id),
    registry: TraversalSessionRegistry = Depends(get_traversal_registry),
):
    engine = registry.get(session_id, organization_id).engine
    loaded = await engine.load_details(entity_ids=payload.entity_ids, borrower_ids=payload.borrower_ids)
    return schemas.LoadDetailsResponse(loaded=loaded)

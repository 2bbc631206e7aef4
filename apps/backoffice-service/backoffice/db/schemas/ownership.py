import uuid
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from backoffice.ownership.identity import ResolvedIdentity
from backoffice.ownership.traversal import ChildNode, ExpansionResult
from backoffice.ownership.types import LinkedBorrower, LinkedEntity, ResolvedOwnerView


class OwnerTarget(BaseModel):
    kind: str  # 'unlinked'|'borrower'|'entity'
    id: Optional[uuid.UUID] = None

    @classmethod
    def from_view(cls, view: ResolvedOwnerView) -> "OwnerTarget":
        target = view.target
        if isinstance(target, LinkedEntity):
            return cls(kind=target.kind, id=target.entity_id)
        if isinstance(target, LinkedBorrower):
            return cls(kind=target.kind, id=target.borrower_id)
        return cls(kind=target.kind)


class ResolvedOwner(BaseModel):
    id: Optional[uuid.UUID] = None
    entity_id: uuid.UUID
    target: OwnerTarget
    name: Optional[str] = None
    title: Optional[str] = None
    member_type: Optional[str] = None
    ownership_percent: Optional[float] = None
    ssn_last4: Optional[str] = None
    ein: Optional[str] = None
    address: Optional[str] = None
    status: str
    display_id: Optional[str] = None
    display_name: str
    owner_type: Optional[str] = None
    target_ein: Optional[str] = None
    target_entity_type: Optional[str] = None
    expandable: bool
    created_at: Optional[datetime] = None

    @classmethod
    def from_view(cls, view: ResolvedOwnerView) -> "ResolvedOwner":
        edge = view.edge
        return cls(
            id=edge.id,
            entity_id=edge.owning_entity_id,
            target=OwnerTarget.from_view(view),
            name=edge.name_snapshot,
            title=edge.title,
            member_type=edge.member_type.value if edge.member_type else None,
            ownership_percent=edge.ownership_percent,
            ssn_last4=edge.ssn_last4,
            ein=edge.ein,
            address=edge.address,
            status=view.status.value,
            display_id=view.display_id,
            display_name=view.display_name,
            owner_type=view.owner_type,
            target_ein=view.target_ein,
            target_entity_type=view.target_entity_type,
            expandable=view.expandable,
            created_at=edge.created_at,
        )


class OwnerIdentity(BaseModel):
    display_id: Optional[str] = None
    name: str
    owner_type: Optional[str] = None
    sources: Dict[str, str]
    placeholder: bool = False

    @classmethod
    def from_identity(cls, identity: ResolvedIdentity) -> "OwnerIdentity":
        return cls(
            display_id=identity.display_id,
            name=identity.name,
            owner_type=identity.owner_type,
            sources={
                "display_id": identity.display_id_source.name.lower(),
                "name": identity.name_source.name.lower(),
                "owner_type": identity.owner_type_source.name.lower(),
            },
            placeholder=identity.is_placeholder,
        )


class OwnerNode(BaseModel):
    owner: ResolvedOwner
    identity: OwnerIdentity
    cycle: bool = False
    expandable: bool
    state: Optional[str] = None

    @classmethod
    def from_child(cls, child: ChildNode) -> "OwnerNode":
        return cls(
            owner=ResolvedOwner.from_view(child.view),
            identity=OwnerIdentity.from_identity(child.identity),
            cycle=child.cycle,
            expandable=child.expandable,
            state=child.state.value if child.state else None,
        )


class ResolveOwnersRequest(BaseModel):
    entity_ids: List[uuid.UUID] = Field(default_factory=list)


class ResolveOwnersResponse(BaseModel):
    owners: Dict[uuid.UUID, List[ResolvedOwner]]


class EntityOwnership(BaseModel):
    entity_id: uuid.UUID
    owners: List[ResolvedOwner]
    owned_by_entities: List[uuid.UUID]
    owns_entities: List[uuid.UUID]


class TraversalSessionCreate(BaseModel):
    root_entity_id: Optional[uuid.UUID] = None


class TraversalSession(BaseModel):
    id: uuid.UUID
    organization_id: uuid.UUID
    root_entity_id: Optional[uuid.UUID] = None
    cached_nodes: int = 0
    created_at: datetime
    last_used_at: datetime
    model_config = ConfigDict(from_attributes=True)


class ExpandRequest(BaseModel):
    node_id: uuid.UUID
    ancestor_path: List[uuid.UUID] = Field(default_factory=list)


class CollapseRequest(BaseModel):
    node_id: uuid.UUID


class CollapseResponse(BaseModel):
    node_id: uuid.UUID
    was_expanded: bool
    cached: bool


class Expansion(BaseModel):
    node_id: uuid.UUID
    status: str
    path: List[uuid.UUID]
    from_cache: bool = False
    expanded: bool = False
    children: List[OwnerNode] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: ExpansionResult, children: Optional[List[ChildNode]], expanded: bool) -> "Expansion":
        return cls(
            node_id=result.node_id,
            status=result.status.value,
            path=list(result.path),
            from_cache=result.from_cache,
            expanded=expanded,
            children=[OwnerNode.from_child(c) for c in children or []],
        )


class NodeChildren(BaseModel):
    node_id: uuid.UUID
    state: str
    expanded: bool
    loaded: bool
    retryable: bool = False
    children: List[OwnerNode] = Field(default_factory=list)


class LoadDetailsRequest(BaseModel):
    entity_ids: List[uuid.UUID] = Field(default_factory=list)
    borrower_ids: List[uuid.UUID] = Field(default_factory=list)


class LoadDetailsResponse(BaseModel):
    loaded: int

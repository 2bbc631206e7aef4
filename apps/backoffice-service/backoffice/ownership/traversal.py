"""
Lazy ownership-tree expansion.

Each entity id has its own state machine (unloaded -> loading -> loaded |
failed) kept in plain dicts, so the caching and de-duplication logic does not
depend on any rendering lifecycle. Expansion is always caller-driven; nothing
is loaded eagerly.

Termination does not depend on data quality: ``expand`` refuses any node that
is already on the ancestor path before it looks at the cache or the store.
Concurrent requests for the same node share a single in-flight load.

The engine is confined to one event loop and takes no locks. Loads run as
tasks that write the cache themselves, so a waiter that goes away (or a node
collapsed mid-flight) never loses or repeats a fetch.
"""
from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple, Union

from backoffice.ownership.aggregator import OwnershipAggregator
from backoffice.ownership.errors import NodeFetchFailed, OwnershipError, StoreUnavailable
from backoffice.ownership.identity import IdentityRegistry, ResolvedIdentity
from backoffice.ownership.types import (
    AncestorPath,
    LinkedEntity,
    NodeId,
    ResolvedOwnerView,
)

logger = logging.getLogger(__name__)

Owners = Tuple[ResolvedOwnerView, ...]


class NodeState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


class ExpansionStatus(str, Enum):
    LOADED = "loaded"
    CYCLE_DETECTED = "cycle_detected"


@dataclass(frozen=True)
class ExpansionResult:
    node_id: NodeId
    status: ExpansionStatus
    # For LOADED results this already includes node_id; pass it when expanding children.
    path: AncestorPath
    owners: Owners = ()
    from_cache: bool = False

    @property
    def is_cycle(self) -> bool:
        return self.status == ExpansionStatus.CYCLE_DETECTED


@dataclass(frozen=True)
class ChildNode:
    view: ResolvedOwnerView
    identity: ResolvedIdentity
    cycle: bool
    state: Optional[NodeState] = None

    @property
    def expandable(self) -> bool:
        return self.view.expandable and not self.cycle


def _as_path(ancestor_path: Union[AncestorPath, Iterable[NodeId], None]) -> AncestorPath:
    if isinstance(ancestor_path, AncestorPath):
        return ancestor_path
    return AncestorPath.of(ancestor_path or ())


class ExpansionEngine:
    """Per-session cache, in-flight map and expansion state for one ownership view."""

    def __init__(
        self,
        aggregator: OwnershipAggregator,
        identities: Optional[IdentityRegistry] = None,
        *,
        load_node_detail: bool = True,
    ):
        self.aggregator = aggregator
        if identities is None:
            identities = IdentityRegistry(policy=aggregator.policy, placeholder_name=aggregator.placeholder_name)
        self.identities = identities
        self.load_node_detail = load_node_detail
        self._states: Dict[NodeId, NodeState] = {}
        self._cache: Dict[NodeId, Owners] = {}
        self._in_flight: Dict[NodeId, asyncio.Task] = {}
        self._errors: Dict[NodeId, OwnershipError] = {}
        self._expanded: Set[NodeId] = set()
        self.stats: Counter = Counter()

    # ----- inbound operations -------------------------------------------------

    async def expand(
        self,
        node_id: NodeId,
        ancestor_path: Union[AncestorPath, Iterable[NodeId], None] = None,
    ) -> ExpansionResult:
        """
        Expand ``node_id`` below ``ancestor_path``.

        Returns a CYCLE_DETECTED result without touching the store when the
        node is already on the path. Otherwise returns the node's owners from
        cache, from an in-flight load, or from a fresh load.

        Raises:
            NodeFetchFailed: this node's load failed; the node moves to FAILED
                and a later call retries.
        """
        path = _as_path(ancestor_path)
        if node_id in path:
            self.stats["cycles"] += 1
            logger.debug("ownership_cycle_detected: node=%s depth=%d", node_id, len(path))
            return ExpansionResult(node_id=node_id, status=ExpansionStatus.CYCLE_DETECTED, path=path)

        self._expanded.add(node_id)
        child_path = path.extend(node_id)

        cached = self._cache.get(node_id)
        if cached is not None:
            self.stats["cache_hits"] += 1
            logger.debug("ownership_cache_hit: node=%s", node_id)
            return ExpansionResult(
                node_id=node_id,
                status=ExpansionStatus.LOADED,
                path=child_path,
                owners=cached,
                from_cache=True,
            )

        task = self._in_flight.get(node_id)
        if task is None:
            task = asyncio.create_task(self._load(node_id))
            task.add_done_callback(self._on_load_done)
            self._in_flight[node_id] = task
            self._states[node_id] = NodeState.LOADING
        else:
            self.stats["joined_in_flight"] += 1

        owners = await asyncio.shield(task)
        return ExpansionResult(node_id=node_id, status=ExpansionStatus.LOADED, path=child_path, owners=owners)

    def collapse(self, node_id: NodeId) -> bool:
        """Hide a node. Its cached owners (and any in-flight load) are kept."""
        was_expanded = node_id in self._expanded
        self._expanded.discard(node_id)
        return was_expanded

    def get_cached_children(self, node_id: NodeId) -> Optional[Owners]:
        return self._cache.get(node_id)

    async def load_details(
        self,
        entity_ids: Iterable[NodeId] = (),
        borrower_ids: Iterable[NodeId] = (),
    ) -> int:
        """Load detail records into the identity registry; one batched call per kind."""
        store = self.aggregator.store
        entity_ids = list(dict.fromkeys(entity_ids))
        borrower_ids = list(dict.fromkeys(borrower_ids))
        entities, borrowers = [], []
        try:
            if entity_ids:
                entities = await store.get_entities_by_ids(entity_ids)
            if borrower_ids:
                borrowers = await store.get_borrowers_by_ids(borrower_ids)
        except Exception as e:
            logger.error("ownership_detail_load_failed: entities=%d borrowers=%d error=%s",
                         len(entity_ids), len(borrower_ids), e)
            raise StoreUnavailable("load_details", e) from e
        return self.identities.record_many(entities, borrowers)

    # ----- state inspection ---------------------------------------------------

    def node_state(self, node_id: NodeId) -> NodeState:
        return self._states.get(node_id, NodeState.UNLOADED)

    def last_error(self, node_id: NodeId) -> Optional[OwnershipError]:
        return self._errors.get(node_id)

    def is_expanded(self, node_id: NodeId) -> bool:
        return node_id in self._expanded

    def is_in_flight(self, node_id: NodeId) -> bool:
        return node_id in self._in_flight

    def identity_for(self, view: ResolvedOwnerView) -> ResolvedIdentity:
        return self.identities.resolve(view)

    def describe_children(
        self,
        node_id: NodeId,
        ancestor_path: Union[AncestorPath, Iterable[NodeId], None] = None,
    ) -> Optional[List[ChildNode]]:
        """Render-ready children of a loaded node, or None if it has not loaded."""
        owners = self._cache.get(node_id)
        if owners is None:
            return None
        path = _as_path(ancestor_path).extend(node_id)
        children = []
        for view in owners:
            target = view.target
            cycle, state = False, None
            if isinstance(target, LinkedEntity):
                cycle = target.entity_id in path
                state = self.node_state(target.entity_id)
            children.append(ChildNode(view=view, identity=self.identities.resolve(view), cycle=cycle, state=state))
        return children

    def __len__(self) -> int:
        return len(self._cache)

    # ----- loading ------------------------------------------------------------

    async def _load(self, node_id: NodeId) -> Owners:
        self.stats["fetches"] += 1
        try:
            resolved = await self.aggregator.resolve_owners([node_id])
        except asyncio.CancelledError:
            self._states[node_id] = NodeState.UNLOADED
            raise
        except Exception as e:
            cause = e if isinstance(e, StoreUnavailable) else StoreUnavailable("resolve_owners", e)
            self._states[node_id] = NodeState.FAILED
            self._errors[node_id] = cause
            logger.error("ownership_node_fetch_failed: node=%s error=%s", node_id, e)
            raise NodeFetchFailed(node_id, cause) from cause
        finally:
            self._in_flight.pop(node_id, None)

        owners: Owners = tuple(resolved.get(node_id, ()))
        self._cache[node_id] = owners
        self._states[node_id] = NodeState.LOADED
        self._errors.pop(node_id, None)

        if self.load_node_detail:
            await self._load_node_detail(node_id)
        return owners

    async def _load_node_detail(self, node_id: NodeId) -> None:
        # Detail only improves identity resolution; a failure here leaves the
        # enrichment snapshot in place rather than failing the expansion.
        try:
            await self.load_details(entity_ids=[node_id])
        except StoreUnavailable as e:
            logger.warning("ownership_node_detail_unavailable: node=%s error=%s", node_id, e)

    @staticmethod
    def _on_load_done(task: asyncio.Task) -> None:
        # Retrieve the exception so a load nobody awaited any more is not reported as unhandled.
        if not task.cancelled():
            task.exception()

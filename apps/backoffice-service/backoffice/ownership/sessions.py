"""
Traversal session registry.

A traversal session holds one expansion engine (node cache, in-flight loads,
identity registry) for one viewer of one organization. Sessions are purely
in-memory; when the registry is full the least recently used one is dropped.
"""
from __future__ import annotations

import logging
import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from backoffice.ownership.aggregator import OwnershipAggregator
from backoffice.ownership.errors import UnknownSession
from backoffice.ownership.identity import IdentityRegistry
from backoffice.ownership.store import RecordStore
from backoffice.ownership.traversal import ExpansionEngine
from backoffice.utils.config import OwnershipSettings, get_ownership_settings
from backoffice.db.models import now_utc

logger = logging.getLogger(__name__)


@dataclass
class TraversalSession:
    id: uuid.UUID
    organization_id: uuid.UUID
    root_entity_id: Optional[uuid.UUID]
    engine: ExpansionEngine
    created_at: datetime = field(default_factory=now_utc)
    last_used_at: datetime = field(default_factory=now_utc)

    def touch(self) -> None:
        self.last_used_at = now_utc()


def build_engine(store: RecordStore, settings: Optional[OwnershipSettings] = None) -> ExpansionEngine:
    settings = settings or get_ownership_settings()
    aggregator = OwnershipAggregator(
        store, placeholder_name=settings.placeholder_name, policy=settings.identity_policy,
    )
    identities = IdentityRegistry(policy=settings.identity_policy, placeholder_name=settings.placeholder_name)
    return ExpansionEngine(aggregator, identities, load_node_detail=settings.load_node_detail)


class TraversalSessionRegistry:
    """Thread-safe LRU map of session id -> ``TraversalSession``."""

    def __init__(self, max_sessions: Optional[int] = None):
        self._max_sessions = max_sessions
        self._sessions: "OrderedDict[uuid.UUID, TraversalSession]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def max_sessions(self) -> int:
        return self._max_sessions or get_ownership_settings().max_sessions

    def create(
        self,
        organization_id: uuid.UUID,
        store_factory: Callable[[uuid.UUID], RecordStore],
        *,
        root_entity_id: Optional[uuid.UUID] = None,
        settings: Optional[OwnershipSettings] = None,
    ) -> TraversalSession:
        engine = build_engine(store_factory(organization_id), settings)
        session = TraversalSession(
            id=uuid.uuid4(),
            organization_id=organization_id,
            root_entity_id=root_entity_id,
            engine=engine,
        )
        with self._lock:
            self._sessions[session.id] = session
            while len(self._sessions) > self.max_sessions:
                evicted_id, _ = self._sessions.popitem(last=False)
                logger.info("traversal_session_evicted: session=%s", evicted_id)
        logger.info("traversal_session_created: session=%s org=%s root=%s",
                    session.id, organization_id, root_entity_id)
        return session

    def get(self, session_id: uuid.UUID, organization_id: Optional[uuid.UUID] = None) -> TraversalSession:
        """Return the session; a session of another organization is reported as unknown."""
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or (organization_id is not None and session.organization_id != organization_id):
                raise UnknownSession(session_id)
            self._sessions.move_to_end(session_id)
        session.touch()
        return session

    def close(self, session_id: uuid.UUID, organization_id: Optional[uuid.UUID] = None) -> bool:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None or (organization_id is not None and session.organization_id != organization_id):
                return False
            del self._sessions[session_id]
        logger.info("traversal_session_closed: session=%s", session_id)
        return True

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id) -> bool:
        with self._lock:
            return session_id in self._sessions


# Global registry instance
_session_registry = TraversalSessionRegistry()


def get_session_registry() -> TraversalSessionRegistry:
    """Get the process-wide traversal session registry."""
    return _session_registry

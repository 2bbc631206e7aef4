"""
Ownership resolution errors.

Dangling references and cycles are not errors: they surface as
``ReferenceStatus.DANGLING`` on a view and ``ExpansionStatus.CYCLE_DETECTED``
on an expansion result.
"""
from __future__ import annotations

from typing import Hashable, Optional


class OwnershipError(Exception):
    """Base class for ownership-graph failures."""


class StoreUnavailable(OwnershipError):
    """A batched record store call failed; the whole resolution is abandoned."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Record store unavailable during {operation}{detail}")


class NodeFetchFailed(OwnershipError):
    """Expansion of a single node failed. Other nodes and their caches are unaffected."""

    def __init__(self, node_id: Hashable, cause: Optional[BaseException] = None):
        self.node_id = node_id
        self.cause = cause
        super().__init__(f"Failed to load owners for node {node_id}")


class UnknownSession(OwnershipError):
    """No traversal session is registered under the requested id."""

    def __init__(self, session_id):
        self.session_id = session_id
        super().__init__(f"Traversal session {session_id} not found")

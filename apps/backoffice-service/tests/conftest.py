import asyncio
import uuid
from collections import Counter
from datetime import datetime, timedelta, timezone

import pytest

from backoffice.db import database, models
from backoffice.ownership.sessions import get_session_registry
from backoffice.ownership.types import IndividualOwner, LegalEntity, OwnershipEdge
from backoffice.utils.config import refresh_ownership_settings_cache

_OWNERSHIP_ENV = (
    "OWNERSHIP_IDENTITY_POLICY",
    "OWNERSHIP_LOAD_NODE_DETAIL",
    "OWNERSHIP_PLACEHOLDER_NAME",
    "OWNERSHIP_MAX_SESSIONS",
)


class FakeRecordStore:
    """In-memory ``RecordStore`` that records every batched call it receives."""

    def __init__(self, edges=(), entities=(), borrowers=()):
        self.edges = list(edges)
        self.entities = {e.id: e for e in entities}
        self.borrowers = {b.id: b for b in borrowers}
        self.calls = Counter()
        self.requests = []
        self.failing = set()
        # Set to an asyncio.Event to hold edge fetches until the test releases them
        self.edge_gate = None

    def fail(self, *operations):
        self.failing.update(operations)
        return self

    def recover(self):
        self.failing.clear()
        return self

    def _record(self, operation, ids):
        self.calls[operation] += 1
        self.requests.append((operation, list(ids)))
        if operation in self.failing:
            raise ConnectionError(f"{operation} unavailable")

    async def get_ownership_edges(self, entity_ids):
        if self.edge_gate is not None:
            await self.edge_gate.wait()
        self._record("edges", entity_ids)
        wanted = set(entity_ids)
        return [e for e in self.edges if e.owning_entity_id in wanted]

    async def get_entities_by_ids(self, ids):
        self._record("entities", ids)
        return [self.entities[i] for i in ids if i in self.entities]

    async def get_borrowers_by_ids(self, ids):
        self._record("borrowers", ids)
        return [self.borrowers[i] for i in ids if i in self.borrowers]

    async def get_owned_entity_ids(self, entity_id):
        self._record("owned", [entity_id])
        return list(dict.fromkeys(e.owning_entity_id for e in self.edges if e.target_entity_id == entity_id))


_BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


def edge(owner, *, entity=None, borrower=None, name=None, title=None, percent=None, member_type=None, seq=0, edge_id=None):
    """Build an ownership edge; ``seq`` orders creation time."""
    if member_type is None:
        member_type = "entity" if entity is not None else "individual"
    return OwnershipEdge(
        id=edge_id or f"{owner}->{entity or borrower or name}",
        owning_entity_id=owner,
        target_entity_id=entity,
        target_borrower_id=borrower,
        name_snapshot=name,
        title=title,
        ownership_percent=percent,
        member_type=member_type,
        created_at=_BASE_TIME + timedelta(minutes=seq),
    )


@pytest.fixture
def make_store():
    return FakeRecordStore


@pytest.fixture
def make_edge():
    return edge


@pytest.fixture
def scenario_store():
    """ENT-100 is owned by borrower B-7 and by ENT-200; ENT-200 is owned back by ENT-100."""
    return FakeRecordStore(
        edges=[
            edge("ENT-100", borrower="B-7", name="Jane Roe", title="Managing Member", percent=50, seq=1),
            edge("ENT-100", entity="ENT-200", name="Harbor Holdings", title="Member", percent=50, seq=2),
            edge("ENT-200", entity="ENT-100", name="Acme Lending LLC", title="Member", percent=100, seq=3),
        ],
        entities=[
            LegalEntity(id="ENT-100", display_id="E-100", name="Acme Lending LLC", entity_type="LLC"),
            LegalEntity(id="ENT-200", display_id="E-200", name="Harbor Holdings LP", entity_type="LP", ein="12-3456789"),
        ],
        borrowers=[IndividualOwner(id="B-7", display_id="BRW-7", name="Jane Roe")],
    )


@pytest.fixture(autouse=True)
def _ownership_settings_env(monkeypatch):
    """Clear env + cached settings for each test to avoid cross-contamination."""
    for env_name in _OWNERSHIP_ENV:
        monkeypatch.delenv(env_name, raising=False)
    refresh_ownership_settings_cache()
    yield
    refresh_ownership_settings_cache()


@pytest.fixture(autouse=True)
def _reset_session_registry():
    get_session_registry().clear()
    yield
    get_session_registry().clear()


@pytest.fixture(scope="session")
def _schema():
    database.init_sqlite_schema()
    yield


@pytest.fixture
def db_session(_schema):
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        for table in reversed(models.Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
        session.close()


@pytest.fixture
def db(db_session):
    return db_session


@pytest.fixture
def organization(db_session):
    org = models.Organization(name=f"Org {uuid.uuid4().hex[:8]}", slug=f"org-{uuid.uuid4().hex[:8]}")
    db_session.add(org)
    db_session.commit()
    db_session.refresh(org)
    return org


@pytest.fixture
def client():
    from fastapi.testclient import TestClient
    from backoffice.api.main import app
    return TestClient(app)


@pytest.fixture
def released():
    """Let pending tasks scheduled in the current loop run one step."""
    async def _step(times: int = 3):
        for _ in range(times):
            await asyncio.sleep(0)
    return _step

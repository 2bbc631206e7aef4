from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy.orm import Session

from backoffice.db import models

_BASE_TIME = datetime(2025, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def organization_factory(db_session: Session):
    def _create(name: str):
        org = models.Organization(name=name, slug=name.lower().replace(" ", "-"))
        db_session.add(org)
        db_session.commit()
        db_session.refresh(org)
        return org
    return _create


@pytest.fixture
def ownership_graph(db_session: Session, organization_factory):
    """
    Acme Lending LLC is owned by Jane Roe (50%), Harbor Holdings LP (50%), a
    free-text trust, and an entity of another organization. Harbor Holdings
    is owned back by Acme.
    """
    org = organization_factory("Lender Org")
    other_org = organization_factory("Other Org")

    acme = models.Entity(organization_id=org.id, display_id="E-100", entity_name="Acme Lending LLC", entity_type="LLC")
    harbor = models.Entity(
        organization_id=org.id, display_id="E-200", entity_name="Harbor Holdings LP",
        entity_type="LP", ein="12-3456789",
    )
    foreign = models.Entity(organization_id=other_org.id, display_id="X-1", entity_name="Foreign Holdings Inc")
    jane = models.Borrower(organization_id=org.id, display_id="BRW-7", first_name="Jane", last_name="Roe")
    db_session.add_all([acme, harbor, foreign, jane])
    db_session.flush()

    def owner(entity, seq, **fields):
        return models.EntityOwner(
            organization_id=entity.organization_id,
            entity_id=entity.id,
            created_at=_BASE_TIME + timedelta(minutes=seq),
            **fields,
        )

    edges = [
        owner(acme, 1, borrower_id=jane.id, name="Jane Roe", title="Managing Member",
              member_type="individual", ownership_percent=50, ssn_last4="1234"),
        owner(acme, 2, entity_owner_id=harbor.id, name="Harbor Holdings", title="Member",
              member_type="Entity", ownership_percent=50),
        owner(acme, 3, name="Roe Family Trust", title="Trustee", member_type="entity",
              ein="98-7654321", address="1 Main St, Springfield"),
        owner(acme, 4, entity_owner_id=foreign.id, name="Foreign Holdings", member_type="entity"),
        owner(harbor, 5, entity_owner_id=acme.id, name="Acme Lending LLC", title="Member",
              member_type="entity", ownership_percent=100),
        owner(foreign, 6, entity_owner_id=acme.id, name="Acme Lending LLC", member_type="entity"),
    ]
    db_session.add_all(edges)
    db_session.commit()

    return SimpleNamespace(
        org=org,
        other_org=other_org,
        acme=acme,
        harbor=harbor,
        foreign=foreign,
        jane=jane,
        edges=edges,
    )


@pytest.fixture
def org_headers(ownership_graph):
    return {"X-Organization-Id": str(ownership_graph.org.id)}

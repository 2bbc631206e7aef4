"""
HTTP tests for the ownership routes: batch resolution, the entity ownership
summary, traversal sessions and error mapping.
"""
import uuid

import pytest

from backoffice.api.deps import get_record_store_factory
from backoffice.api.main import app
from backoffice.utils.config import refresh_ownership_settings_cache


@pytest.fixture
def failing_store(make_store):
    store = make_store()
    app.dependency_overrides[get_record_store_factory] = lambda: (lambda organization_id: store)
    yield store
    app.dependency_overrides.pop(get_record_store_factory, None)


@pytest.fixture
def snapshot_policy(monkeypatch):
    monkeypatch.setenv("OWNERSHIP_IDENTITY_POLICY", "snapshot")
    refresh_ownership_settings_cache()


def _create_session(client, headers, root_entity_id=None):
    r = client.post("/ownership/sessions", json={"root_entity_id": root_entity_id}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["id"]


class TestOrganizationHeader:
    def test_missing_header(self, client, ownership_graph):
        r = client.post("/ownership/resolve", json={"entity_ids": [str(ownership_graph.acme.id)]})
        assert r.status_code == 400
        assert r.json()["detail"]["code"] == "organization_required"

    def test_invalid_header(self, client, ownership_graph):
        r = client.post(
            "/ownership/resolve",
            json={"entity_ids": [str(ownership_graph.acme.id)]},
            headers={"X-Organization-Id": "acme"},
        )
        assert r.status_code == 400
        assert r.json()["detail"]["code"] == "organization_invalid"


class TestResolveOwners:
    def test_resolves_batch(self, client, ownership_graph, org_headers):
        g = ownership_graph
        r = client.post(
            "/ownership/resolve",
            json={"entity_ids": [str(g.acme.id), str(g.harbor.id)]},
            headers=org_headers,
        )
        assert r.status_code == 200, r.text
        owners = r.json()["owners"]
        acme_owners = owners[str(g.acme.id)]

        assert [o["display_name"] for o in acme_owners] == [
            "Jane Roe", "Harbor Holdings LP", "Roe Family Trust", "Foreign Holdings",
        ]
        jane, harbor, trust, foreign = acme_owners
        assert jane["target"] == {"kind": "borrower", "id": str(g.jane.id)}
        assert jane["display_id"] == "BRW-7"
        assert jane["ownership_percent"] == 50.0
        assert jane["member_type"] == "individual"
        assert harbor["target_ein"] == "12-3456789"
        assert harbor["owner_type"] == "entity"
        assert harbor["target_entity_type"] == "LP"
        assert harbor["expandable"] is True
        assert trust["status"] == "unlinked"
        assert trust["target"] == {"kind": "unlinked", "id": None}
        assert trust["ein"] == "98-7654321"
        assert trust["address"] == "1 Main St, Springfield"
        assert trust["target_ein"] is None
        assert foreign["status"] == "dangling"
        assert foreign["expandable"] is False
        assert len(owners[str(g.harbor.id)]) == 1

    def test_empty_request(self, client, org_headers):
        r = client.post("/ownership/resolve", json={"entity_ids": []}, headers=org_headers)
        assert r.status_code == 200
        assert r.json() == {"owners": {}}

    def test_other_organization_sees_no_edges(self, client, ownership_graph):
        g = ownership_graph
        r = client.post(
            "/ownership/resolve",
            json={"entity_ids": [str(g.acme.id)]},
            headers={"X-Organization-Id": str(g.other_org.id)},
        )
        assert r.status_code == 200
        assert r.json()["owners"] == {str(g.acme.id): []}

    def test_store_failure_maps_to_503(self, client, failing_store, org_headers):
        failing_store.fail("edges")
        r = client.post("/ownership/resolve", json={"entity_ids": [str(uuid.uuid4())]}, headers=org_headers)
        assert r.status_code == 503
        assert r.json()["error"] == "store_unavailable"


class TestEntityOwnership:
    def test_summary(self, client, ownership_graph, org_headers):
        g = ownership_graph
        r = client.get(f"/entities/{g.acme.id}/ownership", headers=org_headers)
        assert r.status_code == 200, r.text
        body = r.json()

        assert body["entity_id"] == str(g.acme.id)
        assert len(body["owners"]) == 4
        assert body["owned_by_entities"] == [str(g.harbor.id), str(g.foreign.id)]
        assert body["owns_entities"] == [str(g.harbor.id)]

    def test_entity_of_other_organization_is_not_found(self, client, ownership_graph, org_headers):
        r = client.get(f"/entities/{ownership_graph.foreign.id}/ownership", headers=org_headers)
        assert r.status_code == 404


class TestTraversalSessions:
    def test_lifecycle(self, client, ownership_graph, org_headers):
        g = ownership_graph
        sid = _create_session(client, org_headers, str(g.acme.id))

        r = client.get(f"/ownership/sessions/{sid}", headers=org_headers)
        assert r.status_code == 200
        assert r.json()["root_entity_id"] == str(g.acme.id)
        assert r.json()["cached_nodes"] == 0

        assert client.delete(f"/ownership/sessions/{sid}", headers=org_headers).status_code == 204
        assert client.get(f"/ownership/sessions/{sid}", headers=org_headers).status_code == 404
        assert client.delete(f"/ownership/sessions/{sid}", headers=org_headers).status_code == 404

    def test_session_is_invisible_to_other_organization(self, client, ownership_graph, org_headers):
        sid = _create_session(client, org_headers)
        other = {"X-Organization-Id": str(ownership_graph.other_org.id)}
        assert client.get(f"/ownership/sessions/{sid}", headers=other).status_code == 404

    def test_expand_walks_mutual_ownership_without_looping(self, client, ownership_graph, org_headers):
        g = ownership_graph
        sid = _create_session(client, org_headers, str(g.acme.id))
        base = f"/ownership/sessions/{sid}"

        root = client.post(f"{base}/expand", json={"node_id": str(g.acme.id)}, headers=org_headers).json()
        assert root["status"] == "loaded"
        assert root["expanded"] is True
        assert root["path"] == [str(g.acme.id)]
        harbor_node = root["children"][1]
        assert harbor_node["identity"]["name"] == "Harbor Holdings LP"
        assert harbor_node["expandable"] is True
        assert harbor_node["cycle"] is False

        harbor = client.post(
            f"{base}/expand",
            json={"node_id": str(g.harbor.id), "ancestor_path": root["path"]},
            headers=org_headers,
        ).json()
        (back_edge,) = harbor["children"]
        assert back_edge["cycle"] is True
        assert back_edge["expandable"] is False

        again = client.post(
            f"{base}/expand",
            json={"node_id": str(g.acme.id), "ancestor_path": harbor["path"]},
            headers=org_headers,
        ).json()
        assert again["status"] == "cycle_detected"
        assert again["children"] == []

    def test_collapse_and_cached_children(self, client, ownership_graph, org_headers):
        g = ownership_graph
        sid = _create_session(client, org_headers)
        base = f"/ownership/sessions/{sid}"
        client.post(f"{base}/expand", json={"node_id": str(g.acme.id)}, headers=org_headers)

        r = client.post(f"{base}/collapse", json={"node_id": str(g.acme.id)}, headers=org_headers)
        assert r.json() == {"node_id": str(g.acme.id), "was_expanded": True, "cached": True}

        node = client.get(f"{base}/nodes/{g.acme.id}", headers=org_headers).json()
        assert node["state"] == "loaded"
        assert node["expanded"] is False
        assert node["loaded"] is True
        assert len(node["children"]) == 4

        again = client.post(f"{base}/expand", json={"node_id": str(g.acme.id)}, headers=org_headers).json()
        assert again["from_cache"] is True

    def test_unloaded_node(self, client, ownership_graph, org_headers):
        sid = _create_session(client, org_headers)
        node = client.get(f"/ownership/sessions/{sid}/nodes/{ownership_graph.harbor.id}", headers=org_headers).json()
        assert node == {
            "node_id": str(ownership_graph.harbor.id),
            "state": "unloaded",
            "expanded": False,
            "loaded": False,
            "retryable": False,
            "children": [],
        }

    def test_details_improve_child_identity(self, client, ownership_graph, org_headers, db_session):
        g = ownership_graph
        sid = _create_session(client, org_headers)
        base = f"/ownership/sessions/{sid}"
        client.post(f"{base}/expand", json={"node_id": str(g.acme.id)}, headers=org_headers)

        g.jane.display_id = "BRW-7A"
        db_session.commit()
        r = client.post(f"{base}/details", json={"borrower_ids": [str(g.jane.id)]}, headers=org_headers)
        assert r.json() == {"loaded": 1}

        node = client.get(f"{base}/nodes/{g.acme.id}", headers=org_headers).json()
        jane = node["children"][0]
        assert jane["identity"]["display_id"] == "BRW-7A"
        assert jane["identity"]["sources"]["display_id"] == "live_record"
        assert jane["owner"]["display_id"] == "BRW-7"

    def test_unknown_session(self, client, org_headers):
        r = client.post(
            f"/ownership/sessions/{uuid.uuid4()}/expand",
            json={"node_id": str(uuid.uuid4())},
            headers=org_headers,
        )
        assert r.status_code == 404

    def test_node_fetch_failure_is_retryable(self, client, failing_store, org_headers):
        node_id = str(uuid.uuid4())
        sid = _create_session(client, org_headers)
        base = f"/ownership/sessions/{sid}"

        failing_store.fail("edges")
        r = client.post(f"{base}/expand", json={"node_id": node_id}, headers=org_headers)
        assert r.status_code == 502
        assert r.json()["retryable"] is True
        assert r.json()["node_id"] == node_id

        node = client.get(f"{base}/nodes/{node_id}", headers=org_headers).json()
        assert node["state"] == "failed"
        assert node["retryable"] is True

        failing_store.recover()
        r = client.post(f"{base}/expand", json={"node_id": node_id}, headers=org_headers)
        assert r.status_code == 200
        assert r.json()["status"] == "loaded"


class TestSnapshotPolicy:
    def test_resolve_shows_names_stored_on_edges(self, client, ownership_graph, org_headers, snapshot_policy):
        g = ownership_graph
        r = client.post("/ownership/resolve", json={"entity_ids": [str(g.acme.id)]}, headers=org_headers)
        assert r.status_code == 200, r.text
        jane, harbor, _, _ = r.json()["owners"][str(g.acme.id)]

        assert harbor["display_name"] == "Harbor Holdings"
        assert harbor["display_id"] == "E-200"
        assert harbor["status"] == "resolved"
        assert jane["display_name"] == "Jane Roe"

    def test_summary_uses_configured_policy(self, client, ownership_graph, org_headers, snapshot_policy):
        r = client.get(f"/entities/{ownership_graph.acme.id}/ownership", headers=org_headers)
        assert r.status_code == 200, r.text
        assert r.json()["owners"][1]["display_name"] == "Harbor Holdings"

    def test_session_owner_and_identity_agree(self, client, ownership_graph, org_headers, snapshot_policy):
        g = ownership_graph
        sid = _create_session(client, org_headers, str(g.acme.id))
        base = f"/ownership/sessions/{sid}"
        root = client.post(f"{base}/expand", json={"node_id": str(g.acme.id)}, headers=org_headers).json()
        client.post(
            f"{base}/expand",
            json={"node_id": str(g.harbor.id), "ancestor_path": root["path"]},
            headers=org_headers,
        )

        node = client.get(f"{base}/nodes/{g.acme.id}", headers=org_headers).json()
        harbor = node["children"][1]
        assert harbor["owner"]["display_name"] == "Harbor Holdings"
        assert harbor["identity"]["name"] == "Harbor Holdings"
        assert harbor["identity"]["sources"]["name"] == "edge_snapshot"

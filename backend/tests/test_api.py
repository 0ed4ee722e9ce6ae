"""Tests for the HTTP API."""

import os
import sys

import httpx
import pytest
from fastapi.testclient import TestClient

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import main
from duplicate_queue import InMemoryDuplicateQueueStore
from record_store import RestRecordStore


@pytest.fixture
def client(monkeypatch, sample_snapshot):
    """Test client over an in-memory store loaded with the sample family."""
    monkeypatch.setattr(main.config, "RECORD_STORE_URL", None)
    monkeypatch.setattr(main.config, "SNAPSHOT_PATH", None)
    monkeypatch.setattr(main, "queue_store", InMemoryDuplicateQueueStore())
    with TestClient(main.app) as client:
        response = client.post("/snapshot", json=sample_snapshot)
        assert response.status_code == 200
        yield client


@pytest.fixture
def failing_rest_store(monkeypatch):
    """Swap in a REST store whose every request fails with a 500."""
    store = RestRecordStore(
        "http://records.test/rest/v1",
        transport=httpx.MockTransport(lambda request: httpx.Response(500)),
    )
    monkeypatch.setattr(main, "record_store", store)
    return store


class TestHealthAndSnapshot:
    """Tests for health and snapshot loading."""

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "record_store": "InMemoryRecordStore"}

    def test_snapshot_counts(self, client, sample_snapshot):
        response = client.post("/snapshot", json=sample_snapshot)
        assert response.json() == {"persons": 11, "declarations": 13}

    def test_invalid_snapshot(self, client):
        response = client.post("/snapshot", json={"persons": [{"first_name": "No id"}]})
        assert response.status_code == 422

    def test_snapshot_rejected_for_rest_store(self, client, failing_rest_store):
        response = client.post("/snapshot", json={"persons": []})
        assert response.status_code == 400


class TestTreeEndpoints:
    """Tests for tree and depth endpoints."""

    def test_hourglass_tree(self, client):
        response = client.get("/tree/p-anna", params={"mode": "hourglass", "depth": 2})
        assert response.status_code == 200
        data = response.json()
        assert {p["id"] for p in data["persons"]} == {
            "p-anna", "p-maria", "p-sergei", "p-ivan", "p-olga", "d13", "p-sofia"
        }
        assert data["_meta"]["optimized"] is False
        assert data["_meta"]["mode"] == "hourglass"

    def test_depth_clamped(self, client):
        response = client.get("/tree/p-anna", params={"depth": 50})
        assert response.json()["_meta"]["depth"] == 10

    def test_unknown_mode(self, client):
        response = client.get("/tree/p-anna", params={"mode": "sideways"})
        assert response.status_code == 422

    def test_unknown_proband(self, client):
        response = client.get("/tree/p-nobody")
        assert response.status_code == 404
        assert "p-nobody" in response.json()["detail"]

    def test_store_failure(self, client, failing_rest_store):
        response = client.get("/tree/p-anna")
        assert response.status_code == 503

    def test_relationships_by_depth(self, client):
        response = client.get("/relationships-depth/p-anna")
        assert response.status_code == 200
        data = response.json()
        assert {p["id"] for p in data["parents"]} == {"p-maria", "p-sergei"}
        assert data["spouses"][0]["marriage_date"] == "2015-08-01"

    def test_relationships_by_depth_unknown(self, client):
        assert client.get("/relationships-depth/p-nobody").status_code == 404


class TestRelationshipPathEndpoint:
    """Tests for person-to-person relationship paths."""

    def test_first_cousin(self, client):
        response = client.get("/relationship-path", params={"person1": "p-anna", "person2": "p-dmitri"})
        assert response.status_code == 200
        data = response.json()
        assert data["found"] is True
        assert data["hops"] == ["parent", "parent", "child", "child"]
        assert data["relationshipLabel"] == "first cousin"
        assert data["category"] == "cousin"

    def test_russian_locale(self, client):
        response = client.get(
            "/relationship-path", params={"person1": "p-anna", "person2": "p-dmitri", "locale": "ru"}
        )
        assert response.json()["relationshipLabel"] == "двоюродный брат"

    def test_not_connected(self, client):
        response = client.get("/relationship-path", params={"person1": "p-anna", "person2": "p-olga-dup"})
        assert response.status_code == 200
        assert response.json()["found"] is False

    def test_depth_limit(self, client):
        response = client.get(
            "/relationship-path", params={"person1": "p-anna", "person2": "p-dmitri", "max_depth": 3}
        )
        assert response.json()["found"] is False
        large = client.get(
            "/relationship-path", params={"person1": "p-anna", "person2": "p-dmitri", "max_depth": 500}
        )
        assert large.json()["found"] is True

    def test_invalid_depth(self, client):
        response = client.get(
            "/relationship-path", params={"person1": "p-anna", "person2": "p-dmitri", "max_depth": 0}
        )
        assert response.status_code == 422

    def test_unknown_person(self, client):
        response = client.get("/relationship-path", params={"person1": "p-anna", "person2": "p-nobody"})
        assert response.status_code == 404

    def test_missing_parameter(self, client):
        assert client.get("/relationship-path", params={"person1": "p-anna"}).status_code == 422

    def test_store_failure(self, client, failing_rest_store):
        response = client.get("/relationship-path", params={"person1": "p-anna", "person2": "p-dmitri"})
        assert response.status_code == 503


class TestKinshipEndpoints:
    """Tests for kinship computation and labels."""

    def test_compute(self, client):
        response = client.post(
            "/kinship/compute", json={"intermediate": "mother", "new": "sibling", "gender": "female"}
        )
        assert response.json() == {"code": "aunt", "label_en": "aunt", "label_ru": "тётя"}

    def test_compute_gendered_hop_without_gender(self, client):
        response = client.post("/kinship/compute", json={"intermediate": "parent", "new": "brother"})
        assert response.json() == {"code": "uncle", "label_en": "uncle", "label_ru": "дядя"}

    def test_label_defaults_to_russian(self, client):
        response = client.post("/kinship/label", json={
            "code": "sibling",
            "gender": "male",
            "qualifiers": {"halfness": "half", "lineage": "paternal"},
        })
        assert response.json() == {"label": "единокровный брат"}

    def test_label_english(self, client):
        response = client.post("/kinship/label", json={
            "code": "cousin",
            "gender": "female",
            "qualifiers": {"cousin_degree": 2, "cousin_removed": 1},
            "locale": "en",
        })
        assert response.json() == {"label": "second cousin once removed"}

    def test_path(self, client):
        response = client.post("/kinship/path", json={"hops": ["parent", "sibling", "child"], "gender": "male"})
        data = response.json()
        assert data["descriptor"]["code"] == "cousin"
        assert data["label_en"] == "first cousin"
        assert data["label_ru"] == "двоюродный брат"

    def test_empty_path_rejected(self, client):
        assert client.post("/kinship/path", json={"hops": []}).status_code == 422


class TestDuplicateEndpoints:
    """Tests for scanning, the review queue and pair comparison."""

    def test_scan_and_rescan(self, client):
        first = client.post("/duplicates/scan", json={}).json()
        assert first["duplicatesFound"] == 1
        assert first["duplicatesInserted"] == 1
        assert first["duplicates"][0]["profile_a_id"] == "p-olga"

        second = client.post("/duplicates/scan", json={"scanType": "full"}).json()
        assert second["duplicatesInserted"] == 0
        assert second["duplicatesSkipped"] == 1

    def test_scan_without_body(self, client):
        response = client.post("/duplicates/scan")
        assert response.status_code == 200
        assert response.json()["profilesScanned"] == 11

    def test_configured_min_confidence_applies_to_body(self, client, monkeypatch):
        monkeypatch.setattr(main.config, "DEFAULT_MIN_CONFIDENCE", 90)
        data = client.post("/duplicates/scan", json={"scanType": "full"}).json()
        assert data["duplicatesFound"] == 0
        assert data["duplicatesInserted"] == 0

    def test_invalid_scan_options(self, client):
        response = client.post("/duplicates/scan", json={"minConfidence": 150})
        assert response.status_code == 422

    def test_queue_after_scan(self, client):
        client.post("/duplicates/scan", json={})
        data = client.get("/duplicates/queue").json()
        assert data["total"] == 1
        assert data["pendingCount"] == 1
        assert data["hasMore"] is False
        assert data["duplicates"][0]["profile_a"]["id"] == "p-olga"

    def test_queue_filters(self, client):
        client.post("/duplicates/scan", json={})
        data = client.get("/duplicates/queue", params={"min_confidence": 90}).json()
        assert data["total"] == 0

    def test_queue_rejects_unknown_sort(self, client):
        response = client.get("/duplicates/queue", params={"sort_by": "name"})
        assert response.status_code == 422

    def test_compare(self, client):
        response = client.post(
            "/duplicates/compare", json={"profile_a_id": "p-olga-dup", "profile_b_id": "p-olga"}
        )
        data = response.json()
        assert data["profile_a_id"] == "p-olga"
        assert data["confidence_score"] == 80
        assert data["confidence_level"] == "very_high"
        assert "Exact name match (first and last name)" in data["descriptions"]

    def test_compare_unknown_profile(self, client):
        response = client.post(
            "/duplicates/compare", json={"profile_a_id": "p-olga", "profile_b_id": "p-nobody"}
        )
        assert response.status_code == 404

    def test_compare_nameless_profile(self, client):
        client.post("/snapshot", json={"persons": [{"id": "a", "first_name": "Olga"}, {"id": "b"}]})
        response = client.post("/duplicates/compare", json={"profile_a_id": "a", "profile_b_id": "b"})
        assert response.status_code == 422

"""Read-only record store adapters.

Two adapters ship:
- InMemoryRecordStore: a JSON snapshot ({"persons": [...], "declarations": [...]})
  loaded from a file or a dict.
- RestRecordStore: a PostgREST-style HTTP API reached with httpx.

Both expose the same methods. The optional optimized tree query raises
OptimizedQueryUnavailable when the backend cannot serve it, and callers fall
back to building the graph themselves.
"""

import json
import logging
import threading
from datetime import datetime
from typing import Any, Iterable

import httpx
from pydantic import ValidationError

from errors import OptimizedQueryUnavailable, RecordStoreError
from models import Person, RelationshipDeclaration

logger = logging.getLogger("kintree.record_store")


# ============================================================================
# In-memory snapshot store
# ============================================================================

class InMemoryRecordStore:
    """Serves persons and declarations from an in-process snapshot."""

    def __init__(
        self,
        persons: Iterable[Person] = (),
        declarations: Iterable[RelationshipDeclaration] = (),
    ):
        self._lock = threading.Lock()
        self._persons: dict[str, Person] = {}
        self._declarations: list[RelationshipDeclaration] = []
        self.replace(persons, declarations)

    @classmethod
    def from_snapshot(cls, data: dict[str, Any]) -> "InMemoryRecordStore":
        store = cls()
        store.load_snapshot(data)
        return store

    @classmethod
    def from_file(cls, path: str) -> "InMemoryRecordStore":
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise RecordStoreError(f"Could not read snapshot {path}: {e}") from e
        logger.info(f"Loading record snapshot from {path}")
        return cls.from_snapshot(data)

    def load_snapshot(self, data: dict[str, Any]) -> tuple[int, int]:
        """Replace the store contents with a snapshot dict. Returns (persons, declarations)."""
        try:
            persons = [Person.model_validate(p) for p in data.get("persons", [])]
            declarations = [
                RelationshipDeclaration.model_validate(d) for d in data.get("declarations", [])
            ]
        except ValidationError as e:
            raise RecordStoreError(f"Invalid snapshot: {e}") from e
        self.replace(persons, declarations)
        logger.info(f"Snapshot loaded: {len(persons)} persons, {len(declarations)} declarations")
        return len(persons), len(declarations)

    def replace(
        self,
        persons: Iterable[Person],
        declarations: Iterable[RelationshipDeclaration],
    ) -> None:
        with self._lock:
            self._persons = {p.id: p for p in persons}
            self._declarations = list(declarations)

    def get_person(self, person_id: str) -> Person | None:
        return self._persons.get(person_id)

    def list_persons_by_ids(self, ids: Iterable[str]) -> list[Person]:
        return [self._persons[i] for i in dict.fromkeys(ids) if i in self._persons]

    def list_persons(
        self,
        deceased_only: bool = False,
        updated_since: datetime | None = None,
    ) -> list[Person]:
        persons = list(self._persons.values())
        if deceased_only:
            persons = [p for p in persons if not p.is_alive]
        if updated_since is not None:
            persons = [p for p in persons if p.updated_at and p.updated_at >= updated_since]
        return persons

    def list_relationship_declarations(self, root_id: str | None = None) -> list[RelationshipDeclaration]:
        """All declarations; the graph builder cuts out the root's component."""
        return list(self._declarations)

    def get_tree_for_proband(self, proband_id: str, mode: str, depth: int) -> dict[str, Any]:
        raise OptimizedQueryUnavailable("In-memory store has no server-side tree query")


# ============================================================================
# PostgREST-style HTTP store
# ============================================================================

class RestRecordStore:
    """
    Record store backed by a PostgREST-style REST API.

    Tables: `persons`, `relationship_declarations`. The optimized tree query
    is the RPC `get_tree_for_proband`; a 404 from it means it is not deployed.
    """

    PERSONS_TABLE = "persons"
    DECLARATIONS_TABLE = "relationship_declarations"
    TREE_RPC = "rpc/get_tree_for_proband"
    # Keeps `in.(...)` filters inside common URL length limits
    ID_BATCH_SIZE = 100

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        headers = {"Accept": "application/json"}
        if api_key:
            headers["apikey"] = api_key
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/") + "/",
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"Record store timeout on {method} {path}")
            raise RecordStoreError(f"Record store timed out: {path}") from e
        except httpx.RequestError as e:
            logger.error(f"Record store request error on {method} {path}: {e}")
            raise RecordStoreError(f"Record store unreachable: {e}") from e
        return response

    def _get_rows(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        response = self._request("GET", table, params=params)
        if response.status_code != 200:
            logger.error(f"Record store returned {response.status_code} for {table}")
            raise RecordStoreError(f"Record store returned {response.status_code} for {table}")
        return response.json()

    @staticmethod
    def _in_filter(ids: list[str]) -> str:
        return "in.(" + ",".join(ids) + ")"

    def _batches(self, ids: Iterable[str]) -> Iterable[list[str]]:
        ids = list(dict.fromkeys(ids))
        for start in range(0, len(ids), self.ID_BATCH_SIZE):
            yield ids[start:start + self.ID_BATCH_SIZE]

    def get_person(self, person_id: str) -> Person | None:
        rows = self._get_rows(self.PERSONS_TABLE, {"id": f"eq.{person_id}", "limit": "1"})
        return Person.model_validate(rows[0]) if rows else None

    def list_persons_by_ids(self, ids: Iterable[str]) -> list[Person]:
        persons = []
        for batch in self._batches(ids):
            rows = self._get_rows(self.PERSONS_TABLE, {"id": self._in_filter(batch)})
            persons.extend(Person.model_validate(row) for row in rows)
        return persons

    def list_persons(
        self,
        deceased_only: bool = False,
        updated_since: datetime | None = None,
    ) -> list[Person]:
        params: dict[str, str] = {"order": "id.asc"}
        if deceased_only:
            params["or"] = "(is_deceased.eq.true,death_date.not.is.null)"
        if updated_since is not None:
            params["updated_at"] = f"gte.{updated_since.isoformat()}"
        return [Person.model_validate(row) for row in self._get_rows(self.PERSONS_TABLE, params)]

    def list_relationship_declarations(self, root_id: str | None = None) -> list[RelationshipDeclaration]:
        """
        Declarations touching the root's component.

        Without a root, every declaration is returned. With one, the store is
        walked outward one frontier at a time (one query per frontier batch).
        """
        if root_id is None:
            rows = self._get_rows(self.DECLARATIONS_TABLE, {"order": "id.asc"})
            return [RelationshipDeclaration.model_validate(row) for row in rows]

        found: dict[str, RelationshipDeclaration] = {}
        visited = {root_id}
        frontier = [root_id]
        while frontier:
            next_frontier: list[str] = []
            for batch in self._batches(frontier):
                ids = ",".join(batch)
                params = {
                    "or": f"(declarer_id.in.({ids}),subject_id.in.({ids}),"
                          f"related_subject_id.in.({ids}),id.in.({ids}))",
                }
                for row in self._get_rows(self.DECLARATIONS_TABLE, params):
                    declaration = RelationshipDeclaration.model_validate(row)
                    if declaration.id in found:
                        continue
                    found[declaration.id] = declaration
                    for endpoint in (
                        declaration.declarer_id,
                        declaration.resolved_subject_id,
                        declaration.related_subject_id,
                    ):
                        if endpoint and endpoint not in visited:
                            visited.add(endpoint)
                            next_frontier.append(endpoint)
            frontier = next_frontier
        logger.info(f"Fetched {len(found)} declarations around {root_id}")
        return list(found.values())

    def get_tree_for_proband(self, proband_id: str, mode: str, depth: int) -> dict[str, Any]:
        response = self._request(
            "POST",
            self.TREE_RPC,
            json={"proband_id": proband_id, "mode": mode, "max_depth": depth},
        )
        if response.status_code == 404:
            raise OptimizedQueryUnavailable("get_tree_for_proband is not deployed")
        if response.status_code != 200:
            logger.error(f"Tree RPC returned {response.status_code}")
            raise RecordStoreError(f"Tree RPC returned {response.status_code}")
        data = response.json()
        # Some deployments wrap the RPC payload in a one-element list
        if isinstance(data, list):
            data = data[0] if data else {}
        return {
            "persons": data.get("persons", []),
            "parentChild": data.get("parentChild", data.get("parent_child", [])),
            "unions": data.get("unions", []),
            "unionChildren": data.get("unionChildren", data.get("union_children", [])),
        }

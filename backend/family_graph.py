"""Family graph construction from relationship declarations.

Declarations are one-sided claims ("X is my parent"). This module cuts out the
proband's connected component and translates the claims into parent-child
edges, unions (couples) and union children, held in an arena keyed by person
id. Bad claims are skipped with a DataIntegrityWarning and never abort the build.
"""

import logging
import uuid
from collections import defaultdict, deque
from typing import Any, Iterable

from errors import DataIntegrityWarning, NotFoundError
from models import Person, RelationshipDeclaration

logger = logging.getLogger("kintree.family_graph")

UNION_NAMESPACE = uuid.UUID("6f1c2a4e-8d3b-5b7a-9c0e-4a2f1d7e3b90")


def union_id(person_a: str, person_b: str) -> str:
    """Deterministic union id; independent of partner order."""
    return str(uuid.uuid5(UNION_NAMESPACE, ":".join(sorted((person_a, person_b)))))


class Union:
    """A couple. Partners are stored in sorted order."""

    def __init__(self, person_a: str, person_b: str):
        self.p1, self.p2 = sorted((person_a, person_b))
        self.union_id = union_id(self.p1, self.p2)
        self.marriage_date: str | None = None
        self.divorce_date: str | None = None

    def partner_of(self, person_id: str) -> str | None:
        if person_id == self.p1:
            return self.p2
        if person_id == self.p2:
            return self.p1
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "union_id": self.union_id,
            "p1": self.p1,
            "p2": self.p2,
            "marriage_date": self.marriage_date,
            "divorce_date": self.divorce_date,
        }


class FamilyGraph:
    """Arena of persons and relationship edges for one proband's component."""

    def __init__(self, proband_id: str):
        self.proband_id = proband_id
        self.persons: dict[str, Person] = {}
        self.parents_of: dict[str, set[str]] = defaultdict(set)
        self.children_of: dict[str, set[str]] = defaultdict(set)
        self.unions: dict[str, Union] = {}
        self.union_children: set[tuple[str, str]] = set()
        self.declared_siblings: set[frozenset[str]] = set()
        self.warnings: list[DataIntegrityWarning] = []

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(DataIntegrityWarning(message))

    def add_parent_child(self, parent_id: str, child_id: str) -> None:
        self.parents_of[child_id].add(parent_id)
        self.children_of[parent_id].add(child_id)

    def add_union(self, person_a: str, person_b: str) -> Union:
        key = union_id(person_a, person_b)
        if key not in self.unions:
            self.unions[key] = Union(person_a, person_b)
        return self.unions[key]

    def unions_of(self, person_id: str) -> list[Union]:
        return [u for u in self.unions.values() if person_id in (u.p1, u.p2)]

    def siblings_of(self, person_id: str) -> set[str]:
        """People sharing at least one parent with `person_id`, plus declared siblings."""
        siblings: set[str] = set()
        for parent_id in self.parents_of.get(person_id, ()):
            siblings.update(self.children_of.get(parent_id, ()))
        for pair in self.declared_siblings:
            if person_id in pair:
                siblings.update(pair)
        siblings.discard(person_id)
        return siblings

    def ancestors_of(self, person_id: str) -> set[str]:
        """All ancestors (excluding the person). Safe on cyclic data."""
        seen: set[str] = set()
        stack = list(self.parents_of.get(person_id, ()))
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self.parents_of.get(current, ()))
        seen.discard(person_id)
        return seen


# ============================================================================
# Component closure
# ============================================================================

def _endpoints(declaration: RelationshipDeclaration) -> list[str]:
    ids = [declaration.declarer_id, declaration.resolved_subject_id]
    if declaration.related_subject_id:
        ids.append(declaration.related_subject_id)
    return ids


def collect_component(
    declarations: Iterable[RelationshipDeclaration],
    proband_id: str,
) -> list[RelationshipDeclaration]:
    """
    Declarations reachable from the proband through any endpoint.

    Each person id is expanded once, so a cyclic or deeply chained claim log
    is walked in time linear in its size.
    """
    by_endpoint: dict[str, list[RelationshipDeclaration]] = defaultdict(list)
    for declaration in declarations:
        for endpoint in _endpoints(declaration):
            by_endpoint[endpoint].append(declaration)

    reached: dict[str, RelationshipDeclaration] = {}
    visited = {proband_id}
    queue = deque([proband_id])
    while queue:
        person_id = queue.popleft()
        for declaration in by_endpoint.get(person_id, ()):
            if declaration.id in reached:
                continue
            reached[declaration.id] = declaration
            for endpoint in _endpoints(declaration):
                if endpoint not in visited:
                    visited.add(endpoint)
                    queue.append(endpoint)
    return list(reached.values())


# ============================================================================
# Graph construction
# ============================================================================

def build_family_graph(
    declarations: Iterable[RelationshipDeclaration],
    proband_id: str,
    persons: dict[str, Person],
) -> FamilyGraph:
    """
    Build the proband's family graph.

    Args:
        declarations: claim log (may contain unrelated components)
        proband_id: root person id
        persons: person records by id; placeholder persons are derived from
            declarations whose subject has not registered

    Raises:
        NotFoundError: if the proband has no person record
    """
    if proband_id not in persons:
        raise NotFoundError(proband_id)

    graph = FamilyGraph(proband_id)
    graph.persons[proband_id] = persons[proband_id]

    component = list(collect_component(declarations, proband_id))
    # Placeholder relatives may be referenced by id from other declarations
    known = dict(persons)
    for declaration in component:
        if declaration.subject_id is None:
            known.setdefault(declaration.id, declaration.placeholder_person())

    accepted: list[RelationshipDeclaration] = []
    for declaration in component:
        subject_id = declaration.resolved_subject_id
        if declaration.declarer_id not in known:
            graph.warn(f"Declaration {declaration.id}: unknown declarer '{declaration.declarer_id}'")
            continue
        if declaration.subject_id and declaration.subject_id not in known:
            graph.warn(f"Declaration {declaration.id}: unknown subject '{declaration.subject_id}'")
            continue
        if declaration.related_subject_id and declaration.related_subject_id not in known:
            graph.warn(
                f"Declaration {declaration.id}: unknown related subject '{declaration.related_subject_id}'"
            )
            continue
        if subject_id == declaration.declarer_id or subject_id == declaration.related_subject_id:
            graph.warn(f"Declaration {declaration.id}: self relation on '{subject_id}'")
            continue

        graph.persons.setdefault(declaration.declarer_id, known[declaration.declarer_id])
        graph.persons.setdefault(subject_id, known[subject_id])
        if declaration.related_subject_id:
            graph.persons.setdefault(
                declaration.related_subject_id, known[declaration.related_subject_id]
            )
        accepted.append(declaration)

    for declaration in accepted:
        _apply_declaration(graph, declaration)

    _drop_lineal_unions(graph)
    _attach_union_children(graph, accepted)

    logger.info(
        f"Built graph for {proband_id}: {len(graph.persons)} persons, "
        f"{sum(len(c) for c in graph.children_of.values())} parent-child edges, "
        f"{len(graph.unions)} unions, {len(graph.warnings)} warnings"
    )
    return graph


def _apply_declaration(graph: FamilyGraph, declaration: RelationshipDeclaration) -> None:
    subject_id = declaration.resolved_subject_id
    declarer_id = declaration.declarer_id
    related_id = declaration.related_subject_id
    code = declaration.relation_code

    if code == "parent":
        if related_id and declaration.related_relationship == "parent":
            graph.add_parent_child(subject_id, related_id)
        else:
            graph.add_parent_child(subject_id, declarer_id)
    elif code == "child":
        graph.add_parent_child(declarer_id, subject_id)
    elif code == "grandparent":
        if related_id:
            graph.add_parent_child(subject_id, related_id)
        else:
            logger.info(f"Grandparent {subject_id} declared without an intermediate parent; left unlinked")
    elif code == "grandchild":
        if related_id:
            graph.add_parent_child(related_id, subject_id)
        else:
            logger.info(f"Grandchild {subject_id} declared without an intermediate child; left unlinked")
    elif code == "spouse":
        union = graph.add_union(declarer_id, subject_id)
        if union.marriage_date is None and declaration.marriage_date:
            union.marriage_date = declaration.marriage_date
        if union.divorce_date is None and declaration.divorce_date:
            union.divorce_date = declaration.divorce_date
    elif code == "sibling":
        graph.declared_siblings.add(frozenset((declarer_id, subject_id)))


def _drop_lineal_unions(graph: FamilyGraph) -> None:
    for key, union in list(graph.unions.items()):
        if union.p1 in graph.ancestors_of(union.p2) or union.p2 in graph.ancestors_of(union.p1):
            graph.warn(f"Union {union.p1}/{union.p2} joins an ancestor and a descendant; dropped")
            del graph.unions[key]


def _attach_union_children(graph: FamilyGraph, accepted: list[RelationshipDeclaration]) -> None:
    for declaration in accepted:
        if declaration.relation_code != "child":
            continue
        child_id = declaration.resolved_subject_id
        unions = graph.unions_of(declaration.declarer_id)
        if len(unions) == 1:
            graph.union_children.add((unions[0].union_id, child_id))
            continue
        for union in unions:
            if union.partner_of(declaration.declarer_id) in graph.parents_of.get(child_id, ()):
                graph.union_children.add((union.union_id, child_id))

    for child_id, parents in graph.parents_of.items():
        ordered = sorted(parents)
        for i, parent_a in enumerate(ordered):
            for parent_b in ordered[i + 1:]:
                key = union_id(parent_a, parent_b)
                if key in graph.unions:
                    graph.union_children.add((key, child_id))


def load_family_graph(store, proband_id: str) -> FamilyGraph:
    """Fetch the proband's records from a record store and build the graph."""
    proband = store.get_person(proband_id)
    if proband is None:
        raise NotFoundError(proband_id)
    declarations = store.list_relationship_declarations(proband_id)
    component = collect_component(declarations, proband_id)
    ids = {proband_id}
    for declaration in component:
        ids.add(declaration.declarer_id)
        if declaration.subject_id:
            ids.add(declaration.subject_id)
        if declaration.related_subject_id:
            ids.add(declaration.related_subject_id)
    persons = {p.id: p for p in store.list_persons_by_ids(sorted(ids))}
    persons[proband_id] = proband
    return build_family_graph(component, proband_id, persons)

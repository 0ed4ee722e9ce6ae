"""Shortest relationship path between two people.

The search runs over the first person's family graph. Every semantic edge is
walked in both directions (child -> parent is a 'parent' hop, parent -> child a
'child' hop; unions and declared siblings are lateral), so the hop codes along
the path can be handed straight to the kinship path math.
"""

import logging
from collections import defaultdict, deque
from typing import Any

from errors import NotFoundError
from family_graph import FamilyGraph, load_family_graph
from kinship import calculate_relationship_degree, fold_relationship_chain
from kinship_labels import generate_label

logger = logging.getLogger("kintree.relationship_path")

DEFAULT_PATH_DEPTH = 15
MAX_PATH_DEPTH = 20

HOP_DIRECTIONS = {
    "parent": "up",
    "child": "down",
    "spouse": "lateral",
    "sibling": "lateral",
}

NOT_CONNECTED = {
    "en": ("No connection found", "Not connected"),
    "ru": ("Связь не найдена", "Не связаны"),
}


def clamp_path_depth(max_depth: int | None) -> int:
    if max_depth is None:
        return DEFAULT_PATH_DEPTH
    return min(max(max_depth, 1), MAX_PATH_DEPTH)


def build_adjacency(graph: FamilyGraph) -> dict[str, list[tuple[str, str]]]:
    """(neighbour id, hop code) pairs per person, sorted so paths are stable."""
    adjacency: dict[str, set[tuple[str, str]]] = defaultdict(set)
    for child_id, parent_ids in graph.parents_of.items():
        for parent_id in parent_ids:
            adjacency[child_id].add((parent_id, "parent"))
            adjacency[parent_id].add((child_id, "child"))
    for union in graph.unions.values():
        adjacency[union.p1].add((union.p2, "spouse"))
        adjacency[union.p2].add((union.p1, "spouse"))
    for pair in graph.declared_siblings:
        first, second = sorted(pair)
        adjacency[first].add((second, "sibling"))
        adjacency[second].add((first, "sibling"))
    return {person_id: sorted(edges) for person_id, edges in adjacency.items()}


def find_path(
    graph: FamilyGraph,
    start_id: str,
    end_id: str,
    max_depth: int = DEFAULT_PATH_DEPTH,
) -> list[tuple[str, str]] | None:
    """
    Breadth-first search for the shortest chain of direct relations.

    Returns:
        [(person id, hop code that reached it), ...] excluding the start, an
        empty list when start and end are the same person, or None when no
        path of at most `max_depth` hops exists.
    """
    if start_id not in graph.persons or end_id not in graph.persons:
        return None
    if start_id == end_id:
        return []

    adjacency = build_adjacency(graph)
    previous: dict[str, tuple[str, str] | None] = {start_id: None}
    depth = {start_id: 0}
    queue = deque([start_id])
    while queue:
        current = queue.popleft()
        if depth[current] >= max_depth:
            continue
        for neighbour, hop in adjacency.get(current, ()):
            if neighbour in previous:
                continue
            previous[neighbour] = (current, hop)
            depth[neighbour] = depth[current] + 1
            if neighbour == end_id:
                return _unwind(previous, end_id)
            queue.append(neighbour)
    return None


def _unwind(previous: dict[str, tuple[str, str] | None], end_id: str) -> list[tuple[str, str]]:
    steps: list[tuple[str, str]] = []
    current = end_id
    while previous[current] is not None:
        prev_id, hop = previous[current]
        steps.append((current, hop))
        current = prev_id
    steps.reverse()
    return steps


def _degree_of_separation(path_length: int, locale: str) -> str:
    if path_length == 0:
        return "Это вы" if locale == "ru" else "Same person"
    if path_length == 1:
        return "Прямое родство" if locale == "ru" else "Directly related"
    if locale == "ru":
        return f"{path_length}-я степень родства"
    suffix = {2: "nd", 3: "rd"}.get(path_length, "th")
    return f"{path_length}{suffix} degree"


def describe_path(
    graph: FamilyGraph,
    start_id: str,
    end_id: str,
    locale: str = "en",
    max_depth: int | None = None,
) -> dict[str, Any]:
    """Path between two people with the relationship it implies."""
    locale = locale if locale in NOT_CONNECTED else "en"
    steps = find_path(graph, start_id, end_id, clamp_path_depth(max_depth))
    if steps is None:
        label, separation = NOT_CONNECTED[locale]
        logger.info(f"No path from {start_id} to {end_id}")
        return {
            "found": False,
            "pathLength": 0,
            "path": [],
            "hops": [],
            "relationshipLabel": label,
            "degreeOfSeparation": separation,
            "category": "other",
        }

    hops = [hop for _, hop in steps]
    # Each step describes the relation to the next person on the path
    path = []
    ids = [start_id] + [person_id for person_id, _ in steps]
    for index, person_id in enumerate(ids):
        node = graph.persons[person_id].to_node()
        hop = hops[index] if index < len(hops) else None
        node["relationship"] = hop
        node["direction"] = HOP_DIRECTIONS.get(hop) if hop else None
        path.append(node)

    target = graph.persons[end_id]
    gender = target.gender if target.gender in ("male", "female") else None
    descriptor = calculate_relationship_degree(hops)
    logger.info(f"Path {start_id} -> {end_id}: {' > '.join(hops) or 'self'} = {descriptor.code}")
    return {
        "found": True,
        "pathLength": len(hops),
        "path": path,
        "hops": hops,
        "descriptor": descriptor.model_dump(exclude_none=True),
        "folded_code": fold_relationship_chain(hops, gender),
        "relationshipLabel": generate_label(descriptor.code, gender or "unknown", descriptor.qualifiers, locale),
        "degreeOfSeparation": _degree_of_separation(len(hops), locale),
        "category": descriptor.category,
    }


def load_relationship_path(
    store,
    start_id: str,
    end_id: str,
    locale: str = "en",
    max_depth: int | None = None,
) -> dict[str, Any]:
    """Fetch the first person's component from a record store and find the path."""
    if store.get_person(end_id) is None:
        raise NotFoundError(end_id)
    graph = load_family_graph(store, start_id)
    return describe_path(graph, start_id, end_id, locale, max_depth)

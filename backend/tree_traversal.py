"""Bounded tree traversal and depth classification over a FamilyGraph."""

import logging
from collections import deque
from typing import Any

from errors import InvalidRange, OptimizedQueryUnavailable
from family_graph import FamilyGraph, load_family_graph

logger = logging.getLogger("kintree.tree_traversal")

MIN_DEPTH = 1
MAX_DEPTH = 10
TREE_MODES = ("ancestors", "descendants", "hourglass")


def clamp_depth(depth: int | None, default: int = 3) -> int:
    """Clamp a requested depth into [1, 10]; out-of-range values are corrected, not rejected."""
    if depth is None:
        return default
    if MIN_DEPTH <= depth <= MAX_DEPTH:
        return depth
    clamped = min(max(depth, MIN_DEPTH), MAX_DEPTH)
    logger.info(f"{InvalidRange(f'depth {depth} outside [{MIN_DEPTH}, {MAX_DEPTH}]')}; using {clamped}")
    return clamped


def _bounded_walk(
    start: str,
    neighbours: dict[str, set[str]],
    depth: int,
) -> tuple[dict[str, int], list[tuple[str, str]]]:
    """
    BFS from `start` following `neighbours` for at most `depth` hops.

    Returns first-reached hop distances and the (from, to) edges walked.
    """
    distances = {start: 0}
    edges: list[tuple[str, str]] = []
    queue = deque([start])
    while queue:
        current = queue.popleft()
        if distances[current] >= depth:
            continue
        for nxt in sorted(neighbours.get(current, ())):
            edges.append((current, nxt))
            if nxt not in distances:
                distances[nxt] = distances[current] + 1
                queue.append(nxt)
    return distances, edges


def _find_back_edges(edges: set[tuple[str, str]]) -> set[tuple[str, str]]:
    """Back edges of a directed parent -> child edge set (iterative DFS colouring)."""
    adjacency: dict[str, list[str]] = {}
    for parent_id, child_id in sorted(edges):
        adjacency.setdefault(parent_id, []).append(child_id)

    WHITE, GREY, BLACK = 0, 1, 2
    colour: dict[str, int] = {}
    back_edges: set[tuple[str, str]] = set()
    for root in sorted(adjacency):
        if colour.get(root, WHITE) != WHITE:
            continue
        colour[root] = GREY
        stack = [(root, iter(adjacency.get(root, ())))]
        while stack:
            node, children = stack[-1]
            child = next(children, None)
            if child is None:
                colour[node] = BLACK
                stack.pop()
                continue
            state = colour.get(child, WHITE)
            if state == GREY:
                back_edges.add((node, child))
            elif state == WHITE:
                colour[child] = GREY
                stack.append((child, iter(adjacency.get(child, ()))))
    return back_edges


def traverse_tree(graph: FamilyGraph, proband_id: str, mode: str = "hourglass", depth: int = 3) -> dict[str, Any]:
    """
    Extract the bounded subgraph around the proband.

    Args:
        graph: family graph containing the proband
        proband_id: root person id
        mode: 'ancestors', 'descendants' or 'hourglass'
        depth: generations to walk in each direction, clamped to [1, 10]

    Returns:
        {persons, parentChild, unions, unionChildren, warnings}
    """
    if mode not in TREE_MODES:
        raise ValueError(f"Unknown tree mode: {mode}")
    depth = clamp_depth(depth)

    order: dict[str, None] = {proband_id: None}
    edges: set[tuple[str, str]] = set()

    if mode in ("ancestors", "hourglass"):
        distances, walked = _bounded_walk(proband_id, graph.parents_of, depth)
        order.update(dict.fromkeys(distances))
        edges.update((parent_id, child_id) for child_id, parent_id in walked)
    if mode in ("descendants", "hourglass"):
        distances, walked = _bounded_walk(proband_id, graph.children_of, depth)
        order.update(dict.fromkeys(distances))
        edges.update(walked)

    warnings = [str(w) for w in graph.warnings]
    for parent_id, child_id in sorted(_find_back_edges(edges)):
        message = f"Cycle detected: {parent_id} -> {child_id} omitted"
        logger.warning(message)
        warnings.append(message)
        edges.discard((parent_id, child_id))

    person_ids = set(order)
    unions = [
        u for u in graph.unions.values()
        if u.p1 in person_ids and u.p2 in person_ids
    ]
    included_unions = {u.union_id for u in unions}
    union_children = sorted(
        (uid, child_id) for uid, child_id in graph.union_children
        if uid in included_unions and child_id in person_ids
    )

    return {
        "persons": [graph.persons[pid].to_node() for pid in order if pid in graph.persons],
        "parentChild": [{"parent_id": p, "child_id": c} for p, c in sorted(edges)],
        "unions": [u.to_dict() for u in sorted(unions, key=lambda u: u.union_id)],
        "unionChildren": [{"union_id": uid, "child_id": c} for uid, c in union_children],
        "warnings": warnings,
    }


def query_tree(store, proband_id: str, mode: str = "hourglass", depth: int = 3) -> dict[str, Any]:
    """
    Tree query with the optimized store path and a graph-building fallback.

    The response shape is the same on both paths; `_meta.optimized` tells
    which one served it.
    """
    depth = clamp_depth(depth)
    try:
        result = store.get_tree_for_proband(proband_id, mode, depth)
        result.setdefault("warnings", [])
        optimized = True
    except OptimizedQueryUnavailable as e:
        logger.info(f"Optimized tree query unavailable ({e}); building graph for {proband_id}")
        graph = load_family_graph(store, proband_id)
        result = traverse_tree(graph, proband_id, mode, depth)
        optimized = False

    warnings = result.pop("warnings")
    result["_meta"] = {
        "proband_id": proband_id,
        "mode": mode,
        "depth": depth,
        "optimized": optimized,
        "warnings": warnings,
    }
    return result


# ============================================================================
# Depth classification
# ============================================================================

def classify_relationships_by_depth(graph: FamilyGraph, proband_id: str) -> dict[str, list[dict[str, Any]]]:
    """
    Bucket the proband's close relatives by exact hop distance.

    Buckets are filled in priority order (parents, grandparents, children,
    grandchildren, siblings, spouses); a person lands in the first bucket
    that claims them, and the proband is never bucketed.
    """
    up, _ = _bounded_walk(proband_id, graph.parents_of, 2)
    down, _ = _bounded_walk(proband_id, graph.children_of, 2)

    assigned = {proband_id}
    buckets: dict[str, list[dict[str, Any]]] = {}

    def fill(name: str, ids, extra=None) -> None:
        nodes = []
        for person_id in sorted(ids):
            if person_id in assigned or person_id not in graph.persons:
                continue
            assigned.add(person_id)
            node = graph.persons[person_id].to_node()
            if extra:
                node.update(extra(person_id))
            nodes.append(node)
        buckets[name] = nodes

    fill("parents", [pid for pid, d in up.items() if d == 1])
    fill("grandparents", [pid for pid, d in up.items() if d == 2])
    fill("children", [pid for pid, d in down.items() if d == 1])
    fill("grandchildren", [pid for pid, d in down.items() if d == 2])
    fill("siblings", graph.siblings_of(proband_id))

    partner_unions = {u.partner_of(proband_id): u for u in graph.unions_of(proband_id)}

    def union_dates(person_id: str) -> dict[str, Any]:
        union = partner_unions[person_id]
        return {"marriage_date": union.marriage_date, "divorce_date": union.divorce_date}

    fill("spouses", partner_unions, union_dates)
    return buckets


def load_relationships_by_depth(store, proband_id: str) -> dict[str, list[dict[str, Any]]]:
    graph = load_family_graph(store, proband_id)
    return classify_relationships_by_depth(graph, proband_id)

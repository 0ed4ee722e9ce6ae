"""Kinship algebra: derive indirect relationships from chains of direct ones.

Two tools live here:
- compute_relationship() / fold_relationship_chain(): a two-hop composition
  table ("my mother's sister" -> aunt), folded left-to-right for longer chains.
- calculate_relationship_degree(): generational path math (steps up and down
  the tree) that yields cousin degree/removal and great-levels for any length.
"""

import logging
from typing import Any

from kinship_labels import GENDERED_CODES, generate_label, normalize_code, split_great_prefix
from models import KinshipDescriptor, KinshipResult, RelationshipQualifiers

logger = logging.getLogger("kintree.kinship")


# ============================================================================
# Two-hop composition table
# (relation of intermediate to me, relation of new person to intermediate)
# ============================================================================

RELATIONSHIP_RULES: dict[tuple[str, str], str] = {
    # blood
    ("parent", "sibling"): "aunt_uncle",
    ("parent", "parent"): "grandparent",
    ("parent", "grandparent"): "great-grandparent",
    ("parent", "child"): "sibling",
    ("sibling", "child"): "niece_nephew",
    ("sibling", "sibling"): "sibling",
    ("sibling", "parent"): "parent",
    ("aunt_uncle", "child"): "cousin",
    ("grandparent", "parent"): "great-grandparent",
    ("grandchild", "child"): "great-grandchild",
    ("child", "child"): "grandchild",
    ("child", "grandchild"): "great-grandchild",
    ("child", "sibling"): "child",
    # marriage
    ("spouse", "parent"): "parent_in_law",
    ("spouse", "sibling"): "sibling_in_law",
    ("sibling", "spouse"): "sibling_in_law",
    ("child", "spouse"): "child_in_law",
    ("parent", "spouse"): "step_parent",
    ("spouse", "child"): "step_child",
    ("aunt_uncle", "spouse"): "aunt_uncle",
}


def _compose(intermediate: str, new: str) -> str | None:
    """Neutral result code for two normalized hops, or None when the table has no entry."""
    result = RELATIONSHIP_RULES.get((intermediate, new))
    if result:
        return result
    # Open-ended lineal chains: great-...-grandparent + parent, and the mirror
    base, _ = split_great_prefix(intermediate)
    if base == "grandparent" and new == "parent":
        return "great-" + intermediate
    if base == "grandchild" and new == "child":
        return "great-" + intermediate
    return None


def apply_gender(code: str, gender: str | None) -> str:
    """Resolve a gender-ambiguous code (aunt_uncle -> aunt|uncle); unknown gender keeps it neutral."""
    forms = GENDERED_CODES.get(code)
    if not forms:
        return code
    if gender == "female":
        return forms[0]
    if gender == "male":
        return forms[1]
    return code


def compute_relationship(intermediate: str, new: str, gender: str | None = None) -> str:
    """
    Relationship of a new person to me, given how the intermediate relates to me
    and how the new person relates to the intermediate.

    Example: compute_relationship("mother", "sibling", "female") -> "aunt"
    A gendered new hop implies the gender: ("parent", "brother") -> "uncle".

    Never raises: with no table entry, the new person's relation to the
    intermediate is returned unchanged.
    """
    intermediate_code, _ = normalize_code(intermediate or "")
    new_code, implied_gender = normalize_code(new or "")
    result = _compose(intermediate_code, new_code)
    if result is None:
        logger.debug(f"No composition rule for ({intermediate}, {new}); keeping '{new}'")
        return new
    return apply_gender(result, gender or implied_gender)


def fold_relationship_chain(hops: list[str], gender: str | None = None) -> str:
    """
    Compose a chain of direct relations by folding it left to right.

    The result of hops 1-2 becomes the intermediate for hop 3, and so on.
    Gender resolves only the final code; without one, the gender implied by
    the last hop ('sister', 'father') is used. An unknown pair drops the
    accumulated relation and continues from the later hop, the same way
    compute_relationship() falls back. Chains through in-law hops are
    order-sensitive and are composed strictly in the order given.
    """
    if not hops:
        return "self"
    current, implied_gender = normalize_code(hops[0])
    for hop in hops[1:]:
        new_code, implied_gender = normalize_code(hop)
        current = _compose(current, new_code) or new_code
    return apply_gender(current, gender or implied_gender)


def resolve_kinship(intermediate: str, new: str, gender: str | None = None) -> KinshipResult:
    """compute_relationship() plus English and Russian labels."""
    code = compute_relationship(intermediate, new, gender)
    label_gender = gender or "unknown"
    return KinshipResult(
        code=code,
        label_en=generate_label(code, label_gender, locale="en"),
        label_ru=generate_label(code, label_gender, locale="ru"),
    )


# ============================================================================
# Generational path math
# ============================================================================

# hop -> (steps up, steps down)
GENERATION_STEPS: dict[str, tuple[int, int]] = {
    "parent": (1, 0),
    "grandparent": (2, 0),
    "child": (0, 1),
    "grandchild": (0, 2),
    "sibling": (1, 1),
    "aunt_uncle": (2, 1),
    "niece_nephew": (1, 2),
    "cousin": (2, 2),
}


def _hop_steps(hop: str) -> tuple[int, int] | None:
    code, _ = normalize_code(hop)
    base, great = split_great_prefix(code)
    steps = GENERATION_STEPS.get(base)
    if steps is None:
        return None
    up, down = steps
    if base in ("grandparent", "aunt_uncle"):
        up += great
    elif base in ("grandchild", "niece_nephew"):
        down += great
    return up, down


def calculate_relationship_degree(hops: list[str]) -> KinshipDescriptor:
    """
    Describe the relationship at the end of a path of direct relations.

    The path is reduced to U steps up to the closest common ancestor and D
    steps down from it. A spouse hop makes the result an in-law; a path that
    goes down before it goes up (e.g. child -> parent) cannot be placed
    without knowing the people involved and is reported as 'relative'.
    A lone spouse hop is the spouse.

    Returns:
        KinshipDescriptor with `degree` = U + D (generational steps).
    """
    if not hops:
        return KinshipDescriptor(code="self", category="self", degree=0)
    if len(hops) == 1 and normalize_code(hops[0])[0] == "spouse":
        return KinshipDescriptor(code="spouse", category="direct", degree=1)

    up = down = 0
    crosses_marriage = False
    ambiguous = False
    for hop in hops:
        code, _ = normalize_code(hop)
        if code == "spouse":
            crosses_marriage = True
            continue
        steps = _hop_steps(hop)
        if steps is None:
            ambiguous = True
            continue
        hop_up, hop_down = steps
        if code == "sibling" and down > 0:
            # a sibling of a collateral relative sits in the same generation
            continue
        if hop_up and down:
            ambiguous = True
        up += hop_up
        down += hop_down

    degree = up + down
    if crosses_marriage:
        return KinshipDescriptor(code="in_law", category="in-law", degree=degree + 1)
    if ambiguous:
        return KinshipDescriptor(code="relative", category="other", degree=degree)
    if degree == 0:
        return KinshipDescriptor(code="self", category="self", degree=0)

    if down == 0:
        if up == 1:
            return KinshipDescriptor(code="parent", category="direct", degree=1)
        return KinshipDescriptor(
            code="grandparent",
            qualifiers=RelationshipQualifiers(level=up - 2),
            category="direct",
            degree=up,
        )
    if up == 0:
        if down == 1:
            return KinshipDescriptor(code="child", category="direct", degree=1)
        return KinshipDescriptor(
            code="grandchild",
            qualifiers=RelationshipQualifiers(level=down - 2),
            category="direct",
            degree=down,
        )
    if up == 1 and down == 1:
        return KinshipDescriptor(code="sibling", category="direct", degree=2)
    if down == 1:
        return KinshipDescriptor(
            code="aunt_uncle",
            qualifiers=RelationshipQualifiers(level=up - 2),
            category="extended",
            degree=degree,
        )
    if up == 1:
        return KinshipDescriptor(
            code="niece_nephew",
            qualifiers=RelationshipQualifiers(level=down - 2),
            category="extended",
            degree=degree,
        )
    return KinshipDescriptor(
        code="cousin",
        qualifiers=RelationshipQualifiers(
            cousin_degree=min(up, down) - 1,
            cousin_removed=abs(up - down),
        ),
        category="cousin",
        degree=degree,
    )


def describe_relationship_path(hops: list[str], gender: str | None = None) -> dict[str, Any]:
    """Path math result with the folded table code and labels in both locales."""
    descriptor = calculate_relationship_degree(hops)
    label_gender = gender or "unknown"
    return {
        "descriptor": descriptor.model_dump(exclude_none=True),
        "folded_code": fold_relationship_chain(hops, gender),
        "label_en": generate_label(descriptor.code, label_gender, descriptor.qualifiers, "en"),
        "label_ru": generate_label(descriptor.code, label_gender, descriptor.qualifiers, "ru"),
    }

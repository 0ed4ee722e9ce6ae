"""Localized relationship labels (English and Russian).

generate_label() turns a relationship code, the relative's gender and optional
qualifiers into a noun phrase such as "двоюродная сестра" or "second cousin
once removed". Every lookup has a formulaic fallback, so a label is never empty.
"""

import logging
from typing import Any

from models import RelationshipQualifiers

logger = logging.getLogger("kintree.kinship_labels")

LOCALES = ("en", "ru")
DEFAULT_LOCALE = "ru"

# Gendered or alternate spellings -> (neutral code, implied gender)
CODE_ALIASES: dict[str, tuple[str, str | None]] = {
    "mother": ("parent", "female"),
    "father": ("parent", "male"),
    "son": ("child", "male"),
    "daughter": ("child", "female"),
    "brother": ("sibling", "male"),
    "sister": ("sibling", "female"),
    "husband": ("spouse", "male"),
    "wife": ("spouse", "female"),
    "partner": ("spouse", None),
    "grandmother": ("grandparent", "female"),
    "grandfather": ("grandparent", "male"),
    "grandson": ("grandchild", "male"),
    "granddaughter": ("grandchild", "female"),
    "aunt": ("aunt_uncle", "female"),
    "uncle": ("aunt_uncle", "male"),
    "niece": ("niece_nephew", "female"),
    "nephew": ("niece_nephew", "male"),
    "mother-in-law": ("parent_in_law", "female"),
    "father-in-law": ("parent_in_law", "male"),
    "sister-in-law": ("sibling_in_law", "female"),
    "brother-in-law": ("sibling_in_law", "male"),
    "daughter-in-law": ("child_in_law", "female"),
    "son-in-law": ("child_in_law", "male"),
    "stepmother": ("step_parent", "female"),
    "stepfather": ("step_parent", "male"),
    "stepdaughter": ("step_child", "female"),
    "stepson": ("step_child", "male"),
}

# Neutral code -> (female form, male form) used when a gender is known
GENDERED_CODES: dict[str, tuple[str, str]] = {
    "aunt_uncle": ("aunt", "uncle"),
    "niece_nephew": ("niece", "nephew"),
    "parent_in_law": ("mother-in-law", "father-in-law"),
    "sibling_in_law": ("sister-in-law", "brother-in-law"),
    "child_in_law": ("daughter-in-law", "son-in-law"),
    "step_parent": ("stepmother", "stepfather"),
    "step_child": ("stepdaughter", "stepson"),
}


def normalize_code(code: str) -> tuple[str, str | None]:
    """
    Split a possibly-gendered code into (neutral code, implied gender).

    Great- prefixes are kept: 'great-grandmother' -> ('great-grandparent', 'female').
    """
    base, level = split_great_prefix(code.strip().lower())
    neutral, gender = CODE_ALIASES.get(base, (base, None))
    return "great-" * level + neutral, gender


def split_great_prefix(code: str) -> tuple[str, int]:
    """'great-great-grandparent' -> ('grandparent', 2)."""
    level = 0
    while code.startswith("great-"):
        code = code[len("great-"):]
        level += 1
    return code, level


# ============================================================================
# Locale dictionaries
# Each noun entry is (male, female, neutral).
# ============================================================================

NOUNS: dict[str, dict[str, tuple[str, str, str]]] = {
    "en": {
        "parent": ("father", "mother", "parent"),
        "child": ("son", "daughter", "child"),
        "grandparent": ("grandfather", "grandmother", "grandparent"),
        "grandchild": ("grandson", "granddaughter", "grandchild"),
        "sibling": ("brother", "sister", "sibling"),
        "spouse": ("husband", "wife", "spouse"),
        "aunt_uncle": ("uncle", "aunt", "aunt/uncle"),
        "niece_nephew": ("nephew", "niece", "niece/nephew"),
        "cousin": ("cousin", "cousin", "cousin"),
        "parent_in_law": ("father-in-law", "mother-in-law", "parent-in-law"),
        "sibling_in_law": ("brother-in-law", "sister-in-law", "sibling-in-law"),
        "child_in_law": ("son-in-law", "daughter-in-law", "child-in-law"),
        "step_parent": ("stepfather", "stepmother", "step-parent"),
        "step_child": ("stepson", "stepdaughter", "stepchild"),
        "in_law": ("in-law", "in-law", "in-law"),
        "relative": ("relative", "relative", "relative"),
        "self": ("self", "self", "self"),
    },
    "ru": {
        "parent": ("отец", "мать", "родитель"),
        "child": ("сын", "дочь", "ребёнок"),
        "grandparent": ("дед", "бабушка", "прародитель"),
        "grandchild": ("внук", "внучка", "внук/внучка"),
        "sibling": ("брат", "сестра", "брат/сестра"),
        "spouse": ("муж", "жена", "супруг(а)"),
        "aunt_uncle": ("дядя", "тётя", "дядя/тётя"),
        "niece_nephew": ("племянник", "племянница", "племянник/племянница"),
        "cousin": ("брат", "сестра", "брат/сестра"),
        "parent_in_law": ("тесть/свёкор", "тёща/свекровь", "родитель супруга"),
        "sibling_in_law": ("шурин/деверь", "свояченица/золовка", "брат/сестра супруга"),
        "child_in_law": ("зять", "невестка", "зять/невестка"),
        "step_parent": ("отчим", "мачеха", "отчим/мачеха"),
        "step_child": ("пасынок", "падчерица", "пасынок/падчерица"),
        "in_law": ("свойственник", "свойственница", "свойственник"),
        "relative": ("родственник", "родственница", "родственник"),
        "self": ("это вы", "это вы", "это вы"),
    },
}

EN_ORDINAL_WORDS = [
    "first", "second", "third", "fourth", "fifth",
    "sixth", "seventh", "eighth", "ninth", "tenth",
]
EN_REMOVED = {1: "once removed", 2: "twice removed", 3: "thrice removed"}

# Collateral adjectives: index 0 is "двоюродный" (first cousin)
RU_COUSIN_ADJ_M = ["двоюродный", "троюродный", "четвероюродный", "пятиюродный", "шестиюродный"]
RU_COUSIN_ADJ_F = ["двоюродная", "троюродная", "четвероюродная", "пятиюродная", "шестиюродная"]
RU_REMOVED = {1: "один раз", 2: "дважды", 3: "трижды"}

# Half-sibling prefixes by lineage: (male, female, neutral)
HALF_PREFIX = {
    "en": {
        "paternal": ("paternal half-", "paternal half-", "paternal half-"),
        "maternal": ("maternal half-", "maternal half-", "maternal half-"),
        None: ("half-", "half-", "half-"),
    },
    "ru": {
        "paternal": ("единокровный ", "единокровная ", "единокровный(ая) "),
        "maternal": ("единоутробный ", "единоутробная ", "единоутробный(ая) "),
        None: ("неполнородный ", "неполнородная ", "неполнородный(ая) "),
    },
}
SIBLING_KIND_PREFIX = {
    "en": {"adoptive": ("adoptive ",) * 3, "foster": ("foster ",) * 3},
    "ru": {
        "adoptive": ("приёмный ", "приёмная ", "приёмный(ая) "),
        "foster": ("сводный ", "сводная ", "сводный(ая) "),
    },
}


def _pick(forms: tuple[str, str, str], gender: str) -> str:
    if gender == "male":
        return forms[0]
    if gender == "female":
        return forms[1]
    return forms[2]


def _en_ordinal(n: int) -> str:
    if 1 <= n <= len(EN_ORDINAL_WORDS):
        return EN_ORDINAL_WORDS[n - 1]
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def _ru_collateral_adj(degree: int, gender: str) -> str:
    """Adjective for collateral degree (1 -> двоюродный, 2 -> троюродный, ...)."""
    if 1 <= degree <= len(RU_COUSIN_ADJ_M):
        male, female = RU_COUSIN_ADJ_M[degree - 1], RU_COUSIN_ADJ_F[degree - 1]
    else:
        male, female = f"{degree + 1}-юродный", f"{degree + 1}-юродная"
    return _pick((male, female, f"{male}(ая)"), gender)


def _removed_suffix(removed: int, locale: str) -> str:
    if removed <= 0:
        return ""
    if locale == "ru":
        return f" ({RU_REMOVED.get(removed, f'{removed} раз')} в стороне)"
    return f" {EN_REMOVED.get(removed, f'{removed} times removed')}"


# ============================================================================
# Label generation
# ============================================================================

def generate_label(
    code: str,
    gender: str | None = "unknown",
    qualifiers: RelationshipQualifiers | dict[str, Any] | None = None,
    locale: str = DEFAULT_LOCALE,
) -> str:
    """
    Render a relationship as a localized noun phrase.

    Args:
        code: relationship code ('sibling', 'cousin', 'aunt_uncle', 'mother', ...)
        gender: the relative's gender; 'nonbinary'/'unknown' give neutral forms
        qualifiers: halfness/lineage for siblings, cousin_degree/cousin_removed
            for cousins, level for aunt/uncle, niece/nephew and grandparent chains
        locale: 'ru' (default) or 'en'; anything else falls back to 'en'

    Returns:
        Never an empty string; unknown codes come back as the flat dictionary
        label or the code itself.
    """
    if locale not in LOCALES:
        logger.debug(f"Unsupported locale '{locale}', using en")
        locale = "en"
    if isinstance(qualifiers, dict):
        qualifiers = RelationshipQualifiers.model_validate(qualifiers)
    qualifiers = qualifiers or RelationshipQualifiers()

    base_code, implied_gender = normalize_code(code or "")
    base_code, great_level = split_great_prefix(base_code)
    gender = gender if gender in ("male", "female") else (implied_gender or "unknown")

    nouns = NOUNS[locale]
    if base_code not in nouns:
        return get_relationship_label(code, locale) if code else "?"

    level = (qualifiers.level or 0) + great_level

    if base_code == "sibling":
        return _sibling_label(gender, qualifiers, locale)
    if base_code == "cousin":
        return _cousin_label(gender, qualifiers, locale)
    if base_code in ("aunt_uncle", "niece_nephew"):
        noun = _pick(nouns[base_code], gender)
        if level == 0:
            return noun
        if locale == "ru":
            return f"{_ru_collateral_adj(level, gender)} {noun}"
        return "great-" * level + noun
    if base_code in ("grandparent", "grandchild"):
        noun = _pick(nouns[base_code], gender)
        if level == 0:
            return noun
        if locale == "ru":
            return "пра" * level + noun
        return "great-" * level + noun
    return _pick(nouns[base_code], gender)


def _sibling_label(gender: str, qualifiers: RelationshipQualifiers, locale: str) -> str:
    noun = _pick(NOUNS[locale]["sibling"], gender)
    halfness = qualifiers.halfness or "full"
    if halfness == "half":
        lineage = qualifiers.lineage if qualifiers.lineage in ("paternal", "maternal") else None
        prefix = _pick(HALF_PREFIX[locale][lineage], gender)
        return f"{prefix}{noun}"
    if halfness in ("adoptive", "foster"):
        return f"{_pick(SIBLING_KIND_PREFIX[locale][halfness], gender)}{noun}"
    return noun


def _cousin_label(gender: str, qualifiers: RelationshipQualifiers, locale: str) -> str:
    degree = qualifiers.cousin_degree or 1
    removed = qualifiers.cousin_removed or 0
    if locale == "ru":
        noun = _pick(NOUNS["ru"]["cousin"], gender)
        return f"{_ru_collateral_adj(degree, gender)} {noun}{_removed_suffix(removed, 'ru')}"
    return f"{_en_ordinal(degree)} cousin{_removed_suffix(removed, 'en')}"


# ============================================================================
# Flat dictionary and UI options
# ============================================================================

RELATIONSHIP_LABELS: dict[str, dict[str, str]] = {
    "parent": {"en": "Parent", "ru": "Родитель"},
    "child": {"en": "Child", "ru": "Ребёнок"},
    "sibling": {"en": "Sibling", "ru": "Брат/Сестра"},
    "spouse": {"en": "Spouse", "ru": "Супруг(а)"},
    "grandparent": {"en": "Grandparent", "ru": "Бабушка/Дедушка"},
    "grandchild": {"en": "Grandchild", "ru": "Внук/Внучка"},
    "aunt_uncle": {"en": "Aunt/Uncle", "ru": "Дядя/Тётя"},
    "niece_nephew": {"en": "Nephew/Niece", "ru": "Племянник/Племянница"},
    "aunt": {"en": "Aunt", "ru": "Тётя"},
    "uncle": {"en": "Uncle", "ru": "Дядя"},
    "niece": {"en": "Niece", "ru": "Племянница"},
    "nephew": {"en": "Nephew", "ru": "Племянник"},
    "cousin": {"en": "Cousin", "ru": "Двоюродный брат/сестра"},
    "great-grandparent": {"en": "Great-Grandparent", "ru": "Прабабушка/Прадедушка"},
    "great-grandchild": {"en": "Great-Grandchild", "ru": "Правнук/Правнучка"},
    "mother-in-law": {"en": "Mother-in-law", "ru": "Тёща/Свекровь"},
    "father-in-law": {"en": "Father-in-law", "ru": "Тесть/Свёкор"},
    "son-in-law": {"en": "Son-in-law", "ru": "Зять"},
    "daughter-in-law": {"en": "Daughter-in-law", "ru": "Невестка/Сноха"},
    "brother-in-law": {"en": "Brother-in-law", "ru": "Деверь/Шурин/Зять"},
    "sister-in-law": {"en": "Sister-in-law", "ru": "Золовка/Свояченица"},
    "co-brother-in-law": {"en": "Co-brother-in-law", "ru": "Свояк"},
    "stepfather": {"en": "Stepfather", "ru": "Отчим"},
    "stepmother": {"en": "Stepmother", "ru": "Мачеха"},
    "stepson": {"en": "Stepson", "ru": "Пасынок"},
    "stepdaughter": {"en": "Stepdaughter", "ru": "Падчерица"},
    "co-parent-in-law": {"en": "Co-parent-in-law", "ru": "Сват/Сватья"},
    "godfather": {"en": "Godfather", "ru": "Крёстный отец"},
    "godmother": {"en": "Godmother", "ru": "Крёстная мать"},
    "godson": {"en": "Godson", "ru": "Крестник"},
    "goddaughter": {"en": "Goddaughter", "ru": "Крестница"},
}


def get_relationship_label(code: str, locale: str = "en") -> str:
    """Title-case label from the flat dictionary; the code itself when unknown."""
    if locale not in LOCALES:
        locale = "en"
    return RELATIONSHIP_LABELS.get(code, {}).get(locale) or code


def get_blood_relationship_options(locale: str = DEFAULT_LOCALE) -> list[dict[str, str]]:
    """Relationship codes offered when declaring a relative."""
    ru = locale == "ru"
    return [
        {"code": "parent", "label": "Родитель" if ru else "Parent", "category": "direct"},
        {"code": "child", "label": "Ребёнок" if ru else "Child", "category": "direct"},
        {"code": "spouse", "label": "Супруг(а)" if ru else "Spouse", "category": "direct"},
        {"code": "sibling", "label": "Брат/Сестра" if ru else "Sibling", "category": "direct"},
        {"code": "grandparent", "label": "Дед/Бабушка" if ru else "Grandparent", "category": "direct"},
        {"code": "grandchild", "label": "Внук/Внучка" if ru else "Grandchild", "category": "direct"},
        {"code": "aunt_uncle", "label": "Дядя/Тётя" if ru else "Aunt/Uncle", "category": "extended"},
        {"code": "niece_nephew", "label": "Племянник/Племянница" if ru else "Nephew/Niece", "category": "extended"},
        {"code": "cousin", "label": "Двоюродный(ая)" if ru else "Cousin", "category": "extended"},
    ]


# (value, ru label, en label, gender, qualifiers)
_GENDER_OPTIONS: dict[str, list[tuple[str, str, str, str, dict[str, Any]]]] = {
    "parent": [
        ("mother", "Мама", "Mother", "female", {}),
        ("father", "Папа", "Father", "male", {}),
    ],
    "child": [
        ("son", "Сын", "Son", "male", {}),
        ("daughter", "Дочь", "Daughter", "female", {}),
    ],
    "spouse": [
        ("husband", "Муж", "Husband", "male", {}),
        ("wife", "Жена", "Wife", "female", {}),
        ("partner", "Партнёр", "Partner", "unknown", {}),
    ],
    "sibling": [
        ("brother", "Брат (родной)", "Brother (full)", "male", {"halfness": "full"}),
        ("sister", "Сестра (родная)", "Sister (full)", "female", {"halfness": "full"}),
        ("half_brother_p", "Единокровный брат", "Paternal half-brother", "male",
         {"halfness": "half", "lineage": "paternal"}),
        ("half_sister_p", "Единокровная сестра", "Paternal half-sister", "female",
         {"halfness": "half", "lineage": "paternal"}),
        ("half_brother_m", "Единоутробный брат", "Maternal half-brother", "male",
         {"halfness": "half", "lineage": "maternal"}),
        ("half_sister_m", "Единоутробная сестра", "Maternal half-sister", "female",
         {"halfness": "half", "lineage": "maternal"}),
    ],
    "grandparent": [
        ("grandfather", "Дедушка", "Grandfather", "male", {}),
        ("grandmother", "Бабушка", "Grandmother", "female", {}),
    ],
    "grandchild": [
        ("grandson", "Внук", "Grandson", "male", {}),
        ("granddaughter", "Внучка", "Granddaughter", "female", {}),
    ],
    "aunt_uncle": [
        ("uncle", "Дядя", "Uncle", "male", {"level": 0}),
        ("aunt", "Тётя", "Aunt", "female", {"level": 0}),
        ("uncle_2nd", "Двоюродный дядя", "Great-uncle", "male", {"level": 1}),
        ("aunt_2nd", "Двоюродная тётя", "Great-aunt", "female", {"level": 1}),
    ],
    "niece_nephew": [
        ("nephew", "Племянник", "Nephew", "male", {"level": 0}),
        ("niece", "Племянница", "Niece", "female", {"level": 0}),
        ("nephew_2nd", "Двоюродный племянник", "Great-nephew", "male", {"level": 1}),
        ("niece_2nd", "Двоюродная племянница", "Great-niece", "female", {"level": 1}),
    ],
    "cousin": [
        ("cousin_m_1st", "Двоюродный брат", "First cousin", "male",
         {"cousin_degree": 1, "cousin_removed": 0}),
        ("cousin_f_1st", "Двоюродная сестра", "First cousin", "female",
         {"cousin_degree": 1, "cousin_removed": 0}),
        ("cousin_m_2nd", "Троюродный брат", "Second cousin", "male",
         {"cousin_degree": 2, "cousin_removed": 0}),
        ("cousin_f_2nd", "Троюродная сестра", "Second cousin", "female",
         {"cousin_degree": 2, "cousin_removed": 0}),
    ],
}


def get_gender_specific_options(code: str, locale: str = DEFAULT_LOCALE) -> list[dict[str, Any]]:
    """Gendered choices for a relationship code; empty for unknown codes."""
    return [
        {
            "value": value,
            "label": ru_label if locale == "ru" else en_label,
            "gender": gender,
            "qualifiers": dict(qualifiers),
        }
        for value, ru_label, en_label, gender, qualifiers in _GENDER_OPTIONS.get(code, [])
    ]

"""Duplicate person detection: pairwise confidence scoring.

Scores two person records 0-100 from name, date, place, contact and
shared-relative signals, and keeps an itemized record of which signals fired.
"""

import logging
import math
import re
from typing import Any

from rapidfuzz.distance import Levenshtein

from errors import ScoringSkipped
from models import DuplicateCandidate, Person, make_pair_key

logger = logging.getLogger("kintree.duplicate_detection")


# ============================================================================
# Weights
# ============================================================================

WEIGHTS = {
    "exact_name": 50,
    "first_name": 25,
    "last_name": 15,
    "name_variant": 20,
    "fuzzy_first_name": 20,  # scaled by similarity
    "fuzzy_last_name": 10,  # scaled by similarity
    "maiden_name": 10,
    "nickname": 5,
    "nickname_first_cross": 5,
    "maiden_last_cross": 5,
    "exact_birth_date": 30,
    "birth_year": 15,
    "birth_year_close": 10,
    "exact_death_date": 20,
    "death_year": 10,
    "death_year_close": 5,
    "birth_place": 10,
    "birth_country": 5,
    "death_place": 5,
    "contact": 15,
    "shared_relative_deceased": 10,
    "shared_relative_living": 5,
    "gender_mismatch": -10,
    "email_mismatch": -10,
}
NAME_CAP = 50
PLACE_CAP = 20
SHARED_RELATIVES_CAP_DECEASED = 30
SHARED_RELATIVES_CAP_LIVING = 10
FUZZY_THRESHOLD = 0.8
CLOSE_YEARS = 2


# ============================================================================
# Name variants (English/Russian transliterations and diminutives)
# ============================================================================

NAME_VARIANTS: dict[str, list[str]] = {
    "maria": ["mary", "marie", "мария", "маша", "маруся"],
    "mary": ["maria", "marie", "мария", "маша"],
    "alexander": ["alex", "sasha", "александр", "саша", "шура"],
    "alexandra": ["alex", "sasha", "александра", "саша", "шура"],
    "michael": ["mike", "misha", "михаил", "миша"],
    "anna": ["ann", "annie", "анна", "аня", "анюта", "нюра"],
    "elena": ["helen", "helena", "елена", "лена", "аленка"],
    "olga": ["ольга", "оля", "оленька"],
    "natalia": ["natasha", "наталья", "наташа", "ната"],
    "ekaterina": ["kate", "catherine", "katya", "екатерина", "катя", "катерина"],
    "tatiana": ["tanya", "татьяна", "таня"],
    "irina": ["irene", "ира", "ирина", "ируся"],
    "vladimir": ["volodya", "vova", "владимир", "вова", "володя"],
    "nikolai": ["nicholas", "nick", "николай", "коля", "николаша"],
    "sergei": ["serge", "сергей", "серёжа", "сережа"],
    "ivan": ["john", "иван", "ваня", "ванюша"],
    "dmitri": ["dima", "дмитрий", "дима", "митя"],
    "andrei": ["andrew", "андрей", "андрюша"],
    "pavel": ["paul", "pasha", "павел", "паша"],
    "viktor": ["victor", "vitya", "виктор", "витя"],
    "konstantin": ["kostya", "константин", "костя"],
    "yuri": ["george", "юрий", "юра"],
    "boris": ["борис", "боря"],
    "evgeny": ["eugene", "евгений", "женя"],
    "evgenia": ["eugenia", "евгения", "женя"],
    "valentina": ["валентина", "валя"],
    "valentin": ["валентин", "валя"],
    "ludmila": ["люда", "людмила", "мила"],
    "svetlana": ["sveta", "светлана", "света"],
    "marina": ["марина"],
    "galina": ["galya", "галина", "галя"],
    "nina": ["нина"],
    "vera": ["вера"],
    "sophia": ["sonya", "софья", "соня", "софа"],
    "anastasia": ["nastya", "анастасия", "настя"],
    "elizaveta": ["elizabeth", "lisa", "елизавета", "лиза"],
    "мария": ["maria", "mary", "marie", "маша", "маруся"],
    "александр": ["alexander", "alex", "sasha", "саша", "шура"],
    "михаил": ["michael", "mike", "misha", "миша"],
    "анна": ["anna", "ann", "annie", "аня", "анюта", "нюра"],
    "елена": ["elena", "helen", "helena", "лена", "аленка"],
    "владимир": ["vladimir", "volodya", "vova", "вова", "володя"],
    "николай": ["nikolai", "nicholas", "nick", "коля"],
    "сергей": ["sergei", "serge", "серёжа", "сережа"],
    "иван": ["ivan", "john", "ваня", "ванюша"],
    "дмитрий": ["dmitri", "dima", "дима", "митя"],
    "андрей": ["andrei", "andrew", "андрюша"],
    "павел": ["pavel", "paul", "pasha", "паша"],
}


def _norm(value: str | None) -> str:
    return (value or "").strip().lower()


def are_name_variants(name_a: str | None, name_b: str | None) -> bool:
    """True if the names are equal or either lists the other as a variant."""
    a, b = _norm(name_a), _norm(name_b)
    if not a or not b:
        return False
    if a == b:
        return True
    return b in NAME_VARIANTS.get(a, ()) or a in NAME_VARIANTS.get(b, ())


def string_similarity(a: str | None, b: str | None) -> float:
    """Normalized Levenshtein similarity (0.0-1.0), case-insensitive."""
    a, b = _norm(a), _norm(b)
    if not a or not b:
        return 0.0
    return Levenshtein.normalized_similarity(a, b)


_YEAR_RE = re.compile(r"^\s*(\d{4})")
_FULL_DATE_RE = re.compile(r"^\s*\d{4}-\d{2}-\d{2}")


def extract_year(date_str: str | None) -> int | None:
    if not date_str:
        return None
    match = _YEAR_RE.match(date_str)
    return int(match.group(1)) if match else None


def _same_full_date(a: str | None, b: str | None) -> bool:
    if not a or not b or not _FULL_DATE_RE.match(a) or not _FULL_DATE_RE.match(b):
        return False
    return a.strip()[:10] == b.strip()[:10]


def _digits(phone: str | None) -> str:
    return re.sub(r"\D", "", phone or "")


# ============================================================================
# Scoring
# ============================================================================

def compare_profiles(a: Person, b: Person, shared_relatives: int = 0) -> tuple[int, dict[str, Any]]:
    """
    Score how likely two person records describe the same individual.

    Weights (points):
    - Names (cap 50): exact first+last 50, first 25, last 15, first-name
      variant 20, fuzzy first name up to 20, fuzzy last name up to 10,
      maiden 10, nickname 5, nickname/first and maiden/last crossovers 5 each
    - Birth: exact date 30, same year 15, within 2 years 10
    - Death (both deceased): exact date 20, same year 10, within 2 years 5
    - Places (cap 20): birth place 10, birth country 5, death place 5
    - Contact: matching email or phone 15
    - Shared relatives: 10 each for a deceased pair (cap 30), else 5 each (cap 10)
    - Penalties: definite gender mismatch -10; two living people with
      different emails -10

    Returns:
        (score clamped to 0-100, match reasons)

    Raises:
        ScoringSkipped: if either record has neither a first nor a last name
    """
    for person in (a, b):
        if not _norm(person.first_name) and not _norm(person.last_name):
            raise ScoringSkipped(f"Person {person.id} has no name to compare")

    reasons: dict[str, Any] = {}
    deceased_pair = not a.is_alive and not b.is_alive
    living_pair = a.is_alive and b.is_alive

    # 1. NAMES
    name_score = 0
    first_a, first_b = _norm(a.first_name), _norm(b.first_name)
    last_a, last_b = _norm(a.last_name), _norm(b.last_name)

    if first_a and first_a == first_b and last_a and last_a == last_b:
        reasons["exact_name_match"] = True
        name_score += WEIGHTS["exact_name"]
    else:
        if first_a and first_a == first_b:
            reasons["first_name_match"] = True
            name_score += WEIGHTS["first_name"]
        elif are_name_variants(first_a, first_b):
            reasons["name_variant_match"] = True
            name_score += WEIGHTS["name_variant"]
        elif first_a and first_b:
            similarity = string_similarity(first_a, first_b)
            if similarity >= FUZZY_THRESHOLD:
                reasons["fuzzy_name_match"] = True
                reasons["fuzzy_name_similarity"] = round(similarity, 2)
                name_score += math.floor(WEIGHTS["fuzzy_first_name"] * similarity)

        if last_a and last_a == last_b:
            reasons["last_name_match"] = True
            name_score += WEIGHTS["last_name"]
        elif last_a and last_b:
            similarity = string_similarity(last_a, last_b)
            if similarity >= FUZZY_THRESHOLD:
                reasons["fuzzy_last_name_match"] = True
                reasons["fuzzy_last_name_similarity"] = round(similarity, 2)
                name_score += math.floor(WEIGHTS["fuzzy_last_name"] * similarity)

    maiden_a, maiden_b = _norm(a.maiden_name), _norm(b.maiden_name)
    if maiden_a and maiden_a == maiden_b:
        reasons["maiden_name_match"] = True
        name_score += WEIGHTS["maiden_name"]
    if (maiden_a and maiden_a == last_b) or (maiden_b and maiden_b == last_a):
        reasons["maiden_last_name_cross_match"] = True
        name_score += WEIGHTS["maiden_last_cross"]

    nick_a, nick_b = _norm(a.nickname), _norm(b.nickname)
    if nick_a and nick_a == nick_b:
        reasons["nickname_match"] = True
        name_score += WEIGHTS["nickname"]
    if (nick_a and nick_a == first_b) or (nick_b and nick_b == first_a):
        reasons["nickname_first_name_cross_match"] = True
        name_score += WEIGHTS["nickname_first_cross"]

    score = min(name_score, NAME_CAP)

    # 2. BIRTH
    birth_year_a, birth_year_b = extract_year(a.birth_date), extract_year(b.birth_date)
    if _same_full_date(a.birth_date, b.birth_date):
        reasons["exact_birth_date_match"] = True
        score += WEIGHTS["exact_birth_date"]
    elif birth_year_a and birth_year_b:
        if birth_year_a == birth_year_b:
            reasons["birth_year_match"] = True
            score += WEIGHTS["birth_year"]
        elif abs(birth_year_a - birth_year_b) <= CLOSE_YEARS:
            reasons["birth_year_close"] = True
            score += WEIGHTS["birth_year_close"]

    # 3. DEATH (living people have no death signal)
    if deceased_pair:
        death_year_a, death_year_b = extract_year(a.death_date), extract_year(b.death_date)
        if _same_full_date(a.death_date, b.death_date):
            reasons["exact_death_date_match"] = True
            score += WEIGHTS["exact_death_date"]
        elif death_year_a and death_year_b:
            if death_year_a == death_year_b:
                reasons["death_year_match"] = True
                score += WEIGHTS["death_year"]
            elif abs(death_year_a - death_year_b) <= CLOSE_YEARS:
                reasons["death_year_close"] = True
                score += WEIGHTS["death_year_close"]

    # 4. PLACES
    place_score = 0
    birth_place_a = _norm(a.birth_city or a.birth_place)
    birth_place_b = _norm(b.birth_city or b.birth_place)
    if birth_place_a and birth_place_a == birth_place_b:
        reasons["birth_city_match"] = True
        place_score += WEIGHTS["birth_place"]
    if _norm(a.birth_country) and _norm(a.birth_country) == _norm(b.birth_country):
        reasons["birth_country_match"] = True
        place_score += WEIGHTS["birth_country"]
    if _norm(a.death_place) and _norm(a.death_place) == _norm(b.death_place):
        reasons["death_place_match"] = True
        place_score += WEIGHTS["death_place"]
    score += min(place_score, PLACE_CAP)

    # 5. CONTACT
    email_a, email_b = _norm(a.email), _norm(b.email)
    phone_a, phone_b = _digits(a.phone), _digits(b.phone)
    if (email_a and email_a == email_b) or (phone_a and phone_a == phone_b):
        reasons["contact_match"] = True
        score += WEIGHTS["contact"]

    # 6. SHARED RELATIVES
    if shared_relatives > 0:
        reasons["shared_relatives"] = shared_relatives
        if deceased_pair:
            score += min(shared_relatives * WEIGHTS["shared_relative_deceased"], SHARED_RELATIVES_CAP_DECEASED)
        else:
            score += min(shared_relatives * WEIGHTS["shared_relative_living"], SHARED_RELATIVES_CAP_LIVING)

    # 7. CONTRADICTIONS
    if {a.gender, b.gender} == {"male", "female"}:
        reasons["gender_mismatch"] = True
        score += WEIGHTS["gender_mismatch"]
    if living_pair and email_a and email_b and email_a != email_b:
        reasons["email_mismatch"] = True
        score += WEIGHTS["email_mismatch"]

    return max(0, min(100, score)), reasons


def score_candidate(a: Person, b: Person, shared_relatives: int = 0) -> DuplicateCandidate:
    """compare_profiles() wrapped as an ordered DuplicateCandidate (profile_a_id < profile_b_id)."""
    score, reasons = compare_profiles(a, b, shared_relatives)
    first_id, second_id = make_pair_key(a.id, b.id).split(":", 1)
    return DuplicateCandidate(
        profile_a_id=first_id,
        profile_b_id=second_id,
        confidence_score=score,
        match_reasons=reasons,
        is_deceased_pair=not a.is_alive and not b.is_alive,
        shared_relatives_count=shared_relatives,
    )


# ============================================================================
# Presentation helpers
# ============================================================================

_REASON_TEXT = {
    "exact_name_match": ("Exact name match (first and last name)", "Совпадают имя и фамилия"),
    "first_name_match": ("First name matches exactly", "Имя совпадает"),
    "last_name_match": ("Last name matches exactly", "Фамилия совпадает"),
    "name_variant_match": ("First names are variants of each other", "Имена являются вариантами друг друга"),
    "maiden_name_match": ("Maiden name matches", "Девичья фамилия совпадает"),
    "maiden_last_name_cross_match": ("Maiden name matches the other last name", "Девичья фамилия совпадает с фамилией"),
    "nickname_match": ("Nickname matches", "Прозвище совпадает"),
    "nickname_first_name_cross_match": ("Nickname matches the other first name", "Прозвище совпадает с именем"),
    "exact_birth_date_match": ("Birth date matches exactly", "Дата рождения совпадает"),
    "birth_year_match": ("Birth year matches", "Год рождения совпадает"),
    "birth_year_close": ("Birth years within 2 years", "Годы рождения различаются не более чем на 2 года"),
    "exact_death_date_match": ("Death date matches exactly", "Дата смерти совпадает"),
    "death_year_match": ("Death year matches", "Год смерти совпадает"),
    "death_year_close": ("Death years within 2 years", "Годы смерти различаются не более чем на 2 года"),
    "birth_city_match": ("Birth city matches", "Город рождения совпадает"),
    "birth_country_match": ("Birth country matches", "Страна рождения совпадает"),
    "death_place_match": ("Death place matches", "Место смерти совпадает"),
    "contact_match": ("Email or phone matches", "Совпадает email или телефон"),
    "gender_mismatch": ("Genders differ", "Пол различается"),
    "email_mismatch": ("Different email addresses", "Разные адреса email"),
}


def describe_match_reasons(reasons: dict[str, Any], locale: str = "en") -> list[str]:
    """Human-readable list of the signals that fired."""
    index = 1 if locale == "ru" else 0
    descriptions = []
    for key, texts in _REASON_TEXT.items():
        if key in ("first_name_match", "last_name_match") and reasons.get("exact_name_match"):
            continue
        if key in ("birth_year_match", "birth_year_close") and reasons.get("exact_birth_date_match"):
            continue
        if reasons.get(key):
            descriptions.append(texts[index])

    similarity = reasons.get("fuzzy_name_similarity")
    if reasons.get("fuzzy_name_match") and similarity:
        percent = round(similarity * 100)
        descriptions.append(
            f"Имена похожи ({percent}% совпадения)" if index else f"Names are similar ({percent}% match)"
        )
    shared = reasons.get("shared_relatives")
    if shared:
        descriptions.append(f"Общих родственников: {shared}" if index else f"{shared} shared relatives")
    return descriptions


def get_confidence_level(score: int) -> str:
    """'very_high' (80+), 'high' (60+), 'medium' (40+) or 'low'."""
    if score >= 80:
        return "very_high"
    if score >= 60:
        return "high"
    if score >= 40:
        return "medium"
    return "low"

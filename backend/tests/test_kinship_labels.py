"""Tests for localized relationship labels."""

import os
import sys

import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from kinship_labels import (
    CODE_ALIASES,
    NOUNS,
    generate_label,
    get_blood_relationship_options,
    get_gender_specific_options,
    get_relationship_label,
    normalize_code,
    split_great_prefix,
)


class TestCodeHelpers:
    """Tests for code normalization."""

    def test_gendered_alias(self):
        assert normalize_code("Mother ") == ("parent", "female")

    def test_neutral_code_passthrough(self):
        assert normalize_code("cousin") == ("cousin", None)
        assert normalize_code("Great-Grandmother") == ("great-grandparent", "female")

    def test_split_great_prefix(self):
        assert split_great_prefix("great-great-grandparent") == ("grandparent", 2)
        assert split_great_prefix("sibling") == ("sibling", 0)


# ============================================================================
# Siblings
# ============================================================================

class TestSiblingLabels:
    """Tests for full, half, adoptive and foster siblings."""

    def test_full_sibling(self):
        assert generate_label("sibling", "male", {"halfness": "full"}, "ru") == "брат"
        assert generate_label("sibling", "female", None, "en") == "sister"

    def test_paternal_half_brother_ru(self):
        qualifiers = {"halfness": "half", "lineage": "paternal"}
        assert generate_label("sibling", "male", qualifiers, "ru") == "единокровный брат"

    def test_maternal_half_sister_ru(self):
        qualifiers = {"halfness": "half", "lineage": "maternal"}
        assert generate_label("sibling", "female", qualifiers, "ru") == "единоутробная сестра"

    def test_half_sibling_with_unknown_lineage(self):
        qualifiers = {"halfness": "half"}
        assert generate_label("sibling", "male", qualifiers, "en") == "half-brother"
        assert generate_label("sibling", "female", qualifiers, "ru") == "неполнородная сестра"

    def test_paternal_half_brother_en(self):
        qualifiers = {"halfness": "half", "lineage": "paternal"}
        assert generate_label("sibling", "male", qualifiers, "en") == "paternal half-brother"

    def test_adoptive_and_foster(self):
        assert generate_label("sibling", "female", {"halfness": "adoptive"}, "en") == "adoptive sister"
        assert generate_label("sibling", "male", {"halfness": "foster"}, "ru") == "сводный брат"


# ============================================================================
# Cousins
# ============================================================================

class TestCousinLabels:
    """Tests for cousin degree and removal."""

    def test_first_cousin_ru(self):
        assert generate_label("cousin", "male", {"cousin_degree": 1}, "ru") == "двоюродный брат"

    def test_second_cousin_female_ru(self):
        assert generate_label("cousin", "female", {"cousin_degree": 2}, "ru") == "троюродная сестра"

    def test_removed_ru(self):
        qualifiers = {"cousin_degree": 1, "cousin_removed": 1}
        assert generate_label("cousin", "male", qualifiers, "ru") == "двоюродный брат (один раз в стороне)"

    def test_removed_en(self):
        qualifiers = {"cousin_degree": 2, "cousin_removed": 2}
        assert generate_label("cousin", "female", qualifiers, "en") == "second cousin twice removed"

    def test_degree_defaults_to_first(self):
        assert generate_label("cousin", "unknown", None, "en") == "first cousin"

    def test_high_degrees_use_formulaic_forms(self):
        assert generate_label("cousin", "male", {"cousin_degree": 12}, "en") == "12th cousin"
        assert generate_label("cousin", "male", {"cousin_degree": 21}, "en") == "21st cousin"
        assert generate_label("cousin", "male", {"cousin_degree": 6}, "ru") == "7-юродный брат"
        assert generate_label("cousin", "male", {"cousin_degree": 1, "cousin_removed": 5}, "en") == (
            "first cousin 5 times removed"
        )


# ============================================================================
# Generational levels
# ============================================================================

class TestLevelLabels:
    """Tests for grandparent chains and collateral levels."""

    def test_grandparent_ru(self):
        assert generate_label("grandparent", "female", None, "ru") == "бабушка"
        assert generate_label("grandparent", "female", {"level": 1}, "ru") == "прабабушка"
        assert generate_label("grandparent", "male", {"level": 2}, "ru") == "прапрадед"

    def test_grandparent_en(self):
        assert generate_label("grandparent", "female", {"level": 1}, "en") == "great-grandmother"

    def test_great_prefixed_code(self):
        assert generate_label("great-grandparent", "female", None, "ru") == "прабабушка"
        assert generate_label("great-great-grandchild", "male", None, "en") == "great-great-grandson"

    def test_gendered_great_codes(self):
        assert generate_label("great-grandmother", "unknown", None, "en") == "great-grandmother"
        assert generate_label("great-grandmother", "unknown", None, "ru") == "прабабушка"
        assert generate_label("great-uncle", "unknown", None, "en") == "great-uncle"
        assert generate_label("great-uncle", "unknown", None, "ru") == "двоюродный дядя"

    def test_aunt_uncle_levels(self):
        assert generate_label("aunt_uncle", "male", {"level": 1}, "ru") == "двоюродный дядя"
        assert generate_label("aunt_uncle", "female", {"level": 2}, "en") == "great-great-aunt"

    def test_niece_nephew_level(self):
        assert generate_label("niece_nephew", "female", {"level": 1}, "ru") == "двоюродная племянница"
        assert generate_label("niece_nephew", "male", None, "en") == "nephew"


# ============================================================================
# Fallbacks
# ============================================================================

class TestLabelFallbacks:
    """Tests for gender, code and locale fallbacks."""

    def test_default_locale_is_russian(self):
        assert generate_label("child", "female") == "дочь"

    def test_neutral_forms_for_unknown_and_nonbinary(self):
        assert generate_label("parent", "unknown", None, "en") == "parent"
        assert generate_label("parent", "nonbinary", None, "en") == "parent"

    def test_gender_implied_by_code(self):
        assert generate_label("mother") == "мать"
        assert generate_label("uncle", locale="en") == "uncle"

    def test_unknown_locale_falls_back_to_english(self):
        assert generate_label("parent", "male", None, "de") == "father"

    def test_unknown_code_uses_flat_dictionary(self):
        assert generate_label("godfather", "male", None, "ru") == "Крёстный отец"

    def test_unknown_code_returned_as_is(self):
        assert generate_label("pen-pal", "male", None, "en") == "pen-pal"

    @pytest.mark.parametrize("locale", ["en", "ru"])
    @pytest.mark.parametrize("gender", ["male", "female", "nonbinary", "unknown"])
    def test_never_empty(self, locale, gender):
        for code in list(NOUNS["en"]) + list(CODE_ALIASES):
            assert generate_label(code, gender, None, locale)


class TestFlatLabels:
    """Tests for the title-case dictionary."""

    def test_known_codes(self):
        assert get_relationship_label("aunt", "ru") == "Тётя"
        assert get_relationship_label("co-brother-in-law", "en") == "Co-brother-in-law"

    def test_unknown_code(self):
        assert get_relationship_label("foo") == "foo"

    def test_unknown_locale(self):
        assert get_relationship_label("parent", "fr") == "Parent"


class TestRelationshipOptions:
    """Tests for the declaration UI options."""

    def test_blood_options(self):
        codes = [o["code"] for o in get_blood_relationship_options("en")]
        assert codes[:4] == ["parent", "child", "spouse", "sibling"]
        assert "cousin" in codes

    def test_blood_options_localized(self):
        assert get_blood_relationship_options("ru")[0]["label"] == "Родитель"

    def test_gender_specific_sibling_options(self):
        labels = {o["value"]: o["label"] for o in get_gender_specific_options("sibling", "ru")}
        assert labels["half_brother_p"] == "Единокровный брат"
        assert labels["brother"] == "Брат (родной)"

    def test_gender_specific_options_carry_qualifiers(self):
        options = get_gender_specific_options("aunt_uncle", "en")
        great_uncle = next(o for o in options if o["value"] == "uncle_2nd")
        assert great_uncle["label"] == "Great-uncle"
        assert great_uncle["qualifiers"] == {"level": 1}
        assert great_uncle["gender"] == "male"

    def test_unknown_code_has_no_options(self):
        assert get_gender_specific_options("pen-pal") == []

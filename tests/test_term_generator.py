"""
Test Term Generator - name splitting, n-gram terms, plural tolerance

Run with: python3 tests/test_term_generator.py
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from formflow.contracts import Term
from formflow.core.term_generator import (
    build_terms,
    coerce_term,
    generate_terms,
    name_words,
    word_forms,
    word_matches,
)


def _phrases(terms):
    return [str(term) for term in terms]


def _is_contiguous(words, sequence):
    size = len(words)
    return any(tuple(sequence[i:i + size]) == tuple(words) for i in range(len(sequence) - size + 1))


# ========== Name splitting ==========

def test_name_words_case_changes_and_separators():
    """Case changes, '_' and '-' all break words"""
    assert name_words("BlackForestHam") == ["black", "forest", "ham"]
    assert name_words("price_cap") == ["price", "cap"]
    assert name_words("BLTSandwich") == ["blt", "sandwich"]
    assert name_words("Black Forest Ham") == ["black", "forest", "ham"]


# ========== Generation ==========

def test_generate_terms_nine_grain_wheat():
    """All n-grams, shortest first, full phrase last"""
    terms = generate_terms("NineGrainWheat")
    assert _phrases(terms) == [
        "nine", "grain", "wheat", "nine grain", "grain wheat", "nine grain wheat",
    ]


def test_generate_terms_skips_connective_edges():
    """N-grams starting or ending with 'and' are skipped, the full phrase is kept"""
    terms = generate_terms("AngusBeefAndGarlicPizza", max_phrase=2)
    assert _phrases(terms) == [
        "angus", "beef", "garlic", "pizza",
        "angus beef", "garlic pizza",
        "angus beef and garlic pizza",
    ]


def test_generate_terms_is_deterministic():
    """Same name, same terms"""
    first = generate_terms("ChickenAndBaconRanchMelt")
    second = generate_terms("ChickenAndBaconRanchMelt")
    assert first == second


def test_generated_terms_are_subsequences_of_the_name():
    """No generated term contains a word the name does not have, in order"""
    for name in ("ChickenAndBaconRanchMelt", "RotisserieStyleChicken", "ItalianHerbsAndCheese", "BLT"):
        words = name_words(name)
        for term in generate_terms(name):
            assert _is_contiguous(term.words, words), f"{term} is not a sub-sequence of {words}"


def test_generate_terms_max_phrase_one_still_has_full_phrase():
    terms = generate_terms("SweetOnionTeriyaki", max_phrase=1)
    assert _phrases(terms) == ["sweet", "onion", "teriyaki", "sweet onion teriyaki"]


def test_generate_terms_empty_name():
    assert generate_terms("") == ()
    assert generate_terms("_") == ()


# ========== Declared terms ==========

def test_build_terms_declared_first_then_generated():
    terms = build_terms("RotisserieStyleChicken", declared=["rotisserie", Term.regex(r"rotis\w*")])
    assert terms[0] == Term.phrase("rotisserie")
    assert terms[1].is_regex
    # generated 'rotisserie' is not duplicated
    assert _phrases(terms).count("rotisserie") == 1
    assert "rotisserie style chicken" in _phrases(terms)


def test_build_terms_without_generation():
    terms = build_terms("Pepperjack", declared=["pepper jack"], generate=False)
    assert _phrases(terms) == ["pepper jack"]


def test_build_terms_extra_names():
    """A description different from the name also produces terms"""
    terms = build_terms("MontereyJack", extra_names=("Monterey Cheddar",))
    phrases = _phrases(terms)
    assert "monterey jack" in phrases
    assert "cheddar" in phrases
    assert "monterey cheddar" in phrases


def test_coerce_term_rejects_other_types():
    assert coerce_term("Foot Long") == Term(words=("foot", "long"))
    with pytest.raises(TypeError, match="term must be str or Term"):
        coerce_term(42)


# ========== Word matching ==========

def test_word_forms_and_plurals():
    assert word_forms("topping") == ("topping", "toppings")
    assert word_forms("peppers") == ("peppers", "pepperss", "pepper")


def test_word_matches():
    assert word_matches("topping", "toppings")
    assert word_matches("peppers", "pepper")
    assert word_matches("tomatoes", "tomatoe")
    assert not word_matches("ham", "hams2")
    assert not word_matches("ham", "jam")


if __name__ == '__main__':
    pytest.main([__file__, '-v'])

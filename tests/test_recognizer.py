"""
Test Recognizer - numeric entry, exact and tolerant matching, outcomes

Outcomes under test: no_match, success, partial_success, ambiguous
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from formflow.contracts import Term
from formflow.core.recognizer import (
    DEFAULT_FUZZY,
    NO_FUZZY,
    OUTCOME_AMBIGUOUS,
    OUTCOME_NO_MATCH,
    OUTCOME_PARTIAL,
    OUTCOME_SUCCESS,
    Candidate,
    FuzzyPolicy,
    fuzzy_word_match,
    match_whole,
    recognize,
)
from formflow.core.term_generator import build_terms
from formflow.utils.text_helpers import describe_name


def make_candidates(*names, declared=None):
    """Candidates the way the schema builds them for enum values"""
    declared = declared or {}
    return [
        Candidate(
            label=name,
            terms=build_terms(name, declared.get(name, ())),
            description=describe_name(name),
        )
        for name in names
    ]


BREADS = make_candidates("NineGrainWheat", "NineGrainHoneyOat", "Italian", "ItalianHerbsAndCheese", "Flatbread")
TOPPINGS = make_candidates(
    "Avocado", "BananaPeppers", "Cucumbers", "GreenBellPeppers", "Jalapenos",
    "Lettuce", "Olives", "Pickles", "RedOnion", "Spinach", "Tomatoes",
)
SIZES = make_candidates("Small", "Large")


# ========== Exact matches ==========

def test_own_description_is_recognized_unambiguously():
    """Every value's description yields exactly that value"""
    for candidates in (BREADS, TOPPINGS, SIZES):
        for candidate in candidates:
            result = recognize(candidate.description, candidates, multiple=False)
            assert result.outcome == OUTCOME_SUCCESS, candidate.description
            assert result.values == [candidate.label]
            assert result.spans[0].is_exact


def test_case_insensitive():
    result = recognize("NINE GRAIN WHEAT", BREADS)
    assert result.values == ["NineGrainWheat"]


def test_full_description_wins_shared_term():
    """'italian' is a term of two breads; Italian's whole description wins"""
    result = recognize("italian", BREADS)
    assert result.outcome == OUTCOME_SUCCESS
    assert result.values == ["Italian"]


def test_longest_match_wins():
    result = recognize("italian herbs and cheese", BREADS)
    assert result.values == ["ItalianHerbsAndCheese"]


def test_plural_forms_match():
    result = recognize("tomatoes and pickle", TOPPINGS, multiple=True)
    assert result.outcome == OUTCOME_SUCCESS
    assert result.values == ["Tomatoes", "Pickles"]
    assert all(span.is_exact for span in result.spans)


# ========== Numeric entry ==========

def test_number_selects_choice():
    result = recognize("3", BREADS)
    assert result.outcome == OUTCOME_SUCCESS
    assert result.values == ["Italian"]
    assert result.numeric


def test_number_beats_textual_overlap():
    """A choice number wins even when it is also a term of another choice"""
    candidates = [
        Candidate(label="RoomTwo", terms=(Term.phrase("2"), Term.phrase("room two")), description="Room Two"),
        Candidate(label="RoomOne", terms=(Term.phrase("1"), Term.phrase("room one")), description="Room One"),
    ]
    result = recognize("2", candidates)
    assert result.outcome == OUTCOME_SUCCESS
    assert result.values == ["RoomOne"]


def test_number_out_of_range_is_no_match():
    result = recognize("7", SIZES)
    assert result.outcome == OUTCOME_NO_MATCH
    assert result.unmatched == ("7",)


def test_numbers_disabled():
    result = recognize("2", SIZES, allow_numbers=False)
    assert result.outcome == OUTCOME_NO_MATCH


def test_several_numbers_for_list_field():
    result = recognize("1, 3 and 6", TOPPINGS, multiple=True)
    assert result.outcome == OUTCOME_SUCCESS
    assert result.values == ["Avocado", "Cucumbers", "Lettuce"]


# ========== Ambiguity ==========

def test_shared_term_is_ambiguous():
    """'nine grain' names two breads"""
    result = recognize("nine grain", BREADS)
    assert result.outcome == OUTCOME_AMBIGUOUS
    assert len(result.ambiguous_spans) == 1
    span = result.ambiguous_spans[0]
    assert span.text == "nine grain"
    assert set(span.labels) == {"NineGrainWheat", "NineGrainHoneyOat"}


def test_ambiguous_span_with_resolved_values_for_list():
    result = recognize("peppers, lettuce and tomatoe", TOPPINGS, multiple=True)
    assert result.outcome == OUTCOME_AMBIGUOUS
    assert result.values == ["Lettuce", "Tomatoes"]
    assert result.ambiguous_spans[0].labels == ("BananaPeppers", "GreenBellPeppers")
    assert result.unmatched == ()


def test_two_values_for_single_field_become_ambiguous():
    result = recognize("small large", SIZES, multiple=False)
    assert result.outcome == OUTCOME_AMBIGUOUS
    assert set(result.ambiguous_spans[0].labels) == {"Small", "Large"}


def test_merged_span_quotes_typed_text():
    result = recognize("Large, or maybe small", SIZES, multiple=False)
    span = result.ambiguous_spans[0]
    assert span.text == "Large, or maybe small"
    assert span.labels == ("Large", "Small")


def test_repeat_settles_ambiguity():
    """A span that could be a value named elsewhere in the input is that value"""
    result = recognize("nine grain wheet", BREADS)
    assert result.outcome == OUTCOME_SUCCESS
    assert result.values == ["NineGrainWheat"]


# ========== Partial ==========

def test_partial_reports_unmatched_verbatim():
    result = recognize("Italian Toasted", BREADS)
    assert result.outcome == OUTCOME_PARTIAL
    assert result.values == ["Italian"]
    assert result.unmatched == ("Toasted",)


def test_noise_words_are_not_unmatched():
    result = recognize("the flatbread", BREADS)
    assert result.outcome == OUTCOME_SUCCESS
    assert result.unmatched == ()


def test_nothing_recognized():
    result = recognize("purple", BREADS)
    assert result.outcome == OUTCOME_NO_MATCH
    assert result.values == []
    assert result.unmatched == ("purple",)


def test_empty_input():
    result = recognize("   ", BREADS)
    assert result.outcome == OUTCOME_NO_MATCH
    assert result.unmatched == ()


# ========== Tolerant matching ==========

def test_fuzzy_word_match_thresholds():
    assert fuzzy_word_match("pepperoni", "peperoni")
    assert fuzzy_word_match("help", "hlep")
    assert fuzzy_word_match("lettuce", "letuce")
    # short words must be exact
    assert not fuzzy_word_match("ham", "jam")
    assert not fuzzy_word_match("oil", "oli")
    # first letter must agree
    assert not fuzzy_word_match("lettuce", "kettuce")
    # too far
    assert not fuzzy_word_match("olives", "onions")


def test_fuzzy_disabled_policy():
    assert not fuzzy_word_match("lettuce", "letuce", NO_FUZZY)
    assert fuzzy_word_match("lettuce", "lettuces", NO_FUZZY)


def test_custom_policy_tolerance():
    policy = FuzzyPolicy(exact_length=2, short_length=4, short_distance=1, long_distance=3)
    assert policy.tolerance("ok") == 0
    assert policy.tolerance("ham") == 1
    assert policy.tolerance("mustard") == 3
    assert DEFAULT_FUZZY.tolerance("ham") == 0


def test_misspelling_is_interpreted():
    result = recognize("letuce", TOPPINGS, multiple=True)
    assert result.outcome == OUTCOME_SUCCESS
    assert result.values == ["Lettuce"]
    assert result.interpreted == [("letuce", "Lettuce")]


def test_misspelling_shared_by_two_values_is_ambiguous():
    result = recognize("pepers", TOPPINGS, multiple=True)
    assert result.outcome == OUTCOME_AMBIGUOUS
    assert set(result.ambiguous_spans[0].labels) == {"BananaPeppers", "GreenBellPeppers"}


def test_no_fuzzy_leaves_misspelling_unmatched():
    result = recognize("letuce", TOPPINGS, multiple=True, fuzzy=NO_FUZZY)
    assert result.outcome == OUTCOME_NO_MATCH


# ========== Regex terms ==========

def test_regex_term_matches_whole_words():
    candidates = make_candidates(
        "RotisserieStyleChicken", "SpicyItalian",
        declared={"RotisserieStyleChicken": [Term.regex(r"rotis\w*")]},
    )
    result = recognize("rotissary please", candidates)
    assert result.values == ["RotisserieStyleChicken"]
    assert result.unmatched == ("please",)

    # Must cover whole tokens
    result = recognize("xrotis", candidates)
    assert result.outcome == OUTCOME_NO_MATCH


# ========== Segments ==========

def test_matches_do_not_cross_commas():
    result = recognize("nine, grain wheat", BREADS)
    assert "NineGrainWheat" in result.values
    assert result.spans[0].text == "nine"


# ========== match_whole ==========

COMMANDS = [
    Candidate(label="back", terms=(Term.phrase("back"), Term.phrase("go back")), description="back"),
    Candidate(label="help", terms=(Term.phrase("help"), Term.phrase("?")), description="help"),
]


def test_match_whole_requires_entire_input():
    assert match_whole("go back", COMMANDS).label == "back"
    assert match_whole("?", COMMANDS).label == "help"
    assert match_whole("back please", COMMANDS) is None
    assert match_whole("1", COMMANDS) is None


def test_match_whole_fuzzy_optional():
    assert match_whole("hlep", COMMANDS) is None
    assert match_whole("hlep", COMMANDS, fuzzy=DEFAULT_FUZZY).label == "help"


if __name__ == '__main__':
    pytest.main([__file__, '-v'])

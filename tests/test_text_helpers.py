"""
Test Text Helpers - name splitting, tokenizing, list joins, articles
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from formflow.utils.text_helpers import (
    apply_case,
    describe_name,
    fix_articles,
    join_list,
    normalize_rendered,
    split_name,
    tokenize,
)


@pytest.mark.parametrize("name, words", [
    ("AngusBeefAndGarlicPizza", ["Angus", "Beef", "And", "Garlic", "Pizza"]),
    ("BLTSandwich", ["BLT", "Sandwich"]),
    ("price_cap", ["price", "cap"]),
    ("Room2", ["Room", "2"]),
    ("delivery-time", ["delivery", "time"]),
])
def test_split_name(name, words):
    assert split_name(name) == words


def test_describe_name():
    assert describe_name("BlackForestHam") == "Black Forest Ham"


def test_tokenize_segments_and_offsets():
    tokens = tokenize("Peppers, lettuce and tomatoes")
    assert [t.lower for t in tokens] == ["peppers", "lettuce", "and", "tomatoes"]
    assert [t.segment for t in tokens] == [0, 1, 1, 1]
    assert tokens[1].start == 9 and tokens[1].end == 16


def test_tokenize_keeps_numbers_and_apostrophes():
    assert [t.text for t in tokenize("I don't want 2.5")] == ["I", "don't", "want", "2.5"]


def test_join_list():
    assert join_list([]) == ""
    assert join_list(["A"]) == "A"
    assert join_list(["A", "B"]) == "A and B"
    assert join_list(["A", "B", "C"]) == "A, B, and C"
    assert join_list(["A", "", "C"]) == "A and C"
    assert join_list(["A", "B"], ", ", ", ") == "A, B"


@pytest.mark.parametrize("text, expected", [
    ("Please select a olive", "Please select an olive"),
    ("an sandwich", "a sandwich"),
    ("A hour", "An hour"),
    ("an unicorn", "a unicorn"),
    ("a MRI", "an MRI"),
    ("a 8 inch", "an 8 inch"),
])
def test_fix_articles(text, expected):
    assert fix_articles(text) == expected


def test_normalize_rendered():
    assert normalize_rendered("  Pick a  size (1. Small) .  ") == "Pick a size (1. Small)."
    assert normalize_rendered("Change? \n 1. Size") == "Change?\n1. Size"


@pytest.mark.parametrize("mode, expected", [
    ("lower", "nine grain wheat"),
    ("upper", "NINE GRAIN WHEAT"),
    ("upper_first", "Nine grain Wheat"),
    ("title", "Nine Grain Wheat"),
    ("none", "nine grain Wheat"),
])
def test_apply_case(mode, expected):
    assert apply_case("nine grain Wheat", mode) == expected


if __name__ == '__main__':
    pytest.main([__file__, '-v'])

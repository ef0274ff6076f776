"""
Test Value Parsers and host helpers
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime

import pytest

from formflow.utils.helpers import generate_conversation_id, jsonable_values
from formflow.utils.value_parsers import (
    parse_datetime,
    parse_number,
    parse_string,
    parse_value,
)


# ========== Numbers ==========

def test_parse_integer_with_extra_words():
    parsed = parse_number("about 12 inches", integral=True)
    assert parsed.value == 12
    assert parsed.unmatched == ("about", "inches")


def test_parse_integer_rejects_decimal():
    assert parse_number("4.5", integral=True) is None


def test_parse_float():
    parsed = parse_number("4.5 stars", integral=False)
    assert parsed.value == 4.5
    assert parsed.unmatched == ("stars",)


def test_parse_negative_number():
    assert parse_number("-3", integral=True).value == -3


def test_parse_number_missing():
    assert parse_number("several", integral=True) is None


# ========== Strings and dates ==========

def test_parse_string_trims():
    assert parse_string("  12 Main Street ").value == "12 Main Street"
    assert parse_string("   ") is None


def test_parse_datetime():
    parsed = parse_datetime("March 3 2027 6pm")
    assert parsed.value == datetime(2027, 3, 3, 18, 0)
    assert parsed.unmatched == ()


def test_parse_datetime_with_default():
    parsed = parse_datetime("6pm", default=datetime(2027, 3, 3))
    assert parsed.value == datetime(2027, 3, 3, 18, 0)


def test_parse_datetime_nothing_found():
    assert parse_datetime("whenever") is None
    assert parse_datetime("") is None


def test_parse_value_dispatch():
    assert parse_value("integral", "7").value == 7
    assert parse_value("string", "hello").value == "hello"
    with pytest.raises(ValueError, match="No value parser"):
        parse_value("enum", "Small")


# ========== Helpers ==========

def test_conversation_id_lengths():
    assert len(generate_conversation_id()) == 8
    assert len(generate_conversation_id(short=False)) == 32


def test_jsonable_values():
    values = {"When": datetime(2027, 3, 3, 18, 0), "Toppings": ["Olives"], "Size": "Large"}
    assert jsonable_values(values) == {
        "When": "2027-03-03T18:00:00",
        "Toppings": ["Olives"],
        "Size": "Large",
    }
    assert jsonable_values(None) is None


if __name__ == '__main__':
    pytest.main([__file__, '-v'])

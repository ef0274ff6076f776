"""
Value Parsers - Turn free text into values for non-enumerated fields

Responsibilities:
- Integral and floating numbers (first number in the input)
- Strings (the whole input, trimmed)
- Date/time values (fuzzy parsing via python-dateutil)
- Report the words that did not contribute to the value

Design principles:
- Pure functions; no FormState access
- Return None when nothing usable was found (the caller re-prompts)
- Limits (min/max, length) are checked by the caller, not here
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, List, Optional, Tuple

from dateutil import parser as date_parser

from formflow.utils.text_helpers import NOISE_WORDS, tokenize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParsedValue:
    """
    Value parsed from user input.

    Attributes:
        value: Parsed value (int, float, str or datetime)
        unmatched: Input words that did not contribute to the value
    """
    value: Any
    unmatched: Tuple[str, ...] = ()


def _leftover_words(words: List[str]) -> Tuple[str, ...]:
    return tuple(word for word in words if word.lower() not in NOISE_WORDS)


def parse_number(text: str, integral: bool) -> Optional[ParsedValue]:
    """
    Parse the first number in the input.

    Args:
        text: Raw user input
        integral: Require a whole number

    Returns:
        ParsedValue or None if no (suitable) number was found

    Examples:
        >>> parse_number("about 12 inches", integral=True)
        ParsedValue(value=12, unmatched=('about', 'inches'))
        >>> parse_number("4.5", integral=True) is None
        True
    """
    tokens = tokenize(text)
    for index, token in enumerate(tokens):
        try:
            number = float(token.text)
        except ValueError:
            continue

        if integral:
            if not number.is_integer() or "." in token.text:
                return None
            value: Any = int(token.text)
        else:
            value = number

        others = [t.text for i, t in enumerate(tokens) if i != index]
        return ParsedValue(value=value, unmatched=_leftover_words(others))

    return None


def parse_string(text: str) -> Optional[ParsedValue]:
    """Whole input, trimmed. Empty input yields None."""
    value = (text or "").strip()
    if not value:
        return None
    return ParsedValue(value=value)


def parse_datetime(text: str, default: Optional[datetime] = None) -> Optional[ParsedValue]:
    """
    Parse a date/time out of free text.

    Uses dateutil's fuzzy mode, so surrounding words ("deliver it at 6pm
    please") are skipped and reported as unmatched.

    Args:
        text: Raw user input
        default: Supplies missing components (default: today at midnight)

    Returns:
        ParsedValue with a datetime, or None if no date/time was found
    """
    if not text or not text.strip():
        return None
    try:
        value, skipped = date_parser.parse(text, fuzzy_with_tokens=True, default=default)
    except (ValueError, OverflowError) as e:
        logger.debug(f"Date parse failed for {text!r}: {e}")
        return None

    words: List[str] = []
    for chunk in skipped:
        words.extend(token.text for token in tokenize(chunk))
    return ParsedValue(value=value, unmatched=_leftover_words(words))


def parse_value(kind: str, text: str) -> Optional[ParsedValue]:
    """
    Dispatch on a FieldKind value.

    Raises:
        ValueError: If kind is not a non-enumerated kind
    """
    if kind == "integral":
        return parse_number(text, integral=True)
    if kind == "floating":
        return parse_number(text, integral=False)
    if kind == "string":
        return parse_string(text)
    if kind == "datetime":
        return parse_datetime(text)
    raise ValueError(f"No value parser for field kind: {kind}")

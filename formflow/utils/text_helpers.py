"""
Text Helpers - Small pure functions shared by the term generator,
recognizer and pattern renderer.

Responsibilities:
- Split field/value names into words (case changes, '_' and '-')
- Tokenize user input with character offsets and list segments
- Join lists as "A, B, and C"
- Post-render normalization (double spaces, a/an)
- Case normalization for displayed descriptions and values

Design principles:
- Pure functions, no logging, no state
- English-only heuristics; kept deliberately simple
"""

import re
from dataclasses import dataclass
from typing import List, Sequence


# Words that connect phrases rather than name things. Never generated as
# single-word terms and never reported as unmatched input.
NOISE_WORDS = frozenset({
    "a", "an", "and", "or", "of", "the", "with", "in", "on", "to", "for", "&",
})

# Words that separate items of a multi-value answer ("cheese and ham").
LIST_SEPARATOR_WORDS = frozenset({"and", "or", "&"})

_CAMEL_LOWER_UPPER = re.compile(r"([a-z0-9])([A-Z])")
_CAMEL_ACRONYM = re.compile(r"([A-Z]+)([A-Z][a-z])")
_LETTER_DIGIT = re.compile(r"([A-Za-z])(\d)")
_NAME_SEPARATORS = re.compile(r"[\s_\-\.]+")

# Tokens: numbers (with optional decimal part), words (apostrophes and
# inner hyphens allowed), a lone '?' or '&'. Separators split segments.
_TOKEN_OR_SEPARATOR = re.compile(
    r"(?P<sep>[,;\n])"
    r"|(?P<tok>-?\d+(?:\.\d+)?|[^\W_]+(?:['’\-][^\W_]+)*|\?|&)"
)

_MULTI_SPACE = re.compile(r"[ \t]{2,}")
_SPACE_BEFORE_NEWLINE = re.compile(r"[ \t]+\n")
_SPACE_AFTER_NEWLINE = re.compile(r"\n[ \t]+")
_SPACE_BEFORE_PUNCT = re.compile(r"[ \t]+([.,;:!)])")
_ARTICLE = re.compile(r"\b([Aa]n?)(\s+)([\"'(]?)([A-Za-z0-9][\w\-]*)")

# Exceptions to the first-letter rule for a/an.
_AN_EXCEPTIONS = ("hour", "honest", "honor", "honour", "heir", "herb")
_A_EXCEPTIONS = ("one", "once", "uni", "use", "usu", "uti", "eu", "ewe", "ufo", "ura")


@dataclass(frozen=True)
class Token:
    """
    One word of user input.

    Attributes:
        text: Word as typed
        lower: Lower-cased word
        start: Character offset of the first character
        end: Character offset after the last character
        segment: Index of the comma/newline separated segment
    """
    text: str
    lower: str
    start: int
    end: int
    segment: int


def split_name(name: str) -> List[str]:
    """
    Break a field or value name into words.

    Splits on case transitions, digits following letters, and explicit
    separators ('_', '-', '.', whitespace). Acronyms stay together.

    Args:
        name: Identifier such as 'AngusBeefAndGarlicPizza' or 'price_cap'

    Returns:
        Words with their original casing

    Examples:
        >>> split_name('AngusBeefAndGarlicPizza')
        ['Angus', 'Beef', 'And', 'Garlic', 'Pizza']
        >>> split_name('BLTSandwich')
        ['BLT', 'Sandwich']
        >>> split_name('price_cap')
        ['price', 'cap']
    """
    text = _CAMEL_LOWER_UPPER.sub(r"\1 \2", name)
    text = _CAMEL_ACRONYM.sub(r"\1 \2", text)
    text = _LETTER_DIGIT.sub(r"\1 \2", text)
    return [word for word in _NAME_SEPARATORS.split(text) if word]


def describe_name(name: str) -> str:
    """
    Default description of a value name: words joined by spaces.

    Examples:
        >>> describe_name('BlackForestHam')
        'Black Forest Ham'
    """
    return " ".join(split_name(name))


def tokenize(text: str) -> List[Token]:
    """
    Tokenize user input into lower-cased words with offsets.

    Commas, semicolons and newlines do not produce tokens; they advance
    the segment counter so that callers can keep matches from crossing
    list boundaries.

    Args:
        text: Raw user input

    Returns:
        Tokens in input order
    """
    tokens: List[Token] = []
    segment = 0
    for match in _TOKEN_OR_SEPARATOR.finditer(text or ""):
        if match.group("sep"):
            segment += 1
            continue
        word = match.group("tok")
        tokens.append(Token(
            text=word,
            lower=word.lower(),
            start=match.start(),
            end=match.end(),
            segment=segment,
        ))
    return tokens


def join_list(items: Sequence[str], separator: str = ", ", last_separator: str = ", and ") -> str:
    """
    Join items for display.

    Args:
        items: Already formatted items
        separator: Used between all items but the last two
        last_separator: Used before the last item (when 3+ items).
            With exactly two items the leading comma is dropped.

    Returns:
        Joined text

    Examples:
        >>> join_list(['A', 'B', 'C'])
        'A, B, and C'
        >>> join_list(['A', 'B'])
        'A and B'
    """
    items = [item for item in items if item != ""]
    if not items:
        return ""
    if len(items) == 1:
        return items[0]
    if len(items) == 2:
        pair_separator = last_separator
        if last_separator.startswith(separator.rstrip()) and last_separator.strip() != separator.strip():
            pair_separator = " " + last_separator[len(separator.rstrip()):].lstrip()
        return items[0] + pair_separator + items[1]
    return separator.join(items[:-1]) + last_separator + items[-1]


def _wants_an(word: str) -> bool:
    lowered = word.lower()
    if lowered.startswith(_AN_EXCEPTIONS):
        return True
    if lowered.startswith(_A_EXCEPTIONS):
        return False
    if lowered[0].isdigit():
        # "an 8", "an 11", "an 18"
        return lowered.startswith("8") or lowered in ("11", "18")
    if len(word) > 1 and word.isupper():
        # Acronyms are read letter by letter: "an MRI", "a BLT"
        return word[0] in "AEFHILMNORSX"
    return lowered[0] in "aeiou"


def fix_articles(text: str) -> str:
    """
    Choose "a" or "an" from the sound of the following word.

    Examples:
        >>> fix_articles('Please select a olive')
        'Please select an olive'
        >>> fix_articles('an sandwich')
        'a sandwich'
    """
    def replace(match: "re.Match") -> str:
        article, space, quote, word = match.groups()
        wanted = "an" if _wants_an(word) else "a"
        if article[0].isupper():
            wanted = wanted.capitalize()
        return f"{wanted}{space}{quote}{word}"

    return _ARTICLE.sub(replace, text)


def normalize_rendered(text: str) -> str:
    """
    Clean up text after template substitution.

    - collapses doubled spaces and tabs
    - removes spaces around line breaks and before closing punctuation
    - corrects a/an
    - strips leading/trailing whitespace
    """
    text = _MULTI_SPACE.sub(" ", text)
    text = _SPACE_BEFORE_NEWLINE.sub("\n", text)
    text = _SPACE_AFTER_NEWLINE.sub("\n", text)
    text = _SPACE_BEFORE_PUNCT.sub(r"\1", text)
    text = fix_articles(text)
    return text.strip()


def apply_case(text: str, mode: str) -> str:
    """
    Apply a case normalization mode to displayed text.

    Args:
        text: Text to normalize
        mode: 'none', 'lower', 'upper', 'upper_first' or 'title'

    Returns:
        Normalized text
    """
    if mode == "lower":
        return text.lower()
    if mode == "upper":
        return text.upper()
    if mode == "upper_first":
        return text[:1].upper() + text[1:]
    if mode == "title":
        return " ".join(word[:1].upper() + word[1:] for word in text.split(" "))
    return text

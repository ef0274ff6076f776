"""
Term Generator - Derive matchable phrases from field and value names

Responsibilities:
- Break a name into lower-cased words (case changes, '_', '-')
- Generate every contiguous n-gram up to a maximum phrase length
- Union declared terms (phrases or regular expressions) with generated ones
- Decide whether an input word matches a term word (bare/plural forms)

Design principles:
- Pure and deterministic: same name, same terms, same order
- Runs once per field/value at schema-build time, never per turn
- Generated phrases are always sub-sequences of the name's words
- Plural tolerance lives in word matching, not in extra term objects

Example:
    'AngusBeefAndGarlicPizza' generates 'angus', 'beef', 'garlic',
    'pizza', 'angus beef', 'garlic pizza', ... and the full phrase
    'angus beef and garlic pizza'. Phrases starting or ending with a
    connective word ('and', 'of', ...) are skipped except the full one.
"""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from formflow.contracts import Term
from formflow.utils.text_helpers import NOISE_WORDS, split_name

logger = logging.getLogger(__name__)

TermLike = Union[str, Term]


def name_words(name: str) -> List[str]:
    """Lower-cased words of a name."""
    return [word.lower() for word in split_name(name)]


def generate_terms(name: str, max_phrase: Optional[int] = None) -> Tuple[Term, ...]:
    """
    Generate the canonical term set for a field or value name.

    Args:
        name: Field/value name or description ('BlackForestHam',
            'Black Forest Ham' and 'black_forest_ham' are equivalent)
        max_phrase: Longest n-gram to generate. None covers the full name.
            The full phrase is always generated regardless.

    Returns:
        Deduplicated terms, shortest n-grams first, full phrase last

    Examples:
        >>> [str(t) for t in generate_terms('NineGrainWheat')]
        ['nine', 'grain', 'wheat', 'nine grain', 'grain wheat', 'nine grain wheat']
    """
    words = name_words(name)
    if not words:
        return ()

    limit = len(words) if max_phrase is None else max(1, min(max_phrase, len(words)))
    seen = set()
    terms: List[Term] = []

    for size in range(1, limit + 1):
        for start in range(0, len(words) - size + 1):
            gram = tuple(words[start:start + size])
            if gram[0] in NOISE_WORDS or gram[-1] in NOISE_WORDS:
                continue
            if gram not in seen:
                seen.add(gram)
                terms.append(Term(words=gram))

    full = tuple(words)
    if full not in seen:
        terms.append(Term(words=full))

    return tuple(terms)


def coerce_term(term: TermLike) -> Term:
    """
    Turn a declared term into a Term.

    Strings are phrases; Term instances (including Term.regex) pass
    through unchanged.
    """
    if isinstance(term, Term):
        return term
    if isinstance(term, str):
        return Term.phrase(term)
    raise TypeError(f"term must be str or Term, got {type(term).__name__}")


def build_terms(
    name: str,
    declared: Iterable[TermLike] = (),
    max_phrase: Optional[int] = None,
    generate: bool = True,
    extra_names: Sequence[str] = (),
) -> Tuple[Term, ...]:
    """
    Union declared terms with generated ones.

    Args:
        name: Name to generate from
        declared: Explicit terms (phrases or Term.regex)
        max_phrase: Longest generated n-gram
        generate: False disables auto-generation (declared terms only)
        extra_names: Further names to generate from (e.g. a description
            that differs from the name)

    Returns:
        Declared terms first, then generated terms, deduplicated
    """
    result: List[Term] = []
    seen = set()

    def add(term: Term) -> None:
        if term.is_regex:
            key = ("re", term.pattern)
        else:
            key = ("w", term.words)
            if not term.words:
                return
        if key not in seen:
            seen.add(key)
            result.append(term)

    for term in declared:
        add(coerce_term(term))

    if generate:
        for source in (name, *extra_names):
            for term in generate_terms(source, max_phrase):
                add(term)

    logger.debug(f"Terms for '{name}': {[str(t) for t in result]}")
    return tuple(result)


def word_forms(word: str) -> Tuple[str, ...]:
    """
    Forms of a term word accepted in input: bare and plural.

    Examples:
        >>> word_forms('topping')
        ('topping', 'toppings')
        >>> word_forms('peppers')
        ('peppers', 'pepperss', 'pepper')
    """
    forms = [word, word + "s"]
    if word.endswith("s") and len(word) > 3:
        forms.append(word[:-1])
    return tuple(forms)


def word_matches(term_word: str, input_word: str) -> bool:
    """True if an input word is the term word or its bare/plural form."""
    if term_word == input_word:
        return True
    return input_word in word_forms(term_word)

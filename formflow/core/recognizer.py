"""
Recognizer - Match user text against candidate terms

Responsibilities:
- Numeric choice entry (whole input is an integer 1..N)
- Exact greedy longest-match of phrase and regex terms, left to right
- Edit-distance tolerant matching of the leftover words
- Classify the result (no match, success, partial, ambiguous)
- Report input words consumed by no candidate

Contract:
    recognize(text, candidates, ...) -> RecognitionResult
    RecognitionResult.outcome in no_match | success | partial_success | ambiguous

Design principles:
- Deterministic and side-effect free; never touches FormState
- Candidates are generic (label + terms), so the same code recognizes
  field values, field names for jumps, and command words
- Outcomes are data, not exceptions; the dialogue manager decides what
  to do with each one
- Matches never cross a comma/semicolon/newline

Example:
    Bread values NineGrainWheat, NineGrainHoneyOat, Italian, ...

    "nine grain"        -> ambiguous (both nine grain breads)
    "italian"           -> success (Italian, full description wins)
    "3"                 -> success (third choice)
    "nien grain wheet"  -> success, interpreted (NineGrainWheat)
    "italian toasted"   -> partial_success, unmatched ["toasted"]
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from rapidfuzz.distance import OSA

from formflow.contracts import Term
from formflow.core.term_generator import word_forms, word_matches
from formflow.utils.text_helpers import LIST_SEPARATOR_WORDS, NOISE_WORDS, Token, tokenize

logger = logging.getLogger(__name__)

# Valid outcome values
OUTCOME_NO_MATCH = "no_match"
OUTCOME_SUCCESS = "success"
OUTCOME_PARTIAL = "partial_success"
OUTCOME_AMBIGUOUS = "ambiguous"


# ========================
# Data structures
# ========================

@dataclass(frozen=True)
class Candidate:
    """
    Something the input may refer to.

    Attributes:
        label: Identifier handed back on a match (value name, field name,
            command name)
        terms: Terms that recognize it
        description: Display text; exact equality with a matched span
            breaks ties between candidates sharing a term
        value: Opaque payload for the caller
    """
    label: str
    terms: Tuple[Term, ...]
    description: str = ""
    value: Any = None


@dataclass(frozen=True)
class CandidateMatch:
    """A candidate offered for one span, with its score."""
    candidate: Candidate
    score: float
    exact: bool

    @property
    def label(self) -> str:
        return self.candidate.label


@dataclass(frozen=True)
class SpanMatch:
    """
    A run of input tokens and the candidates offered for it.

    Attributes:
        start / end: Token indices (end exclusive)
        text: The span as typed
        matches: One match (resolved) or several (ambiguous)
    """
    start: int
    end: int
    text: str
    matches: Tuple[CandidateMatch, ...]

    @property
    def is_ambiguous(self) -> bool:
        return len(self.matches) > 1

    @property
    def is_exact(self) -> bool:
        return all(match.exact for match in self.matches)

    @property
    def labels(self) -> Tuple[str, ...]:
        return tuple(match.label for match in self.matches)


@dataclass(frozen=True)
class RecognitionResult:
    """
    Output of one recognition.

    Attributes:
        text: Input as given
        spans: Matched spans in input order
        unmatched: Input phrases consumed by no candidate
        numeric: True if the input was taken as a choice number
    """
    text: str
    spans: Tuple[SpanMatch, ...] = ()
    unmatched: Tuple[str, ...] = ()
    numeric: bool = False

    @property
    def outcome(self) -> str:
        if not self.spans:
            return OUTCOME_NO_MATCH
        if self.ambiguous_spans:
            return OUTCOME_AMBIGUOUS
        if self.unmatched:
            return OUTCOME_PARTIAL
        return OUTCOME_SUCCESS

    @property
    def ambiguous_spans(self) -> Tuple[SpanMatch, ...]:
        return tuple(span for span in self.spans if span.is_ambiguous)

    @property
    def values(self) -> List[str]:
        """Labels of resolved spans, distinct, in input order."""
        labels: List[str] = []
        for span in self.spans:
            if not span.is_ambiguous and span.labels[0] not in labels:
                labels.append(span.labels[0])
        return labels

    @property
    def interpreted(self) -> List[Tuple[str, str]]:
        """(typed text, label) for resolved spans found only by edit distance."""
        return [
            (span.text, span.labels[0])
            for span in self.spans
            if not span.is_ambiguous and not span.is_exact
        ]


# ========================
# Fuzzy policy
# ========================

@dataclass(frozen=True)
class FuzzyPolicy:
    """
    Edit-distance tolerance for misspelled words.

    Words up to exact_length characters must match exactly; words up to
    short_length tolerate short_distance edits; longer words tolerate
    long_distance edits. The first letter must always agree.
    """
    enabled: bool = True
    exact_length: int = 3
    short_length: int = 5
    short_distance: int = 1
    long_distance: int = 2

    def tolerance(self, word: str) -> int:
        if len(word) <= self.exact_length:
            return 0
        if len(word) <= self.short_length:
            return self.short_distance
        return self.long_distance


DEFAULT_FUZZY = FuzzyPolicy()
NO_FUZZY = FuzzyPolicy(enabled=False)


def fuzzy_word_match(term_word: str, input_word: str, policy: FuzzyPolicy = DEFAULT_FUZZY) -> bool:
    """
    True if input_word is term_word (or its bare/plural form) within the
    policy's edit distance.

    Examples:
        >>> fuzzy_word_match("pepperoni", "peperoni")
        True
        >>> fuzzy_word_match("ham", "jam")
        False
    """
    if word_matches(term_word, input_word):
        return True
    if not policy.enabled or not input_word or not term_word:
        return False
    if input_word[0] != term_word[0] or not input_word.isalpha():
        return False

    allowed = policy.tolerance(term_word)
    if allowed == 0:
        return False
    for form in word_forms(term_word):
        if OSA.distance(form, input_word, score_cutoff=allowed) <= allowed:
            return True
    return False


# ========================
# Recognition
# ========================

def _span_text(text: str, tokens: Sequence[Token], start: int, end: int) -> str:
    return text[tokens[start].start:tokens[end - 1].end]


def _description_words(description: str) -> Tuple[str, ...]:
    return tuple(description.lower().split())


def _phrase_matches_at(term: Term, tokens: Sequence[Token], index: int) -> int:
    """Length of the phrase term matched at token index, or 0."""
    size = len(term.words)
    if size == 0 or index + size > len(tokens):
        return 0
    segment = tokens[index].segment
    for offset, word in enumerate(term.words):
        token = tokens[index + offset]
        if token.segment != segment or not word_matches(word, token.lower):
            return 0
    return size


def _regex_matches(term: Term, text: str, tokens: Sequence[Token]) -> Dict[int, int]:
    """
    Token start index -> token length for every regex match that covers
    whole tokens of one segment.
    """
    found: Dict[int, int] = {}
    for match in term.compiled.finditer(text):
        if match.end() == match.start():
            continue
        covered = [
            i for i, token in enumerate(tokens)
            if token.start >= match.start() and token.end <= match.end()
        ]
        if not covered:
            continue
        first, last = covered[0], covered[-1]
        if tokens[first].start != match.start() or tokens[last].end != match.end():
            # Regex must cover whole words
            continue
        if tokens[first].segment != tokens[last].segment:
            continue
        found[first] = max(found.get(first, 0), last - first + 1)
    return found


def _exact_pass(
    text: str,
    tokens: Sequence[Token],
    candidates: Sequence[Candidate],
) -> Tuple[List[SpanMatch], List[bool]]:
    """
    Greedy longest match, left to right.

    Returns:
        (spans, consumed) where consumed[i] tells whether token i is used
    """
    regex_hits: List[Dict[int, int]] = []
    for candidate in candidates:
        hits: Dict[int, int] = {}
        for term in candidate.terms:
            if term.is_regex:
                for start, length in _regex_matches(term, text, tokens).items():
                    hits[start] = max(hits.get(start, 0), length)
        regex_hits.append(hits)

    spans: List[SpanMatch] = []
    consumed = [False] * len(tokens)
    index = 0
    while index < len(tokens):
        best_length = 0
        best: List[Candidate] = []
        for candidate, hits in zip(candidates, regex_hits):
            length = hits.get(index, 0)
            for term in candidate.terms:
                if not term.is_regex:
                    length = max(length, _phrase_matches_at(term, tokens, index))
            if length == 0:
                continue
            if length > best_length:
                best_length = length
                best = [candidate]
            elif length == best_length:
                best.append(candidate)

        if best_length == 0:
            index += 1
            continue

        end = index + best_length
        span_text = _span_text(text, tokens, index, end)
        span_words = tuple(token.lower for token in tokens[index:end])

        # A candidate whose whole description was typed beats the others
        full = [c for c in best if _description_words(c.description) == span_words]
        if full:
            best = full

        matches = tuple(
            CandidateMatch(candidate=c, score=float(best_length), exact=True)
            for c in _dedupe(best)
        )
        spans.append(SpanMatch(start=index, end=end, text=span_text, matches=matches))
        for i in range(index, end):
            consumed[i] = True
        index = end

    return spans, consumed


def _dedupe(candidates: Iterable[Candidate]) -> List[Candidate]:
    seen = set()
    unique = []
    for candidate in candidates:
        if candidate.label not in seen:
            seen.add(candidate.label)
            unique.append(candidate)
    return unique


def _leftover_runs(tokens: Sequence[Token], consumed: Sequence[bool]) -> List[List[int]]:
    """
    Group unconsumed token indices into runs.

    Runs break at consumed tokens, segment changes and list separator
    words. Noise words are dropped from runs.
    """
    runs: List[List[int]] = []
    current: List[int] = []
    last_segment = None
    for i, token in enumerate(tokens):
        breaks = consumed[i] or token.lower in LIST_SEPARATOR_WORDS or token.segment != last_segment
        if breaks and current:
            runs.append(current)
            current = []
        last_segment = token.segment
        if consumed[i] or token.lower in NOISE_WORDS:
            continue
        current.append(i)
    if current:
        runs.append(current)
    return runs


def _fuzzy_coverage(
    candidate: Candidate,
    run_words: Sequence[str],
    policy: FuzzyPolicy,
) -> Tuple[int, frozenset]:
    """
    Best coverage of a run by one candidate.

    Returns:
        (number of run positions covered, frozenset of those positions).
        (0, empty) if no phrase term has a strict majority of its words
        present in the run.
    """
    best_positions: frozenset = frozenset()
    for term in candidate.terms:
        if term.is_regex:
            continue
        words = [w for w in term.words if w not in NOISE_WORDS]
        if not words:
            continue
        positions = set()
        hits = 0
        for word in words:
            found = [
                p for p, run_word in enumerate(run_words)
                if fuzzy_word_match(word, run_word, policy)
            ]
            if found:
                hits += 1
                positions.update(found)
        if hits * 2 > len(words) and len(positions) > len(best_positions):
            best_positions = frozenset(positions)
    return len(best_positions), best_positions


def _fuzzy_pass(
    text: str,
    tokens: Sequence[Token],
    run: List[int],
    candidates: Sequence[Candidate],
    policy: FuzzyPolicy,
) -> Tuple[List[SpanMatch], List[int]]:
    """
    Resolve a leftover run by edit-distance tolerant containment.

    Repeatedly takes the best-covering candidate group; ties that cover
    the same tokens form one ambiguous span.

    Returns:
        (spans, leftover token indices)
    """
    spans: List[SpanMatch] = []
    remaining = list(run)

    while remaining:
        run_words = [tokens[i].lower for i in remaining]
        scored = []
        for candidate in candidates:
            count, positions = _fuzzy_coverage(candidate, run_words, policy)
            if count:
                scored.append((count, positions, candidate))
        if not scored:
            break

        top = max(count for count, _, _ in scored)
        leaders = [(p, c) for count, p, c in scored if count == top]
        leaders.sort(key=lambda pair: min(pair[0]))
        positions = leaders[0][0]
        group = _dedupe(c for p, c in leaders if p == positions)

        covered = sorted(remaining[p] for p in positions)
        start, end = covered[0], covered[-1] + 1
        matches = tuple(
            CandidateMatch(candidate=c, score=top / max(len(run_words), 1), exact=False)
            for c in group
        )
        spans.append(SpanMatch(start=start, end=end, text=_span_text(text, tokens, start, end), matches=matches))
        remaining = [i for i in remaining if i not in covered]

    return spans, remaining


def _numeric_choice(tokens: Sequence[Token], count: int) -> Optional[int]:
    if len(tokens) != 1:
        return None
    try:
        number = int(tokens[0].text)
    except ValueError:
        return None
    if 1 <= number <= count:
        return number
    return None


def _group_unmatched(text: str, tokens: Sequence[Token], indices: Sequence[int]) -> Tuple[str, ...]:
    """Join adjacent unmatched token indices into phrases as typed."""
    phrases: List[str] = []
    group: List[int] = []
    for i in sorted(indices):
        if group and (i != group[-1] + 1 or tokens[i].segment != tokens[group[-1]].segment):
            phrases.append(_span_text(text, tokens, group[0], group[-1] + 1))
            group = []
        group.append(i)
    if group:
        phrases.append(_span_text(text, tokens, group[0], group[-1] + 1))
    return tuple(phrases)


def _settle_ambiguous(text: str, tokens: Sequence[Token], spans: List[SpanMatch], multiple: bool) -> List[SpanMatch]:
    """
    Resolve ambiguous spans that include a value resolved elsewhere
    ("nine grain wheat bread" style repeats); for single-value fields
    merge several distinct resolved values into one ambiguous span.
    """
    resolved = []
    for span in spans:
        if not span.is_ambiguous and span.labels[0] not in resolved:
            resolved.append(span.labels[0])

    settled: List[SpanMatch] = []
    for span in spans:
        if span.is_ambiguous:
            known = [m for m in span.matches if m.label in resolved]
            if len(known) == 1:
                span = SpanMatch(span.start, span.end, span.text, (known[0],))
        settled.append(span)

    if multiple:
        return settled

    # Single value field: keep one span per value
    distinct: Dict[str, SpanMatch] = {}
    for span in settled:
        if not span.is_ambiguous:
            distinct.setdefault(span.labels[0], span)
    if len(distinct) <= 1:
        return settled

    first = min(span.start for span in distinct.values())
    last = max(span.end for span in distinct.values())
    matches = tuple(span.matches[0] for span in distinct.values())
    merged = SpanMatch(start=first, end=last, text=_span_text(text, tokens, first, last), matches=matches)
    others = [span for span in settled if span.is_ambiguous]
    return sorted([merged] + others, key=lambda span: span.start)


def recognize(
    text: str,
    candidates: Sequence[Candidate],
    allow_numbers: bool = True,
    multiple: bool = False,
    fuzzy: FuzzyPolicy = DEFAULT_FUZZY,
) -> RecognitionResult:
    """
    Recognize user text against a candidate set.

    Args:
        text: Raw user input
        candidates: Ordered candidates; position + 1 is the choice number
        allow_numbers: Accept choice numbers
        multiple: Input may name several candidates (list fields)
        fuzzy: Edit-distance policy for leftover words

    Returns:
        RecognitionResult (see module docstring for outcomes)
    """
    text = text or ""
    tokens = tokenize(text)
    if not tokens or not candidates:
        unmatched = _group_unmatched(text, tokens, [
            i for i, t in enumerate(tokens) if t.lower not in NOISE_WORDS
        ])
        return RecognitionResult(text=text, unmatched=unmatched)

    # Numeric entry takes precedence over textual terms
    if allow_numbers:
        number = _numeric_choice(tokens, len(candidates))
        if number is not None:
            candidate = candidates[number - 1]
            span = SpanMatch(
                start=0, end=1, text=tokens[0].text,
                matches=(CandidateMatch(candidate=candidate, score=1.0, exact=True),),
            )
            logger.debug(f"Numeric choice {number} -> {candidate.label}")
            return RecognitionResult(text=text, spans=(span,), numeric=True)

    spans, consumed = _exact_pass(text, tokens, candidates)

    leftover: List[int] = []
    for run in _leftover_runs(tokens, consumed):
        if multiple and allow_numbers:
            # "1, 3" or "1 and 3" for list fields
            numbered = []
            for i in run:
                number = _numeric_choice([tokens[i]], len(candidates))
                if number is not None:
                    match = CandidateMatch(candidate=candidates[number - 1], score=1.0, exact=True)
                    spans.append(SpanMatch(start=i, end=i + 1, text=tokens[i].text, matches=(match,)))
                    numbered.append(i)
            run = [i for i in run if i not in numbered]
            if not run:
                continue

        if fuzzy.enabled:
            fuzzy_spans, rest = _fuzzy_pass(text, tokens, run, candidates, fuzzy)
            spans.extend(fuzzy_spans)
            leftover.extend(rest)
        else:
            leftover.extend(run)

    spans.sort(key=lambda span: span.start)
    spans = _settle_ambiguous(text, tokens, spans, multiple)

    result = RecognitionResult(
        text=text,
        spans=tuple(spans),
        unmatched=_group_unmatched(text, tokens, leftover),
    )
    logger.debug(
        f"Recognized {text!r}: outcome={result.outcome}, "
        f"values={result.values}, unmatched={list(result.unmatched)}"
    )
    return result


def match_whole(
    text: str,
    candidates: Sequence[Candidate],
    fuzzy: FuzzyPolicy = NO_FUZZY,
) -> Optional[Candidate]:
    """
    Candidate named by the entire input, or None.

    Used for commands and field jumps: every non-noise word must belong
    to one single-candidate span.
    """
    result = recognize(text, candidates, allow_numbers=False, multiple=False, fuzzy=fuzzy)
    if result.outcome != OUTCOME_SUCCESS or len(result.spans) != 1:
        return None
    return result.spans[0].matches[0].candidate

"""
Semantic contracts for the form-filling dialog engine.

This module defines immutable data structures that serve as contracts
between modules. They describe the read-only form schema that is built
once at startup and shared by every conversation.

Design principles:
- Frozen dataclasses (immutable after creation)
- Tuples instead of lists, so a built schema cannot be mutated
- No dependencies on other formflow modules (type hints excepted)
- Definition layer only; validation lives in form_schema

Contents:
- FieldKind: value kinds a field can hold
- Term: one matchable phrase or regular expression
- ValueSpec: one admissible choice of an enumerated field
- FieldSpec: one slot of the form

Usage:
    from formflow.contracts import FieldKind, FieldSpec, ValueSpec, Term
"""

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Tuple

if TYPE_CHECKING:
    from formflow.utils.templates import Template, TemplateUsage


class FieldKind(str, Enum):
    """Value kinds a field can hold."""
    ENUM = "enum"
    ENUM_LIST = "enum_list"
    INTEGRAL = "integral"
    FLOATING = "floating"
    STRING = "string"
    DATETIME = "datetime"


# Canonical name of the implicit choice added to optional enum fields.
# Committing it stores None for the field.
NO_PREFERENCE = "NoPreference"


@lru_cache(maxsize=512)
def compile_term_pattern(pattern: str) -> "re.Pattern":
    """Compile a regex term once; terms match case-insensitively."""
    return re.compile(pattern, re.IGNORECASE)


@dataclass(frozen=True)
class Term:
    """
    One phrase usable to recognize a field, value or command.

    A phrase term is a tuple of lower-cased words matched token by token
    (each word also accepts its bare/plural form). A regex term carries a
    pattern matched verbatim against the raw input and has no words.

    Attributes:
        words: Lower-cased words of the phrase (empty for regex terms)
        pattern: Regular expression source (None for phrase terms)

    Examples:
        >>> Term.phrase("nine grain")
        Term(words=('nine', 'grain'), pattern=None)
        >>> Term.regex(r"rotis+er+ie").is_regex
        True
    """
    words: Tuple[str, ...] = ()
    pattern: Optional[str] = None

    @staticmethod
    def phrase(text: str) -> "Term":
        return Term(words=tuple(text.lower().split()))

    @staticmethod
    def regex(pattern: str) -> "Term":
        return Term(pattern=pattern)

    @property
    def is_regex(self) -> bool:
        return self.pattern is not None

    @property
    def compiled(self) -> "re.Pattern":
        return compile_term_pattern(self.pattern)

    def __str__(self) -> str:
        if self.is_regex:
            return f"/{self.pattern}/"
        return " ".join(self.words)


@dataclass(frozen=True)
class ValueSpec:
    """
    One admissible choice of an enumerated field.

    Attributes:
        name: Canonical value, returned to the host in the result mapping.
            Example: 'BlackForestHam'
        description: Text shown to the user.
            Example: 'Black Forest Ham'
        terms: Declared and generated terms (union)
        ordinal: 1-based position; drives numeric entry and display order
        is_no_preference: True for the implicit choice of optional fields
    """
    name: str
    description: str
    terms: Tuple[Term, ...]
    ordinal: int
    is_no_preference: bool = False


@dataclass(frozen=True)
class FieldSpec:
    """
    Immutable declaration of one form slot.

    Attributes:
        name: Unique key, also the key in the result mapping.
            Example: 'Sandwich'
        kind: FieldKind of the stored value
        description: Text used for {&}. Example: 'sandwich'
        terms: Terms used to jump to this field by name
        values: Choices for ENUM / ENUM_LIST fields, in ordinal order.
            Optional enum fields end with the NO_PREFERENCE choice.
        optional: Field may be left without a value
        active: Predicate over current values; None means always active
        min_value / max_value: Inclusive limits for numeric fields
        min_length / max_length: Inclusive limits for string fields
        prompt: Template used instead of the default asking template
        templates: Per-field template overrides as (usage, template) pairs

    Note:
        - values is a Tuple, not a List, to maintain immutability.
        - templates uses pairs instead of a Dict for the same reason;
          use template_for() to look one up.
    """
    name: str
    kind: FieldKind
    description: str
    terms: Tuple[Term, ...]
    values: Tuple[ValueSpec, ...] = ()
    optional: bool = False
    active: Optional[Callable[[Mapping[str, Any]], bool]] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    prompt: Optional["Template"] = None
    templates: Tuple[Tuple["TemplateUsage", "Template"], ...] = ()

    @property
    def is_enum(self) -> bool:
        return self.kind in (FieldKind.ENUM, FieldKind.ENUM_LIST)

    @property
    def is_list(self) -> bool:
        return self.kind == FieldKind.ENUM_LIST

    @property
    def is_numeric(self) -> bool:
        return self.kind in (FieldKind.INTEGRAL, FieldKind.FLOATING)

    def value_spec(self, name: str) -> Optional[ValueSpec]:
        """Look up a choice by canonical name."""
        for value in self.values:
            if value.name == name:
                return value
        return None

    def template_for(self, usage: "TemplateUsage") -> Optional["Template"]:
        """Return this field's override for a usage, if any."""
        for override_usage, template in self.templates:
            if override_usage == usage:
                return template
        return None

"""
Template Registry

Defines the template usages of the form dialog and their default patterns.

Template Classification:
- Asking templates: build the prompt for a field (SELECT_ONE, SELECT_MANY,
  INTEGER, FLOAT, STRING, DATETIME)
- Feedback templates: react to an answer (NOT_UNDERSTOOD, FEEDBACK,
  INTERPRETED, CLARIFY, OUT_OF_RANGE, LENGTH, NO_PREVIOUS)
- Help templates: one line each, assembled into the help message
- Summary templates: STATUS, STATUS_LINE, CONFIRMATION, CHANGE_PROMPT,
  NAVIGATION_FORMAT, plus the display words NO_PREFERENCE / UNSPECIFIED
- Terminal templates: COMPLETED, CANCELLED

Template Text:
- DEFAULT_PATTERNS holds pattern strings in the pattern language parsed
  by formflow.core.pattern_renderer
- A usage may have several patterns; one is chosen at random per render
- Positional arguments {0}, {1}, ... per usage are listed in USAGE_ARGS

Formatting Parameters:
- TemplateConfig carries the per-template knobs (choice format/style,
  separators, case normalization, numbers, current choice)
"""

import logging
import random
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)


class TemplateUsage(str, Enum):
    """
    Named slots of the template table.

    Naming convention: what the rendered text is used for.
    """
    # Asking a field
    SELECT_ONE = "select_one"
    SELECT_MANY = "select_many"
    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    DATETIME = "datetime"

    # Feedback on an answer
    NOT_UNDERSTOOD = "not_understood"
    FEEDBACK = "feedback"
    INTERPRETED = "interpreted"
    CLARIFY = "clarify"
    OUT_OF_RANGE = "out_of_range"
    LENGTH = "length"
    NO_PREVIOUS = "no_previous"

    # Help lines
    HELP = "help"
    HELP_ENUM = "help_enum"
    HELP_INTEGER = "help_integer"
    HELP_FLOAT = "help_float"
    HELP_STRING = "help_string"
    HELP_DATETIME = "help_datetime"
    HELP_CURRENT = "help_current"
    HELP_NO_PREFERENCE = "help_no_preference"
    HELP_COMMAND = "help_command"
    HELP_NAVIGATION = "help_navigation"
    HELP_CLARIFY = "help_clarify"
    HELP_CONFIRMATION = "help_confirmation"

    # Summaries
    STATUS = "status"
    STATUS_LINE = "status_line"
    CONFIRMATION = "confirmation"
    CHANGE_PROMPT = "change_prompt"
    NAVIGATION_FORMAT = "navigation_format"
    NO_PREFERENCE = "no_preference"
    UNSPECIFIED = "unspecified"

    # Terminal
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ChoiceStyle(str, Enum):
    """How {||} lays out choices."""
    AUTO = "auto"          # inline up to INLINE_CHOICE_LIMIT, else per line
    INLINE = "inline"      # (1. Six Inch, 2. Foot Long)
    PER_LINE = "per_line"  # one choice per line


class CaseNormalization(str, Enum):
    """Case applied to displayed descriptions/values."""
    NONE = "none"
    LOWER = "lower"
    UPPER = "upper"
    UPPER_FIRST = "upper_first"
    TITLE = "title"


class FeedbackOptions(str, Enum):
    """When to echo what was understood after an answer."""
    AUTO = "auto"      # only when something was not understood or interpreted
    ALWAYS = "always"
    NEVER = "never"


INLINE_CHOICE_LIMIT = 4


@dataclass(frozen=True)
class TemplateConfig:
    """
    Formatting parameters applied while rendering one template.

    Attributes:
        allow_default: Offer the current value ("c" keeps it)
        allow_numbers: Accept and show numbers for choices
        choice_format: str.format pattern per choice; {0} number, {1} description
        choice_style: Inline or one per line
        choice_separator: Between inline choices
        choice_last_separator: Before the last inline choice
        separator: Between items of {[...]} and list values
        last_separator: Before the last item of {[...]} and list values
        field_case: Case of field descriptions ({&})
        value_case: Case of value descriptions
        feedback: When to echo understood values
        offer_current: List the current value as an extra choice in {||}
            (needs allow_default; "c" selects it)
        current_choice_format: str.format pattern for that choice; {0} value
    """
    allow_default: bool = True
    allow_numbers: bool = True
    choice_format: str = "{0}. {1}"
    choice_style: ChoiceStyle = ChoiceStyle.AUTO
    choice_separator: str = ", "
    choice_last_separator: str = ", "
    separator: str = ", "
    last_separator: str = ", and "
    field_case: CaseNormalization = CaseNormalization.LOWER
    value_case: CaseNormalization = CaseNormalization.NONE
    feedback: FeedbackOptions = FeedbackOptions.AUTO
    offer_current: bool = False
    current_choice_format: str = "c. Current choice ({0})"


DEFAULT_CONFIG = TemplateConfig()


@dataclass(frozen=True)
class Template:
    """
    A usage with one or more patterns and its formatting parameters.

    Attributes:
        usage: TemplateUsage this template fills
        patterns: Pattern strings; one is picked at random per render
        config: Formatting parameters
    """
    usage: TemplateUsage
    patterns: Tuple[str, ...]
    config: TemplateConfig = field(default=DEFAULT_CONFIG)

    def choose(self, rng: random.Random) -> str:
        """Pick one pattern uniformly at random."""
        if len(self.patterns) == 1:
            return self.patterns[0]
        return rng.choice(self.patterns)


# Default pattern strings per usage
DEFAULT_PATTERNS: Dict[TemplateUsage, Tuple[str, ...]] = {
    TemplateUsage.SELECT_ONE: ("Please select a {&}{? (current choice: {})} {||}",),
    TemplateUsage.SELECT_MANY: ("Please select one or more {&}{? (current choice: {})} {||}",),
    TemplateUsage.INTEGER: ("Please enter a number{? between {0} and {1}} for {&}{? (current choice: {})}.",),
    TemplateUsage.FLOAT: ("Please enter a number{? between {0} and {1}} for {&}{? (current choice: {})}.",),
    TemplateUsage.STRING: ("Please enter {&}{? (current choice: {})}.",),
    TemplateUsage.DATETIME: ("Please enter a date and time for {&}{? (current choice: {})}.",),

    TemplateUsage.NOT_UNDERSTOOD: ('"{0}" is not a {&} option.', 'I do not understand "{0}".'),
    TemplateUsage.FEEDBACK: ('For {&} I understood {}.{? "{0}" is not an option.}',),
    TemplateUsage.INTERPRETED: ("[interpreted {0} → {1}]",),
    TemplateUsage.CLARIFY: ('By "{0}" {&} did you mean {||}',),
    TemplateUsage.OUT_OF_RANGE: ("{0} is not a valid {&}{?, use {1} to {2}}.",),
    TemplateUsage.LENGTH: ('"{0}" is not a valid {&}{? (at least {1} characters)}{? (at most {2} characters)}.',),
    TemplateUsage.NO_PREVIOUS: ("There is no previous question to go back to.",),

    TemplateUsage.HELP: ("* You are filling in the {&} field. Possible responses:",),
    TemplateUsage.HELP_ENUM: ("* You can enter {?a number {0}-{1} or }words from the descriptions. ({2})",),
    TemplateUsage.HELP_INTEGER: ("* You can enter a whole number{? between {0} and {1}}.",),
    TemplateUsage.HELP_FLOAT: ("* You can enter a number{? between {0} and {1}}.",),
    TemplateUsage.HELP_STRING: ("* You can enter any text{? of {0} to {1} characters}.",),
    TemplateUsage.HELP_DATETIME: ('* You can enter a date and time, for example "March 3 2027 6pm".',),
    TemplateUsage.HELP_CURRENT: ('* "c" keeps the current choice ({}).',),
    TemplateUsage.HELP_NO_PREFERENCE: ('* "no preference" leaves {&} unspecified.',),
    TemplateUsage.HELP_COMMAND: ("* {0}: {1}",),
    TemplateUsage.HELP_NAVIGATION: ("* You can switch to another field by entering its name. ({0})",),
    TemplateUsage.HELP_CLARIFY: ("* Choose one of the options above by number or by words from its description.",),
    TemplateUsage.HELP_CONFIRMATION: ('* Answer "yes" to accept your selection or "no" to change it.',),

    TemplateUsage.STATUS: ("{*}",),
    TemplateUsage.STATUS_LINE: ("* {&}: {}",),
    TemplateUsage.CONFIRMATION: ("Is this your selection?\n{*}",),
    TemplateUsage.CHANGE_PROMPT: ("What do you want to change? {||}",),
    TemplateUsage.NAVIGATION_FORMAT: ("{&}{? ({})}",),
    TemplateUsage.NO_PREFERENCE: ("No Preference",),
    TemplateUsage.UNSPECIFIED: ("Unspecified",),

    TemplateUsage.COMPLETED: ("Thank you, your selection is complete.",),
    TemplateUsage.CANCELLED: ("Form cancelled.",),
}

# Usages whose default config differs from DEFAULT_CONFIG
DEFAULT_CONFIGS: Dict[TemplateUsage, TemplateConfig] = {
    TemplateUsage.STATUS_LINE: replace(DEFAULT_CONFIG, field_case=CaseNormalization.UPPER_FIRST),
    TemplateUsage.NAVIGATION_FORMAT: replace(DEFAULT_CONFIG, field_case=CaseNormalization.UPPER_FIRST),
    TemplateUsage.CHANGE_PROMPT: replace(DEFAULT_CONFIG, choice_style=ChoiceStyle.PER_LINE),
}

# Positional arguments each usage receives; patterns may not reference more.
# Usages not listed receive none.
USAGE_ARGS: Dict[TemplateUsage, Tuple[str, ...]] = {
    TemplateUsage.INTEGER: ("min", "max"),
    TemplateUsage.FLOAT: ("min", "max"),
    TemplateUsage.STRING: ("min_length", "max_length"),
    TemplateUsage.NOT_UNDERSTOOD: ("input",),
    TemplateUsage.FEEDBACK: ("unmatched",),
    TemplateUsage.INTERPRETED: ("input", "value"),
    TemplateUsage.CLARIFY: ("input",),
    TemplateUsage.OUT_OF_RANGE: ("input", "min", "max"),
    TemplateUsage.LENGTH: ("input", "min_length", "max_length"),
    TemplateUsage.HELP_ENUM: ("first", "last", "choices"),
    TemplateUsage.HELP_INTEGER: ("min", "max"),
    TemplateUsage.HELP_FLOAT: ("min", "max"),
    TemplateUsage.HELP_STRING: ("min_length", "max_length"),
    TemplateUsage.HELP_COMMAND: ("command", "description"),
    TemplateUsage.HELP_NAVIGATION: ("fields",),
}

PatternSpec = Union[str, Sequence[str], Template]


def make_template(
    usage: Union[TemplateUsage, str],
    patterns: Union[str, Iterable[str]],
    config: Optional[TemplateConfig] = None,
) -> Template:
    """
    Build a Template from one pattern or several.

    Args:
        usage: TemplateUsage or its string value
        patterns: One pattern string or an iterable of alternatives
        config: Formatting parameters (default: the usage's default config)

    Returns:
        Template

    Raises:
        ValueError: If usage is unknown or no pattern is given
    """
    usage = validate_usage(usage)
    if isinstance(patterns, str):
        patterns = (patterns,)
    patterns = tuple(patterns)
    if not patterns:
        raise ValueError(f"Template '{usage.value}' needs at least one pattern")
    if config is None:
        config = DEFAULT_CONFIGS.get(usage, DEFAULT_CONFIG)
    return Template(usage=usage, patterns=patterns, config=config)


def validate_usage(usage: Union[TemplateUsage, str]) -> TemplateUsage:
    """
    Validate that usage exists in the registry.

    Raises:
        ValueError: If usage is not a TemplateUsage
    """
    if isinstance(usage, TemplateUsage):
        return usage
    try:
        return TemplateUsage(usage)
    except ValueError:
        valid = [u.value for u in TemplateUsage]
        raise ValueError(f"Invalid template usage: '{usage}'. Must be one of: {valid}") from None


class TemplateTable:
    """
    Mapping from TemplateUsage to Template with defaults for every usage.

    Hosts override usages globally; fields override them locally
    (FieldSpec.templates) and may supply their own prompt.
    """

    def __init__(self, overrides: Optional[Mapping[Union[TemplateUsage, str], PatternSpec]] = None):
        """
        Initialize the table from defaults plus overrides

        Args:
            overrides: usage -> pattern string, list of patterns or Template
        """
        self._templates: Dict[TemplateUsage, Template] = {
            usage: make_template(usage, patterns)
            for usage, patterns in DEFAULT_PATTERNS.items()
        }
        for usage, spec in (overrides or {}).items():
            self.set(usage, spec)

        logger.debug(f"Template table ready ({len(self._templates)} usages, {len(overrides or {})} overridden)")

    def set(self, usage: Union[TemplateUsage, str], spec: PatternSpec) -> None:
        """Replace the template for a usage."""
        usage = validate_usage(usage)
        if isinstance(spec, Template):
            self._templates[usage] = spec
        else:
            self._templates[usage] = make_template(usage, spec)

    def get(self, usage: TemplateUsage) -> Template:
        return self._templates[usage]

    def lookup(self, usage: TemplateUsage, field_spec=None) -> Template:
        """
        Template to use for a usage, honoring field overrides.

        Lookup order: field override -> table.
        """
        if field_spec is not None:
            override = field_spec.template_for(usage)
            if override is not None:
                return override
        return self._templates[usage]

    def with_overrides(self, overrides: Optional[Mapping[Union[TemplateUsage, str], PatternSpec]]) -> "TemplateTable":
        """Copy of this table with further overrides applied."""
        table = TemplateTable()
        table._templates = dict(self._templates)
        for usage, spec in (overrides or {}).items():
            table.set(usage, spec)
        return table

    def templates(self) -> Tuple[Template, ...]:
        return tuple(self._templates.values())

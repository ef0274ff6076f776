"""
Pattern Renderer - Parse and evaluate template patterns against form state

Responsibilities:
- Parse pattern strings into elements (cached per pattern)
- Validate patterns at schema-build time (syntax and field references)
- Render elements from live field metadata, values and extra arguments
- Choose one pattern at random when a usage has several
- Normalize the rendered text (spacing, a/an)

Pattern elements:
    {}  {:fmt}          value of the current field
    {&}  {&Field}       description of the current / named field
    {Field}  {Field:fmt} value of a named field
    {||}                choices of the current field (or supplied choices)
    {[ ... ]}           non-empty nested elements joined as "A, B, and C"
    {*}  {*filled}      status block (every active field / only filled ones)
    {0}  {1:fmt}        positional argument
    {? ... }            conditional: empty unless every nested reference
                        renders non-empty

Design principles:
- Read-only: never mutates FormState
- Malformed patterns raise TemplateError with the element position
- Values of inactive fields render as unset
- Format specifiers are Python format specs (format(value, spec))
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import Any, Collection, List, Mapping, Optional, Sequence, Tuple

from formflow.contracts import FieldKind, FieldSpec
from formflow.core.field_selector import FieldSelector
from formflow.errors import TemplateError
from formflow.utils.templates import (
    DEFAULT_CONFIG,
    INLINE_CHOICE_LIMIT,
    ChoiceStyle,
    TemplateConfig,
    TemplateTable,
    TemplateUsage,
)
from formflow.utils.text_helpers import apply_case, join_list, normalize_rendered

logger = logging.getLogger(__name__)

# Usages that ask for a field; a field's own prompt replaces these
ASKING_USAGES = frozenset({
    TemplateUsage.SELECT_ONE,
    TemplateUsage.SELECT_MANY,
    TemplateUsage.INTEGER,
    TemplateUsage.FLOAT,
    TemplateUsage.STRING,
    TemplateUsage.DATETIME,
})

DATETIME_DISPLAY = "%Y-%m-%d %H:%M"


# ========================
# Elements
# ========================

@dataclass(frozen=True)
class Literal:
    text: str
    position: int


@dataclass(frozen=True)
class CurrentValue:
    format_spec: str
    position: int


@dataclass(frozen=True)
class Description:
    field: Optional[str]
    position: int


@dataclass(frozen=True)
class FieldValue:
    field: str
    format_spec: str
    position: int


@dataclass(frozen=True)
class Choices:
    position: int


@dataclass(frozen=True)
class ListJoin:
    elements: Tuple[Any, ...]
    position: int


@dataclass(frozen=True)
class Status:
    filled_only: bool
    position: int


@dataclass(frozen=True)
class Arg:
    index: int
    format_spec: str
    position: int


@dataclass(frozen=True)
class Conditional:
    elements: Tuple[Any, ...]
    position: int


# ========================
# Parsing
# ========================

def _is_identifier(text: str) -> bool:
    return text.isidentifier()


def _parse_simple(pattern: str, start: int) -> Tuple[Any, int]:
    """Parse a non-nesting element starting at '{'."""
    close = pattern.find("}", start + 1)
    nested = pattern.find("{", start + 1)
    if close == -1 or (nested != -1 and nested < close):
        raise TemplateError("Unterminated element", pattern, start, pattern[start:start + 12])

    body = pattern[start + 1:close]
    element_text = pattern[start:close + 1]
    end = close + 1

    name, _, format_spec = body.partition(":")
    if body == "" or body.startswith(":"):
        return CurrentValue(format_spec=format_spec, position=start), end
    if body == "&":
        return Description(field=None, position=start), end
    if body.startswith("&"):
        if not _is_identifier(body[1:]):
            raise TemplateError("Invalid field name", pattern, start, element_text)
        return Description(field=body[1:], position=start), end
    if body == "||":
        return Choices(position=start), end
    if body == "*":
        return Status(filled_only=False, position=start), end
    if body == "*filled":
        return Status(filled_only=True, position=start), end
    if name.isdigit():
        return Arg(index=int(name), format_spec=format_spec, position=start), end
    if _is_identifier(name):
        return FieldValue(field=name, format_spec=format_spec, position=start), end

    raise TemplateError("Unknown element", pattern, start, element_text)


def _parse_sequence(pattern: str, pos: int, terminator: Optional[str], opened_at: int) -> Tuple[Tuple[Any, ...], int]:
    """
    Parse elements until terminator (None = end of pattern).

    Returns:
        (elements, position after the terminator)
    """
    elements: List[Any] = []
    literal: List[str] = []
    literal_start = pos

    def flush() -> None:
        if literal:
            elements.append(Literal(text="".join(literal), position=literal_start))
            literal.clear()

    while pos < len(pattern):
        if terminator and pattern.startswith(terminator, pos):
            flush()
            return tuple(elements), pos + len(terminator)

        char = pattern[pos]
        if char == "{":
            flush()
            if pattern.startswith("{?", pos):
                children, pos_after = _parse_sequence(pattern, pos + 2, "}", pos)
                elements.append(Conditional(elements=children, position=pos))
            elif pattern.startswith("{[", pos):
                children, pos_after = _parse_sequence(pattern, pos + 2, "]}", pos)
                elements.append(ListJoin(elements=children, position=pos))
            else:
                element, pos_after = _parse_simple(pattern, pos)
                elements.append(element)
            pos = pos_after
            literal_start = pos
            continue
        if char == "}":
            raise TemplateError("Unmatched '}'", pattern, pos, "}")

        if not literal:
            literal_start = pos
        literal.append(char)
        pos += 1

    if terminator:
        raise TemplateError("Unterminated element", pattern, opened_at, pattern[opened_at:opened_at + 12])
    flush()
    return tuple(elements), pos


@lru_cache(maxsize=1024)
def parse_pattern(pattern: str) -> Tuple[Any, ...]:
    """
    Parse a pattern string into elements.

    Raises:
        TemplateError: On malformed elements, unmatched braces or
            unterminated elements
    """
    if not isinstance(pattern, str):
        raise TypeError(f"pattern must be str, got {type(pattern).__name__}")
    elements, _ = _parse_sequence(pattern, 0, None, 0)
    return elements


def _walk(elements: Sequence[Any]):
    for element in elements:
        yield element
        if isinstance(element, (Conditional, ListJoin)):
            yield from _walk(element.elements)


def validate_pattern(pattern: str, field_names: Collection[str], arg_count: Optional[int] = None) -> Tuple[Any, ...]:
    """
    Parse a pattern and check that every referenced field exists.

    Args:
        pattern: Pattern string
        field_names: Names of the form's fields
        arg_count: Number of positional arguments the usage receives
            (None skips the check)

    Returns:
        Parsed elements

    Raises:
        TemplateError: Syntax error, unknown field reference or positional
            argument the usage does not supply
    """
    elements = parse_pattern(pattern)
    for element in _walk(elements):
        if isinstance(element, Arg) and arg_count is not None and element.index >= arg_count:
            raise TemplateError(f"Argument {{{element.index}}} is not supplied ({arg_count} available)",
                                pattern, element.position)
        name = None
        if isinstance(element, FieldValue):
            name = element.field
        elif isinstance(element, Description) and element.field is not None:
            name = element.field
        if name is not None and name not in field_names:
            raise TemplateError(f"Unknown field '{name}'", pattern, element.position, name)
    return elements


# ========================
# Rendering
# ========================

@dataclass
class _RenderContext:
    pattern: str
    field: Optional[FieldSpec]
    values: Mapping[str, Any]
    args: Sequence[Any]
    config: TemplateConfig
    choices: Optional[Sequence[str]]
    unset_text: str


class PatternRenderer:
    """
    Renders patterns and template usages against form state.

    Holds the read-only schema, the template table and the random source
    used to pick among alternative patterns.
    """

    def __init__(self, schema, table: Optional[TemplateTable] = None, rng: Optional[random.Random] = None, selector=None):
        """
        Initialize renderer

        Args:
            schema: FormSchema whose fields patterns may reference
            table: TemplateTable (default: built-in templates)
            rng: Random source for choosing among patterns
            selector: FieldSelector for active-field evaluation
                (default: one built over schema)
        """
        self.schema = schema
        self.table = table or TemplateTable()
        self.rng = rng or random.Random()
        self.selector = selector or FieldSelector(schema)

    # ---------- public API ----------

    def render(
        self,
        pattern: str,
        field: Optional[FieldSpec] = None,
        state=None,
        args: Sequence[Any] = (),
        config: TemplateConfig = DEFAULT_CONFIG,
        choices: Optional[Sequence[str]] = None,
    ) -> str:
        """
        Render one pattern.

        Args:
            pattern: Pattern string
            field: Current field ({}, {&}, {||} refer to it)
            state: FormState or a plain mapping of values
            args: Positional arguments for {0}, {1}, ...
            config: Formatting parameters
            choices: Descriptions for {||} instead of the field's values

        Returns:
            Rendered, normalized text

        Raises:
            TemplateError: Malformed pattern or unknown field reference
        """
        context = _RenderContext(
            pattern=pattern,
            field=field,
            values=self.selector.visible_values(self._values_of(state)),
            args=tuple(args),
            config=config,
            choices=choices,
            unset_text="",
        )
        return normalize_rendered(self._render_elements(parse_pattern(pattern), context))

    def render_usage(
        self,
        usage: TemplateUsage,
        field: Optional[FieldSpec] = None,
        state=None,
        args: Sequence[Any] = (),
        choices: Optional[Sequence[str]] = None,
    ) -> str:
        """
        Render a template usage, honoring field prompt and overrides.

        Lookup order: field prompt (asking usages only) -> field override
        -> table. One of the template's patterns is chosen at random.
        """
        template = self.template_for(usage, field)
        return self.render(template.choose(self.rng), field, state, args, template.config, choices)

    def template_for(self, usage: TemplateUsage, field: Optional[FieldSpec] = None):
        if field is not None and field.prompt is not None and usage in ASKING_USAGES:
            return field.prompt
        return self.table.lookup(usage, field)

    def text(self, usage: TemplateUsage) -> str:
        """Plain display word of a usage such as NO_PREFERENCE."""
        return self.table.get(usage).patterns[0]

    def format_value(self, field: FieldSpec, value: Any, config: TemplateConfig = DEFAULT_CONFIG, format_spec: str = "") -> str:
        """Display text for a stored value of a field."""
        if value is None:
            return self.text(TemplateUsage.NO_PREFERENCE)

        if field.kind == FieldKind.ENUM_LIST:
            items = [self._value_description(field, item, config) for item in value]
            return join_list(items, config.separator, config.last_separator)
        if field.kind == FieldKind.ENUM:
            return self._value_description(field, value, config)
        if format_spec:
            return format(value, format_spec)
        if isinstance(value, datetime):
            return value.strftime(DATETIME_DISPLAY)
        return str(value)

    # ---------- internals ----------

    @staticmethod
    def _values_of(state) -> Mapping[str, Any]:
        if state is None:
            return {}
        if isinstance(state, Mapping):
            return state
        return state.values

    @staticmethod
    def _value_description(field: FieldSpec, name: str, config: TemplateConfig) -> str:
        spec = field.value_spec(name)
        description = spec.description if spec is not None else str(name)
        return apply_case(description, config.value_case.value)

    def _field(self, name: str, element: Any, context: _RenderContext) -> FieldSpec:
        field = self.schema.get(name)
        if field is None:
            raise TemplateError(f"Unknown field '{name}'", context.pattern, element.position, name)
        return field

    def _render_elements(self, elements: Sequence[Any], context: _RenderContext) -> str:
        return "".join(self._render_element(element, context)[0] for element in elements)

    def _render_element(self, element: Any, context: _RenderContext) -> Tuple[str, bool]:
        """
        Render one element.

        Returns:
            (text, is_reference) - references make an enclosing
            conditional empty when they render empty
        """
        if isinstance(element, Literal):
            return element.text, False

        if isinstance(element, CurrentValue):
            if context.field is None or not context.config.allow_default:
                return "", True
            return self._render_value(context.field, element.format_spec, element, context), True

        if isinstance(element, FieldValue):
            field = self._field(element.field, element, context)
            return self._render_value(field, element.format_spec, element, context), True

        if isinstance(element, Description):
            field = context.field if element.field is None else self._field(element.field, element, context)
            if field is None:
                return "", True
            return apply_case(field.description, context.config.field_case.value), True

        if isinstance(element, Arg):
            return self._render_arg(element, context), True

        if isinstance(element, Choices):
            return self._render_choices(context), True

        if isinstance(element, Status):
            return self._render_status(element.filled_only, context), True

        if isinstance(element, ListJoin):
            items = [self._render_element(child, context)[0] for child in element.elements
                     if not isinstance(child, Literal)]
            items = [item.strip() for item in items if item.strip()]
            return join_list(items, context.config.separator, context.config.last_separator), True

        if isinstance(element, Conditional):
            parts = []
            for child in element.elements:
                text, is_reference = self._render_element(child, context)
                if is_reference and not text:
                    return "", False
                parts.append(text)
            return "".join(parts), False

        raise TemplateError("Unknown element", context.pattern, getattr(element, "position", 0))

    def _render_value(self, field: FieldSpec, format_spec: str, element: Any, context: _RenderContext) -> str:
        if field.name not in context.values:
            return context.unset_text
        try:
            return self.format_value(field, context.values[field.name], context.config, format_spec)
        except (TypeError, ValueError) as e:
            raise TemplateError(f"Bad format specifier ({e})", context.pattern, element.position, format_spec) from e

    def _render_arg(self, element: Arg, context: _RenderContext) -> str:
        if element.index >= len(context.args):
            return ""
        value = context.args[element.index]
        if value is None or value == "":
            return ""
        if not element.format_spec:
            return str(value)
        try:
            return format(value, element.format_spec)
        except (TypeError, ValueError) as e:
            raise TemplateError(f"Bad format specifier ({e})", context.pattern, element.position, element.format_spec) from e

    def _render_choices(self, context: _RenderContext) -> str:
        config = context.config
        if context.choices is not None:
            descriptions = list(context.choices)
        elif context.field is not None and context.field.is_enum:
            descriptions = [
                apply_case(value.description, config.value_case.value)
                for value in context.field.values
            ]
        else:
            return ""
        if not descriptions:
            return ""

        if config.allow_numbers:
            items = [config.choice_format.format(n, text) for n, text in enumerate(descriptions, start=1)]
        else:
            items = list(descriptions)

        current = self._current_choice(context)
        if current is not None:
            items.append(current)

        style = config.choice_style
        if style == ChoiceStyle.AUTO:
            style = ChoiceStyle.INLINE if len(items) <= INLINE_CHOICE_LIMIT else ChoiceStyle.PER_LINE

        if style == ChoiceStyle.INLINE:
            return "(" + join_list(items, config.choice_separator, config.choice_last_separator) + ")"
        if not config.allow_numbers:
            items = [f"* {item}" for item in items]
        return "\n" + "\n".join(items)

    def _current_choice(self, context: _RenderContext) -> Optional[str]:
        """Extra "keep" item for a field's own value list, or None."""
        config = context.config
        if not (config.offer_current and config.allow_default):
            return None
        field = context.field
        if context.choices is not None or field is None or not field.is_enum:
            return None
        if field.name not in context.values:
            return None
        value = self.format_value(field, context.values[field.name], config)
        return config.current_choice_format.format(value)

    def _render_status(self, filled_only: bool, context: _RenderContext) -> str:
        lines = []
        unspecified = self.text(TemplateUsage.UNSPECIFIED)
        for field in self.selector.active_fields(context.values):
            if filled_only and field.name not in context.values:
                continue
            template = self.table.lookup(TemplateUsage.STATUS_LINE, field)
            pattern = template.choose(self.rng)
            line_context = _RenderContext(
                pattern=pattern,
                field=field,
                values=context.values,
                args=(),
                config=template.config,
                choices=None,
                unset_text=unspecified,
            )
            lines.append(self._render_elements(parse_pattern(pattern), line_context))
        return "\n".join(lines)

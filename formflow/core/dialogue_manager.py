"""
Form Engine - Navigation state machine of the form dialog (Functional Core)

Responsibilities:
- Sequence the active fields and ask each one
- Dispatch global commands (back, help, quit, reset, status)
- Jump to another field named by the user
- Recognize answers and commit values (enum, list, number, text, date)
- Run the clarification sub-dialog for ambiguous answers
- Confirm the selection and let the user change fields
- Yield the completed value mapping to the host

Design principles:
- Functional core: step(state, text) works on a copy and returns the new
  state; the state passed in is never modified
- Thin orchestration: recognition, rendering and field selection live in
  specialized modules
- Recoverable outcomes (no match, partial, ambiguous, impossible command)
  always re-prompt; nothing the user types ends the conversation except
  quit and the final confirmation
- Schema/template problems fail at construction, never mid-conversation

Phases:
    ASKING_FIELD(f) -> CLARIFYING(f) -> ASKING_FIELD(next) ... -> CONFIRMING
    CONFIRMING --yes--> COMPLETED
    CONFIRMING --no--> CHANGING_SELECTION --pick f--> ASKING_FIELD(f)
    any --quit--> CANCELLED
"""

import logging
import random
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from formflow.commands import StartForm, UserTurn
from formflow.configuration import (
    COMMAND_BACK,
    COMMAND_HELP,
    COMMAND_QUIT,
    COMMAND_RESET,
    COMMAND_STATUS,
    FormConfiguration,
)
from formflow.contracts import NO_PREFERENCE, FieldKind, FieldSpec
from formflow.core.field_selector import FieldSelector
from formflow.core.form_schema import FormSchema
from formflow.core.form_state import ClarificationContext, FormPhase, FormState, HistoryEntry
from formflow.core.pattern_renderer import PatternRenderer, validate_pattern
from formflow.core.recognizer import (
    NO_FUZZY,
    OUTCOME_AMBIGUOUS,
    OUTCOME_NO_MATCH,
    OUTCOME_SUCCESS,
    Candidate,
    match_whole,
    recognize,
)
from formflow.errors import NavigationError, SchemaError, TemplateError
from formflow.results import IllegalCommand, TurnResult
from formflow.utils.templates import USAGE_ARGS, FeedbackOptions, TemplateConfig, TemplateUsage
from formflow.utils.text_helpers import join_list
from formflow.utils.value_parsers import parse_value

logger = logging.getLogger(__name__)

ASKING_USAGE = {
    FieldKind.ENUM: TemplateUsage.SELECT_ONE,
    FieldKind.ENUM_LIST: TemplateUsage.SELECT_MANY,
    FieldKind.INTEGRAL: TemplateUsage.INTEGER,
    FieldKind.FLOATING: TemplateUsage.FLOAT,
    FieldKind.STRING: TemplateUsage.STRING,
    FieldKind.DATETIME: TemplateUsage.DATETIME,
}

HELP_USAGE = {
    FieldKind.INTEGRAL: TemplateUsage.HELP_INTEGER,
    FieldKind.FLOATING: TemplateUsage.HELP_FLOAT,
    FieldKind.STRING: TemplateUsage.HELP_STRING,
    FieldKind.DATETIME: TemplateUsage.HELP_DATETIME,
}

LABEL_YES = "yes"
LABEL_NO = "no"
LABEL_KEEP = "keep"
LABEL_NO_PREFERENCE = "no_preference"


class FormEngine:
    """
    Drives one form through any number of independent conversations.

    Functional core design:
    - Holds only read-only data (schema, templates, vocabulary)
    - step() transforms a FormState deterministically (given the rng)
    - Safe to share between conversations
    """

    def __init__(self, schema: FormSchema, config: Optional[FormConfiguration] = None,
                 rng: Optional[random.Random] = None):
        """
        Initialize the engine and validate every template against the schema

        Args:
            schema: Built FormSchema
            config: Vocabulary, templates and policies (default: built-in)
            rng: Random source for choosing among template variants

        Raises:
            TypeError: If schema or config has the wrong type
            SchemaError: If a template is malformed or references an
                unknown field
        """
        if not isinstance(schema, FormSchema):
            raise TypeError("schema must be a FormSchema instance")
        if config is not None and not isinstance(config, FormConfiguration):
            raise TypeError("config must be a FormConfiguration instance")

        self.schema = schema
        self.config = config or FormConfiguration()
        self.table = self.config.templates.with_overrides(schema.template_overrides)
        self._validate_templates()

        self.selector = FieldSelector(schema)
        self.renderer = PatternRenderer(schema, self.table, rng or random.Random(), self.selector)

        # Candidates are built once; recognition never rebuilds them
        self._value_candidates: Dict[str, Tuple[Candidate, ...]] = {
            field.name: tuple(
                Candidate(label=value.name, terms=value.terms, description=value.description, value=value)
                for value in field.values
            )
            for field in schema.fields
            if field.is_enum
        }
        self._field_candidates: Dict[str, Candidate] = {
            field.name: Candidate(label=field.name, terms=field.terms, description=field.description, value=field)
            for field in schema.fields
        }
        self._commands = self.config.command_candidates()
        self._fuzzy_commands = self.config.command_candidates(fuzzy_only=True)
        self._confirm_words = (
            FormConfiguration.word_candidate(LABEL_YES, self.config.yes_terms),
            FormConfiguration.word_candidate(LABEL_NO, self.config.no_terms),
        )
        self._keep_word = (FormConfiguration.word_candidate(LABEL_KEEP, self.config.keep_terms),)
        self._no_preference_word = (
            FormConfiguration.word_candidate(LABEL_NO_PREFERENCE, self.config.no_preference_terms),
        )

        logger.info(
            f"Form engine initialized for '{schema.name}' "
            f"({len(schema)} fields, {len(self.table.templates())} templates)"
        )

    def _validate_templates(self) -> None:
        problems = []
        names = self.schema.field_names
        for template in self.table.templates():
            arg_count = len(USAGE_ARGS.get(template.usage, ()))
            for pattern in template.patterns:
                try:
                    validate_pattern(pattern, names, arg_count)
                except TemplateError as e:
                    problems.append(f"template '{template.usage.value}': {e}")
        if problems:
            raise SchemaError.from_problems(problems)

    # =========================================================================
    # Public API
    # =========================================================================

    def start(self, initial_values: Optional[Mapping[str, Any]] = None) -> TurnResult:
        """
        Begin a conversation.

        Args:
            initial_values: Values shown as current choice (the user still
                confirms or changes each field)

        Returns:
            TurnResult with the first prompt

        Raises:
            ValueError: If initial_values names an undeclared field
        """
        initial = dict(initial_values or {})
        unknown = [name for name in initial if name not in self.schema]
        if unknown:
            raise ValueError(f"initial_values contains undeclared fields: {unknown}")

        state = FormState(values=initial, last_good=dict(initial))
        self._go_to_next_field(state)
        output = self._prompt(state)

        logger.debug(f"Form started at {state.phase.value} ({state.current_field})")
        return TurnResult(
            state=state,
            output_text=output,
            done=state.is_terminal,
            debug={"phase": state.phase.value, "field": state.current_field},
        )

    def step(self, state: FormState, user_text: str) -> TurnResult:
        """
        Process one user turn.

        Contract:
        - Input: state from the previous turn + raw user text
        - Output: new state, text to show, done flag, result mapping
        - The input state is not modified

        Args:
            state: FormState returned by start() or the previous step()
            user_text: What the user typed

        Returns:
            TurnResult (done only when completed or cancelled; result only
            when completed)

        Raises:
            TypeError: If state is not a FormState
        """
        if not isinstance(state, FormState):
            raise TypeError("state must be a FormState instance")
        text = (user_text or "").strip()

        if state.is_terminal:
            work = state.copy()
            return self._build_result(work, [self._prompt(work)], {"phase_before": work.phase.value, "ignored": True})

        work = state.copy()
        work.turn_count += 1
        phase_before = work.phase
        debug: Dict[str, Any] = {"phase_before": phase_before.value, "field": work.current_field}

        try:
            if work.phase == FormPhase.ASKING_FIELD:
                messages = self._on_asking_field(work, text, debug)
            elif work.phase == FormPhase.CLARIFYING:
                messages = self._on_clarifying(work, text, debug)
            elif work.phase == FormPhase.CONFIRMING:
                messages = self._on_confirming(work, text, debug)
            else:
                messages = self._on_changing_selection(work, text, debug)
        except NavigationError as e:
            logger.debug(f"Navigation refused: {e}")
            debug["navigation_error"] = str(e)
            messages = [self._render(TemplateUsage.NO_PREVIOUS, work), self._prompt(work)]

        logger.debug(
            f"Turn {work.turn_count}: {phase_before.value} -> {work.phase.value} "
            f"(field={work.current_field}, outcome={debug.get('outcome')})"
        )
        return self._build_result(work, messages, debug)

    def handle(self, command):
        """
        Command envelope entry point.

        Args:
            command: StartForm or UserTurn

        Returns:
            TurnResult, or IllegalCommand for an invalid lifecycle
            transition
        """
        if isinstance(command, StartForm):
            return self.start(command.initial_values)

        if isinstance(command, UserTurn):
            if not isinstance(command.state, FormState):
                return IllegalCommand(reason="UserTurn requires a FormState", command_type="UserTurn")
            if command.state.is_terminal:
                return IllegalCommand(
                    reason=f"Form is already {command.state.phase.value}",
                    command_type="UserTurn",
                )
            return self.step(command.state, command.user_input)

        return IllegalCommand(
            reason=f"Unknown command type: {type(command).__name__}",
            command_type=type(command).__name__,
        )

    def result_values(self, state: FormState) -> Dict[str, Any]:
        """Values of every active field (None for unset optional fields)."""
        result = {}
        for field in self.selector.active_fields(state.values):
            value = state.values.get(field.name)
            result[field.name] = list(value) if isinstance(value, list) else value
        return result

    def render_status(self, state: FormState) -> str:
        return self._render(TemplateUsage.STATUS, state)

    # =========================================================================
    # Phase handlers
    # =========================================================================

    def _on_asking_field(self, work: FormState, text: str, debug: Dict[str, Any]) -> List[str]:
        field = self.schema.field(work.current_field)
        if not text:
            return [self._prompt(work)]

        command = self._match_command(text)
        if command:
            debug["command"] = command
            return self._run_command(work, command)

        if field.name in work.values and self._asking_config(field).allow_default:
            if match_whole(text, self._keep_word):
                debug["outcome"] = "keep"
                return self._advance(work, field)

        target = self._match_field(text, work, exclude=field.name)
        if target is not None:
            debug["jump"] = target.name
            work.push_history()
            work.current_field = target.name
            return [self._prompt(work)]

        if field.is_enum:
            return self._answer_enum(work, field, text, debug)
        return self._answer_value(work, field, text, debug)

    def _on_clarifying(self, work: FormState, text: str, debug: Dict[str, Any]) -> List[str]:
        context = work.clarification
        field = self.schema.field(context.field)
        if not text:
            return [self._prompt(work)]

        command = self._match_command(text)
        if command:
            debug["command"] = command
            self._abandon_clarification(work)
            return self._run_command(work, command)

        span_text, labels = context.current
        # Numbers refer to the order the choices were offered in
        by_label = {c.label: c for c in self._value_candidates[field.name]}
        candidates = [by_label[label] for label in labels]
        result = recognize(text, candidates, allow_numbers=True, multiple=field.is_list, fuzzy=self.config.fuzzy)
        debug["outcome"] = result.outcome

        if result.outcome == OUTCOME_NO_MATCH:
            return [self._render(TemplateUsage.NOT_UNDERSTOOD, work, field, args=(text,)), self._prompt(work)]

        if result.outcome == OUTCOME_AMBIGUOUS and not result.values:
            narrowed = tuple(label for label in labels if label in result.ambiguous_spans[0].labels)
            context.spans[0] = (span_text, narrowed)
            return [self._prompt(work)]

        picks = result.values
        if not field.is_list:
            picks = picks[:1]
        for label in picks:
            if label not in context.resolved:
                context.resolved.append(label)
        context.spans.pop(0)

        if context.spans:
            return [self._prompt(work)]

        if field.is_list:
            chosen = list(context.resolved)
        else:
            chosen = picks
        unmatched = list(context.unmatched)
        work.clarification = None
        work.phase = FormPhase.ASKING_FIELD
        work.current_field = field.name
        return self._commit_enum(work, field, chosen, unmatched, [])

    def _on_confirming(self, work: FormState, text: str, debug: Dict[str, Any]) -> List[str]:
        if not text:
            return [self._prompt(work)]

        command = self._match_command(text)
        if command:
            debug["command"] = command
            return self._run_command(work, command)

        answer = match_whole(text, self._confirm_words)
        if answer is not None and answer.label == LABEL_YES:
            missing = self.selector.missing_required(work.values)
            if missing:
                work.phase = FormPhase.ASKING_FIELD
                work.current_field = missing[0].name
                work.answered.discard(missing[0].name)
                return [self._prompt(work)]
            debug["outcome"] = "confirmed"
            work.phase = FormPhase.COMPLETED
            work.current_field = None
            logger.info(f"Form '{self.schema.name}' completed after {work.turn_count} turns")
            return [self._prompt(work)]

        if answer is not None and answer.label == LABEL_NO:
            work.phase = FormPhase.CHANGING_SELECTION
            return [self._prompt(work)]

        target = self._match_field(text, work)
        if target is not None:
            return self._change_field(work, target)

        return [self._render(TemplateUsage.NOT_UNDERSTOOD, work, args=(text,)), self._prompt(work)]

    def _on_changing_selection(self, work: FormState, text: str, debug: Dict[str, Any]) -> List[str]:
        if not text:
            return [self._prompt(work)]

        command = self._match_command(text)
        if command:
            debug["command"] = command
            return self._run_command(work, command)

        fields = self.selector.active_fields(work.values)
        candidates = [self._field_candidates[field.name] for field in fields]
        result = recognize(text, candidates, allow_numbers=True, fuzzy=self.config.fuzzy)
        debug["outcome"] = result.outcome
        if result.outcome == OUTCOME_SUCCESS and len(result.values) == 1:
            return self._change_field(work, self.schema.field(result.values[0]))

        return [self._render(TemplateUsage.NOT_UNDERSTOOD, work, args=(text,)), self._prompt(work)]

    # =========================================================================
    # Answers
    # =========================================================================

    def _answer_enum(self, work: FormState, field: FieldSpec, text: str, debug: Dict[str, Any]) -> List[str]:
        config = self._asking_config(field)
        result = recognize(
            text,
            self._value_candidates[field.name],
            allow_numbers=config.allow_numbers,
            multiple=field.is_list,
            fuzzy=self.config.fuzzy,
        )
        debug["outcome"] = result.outcome
        debug["recognized"] = result.values
        debug["unmatched"] = list(result.unmatched)

        if result.outcome == OUTCOME_NO_MATCH:
            return self._not_understood(work, field, text, debug)

        if result.outcome == OUTCOME_AMBIGUOUS:
            work.clarification = ClarificationContext(
                field=field.name,
                spans=[(span.text, span.labels) for span in result.ambiguous_spans],
                resolved=result.values,
                unmatched=list(result.unmatched),
            )
            work.phase = FormPhase.CLARIFYING
            return [self._prompt(work)]

        return self._commit_enum(work, field, result.values, list(result.unmatched), result.interpreted)

    def _answer_value(self, work: FormState, field: FieldSpec, text: str, debug: Dict[str, Any]) -> List[str]:
        if field.optional and match_whole(text, self._no_preference_word):
            debug["outcome"] = OUTCOME_SUCCESS
            work.values[field.name] = None
            return self._advance(work, field)

        parsed = parse_value(field.kind.value, text)
        if parsed is None:
            debug["outcome"] = OUTCOME_NO_MATCH
            return self._not_understood(work, field, text, debug)

        value = parsed.value
        if field.is_numeric:
            too_low = field.min_value is not None and value < field.min_value
            too_high = field.max_value is not None and value > field.max_value
            if too_low or too_high:
                debug["outcome"] = "out_of_range"
                args = (value, field.min_value, field.max_value)
                return [self._render(TemplateUsage.OUT_OF_RANGE, work, field, args=args), self._prompt(work)]

        if field.kind == FieldKind.STRING:
            too_short = field.min_length is not None and len(value) < field.min_length
            too_long = field.max_length is not None and len(value) > field.max_length
            if too_short or too_long:
                debug["outcome"] = "length"
                args = (value, field.min_length, field.max_length)
                return [self._render(TemplateUsage.LENGTH, work, field, args=args), self._prompt(work)]

        work.values[field.name] = value
        debug["outcome"] = OUTCOME_SUCCESS
        messages = self._feedback(work, field, list(parsed.unmatched))
        return messages + self._advance(work, field)

    def _commit_enum(self, work: FormState, field: FieldSpec, labels: Sequence[str],
                     unmatched: List[str], interpreted: Sequence[Tuple[str, str]]) -> List[str]:
        """
        Store recognized value names and move on.

        Partial answers are stored but the field is asked again with the
        feedback naming what was not understood.
        """
        chosen = [label for label in labels if label != NO_PREFERENCE]
        if field.is_list:
            work.values[field.name] = chosen or None
        else:
            work.values[field.name] = chosen[0] if chosen else None

        messages: List[str] = []
        seen = set()
        for typed, label in interpreted:
            if label in seen:
                continue
            seen.add(label)
            description = field.value_spec(label).description
            messages.append(self._render(TemplateUsage.INTERPRETED, work, field, args=(typed, description)))

        messages.extend(self._feedback(work, field, unmatched))
        if unmatched:
            return messages + [self._prompt(work)]
        return messages + self._advance(work, field)

    def _feedback(self, work: FormState, field: FieldSpec, unmatched: List[str]) -> List[str]:
        template = self.renderer.template_for(TemplateUsage.FEEDBACK, field)
        option = template.config.feedback
        if option == FeedbackOptions.NEVER:
            return []
        if option == FeedbackOptions.AUTO and not unmatched:
            return []
        quoted = join_list(unmatched, ", ", " and ") if unmatched else None
        return [self._render(TemplateUsage.FEEDBACK, work, field, args=(quoted,))]

    def _not_understood(self, work: FormState, field: FieldSpec, text: str, debug: Dict[str, Any]) -> List[str]:
        if self.config.fuzzy_commands:
            command = match_whole(text, self._fuzzy_commands, fuzzy=self.config.fuzzy)
            if command is not None:
                debug["command"] = command.label
                debug["interpreted_command"] = True
                note = self._render(TemplateUsage.INTERPRETED, work, field, args=(text, command.description))
                return [note] + self._run_command(work, command.label)
        return [self._render(TemplateUsage.NOT_UNDERSTOOD, work, field, args=(text,)), self._prompt(work)]

    # =========================================================================
    # Navigation
    # =========================================================================

    def _advance(self, work: FormState, field: FieldSpec) -> List[str]:
        """Mark field answered, remember it, and go to the next field or confirmation."""
        work.answered.add(field.name)
        work.history.append(HistoryEntry(phase=FormPhase.ASKING_FIELD, field=field.name))
        self._go_to_next_field(work)
        return [self._prompt(work)]

    def _go_to_next_field(self, work: FormState) -> None:
        next_field = self.selector.next_field(work.values, work.answered)
        if next_field is None:
            work.phase = FormPhase.CONFIRMING
            work.current_field = None
        else:
            work.phase = FormPhase.ASKING_FIELD
            work.current_field = next_field.name

    def _change_field(self, work: FormState, field: FieldSpec) -> List[str]:
        work.history.append(HistoryEntry(phase=FormPhase.CONFIRMING))
        work.answered.discard(field.name)
        work.phase = FormPhase.ASKING_FIELD
        work.current_field = field.name
        return [self._prompt(work)]

    def _abandon_clarification(self, work: FormState) -> None:
        work.phase = FormPhase.ASKING_FIELD
        work.current_field = work.clarification.field
        work.clarification = None

    def _run_command(self, work: FormState, command: str) -> List[str]:
        if command == COMMAND_BACK:
            self._go_back(work)
            return [self._prompt(work)]

        if command == COMMAND_HELP:
            return [self._help(work), self._prompt(work)]

        if command == COMMAND_QUIT:
            work.phase = FormPhase.CANCELLED
            work.current_field = None
            work.clarification = None
            logger.info(f"Form '{self.schema.name}' cancelled after {work.turn_count} turns")
            return [self._prompt(work)]

        if command == COMMAND_RESET:
            work.last_good = dict(work.values)
            work.answered.clear()
            work.history.clear()
            work.clarification = None
            self._go_to_next_field(work)
            return [self._prompt(work)]

        if command == COMMAND_STATUS:
            return [self._render(TemplateUsage.STATUS, work), self._prompt(work)]

        raise ValueError(f"Unknown command: {command}")

    def _go_back(self, work: FormState) -> None:
        """
        Return to the previous position.

        Raises:
            NavigationError: If there is nowhere to go back to
        """
        if work.phase == FormPhase.CHANGING_SELECTION:
            work.phase = FormPhase.CONFIRMING
            return

        while True:
            entry = work.pop_history()
            if entry is None:
                raise NavigationError(COMMAND_BACK, "no previous question")
            if entry.phase == FormPhase.ASKING_FIELD and not self.selector.is_active(entry.field, work.values):
                continue
            break

        work.clarification = None
        work.phase = entry.phase
        work.current_field = entry.field
        if entry.field is not None:
            work.answered.discard(entry.field)

    # =========================================================================
    # Matching helpers
    # =========================================================================

    def _match_command(self, text: str) -> Optional[str]:
        command = match_whole(text, self._commands, fuzzy=NO_FUZZY)
        return command.label if command is not None else None

    def _match_field(self, text: str, work: FormState, exclude: Optional[str] = None) -> Optional[FieldSpec]:
        candidates = [
            self._field_candidates[field.name]
            for field in self.selector.active_fields(work.values)
            if field.name != exclude
        ]
        match = match_whole(text, candidates, fuzzy=NO_FUZZY)
        return match.value if match is not None else None

    # =========================================================================
    # Rendering helpers
    # =========================================================================

    def _asking_config(self, field: FieldSpec) -> TemplateConfig:
        return self.renderer.template_for(ASKING_USAGE[field.kind], field).config

    def _render(self, usage: TemplateUsage, work: FormState, field: Optional[FieldSpec] = None,
                args: Sequence[Any] = (), choices: Optional[Sequence[str]] = None) -> str:
        return self.renderer.render_usage(usage, field, work, args, choices)

    def _prompt(self, work: FormState) -> str:
        """Prompt for the current position."""
        if work.phase == FormPhase.ASKING_FIELD:
            field = self.schema.field(work.current_field)
            if field.is_numeric:
                args = (field.min_value, field.max_value)
            elif field.kind == FieldKind.STRING:
                args = (field.min_length, field.max_length)
            else:
                args = ()
            return self._render(ASKING_USAGE[field.kind], work, field, args=args)

        if work.phase == FormPhase.CLARIFYING:
            field = self.schema.field(work.clarification.field)
            span_text, labels = work.clarification.current
            choices = [field.value_spec(label).description for label in labels]
            return self._render(TemplateUsage.CLARIFY, work, field, args=(span_text,), choices=choices)

        if work.phase == FormPhase.CONFIRMING:
            return self._render(TemplateUsage.CONFIRMATION, work)

        if work.phase == FormPhase.CHANGING_SELECTION:
            return self._render(TemplateUsage.CHANGE_PROMPT, work, choices=self._change_choices(work))

        if work.phase == FormPhase.COMPLETED:
            return self._render(TemplateUsage.COMPLETED, work)

        return self._render(TemplateUsage.CANCELLED, work)

    def _change_choices(self, work: FormState) -> List[str]:
        return [
            self._render(TemplateUsage.NAVIGATION_FORMAT, work, field)
            for field in self.selector.active_fields(work.values)
        ]

    def _help(self, work: FormState) -> str:
        lines: List[str] = []

        if work.phase in (FormPhase.ASKING_FIELD, FormPhase.CLARIFYING):
            name = work.clarification.field if work.phase == FormPhase.CLARIFYING else work.current_field
            field = self.schema.field(name)
            lines.append(self._render(TemplateUsage.HELP, work, field))

            if work.phase == FormPhase.CLARIFYING:
                lines.append(self._render(TemplateUsage.HELP_CLARIFY, work, field))
            elif field.is_enum:
                config = self._asking_config(field)
                descriptions = [value.description for value in field.values]
                first, last = (1, len(descriptions)) if config.allow_numbers else (None, None)
                choices = join_list(descriptions, ", ", ", ")
                lines.append(self._render(TemplateUsage.HELP_ENUM, work, field, args=(first, last, choices)))
            else:
                if field.is_numeric:
                    args = (field.min_value, field.max_value)
                elif field.kind == FieldKind.STRING:
                    args = (field.min_length, field.max_length)
                else:
                    args = ()
                lines.append(self._render(HELP_USAGE[field.kind], work, field, args=args))

            if field.name in work.values and self._asking_config(field).allow_default:
                lines.append(self._render(TemplateUsage.HELP_CURRENT, work, field))
            if field.optional:
                lines.append(self._render(TemplateUsage.HELP_NO_PREFERENCE, work, field))

        elif work.phase in (FormPhase.CONFIRMING, FormPhase.CHANGING_SELECTION):
            lines.append(self._render(TemplateUsage.HELP_CONFIRMATION, work))

        for command in self.config.commands:
            lines.append(self._render(
                TemplateUsage.HELP_COMMAND, work,
                args=(", ".join(command.terms), command.description),
            ))

        if work.phase == FormPhase.ASKING_FIELD:
            others = [
                field.description for field in self.selector.active_fields(work.values)
                if field.name != work.current_field
            ]
            if others:
                lines.append(self._render(TemplateUsage.HELP_NAVIGATION, work, args=(join_list(others, ", ", ", "),)))

        return "\n".join(lines)

    def _build_result(self, work: FormState, messages: List[str], debug: Dict[str, Any]) -> TurnResult:
        debug["phase"] = work.phase.value
        result = self.result_values(work) if work.phase == FormPhase.COMPLETED else None
        return TurnResult(
            state=work,
            output_text="\n".join(message for message in messages if message),
            done=work.is_terminal,
            result=result,
            debug=debug,
        )

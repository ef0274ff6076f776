"""
Form configuration: vocabulary and policies shared by every conversation.

Contents:
- CommandSpec: one global command with its words and help text
- FormConfiguration: template table, command vocabulary, yes/no/keep/
  no-preference words, fuzzy matching policy

The configuration is read-only once the engine is built. Hosts that need
different wording build a FormConfiguration with their own table.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from formflow.contracts import Term
from formflow.core.recognizer import DEFAULT_FUZZY, Candidate, FuzzyPolicy
from formflow.utils.templates import TemplateTable

logger = logging.getLogger(__name__)

# Command names
COMMAND_BACK = "back"
COMMAND_HELP = "help"
COMMAND_QUIT = "quit"
COMMAND_RESET = "reset"
COMMAND_STATUS = "status"


@dataclass(frozen=True)
class CommandSpec:
    """
    A global command.

    Attributes:
        name: Command name (COMMAND_*)
        terms: Words/phrases that issue it
        description: Help line text
        fuzzy: Accept misspellings of its terms
    """
    name: str
    terms: Tuple[str, ...]
    description: str
    fuzzy: bool = True

    def candidate(self) -> Candidate:
        return Candidate(
            label=self.name,
            terms=tuple(Term.phrase(term) for term in self.terms),
            description=self.terms[0],
        )


DEFAULT_COMMANDS: Tuple[CommandSpec, ...] = (
    CommandSpec(COMMAND_BACK, ("back", "go back", "previous"), "Go back to the previous question."),
    CommandSpec(COMMAND_HELP, ("help", "?"), "Show the kinds of responses you can enter."),
    CommandSpec(COMMAND_QUIT, ("quit", "cancel", "exit"), "Quit the form without completing it.", fuzzy=False),
    CommandSpec(COMMAND_RESET, ("reset", "start over", "restart"), "Start over, keeping your answers as defaults.", fuzzy=False),
    CommandSpec(COMMAND_STATUS, ("status", "summary"), "Show your progress in filling in the form so far."),
)

YES_TERMS = ("yes", "y", "yep", "yeah", "sure", "ok", "okay", "correct", "right")
NO_TERMS = ("no", "n", "nope", "change", "wrong")
KEEP_TERMS = ("c", "current", "keep")
NO_PREFERENCE_TERMS = ("no preference", "none", "skip", "nothing")


@dataclass
class FormConfiguration:
    """
    Vocabulary and policies for a form engine.

    Attributes:
        templates: Template table (global usage overrides live here)
        commands: Global commands
        yes_terms / no_terms: Answers to the confirmation question
        keep_terms: Keep the current value of the asked field
        no_preference_terms: Leave an optional field without a value
        fuzzy: Edit-distance policy for field values
        fuzzy_commands: Accept misspelled commands when nothing else matched
    """
    templates: TemplateTable = field(default_factory=TemplateTable)
    commands: Tuple[CommandSpec, ...] = DEFAULT_COMMANDS
    yes_terms: Tuple[str, ...] = YES_TERMS
    no_terms: Tuple[str, ...] = NO_TERMS
    keep_terms: Tuple[str, ...] = KEEP_TERMS
    no_preference_terms: Tuple[str, ...] = NO_PREFERENCE_TERMS
    fuzzy: FuzzyPolicy = DEFAULT_FUZZY
    fuzzy_commands: bool = True

    def command(self, name: str) -> Optional[CommandSpec]:
        for command in self.commands:
            if command.name == name:
                return command
        return None

    def command_candidates(self, fuzzy_only: bool = False) -> Tuple[Candidate, ...]:
        return tuple(
            command.candidate()
            for command in self.commands
            if command.fuzzy or not fuzzy_only
        )

    @staticmethod
    def word_candidate(label: str, terms: Tuple[str, ...]) -> Candidate:
        """Candidate for a fixed vocabulary (yes/no/keep)."""
        return Candidate(label=label, terms=tuple(Term.phrase(t) for t in terms), description=terms[0])

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "FormConfiguration":
        """
        Build a configuration from a plain mapping (e.g. parsed JSON).

        Recognized keys: templates, yes_terms, no_terms, keep_terms,
        no_preference_terms, fuzzy (bool), fuzzy_commands.

        Raises:
            ValueError: On unknown keys or template usages
        """
        known = {
            "templates", "yes_terms", "no_terms", "keep_terms",
            "no_preference_terms", "fuzzy", "fuzzy_commands",
        }
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

        kwargs: Dict[str, Any] = {}
        if "templates" in data:
            kwargs["templates"] = TemplateTable(data["templates"])
        for key in ("yes_terms", "no_terms", "keep_terms", "no_preference_terms"):
            if key in data:
                kwargs[key] = tuple(data[key])
        if "fuzzy" in data:
            kwargs["fuzzy"] = DEFAULT_FUZZY if data["fuzzy"] else FuzzyPolicy(enabled=False)
        if "fuzzy_commands" in data:
            kwargs["fuzzy_commands"] = bool(data["fuzzy_commands"])

        config = cls(**kwargs)
        logger.info(f"Form configuration loaded ({len(kwargs)} settings overridden)")
        return config

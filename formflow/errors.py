"""
Error types for the form-filling dialog engine.

Taxonomy:
- SchemaError: the form declaration itself is broken (duplicate names,
  enum field without values, field or value without terms, bad limits).
  Raised while building the schema or constructing the engine. Never
  raised while a conversation is running.
- TemplateError: a pattern string could not be parsed, or refers to a
  field that does not exist. A SchemaError subtype so callers that
  validate a schema catch both.
- NavigationError: a command is not possible in the current state
  (e.g. "back" with an empty history). Recoverable; the dialogue manager
  turns it into a notice and stays where it is.

Recognition outcomes (no match, partial, ambiguous) are NOT exceptions.
They are data on RecognitionResult and always lead to a re-prompt.
"""

from typing import Iterable, Optional


class SchemaError(ValueError):
    """Form declaration is invalid. Fatal to building the form."""

    def __init__(self, message: str, problems: Optional[Iterable[str]] = None):
        self.problems = list(problems) if problems else [message]
        super().__init__(message)

    @classmethod
    def from_problems(cls, problems: Iterable[str]) -> "SchemaError":
        """
        Aggregate several validation problems into one error.

        Args:
            problems: Human-readable problem descriptions

        Returns:
            SchemaError listing every problem
        """
        problems = list(problems)
        message = "Form schema validation failed:\n  - " + "\n  - ".join(problems)
        return cls(message, problems)


class TemplateError(SchemaError):
    """
    Pattern string is malformed, references an unknown field or uses a
    positional argument its usage does not supply.

    Attributes:
        pattern: The offending pattern string
        position: Character offset of the offending element
        element: Text of the offending element (may be partial)
    """

    def __init__(self, reason: str, pattern: str, position: int, element: str = ""):
        self.reason = reason
        self.pattern = pattern
        self.position = position
        self.element = element
        message = f"{reason} at position {position}"
        if element:
            message += f" ({element!r})"
        message += f" in pattern {pattern!r}"
        super().__init__(message)


class NavigationError(RuntimeError):
    """Command cannot be carried out in the current state."""

    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"{command}: {reason}")

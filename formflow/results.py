"""
Result types returned by FormEngine.handle() and FormEngine.step().

These are the ONLY return types of the turn API.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from formflow.core.form_state import FormState


@dataclass(frozen=True)
class TurnResult:
    """
    Outcome of one turn.

    Attributes:
        state: State to pass to the next turn (the input state is never
            modified)
        output_text: Text to show the user (prompt and feedback)
        done: True only once the form is completed or cancelled
        result: field name -> value, only when completed
        debug: Recognition outcome, phase transition, etc.

    Unpacks as (state, output_text, done, result).
    """
    state: FormState
    output_text: str
    done: bool = False
    result: Optional[Dict[str, Any]] = None
    debug: Dict[str, Any] = field(default_factory=dict)

    def __iter__(self):
        return iter((self.state, self.output_text, self.done, self.result))


@dataclass(frozen=True)
class IllegalCommand:
    """
    Command rejected by the engine (invalid lifecycle transition).

    Examples:
    - UserTurn on a state that is already completed or cancelled
    - A command object of an unknown type

    Attributes:
        reason: Human-readable explanation
        command_type: Name of rejected command type
    """
    reason: str
    command_type: str

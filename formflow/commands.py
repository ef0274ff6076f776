"""
Command types for FormEngine.handle().

The command envelope is an alternative to calling start()/step()
directly; hosts that queue or log turns pass these around instead of
bare strings.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Union

from formflow.core.form_state import FormState


@dataclass(frozen=True)
class StartForm:
    """
    Begin a new conversation.

    No state parameter - the engine creates the initial state.
    Returns: TurnResult with the first prompt + initial state.

    Attributes:
        initial_values: Values shown as current choice from the start
    """
    initial_values: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class UserTurn:
    """
    Process user input for the current turn.

    Requires the state returned by the previous turn.
    Returns: TurnResult with the next prompt + updated state.
    """
    user_input: str
    state: FormState


# Command union type for type hints
Command = Union[StartForm, UserTurn]

"""
Form State - Per-conversation state of the form dialog

Responsibilities:
- Hold the field values (absent = unset, None = no preference)
- Track the dialog phase and the field being asked
- Keep the history stack used by "back"
- Keep the "last good" values used by "reset"
- Hold the transient clarification context
- Snapshot to / restore from JSON-safe dicts

Design principles:
- Dumb container: no recognition, no rendering, no navigation rules
  (the dialogue manager owns those)
- One instance per conversation, never shared
- copy() gives the dialogue manager a private working state per turn

CRITICAL: value encoding
- Enum fields store the value NAME ('FootLong'), not its description
- List fields store a list of names in the order they were given
- Optional fields answered with "no preference" store None
- Datetime values are snapshotted as ISO-8601 strings
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from formflow.contracts import FieldKind

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class FormPhase(str, Enum):
    """Dialog phases."""
    ASKING_FIELD = "asking_field"
    CLARIFYING = "clarifying"
    CONFIRMING = "confirming"
    CHANGING_SELECTION = "changing_selection"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_PHASES = frozenset({FormPhase.COMPLETED, FormPhase.CANCELLED})


@dataclass(frozen=True)
class HistoryEntry:
    """A prior position in the dialog ("back" returns here)."""
    phase: FormPhase
    field: Optional[str] = None


@dataclass
class ClarificationContext:
    """
    Transient context while an ambiguous answer is being resolved.

    Attributes:
        field: Field being clarified
        spans: (typed text, candidate value names) still to resolve,
            first one is being asked
        resolved: Value names already settled from the same answer
        unmatched: Input phrases that matched nothing
    """
    field: str
    spans: List[Tuple[str, Tuple[str, ...]]]
    resolved: List[str] = field(default_factory=list)
    unmatched: List[str] = field(default_factory=list)

    @property
    def current(self) -> Tuple[str, Tuple[str, ...]]:
        return self.spans[0]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "spans": [[text, list(labels)] for text, labels in self.spans],
            "resolved": list(self.resolved),
            "unmatched": list(self.unmatched),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ClarificationContext":
        return cls(
            field=data["field"],
            spans=[(text, tuple(labels)) for text, labels in data["spans"]],
            resolved=list(data.get("resolved", [])),
            unmatched=list(data.get("unmatched", [])),
        )


@dataclass
class FormState:
    """
    Mutable state of one conversation.

    Attributes:
        values: field name -> value (absent = unset)
        phase: Current FormPhase
        current_field: Field being asked/clarified (None otherwise)
        history: Stack of prior positions
        last_good: Values at the last reset (defaults shown after reset)
        answered: Fields answered in the current pass
        clarification: Context while phase is CLARIFYING
        turn_count: User turns processed
    """
    values: Dict[str, Any] = field(default_factory=dict)
    phase: FormPhase = FormPhase.ASKING_FIELD
    current_field: Optional[str] = None
    history: List[HistoryEntry] = field(default_factory=list)
    last_good: Dict[str, Any] = field(default_factory=dict)
    answered: Set[str] = field(default_factory=set)
    clarification: Optional[ClarificationContext] = None
    turn_count: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES

    # ========================
    # History
    # ========================

    def push_history(self) -> None:
        """Remember the current position."""
        self.history.append(HistoryEntry(phase=self.phase, field=self.current_field))

    def pop_history(self) -> Optional[HistoryEntry]:
        """Most recent position, or None if the stack is empty."""
        if not self.history:
            return None
        return self.history.pop()

    # ========================
    # Copy / snapshot
    # ========================

    def copy(self) -> "FormState":
        """Independent copy (lists, sets and dicts are not shared)."""
        clarification = None
        if self.clarification is not None:
            clarification = ClarificationContext.from_dict(self.clarification.to_dict())
        return FormState(
            values=_copy_values(self.values),
            phase=self.phase,
            current_field=self.current_field,
            history=list(self.history),
            last_good=_copy_values(self.last_good),
            answered=set(self.answered),
            clarification=clarification,
            turn_count=self.turn_count,
        )

    def snapshot(self) -> Dict[str, Any]:
        """
        Export state as a JSON-safe dict.

        Sets become sorted lists and datetimes ISO-8601 strings.
        """
        return {
            "version": SNAPSHOT_VERSION,
            "values": _encode_values(self.values),
            "phase": self.phase.value,
            "current_field": self.current_field,
            "history": [
                {"phase": entry.phase.value, "field": entry.field}
                for entry in self.history
            ],
            "last_good": _encode_values(self.last_good),
            "answered": sorted(self.answered),
            "clarification": self.clarification.to_dict() if self.clarification else None,
            "turn_count": self.turn_count,
        }

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any], schema) -> "FormState":
        """
        Restore state exported by snapshot().

        Values of fields the schema no longer declares are dropped with a
        warning; datetime strings are parsed back for datetime fields.

        Args:
            data: Dict produced by snapshot()
            schema: FormSchema the state belongs to

        Returns:
            FormState

        Raises:
            ValueError: If the snapshot version or phase is unknown
        """
        version = data.get("version")
        if version != SNAPSHOT_VERSION:
            raise ValueError(f"Unsupported snapshot version: {version}")

        try:
            phase = FormPhase(data["phase"])
            history = [
                HistoryEntry(phase=FormPhase(entry["phase"]), field=entry.get("field"))
                for entry in data.get("history", [])
            ]
        except ValueError as e:
            raise ValueError(f"Invalid snapshot: {e}") from e

        clarification = None
        if data.get("clarification"):
            clarification = ClarificationContext.from_dict(data["clarification"])

        state = cls(
            values=_decode_values(data.get("values", {}), schema),
            phase=phase,
            current_field=data.get("current_field"),
            history=history,
            last_good=_decode_values(data.get("last_good", {}), schema),
            answered={name for name in data.get("answered", []) if name in schema},
            clarification=clarification,
            turn_count=data.get("turn_count", 0),
        )
        logger.debug(f"Restored form state (phase={state.phase.value}, field={state.current_field})")
        return state


def _copy_values(values: Dict[str, Any]) -> Dict[str, Any]:
    return {
        name: list(value) if isinstance(value, list) else value
        for name, value in values.items()
    }


def _encode_values(values: Dict[str, Any]) -> Dict[str, Any]:
    encoded = {}
    for name, value in values.items():
        if isinstance(value, datetime):
            encoded[name] = value.isoformat()
        elif isinstance(value, list):
            encoded[name] = list(value)
        else:
            encoded[name] = value
    return encoded


def _decode_values(values: Dict[str, Any], schema) -> Dict[str, Any]:
    decoded = {}
    for name, value in values.items():
        field_spec = schema.get(name)
        if field_spec is None:
            logger.warning(f"Snapshot value for undeclared field '{name}' dropped")
            continue
        if field_spec.kind == FieldKind.DATETIME and isinstance(value, str):
            value = datetime.fromisoformat(value)
        elif isinstance(value, list):
            value = list(value)
        decoded[name] = value
    return decoded

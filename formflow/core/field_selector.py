"""
Field Selector - Stateless field sequencing for the form dialog

Responsibilities:
- Evaluate active predicates (callables or condition DSL)
- List the active fields in declaration order
- Suppress values of inactive fields
- Select the next field to ask

Design principles:
- Stateless: all state comes from the values/answered parameters
- Deterministic: same input always produces same output
- Pure functions: no side effects
- A field's predicate sees only the values of earlier active fields,
  so activation cannot be circular

Condition DSL (JSON schemas):
    {"all": [...]}  {"any": [...]}
    {"eq": [field, value]}  {"ne": [field, value]}
    {"exists": field}  {"is_true": field}  {"is_false": field}
    {"contains": [field, value]}
    {"gte": [field, n]}  {"gt": [...]}  {"lte": [...]}  {"lt": [...]}
"""

import logging
from typing import Any, Callable, Collection, Dict, List, Mapping, Optional

from formflow.contracts import FieldSpec

logger = logging.getLogger(__name__)

Predicate = Callable[[Mapping[str, Any]], bool]

DSL_OPERATORS = frozenset({
    "all", "any", "eq", "ne", "exists", "is_true", "is_false",
    "contains", "gte", "gt", "lte", "lt",
})


def _compare(values: Mapping[str, Any], operand: Any, op: Callable[[float, float], bool]) -> bool:
    field, threshold = operand
    value = values.get(field)
    if value is None:
        return False
    try:
        return op(float(value), float(threshold))
    except (TypeError, ValueError):
        return False


def evaluate_dsl(dsl: Optional[dict], values: Mapping[str, Any]) -> bool:
    """
    Evaluate a DSL condition structure.

    Args:
        dsl: DSL condition dict (None or empty is vacuously true)
        values: Current field values

    Returns:
        bool: Evaluation result

    Note:
        Missing fields evaluate to False (field unset = condition not met)
    """
    if not dsl:
        return True

    # Logical operators
    if "all" in dsl:
        return all(evaluate_dsl(sub, values) for sub in dsl["all"])

    if "any" in dsl:
        conditions = dsl["any"]
        if not conditions:
            return False
        return any(evaluate_dsl(sub, values) for sub in conditions)

    # Comparison operators
    if "eq" in dsl:
        field, expected = dsl["eq"]
        return field in values and values[field] == expected

    if "ne" in dsl:
        field, expected = dsl["ne"]
        return values.get(field) != expected

    # Existence and boolean operators
    if "exists" in dsl:
        field = dsl["exists"]
        return field in values and values[field] is not None

    if "is_true" in dsl:
        return values.get(dsl["is_true"]) is True

    if "is_false" in dsl:
        return values.get(dsl["is_false"]) is False

    # Membership: list fields hold the value, strings contain it
    if "contains" in dsl:
        field, expected = dsl["contains"]
        value = values.get(field)
        if isinstance(value, (list, tuple)):
            return expected in value
        if isinstance(value, str) and isinstance(expected, str):
            return expected.lower() in value.lower()
        return False

    # Numeric comparison operators
    if "gte" in dsl:
        return _compare(values, dsl["gte"], lambda a, b: a >= b)
    if "gt" in dsl:
        return _compare(values, dsl["gt"], lambda a, b: a > b)
    if "lte" in dsl:
        return _compare(values, dsl["lte"], lambda a, b: a <= b)
    if "lt" in dsl:
        return _compare(values, dsl["lt"], lambda a, b: a < b)

    logger.warning(f"Unknown DSL operator: {list(dsl.keys())}")
    return False


def dsl_field_references(dsl: Optional[dict]) -> List[str]:
    """Field names referenced by a DSL condition (for schema validation)."""
    if not dsl:
        return []
    names: List[str] = []
    for operator, operand in dsl.items():
        if operator in ("all", "any"):
            for sub in operand:
                names.extend(dsl_field_references(sub))
        elif operator in ("exists", "is_true", "is_false"):
            names.append(operand)
        elif isinstance(operand, (list, tuple)) and operand:
            names.append(operand[0])
    return names


def make_predicate(dsl: dict) -> Predicate:
    """Wrap a DSL condition as an active predicate."""
    def predicate(values: Mapping[str, Any]) -> bool:
        return evaluate_dsl(dsl, values)

    predicate.dsl = dsl
    return predicate


class FieldSelector:
    """
    Stateless field selection over a form schema.

    Does not track any state internally; every call receives the
    current values (and answered set) from the caller.
    """

    def __init__(self, schema):
        """
        Initialize selector

        Args:
            schema: FormSchema (ordered, read-only)
        """
        self.schema = schema

    def active_fields(self, values: Mapping[str, Any]) -> List[FieldSpec]:
        """
        Fields whose active predicate holds, in declaration order.

        Each predicate is evaluated on the values of the earlier active
        fields only.
        """
        active: List[FieldSpec] = []
        visible: Dict[str, Any] = {}
        for field in self.schema.fields:
            if field.active is not None and not field.active(visible):
                continue
            active.append(field)
            if field.name in values:
                visible[field.name] = values[field.name]
        return active

    def is_active(self, name: str, values: Mapping[str, Any]) -> bool:
        return any(field.name == name for field in self.active_fields(values))

    def visible_values(self, values: Mapping[str, Any]) -> Dict[str, Any]:
        """Values of active fields only; inactive values are suppressed."""
        return {
            field.name: values[field.name]
            for field in self.active_fields(values)
            if field.name in values
        }

    def first_field(self, values: Mapping[str, Any]) -> Optional[FieldSpec]:
        active = self.active_fields(values)
        return active[0] if active else None

    def next_field(self, values: Mapping[str, Any], answered: Collection[str]) -> Optional[FieldSpec]:
        """
        Select the next field to ask.

        Args:
            values: Current field values
            answered: Names of fields the user has answered in this pass

        Returns:
            First active field not yet answered, or None when the form is
            ready for confirmation
        """
        for field in self.active_fields(values):
            if field.name not in answered:
                return field
        return None

    def missing_required(self, values: Mapping[str, Any]) -> List[FieldSpec]:
        """Active required fields without a value."""
        return [
            field for field in self.active_fields(values)
            if not field.optional and values.get(field.name) is None
        ]

"""
Utility helpers for form hosts

Conversation IDs and JSON-safe result values.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Mapping, Optional


def generate_conversation_id(short=True):
    """
    Generate unique conversation identifier

    Args:
        short (bool): If True, return 8-char hex. If False, return full UUID.

    Returns:
        str: Conversation ID

    Examples:
        >>> generate_conversation_id()
        'a3f7e2b9'
    """
    full_id = uuid.uuid4().hex
    return full_id[:8] if short else full_id


def jsonable_values(values: Optional[Mapping[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Copy a value mapping with datetimes as ISO-8601 strings.

    Returns None for None so completed/not-completed results pass through.
    """
    if values is None:
        return None
    result = {}
    for name, value in values.items():
        if isinstance(value, datetime):
            result[name] = value.isoformat()
        elif isinstance(value, list):
            result[name] = list(value)
        else:
            result[name] = value
    return result

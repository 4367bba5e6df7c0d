"""
Flatten nested mappings into dot-notation keys, and back.
Shared by the JSON and XML parsers; the two differ only in their FlattenPolicy.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping


@dataclass(frozen=True)
class FlattenPolicy:
    """How nulls and lists are rendered when flattening."""
    null_value: Any = None
    array_separator: str = ','


# JSON keeps nulls; XML renders them as empty text. Both are intentional.
JSON_POLICY = FlattenPolicy(null_value=None, array_separator=',')
XML_POLICY = FlattenPolicy(null_value='', array_separator=', ')


def _render_item(item: Any) -> str:
    """Render one list element as text."""
    if item is None:
        return ''
    if isinstance(item, str):
        return item
    if isinstance(item, bool):
        return 'true' if item else 'false'
    if isinstance(item, (Mapping, list, tuple)):
        return json.dumps(item, ensure_ascii=False, default=str)
    return str(item)


def flatten(obj: Mapping[str, Any], prefix: str = '',
            policy: FlattenPolicy = JSON_POLICY) -> Dict[str, Any]:
    """
    Collapse a nested mapping into a single level.

    Args:
        obj: Mapping to flatten
        prefix: Key prefix for the current level
        policy: Null and list rendering rules

    Returns:
        Dict of dotted key -> scalar value

    Example:
        >>> flatten({'a': {'b': 1}, 'tags': ['x', 'y']})
        {'a.b': 1, 'tags': 'x,y'}
    """
    result: Dict[str, Any] = {}

    for key, value in obj.items():
        new_key = f"{prefix}.{key}" if prefix else str(key)

        if value is None:
            result[new_key] = policy.null_value
        elif isinstance(value, (list, tuple)):
            result[new_key] = policy.array_separator.join(_render_item(v) for v in value)
        elif isinstance(value, Mapping):
            result.update(flatten(value, new_key, policy))
        else:
            result[new_key] = value

    return result


def unflatten(flat: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Rebuild nesting from dotted keys.

    A key that is both a leaf and a prefix keeps whichever was written last.
    """
    result: Dict[str, Any] = {}

    for key, value in flat.items():
        parts = str(key).split('.')
        current = result
        for part in parts[:-1]:
            child = current.get(part)
            if not isinstance(child, dict):
                child = {}
                current[part] = child
            current = child
        current[parts[-1]] = value

    return result

"""Deep merge of manifest fragments."""

import copy
from typing import Any


def deep_merge(target: dict[str, Any], source: dict[str, Any]) -> dict[str, Any]:
    """Merge ``source`` into ``target`` in place and return ``target``.

    Mappings merge recursively, sequences are concatenated skipping items that
    are already present, any other value from ``source`` replaces the one in
    ``target``. Values taken from ``source`` are deep-copied so the stored
    fragment is never aliased by the merged manifest.
    """
    for key, value in source.items():
        current = target.get(key)

        if isinstance(current, dict) and isinstance(value, dict):
            deep_merge(current, value)
        elif isinstance(current, list) and isinstance(value, list):
            for item in value:
                if item not in current:
                    current.append(copy.deepcopy(item))
        else:
            target[key] = copy.deepcopy(value)

    return target

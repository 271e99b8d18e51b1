"""Dotted-path helpers for nested documents ("props.categories", "tags.0")."""
from typing import Any, List, MutableMapping, Tuple

MISSING = object()


def split_path(path: str) -> List[str]:
    return path.split('.')


def _step(container: Any, key: str) -> Any:
    if isinstance(container, MutableMapping):
        return container.get(key, MISSING)
    if isinstance(container, (list, tuple)) and key.isdigit():
        index = int(key)
        return container[index] if index < len(container) else MISSING
    return MISSING


def get_path(doc: Any, path: str, default: Any = MISSING) -> Any:
    """Value at ``path`` or ``default`` if any segment is absent."""
    current = doc
    for key in split_path(path):
        current = _step(current, key)
        if current is MISSING:
            return default
    return current


def _parent_for_write(doc: MutableMapping, path: str, create: bool) -> Tuple[Any, str]:
    keys = split_path(path)
    current = doc
    for key in keys[:-1]:
        nxt = _step(current, key)
        if nxt is MISSING or not isinstance(nxt, (MutableMapping, list)):
            if not create:
                return None, keys[-1]
            if not isinstance(current, MutableMapping):
                raise TypeError(f"cannot create field {key!r} inside non-document value at {path!r}")
            nxt = {}
            current[key] = nxt
        current = nxt
    return current, keys[-1]


def set_path(doc: MutableMapping, path: str, value: Any) -> None:
    """Assign ``value`` at ``path``, creating intermediate documents."""
    parent, key = _parent_for_write(doc, path, create=True)
    if isinstance(parent, list):
        if not key.isdigit():
            raise TypeError(f"cannot use non-numeric key {key!r} on an array at {path!r}")
        index = int(key)
        while len(parent) <= index:
            parent.append(None)
        parent[index] = value
    else:
        parent[key] = value


def unset_path(doc: MutableMapping, path: str) -> bool:
    """Remove the value at ``path``; returns False if it was absent."""
    parent, key = _parent_for_write(doc, path, create=False)
    if isinstance(parent, MutableMapping) and key in parent:
        del parent[key]
        return True
    if isinstance(parent, list) and key.isdigit() and int(key) < len(parent):
        # Arrays keep their length, the slot becomes null
        parent[int(key)] = None
        return True
    return False

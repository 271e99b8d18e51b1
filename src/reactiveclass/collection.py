"""
In-memory document collection.

MemoryCollection is the reference implementation of the store interface the
record layer consumes: insert/update/remove with error-first completion
callbacks, find/find_one returning deep copies, and an installable
``transform(record)`` hook applied to every returned document.

Reads made inside a tracker computation register a dependency: a read by _id
depends on that one document, any other query on the whole collection. A
successful write invalidates the readers of every document it touched and
every collection-wide reader. Query support covers equality, the common
comparison operators, ``$in``/``$nin``/``$exists`` and ``$and``/``$or``.
Modifier support covers ``$set $unset $inc $push $pull $addToSet`` and plain
replacement documents.

Thread safety: Not thread-safe (all operations expected on one thread).
"""
import copy
import logging
import uuid
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from reactiveclass.errors import DuplicateKeyError, StoreError
from reactiveclass.paths import MISSING, get_path, set_path, unset_path
from reactiveclass.tracker import Dependency, active

logger = logging.getLogger(__name__)

# None: every document; a Mapping: a query; anything else: an _id
Selector = Union[None, Any, Mapping[str, Any]]
Callback = Callable[[Optional[Exception], Any], None]

# Sentinel: "use the collection's installed transform"
DEFAULT_TRANSFORM = object()


def _finish(callback: Optional[Callback], error: Optional[Exception], result: Any = None) -> Any:
    """Hand the outcome to ``callback`` or raise the error when there is none."""
    if callback is not None:
        callback(error, None if error else result)
        return None if error else result
    if error is not None:
        raise error
    return result


def new_id() -> str:
    return uuid.uuid4().hex


def is_id_selector(selector: Selector) -> bool:
    return selector is not None and not isinstance(selector, Mapping)


def _require_hashable(doc_id: Any) -> Any:
    try:
        hash(doc_id)
    except TypeError:
        raise StoreError(f"Document ids must be hashable, got {doc_id!r}") from None
    return doc_id


# ========== SELECTOR MATCHING ==========

def _compare(op: str, actual: Any, expected: Any) -> bool:
    try:
        if op == '$eq':
            return actual == expected
        if op == '$gt':
            return actual > expected
        if op == '$gte':
            return actual >= expected
        if op == '$lt':
            return actual < expected
        if op == '$lte':
            return actual <= expected
        if op == '$in':
            return actual in expected
    except TypeError:
        # Mismatched types never match, as in the store's ordering rules
        return False
    raise StoreError(f"Unsupported query operator: {op}")


def _value_matches(actual: Any, condition: Any) -> bool:
    if isinstance(condition, Mapping) and condition and all(k.startswith('$') for k in condition):
        for op, expected in condition.items():
            if op == '$exists':
                if (actual is not MISSING) != bool(expected):
                    return False
                continue
            if op in ('$ne', '$nin'):
                positive = '$eq' if op == '$ne' else '$in'
                if actual is not MISSING and _value_matches(actual, {positive: expected}):
                    return False
                continue
            if actual is MISSING:
                return False
            # An array matches if the array itself or any element satisfies the operator
            candidates = [actual] + (actual if isinstance(actual, list) else [])
            if not any(_compare(op, candidate, expected) for candidate in candidates):
                return False
        return True

    if actual is MISSING:
        return condition is None
    if isinstance(actual, list) and not isinstance(condition, list):
        return condition in actual
    return actual == condition


def matches(doc: Mapping[str, Any], selector: Selector) -> bool:
    """True if ``doc`` satisfies ``selector``."""
    if selector is None:
        return True
    if is_id_selector(selector):
        return doc.get('_id') == selector
    for key, condition in selector.items():
        if key == '$and':
            if not all(matches(doc, sub) for sub in condition):
                return False
        elif key == '$or':
            if not any(matches(doc, sub) for sub in condition):
                return False
        elif key.startswith('$'):
            raise StoreError(f"Unsupported top-level query operator: {key}")
        elif not _value_matches(get_path(doc, key), condition):
            return False
    return True


# ========== MODIFIERS ==========

def _is_operator_modifier(modifier: Mapping[str, Any]) -> bool:
    operator_keys = [k for k in modifier if k.startswith('$')]
    if operator_keys and len(operator_keys) != len(modifier):
        raise StoreError("Modifier cannot mix update operators and plain fields")
    return bool(operator_keys)


def _each(value: Any) -> List[Any]:
    if isinstance(value, Mapping) and '$each' in value:
        return list(value['$each'])
    return [value]


def _array_at(doc: Dict[str, Any], path: str, op: str) -> List[Any]:
    current = get_path(doc, path)
    if current is MISSING:
        current = []
        set_path(doc, path, current)
    if not isinstance(current, list):
        raise StoreError(f"Cannot apply {op} to non-array field {path!r}")
    return current


def apply_modifier(doc: Dict[str, Any], modifier: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a modified deep copy of ``doc``; ``doc`` itself is not touched."""
    if not isinstance(modifier, Mapping):
        raise StoreError(f"Modifier must be a mapping, got {type(modifier).__name__}")

    if not _is_operator_modifier(modifier):
        replacement = copy.deepcopy(dict(modifier))
        if '_id' in replacement and replacement['_id'] != doc.get('_id'):
            raise StoreError("The _id field cannot be changed")
        replacement['_id'] = doc.get('_id')
        return replacement

    result = copy.deepcopy(doc)
    for op, changes in modifier.items():
        if not isinstance(changes, Mapping):
            raise StoreError(f"Modifier {op} requires a mapping of fields")
        for path, value in changes.items():
            if path == '_id' or path.startswith('_id.'):
                raise StoreError("The _id field cannot be changed")
            value = copy.deepcopy(value)
            try:
                _apply_operator(result, op, path, value)
            except TypeError as e:
                raise StoreError(f"Cannot apply {op} to {path!r}: {e}") from e
    return result


def _apply_operator(result: Dict[str, Any], op: str, path: str, value: Any) -> None:
    if op == '$set':
        set_path(result, path, value)
    elif op == '$unset':
        unset_path(result, path)
    elif op == '$inc':
        current = get_path(result, path, 0)
        if not isinstance(current, (int, float)) or not isinstance(value, (int, float)):
            raise StoreError(f"Cannot apply $inc to non-numeric field {path!r}")
        set_path(result, path, current + value)
    elif op == '$push':
        _array_at(result, path, op).extend(_each(value))
    elif op == '$addToSet':
        target = _array_at(result, path, op)
        for item in _each(value):
            if item not in target:
                target.append(item)
    elif op == '$pull':
        target = _array_at(result, path, op)
        target[:] = [item for item in target if not _value_matches(item, value)]
    else:
        raise StoreError(f"Unsupported update operator: {op}")


# ========== PROJECTION AND SORTING ==========

def _project(doc: Dict[str, Any], fields: Optional[Mapping[str, int]]) -> Dict[str, Any]:
    if not fields:
        return doc
    include = {path for path, flag in fields.items() if flag and path != '_id'}
    exclude = {path for path, flag in fields.items() if not flag}
    if include and exclude - {'_id'}:
        raise StoreError("Projection cannot mix inclusion and exclusion")

    if include:
        projected: Dict[str, Any] = {}
        for path in include:
            value = get_path(doc, path)
            if value is not MISSING:
                set_path(projected, path, value)
        if '_id' not in exclude and '_id' in doc:
            projected['_id'] = doc['_id']
        return projected

    for path in exclude:
        unset_path(doc, path)
    return doc


def _sort_spec(sort: Union[None, Mapping[str, int], Sequence[Tuple[str, int]]]) -> List[Tuple[str, int]]:
    if not sort:
        return []
    if isinstance(sort, Mapping):
        return list(sort.items())
    return [(path, direction) for path, direction in sort]


def _sort_key(value: Any) -> Tuple[int, Any]:
    # Absent/None sorts first, then numbers, then strings, then everything else by repr
    if value is MISSING or value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (3, value)
    if isinstance(value, (int, float)):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    return (4, repr(value))


class Cursor:
    """Lazy query result; nothing is read until fetch()/iteration."""

    def __init__(
        self,
        collection: 'MemoryCollection',
        selector: Selector,
        sort=None,
        skip: int = 0,
        limit: Optional[int] = None,
        fields: Optional[Mapping[str, int]] = None,
        transform: Any = DEFAULT_TRANSFORM,
        reactive: bool = True,
    ):
        self._collection = collection
        self._selector = selector
        self._sort = _sort_spec(sort)
        self._skip = skip
        self._limit = limit
        self._fields = fields
        self._transform = collection.transform if transform is DEFAULT_TRANSFORM else transform
        self._reactive = reactive

    def _raw(self) -> List[Dict[str, Any]]:
        if self._reactive and active():
            if is_id_selector(self._selector):
                self._collection._doc_dependency(self._selector).depend()
            else:
                self._collection._dependency.depend()
        docs = [doc for doc in self._collection._docs.values() if matches(doc, self._selector)]
        for path, direction in reversed(self._sort):
            docs.sort(key=lambda d: _sort_key(get_path(d, path)), reverse=direction < 0)
        docs = docs[self._skip:]
        if self._limit is not None:
            docs = docs[:self._limit]
        return [_project(copy.deepcopy(doc), self._fields) for doc in docs]

    def fetch(self) -> List[Any]:
        docs = self._raw()
        if self._transform is None:
            return docs
        return [self._transform(doc) for doc in docs]

    def count(self) -> int:
        return len(self._raw())

    def __iter__(self) -> Iterator[Any]:
        return iter(self.fetch())

    def __len__(self) -> int:
        return self.count()


class MemoryCollection:
    """Mongo-style document collection held in process memory."""

    def __init__(self, name: Optional[str] = None, transform: Optional[Callable[[Dict[str, Any]], Any]] = None):
        self.name = name
        self.transform = transform
        self._docs: Dict[Any, Dict[str, Any]] = {}
        self._dependency = Dependency()
        # Readers of a single document by _id, signalled only by writes to that document
        self._doc_dependencies: Dict[Any, Dependency] = {}

    def __repr__(self) -> str:
        return f"<MemoryCollection {self.name or '(anonymous)'} docs={len(self._docs)}>"

    def _doc_dependency(self, doc_id: Any) -> Dependency:
        return self._doc_dependencies.setdefault(_require_hashable(doc_id), Dependency())

    def _signal(self, doc_ids: Iterable[Any]) -> None:
        for doc_id in doc_ids:
            # Invalidated readers re-register on their rerun
            dependency = self._doc_dependencies.pop(doc_id, None)
            if dependency is not None:
                dependency.changed()
        self._dependency.changed()

    def _matching_ids(self, selector: Selector) -> List[Any]:
        if is_id_selector(selector):
            return [selector] if _require_hashable(selector) in self._docs else []
        return [doc_id for doc_id, doc in self._docs.items() if matches(doc, selector)]

    def insert(self, doc: Mapping[str, Any], callback: Optional[Callback] = None) -> Any:
        """Insert a copy of ``doc``; returns its _id (generated when absent)."""
        if not isinstance(doc, Mapping):
            return _finish(callback, StoreError(f"Can only insert documents, got {type(doc).__name__}"))

        record = copy.deepcopy(dict(doc))
        doc_id = record.setdefault('_id', new_id())
        try:
            _require_hashable(doc_id)
        except StoreError as e:
            return _finish(callback, e)
        if doc_id in self._docs:
            return _finish(callback, DuplicateKeyError(f"Duplicate _id {doc_id!r} in {self!r}"))

        self._docs[doc_id] = record
        logger.debug(f"Inserted {doc_id!r} into {self.name or 'collection'}")
        self._signal([doc_id])
        return _finish(callback, None, doc_id)

    def update(
        self,
        selector: Selector,
        modifier: Mapping[str, Any],
        callback: Optional[Callback] = None,
        multi: bool = False,
        upsert: bool = False,
    ) -> Optional[int]:
        """Apply ``modifier`` to the first (or every, with multi) matching document."""
        try:
            doc_ids = self._matching_ids(selector)
            if not multi:
                doc_ids = doc_ids[:1]
            # Compute everything first so a failing modifier leaves the collection untouched
            updated = {doc_id: apply_modifier(self._docs[doc_id], modifier) for doc_id in doc_ids}
            if not doc_ids and upsert:
                seed: Dict[str, Any] = {}
                if is_id_selector(selector):
                    seed['_id'] = selector
                elif selector:
                    for path, condition in selector.items():
                        if not path.startswith('$') and not isinstance(condition, Mapping):
                            set_path(seed, path, copy.deepcopy(condition))
                seed.setdefault('_id', new_id())
                upserted = apply_modifier(seed, modifier)
                updated[_require_hashable(upserted['_id'])] = upserted
        except StoreError as e:
            return _finish(callback, e)

        self._docs.update(updated)
        if updated:
            logger.debug(f"Updated {len(updated)} document(s) in {self.name or 'collection'}")
            self._signal(updated)
        return _finish(callback, None, len(updated))

    def remove(self, selector: Selector, callback: Optional[Callback] = None) -> Optional[int]:
        """Delete every matching document; returns how many were removed."""
        try:
            doc_ids = self._matching_ids(selector)
        except StoreError as e:
            return _finish(callback, e)

        for doc_id in doc_ids:
            del self._docs[doc_id]
        if doc_ids:
            logger.debug(f"Removed {len(doc_ids)} document(s) from {self.name or 'collection'}")
            self._signal(doc_ids)
        return _finish(callback, None, len(doc_ids))

    def find(self, selector: Selector = None, **options) -> Cursor:
        return Cursor(self, selector, **options)

    def find_one(self, selector: Selector = None, **options) -> Any:
        options['limit'] = 1
        results = self.find(selector, **options).fetch()
        return results[0] if results else None

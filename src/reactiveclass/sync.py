"""
Synchronization between records and their collection.

Stateless functions over a record (or a reactive class) and its collection.
Every write is filtered through the class's FieldPolicy and relation
expansions first, and every state change ends with the record's changed()
signal, emitted only after the store has acknowledged (or failed) the call.

Store failures are never retried here: they go to ``callback(error, None)``
when a callback is given and are re-raised otherwise. The record's fields are
only touched after a successful round trip.
"""
import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Type

from reactiveclass.errors import AlreadyPersistedError, NotPersistedError, RecordGoneError
from reactiveclass.expand import apply_expansions
from reactiveclass.field_policy import DEFAULT_HIDDEN_FIELDS, ID_FIELD
from reactiveclass.tracker import nonreactive

if TYPE_CHECKING:
    from reactiveclass.record import ReactiveRecord

logger = logging.getLogger(__name__)

Callback = Callable[[Optional[Exception], Any], None]


def record_id(record: 'ReactiveRecord') -> Any:
    return record.__dict__.get(ID_FIELD)


def require_id(record: 'ReactiveRecord', action: str) -> Any:
    doc_id = record_id(record)
    if doc_id is None:
        raise NotPersistedError(
            f"Cannot {action} as this {type(record).__name__} has no _id. "
            f"Perhaps it was never inserted before."
        )
    return doc_id


def _require_exists(record: 'ReactiveRecord', action: str) -> Any:
    doc_id = require_id(record, action)
    if not record._exists:
        raise RecordGoneError(doc_id, f"Cannot {action}: document {doc_id!r} is no longer in the collection.")
    return doc_id


def _deliver(callback: Optional[Callback], error: Optional[Exception], result: Any) -> None:
    if callback is not None:
        callback(error, None if error else result)
    elif error is not None:
        raise error


def merge_remote(record: 'ReactiveRecord', doc: Optional[Mapping[str, Any]]) -> 'ReactiveRecord':
    """Merge an authoritative store document into ``record`` and signal the change.

    Fields present in ``doc`` overwrite local values; local fields absent from
    ``doc`` are kept. A missing document clears ``exists``, stops any poll and
    raises RecordGoneError after signalling.
    """
    if doc is None:
        doc_id = record_id(record)
        record._exists = False
        from reactiveclass.live import stop_poll
        stop_poll(record)
        type(record).changed(record)
        raise RecordGoneError(doc_id)

    for name, value in doc.items():
        if name not in DEFAULT_HIDDEN_FIELDS:
            record.__dict__[name] = value
    record._exists = True
    apply_expansions(record.__dict__, type(record).options.expand)
    type(record).changed(record)
    return record


# ========== INSTANCE OPERATIONS ==========

def put(record: 'ReactiveRecord', callback: Optional[Callback] = None) -> 'ReactiveRecord':
    """Insert ``record`` for the first time.

    Re-inserting is rejected: a record whose _id is set raises
    AlreadyPersistedError instead of creating a duplicate document.
    """
    descriptor = type(record)
    if record_id(record) is not None:
        raise AlreadyPersistedError(
            f"{descriptor.__name__} {record_id(record)!r} is already in the collection; use update()"
        )

    doc = descriptor.sanitize(record)

    def on_inserted(error: Optional[Exception], doc_id: Any) -> None:
        if error is None:
            record.__dict__[ID_FIELD] = doc_id
            record._exists = True
            logger.debug(f"Inserted {descriptor.__name__} {doc_id!r}")
            if descriptor.options.poll_on_put:
                from reactiveclass.live import poll
                poll(record)
            apply_expansions(record.__dict__, descriptor.options.expand)
            type(record).changed(record)
        _deliver(callback, error, record)

    descriptor.collection.insert(doc, on_inserted)
    return record


def update(
    record: 'ReactiveRecord',
    modifier: Optional[Mapping[str, Any]] = None,
    callback: Optional[Callback] = None,
    **options: Any,
) -> 'ReactiveRecord':
    """Write ``record`` to the store, then pull the stored version back.

    With an explicit ``modifier`` (``{'$set': ...}``, ``{'$inc': ...}``) it is
    sent verbatim, bypassing the field policy. Without one, the record's
    sanitized fields are written with ``$set``, leaving out hidden and
    immutable-on-update fields. Extra keyword options go to the store.
    """
    doc_id = _require_exists(record, 'update')
    if modifier is None:
        modifier = {'$set': type(record).sanitize_for_update(record)}

    def on_updated(error: Optional[Exception], count: Any) -> None:
        if error is None:
            try:
                refresh(record)
            except RecordGoneError as e:
                error = e
        _deliver(callback, error, record)

    type(record).collection.update(doc_id, modifier, on_updated, **options)
    return record


def remove(record: 'ReactiveRecord', callback: Optional[Callback] = None) -> 'ReactiveRecord':
    """Delete the backing document; changed() fires whether or not it succeeds."""
    doc_id = _require_exists(record, 'remove')

    def on_removed(error: Optional[Exception], count: Any) -> None:
        if error is None:
            record._exists = False
            from reactiveclass.live import stop_poll
            stop_poll(record)
            logger.debug(f"Removed {type(record).__name__} {doc_id!r}")
        type(record).changed(record)
        _deliver(callback, error, record)

    type(record).collection.remove(doc_id, on_removed)
    return record


def refresh(record: 'ReactiveRecord') -> 'ReactiveRecord':
    """Pull the stored document and merge it into ``record``.

    Raises RecordGoneError (after clearing ``exists``) when the document is gone.
    """
    doc_id = require_id(record, 'refresh')
    collection = type(record).collection
    doc = nonreactive(lambda: collection.find_one(doc_id, transform=None))
    return merge_remote(record, doc)


# ========== CLASS OPERATIONS ==========

def create(
    descriptor: Type['ReactiveRecord'],
    fields: Optional[Mapping[str, Any]] = None,
    callback: Optional[Callback] = None,
) -> 'ReactiveRecord':
    return put(descriptor(fields), callback=callback)


def _owns_transform(descriptor: Type['ReactiveRecord']) -> bool:
    transform = getattr(descriptor.collection, 'transform', None)
    return getattr(transform, '__self__', None) is descriptor


def fetch_one(
    descriptor: Type['ReactiveRecord'],
    selector: Any = None,
    reactive: bool = True,
    **options: Any,
) -> Optional['ReactiveRecord']:
    """First matching record, or None.

    With ``reactive=False`` the query runs outside dependency tracking, so the
    calling computation is not rerun when the result set changes.
    """
    collection = descriptor.collection

    def query() -> Optional['ReactiveRecord']:
        if _owns_transform(descriptor):
            return collection.find_one(selector, **options)
        doc = collection.find_one(selector, transform=None, **options)
        return descriptor.from_record(doc) if doc is not None else None

    return query() if reactive else nonreactive(query)


def fetch(
    descriptor: Type['ReactiveRecord'],
    selector: Any = None,
    reactive: bool = True,
    **options: Any,
) -> List['ReactiveRecord']:
    """All matching records (fresh instances on every call)."""
    collection = descriptor.collection

    def query() -> List['ReactiveRecord']:
        if _owns_transform(descriptor):
            return collection.find(selector, **options).fetch()
        docs: List[Dict[str, Any]] = collection.find(selector, transform=None, **options).fetch()
        return [descriptor.from_record(doc) for doc in docs]

    return query() if reactive else nonreactive(query)

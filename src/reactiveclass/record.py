"""
Reactive records: live local mirrors of collection documents.

A reactive class binds a collection, its options and a FieldPolicy. Its
instances ("records") each mirror one document:

- document fields are plain instance attributes (``post.name``), ``_id`` is
  the store-assigned identifier and cannot be reassigned or deleted once set;
- reads through get()/exists()/depend() register the running computation,
  set()/changed() and every sync operation invalidate it;
- put/update/remove/refresh talk to the store, poll()/stop_poll() keep the
  record synced in place.

    posts = MemoryCollection('posts')
    Post = reactive_class(posts)
    post = Post.create({'name': 'Cool Post'})

    autorun(lambda c: print(post.get('name')))
    post.set('name', 'Very Cool Post')
    flush()  # prints 'Very Cool Post'

Classes can also be declared with the class statement:

    class Post(ReactiveRecord, collection=posts, transform_collection=False):
        def title(self):
            return self.name.title()

Plain attribute assignment (``post.name = ...``) changes the field without
invalidating anything; use set() or call changed() afterwards.
A field named like a method (``changed``, ``fields``) hides that method on
the instance only; the record machinery always calls methods through the class.
"""
import logging
import types
from typing import Any, Callable, ClassVar, Dict, List, Mapping, Optional, Type

from reactiveclass import live, sync
from reactiveclass.composition import extend as _extend
from reactiveclass.config import ReactiveOptions, get_default_options
from reactiveclass.errors import ConfigurationError, ImmutableIdError
from reactiveclass.expand import apply_expansions, strip_expansions
from reactiveclass.field_policy import DEFAULT_HIDDEN_FIELDS, ID_FIELD, FieldNames, FieldPolicy
from reactiveclass.invalidation import InvalidationNode
from reactiveclass.tracker import Computation

logger = logging.getLogger(__name__)

_STORE_METHODS = ('insert', 'update', 'remove', 'find', 'find_one')


def _validate_collection(collection: Any) -> None:
    if collection is None or not all(callable(getattr(collection, m, None)) for m in _STORE_METHODS):
        raise ConfigurationError(
            f"You must pass in a valid collection (needs {', '.join(_STORE_METHODS)}), got {collection!r}"
        )


class ReactiveRecord:
    """Base class of every reactive class.

    Only subclasses bound to a collection (via reactive_class() or the
    ``collection=`` class keyword) can be instantiated usefully.
    """
    collection: ClassVar[Any] = None
    options: ClassVar[ReactiveOptions] = ReactiveOptions()
    field_policy: ClassVar[Optional[FieldPolicy]] = None

    def __init_subclass__(cls, collection: Any = None, **options: Any):
        super().__init_subclass__()
        if collection is None:
            if options:
                raise ConfigurationError(f"Options {sorted(options)} given without a collection")
            # Unbound subclass: keeps the parent's collection, options and policy
            return

        _validate_collection(collection)
        cls.collection = collection
        cls.options = get_default_options().merged(**options)
        cls.field_policy = FieldPolicy()
        if cls.options.transform_collection:
            live.install_transform(cls)
        logger.debug(f"Bound {cls.__name__} to {collection!r} with {cls.options}")

    def __init__(self, fields: Optional[Mapping[str, Any]] = None, **kwargs: Any):
        if fields:
            self.__dict__.update(fields)
        self.__dict__.update(kwargs)
        type(self).initialize(self)

    def initialize(self) -> None:
        """Attach fresh record state; run by every constructor, composed ones included."""
        self._dep = InvalidationNode(reactive=type(self).options.reactive)
        self._exists = False
        self._tracker: Optional[Computation] = None

    def __setattr__(self, name: str, value: Any) -> None:
        if name == ID_FIELD:
            self._check_id_change(value)
        super().__setattr__(name, value)

    def __delattr__(self, name: str) -> None:
        if name == ID_FIELD:
            self._check_id_change(None)
        super().__delattr__(name)

    def _check_id_change(self, value: Any) -> None:
        # Only the store assigns an _id (sync.put writes it through __dict__)
        current = self.__dict__.get(ID_FIELD)
        if current is not None and value != current:
            raise ImmutableIdError(
                f"Cannot change the _id of {type(self).__name__} {current!r} to {value!r}"
            )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} _id={self.__dict__.get('_id')!r} exists={self._exists}>"

    @property
    def _reactive(self) -> bool:
        return self._dep.reactive

    @_reactive.setter
    def _reactive(self, value: bool) -> None:
        self._dep.reactive = value

    # ========== CLASS SURFACE ==========

    @classmethod
    def _require_bound(cls) -> None:
        if cls.collection is None:
            raise ConfigurationError(f"{cls.__name__} is not bound to a collection")

    @classmethod
    def from_record(cls, doc: Mapping[str, Any]) -> 'ReactiveRecord':
        """Wrap a raw store document (the collection transform).

        The constructor is bypassed, since composed classes cannot know their
        host's arguments, but the record initializer still runs.
        """
        record = cls.__new__(cls)
        record.__dict__.update(doc)
        cls.initialize(record)
        record._exists = True
        apply_expansions(record.__dict__, cls.options.expand)
        return record

    @classmethod
    def create(cls, fields: Optional[Mapping[str, Any]] = None, callback: Optional[Callable] = None) -> 'ReactiveRecord':
        """Construct a record from ``fields`` and insert it."""
        cls._require_bound()
        return sync.create(cls, fields, callback=callback)

    @classmethod
    def fetch(cls, selector: Any = None, reactive: bool = True, **options: Any) -> List['ReactiveRecord']:
        cls._require_bound()
        return sync.fetch(cls, selector, reactive=reactive, **options)

    @classmethod
    def fetch_one(cls, selector: Any = None, reactive: bool = True, **options: Any) -> Optional['ReactiveRecord']:
        cls._require_bound()
        return sync.fetch_one(cls, selector, reactive=reactive, **options)

    @classmethod
    def add_offline_fields(cls, names: FieldNames) -> None:
        """Never send ``names`` to the store."""
        cls._require_bound()
        cls.field_policy.add_hidden(names)

    @classmethod
    def remove_offline_fields(cls, names: FieldNames) -> None:
        cls._require_bound()
        cls.field_policy.remove_hidden(names)

    @classmethod
    def add_do_not_update_fields(cls, names: FieldNames) -> None:
        """Send ``names`` on insert only, never on a plain update()."""
        cls._require_bound()
        cls.field_policy.add_immutable_on_update(names)

    @classmethod
    def remove_do_not_update_fields(cls, names: FieldNames) -> None:
        cls._require_bound()
        cls.field_policy.remove_immutable_on_update(names)

    add_offline_field = add_offline_fields
    remove_offline_field = remove_offline_fields
    add_do_not_update_field = add_do_not_update_fields
    remove_do_not_update_field = remove_do_not_update_fields

    @classmethod
    def extend(cls, host: type = None, name: str = None) -> Type['ReactiveRecord']:
        """Class whose instances are both records of this class and ``host`` instances."""
        cls._require_bound()
        return _extend(cls, host, name=name)

    # ========== FIELDS ==========

    def fields(self) -> Dict[str, Any]:
        """Current document fields (record internals excluded)."""
        return {name: value for name, value in self.__dict__.items() if name not in DEFAULT_HIDDEN_FIELDS}

    def sanitize(self, keep_id: bool = False) -> Dict[str, Any]:
        """Fields as they would be inserted: no offline fields, no expansions."""
        doc = type(self).field_policy.sanitize_for_insert(type(self).fields(self), keep_id=keep_id)
        return strip_expansions(doc, type(self).options.expand)

    def sanitize_for_update(self) -> Dict[str, Any]:
        """Fields as a plain update() would write them."""
        doc = type(self).field_policy.sanitize_for_update(type(self).fields(self))
        return strip_expansions(doc, type(self).options.expand)

    def get(self, field: str, default: Any = None) -> Any:
        """Reactive read of ``field``."""
        type(self).depend(self)
        return getattr(self, field, default)

    def set(self, field: str, value: Any) -> 'ReactiveRecord':
        """Assign ``field`` locally and invalidate dependents (nothing is stored)."""
        setattr(self, field, value)
        type(self).changed(self)
        return self

    def exists(self) -> bool:
        """Reactive: whether the document is known to be in the collection."""
        type(self).depend(self)
        return self._exists

    # ========== STORE ==========

    def put(self, callback: Optional[Callable] = None) -> 'ReactiveRecord':
        return sync.put(self, callback=callback)

    def update(self, modifier: Optional[Mapping[str, Any]] = None, callback: Optional[Callable] = None,
               **options: Any) -> 'ReactiveRecord':
        return sync.update(self, modifier, callback=callback, **options)

    def remove(self, callback: Optional[Callable] = None) -> 'ReactiveRecord':
        return sync.remove(self, callback=callback)

    def refresh(self) -> 'ReactiveRecord':
        return sync.refresh(self)

    def poll(self) -> Computation:
        return live.poll(self)

    def stop_poll(self) -> 'ReactiveRecord':
        live.stop_poll(self)
        return self

    # ========== REACTIVITY ==========

    def lock(self) -> 'ReactiveRecord':
        """Pause invalidation; dependents stay registered."""
        self._dep.lock()
        return self

    def unlock(self) -> 'ReactiveRecord':
        """Resume invalidation, invalidating dependents once to catch up."""
        self._dep.unlock()
        return self

    def depend(self) -> 'ReactiveRecord':
        self._dep.depend()
        return self

    def changed(self) -> 'ReactiveRecord':
        self._dep.changed()
        return self


def reactive_class(collection: Any, name: str = 'ReactiveClass', **options: Any) -> Type[ReactiveRecord]:
    """Create a reactive class bound to ``collection``.

    Args:
        collection: Store collection (insert/update/remove/find/find_one).
        name: Name of the generated class.
        **options: ReactiveOptions fields (camelCase aliases accepted) merged
            over the current defaults.

    Raises:
        ConfigurationError: invalid collection or conflicting options.
    """
    _validate_collection(collection)
    kwds = dict(options, collection=collection)
    return types.new_class(name, (ReactiveRecord,), kwds)

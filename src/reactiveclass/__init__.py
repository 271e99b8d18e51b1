"""
Reactive base classes for objects backed by collection documents.

This package turns plain classes into self-synchronizing local mirrors of
documents held in a queryable document store, with transparent dependency
tracking for the code that reads them.

Key Features:
- reactive_class(): one class per collection, with create/fetch/fetch_one
- Reactive field access: get()/exists() register, set()/changed() invalidate
- Explicit sync: put/update/remove/refresh, poll()/stop_poll() for live records
- Field policy: offline fields and do-not-update fields with protected defaults
- extend(): give any existing class record behaviour (multiple inheritance)
- Contextvars-based dependency tracking with deferred reruns

Quick Start:
    >>> from reactiveclass import MemoryCollection, reactive_class, autorun, flush
    >>>
    >>> posts = MemoryCollection('posts')
    >>> Post = reactive_class(posts)
    >>> post = Post.create({'name': 'Cool Post'})
    >>>
    >>> names = []
    >>> computation = autorun(lambda c: names.append(post.get('name')))
    >>> post.set('name', 'Very Cool Post')
    >>> flush()
    >>> names
    ['Cool Post', 'Very Cool Post']

Architecture:
    FieldPolicy        what a record may send to the store
    InvalidationNode   per-record depend()/changed() gate (lock/unlock)
    sync               create/put/update/remove/refresh/fetch/fetch_one
    live               auto-transform hook and poll trackers
    reactive_class     per-collection class factory (the static surface)
    composition        extend(): records that are also host-class instances

    Every write goes through the field policy before reaching the store and
    ends with the record's changed() signal after the store acknowledges.

Modules:
    - tracker: Dependency, Computation, autorun, nonreactive, flush
    - collection: MemoryCollection, the in-memory reference store
    - field_policy: FieldPolicy
    - invalidation: InvalidationNode
    - sync: synchronization protocol
    - live: transform installation and polling
    - composition: extend()
    - expand: read-time relation expansion
    - config: ReactiveOptions and process-wide defaults
    - errors: exception hierarchy
"""

# Tracker
from reactiveclass.tracker import (
    Computation,
    Dependency,
    active,
    after_flush,
    autorun,
    current_computation,
    flush,
    nonreactive,
)

# Store
from reactiveclass.collection import Cursor, MemoryCollection

# Policy and invalidation
from reactiveclass.field_policy import FieldPolicy
from reactiveclass.invalidation import InvalidationNode

# Configuration
from reactiveclass.config import (
    ReactiveOptions,
    get_default_options,
    set_default_options,
    reset_default_options,
)
from reactiveclass.expand import Expansion

# Records
from reactiveclass.record import ReactiveRecord, reactive_class
from reactiveclass.composition import extend

# Errors
from reactiveclass.errors import (
    AlreadyPersistedError,
    ConfigurationError,
    DuplicateKeyError,
    ImmutableIdError,
    MissingHostTypeError,
    NotPersistedError,
    ProtectedFieldError,
    ReactiveClassError,
    RecordGoneError,
    StoreError,
)

__all__ = [
    # Tracker
    'Computation',
    'Dependency',
    'active',
    'after_flush',
    'autorun',
    'current_computation',
    'flush',
    'nonreactive',
    # Store
    'Cursor',
    'MemoryCollection',
    # Policy and invalidation
    'FieldPolicy',
    'InvalidationNode',
    # Configuration
    'ReactiveOptions',
    'get_default_options',
    'set_default_options',
    'reset_default_options',
    'Expansion',
    # Records
    'ReactiveRecord',
    'reactive_class',
    'extend',
    # Errors
    'AlreadyPersistedError',
    'ConfigurationError',
    'DuplicateKeyError',
    'ImmutableIdError',
    'MissingHostTypeError',
    'NotPersistedError',
    'ProtectedFieldError',
    'ReactiveClassError',
    'RecordGoneError',
    'StoreError',
]

__version__ = '1.0.0'
__description__ = 'Reactive base classes for objects backed by collection documents'

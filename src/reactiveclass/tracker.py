"""
Dependency tracking and computation reruns.

A small transparent-reactivity runtime in the style of Meteor's Tracker:

- Dependency: something a computation can depend on; changed() invalidates
  every computation that called depend() on it.
- Computation: a function run by autorun(); rerun at the next flush() after
  it is invalidated.
- The current computation is held in a ContextVar and entered/exited with an
  explicit scope, so reads made outside autorun() register nothing.

Reruns are deferred: invalidation only schedules the computation and flush()
performs the reruns. This mirrors a cooperative single-threaded event loop,
where invalidations coalesce and computations never run concurrently.

Thread safety: Not thread-safe (all operations expected on one thread).
"""
import contextvars
import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Computation whose function is currently executing (None outside autorun)
_current_computation: contextvars.ContextVar[Optional['Computation']] = contextvars.ContextVar(
    'current_computation', default=None
)

# Invalidated computations waiting for the next flush, in invalidation order
_pending: List['Computation'] = []
_after_flush_callbacks: List[Callable[[], None]] = []
_in_flush = False


@contextmanager
def _computation_scope(computation: Optional['Computation']) -> Iterator[None]:
    token = _current_computation.set(computation)
    try:
        yield
    finally:
        _current_computation.reset(token)


def current_computation() -> Optional['Computation']:
    """Return the computation currently running, or None."""
    return _current_computation.get()


def active() -> bool:
    """True while inside a computation (reads will register dependencies)."""
    return _current_computation.get() is not None


class Computation:
    """A rerunnable function plus its invalidation state.

    Created by autorun(); do not construct directly.
    """

    def __init__(self, func: Callable[['Computation'], Any], parent: Optional['Computation'] = None):
        self._func = func
        self._parent = parent
        self._on_invalidate_callbacks: List[Callable[['Computation'], None]] = []
        self._on_stop_callbacks: List[Callable[['Computation'], None]] = []
        self.invalidated = False
        self.stopped = False
        self.first_run = True

    def on_invalidate(self, callback: Callable[['Computation'], None]) -> None:
        """Call ``callback(self)`` on the next invalidation (immediately if already invalidated)."""
        if self.invalidated:
            with _computation_scope(None):
                callback(self)
        else:
            self._on_invalidate_callbacks.append(callback)

    def on_stop(self, callback: Callable[['Computation'], None]) -> None:
        if self.stopped:
            with _computation_scope(None):
                callback(self)
        else:
            self._on_stop_callbacks.append(callback)

    def invalidate(self) -> None:
        """Mark for rerun and fire invalidation callbacks."""
        if self.invalidated:
            return
        self.invalidated = True
        if not self.stopped:
            _pending.append(self)

        callbacks = self._on_invalidate_callbacks
        self._on_invalidate_callbacks = []
        with _computation_scope(None):
            for callback in callbacks:
                try:
                    callback(self)
                except Exception as e:
                    logger.warning(f"Error in on_invalidate callback: {e}")

    def stop(self) -> None:
        """Stop for good: no further reruns, dependencies are released."""
        if self.stopped:
            return
        self.stopped = True
        self.invalidate()

        callbacks = self._on_stop_callbacks
        self._on_stop_callbacks = []
        with _computation_scope(None):
            for callback in callbacks:
                try:
                    callback(self)
                except Exception as e:
                    logger.warning(f"Error in on_stop callback: {e}")

    def _run(self) -> None:
        self.invalidated = False
        with _computation_scope(self):
            self._func(self)

    def _recompute(self) -> None:
        if not self.invalidated or self.stopped:
            return
        self.first_run = False
        try:
            self._run()
        except Exception as e:
            logger.warning(f"Exception in rerun of computation {self!r}: {e}")

    def __repr__(self) -> str:
        name = getattr(self._func, '__qualname__', repr(self._func))
        return f"<Computation {name} stopped={self.stopped} invalidated={self.invalidated}>"


class Dependency:
    """Invalidation point that computations can subscribe to."""

    def __init__(self):
        # Dict keyed by identity keeps insertion order and O(1) removal
        self._dependents: Dict[int, Computation] = {}

    def depend(self, computation: Optional[Computation] = None) -> bool:
        """Register ``computation`` (default: the current one) as dependent.

        Returns True if a new dependent was added.
        """
        if computation is None:
            computation = _current_computation.get()
            if computation is None:
                return False

        key = id(computation)
        if key in self._dependents:
            return False

        self._dependents[key] = computation
        computation.on_invalidate(lambda c: self._dependents.pop(id(c), None))
        return True

    def changed(self) -> None:
        """Invalidate every dependent computation."""
        for computation in list(self._dependents.values()):
            computation.invalidate()

    def has_dependents(self) -> bool:
        return bool(self._dependents)


def autorun(func: Callable[[Computation], Any]) -> Computation:
    """Run ``func(computation)`` now and again after each invalidation.

    A computation started inside another computation is stopped when its
    parent is invalidated, since the parent's rerun will start a fresh one.
    Exceptions from the first run propagate (and stop the computation);
    exceptions from reruns are logged.
    """
    parent = _current_computation.get()
    computation = Computation(func, parent)
    if parent is not None:
        parent.on_invalidate(lambda c: computation.stop())

    try:
        computation._run()
    except Exception:
        computation.stop()
        raise
    return computation


def nonreactive(func: Callable[[], T]) -> T:
    """Run ``func()`` without a current computation, so nothing is tracked."""
    with _computation_scope(None):
        return func()


def after_flush(callback: Callable[[], None]) -> None:
    """Queue ``callback`` to run once the next flush() finishes."""
    _after_flush_callbacks.append(callback)


def flush() -> None:
    """Rerun invalidated computations until none remain pending.

    Calls made while a flush is already in progress are ignored.
    """
    global _in_flush
    if _in_flush:
        logger.debug("flush() called during flush; ignoring")
        return

    _in_flush = True
    try:
        while _pending or _after_flush_callbacks:
            while _pending:
                computation = _pending.pop(0)
                computation._recompute()

            if _after_flush_callbacks:
                callback = _after_flush_callbacks.pop(0)
                try:
                    callback()
                except Exception as e:
                    logger.warning(f"Error in after_flush callback: {e}")
    finally:
        _in_flush = False


def reset() -> None:
    """Drop pending reruns and callbacks. For testing only."""
    global _in_flush
    _pending.clear()
    _after_flush_callbacks.clear()
    _in_flush = False
    logger.debug("Tracker state reset")

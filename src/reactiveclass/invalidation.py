"""Per-record invalidation gate around a tracker Dependency."""
import logging

from reactiveclass.tracker import Dependency

logger = logging.getLogger(__name__)


class InvalidationNode:
    """Wraps exactly one Dependency and gates changed() on a reactive flag.

    While locked, changed() is a no-op but registrations are kept, so
    dependents pick up again as soon as the node is unlocked.
    """

    def __init__(self, reactive: bool = True):
        self._dependency = Dependency()
        self.reactive = reactive

    def depend(self) -> bool:
        return self._dependency.depend()

    def changed(self) -> None:
        if not self.reactive:
            return
        self._dependency.changed()

    def lock(self) -> None:
        self.reactive = False

    def unlock(self) -> None:
        """Re-enable propagation and flush whatever changed while locked."""
        self.reactive = True
        self._dependency.changed()

    def has_dependents(self) -> bool:
        return self._dependency.has_dependents()

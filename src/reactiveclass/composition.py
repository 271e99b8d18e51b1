"""
Giving existing classes reactive-record behaviour.

extend(descriptor, host) builds a new class whose instances are both records
of ``descriptor`` and instances of ``host``:

- Lookup order is composed class -> descriptor (record methods) -> host, so
  get/set/update/remove and the other record methods are never shadowed by
  the host, while every other host method and class attribute stays reachable.
- Constructing it runs the host's __init__ with the given arguments and then
  the record initializer.
- ``collection``, options and the field policy are those of ``descriptor``,
  shared by reference.

Composition chains: extending a composed class works the same way, with the
composed class in the descriptor role.
"""
import logging
import types
from typing import TYPE_CHECKING, Any, Mapping, Type

from reactiveclass.errors import ConfigurationError, MissingHostTypeError

if TYPE_CHECKING:
    from reactiveclass.record import ReactiveRecord

logger = logging.getLogger(__name__)


def _composed_init(host: type):
    host_init = host.__init__

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        if host_init is object.__init__:
            # Host takes no arguments: treat them as record fields
            for fields in args:
                if not isinstance(fields, Mapping):
                    raise TypeError(f"{host.__name__}() takes no positional arguments besides field mappings")
                self.__dict__.update(fields)
            self.__dict__.update(kwargs)
        else:
            host_init(self, *args, **kwargs)
        type(self).initialize(self)

    return __init__


def extend(descriptor: Type['ReactiveRecord'], host: type = None, name: str = None) -> Type['ReactiveRecord']:
    """Return a class combining ``descriptor``'s record behaviour with ``host``."""
    if host is None:
        raise MissingHostTypeError("You must specify the class you are extending")
    if not isinstance(host, type):
        raise ConfigurationError(f"extend() expects a class, got {type(host).__name__}")

    namespace = {
        '__init__': _composed_init(host),
        '__module__': host.__module__,
        '__doc__': host.__doc__,
        'collection': descriptor.collection,
    }
    composed = types.new_class(
        name or f"Reactive{host.__name__}",
        (descriptor, host),
        exec_body=lambda ns: ns.update(namespace),
    )
    logger.debug(f"Composed {composed.__name__} from {descriptor.__name__} and {host.__name__}")
    return composed
